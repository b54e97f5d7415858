import math

import pytest

from shuzzle import matrix as m
from shuzzle.vec import Vec3


def approx_list(values):
    return pytest.approx(list(values), abs=1e-9)


def test_deg_rad_round_trip():
    for deg in (0.0, 30.0, -145.0, 360.0):
        assert m.rad_to_deg(m.deg_to_rad(deg)) == pytest.approx(deg)
    assert m.deg_to_rad(180.0) == pytest.approx(math.pi)


def test_multiply_by_identity_on_right():
    mat = m.multiply(m.rotate_x(20), m.translate_sub(1, 2, 3))
    assert m.multiply(mat, m.identity()) == approx_list(mat)


@pytest.mark.parametrize("rot", [m.rotate_x, m.rotate_y, m.rotate_z])
def test_rotation_combined_with_itself_is_identity(rot):
    r = rot(37.0)
    assert m.multiply(r, r) == approx_list(m.identity())


@pytest.mark.parametrize("rot", [m.rotate_x, m.rotate_y, m.rotate_z])
def test_rotation_preserves_length(rot):
    v = Vec3(1.0, -2.0, 3.0)
    assert m.vec3_times(v, rot(71.0)).length() == pytest.approx(v.length())


def test_rotate_z_quarter_turn():
    assert tuple(m.vec3_times((1, 0, 0), m.rotate_z(90))) == pytest.approx(
        (0.0, 1.0, 0.0), abs=1e-9
    )


def test_scale_and_translate_sub():
    v = Vec3(1.0, 2.0, 3.0)
    assert m.vec3_times(v, m.scale(2.0)) == v * 2.0
    assert m.vec3_times(v, m.translate_sub(4, 5, 6)) == v + (4, 5, 6)


def test_translate_in_bottom_row_ignored_by_vec3_times():
    v = Vec3(1.0, 2.0, 3.0)
    assert m.vec3_times(v, m.translate(4, 5, 6)) == v


def test_vec4_times_identity():
    assert m.vec4_times((1.0, 2.0, 3.0, 4.0), m.identity()) == (1.0, 2.0, 3.0, 4.0)


def test_inverse_of_translation():
    assert m.inverse(m.translate_sub(1, 2, 3)) == approx_list(m.translate_sub(-1, -2, -3))


def test_inverse_of_rotation_is_transpose():
    r = m.rotate_y(25.0)
    inv = m.inverse(r)
    for i in range(4):
        for j in range(4):
            assert inv[4 * i + j] == pytest.approx(r[4 * j + i])


def test_rot_about_z_matches_rotate_z():
    assert m.rot_about((0, 0, 1), m.deg_to_rad(40)) == approx_list(m.rotate_z(40))


def test_cross_prod_matches_vec_cross():
    a, b = Vec3(1, 2, 3), Vec3(-3, 0, 2)
    assert m.cross_prod(a, b) == a.cross(b)


def test_dot_and_magnitude():
    v = (2.0, -1.0, 2.0)
    assert m.magnitude(v) ** 2 == pytest.approx(m.dot3(v, v))


def test_normalize():
    assert m.magnitude(m.normalize((3.0, 1.0, -2.0))) == pytest.approx(1.0)
    tiny = (0.0001, 0.0, 0.0)
    assert m.normalize(tiny) == Vec3(*tiny)


def test_angle_between_perpendicular():
    assert m.angle_between((1, 0, 0), (0, 1, 0)) == pytest.approx(m.rad_to_deg(math.pi / 2))


@pytest.mark.parametrize("x,y", [(1, 2), (-1, 2), (-3, -1), (2, -5), (4, 0), (-4, 0), (0, 3), (0, -3)])
def test_get_ang_matches_atan2(x, y):
    assert m.get_ang(x, y) == pytest.approx(math.atan2(y, x))


def test_get_ang_origin():
    assert m.get_ang(0, 0) == pytest.approx(m.HALF_PI)


TRI = [(0.0, 0.0, 0.0), (4.0, 0.0, 0.0), (0.0, 4.0, 0.0)]


def test_poly_normal_perpendicular():
    n = m.poly_normal(TRI)
    assert n.dot(Vec3(*TRI[1]) - TRI[0]) == pytest.approx(0.0)
    assert n.dot(Vec3(*TRI[2]) - TRI[0]) == pytest.approx(0.0)
    assert n.length() > 0


def test_point_in_poly():
    assert m.point_in_poly(TRI, (1.0, 1.0, 0.0)) is True
    assert m.point_in_poly(TRI, (5.0, 5.0, 0.0)) is False


def test_segment_point_time_round_trip():
    seg = m.Segment.from_to((1, 2, 3), (5, 2, -1))
    assert seg.get_point(1.0) == Vec3(5, 2, -1)
    assert seg.get_time(seg.get_point(0.25)) == pytest.approx(0.25)
    assert m.Segment(Vec3(1, 1, 1), Vec3(0, 0, 0)).get_time((2, 2, 2)) == 0.0


def test_segment_parallel_does_not_meet():
    a = m.Segment(Vec3(0, 0, 0), Vec3(1, 1, 0))
    b = m.Segment(Vec3(0, 1, 0), Vec3(1, 1, 0))
    assert a.time_to_segment(b) is None


def test_time_to_plane_lands_on_plane():
    plane = m.Plane.from_normal((0, 0, 1), (0, 0, 0))
    seg = m.Segment.from_to((1, 2, -1), (1, 2, 3))
    t = seg.time_to_plane(plane)
    assert plane.dist_from_point(seg.get_point(t)) == pytest.approx(0.0)
    parallel = m.Segment.from_to((0, 0, 1), (5, 0, 1))
    assert parallel.time_to_plane(plane) == 0.0


def test_hits_poly():
    normal = m.poly_normal(TRI)
    through = m.Segment.from_to((1, 1, -1), (1, 1, 1))
    assert through.hits_poly(TRI, normal) == (True, None)
    miss = m.Segment.from_to((5, 5, -1), (5, 5, 1))
    assert miss.hits_poly(TRI, normal)[0] is False
    short = m.Segment.from_to((1, 1, -2), (1, 1, -1))
    hit, how_far = short.hits_poly(TRI, normal)
    assert hit is False
    assert how_far > 1


def test_plane_from_poly_contains_vertices():
    tri = [(1.0, 0.0, 2.0), (0.0, 3.0, 1.0), (2.0, 2.0, 5.0)]
    plane = m.Plane.from_poly(tri)
    for p in tri:
        assert plane.dist_from_point(p) == pytest.approx(0.0, abs=1e-9)


def test_dist_from_point_and_closest_point():
    plane = m.Plane.from_normal((0, 0, 2), (0, 0, 0))
    assert plane.dist_from_point((3, 4, 5)) == pytest.approx(5.0)
    closest = plane.closest_point((3, 4, 5))
    assert tuple(closest) == pytest.approx((3.0, 4.0, 0.0))
    assert plane.dist_from_point(closest) == pytest.approx(0.0)


def test_degenerate_plane():
    plane = m.Plane((0.0, 0.0, 0.0, 1.0))
    assert plane.dist_from_point((1, 2, 3)) == 0.0
    with pytest.raises(ValueError):
        plane.closest_point((1, 2, 3))