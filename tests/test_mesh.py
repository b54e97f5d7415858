import math

import pytest

from shuzzle.mesh import (
    Mesh,
    MeshEdge,
    MeshEdger,
    MeshFlag,
    MeshFormat,
    StencilEdger,
    Vertex,
)
from shuzzle.resources import Color4f, ResPoint
from shuzzle.vec import Vec3

CUBE_POINTS = [
    (-1, -1, -1), (1, -1, -1), (1, 1, -1), (-1, 1, -1),
    (-1, -1, 1), (1, -1, 1), (1, 1, 1), (-1, 1, 1),
]
# Outward, counter-clockwise faces; the top face comes first.
CUBE_FACES = [
    (4, 5, 6, 7), (0, 3, 2, 1), (1, 2, 6, 5),
    (0, 4, 7, 3), (3, 7, 6, 2), (0, 1, 5, 4),
]
ABOVE = ResPoint(Vec3(0.0, 0.0, 10.0))


def indexed_cube():
    mesh = Mesh(MeshFormat.create(4, True), 8, 24)
    for v, p in zip(mesh.vertices, CUBE_POINTS):
        v.vertex = Vec3(*p)
    mesh.indices[:] = [i for face in CUBE_FACES for i in face]
    return mesh


def flat_cube():
    order = [i for face in CUBE_FACES for i in face]
    mesh = Mesh(MeshFormat.create(4, False), len(order), 0)
    for v, i in zip(mesh.vertices, order):
        v.vertex = Vec3(*CUBE_POINTS[i])
    return mesh


def quad(z=0.0):
    return [Vec3(-1, -1, z), Vec3(1, -1, z), Vec3(1, 1, z), Vec3(-1, 1, z)]


def quad_mesh(*zs):
    mesh = Mesh(MeshFormat.create(4, False))
    for z in zs:
        mesh.add(4, 0)
        for v, p in zip(mesh.recent_vertices(4), quad(z)):
            v.vertex = p
    return mesh


def test_format_create_sets_flags():
    fmt = MeshFormat.create(3, False)
    assert fmt.vpp == 3
    assert fmt.flags == MeshFlag.TRI
    assert not fmt.is_indexed()
    assert MeshFormat.create(4, True).flags == MeshFlag.QUAD | MeshFlag.INDEXED


@pytest.mark.parametrize("vpp", [1, 5])
def test_format_create_rejects_bad_vpp(vpp):
    with pytest.raises(ValueError):
        MeshFormat.create(vpp, False)


@pytest.mark.parametrize("vpp", [2, 3, 4])
@pytest.mark.parametrize("indexed", [True, False])
def test_format_from_flags_round_trip(vpp, indexed):
    fmt = MeshFormat.create(vpp, indexed)
    assert MeshFormat.from_flags(fmt.flags) == fmt


def test_format_from_flags_line_wins():
    assert MeshFormat.from_flags(MeshFlag.TRI | MeshFlag.LINE).vpp == 2


def test_format_from_flags_without_primitive():
    with pytest.raises(ValueError):
        MeshFormat.from_flags(MeshFlag.INDEXED)


def test_mesh_add_resize_and_clear():
    mesh = Mesh(MeshFormat.create(3, True), 3, 3)
    mesh.add(3, 6)
    assert (mesh.num_verts, mesh.num_indices) == (6, 9)
    assert mesh.num_polys() == 3
    mesh.resize_to(2, 1)
    assert (mesh.num_verts, mesh.num_indices) == (2, 1)
    mesh.clear()
    assert (mesh.num_verts, mesh.num_indices, mesh.num_polys()) == (0, 0, 0)


def test_num_polys_unindexed_counts_vertices():
    mesh = Mesh(MeshFormat.create(4, False), 8, 0)
    assert mesh.num_polys() == 2


def test_recent_vertices_are_live_tail():
    mesh = Mesh(MeshFormat.create(2, False), 2, 0)
    mesh.add(2, 0)
    recent = mesh.recent_vertices(2)
    assert recent[0] is mesh.vertices[2]
    assert recent[1] is mesh.vertices[3]
    recent[0].vertex = Vec3(7, 8, 9)
    assert mesh.vertices[2].vertex == Vec3(7, 8, 9)


def test_paint_colours_every_vertex():
    mesh = Mesh(MeshFormat.create(3, False), 6, 0)
    color = Color4f(0.5, 1.0, 0.5, 1.0)
    mesh.paint(color)
    assert all(v.color == color for v in mesh.vertices)


def test_hit_test_through_quad():
    mesh = quad_mesh(0.0)
    assert mesh.poly_hit_test(Vec3(0, 0, 5), Vec3(0, 0, -1)) == 0


def test_hit_test_miss():
    mesh = quad_mesh(0.0)
    assert mesh.poly_hit_test(Vec3(5, 5, 5), Vec3(0, 0, -1)) == -1


def test_hit_test_lines_never_hit():
    mesh = Mesh(MeshFormat.create(2, False), 2, 0)
    assert mesh.poly_hit_test(Vec3(0, 0, 5), Vec3(0, 0, -1)) == -1


def test_hit_test_callback_sees_every_hit():
    mesh = quad_mesh(0.0, -1.0)
    assert mesh.poly_hit_test(Vec3(0, 0, 5), Vec3(0, 0, -1)) == 0
    hits = []
    result = mesh.poly_hit_test(
        Vec3(0, 0, 5), Vec3(0, 0, -1), lambda poly, at: hits.append((poly, at))
    )
    assert result == 1
    assert [poly for poly, _ in hits] == [0, 1]
    assert hits[0][1] == quad(0.0)[3]


def test_hit_test_indexed():
    mesh = indexed_cube()
    hit = mesh.poly_hit_test(Vec3(0, 0, 5), Vec3(0, 0, -1))
    assert hit in (0, 1)


def test_update_normals_unindexed_face_shares_normal():
    mesh = quad_mesh(0.0)
    mesh.update_normals()
    normals = [v.normal for v in mesh.vertices]
    assert all(n == normals[0] for n in normals)
    assert normals[0].x == 0 and normals[0].y == 0 and normals[0].z > 0


def test_update_normals_partial_range():
    mesh = quad_mesh(0.0, 1.0)
    mesh.update_normals(0, 4, 0, 0)
    assert mesh.vertices[0].normal.z > 0
    assert mesh.vertices[4].normal == Vec3(0.0, 0.0, 0.0)


def test_update_normals_indexed_are_unit_and_outward():
    mesh = indexed_cube()
    mesh.update_normals()
    for v in mesh.vertices:
        assert math.isclose(v.normal.length(), 1.0, rel_tol=1e-9)
        assert v.normal.dot(v.vertex) > 0
    n = mesh.vertices[6].normal
    assert math.isclose(n.x, n.y) and math.isclose(n.y, n.z)


def test_update_normals_calls_edger():
    mesh = indexed_cube()
    edger = MeshEdger(mesh)
    mesh.edger = edger
    mesh.update_normals()
    assert len(edger.poly_normals) == mesh.num_polys()


def test_edger_normals_reject_lines():
    mesh = Mesh(MeshFormat.create(2, False), 4, 0)
    with pytest.raises(ValueError):
        MeshEdger(mesh).update_normals()


def test_edger_poly_normals_point_outward():
    mesh = indexed_cube()
    edger = MeshEdger(mesh)
    edger.update_normals()
    for face, normal in zip(CUBE_FACES, edger.poly_normals):
        centre = sum((Vec3(*CUBE_POINTS[i]) for i in face), Vec3()) / 4
        assert normal.dot(centre) > 0


def test_unindexed_index_finds_first_duplicate():
    mesh = flat_cube()
    edger = MeshEdger(mesh)
    # Slot 4 is the first corner of the bottom face, (-1,-1,-1), first seen there.
    assert edger.unindexed_index(4) == 4
    # Slot 11 is corner 5 again, first stored in slot 1.
    assert edger.unindexed_index(11) == 1
    assert edger.unindexed_index(0) == 0


def test_edge_list_indexed_cube():
    mesh = indexed_cube()
    edger = MeshEdger(mesh)
    edger.update_edge_list()
    assert len(edger.edges) == 12
    assert all(edge.poly2 != -1 for edge in edger.edges)
    pairs = {frozenset((e.vert1, e.vert2)) for e in edger.edges}
    assert len(pairs) == 12


def test_edge_list_unindexed_cube_merges_positions():
    mesh = flat_cube()
    edger = MeshEdger(mesh)
    edger.update_edge_list()
    assert len(edger.edges) == 12
    assert all(edge.poly2 != -1 for edge in edger.edges)
    assert len(set(edger.fake_indices)) == 8


def test_edge_shared_by_three_polygons():
    mesh = Mesh(MeshFormat.create(3, True), 5, 9)
    mesh.indices[:] = [0, 1, 2, 0, 1, 3, 0, 1, 4]
    with pytest.raises(ValueError):
        MeshEdger(mesh).update_edge_list()


def test_outline_needs_ref_point():
    mesh = indexed_cube()
    edger = MeshEdger(mesh)
    edger.update_normals()
    edger.update_edge_list()
    with pytest.raises(ValueError):
        edger.update_outline()


def test_outline_from_above_is_top_face():
    mesh = indexed_cube()
    edger = MeshEdger(mesh, ABOVE)
    edger.update_normals()
    edger.update_edge_list()
    edger.update_outline()
    pairs = {
        frozenset(edger.outline[i:i + 2]) for i in range(0, len(edger.outline), 2)
    }
    assert pairs == {frozenset(p) for p in [(4, 5), (5, 6), (6, 7), (7, 4)]}


def test_outline_open_edge_counts():
    mesh = quad_mesh(0.0)
    edger = MeshEdger(mesh, ABOVE)
    edger.update_normals()
    edger.update_edge_list()
    edger.update_outline()
    assert len(edger.outline) == 2 * len(edger.edges)


def test_stencil_outline_follows_winding():
    mesh = indexed_cube()
    edger = StencilEdger(mesh, ABOVE)
    edger.update_normals()
    edger.update_edge_list()
    edger.update_outline()
    quads = [edger.outline[i:i + 4] for i in range(0, len(edger.outline), 4)]
    n = mesh.num_verts
    for v1, v1x, v2x, v2 in quads:
        assert v1x == v1 + n and v2x == v2 + n
    assert {(q[0], q[3]) for q in quads} == {(4, 5), (5, 6), (6, 7), (7, 4)}


def test_stencil_shadow_vertices_extruded_from_ref():
    mesh = indexed_cube()
    edger = StencilEdger(mesh, ABOVE)
    edger.update_normals()
    edger.update_edge_list()
    edger.update_outline()
    n = mesh.num_verts
    assert len(edger.verts) == 2 * n
    ref = ABOVE.pos
    for i, v in enumerate(mesh.vertices):
        assert edger.verts[i] == v.vertex
        near = v.vertex - ref
        far = edger.verts[i + n] - ref
        assert math.isclose(far.length(), 40 * near.length(), rel_tol=1e-9)
        assert far.cross(near).length() < 1e-9


def test_stencil_invisible_unindexed_caps_facing_polys():
    mesh = flat_cube()
    edger = StencilEdger(mesh, ABOVE)
    edger.is_invisible = True
    edger.update_normals()
    edger.update_edge_list()
    edger.update_outline()
    assert edger.inv_mesh == [0, 1, 2, 3]
    quads = [edger.outline[i:i + 4] for i in range(0, len(edger.outline), 4)]
    assert {(q[0], q[3]) for q in quads} == {(0, 1), (1, 2), (2, 3), (3, 0)}


def test_stencil_invisible_indexed_rejected():
    mesh = indexed_cube()
    edger = StencilEdger(mesh, ABOVE)
    edger.is_invisible = True
    edger.update_normals()
    edger.update_edge_list()
    with pytest.raises(ValueError):
        edger.update_outline()


def test_mesh_edge_defaults_to_open():
    edge = MeshEdge(1, 2, 0)
    assert edge.poly2 == -1


def test_vertex_defaults_are_independent():
    a, b = Vertex(), Vertex()
    a.vertex = Vec3(1, 2, 3)
    assert b.vertex == Vec3(0.0, 0.0, 0.0)


def test_edger_references_mesh_and_point():
    mesh = indexed_cube()
    edger = MeshEdger(mesh, ABOVE)
    refs = list(edger.references())
    assert refs[0] is mesh and refs[1] is ABOVE