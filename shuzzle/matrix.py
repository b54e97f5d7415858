"""Flat 4x4 matrix helpers, planes and segments.

Matrices are lists of 16 floats, addressed as ``m[row * 4 + column]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from shuzzle.vec import Vec3

PI = math.pi
HALF_PI = math.pi / 2.0

Matrix = List[float]


def _at(mat: Sequence[float], row: int, col: int) -> float:
    return mat[row * 4 + col]


def deg_to_rad(deg: float) -> float:
    """Degrees to radians."""
    return (deg / 180.0) * PI


def rad_to_deg(rad: float) -> float:
    """Radians to degrees."""
    return (rad / PI) * 180.0


def identity() -> Matrix:
    """A new identity matrix."""
    mat = [0.0] * 16
    for i in range(4):
        mat[i * 4 + i] = 1.0
    return mat


def rotate_x(angle: float) -> Matrix:
    """Rotation about the x axis by ``angle`` degrees."""
    a = deg_to_rad(angle)
    mat = identity()
    mat[5] = math.cos(a)
    mat[9] = math.sin(a)
    mat[6] = -math.sin(a)
    mat[10] = math.cos(a)
    return mat


def rotate_y(angle: float) -> Matrix:
    """Rotation about the y axis by ``angle`` degrees."""
    a = deg_to_rad(angle)
    mat = identity()
    mat[0] = math.cos(a)
    mat[2] = math.sin(a)
    mat[8] = -math.sin(a)
    mat[10] = math.cos(a)
    return mat


def rotate_z(angle: float) -> Matrix:
    """Rotation about the z axis by ``angle`` degrees."""
    a = deg_to_rad(angle)
    mat = identity()
    mat[0] = math.cos(a)
    mat[4] = math.sin(a)
    mat[1] = -math.sin(a)
    mat[5] = math.cos(a)
    return mat


def scale(by: float) -> Matrix:
    """Uniform scale matrix."""
    mat = identity()
    mat[0] = mat[5] = mat[10] = by
    return mat


def translate(x: float, y: float, z: float) -> Matrix:
    """Translation stored in the bottom row."""
    mat = identity()
    mat[12], mat[13], mat[14] = x, y, z
    return mat


def translate_sub(x: float, y: float, z: float) -> Matrix:
    """Translation stored in the last column (applied by ``vec3_times``)."""
    mat = identity()
    mat[3], mat[7], mat[11] = x, y, z
    return mat


def rot_about(about: Sequence[float], angle: float) -> Matrix:
    """Rotation about an axis by ``angle`` radians."""
    mat = identity()
    c = math.cos(angle)
    s = math.sin(angle)
    t = 1.0 - c
    ax, ay, az = about[0], about[1], about[2]

    mat[0] = ax * ax + c
    mat[4] = t * ax * ay + s * az
    mat[8] = t * ax * az - s * ay

    mat[1] = t * ax * ay - s * az
    mat[5] = t * ay * ay + c
    mat[9] = t * ay * az + s * ax

    mat[2] = t * ax * ay + s * ay
    mat[6] = t * ay * az - s * ax
    mat[10] = t * az * az + c
    return mat


def vec4_times(vec: Sequence[float], mat: Sequence[float]) -> Tuple[float, float, float, float]:
    """A 4-vector run through a matrix: ``to[r] = sum(m[r][c] * v[c])``."""
    return tuple(
        sum(_at(mat, row, col) * vec[col] for col in range(4)) for row in range(4)
    )  # type: ignore[return-value]


def vec3_times(vec: Sequence[float], mat: Sequence[float]) -> Vec3:
    """A point run through a matrix, adding the last column as translation."""
    return Vec3(
        *(
            _at(mat, row, 3) + sum(_at(mat, row, col) * vec[col] for col in range(3))
            for row in range(3)
        )
    )


def multiply(one: Sequence[float], two: Sequence[float]) -> Matrix:
    """Combine two matrices: each row of ``one`` is run through ``two``."""
    result: Matrix = []
    for row in range(4):
        result.extend(vec4_times(one[row * 4:row * 4 + 4], two))
    return result


def inverse(mat: Sequence[float]) -> Matrix:
    """Inverse of a rigid transform (rotation plus last-column translation)."""
    to = [0.0] * 16
    for y in range(3):
        to[y * 4 + 3] = 0.0
        for x in range(3):
            to[x * 4 + y] = _at(mat, y, x)
            to[y * 4 + 3] -= _at(mat, y, 3) * _at(mat, x, y)
        to[12 + y] = 0.0
    to[15] = 1.0
    return to


def cross_prod(a: Sequence[float], b: Sequence[float]) -> Vec3:
    """Cross product with the engine's handedness (b x a)."""
    return Vec3(a[0], a[1], a[2]).cross(b)


def dot3(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product of the first three components."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def magnitude(vec: Sequence[float]) -> float:
    """Length of the first three components."""
    return math.sqrt(dot3(vec, vec))


def normalize(vec: Sequence[float]) -> Vec3:
    """Unit vector; vectors shorter than 0.001 come back unchanged."""
    v = Vec3(vec[0], vec[1], vec[2])
    d = magnitude(v)
    if -0.001 < d < 0.001:
        return v
    return v / d


def angle_between(a: Sequence[float], b: Sequence[float]) -> float:
    """Angle in degrees between two unit vectors."""
    return rad_to_deg(math.acos(dot3(a, b)))


def get_ang(x: float, y: float) -> float:
    """Angle in radians of the 2D point (x, y)."""
    negx = x < 0
    negy = y < 0
    x = abs(x)
    y = abs(y)
    if x == 0:
        return -HALF_PI if negy else HALF_PI
    if y == 0:
        return PI if negx else 0.0
    ang = math.atan(y / x)
    if negx and negy:
        return -(PI - ang)
    if negx:
        return HALF_PI + (HALF_PI - ang)
    if negy:
        return -ang
    return ang


def poly_normal(tri: Sequence[Sequence[float]]) -> Vec3:
    """Normal of a triangle given as three points."""
    p0 = Vec3(*tri[0][:3])
    return cross_prod(Vec3(*tri[1][:3]) - p0, Vec3(*tri[2][:3]) - p0)


def point_in_poly(tri: Sequence[Sequence[float]], point: Sequence[float]) -> bool:
    """Whether a point lying in the triangle's plane is inside the triangle."""
    pts = [Vec3(*p[:3]) for p in tri]
    pnt = Vec3(point[0], point[1], point[2])
    for i in range(3):
        seg = Segment(pts[i], pnt - pts[i])
        edge_start = pts[(i + 2) % 3]
        seg2 = Segment(edge_start, pts[(i + 1) % 3] - edge_start)
        t = seg.time_to_segment(seg2)
        if t is not None and 0 < t < 1:
            return False
    return True


@dataclass(frozen=True)
class Segment:
    """A line from ``origin`` along ``delta``; time 1 is the far end."""

    origin: Vec3
    delta: Vec3

    @classmethod
    def from_to(cls, start: Sequence[float], end: Sequence[float]) -> Segment:
        """Segment running from ``start`` to ``end``."""
        s = Vec3(start[0], start[1], start[2])
        return cls(s, Vec3(end[0], end[1], end[2]) - s)

    def get_point(self, time: float) -> Vec3:
        """Point at the given time along the segment."""
        return self.origin + self.delta * time

    def get_time(self, point: Sequence[float]) -> float:
        """Time of a point lying on the line; 0 for a zero delta."""
        for i in range(3):
            if self.delta[i] != 0:
                return (point[i] - self.origin[i]) / self.delta[i]
        return 0.0

    def time_to_segment(self, other: Segment) -> Optional[float]:
        """Time at which this line meets ``other``, or None if they cannot meet."""
        one = 2 if other.delta[1] == 0 else 1
        if other.delta[one] == 0:
            return None
        o, d = self.origin, self.delta
        oo, od = other.origin, other.delta
        top = o[0] - oo[0] - (od[0] * (o[one] - oo[one])) / od[one]
        bot = (od[0] * d[one]) / od[one] - d[0]
        if bot == 0:
            return None
        return top / bot

    def time_to_plane(self, plane: Plane) -> float:
        """Time at which the line crosses the plane; 0 when parallel."""
        coeffs = plane.coefficients
        top = -dot3(coeffs, self.origin) - coeffs[3]
        bot = dot3(coeffs, self.delta)
        if bot == 0:
            return 0.0
        return top / bot

    def hits_poly(
        self, tri: Sequence[Sequence[float]], normal: Sequence[float]
    ) -> Tuple[bool, Optional[float]]:
        """Whether the segment passes through the triangle.

        Returns ``(hit, how_far)``; ``how_far`` is the plane-crossing time when
        the crossing lies outside the segment, otherwise None.
        """
        plane = Plane.from_normal(normal, tri[0])
        time = self.time_to_plane(plane)
        if time > 1 or time <= 0:
            return False, time
        return point_in_poly(tri, self.get_point(time)), None


@dataclass(frozen=True)
class Plane:
    """Plane ``a*x + b*y + c*z + d = 0``."""

    coefficients: Tuple[float, float, float, float]

    @classmethod
    def from_normal(cls, normal: Sequence[float], point: Sequence[float]) -> Plane:
        """Plane with the given normal passing through ``point``."""
        d = -dot3(point, normal)
        return cls((normal[0], normal[1], normal[2], d))

    @classmethod
    def from_poly(cls, tri: Sequence[Sequence[float]]) -> Plane:
        """Plane of a triangle."""
        return cls.from_normal(poly_normal(tri), tri[0])

    def _unit_normal(self) -> Vec3:
        return normalize(self.coefficients[:3])

    def dist_from_point(self, point: Sequence[float]) -> float:
        """Signed shortest distance from the plane to ``point``; 0 if degenerate."""
        norm = self._unit_normal()
        top = -dot3(self.coefficients, point) - self.coefficients[3]
        bot = -dot3(self.coefficients, norm)
        if bot == 0:
            return 0.0
        return top / bot

    def closest_point(self, point: Sequence[float]) -> Vec3:
        """Point on the plane closest to ``point``."""
        norm = self._unit_normal()
        top = -dot3(self.coefficients, point) - self.coefficients[3]
        bot = -dot3(self.coefficients, norm)
        if bot == 0:
            raise ValueError("plane has no normal")
        return Vec3(point[0], point[1], point[2]) - norm * (top / bot)