"""Integer grid geometry for the puzzle: directions, boxes and rotations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from shuzzle.matrix import Matrix
from shuzzle.mesh import Mesh, MeshFormat
from shuzzle.resources import Color4f
from shuzzle.vec import Vec3

DIRS: Tuple[Vec3, ...] = (
    Vec3(1, 0, 0),
    Vec3(-1, 0, 0),
    Vec3(0, 1, 0),
    Vec3(0, -1, 0),
    Vec3(0, 0, 1),
    Vec3(0, 0, -1),
)


def float_to_int(value: float) -> int:
    """Round a rotation-matrix entry to -1, 0 or 1."""
    if value > 0.5:
        return 1
    if value < -0.5:
        return -1
    return 0


def ipnt_times_matrix(vec: Sequence[int], mat: Matrix) -> Vec3:
    """Transform an integer point by a matrix whose rotation part is snapped to integers."""
    out = []
    for row in range(3):
        base = row * 4
        total = int(mat[base + 3]) + sum(
            float_to_int(mat[base + col]) * vec[col] for col in range(3)
        )
        out.append(int(total))
    return Vec3(*out)


def cross_dir1(i: int) -> int:
    """First direction index perpendicular to direction ``i``."""
    return (i + 2) % 6


def cross_dir2(i: int) -> int:
    """Second direction index perpendicular to direction ``i``."""
    return (i + 4) % 6


def icross_prod(a: int, b: int) -> int:
    """Direction index of the axis perpendicular to directions ``a`` and ``b``."""
    mc = ((a % 2) + (b % 2)) % 2
    return ((3 - ((a >> 1) + (b >> 1))) << 1) + mc


@dataclass
class Rect3:
    """An inclusive axis-aligned box of grid cells."""

    min: Vec3 = Vec3(0, 0, 0)
    max: Vec3 = Vec3(0, 0, 0)

    def includes(self, pos: Sequence[int]) -> bool:
        """Whether ``pos`` lies inside the box, edges included."""
        return all(lo <= p <= hi for p, lo, hi in zip(pos, self.min, self.max))

    def add_bounded_point(self, pos: Sequence[int]) -> None:
        """Grow the box so that it holds ``pos``."""
        self.min = Vec3(*(p if p < lo else lo for p, lo in zip(pos, self.min)))
        self.max = Vec3(*(p if p > hi else hi for p, hi in zip(pos, self.max)))

    def widen(self, by: int) -> None:
        """Grow the box by ``by`` on every side."""
        step = Vec3(by, by, by)
        self.min = self.min - step
        self.max = self.max + step

    def clip(self, value: Sequence[float]) -> Vec3:
        """``value`` clamped into the box."""
        return Vec3(
            *(float(min(max(v, lo), hi)) for v, lo, hi in zip(value, self.min, self.max))
        )

    def shifted(self, offset: Sequence[int]) -> Rect3:
        """A copy moved by ``offset``."""
        return Rect3(self.min + offset, self.max + offset)

    def gen_mesh(self) -> Mesh:
        """A quad mesh of the box's bottom, top and four sides."""
        lo, hi = self.min, self.max
        bottom = [
            Vec3(lo.x, lo.y, lo.z),
            Vec3(lo.x, hi.y, lo.z),
            Vec3(hi.x, hi.y, lo.z),
            Vec3(hi.x, lo.y, lo.z),
        ]
        top = [
            Vec3(lo.x, lo.y, hi.z),
            Vec3(hi.x, lo.y, hi.z),
            Vec3(hi.x, hi.y, hi.z),
            Vec3(lo.x, hi.y, hi.z),
        ]
        corners = [
            *bottom,
            *top,
            bottom[0], top[0], top[3], bottom[1],
            bottom[3], bottom[2], top[2], top[1],
            bottom[1], top[3], top[2], bottom[2],
            bottom[0], bottom[3], top[1], top[0],
        ]
        mesh = Mesh(MeshFormat.create(4, False), len(corners), 0)
        for vert, pos in zip(mesh.vertices, corners):
            vert.vertex = pos.to_float()
        mesh.paint(Color4f(0.5, 1.0, 0.5))
        return mesh