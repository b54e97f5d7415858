"""Three-component vectors used for positions, offsets and directions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Sequence, Union

Number = Union[int, float]


@dataclass(frozen=True, slots=True)
class Vec3:
    """An immutable 3D vector holding ints or floats."""

    x: Number = 0
    y: Number = 0
    z: Number = 0

    def __iter__(self) -> Iterator[Number]:
        yield self.x
        yield self.y
        yield self.z

    def __len__(self) -> int:
        return 3

    def __getitem__(self, index: int) -> Number:
        return (self.x, self.y, self.z)[index]

    def __add__(self, other: Sequence[Number]) -> Vec3:
        return Vec3(self.x + other[0], self.y + other[1], self.z + other[2])

    __radd__ = __add__

    def __sub__(self, other: Sequence[Number]) -> Vec3:
        return Vec3(self.x - other[0], self.y - other[1], self.z - other[2])

    def __rsub__(self, other: Sequence[Number]) -> Vec3:
        return Vec3(other[0] - self.x, other[1] - self.y, other[2] - self.z)

    def __mul__(self, factor: Number) -> Vec3:
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Number) -> Vec3:
        return Vec3(self.x / divisor, self.y / divisor, self.z / divisor)

    def __floordiv__(self, divisor: int) -> Vec3:
        # Integer division truncating toward zero, as integer points do.
        return Vec3(*(int(c / divisor) for c in self))

    def __neg__(self) -> Vec3:
        return Vec3(-self.x, -self.y, -self.z)

    def dot(self, other: Sequence[Number]) -> Number:
        """Dot product with another 3-sequence."""
        return self.x * other[0] + self.y * other[1] + self.z * other[2]

    def cross(self, other: Sequence[Number]) -> Vec3:
        """Cross product with the engine's handedness: other x self."""
        ax, ay, az = self.x, self.y, self.z
        bx, by, bz = other[0], other[1], other[2]
        return Vec3(
            -(ay * bz - az * by),
            -(az * bx - ax * bz),
            -(ax * by - ay * bx),
        )

    def length(self) -> float:
        """Euclidean length."""
        return math.sqrt(self.dot(self))

    def dist(self, other: Sequence[Number]) -> float:
        """Euclidean distance to another point."""
        return (self - other).length()

    def normalized(self) -> Vec3:
        """Unit vector in the same direction; a zero vector raises ZeroDivisionError."""
        return self / math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def max_value(self) -> Number:
        """Largest component."""
        if self.x > self.y:
            return self.x if self.x > self.z else self.z
        return self.y if self.y > self.z else self.z

    def sum(self) -> Number:
        """Sum of the components."""
        return self.x + self.y + self.z

    def product(self) -> Number:
        """Product of the components."""
        return self.x * self.y * self.z

    def to_int(self) -> Vec3:
        """Components truncated toward zero."""
        return Vec3(int(self.x), int(self.y), int(self.z))

    def to_float(self) -> Vec3:
        """Components converted to floats."""
        return Vec3(float(self.x), float(self.y), float(self.z))

    def with_z(self, z: Number) -> Vec3:
        """Copy with the z component replaced."""
        return Vec3(self.x, self.y, z)