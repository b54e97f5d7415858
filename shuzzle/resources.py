"""Animatable resources, animations and transforms of the scene engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Union

from shuzzle.matrix import (
    Matrix,
    identity,
    multiply,
    rotate_x,
    rotate_y,
    rotate_z,
    scale,
    translate_sub,
)
from shuzzle.vec import Vec3


class ResFlag(enum.IntFlag):
    """State bits carried by every resource."""

    NONE = 0
    CHANGED = 1 << 0
    IS_BINDING = 1 << 1
    SHALLOW_CHANGE = 1 << 2
    CHILD_CHANGED = 1 << 3
    FREE_ME = 1 << 4
    MESH_RENDER_CONTEXT = 1 << 5


class AnimFlag(enum.IntFlag):
    """Playback modes of an animation."""

    NONE = 0
    LOOP = 1 << 0
    BOUNCE = 1 << 1
    STOP_WHEN_DONE = 1 << 2
    FROM_CURRENT = 1 << 3


@dataclass(frozen=True)
class Color4f:
    """An RGBA colour with float components."""

    red: float = 1.0
    green: float = 1.0
    blue: float = 1.0
    alpha: float = 1.0

    @classmethod
    def from_rgb(cls, rgb: int) -> Color4f:
        """Colour from a packed 0xAARRGGBB integer."""
        return cls(
            red=((rgb >> 16) & 0xFF) / 255.0,
            green=((rgb >> 8) & 0xFF) / 255.0,
            blue=(rgb & 0xFF) / 255.0,
            alpha=((rgb >> 24) & 0xFF) / 255.0,
        )

    def __iter__(self) -> Iterator[float]:
        yield self.red
        yield self.green
        yield self.blue
        yield self.alpha

    def __getitem__(self, index: int) -> float:
        return (self.red, self.green, self.blue, self.alpha)[index]

    def __mul__(self, other: Color4f) -> Color4f:
        return Color4f(
            self.red * other.red,
            self.green * other.green,
            self.blue * other.blue,
            self.alpha * other.alpha,
        )


class Resource:
    """Base of everything the engine tracks for change and collection."""

    def __init__(self) -> None:
        self.flags = ResFlag.CHANGED

    def changed(self) -> None:
        """Mark this resource as changed."""
        self.flags |= ResFlag.CHANGED

    def references(self) -> Iterator[Resource]:
        """Resources this one refers to; None entries are skipped."""
        return iter(())


def _as_float_res(value: Union[float, "ResFloat"]) -> "ResFloat":
    return value if isinstance(value, ResFloat) else ResFloat(value)


class ResFloat(Resource):
    """An animatable float."""

    def __init__(self, value: float = 0.0) -> None:
        super().__init__()
        self.value = value

    def ratio_between(self, start: ResFloat, end: ResFloat) -> float:
        """How far the current value lies from ``start`` towards ``end``."""
        return (self.value - start.value) / (end.value - start.value)

    def interp(self, start: ResFloat, end: ResFloat, ratio: float) -> None:
        """Set the value ``ratio`` of the way from ``start`` to ``end``."""
        self.value = end.value * ratio + start.value * (1.0 - ratio)
        self.changed()


class ResPoint(Resource):
    """An animatable 3D point."""

    def __init__(self, pos: Sequence[float] = Vec3()) -> None:
        super().__init__()
        self.pos = Vec3(pos[0], pos[1], pos[2])

    def ratio_between(self, start: ResPoint, end: ResPoint) -> float:
        """Ratio along the first axis on which ``start`` and ``end`` differ."""
        a, b = start.pos, end.pos
        if abs(a.x - b.x) != 0:
            return (self.pos.x - a.x) / (b.x - a.x)
        if abs(a.y - b.y) != 0:
            return (self.pos.y - a.y) / (b.y - a.y)
        return (self.pos.z - a.z) / (b.z - a.z)

    def interp(self, start: ResPoint, end: ResPoint, ratio: float) -> None:
        """Set the point ``ratio`` of the way from ``start`` to ``end``."""
        self.pos = end.pos * ratio + start.pos * (1.0 - ratio)
        self.changed()


class ResColor(Resource):
    """An animatable colour."""

    def __init__(self, value: Color4f = Color4f()) -> None:
        super().__init__()
        self.value = value

    def ratio_between(self, start: ResColor, end: ResColor) -> float:
        """Ratio along the first component that differs noticeably."""
        for i in range(4):
            diff = end.value[i] - start.value[i]
            if diff * diff > 0.001:
                return (self.value[i] - start.value[i]) / diff
        return (self.value[0] - start.value[0]) / (end.value[0] - start.value[0])

    def interp(self, start: ResColor, end: ResColor, ratio: float) -> None:
        """Blend the colours; ``ratio`` weights ``start``."""
        self.value = Color4f(
            *(s * ratio + e * (1.0 - ratio) for s, e in zip(start.value, end.value))
        )


Animatable = Union[ResFloat, ResPoint, ResColor]


class AnimateFromTo(Resource):
    """Drives a target resource between two values over time."""

    def __init__(
        self,
        target: Optional[Animatable],
        start: Animatable,
        end: Animatable,
        length: float,
        flags: AnimFlag = AnimFlag.BOUNCE,
        on_done: Optional[Callable[[AnimateFromTo], None]] = None,
        token: object = None,
    ) -> None:
        super().__init__()
        self.flags |= ResFlag.IS_BINDING
        self.target = target
        self.start = start
        self.end = end
        self.length = length
        self.mode = AnimFlag(flags)
        self.true_progress = 0.0
        self.progress = 0.0
        self.on_done = on_done
        self.token = token

    def references(self) -> Iterator[Resource]:
        yield from (r for r in (self.start, self.end, self.target) if r is not None)

    def update(self, dt: float) -> None:
        """Advance the animation by ``dt`` seconds and apply it to the target."""
        target = self.target
        if target is None:
            return
        self.changed()

        if self.mode & AnimFlag.FROM_CURRENT:
            self.mode &= ~AnimFlag.FROM_CURRENT
            self.true_progress = target.ratio_between(self.start, self.end)

        self.true_progress += dt / self.length
        mode = self.mode
        if mode == AnimFlag.NONE:
            self.progress = min(self.true_progress, 1.0)
        if mode & AnimFlag.LOOP:
            while self.true_progress > 1.0:
                self.true_progress -= 1.0
            self.progress = self.true_progress
        if mode & AnimFlag.BOUNCE:
            while self.true_progress >= 2.0:
                self.true_progress -= 2.0
            if self.true_progress <= 1.0:
                self.progress = self.true_progress
            else:
                self.progress = 1.0 - (self.true_progress - 1.0)
        if mode & AnimFlag.STOP_WHEN_DONE:
            if self.true_progress > 1.0:
                self.true_progress = 1.0
            self.progress = self.true_progress

        target.interp(self.start, self.end, self.progress)
        target.changed()

        if mode & AnimFlag.STOP_WHEN_DONE and self.true_progress >= 1.0:
            if self.on_done is not None:
                self.on_done(self)
            self.target = None


class Transform(Resource):
    """A resource that yields a 4x4 transform matrix."""

    def matrix(self) -> Matrix:
        """The transform as a flat matrix."""
        return identity()


class TransformCollection(Transform):
    """An ordered list of transforms composed together."""

    def __init__(self, transforms: Sequence[Transform] = ()) -> None:
        super().__init__()
        self.transforms: List[Transform] = list(transforms)

    def __len__(self) -> int:
        return len(self.transforms)

    def __getitem__(self, index: int) -> Transform:
        return self.transforms[index]

    def __iter__(self) -> Iterator[Transform]:
        return iter(self.transforms)

    def add(self, transform: Transform) -> None:
        """Append a transform."""
        self.transforms.append(transform)
        self.changed()

    def remove(self, transform: Transform) -> None:
        """Remove a transform; ValueError if it is not in the collection."""
        for i, t in enumerate(self.transforms):
            if t is transform:
                del self.transforms[i]
                self.changed()
                return
        raise ValueError("transform is not in the collection")

    def references(self) -> Iterator[Resource]:
        return iter(list(self.transforms))

    def matrix(self) -> Matrix:
        if not self.transforms:
            raise ValueError("empty transform collection")
        result = self.transforms[0].matrix()
        for t in self.transforms[1:]:
            result = multiply(result, t.matrix())
        return result


class MatrixTransform(Transform):
    """A transform holding an explicit matrix, identity by default."""

    def __init__(self, value: Optional[Sequence[float]] = None) -> None:
        super().__init__()
        self.value: Matrix = list(value) if value is not None else identity()

    def matrix(self) -> Matrix:
        return list(self.value)


class TranslateTransform(Transform):
    """A translation by an animatable offset."""

    def __init__(self, offset: Sequence[float] = Vec3()) -> None:
        super().__init__()
        self.offset = ResPoint(offset)

    def references(self) -> Iterator[Resource]:
        yield self.offset

    def matrix(self) -> Matrix:
        off = self.offset.pos
        return translate_sub(off.x, off.y, off.z)


class SpinTransform(Transform):
    """A rotation about one axis (0=x, 1=y, 2=z) by an animatable angle."""

    def __init__(self, axis: int, angle: Union[float, ResFloat] = 0.0) -> None:
        super().__init__()
        self.axis = axis
        self.angle = _as_float_res(angle)

    def references(self) -> Iterator[Resource]:
        yield self.angle

    def matrix(self) -> Matrix:
        rotations = {0: rotate_x, 1: rotate_y, 2: rotate_z}
        try:
            return rotations[self.axis](self.angle.value)
        except KeyError:
            raise ValueError(f"invalid spin axis {self.axis}") from None


class RotateTransform(Transform):
    """A pitch about x followed by an angle about y."""

    def __init__(
        self, pitch: Union[float, ResFloat] = 0.0, angle: Union[float, ResFloat] = 0.0
    ) -> None:
        super().__init__()
        self.pitch = _as_float_res(pitch)
        self.angle = _as_float_res(angle)

    def references(self) -> Iterator[Resource]:
        yield self.angle
        yield self.pitch

    def matrix(self) -> Matrix:
        return multiply(rotate_x(self.pitch.value), rotate_y(self.angle.value))


class ScaleTransform(Transform):
    """A uniform scale by an animatable factor."""

    def __init__(self, factor: Union[float, ResFloat] = 1.0) -> None:
        super().__init__()
        self.factor = _as_float_res(factor)

    def references(self) -> Iterator[Resource]:
        yield self.factor

    def matrix(self) -> Matrix:
        return scale(self.factor.value)