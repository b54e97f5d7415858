"""Puzzle blocks made of unit boxes, and the board they move on."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Sequence

from shuzzle.geometry import (
    DIRS,
    Rect3,
    cross_dir1,
    cross_dir2,
    icross_prod,
    ipnt_times_matrix,
)
from shuzzle.matrix import Matrix, multiply, rotate_x, rotate_y, rotate_z
from shuzzle.mesh import Mesh, MeshFormat
from shuzzle.resources import (
    AnimateFromTo,
    AnimFlag,
    Color4f,
    MatrixTransform,
    ResFloat,
    ResPoint,
    Resource,
    SpinTransform,
    TransformCollection,
    TranslateTransform,
)
from shuzzle.scene import CompNode, Core
from shuzzle.vec import Vec3

ROTATE_TIME = 0.3
SHIFT_TIME = 0.125


class Block:
    """A rigid piece: boxes relative to a centre on the integer grid."""

    def __init__(self, boxes: Iterable[Sequence[int]] = (), center: Sequence[int] = Vec3(0, 0, 0)) -> None:
        self.boxes: List[Vec3] = [Vec3(b[0], b[1], b[2]) for b in boxes]
        self.center = Vec3(center[0], center[1], center[2])
        self.index = 0
        self.board: Optional[Board] = None
        self.bounds = Rect3()
        self.node: Optional[CompNode] = None
        self.animation: Optional[AnimateFromTo] = None
        if self.boxes:
            self.find_bounds()

    @classmethod
    def from_rect(cls, rect: Rect3) -> Block:
        """A block filling every cell of ``rect``, centred in it."""
        lo, hi = rect.min, rect.max
        cells = [
            Vec3(x, y, z)
            for z in range(lo.z, hi.z + 1)
            for y in range(lo.y, hi.y + 1)
            for x in range(lo.x, hi.x + 1)
        ]
        center = (lo + hi) // 2
        return cls([c - center for c in cells], center)

    def find_bounds(self) -> None:
        """Recompute the absolute bounding box."""
        if not self.boxes:
            raise ValueError("block has no boxes")
        bounds = Rect3(self.boxes[0], self.boxes[0])
        for box in self.boxes[1:]:
            bounds.add_bounded_point(box)
        self.bounds = bounds.shifted(self.center)

    def box_index(self, at: Sequence[int]) -> int:
        """Index of the box at absolute position ``at``, or -1."""
        if not self.bounds.includes(at):
            return -1
        rel = Vec3(at[0], at[1], at[2]) - self.center
        for i, box in enumerate(self.boxes):
            if box == rel:
                return i
        return -1

    def includes(self, at: Sequence[int]) -> bool:
        """Whether a box occupies absolute position ``at``."""
        return self.box_index(at) != -1

    def can_apply_matrix(self, mat: Matrix) -> bool:
        """Whether rotating the boxes by ``mat`` keeps them in free cells."""
        if self.board is None:
            return True
        return not any(
            self.board.is_taken(self.center + ipnt_times_matrix(box, mat), self.index)
            for box in self.boxes
        )

    def apply_matrix(self, mat: Matrix) -> None:
        """Rotate every box by ``mat``."""
        self.boxes = [ipnt_times_matrix(box, mat) for box in self.boxes]
        self.find_bounds()

    def _core(self) -> Optional[Core]:
        return self.board.core if self.board is not None else None

    def _register(self, *resources: Resource) -> None:
        core = self._core()
        if core is not None:
            for res in resources:
                core.register(res)

    def _transforms(self) -> Optional[TransformCollection]:
        if self.node is None:
            return None
        if not isinstance(self.node.transform, TransformCollection):
            raise ValueError("block node has no transform collection")
        return self.node.transform

    def _animate(self, target, start, end, length: float, *extra: Resource) -> None:
        ani = AnimateFromTo(
            target,
            start,
            end,
            length,
            AnimFlag.STOP_WHEN_DONE,
            on_done=lambda _ani: self.animation_done(),
            token=self,
        )
        self.animation = ani
        self._register(*extra, start, end, ani)

    def _rotate(self, mat: Matrix, axis: int, angle: float) -> bool:
        if not self.can_apply_matrix(mat):
            return False
        tc = self._transforms()
        if tc is not None and len(tc) > 1:
            return False
        self.apply_matrix(mat)
        if tc is not None:
            base = tc[0]
            if isinstance(base, MatrixTransform):
                base.value = multiply(base.value, mat)
                base.changed()
            spin = SpinTransform(axis, 0.0)
            tc.add(spin)
            self._animate(
                spin.angle, ResFloat(-angle), ResFloat(0.0), ROTATE_TIME, spin, spin.angle
            )
        return True

    def spin(self, is_right: bool) -> bool:
        """Turn a quarter about the vertical axis; False if blocked or busy."""
        angle = 90.0 if is_right else -90.0
        return self._rotate(rotate_z(angle), 2, angle)

    def flip(self, over_axis: int, is_over: bool) -> bool:
        """Tip a quarter about x (``over_axis`` 0) or y; False if blocked or busy."""
        angle = -90.0 if is_over else 90.0
        if over_axis == 0:
            return self._rotate(rotate_x(angle), 0, angle)
        return self._rotate(rotate_y(angle), 1, angle)

    def shift(self, offset: Sequence[int]) -> bool:
        """Move by ``offset``; False if busy or the target cells are taken."""
        tc = self._transforms()
        if tc is not None and len(tc) > 1:
            return False
        offset = Vec3(offset[0], offset[1], offset[2])
        new_center = self.center + offset
        if self.board is not None and any(
            self.board.is_taken(box + new_center, self.index) for box in self.boxes
        ):
            return False

        self.center = new_center
        self.find_bounds()
        if self.node is not None and tc is not None:
            if self.node.position is not None:
                self.node.position.pos = self.center.to_float()
                self.node.position.changed()
            move = TranslateTransform(Vec3(0.0, 0.0, 0.0))
            tc.add(move)
            self._animate(
                move.offset,
                ResPoint(offset.to_float() * -1.0),
                ResPoint(Vec3(0.0, 0.0, 0.0)),
                SHIFT_TIME,
                move,
                move.offset,
            )
        return True

    def _occupied(self) -> set:
        return {tuple(b) for b in self.boxes}

    def gen_outline_mesh(self) -> Mesh:
        """A line mesh tracing the outer edges of the block."""
        filled_cells = self._occupied()

        def has(p: Vec3) -> bool:
            return tuple(p) in filled_cells

        offset = self.center.to_float()
        points: List[Vec3] = []
        for cur in self.boxes:
            for j in range(6):
                filled = has(cur + DIRS[j])
                for k in range(6):
                    if k // 2 == j // 2 or has(cur + DIRS[k]) != filled:
                        continue
                    if filled and has(cur + DIRS[k] + DIRS[j]):
                        continue
                    del1 = DIRS[j].to_float() * 0.45
                    del2 = DIRS[k].to_float() * 0.45
                    del3 = DIRS[icross_prod(j, k)].to_float() * 0.5
                    work = cur.to_float() + offset
                    points.append(work + del1 + del2 + del3)
                    points.append(work + del1 + del2 - del3)

        mesh = Mesh(MeshFormat.create(2, False), len(points), 0)
        for vert, pos in zip(mesh.vertices, points):
            vert.vertex = pos
        mesh.paint(Color4f(1.0, 1.0, 1.0))
        mesh.update_normals()
        return mesh

    def gen_comp_node(self, context: int) -> CompNode:
        """A scene node drawing the block's outer faces, owned by this block."""
        parent = CompNode(context, token=self)
        self.node = parent
        parent.position = ResPoint(self.center.to_float())
        base = MatrixTransform()
        tc = TransformCollection([base])
        parent.transform = tc

        filled_cells = self._occupied()
        corners: List[Vec3] = []
        for cur in self.boxes:
            for j, direction in enumerate(DIRS):
                if tuple(cur + direction) in filled_cells:
                    continue
                del1 = DIRS[cross_dir1(j)].to_float() * 0.5
                del2 = DIRS[cross_dir2(j)].to_float() * 0.5
                work = cur.to_float() + direction.to_float() * 0.5
                if direction.sum() > 0:
                    corners += [
                        work - del1 - del2,
                        work + del1 - del2,
                        work + del1 + del2,
                        work - del1 + del2,
                    ]
                else:
                    corners += [
                        work - del1 - del2,
                        work - del1 + del2,
                        work + del1 + del2,
                        work + del1 - del2,
                    ]

        mesh = Mesh(MeshFormat.create(4, False), len(corners), 0)
        for vert, pos in zip(mesh.vertices, corners):
            vert.vertex = pos
        mesh.paint(Color4f.from_rgb(0xFFFFFF))
        parent.mesh = mesh
        self._register(parent, parent.position, base, tc, mesh)
        return parent

    def animation_done(self) -> None:
        """Drop finished animation transforms and report the completed move."""
        tc = self._transforms()
        if tc is not None:
            while len(tc) > 1:
                tc.remove(tc[1])
        self.animation = None
        if self.board is not None and self.board.on_move_done is not None:
            self.board.on_move_done(self)


class Board:
    """The blocks of a level, the free space around them and the goal shape."""

    def __init__(self, blocks: Iterable[Block] = ()) -> None:
        self.blocks: List[Block] = []
        self.bounds = Rect3()
        self.goal_block = Block()
        self.core: Optional[Core] = None
        self.on_move_done: Optional[Callable[[Block], object]] = None
        for block in blocks:
            self.add_block(block)

    def add_block(self, block: Block) -> Block:
        """Put a block on the board; returns it."""
        block.index = len(self.blocks)
        block.board = self
        self.blocks.append(block)
        return block

    def is_taken(self, at: Sequence[int], exclude: int = -1) -> bool:
        """Whether ``at`` is off the board or held by a block other than ``exclude``."""
        if not self.bounds.includes(at):
            return True
        return any(
            i != exclude and block.includes(at) for i, block in enumerate(self.blocks)
        )

    def auto_bounds(self, slack: int) -> None:
        """Fit the bounds around every block and the goal, plus ``slack`` (none below)."""
        if not self.blocks:
            raise ValueError("board has no blocks")
        self.blocks[0].find_bounds()
        first = self.blocks[0].bounds
        bounds = Rect3(first.min, first.max)
        for block in self.blocks:
            block.find_bounds()
            bounds.add_bounded_point(block.bounds.min)
            bounds.add_bounded_point(block.bounds.max)
        self.goal_block.find_bounds()
        bounds.add_bounded_point(self.goal_block.bounds.min)
        bounds.add_bounded_point(self.goal_block.bounds.max)
        bounds.widen(slack)
        bounds.min = bounds.min + Vec3(0, 0, slack)
        self.bounds = bounds

    def check_for_won(self) -> bool:
        """Whether every cell of the goal shape is taken."""
        goal = self.goal_block
        return all(self.is_taken(goal.center + box) for box in goal.boxes)

    def find_all_bounds(self) -> None:
        """Recompute every block's bounds."""
        for block in self.blocks:
            block.find_bounds()