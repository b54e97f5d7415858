# shuzzle

Shuzzle is the model of a three-dimensional block puzzle. A board holds a
handful of blocks, each built from unit boxes on an integer grid, and a goal
shape. Blocks slide one step at a time, spin a quarter turn about the vertical
axis and flip a quarter turn over the x or y axis, but only into cells that are
free and inside the board. The puzzle is solved when every box of the goal is
covered.

The package has no runtime dependencies and is made of these modules:

- `shuzzle.vec` — `Vec3`, a small immutable 3-vector used both for integer
  grid positions and for float coordinates (`dot`, `cross`, `length`,
  `dist`, `normalized`, `max_value`, `to_int`, `to_float`, `with_z`, ...).
- `shuzzle.matrix` — flat 4x4 matrix helpers (`identity`, `rotate_x`,
  `rotate_y`, `rotate_z`, `scale`, `translate`, `translate_sub`,
  `rot_about`, `multiply`, `inverse`, `vec3_times`, `vec4_times`), vector
  helpers (`cross_prod`, `dot3`, `normalize`, `angle_between`, `get_ang`)
  and the `Segment` and `Plane` geometry classes.
- `shuzzle.resources` — animatable values (`ResFloat`, `ResPoint`,
  `ResColor`), the `AnimateFromTo` tween with its `AnimFlag` modes, and the
  transforms (`TransformCollection`, `MatrixTransform`,
  `TranslateTransform`, `SpinTransform`, `RotateTransform`,
  `ScaleTransform`).
- `shuzzle.mesh` — `Mesh` and `MeshFormat`, ray/polygon hit testing,
  normals, and the edge and shadow-outline builders `MeshEdger` and
  `StencilEdger`.
- `shuzzle.scene` — the composition tree (`CompNode`), render contexts that
  flatten a tree into one mesh (`MeshRenderContext`, `MultiRenderContext`),
  `GraphicsCore` with the camera, light and hit testing, and `Core`, the
  resource registry with animation ticks, change tracking and garbage
  collection.
- `shuzzle.geometry` — `Rect3` inclusive grid boxes and the direction
  helpers `DIRS`, `cross_dir1`, `cross_dir2`, `icross_prod`,
  `ipnt_times_matrix`.
- `shuzzle.board` — `Block` and `Board`, with the collision rules for
  `shift`, `spin` and `flip` and the win check `check_for_won`.

## Installing

Install the package from a checkout with your usual Python package tool. The
`test` extra pulls in pytest.

## A quick look

```python
from shuzzle.board import Block, Board
from shuzzle.geometry import Rect3
from shuzzle.vec import Vec3

block = Block([(0, 0, 0), (1, 0, 0)], center=(-3, 0, 0))
board = Board([block])
board.goal_block = Block.from_rect(Rect3(Vec3(0, 0, 0), Vec3(1, 0, 0)))
board.auto_bounds(2)

print(board.check_for_won())       # False: the goal is still empty
for _ in range(3):
    block.shift((1, 0, 0))         # True while the way is free
print(board.check_for_won())       # True: both goal boxes are covered
```

`shift`, `spin` and `flip` return `False` and leave the block unchanged
when a target cell is taken or lies outside `board.bounds`. When a block has
a scene node (from `Block.gen_comp_node`), each move also adds a short
animation, and a new move is refused until it finishes; `board.on_move_done`
is then called with the block.

Matrices are flat sequences of sixteen floats:

```python
from shuzzle import matrix

turn = matrix.rotate_z(90)
print(matrix.vec3_times((1, 0, 0), turn))   # approximately Vec3(0, 1, 0)
```

## What it does not do

Shuzzle is a library only. It has no window, no drawing on screen and no
mouse or keyboard handling: the scene classes build and update meshes, but
nothing here displays them. It ships no ready-made levels and no game
controller that moves between levels or steers the camera; boards are put
together with `Board`, `Block` and `Rect3` as above. There is no command to
run.