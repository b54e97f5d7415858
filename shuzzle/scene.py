"""Composition tree, render contexts, graphics state and the engine core."""

from __future__ import annotations

import abc
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from shuzzle.matrix import Matrix, identity, multiply, translate, vec3_times
from shuzzle.mesh import Mesh, MeshFormat
from shuzzle.resources import (
    Color4f,
    ResColor,
    ResFlag,
    ResFloat,
    ResPoint,
    Resource,
    Transform,
)
from shuzzle.vec import Vec3

ContextHook = Callable[["RenderContext"], object]
PathCallback = Callable[[Optional["CompTreePath"]], object]

_UPDATE_FLAGS = ResFlag.SHALLOW_CHANGE | ResFlag.CHILD_CHANGED | ResFlag.CHANGED


class CompNode(Resource):
    """A node of the composition tree: position, transform, colour, mesh, children."""

    def __init__(self, render_mask: int = 0, token: object = None) -> None:
        super().__init__()
        self.render_mask = render_mask
        self.position: Optional[ResPoint] = None
        self.transform: Optional[Transform] = None
        self.color: Optional[ResColor] = None
        self.mesh: Optional[Mesh] = None
        self.children: List[CompNode] = []
        self.token = token

    def references(self) -> Iterator[Resource]:
        for res in (self.position, self.transform, self.color, self.mesh):
            if res is not None:
                yield res

    def add_child(self, child: CompNode) -> None:
        """Append a child node."""
        self.children.append(child)
        self.changed()

    def remove_child(self, child: CompNode) -> None:
        """Remove a child node if it is present."""
        for i, node in enumerate(self.children):
            if node is child:
                del self.children[i]
                self.changed()
                return

    def remove_all_children(self) -> None:
        """Drop every child."""
        self.children.clear()

    def clear(self) -> None:
        """Reset the node's mask, attachments and children."""
        self.render_mask = 0
        self.position = None
        self.transform = None
        self.color = None
        self.mesh = None
        self.children.clear()


class CompTreePath(Resource):
    """The chain of nodes from the root to a hit node."""

    def __init__(self) -> None:
        super().__init__()
        self.nodes: List[CompNode] = []
        self.extra: object = None
        self.hit_at = Vec3(0.0, 0.0, 0.0)

    def push(self, node: CompNode) -> None:
        """Add a node to the end of the path."""
        self.nodes.append(node)

    def pop(self) -> CompNode:
        """Remove and return the last node."""
        return self.nodes.pop()

    def current(self) -> CompNode:
        """The last node of the path; IndexError when empty."""
        return self.nodes[-1]


class RenderContext(Resource, abc.ABC):
    """Something a composition tree can be drawn into."""

    def __init__(self) -> None:
        super().__init__()
        self.context_mask = 0
        self.default_color = Color4f(0.5, 0.5, 0.5, 1.0)
        self.ignore_hit = False
        self.on_pre_flush: Optional[ContextHook] = None
        self.on_replace_flush: Optional[ContextHook] = None
        self.on_post_flush: Optional[ContextHook] = None
        self.on_draw: Optional[ContextHook] = None

    @abc.abstractmethod
    def push_transform(self, transform: Transform) -> None: ...

    @abc.abstractmethod
    def push_position(self, pos: Sequence[float]) -> None: ...

    @abc.abstractmethod
    def push_color(self, color: ResColor) -> None: ...

    @abc.abstractmethod
    def pop_transform(self) -> None: ...

    @abc.abstractmethod
    def pop_position(self) -> None: ...

    @abc.abstractmethod
    def pop_color(self) -> None: ...

    @abc.abstractmethod
    def clear(self) -> None: ...

    @abc.abstractmethod
    def draw_mesh(self, mask: int, mesh: Mesh, update: bool) -> None: ...

    @abc.abstractmethod
    def reset_for_update(self) -> None: ...

    @abc.abstractmethod
    def skip_mesh(self, mask: int, mesh: Mesh) -> None: ...

    @abc.abstractmethod
    def hit_test(
        self,
        root: CompNode,
        camera: Sequence[float],
        look_dir: Sequence[float],
        on_hit: Optional[PathCallback] = None,
        path: Optional[CompTreePath] = None,
    ) -> Optional[CompNode]: ...

    def draw_comp_tree(self, tree: CompNode, update: bool) -> None:
        """Draw a tree; in update mode only changed parts are rewritten."""
        updating = not update or bool(tree.flags & _UPDATE_FLAGS)

        if updating:
            if tree.position is not None:
                self.push_position(tree.position.pos)
            if tree.transform is not None:
                self.push_transform(tree.transform)
            if tree.color is not None:
                self.push_color(tree.color)

        if tree.mesh is not None and tree.render_mask & self.context_mask:
            if not update:
                self.draw_mesh(tree.render_mask, tree.mesh, update)
            else:
                if tree.flags & ResFlag.SHALLOW_CHANGE:
                    self.draw_mesh(tree.render_mask, tree.mesh, update)
                self.skip_mesh(tree.render_mask, tree.mesh)

        for child in tree.children:
            self.draw_comp_tree(child, update)

        if updating:
            if tree.color is not None:
                self.pop_color()
            if tree.transform is not None:
                self.pop_transform()
            if tree.position is not None:
                self.pop_position()

    def flush(self) -> None:
        """Run the pre hook, the replacing hook or the drawer, then the post hook."""
        if self.on_pre_flush is not None:
            self.on_pre_flush(self)
        if self.on_replace_flush is not None:
            self.on_replace_flush(self)
        elif self.on_draw is not None:
            self.on_draw(self)
        if self.on_post_flush is not None:
            self.on_post_flush(self)


class SoftTransformRenderContext(RenderContext):
    """A context that transforms vertices and colours in software."""

    def __init__(self) -> None:
        super().__init__()
        self.translate_stack: List[Vec3] = []
        self.transform_stack: List[Matrix] = []
        self.color_stack: List[Color4f] = []
        SoftTransformRenderContext.clear(self)

    def clear(self) -> None:
        """Reset the stacks to the identity state."""
        self.translate_stack = [Vec3(0.0, 0.0, 0.0)]
        self.transform_stack = [identity()]
        self.color_stack = [Color4f(1.0, 1.0, 1.0, 1.0)]

    def push_transform(self, transform: Transform) -> None:
        """Fold the pending offset and ``transform`` into a new matrix."""
        offset = self.translate_stack[-1]
        self.translate_stack.append(Vec3(0.0, 0.0, 0.0))
        moved = multiply(self.transform_stack[-1], translate(offset.x, offset.y, offset.z))
        self.transform_stack.append(multiply(moved, transform.matrix()))

    def push_position(self, pos: Sequence[float]) -> None:
        """Push an offset relative to the current one."""
        self.translate_stack.append(self.translate_stack[-1] + pos)

    def push_color(self, color: ResColor) -> None:
        """Push the current colour modulated by ``color``."""
        self.color_stack.append(self.color_stack[-1] * color.value)

    def pop_transform(self) -> None:
        self.transform_stack.pop()
        self.translate_stack.pop()

    def pop_position(self) -> None:
        self.translate_stack.pop()

    def pop_color(self) -> None:
        self.color_stack.pop()

    def transform_vertex(self, vertex: Sequence[float]) -> Vec3:
        """A vertex through the current offset and matrix."""
        moved = self.translate_stack[-1] + vertex
        return vec3_times(moved, self.transform_stack[-1])

    def transform_color(self, color: Color4f) -> Color4f:
        """A colour modulated by the current colour."""
        return color * self.color_stack[-1]


class MeshRenderContext(SoftTransformRenderContext):
    """Collects transformed meshes into one target mesh."""

    def __init__(self, target: Mesh, context_mask: int = 0) -> None:
        self.target = target
        super().__init__()
        self.context_mask = context_mask
        self.flags |= ResFlag.MESH_RENDER_CONTEXT
        self.render_vert_to = 0
        self.render_ind_to = 0

    def references(self) -> Iterator[Resource]:
        yield self.target

    def clear(self) -> None:
        super().clear()
        self.target.clear()

    def reset_for_update(self) -> None:
        """Restart the write position for an in-place update."""
        self.render_vert_to = 0
        self.render_ind_to = 0

    def skip_mesh(self, mask: int, mesh: Mesh) -> None:
        """Move the write position past a mesh that stays as it is."""
        if not mask & self.context_mask:
            return
        self.render_vert_to += mesh.num_verts
        self.render_ind_to += mesh.num_indices

    def draw_mesh(self, mask: int, mesh: Mesh, update: bool) -> None:
        """Write a transformed copy of ``mesh`` into the target."""
        if not mask & self.context_mask:
            raise ValueError("mesh mask does not match this context")
        target = self.target
        if target.format.vpp != mesh.format.vpp:
            raise ValueError("mesh and target have different polygon sizes")
        if target.format.is_indexed() != mesh.format.is_indexed():
            raise ValueError("mesh and target differ in indexing")

        if update:
            start_vert, start_ind = self.render_vert_to, self.render_ind_to
        else:
            start_vert, start_ind = target.num_verts, target.num_indices
            target.add(mesh.num_verts, mesh.num_indices)

        for dest, src in zip(target.vertices[start_vert:], mesh.vertices):
            dest.vertex = self.transform_vertex(src.vertex)
            dest.color = self.transform_color(src.color)
        for offset, index in enumerate(mesh.indices):
            target.indices[start_ind + offset] = index + start_vert

        target.update_normals(
            start_vert,
            start_vert + mesh.num_verts,
            start_ind,
            start_ind + mesh.num_indices,
        )

    def find_comp_node(
        self, root: CompNode, poly_index: int, path: Optional[CompTreePath] = None
    ) -> Optional[CompNode]:
        """The node whose mesh produced polygon ``poly_index`` of the target."""
        offset = 0

        def search(node: CompNode) -> Optional[CompNode]:
            nonlocal offset
            if path is not None:
                path.push(node)
            if node.mesh is not None and node.render_mask & self.context_mask:
                offset += node.mesh.num_polys()
                if poly_index < offset:
                    return node
            for child in node.children:
                found = search(child)
                if found is not None:
                    return found
            if path is not None:
                path.pop()
            return None

        return search(root)

    def hit_test(
        self,
        root: CompNode,
        camera: Sequence[float],
        look_dir: Sequence[float],
        on_hit: Optional[PathCallback] = None,
        path: Optional[CompTreePath] = None,
    ) -> Optional[CompNode]:
        """First node hit by the ray, or with ``on_hit`` report every hit."""
        if self.ignore_hit:
            return None
        if on_hit is None:
            poly = self.target.poly_hit_test(camera, look_dir)
            if poly == -1:
                return None
            if path is not None:
                path.nodes.clear()
            return self.find_comp_node(root, poly, path)

        def report(poly: int, at: Vec3) -> None:
            if path is not None:
                path.nodes.clear()
                path.hit_at = at
            self.find_comp_node(root, poly, path)
            on_hit(path)

        self.target.poly_hit_test(camera, look_dir, report)
        return None


class MultiRenderContext(RenderContext):
    """Forwards drawing to several sub-contexts."""

    def __init__(self) -> None:
        super().__init__()
        self.sub_contexts: List[RenderContext] = []

    def references(self) -> Iterator[Resource]:
        return iter(list(self.sub_contexts))

    def add_render_context(self, context: RenderContext) -> None:
        """Add a sub-context and include its mask."""
        self.sub_contexts.append(context)
        self.context_mask |= context.context_mask

    def remove_render_context(self, context: RenderContext) -> None:
        """Remove a sub-context if present."""
        for i, sub in enumerate(self.sub_contexts):
            if sub is context:
                del self.sub_contexts[i]
                return

    def get_render_context(self, mask: int) -> Optional[RenderContext]:
        """First sub-context sharing a bit with ``mask``."""
        return next((s for s in self.sub_contexts if mask & s.context_mask), None)

    def clear(self) -> None:
        for sub in self.sub_contexts:
            sub.clear()

    def reset_for_update(self) -> None:
        for sub in self.sub_contexts:
            sub.reset_for_update()

    def flush(self) -> None:
        for sub in self.sub_contexts:
            sub.flush()

    def push_transform(self, transform: Transform) -> None:
        for sub in self.sub_contexts:
            sub.push_transform(transform)

    def push_position(self, pos: Sequence[float]) -> None:
        for sub in self.sub_contexts:
            sub.push_position(pos)

    def push_color(self, color: ResColor) -> None:
        for sub in self.sub_contexts:
            sub.push_color(color)

    def pop_transform(self) -> None:
        for sub in self.sub_contexts:
            sub.pop_transform()

    def pop_position(self) -> None:
        for sub in self.sub_contexts:
            sub.pop_position()

    def pop_color(self) -> None:
        for sub in self.sub_contexts:
            sub.pop_color()

    def skip_mesh(self, mask: int, mesh: Mesh) -> None:
        for sub in self.sub_contexts:
            sub.skip_mesh(mask, mesh)

    def draw_mesh(self, mask: int, mesh: Mesh, update: bool) -> None:
        for sub in self.sub_contexts:
            if mask & sub.context_mask:
                sub.draw_mesh(mask, mesh, update)

    def hit_test(
        self,
        root: CompNode,
        camera: Sequence[float],
        look_dir: Sequence[float],
        on_hit: Optional[PathCallback] = None,
        path: Optional[CompTreePath] = None,
    ) -> Optional[CompNode]:
        """Hit test each sub-context; without ``on_hit`` the first hit wins."""
        if self.ignore_hit:
            return None
        result = None
        for sub in self.sub_contexts:
            found = sub.hit_test(root, camera, look_dir, on_hit, path)
            if found is not None:
                result = found
                if on_hit is None:
                    return result
        return result


class GraphicsCore(Resource):
    """Camera, light and render stages of the scene."""

    def __init__(self, core: Optional[Core] = None) -> None:
        super().__init__()
        self.core = core
        self.is_shiny = False
        self.camera_up = ResPoint(Vec3(0.0, 1.0, 0.0))
        self.camera_pos = ResPoint(Vec3(0.0, 0.0, 0.0))
        self.camera_look_dir = ResPoint(Vec3(0.0, 0.0, -1.0))
        self.camera_perspec = ResFloat(45.0)
        self.light_pos = ResPoint(Vec3(20.0, 0.0, 0.0))
        self.background_color = ResColor(Color4f(104.0 / 255.0, 177.0 / 255.0, 84.0 / 255.0, 1.0))
        self.render_context = MultiRenderContext()
        self.scr_width = 0
        self.scr_height = 0
        self.rebuild_tree = False
        self.on_flush_done: Optional[Callable[[GraphicsCore], object]] = None
        if core is not None:
            for res in (
                self.camera_up,
                self.camera_pos,
                self.camera_look_dir,
                self.camera_perspec,
                self.light_pos,
                self.background_color,
                self.render_context,
                self,
            ):
                core.register(res)

    def references(self) -> Iterator[Resource]:
        yield self.camera_pos
        yield self.camera_look_dir
        yield self.camera_up
        yield self.light_pos
        yield self.render_context
        yield self.background_color

    def look_at(self, point: Sequence[float]) -> None:
        """Point the camera at ``point``."""
        self.camera_look_dir.pos = Vec3(point[0], point[1], point[2]) - self.camera_pos.pos

    def add_render_stage(self, mesh_format: MeshFormat) -> int:
        """Add a mesh-collecting stage and return its mask."""
        mesh = Mesh(mesh_format)
        stage = MeshRenderContext(mesh, 1 << len(self.render_context.sub_contexts))
        if self.core is not None:
            self.core.register(mesh)
            self.core.register(stage)
        self.render_context.add_render_context(stage)
        return stage.context_mask

    def get_render_stage(self, mask: int) -> Optional[RenderContext]:
        """The stage matching ``mask``."""
        return self.render_context.get_render_context(mask)

    def inner_render(self, root: CompNode) -> None:
        """Rebuild or update the stage meshes from the tree."""
        if self.rebuild_tree:
            self.render_context.clear()
            self.render_context.draw_comp_tree(root, False)
        else:
            self.render_context.reset_for_update()
            self.render_context.draw_comp_tree(root, True)

    def _root(self) -> CompNode:
        if self.core is None or self.core.root_node is None:
            raise ValueError("no root node to hit test against")
        return self.core.root_node

    def hit_comp_node(self, camera: Sequence[float], look_dir: Sequence[float]) -> Optional[CompNode]:
        """First node hit by the ray."""
        return self.render_context.hit_test(self._root(), camera, look_dir)

    def best_hit_comp_node(
        self, camera: Sequence[float], look_dir: Sequence[float]
    ) -> Optional[CompNode]:
        """The hit node whose hit point lies nearest the camera."""
        cam = Vec3(camera[0], camera[1], camera[2])
        path = CompTreePath()
        best: Optional[CompNode] = None
        best_dist = 10000.0

        def consider(hit_path: Optional[CompTreePath]) -> bool:
            nonlocal best, best_dist
            if hit_path is None or not hit_path.nodes:
                return True
            d = hit_path.hit_at.dist(cam)
            if d < best_dist:
                best = hit_path.current()
                best_dist = d
            return True

        self.render_context.hit_test(self._root(), camera, look_dir, consider, path)
        return best


def _links(res: Resource) -> Iterator[Resource]:
    yield from res.references()
    if isinstance(res, CompNode):
        yield from res.children


def _extend_reachable(seen: Dict[int, Resource], starts: Iterable[Resource]) -> None:
    stack = [r for r in starts if r is not None]
    while stack:
        res = stack.pop()
        if id(res) in seen:
            continue
        seen[id(res)] = res
        stack.extend(_links(res))


class Core:
    """Registry of resources: animation ticks, change tracking, rendering, collection."""

    def __init__(self) -> None:
        self._resources: List[Resource] = []
        self.root_node: Optional[CompNode] = None
        self.game_res: Optional[Resource] = None
        self.on_destroy_node: Optional[Callable[[CompNode], object]] = None
        self.graphics = GraphicsCore(self)

    @property
    def resources(self) -> tuple:
        """Registered resources in registration order."""
        return tuple(self._resources)

    def register(self, resource: Resource) -> Resource:
        """Track a resource and mark it changed; returns it."""
        self._resources.append(resource)
        resource.flags |= ResFlag.CHANGED
        return resource

    def tick(self, dt: float) -> None:
        """Advance every registered binding by ``dt`` seconds."""
        for res in list(self._resources):
            if res.flags & ResFlag.IS_BINDING:
                res.update(dt)  # type: ignore[attr-defined]

    def _mark_depend(self, res: Resource, stack: List[Resource]) -> bool:
        if res.flags & ResFlag.CHANGED:
            for holder in stack:
                holder.flags |= ResFlag.CHANGED
            return True
        stack.append(res)
        changed = False
        for ref in res.references():
            changed |= self._mark_depend(ref, stack)
        stack.pop()
        return changed

    def _mark_node(self, node: CompNode, inherited: ResFlag, node_stack: List[CompNode]) -> None:
        changed = False
        for ref in node.references():
            changed |= self._mark_depend(ref, [])
        node.flags |= inherited
        to_child = ResFlag.NONE
        if changed:
            if node.mesh is not None and node.mesh.flags & ResFlag.CHANGED:
                node.flags |= ResFlag.CHANGED
            to_child = ResFlag.SHALLOW_CHANGE | ResFlag.CHILD_CHANGED
            node.flags |= to_child
            for parent in node_stack:
                parent.flags |= ResFlag.CHILD_CHANGED
        if node.flags & ResFlag.CHANGED:
            self.graphics.rebuild_tree = True
        node_stack.append(node)
        for child in node.children:
            self._mark_node(child, to_child, node_stack)
        node_stack.pop()

    def mark_dependencies(self) -> None:
        """Propagate change flags from resources up to the nodes that use them."""
        if self.root_node is None:
            raise ValueError("core has no root node")
        self._mark_node(self.root_node, ResFlag.NONE, [])
        self._mark_depend(self.graphics, [])

    def _reachable(self) -> Dict[int, Resource]:
        seen: Dict[int, Resource] = {}
        _extend_reachable(seen, (self.root_node, self.graphics, self.game_res))
        return seen

    def clear_changed(self) -> None:
        """Clear change flags and the rebuild request."""
        mask = ~(ResFlag.CHANGED | ResFlag.SHALLOW_CHANGE | ResFlag.CHILD_CHANGED)
        reachable = self._reachable()
        for res in [*self._resources, *reachable.values()]:
            res.flags &= mask
        self.graphics.rebuild_tree = False

    def garbage_collect(self) -> int:
        """Drop registered resources nothing uses; returns how many were dropped."""
        alive = self._reachable()
        registered = {id(r) for r in self._resources}
        for res in list(self._resources):
            if not res.flags & ResFlag.IS_BINDING or id(res) in alive:
                continue
            target = getattr(res, "target", None)
            if target is not None and (id(target) in alive or id(target) not in registered):
                _extend_reachable(alive, (res,))

        kept: List[Resource] = []
        removed = 0
        for res in self._resources:
            if id(res) in alive:
                kept.append(res)
                continue
            removed += 1
            if isinstance(res, CompNode):
                if self.on_destroy_node is not None:
                    self.on_destroy_node(res)
                res.clear()
            elif isinstance(res, Mesh):
                res.clear()
        self._resources = kept
        return removed

    def render(self, dt: float) -> int:
        """Run one frame; returns the number of resources collected."""
        if self.root_node is None:
            raise ValueError("core has no root node")
        self.tick(dt)
        self.mark_dependencies()
        self.graphics.inner_render(self.root_node)
        self.graphics.render_context.flush()
        if self.graphics.on_flush_done is not None:
            self.graphics.on_flush_done(self.graphics)
        self.clear_changed()
        return self.garbage_collect()