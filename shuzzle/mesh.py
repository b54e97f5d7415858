"""Polygon meshes, their formats, and edge/outline extraction for shadows."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence

from shuzzle.resources import Color4f, ResPoint, Resource
from shuzzle.vec import Vec3

HitCallback = Callable[[int, Vec3], object]

SHADOW_EXTRUDE = 40.0


class MeshFlag(enum.IntFlag):
    """Bits describing the primitive type and indexing of a mesh."""

    NONE = 0
    TRI = 1 << 0
    QUAD = 1 << 1
    LINE = 1 << 2
    INDEXED = 1 << 3


@dataclass(frozen=True)
class MeshFormat:
    """Vertices per polygon together with the format flags."""

    vpp: int
    flags: MeshFlag

    @classmethod
    def create(cls, vpp: int, indexed: bool) -> MeshFormat:
        """Format for lines (2), triangles (3) or quads (4)."""
        if not 2 <= vpp <= 4:
            raise ValueError(f"vertices per polygon must be 2, 3 or 4, not {vpp}")
        flags = MeshFlag.INDEXED if indexed else MeshFlag.NONE
        flags |= {2: MeshFlag.LINE, 3: MeshFlag.TRI, 4: MeshFlag.QUAD}[vpp]
        return cls(vpp, flags)

    @classmethod
    def from_flags(cls, flags: int) -> MeshFormat:
        """Format rebuilt from flags; line beats quad beats triangle."""
        flags = MeshFlag(flags)
        vpp = -1
        if flags & MeshFlag.TRI:
            vpp = 3
        if flags & MeshFlag.QUAD:
            vpp = 4
        if flags & MeshFlag.LINE:
            vpp = 2
        if vpp == -1:
            raise ValueError("flags name no primitive type")
        return cls(vpp, flags)

    def is_indexed(self) -> bool:
        """Whether polygons are described by an index list."""
        return bool(self.flags & MeshFlag.INDEXED)


@dataclass
class Vertex:
    """A coloured vertex with a normal."""

    color: Color4f = Color4f()
    normal: Vec3 = Vec3(0.0, 0.0, 0.0)
    vertex: Vec3 = Vec3(0.0, 0.0, 0.0)


def _same_side(v0: Vec3, v1: Vec3, v2: Vec3, camera: Vec3, look_dir: Vec3) -> bool:
    cross = (v0 - camera).cross(v1 - camera)
    other = cross.dot(v2 - camera)
    look = cross.dot(look_dir)
    return other * look >= 0.0


class Mesh(Resource):
    """A list of vertices and, for indexed formats, polygon indices."""

    def __init__(self, mesh_format: MeshFormat, num_verts: int = 0, num_indices: int = 0) -> None:
        super().__init__()
        self.format = mesh_format
        self.vertices: List[Vertex] = []
        self.indices: List[int] = []
        self.edger: Optional[MeshEdger] = None
        self.resize_to(num_verts, num_indices)

    @property
    def num_verts(self) -> int:
        return len(self.vertices)

    @property
    def num_indices(self) -> int:
        return len(self.indices)

    def resize_to(self, num_verts: int, num_indices: int) -> None:
        """Grow with blank entries or truncate to the given sizes."""
        if num_verts < 0 or num_indices < 0:
            raise ValueError("sizes must not be negative")
        del self.vertices[num_verts:]
        self.vertices.extend(Vertex() for _ in range(num_verts - len(self.vertices)))
        del self.indices[num_indices:]
        self.indices.extend([0] * (num_indices - len(self.indices)))

    def add(self, num_verts: int, num_indices: int) -> None:
        """Append blank vertices and indices."""
        self.resize_to(self.num_verts + num_verts, self.num_indices + num_indices)

    def clear(self) -> None:
        """Remove every vertex and index."""
        self.vertices.clear()
        self.indices.clear()

    def num_polys(self) -> int:
        """Number of polygons."""
        count = self.num_indices if self.format.is_indexed() else self.num_verts
        return count // self.format.vpp

    def recent_vertices(self, count: int) -> List[Vertex]:
        """The last ``count`` vertices (the live objects)."""
        if count <= 0:
            return []
        return self.vertices[-count:]

    def poly_vertex_indices(self) -> Iterator[List[int]]:
        """Vertex indices of each polygon in order."""
        vpp = self.format.vpp
        for p in range(self.num_polys()):
            start = p * vpp
            if self.format.is_indexed():
                yield self.indices[start:start + vpp]
            else:
                yield list(range(start, start + vpp))

    def poly_hit_test(
        self, camera: Sequence[float], look_dir: Sequence[float], on_hit: Optional[HitCallback] = None
    ) -> int:
        """Index of a polygon the ray crosses, or -1.

        Without ``on_hit`` the first hit is returned.  With it, the callback is
        called for every hit with the polygon index and one of its corners, and
        the last hit index is returned.
        """
        vpp = self.format.vpp
        if vpp < 3:
            return -1
        cam = Vec3(*camera[:3])
        look = Vec3(*look_dir[:3])
        result = -1
        for poly, corners in enumerate(self.poly_vertex_indices()):
            pts = [self.vertices[i].vertex for i in corners]
            if all(
                _same_side(pts[j], pts[(j + 1) % vpp], pts[(j + 2) % vpp], cam, look)
                for j in range(vpp)
            ):
                result = poly
                if on_hit is None:
                    return result
                on_hit(result, pts[vpp - 1])
        return result

    def update_normals(
        self,
        vstart: int = 0,
        vend: Optional[int] = None,
        istart: int = 0,
        iend: Optional[int] = None,
    ) -> None:
        """Recompute vertex normals over the given vertex and index ranges."""
        if vend is None:
            vend = self.num_verts
        if iend is None:
            iend = self.num_indices
        if self.edger is not None:
            self.edger.update_normals()

        vpp = self.format.vpp
        if vpp < 3:
            return
        verts = self.vertices

        if self.format.is_indexed():
            for v in verts[vstart:vend]:
                v.normal = Vec3(0.0, 0.0, 0.0)
            inds = self.indices
            for i in range(istart, iend, vpp):
                a, b, c = (verts[inds[i + k]].vertex for k in range(3))
                left = (a - b).cross(c - b)
                for k in range(vpp):
                    vert = verts[inds[i + k]]
                    vert.normal = vert.normal + left
            for v in verts[vstart:vend]:
                if v.normal.length() != 0:
                    v.normal = v.normal.normalized()
        else:
            for i in range(vstart, vend, vpp):
                a, b, c = (verts[i + k].vertex for k in range(3))
                left = (a - b).cross(c - b)
                for k in range(vpp):
                    verts[i + k].normal = left

    def paint(self, color: Color4f) -> None:
        """Give every vertex the same colour."""
        for v in self.vertices:
            v.color = color
        self.changed()


@dataclass
class MeshEdge:
    """An edge between two vertices and the polygons on either side."""

    vert1: int
    vert2: int
    poly1: int
    poly2: int = -1


class MeshEdger(Resource):
    """Finds the outline of a mesh as seen from a reference point."""

    def __init__(self, mesh: Mesh, ref_point: Optional[ResPoint] = None) -> None:
        super().__init__()
        self.bound_mesh = mesh
        self.ref_point = ref_point
        self.poly_normals: List[Vec3] = []
        self.edges: List[MeshEdge] = []
        self.outline: List[int] = []
        self.line_width = 8.0
        self.fake_indices: Optional[List[int]] = None

    def references(self) -> Iterator[Resource]:
        yield self.bound_mesh
        if self.ref_point is not None:
            yield self.ref_point

    def _ref(self) -> Vec3:
        if self.ref_point is None:
            raise ValueError("edger has no reference point")
        return self.ref_point.pos

    def update_normals(self) -> None:
        """Recompute one (unnormalised) normal per polygon."""
        mesh = self.bound_mesh
        if mesh.format.vpp < 3:
            raise ValueError("polygon normals need at least three vertices per polygon")
        verts = mesh.vertices
        normals = []
        for corners in mesh.poly_vertex_indices():
            p0, p1, p2 = (verts[i].vertex for i in corners[:3])
            normals.append((p1 - p0).cross(p1 - p2))
        self.poly_normals = normals

    def unindexed_index(self, vert: int) -> int:
        """Index of the first vertex sharing the position of ``vert``."""
        verts = self.bound_mesh.vertices
        pos = verts[vert].vertex
        for i in range(vert):
            if verts[i].vertex == pos:
                return i
        return vert

    def _add_edge(self, v1: int, v2: int, poly: int) -> None:
        for edge in self.edges:
            if (edge.vert1, edge.vert2) in ((v1, v2), (v2, v1)):
                if edge.poly2 != -1:
                    raise ValueError(f"edge {v1}-{v2} is shared by more than two polygons")
                edge.poly2 = poly
                return
        self.edges.append(MeshEdge(v1, v2, poly))

    def update_edge_list(self) -> None:
        """Rebuild the list of edges and the polygons they join."""
        mesh = self.bound_mesh
        vpp = mesh.format.vpp
        self.edges = []
        if mesh.format.is_indexed():
            inds = mesh.indices
        else:
            self.fake_indices = [self.unindexed_index(i) for i in range(mesh.num_verts)]
            inds = self.fake_indices
        for i in range(len(inds)):
            poly = i // vpp
            if i % vpp != vpp - 1:
                self._add_edge(inds[i], inds[i + 1], poly)
            else:
                self._add_edge(inds[i - (vpp - 1)], inds[i], poly)

    def _neighbour_dots(self, edge: MeshEdge, work: Vec3) -> tuple:
        d1 = work.dot(self.poly_normals[edge.poly1])
        # An open edge has no second polygon and always counts as outline.
        d2 = work.dot(self.poly_normals[edge.poly2]) if edge.poly2 != -1 else 0.0
        return d1, d2

    def update_outline(self) -> None:
        """Collect vertex pairs of edges between front- and back-facing polygons."""
        ref = self._ref()
        verts = self.bound_mesh.vertices
        self.outline = []
        for edge in self.edges:
            work = ref - verts[edge.vert1].vertex
            d1, d2 = self._neighbour_dots(edge, work)
            if d1 * d2 <= 0:
                self.outline.extend((edge.vert1, edge.vert2))


def _orient_edge(edge: MeshEdge, poly: Sequence[int]) -> None:
    """Swap the edge ends so that it follows the winding of ``poly``."""
    v1, v2 = edge.vert1, edge.vert2
    swap = False
    if len(poly) == 3:
        if poly[0] != v1:
            if poly[1] == v1:
                swap = poly[0] == v2
            else:
                swap = poly[1] == v2
    elif len(poly) == 4:
        for k in range(4):
            if poly[k] == v1:
                swap = poly[(k - 1) % 4] == v2
                break
    else:
        raise ValueError("shadow outlines need triangles or quads")
    if swap:
        edge.vert1, edge.vert2 = v2, v1


class StencilEdger(MeshEdger):
    """Edger that also builds an extruded shadow volume."""

    def __init__(self, mesh: Mesh, ref_point: Optional[ResPoint] = None) -> None:
        super().__init__(mesh, ref_point)
        self.verts: List[Vec3] = []
        self.inv_mesh: List[int] = []
        self.is_invisible = False

    def update_outline(self) -> None:
        """Build shadow volume vertices, outline quads and, if invisible, caps."""
        ref = self._ref()
        mesh = self.bound_mesh
        verts = mesh.vertices
        n = mesh.num_verts
        vpp = mesh.format.vpp
        inds = mesh.indices if mesh.format.is_indexed() else (self.fake_indices or [])

        self.outline = []
        positions = [v.vertex for v in verts]
        self.verts = positions + [(p - ref) * SHADOW_EXTRUDE + ref for p in positions]

        if self.is_invisible:
            if mesh.format.is_indexed():
                raise ValueError("invisible shadows need an unindexed mesh")
            self.inv_mesh = []
            for j, normal in enumerate(self.poly_normals):
                work = ref - verts[j * vpp].vertex
                if work.dot(normal) > 0:
                    self.inv_mesh.extend(j * vpp + k for k in range(vpp))

        for edge in self.edges:
            work = (ref - verts[edge.vert1].vertex) + (ref - verts[edge.vert2].vertex)
            d1, d2 = self._neighbour_dots(edge, work)
            if d1 * d2 <= 0:
                poly_index = edge.poly1 if d1 >= d2 or edge.poly2 == -1 else edge.poly2
                start = poly_index * vpp
                _orient_edge(edge, inds[start:start + vpp])
                self.outline.extend(
                    (edge.vert1, edge.vert1 + n, edge.vert2 + n, edge.vert2)
                )