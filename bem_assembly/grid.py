from typing import NamedTuple, Sequence

import numpy as np

from bem_assembly.elements import LagrangeElement, ReferenceCellType
from bem_assembly.exceptions import ConfigurationError


class CellGeometry(NamedTuple):
    """
    Geometry of a batch of cells at reference points.

    Attributes:
        points (np.ndarray): Physical points, shape (B, Q, 3).
        jacobians (np.ndarray): Columns ∂x/∂s and ∂x/∂t, shape (B, Q, 3, 2).
        jdet (np.ndarray): Surface Jacobian ||∂x/∂s × ∂x/∂t||, shape (B, Q).
        normals (np.ndarray): Unit normals, shape (B, Q, 3).
    """
    points: np.ndarray
    jacobians: np.ndarray
    jdet: np.ndarray
    normals: np.ndarray


class MixedGrid:
    """
    Surface grid in 3D whose cells may be triangles or quadrilaterals.

    Cells are referenced by a stable index (their position in ``cells``).
    The geometry of every cell is the degree-1 Lagrange map of its vertices;
    normals follow the orientation of the local vertex order.
    """

    def __init__(self,
                 points: np.ndarray,
                 cells: Sequence[Sequence[int]],
                 cell_types: Sequence[ReferenceCellType],
                 point_ids: Sequence[int] | None = None,
                 cell_ids: Sequence[int] | None = None):
        """
        Initialize the grid.

        Args:
            points (np.ndarray): Array of shape (N, 3) with vertex
                coordinates.
            cells (Sequence[Sequence[int]]): Vertex indices of each cell.
            cell_types (Sequence[ReferenceCellType]): Type of each cell.
            point_ids (Sequence[int] | None): External ids of the points.
                Defaults to their indices.
            cell_ids (Sequence[int] | None): External ids of the cells.
                Defaults to their indices.
        """
        self.points = np.asarray(points, dtype=np.float64)
        if self.points.ndim != 2 or self.points.shape[1] != 3:
            raise ConfigurationError("points must have shape (N, 3).")
        if len(cells) != len(cell_types):
            raise ConfigurationError("cells and cell_types differ in length.")

        self.num_points = self.points.shape[0]
        self.num_cells = len(cells)

        self._cells = []
        self._types = []
        for c, (verts, ctype) in enumerate(zip(cells, cell_types)):
            verts = np.asarray(verts, dtype=np.int64)
            if not isinstance(ctype, ReferenceCellType):
                raise ConfigurationError(f"Cell {c} has unsupported type "
                                         f"{ctype!r}.")
            if verts.shape != (ctype.num_vertices,):
                raise ConfigurationError(
                    f"Cell {c} of type {ctype.name} needs "
                    f"{ctype.num_vertices} vertices, got {len(verts)}.")
            if np.any(verts < 0) or np.any(verts >= self.num_points):
                raise ConfigurationError(f"Cell {c} references an unknown "
                                         f"point.")
            if len(set(verts.tolist())) != len(verts):
                raise ConfigurationError(f"Cell {c} repeats a vertex.")
            self._cells.append(verts)
            self._types.append(ctype)

        self.point_ids = (np.arange(self.num_points) if point_ids is None
                          else np.asarray(point_ids, dtype=np.int64))
        self.cell_ids = (np.arange(self.num_cells) if cell_ids is None
                         else np.asarray(cell_ids, dtype=np.int64))
        if len(self.point_ids) != self.num_points or \
           len(self.cell_ids) != self.num_cells:
            raise ConfigurationError("Id arrays must match the number of "
                                     "points and cells.")
        if len(np.unique(self.cell_ids)) != self.num_cells:
            raise ConfigurationError("Cell ids must be unique.")

        self.precompute_cells()

    def precompute_cells(self):
        """
        Precompute per-type connectivity and geometric summaries. Initializes:
            - cells_of_type: Cell indices of each cell type present.
            - vertex_cells: For each point, the cells containing it.
            - centroids: Vertex average of each cell.
            - char_length: Largest vertex distance of each cell.
        """
        self.cells_of_type = {}
        self._type_vertices = {}
        self._index_in_type = np.empty(self.num_cells, dtype=np.int64)
        for ctype in ReferenceCellType:
            idx = np.array([c for c in range(self.num_cells)
                            if self._types[c] is ctype], dtype=np.int64)
            if len(idx) == 0:
                continue
            self.cells_of_type[ctype] = idx
            self._type_vertices[ctype] = np.stack([self._cells[c]
                                                   for c in idx])
            self._index_in_type[idx] = np.arange(len(idx))

        self._geometry_elements = {t: LagrangeElement(t, 1)
                                   for t in self.cells_of_type}

        vertex_cells = [[] for _ in range(self.num_points)]
        for c, verts in enumerate(self._cells):
            for v in verts:
                vertex_cells[v].append(c)
        self.vertex_cells = [np.array(vc, dtype=np.int64)
                             for vc in vertex_cells]

        self.centroids = np.stack([self.points[v].mean(axis=0)
                                   for v in self._cells]) \
            if self.num_cells else np.zeros((0, 3))
        self.char_length = np.array([
            np.max(np.linalg.norm(self.points[v][:, None, :] -
                                  self.points[v][None, :, :], axis=-1))
            for v in self._cells])

        for ctype, idx in self.cells_of_type.items():
            centre = ctype.vertices.mean(axis=0, keepdims=True)
            jdet = MixedGrid.geometry(self, idx, centre).jdet
            if np.any(jdet <= 1e-14 * self.char_length[idx, None] ** 2):
                bad = idx[np.argmin(jdet[:, 0])]
                raise ConfigurationError(f"Cell {bad} is degenerate.")

    @property
    def cell_types(self) -> list[ReferenceCellType]:
        return list(self._types)

    def cell_type(self, cell: int) -> ReferenceCellType:
        return self._types[cell]

    def cell_vertices(self, cell: int) -> np.ndarray:
        return self._cells[cell]

    def neighbours(self, cell: int) -> np.ndarray:
        """Cells sharing at least one vertex with ``cell``, itself included."""
        return np.unique(np.concatenate(
            [self.vertex_cells[v] for v in self._cells[cell]]))

    def shared_vertices(self,
                        cell_a: int,
                        cell_b: int) -> tuple[tuple[int, int], ...]:
        """
        Local vertex indices shared by two cells.

        Returns:
            tuple[tuple[int, int], ...]: Pairs (local index in cell_a,
            local index in cell_b), ordered by the first entry.
        """
        verts_b = self._cells[cell_b]
        shared = []
        for i, v in enumerate(self._cells[cell_a]):
            j = np.flatnonzero(verts_b == v)
            if len(j):
                shared.append((i, int(j[0])))
        return tuple(shared)

    def geometry(self,
                 cells: np.ndarray,
                 ref_points: np.ndarray) -> CellGeometry:
        """
        Map reference points into a batch of cells of one type.

        Args:
            cells (np.ndarray): Cell indices, shape (B,).
            ref_points (np.ndarray): Reference points, shape (Q, 2).

        Returns:
            CellGeometry: Points, Jacobians, surface Jacobians and normals.
        """
        cells = np.atleast_1d(np.asarray(cells, dtype=np.int64))
        ctype = self._batch_type(cells)
        verts = self.points[self._type_vertices[ctype]
                            [self._index_in_type[cells]]]

        element = self._geometry_elements[ctype]
        N = element.tabulate(ref_points)
        dN = element.tabulate_derivatives(ref_points)

        x = np.einsum('qv,bvd->bqd', N, verts)
        J = np.einsum('qva,bvd->bqda', dN, verts)
        return self._finish_geometry(x, J)

    @staticmethod
    def _finish_geometry(x: np.ndarray, J: np.ndarray) -> CellGeometry:
        cross = np.cross(J[..., 0], J[..., 1])
        jdet = np.linalg.norm(cross, axis=-1)
        # zero normals on degenerate points, rejected by precompute_cells
        normals = np.divide(cross, jdet[..., None],
                            out=np.zeros_like(cross),
                            where=jdet[..., None] > 0.0)
        return CellGeometry(x, J, jdet, normals)

    def _batch_type(self, cells: np.ndarray) -> ReferenceCellType:
        ctype = self._types[cells[0]]
        if any(self._types[c] is not ctype for c in cells[1:]):
            raise ConfigurationError("Geometry batches must contain cells of "
                                     "a single type.")
        return ctype

    def subgrid(self, cells: Sequence[int]) -> 'MixedGrid':
        """
        Grid made of a subset of cells, keeping point and cell ids.

        Points are renumbered in order of first appearance.
        """
        cells = [int(c) for c in cells]
        point_map = {}
        for c in cells:
            for v in self._cells[c]:
                point_map.setdefault(int(v), len(point_map))
        old_points = np.array(list(point_map), dtype=np.int64)
        new_cells = [[point_map[int(v)] for v in self._cells[c]]
                     for c in cells]
        return MixedGrid(self.points[old_points],
                         new_cells,
                         [self._types[c] for c in cells],
                         point_ids=self.point_ids[old_points],
                         cell_ids=self.cell_ids[cells])

    def __repr__(self) -> str:
        counts = ", ".join(f"{t.name}={len(i)}"
                           for t, i in self.cells_of_type.items())
        return f"{type(self).__name__}(points={self.num_points}, {counts})"


class SingleElementGrid(MixedGrid):
    """Grid whose cells all have the same reference type."""

    def __init__(self,
                 points: np.ndarray,
                 cells: np.ndarray,
                 cell_type: ReferenceCellType,
                 point_ids: Sequence[int] | None = None,
                 cell_ids: Sequence[int] | None = None):
        self.reference_cell = cell_type
        cells = np.asarray(cells, dtype=np.int64).reshape(
            -1, cell_type.num_vertices)
        super().__init__(points, cells, [cell_type] * len(cells),
                         point_ids=point_ids, cell_ids=cell_ids)


class FlatTriangleGrid(SingleElementGrid):
    """
    Grid of flat triangles with affine geometry.

    Precomputes, as arrays over cells:
        - v0: First vertex of each triangle.
        - e1: Edge vector from v0 to v1.
        - e2: Edge vector from v0 to v2.
        - a2: Twice the area of each triangle (||e1×e2|| Jacobian).
        - n_hat: Unit normal vector of each triangle.
    """

    def __init__(self,
                 points: np.ndarray,
                 cells: np.ndarray,
                 point_ids: Sequence[int] | None = None,
                 cell_ids: Sequence[int] | None = None):
        super().__init__(points, cells, ReferenceCellType.Triangle,
                         point_ids=point_ids, cell_ids=cell_ids)
        self.precompute_elements()

    def precompute_elements(self):
        tri = np.stack(self._cells) if self.num_cells else \
            np.zeros((0, 3), dtype=np.int64)
        v0 = self.points[tri[:, 0], :]
        v1 = self.points[tri[:, 1], :]
        v2 = self.points[tri[:, 2], :]
        e1 = v1 - v0
        e2 = v2 - v0
        cross = np.cross(e1, e2)
        a2 = np.linalg.norm(cross, axis=1)

        self.v0 = v0
        self.e1 = e1
        self.e2 = e2
        self.a2 = a2
        self.n_hat = cross / a2[:, np.newaxis]

    def geometry(self, cells, ref_points):
        cells = np.atleast_1d(np.asarray(cells, dtype=np.int64))
        xi = ref_points[:, 0][None, :]
        eta = ref_points[:, 1][None, :]
        e1, e2 = self.e1[cells], self.e2[cells]
        x = self.v0[cells][:, None, :] + \
            xi[..., None] * e1[:, None, :] + \
            eta[..., None] * e2[:, None, :]
        J = np.broadcast_to(np.stack([e1, e2], axis=-1)[:, None, :, :],
                            x.shape + (2,))
        return self._finish_geometry(x, J)


class GridBuilder:
    """
    Incremental grid construction from externally numbered points and cells.

    Points are stored in insertion order. If ``cell_type`` is given, cells are
    added as plain vertex-id lists and a single-type grid is created;
    otherwise cells are added as ``(vertex_ids, cell_type)``.
    """

    def __init__(self, cell_type: ReferenceCellType | None = None):
        self.cell_type = cell_type
        self._points = {}
        self._cells = {}

    def add_point(self, point_id: int, coords: Sequence[float]) -> None:
        if point_id in self._points:
            raise ConfigurationError(f"Point {point_id} added twice.")
        self._points[point_id] = np.asarray(coords, dtype=np.float64)

    def add_cell(self, cell_id: int, cell) -> None:
        if cell_id in self._cells:
            raise ConfigurationError(f"Cell {cell_id} added twice.")
        if self.cell_type is None:
            vertex_ids, ctype = cell
        else:
            vertex_ids, ctype = cell, self.cell_type
        self._cells[cell_id] = (list(vertex_ids), ctype)

    def create_grid(self) -> MixedGrid:
        point_ids = list(self._points)
        index = {pid: i for i, pid in enumerate(point_ids)}
        points = np.array([self._points[p] for p in point_ids])
        try:
            cells = [[index[v] for v in verts]
                     for verts, _ in self._cells.values()]
        except KeyError as e:
            raise ConfigurationError(f"Cell references unknown point "
                                     f"{e.args[0]}.") from e
        types = [ctype for _, ctype in self._cells.values()]
        cell_ids = list(self._cells)

        if self.cell_type is ReferenceCellType.Triangle:
            return FlatTriangleGrid(points, cells, point_ids=point_ids,
                                    cell_ids=cell_ids)
        if self.cell_type is not None:
            return SingleElementGrid(points, cells, self.cell_type,
                                     point_ids=point_ids, cell_ids=cell_ids)
        return MixedGrid(points, cells, types, point_ids=point_ids,
                         cell_ids=cell_ids)
