import numpy as np

from bem_assembly.elements import (Continuity, LagrangeElement,
                                   LagrangeElementFamily, ReferenceCellType)
from bem_assembly.exceptions import ConfigurationError
from bem_assembly.grid import MixedGrid


class DofMap:
    """
    Local-to-global dof map of a function space.

    Attributes:
        keys (list[tuple]): Entity key of every global dof.
    """

    def __init__(self,
                 cell_dofs: list[np.ndarray],
                 keys: list[tuple]):
        self._cell_dofs = cell_dofs
        self.keys = keys

    def global_size(self) -> int:
        return len(self.keys)

    def cell_dofs(self, cell: int) -> np.ndarray:
        return self._cell_dofs[cell]

    def local_size(self, cell: int) -> int:
        return len(self._cell_dofs[cell])

    def cell_dofs_array(self, cells: np.ndarray) -> np.ndarray:
        """Dofs of cells with equal local size, shape (B, n)."""
        return np.stack([self._cell_dofs[c] for c in cells])


class FunctionSpace:
    """
    Scalar Lagrange space on a surface grid.

    Continuous spaces share vertex and edge dofs between cells and number
    dofs by first appearance of their entity when walking the cells in order
    and the local dofs of each cell in local order. Discontinuous spaces give
    each cell consecutive dofs.

    Every dof carries an entity key:
        - ("vertex", point_id) for continuous vertex dofs.
        - ("edge", point_id_a, point_id_b), with sorted ids, for continuous
          edge dofs.
        - ("cell", cell_id, k) for interior dofs and for every dof of a
          discontinuous space, k being the local dof index.

    Keys only use external point and cell ids, so they are shared by
    sub-grids of the same grid.
    """

    def __init__(self,
                 grid: MixedGrid,
                 family: LagrangeElementFamily):
        self.grid = grid
        self.family = family
        self.continuity = family.continuity
        self.degree = family.degree
        self._elements = {t: family.element(t) for t in grid.cells_of_type}
        self.dofmap = self._build_dofmap()

    def _build_dofmap(self) -> DofMap:
        grid = self.grid
        index = {}
        keys = []
        cell_dofs = []
        for c in range(grid.num_cells):
            element = self._elements[grid.cell_type(c)]
            local_keys = self._local_keys(c, element)
            dofs = np.empty(element.dim, dtype=np.int64)
            for k, key in enumerate(local_keys):
                if key not in index:
                    index[key] = len(keys)
                    keys.append(key)
                dofs[k] = index[key]
            cell_dofs.append(dofs)
        return DofMap(cell_dofs, keys)

    def _local_keys(self,
                    cell: int,
                    element: LagrangeElement) -> list[tuple]:
        cell_id = int(self.grid.cell_ids[cell])
        if self.continuity is Continuity.Discontinuous:
            return [("cell", cell_id, k) for k in range(element.dim)]

        pids = self.grid.point_ids[self.grid.cell_vertices(cell)]
        keys = [None] * element.dim
        for v, dofs in enumerate(element.entity_dofs["vertex"]):
            for k in dofs:
                keys[k] = ("vertex", int(pids[v]))
        for e, dofs in enumerate(element.entity_dofs["edge"]):
            v0, v1 = element.cell_type.edges[e]
            a, b = sorted((int(pids[v0]), int(pids[v1])))
            for k in dofs:
                keys[k] = ("edge", a, b)
        for k in element.entity_dofs["interior"]:
            keys[k] = ("cell", cell_id, k)
        return keys

    def global_size(self) -> int:
        return self.dofmap.global_size()

    def cell_dofs(self, cell: int) -> np.ndarray:
        return self.dofmap.cell_dofs(cell)

    def element(self, cell: int) -> LagrangeElement:
        return self._elements[self.grid.cell_type(cell)]

    def element_of_type(self, cell_type: ReferenceCellType) -> LagrangeElement:
        try:
            return self._elements[cell_type]
        except KeyError:
            raise ConfigurationError(f"No {cell_type.name} cells in the "
                                     f"grid.") from None

    def dof_keys(self) -> list[tuple]:
        return list(self.dofmap.keys)

    def __repr__(self) -> str:
        return (f"FunctionSpace({self.family!r}, "
                f"global_size={self.global_size()})")
