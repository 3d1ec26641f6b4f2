"""
Lagrange elements of degree 0, 1 and 2 on triangles and quadrilaterals.

Degree 0 has a single interior dof. For degree >= 1 the local dofs are
ordered vertices first (local vertex order), then edges (local edge order),
then the interior, which is the ordering the continuous dofmap relies on.
"""

import numpy as np

from bem_assembly.elements.reference_cells import (Continuity,
                                                   ReferenceCellType)
from bem_assembly.exceptions import ConfigurationError

SUPPORTED_DEGREES = (0, 1, 2)


def _poly_1d(degree: int, x: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    1D Lagrange polynomials on [0, 1] and their derivatives.

    Index 0 interpolates at x = 0, index 1 at x = 1 and, for degree 2,
    index 2 at x = 1/2.

    Returns:
        tuple[np.ndarray, np.ndarray]: Values and derivatives, each of shape
        (degree + 1, N).
    """
    if degree == 1:
        vals = np.stack([1.0 - x, x])
        ders = np.stack([-np.ones_like(x), np.ones_like(x)])
    else:
        vals = np.stack([(1.0 - x) * (1.0 - 2.0 * x),
                         x * (2.0 * x - 1.0),
                         4.0 * x * (1.0 - x)])
        ders = np.stack([4.0 * x - 3.0,
                         4.0 * x - 1.0,
                         4.0 - 8.0 * x])
    return vals, ders


class LagrangeElement:
    """
    Scalar Lagrange element on a reference cell.

    Attributes:
        cell_type (ReferenceCellType): Reference cell.
        degree (int): Polynomial degree (0, 1 or 2).
        dim (int): Number of local basis functions.
        entity_dofs (dict[str, list[list[int]]]): Local dofs attached to each
            vertex, each edge and the interior (``"interior"`` holds a single
            list).
    """

    def __init__(self,
                 cell_type: ReferenceCellType,
                 degree: int):
        if degree not in SUPPORTED_DEGREES:
            raise ConfigurationError(f"Unsupported Lagrange degree {degree}; "
                                     f"supported: {SUPPORTED_DEGREES}.")
        if not isinstance(cell_type, ReferenceCellType):
            raise ConfigurationError(f"Unsupported cell type {cell_type!r}.")

        self.cell_type = cell_type
        self.degree = degree
        self._build_entity_dofs()

    def _build_entity_dofs(self):
        n_v = self.cell_type.num_vertices
        n_e = len(self.cell_type.edges)
        if self.degree == 0:
            self.entity_dofs = {"vertex": [[] for _ in range(n_v)],
                                "edge": [[] for _ in range(n_e)],
                                "interior": [0]}
            self.dim = 1
            return

        vertex = [[i] for i in range(n_v)]
        edge = [[] for _ in range(n_e)]
        interior = []
        dim = n_v
        if self.degree == 2:
            edge = [[n_v + i] for i in range(n_e)]
            dim += n_e
            if self.cell_type is ReferenceCellType.Quadrilateral:
                interior = [dim]
                dim += 1
        self.entity_dofs = {"vertex": vertex, "edge": edge,
                            "interior": interior}
        self.dim = dim

        if self.cell_type is ReferenceCellType.Quadrilateral:
            self._tensor_index = self._quad_tensor_index()

    def _quad_tensor_index(self) -> list[tuple[int, int]]:
        """1D polynomial index along (s, t) for every local dof."""
        verts = self.cell_type.vertices.astype(int)
        index = [(int(v[0]), int(v[1])) for v in verts]
        if self.degree == 2:
            for v0, v1 in self.cell_type.edges:
                a, b = verts[v0], verts[v1]
                index.append((int(a[0]) if a[0] == b[0] else 2,
                              int(a[1]) if a[1] == b[1] else 2))
            index.append((2, 2))
        return index

    def tabulate(self, points: np.ndarray) -> np.ndarray:
        """
        Evaluate the basis functions.

        Args:
            points (np.ndarray): Reference points, shape (Q, 2).

        Returns:
            np.ndarray: Values of shape (Q, dim).
        """
        points = np.asarray(points, dtype=np.float64)
        return self._evaluate(points)[0]

    def tabulate_derivatives(self, points: np.ndarray) -> np.ndarray:
        """
        Evaluate the reference gradients of the basis functions.

        Args:
            points (np.ndarray): Reference points, shape (Q, 2).

        Returns:
            np.ndarray: Derivatives of shape (Q, dim, 2).
        """
        points = np.asarray(points, dtype=np.float64)
        return self._evaluate(points)[1]

    def _evaluate(self, points):
        Q = points.shape[0]
        if self.degree == 0:
            return np.ones((Q, 1)), np.zeros((Q, 1, 2))
        if self.cell_type is ReferenceCellType.Triangle:
            return self._evaluate_triangle(points)
        return self._evaluate_quadrilateral(points)

    def _evaluate_triangle(self, points):
        s, t = points[:, 0], points[:, 1]
        lam = np.stack([1.0 - s - t, s, t], axis=1)
        dlam = np.array([[-1.0, -1.0],
                         [ 1.0,  0.0],
                         [ 0.0,  1.0]])

        if self.degree == 1:
            N = lam
            dN = np.broadcast_to(dlam, (len(points), 3, 2)).copy()
            return N, dN

        N = np.empty((len(points), 6))
        dN = np.empty((len(points), 6, 2))
        for i in range(3):
            N[:, i] = lam[:, i] * (2.0 * lam[:, i] - 1.0)
            dN[:, i, :] = (4.0 * lam[:, i] - 1.0)[:, None] * dlam[i]
        for e, (j, k) in enumerate(self.cell_type.edges):
            N[:, 3 + e] = 4.0 * lam[:, j] * lam[:, k]
            dN[:, 3 + e, :] = 4.0 * (lam[:, k, None] * dlam[j] +
                                     lam[:, j, None] * dlam[k])
        return N, dN

    def _evaluate_quadrilateral(self, points):
        Ps, dPs = _poly_1d(self.degree, points[:, 0])
        Pt, dPt = _poly_1d(self.degree, points[:, 1])
        i_s = [a for a, _ in self._tensor_index]
        i_t = [b for _, b in self._tensor_index]

        N = (Ps[i_s] * Pt[i_t]).T
        dN = np.stack([(dPs[i_s] * Pt[i_t]).T,
                       (Ps[i_s] * dPt[i_t]).T], axis=-1)
        return N, dN

    def __repr__(self) -> str:
        return (f"LagrangeElement({self.cell_type.name}, "
                f"degree={self.degree})")


class LagrangeElementFamily:
    """
    Lagrange elements of one degree and continuity for every cell type.

    Args:
        degree (int): Polynomial degree.
        continuity (Continuity): Continuous (shared dofs on vertices and
            edges) or discontinuous (dofs owned by cells).
    """

    def __init__(self,
                 degree: int,
                 continuity: Continuity = Continuity.Continuous):
        if degree not in SUPPORTED_DEGREES:
            raise ConfigurationError(f"Unsupported Lagrange degree {degree}.")
        if continuity is Continuity.Continuous and degree == 0:
            raise ConfigurationError("Degree 0 Lagrange elements must be "
                                     "discontinuous.")
        self.degree = degree
        self.continuity = continuity
        self._elements = {}

    def element(self, cell_type: ReferenceCellType) -> LagrangeElement:
        if cell_type not in self._elements:
            self._elements[cell_type] = LagrangeElement(cell_type, self.degree)
        return self._elements[cell_type]

    def __repr__(self) -> str:
        return (f"LagrangeElementFamily(degree={self.degree}, "
                f"continuity={self.continuity.name})")
