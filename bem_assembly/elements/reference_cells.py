"""
Reference cells of surface grids.

Triangle vertices are (0,0), (1,0), (0,1); quadrilateral vertices are
(0,0), (1,0), (0,1), (1,1) in tensor order, so the diagonal 0-3 splits a
quadrilateral into the triangles (0, 1, 3) and (0, 3, 2).
"""

from enum import Enum

import numpy as np


class ReferenceCellType(Enum):
    Triangle = "triangle"
    Quadrilateral = "quadrilateral"

    @property
    def vertices(self) -> np.ndarray:
        """Reference coordinates of the local vertices, shape (V, 2)."""
        return _VERTICES[self].copy()

    @property
    def num_vertices(self) -> int:
        return len(_VERTICES[self])

    @property
    def edges(self) -> tuple[tuple[int, int], ...]:
        """Local vertex pairs of the edges, in local edge order."""
        return _EDGES[self]

    @property
    def area(self) -> float:
        return 0.5 if self is ReferenceCellType.Triangle else 1.0

    def edge_index(self, v0: int, v1: int) -> int | None:
        """Local index of the edge joining two local vertices, if any."""
        key = (min(v0, v1), max(v0, v1))
        for i, e in enumerate(self.edges):
            if e == key:
                return i
        return None


class Continuity(Enum):
    Continuous = "continuous"
    Discontinuous = "discontinuous"


_VERTICES = {
    ReferenceCellType.Triangle: np.array([[0.0, 0.0],
                                          [1.0, 0.0],
                                          [0.0, 1.0]]),
    ReferenceCellType.Quadrilateral: np.array([[0.0, 0.0],
                                               [1.0, 0.0],
                                               [0.0, 1.0],
                                               [1.0, 1.0]]),
}

_EDGES = {
    ReferenceCellType.Triangle: ((1, 2), (0, 2), (0, 1)),
    ReferenceCellType.Quadrilateral: ((0, 1), (0, 2), (1, 3), (2, 3)),
}
