"""
Adjacency classification of cell pairs and selection of quadrature rules.

Disjoint pairs use a tensor product of one rule per cell. Touching and
identical pairs use Sauter-Schwab rules: both cells are split into
reference triangles (a quadrilateral into two along its 0-3 diagonal) and
every pair of sub-triangles gets the rule of its own adjacency.
"""

from enum import Enum
from functools import lru_cache
from typing import NamedTuple

import numpy as np

from bem_assembly.elements import ReferenceCellType
from bem_assembly.exceptions import ConfigurationError
from bem_assembly.quadrature import (collapsed_triangle_quad,
                                     edge_simplex_rule,
                                     identical_simplex_rule,
                                     separate_simplex_rule,
                                     standard_quadrilateral_quad,
                                     standard_triangle_quad,
                                     vertex_simplex_rule)

# local vertices of the sub-triangles, each the image of the simplex under a
# map with unit Jacobian
_SUB_TRIANGLES = {
    ReferenceCellType.Triangle: ((0, 1, 2),),
    ReferenceCellType.Quadrilateral: ((0, 1, 3), (0, 3, 2)),
}

_SIMPLEX_RULES = {
    3: identical_simplex_rule,
    2: edge_simplex_rule,
    1: vertex_simplex_rule,
    0: separate_simplex_rule,
}


class Adjacency(Enum):
    Disjoint = 0
    Vertex = 1
    Edge = 2
    Identical = 3


class CellPairRule(NamedTuple):
    """
    Quadrature rule over a pair of reference cells.

    Attributes:
        test_points (np.ndarray): Points on the test cell, shape (Q, 2).
        trial_points (np.ndarray): Points on the trial cell, shape (Q, 2).
        weights (np.ndarray): Weights, shape (Q,).
    """
    test_points: np.ndarray
    trial_points: np.ndarray
    weights: np.ndarray


def classify_adjacency(grid,
                       test_cell: int,
                       trial_cell: int,
                       ) -> tuple[Adjacency, tuple[tuple[int, int], ...]]:
    """
    Classify the geometric relation of two cells of a grid.

    Args:
        grid (MixedGrid): Grid holding both cells.
        test_cell (int): Index of the test cell.
        trial_cell (int): Index of the trial cell.

    Returns:
        tuple[Adjacency, tuple[tuple[int, int], ...]]: The adjacency class
        and the shared vertices as (test-local, trial-local) pairs.

    Raises:
        ConfigurationError: If the cells share vertices in a way a conforming
            grid does not allow.
    """
    if test_cell == trial_cell:
        n = grid.cell_type(test_cell).num_vertices
        return Adjacency.Identical, tuple((i, i) for i in range(n))

    shared = grid.shared_vertices(test_cell, trial_cell)
    if len(shared) == 0:
        return Adjacency.Disjoint, shared
    if len(shared) == 1:
        return Adjacency.Vertex, shared
    if len(shared) == 2:
        (a0, b0), (a1, b1) = shared
        if grid.cell_type(test_cell).edge_index(a0, a1) is not None and \
           grid.cell_type(trial_cell).edge_index(b0, b1) is not None:
            return Adjacency.Edge, shared
    raise ConfigurationError(f"Cells {test_cell} and {trial_cell} share "
                             f"{len(shared)} vertices but no common edge; "
                             f"the grid is not conforming.")


def classify_pairs(grid,
                   test_cell: int,
                   ) -> tuple[dict, np.ndarray]:
    """
    Split the trial cells for a fixed test cell into touching and disjoint.

    Args:
        grid (MixedGrid): The grid.
        test_cell (int): Index of the test cell.

    Returns:
        tuple[dict, np.ndarray]: Touching trial cells grouped by
        (adjacency, shared) key, and the sorted disjoint trial cells.
    """
    touching = {}
    neighbours = grid.neighbours(test_cell)
    for trial_cell in neighbours:
        key = classify_adjacency(grid, test_cell, int(trial_cell))
        touching.setdefault(key, []).append(int(trial_cell))

    disjoint = np.setdiff1d(np.arange(grid.num_cells), neighbours)
    return touching, disjoint


@lru_cache(maxsize=None)
def regular_rule(cell_type: ReferenceCellType,
                 order: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Rule on a single reference cell, used for disjoint pairs.

    Args:
        cell_type (ReferenceCellType): Reference cell.
        order (int): Polynomial degree integrated exactly. Triangles use the
            tabulated 1, 3 and 7 point rules up to degree 5 and a collapsed
            Gauss rule with (order + 3) // 2 points per direction beyond.
            Quadrilaterals use (order + 2) // 2 Gauss points per direction.

    Returns:
        tuple[np.ndarray, np.ndarray]: Read-only points (Q, 2) and weights.
    """
    if order < 1:
        raise ConfigurationError(f"Invalid regular order {order!r}.")
    if cell_type is ReferenceCellType.Triangle:
        if order <= 5:
            pts, w = standard_triangle_quad(1 if order == 1 else
                                            3 if order == 2 else 7)
        else:
            pts, w = collapsed_triangle_quad((order + 3) // 2)
    else:
        pts, w = standard_quadrilateral_quad((order + 2) // 2)
    pts.setflags(write=False)
    w.setflags(write=False)
    return pts, w


def _to_reference(cell_type: ReferenceCellType,
                  vertices: tuple[int, ...],
                  s: np.ndarray) -> np.ndarray:
    """Map simplex points to the triangle spanned by local vertices."""
    P = cell_type.vertices[list(vertices)]
    return ((1.0 - s[:, 0])[:, None] * P[0] +
            (s[:, 0] - s[:, 1])[:, None] * P[1] +
            s[:, 1, None] * P[2])


def _leading(vertices: tuple[int, ...],
             first: list[int]) -> tuple[int, ...]:
    return tuple(first) + tuple(v for v in vertices if v not in first)


def _oriented_rule(test_type: ReferenceCellType,
                   trial_type: ReferenceCellType,
                   shared: tuple[tuple[int, int], ...],
                   order: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sum of the simplex pair rules over all pairs of sub-triangles.

    The sub-triangles are ordered so that their common vertices come first
    and in matching order, which puts the shared edge or vertex where the
    simplex rule expects it.
    """
    to_trial = dict(shared)
    xs, ys, ws = [], [], []
    for tx in _SUB_TRIANGLES[test_type]:
        for ty in _SUB_TRIANGLES[trial_type]:
            common = [v for v in tx if to_trial.get(v) in ty]
            s, t, w = _SIMPLEX_RULES[len(common)](order)
            xs.append(_to_reference(test_type, _leading(tx, common), s))
            ys.append(_to_reference(
                trial_type, _leading(ty, [to_trial[v] for v in common]), t))
            ws.append(w)
    return np.concatenate(xs), np.concatenate(ys), np.concatenate(ws)


@lru_cache(maxsize=None)
def singular_rule(test_type: ReferenceCellType,
                  trial_type: ReferenceCellType,
                  adjacency: Adjacency,
                  shared: tuple[tuple[int, int], ...],
                  order: int) -> CellPairRule:
    """
    Paired rule for touching or identical cells.

    The rule is the half-weight union of the Sauter-Schwab rule built from
    the test side and the one built from the trial side, so swapping test
    and trial (with the shared vertices swapped accordingly) gives the same
    point pairs with their roles exchanged.

    Args:
        test_type (ReferenceCellType): Test reference cell.
        trial_type (ReferenceCellType): Trial reference cell.
        adjacency (Adjacency): Vertex, Edge or Identical.
        shared (tuple[tuple[int, int], ...]): Shared vertices as
            (test-local, trial-local) pairs.
        order (int): Gauss-Legendre points per direction of the 4D rules.

    Returns:
        CellPairRule: Read-only test points, trial points and weights.
    """
    if adjacency is Adjacency.Disjoint:
        raise ConfigurationError("Disjoint pairs use regular rules.")
    if adjacency is Adjacency.Identical and test_type is not trial_type:
        raise ConfigurationError("Identical cells must have the same type.")

    swapped = tuple((b, a) for a, b in shared)
    x_a, y_a, w_a = _oriented_rule(test_type, trial_type, shared, order)
    y_b, x_b, w_b = _oriented_rule(trial_type, test_type, swapped, order)

    test_points = np.concatenate([x_a, x_b])
    trial_points = np.concatenate([y_a, y_b])
    weights = 0.5 * np.concatenate([w_a, w_b])
    for arr in (test_points, trial_points, weights):
        arr.setflags(write=False)
    return CellPairRule(test_points, trial_points, weights)
