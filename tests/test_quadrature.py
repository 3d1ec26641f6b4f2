"""
Tests for quadrature rules, adjacency classification and paired singular
rules.
"""

from math import factorial

import numpy as np
import pytest

from bem_assembly import (Adjacency, MixedGrid, ReferenceCellType,
                          classify_adjacency)
from bem_assembly.exceptions import ConfigurationError
from bem_assembly.quadrature import (collapsed_triangle_quad,
                                     edge_simplex_rule, gauss_legendre_1d,
                                     identical_simplex_rule,
                                     separate_simplex_rule,
                                     standard_quadrilateral_quad,
                                     standard_triangle_quad,
                                     vertex_simplex_rule)
from bem_assembly.singular import regular_rule, singular_rule

TRI = ReferenceCellType.Triangle
QUAD = ReferenceCellType.Quadrilateral


def triangle_monomial(a, b):
    """∫ s^a t^b over the reference triangle."""
    return factorial(a) * factorial(b) / factorial(a + b + 2)


@pytest.mark.parametrize("order, degree", [(1, 1), (3, 2), (7, 5)])
def test_triangle_rules_exactness(order, degree):
    pts, w = standard_triangle_quad(order)
    assert np.isclose(w.sum(), 0.5)
    for a in range(degree + 1):
        b = degree - a
        val = np.sum(w * pts[:, 0] ** a * pts[:, 1] ** b)
        assert np.isclose(val, triangle_monomial(a, b), rtol=1e-13)


def test_unsupported_triangle_order():
    with pytest.raises(ConfigurationError):
        standard_triangle_quad(5)


def test_collapsed_triangle_rule():
    pts, w = collapsed_triangle_quad(5)
    assert pts.shape == (25, 2)
    assert np.all(pts.sum(axis=1) <= 1.0)
    val = np.sum(w * pts[:, 0] ** 3 * pts[:, 1] ** 4)
    assert np.isclose(val, triangle_monomial(3, 4), rtol=1e-12)


def test_quadrilateral_rule():
    pts, w = standard_quadrilateral_quad(3)
    assert np.isclose(w.sum(), 1.0)
    assert np.isclose(np.sum(w * pts[:, 0] ** 3 * pts[:, 1] ** 2), 1 / 12)


def test_gauss_legendre_validation_and_copies():
    with pytest.raises(ConfigurationError):
        gauss_legendre_1d(0)
    x, _ = gauss_legendre_1d(4)
    x[:] = 0.0
    assert np.all(gauss_legendre_1d(4)[0] > 0.0)


@pytest.mark.parametrize("rule, n_regions", [(identical_simplex_rule, 6),
                                             (edge_simplex_rule, 5),
                                             (vertex_simplex_rule, 2),
                                             (separate_simplex_rule, 1)])
def test_simplex_pair_rules(rule, n_regions):
    x, y, w = rule(3)
    assert x.shape == y.shape == (n_regions * 81, 2)
    assert np.isclose(w.sum(), 0.25)
    tol = 1e-14
    for p in (x, y):
        assert np.all((p[:, 1] >= 0.0) & (p[:, 1] <= p[:, 0] + tol) &
                      (p[:, 0] <= 1.0 + tol))


def rectangle_self_integral(a, b):
    """∫∫ 1/|x-y| over an a x b rectangle paired with itself."""
    d = np.hypot(a, b)
    return (2 * a * a * b * np.arcsinh(b / a) +
            2 * a * b * b * np.arcsinh(a / b) +
            2 / 3 * (a ** 3 + b ** 3 - d ** 3))


# unit squares in the plane: identical, sharing an edge and sharing a vertex
SQUARE = rectangle_self_integral(1.0, 1.0)
SQUARE_EDGE = (rectangle_self_integral(2.0, 1.0) - 2 * SQUARE) / 2
SQUARE_VERTEX = (8 * SQUARE - 4 * SQUARE - 8 * SQUARE_EDGE) / 4


@pytest.mark.parametrize("adjacency, shared, offset, exact, order, rtol", [
    (Adjacency.Identical, ((0, 0), (1, 1), (2, 2), (3, 3)), [0, 0],
     SQUARE, 6, 1e-6),
    (Adjacency.Edge, ((1, 0), (3, 2)), [1, 0], SQUARE_EDGE, 5, 1e-4),
    (Adjacency.Edge, ((1, 0), (3, 2)), [1, 0], SQUARE_EDGE, 10, 1e-7),
    (Adjacency.Vertex, ((3, 0),), [1, 1], SQUARE_VERTEX, 4, 1e-4),
    (Adjacency.Vertex, ((3, 0),), [1, 1], SQUARE_VERTEX, 10, 1e-7),
])
def test_singular_rule_unit_square_integrals(adjacency, shared, offset,
                                             exact, order, rtol):
    # the reference square is the unit square, the trial one is translated
    rule = singular_rule(QUAD, QUAD, adjacency, shared, order)
    r = np.linalg.norm(rule.test_points - rule.trial_points -
                       np.array(offset), axis=1)
    assert np.isclose(np.sum(rule.weights / r), exact, rtol=rtol)


def test_regular_rule_is_read_only():
    pts, w = regular_rule(TRI, 5)
    assert pts.shape == (7, 2)
    assert not w.flags.writeable
    pts, w = regular_rule(TRI, 6)
    assert pts.shape == (16, 2)
    pts, w = regular_rule(QUAD, 7)
    assert pts.shape == (16, 2)
    assert np.isclose(w.sum(), 1.0)


@pytest.mark.parametrize("cell_type", [TRI, QUAD])
def test_regular_rule_order_is_exactness_degree(cell_type):
    sizes = []
    for order in range(1, 12):
        pts, w = regular_rule(cell_type, order)
        sizes.append(len(w))
        for a in range(order + 1):
            if cell_type is TRI:
                b = order - a
                exact = triangle_monomial(a, b)
            else:
                b = order
                exact = 1.0 / ((a + 1) * (b + 1))
            val = np.sum(w * pts[:, 0] ** a * pts[:, 1] ** b)
            assert np.isclose(val, exact, rtol=1e-12)
    # a higher order never selects a smaller rule
    assert sizes == sorted(sizes)


def test_regular_rule_rejects_order_zero():
    with pytest.raises(ConfigurationError):
        regular_rule(TRI, 0)

def test_classify_adjacency(mixed_grid):
    assert classify_adjacency(mixed_grid, 0, 0) == \
        (Adjacency.Identical, ((0, 0), (1, 1), (2, 2), (3, 3)))
    assert classify_adjacency(mixed_grid, 0, 1) == \
        (Adjacency.Edge, ((2, 0), (3, 1)))
    assert classify_adjacency(mixed_grid, 0, 3) == \
        (Adjacency.Edge, ((1, 0), (3, 2)))
    assert classify_adjacency(mixed_grid, 0, 2) == \
        (Adjacency.Vertex, ((1, 0),))
    assert classify_adjacency(mixed_grid, 1, 2)[0] is Adjacency.Disjoint
    assert classify_adjacency(mixed_grid, 2, 5)[0] is Adjacency.Disjoint


def test_classify_swaps_shared_vertices(mixed_grid):
    adj, shared = classify_adjacency(mixed_grid, 3, 0)
    assert adj is Adjacency.Edge
    assert shared == ((0, 1), (2, 3))


def test_non_conforming_pair_raises():
    points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    grid = MixedGrid(points, [[0, 1, 2], [0, 2, 1]], [TRI, TRI])
    with pytest.raises(ConfigurationError):
        classify_adjacency(grid, 0, 1)


@pytest.mark.parametrize("test_type, trial_type, adjacency, shared", [
    (TRI, TRI, Adjacency.Identical, ((0, 0), (1, 1), (2, 2))),
    (QUAD, QUAD, Adjacency.Identical, ((0, 0), (1, 1), (2, 2), (3, 3))),
    (QUAD, TRI, Adjacency.Edge, ((1, 0), (3, 2))),
    (QUAD, QUAD, Adjacency.Edge, ((2, 0), (3, 1))),
    (TRI, TRI, Adjacency.Vertex, ((1, 2),)),
    (QUAD, TRI, Adjacency.Vertex, ((3, 0),)),
])
def test_singular_rule_weights(test_type, trial_type, adjacency, shared):
    rule = singular_rule(test_type, trial_type, adjacency, shared, 4)
    assert np.isclose(rule.weights.sum(), test_type.area * trial_type.area)
    assert not rule.test_points.flags.writeable
    # no point pair of a touching rule coincides
    if adjacency is Adjacency.Identical:
        d = np.linalg.norm(rule.test_points - rule.trial_points, axis=1)
        assert d.min() > 0.0


def cell_monomial(cell_type, a, b):
    if cell_type is TRI:
        return triangle_monomial(a, b)
    return 1.0 / ((a + 1) * (b + 1))


@pytest.mark.parametrize("test_type, trial_type, adjacency, shared", [
    (TRI, TRI, Adjacency.Identical, ((0, 0), (1, 1), (2, 2))),
    (QUAD, QUAD, Adjacency.Identical, ((0, 0), (1, 1), (2, 2), (3, 3))),
    (TRI, TRI, Adjacency.Edge, ((0, 1), (2, 0))),
    (QUAD, TRI, Adjacency.Edge, ((1, 0), (3, 2))),
    (QUAD, QUAD, Adjacency.Vertex, ((1, 2),)),
    (TRI, QUAD, Adjacency.Vertex, ((2, 3),)),
])
def test_singular_rule_integrates_smooth_products(test_type, trial_type,
                                                  adjacency, shared):
    rule = singular_rule(test_type, trial_type, adjacency, shared, 6)
    x, y = rule.test_points, rule.trial_points
    for a, b, c, d in [(0, 0, 0, 0), (1, 0, 0, 2), (2, 0, 1, 1),
                       (0, 1, 1, 0), (1, 1, 2, 0)]:
        val = np.sum(rule.weights * x[:, 0] ** a * x[:, 1] ** b *
                     y[:, 0] ** c * y[:, 1] ** d)
        exact = (cell_monomial(test_type, a, b) *
                 cell_monomial(trial_type, c, d))
        assert np.isclose(val, exact, rtol=1e-12)


@pytest.mark.parametrize("test_type, trial_type, adjacency, shared", [
    (QUAD, TRI, Adjacency.Edge, ((1, 0), (3, 2))),
    (QUAD, TRI, Adjacency.Vertex, ((3, 0),)),
    (TRI, TRI, Adjacency.Edge, ((0, 1), (2, 0))),
])
def test_singular_rule_swap_symmetry(test_type, trial_type, adjacency,
                                     shared):
    def f(p):
        return np.exp(p[:, 0] + 2 * p[:, 1])

    def g(p):
        return np.cos(p[:, 0] - p[:, 1])

    rule = singular_rule(test_type, trial_type, adjacency, shared, 4)
    swapped = singular_rule(trial_type, test_type, adjacency,
                            tuple((b, a) for a, b in shared), 4)
    val = np.sum(rule.weights * f(rule.test_points) * g(rule.trial_points))
    val_swapped = np.sum(swapped.weights * f(swapped.trial_points) *
                         g(swapped.test_points))
    assert np.isclose(val, val_swapped, rtol=1e-13)


def test_singular_rule_rejects_disjoint():
    with pytest.raises(ConfigurationError):
        singular_rule(TRI, TRI, Adjacency.Disjoint, (), 4)
