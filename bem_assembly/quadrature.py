import numpy as np

from bem_assembly.exceptions import ConfigurationError

# ============================================================================
# PERFORMANCE OPTIMIZATION: Cache Gauss-Legendre quadratures
# ============================================================================

_GAUSS_LEGENDRE_CACHE = {}

def _precompute_common_quadratures():
    """
    Pre-compute common Gauss-Legendre quadratures at module import.

    Avoids repeated calls to np.polynomial.legendre.leggauss while rules are
    built for every cell-pair configuration.
    """
    common_orders = [1, 2, 3, 4, 5, 6, 7, 8, 10, 12, 15, 20]
    for n in common_orders:
        points, weights = np.polynomial.legendre.leggauss(n)
        points = 0.5 * (points + 1.0)
        weights = 0.5 * weights
        _GAUSS_LEGENDRE_CACHE[n] = (
            np.asarray(points, dtype=np.float64, order='C'),
            np.asarray(weights, dtype=np.float64, order='C')
        )

# Pre-compute on module import
_precompute_common_quadratures()

# ============================================================================
# Standard quadrature rules
# ============================================================================

def standard_triangle_quad(order: int = 1,
                           ) -> tuple[np.ndarray, np.ndarray]:
    """
    Generate quadrature points and weights for a standard triangle.
    The standard triangle has vertices at (0,0), (1,0), and (0,1).

    Args:
        order (int, optional): Number of points of the rule. Supported orders
            are 1, 3, and 7 (exact for polynomials of degree 1, 2 and 5).
            Default is 1.

    Returns:
        quad_points (np.ndarray): Array of shape (N, 2) representing the
            quadrature points in reference coordinates.
        quad_weights (np.ndarray): Array of shape (N,) representing the
            quadrature weights (sum = 1/2).
    """

    if order == 1:
        quad_points = np.array([[1/3, 1/3]])
        quad_weights = np.array([0.5])

    elif order == 3:
        quad_points = np.array([[1/6, 1/6],
                                [2/3, 1/6],
                                [1/6, 2/3]])
        quad_weights = np.array([1/6, 1/6, 1/6])

    elif order == 7:
        s15 = np.sqrt(15.0)
        a1, b1 = (6 - s15) / 21, (9 + 2 * s15) / 21
        a2, b2 = (6 + s15) / 21, (9 - 2 * s15) / 21
        w1, w2 = (155 - s15) / 1200, (155 + s15) / 1200
        quad_points = np.array([[1/3, 1/3],
                                [b2, a2],
                                [a2, b2],
                                [a2, a2],
                                [b1, a1],
                                [a1, b1],
                                [a1, a1]])
        quad_weights = np.array([9/40, w2, w2, w2, w1, w1, w1]) * 0.5

    else:
        raise ConfigurationError("Unsupported quadrature order. Supported "
                                 "orders are 1, 3, and 7.")

    pts = np.asarray(quad_points, dtype=np.float64, order='C')
    w = np.asarray(quad_weights, dtype=np.float64, order='C')

    return pts, w

def collapsed_triangle_quad(n_leg: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Conical (collapsed Gauss) rule on the standard triangle with n_leg**2
    points, used for regular orders beyond the tabulated rules.

    Args:
        n_leg (int): Number of Gauss-Legendre points per direction.

    Returns:
        tuple[np.ndarray, np.ndarray]: Points (n_leg**2, 2), weights.
    """
    return duffy_triangle_rule(np.array([0.0, 0.0]),
                               np.array([1.0, 0.0]),
                               np.array([0.0, 1.0]),
                               n_leg=n_leg)

def standard_quadrilateral_quad(n_leg: int = 3,
                                ) -> tuple[np.ndarray, np.ndarray]:
    """
    Tensor Gauss-Legendre rule on the unit square [0, 1]^2.

    Args:
        n_leg (int, optional): Number of points per direction. Default is 3.

    Returns:
        quad_points (np.ndarray): Array of shape (n_leg**2, 2).
        quad_weights (np.ndarray): Array of shape (n_leg**2,), sum = 1.
    """
    u, wu = gauss_legendre_1d(n_leg)
    S, T = np.meshgrid(u, u, indexing='ij')
    pts = np.stack([S.ravel(), T.ravel()], axis=1)
    w = np.multiply.outer(wu, wu).ravel()

    pts = np.asarray(pts, dtype=np.float64, order='C')
    w = np.asarray(w, dtype=np.float64, order='C')

    return pts, w

# ============================================================================
# Duffy transformation
# ============================================================================

def duffy_triangle_rule(center: np.ndarray,
                        a: np.ndarray,
                        b: np.ndarray,
                        n_leg: int = 8) -> tuple[np.ndarray, np.ndarray]:
    """
    Quadrature on the triangle (center, a, b) collapsed onto ``center``.

    The unit square is mapped with

        (u, v) -> center + u (a - center) + u v (b - a),

    whose Jacobian u |det(a - center, b - a)| vanishes at ``center`` and
    cancels a 1/r singularity located there.

    Args:
        center (np.ndarray): Singular vertex, shape (2,).
        a (np.ndarray): Second vertex, shape (2,).
        b (np.ndarray): Third vertex, shape (2,).
        n_leg (int, optional): Number of Gauss-Legendre points along one edge
            of the square. Default is 8.

    Returns:
        quad_points (np.ndarray): Array of shape (n_leg**2, 2) in the
            coordinates of the vertices.
        quad_weights (np.ndarray): Array of shape (n_leg**2,).
    """
    u, wu = gauss_legendre_1d(n_leg)
    v, wv = gauss_legendre_1d(n_leg)

    center = np.asarray(center, dtype=np.float64)
    ea = np.asarray(a, dtype=np.float64) - center
    eb = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
    det = abs(ea[0] * eb[1] - ea[1] * eb[0])

    # vectorized without meshgrid
    U = np.multiply.outer(u, np.ones_like(v))
    UV = np.multiply.outer(u, v)
    pts = (center[None, :]
           + U.ravel()[:, None] * ea[None, :]
           + UV.ravel()[:, None] * eb[None, :])
    w = (np.multiply.outer(wu, wv) * u[:, None]).ravel() * det

    pts = np.asarray(pts, dtype=np.float64, order='C')
    w = np.asarray(w, dtype=np.float64, order='C')

    return pts, w

# ============================================================================
# Singular integration: Sauter-Schwab rules on pairs of simplices
# ============================================================================
#
# The rules below integrate over pairs of points (x, y) of the simplex
# {0 <= s2 <= s1 <= 1}, which a cell maps to with
#
#     (s1, s2) -> (1 - s1) P0 + (s1 - s2) P1 + s2 P2.
#
# Each rule splits the pair domain into regions that are mapped from the unit
# 4-cube so that the Jacobian cancels the 1/r singularity on the shared
# entity (S. A. Sauter and C. Schwab, Boundary Element Methods, ch. 5.2).
# Every rule has total weight 1/4.

def _cube_rule(n_leg: int) -> tuple[np.ndarray, ...]:
    """Tensor Gauss-Legendre rule on [0, 1]^4 as (xi, eta1, eta2, eta3, w)."""
    u, wu = gauss_legendre_1d(n_leg)
    grids = np.meshgrid(u, u, u, u, indexing='ij')
    w = np.multiply.outer(np.multiply.outer(wu, wu),
                          np.multiply.outer(wu, wu)).ravel()
    return tuple(g.ravel() for g in grids) + (w,)

def _with_swaps(regions: list) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Add the region with x and y exchanged for every region."""
    xs, ys, ws = [], [], []
    for x, y, w in regions:
        xs += [x, y]
        ys += [y, x]
        ws += [w, w]
    return np.concatenate(xs), np.concatenate(ys), np.concatenate(ws)

def _pair_points(s1: np.ndarray, s2: np.ndarray) -> np.ndarray:
    return np.stack([s1, s2], axis=1)

def _join(regions: list) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    xs, ys, ws = zip(*regions)
    return np.concatenate(xs), np.concatenate(ys), np.concatenate(ws)

def identical_simplex_rule(n_leg: int,
                           ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sauter-Schwab rule for a simplex paired with itself.

    Six regions, three mapped from the cube and three obtained by exchanging
    x and y.

    Args:
        n_leg (int): Gauss-Legendre points per cube direction.

    Returns:
        tuple[np.ndarray, np.ndarray, np.ndarray]: Points x (6 n^4, 2),
        points y (6 n^4, 2) and weights (6 n^4,).
    """
    xi, e1, e2, e3, w = _cube_rule(n_leg)
    w = w * xi ** 3 * e1 ** 2 * e2

    regions = [
        (_pair_points(xi, xi * (1 - e1 + e1 * e2)),
         _pair_points(xi * (1 - e1 * e2 * e3), xi * (1 - e1)), w),
        (_pair_points(xi, xi * e1 * (1 - e2 + e2 * e3)),
         _pair_points(xi * (1 - e1 * e2), xi * e1 * (1 - e2)), w),
        (_pair_points(xi * (1 - e1 * e2 * e3), xi * e1 * (1 - e2 * e3)),
         _pair_points(xi, xi * e1 * (1 - e2)), w),
    ]
    return _with_swaps(regions)

def edge_simplex_rule(n_leg: int,
                      ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sauter-Schwab rule for two simplices sharing the edge P0 P1, with equal
    edge parameters on both sides denoting the same point.

    Args:
        n_leg (int): Gauss-Legendre points per cube direction.

    Returns:
        tuple[np.ndarray, np.ndarray, np.ndarray]: Points x (5 n^4, 2),
        points y (5 n^4, 2) and weights (5 n^4,).
    """
    xi, e1, e2, e3, w = _cube_rule(n_leg)
    w1 = w * xi ** 3 * e1 ** 2
    w2 = w1 * e2

    regions = [
        (_pair_points(xi, xi * e1 * e3),
         _pair_points(xi * (1 - e1 * e2), xi * e1 * (1 - e2)), w1),
        (_pair_points(xi, xi * e1),
         _pair_points(xi * (1 - e1 * e2 * e3), xi * e1 * e2 * (1 - e3)), w2),
        (_pair_points(xi * (1 - e1 * e2), xi * e1 * (1 - e2)),
         _pair_points(xi, xi * e1 * e2 * e3), w2),
        (_pair_points(xi * (1 - e1 * e2 * e3), xi * e1 * e2 * (1 - e3)),
         _pair_points(xi, xi * e1), w2),
        (_pair_points(xi * (1 - e1 * e2 * e3), xi * e1 * (1 - e2 * e3)),
         _pair_points(xi, xi * e1 * e2), w2),
    ]
    return _join(regions)

def vertex_simplex_rule(n_leg: int,
                        ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sauter-Schwab rule for two simplices sharing the vertex P0.

    Args:
        n_leg (int): Gauss-Legendre points per cube direction.

    Returns:
        tuple[np.ndarray, np.ndarray, np.ndarray]: Points x (2 n^4, 2),
        points y (2 n^4, 2) and weights (2 n^4,).
    """
    xi, e1, e2, e3, w = _cube_rule(n_leg)
    w = w * xi ** 3 * e2
    x = np.stack([xi, xi * e1], axis=1)
    y = np.stack([xi * e2, xi * e2 * e3], axis=1)
    return _with_swaps([(x, y, w)])

def separate_simplex_rule(n_leg: int,
                          ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Collapsed Gauss rule on each of two simplices that do not touch."""
    xi, e1, e2, e3, w = _cube_rule(n_leg)
    x = np.stack([xi, xi * e1], axis=1)
    y = np.stack([e2, e2 * e3], axis=1)
    return x, y, w * xi * e2

# ============================================================================
# Helper functions
# ============================================================================

def gauss_legendre_1d(n: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Compute the Gauss-Legendre quadrature points and weights on [0, 1].

    Results are cached for performance. Common orders are pre-computed
    at module import time.

    Args:
        n (int): Number of quadrature points.

    Returns:
        points (np.ndarray): Array of shape (n,) representing the quadrature
            points on [0, 1].
        weights (np.ndarray): Array of shape (n,) representing the quadrature
            weights (sum(weights) = 1).
    """

    if n < 1:
        raise ConfigurationError("Number of quadrature points must be at "
                                 "least 1.")

    if n in _GAUSS_LEGENDRE_CACHE:
        points, weights = _GAUSS_LEGENDRE_CACHE[n]
        # Return copies to prevent accidental mutation
        return points.copy(), weights.copy()

    points, weights = np.polynomial.legendre.leggauss(n)
    points = 0.5 * (points + 1.0)
    weights = 0.5 * weights

    _GAUSS_LEGENDRE_CACHE[n] = (
        np.asarray(points, dtype=np.float64, order='C'),
        np.asarray(weights, dtype=np.float64, order='C')
    )

    return points.copy(), weights.copy()

