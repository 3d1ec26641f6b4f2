"""
Simple grids for tests and drivers.
"""

import warnings

import numpy as np

from bem_assembly.elements import ReferenceCellType
from bem_assembly.exceptions import ConfigurationError
from bem_assembly.grid import (FlatTriangleGrid, GridBuilder, MixedGrid,
                               SingleElementGrid)


def screen_grid(n: int,
                cell_type: ReferenceCellType = ReferenceCellType.Triangle,
                size: float = 1.0,
                ) -> SingleElementGrid:
    """
    Square screen [0, size]^2 in the plane z = 0 split into n x n squares.

    Args:
        n (int): Number of squares along each side.
        cell_type (ReferenceCellType, optional): Quadrilaterals keep each
            square as one cell; triangles split it along its diagonal.
        size (float, optional): Side length of the screen.

    Returns:
        SingleElementGrid: The screen grid, with normals along +z.
    """
    if n < 1:
        raise ConfigurationError("n must be at least 1.")
    xs = np.linspace(0.0, size, n + 1)
    X, Y = np.meshgrid(xs, xs, indexing='xy')
    points = np.stack([X.ravel(), Y.ravel(), np.zeros(X.size)], axis=1)

    cells = []
    for j in range(n):
        for i in range(n):
            p00 = j * (n + 1) + i
            p10, p01, p11 = p00 + 1, p00 + n + 1, p00 + n + 2
            if cell_type is ReferenceCellType.Quadrilateral:
                cells.append([p00, p10, p01, p11])
            else:
                cells.append([p00, p10, p11])
                cells.append([p00, p11, p01])

    if cell_type is ReferenceCellType.Quadrilateral:
        return SingleElementGrid(points, np.array(cells), cell_type)
    return FlatTriangleGrid(points, np.array(cells))


def mixed_screen_grid() -> MixedGrid:
    """
    Unit screen with nine points, two quadrilaterals on the left half and
    four triangles on the right half.
    """
    b = GridBuilder()
    for i, (x, y) in enumerate([(0.0, 0.0), (0.5, 0.0), (1.0, 0.0),
                                (0.0, 0.5), (0.5, 0.5), (1.0, 0.5),
                                (0.0, 1.0), (0.5, 1.0), (1.0, 1.0)]):
        b.add_point(i, [x, y, 0.0])
    quad = ReferenceCellType.Quadrilateral
    tri = ReferenceCellType.Triangle
    b.add_cell(0, ([0, 1, 3, 4], quad))
    b.add_cell(1, ([3, 4, 6, 7], quad))
    b.add_cell(2, ([1, 2, 5], tri))
    b.add_cell(3, ([1, 5, 4], tri))
    b.add_cell(4, ([4, 5, 8], tri))
    b.add_cell(5, ([4, 8, 7], tri))
    return b.create_grid()


def box_grid(center: np.ndarray,
             size: np.ndarray,
             divisions: int | None = None,
             ) -> FlatTriangleGrid:
    """
    Create a closed triangulated box centered at 'center' with given 'size'.

    Args:
        center (np.ndarray): Center of the box (3,).
        size (np.ndarray): Size of the box along each axis (3,).
        divisions (int, optional): Number of subdivisions along each edge
            of the initial twelve triangles.

    Returns:
        FlatTriangleGrid: Box surface with outward normals.
    """
    c = np.asarray(center, dtype=np.float64).reshape(3)
    if np.any(np.asarray(size) <= 0):
        raise ConfigurationError("Size dimensions must be positive.")
    if divisions is not None and not isinstance(divisions, int):
        raise ConfigurationError("Divisions must be an integer.")

    h = 0.5 * np.asarray(size, dtype=np.float64)
    signs = np.array([[-1, -1, -1], [1, -1, -1], [1, 1, -1], [-1, 1, -1],
                      [-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1]])
    v = c + signs * h

    elements = np.array([[0, 2, 1], [0, 3, 2], [4, 5, 6], [4, 6, 7],
                         [0, 1, 5], [0, 5, 4], [2, 3, 7], [2, 7, 6],
                         [0, 7, 3], [0, 4, 7], [1, 2, 6], [1, 6, 5]])

    if divisions is not None:
        v, elements = subdivide_triangles(v, elements, divisions)

    return FlatTriangleGrid(v, elements)


def subdivide_triangles(vertices: np.ndarray,
                        elements: np.ndarray,
                        divisions: int = 1,
                        ) -> tuple[np.ndarray, np.ndarray]:
    """
    Subdivide triangular elements into divisions**2 smaller triangles with the
    orientation of their parent.

    Args:
        vertices (np.ndarray): Array of shape (N, 3) containing vertex
            coordinates.
        elements (np.ndarray): Array of shape (M, 3) containing element
            connectivity.
        divisions (int): Number of divisions per edge. Values below 1 are
            treated as 1 with a warning.

    Returns:
        new_vertices (np.ndarray): Array of shape (N_new, 3).
        new_elements (np.ndarray): Array of shape (M_new, 3).
    """
    if divisions < 1:
        warnings.warn(f"divisions={divisions} is below 1; the grid is "
                      f"returned unchanged.")
        divisions = 1

    if divisions == 1:
        return vertices.copy(), elements.copy()

    vertex_dict = {}
    vertex_list = []
    new_elements_list = []

    for elem in elements:
        v0, v1, v2 = vertices[elem[0]], vertices[elem[1]], vertices[elem[2]]

        subdiv_indices = np.zeros((divisions + 1, divisions + 1), dtype=int)
        for i in range(divisions + 1):
            for j in range(divisions + 1 - i):
                u = i / divisions
                v = j / divisions
                point = (1 - u - v) * v0 + u * v1 + v * v2
                subdiv_indices[i, j] = get_vertex_index(point,
                                                        vertex_dict,
                                                        vertex_list)

        for i in range(divisions):
            for j in range(divisions - i):
                new_elements_list.append([subdiv_indices[i, j],
                                          subdiv_indices[i + 1, j],
                                          subdiv_indices[i, j + 1]])
                if j < divisions - i - 1:
                    new_elements_list.append([subdiv_indices[i + 1, j],
                                              subdiv_indices[i + 1, j + 1],
                                              subdiv_indices[i, j + 1]])

    return (np.array(vertex_list, dtype=float),
            np.array(new_elements_list, dtype=int))


def get_vertex_index(coord, vertex_dict, vertex_list):
    """Get or create vertex index for given coordinates."""
    # rounded key so points shared by neighbouring parents coincide
    key = tuple(np.round(coord, 12) + 0.0)
    if key not in vertex_dict:
        vertex_dict[key] = len(vertex_list)
        vertex_list.append(coord)
    return vertex_dict[key]
