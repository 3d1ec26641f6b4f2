"""Pytest configuration and fixtures."""
import pytest

from bem_assembly import (Continuity, GridBuilder, LagrangeElementFamily,
                          PDEType, ReferenceCellType, create_assembler,
                          mixed_screen_grid)

WAVENUMBER = 3.0


@pytest.fixture
def mixed_grid():
    """Nine points, quadrilaterals 0-1 on the left, triangles 2-5 on the
    right."""
    return mixed_screen_grid()


@pytest.fixture
def quad_grid():
    """The two quadrilaterals of the mixed grid on their own."""
    b = GridBuilder(ReferenceCellType.Quadrilateral)
    b.add_point(0, [0.0, 0.0, 0.0])
    b.add_point(1, [0.5, 0.0, 0.0])
    b.add_point(3, [0.0, 0.5, 0.0])
    b.add_point(4, [0.5, 0.5, 0.0])
    b.add_point(6, [0.0, 1.0, 0.0])
    b.add_point(7, [0.5, 1.0, 0.0])
    b.add_cell(0, [0, 1, 3, 4])
    b.add_cell(1, [3, 4, 6, 7])
    return b.create_grid()


@pytest.fixture
def tri_grid():
    """The four triangles of the mixed grid on their own."""
    b = GridBuilder(ReferenceCellType.Triangle)
    b.add_point(1, [0.5, 0.0, 0.0])
    b.add_point(2, [1.0, 0.0, 0.0])
    b.add_point(4, [0.5, 0.5, 0.0])
    b.add_point(5, [1.0, 0.5, 0.0])
    b.add_point(7, [0.5, 1.0, 0.0])
    b.add_point(8, [1.0, 1.0, 0.0])
    b.add_cell(2, [1, 2, 5])
    b.add_cell(3, [1, 5, 4])
    b.add_cell(4, [4, 5, 8])
    b.add_cell(5, [4, 8, 7])
    return b.create_grid()


@pytest.fixture
def dp0():
    return LagrangeElementFamily(0, Continuity.Discontinuous)


@pytest.fixture
def dp1():
    return LagrangeElementFamily(1, Continuity.Discontinuous)


@pytest.fixture
def p1():
    return LagrangeElementFamily(1, Continuity.Continuous)


def _make_assembler(pde, operator, **kwargs):
    wavenumber = WAVENUMBER if pde is PDEType.Helmholtz else None
    return create_assembler(pde, operator, wavenumber, **kwargs)


@pytest.fixture
def make_assembler():
    """Factory of (PDE, operator) assemblers, with k = 3 for Helmholtz."""
    return _make_assembler
