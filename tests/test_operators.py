"""
Tests for the (PDE, operator) dispatch and the assembler classes.
"""

import numpy as np
import pytest

from bem_assembly import (AssemblyOptions, BoundaryOperator, FunctionSpace,
                          HelmholtzHypersingularAssembler,
                          LaplaceDoubleLayerAssembler, PDEType, assemble,
                          assemble_dense, create_assembler,
                          hypersingular_assemble, operator_definition)
from bem_assembly.exceptions import (ConfigurationError,
                                     DimensionMismatchError,
                                     InvalidOperatorError)
from bem_assembly.kernels import (DoubleLayerKernel, HelmholtzGreen,
                                  LaplaceGreen)


@pytest.mark.parametrize("operator", [BoundaryOperator.ElectricField,
                                      BoundaryOperator.MagneticField])
@pytest.mark.parametrize("pde, k", [(PDEType.Laplace, None),
                                    (PDEType.Helmholtz, 1.0)])
def test_field_operators_are_invalid(operator, pde, k, mixed_grid, p1):
    space = FunctionSpace(mixed_grid, p1)
    output = np.zeros((9, 9), dtype=complex)
    with pytest.raises(InvalidOperatorError):
        assemble_dense(output, operator, pde, space, space, wavenumber=k)
    with pytest.raises(InvalidOperatorError):
        create_assembler(pde, operator, k)
    # rejected before the wavenumber is looked at
    with pytest.raises(InvalidOperatorError):
        operator_definition(pde, operator)
    assert np.all(output == 0.0)


def test_wavenumber_rules():
    with pytest.raises(ConfigurationError):
        create_assembler(PDEType.Helmholtz, BoundaryOperator.SingleLayer)
    with pytest.raises(ConfigurationError):
        create_assembler(PDEType.Laplace, BoundaryOperator.SingleLayer, 1.0)
    with pytest.raises(ConfigurationError):
        operator_definition(PDEType.Laplace, BoundaryOperator.DoubleLayer,
                            2.0)


def test_operator_definitions():
    d = operator_definition(PDEType.Laplace, BoundaryOperator.DoubleLayer)
    assert isinstance(d.kernel, DoubleLayerKernel)
    assert (d.needs_trial_normal, d.needs_test_normal) == (True, False)
    assert d.integrand == "scalar"

    d = operator_definition(PDEType.Laplace,
                            BoundaryOperator.AdjointDoubleLayer)
    assert (d.needs_trial_normal, d.needs_test_normal) == (False, True)

    d = operator_definition(PDEType.Helmholtz, BoundaryOperator.Hypersingular,
                            2.5)
    assert isinstance(d.kernel, HelmholtzGreen)
    assert d.kernel.wavenumber == 2.5
    assert d.integrand == "hypersingular"


@pytest.mark.parametrize("pde, k", [(PDEType.Laplace, None),
                                    (PDEType.Helmholtz, 1.5)])
def test_hypersingular_definition_has_no_normal_flags(pde, k):
    d = operator_definition(pde, BoundaryOperator.Hypersingular, k)
    assert (d.needs_trial_normal, d.needs_test_normal) == (False, False)


def test_factory_returns_assembler_classes():
    a = create_assembler(PDEType.Laplace, BoundaryOperator.DoubleLayer)
    assert isinstance(a, LaplaceDoubleLayerAssembler)
    assert a.dtype == np.float64

    a = create_assembler(PDEType.Helmholtz, BoundaryOperator.Hypersingular,
                         2.0, precision="single", batch_size=16)
    assert isinstance(a, HelmholtzHypersingularAssembler)
    assert a.dtype == np.complex64
    assert a.options.batch_size == 16
    assert "k=2.0" in repr(a)


def test_batch_size_overrides_options():
    options = AssemblyOptions(batch_size=64, n_workers=2)
    a = create_assembler(PDEType.Laplace, BoundaryOperator.SingleLayer,
                         batch_size=3, options=options)
    assert a.options.batch_size == 3
    assert a.options.n_workers == 2
    assert options.batch_size == 64


def test_invalid_precision():
    with pytest.raises(ConfigurationError):
        create_assembler(PDEType.Laplace, BoundaryOperator.SingleLayer,
                         precision="half")


@pytest.mark.parametrize("pde, k", [(PDEType.Laplace, None),
                                    (PDEType.Helmholtz, 1.5)])
def test_dispatch_matches_direct_assembly(pde, k, mixed_grid, p1):
    space = FunctionSpace(mixed_grid, p1)
    green = LaplaceGreen() if k is None else HelmholtzGreen(k)
    dtype = float if k is None else complex

    direct = np.zeros((9, 9), dtype=dtype)
    assemble(direct, DoubleLayerKernel(green), True, False, space, space)
    dispatched = np.zeros((9, 9), dtype=dtype)
    assemble_dense(dispatched, BoundaryOperator.DoubleLayer, pde, space,
                   space, wavenumber=k)
    from_class = create_assembler(pde, BoundaryOperator.DoubleLayer,
                                  k).assemble_dense(space, space)
    np.testing.assert_array_equal(dispatched, direct)
    np.testing.assert_array_equal(from_class, direct)

    direct = np.zeros((9, 9), dtype=dtype)
    hypersingular_assemble(direct, green, space, space)
    dispatched = np.zeros((9, 9), dtype=dtype)
    assemble_dense(dispatched, BoundaryOperator.Hypersingular, pde, space,
                   space, wavenumber=k)
    np.testing.assert_array_equal(dispatched, direct)


def test_single_precision_close_to_double(mixed_grid, p1, make_assembler):
    space = FunctionSpace(mixed_grid, p1)
    single = make_assembler(PDEType.Helmholtz, BoundaryOperator.SingleLayer,
                            precision="single").assemble_dense(space, space)
    double = make_assembler(PDEType.Helmholtz,
                            BoundaryOperator.SingleLayer).assemble_dense(
                                space, space)
    assert single.dtype == np.complex64
    np.testing.assert_allclose(single, double, rtol=1e-4, atol=1e-6)


def test_assembler_shape_check(mixed_grid, dp0, p1, make_assembler):
    a = make_assembler(PDEType.Laplace, BoundaryOperator.SingleLayer)
    trial = FunctionSpace(mixed_grid, dp0)
    test = FunctionSpace(mixed_grid, p1)
    with pytest.raises(DimensionMismatchError):
        a.assemble_into_dense(np.zeros((6, 9)), trial, test)
    assert a.assemble_dense(trial, test).shape == (9, 6)
