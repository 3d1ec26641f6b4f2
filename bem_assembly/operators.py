"""
Dispatch from (PDE, operator) pairs to kernels and assembly routines.

The combinations are a small closed table: Laplace and Helmholtz each define
the single layer, double layer, adjoint double layer and hypersingular
operators. The electric and magnetic field operators act on vector-valued
(div-conforming) spaces and are not defined for the scalar PDEs.
"""

import dataclasses
import logging
from enum import Enum
from typing import NamedTuple

import numpy as np
import scipy.sparse as sp

from bem_assembly.exceptions import ConfigurationError, InvalidOperatorError
from bem_assembly.function_space import FunctionSpace
from bem_assembly.kernels import (AdjointDoubleLayerKernel, BoundaryKernel,
                                  DoubleLayerKernel, GreenFunction,
                                  HelmholtzGreen, LaplaceGreen,
                                  SingleLayerKernel)
from bem_assembly.matrix_assembly import (SparseAccumulator, assemble,
                                          hypersingular_assemble)
from bem_assembly.options import AssemblyOptions

logger = logging.getLogger(__name__)


class BoundaryOperator(Enum):
    SingleLayer = "single_layer"
    DoubleLayer = "double_layer"
    AdjointDoubleLayer = "adjoint_double_layer"
    Hypersingular = "hypersingular"
    ElectricField = "electric_field"
    MagneticField = "magnetic_field"


class PDEType(Enum):
    Laplace = "laplace"
    Helmholtz = "helmholtz"


class OperatorDefinition(NamedTuple):
    """
    Resolved operator.

    Attributes:
        kernel (BoundaryKernel | GreenFunction): Pointwise kernel for the
            scalar integrand, or the Green's function for the hypersingular
            integrand.
        needs_trial_normal (bool): Kernel uses normals on the trial cell.
            Always False for the hypersingular integrand, which reads the
            normals of both cells itself.
        needs_test_normal (bool): Kernel uses normals on the test cell.
        integrand (str): "scalar" or "hypersingular".
    """
    kernel: BoundaryKernel | GreenFunction
    needs_trial_normal: bool
    needs_test_normal: bool
    integrand: str


_SCALAR_KERNELS = {
    BoundaryOperator.SingleLayer: SingleLayerKernel,
    BoundaryOperator.DoubleLayer: DoubleLayerKernel,
    BoundaryOperator.AdjointDoubleLayer: AdjointDoubleLayerKernel,
}

_PRECISIONS = {
    ("double", False): np.float64,
    ("double", True): np.complex128,
    ("single", False): np.float32,
    ("single", True): np.complex64,
}


def green_function(pde: PDEType,
                   wavenumber: float | None = None) -> GreenFunction:
    """Green's function of a PDE."""
    if pde is PDEType.Laplace:
        if wavenumber is not None:
            raise ConfigurationError("The Laplace equation has no "
                                     "wavenumber.")
        return LaplaceGreen()
    if pde is PDEType.Helmholtz:
        if wavenumber is None:
            raise ConfigurationError("Helmholtz operators need a "
                                     "wavenumber.")
        return HelmholtzGreen(wavenumber)
    raise ConfigurationError(f"Unsupported PDE {pde!r}.")


def operator_definition(pde: PDEType,
                        operator: BoundaryOperator,
                        wavenumber: float | None = None,
                        ) -> OperatorDefinition:
    """
    Resolve a (PDE, operator) pair.

    Raises:
        InvalidOperatorError: The operator is not defined for the PDE.
        ConfigurationError: Missing or unexpected wavenumber.
    """
    if not isinstance(pde, PDEType):
        raise ConfigurationError(f"Unsupported PDE {pde!r}.")
    if operator not in _SCALAR_KERNELS and \
       operator is not BoundaryOperator.Hypersingular:
        raise InvalidOperatorError(f"{getattr(operator, 'name', operator)} "
                                   f"is not defined for the {pde.name} "
                                   f"equation.")

    green = green_function(pde, wavenumber)
    if operator is BoundaryOperator.Hypersingular:
        definition = OperatorDefinition(green, False, False,
                                        "hypersingular")
    else:
        kernel = _SCALAR_KERNELS[operator](green)
        definition = OperatorDefinition(kernel,
                                        kernel.needs_trial_normal,
                                        kernel.needs_test_normal,
                                        "scalar")
    logger.debug("%s %s resolved to %r", pde.name, operator.name,
                 definition.kernel)
    return definition


def _dispatch(output,
              definition: OperatorDefinition,
              trial_space: FunctionSpace,
              test_space: FunctionSpace,
              options: AssemblyOptions | None,
              pairs: str = "all",
              test_cells: np.ndarray | None = None) -> None:
    if definition.integrand == "hypersingular":
        hypersingular_assemble(output, definition.kernel, trial_space,
                               test_space, options=options, pairs=pairs,
                               test_cells=test_cells)
    else:
        assemble(output, definition.kernel, definition.needs_trial_normal,
                 definition.needs_test_normal, trial_space, test_space,
                 options=options, pairs=pairs, test_cells=test_cells)


def assemble_dense(output: np.ndarray,
                   operator: BoundaryOperator,
                   pde: PDEType,
                   trial_space: FunctionSpace,
                   test_space: FunctionSpace,
                   wavenumber: float | None = None,
                   options: AssemblyOptions | None = None) -> None:
    """
    Assemble a boundary operator into a dense array.

    Args:
        output (np.ndarray): Array of shape (test_space.global_size(),
            trial_space.global_size()); contributions are added to it.
        operator (BoundaryOperator): Operator kind.
        pde (PDEType): PDE kind.
        trial_space (FunctionSpace): Trial space.
        test_space (FunctionSpace): Test space.
        wavenumber (float | None): Required for Helmholtz.
        options (AssemblyOptions | None): Assembly options.

    Raises:
        InvalidOperatorError: The operator is not defined for the PDE.
        DimensionMismatchError: Output shape does not match the spaces.
    """
    definition = operator_definition(pde, operator, wavenumber)
    _dispatch(output, definition, trial_space, test_space, options)


class BoundaryAssembler:
    """
    Assembler for one (PDE, operator) pair.

    Attributes:
        pde (PDEType): PDE kind, set by subclasses.
        operator (BoundaryOperator): Operator kind, set by subclasses.
        options (AssemblyOptions): Options used for every assembly.
    """
    pde: PDEType = None
    operator: BoundaryOperator = None

    def __init__(self,
                 wavenumber: float | None = None,
                 batch_size: int | None = None,
                 precision: str = "double",
                 options: AssemblyOptions | None = None):
        """
        Args:
            wavenumber (float | None): Wavenumber for Helmholtz operators.
            batch_size (int | None): Cell pairs per kernel evaluation.
                Overrides ``options.batch_size`` when given.
            precision (str): "double" or "single".
            options (AssemblyOptions | None): Quadrature, batching and
                threading options.
        """
        if precision not in ("double", "single"):
            raise ConfigurationError(f"precision must be 'double' or "
                                     f"'single', got {precision!r}.")
        options = AssemblyOptions() if options is None else options
        if batch_size is not None:
            options = dataclasses.replace(options, batch_size=batch_size)

        self.definition = operator_definition(self.pde, self.operator,
                                              wavenumber)
        self.wavenumber = wavenumber
        self.precision = precision
        self.options = options

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_PRECISIONS[(self.precision,
                                     self.definition.kernel.is_complex)])

    def assemble_into_dense(self,
                            output: np.ndarray,
                            trial_space: FunctionSpace,
                            test_space: FunctionSpace) -> None:
        """Add all cell-pair contributions to ``output``."""
        _dispatch(output, self.definition, trial_space, test_space,
                  self.options)

    def assemble_nonsingular_into_dense(self,
                                        output: np.ndarray,
                                        trial_space: FunctionSpace,
                                        test_space: FunctionSpace) -> None:
        """Add the contributions of disjoint cell pairs to ``output``."""
        _dispatch(output, self.definition, trial_space, test_space,
                  self.options, pairs="nonsingular")

    def assemble_singular_into_csr(self,
                                   trial_space: FunctionSpace,
                                   test_space: FunctionSpace,
                                   test_cells: np.ndarray | None = None,
                                   ) -> sp.csr_matrix:
        """
        Contributions of touching and identical cell pairs as a sparse
        matrix.

        Args:
            trial_space (FunctionSpace): Trial space.
            test_space (FunctionSpace): Test space.
            test_cells (np.ndarray | None): Restrict to these test cells.

        Returns:
            scipy.sparse.csr_matrix: Matrix of shape
            (test_space.global_size(), trial_space.global_size()).
        """
        acc = SparseAccumulator((test_space.global_size(),
                                 trial_space.global_size()), self.dtype)
        _dispatch(acc, self.definition, trial_space, test_space,
                  self.options, pairs="singular", test_cells=test_cells)
        return acc.to_csr()

    def assemble_dense(self,
                       trial_space: FunctionSpace,
                       test_space: FunctionSpace) -> np.ndarray:
        """Allocate and assemble a dense matrix."""
        output = np.zeros((test_space.global_size(),
                           trial_space.global_size()), dtype=self.dtype)
        self.assemble_into_dense(output, trial_space, test_space)
        return output

    def __repr__(self) -> str:
        k = "" if self.wavenumber is None else f"k={self.wavenumber}, "
        return (f"{type(self).__name__}({k}precision={self.precision!r}, "
                f"batch_size={self.options.batch_size})")


class _LaplaceAssembler(BoundaryAssembler):
    pde = PDEType.Laplace

    def __init__(self,
                 batch_size: int | None = None,
                 precision: str = "double",
                 options: AssemblyOptions | None = None):
        super().__init__(None, batch_size=batch_size, precision=precision,
                         options=options)


class _HelmholtzAssembler(BoundaryAssembler):
    pde = PDEType.Helmholtz

    def __init__(self,
                 wavenumber: float,
                 batch_size: int | None = None,
                 precision: str = "double",
                 options: AssemblyOptions | None = None):
        super().__init__(wavenumber, batch_size=batch_size,
                         precision=precision, options=options)


class LaplaceSingleLayerAssembler(_LaplaceAssembler):
    operator = BoundaryOperator.SingleLayer


class LaplaceDoubleLayerAssembler(_LaplaceAssembler):
    operator = BoundaryOperator.DoubleLayer


class LaplaceAdjointDoubleLayerAssembler(_LaplaceAssembler):
    operator = BoundaryOperator.AdjointDoubleLayer


class LaplaceHypersingularAssembler(_LaplaceAssembler):
    operator = BoundaryOperator.Hypersingular


class HelmholtzSingleLayerAssembler(_HelmholtzAssembler):
    operator = BoundaryOperator.SingleLayer


class HelmholtzDoubleLayerAssembler(_HelmholtzAssembler):
    operator = BoundaryOperator.DoubleLayer


class HelmholtzAdjointDoubleLayerAssembler(_HelmholtzAssembler):
    operator = BoundaryOperator.AdjointDoubleLayer


class HelmholtzHypersingularAssembler(_HelmholtzAssembler):
    operator = BoundaryOperator.Hypersingular


_ASSEMBLERS = {(cls.pde, cls.operator): cls for cls in (
    LaplaceSingleLayerAssembler,
    LaplaceDoubleLayerAssembler,
    LaplaceAdjointDoubleLayerAssembler,
    LaplaceHypersingularAssembler,
    HelmholtzSingleLayerAssembler,
    HelmholtzDoubleLayerAssembler,
    HelmholtzAdjointDoubleLayerAssembler,
    HelmholtzHypersingularAssembler,
)}


def create_assembler(pde: PDEType,
                     operator: BoundaryOperator,
                     wavenumber: float | None = None,
                     **kwargs) -> BoundaryAssembler:
    """
    Create the assembler of a (PDE, operator) pair.

    Args:
        pde (PDEType): PDE kind.
        operator (BoundaryOperator): Operator kind.
        wavenumber (float | None): Required for Helmholtz, rejected for
            Laplace.
        **kwargs: ``batch_size``, ``precision`` and ``options``.

    Raises:
        InvalidOperatorError: The operator is not defined for the PDE.
    """
    try:
        cls = _ASSEMBLERS[(pde, operator)]
    except KeyError:
        raise InvalidOperatorError(f"No assembler for "
                                   f"{getattr(operator, 'name', operator)} "
                                   f"and {getattr(pde, 'name', pde)}.") \
            from None
    if pde is PDEType.Helmholtz:
        if wavenumber is None:
            raise ConfigurationError("Helmholtz operators need a "
                                     "wavenumber.")
        return cls(wavenumber, **kwargs)
    if wavenumber is not None:
        raise ConfigurationError("The Laplace equation has no wavenumber.")
    return cls(**kwargs)
