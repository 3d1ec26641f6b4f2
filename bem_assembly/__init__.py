"""
Assembly of boundary element matrices for the Laplace and Helmholtz equations
"""

__version__ = "0.1.0"
from .exceptions import (BEMAssemblyError, ConfigurationError,
                         InvalidOperatorError, DimensionMismatchError,
                         NumericalDegeneracyError)
from .elements import (ReferenceCellType, Continuity,
                       LagrangeElement, LagrangeElementFamily)
from .grid import MixedGrid, SingleElementGrid, FlatTriangleGrid, GridBuilder
from .shapes import screen_grid, mixed_screen_grid, box_grid
from .function_space import FunctionSpace
from .kernels import (LaplaceGreen, HelmholtzGreen,
                      SingleLayerKernel, DoubleLayerKernel,
                      AdjointDoubleLayerKernel)
from .options import AssemblyOptions
from .singular import Adjacency, classify_adjacency
from .matrix_assembly import (SparseAccumulator, assemble,
                              hypersingular_assemble)
from .operators import (BoundaryOperator, PDEType, assemble_dense,
                        create_assembler, operator_definition,
                        LaplaceSingleLayerAssembler,
                        LaplaceDoubleLayerAssembler,
                        LaplaceAdjointDoubleLayerAssembler,
                        LaplaceHypersingularAssembler,
                        HelmholtzSingleLayerAssembler,
                        HelmholtzDoubleLayerAssembler,
                        HelmholtzAdjointDoubleLayerAssembler,
                        HelmholtzHypersingularAssembler)
from .distributed import (partition_grid, DofReport, GlobalNumbering,
                          merge_partitioned, assemble_partitioned_singular)

__all__ = ["BEMAssemblyError", "ConfigurationError", "InvalidOperatorError",
           "DimensionMismatchError", "NumericalDegeneracyError",
           "ReferenceCellType", "Continuity", "LagrangeElement",
           "LagrangeElementFamily",
           "MixedGrid", "SingleElementGrid", "FlatTriangleGrid", "GridBuilder",
           "screen_grid", "mixed_screen_grid", "box_grid",
           "FunctionSpace",
           "LaplaceGreen", "HelmholtzGreen", "SingleLayerKernel",
           "DoubleLayerKernel", "AdjointDoubleLayerKernel",
           "AssemblyOptions", "Adjacency", "classify_adjacency",
           "SparseAccumulator", "assemble", "hypersingular_assemble",
           "BoundaryOperator", "PDEType", "assemble_dense",
           "create_assembler", "operator_definition",
           "LaplaceSingleLayerAssembler", "LaplaceDoubleLayerAssembler",
           "LaplaceAdjointDoubleLayerAssembler",
           "LaplaceHypersingularAssembler",
           "HelmholtzSingleLayerAssembler", "HelmholtzDoubleLayerAssembler",
           "HelmholtzAdjointDoubleLayerAssembler",
           "HelmholtzHypersingularAssembler",
           "partition_grid", "DofReport", "GlobalNumbering",
           "merge_partitioned", "assemble_partitioned_singular"]
