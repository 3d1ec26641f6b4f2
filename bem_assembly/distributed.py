"""
Partitioned assembly with an explicit two-phase dof reconciliation.

Each partition owns a contiguous block of cells and keeps a halo of
neighbouring ghost cells, so that every touching pair of an owned test cell
is visible locally. Partitions assemble their owned test cells into local
sparse matrices numbered by their own function space.

Phase 1: every partition reports the entity key of each of its local dofs.
Phase 2: the reports are merged into one global numbering of entity keys,
sorted so that it does not depend on the order the reports arrive in.
Only then are local matrices mapped to global indices and summed.
"""

import logging
from typing import NamedTuple, Sequence

import numpy as np
import scipy.sparse as sp

from bem_assembly.elements import LagrangeElementFamily
from bem_assembly.exceptions import (ConfigurationError,
                                     DimensionMismatchError)
from bem_assembly.function_space import FunctionSpace
from bem_assembly.grid import MixedGrid

logger = logging.getLogger(__name__)


class GridPartition(NamedTuple):
    """
    Cells held by one partition.

    Attributes:
        rank (int): Partition index.
        grid (MixedGrid): Sub-grid of owned and ghost cells, keeping the
            point and cell ids of the full grid.
        owned (np.ndarray): Boolean mask over the cells of ``grid``.
    """
    rank: int
    grid: MixedGrid
    owned: np.ndarray

    @property
    def owned_cells(self) -> np.ndarray:
        return np.flatnonzero(self.owned)


def partition_grid(grid: MixedGrid,
                   n_parts: int,
                   ghost_layers: int | None = 1) -> list[GridPartition]:
    """
    Split a grid into partitions of contiguous owned cells.

    Args:
        grid (MixedGrid): Grid to split.
        n_parts (int): Number of partitions.
        ghost_layers (int | None): Rings of vertex neighbours added to each
            partition as ghost cells; None adds every cell.

    Returns:
        list[GridPartition]: One partition per rank.
    """
    if n_parts < 1 or n_parts > grid.num_cells:
        raise ConfigurationError(f"Cannot split {grid.num_cells} cells into "
                                 f"{n_parts} partitions.")
    if ghost_layers is not None and ghost_layers < 0:
        raise ConfigurationError("ghost_layers must be non-negative.")

    partitions = []
    for rank, owned in enumerate(np.array_split(np.arange(grid.num_cells),
                                                n_parts)):
        if ghost_layers is None:
            cells = np.arange(grid.num_cells)
        else:
            cells = owned
            for _ in range(ghost_layers):
                cells = np.unique(np.concatenate(
                    [cells] + [grid.neighbours(c) for c in cells]))
        sub = grid.subgrid(cells)
        mask = np.isin(cells, owned)
        logger.debug("Partition %d: %d owned, %d ghost cells", rank,
                     mask.sum(), len(cells) - mask.sum())
        partitions.append(GridPartition(rank, sub, mask))
    return partitions


class DofReport(NamedTuple):
    """
    Phase 1 message of a partition: entity key of each local dof.

    Attributes:
        rank (int): Partition index.
        keys (tuple): Entity key of local dof i at position i.
    """
    rank: int
    keys: tuple

    @classmethod
    def from_space(cls, space: FunctionSpace, rank: int) -> 'DofReport':
        return cls(rank, tuple(space.dof_keys()))


class SparseAssembly(NamedTuple):
    """Local sparse matrix of a partition, in its local dof numbering."""
    rank: int
    matrix: sp.csr_matrix


class GlobalNumbering:
    """
    Phase 2: global dof numbering shared by all partitions.

    Attributes:
        keys (list[tuple]): Entity key of every global dof, sorted.
        index (dict[tuple, int]): Global dof of each entity key.
    """

    def __init__(self, keys: Sequence[tuple]):
        self.keys = list(keys)
        self.index = {key: i for i, key in enumerate(self.keys)}

    @classmethod
    def from_reports(cls, reports: Sequence[DofReport]) -> 'GlobalNumbering':
        """
        Merge the reports of all partitions.

        Raises:
            ConfigurationError: A report attaches one key to two local dofs,
                or two reports share a rank.
        """
        ranks = [r.rank for r in reports]
        if len(set(ranks)) != len(ranks):
            raise ConfigurationError("Duplicate rank in dof reports.")
        all_keys = set()
        for report in reports:
            keys = set(report.keys)
            if len(keys) != len(report.keys):
                raise ConfigurationError(f"Partition {report.rank} reports "
                                         f"the same entity for two dofs.")
            all_keys |= keys
        numbering = cls(sorted(all_keys))
        logger.info("Global numbering of %d dofs from %d partitions",
                    numbering.size, len(reports))
        return numbering

    @property
    def size(self) -> int:
        return len(self.keys)

    def local_to_global(self, report: DofReport) -> np.ndarray:
        try:
            return np.array([self.index[key] for key in report.keys],
                            dtype=np.int64)
        except KeyError as e:
            raise ConfigurationError(f"Partition {report.rank} reports "
                                     f"unknown entity {e.args[0]}.") from e

    def permutation(self, space: FunctionSpace) -> np.ndarray:
        """Global dof of each dof of a space on the full grid."""
        return self.local_to_global(DofReport.from_space(space, -1))


def merge_partitioned(reports: Sequence[DofReport],
                      local_matrices: Sequence[SparseAssembly],
                      numbering: GlobalNumbering) -> sp.csr_matrix:
    """
    Map local matrices to the global numbering and sum them.

    Args:
        reports (Sequence[DofReport]): Phase 1 reports.
        local_matrices (Sequence[SparseAssembly]): Local matrices, matched
            to reports by rank.
        numbering (GlobalNumbering): Phase 2 numbering.

    Returns:
        scipy.sparse.csr_matrix: Global matrix; contributions to shared dofs
        are summed.
    """
    by_rank = {r.rank: r for r in reports}
    rows, cols, data = [], [], []
    dtype = np.result_type(*[m.matrix.dtype for m in local_matrices]) \
        if local_matrices else np.float64
    for local in local_matrices:
        if local.rank not in by_rank:
            raise ConfigurationError(f"No dof report for partition "
                                     f"{local.rank}.")
        l2g = numbering.local_to_global(by_rank[local.rank])
        if local.matrix.shape != (len(l2g), len(l2g)):
            raise DimensionMismatchError(
                f"Partition {local.rank} matrix has shape "
                f"{local.matrix.shape}, expected {(len(l2g), len(l2g))}.")
        coo = local.matrix.tocoo()
        rows.append(l2g[coo.row])
        cols.append(l2g[coo.col])
        data.append(coo.data)

    n = numbering.size
    if not rows:
        return sp.csr_matrix((n, n), dtype=dtype)
    A = sp.csr_matrix((np.concatenate(data),
                       (np.concatenate(rows), np.concatenate(cols))),
                      shape=(n, n), dtype=dtype)
    A.sum_duplicates()
    return A


def assemble_partitioned_singular(assembler,
                                  grid: MixedGrid,
                                  family: LagrangeElementFamily,
                                  n_parts: int,
                                  ghost_layers: int | None = 1,
                                  ) -> tuple[sp.csr_matrix, GlobalNumbering]:
    """
    Singular part of an operator assembled partition by partition.

    Args:
        assembler (BoundaryAssembler): Operator assembler.
        grid (MixedGrid): Full grid.
        family (LagrangeElementFamily): Element family of both spaces.
        n_parts (int): Number of partitions.
        ghost_layers (int | None): Ghost rings per partition; at least one
            is needed to see every touching pair.

    Returns:
        tuple[scipy.sparse.csr_matrix, GlobalNumbering]: The merged matrix
        and the numbering its rows and columns follow.
    """
    if ghost_layers is not None and ghost_layers < 1:
        raise ConfigurationError("Singular assembly needs at least one "
                                 "ghost layer.")
    reports, local_matrices = [], []
    for part in partition_grid(grid, n_parts, ghost_layers):
        space = FunctionSpace(part.grid, family)
        reports.append(DofReport.from_space(space, part.rank))
        local_matrices.append(SparseAssembly(
            part.rank,
            assembler.assemble_singular_into_csr(space, space,
                                                 test_cells=part.owned_cells)))

    numbering = GlobalNumbering.from_reports(reports)
    return merge_partitioned(reports, local_matrices, numbering), numbering
