import logging
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np
import scipy.sparse as sp
from tqdm import tqdm

from bem_assembly.exceptions import (ConfigurationError,
                                     DimensionMismatchError)
from bem_assembly.function_space import FunctionSpace
from bem_assembly.integrators import (ElementIntegrator,
                                      HypersingularIntegrator)
from bem_assembly.kernels import BoundaryKernel, GreenFunction
from bem_assembly.options import AssemblyOptions
from bem_assembly.singular import (Adjacency, classify_pairs, regular_rule,
                                   singular_rule)

logger = logging.getLogger(__name__)

PAIR_SELECTIONS = ("all", "singular", "nonsingular")

# upper bound on point pairs evaluated at once by a singular batch
SINGULAR_BATCH_POINTS = 2 ** 20


class SparseAccumulator:
    """
    Triplet builder for sparse output.

    Contributions are appended as (row, col, value) triplets; duplicates are
    summed when converting to CSR.
    """

    def __init__(self,
                 shape: tuple[int, int],
                 dtype: np.dtype = np.float64):
        self.shape = (int(shape[0]), int(shape[1]))
        self.dtype = np.dtype(dtype)
        self._rows = []
        self._cols = []
        self._data = []

    def add_at(self,
               rows: np.ndarray,
               cols: np.ndarray,
               values: np.ndarray) -> None:
        rows = np.asarray(rows, dtype=np.int64).ravel()
        cols = np.asarray(cols, dtype=np.int64).ravel()
        values = np.asarray(values).ravel().astype(self.dtype, copy=False)
        if not (len(rows) == len(cols) == len(values)):
            raise DimensionMismatchError("rows, cols and values differ in "
                                         "length.")
        if len(rows) and (rows.min() < 0 or rows.max() >= self.shape[0] or
                          cols.min() < 0 or cols.max() >= self.shape[1]):
            raise DimensionMismatchError("Triplet index outside the matrix.")
        self._rows.append(rows)
        self._cols.append(cols)
        self._data.append(values)

    def triplets(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if not self._rows:
            return (np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64),
                    np.zeros(0, dtype=self.dtype))
        return (np.concatenate(self._rows), np.concatenate(self._cols),
                np.concatenate(self._data))

    def to_csr(self) -> sp.csr_matrix:
        rows, cols, data = self.triplets()
        A = sp.csr_matrix((data, (rows, cols)), shape=self.shape,
                          dtype=self.dtype)
        A.sum_duplicates()
        return A

    def __repr__(self) -> str:
        n = sum(len(r) for r in self._rows)
        return (f"SparseAccumulator(shape={self.shape}, dtype={self.dtype}, "
                f"triplets={n})")


def assemble(output,
             kernel: BoundaryKernel,
             needs_trial_normal: bool,
             needs_test_normal: bool,
             trial_space: FunctionSpace,
             test_space: FunctionSpace,
             options: AssemblyOptions | None = None,
             pairs: str = "all",
             test_cells: np.ndarray | None = None) -> None:
    """
    Assemble a boundary operator with a scalar kernel into ``output``.

    Every local block is added (never written) to
    ``output[test_dofs, trial_dofs]``. Nothing is written unless every block
    was computed.

    Args:
        output (np.ndarray | SparseAccumulator): Container of shape
            (test_space.global_size(), trial_space.global_size()).
        kernel (BoundaryKernel): Pointwise kernel.
        needs_trial_normal (bool): Pass trial normals to the kernel.
        needs_test_normal (bool): Pass test normals to the kernel.
        trial_space (FunctionSpace): Trial space.
        test_space (FunctionSpace): Test space, on the same grid.
        options (AssemblyOptions | None): Quadrature, batching and threading.
        pairs (str): "all", "singular" (touching and identical pairs only)
            or "nonsingular" (disjoint pairs only).
        test_cells (np.ndarray | None): Restrict to these test cells.

    Raises:
        ConfigurationError: Invalid spaces, options or output dtype.
        DimensionMismatchError: Output shape does not match the spaces.
    """
    out_dtype = _check_inputs(output, kernel.dtype, trial_space, test_space,
                              pairs)
    integrator = ElementIntegrator(kernel,
                                   needs_trial_normal=needs_trial_normal,
                                   needs_test_normal=needs_test_normal,
                                   dtype=out_dtype)
    _assemble(output, integrator, trial_space, test_space, options, pairs,
              test_cells, label=repr(kernel))


def hypersingular_assemble(output,
                           green: GreenFunction,
                           trial_space: FunctionSpace,
                           test_space: FunctionSpace,
                           options: AssemblyOptions | None = None,
                           pairs: str = "all",
                           test_cells: np.ndarray | None = None) -> None:
    """
    Assemble the hypersingular operator of ``green`` into ``output``.

    Same enumeration and accumulation as :func:`assemble`, with the
    curl-curl integrand of :class:`HypersingularIntegrator`.
    """
    out_dtype = _check_inputs(output, green.dtype, trial_space, test_space,
                              pairs)
    if green.wavenumber == 0.0 and \
       min(trial_space.degree, test_space.degree) == 0:
        warnings.warn("The Laplace hypersingular operator vanishes on "
                      "piecewise constant spaces.")
    integrator = HypersingularIntegrator(green, dtype=out_dtype)
    _assemble(output, integrator, trial_space, test_space, options, pairs,
              test_cells, label=f"Hypersingular({green!r})")


def _check_inputs(output,
                  kernel_dtype: np.dtype,
                  trial_space: FunctionSpace,
                  test_space: FunctionSpace,
                  pairs: str) -> np.dtype:
    """Checks made before any quadrature work. Returns the output dtype."""
    if pairs not in PAIR_SELECTIONS:
        raise ConfigurationError(f"pairs must be one of {PAIR_SELECTIONS}, "
                                 f"got {pairs!r}.")
    if trial_space.grid is not test_space.grid:
        raise ConfigurationError("Trial and test spaces must be defined on "
                                 "the same grid.")
    if not isinstance(output, (np.ndarray, SparseAccumulator)):
        raise ConfigurationError(f"Unsupported output container "
                                 f"{type(output).__name__}.")

    expected = (test_space.global_size(), trial_space.global_size())
    if tuple(output.shape) != expected:
        raise DimensionMismatchError(f"Output has shape {tuple(output.shape)}"
                                     f", expected {expected}.")

    out_dtype = np.dtype(output.dtype)
    if not np.issubdtype(out_dtype, np.inexact):
        raise ConfigurationError(f"Output dtype {out_dtype} is not a "
                                 f"floating point type.")
    if np.issubdtype(kernel_dtype, np.complexfloating) and \
       not np.issubdtype(out_dtype, np.complexfloating):
        raise ConfigurationError(f"Complex kernel cannot be assembled into "
                                 f"{out_dtype} output.")
    return out_dtype


def _assemble(output,
              integrator,
              trial_space: FunctionSpace,
              test_space: FunctionSpace,
              options: AssemblyOptions | None,
              pairs: str,
              test_cells: np.ndarray | None,
              label: str) -> None:
    options = AssemblyOptions() if options is None else options
    grid = test_space.grid

    if test_cells is None:
        test_cells = np.arange(grid.num_cells)
    else:
        test_cells = np.asarray(test_cells, dtype=np.int64)
        if len(test_cells) and (test_cells.min() < 0 or
                                test_cells.max() >= grid.num_cells):
            raise ConfigurationError("test_cells outside the grid.")

    logger.info("Assembling %s (%s pairs) into %s output of shape %s",
                label, pairs, np.dtype(output.dtype), tuple(output.shape))

    parts = [p for p in np.array_split(test_cells, options.n_workers)
             if len(p)]
    results = [None] * len(parts)
    with ThreadPoolExecutor(max_workers=options.n_workers) as pool:
        futures = {pool.submit(_assemble_partition, integrator, trial_space,
                               test_space, options, pairs, part): i
                   for i, part in enumerate(parts)}
        for future in tqdm(as_completed(futures),
                           total=len(futures),
                           desc="Assembling partitions",
                           disable=not options.verbose):
            results[futures[future]] = future.result()

    # reduce in partition order, then commit once
    counts = {}
    rows, cols, data = [], [], []
    for r, c, d, n in results:
        rows.extend(r)
        cols.extend(c)
        data.extend(d)
        for adjacency, num in n.items():
            counts[adjacency] = counts.get(adjacency, 0) + num
    for adjacency, num in counts.items():
        logger.debug("%d %s pairs", num, adjacency.name.lower())

    if not rows:
        return
    rows = np.concatenate(rows)
    cols = np.concatenate(cols)
    data = np.concatenate(data)
    if isinstance(output, SparseAccumulator):
        output.add_at(rows, cols, data)
    else:
        np.add.at(output, (rows, cols), data.astype(output.dtype, copy=False))


def _collect_pairs(grid,
                   test_cells: np.ndarray,
                   pairs: str) -> dict:
    """
    Group the (test, trial) pairs of some test cells by rule key
    (test type, trial type, adjacency, shared vertices).
    """
    groups = {}
    for t in test_cells:
        t = int(t)
        test_type = grid.cell_type(t)
        touching, disjoint = classify_pairs(grid, t)

        if pairs != "nonsingular":
            for (adjacency, shared), trials in touching.items():
                for s in trials:
                    key = (test_type, grid.cell_type(s), adjacency, shared)
                    groups.setdefault(key, ([], []))
                    groups[key][0].append(t)
                    groups[key][1].append(s)

        if pairs != "singular" and len(disjoint):
            for trial_type, idx in grid.cells_of_type.items():
                trials = np.intersect1d(disjoint, idx, assume_unique=True)
                if not len(trials):
                    continue
                key = (test_type, trial_type, Adjacency.Disjoint, ())
                groups.setdefault(key, ([], []))
                groups[key][0].extend([t] * len(trials))
                groups[key][1].extend(trials.tolist())
    return groups


def _assemble_partition(integrator,
                        trial_space: FunctionSpace,
                        test_space: FunctionSpace,
                        options: AssemblyOptions,
                        pairs: str,
                        test_cells: np.ndarray):
    """
    Compute the triplets of all pairs of a contiguous set of test cells.

    Returns:
        tuple: Lists of row, column and value arrays, and the number of
        pairs per adjacency class.
    """
    grid = test_space.grid
    groups = _collect_pairs(grid, test_cells, pairs)

    rows, cols, data = [], [], []
    counts = {}
    n_batches = 0
    for (test_type, trial_type, adjacency, shared), (tests, trials) in \
            groups.items():
        tests = np.asarray(tests, dtype=np.int64)
        trials = np.asarray(trials, dtype=np.int64)
        counts[adjacency] = counts.get(adjacency, 0) + len(tests)

        test_element = test_space.element_of_type(test_type)
        trial_element = trial_space.element_of_type(trial_type)
        step = options.batch_size
        if adjacency is Adjacency.Disjoint:
            test_rule = regular_rule(test_type,
                                     options.regular_order[test_type])
            trial_rule = regular_rule(trial_type,
                                      options.regular_order[trial_type])
        else:
            pair_rule = singular_rule(test_type, trial_type, adjacency,
                                      shared,
                                      options.singular_order[adjacency])
            step = max(1, min(step, SINGULAR_BATCH_POINTS //
                              len(pair_rule.weights)))

        for start in range(0, len(tests), step):
            tb = tests[start:start + step]
            sb = trials[start:start + step]
            if adjacency is Adjacency.Disjoint:
                blocks = integrator.regular_blocks(grid, tb, sb,
                                                   test_element,
                                                   trial_element,
                                                   test_rule, trial_rule)
            else:
                blocks = integrator.singular_blocks(grid, tb, sb,
                                                    test_element,
                                                    trial_element,
                                                    pair_rule)
            n_batches += 1

            test_dofs = test_space.dofmap.cell_dofs_array(tb)
            trial_dofs = trial_space.dofmap.cell_dofs_array(sb)
            rows.append(np.broadcast_to(test_dofs[:, :, None],
                                        blocks.shape).ravel())
            cols.append(np.broadcast_to(trial_dofs[:, None, :],
                                        blocks.shape).ravel())
            data.append(blocks.ravel())

    logger.debug("Partition of %d test cells: %d batches",
                 len(test_cells), n_batches)
    return rows, cols, data, counts
