from dataclasses import dataclass, field

from bem_assembly.elements import ReferenceCellType
from bem_assembly.exceptions import ConfigurationError
from bem_assembly.singular import Adjacency


def _default_regular_order() -> dict:
    return {ReferenceCellType.Triangle: 5,
            ReferenceCellType.Quadrilateral: 7}


def _default_singular_order() -> dict:
    return {Adjacency.Identical: 6,
            Adjacency.Edge: 5,
            Adjacency.Vertex: 4}


@dataclass
class AssemblyOptions:
    """
    Configuration of an assembly call.

    Attributes:
        batch_size (int): Number of cell pairs per vectorised kernel
            evaluation.
        regular_order (dict[ReferenceCellType, int]): Polynomial degree
            integrated exactly by the per-cell rules of disjoint pairs. The
            defaults select the 7 point triangle rule and the 4 x 4 Gauss
            rule on quadrilaterals.
        singular_order (dict[Adjacency, int]): Gauss-Legendre points per
            direction of the Sauter-Schwab rules for each touching adjacency.
        n_workers (int): Number of threads sharing the test cells.
        verbose (bool): Show a progress bar over test-cell partitions.
    """
    batch_size: int = 128
    regular_order: dict = field(default_factory=_default_regular_order)
    singular_order: dict = field(default_factory=_default_singular_order)
    n_workers: int = 1
    verbose: bool = False

    def __post_init__(self):
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ConfigurationError("batch_size must be a positive integer.")
        if not isinstance(self.n_workers, int) or self.n_workers < 1:
            raise ConfigurationError("n_workers must be a positive integer.")

        regular = _default_regular_order()
        regular.update(self.regular_order)
        for cell_type, order in regular.items():
            if not isinstance(cell_type, ReferenceCellType):
                raise ConfigurationError(f"Unknown cell type {cell_type!r} "
                                         f"in regular_order.")
            if not isinstance(order, int) or order < 1:
                raise ConfigurationError(f"Invalid regular order {order!r} "
                                         f"for {cell_type.name}.")
        self.regular_order = regular

        singular = _default_singular_order()
        singular.update(self.singular_order)
        for adjacency, order in singular.items():
            if adjacency not in (Adjacency.Identical, Adjacency.Edge,
                                 Adjacency.Vertex):
                raise ConfigurationError(f"No singular rule for "
                                         f"{adjacency!r}.")
            if not isinstance(order, int) or order < 1:
                raise ConfigurationError(f"Invalid singular order {order!r} "
                                         f"for {adjacency.name}.")
        self.singular_order = singular
