"""
Reference cells and Lagrange elements used by function spaces.

Continuous elements share dofs on vertices and edges between cells;
discontinuous elements give every cell its own dofs even where they are
geometrically coincident.
"""

from bem_assembly.elements.reference_cells import (ReferenceCellType,
                                                   Continuity)
from bem_assembly.elements.lagrange import (LagrangeElement,
                                            LagrangeElementFamily)

__all__ = ['ReferenceCellType', 'Continuity',
           'LagrangeElement', 'LagrangeElementFamily']
