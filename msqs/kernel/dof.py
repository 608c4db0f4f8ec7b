# msqs/kernel/dof.py
"""
CONSTRAINT LAYOUT: Where Each Unknown Lives in x
================================================

PURPOSE:
--------
This module maps (node_id, axis) and (element, H|V) to positions in the
constraint vector x. The layout is:

    x = [ active coordinates of every node  |  H_0, V_0, H_1, V_1, ... ]
          node-registration order, then          element-registration order
          axis order x, y, z (filtered by
          the node's active flags)

The same indices address rows of the residual: row i of F is the equation
"paired" with unknown i (force balance on that axis, or catenary closure
for that element).

USAGE:
------
    layout = ConstraintLayout.from_model(model)
    layout.size                 # len(x)
    layout.node_index(4, 2)     # index of z of node 4, or None if inactive
    layout.element_index(1, 0)  # index of H of the second element
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..model import Model

H_SLOT = 0
V_SLOT = 1


@dataclass
class ConstraintLayout:
    """
    Fixed ordering of the unknowns of one solve session.

    Attributes:
    -----------
    node_dofs : List[Tuple[int, int]]
        (node_id, axis) for every active node coordinate, in x order

    n_elements : int
        Number of elements; each contributes an (H, V) pair
    """
    node_dofs: List[Tuple[int, int]]
    n_elements: int
    _lookup: Dict[Tuple[int, int], int] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self._lookup = {key: i for i, key in enumerate(self.node_dofs)}

    @classmethod
    def from_model(cls, model: Model) -> "ConstraintLayout":
        node_dofs = []
        for node in model.nodes:
            for axis in range(3):
                if node.active[axis]:
                    node_dofs.append((node.id, axis))
        return cls(node_dofs=node_dofs, n_elements=len(model.elements))

    @property
    def n_node_eqs(self) -> int:
        """Number of force-balance equations (M in the block layout)."""
        return len(self.node_dofs)

    @property
    def size(self) -> int:
        """len(x) = active node DOFs + 2·n_elements."""
        return self.n_node_eqs + 2 * self.n_elements

    def node_index(self, node_id: int, axis: int) -> Optional[int]:
        return self._lookup.get((node_id, axis))

    def node_indices(self, node_id: int) -> List[Tuple[int, int]]:
        """(axis, index) for each active axis of a node."""
        out = []
        for axis in range(3):
            idx = self._lookup.get((node_id, axis))
            if idx is not None:
                out.append((axis, idx))
        return out

    def element_index(self, element_pos: int, slot: int) -> int:
        """Index of H (slot 0) or V (slot 1) of the element at element_pos."""
        return self.n_node_eqs + 2 * element_pos + slot
