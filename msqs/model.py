# msqs/model.py
"""
MOORING MODEL DEFINITIONS: Node, LineType, Element, Model
=========================================================

PURPOSE:
--------
This module defines the data structures the equilibrium solver works on:
- Node: a point where lines meet (anchor, vessel fairlead or free junction)
- LineType: the material template shared by many line segments
- Element: one elastic catenary line segment between two nodes
- Model: the container that owns all of the above plus the environment

ENGINEERING CONTEXT:
--------------------
A quasi-static mooring network is solved for TWO kinds of unknowns:
- the position of every free ("connect") node
- the fairlead tensions (H, V) of every line segment

FIXED nodes sit on the seabed (anchors), VESSEL nodes are prescribed by the
floating structure. Neither moves during a solve; only CONNECT nodes carry
force-balance equations.

Coordinate system: x, y horizontal, z up, z = 0 at the still water line.
The seabed is at z = -depth.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import ModelLockedError


class NodeRole(Enum):
    """How a node participates in the solve."""
    FIXED = "fix"          # Anchor on the seabed
    CONNECT = "connect"    # Free junction, position is solved for
    VESSEL = "vessel"      # Fairlead, position prescribed by the vessel


@dataclass
class Node:
    """
    A node (connection point) in the mooring network.

    Parameters:
    -----------
    id : int
        Unique identifier for this node

    role : NodeRole
        FIXED, CONNECT or VESSEL

    x, y, z : float
        Position in global coordinates (m). For CONNECT nodes this is the
        initial guess; it is overwritten by the solver.

    mass : float
        Point mass attached to the node (kg)

    volume : float
        Displaced volume of a buoy attached to the node (m³)

    external_force : tuple
        Applied force (Fx, Fy, Fz) in N

    active : tuple of bool, optional
        Per-axis flags (x, y, z) saying which axes carry a force-balance
        equation and a position unknown. Defaults to all True for CONNECT
        nodes and all False otherwise.

    Notes:
    ------
    sum_force is the running force accumulator. It is zeroed at the start
    of every residual evaluation, never carried between iterations.
    """
    id: int
    role: NodeRole
    x: float
    y: float
    z: float
    mass: float = 0.0
    volume: float = 0.0
    external_force: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    active: Optional[Tuple[bool, bool, bool]] = None
    sum_force: np.ndarray = field(default_factory=lambda: np.zeros(3), repr=False, compare=False)

    def __post_init__(self):
        self.role = NodeRole(self.role)
        if self.active is None:
            flag = self.role is NodeRole.CONNECT
            self.active = (flag, flag, flag)
        else:
            self.active = tuple(bool(a) for a in self.active)

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def set_position(self, axis: int, value: float) -> None:
        """Write one coordinate (0=x, 1=y, 2=z)."""
        if axis == 0:
            self.x = value
        elif axis == 1:
            self.y = value
        else:
            self.z = value

    def reset_force(self) -> None:
        self.sum_force[:] = 0.0


@dataclass(frozen=True)
class LineType:
    """
    Material properties of a mooring line, shared by reference.

    Parameters:
    -----------
    name : str
        Label, e.g. "chain" or "polyester"

    diameter : float
        Hydrodynamic diameter (m), used for buoyancy

    mass_density : float
        Mass per unit length in air (kg/m)

    ea : float
        Axial stiffness (N)

    cb : float
        Seabed friction coefficient (only used when the anchor end sits on
        the seabed)

    cint, ca, cdn, cdt : float
        Internal damping and added-mass/drag coefficients. Carried for
        completeness; quasi-static equilibrium does not use them.

    Examples:
    ---------
    >>> chain = LineType("chain", diameter=0.09, mass_density=77.7066, ea=384.243e6, cb=1.0)
    """
    name: str
    diameter: float
    mass_density: float
    ea: float
    cb: float = 0.0
    cint: float = 0.0
    ca: float = 0.0
    cdn: float = 0.0
    cdt: float = 0.0

    def net_weight(self, gravity: float, sea_density: float) -> float:
        """
        Submerged weight per unit length (N/m).

        Positive for sinking lines, negative for buoyant ones.
        """
        displaced = sea_density * np.pi * self.diameter ** 2 / 4.0
        return (self.mass_density - displaced) * gravity


@dataclass
class Element:
    """
    A mooring line segment between an anchor-end and a fairlead-end node.

    The anchor end is the lower end (or the end closer to the seabed); the
    fairlead end is the one whose tensions (h, v) are unknowns.

    Parameters:
    -----------
    id : int
        Unique identifier for this element

    line_type : str
        Name of the LineType this segment is made of

    length : float
        Unstretched length (m)

    anchor : int
        Node ID at the anchor end

    fairlead : int
        Node ID at the fairlead end

    h, v : float, optional
        Horizontal and vertical fairlead tension (N). Used as the initial
        guess; None means "estimate it at initialize".

    anchor_in_balance, fairlead_in_balance : bool
        Whether this element's end force is added to the node's force
        balance at that end.
    """
    id: int
    line_type: str
    length: float
    anchor: int
    fairlead: int
    h: Optional[float] = None
    v: Optional[float] = None
    anchor_in_balance: bool = True
    fairlead_in_balance: bool = True

    @property
    def tension(self) -> float:
        """Fairlead tension magnitude sqrt(H² + V²)."""
        return float(np.hypot(self.h or 0.0, self.v or 0.0))


class Model:
    """
    Container for nodes, line types and elements plus the environment.

    Registration order matters: it fixes the layout of the constraint
    vector. Structural edits are refused while a solver session holds the
    model (see SolverSession.initialize).

    Parameters:
    -----------
    depth : float
        Water depth (m, positive). The seabed is at z = -depth.

    gravity : float
        Gravitational acceleration (m/s²)

    sea_density : float
        Sea water density (kg/m³)
    """

    def __init__(self, depth: float, gravity: float = 9.81, sea_density: float = 1025.0):
        self.depth = float(depth)
        self.gravity = float(gravity)
        self.sea_density = float(sea_density)
        self.nodes: List[Node] = []
        self.line_types: Dict[str, LineType] = {}
        self.elements: List[Element] = []
        self._node_index: Dict[int, Node] = {}
        self._locked = False

    # ------------------------------------------------------------------
    # structural edits
    # ------------------------------------------------------------------

    def _check_unlocked(self, what: str) -> None:
        if self._locked:
            raise ModelLockedError(
                f"Cannot add {what} while a solver session is active. Call shutdown() first."
            )

    def add_node(self, node: Node) -> Node:
        self._check_unlocked("a node")
        if node.id in self._node_index:
            raise ValueError(f"Duplicate node id {node.id}")
        self.nodes.append(node)
        self._node_index[node.id] = node
        return node

    def add_line_type(self, line_type: LineType) -> LineType:
        self._check_unlocked("a line type")
        if line_type.name in self.line_types:
            raise ValueError(f"Duplicate line type '{line_type.name}'")
        self.line_types[line_type.name] = line_type
        return line_type

    def add_element(self, element: Element) -> Element:
        self._check_unlocked("an element")
        if any(e.id == element.id for e in self.elements):
            raise ValueError(f"Duplicate element id {element.id}")
        self.elements.append(element)
        return element

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def node(self, node_id: int) -> Node:
        return self._node_index[node_id]

    def line_type_of(self, element: Element) -> LineType:
        return self.line_types[element.line_type]

    def net_weight(self, element: Element) -> float:
        """Submerged weight per unit length of an element (N/m)."""
        return self.line_type_of(element).net_weight(self.gravity, self.sea_density)

    def on_seabed(self, node: Node, tol: float = 1e-6) -> bool:
        """True when the node sits on (or below) the seabed."""
        return node.z <= -self.depth + tol * max(self.depth, 1.0)

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False
