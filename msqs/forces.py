# msqs/forces.py
"""
FORCE ASSEMBLER: Line Tensions Projected Onto Nodes
===================================================

Each element pulls on its two end nodes:

    fairlead end:  (-H·c, -H·s, -V)     toward the anchor and downward
    anchor end:    (HA·c, HA·s,  VA)    toward the fairlead

where (c, s) is the horizontal unit vector from anchor to fairlead and
(HA, VA) are the anchor-end tensions from the catenary evaluation. Every
node then adds its applied force, its weight and its buoyancy. A CONNECT
node is in equilibrium when the total is zero on each active axis.
"""

from typing import List, Tuple

import numpy as np

from .catenary import CatenaryState, LineGeometry, evaluate_catenary, line_geometry
from .model import Element, Model, Node


def evaluate_element(model: Model, element: Element) -> Tuple[LineGeometry, CatenaryState]:
    """Geometry and catenary state of one element at the model's current state."""
    anchor = model.node(element.anchor)
    fairlead = model.node(element.fairlead)
    geom = line_geometry(anchor.position, fairlead.position)
    line_type = model.line_type_of(element)

    state = evaluate_catenary(
        element.h,
        element.v,
        element.length,
        line_type.ea,
        model.net_weight(element),
        cb=line_type.cb,
        seabed_contact=model.on_seabed(anchor),
        span=(geom.r, geom.dz),
    )
    return geom, state


def evaluate_elements(model: Model) -> List[Tuple[LineGeometry, CatenaryState]]:
    return [evaluate_element(model, e) for e in model.elements]


def line_end_forces(geom: LineGeometry, state: CatenaryState, h: float, v: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Forces an element applies to its fairlead and anchor nodes.

    Returns:
    --------
    (fairlead_force, anchor_force) : each an array (Fx, Fy, Fz) in N
    """
    fairlead_force = np.array([-h * geom.c, -h * geom.s, -v], dtype=float)
    anchor_force = np.array([state.ha * geom.c, state.ha * geom.s, state.va], dtype=float)
    return fairlead_force, anchor_force


def node_load(model: Model, node: Node) -> np.ndarray:
    """Applied force plus weight and buoyancy of the node (N)."""
    load = np.array(node.external_force, dtype=float)
    load[2] += -node.mass * model.gravity + model.sea_density * model.gravity * node.volume
    return load


def accumulate_forces(
    model: Model,
    evaluations: List[Tuple[LineGeometry, CatenaryState]],
) -> None:
    """
    Sum all element end forces and node loads into Node.sum_force.

    Every accumulator is reset first, so nothing carries over from a
    previous evaluation. Fixed and vessel nodes are accumulated too (their
    totals are the reactions) but never enter the residual.
    """
    for node in model.nodes:
        node.reset_force()

    for element, (geom, state) in zip(model.elements, evaluations):
        fairlead_force, anchor_force = line_end_forces(geom, state, element.h, element.v)
        if element.fairlead_in_balance:
            model.node(element.fairlead).sum_force += fairlead_force
        if element.anchor_in_balance:
            model.node(element.anchor).sum_force += anchor_force

    for node in model.nodes:
        node.sum_force += node_load(model, node)


def node_residuals(model: Model, scaling: float = 1.0) -> List[float]:
    """
    Scaled force-balance residuals, one per active axis, in node then axis order.
    """
    out = []
    for node in model.nodes:
        for axis in range(3):
            if node.active[axis]:
                out.append(scaling * node.sum_force[axis])
    return out
