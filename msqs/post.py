# msqs/post.py
"""
POST-PROCESSING: Line Shapes, End Tensions and Node Reactions
=============================================================

These helpers read a model whose state came out of a converged solve. They
re-run the catenary evaluation at that state and never modify positions or
tensions.

LINE PROFILE:
-------------
Points along a line are parametrized by unstretched arc length s measured
from the anchor end. With anchor-end tensions (HA, VA) of a suspended line:

    x(s) = H/w [asinh((VA + w s)/H) - asinh(VA/H)] + H s / EA
    z(s) = H/w [sqrt(1 + ((VA + w s)/H)²) - sqrt(1 + (VA/H)²)] + (VA s + w s²/2) / EA

A line resting on the seabed lies flat for s <= LB and hangs as a catenary
with zero vertical tension at the touchdown point beyond it. A weightless
line is drawn as its straight chord.
"""

from typing import Dict

import numpy as np

from .catenary import H_FLOOR_REL, Regime
from .forces import accumulate_forces, evaluate_element, evaluate_elements
from .model import Element, Model, NodeRole


def line_profile(model: Model, element: Element, n_points: int = 50) -> np.ndarray:
    """
    Coordinates along an element's stretched shape.

    Parameters:
    -----------
    model : Model
        Model holding the element's end nodes and line type

    element : Element
        Element to trace; its h, v must be set

    n_points : int
        Number of points, anchor end first (>= 2)

    Returns:
    --------
    np.ndarray
        Shape (n_points, 3), global (x, y, z)
    """
    if n_points < 2:
        raise ValueError(f"n_points must be >= 2, got {n_points}")

    geom, state = evaluate_element(model, element)
    anchor = model.node(element.anchor).position
    line_type = model.line_type_of(element)
    w = model.net_weight(element)
    L = element.length
    ea = line_type.ea
    s = np.linspace(0.0, L, n_points)

    if state.regime in (Regime.WEIGHTLESS_TAUT, Regime.WEIGHTLESS_SLACK):
        fairlead = model.node(element.fairlead).position
        t = s / L
        return anchor[None, :] + t[:, None] * (fairlead - anchor)[None, :]

    h = max(element.h, H_FLOOR_REL * max(abs(w) * L, 1.0))

    if state.regime is Regime.SEABED:
        x, z = _seabed_profile(s, h, state.seabed_length, ea, w, line_type.cb)
    else:
        va = element.v - w * L
        a0 = va / h
        a = (va + w * s) / h
        x = h / w * (np.arcsinh(a) - np.arcsinh(a0)) + h * s / ea
        z = (h / w * (np.sqrt(1.0 + a * a) - np.sqrt(1.0 + a0 * a0))
             + (va * s + 0.5 * w * s * s) / ea)

    points = np.empty((n_points, 3))
    points[:, 0] = anchor[0] + x * geom.c
    points[:, 1] = anchor[1] + x * geom.s
    points[:, 2] = anchor[2] + z
    return points


def _seabed_profile(s, h, lb, ea, w, cb):
    """Planar (x, z) along a line with length lb on the seabed."""
    grounded = np.minimum(s, lb)

    # Tension along the grounded part grows linearly from the anchor
    ha = h - cb * w * lb
    if ha >= 0.0:
        stretch = ha * grounded + 0.5 * cb * w * grounded ** 2
    else:
        xb = lb - h / (cb * w)
        stretch = 0.5 * cb * w * np.maximum(grounded - xb, 0.0) ** 2
    x = grounded + stretch / ea
    z = np.zeros_like(s)

    sigma = np.maximum(s - lb, 0.0)
    hanging = sigma > 0.0
    a = w * sigma[hanging] / h
    x[hanging] += h / w * np.arcsinh(a) + h * sigma[hanging] / ea
    z[hanging] = h / w * (np.sqrt(1.0 + a * a) - 1.0) + 0.5 * w * sigma[hanging] ** 2 / ea
    return x, z


def end_tensions(model: Model) -> Dict[int, Dict[str, float]]:
    """
    Tension components and magnitudes at both ends of every element.

    Returns:
    --------
    Dict[int, Dict[str, float]]
        element id -> {'h', 'v', 'fairlead', 'ha', 'va', 'anchor'}, in N
    """
    out = {}
    for element in model.elements:
        _, state = evaluate_element(model, element)
        out[element.id] = {
            'h': element.h,
            'v': element.v,
            'fairlead': float(np.hypot(element.h, element.v)),
            'ha': state.ha,
            'va': state.va,
            'anchor': float(np.hypot(state.ha, state.va)),
        }
    return out


def node_reactions(model: Model) -> Dict[int, np.ndarray]:
    """
    Net force the lines and node loads apply to each fixed and vessel node.

    This is the force the anchor or the vessel has to resist, (Fx, Fy, Fz)
    in N. Free nodes are left out; at equilibrium their totals are zero.
    """
    accumulate_forces(model, evaluate_elements(model))
    return {
        node.id: node.sum_force.copy()
        for node in model.nodes
        if node.role is not NodeRole.CONNECT
    }
