# msqs/catenary.py
"""
CATENARY EVALUATOR: Elastic Catenary Closed Forms and Their Partials
====================================================================

PURPOSE:
--------
Given a line segment's fairlead tensions (H, V) this module returns the
horizontal and vertical span (X, Z) those tensions imply, together with the
four partials dX/dH, dX/dV, dZ/dH, dZ/dV used as the C block of the
Jacobian.

ENGINEERING DERIVATION:
-----------------------
For a line of unstretched length L, axial stiffness EA and submerged weight
w per unit length, hanging freely between its ends:

    X = H/w [asinh(V/H) - asinh((V - wL)/H)] + H L / EA
    Z = H/w [sqrt(1 + (V/H)²) - sqrt(1 + ((V - wL)/H)²)] + (V L - w L²/2) / EA

When the anchor sits on the seabed and the fairlead does not carry the full
line weight (V - wL <= 0), a length LB = L - V/w rests on the bottom.
Seabed friction Cb lets tension bleed off along that length and
xB = LB - H/(Cb w) is where it reaches zero:

    X = LB + H/w asinh(V/H) + H L / EA - Cb w / (2 EA) (LB² - max(xB, 0)²)
    Z = H/w [sqrt(1 + (V/H)²) - 1] + V² / (2 EA w)

A line with negligible weight is a straight elastic bar. It carries
tension only while its chord is longer than L.

REGIME SELECTION:
-----------------
The regime is chosen once per call and both the values and the partials are
computed from the same branch. H is floored at a tiny positive value so a
near-vertical line (H -> 0) stays finite.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

from .errors import FunctionDomainError


# |w|·L at or below this fraction of EA counts as a weightless line
WEIGHTLESS_TOL = 1e-12

# H floor relative to max(|w|·L, 1 N)
H_FLOOR_REL = 1e-10

# Tension floor of a weightless taut line, relative to EA
T_FLOOR_REL = 1e-12


class Regime(Enum):
    SUSPENDED = "suspended"
    SEABED = "seabed"
    WEIGHTLESS_TAUT = "weightless_taut"
    WEIGHTLESS_SLACK = "weightless_slack"


@dataclass
class LineGeometry:
    """
    Horizontal/vertical span of an element and its horizontal azimuth.

    (c, s) is the unit vector from anchor to fairlead in the xy-plane; it is
    (0, 0) for a perfectly vertical element.
    """
    dx: float
    dy: float
    dz: float
    r: float
    c: float
    s: float


@dataclass
class CatenaryState:
    """
    Result of one catenary evaluation.

    x, z are the spans implied by (H, V). ha, va are the tensions the line
    applies at its anchor end, with their partials w.r.t. (H, V).
    dx_dspan/dz_dspan are nonzero only for a slack weightless line, whose
    closure follows the node span instead of fixing it.
    """
    regime: Regime
    x: float
    z: float
    dx_dh: float
    dx_dv: float
    dz_dh: float
    dz_dv: float
    ha: float
    va: float
    dha_dh: float = 1.0
    dha_dv: float = 0.0
    dva_dh: float = 0.0
    dva_dv: float = 1.0
    dx_dspan: float = 0.0
    dz_dspan: float = 0.0
    seabed_length: float = 0.0

    @property
    def jacobian(self) -> np.ndarray:
        """2×2 block [[dX/dH, dX/dV], [dZ/dH, dZ/dV]]."""
        return np.array([
            [self.dx_dh, self.dx_dv],
            [self.dz_dh, self.dz_dv],
        ], dtype=float)


def line_geometry(anchor_pos: np.ndarray, fairlead_pos: np.ndarray) -> LineGeometry:
    """
    Compute span and azimuth of an element from its end positions.

    Parameters:
    -----------
    anchor_pos, fairlead_pos : array-like
        (x, y, z) of the anchor-end and fairlead-end node

    Returns:
    --------
    LineGeometry
    """
    dx = float(fairlead_pos[0] - anchor_pos[0])
    dy = float(fairlead_pos[1] - anchor_pos[1])
    dz = float(fairlead_pos[2] - anchor_pos[2])
    r = float(np.hypot(dx, dy))
    if r > 0.0:
        c, s = dx / r, dy / r
    else:
        c, s = 0.0, 0.0
    return LineGeometry(dx=dx, dy=dy, dz=dz, r=r, c=c, s=s)


def is_weightless(w: float, length: float, ea: float) -> bool:
    return abs(w) * length <= WEIGHTLESS_TOL * ea


def evaluate_catenary(
    h: float,
    v: float,
    length: float,
    ea: float,
    w: float,
    cb: float = 0.0,
    seabed_contact: bool = False,
    span: Tuple[float, float] = (0.0, 0.0),
) -> CatenaryState:
    """
    Evaluate the elastic catenary equations for one element.

    Parameters:
    -----------
    h, v : float
        Fairlead horizontal and vertical tension (N). V is positive when the
        line pulls the fairlead downward.

    length : float
        Unstretched length L (m)

    ea : float
        Axial stiffness (N)

    w : float
        Submerged weight per unit length (N/m), negative if buoyant

    cb : float
        Seabed friction coefficient. A negative value disables contact.

    seabed_contact : bool
        True when the anchor end rests on the seabed, which permits the
        SEABED regime

    span : (float, float)
        Current horizontal and vertical node span. Only used to decide
        whether a weightless line is slack.

    Returns:
    --------
    CatenaryState

    Raises:
    -------
    FunctionDomainError
        For non-positive length or stiffness, negative H, non-finite input,
        or an upward fairlead pull on a line resting on the seabed.
    """
    if not all(np.isfinite([h, v, length, ea, w, cb])):
        raise FunctionDomainError(f"Non-finite catenary input (H={h}, V={v}, L={length}, EA={ea}, w={w})")
    if length <= 0.0:
        raise FunctionDomainError(f"Unstretched length must be positive, got {length}")
    if ea <= 0.0:
        raise FunctionDomainError(f"Axial stiffness EA must be positive, got {ea}")
    if h < 0.0:
        raise FunctionDomainError(f"Horizontal tension must be non-negative, got H={h}")

    if is_weightless(w, length, ea):
        return _weightless(h, v, length, ea, span)

    he = max(h, H_FLOOR_REL * max(abs(w) * length, 1.0))

    if seabed_contact and w > 0.0 and cb >= 0.0 and v - w * length <= 0.0:
        if v < 0.0:
            raise FunctionDomainError(
                f"Line resting on the seabed cannot push its fairlead upward (V={v})"
            )
        return _seabed(he, v, length, ea, w, cb)

    return _suspended(he, v, length, ea, w)


def _suspended(h, v, length, ea, w) -> CatenaryState:
    wl = w * length
    a = v / h
    b = (v - wl) / h
    sa = np.sqrt(1.0 + a * a)
    sb = np.sqrt(1.0 + b * b)
    asinh_diff = np.arcsinh(a) - np.arcsinh(b)

    x = h / w * asinh_diff + h * length / ea
    z = h / w * (sa - sb) + (v * length - 0.5 * wl * length) / ea

    return CatenaryState(
        regime=Regime.SUSPENDED,
        x=x,
        z=z,
        dx_dh=(asinh_diff - a / sa + b / sb) / w + length / ea,
        dx_dv=(1.0 / sa - 1.0 / sb) / w,
        dz_dh=(1.0 / sa - 1.0 / sb) / w,
        dz_dv=(a / sa - b / sb) / w + length / ea,
        ha=h,
        va=v - wl,
    )


def _seabed(h, v, length, ea, w, cb) -> CatenaryState:
    lb = length - v / w
    a = v / h
    sa = np.sqrt(1.0 + a * a)

    if cb > 0.0:
        xb = max(lb - h / (cb * w), 0.0)
    else:
        xb = 0.0

    x = lb + h / w * np.arcsinh(a) + h * length / ea - 0.5 * cb * w / ea * (lb * lb - xb * xb)
    z = h / w * (sa - 1.0) + 0.5 * v * v / (ea * w)

    # Tension left at the anchor after friction along the grounded length
    ha = h - cb * (w * length - v)
    if ha > 0.0:
        dha_dh, dha_dv = 1.0, cb
    else:
        ha, dha_dh, dha_dv = 0.0, 0.0, 0.0

    return CatenaryState(
        regime=Regime.SEABED,
        x=x,
        z=z,
        dx_dh=(np.arcsinh(a) - a / sa) / w + length / ea - xb / ea,
        dx_dv=(1.0 / sa - 1.0) / w + cb * (lb - xb) / ea,
        dz_dh=(1.0 / sa - 1.0) / w,
        dz_dv=a / (w * sa) + v / (ea * w),
        ha=ha,
        va=0.0,
        dha_dh=dha_dh,
        dha_dv=dha_dv,
        dva_dh=0.0,
        dva_dv=0.0,
        seabed_length=lb,
    )


def _weightless(h, v, length, ea, span) -> CatenaryState:
    chord = float(np.hypot(span[0], span[1]))
    l_ea = length / ea

    if chord <= length:
        return CatenaryState(
            regime=Regime.WEIGHTLESS_SLACK,
            x=span[0] + h * l_ea,
            z=span[1] + v * l_ea,
            dx_dh=l_ea,
            dx_dv=0.0,
            dz_dh=0.0,
            dz_dv=l_ea,
            ha=h,
            va=v,
            dx_dspan=1.0,
            dz_dspan=1.0,
        )

    t = float(np.hypot(h, v))
    t_floor = T_FLOOR_REL * ea
    if t >= t_floor:
        t3 = t ** 3
        dx_dh = length * v * v / t3 + l_ea
        dx_dv = -length * h * v / t3
        dz_dv = length * h * h / t3 + l_ea
    else:
        t = t_floor
        dx_dh = length / t + l_ea
        dx_dv = 0.0
        dz_dv = length / t + l_ea

    return CatenaryState(
        regime=Regime.WEIGHTLESS_TAUT,
        x=h * length / t + h * l_ea,
        z=v * length / t + v * l_ea,
        dx_dh=dx_dh,
        dx_dv=dx_dv,
        dz_dh=dx_dv,
        dz_dv=dz_dv,
        ha=h,
        va=v,
    )


def initial_tension_guess(
    span_x: float,
    span_z: float,
    length: float,
    ea: float,
    w: float,
    tol: float = 1e-6,
) -> Tuple[float, float]:
    """
    Starting values for (H, V) from the element's current span.

    Uses the estimate of Peyrot & Goulois, "Analysis of Cable Structures",
    Computers & Structures 10 (1979), the same one the catenary solvers in
    FAST and MoorPy fall back on. A weightless line gets its straight-bar
    tension EA·(chord - L)/L split along the chord.

    Returns:
    --------
    (H, V) : Tuple[float, float]
    """
    if length <= 0.0 or ea <= 0.0:
        # Degenerate element; evaluate_catenary reports it
        return 0.0, 0.0

    if is_weightless(w, length, ea):
        chord = float(np.hypot(span_x, span_z))
        if chord <= length or chord == 0.0:
            return 0.0, 0.0
        t = ea * (chord - length) / length
        return t * span_x / chord, t * span_z / chord

    x = max(span_x, tol)
    z = span_z
    if length <= np.hypot(x, z):
        lam = 0.2
    else:
        lam = np.sqrt(3.0 * ((length * length - z * z) / (x * x) - 1.0))

    h = max(abs(0.5 * w * x / lam), tol)
    v = 0.5 * w * (z / np.tanh(lam) + length)
    return float(h), float(v)
