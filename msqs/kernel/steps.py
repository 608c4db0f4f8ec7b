# msqs/kernel/steps.py
"""
STEP ACCEPTANCE: Full Step, Backtracking Line Search, Trust Region
==================================================================

Each rule takes the Newton direction dx at x and returns an accepted
(x_new, F_new) pair, or raises StepRejected once every trial reduction has
failed. A trial point outside the catenary domain counts as a rejected
trial; any other error propagates to the driver.
"""

from typing import Callable, Tuple

import numpy as np

from ..config import StepAcceptance
from ..errors import FunctionDomainError, StepRejected

Residual = Callable[[np.ndarray], np.ndarray]


class FullStep:
    """Plain Newton: always take x + dx."""

    def reset(self) -> None:
        pass

    def step(self, residual: Residual, x, F, J, dx) -> Tuple[np.ndarray, np.ndarray]:
        x_new = x + dx
        return x_new, residual(x_new)


class BacktrackingLineSearch:
    """
    Armijo backtracking on ½||F||².

    Args:
        alpha: Sufficient-decrease constant
        shrink: Factor applied to lambda after a rejected trial
        min_lambda: Smallest lambda tried before giving up
    """

    def __init__(self, alpha: float = 1e-4, shrink: float = 0.5, min_lambda: float = 1e-10):
        self.alpha = alpha
        self.shrink = shrink
        self.min_lambda = min_lambda

    def reset(self) -> None:
        pass

    def step(self, residual: Residual, x, F, J, dx) -> Tuple[np.ndarray, np.ndarray]:
        f0 = float(F @ F)
        lam = 1.0
        while lam >= self.min_lambda:
            x_new = x + lam * dx
            try:
                F_new = residual(x_new)
            except FunctionDomainError:
                lam *= self.shrink
                continue
            if float(F_new @ F_new) <= (1.0 - 2.0 * self.alpha * lam) * f0:
                return x_new, F_new
            lam *= self.shrink
        raise StepRejected(f"Line search failed: no sufficient decrease down to lambda={self.min_lambda:.1e}")


class TrustRegion:
    """
    Trust region on the Newton step.

    The radius starts at the length of the first Newton step. A trial
    p = dx clipped to the radius is accepted when the ratio of actual to
    predicted decrease of ||F||² exceeds eta; the radius then grows on very
    good steps that hit the boundary and shrinks on poor ones.

    Args:
        eta: Minimum actual/predicted ratio to accept a step
        shrink: Radius factor after a rejected or poor step
        expand: Radius factor after a very good boundary step
        min_radius: Relative radius below which the step is rejected
    """

    def __init__(self, eta: float = 1e-4, shrink: float = 0.25, expand: float = 2.0,
                 min_radius: float = 1e-13):
        self.eta = eta
        self.shrink = shrink
        self.expand = expand
        self.min_radius = min_radius
        self.radius = None

    def reset(self) -> None:
        self.radius = None

    def step(self, residual: Residual, x, F, J, dx) -> Tuple[np.ndarray, np.ndarray]:
        dx_norm = float(np.linalg.norm(dx))
        if self.radius is None:
            self.radius = dx_norm
        f0 = float(F @ F)
        floor = self.min_radius * max(float(np.linalg.norm(x)), 1.0)

        # Always try at least once, even if an earlier step left the radius tiny
        while True:
            if dx_norm <= self.radius:
                p = dx
            else:
                p = dx * (self.radius / dx_norm)
            p_norm = float(np.linalg.norm(p))

            linear = F + J @ p
            predicted = f0 - float(linear @ linear)

            try:
                F_new = residual(x + p)
            except FunctionDomainError:
                F_new = None

            if F_new is not None:
                actual = f0 - float(F_new @ F_new)
                rho = actual / predicted if predicted > 0.0 else -1.0

                if rho > self.eta:
                    if rho > 0.75 and p_norm >= 0.99 * self.radius:
                        self.radius *= self.expand
                    elif rho < 0.25:
                        self.radius = self.shrink * p_norm
                    return x + p, F_new

            self.radius = self.shrink * p_norm
            if self.radius <= floor:
                raise StepRejected(f"Trust region collapsed (radius={self.radius:.2e})")


def make_step_rule(kind: StepAcceptance):
    kind = StepAcceptance(kind)
    if kind is StepAcceptance.TRUST_REGION:
        return TrustRegion()
    if kind is StepAcceptance.LINE_SEARCH:
        return BacktrackingLineSearch()
    return FullStep()
