# msqs/solve.py
"""One-call equilibrium solve: initialize, solve, shut down."""

from typing import Optional

from .config import SolverConfig
from .kernel.newton import SolveResult, SolverSession
from .model import Model


def solve_equilibrium(model: Model, config: Optional[SolverConfig] = None) -> SolveResult:
    """
    Solve a model for static equilibrium with a fresh session.

    The model is unlocked again when this returns, whatever the outcome.
    InitializationError and SessionStateError propagate; numerical failures
    come back as a non-converged SolveResult.

    Examples:
    ---------
    >>> result = solve_equilibrium(model)
    >>> result.raise_for_status()
    """
    session = SolverSession()
    session.initialize(model, config)
    try:
        return session.solve(model)
    finally:
        session.shutdown()
