# msqs/config.py
"""
Solver configuration.

One validated structure, built once and handed to SolverSession.initialize.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ConfigurationError


class JacobianMode(Enum):
    ANALYTIC = "analytic"
    FINITE_DIFFERENCE = "finite_difference"


class LinearSolverKind(Enum):
    DIRECT = "direct"    # Sparse LU (SuperLU)
    DENSE = "dense"      # Dense LAPACK solve with conditioning check
    GMRES = "gmres"      # ILU-preconditioned GMRES


class StepAcceptance(Enum):
    TRUST_REGION = "trust_region"
    LINE_SEARCH = "line_search"
    NONE = "none"        # Full Newton steps, no acceptance test


def _positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0


@dataclass
class SolverConfig:
    """
    Settings for the Newton equilibrium solve.

    Attributes:
        abs_tol: Converged when ||F|| < abs_tol.
        rel_tol: Converged when ||F|| < rel_tol * ||F_0||.
        step_tol: Converged when ||dx|| < step_tol.
        max_iterations: Newton iterations before DIVERGED_MAX_IT.
        jacobian: Analytic Jacobian or central finite differences.
        scaling: Factor K applied to the node force-balance equations only.
        linear_solver: Backend used for J dx = -F.
        step_acceptance: Globalization strategy for each Newton step.
        use_default_settings: Force the direct solver with the trust region,
            ignoring linear_solver and step_acceptance. Off by default.
        post_solve_tol: Tolerance of the residual re-check after convergence.
            None means abs_tol.
        max_function_evals: Residual evaluations before DIVERGED_FUNCTION_COUNT.
        local_min_tol: ||J^T F|| / ||F|| below which a rejected step is
            reported as stagnation at a local minimum.
    """

    abs_tol: float = 1e-6
    rel_tol: float = 1e-10
    step_tol: float = 1e-12
    max_iterations: int = 100
    jacobian: JacobianMode = JacobianMode.ANALYTIC
    scaling: float = 1.0
    linear_solver: LinearSolverKind = LinearSolverKind.DIRECT
    step_acceptance: StepAcceptance = StepAcceptance.TRUST_REGION
    use_default_settings: bool = False
    post_solve_tol: Optional[float] = None
    max_function_evals: int = 10000
    local_min_tol: float = 1e-10

    def __post_init__(self):
        try:
            self.jacobian = JacobianMode(self.jacobian)
            self.linear_solver = LinearSolverKind(self.linear_solver)
            self.step_acceptance = StepAcceptance(self.step_acceptance)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        for name in ("abs_tol", "rel_tol", "step_tol", "scaling", "local_min_tol"):
            value = getattr(self, name)
            if not _positive_number(value):
                raise ConfigurationError(f"{name} must be a float > 0, got {value!r}")

        for name in ("max_iterations", "max_function_evals"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be an int > 0, got {value!r}")

        if self.post_solve_tol is not None and not _positive_number(self.post_solve_tol):
            raise ConfigurationError(
                f"post_solve_tol must be > 0 or None, got {self.post_solve_tol!r}"
            )

    @property
    def effective_linear_solver(self) -> LinearSolverKind:
        if self.use_default_settings:
            return LinearSolverKind.DIRECT
        return self.linear_solver

    @property
    def effective_step_acceptance(self) -> StepAcceptance:
        if self.use_default_settings:
            return StepAcceptance.TRUST_REGION
        return self.step_acceptance

    @property
    def effective_post_solve_tol(self) -> float:
        return self.abs_tol if self.post_solve_tol is None else self.post_solve_tol
