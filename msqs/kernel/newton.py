# msqs/kernel/newton.py
"""
NEWTON DRIVER: Solve Session for the Mooring Equilibrium
========================================================

PURPOSE:
--------
SolverSession owns one solve of one model:

    UNINITIALIZED --initialize()--> INITIALIZED --solve()--> SOLVING
        --> CONVERGED | DIVERGED | FAILED
    any state --shutdown()--> UNINITIALIZED

solve() may be called again on a CONVERGED session; it restarts from the
converged x and returns at once with x unchanged. DIVERGED and FAILED end
the session: call shutdown() and initialize() again.

ALGORITHM (per iteration):
--------------------------
    1. F = F(x_k), J = J(x_k)          (EquilibriumSystem)
    2. solve J·dx = -F                 (linear backend)
    3. x_{k+1} = accepted step         (trust region / line search / full)
    4. check stopping rules, first match wins:
           ||F|| < atol              -> CONVERGED_FNORM_ABS
           ||F|| < rtol·||F_0||      -> CONVERGED_FNORM_RELATIVE
           ||dx|| < stol             -> CONVERGED_SNORM_RELATIVE
           k >= max_iterations       -> DIVERGED_MAX_IT

Any FunctionDomainError, LinearSolveFailure, NumericalOverflow,
FunctionCountExceeded or StepRejected ends the solve with the matching
DIVERGED_* reason. solve() never raises for these: it returns a
SolveResult. After a converged reason the residual is evaluated once more
at the final x; if ||F|| exceeds the post-solve tolerance the reason
becomes POST_SOLVE_TOLERANCE.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from ..config import SolverConfig
from ..errors import (
    FunctionCountExceeded,
    FunctionDomainError,
    InitializationError,
    LinearSolveFailure,
    NumericalOverflow,
    SessionStateError,
    StepRejected,
)
from ..model import Model
from ..reasons import ConvergedReason, ConvergenceReport, exception_for, report_reason
from .assemble import EquilibriumSystem
from .linear import make_backend
from .steps import TrustRegion, make_step_rule

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SOLVING = "solving"
    CONVERGED = "converged"
    DIVERGED = "diverged"
    FAILED = "failed"


@dataclass
class SolveResult:
    """
    Outcome of SolverSession.solve().

    Attributes:
        reason: Termination reason
        report: Status code and message for the reason
        iterations: Newton iterations performed
        function_evals: Residual evaluations made by this solve, including the
            post-solve re-check (finite differences excluded)
        residual_norm: ||F|| at the last evaluated state
        history: ||F|| after each accepted iterate, starting with ||F_0||
        x: Final constraint vector. Only meaningful when converged.
    """
    reason: ConvergedReason
    report: ConvergenceReport
    iterations: int = 0
    function_evals: int = 0
    residual_norm: float = float("nan")
    history: List[float] = field(default_factory=list)
    x: Optional[np.ndarray] = None

    @property
    def converged(self) -> bool:
        return self.report.converged

    def raise_for_status(self) -> None:
        """Raise the typed error matching a non-converged reason."""
        if self.converged:
            return
        cls, message = exception_for(self.reason)
        raise cls(f"{message} (after {self.iterations} iterations, ||F||={self.residual_norm:.3e})")


class _Diverged(Exception):
    def __init__(self, reason: ConvergedReason, detail: str):
        super().__init__(detail)
        self.reason = reason


class SolverSession:
    """
    One Newton solve of a mooring model.

    Parameters:
    -----------
    backend : optional
        Linear-solve backend with a solve(J, b) method. Defaults to the one
        selected by the configuration.

    step_rule : optional
        Step-acceptance rule with reset() and step(...). Defaults to the one
        selected by the configuration.

    Examples:
    ---------
    >>> session = SolverSession()
    >>> session.initialize(model, SolverConfig())
    >>> result = session.solve(model)
    >>> session.shutdown()
    """

    def __init__(self, backend=None, step_rule=None):
        self._backend_override = backend
        self._step_override = step_rule
        self._reset()

    def _reset(self) -> None:
        self.state = SessionState.UNINITIALIZED
        self.model: Optional[Model] = None
        self.config: Optional[SolverConfig] = None
        self.system: Optional[EquilibriumSystem] = None
        self.backend = None
        self.step_rule = None
        self.x: Optional[np.ndarray] = None
        self.iterations = 0
        self.reason: Optional[ConvergedReason] = None
        self._evals_at_start = 0

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def initialize(self, model: Model, config: Optional[SolverConfig] = None) -> None:
        """
        Build the equation system, fix the Jacobian pattern, copy in x_0.

        Raises:
        -------
        SessionStateError
            If the session is not UNINITIALIZED
        InitializationError
            If the model cannot be turned into a solvable system
        """
        if self.state is not SessionState.UNINITIALIZED:
            raise SessionStateError(
                f"initialize() requires an uninitialized session, state is {self.state.value}"
            )
        config = config or SolverConfig()

        try:
            system = EquilibriumSystem(model, scaling=config.scaling, jacobian_mode=config.jacobian)
            x0 = system.initial_vector()
        except InitializationError:
            raise
        except (KeyError, ValueError, TypeError, MemoryError) as e:
            raise InitializationError(f"Could not build equation system: {e}") from e

        if not np.all(np.isfinite(x0)):
            raise InitializationError("Initial guess contains NaN or Inf")

        self.model = model
        self.config = config
        self.system = system
        self.backend = self._backend_override or make_backend(config.effective_linear_solver)
        self.step_rule = self._step_override or make_step_rule(config.effective_step_acceptance)
        self.x = x0
        model.lock()
        self.state = SessionState.INITIALIZED

        logger.debug(
            "Initialized session: %d unknowns (%d node equations, %d elements), %d Jacobian nonzeros",
            system.layout.size, system.layout.n_node_eqs, system.layout.n_elements, system.pattern.nnz,
        )

    def shutdown(self) -> None:
        """Release the session and unlock the model."""
        if self.model is not None:
            self.model.unlock()
        self._reset()

    @property
    def size(self) -> int:
        return 0 if self.system is None else self.system.layout.size

    # ------------------------------------------------------------------
    # solve
    # ------------------------------------------------------------------

    def solve(self, model: Optional[Model] = None) -> SolveResult:
        """
        Run Newton iterations from the initial guess.

        On a converged result the model's free-node positions and element
        tensions hold the solution. After any other result the model state
        is unspecified.

        Raises:
        -------
        SessionStateError
            If the session is neither INITIALIZED nor CONVERGED, or a
            different model is passed
        """
        if self.state not in (SessionState.INITIALIZED, SessionState.CONVERGED):
            raise SessionStateError(f"solve() requires an initialized session, state is {self.state.value}")
        if model is not None and model is not self.model:
            raise SessionStateError("solve() was given a different model than initialize()")

        self.state = SessionState.SOLVING
        self.step_rule.reset()
        self._evals_at_start = self.system.function_evals
        history: List[float] = []
        x = self.x.copy()
        fnorm = float("nan")

        try:
            reason, x, fnorm = self._iterate(x, history)
        except _Diverged as d:
            reason = d.reason
            logger.debug("Solve stopped: %s", d)
        except Exception:
            self.state = SessionState.FAILED
            raise

        if reason.converged:
            reason, fnorm = self._post_solve_check(reason, x, fnorm)

        self.reason = reason
        self.x = x
        if reason.converged:
            self.state = SessionState.CONVERGED
        else:
            self.state = SessionState.DIVERGED

        report = report_reason(reason)
        if report.converged:
            logger.info("%s Iterations: %d, ||F||=%.3e", report.message, self.iterations, fnorm)
        else:
            logger.warning("%s Iterations: %d, ||F||=%.3e", report.message, self.iterations, fnorm)

        return SolveResult(
            reason=reason,
            report=report,
            iterations=self.iterations,
            function_evals=self._evals_this_solve,
            residual_norm=fnorm,
            history=history,
            x=x.copy() if reason.converged else None,
        )

    @property
    def _evals_this_solve(self) -> int:
        return self.system.function_evals - self._evals_at_start

    def _residual(self, x: np.ndarray) -> np.ndarray:
        if self._evals_this_solve >= self.config.max_function_evals:
            raise FunctionCountExceeded(
                f"Exceeded {self.config.max_function_evals} function evaluations"
            )
        return self.system.residual(x)

    def _iterate(self, x: np.ndarray, history: List[float]):
        cfg = self.config
        self.iterations = 0

        F = self._guard(self._residual, x)
        fnorm = float(np.linalg.norm(F))
        fnorm0 = fnorm
        history.append(fnorm)
        logger.debug("iter %3d  ||F|| = %.6e", 0, fnorm)

        if fnorm < cfg.abs_tol:
            return ConvergedReason.CONVERGED_FNORM_ABS, x, fnorm

        while True:
            if self.iterations >= cfg.max_iterations:
                raise _Diverged(ConvergedReason.DIVERGED_MAX_IT,
                                f"{cfg.max_iterations} iterations without convergence")

            J = self._guard(self.system.jacobian, x)
            dx = self._guard(self.backend.solve, J, -F)

            try:
                x_new, F_new = self.step_rule.step(self._residual, x, F, J, dx)
            except StepRejected as e:
                gnorm = float(np.linalg.norm(J.T @ F))
                if gnorm <= cfg.local_min_tol * fnorm:
                    raise _Diverged(ConvergedReason.DIVERGED_LOCAL_MIN,
                                    f"||J^T F||={gnorm:.3e} with ||F||={fnorm:.3e}") from e
                if isinstance(self.step_rule, TrustRegion):
                    raise _Diverged(ConvergedReason.DIVERGED_TR_DELTA, str(e)) from e
                raise _Diverged(ConvergedReason.DIVERGED_LINE_SEARCH, str(e)) from e
            except (FunctionDomainError, NumericalOverflow, FunctionCountExceeded) as e:
                raise _Diverged(_reason_for(e), str(e)) from e

            snorm = float(np.linalg.norm(x_new - x))
            x, F = x_new, F_new
            fnorm = float(np.linalg.norm(F))
            self.iterations += 1
            history.append(fnorm)
            logger.debug("iter %3d  ||F|| = %.6e  ||dx|| = %.3e", self.iterations, fnorm, snorm)

            if fnorm < cfg.abs_tol:
                return ConvergedReason.CONVERGED_FNORM_ABS, x, fnorm
            if fnorm < cfg.rel_tol * fnorm0:
                return ConvergedReason.CONVERGED_FNORM_RELATIVE, x, fnorm
            if snorm < cfg.step_tol:
                return ConvergedReason.CONVERGED_SNORM_RELATIVE, x, fnorm

    def _guard(self, func, *args):
        """Call func, converting kernel errors into a divergence reason."""
        try:
            return func(*args)
        except (FunctionDomainError, LinearSolveFailure, NumericalOverflow, FunctionCountExceeded) as e:
            raise _Diverged(_reason_for(e), str(e)) from e

    def _post_solve_check(self, reason: ConvergedReason, x: np.ndarray, fnorm: float):
        """Re-evaluate F at the final x; demote the reason if it is not small."""
        tol = self.config.effective_post_solve_tol
        try:
            F = self.system.residual(x)
        except (FunctionDomainError, NumericalOverflow) as e:
            logger.debug("Post-solve evaluation failed: %s", e)
            return _reason_for(e), fnorm

        fnorm = float(np.linalg.norm(F))
        if fnorm > tol:
            logger.debug("Post-solve check failed: ||F||=%.3e > %.3e (reason was %s)",
                         fnorm, tol, reason.name)
            return ConvergedReason.POST_SOLVE_TOLERANCE, fnorm
        return reason, fnorm


def _reason_for(error: Exception) -> ConvergedReason:
    if isinstance(error, FunctionDomainError):
        return ConvergedReason.DIVERGED_FUNCTION_DOMAIN
    if isinstance(error, LinearSolveFailure):
        return ConvergedReason.DIVERGED_LINEAR_SOLVE
    if isinstance(error, NumericalOverflow):
        return ConvergedReason.DIVERGED_FNORM_NAN
    return ConvergedReason.DIVERGED_FUNCTION_COUNT
