# msqs/reasons.py
"""
CONVERGENCE REPORTER: Termination Reasons, Status Codes and Messages
====================================================================

Reason codes follow PETSc's SNESConvergedReason numbering so results line
up with other quasi-static mooring tools: positive = converged,
negative = diverged, 0 = still iterating. POST_SOLVE_TOLERANCE has no
PETSc counterpart; it marks a "converged" solve whose explicit residual
re-check failed.

report_reason() is the only place that turns a reason into text.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Tuple, Type

from .errors import (
    FunctionCountExceeded,
    FunctionDomainError,
    LinearSolveFailure,
    LocalMinimumStagnation,
    MaxIterationsExceeded,
    MooringError,
    NumericalOverflow,
    PostSolveToleranceFailure,
    StepRejected,
)


class ConvergedReason(IntEnum):
    CONVERGED_ITERATING = 0
    CONVERGED_FNORM_ABS = 2
    CONVERGED_FNORM_RELATIVE = 3
    CONVERGED_SNORM_RELATIVE = 4
    CONVERGED_ITS = 5
    CONVERGED_TR_DELTA = 7
    DIVERGED_FUNCTION_DOMAIN = -1
    DIVERGED_FUNCTION_COUNT = -2
    DIVERGED_LINEAR_SOLVE = -3
    DIVERGED_FNORM_NAN = -4
    DIVERGED_MAX_IT = -5
    DIVERGED_LINE_SEARCH = -6
    DIVERGED_INNER = -7
    DIVERGED_LOCAL_MIN = -8
    DIVERGED_TR_DELTA = -11
    POST_SOLVE_TOLERANCE = -100

    @property
    def converged(self) -> bool:
        return self.value > 0


@dataclass(frozen=True)
class ConvergenceReport:
    """Stable status code, verdict and human-readable message for a reason."""
    code: int
    converged: bool
    message: str


GENERIC_FAILURE = "Mooring solve failed to converge."

_MESSAGES: Dict[ConvergedReason, str] = {
    ConvergedReason.CONVERGED_ITERATING: "Converged (code 0).",
    ConvergedReason.CONVERGED_FNORM_ABS: "Converged (code 2: '||F|| < atol').",
    ConvergedReason.CONVERGED_FNORM_RELATIVE: "Converged (code 3: '||F|| < rtol*||F_initial||').",
    ConvergedReason.CONVERGED_SNORM_RELATIVE: "Converged (code 4: 'Step size small; ||delta x|| < stol').",
    ConvergedReason.CONVERGED_ITS: "Converged (code 5: 'Maximum iteration reached').",
    ConvergedReason.CONVERGED_TR_DELTA: "Converged (code 7: 'Trust region radius small').",
    ConvergedReason.DIVERGED_FUNCTION_DOMAIN:
        "Diverged (code -1): the new x location passed to the function is not in the domain of F.",
    ConvergedReason.DIVERGED_FUNCTION_COUNT:
        "Diverged (code -2): maximum number of function evaluations exceeded.",
    ConvergedReason.DIVERGED_LINEAR_SOLVE: "Diverged (code -3): the linear solve failed.",
    ConvergedReason.DIVERGED_FNORM_NAN: "Diverged (code -4): NaN or Inf in the residual or Jacobian.",
    ConvergedReason.DIVERGED_MAX_IT: "Diverged (code -5): maximum number of iterations exceeded.",
    ConvergedReason.DIVERGED_LINE_SEARCH: "Diverged (code -6): the line search failed.",
    ConvergedReason.DIVERGED_INNER: "Diverged (code -7): inner solve failed.",
    ConvergedReason.DIVERGED_LOCAL_MIN:
        "Diverged (code -8): ||J^T F|| is small, converged to a local minimum of ||F|| that is not a solution.",
    ConvergedReason.DIVERGED_TR_DELTA: "Diverged (code -11): trust region radius collapsed.",
    ConvergedReason.POST_SOLVE_TOLERANCE:
        "Diverged (code -100): solver reported convergence but the residual re-check exceeds the tolerance.",
}

_EXCEPTIONS: Dict[ConvergedReason, Type[MooringError]] = {
    ConvergedReason.DIVERGED_FUNCTION_DOMAIN: FunctionDomainError,
    ConvergedReason.DIVERGED_FUNCTION_COUNT: FunctionCountExceeded,
    ConvergedReason.DIVERGED_LINEAR_SOLVE: LinearSolveFailure,
    ConvergedReason.DIVERGED_FNORM_NAN: NumericalOverflow,
    ConvergedReason.DIVERGED_MAX_IT: MaxIterationsExceeded,
    ConvergedReason.DIVERGED_LINE_SEARCH: StepRejected,
    ConvergedReason.DIVERGED_LOCAL_MIN: LocalMinimumStagnation,
    ConvergedReason.DIVERGED_TR_DELTA: StepRejected,
    ConvergedReason.POST_SOLVE_TOLERANCE: PostSolveToleranceFailure,
}


def report_reason(reason) -> ConvergenceReport:
    """
    Map a termination reason to its report.

    Accepts a ConvergedReason or its integer code. Anything unrecognized
    maps to the generic failure message instead of raising.

    Examples:
    ---------
    >>> report_reason(2).message
    "Converged (code 2: '||F|| < atol')."
    >>> report_reason(42).converged
    False
    """
    try:
        reason = ConvergedReason(reason)
    except (ValueError, TypeError):
        code = reason if isinstance(reason, int) and not isinstance(reason, bool) else -999
        return ConvergenceReport(code=code, converged=False, message=GENERIC_FAILURE)
    return ConvergenceReport(code=int(reason), converged=reason.converged, message=_MESSAGES[reason])


def exception_for(reason) -> Tuple[Type[MooringError], str]:
    """Exception class and message matching a non-converged reason."""
    report = report_reason(reason)
    try:
        cls = _EXCEPTIONS.get(ConvergedReason(reason), MooringError)
    except (ValueError, TypeError):
        cls = MooringError
    return cls, report.message
