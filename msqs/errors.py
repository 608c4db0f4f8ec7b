# msqs/errors.py
"""Error taxonomy for model setup, evaluation and the Newton solve."""


class MooringError(RuntimeError):
    """Base class for every error raised by the equilibrium solver."""
    pass


class ConfigurationError(ValueError):
    """Raised when a SolverConfig value is out of range."""
    pass


class ModelLockedError(MooringError):
    """Raised on structural model edits while a solve session is active."""
    pass


class SessionStateError(MooringError):
    """Raised when a session method is called in the wrong state."""
    pass


class InitializationError(MooringError):
    """Raised when a model cannot be turned into a solvable system."""
    pass


class FunctionDomainError(MooringError):
    """Raised when the residual is evaluated outside the catenary model's validity."""
    pass


class LinearSolveFailure(MooringError):
    """Raised when the Newton linear system is singular or the backend fails."""
    pass


class NumericalOverflow(MooringError):
    """Raised when NaN or Inf appears in the residual or the Jacobian."""
    pass


class FunctionCountExceeded(MooringError):
    """Raised when the residual has been evaluated more times than allowed."""
    pass


class StepRejected(MooringError):
    """Raised when the step-acceptance test rejects every trial step."""
    pass


class MaxIterationsExceeded(MooringError):
    """Raised by SolveResult.raise_for_status() after the iteration limit."""
    pass


class LocalMinimumStagnation(MooringError):
    """Raised by SolveResult.raise_for_status() when ||J^T F|| vanished at a non-solution."""
    pass


class PostSolveToleranceFailure(MooringError):
    """Raised by SolveResult.raise_for_status() when the final residual re-check fails."""
    pass
