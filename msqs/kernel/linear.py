# msqs/kernel/linear.py
"""Linear-solve backends for the Newton step J·dx = -F."""

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as spla

from ..config import LinearSolverKind
from ..errors import LinearSolveFailure


class DirectSolver:
    """Sparse LU factorization (SuperLU) of the fixed-pattern Jacobian."""

    name = "direct"

    def solve(self, J: sparse.spmatrix, b: np.ndarray) -> np.ndarray:
        try:
            lu = spla.splu(sparse.csc_matrix(J))
        except RuntimeError as e:
            raise LinearSolveFailure(f"Sparse LU factorization failed: {e}") from e
        dx = lu.solve(np.asarray(b, dtype=float))
        if not np.all(np.isfinite(dx)):
            raise LinearSolveFailure("Sparse LU produced a non-finite step")
        return dx


class DenseSolver:
    """
    Dense LAPACK solve with a conditioning check.

    Args:
        cond_limit: Max condition number before raising LinearSolveFailure
    """

    name = "dense"

    def __init__(self, cond_limit: float = 1e14):
        self.cond_limit = cond_limit

    def solve(self, J: sparse.spmatrix, b: np.ndarray) -> np.ndarray:
        A = J.toarray() if sparse.issparse(J) else np.asarray(J, dtype=float)

        cond = np.linalg.cond(A)
        if not np.isfinite(cond) or cond > self.cond_limit:
            raise LinearSolveFailure(
                f"Singular or ill-conditioned Jacobian (cond={cond:.2e}). Need cond < {self.cond_limit:.0e}."
            )

        try:
            return np.linalg.solve(A, b)
        except np.linalg.LinAlgError as e:
            raise LinearSolveFailure(f"Dense solve failed: {e}") from e


class GMRESSolver:
    """
    Iterative solve: GMRES preconditioned with an incomplete LU factorization.

    Args:
        rtol: Relative residual tolerance of the inner solve
        restart: GMRES restart length
        maxiter: Maximum number of restarts
        drop_tol: ILU drop tolerance
    """

    name = "gmres"

    def __init__(self, rtol: float = 1e-12, restart: int = 50, maxiter: int = 200,
                 drop_tol: float = 1e-6):
        self.rtol = rtol
        self.restart = restart
        self.maxiter = maxiter
        self.drop_tol = drop_tol

    def solve(self, J: sparse.spmatrix, b: np.ndarray) -> np.ndarray:
        A = sparse.csc_matrix(J)
        try:
            ilu = spla.spilu(A, drop_tol=self.drop_tol)
        except RuntimeError as e:
            raise LinearSolveFailure(f"ILU preconditioner failed: {e}") from e
        M = spla.LinearOperator(A.shape, ilu.solve)

        dx, info = spla.gmres(A, b, M=M, rtol=self.rtol, atol=0.0,
                              restart=self.restart, maxiter=self.maxiter)
        if info != 0:
            raise LinearSolveFailure(
                f"GMRES did not converge (info={info})" if info > 0 else f"GMRES breakdown (info={info})"
            )
        if not np.all(np.isfinite(dx)):
            raise LinearSolveFailure("GMRES produced a non-finite step")
        return dx


def make_backend(kind: LinearSolverKind):
    """Backend instance for a LinearSolverKind."""
    kind = LinearSolverKind(kind)
    if kind is LinearSolverKind.DIRECT:
        return DirectSolver()
    if kind is LinearSolverKind.DENSE:
        return DenseSolver()
    return GMRESSolver()
