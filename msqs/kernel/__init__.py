# msqs/kernel - Equation system and Newton machinery
"""
KERNEL: FROM MODEL TO CONVERGED STATE
=====================================

    dof.py        Where each unknown lives in x
    assemble.py   Residual F(x) and the fixed-pattern sparse Jacobian J(x)
    linear.py     Backends for J·dx = -F (sparse LU, dense, ILU-GMRES)
    steps.py      Step acceptance (trust region, line search, full step)
    newton.py     SolverSession: lifecycle, iterations, stopping rules

Nothing here knows about files or plotting; it only needs a populated
Model and a SolverConfig.
"""

from .assemble import EquilibriumSystem, JacobianPattern
from .dof import ConstraintLayout
from .newton import SessionState, SolveResult, SolverSession

__all__ = [
    'ConstraintLayout',
    'EquilibriumSystem',
    'JacobianPattern',
    'SessionState',
    'SolveResult',
    'SolverSession',
]
