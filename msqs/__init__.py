# msqs - Multi-Segmented Quasi-Static mooring equilibrium
"""
MSQS: Static Equilibrium of Multi-Line Mooring Networks
=======================================================

Given anchors, vessel fairleads, free junction nodes and elastic catenary
lines between them, find the junction positions and line tensions at which
every free node is in force balance.

ARCHITECTURE:
-------------
    model.py        Node, LineType, Element, Model
    catenary.py     Elastic catenary closed forms and partials
    forces.py       Line end forces projected onto nodes
    config.py       SolverConfig
    reasons.py      Termination reasons and their messages
    errors.py       Exception classes
    kernel/         Equation system, linear backends, Newton session
    solve.py        solve_equilibrium() convenience
    post.py         Line profiles, end tensions, node reactions
    viz.py          matplotlib 3D plot
"""

from .config import JacobianMode, LinearSolverKind, SolverConfig, StepAcceptance
from .errors import ConfigurationError, MooringError
from .kernel import SessionState, SolveResult, SolverSession
from .model import Element, LineType, Model, Node, NodeRole
from .reasons import ConvergedReason, report_reason
from .solve import solve_equilibrium

__version__ = "0.1.0"

__all__ = [
    'ConfigurationError',
    'ConvergedReason',
    'Element',
    'JacobianMode',
    'LineType',
    'LinearSolverKind',
    'Model',
    'MooringError',
    'Node',
    'NodeRole',
    'SessionState',
    'SolveResult',
    'SolverConfig',
    'SolverSession',
    'StepAcceptance',
    'report_reason',
    'solve_equilibrium',
]
