# msqs/kernel/assemble.py
"""
ASSEMBLY: Residual Vector and Block Jacobian
============================================

PURPOSE:
--------
This module turns a Model into the nonlinear system F(x) = 0 that the
Newton driver solves, and provides its Jacobian J(x).

RESIDUAL LAYOUT:
----------------
    F = [ K·ΣF_node (one row per active node axis)   ]   M rows
        [ Xc - Xspan, Zc - Zspan (per element)      ]   2·n_elements rows

JACOBIAN LAYOUT:
----------------
    J = [  A    B ]      A: d(K·node forces)/d(node positions)
        [ -Bᵗ   C ]      B: d(K·node forces)/d(H, V)
                         lower-left: d(closure)/d(node positions)
                         C: per-element 2×2 catenary partials

Element contributions are computed as small dense blocks and scattered into
a CSR matrix whose nonzero pattern is fixed when the system is built. Every
evaluation clears the values, never the structure, so a backend can rely on
the same pattern from one iteration to the next.
"""

from typing import Dict, Iterable, List, Tuple

import numpy as np
from scipy import sparse

from ..catenary import CatenaryState, LineGeometry, initial_tension_guess, line_geometry
from ..config import JacobianMode
from ..errors import FunctionDomainError, InitializationError, NumericalOverflow
from ..forces import accumulate_forces, evaluate_elements, node_residuals
from ..model import Model, NodeRole
from .dof import H_SLOT, V_SLOT, ConstraintLayout


class JacobianPattern:
    """
    A CSR matrix with a frozen nonzero pattern.

    Parameters:
    -----------
    size : int
        Number of rows and columns

    entries : Iterable[Tuple[int, int]]
        (row, col) coordinates of every structural nonzero. Duplicates are
        merged.
    """

    def __init__(self, size: int, entries: Iterable[Tuple[int, int]]):
        coords = sorted(set(entries))
        rows = np.array([r for r, _ in coords], dtype=int)
        cols = np.array([c for _, c in coords], dtype=int)

        indptr = np.zeros(size + 1, dtype=int)
        np.add.at(indptr, rows + 1, 1)
        indptr = np.cumsum(indptr)

        self.size = size
        self.matrix = sparse.csr_matrix(
            (np.zeros(len(coords), dtype=float), cols, indptr), shape=(size, size)
        )
        self._slot: Dict[Tuple[int, int], int] = {coord: k for k, coord in enumerate(coords)}
        self._column_rows: Dict[int, List[int]] = {}
        for r, c in coords:
            self._column_rows.setdefault(c, []).append(r)

    @property
    def nnz(self) -> int:
        return len(self._slot)

    def clear(self) -> None:
        """Zero every value, keep the structure."""
        self.matrix.data[:] = 0.0

    def add(self, row: int, col: int, value: float) -> None:
        self.matrix.data[self._slot[(row, col)]] += value

    def contains(self, row: int, col: int) -> bool:
        return (row, col) in self._slot

    def column_rows(self, col: int) -> List[int]:
        return self._column_rows.get(col, [])


def element_jacobian_blocks(
    geom: LineGeometry,
    state: CatenaryState,
    h: float,
) -> Dict[str, np.ndarray]:
    """
    Dense derivative blocks for one element (unscaled).

    Keys:
    -----
    'ff', 'fa', 'af', 'aa' : 3×3
        d(force on first node)/d(position of second node), with f=fairlead
        and a=anchor
    'f_hv', 'a_hv' : 3×2
        d(force on node)/d(H, V)
    'closure_f', 'closure_a' : 2×3
        d(Xc - Xspan, Zc - Zspan)/d(node position)
    'C' : 2×2
        catenary partials
    """
    # d(c, s)/d(fairlead x, y); negated for the anchor
    if geom.r > 0.0:
        m = np.array([
            [geom.s * geom.s, -geom.c * geom.s],
            [-geom.c * geom.s, geom.c * geom.c],
        ]) / geom.r
    else:
        m = np.zeros((2, 2))

    ff = np.zeros((3, 3))
    ff[0:2, 0:2] = -h * m
    fa = -ff
    af = np.zeros((3, 3))
    af[0:2, 0:2] = state.ha * m
    aa = -af

    f_hv = np.array([
        [-geom.c, 0.0],
        [-geom.s, 0.0],
        [0.0, -1.0],
    ])
    a_hv = np.array([
        [geom.c * state.dha_dh, geom.c * state.dha_dv],
        [geom.s * state.dha_dh, geom.s * state.dha_dv],
        [state.dva_dh, state.dva_dv],
    ])

    kx = state.dx_dspan - 1.0
    kz = state.dz_dspan - 1.0
    closure_f = np.array([
        [kx * geom.c, kx * geom.s, 0.0],
        [0.0, 0.0, kz],
    ])
    closure_a = -closure_f

    return {
        'ff': ff, 'fa': fa, 'af': af, 'aa': aa,
        'f_hv': f_hv, 'a_hv': a_hv,
        'closure_f': closure_f, 'closure_a': closure_a,
        'C': state.jacobian,
    }


class EquilibriumSystem:
    """
    Residual/Jacobian builder for one model.

    Construction estimates any missing (H, V) guesses, fixes the layout of
    x and the Jacobian pattern. After that the model's structure must not
    change.

    Parameters:
    -----------
    model : Model
        Fully populated model

    scaling : float
        Factor K on the force-balance rows

    jacobian_mode : JacobianMode
        ANALYTIC or FINITE_DIFFERENCE

    Raises:
    -------
    InitializationError
        If the model has no equations, dangling node references, unknown
        line types or active flags on non-CONNECT nodes
    """

    def __init__(self, model: Model, scaling: float = 1.0,
                 jacobian_mode: JacobianMode = JacobianMode.ANALYTIC):
        validate_model(model)
        self.model = model
        self.scaling = scaling
        self.jacobian_mode = JacobianMode(jacobian_mode)

        apply_initial_guesses(model)

        self.layout = ConstraintLayout.from_model(model)
        if self.layout.size == 0:
            raise InitializationError("Model has no unknowns (no free node axes and no elements)")

        self.pattern = JacobianPattern(self.layout.size, self._pattern_entries())
        self.function_evals = 0

    # ------------------------------------------------------------------
    # state transfer
    # ------------------------------------------------------------------

    def initial_vector(self) -> np.ndarray:
        """Current model state packed into x."""
        x = np.zeros(self.layout.size, dtype=float)
        for i, (node_id, axis) in enumerate(self.layout.node_dofs):
            x[i] = self.model.node(node_id).position[axis]
        for k, element in enumerate(self.model.elements):
            x[self.layout.element_index(k, H_SLOT)] = element.h
            x[self.layout.element_index(k, V_SLOT)] = element.v
        return x

    def scatter(self, x: np.ndarray) -> None:
        """Write x into node positions and element tensions."""
        if len(x) != self.layout.size:
            raise ValueError(f"x has length {len(x)}, layout expects {self.layout.size}")
        for i, (node_id, axis) in enumerate(self.layout.node_dofs):
            self.model.node(node_id).set_position(axis, float(x[i]))
        for k, element in enumerate(self.model.elements):
            element.h = float(x[self.layout.element_index(k, H_SLOT)])
            element.v = float(x[self.layout.element_index(k, V_SLOT)])

    # ------------------------------------------------------------------
    # residual
    # ------------------------------------------------------------------

    def residual(self, x: np.ndarray) -> np.ndarray:
        """
        Evaluate F(x). Counts toward the function-evaluation budget.

        Raises:
        -------
        FunctionDomainError
            If any element is outside the catenary model's validity
        NumericalOverflow
            If F contains NaN or Inf
        """
        self.function_evals += 1
        return self._evaluate(x)

    def _evaluate(self, x: np.ndarray) -> np.ndarray:
        self.scatter(x)
        evaluations = evaluate_elements(self.model)
        accumulate_forces(self.model, evaluations)

        M = self.layout.n_node_eqs
        F = np.empty(self.layout.size, dtype=float)
        F[:M] = node_residuals(self.model, self.scaling)
        for k, (geom, state) in enumerate(evaluations):
            F[M + 2 * k] = state.x - geom.r
            F[M + 2 * k + 1] = state.z - geom.dz

        if not np.all(np.isfinite(F)):
            raise NumericalOverflow("Residual contains NaN or Inf")
        return F

    # ------------------------------------------------------------------
    # Jacobian
    # ------------------------------------------------------------------

    def jacobian(self, x: np.ndarray) -> sparse.csr_matrix:
        """
        Evaluate J(x) into the fixed pattern and return the matrix.

        The returned matrix object is the same on every call; only its
        values change.
        """
        if self.jacobian_mode is JacobianMode.FINITE_DIFFERENCE:
            self.finite_difference_jacobian(x)
        else:
            self.analytic_jacobian(x)

        if not np.all(np.isfinite(self.pattern.matrix.data)):
            raise NumericalOverflow("Jacobian contains NaN or Inf")
        return self.pattern.matrix

    def analytic_jacobian(self, x: np.ndarray) -> sparse.csr_matrix:
        self.scatter(x)
        evaluations = evaluate_elements(self.model)
        K = self.scaling
        layout = self.layout
        self.pattern.clear()

        for k, (element, (geom, state)) in enumerate(zip(self.model.elements, evaluations)):
            blocks = element_jacobian_blocks(geom, state, element.h)
            ends = [('f', element.fairlead, element.fairlead_in_balance),
                    ('a', element.anchor, element.anchor_in_balance)]
            hv_cols = [layout.element_index(k, H_SLOT), layout.element_index(k, V_SLOT)]

            for eq_key, eq_node, in_balance in ends:
                eq_rows = layout.node_indices(eq_node)
                if in_balance:
                    # A block
                    for pos_key, pos_node, _ in ends:
                        block = blocks[eq_key + pos_key]
                        for i, row in eq_rows:
                            for j, col in layout.node_indices(pos_node):
                                self.pattern.add(row, col, K * block[i, j])
                    # B block (upper right)
                    hv = blocks[eq_key + '_hv']
                    for i, row in eq_rows:
                        for slot, col in enumerate(hv_cols):
                            self.pattern.add(row, col, K * hv[i, slot])

                # closure rows w.r.t. this node's position (lower left)
                closure = blocks['closure_' + eq_key]
                for j, col in eq_rows:
                    for slot, row in enumerate(hv_cols):
                        self.pattern.add(row, col, closure[slot, j])

            # C block
            C = blocks['C']
            for a in range(2):
                for b in range(2):
                    self.pattern.add(hv_cols[a], hv_cols[b], C[a, b])

        return self.pattern.matrix

    def finite_difference_jacobian(self, x: np.ndarray, rel_step: float = 1e-7) -> sparse.csr_matrix:
        """
        Central-difference Jacobian written into the same fixed pattern.

        A column whose backward point leaves the catenary domain (H < 0)
        falls back to a forward difference.
        """
        x0 = np.array(x, dtype=float)
        F0 = None
        self.pattern.clear()

        for j in range(len(x0)):
            step = rel_step * max(1.0, abs(x0[j]))
            xp = x0.copy()
            xp[j] += step
            Fp = self._evaluate(xp)

            xm = x0.copy()
            xm[j] -= step
            try:
                Fm = self._evaluate(xm)
                column = (Fp - Fm) / (2.0 * step)
            except FunctionDomainError:
                if F0 is None:
                    F0 = self._evaluate(x0)
                column = (Fp - F0) / step

            for row in self.pattern.column_rows(j):
                self.pattern.add(row, j, column[row])

        self._evaluate(x0)
        return self.pattern.matrix

    def _pattern_entries(self) -> List[Tuple[int, int]]:
        layout = self.layout
        entries = []
        for k, element in enumerate(self.model.elements):
            nodes = [element.fairlead, element.anchor]
            hv = [layout.element_index(k, H_SLOT), layout.element_index(k, V_SLOT)]
            for eq_node in nodes:
                for _, row in layout.node_indices(eq_node):
                    for pos_node in nodes:
                        for _, col in layout.node_indices(pos_node):
                            entries.append((row, col))
                    for col in hv:
                        entries.append((row, col))
                        entries.append((col, row))
            for a in hv:
                for b in hv:
                    entries.append((a, b))
        return entries


def validate_model(model: Model) -> None:
    """
    Check references and flags before a system is built.

    Raises:
    -------
    InitializationError
    """
    if not model.elements and not any(any(n.active) for n in model.nodes):
        raise InitializationError("Model has no elements and no free nodes; nothing to solve")

    for node in model.nodes:
        if any(node.active) and node.role is not NodeRole.CONNECT:
            raise InitializationError(
                f"Node {node.id} ({node.role.value}) has active equation flags; only connect nodes may"
            )

    known = {n.id for n in model.nodes}
    for element in model.elements:
        for end, node_id in (("anchor", element.anchor), ("fairlead", element.fairlead)):
            if node_id not in known:
                raise InitializationError(
                    f"Element {element.id} {end} references unknown node {node_id}"
                )
        if element.line_type not in model.line_types:
            raise InitializationError(
                f"Element {element.id} references unknown line type '{element.line_type}'"
            )


def apply_initial_guesses(model: Model) -> None:
    """Fill in (H, V) for elements that were given no starting tension."""
    for element in model.elements:
        if element.h is not None and element.v is not None:
            continue
        anchor = model.node(element.anchor)
        fairlead = model.node(element.fairlead)
        geom = line_geometry(anchor.position, fairlead.position)
        line_type = model.line_type_of(element)
        h, v = initial_tension_guess(
            geom.r, geom.dz, element.length, line_type.ea, model.net_weight(element)
        )
        if element.h is None:
            element.h = h
        if element.v is None:
            element.v = v
