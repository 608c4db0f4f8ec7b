# tests/test_assembly.py
"""
RESIDUAL / JACOBIAN TESTS
=========================

1. LAYOUT: node coordinates first, then (H, V) per element
2. PATTERN: the sparse structure never changes between evaluations
3. CORRECTNESS: analytic J matches central differences of F at randomly
   perturbed states
"""

import numpy as np
import pytest

from msqs.catenary import Regime
from msqs.config import JacobianMode
from msqs.errors import InitializationError, NumericalOverflow
from msqs.forces import evaluate_element
from msqs.kernel.assemble import EquilibriumSystem, JacobianPattern
from msqs.kernel.dof import ConstraintLayout
from msqs.model import Element, LineType, Model, Node, NodeRole


def fd_jacobian(system, x, rel=1e-6):
    """Dense central-difference Jacobian of system.residual."""
    n = len(x)
    J = np.zeros((n, n))
    for j in range(n):
        step = rel * max(1.0, abs(x[j]))
        xp, xm = x.copy(), x.copy()
        xp[j] += step
        xm[j] -= step
        J[:, j] = (system.residual(xp) - system.residual(xm)) / (2.0 * step)
    return J


def assert_jacobians_match(J_an, J_fd, rtol=1e-5, row_atol=1e-8):
    """Entrywise rtol, plus a floor relative to each row's largest entry."""
    row_scale = np.max(np.abs(J_fd), axis=1, keepdims=True)
    tol = rtol * np.abs(J_fd) + row_atol * row_scale + 1e-14
    bad = np.argwhere(np.abs(J_an - J_fd) > tol)
    assert len(bad) == 0, (
        f"{len(bad)} mismatched entries, first at {tuple(bad[0])}: "
        f"analytic={J_an[tuple(bad[0])]:.6e}, fd={J_fd[tuple(bad[0])]:.6e}"
    )


# =============================================================================
# LAYOUT
# =============================================================================

def test_layout_order(bridle_network):
    layout = ConstraintLayout.from_model(bridle_network)
    assert layout.n_node_eqs == 9
    assert layout.size == 9 + 2 * 9
    assert layout.node_dofs[:3] == [(4, 0), (4, 1), (4, 2)]
    assert layout.node_index(5, 1) == 4
    assert layout.node_index(1, 0) is None
    assert layout.element_index(0, 0) == 9
    assert layout.element_index(2, 1) == 14


def test_layout_skips_inactive_axes(bridle_network):
    bridle_network.node(4).active = (True, True, False)
    layout = ConstraintLayout.from_model(bridle_network)
    assert layout.n_node_eqs == 8
    assert layout.node_indices(4) == [(0, 0), (1, 1)]
    assert layout.node_indices(5) == [(0, 2), (1, 3), (2, 4)]


def test_initial_vector_round_trips_model_state(bridle_network):
    system = EquilibriumSystem(bridle_network)
    x0 = system.initial_vector()
    assert x0[0] == pytest.approx(bridle_network.node(4).x)
    assert x0[9] == pytest.approx(9.7e5)

    x = x0.copy()
    x[2] -= 1.5
    x[10] += 100.0
    system.scatter(x)
    assert bridle_network.node(4).z == pytest.approx(-71.5)
    assert bridle_network.elements[0].v == pytest.approx(6.1e5 + 100.0)
    np.testing.assert_array_equal(system.initial_vector(), x)


def test_missing_tensions_are_estimated():
    model = Model(depth=400.0)
    model.add_line_type(LineType("chain", diameter=0.09, mass_density=77.7066, ea=384.243e6))
    model.add_node(Node(1, NodeRole.FIXED, 0.0, 0.0, -320.0))
    model.add_node(Node(2, NodeRole.VESSEL, 803.87, 0.0, -70.0))
    model.add_element(Element(1, "chain", 850.0, anchor=1, fairlead=2))

    EquilibriumSystem(model)
    element = model.elements[0]
    assert element.h > 0.0
    assert element.v > 0.0


# =============================================================================
# PATTERN
# =============================================================================

def test_pattern_merges_duplicates_and_clears_values():
    pattern = JacobianPattern(3, [(0, 0), (1, 2), (0, 0), (2, 1)])
    assert pattern.nnz == 3
    pattern.add(1, 2, 4.0)
    pattern.add(1, 2, 1.0)
    assert pattern.matrix[1, 2] == 5.0
    pattern.clear()
    assert pattern.matrix.nnz == 3
    assert pattern.matrix[1, 2] == 0.0
    assert pattern.contains(2, 1)
    assert not pattern.contains(2, 2)
    with pytest.raises(KeyError):
        pattern.add(2, 2, 1.0)


def test_jacobian_pattern_is_fixed(suspended_network):
    system = EquilibriumSystem(suspended_network)
    x = system.initial_vector()

    J1 = system.jacobian(x)
    indices, indptr = J1.indices.copy(), J1.indptr.copy()
    values = J1.data.copy()

    x2 = x.copy()
    x2[:9] += 0.3
    J2 = system.jacobian(x2)

    assert J2 is J1
    np.testing.assert_array_equal(J2.indices, indices)
    np.testing.assert_array_equal(J2.indptr, indptr)
    assert not np.allclose(J2.data, values)


def test_jacobian_pattern_covers_every_nonzero(suspended_network):
    system = EquilibriumSystem(suspended_network)
    x = system.initial_vector()
    J_fd = fd_jacobian(system, x)
    rows, cols = np.nonzero(np.abs(J_fd) > 1e-6 * np.max(np.abs(J_fd), axis=1, keepdims=True))
    for r, c in zip(rows, cols):
        assert system.pattern.contains(r, c), f"({r}, {c}) missing from pattern"


# =============================================================================
# CORRECTNESS
# =============================================================================

@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_analytic_jacobian_matches_central_differences(suspended_network, seed):
    system = EquilibriumSystem(suspended_network)
    rng = np.random.default_rng(seed)

    x = system.initial_vector()
    M = system.layout.n_node_eqs
    x[:M] += rng.uniform(-0.5, 0.5, M)
    x[M:] *= rng.uniform(0.9, 1.1, len(x) - M)

    J_an = system.analytic_jacobian(x).toarray()
    J_fd = fd_jacobian(system, x)
    assert_jacobians_match(J_an, J_fd)


@pytest.mark.parametrize("scaling", [1.0, 1e-3])
def test_scaling_applies_to_node_rows_only(suspended_network, scaling):
    system = EquilibriumSystem(suspended_network, scaling=scaling)
    x = system.initial_vector()
    J_an = system.analytic_jacobian(x).toarray()
    J_fd = fd_jacobian(system, x)
    assert_jacobians_match(J_an, J_fd)

    reference = EquilibriumSystem(suspended_network, scaling=1.0)
    F = system.residual(x)
    F_ref = reference.residual(x)
    M = system.layout.n_node_eqs
    np.testing.assert_allclose(F[:M], scaling * F_ref[:M])
    np.testing.assert_allclose(F[M:], F_ref[M:])


def test_seabed_anchor_jacobian(sliding_anchor_line):
    """Anchor-end partials of a line resting on the seabed with friction."""
    model = sliding_anchor_line
    system = EquilibriumSystem(model)
    x = system.initial_vector()

    _, state = evaluate_element(model, model.elements[0])
    assert state.regime is Regime.SEABED
    assert state.ha > 0.0

    J_an = system.analytic_jacobian(x).toarray()
    J_fd = fd_jacobian(system, x)
    assert_jacobians_match(J_an, J_fd)


def test_finite_difference_mode_matches_analytic(suspended_network):
    analytic = EquilibriumSystem(suspended_network)
    x = analytic.initial_vector()
    J_an = analytic.jacobian(x).toarray()

    fd = EquilibriumSystem(suspended_network, jacobian_mode=JacobianMode.FINITE_DIFFERENCE)
    J_fd = fd.jacobian(x).toarray()
    assert fd.jacobian(x) is fd.pattern.matrix
    assert_jacobians_match(J_fd, J_an, rtol=1e-4, row_atol=1e-7)


def test_finite_difference_jacobian_restores_state(suspended_network):
    system = EquilibriumSystem(suspended_network, jacobian_mode="finite_difference")
    x = system.initial_vector()
    system.jacobian(x)
    np.testing.assert_array_equal(system.initial_vector(), x)


def test_residual_counts_evaluations(suspended_network):
    system = EquilibriumSystem(suspended_network)
    x = system.initial_vector()
    system.residual(x)
    system.residual(x)
    system.jacobian(x)
    assert system.function_evals == 2


def test_nan_residual_raises(suspended_network):
    suspended_network.node(4).external_force = (np.nan, 0.0, 0.0)
    system = EquilibriumSystem(suspended_network)
    with pytest.raises(NumericalOverflow):
        system.residual(system.initial_vector())


# =============================================================================
# VALIDATION
# =============================================================================

def test_empty_model_rejected():
    with pytest.raises(InitializationError):
        EquilibriumSystem(Model(depth=100.0))


def test_active_flags_on_fixed_node_rejected(bridle_network):
    bridle_network.node(1).active = (True, False, False)
    with pytest.raises(InitializationError, match="only connect nodes"):
        EquilibriumSystem(bridle_network)


def test_unknown_references_rejected():
    model = Model(depth=100.0)
    model.add_line_type(LineType("rope", diameter=0.05, mass_density=5.0, ea=1e7))
    model.add_node(Node(1, NodeRole.FIXED, 0.0, 0.0, -100.0))
    model.add_element(Element(1, "rope", 50.0, anchor=1, fairlead=99))
    with pytest.raises(InitializationError, match="unknown node 99"):
        EquilibriumSystem(model)

    model = Model(depth=100.0)
    model.add_node(Node(1, NodeRole.FIXED, 0.0, 0.0, -100.0))
    model.add_node(Node(2, NodeRole.VESSEL, 40.0, 0.0, -10.0))
    model.add_element(Element(1, "wire", 50.0, anchor=1, fairlead=2))
    with pytest.raises(InitializationError, match="unknown line type 'wire'"):
        EquilibriumSystem(model)
