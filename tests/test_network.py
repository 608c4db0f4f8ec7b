# tests/test_network.py
"""
NETWORK TESTS: Symmetric Bridle Layout and Seabed Contact
=========================================================

1. SYMMETRY: three identical anchor lines carry equal tension, the six
   bridles split into two equal-tension triples, the junctions sit on a
   common circle
2. EQUILIBRIUM: every free node balances; the vessel reactions cancel
   horizontally
3. SEABED: a line resting on the bottom converges in the seabed regime,
   with friction taking the tension off the anchor
"""

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

import numpy as np
import pytest

from msqs import SolverConfig, solve_equilibrium
from msqs.catenary import Regime
from msqs.forces import evaluate_element
from msqs.model import NodeRole
from msqs.post import end_tensions, line_profile, node_reactions

NETWORK_CONFIG = dict(scaling=1e-3)


@pytest.fixture
def solved_network(bridle_network):
    result = solve_equilibrium(bridle_network, SolverConfig(**NETWORK_CONFIG))
    assert result.converged, result.report.message
    return bridle_network


def test_network_converges(bridle_network):
    result = solve_equilibrium(bridle_network, SolverConfig(**NETWORK_CONFIG))
    assert result.converged, result.report.message
    assert result.residual_norm < 1e-6
    assert result.iterations < 30


def test_anchor_lines_share_tension(solved_network):
    tensions = [solved_network.elements[i].tension for i in range(3)]
    np.testing.assert_allclose(tensions, tensions[0], rtol=1e-5)
    assert tensions[0] > 1e5


def test_bridles_split_into_two_triples(solved_network):
    elements = {e.id: e for e in solved_network.elements}
    first = [elements[i].tension for i in (4, 6, 8)]
    second = [elements[i].tension for i in (5, 7, 9)]

    np.testing.assert_allclose(first, first[0], rtol=1e-5)
    np.testing.assert_allclose(second, second[0], rtol=1e-5)
    assert abs(first[0] - second[0]) > 0.05 * max(first[0], second[0])


def test_junctions_stay_symmetric(solved_network):
    junctions = [solved_network.node(i) for i in (4, 5, 6)]
    radii = [np.hypot(n.x, n.y) for n in junctions]
    depths = [n.z for n in junctions]
    np.testing.assert_allclose(radii, radii[0], rtol=1e-6)
    np.testing.assert_allclose(depths, depths[0], atol=1e-5)

    # Rotating junction 4 by 120 degrees lands on junction 5
    c, s = np.cos(2 * np.pi / 3), np.sin(2 * np.pi / 3)
    j4, j5 = junctions[0], junctions[1]
    np.testing.assert_allclose([c * j4.x - s * j4.y, s * j4.x + c * j4.y], [j5.x, j5.y], atol=1e-5)


def test_free_nodes_balance(solved_network):
    node_reactions(solved_network)
    scale = max(e.tension for e in solved_network.elements)
    for node in solved_network.nodes:
        if node.role is NodeRole.CONNECT:
            np.testing.assert_allclose(node.sum_force, 0.0, atol=1e-8 * scale)


def test_vessel_reactions_cancel_horizontally(solved_network):
    reactions = node_reactions(solved_network)
    assert set(reactions) == {1, 2, 3, 7, 8, 9}

    vessel_total = sum(reactions[i] for i in (7, 8, 9))
    scale = max(e.tension for e in solved_network.elements)
    np.testing.assert_allclose(vessel_total[:2], 0.0, atol=1e-6 * scale)
    # Vessel is pulled down by the lines
    assert vessel_total[2] < 0.0


def test_anchor_line_profiles_reach_the_junctions(solved_network):
    for element in solved_network.elements:
        pts = line_profile(solved_network, element, n_points=80)
        np.testing.assert_allclose(pts[0], solved_network.node(element.anchor).position, atol=1e-9)
        np.testing.assert_allclose(pts[-1], solved_network.node(element.fairlead).position, atol=1e-5)


def test_plot_mooring(solved_network, tmp_path):
    from msqs.viz import plot_mooring

    out = tmp_path / "mooring.png"
    fig, ax = plot_mooring(solved_network, save_path=str(out))
    assert out.exists()
    assert len(ax.lines) == len(solved_network.elements)
    plt.close(fig)


# =============================================================================
# SEABED CONTACT
# =============================================================================

def test_seabed_line_converges_on_the_bottom(seabed_line):
    result = solve_equilibrium(seabed_line)
    assert result.converged, result.report.message

    element = seabed_line.elements[0]
    geom, state = evaluate_element(seabed_line, element)
    assert state.regime is Regime.SEABED
    assert state.x == pytest.approx(geom.r, abs=1e-6)
    assert state.z == pytest.approx(geom.dz, abs=1e-6)
    assert 0.0 < state.seabed_length < element.length


def test_seabed_friction_takes_tension_off_the_anchor(seabed_line):
    solve_equilibrium(seabed_line)
    tensions = end_tensions(seabed_line)[1]
    assert tensions['anchor'] == 0.0
    assert tensions['fairlead'] == pytest.approx(np.hypot(tensions['h'], tensions['v']))
    assert tensions['fairlead'] > 0.0


def test_seabed_profile(seabed_line):
    solve_equilibrium(seabed_line)
    element = seabed_line.elements[0]
    _, state = evaluate_element(seabed_line, element)

    pts = line_profile(seabed_line, element, n_points=200)
    np.testing.assert_allclose(pts[0], [0.0, 0.0, -100.0], atol=1e-9)
    np.testing.assert_allclose(pts[-1], [400.0, 0.0, -10.0], atol=1e-5)

    s = np.linspace(0.0, element.length, 200)
    grounded = s <= state.seabed_length
    np.testing.assert_allclose(pts[grounded, 2], -100.0)
    assert np.all(pts[~grounded, 2] > -100.0)
    assert np.all(np.diff(pts[:, 0]) > 0.0)
