# tests/conftest.py
"""
Shared model builders for the equilibrium tests.

    make_bar_line       One weightless elastic bar between two fixed nodes
    make_seabed_line    One chain resting on the seabed, both ends fixed
    make_bridle_network Three anchors, three buoyant junctions, three
                        fairleads; each junction bridled to two fairleads
"""

import numpy as np
import pytest

from msqs.model import Element, LineType, Model, Node, NodeRole

# OC3-Hywind style studless chain
CHAIN = dict(diameter=0.09, mass_density=77.7066, ea=384.243e6)


def make_bar_line(fairlead=(6.03, 0.0, 8.04), length=10.0, ea=1.0e6, h=None, v=None):
    model = Model(depth=50.0)
    model.add_line_type(LineType("bar", diameter=0.0, mass_density=0.0, ea=ea))
    model.add_node(Node(1, NodeRole.FIXED, 0.0, 0.0, 0.0))
    model.add_node(Node(2, NodeRole.VESSEL, *fairlead))
    model.add_element(Element(1, "bar", length, anchor=1, fairlead=2, h=h, v=v))
    return model


def make_seabed_line(cb=1.0, h=3.0e4, v=8.5e4, anchor_free=False):
    """
    450 m of chain from the seabed at 100 m depth to a fairlead 10 m below
    the surface, 400 m away. About 330 m of it rests on the bottom.

    With anchor_free the anchor is a CONNECT node free to slide in x and y.
    """
    model = Model(depth=100.0)
    model.add_line_type(LineType("chain", cb=cb, **CHAIN))
    if anchor_free:
        model.add_node(Node(1, NodeRole.CONNECT, 0.0, 0.0, -100.0,
                            external_force=(2.0e4, 1.0e3, 0.0), active=(True, True, False)))
    else:
        model.add_node(Node(1, NodeRole.FIXED, 0.0, 0.0, -100.0))
    model.add_node(Node(2, NodeRole.VESSEL, 400.0, 0.0, -10.0))
    model.add_element(Element(1, "chain", 450.0, anchor=1, fairlead=2, h=h, v=v))
    return model


def _polar(radius, degrees, z):
    a = np.radians(degrees)
    return radius * np.cos(a), radius * np.sin(a), z


def make_bridle_network(depth=320.0):
    """
    Rotationally symmetric delta-connection layout.

    Node ids:    anchors 1-3, junctions 4-6, fairleads 7-9
    Element ids: anchor lines 1-3; bridles 4-9, junction i -> fairlead i
                 (even ids) and junction i -> fairlead i+1 (odd ids)

    The two bridles of a junction leave it at different angles, so they
    carry different tensions.
    """
    model = Model(depth=depth)
    model.add_line_type(LineType("chain", cb=1.0, **CHAIN))

    for i in range(3):
        model.add_node(Node(1 + i, NodeRole.FIXED, *_polar(853.87, 40.0 + 120.0 * i, -320.0)))
    for i in range(3):
        model.add_node(Node(4 + i, NodeRole.CONNECT, *_polar(50.0, 40.0 + 120.0 * i, -70.0),
                            volume=64.0))
    for i in range(3):
        model.add_node(Node(7 + i, NodeRole.VESSEL, *_polar(5.2, 120.0 * i, -70.0)))

    for i in range(3):
        model.add_element(Element(1 + i, "chain", 850.0, anchor=1 + i, fairlead=4 + i,
                                  h=9.7e5, v=6.1e5))

    # Starting tensions for the two bridles of each junction
    guesses = [(5.7e5, 1.6e4), (4.0e5, 1.7e4)]
    for i in range(3):
        junction = model.node(4 + i)
        for k, vessel_id in enumerate((7 + i, 7 + (i + 1) % 3)):
            vessel = model.node(vessel_id)
            chord = float(np.linalg.norm(vessel.position - junction.position))
            h, v = guesses[k]
            model.add_element(Element(4 + 2 * i + k, "chain", 0.999 * chord,
                                      anchor=junction.id, fairlead=vessel_id, h=h, v=v))
    return model


@pytest.fixture
def taut_bar():
    return make_bar_line(h=2500.0, v=3500.0)


@pytest.fixture
def slack_bar():
    return make_bar_line(fairlead=(3.0, 0.0, 4.0))


@pytest.fixture
def seabed_line():
    return make_seabed_line()


@pytest.fixture
def bridle_network():
    return make_bridle_network()


@pytest.fixture
def suspended_network():
    """Same layout in deeper water, so no anchor touches the seabed."""
    return make_bridle_network(depth=400.0)


@pytest.fixture
def sliding_anchor_line():
    return make_seabed_line(cb=0.05, anchor_free=True)
