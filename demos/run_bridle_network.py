#!/usr/bin/env python3
"""
RUN_BRIDLE_NETWORK: Three-Leg Delta Mooring with Buoyant Junctions
==================================================================

Each anchor line ends at a submerged buoy (junction); two bridles run from
every junction to two of the three fairleads. The junction positions and
all nine line tensions are solved together.

Outputs:
    demos/out/bridle_network.png

Run with:
    python demos/run_bridle_network.py
"""

import logging
import sys
from pathlib import Path

import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from msqs import Element, LineType, Model, Node, NodeRole, SolverConfig, solve_equilibrium
from msqs.post import end_tensions, node_reactions
from msqs.viz import plot_mooring

OUT_DIR = Path(__file__).parent / "out"


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def polar(radius, degrees, z):
    a = np.radians(degrees)
    return radius * np.cos(a), radius * np.sin(a), z


def build_model(depth=320.0):
    model = Model(depth=depth)
    model.add_line_type(LineType("chain", diameter=0.09, mass_density=77.7066,
                                 ea=384.243e6, cb=1.0))

    for i in range(3):
        model.add_node(Node(1 + i, NodeRole.FIXED, *polar(853.87, 40.0 + 120.0 * i, -depth)))
    for i in range(3):
        model.add_node(Node(4 + i, NodeRole.CONNECT, *polar(50.0, 40.0 + 120.0 * i, -70.0),
                            volume=64.0))
    for i in range(3):
        model.add_node(Node(7 + i, NodeRole.VESSEL, *polar(5.2, 120.0 * i, -70.0)))

    for i in range(3):
        model.add_element(Element(1 + i, "chain", 850.0, anchor=1 + i, fairlead=4 + i,
                                  h=9.7e5, v=6.1e5))
    guesses = [(5.7e5, 1.6e4), (4.0e5, 1.7e4)]
    for i in range(3):
        junction = model.node(4 + i)
        for k, vessel_id in enumerate((7 + i, 7 + (i + 1) % 3)):
            chord = float(np.linalg.norm(model.node(vessel_id).position - junction.position))
            h, v = guesses[k]
            model.add_element(Element(4 + 2 * i + k, "chain", 0.999 * chord,
                                      anchor=junction.id, fairlead=vessel_id, h=h, v=v))
    return model


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print_header("THREE-LEG BRIDLED MOORING")

    model = build_model()
    print(f"\n  Nodes:     {len(model.nodes)} "
          f"({sum(n.role is NodeRole.CONNECT for n in model.nodes)} free junctions)")
    print(f"  Elements:  {len(model.elements)}")

    # =========================================================================
    # SOLVE
    # =========================================================================
    print_header("Newton Solve")

    # Node equations are in N, closures in m: scale forces to kN
    result = solve_equilibrium(model, SolverConfig(scaling=1e-3))
    print(f"\n  {result.report.message}")
    print(f"  Iterations: {result.iterations}, ||F|| = {result.residual_norm:.3e}")
    result.raise_for_status()

    # =========================================================================
    # RESULTS
    # =========================================================================
    print_header("RESULTS: Line Tensions")

    for element_id, t in end_tensions(model).items():
        print(f"  Line {element_id}: fairlead {t['fairlead'] / 1e3:9.1f} kN   "
              f"anchor {t['anchor'] / 1e3:9.1f} kN")

    print_header("RESULTS: Junction Positions")
    for node in model.nodes:
        if node.role is NodeRole.CONNECT:
            print(f"  Node {node.id}: ({node.x:8.2f}, {node.y:8.2f}, {node.z:8.2f}) m")

    print_header("RESULTS: Vessel Reactions")
    reactions = node_reactions(model)
    total = np.zeros(3)
    for node in model.nodes:
        if node.role is NodeRole.VESSEL:
            f = reactions[node.id]
            total += f
            print(f"  Node {node.id}: Fx={f[0] / 1e3:9.1f}  Fy={f[1] / 1e3:9.1f}  Fz={f[2] / 1e3:9.1f} kN")
    print(f"\n  -> Net on vessel: Fx={total[0] / 1e3:.3f}, Fy={total[1] / 1e3:.3f}, "
          f"Fz={total[2] / 1e3:.1f} kN")

    OUT_DIR.mkdir(exist_ok=True)
    save_path = OUT_DIR / "bridle_network.png"
    plot_mooring(model, title="Three-Leg Bridled Mooring", save_path=str(save_path))
    print(f"\n  Plot saved to {save_path}")

    return model, result


if __name__ == "__main__":
    main()
