# msqs/viz.py
"""
VISUALIZATION: Mooring Layout in 3D
===================================

Draws every line's stretched shape together with the nodes, colored by
role, and the seabed plane. Intended for checking a converged layout by
eye: lines should sag toward the seabed, buoyant junctions should sit above
their neighbours, nothing should pass through the bottom.
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from .model import Model, NodeRole
from .post import line_profile

COLORS = {
    'line': '#2C3E50',         # Dark blue-gray
    'fix': '#7F8C8D',          # Gray (anchors)
    'connect': '#E74C3C',      # Coral red (free junctions)
    'vessel': '#3498DB',       # Sky blue (fairleads)
    'seabed': '#D4AC6E',       # Sand
    'water': '#AED6F1',        # Pale blue
}


def plot_mooring(
    model: Model,
    ax=None,
    n_points: int = 50,
    title: str = "Mooring Equilibrium",
    show_seabed: bool = True,
    save_path: Optional[str] = None,
):
    """
    Plot all line profiles and nodes on a matplotlib 3D axis.

    Parameters:
    -----------
    model : Model
        Model at a converged state

    ax : mpl_toolkits.mplot3d.Axes3D, optional
        Axis to draw on. A new figure is created when omitted.

    n_points : int
        Points per line profile

    show_seabed : bool
        Draw a translucent plane at z = -depth

    save_path : str, optional
        Write the figure to this path

    Returns:
    --------
    (fig, ax)
    """
    if ax is None:
        fig = plt.figure(figsize=(10, 8))
        ax = fig.add_subplot(111, projection='3d')
    else:
        fig = ax.figure

    for element in model.elements:
        pts = line_profile(model, element, n_points)
        ax.plot(pts[:, 0], pts[:, 1], pts[:, 2], color=COLORS['line'], linewidth=1.5)

    for role in NodeRole:
        nodes = [n for n in model.nodes if n.role is role]
        if not nodes:
            continue
        xyz = np.array([n.position for n in nodes])
        ax.scatter(xyz[:, 0], xyz[:, 1], xyz[:, 2], color=COLORS[role.value],
                   s=30, label=role.value, depthshade=False)

    if show_seabed and model.nodes:
        xyz = np.array([n.position for n in model.nodes])
        pad = 0.1 * max(np.ptp(xyz[:, 0]), np.ptp(xyz[:, 1]), 1.0)
        gx, gy = np.meshgrid(
            [xyz[:, 0].min() - pad, xyz[:, 0].max() + pad],
            [xyz[:, 1].min() - pad, xyz[:, 1].max() + pad],
        )
        ax.plot_surface(gx, gy, np.full_like(gx, -model.depth), color=COLORS['seabed'], alpha=0.3)

    ax.set_xlabel('x (m)')
    ax.set_ylabel('y (m)')
    ax.set_zlabel('z (m)')
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='best', fontsize=9)

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig, ax
