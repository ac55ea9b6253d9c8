# plotting.py
"""
plotting.py

Visualization utilities: the polyhedral reach tube, the sampled clouds, an
optimal-control boundary, and the Hausdorff segment between outer and inner
approximations, on a single figure.
"""

from typing import List, Optional

import numpy as np
import matplotlib.pyplot as plt

from hausdorff import HausdorffResult
from polyhedra import Polyhedron


def _closed(points: np.ndarray) -> np.ndarray:
    return np.vstack([points, points[0]])


def plot_polyhedron(ax, P: Polyhedron, **kwargs) -> None:
    """Draw the boundary of a planar polyhedron (a point or segment if degenerate)."""
    if P.is_empty:
        return
    ring = P.ordered_vertices()
    if ring.shape[0] == 1:
        ax.scatter(ring[:, 0], ring[:, 1], **kwargs)
    else:
        ring = _closed(ring)
        ax.plot(ring[:, 0], ring[:, 1], **kwargs)


def plot_reach_tube(
    sets: List[Polyhedron],
    clouds: Optional[List[np.ndarray]] = None,
    R_oc: Optional[np.ndarray] = None,
    hd: Optional[HausdorffResult] = None,
    title: str = "Polyhedral reach tube",
    save_path: Optional[str] = None,
):
    """
    Plot the polyhedral sets step by step, optionally with the sampled
    clouds, an OC boundary of the last step and a Hausdorff segment.

    Parameters
    ----------
    sets : list of Polyhedron
        Reach tube (one polyhedron per step).
    clouds : list of np.ndarray or None
        Sampled point clouds per step.
    R_oc : np.ndarray or None
        Boundary points of the last step from optimal control, shape (M, 2).
    hd : HausdorffResult or None
        Hausdorff distance result to visualise.
    title : str
        Plot title.
    save_path : str or None
        If given, save the figure to this path. Otherwise, just show it.

    Returns
    -------
    matplotlib.figure.Figure
    """
    fig, ax = plt.subplots(figsize=(6.5, 6.5))
    cmap = plt.get_cmap("viridis")
    n = max(len(sets) - 1, 1)

    for k, P in enumerate(sets):
        label = "Polyhedral enclosure" if k == len(sets) - 1 else None
        plot_polyhedron(ax, P, color=cmap(k / n), linewidth=1.5, label=label)

    if clouds:
        for k, cloud in enumerate(clouds):
            if cloud.size == 0:
                continue
            label = "Sampled states" if k == len(clouds) - 1 else None
            ax.scatter(cloud[:, 0], cloud[:, 1], s=4, alpha=0.3, color=cmap(k / n), label=label)

    if R_oc is not None and R_oc.size > 0:
        R_oc_closed = _closed(R_oc)
        ax.plot(R_oc_closed[:, 0], R_oc_closed[:, 1], linestyle="--", color="tab:orange",
                linewidth=2.0, label="OC boundary")

    if hd is not None:
        pa = hd.point_a
        pb = hd.point_b
        ax.scatter([pa[0]], [pa[1]], color="red", s=60, label="Hausdorff point A")
        ax.scatter([pb[0]], [pb[1]], color="green", s=60, label="Hausdorff point B")
        ax.plot([pa[0], pb[0]], [pa[1], pb[1]], linestyle=":", color="black",
                label=f"Hausdorff segment (d={hd.distance:.3f})")

    ax.set_xlabel("x0 (position)")
    ax.set_ylabel("x1 (velocity)")
    ax.set_title(title)
    ax.grid(True)
    ax.legend(loc="center left", bbox_to_anchor=(1.02, 0.5), borderaxespad=0.0, fontsize=10)
    fig.tight_layout()

    if save_path is not None:
        fig.savefig(save_path, bbox_inches="tight", dpi=150)
    else:
        plt.show()
    return fig
