# thinning.py
"""
thinning.py

Thinning strategies for the sampled point clouds that under-approximate the
reachable sets (each step multiplies the cloud size by the number of
controls, so the cloud has to be thinned after every step):

1. Grid-based thinning: attach each point to a rectangular grid cell and keep
   the point closest to the cell center. Point spacing stays O(h).

2. Poisson Disk thinning: random greedy algorithm that enforces a minimum
   distance r between any two kept points.

The bounding-box extremes of the cloud are always kept so that thinning
never shrinks the box hull of the sample.
"""

from typing import Optional

import numpy as np
from scipy.spatial import cKDTree


def _extreme_indices(points: np.ndarray) -> np.ndarray:
    return np.unique(np.concatenate([points.argmin(axis=0), points.argmax(axis=0)]))


def thin_grid(points: np.ndarray, h: float) -> np.ndarray:
    """
    Grid-based thinning.

    Parameters
    ----------
    points : np.ndarray
        Input point cloud of shape (N, d).
    h : float
        Grid step size.

    Returns
    -------
    np.ndarray
        Thinned point cloud.
    """
    if h <= 0:
        raise ValueError(f"Grid step must be positive, got {h}")
    if points.size == 0:
        return points

    mins = points.min(axis=0)
    cells = np.floor((points - mins) / h).astype(np.int64)
    centers = mins + (cells + 0.5) * h
    d_center = np.linalg.norm(points - centers, axis=1)

    # Sort by (cell, distance to center); the first row of every cell wins.
    order = np.lexsort((d_center, *cells.T[::-1]))
    sorted_cells = cells[order]
    first = np.ones(order.shape[0], dtype=bool)
    first[1:] = np.any(sorted_cells[1:] != sorted_cells[:-1], axis=1)

    kept = np.union1d(order[first], _extreme_indices(points))
    return points[kept]


def thin_poisson(points: np.ndarray, r: float, random_state: Optional[int] = None) -> np.ndarray:
    """
    Poisson Disk-like thinning via a greedy algorithm.

    Points are visited in random order. A point is accepted if it is at
    distance >= r from all previously accepted points. The extremes of the
    cloud are accepted first.

    Parameters
    ----------
    points : np.ndarray
        Input point cloud of shape (N, d).
    r : float
        Minimal allowed distance between kept points.
    random_state : int or None
        Seed for the RNG (for reproducibility).

    Returns
    -------
    np.ndarray
        Thinned point cloud.
    """
    if r <= 0:
        raise ValueError(f"Poisson radius must be positive, got {r}")
    if points.size == 0:
        return points

    rng = np.random.default_rng(random_state)
    extremes = _extreme_indices(points)
    rest = np.setdiff1d(np.arange(points.shape[0]), extremes)
    order = np.concatenate([extremes, rng.permutation(rest)])

    # Neighbours closer than r; a point is rejected if any of them was kept.
    tree = cKDTree(points)
    accepted = np.zeros(points.shape[0], dtype=bool)
    for idx in order:
        neighbours = tree.query_ball_point(points[idx], r=r * (1.0 - 1e-12))
        if idx in extremes or not accepted[neighbours].any():
            accepted[idx] = True

    return points[accepted]
