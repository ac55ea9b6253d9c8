# hausdorff.py
"""
hausdorff.py

Symmetric Hausdorff distance between two finite point clouds and one pair of
points where it is attained. Used to measure how far the polyhedral outer
bound is from the sampled inner approximation.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy.spatial import cKDTree


@dataclass
class HausdorffResult:
    """
    Container for Hausdorff distance computation results.
    """
    distance: float
    point_a: np.ndarray
    point_b: np.ndarray


def _directed_hausdorff(
        A: np.ndarray,
        B: np.ndarray,
) -> Tuple[float, int, int]:
    """
    Directed Hausdorff distance d(A,B) = max_{a in A} min_{b in B} ||a - b||_2.

    Returns the distance, the index in A where the max is attained and the
    index of its nearest neighbour in B.
    """
    tree = cKDTree(B)
    dists, idxs = tree.query(A)
    idx_a_max = int(np.argmax(dists))
    return float(dists[idx_a_max]), idx_a_max, int(idxs[idx_a_max])


def hausdorff_distance(A: np.ndarray, B: np.ndarray) -> HausdorffResult:
    """
    Symmetric Hausdorff distance d_H(A,B) = max{ d(A,B), d(B,A) }.

    Parameters
    ----------
    A, B : np.ndarray
        Non-empty point clouds of shape (N_A, d) and (N_B, d).

    Returns
    -------
    HausdorffResult
        The distance and the pair of points (one in A, one in B) where the
        maximum is attained.
    """
    A = np.asarray(A, dtype=float)
    B = np.asarray(B, dtype=float)
    if A.size == 0 or B.size == 0:
        raise ValueError("Hausdorff distance needs two non-empty point clouds")

    d_ab, idx_a_ab, idx_b_ab = _directed_hausdorff(A, B)
    d_ba, idx_b_ba, idx_a_ba = _directed_hausdorff(B, A)

    if d_ab >= d_ba:
        return HausdorffResult(distance=d_ab, point_a=A[idx_a_ab], point_b=B[idx_b_ab])
    return HausdorffResult(distance=d_ba, point_a=A[idx_a_ba], point_b=B[idx_b_ba])


def boundary_samples(vertices: np.ndarray, num_per_edge: int = 16) -> np.ndarray:
    """
    Points along the closed polygon through `vertices` (in order), so that
    a polygon can be compared with a cloud by its whole boundary instead of
    its corners only.
    """
    vertices = np.asarray(vertices, dtype=float)
    if vertices.shape[0] < 2:
        return vertices
    nxt = np.roll(vertices, -1, axis=0)
    t = np.linspace(0.0, 1.0, num_per_edge, endpoint=False)[:, np.newaxis, np.newaxis]
    pts = vertices[np.newaxis] + t * (nxt - vertices)[np.newaxis]
    return pts.reshape(-1, vertices.shape[1])
