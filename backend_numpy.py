# backend_numpy.py
"""
backend_numpy.py

NumPy-based backend for propagating a point cloud of states one time step
forward under all discrete controls. This is the baseline (non-accelerated)
implementation of the sampled reachability update.
"""

import numpy as np

from intervals import IntervalBox
from system import MassSpringDamper


def initial_cloud(box: IntervalBox, num_per_dim: int) -> np.ndarray:
    """
    Regular grid of states covering an initial box, corners included.

    Parameters
    ----------
    box : IntervalBox
        Initial set, e.g. the model's omega_0.
    num_per_dim : int
        Number of grid points per dimension (>= 2).

    Returns
    -------
    np.ndarray
        Point cloud of shape (num_per_dim ** dim, dim).
    """
    if num_per_dim < 2:
        raise ValueError(f"num_per_dim must be >= 2, got {num_per_dim}")
    axes = [np.linspace(iv.lower, iv.upper, num_per_dim) for iv in box]
    grids = np.meshgrid(*axes, indexing="ij")
    return np.stack([g.ravel() for g in grids], axis=-1)


def propagate_numpy(
    system: MassSpringDamper,
    states: np.ndarray,
    controls: np.ndarray,
) -> np.ndarray:
    """
    Propagate the set of states one time step forward for all controls.

    Parameters
    ----------
    system : MassSpringDamper
        The plant (provides f_numpy).
    states : np.ndarray
        Current point cloud of states, shape (N, 2).
    controls : np.ndarray
        Discrete set of scalar controls, shape (M,).

    Returns
    -------
    np.ndarray
        New (unthinned) point cloud of shape (N * M, 2).
    """
    if states.size == 0:
        return states

    # Broadcast states and controls: (N, 1, 2) and (1, M) -> (N, M, 2)
    X = states[:, np.newaxis, :]
    U = np.asarray(controls, dtype=float)[np.newaxis, :]
    X_new = system.f_numpy(X, U)
    return X_new.reshape(-1, 2)
