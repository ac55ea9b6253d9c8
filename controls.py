# controls.py
"""
controls.py

Utility functions to generate finite sets of admissible controls from the
scalar control interval U. Controls are returned as 1-D arrays of shape (M,).
"""

from typing import Optional

import numpy as np

from intervals import Interval


def generate_controls_interval(num_controls: int, U: Interval) -> np.ndarray:
    """
    Evenly spaced controls in U, both endpoints included.

    Parameters
    ----------
    num_controls : int
        Number of controls (>= 1). With 1 the midpoint of U is returned,
        with 2 the two extreme controls.
    U : Interval
        Admissible control interval.

    Returns
    -------
    np.ndarray
        Array of controls of shape (num_controls,).
    """
    if num_controls < 1:
        raise ValueError(f"num_controls must be >= 1, got {num_controls}")
    if num_controls == 1:
        return np.array([U.midpoint], dtype=float)
    return np.linspace(U.lower, U.upper, num_controls)


def generate_controls_extreme(U: Interval) -> np.ndarray:
    """
    Bang-bang controls {U.lower, U.upper}. For a plant that is affine in the
    control these generate the whole control polyhedron.
    """
    if U.is_degenerate:
        return np.array([U.lower], dtype=float)
    return np.array([U.lower, U.upper], dtype=float)


def generate_controls_random(
    num_controls: int,
    U: Interval,
    random_state: Optional[int] = None,
) -> np.ndarray:
    """
    Controls drawn uniformly from U.

    Parameters
    ----------
    num_controls : int
        Number of samples.
    U : Interval
        Admissible control interval.
    random_state : int or None
        Seed for the RNG (for reproducibility).
    """
    if num_controls < 1:
        raise ValueError(f"num_controls must be >= 1, got {num_controls}")
    rng = np.random.default_rng(random_state)
    return rng.uniform(U.lower, U.upper, size=num_controls)
