"""Shared fixtures for the reachability tests."""

import logging

import matplotlib

matplotlib.use("Agg")

import pytest

from intervals import Interval, IntervalBox
from system import MassSpringDamper


@pytest.fixture
def model():
    """The plant with its own U and omega_0."""
    return MassSpringDamper()


@pytest.fixture
def small_box_model():
    """Same plant from a small box in the x0 >= 0 region with |u| <= 1."""
    return MassSpringDamper(
        U=Interval(-1, 1),
        omega_0=IntervalBox([Interval(0.0, 0.5), Interval(-0.5, 0.5)]),
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
