# polyhedral_reachability.py
"""
polyhedral_reachability.py

Sound over-approximation of the reachable sets of a plant by convex
polyhedra. One step of the abstraction is

    box  = bounding box of X_k,     x_m = center of box
    X_k+1 = A(x_m, X_k) (+) B(x_m, U) (+) Phi(box, x_m) (+) Psi(box, x_m, U)

where (+) is the Minkowski sum and the interval boxes returned by Phi/Psi are
turned into polyhedra exactly. The linear part is exact; the nonlinear
corrections are interval enclosures over the bounding box.

The loop stops early when

- X_k+1 is contained in X_k (X_k is then invariant: a fixpoint), or
- the enclosure diverges (non-finite or wider than the configured limit).

When a set gets too many vertices it is replaced by a template polygon that
contains it, which keeps the cost per step bounded.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from intervals import Interval, IntervalBox
from polyhedra import Polyhedron
from system import ReachModel

logger = logging.getLogger(__name__)


@dataclass
class PolyhedralReachConfig:
    """
    Configuration for polyhedral reachability computation.
    """
    num_steps: int
    max_vertices: int = 32
    template_size: int = 16
    stop_at_fixpoint: bool = True
    safe_box: Optional[IntervalBox] = None
    divergence_width: float = 1e6

    def __post_init__(self) -> None:
        if self.num_steps < 0:
            raise ValueError(f"num_steps must be >= 0, got {self.num_steps}")
        if self.template_size < 3:
            raise ValueError(f"template_size must be >= 3, got {self.template_size}")
        if self.max_vertices < self.template_size:
            raise ValueError(
                f"max_vertices ({self.max_vertices}) must be >= template_size "
                f"({self.template_size})"
            )
        if self.divergence_width <= 0:
            raise ValueError(f"divergence_width must be positive, got {self.divergence_width}")


@dataclass
class ReachTube:
    """
    Result of a polyhedral reachability run. sets[k] encloses every state
    reachable in exactly k steps.
    """
    sets: List[Polyhedron]
    boxes: List[IntervalBox]
    fixpoint_step: Optional[int] = None
    violation_step: Optional[int] = None
    diverged_step: Optional[int] = None
    simplified_steps: List[int] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def num_steps(self) -> int:
        return len(self.sets) - 1

    @property
    def safe(self) -> bool:
        return self.violation_step is None and self.diverged_step is None

    def hull_box(self) -> IntervalBox:
        """Box enclosing the whole tube."""
        box = self.boxes[0]
        for b in self.boxes[1:]:
            box = box.hull(b)
        return box


def _is_finite(box: IntervalBox) -> bool:
    return bool(np.all(np.isfinite(box.lower)) and np.all(np.isfinite(box.upper)))


def _diverged(box: IntervalBox, width: float) -> bool:
    return not _is_finite(box) or bool(np.any(box.widths() > width))


def reach_step(
    model: ReachModel,
    X: Polyhedron,
    U: Optional[Interval] = None,
) -> Polyhedron:
    """
    One abstract step of the plant from the polyhedron X.

    Raises
    ------
    ValueError
        If X is empty or an interval correction is not finite.
    """
    if X.is_empty:
        raise ValueError("Cannot step from an empty set")
    if U is None:
        U = model.U

    box = X.bounding_box()
    x_m = box.midpoint()

    phi = model.Phi(box, x_m)
    psi = model.Psi(box, x_m, U)
    for name, corr in (("Phi", phi), ("Psi", psi)):
        if not _is_finite(corr):
            raise ValueError(f"{name} enclosure is not finite: {corr}")

    res = model.A(x_m, X)
    res = res + model.B(x_m, U)
    res = res + Polyhedron.from_box(phi)
    res = res + Polyhedron.from_box(psi)
    return res


def _box_within(inner: IntervalBox, outer: IntervalBox) -> bool:
    return bool(np.all(inner.lower >= outer.lower) and np.all(inner.upper <= outer.upper))


def compute_reach_tube(
    model: ReachModel,
    cfg: PolyhedralReachConfig,
    initial: Optional[IntervalBox] = None,
) -> ReachTube:
    """
    Polyhedral reach tube for steps 0..cfg.num_steps.

    Parameters
    ----------
    model : ReachModel
        The plant (A, B, Phi, Psi, U, omega_0).
    cfg : PolyhedralReachConfig
        Configuration parameters.
    initial : IntervalBox or None
        Initial set; defaults to model.omega_0.

    Returns
    -------
    ReachTube
        Sets and bounding boxes per step plus fixpoint / safety / divergence
        information. The tube is shorter than num_steps + 1 when the loop
        stopped early. A set that is too wide is kept as the last entry
        (diverged_step == tube.num_steps); when a correction is not finite
        at step k the tube ends at step k - 1.
    """
    t0 = time.perf_counter()
    if initial is None:
        initial = model.omega_0

    X = Polyhedron.from_box(initial)
    tube = ReachTube(sets=[X], boxes=[X.bounding_box()])
    if cfg.safe_box is not None and not _box_within(tube.boxes[0], cfg.safe_box):
        tube.violation_step = 0

    num_steps = cfg.num_steps
    if _diverged(tube.boxes[0], cfg.divergence_width):
        logger.warning("Initial set is already wider than %g: %s",
                       cfg.divergence_width, tube.boxes[0])
        tube.diverged_step = 0
        num_steps = 0

    for k in range(1, num_steps + 1):
        try:
            X_next = reach_step(model, X)
        except ValueError as e:
            logger.warning("Enclosure diverged at step %d (%s)", k, e)
            tube.diverged_step = k
            break

        if X_next.num_vertices > cfg.max_vertices:
            logger.debug("Step %d: %d vertices, simplifying to a %d-direction template",
                         k, X_next.num_vertices, cfg.template_size)
            X_next = X_next.template_hull(cfg.template_size)
            tube.simplified_steps.append(k)

        tube.sets.append(X_next)
        tube.boxes.append(X_next.bounding_box())
        logger.debug("Step %d: %d vertices, box %s", k, X_next.num_vertices, tube.boxes[-1])

        if (cfg.safe_box is not None and tube.violation_step is None
                and not _box_within(tube.boxes[-1], cfg.safe_box)):
            logger.info("Safe box left at step %d", k)
            tube.violation_step = k

        if _diverged(tube.boxes[-1], cfg.divergence_width):
            logger.warning("Enclosure diverged at step %d: %s", k, tube.boxes[-1])
            tube.diverged_step = k
            break

        if cfg.stop_at_fixpoint and X.contains(X_next):
            logger.info("Fixpoint reached at step %d: the set of step %d is invariant", k, k - 1)
            tube.fixpoint_step = k
            break
        X = X_next

    tube.elapsed = time.perf_counter() - t0
    logger.info(
        "Polyhedral reachability: %d steps in %.3f s (fixpoint=%s, safe=%s, diverged=%s)",
        tube.num_steps, tube.elapsed, tube.fixpoint_step, tube.safe, tube.diverged_step,
    )
    return tube


def check_enclosure(
    tube: ReachTube,
    clouds: List[np.ndarray],
    tol: float = 1e-7,
) -> Optional[Tuple[int, int]]:
    """
    Check that sampled states lie inside the tube, step by step.

    Parameters
    ----------
    tube : ReachTube
        Polyhedral over-approximation.
    clouds : list of np.ndarray
        Sampled states per step (entry k for step k), e.g. from
        grid_reachability.compute_reachable_set_grid.
    tol : float
        Distance tolerance for float round-off of the samples.

    Returns
    -------
    (step, index) of the first sample outside its set, or None.
    """
    for k, (P, cloud) in enumerate(zip(tube.sets, clouds)):
        if cloud.size == 0:
            continue
        inside = P.contains_points(cloud, tol=tol)
        if not np.all(inside):
            idx = int(np.argmin(inside))
            logger.error("Sample %s at step %d escapes the polyhedral enclosure", cloud[idx], k)
            return k, idx
    return None
