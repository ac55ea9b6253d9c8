# experiment.py
"""
experiment.py

Reachability experiments for the mass-spring-damper plant:

1) Full initial box omega_0 = [-6, 6]^2:
   - polyhedral over-approximation for a few steps. For negative positions
     the spring term x0 * exp(-x0) grows exponentially, so the enclosure
     (and the true reachable set) blows up within a handful of steps; the
     engine reports the divergence step.

2) Small initial box in the well-behaved region (x0 >= 0):
   - polyhedral reach tube (fixpoint and safety checks),
   - sampled reachable sets (NumPy backend, grid thinning) and the check that
     every sample lies inside the polyhedral enclosure,
   - accelerated sampled sets (Torch backend) and timing,
   - inner boundary by brute-force constant controls and, when IPOPT is
     available, by Pyomo optimal control,
   - Hausdorff distance between the outer polygon and the sampled cloud.

run_experiment() runs both experiments in sequence.
"""

import logging
import os
import time
from typing import Optional

import numpy as np

from intervals import Interval, IntervalBox
from system import MassSpringDamper
from controls import generate_controls_interval, generate_controls_extreme
from backend_numpy import initial_cloud
from grid_reachability import HAS_TORCH_BACKEND, SampledReachConfig, compute_reachable_set_grid
from polyhedral_reachability import PolyhedralReachConfig, check_enclosure, compute_reach_tube
from ocp_pyomo import compute_oc_boundary, compute_oc_boundary_bruteforce
from hausdorff import boundary_samples, hausdorff_distance
from plotting import plot_reach_tube
from logging_config import setup_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# 1. Full initial box
# ---------------------------------------------------------------------


def run_full_box_example(save_dir: Optional[str] = None):
    """
    Polyhedral reachability from the model's own initial box omega_0.
    """
    logger.info("=" * 80)
    logger.info("Mass-spring-damper from omega_0 = [-6, 6]^2, U = [-6, 6]")
    logger.info("=" * 80)

    model = MassSpringDamper()
    cfg = PolyhedralReachConfig(num_steps=6, max_vertices=32, template_size=16)
    tube = compute_reach_tube(model, cfg)

    for k, box in enumerate(tube.boxes):
        logger.info("[Full box] step %d: box %s", k, box)
    if tube.diverged_step is not None:
        logger.info("[Full box] enclosure diverged at step %d", tube.diverged_step)

    plot_reach_tube(
        tube.sets,
        title="Mass-spring-damper from omega_0: polyhedral enclosure",
        save_path=None if save_dir is None else os.path.join(save_dir, "full_box.png"),
    )
    return tube


# ---------------------------------------------------------------------
# 2. Small initial box
# ---------------------------------------------------------------------


def run_small_box_example(save_dir: Optional[str] = None):
    """
    Outer (polyhedral) vs inner (sampled / optimal control) approximations
    from a small initial box with x0 >= 0.
    """
    logger.info("=" * 80)
    logger.info("Mass-spring-damper from a small initial box, outer vs inner bounds")
    logger.info("=" * 80)

    U = Interval(-1, 1)
    initial = IntervalBox([Interval(0.0, 0.5), Interval(-0.5, 0.5)])
    model = MassSpringDamper(U=U, omega_0=initial)
    num_steps = 15

    # --- 1) Polyhedral reach tube
    safe_box = IntervalBox([Interval(-5, 5), Interval(-5, 5)])
    cfg_poly = PolyhedralReachConfig(num_steps=num_steps, safe_box=safe_box)
    tube = compute_reach_tube(model, cfg_poly)
    logger.info("[Small box] final enclosure: %d vertices, box %s",
                tube.sets[-1].num_vertices, tube.boxes[-1])
    logger.info("[Small box] inside safe box %s: %s", safe_box, tube.safe)

    # --- 2) Sampled reachable sets (NumPy backend, grid thinning)
    cloud0 = initial_cloud(initial, num_per_dim=9)
    controls = generate_controls_interval(5, U)
    cfg_numpy = SampledReachConfig(num_steps=tube.num_steps, thinning_method="grid",
                                   thinning_param=0.02, backend="numpy")
    t0 = time.perf_counter()
    clouds = compute_reachable_set_grid(model, cloud0, controls, cfg_numpy)
    time_numpy = time.perf_counter() - t0

    escape = check_enclosure(tube, clouds)
    if escape is None:
        logger.info("[Small box] all sampled states lie inside the polyhedral enclosure")
    else:
        logger.error("[Small box] sample %d at step %d escapes the enclosure", escape[1], escape[0])

    # --- 3) Sampled reachable sets (Torch backend)
    if HAS_TORCH_BACKEND:
        cfg_torch = SampledReachConfig(num_steps=tube.num_steps, thinning_method="grid",
                                       thinning_param=0.02, backend="torch", torch_device="cpu")
        try:
            t0 = time.perf_counter()
            compute_reachable_set_grid(model, cloud0, controls, cfg_torch)
            time_torch = time.perf_counter() - t0
            if time_torch > 0:
                logger.info("[Small box] NumPy / Torch time ratio: %.2fx", time_numpy / time_torch)
        except RuntimeError as e:
            logger.warning("[Small box] Torch backend failed (%s); using NumPy result only.", e)
    else:
        logger.info("[Small box] Torch not installed; skipping the accelerated backend.")

    # --- 4) Inner boundary: brute force over constant extreme controls
    phis = np.linspace(0.0, 2.0 * np.pi, 64, endpoint=False)
    R_oc = compute_oc_boundary_bruteforce(
        model,
        num_steps=tube.num_steps,
        phis=phis,
        control_candidates=generate_controls_extreme(U),
        initial_candidates=initial.vertices(),
    )

    # --- 5) Inner boundary: Pyomo optimal control (needs IPOPT)
    try:
        R_oc = compute_oc_boundary(model, num_steps=tube.num_steps, num_directions=16)
        logger.info("[Small box] OC boundary (Pyomo) computed with %d points.", R_oc.shape[0])
    except RuntimeError as e:
        logger.warning("[Small box] Pyomo OC boundary unavailable (%s); "
                       "using the brute-force boundary.", e)

    # --- 6) Hausdorff distance: outer polygon boundary vs sampled cloud
    outer = boundary_samples(tube.sets[-1].ordered_vertices())
    hd = hausdorff_distance(outer, clouds[-1])
    logger.info("[Small box] Hausdorff distance between enclosure boundary and samples: "
                "d_H = %.4f", hd.distance)

    plot_reach_tube(
        tube.sets,
        clouds=clouds,
        R_oc=R_oc,
        hd=hd,
        title="Mass-spring-damper: polyhedral enclosure vs sampled states",
        save_path=None if save_dir is None else os.path.join(save_dir, "small_box.png"),
    )
    return tube, clouds, hd


# ---------------------------------------------------------------------
# 3. Entry point
# ---------------------------------------------------------------------


def run_experiment(save_dir: Optional[str] = None):
    """
    Run both experiments. Figures are shown, or written to save_dir if given.
    """
    run_full_box_example(save_dir)
    run_small_box_example(save_dir)


if __name__ == "__main__":
    setup_logging(logging.INFO)
    run_experiment()
