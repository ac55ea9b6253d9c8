# grid_reachability.py
"""
grid_reachability.py

Sampled (point-cloud) reachability for the plant: start from a grid over the
initial box, push every point forward under a finite set of controls and thin
the cloud after each step. The clouds are inner approximations of the true
reachable sets and are used to sanity-check the polyhedral outer bounds.

Supports NumPy and Torch backends for the propagation + thinning steps.
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Literal, Optional

import numpy as np

from system import MassSpringDamper
from thinning import thin_grid, thin_poisson
from backend_numpy import propagate_numpy

try:
    import torch
    from backend_torch import (
        propagate_torch_tensor,
        thin_grid_torch,
    )

    HAS_TORCH_BACKEND = True
except ImportError:
    HAS_TORCH_BACKEND = False

logger = logging.getLogger(__name__)

ThinningMethod = Literal["grid", "poisson"]
BackendType = Literal["numpy", "torch"]


@dataclass
class SampledReachConfig:
    """
    Configuration for sampled reachability computation.
    """
    num_steps: int
    thinning_method: ThinningMethod = "grid"
    thinning_param: float = 0.1  # h for grid, r for Poisson
    backend: BackendType = "numpy"
    torch_device: Literal["cpu", "cuda"] = "cpu"
    random_state: Optional[int] = None

    def __post_init__(self) -> None:
        if self.num_steps < 0:
            raise ValueError(f"num_steps must be >= 0, got {self.num_steps}")
        if self.thinning_param <= 0:
            raise ValueError(f"thinning_param must be positive, got {self.thinning_param}")
        if self.thinning_method not in ("grid", "poisson"):
            raise ValueError(f"Unknown thinning method: {self.thinning_method}")
        if self.backend not in ("numpy", "torch"):
            raise ValueError(f"Unknown backend: {self.backend}")


def _thin_numpy(points: np.ndarray, cfg: SampledReachConfig) -> np.ndarray:
    if cfg.thinning_method == "grid":
        return thin_grid(points, h=cfg.thinning_param)
    return thin_poisson(points, r=cfg.thinning_param, random_state=cfg.random_state)


def _reachable_clouds_numpy(
        system: MassSpringDamper,
        cloud: np.ndarray,
        controls: np.ndarray,
        cfg: SampledReachConfig,
) -> List[np.ndarray]:
    """
    Internal helper: pure NumPy implementation (baseline).
    """
    points = np.asarray(cloud, dtype=float).reshape(-1, 2)
    clouds = [points]
    for _ in range(cfg.num_steps):
        points = _thin_numpy(propagate_numpy(system, points, controls), cfg)
        clouds.append(points)
    return clouds


def _reachable_clouds_torch(
        system: MassSpringDamper,
        cloud: np.ndarray,
        controls: np.ndarray,
        cfg: SampledReachConfig,
) -> List[np.ndarray]:
    """
    Internal helper: accelerated implementation on Torch.

    The cloud is kept as a torch.Tensor on the selected device. Poisson
    thinning (if requested) falls back to NumPy, the typical accelerated use
    case is 'grid' thinning.
    """
    if not HAS_TORCH_BACKEND:
        raise RuntimeError("Torch backend requested but backend_torch is not available.")

    device = cfg.torch_device
    points_t = torch.tensor(np.asarray(cloud, dtype=float).reshape(-1, 2),
                            dtype=torch.float64, device=device)
    controls_t = torch.tensor(np.asarray(controls, dtype=float),
                              dtype=torch.float64, device=device)

    clouds = [points_t.detach().cpu().numpy()]
    for _ in range(cfg.num_steps):
        points_new_t = propagate_torch_tensor(system, points_t, controls_t)
        if cfg.thinning_method == "grid":
            points_t = thin_grid_torch(points_new_t, h=cfg.thinning_param)
        else:
            points_np = _thin_numpy(points_new_t.detach().cpu().numpy(), cfg)
            points_t = torch.tensor(points_np, dtype=torch.float64, device=device)
        clouds.append(points_t.detach().cpu().numpy())
    return clouds


def compute_reachable_set_grid(
        system: MassSpringDamper,
        cloud: np.ndarray,
        controls: np.ndarray,
        cfg: SampledReachConfig,
) -> List[np.ndarray]:
    """
    Sampled reachable sets for steps 0..num_steps.

    Parameters
    ----------
    system : MassSpringDamper
        The plant.
    cloud : np.ndarray
        Initial states, shape (N, 2) (see backend_numpy.initial_cloud).
    controls : np.ndarray
        Discrete set of scalar controls, shape (M,).
    cfg : SampledReachConfig
        Configuration parameters.

    Returns
    -------
    list of np.ndarray
        Thinned point cloud per step; entry 0 is the initial cloud.
    """
    t0 = time.perf_counter()
    if cfg.backend == "numpy":
        clouds = _reachable_clouds_numpy(system, cloud, controls, cfg)
    elif cfg.backend == "torch":
        clouds = _reachable_clouds_torch(system, cloud, controls, cfg)
    else:
        raise ValueError(f"Unknown backend: {cfg.backend}")
    logger.info(
        "Sampled reachability (%s backend, %s thinning): %d steps, final cloud %d points, %.3f s",
        cfg.backend, cfg.thinning_method, cfg.num_steps, clouds[-1].shape[0],
        time.perf_counter() - t0,
    )
    return clouds
