# backend_torch.py
"""
backend_torch.py

PyTorch-based utilities for the sampled reachability method.

- propagate_torch_tensor: one step of the plant for all (state, control)
  pairs, purely on torch.Tensor so the cloud can stay on the GPU.
- thin_grid_torch: grid-based thinning implemented in Torch, so that both
  the propagation and thinning stay on the device.
"""

try:
    import torch
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "backend_torch requires PyTorch to be installed. "
        "Install it via `pip install torch`."
    ) from e

from system import MassSpringDamper


def propagate_torch_tensor(
        system: MassSpringDamper,
        states_t: "torch.Tensor",
        controls_t: "torch.Tensor",
) -> "torch.Tensor":
    """
    Core propagation step on torch.Tensor.

    Parameters
    ----------
    system : MassSpringDamper
        Plant providing f_torch().
    states_t : torch.Tensor
        Current point cloud, shape (N, 2), on the desired device.
    controls_t : torch.Tensor
        Scalar controls, shape (M,), on the same device.

    Returns
    -------
    torch.Tensor
        New (unthinned) point cloud of shape (N * M, 2) on the same device.
    """
    if states_t.numel() == 0:
        return states_t

    X = states_t[:, None, :]  # (N, 1, 2)
    U = controls_t[None, :]  # (1, M)
    X_new = system.f_torch(X, U)  # (N, M, 2)
    return X_new.reshape(-1, 2)


def thin_grid_torch(
        points_t: "torch.Tensor",
        h: float,
) -> "torch.Tensor":
    """
    Grid-based thinning in pure Torch, same selection as thinning.thin_grid.

    Overlays a regular grid with step h on the cloud and keeps, per occupied
    cell, the point closest to the cell center. The bounding-box extremes of
    the cloud are always kept.

    Parameters
    ----------
    points_t : torch.Tensor
        Input point cloud, shape (N, 2), on some device.
    h : float
        Grid step.

    Returns
    -------
    torch.Tensor
        Thinned point cloud on the same device, in input order.
    """
    if h <= 0:
        raise ValueError(f"Grid step must be positive, got {h}")
    if points_t.numel() == 0:
        return points_t

    mins = torch.min(points_t, dim=0)[0]
    cell_idx = torch.floor((points_t - mins) / h).to(torch.int64)
    centers = mins + (cell_idx.to(points_t.dtype) + 0.5) * h
    d_center = torch.linalg.norm(points_t - centers, dim=1)

    # inverse[i] = index of the unique cell for point i
    _, inverse = torch.unique(cell_idx, dim=0, return_inverse=True)

    # Sort by distance, then (stably) by cell: the first entry of each run
    # is the point of that cell closest to its center.
    _, by_dist = torch.sort(d_center, stable=True)
    sorted_inv, by_cell = torch.sort(inverse[by_dist], stable=True)
    order = by_dist[by_cell]
    new_cell = torch.ones_like(sorted_inv, dtype=torch.bool)
    new_cell[1:] = sorted_inv[1:] != sorted_inv[:-1]

    extremes = torch.cat([torch.argmin(points_t, dim=0), torch.argmax(points_t, dim=0)])
    kept = torch.unique(torch.cat([order[new_cell], extremes]))
    return points_t[kept]
