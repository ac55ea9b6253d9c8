"""
Unit tests for the sampled (point-cloud) reachability pipeline:
controls, thinning, NumPy/Torch propagation and grid_reachability
"""

import typing

import numpy as np
import pytest

from intervals import Interval, IntervalBox
from controls import generate_controls_extreme, generate_controls_interval, generate_controls_random
from thinning import thin_grid, thin_poisson
from backend_numpy import initial_cloud, propagate_numpy
from grid_reachability import HAS_TORCH_BACKEND, SampledReachConfig, compute_reachable_set_grid


def as_row_set(points, decimals=12):
    return {tuple(p) for p in np.round(points, decimals)}


# ============================================================================
# Controls
# ============================================================================

class TestControls:

    def test_interval_controls_include_endpoints(self):
        u = generate_controls_interval(5, Interval(-6, 6))
        np.testing.assert_allclose(u, [-6, -3, 0, 3, 6])

    def test_single_control_is_midpoint(self):
        np.testing.assert_allclose(generate_controls_interval(1, Interval(2, 4)), [3.0])

    def test_extreme_controls(self):
        np.testing.assert_allclose(generate_controls_extreme(Interval(-1, 2)), [-1, 2])
        np.testing.assert_allclose(generate_controls_extreme(Interval(1, 1)), [1])

    def test_random_controls_stay_in_bounds(self):
        u = generate_controls_random(200, Interval(-1, 0.5), random_state=3)
        assert u.shape == (200,)
        assert np.all(u >= -1) and np.all(u <= 0.5)
        np.testing.assert_array_equal(
            u, generate_controls_random(200, Interval(-1, 0.5), random_state=3)
        )

    def test_rejects_non_positive_count(self):
        with pytest.raises(ValueError):
            generate_controls_interval(0, Interval(0, 1))
        with pytest.raises(ValueError):
            generate_controls_random(0, Interval(0, 1))


# ============================================================================
# Thinning
# ============================================================================

class TestThinning:

    @pytest.fixture
    def dense_grid(self):
        g = np.linspace(0.0, 1.0, 101)
        X, Y = np.meshgrid(g, g)
        return np.stack((X.ravel(), Y.ravel()), axis=-1)

    def test_grid_thinning_keeps_one_point_per_cell(self, dense_grid):
        thinned = thin_grid(dense_grid, h=0.1)
        # 11 x 11 cells (the upper edge opens a last column/row) plus extremes
        assert thinned.shape[0] <= 11 * 11 + 4
        assert thinned.shape[0] >= 10 * 10
        assert as_row_set(thinned) <= as_row_set(dense_grid)

    def test_grid_thinning_keeps_bounding_box(self):
        rng = np.random.default_rng(0)
        pts = rng.normal(size=(500, 2))
        thinned = thin_grid(pts, h=0.5)
        np.testing.assert_array_equal(thinned.min(axis=0), pts.min(axis=0))
        np.testing.assert_array_equal(thinned.max(axis=0), pts.max(axis=0))

    def test_poisson_thinning_enforces_spacing(self):
        rng = np.random.default_rng(1)
        pts = rng.uniform(size=(500, 2))
        r = 0.1
        thinned = thin_poisson(pts, r=r, random_state=0)
        assert thinned.shape[0] < pts.shape[0]
        np.testing.assert_array_equal(thinned.min(axis=0), pts.min(axis=0))
        np.testing.assert_array_equal(thinned.max(axis=0), pts.max(axis=0))

        extremes = set(map(tuple, pts[np.concatenate([pts.argmin(0), pts.argmax(0)])]))
        d = np.linalg.norm(thinned[:, None, :] - thinned[None, :, :], axis=-1)
        for i in range(thinned.shape[0]):
            for j in range(i + 1, thinned.shape[0]):
                if tuple(thinned[i]) in extremes and tuple(thinned[j]) in extremes:
                    continue
                assert d[i, j] >= r * (1.0 - 1e-9)

    def test_empty_and_invalid(self):
        empty = np.empty((0, 2))
        assert thin_grid(empty, 0.1).shape == (0, 2)
        assert thin_poisson(empty, 0.1).shape == (0, 2)
        with pytest.raises(ValueError):
            thin_grid(np.zeros((3, 2)), 0.0)
        with pytest.raises(ValueError):
            thin_poisson(np.zeros((3, 2)), -1.0)


# ============================================================================
# Propagation
# ============================================================================

class TestPropagation:

    def test_initial_cloud_covers_box(self):
        box = IntervalBox.from_bounds([-6, -1], [6, 1])
        cloud = initial_cloud(box, 9)
        assert cloud.shape == (81, 2)
        assert as_row_set(box.vertices()) <= as_row_set(cloud)
        with pytest.raises(ValueError):
            initial_cloud(box, 1)

    def test_propagate_numpy_all_pairs(self, model):
        states = np.array([[0.0, 0.0], [1.0, 2.0]])
        controls = np.array([-6.0, 6.0])
        out = propagate_numpy(model, states, controls)
        assert out.shape == (4, 2)
        np.testing.assert_allclose(out[0], model.f_numpy(states[0], -6.0))
        np.testing.assert_allclose(out[3], model.f_numpy(states[1], 6.0))

    def test_propagate_empty(self, model):
        empty = np.empty((0, 2))
        assert propagate_numpy(model, empty, np.array([0.0])).shape == (0, 2)


# ============================================================================
# grid_reachability
# ============================================================================

class TestSampledReachability:

    def test_config_validation(self):
        with pytest.raises(ValueError):
            SampledReachConfig(num_steps=-1)
        with pytest.raises(ValueError):
            SampledReachConfig(num_steps=1, thinning_param=0.0)
        with pytest.raises(ValueError):
            SampledReachConfig(num_steps=1, thinning_method="random")
        with pytest.raises(ValueError):
            SampledReachConfig(num_steps=1, backend="jax")

    def test_random_state_is_optional_int(self):
        hints = typing.get_type_hints(SampledReachConfig)
        assert hints["random_state"] == typing.Optional[int]
        assert SampledReachConfig(num_steps=1).random_state is None
        assert typing.get_type_hints(thin_poisson)["random_state"] == typing.Optional[int]

    def test_seeded_poisson_runs_are_reproducible(self, small_box_model):
        cloud0 = initial_cloud(small_box_model.omega_0, 5)
        controls = generate_controls_interval(3, small_box_model.U)
        cfg = SampledReachConfig(num_steps=2, thinning_method="poisson",
                                 thinning_param=0.05, random_state=7)
        first = compute_reachable_set_grid(small_box_model, cloud0, controls, cfg)
        second = compute_reachable_set_grid(small_box_model, cloud0, controls, cfg)
        np.testing.assert_array_equal(first[-1], second[-1])

    def test_one_cloud_per_step(self, small_box_model):
        cloud0 = initial_cloud(small_box_model.omega_0, 5)
        controls = generate_controls_extreme(small_box_model.U)
        cfg = SampledReachConfig(num_steps=4, thinning_param=0.05)
        clouds = compute_reachable_set_grid(small_box_model, cloud0, controls, cfg)
        assert len(clouds) == 5
        np.testing.assert_array_equal(clouds[0], cloud0)
        assert all(c.shape[1] == 2 for c in clouds)

    def test_without_effective_thinning_matches_direct_propagation(self, small_box_model):
        cloud0 = initial_cloud(small_box_model.omega_0, 3)
        controls = np.array([-1.0, 1.0])
        cfg = SampledReachConfig(num_steps=1, thinning_param=1e-9)
        clouds = compute_reachable_set_grid(small_box_model, cloud0, controls, cfg)
        direct = propagate_numpy(small_box_model, cloud0, controls)
        assert as_row_set(clouds[1]) == as_row_set(direct)

    def test_poisson_thinning_backend(self, small_box_model):
        cloud0 = initial_cloud(small_box_model.omega_0, 5)
        controls = generate_controls_interval(3, small_box_model.U)
        cfg = SampledReachConfig(num_steps=3, thinning_method="poisson",
                                 thinning_param=0.05, random_state=0)
        clouds = compute_reachable_set_grid(small_box_model, cloud0, controls, cfg)
        assert len(clouds) == 4

    @pytest.mark.skipif(not HAS_TORCH_BACKEND, reason="torch not installed")
    def test_torch_backend_matches_numpy_without_thinning(self, small_box_model):
        cloud0 = initial_cloud(small_box_model.omega_0, 3)
        controls = np.array([-1.0, 0.0, 1.0])
        kwargs = dict(num_steps=2, thinning_param=1e-9)
        np_clouds = compute_reachable_set_grid(
            small_box_model, cloud0, controls, SampledReachConfig(backend="numpy", **kwargs))
        torch_clouds = compute_reachable_set_grid(
            small_box_model, cloud0, controls, SampledReachConfig(backend="torch", **kwargs))
        assert len(torch_clouds) == len(np_clouds)
        assert as_row_set(torch_clouds[-1], 9) == as_row_set(np_clouds[-1], 9)

    @pytest.mark.skipif(not HAS_TORCH_BACKEND, reason="torch not installed")
    def test_thin_grid_torch(self):
        import torch
        from backend_torch import thin_grid_torch

        pts = torch.tensor([[0.0, 0.0], [0.24, 0.24], [0.4, 0.4], [1.0, 1.0]], dtype=torch.float64)
        thinned = thin_grid_torch(pts, h=0.5)
        # Closest to the cell center wins; the extremes always stay.
        assert thinned.tolist() == [[0.0, 0.0], [0.24, 0.24], [1.0, 1.0]]

    @pytest.mark.skipif(not HAS_TORCH_BACKEND, reason="torch not installed")
    def test_thin_grid_torch_selects_like_numpy(self):
        import torch
        from backend_torch import thin_grid_torch

        pts = np.random.default_rng(3).normal(size=(2000, 2))
        expected = thin_grid(pts, h=0.3)
        thinned = thin_grid_torch(torch.from_numpy(pts), h=0.3).numpy()
        np.testing.assert_array_equal(thinned, expected)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
