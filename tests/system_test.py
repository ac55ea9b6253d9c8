"""
Unit tests for the mass-spring-damper plant
"""

import math
from fractions import Fraction

import numpy as np
import pytest

from intervals import Interval, IntervalBox
from polyhedra import Polyhedron
from system import INT16_MAX, MassSpringDamper, rat_approx


def vertex_set(P):
    return {tuple(v) for v in P.vertices()}


# ============================================================================
# rat_approx
# ============================================================================

class TestRatApprox:

    def test_exact_values(self):
        assert rat_approx(6, INT16_MAX) == 6 * INT16_MAX
        assert rat_approx(-6, INT16_MAX) == -6 * INT16_MAX
        assert rat_approx(0.5, 10) == 5

    @pytest.mark.parametrize("value", [0.3, -0.3, 1 / 3, 5.99999, -2.71828])
    def test_directed_rounding_brackets_value(self, value):
        den = 7
        lo = rat_approx(value, den, rounding="floor")
        hi = rat_approx(value, den, rounding="ceil")
        assert Fraction(lo, den) <= Fraction(value) <= Fraction(hi, den)
        assert hi - lo <= 1

    def test_rejects_bad_arguments(self):
        with pytest.raises(ValueError):
            rat_approx(1.0, 0)
        with pytest.raises(ValueError):
            rat_approx(float("inf"), 10)
        with pytest.raises(ValueError):
            rat_approx(1.0, 10, rounding="up")


# ============================================================================
# Model construction
# ============================================================================

class TestConstruction:

    def test_default_table(self, model):
        assert model.a_matrix == ((100, 10), (0, 89))
        assert model.a_den == 100
        assert model.b_vector == (0, 1)
        assert model.b_den == 10
        assert model.u_den == INT16_MAX
        assert model.U == Interval(-6, 6)
        assert model.omega_0 == IntervalBox([Interval(-6, 6), Interval(-6, 6)])

    def test_float_views(self, model):
        np.testing.assert_allclose(model.matrix(), [[1.0, 0.1], [0.0, 0.89]])
        np.testing.assert_allclose(model.control_vector(), [0.0, 0.1])

    def test_from_physical_reproduces_default_table(self, model):
        assert MassSpringDamper.from_physical() == model

    def test_from_physical_other_parameters(self):
        m = MassSpringDamper.from_physical(dt=0.05, mass=2.0, damping=1.0, stiffness=0.5)
        np.testing.assert_allclose(m.matrix(), [[1.0, 0.05], [0.0, 0.975]])
        np.testing.assert_allclose(m.control_vector(), [0.0, 0.025])
        assert m.phi_gain == pytest.approx(-0.0125)

    def test_rejects_invalid_tables(self):
        with pytest.raises(ValueError):
            MassSpringDamper(a_matrix=((0, 10), (0, 89)))
        with pytest.raises(ValueError):
            MassSpringDamper(a_den=0)
        with pytest.raises(ValueError):
            MassSpringDamper(b_vector=(0, 1, 2))
        with pytest.raises(ValueError):
            MassSpringDamper.from_physical(dt=0.0)


# ============================================================================
# Abstract step
# ============================================================================

class TestAffineMap:

    def test_image_of_initial_box(self, model):
        P = Polyhedron.from_box(model.omega_0)
        img = model.A(np.zeros(2), P)
        x0_hi, x0_lo = Fraction(33, 5), Fraction(27, 5)
        x1 = Fraction(267, 50)
        assert vertex_set(img) == {
            (x0_hi, x1), (x0_lo, -x1), (-x0_lo, x1), (-x0_hi, -x1)
        }

    def test_matches_direct_matrix_image(self, model):
        P = Polyhedron.from_points([(0, 0), (3, 1), (Fraction(1, 3), -2)])
        expected = P.linear_image(model.a_matrix, model.a_den)
        assert model.A(np.zeros(2), P) == expected

    def test_compensation_with_coupled_rows(self):
        # Non-zero lower-left entry: the second image has to undo the first.
        m = MassSpringDamper(a_matrix=((100, 10), (-3, 89)))
        P = Polyhedron.from_points([(0, 0), (3, 1), (Fraction(1, 3), -2), (-1, 5)])
        expected = P.linear_image(m.a_matrix, m.a_den)
        assert m.A(np.zeros(2), P) == expected

    def test_linearisation_point_is_ignored(self, model):
        P = Polyhedron.from_box(model.omega_0)
        assert model.A(np.zeros(2), P) == model.A(np.array([5.0, -3.0]), P)


class TestControlPolyhedron:

    def test_default_control_segment(self, model):
        B = model.B(np.zeros(2))
        assert vertex_set(B) == {(0, Fraction(-3, 5)), (0, Fraction(3, 5))}

    def test_uses_the_given_interval(self, model):
        B = model.B(np.zeros(2), Interval(-1, 1))
        assert vertex_set(B) == {(0, Fraction(-1, 10)), (0, Fraction(1, 10))}

    def test_inexact_bounds_are_rounded_outward(self, model):
        B = model.B(np.zeros(2), Interval(-1, 0.5))
        assert B.support((0, 1)) >= Fraction(1, 20)
        assert B.support((0, -1)) >= Fraction(1, 10)
        assert B.support((0, 1)) - Fraction(1, 20) < Fraction(1, 10 ** 4)

    def test_degenerate_control(self, model):
        B = model.B(np.zeros(2), Interval(0, 0))
        assert vertex_set(B) == {(0, 0)}


class TestCorrections:

    def test_phi_first_component_is_zero(self, model):
        phi = model.Phi(model.omega_0, np.zeros(2))
        assert phi[0] == Interval(0, 0)

    def test_phi_encloses_spring_force(self, model):
        box = IntervalBox([Interval(-6, 6), Interval(-6, 6)])
        phi = model.Phi(box, box.midpoint())
        for x0 in np.linspace(-6, 6, 25):
            assert phi[1].contains(-0.033 * x0 * math.exp(-x0))

    def test_phi_at_a_point(self, model):
        box = IntervalBox([Interval(1, 1), Interval(0, 0)])
        phi = model.Phi(box, box.midpoint())
        assert phi[1].contains(-0.033 * math.exp(-1))
        assert phi[1].width < 1e-12

    def test_phi_at_zero_position(self, model):
        box = IntervalBox([Interval(0, 0), Interval(-1, 1)])
        phi = model.Phi(box, box.midpoint())
        assert phi[1].contains(0.0)
        assert phi[1].width < 1e-300

    def test_psi_is_zero(self, model):
        psi = model.Psi(model.omega_0, np.zeros(2), model.U)
        assert psi == IntervalBox([Interval(0, 0), Interval(0, 0)])


# ============================================================================
# Concrete step
# ============================================================================

class TestConcreteStep:

    def test_single_state(self, model):
        x = np.array([1.0, 2.0])
        nxt = model.f_numpy(x, 3.0)
        assert nxt.shape == (2,)
        assert nxt[0] == pytest.approx(1.0 + 0.1 * 2.0)
        assert nxt[1] == pytest.approx(0.89 * 2.0 + 0.1 * 3.0 - 0.033 * math.exp(-1.0))

    def test_broadcasting(self, model):
        X = np.zeros((4, 1, 2))
        U = np.linspace(-6, 6, 3)[np.newaxis, :]
        nxt = model.f_numpy(X, U)
        assert nxt.shape == (4, 3, 2)
        np.testing.assert_allclose(nxt[0, :, 1], [-0.6, 0.0, 0.6])
        np.testing.assert_allclose(nxt[..., 0], 0.0)

    def test_torch_matches_numpy(self, model):
        torch = pytest.importorskip("torch")
        X = np.random.default_rng(0).uniform(-2, 2, size=(5, 1, 2))
        U = np.array([[-6.0, 0.0, 6.0]])
        expected = model.f_numpy(X, U)
        got = model.f_torch(torch.tensor(X, dtype=torch.float64),
                            torch.tensor(U, dtype=torch.float64))
        np.testing.assert_allclose(got.numpy(), expected, rtol=1e-12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
