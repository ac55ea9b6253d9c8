# system.py
"""
system.py

Defines the discrete-time plant used in the reachability experiments: a
mass-spring-damper with a nonlinear spring, Euler-discretised with step
dt = 0.1. The state is 2D (position, velocity), the control is a scalar
force bounded by the interval U.

The one-step map is split into the parts a reachability engine consumes:

    X' = A(x_m, X) (+) B(x_m, U) (+) Phi(X, x_m) (+) Psi(X, x_m, U)

- A     exact affine image of a polyhedron (integer coefficient table),
- B     polyhedron generated by the extreme control inputs,
- Phi   interval enclosure of the nonlinear spring force,
- Psi   interval enclosure of control-dependent nonlinearities (none here).

x_m is the linearisation point of the current set; this plant does not use
it, but the signatures keep it so that engines can treat all models alike.
"""

import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Literal, Optional, Protocol, Tuple

import numpy as np

from intervals import Interval, IntervalBox
from polyhedra import Polyhedron

NDIM = 2
INT16_MAX = 32767

Rounding = Literal["nearest", "floor", "ceil"]


def rat_approx(value: float, denominator: int, rounding: Rounding = "nearest") -> int:
    """
    Numerator n such that n / denominator approximates value.

    rounding="floor" gives n / denominator <= value and "ceil" gives
    n / denominator >= value, which is what sound lower and upper bounds need.
    """
    if denominator <= 0:
        raise ValueError(f"Denominator must be positive, got {denominator}")
    if not np.isfinite(value):
        raise ValueError(f"Cannot approximate non-finite value {value}")
    scaled = Fraction(value) * denominator
    if rounding == "nearest":
        return round(scaled)
    elif rounding == "floor":
        return math.floor(scaled)
    elif rounding == "ceil":
        return math.ceil(scaled)
    else:
        raise ValueError(f"Unknown rounding mode: {rounding}")


class ReachModel(Protocol):
    """What the polyhedral engine needs from a plant."""
    U: Interval
    omega_0: IntervalBox

    def A(self, x: np.ndarray, P: Polyhedron) -> Polyhedron: ...

    def B(self, x: np.ndarray, U: Optional[Interval] = None) -> Polyhedron: ...

    def Phi(self, x: IntervalBox, x_m: np.ndarray) -> IntervalBox: ...

    def Psi(self, x: IntervalBox, x_m: np.ndarray, U: Optional[Interval] = None) -> IntervalBox: ...


def _default_U() -> Interval:
    return Interval(-6, 6)


def _default_omega_0() -> IntervalBox:
    return IntervalBox([Interval(-6, 6), Interval(-6, 6)])


@dataclass
class MassSpringDamper:
    """
    Mass-spring-damper plant:

        x0' = x0 + 0.1 x1
        x1' = 0.89 x1 + 0.1 u - 0.033 x0 exp(-x0)

    Coefficients are kept as integers over a common denominator so that the
    polyhedral part of the step is exact.
    """
    a_matrix: Tuple[Tuple[int, int], Tuple[int, int]] = ((100, 10), (0, 100 - 11))
    a_den: int = 100
    b_vector: Tuple[int, int] = (0, 1)
    b_den: int = 10
    u_den: int = INT16_MAX
    phi_gain: float = -0.033
    U: Interval = field(default_factory=_default_U)
    omega_0: IntervalBox = field(default_factory=_default_omega_0)

    def __post_init__(self) -> None:
        if len(self.a_matrix) != NDIM or any(len(row) != NDIM for row in self.a_matrix):
            raise ValueError(f"a_matrix must be {NDIM}x{NDIM}")
        if len(self.b_vector) != NDIM:
            raise ValueError(f"b_vector must have length {NDIM}")
        if self.a_den <= 0 or self.b_den <= 0 or self.u_den <= 0:
            raise ValueError("Denominators must be positive")
        if self.a_matrix[0][0] == 0:
            # A() divides by a_matrix[0][0] when compensating for the
            # already-updated first coordinate.
            raise ValueError("a_matrix[0][0] must be non-zero")
        if self.omega_0.dim != NDIM:
            raise ValueError(f"omega_0 must be a {NDIM}-dimensional box")

    # ---- Construction ----------------------------------------------------

    @classmethod
    def from_physical(
        cls,
        dt: float = 0.1,
        mass: float = 1.0,
        damping: float = 1.1,
        stiffness: float = 0.33,
        **kwargs,
    ) -> "MassSpringDamper":
        """
        Build the coefficient table from physical parameters (explicit Euler
        with step dt). The spring force is stiffness * x0 * exp(-x0).
        """
        if dt <= 0 or mass <= 0:
            raise ValueError("dt and mass must be positive")
        dt_q = Fraction(dt).limit_denominator(10 ** 6)
        m_q = Fraction(mass).limit_denominator(10 ** 6)
        c_q = Fraction(damping).limit_denominator(10 ** 6)
        k_q = Fraction(stiffness).limit_denominator(10 ** 6)

        a_rows = ((Fraction(1), dt_q), (Fraction(0), 1 - dt_q * c_q / m_q))
        a_den = math.lcm(*(q.denominator for row in a_rows for q in row))
        a_matrix = tuple(tuple(int(q * a_den) for q in row) for row in a_rows)

        b_q = (Fraction(0), dt_q / m_q)
        b_den = math.lcm(*(q.denominator for q in b_q))
        b_vector = tuple(int(q * b_den) for q in b_q)

        return cls(
            a_matrix=a_matrix,
            a_den=a_den,
            b_vector=b_vector,
            b_den=b_den,
            phi_gain=float(-dt_q * k_q / m_q),
            **kwargs,
        )

    # ---- Abstract (set-valued) step -------------------------------------

    def A(self, x: np.ndarray, P: Polyhedron) -> Polyhedron:
        """Affine image of P under the state-transition matrix."""
        a, den = self.a_matrix, self.a_den
        res = P.affine_image(0, (a[0][0], a[0][1]), denominator=den)
        # Coordinate 0 already holds its new value here, so coordinate 1 is
        # expressed in terms of (x0', x1) instead of (x0, x1).
        res = res.affine_image(
            1,
            (den * a[1][0], a[0][0] * a[1][1] - a[0][1] * a[1][0]),
            denominator=a[0][0] * den,
        )
        return res

    def B(self, x: np.ndarray, U: Optional[Interval] = None) -> Polyhedron:
        """Segment of control contributions B * u for u in U."""
        if U is None:
            U = self.U
        ul = rat_approx(U.lower, self.u_den, rounding="floor")
        uh = rat_approx(U.upper, self.u_den, rounding="ceil")

        b0, b1 = self.b_vector
        res = Polyhedron.empty(NDIM)
        res.add_generator((b0 * ul, b1 * ul), self.b_den * self.u_den)
        res.add_generator((b0 * uh, b1 * uh), self.b_den * self.u_den)
        return res

    def Phi(self, x: IntervalBox, x_m: np.ndarray) -> IntervalBox:
        return IntervalBox([Interval(0, 0), self.phi_gain * x[0] * (-x[0]).exp()])

    def Psi(self, x: IntervalBox, x_m: np.ndarray, U: Optional[Interval] = None) -> IntervalBox:
        return IntervalBox([Interval(0, 0), Interval(0, 0)])

    # ---- Concrete (point) step ------------------------------------------

    def matrix(self) -> np.ndarray:
        return np.array(self.a_matrix, dtype=float) / self.a_den

    def control_vector(self) -> np.ndarray:
        return np.array(self.b_vector, dtype=float) / self.b_den

    def f_numpy(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """
        Next state for concrete states and controls.

        Parameters
        ----------
        x : np.ndarray
            State array of shape (..., 2).
        u : np.ndarray
            Scalar controls, shape broadcast-compatible with x[..., 0].

        Returns
        -------
        np.ndarray
            Next state of shape (..., 2) (broadcast shape).
        """
        a = self.matrix()
        b = self.control_vector()
        x0 = x[..., 0]
        x1 = x[..., 1]
        u = np.asarray(u, dtype=float)
        with np.errstate(over="ignore"):
            spring = self.phi_gain * x0 * np.exp(-x0)
        x0_next = a[0, 0] * x0 + a[0, 1] * x1 + b[0] * u
        x1_next = a[1, 0] * x0 + a[1, 1] * x1 + b[1] * u + spring
        x0_next, x1_next = np.broadcast_arrays(x0_next, x1_next)
        return np.stack((x0_next, x1_next), axis=-1)

    def f_torch(self, x: "torch.Tensor", u: "torch.Tensor") -> "torch.Tensor":
        """Same map as f_numpy for torch.Tensor inputs."""
        import torch

        # Plain floats: numpy scalars on the left of a tensor would coerce it.
        a = self.matrix().tolist()
        b = self.control_vector().tolist()
        x0 = x[..., 0]
        x1 = x[..., 1]
        spring = self.phi_gain * x0 * torch.exp(-x0)
        x0_next = a[0][0] * x0 + a[0][1] * x1 + b[0] * u
        x1_next = a[1][0] * x0 + a[1][1] * x1 + b[1] * u + spring
        x0_next, x1_next = torch.broadcast_tensors(x0_next, x1_next)
        return torch.stack((x0_next, x1_next), dim=-1)
