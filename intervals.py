# intervals.py
"""
intervals.py

Closed real intervals and n-dimensional interval boxes used for sound
over-approximation of the nonlinear parts of the plant.

Arithmetic and exp are delegated to pyinterval, which evaluates every bound
with directed rounding, so the computed interval always encloses the exact
result of the operation applied to any points of the operands. Interval is a
thin single-component view on top of it: an immutable, hashable pair of
float bounds that the rest of the code can compare and store.
"""

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple, Union

import numpy as np
from interval import imath, interval

Number = Union[int, float]


def _from_lib(x: interval) -> "Interval":
    if len(x) != 1:
        raise ValueError(f"Expected a single interval component, got {x}")
    return Interval(x[0].inf, x[0].sup)


@dataclass(frozen=True)
class Interval:
    """
    Closed interval [lower, upper].

    Examples
    --------
    >>> Interval(-6, 6).width
    12.0
    >>> Interval(1, 2).contains(1.5)
    True
    """
    lower: float
    upper: float

    def __post_init__(self) -> None:
        lo = float(self.lower)
        hi = float(self.upper)
        if np.isnan(lo) or np.isnan(hi):
            raise ValueError("Interval bounds must not be NaN")
        if lo > hi:
            raise ValueError(f"Empty interval: lower={lo} > upper={hi}")
        object.__setattr__(self, "lower", lo)
        object.__setattr__(self, "upper", hi)

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def point(cls, value: Number) -> "Interval":
        """Degenerate interval [value, value]."""
        return cls(value, value)

    @staticmethod
    def _coerce(other: Union["Interval", Number]) -> "Interval":
        if isinstance(other, Interval):
            return other
        return Interval.point(other)

    def _lib(self) -> interval:
        return interval[self.lower, self.upper]

    # ---- Queries ---------------------------------------------------------

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def midpoint(self) -> float:
        return 0.5 * (self.lower + self.upper)

    @property
    def is_degenerate(self) -> bool:
        return self.lower == self.upper

    def contains(self, value: Union["Interval", Number]) -> bool:
        if isinstance(value, Interval):
            return value._lib() in self._lib()
        return value in self._lib()

    def hull(self, other: "Interval") -> "Interval":
        """Smallest interval containing both operands."""
        return _from_lib(interval.hull([self._lib(), other._lib()]))

    def intersect(self, other: "Interval") -> "Interval":
        common = self._lib() & other._lib()
        if len(common) == 0:
            raise ValueError(f"Intervals {self} and {other} are disjoint")
        return _from_lib(common)

    __or__ = hull
    __and__ = intersect

    # ---- Arithmetic ------------------------------------------------------

    def __neg__(self) -> "Interval":
        return Interval(-self.upper, -self.lower)

    def __add__(self, other: Union["Interval", Number]) -> "Interval":
        return _from_lib(self._lib() + self._coerce(other)._lib())

    __radd__ = __add__

    def __sub__(self, other: Union["Interval", Number]) -> "Interval":
        return _from_lib(self._lib() - self._coerce(other)._lib())

    def __rsub__(self, other: Number) -> "Interval":
        return self._coerce(other) - self

    def __mul__(self, other: Union["Interval", Number]) -> "Interval":
        other = self._coerce(other)
        if self == _ZERO or other == _ZERO:
            return _ZERO
        return _from_lib(self._lib() * other._lib())

    __rmul__ = __mul__

    def exp(self) -> "Interval":
        """Interval extension of exp, lower bound clipped at 0."""
        res = _from_lib(imath.exp(self._lib()))
        return Interval(max(res.lower, 0.0), res.upper)

    def __repr__(self) -> str:
        return f"Interval([{self.lower!r}, {self.upper!r}])"


_ZERO = Interval(0.0, 0.0)


class IntervalBox:
    """
    Axis-aligned box: a fixed-length tuple of intervals, one per state
    dimension.
    """

    def __init__(self, intervals: Sequence[Interval]):
        self._intervals: Tuple[Interval, ...] = tuple(intervals)
        if not self._intervals:
            raise ValueError("IntervalBox needs at least one dimension")
        for iv in self._intervals:
            if not isinstance(iv, Interval):
                raise TypeError(f"Expected Interval, got {type(iv).__name__}")

    @classmethod
    def from_bounds(cls, lower: Sequence[Number], upper: Sequence[Number]) -> "IntervalBox":
        if len(lower) != len(upper):
            raise ValueError("lower and upper must have the same length")
        return cls([Interval(lo, hi) for lo, hi in zip(lower, upper)])

    @classmethod
    def from_point(cls, point: Sequence[Number]) -> "IntervalBox":
        return cls([Interval.point(v) for v in point])

    @property
    def dim(self) -> int:
        return len(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def __getitem__(self, index: int) -> Interval:
        return self._intervals[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntervalBox):
            return NotImplemented
        return self._intervals == other._intervals

    def __hash__(self) -> int:
        return hash(self._intervals)

    @property
    def lower(self) -> np.ndarray:
        return np.array([iv.lower for iv in self._intervals], dtype=float)

    @property
    def upper(self) -> np.ndarray:
        return np.array([iv.upper for iv in self._intervals], dtype=float)

    def widths(self) -> np.ndarray:
        return self.upper - self.lower

    def midpoint(self) -> np.ndarray:
        """Center of the box as a state vector."""
        return np.array([iv.midpoint for iv in self._intervals], dtype=float)

    def contains(self, point: Sequence[Number], tol: float = 0.0) -> bool:
        point = np.asarray(point, dtype=float)
        if point.shape != (self.dim,):
            raise ValueError(f"Expected a point of shape ({self.dim},), got {point.shape}")
        return bool(np.all(point >= self.lower - tol) and np.all(point <= self.upper + tol))

    def hull(self, other: "IntervalBox") -> "IntervalBox":
        if other.dim != self.dim:
            raise ValueError("Boxes of different dimension")
        return IntervalBox([a.hull(b) for a, b in zip(self, other)])

    def vertices(self) -> np.ndarray:
        """All 2^n corners of the box, shape (2^n, n)."""
        grids = np.meshgrid(*[[iv.lower, iv.upper] for iv in self._intervals], indexing="ij")
        return np.stack([g.ravel() for g in grids], axis=-1)

    def __repr__(self) -> str:
        inner = ", ".join(f"[{iv.lower!r}, {iv.upper!r}]" for iv in self._intervals)
        return f"IntervalBox({inner})"
