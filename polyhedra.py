# polyhedra.py
"""
polyhedra.py

Closed, bounded convex polyhedra in generator (vertex) form with exact
rational coordinates. This is the set representation propagated by the
polyhedral reachability engine:

- generators are stored as numpy object arrays of fractions.Fraction, so
  affine images and Minkowski sums are exact;
- redundant generators are removed exactly in the plane (monotone-chain
  hull on the rationals); in higher dimensions scipy.spatial.ConvexHull only
  pre-filters clearly interior generators;
- membership of arbitrary points is decided by an LP (scipy.optimize.linprog),
  with an exact edge test for full-dimensional polygons in the plane.
"""

import logging
from fractions import Fraction
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
from scipy.optimize import linprog
from scipy.spatial import ConvexHull, QhullError

from intervals import Interval, IntervalBox

logger = logging.getLogger(__name__)

Rational = Union[int, float, Fraction]


def to_fraction(value: Rational) -> Fraction:
    """
    Exact conversion to Fraction. Floats are converted bit-exactly
    (Fraction(0.1) != Fraction(1, 10)).
    """
    if isinstance(value, Fraction):
        return value
    if isinstance(value, (int, np.integer)):
        return Fraction(int(value))
    value = float(value)
    if not np.isfinite(value):
        raise ValueError(f"Cannot represent {value} as a rational")
    return Fraction(value)


def _fraction_array(values: Iterable[Rational]) -> np.ndarray:
    return np.array([to_fraction(v) for v in values], dtype=object)


def _floor_float(q: Fraction) -> float:
    f = float(q)
    if Fraction(f) > q:
        f = float(np.nextafter(f, -np.inf))
    return f


def _ceil_float(q: Fraction) -> float:
    f = float(q)
    if Fraction(f) < q:
        f = float(np.nextafter(f, np.inf))
    return f


def _cross(o: tuple, a: tuple, b: tuple) -> Fraction:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _convex_hull_2d(points: List[tuple]) -> List[tuple]:
    """
    Exact convex hull of distinct planar points (monotone chain).

    Vertices come back in counter-clockwise order; collinear points on the
    boundary are dropped, so a segment gives its two end points.
    """
    pts = sorted(points)
    if len(pts) <= 2:
        return pts

    lower: List[tuple] = []
    for p in pts:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)
    upper: List[tuple] = []
    for p in reversed(pts):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)
    return lower[:-1] + upper[:-1]


def _hull_candidates(points: np.ndarray, margin: float = 1e-9) -> List[int]:
    """
    Indices of the points of a float cloud (N, d), d >= 3, that may be
    extreme. Only points strictly inside the Qhull facets (by a relative
    margin) are dropped, so every true vertex is kept.
    """
    try:
        hull = ConvexHull(points)
    except QhullError:
        logger.debug("Qhull failed on %d points in %d-D, keeping all of them",
                     points.shape[0], points.shape[1])
        return list(range(points.shape[0]))

    scale = max(float(np.abs(points).max()), 1.0)
    kept = set(int(i) for i in hull.vertices)
    offsets = points @ hull.equations[:, :-1].T + hull.equations[:, -1]
    for i in np.flatnonzero(offsets.max(axis=1) > -margin * scale):
        kept.add(int(i))
    return sorted(kept)


class Polyhedron:
    """
    Bounded convex polyhedron given by a finite set of point generators.

    The polyhedron is the convex hull of its generators. A polyhedron with
    no generators is empty.

    add_generator() mutates the polyhedron in place (it is the builder
    operation); every other operation returns a new Polyhedron.
    """

    def __init__(self, dim: int, generators: Optional[np.ndarray] = None):
        if dim < 1:
            raise ValueError(f"Polyhedron dimension must be positive, got {dim}")
        self._dim = int(dim)
        if generators is None:
            generators = np.empty((0, dim), dtype=object)
        generators = np.asarray(generators, dtype=object)
        if generators.ndim != 2 or generators.shape[1] != dim:
            raise ValueError(f"Generators must have shape (N, {dim}), got {generators.shape}")
        self._generators = generators
        self._vertices: Optional[np.ndarray] = None

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def empty(cls, dim: int) -> "Polyhedron":
        return cls(dim)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[Rational]]) -> "Polyhedron":
        rows = [_fraction_array(p) for p in points]
        if not rows:
            raise ValueError("from_points needs at least one point; use Polyhedron.empty()")
        return cls(len(rows[0]), np.stack(rows, axis=0))

    @classmethod
    def from_box(cls, box: IntervalBox) -> "Polyhedron":
        """Exact polyhedron of an interval box (its 2^n corners)."""
        return cls.from_points(box.vertices())

    def add_generator(self, point: Sequence[Rational], divisor: Rational = 1) -> None:
        """Add the point `point / divisor` to the generators."""
        divisor = to_fraction(divisor)
        if divisor == 0:
            raise ValueError("Generator divisor must be non-zero")
        row = _fraction_array(point)
        if row.shape != (self._dim,):
            raise ValueError(f"Expected a point of dimension {self._dim}, got {row.shape}")
        self._generators = np.vstack([self._generators, (row / divisor)[np.newaxis, :]])
        self._vertices = None

    # ---- Basic queries ---------------------------------------------------

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def is_empty(self) -> bool:
        return self._generators.shape[0] == 0

    @property
    def generators(self) -> np.ndarray:
        return self._generators.copy()

    @property
    def num_vertices(self) -> int:
        return self.vertices().shape[0]

    def vertices(self) -> np.ndarray:
        """
        Minimised generators (the vertices), exact, shape (K, dim).

        In one and two dimensions the minimisation is exact and planar
        vertices are in counter-clockwise order. In higher dimensions a
        float hull only drops generators that are clearly interior, so a
        few redundant generators may remain.
        """
        if self._vertices is None:
            unique = list(dict.fromkeys(tuple(row) for row in self._generators))
            if len(unique) <= 1:
                verts = unique
            elif self._dim == 1:
                verts = [min(unique), max(unique)]
            elif self._dim == 2:
                verts = _convex_hull_2d(unique)
            else:
                keep = _hull_candidates(np.array(unique, dtype=object).astype(float))
                verts = [unique[i] for i in keep]
            self._vertices = np.array(verts, dtype=object).reshape(len(verts), self._dim)
        return self._vertices

    def vertices_float(self) -> np.ndarray:
        return self.vertices().astype(float)

    def ordered_vertices(self) -> np.ndarray:
        """Vertices of a planar polyhedron in counter-clockwise order, floats."""
        if self._dim != 2:
            raise ValueError("ordered_vertices is only defined for 2-D polyhedra")
        return self.vertices_float()

    def support(self, direction: Sequence[Rational]) -> Fraction:
        """Exact support value max_{x in P} <direction, x>."""
        if self.is_empty:
            raise ValueError("Support function of an empty polyhedron is -inf")
        d = _fraction_array(direction)
        if d.shape != (self._dim,):
            raise ValueError(f"Direction must have dimension {self._dim}")
        return max(self.vertices().dot(d))

    def bounding_box(self) -> IntervalBox:
        """Smallest float box containing the polyhedron (outward rounded)."""
        if self.is_empty:
            raise ValueError("Empty polyhedron has no bounding box")
        verts = self.vertices()
        return IntervalBox([
            Interval(_floor_float(min(verts[:, i])), _ceil_float(max(verts[:, i])))
            for i in range(self._dim)
        ])

    # ---- Images and sums -------------------------------------------------

    def affine_image(
        self,
        var: int,
        coefficients: Sequence[Rational],
        inhomogeneous: Rational = 0,
        denominator: Rational = 1,
    ) -> "Polyhedron":
        """
        Image under x_var <- (sum_i coefficients[i] * x_i + inhomogeneous) / denominator.
        All other coordinates are unchanged.
        """
        if not 0 <= var < self._dim:
            raise ValueError(f"Variable index {var} out of range for dimension {self._dim}")
        denominator = to_fraction(denominator)
        if denominator == 0:
            raise ValueError("Affine image denominator must be non-zero")
        coeffs = _fraction_array(coefficients)
        if coeffs.shape != (self._dim,):
            raise ValueError(f"Expected {self._dim} coefficients, got {coeffs.shape[0]}")
        if self.is_empty:
            return Polyhedron.empty(self._dim)

        gens = self.vertices().copy()
        gens[:, var] = (gens.dot(coeffs) + to_fraction(inhomogeneous)) / denominator
        return Polyhedron(self._dim, gens)

    def linear_image(
        self,
        matrix: Sequence[Sequence[Rational]],
        denominator: Rational = 1,
    ) -> "Polyhedron":
        """Image under x <- (matrix @ x) / denominator; matrix may change the dimension."""
        denominator = to_fraction(denominator)
        if denominator == 0:
            raise ValueError("Linear image denominator must be non-zero")
        mat = np.array([[to_fraction(v) for v in row] for row in matrix], dtype=object)
        if mat.ndim != 2 or mat.shape[1] != self._dim:
            raise ValueError(f"Matrix must have {self._dim} columns")
        if self.is_empty:
            return Polyhedron.empty(mat.shape[0])
        return Polyhedron(mat.shape[0], self.vertices().dot(mat.T) / denominator)

    def minkowski_sum(self, other: "Polyhedron") -> "Polyhedron":
        if other.dim != self._dim:
            raise ValueError("Minkowski sum of polyhedra of different dimension")
        if self.is_empty or other.is_empty:
            return Polyhedron.empty(self._dim)
        a = self.vertices()
        b = other.vertices()
        sums = (a[:, np.newaxis, :] + b[np.newaxis, :, :]).reshape(-1, self._dim)
        return Polyhedron(self._dim, sums)

    def __add__(self, other: "Polyhedron") -> "Polyhedron":
        return self.minkowski_sum(other)

    def translate(self, vector: Sequence[Rational]) -> "Polyhedron":
        shift = _fraction_array(vector)
        if shift.shape != (self._dim,):
            raise ValueError(f"Translation vector must have dimension {self._dim}")
        if self.is_empty:
            return Polyhedron.empty(self._dim)
        return Polyhedron(self._dim, self.vertices() + shift[np.newaxis, :])

    def template_hull(self, size: int = 16) -> "Polyhedron":
        """
        Outer approximation by a planar template polygon.

        Uses up to `size` rational directions spread evenly in angle (see
        template_directions); the result is the intersection of the
        half-planes <d_i, x> <= support(d_i), whose vertices are the
        intersections of angularly consecutive boundary lines.
        """
        if self._dim != 2:
            raise ValueError("template_hull is only defined for 2-D polyhedra")
        if size < 3:
            raise ValueError(f"Template needs at least 3 directions, got {size}")
        if self.is_empty:
            return Polyhedron.empty(2)

        directions = template_directions(size)
        offsets = [self.support(d) for d in directions]
        corners = []
        n = len(directions)
        for i in range(n):
            j = (i + 1) % n
            (a1, b1), c1 = directions[i], offsets[i]
            (a2, b2), c2 = directions[j], offsets[j]
            det = a1 * b2 - a2 * b1
            corners.append(((c1 * b2 - c2 * b1) / det, (a1 * c2 - a2 * c1) / det))
        return Polyhedron(2, np.array(corners, dtype=object))

    # ---- Membership ------------------------------------------------------

    def contains_point(self, point: Sequence[float], tol: float = 1e-9) -> bool:
        p = np.asarray(point, dtype=float)
        if p.shape != (self._dim,):
            raise ValueError(f"Expected a point of dimension {self._dim}, got {p.shape}")
        if self.is_empty:
            return False

        verts = self.vertices_float()
        if np.any(p < verts.min(axis=0) - tol) or np.any(p > verts.max(axis=0) + tol):
            return False
        if self._dim == 2 and verts.shape[0] >= 3:
            return self._contains_point_polygon(p, tol)
        return self._contains_point_lp(p, verts, tol)

    def _contains_point_polygon(self, p: np.ndarray, tol: float) -> bool:
        return bool(self._polygon_mask(p[np.newaxis, :], tol)[0])

    def _polygon_mask(self, points: np.ndarray, tol: float) -> np.ndarray:
        ring = self.ordered_vertices()
        edges = np.roll(ring, -1, axis=0) - ring                     # (K, 2)
        rel = points[:, np.newaxis, :] - ring[np.newaxis, :, :]      # (N, K, 2)
        cross = edges[:, 0] * rel[..., 1] - edges[:, 1] * rel[..., 0]
        slack = tol * np.maximum(np.linalg.norm(edges, axis=1), 1.0)
        return np.all(cross >= -slack, axis=1)

    def contains_points(self, points: np.ndarray, tol: float = 1e-9) -> np.ndarray:
        """Vectorised contains_point for a cloud of shape (N, dim)."""
        points = np.asarray(points, dtype=float).reshape(-1, self._dim)
        if self.is_empty:
            return np.zeros(points.shape[0], dtype=bool)
        if self._dim == 2 and self.num_vertices >= 3:
            return self._polygon_mask(points, tol)
        return np.array([self.contains_point(p, tol=tol) for p in points], dtype=bool)

    @staticmethod
    def _contains_point_lp(p: np.ndarray, verts: np.ndarray, tol: float) -> bool:
        # min sum(s+ + s-)  s.t.  V^T lam + s+ - s- = p,  sum(lam) = 1,  lam, s >= 0
        k, d = verts.shape
        c = np.concatenate([np.zeros(k), np.ones(2 * d)])
        a_eq = np.zeros((d + 1, k + 2 * d))
        a_eq[:d, :k] = verts.T
        a_eq[:d, k:k + d] = np.eye(d)
        a_eq[:d, k + d:] = -np.eye(d)
        a_eq[d, :k] = 1.0
        b_eq = np.concatenate([p, [1.0]])
        res = linprog(c, A_eq=a_eq, b_eq=b_eq, bounds=(0, None), method="highs")
        if res.status != 0:
            raise RuntimeError(f"Membership LP failed: {res.message}")
        return bool(res.fun <= tol)

    def contains(self, other: "Polyhedron", tol: float = 1e-9) -> bool:
        """
        Inclusion test other <= self. Exact (no tolerance) for
        full-dimensional planar polyhedra.
        """
        if other.dim != self._dim:
            raise ValueError("Inclusion test between polyhedra of different dimension")
        if other.is_empty:
            return True
        if self.is_empty:
            return False
        if self._dim == 2 and self.num_vertices >= 3:
            ring = self.vertices()
            for i in range(ring.shape[0]):
                v, w = ring[i], ring[(i + 1) % ring.shape[0]]
                normal = (w[1] - v[1], v[0] - w[0])
                if other.support(normal) > normal[0] * v[0] + normal[1] * v[1]:
                    return False
            return True
        return all(self.contains_point(v, tol=tol) for v in other.vertices_float())

    # ---- Dunder ----------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Polyhedron):
            return NotImplemented
        if other.dim != self._dim:
            return False
        return set(map(tuple, self.vertices())) == set(map(tuple, other.vertices()))

    __hash__ = None  # mutable via add_generator

    def __repr__(self) -> str:
        if self.is_empty:
            return f"Polyhedron(dim={self._dim}, empty)"
        return f"Polyhedron(dim={self._dim}, vertices={self.vertices_float().tolist()})"


def template_directions(size: int) -> List[tuple]:
    """
    Rational directions in increasing angle order, approximating the unit
    vectors at angles 2*pi*k/size (axis directions are exact).

    Approximations that are not strictly counter-clockwise of the previous
    kept direction are skipped, so for very large `size` fewer than `size`
    directions may come back, and consecutive ones are never parallel.
    """
    directions: List[tuple] = []
    for k in range(size):
        theta = 2.0 * np.pi * k / size
        d = (
            Fraction(np.cos(theta)).limit_denominator(1000),
            Fraction(np.sin(theta)).limit_denominator(1000),
        )
        if directions and directions[-1][0] * d[1] - directions[-1][1] * d[0] <= 0:
            continue
        directions.append(d)
    # closing pair (last -> first)
    first = directions[0]
    while len(directions) > 1 and directions[-1][0] * first[1] - directions[-1][1] * first[0] <= 0:
        directions.pop()
    return directions
