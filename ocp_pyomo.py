# ocp_pyomo.py
"""
ocp_pyomo.py

Optimal control formulation (Pyomo) used to find points on the boundary of
the true reachable set after N steps. For each direction l(phi) we solve

    max <l(phi), x_N>

over initial states in the initial box and controls u_k in U, subject to the
plant's concrete dynamics. Each solution is a reachable state, so the
resulting boundary is an inner estimate; the polyhedral outer bound must have
a support value at least as large in every direction.

Also provides a solver-free brute-force variant over constant controls and
a finite set of initial states.
"""

import logging
from typing import List, Optional

import numpy as np

try:
    import pyomo.environ as pyo
except ImportError as e:  # pragma: no cover - handled at runtime
    raise ImportError(
        "ocp_pyomo requires Pyomo to be installed. Install via `pip install pyomo`."
    ) from e

from intervals import Interval, IntervalBox
from system import MassSpringDamper

logger = logging.getLogger(__name__)


def build_support_model(
    system: MassSpringDamper,
    phi: float,
    num_steps: int,
    initial: Optional[IntervalBox] = None,
    U: Optional[Interval] = None,
) -> "pyo.ConcreteModel":
    """
    Build the Pyomo model maximising <l(phi), x_N>.

    Parameters
    ----------
    system : MassSpringDamper
        The plant (coefficients and control bound).
    phi : float
        Direction angle in radians.
    num_steps : int
        Number of discrete steps N (>= 1).
    initial : IntervalBox or None
        Initial set; defaults to system.omega_0.
    U : Interval or None
        Control bound; defaults to system.U.

    Returns
    -------
    pyo.ConcreteModel
        Model with state variables x0, x1 over K = 0..N, control u over
        Kc = 0..N-1, constraints dyn0, dyn1 and objective obj.
    """
    if num_steps < 1:
        raise ValueError(f"num_steps must be >= 1, got {num_steps}")
    if initial is None:
        initial = system.omega_0
    if U is None:
        U = system.U

    N = num_steps
    # Plain floats keep numpy scalars out of the Pyomo expressions.
    a = system.matrix().tolist()
    b = system.control_vector().tolist()
    gain = float(system.phi_gain)

    model = pyo.ConcreteModel()
    model.K = pyo.RangeSet(0, N)          # time steps for state
    model.Kc = pyo.RangeSet(0, N - 1)     # time steps for control

    model.x0 = pyo.Var(model.K, domain=pyo.Reals, initialize=float(initial[0].midpoint))
    model.x1 = pyo.Var(model.K, domain=pyo.Reals, initialize=float(initial[1].midpoint))
    model.u = pyo.Var(model.Kc, bounds=(U.lower, U.upper), initialize=U.midpoint)

    # Initial state ranges over the initial box
    model.x0[0].setlb(initial[0].lower)
    model.x0[0].setub(initial[0].upper)
    model.x1[0].setlb(initial[1].lower)
    model.x1[0].setub(initial[1].upper)

    def dyn0_rule(m, k):
        return m.x0[k + 1] == a[0][0] * m.x0[k] + a[0][1] * m.x1[k] + b[0] * m.u[k]

    def dyn1_rule(m, k):
        return m.x1[k + 1] == (a[1][0] * m.x0[k] + a[1][1] * m.x1[k] + b[1] * m.u[k]
                               + gain * m.x0[k] * pyo.exp(-m.x0[k]))

    model.dyn0 = pyo.Constraint(model.Kc, rule=dyn0_rule)
    model.dyn1 = pyo.Constraint(model.Kc, rule=dyn1_rule)

    l0 = float(np.cos(phi))
    l1 = float(np.sin(phi))
    model.obj = pyo.Objective(expr=l0 * model.x0[N] + l1 * model.x1[N], sense=pyo.maximize)
    return model


def solve_support_direction(
    system: MassSpringDamper,
    phi: float,
    num_steps: int,
    solver_name: str = "ipopt",
    initial: Optional[IntervalBox] = None,
) -> np.ndarray:
    """
    Solve the optimal control problem for a single direction l(phi).

    Returns
    -------
    np.ndarray
        Terminal state x_N of shape (2,).

    Raises
    ------
    RuntimeError
        If the solver is not available or does not reach an optimal point.
    """
    model = build_support_model(system, phi, num_steps, initial=initial)

    solver = pyo.SolverFactory(solver_name)
    if not solver.available(exception_flag=False):
        raise RuntimeError(f"Pyomo solver '{solver_name}' is not available")
    result = solver.solve(model, tee=False)
    if not pyo.check_optimal_termination(result):
        raise RuntimeError(
            f"Solver '{solver_name}' failed for phi={phi:.3f}: "
            f"{result.solver.termination_condition}"
        )

    N = num_steps
    return np.array([pyo.value(model.x0[N]), pyo.value(model.x1[N])], dtype=float)


def compute_oc_boundary(
    system: MassSpringDamper,
    num_steps: int,
    num_directions: int,
    solver_name: str = "ipopt",
    initial: Optional[IntervalBox] = None,
) -> np.ndarray:
    """
    Reachable set boundary by solving OCPs in multiple directions.

    Returns
    -------
    np.ndarray
        Boundary points of shape (num_directions, 2), ordered by phi.
    """
    phis = np.linspace(0.0, 2.0 * np.pi, num_directions, endpoint=False)
    boundary_points: List[np.ndarray] = []
    for phi in phis:
        boundary_points.append(
            solve_support_direction(system, phi, num_steps, solver_name=solver_name,
                                    initial=initial)
        )
    logger.info("OC boundary (%s): %d directions solved", solver_name, num_directions)
    return np.stack(boundary_points, axis=0)


def compute_oc_boundary_bruteforce(
    system: MassSpringDamper,
    num_steps: int,
    phis: np.ndarray,
    control_candidates: np.ndarray,
    initial_candidates: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Fast auxiliary method: for each direction phi, consider only constant
    controls u_k = u drawn from control_candidates and initial states drawn
    from initial_candidates (default: the corners of omega_0), and pick the
    pair with maximal <l(phi), x_N>.

    Parameters
    ----------
    system : MassSpringDamper
        The plant.
    num_steps : int
        Number of discrete steps.
    phis : np.ndarray
        Direction angles of shape (K,).
    control_candidates : np.ndarray
        Scalar controls of shape (M,).
    initial_candidates : np.ndarray or None
        Initial states of shape (I, 2).

    Returns
    -------
    np.ndarray
        Approximate boundary points of shape (K, 2).
    """
    if initial_candidates is None:
        initial_candidates = system.omega_0.vertices()
    initial_candidates = np.asarray(initial_candidates, dtype=float).reshape(-1, 2)

    # Every (initial state, constant control) trajectory at once: (I, M, 2)
    U = np.asarray(control_candidates, dtype=float)[np.newaxis, :]
    X = np.broadcast_to(
        np.asarray(initial_candidates, dtype=float)[:, np.newaxis, :],
        (initial_candidates.shape[0], U.shape[1], 2),
    )
    for _ in range(num_steps):
        X = system.f_numpy(X, U)
    finals = X.reshape(-1, 2)

    boundary_points = np.zeros((phis.shape[0], 2), dtype=float)
    for i, phi in enumerate(phis):
        l = np.array([np.cos(phi), np.sin(phi)], dtype=float)
        boundary_points[i] = finals[int(np.argmax(finals @ l))]
    return boundary_points
