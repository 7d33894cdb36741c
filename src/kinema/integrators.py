'''Integrators for second-order equations q'' = f(t, q)
Fixed-step symplectic and Taylor integrators, adaptive-step Runge-Kutta'''

import logging
import math
import sys
import warnings
import numpy as np
import heyoka as hy
from dataclasses import dataclass
from typing import Callable, Dict, Sequence, Tuple
from scipy.integrate import DOP853, RK23, RK45
from .config import config
from .gravity import NewtonianGravity
from .utils import Timer

log = logging.getLogger(__name__)

UNLIMITED_MAX_STEPS = sys.maxsize

_ADAPTIVE_METHODS = {
    'DOP853': DOP853,
    'RK45': RK45,
    'RK23': RK23,
}


"""
Core dataclasses for integration problems.
An equation is any callable compute_acceleration(t, positions) returning
accelerations with the shape of positions, (n, 3).
"""
@dataclass(frozen=True)
class SystemState:
    """
    State of n points at one instant.

    Attributes
    ----------
    time : float
    positions : np.ndarray
        Shape (n, 3)
    velocities : np.ndarray
        Shape (n, 3)
    """
    time: float
    positions: np.ndarray
    velocities: np.ndarray

    def __post_init__(self):
        positions = np.array(self.positions, dtype=float).reshape(-1, 3)
        velocities = np.array(self.velocities, dtype=float).reshape(-1, 3)
        if positions.shape != velocities.shape:
            raise ValueError(f"Positions {positions.shape} and velocities "
                             f"{velocities.shape} must have the same shape")
        positions.flags.writeable = False
        velocities.flags.writeable = False
        object.__setattr__(self, 'time', float(self.time))
        object.__setattr__(self, 'positions', positions)
        object.__setattr__(self, 'velocities', velocities)

    @property
    def size(self) -> int:
        return self.positions.shape[0]

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.positions))
                    and np.all(np.isfinite(self.velocities)))


@dataclass(frozen=True)
class IntegrationProblem:
    """
    Integrate equation from initial_state to t_final.

    Attributes
    ----------
    equation : callable
        compute_acceleration(t, positions) -> accelerations
    initial_state : SystemState
    t_final : float
    append_state : callable
        Called with each new SystemState, in time order
    """
    equation: Callable[[float, np.ndarray], np.ndarray]
    initial_state: SystemState
    t_final: float
    append_state: Callable[[SystemState], None]


def number_of_steps(t0: float, t_final: float, step: float) -> int:
    """Number of whole steps of a fixed grid from t0 that stay at or before t_final."""
    if t_final <= t0:
        return 0
    n = math.floor((t_final - t0) / step)
    # Rounding in the division may lose one step, or add one.
    if t0 + (n + 1) * step <= t_final:
        n += 1
    while n > 0 and t0 + n * step > t_final:
        n -= 1
    return n


def _check_finite(state: SystemState):
    if not state.is_finite():
        raise RuntimeError(f"Integration produced a non-finite state at t = {state.time}")


class SymplecticPartitionedRungeKutta:
    """
    Fixed-step symplectic integrator in drift-kick form.

    Each step of size h runs through the stages i = 1..s:

        q <- q + a_i h v
        v <- v + b_i h f(t + c_i h, q),   c_i = a_1 + ... + a_i

    A stage with b_i = 0 costs no force evaluation.  With the coefficient
    sets provided here every c_i lies in [0, 1], so the equation is only
    evaluated within the step being taken.

    Parameters
    ----------
    drift_coefficients : sequence of float
        a_i, summing to 1
    kick_coefficients : sequence of float
        b_i, summing to 1
    name : str, optional
    order : int, optional
    """
    def __init__(self, drift_coefficients: Sequence[float],
                 kick_coefficients: Sequence[float],
                 name: str = "custom", order: int = 1):
        a = np.asarray(drift_coefficients, dtype=float)
        b = np.asarray(kick_coefficients, dtype=float)
        if a.shape != b.shape or a.ndim != 1 or a.size == 0:
            raise ValueError(f"Drift and kick coefficients must be non-empty sequences "
                             f"of the same length, got {a.shape} and {b.shape}")
        if not (np.isclose(a.sum(), 1.0) and np.isclose(b.sum(), 1.0)):
            raise ValueError(f"Coefficients must each sum to 1, got "
                             f"{a.sum()} and {b.sum()}")
        self._a = a
        self._b = b
        self._c = np.cumsum(a)
        self.name = name
        self.order = order

    # ========== PREDEFINED METHODS ==========
    @classmethod
    def leapfrog(cls) -> 'SymplecticPartitionedRungeKutta':
        """Störmer-Verlet, second order, one evaluation per step."""
        return cls([0.5, 0.5], [1.0, 0.0], name="leapfrog", order=2)

    @classmethod
    def forest_ruth(cls) -> 'SymplecticPartitionedRungeKutta':
        """Forest-Ruth (Yoshida triple jump), fourth order, three evaluations per step."""
        cube_root = 2.0 ** (1.0 / 3.0)
        w1 = 1.0 / (2.0 - cube_root)
        w0 = -cube_root * w1
        return cls([w1 / 2, (w0 + w1) / 2, (w0 + w1) / 2, w1 / 2],
                   [w1, w0, w1, 0.0],
                   name="forest_ruth", order=4)

    @property
    def evaluations_per_step(self) -> int:
        return int(np.count_nonzero(self._b))

    # ========== INTEGRATION ==========
    def solve(self, problem: IntegrationProblem, step: float) -> SystemState:
        """
        Take the steps of size step from the initial time up to t_final.

        The states at t0 + k * step, k = 1..number_of_steps(), are passed
        to problem.append_state; no state after t_final is produced.

        Returns
        -------
        SystemState
            The last state (the initial state if no step was taken)

        Raises
        ------
        ValueError
            If step is not positive
        RuntimeError
            If a state becomes non-finite
        """
        if not step > 0:
            raise ValueError(f"Step must be positive, got {step}")
        state = problem.initial_state
        t0 = state.time
        n = number_of_steps(t0, problem.t_final, step)
        q = np.array(state.positions)
        v = np.array(state.velocities)
        for k in range(n):
            t_start = t0 + k * step
            for a, b, c in zip(self._a, self._b, self._c):
                if a != 0:
                    q = q + (a * step) * v
                if b != 0:
                    v = v + (b * step) * problem.equation(t_start + c * step, q)
            state = SystemState(t0 + (k + 1) * step, q, v)
            _check_finite(state)
            problem.append_state(state)
        return state

    def __repr__(self):
        return f"SymplecticPartitionedRungeKutta(name='{self.name}', order={self.order})"


class TaylorIntegrator:
    """
    Fixed-step sampling of a heyoka Taylor integration.

    The integration itself is adaptive and accurate to the tolerance of
    the compiled integrator; the states are produced on the same grid as
    the symplectic integrators, t0 + k * step.  Only NewtonianGravity
    equations can be compiled.

    Compilation is expensive (about a second for a handful of bodies), so
    compiled integrators are shared by all instances, keyed by the
    gravitational parameters and tolerance.

    Parameters
    ----------
    tolerance : float, optional
        Tolerance of the Taylor integrator (default: config.TAYLOR_TOLERANCE)
    """
    _compiled: Dict[Tuple, object] = {}

    def __init__(self, tolerance=None):
        self.tolerance = config.TAYLOR_TOLERANCE if tolerance is None else float(tolerance)

    @staticmethod
    def _build_eom(gravitational_parameters: Sequence[float]):
        """
        Build heyoka equations of motion for n bodies.

        Variables are ordered as all positions, then all velocities.
        """
        n = len(gravitational_parameters)
        names = ([f"{axis}_{i}" for i in range(n) for axis in "xyz"]
                 + [f"v{axis}_{i}" for i in range(n) for axis in "xyz"])
        variables = hy.make_vars(*names)
        positions = [variables[3 * i:3 * i + 3] for i in range(n)]
        velocities = [variables[3 * n + 3 * i:3 * n + 3 * i + 3] for i in range(n)]

        accelerations = [[hy.expression(0.0)] * 3 for _ in range(n)]
        for i in range(n):
            for j in range(n):
                if i == j:
                    continue
                dx, dy, dz = (positions[j][k] - positions[i][k] for k in range(3))
                r = hy.sqrt(dx**2 + dy**2 + dz**2)
                factor = gravitational_parameters[j] / r**3
                accelerations[i] = [accelerations[i][0] + factor * dx,
                                    accelerations[i][1] + factor * dy,
                                    accelerations[i][2] + factor * dz]

        sys_eqs = []
        for i in range(n):
            for k in range(3):
                sys_eqs.append((positions[i][k], velocities[i][k]))
        for i in range(n):
            for k in range(3):
                sys_eqs.append((velocities[i][k], accelerations[i][k]))
        return sys_eqs

    def _integrator_for(self, gravitational_parameters: Tuple[float, ...]):
        key = (gravitational_parameters, self.tolerance)
        ta = TaylorIntegrator._compiled.get(key)
        if ta is not None:
            return ta

        threshold = config.INSTANCE_WARNING_THRESHOLD
        if len(TaylorIntegrator._compiled) >= threshold:
            warnings.warn(
                f"Compiled {len(TaylorIntegrator._compiled) + 1} Taylor integrators. "
                f"Each compilation is expensive; reuse the same bodies where possible.",
                UserWarning,
                stacklevel=3,
            )

        n = len(gravitational_parameters)
        log.info("Compiling Taylor integrator for %d bodies", n)
        kwargs = {}
        if self.tolerance is not None:
            kwargs['tol'] = self.tolerance
        # Dummy state with distinct positions
        dummy_state = np.zeros(6 * n)
        dummy_state[0:3 * n:3] = np.arange(n)
        with Timer("Taylor compilation", logger=log):
            ta = hy.taylor_adaptive(
                sys=self._build_eom(gravitational_parameters),
                state=dummy_state,
                **kwargs,
            )
        TaylorIntegrator._compiled[key] = ta
        return ta

    @classmethod
    def clear_cache(cls):
        """Drop all compiled integrators."""
        cls._compiled.clear()

    def solve(self, problem: IntegrationProblem, step: float) -> SystemState:
        """
        Same contract as SymplecticPartitionedRungeKutta.solve().

        Raises
        ------
        TypeError
            If problem.equation is not a NewtonianGravity
        """
        if not isinstance(problem.equation, NewtonianGravity):
            raise TypeError(f"TaylorIntegrator requires a NewtonianGravity equation, "
                            f"got {type(problem.equation).__name__}")
        if not step > 0:
            raise ValueError(f"Step must be positive, got {step}")
        state = problem.initial_state
        t0 = state.time
        n = number_of_steps(t0, problem.t_final, step)
        if n == 0:
            return state

        ta = self._integrator_for(problem.equation.gravitational_parameters)
        size = state.size
        ta.time = t0
        ta.state[:] = np.concatenate([state.positions.ravel(),
                                      state.velocities.ravel()])
        grid = t0 + step * np.arange(n + 1)
        outcome, *_, samples = ta.propagate_grid(grid)
        if outcome != hy.taylor_outcome.time_limit:
            raise RuntimeError(f"Taylor integration stopped with outcome {outcome} "
                               f"after t = {ta.time}")
        for k in range(1, n + 1):
            state = SystemState(grid[k],
                                samples[k, :3 * size].reshape(size, 3),
                                samples[k, 3 * size:].reshape(size, 3))
            _check_finite(state)
            problem.append_state(state)
        return state

    def __repr__(self):
        return f"TaylorIntegrator(tolerance={self.tolerance})"


class AdaptiveStepIntegrator:
    """
    Embedded Runge-Kutta integration with error control.

    The second-order problem is integrated as the first-order system
    (q, v)' = (v, f(t, q)) by one of scipy's explicit solvers.  The
    absolute tolerance of position components is the length tolerance
    and that of velocity components the speed tolerance.

    Parameters
    ----------
    method : str, optional
        'DOP853', 'RK45' or 'RK23' (default: config.ADAPTIVE_METHOD)
    """
    def __init__(self, method=None):
        method = config.ADAPTIVE_METHOD if method is None else method
        if method not in _ADAPTIVE_METHODS:
            raise ValueError(f"Unknown adaptive method '{method}'. "
                             f"Valid methods: {list(_ADAPTIVE_METHODS)}")
        self.method = method

    def solve(self, problem: IntegrationProblem, length_tolerance: float,
              speed_tolerance: float,
              max_steps: int = UNLIMITED_MAX_STEPS) -> Tuple[SystemState, bool]:
        """
        Integrate towards t_final, taking at most max_steps steps.

        Each accepted step is passed to problem.append_state.

        Returns
        -------
        state : SystemState
            The last state reached
        reached : bool
            Whether t_final was reached within the step budget

        Raises
        ------
        ValueError
            If a tolerance is not positive or max_steps is negative
        RuntimeError
            If the solver fails or produces a non-finite state
        """
        if not (length_tolerance > 0 and speed_tolerance > 0):
            raise ValueError(f"Tolerances must be positive, got length "
                             f"{length_tolerance} and speed {speed_tolerance}")
        if max_steps < 0:
            raise ValueError(f"max_steps must be non-negative, got {max_steps}")
        state = problem.initial_state
        t0 = state.time
        if problem.t_final <= t0:
            return state, True

        size = state.size

        def fun(t, y):
            q = y[:3 * size].reshape(size, 3)
            acceleration = problem.equation(t, q)
            return np.concatenate([y[3 * size:], np.ravel(acceleration)])

        atol = np.concatenate([np.full(3 * size, length_tolerance),
                               np.full(3 * size, speed_tolerance)])
        solver = _ADAPTIVE_METHODS[self.method](
            fun, t0,
            np.concatenate([state.positions.ravel(), state.velocities.ravel()]),
            problem.t_final,
            rtol=config.ADAPTIVE_RTOL,
            atol=atol,
        )

        steps = 0
        while solver.status == 'running' and steps < max_steps:
            message = solver.step()
            if solver.status == 'failed':
                raise RuntimeError(f"Adaptive integration failed at t = {solver.t}: "
                                   f"{message}")
            steps += 1
            state = SystemState(solver.t,
                                solver.y[:3 * size].reshape(size, 3),
                                solver.y[3 * size:].reshape(size, 3))
            _check_finite(state)
            problem.append_state(state)

        reached = solver.status == 'finished'
        log.debug("Adaptive integration took %d steps, reached t_final: %s",
                  steps, reached)
        return state, reached

    def __repr__(self):
        return f"AdaptiveStepIntegrator(method='{self.method}')"
