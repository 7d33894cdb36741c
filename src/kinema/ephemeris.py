'''Ephemeris class definition
Owns the massive bodies, integrates them and serves their trajectories'''

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union
from .bodies import DegreesOfFreedom, MassiveBody, gravitational_parameters
from .continuous_trajectory import ContinuousTrajectory
from .discrete_trajectory import DiscreteTrajectory
from .gravity import NewtonianGravity, massless_accelerations
from .integrators import (
    UNLIMITED_MAX_STEPS,
    AdaptiveStepIntegrator,
    IntegrationProblem,
    SymplecticPartitionedRungeKutta,
    SystemState,
    TaylorIntegrator,
    number_of_steps,
)

log = logging.getLogger(__name__)

IntrinsicAcceleration = Callable[[float], np.ndarray]


def _no_intrinsic_acceleration(t: float) -> np.ndarray:
    return np.zeros(3)


def _finite_time(t) -> float:
    t = float(t)
    if not np.isfinite(t):
        raise ValueError(f"Time must be finite, got {t}")
    return t


"""
Immutable parameter sets for the two kinds of integration.
"""
@dataclass(frozen=True)
class FixedStepParameters:
    """
    Attributes
    ----------
    step : float
        Integration step, positive
    integrator : SymplecticPartitionedRungeKutta or TaylorIntegrator
        Fixed-step integrator (default: Forest-Ruth)
    """
    step: float
    integrator: Union[SymplecticPartitionedRungeKutta, TaylorIntegrator] = field(
        default_factory=SymplecticPartitionedRungeKutta.forest_ruth)

    def __post_init__(self):
        if not self.step > 0:
            raise ValueError(f"Step must be positive, got {self.step}")


@dataclass(frozen=True)
class AdaptiveStepParameters:
    """
    Attributes
    ----------
    length_integration_tolerance : float
        Absolute tolerance on positions
    speed_integration_tolerance : float
        Absolute tolerance on velocities
    integrator : AdaptiveStepIntegrator
        Adaptive-step integrator (default: config.ADAPTIVE_METHOD)
    """
    length_integration_tolerance: float
    speed_integration_tolerance: float
    integrator: AdaptiveStepIntegrator = field(default_factory=AdaptiveStepIntegrator)

    def __post_init__(self):
        if not (self.length_integration_tolerance > 0
                and self.speed_integration_tolerance > 0):
            raise ValueError(
                f"Integration tolerances must be positive, got length "
                f"{self.length_integration_tolerance} and speed "
                f"{self.speed_integration_tolerance}"
            )


class Ephemeris:
    """
    Trajectories of a fixed set of massive bodies under mutual gravitation.

    The ephemeris integrates the bodies with a fixed step and feeds each
    new state to one ContinuousTrajectory per body, so that their positions
    can be queried at any time in [t_min(), t_max()).  It also integrates
    massless particles in the field of the bodies (flow_with_fixed_step and
    flow_with_adaptive_step), prolonging itself as needed.

    Parameters
    ----------
    bodies : sequence of MassiveBody
        Distinct bodies; the ephemeris keeps them for its lifetime
    initial_state : sequence of DegreesOfFreedom or array_like
        Degrees of freedom of each body at initial_time, or 6-element
        [x, y, z, vx, vy, vz] arrays
    initial_time : float
    fixed_step_parameters : FixedStepParameters
        Integrator and step used for the bodies
    low_fitting_tolerance, high_fitting_tolerance : float
        Tolerances of the continuous trajectories

    Raises
    ------
    ValueError
        If bodies is empty, sizes differ, an entry is None or a body is
        listed twice
    TypeError
        If a body is not a MassiveBody

    Examples
    --------
    >>> sun = MassiveBody(1.32712440018e11, name="Sun")
    >>> earth = MassiveBody(398600.435436, name="Earth")
    >>> ephemeris = Ephemeris([sun, earth], [sun_dof, earth_dof], 0.0,
    ...                       FixedStepParameters(3600.0), 1e-3, 1e-1)
    >>> ephemeris.prolong(86400.0 * 365)
    >>> ephemeris.trajectory(earth).evaluate_position(1.0e6)
    """
    NO_INTRINSIC_ACCELERATION = staticmethod(_no_intrinsic_acceleration)
    UNLIMITED_MAX_EPHEMERIS_STEPS = UNLIMITED_MAX_STEPS

    # ========== CONSTRUCTION ==========
    def __init__(self,
                 bodies: Sequence[MassiveBody],
                 initial_state: Sequence[Union[DegreesOfFreedom, np.ndarray]],
                 initial_time: float,
                 fixed_step_parameters: FixedStepParameters,
                 low_fitting_tolerance: float,
                 high_fitting_tolerance: float):
        bodies = tuple(bodies)
        initial_state = list(initial_state)
        if not bodies:
            raise ValueError("An ephemeris needs at least one body")
        if len(bodies) != len(initial_state):
            raise ValueError(f"Got {len(bodies)} bodies and "
                             f"{len(initial_state)} initial states")
        if any(body is None for body in bodies):
            raise ValueError("Bodies must not be None")
        if any(dof is None for dof in initial_state):
            raise ValueError("Initial states must not be None")
        for body in bodies:
            if not isinstance(body, MassiveBody):
                raise TypeError(f"Expected MassiveBody, got {type(body).__name__}")
        if len({id(body) for body in bodies}) != len(bodies):
            raise ValueError("A body is listed more than once")
        if not isinstance(fixed_step_parameters, FixedStepParameters):
            raise TypeError(f"Expected FixedStepParameters, "
                            f"got {type(fixed_step_parameters).__name__}")

        self._bodies = bodies
        self._body_indices = {body: index for index, body in enumerate(bodies)}
        self._fixed_step_parameters = fixed_step_parameters
        self._equation = NewtonianGravity(gravitational_parameters(bodies))
        self._gravitational_parameters = np.array(
            gravitational_parameters(bodies), dtype=float)
        self._trajectories = [
            ContinuousTrajectory(fixed_step_parameters.step,
                                 low_fitting_tolerance,
                                 high_fitting_tolerance)
            for _ in bodies
        ]

        dofs = [dof if isinstance(dof, DegreesOfFreedom)
                else DegreesOfFreedom.from_array(dof)
                for dof in initial_state]
        state = SystemState(initial_time,
                            np.array([dof.position for dof in dofs]),
                            np.array([dof.velocity for dof in dofs]))
        self._append_state(state)
        log.debug("Created ephemeris of %d bodies at t = %s", len(bodies), state.time)

    # ========== PROPERTY ACCESS ==========
    @property
    def bodies(self) -> tuple:
        return self._bodies

    @property
    def fixed_step_parameters(self) -> FixedStepParameters:
        return self._fixed_step_parameters

    @property
    def step(self) -> float:
        return self._fixed_step_parameters.step

    @property
    def last_state(self) -> SystemState:
        """State of all bodies at the last integrated time."""
        return self._last_state

    def t_min(self) -> float:
        """Start of the range where every body can be queried."""
        return max(trajectory.t_min for trajectory in self._trajectories)

    def t_max(self) -> float:
        """End (excluded) of the range where every body can be queried."""
        return min(trajectory.t_max for trajectory in self._trajectories)

    def trajectory(self, body: MassiveBody) -> ContinuousTrajectory:
        """
        Trajectory of one of the bodies.

        Raises
        ------
        ValueError
            If the body is not part of this ephemeris
        """
        index = self._body_indices.get(body)
        if index is None:
            raise ValueError(f"{body!r} is not part of this ephemeris")
        return self._trajectories[index]

    # ========== MASSIVE BODIES ==========
    def prolong(self, t: float):
        """
        Integrate the bodies until t_max() is at or after t.

        Does nothing if t <= t_max().  The last integrated time is a whole
        number of steps after the initial time and may exceed t by less
        than one step.

        Raises
        ------
        ValueError
            If t is not finite
        """
        t = _finite_time(t)
        step = self.step
        while self._last_state.time < t:
            t0 = self._last_state.time
            steps = max(1, int(np.ceil((t - t0) / step)))
            problem = IntegrationProblem(equation=self._equation,
                                         initial_state=self._last_state,
                                         t_final=t0 + steps * step,
                                         append_state=self._append_state)
            self._fixed_step_parameters.integrator.solve(problem, step)
            log.debug("Prolonged ephemeris to t = %s", self._last_state.time)

    def _append_state(self, state: SystemState):
        self._last_state = state
        for index, trajectory in enumerate(self._trajectories):
            trajectory.append(state.time,
                              DegreesOfFreedom(state.positions[index],
                                               state.velocities[index]))

    def _prolong_past(self, t: float):
        # Queries require t < t_max().
        self.prolong(np.nextafter(t, np.inf))

    def forget_before(self, t: float):
        """
        Forget the trajectories of all the bodies before t.

        Raises
        ------
        ValueError
            If t is after t_max()
        """
        if t > self.t_max():
            raise ValueError(f"Cannot forget before {t}, after t_max = {self.t_max()}")
        for trajectory in self._trajectories:
            trajectory.forget_before(t)

    # ========== MASSLESS PARTICLES ==========
    def compute_gravitational_acceleration(self, t: float,
                                           positions: np.ndarray) -> np.ndarray:
        """
        Gravitational acceleration of massless particles at t.

        Parameters
        ----------
        t : float
            Within [t_min(), t_max())
        positions : array_like
            Shape (3,) or (m, 3)

        Returns
        -------
        np.ndarray
            Same shape as positions
        """
        points = np.asarray(positions, dtype=float)
        body_positions = np.array([trajectory.evaluate_position(t)
                                   for trajectory in self._trajectories])
        accelerations = massless_accelerations(body_positions,
                                               self._gravitational_parameters,
                                               points.reshape(-1, 3))
        return accelerations.reshape(points.shape)

    def _check_flow_start(self, t0: float):
        if t0 < self.t_min():
            raise ValueError(f"Cannot flow from {t0}, before t_min = {self.t_min()}")

    def flow_with_fixed_step(self,
                             trajectories: Sequence[DiscreteTrajectory],
                             intrinsic_accelerations: Sequence[IntrinsicAcceleration],
                             t: float,
                             parameters: Optional[FixedStepParameters] = None):
        """
        Integrate massless particles with a fixed step, never past t.

        Parameters
        ----------
        trajectories : sequence of DiscreteTrajectory
            Non-empty trajectories ending at the same time
        intrinsic_accelerations : sequence of callable
            One per trajectory, t -> acceleration 3-vector
        t : float
            Time not to go past
        parameters : FixedStepParameters, optional
            Defaults to the parameters of the ephemeris.  The integrator
            must accept arbitrary equations (a TaylorIntegrator does not).

        Raises
        ------
        ValueError
            If the sizes differ, a trajectory is empty or the trajectories
            do not end at the same time
        """
        t = _finite_time(t)
        trajectories = list(trajectories)
        intrinsic_accelerations = list(intrinsic_accelerations)
        if len(trajectories) != len(intrinsic_accelerations):
            raise ValueError(f"Got {len(trajectories)} trajectories and "
                             f"{len(intrinsic_accelerations)} intrinsic accelerations")
        if not trajectories:
            return
        parameters = self._fixed_step_parameters if parameters is None else parameters

        lasts = [trajectory.last() for trajectory in trajectories]
        t0 = lasts[0][0]
        if any(last_time != t0 for last_time, _ in lasts):
            raise ValueError("Trajectories must all end at the same time")
        if number_of_steps(t0, t, parameters.step) == 0:
            return
        self._check_flow_start(t0)
        self._prolong_past(t)

        def equation(time, positions):
            intrinsic = np.array([acceleration(time)
                                  for acceleration in intrinsic_accelerations])
            return self.compute_gravitational_acceleration(time, positions) + intrinsic

        def append_state(state: SystemState):
            for index, trajectory in enumerate(trajectories):
                trajectory.append(state.time,
                                  DegreesOfFreedom(state.positions[index],
                                                   state.velocities[index]))

        problem = IntegrationProblem(
            equation=equation,
            initial_state=SystemState(t0,
                                      np.array([dof.position for _, dof in lasts]),
                                      np.array([dof.velocity for _, dof in lasts])),
            t_final=t,
            append_state=append_state,
        )
        parameters.integrator.solve(problem, parameters.step)

    def flow_with_adaptive_step(self,
                                trajectory: DiscreteTrajectory,
                                intrinsic_acceleration: IntrinsicAcceleration,
                                t: float,
                                parameters: AdaptiveStepParameters,
                                max_ephemeris_steps: int = UNLIMITED_MAX_STEPS) -> bool:
        """
        Integrate one massless particle with an adaptive step up to t.

        Parameters
        ----------
        trajectory : DiscreteTrajectory
            Non-empty trajectory, extended in place
        intrinsic_acceleration : callable
            t -> acceleration 3-vector (NO_INTRINSIC_ACCELERATION for none)
        t : float
            Final time
        parameters : AdaptiveStepParameters
        max_ephemeris_steps : int, optional
            Budget of integration steps (default: unlimited)

        Returns
        -------
        bool
            True if t was reached, False if the step budget ran out first
        """
        t = _finite_time(t)
        t0, dof = trajectory.last()
        if t <= t0:
            return True
        self._check_flow_start(t0)
        self._prolong_past(t)

        def equation(time, positions):
            return (self.compute_gravitational_acceleration(time, positions)
                    + intrinsic_acceleration(time))

        def append_state(state: SystemState):
            trajectory.append(state.time,
                              DegreesOfFreedom(state.positions[0], state.velocities[0]))

        problem = IntegrationProblem(
            equation=equation,
            initial_state=SystemState(t0, dof.position, dof.velocity),
            t_final=t,
            append_state=append_state,
        )
        _, reached = parameters.integrator.solve(
            problem,
            parameters.length_integration_tolerance,
            parameters.speed_integration_tolerance,
            max_ephemeris_steps,
        )
        if not reached:
            log.info("Adaptive flow ran out of steps at t = %s before reaching %s",
                     trajectory.last()[0], t)
        return reached

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        names = [body.name or f"body {index}" for index, body in enumerate(self._bodies)]
        return (f"Ephemeris(bodies={names}, step={self.step}, "
                f"t_min={self.t_min()}, t_max={self.t_max()})")
