'''Vessel and PileUp class definitions
Groups of vessels moving as one rigid body through an ephemeris'''

import logging
import numpy as np
from typing import Dict, List, Optional, Sequence
from .bodies import DegreesOfFreedom
from .discrete_trajectory import DiscreteTrajectory
from .ephemeris import AdaptiveStepParameters, Ephemeris, FixedStepParameters

log = logging.getLogger(__name__)


class Vessel:
    """
    A massive particle that does not attract anything.

    The history of a vessel may end with one non-authoritative point: a
    prediction of where the vessel is now, which is replaced by the next
    point appended.

    Parameters
    ----------
    name : str
    mass : float
        Positive
    t : float
        Time of the initial state
    degrees_of_freedom : DegreesOfFreedom
        Initial state
    """
    def __init__(self, name: str, mass: float, t: float,
                 degrees_of_freedom: DegreesOfFreedom):
        if not mass > 0:
            raise ValueError(f"Vessel mass must be positive, got {mass}")
        self.name = name
        self._mass = float(mass)
        self._history = DiscreteTrajectory()
        self._history.append(t, degrees_of_freedom)
        self._last_is_authoritative = True

    @property
    def mass(self) -> float:
        return self._mass

    @property
    def history(self) -> DiscreteTrajectory:
        """All the points of the vessel, including a non-authoritative last one."""
        return self._history

    @property
    def last_is_authoritative(self) -> bool:
        return self._last_is_authoritative

    def append_to_history(self, t: float, degrees_of_freedom: DegreesOfFreedom,
                          authoritative: bool = True):
        """Append a point, replacing the last one if it was not authoritative."""
        if not self._last_is_authoritative:
            self._forget_last()
        self._history.append(t, degrees_of_freedom)
        self._last_is_authoritative = authoritative

    def _forget_last(self):
        times = self._history.times
        self._history.forget_after(times[-2])
        self._last_is_authoritative = True

    def __repr__(self):
        return (f"Vessel(name='{self.name}', mass={self._mass}, "
                f"points={len(self._history)})")


class PileUp:
    """
    Vessels moving together, integrated as their barycentre.

    The offsets of the vessels from the barycentre are frozen at
    construction; each point of the pile-up trajectory is republished to
    every vessel with its offset.

    Parameters
    ----------
    vessels : sequence of Vessel
        Non-empty, with authoritative histories ending at the same time

    Raises
    ------
    ValueError
        If vessels is empty, a history ends with a non-authoritative point,
        or the histories end at different times
    """
    def __init__(self, vessels: Sequence[Vessel]):
        vessels = list(vessels)
        if not vessels:
            raise ValueError("A pile-up needs at least one vessel")
        for vessel in vessels:
            if not vessel.last_is_authoritative:
                raise ValueError(f"{vessel!r} ends with a non-authoritative point")
        lasts = [vessel.history.last() for vessel in vessels]
        t = lasts[0][0]
        if any(last_time != t for last_time, _ in lasts):
            raise ValueError("Vessel histories must all end at the same time")

        self._vessels = vessels
        barycentre = DegreesOfFreedom.barycentre([dof for _, dof in lasts],
                                                 [vessel.mass for vessel in vessels])
        self._vessel_offsets: Dict[int, DegreesOfFreedom] = {
            id(vessel): dof - barycentre for vessel, (_, dof) in zip(vessels, lasts)
        }
        self._trajectory = DiscreteTrajectory()
        self._trajectory.append(t, barycentre)
        self._last_is_authoritative = True
        self._mass = float(sum(vessel.mass for vessel in vessels))
        self._intrinsic_force = np.zeros(3)

    # ========== PROPERTY ACCESS ==========
    @property
    def vessels(self) -> List[Vessel]:
        return list(self._vessels)

    @property
    def trajectory(self) -> DiscreteTrajectory:
        return self._trajectory

    @property
    def mass(self) -> float:
        return self._mass

    @property
    def intrinsic_force(self) -> np.ndarray:
        return self._intrinsic_force.copy()

    def offset(self, vessel: Vessel) -> DegreesOfFreedom:
        """Degrees of freedom of a vessel relative to the barycentre."""
        try:
            return self._vessel_offsets[id(vessel)]
        except KeyError:
            raise ValueError(f"{vessel!r} is not part of this pile-up") from None

    def set_mass_and_intrinsic_force(self, mass: float, intrinsic_force):
        """
        Set the mass and the force applied by the vessels (e.g. engines).

        A zero force makes the pile-up ballistic.
        """
        if not mass > 0:
            raise ValueError(f"Pile-up mass must be positive, got {mass}")
        force = np.array(intrinsic_force, dtype=float)
        if force.shape != (3,):
            raise ValueError(f"Force must be a 3-vector, got shape {force.shape}")
        self._mass = float(mass)
        self._intrinsic_force = force

    # ========== INTEGRATION ==========
    def advance_time(self, ephemeris: Ephemeris, t: float,
                     fixed_step_parameters: FixedStepParameters,
                     adaptive_step_parameters: AdaptiveStepParameters):
        """
        Advance the pile-up and its vessels to t.

        Ballistic pile-ups take fixed steps, then reach t with an adaptive
        step whose end point is not authoritative.  Thrusting pile-ups use
        adaptive steps throughout.
        """
        if not self._last_is_authoritative:
            times = self._trajectory.times
            self._trajectory.forget_after(times[-2])
            self._last_is_authoritative = True
        last_authoritative_time = self._trajectory.last()[0]

        if not np.any(self._intrinsic_force):
            ephemeris.flow_with_fixed_step([self._trajectory],
                                           [Ephemeris.NO_INTRINSIC_ACCELERATION],
                                           t, fixed_step_parameters)
            last_time, last_dof = self._trajectory.last()
            if last_time < t:
                prolongation = DiscreteTrajectory()
                prolongation.append(last_time, last_dof)
                ephemeris.flow_with_adaptive_step(prolongation,
                                                  Ephemeris.NO_INTRINSIC_ACCELERATION,
                                                  t, adaptive_step_parameters)
                if len(prolongation) > 1:
                    self._trajectory.append(*prolongation.last())
                    self._last_is_authoritative = False
        else:
            acceleration = self._intrinsic_force / self._mass
            ephemeris.flow_with_adaptive_step(self._trajectory,
                                              lambda _: acceleration,
                                              t, adaptive_step_parameters)

        new_points = [(time, dof) for time, dof in self._trajectory
                      if time > last_authoritative_time]
        for index, (time, dof) in enumerate(new_points):
            authoritative = self._last_is_authoritative or index < len(new_points) - 1
            for vessel in self._vessels:
                vessel.append_to_history(time, dof + self._vessel_offsets[id(vessel)],
                                         authoritative)
        log.debug("Advanced pile-up of %d vessels to t = %s, %d new points",
                  len(self._vessels), self._trajectory.last()[0], len(new_points))

    def __repr__(self):
        return (f"PileUp(vessels={[vessel.name for vessel in self._vessels]}, "
                f"mass={self._mass})")
