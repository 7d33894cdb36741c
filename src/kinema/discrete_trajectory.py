'''Time-ordered list of degrees of freedom, used for particles and vessels.'''

import bisect as _bisect
import numpy as np
import pandas as pd
from typing import Iterator, List, Tuple
from .bodies import DegreesOfFreedom
from .hermite import fit_hermite_spline


class DiscreteTrajectory:
    """
    Points (t, degrees of freedom) with strictly increasing times.

    This is what the ephemeris flows: a particle's trajectory is extended by
    appending the states produced by the integrator.
    """
    def __init__(self):
        self._times: List[float] = []
        self._states: List[DegreesOfFreedom] = []

    # ========== MUTATION ==========
    def append(self, t: float, degrees_of_freedom: DegreesOfFreedom):
        """
        Append a point after the last one.

        Raises
        ------
        ValueError
            If t is not strictly after the last time
        """
        t = float(t)
        if self._times and t <= self._times[-1]:
            raise ValueError(f"Time {t} is not after the last time {self._times[-1]}")
        if not isinstance(degrees_of_freedom, DegreesOfFreedom):
            raise TypeError(f"Expected DegreesOfFreedom, "
                            f"got {type(degrees_of_freedom).__name__}")
        self._times.append(t)
        self._states.append(degrees_of_freedom)

    def forget_after(self, t: float):
        """Remove the points strictly after t."""
        index = _bisect.bisect_right(self._times, t)
        del self._times[index:]
        del self._states[index:]

    def forget_before(self, t: float):
        """Remove the points strictly before t."""
        index = _bisect.bisect_left(self._times, t)
        del self._times[:index]
        del self._states[:index]

    # ========== ACCESS ==========
    def last(self) -> Tuple[float, DegreesOfFreedom]:
        """Most recent (t, degrees of freedom)."""
        if not self._times:
            raise ValueError("Trajectory is empty")
        return self._times[-1], self._states[-1]

    @property
    def empty(self) -> bool:
        return not self._times

    @property
    def times(self) -> np.ndarray:
        return np.array(self._times)

    @property
    def t_min(self) -> float:
        return self._times[0] if self._times else np.inf

    @property
    def t_max(self) -> float:
        return self._times[-1] if self._times else -np.inf

    def positions(self) -> np.ndarray:
        """Positions as an (n, 3) array."""
        return np.array([dof.position for dof in self._states]).reshape(-1, 3)

    def velocities(self) -> np.ndarray:
        """Velocities as an (n, 3) array."""
        return np.array([dof.velocity for dof in self._states]).reshape(-1, 3)

    def downsampled(self, tolerance: float) -> 'DiscreteTrajectory':
        """
        Keep only the points needed to reconstruct positions within tolerance.

        The kept points are the ends of the trajectory and the breakpoints of
        a cubic Hermite spline through positions and velocities.
        """
        result = DiscreteTrajectory()
        if not self._times:
            return result
        breakpoints = fit_hermite_spline(self._times, self.positions(),
                                         self.velocities(), tolerance)
        kept = sorted({0, *breakpoints, len(self._times) - 1})
        for index in kept:
            result.append(self._times[index], self._states[index])
        return result

    def to_dataframe(self) -> pd.DataFrame:
        """Export to a DataFrame with columns time, x, y, z, vx, vy, vz."""
        states = np.array([dof.to_array() for dof in self._states]).reshape(-1, 6)
        return pd.DataFrame({
            'time': self.times,
            'x': states[:, 0],
            'y': states[:, 1],
            'z': states[:, 2],
            'vx': states[:, 3],
            'vy': states[:, 4],
            'vz': states[:, 5],
        })

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return len(self._times)

    def __iter__(self) -> Iterator[Tuple[float, DegreesOfFreedom]]:
        return iter(zip(self._times, self._states))

    def __repr__(self):
        if not self._times:
            return "DiscreteTrajectory(empty)"
        return (f"DiscreteTrajectory(points={len(self._times)}, "
                f"t_min={self._times[0]}, t_max={self._times[-1]})")
