'''Continuously queryable trajectory of one body.

ContinuousTrajectory definition: Chebyshev pieces fitted online to the
samples produced by a fixed-step integrator.'''

import bisect
import logging
import numpy as np
import pandas as pd
from typing import List, Optional, Tuple
from .bodies import DegreesOfFreedom
from .config import config
from .hermite import Hermite3, fit_hermite_spline
from .newhall import ChebyshevSeries, newhall_approximation

log = logging.getLogger(__name__)


class ContinuousTrajectory:
    """
    A body's trajectory with continuous-time state access.

    Samples are appended at a fixed step.  Every MAX_PIECE_DIVISIONS steps
    they are folded into a Chebyshev piece whose error is bounded by the
    low fitting tolerance when possible and by the high fitting tolerance
    otherwise.  When neither can be met the piece is shortened to the first
    Hermite breakpoint of its samples.
    The samples after the last piece form the raw tail, which answers
    queries by cubic Hermite interpolation.

    The valid query range is [t_min, t_max): t_max is the time of the last
    appended sample and grows with each append; t_min only grows through
    forget_before().

    Parameters
    ----------
    step : float
        Spacing of the appended samples
    low_fitting_tolerance : float
        Preferred bound on the position error of a piece
    high_fitting_tolerance : float
        Bound accepted when the low one cannot be reached
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, step: float, low_fitting_tolerance: float,
                 high_fitting_tolerance: float):
        if not step > 0:
            raise ValueError(f"Step must be positive, got {step}")
        if not 0 < low_fitting_tolerance <= high_fitting_tolerance:
            raise ValueError(
                f"Fitting tolerances must satisfy 0 < low <= high, got "
                f"low={low_fitting_tolerance}, high={high_fitting_tolerance}"
            )
        self._step = float(step)
        self._low_fitting_tolerance = float(low_fitting_tolerance)
        self._high_fitting_tolerance = float(high_fitting_tolerance)

        self._pieces: List[ChebyshevSeries] = []
        self._piece_ends: List[float] = []
        self._tail_times: List[float] = []
        self._tail_states: List[DegreesOfFreedom] = []
        self._t_min: Optional[float] = None

    # ========== PROPERTY ACCESS ==========
    @property
    def step(self) -> float:
        return self._step

    @property
    def low_fitting_tolerance(self) -> float:
        return self._low_fitting_tolerance

    @property
    def high_fitting_tolerance(self) -> float:
        return self._high_fitting_tolerance

    @property
    def empty(self) -> bool:
        return not self._tail_times

    @property
    def t_min(self) -> float:
        """Start of the valid query range (inf if empty)."""
        return np.inf if self._t_min is None else self._t_min

    @property
    def t_max(self) -> float:
        """End (excluded) of the valid query range (-inf if empty)."""
        return self._tail_times[-1] if self._tail_times else -np.inf

    @property
    def pieces(self) -> Tuple[ChebyshevSeries, ...]:
        """Committed pieces, in time order."""
        return tuple(self._pieces)

    @property
    def number_of_pieces(self) -> int:
        return len(self._pieces)

    @property
    def tail_size(self) -> int:
        """Number of raw samples not yet folded into a piece."""
        return len(self._tail_times)

    def last(self) -> Tuple[float, DegreesOfFreedom]:
        """Most recently appended (t, degrees of freedom)."""
        if self.empty:
            raise ValueError("Trajectory is empty")
        return self._tail_times[-1], self._tail_states[-1]

    # ========== MUTATION ==========
    def append(self, t: float, degrees_of_freedom: DegreesOfFreedom):
        """
        Append a sample and fold the raw tail into pieces where possible.

        Parameters
        ----------
        t : float
            Strictly after the last appended time, one step later
        degrees_of_freedom : DegreesOfFreedom
            State of the body at t

        Raises
        ------
        ValueError
            If t is not after the last time or breaks the step spacing
        """
        t = float(t)
        if not self.empty:
            last_time = self._tail_times[-1]
            if t <= last_time:
                raise ValueError(f"Time {t} is not after the last time {last_time}")
            if not np.isclose(t - last_time, self._step,
                              rtol=config.STEP_SPACING_RTOL, atol=0.0):
                raise ValueError(
                    f"Samples must be {self._step} apart, got {t - last_time} "
                    f"between {last_time} and {t}"
                )
        else:
            self._t_min = t
        self._tail_times.append(t)
        self._tail_states.append(degrees_of_freedom)

        while True:
            end = self._candidate_piece_end()
            if end is None:
                break
            self._commit_piece(end)

    def forget_before(self, t: float):
        """
        Discard the pieces and raw samples entirely before t.

        After this call t_min is max(t_min, t).

        Raises
        ------
        ValueError
            If t is after t_max
        """
        t = float(t)
        if t > self.t_max:
            raise ValueError(f"Cannot forget before {t}, after t_max = {self.t_max}")
        if t <= self.t_min:
            return
        index = bisect.bisect_right(self._piece_ends, t)
        del self._pieces[:index]
        del self._piece_ends[:index]
        if not self._pieces:
            # Keep the last raw sample at or before t, it bounds the
            # interpolation interval containing t.
            first_kept = bisect.bisect_right(self._tail_times, t) - 1
            del self._tail_times[:first_kept]
            del self._tail_states[:first_kept]
        self._t_min = t

    # ========== FITTING ==========
    def _candidate_piece_end(self) -> Optional[int]:
        """Index in the tail of the last sample of the next piece, if any."""
        divisions = config.MAX_PIECE_DIVISIONS
        if len(self._tail_times) > divisions:
            return divisions
        return None

    def _commit_piece(self, end: int):
        q = self._tail_positions()
        v = self._tail_velocities()
        while True:
            piece = self._fit(q[:end + 1], v[:end + 1],
                              self._tail_times[0], self._tail_times[end])
            if piece is not None:
                break
            if end == 1:
                # Two samples are matched exactly by a cubic.
                piece, _ = newhall_approximation(3, q[:2], v[:2],
                                                 self._tail_times[0],
                                                 self._tail_times[1])
                log.debug("Committing exact cubic over [%s, %s]",
                          piece.t_min, piece.t_max)
                break
            end = self._shorter_piece_end(q[:end + 1], v[:end + 1])

        self._pieces.append(piece)
        self._piece_ends.append(piece.t_max)
        del self._tail_times[:end]
        del self._tail_states[:end]
        log.debug("Committed piece of degree %d over [%s, %s], error %.3e",
                  piece.degree, piece.t_min, piece.t_max, piece.error_estimate)

    def _shorter_piece_end(self, q: np.ndarray, v: np.ndarray) -> int:
        """
        End of a shorter window after a failed fit over the samples q, v.

        The first Hermite breakpoint within the low tolerance is used, then
        the first within the high tolerance; without any, the window is
        halved.
        """
        end = len(q) - 1
        times = self._tail_times[:end + 1]
        for tolerance in (self._low_fitting_tolerance, self._high_fitting_tolerance):
            breakpoints = fit_hermite_spline(times, q, v, tolerance)
            if breakpoints:
                return breakpoints[0]
        return max(1, end // 2)

    def _fit(self, q: np.ndarray, v: np.ndarray, t_min: float,
             t_max: float) -> Optional[ChebyshevSeries]:
        """Lowest-degree piece within the low tolerance, else within the high one."""
        max_degree = min(config.NEWHALL_MAX_DEGREE, 2 * len(q) - 1)
        within_high = None
        for degree in range(config.NEWHALL_MIN_DEGREE, max_degree + 1):
            series, error_estimate = newhall_approximation(degree, q, v, t_min, t_max)
            if error_estimate <= self._low_fitting_tolerance:
                return series
            if within_high is None and error_estimate <= self._high_fitting_tolerance:
                within_high = series
        return within_high

    def _tail_positions(self) -> np.ndarray:
        return np.array([dof.position for dof in self._tail_states])

    def _tail_velocities(self) -> np.ndarray:
        return np.array([dof.velocity for dof in self._tail_states])

    # ========== EVALUATION ==========
    def evaluate_position(self, t: float) -> np.ndarray:
        """Position at t, for t_min <= t < t_max."""
        self._validate_time(t)
        piece = self._find_piece(t)
        if piece is not None:
            return piece.evaluate(t)
        return self._tail_interpolant(t).evaluate(t)

    def evaluate_velocity(self, t: float) -> np.ndarray:
        """Velocity at t, for t_min <= t < t_max."""
        self._validate_time(t)
        piece = self._find_piece(t)
        if piece is not None:
            return piece.evaluate_derivative(t)
        return self._tail_interpolant(t).evaluate_derivative(t)

    def evaluate_degrees_of_freedom(self, t: float) -> DegreesOfFreedom:
        """Position and velocity at t, for t_min <= t < t_max."""
        self._validate_time(t)
        piece = self._find_piece(t)
        if piece is not None:
            return DegreesOfFreedom(piece.evaluate(t), piece.evaluate_derivative(t))
        interpolant = self._tail_interpolant(t)
        return DegreesOfFreedom(interpolant.evaluate(t),
                                interpolant.evaluate_derivative(t))

    def evaluate_raw(self, times) -> np.ndarray:
        """
        Evaluate at one or more times, returning raw arrays.

        Returns
        -------
        np.ndarray
            Shape (6,) for a scalar time, (n_times, 6) otherwise
        """
        if np.isscalar(times):
            return self.evaluate_degrees_of_freedom(times).to_array()
        return np.array([self.evaluate_degrees_of_freedom(t).to_array()
                         for t in np.asarray(times, dtype=float)]).reshape(-1, 6)

    def sample_raw(self, n_points: int = 100) -> np.ndarray:
        """Uniformly sample [t_min, t_max), returning an (n_points, 6) array."""
        return self.evaluate_raw(self.get_times(n_points))

    def _find_piece(self, t: float) -> Optional[ChebyshevSeries]:
        index = bisect.bisect_right(self._piece_ends, t)
        if index < len(self._pieces):
            return self._pieces[index]
        return None

    def _tail_interpolant(self, t: float) -> Hermite3:
        index = bisect.bisect_right(self._tail_times, t) - 1
        index = min(max(index, 0), len(self._tail_times) - 2)
        return Hermite3(
            (self._tail_times[index], self._tail_times[index + 1]),
            (self._tail_states[index].position, self._tail_states[index + 1].position),
            (self._tail_states[index].velocity, self._tail_states[index + 1].velocity))

    # ========== UTILITY METHODS ==========
    def _validate_time(self, t: float):
        """Validate that time is within trajectory bounds."""
        if not self.contains_time(t):
            raise ValueError(
                f"Time {t} outside trajectory bounds [{self.t_min}, {self.t_max})"
            )

    def contains_time(self, t: float) -> bool:
        """Check if time is within trajectory bounds."""
        return self.t_min <= t < self.t_max

    def get_times(self, n_points: int = 100) -> np.ndarray:
        """Generate uniform time array spanning [t_min, t_max)."""
        if n_points < 1:
            raise ValueError("n_points must be at least 1")
        if not self.t_min < self.t_max:
            raise ValueError("Trajectory has an empty query range")
        return np.linspace(self.t_min, self.t_max, n_points, endpoint=False)

    def to_dataframe(self,
                     times: Optional[np.ndarray] = None,
                     n_points: int = 1000) -> pd.DataFrame:
        """
        Export trajectory to pandas DataFrame.

        Parameters:
            times: Specific times to evaluate. If None, uses uniform sampling.
            n_points: Number of uniform samples if times not provided (default: 1000)

        Returns:
            DataFrame with columns for time and state components
        """
        if times is None:
            times = self.get_times(n_points)
        else:
            times = np.asarray(times, dtype=float)

        states = self.evaluate_raw(times)

        data = {
            'time': times,
            'x': states[:, 0],
            'y': states[:, 1],
            'z': states[:, 2],
            'vx': states[:, 3],
            'vy': states[:, 4],
            'vz': states[:, 5],
        }

        return pd.DataFrame(data)

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"ContinuousTrajectory(step={self._step}, t_min={self.t_min}, "
                f"t_max={self.t_max}, pieces={len(self._pieces)}, "
                f"tail={len(self._tail_times)})")

    def __call__(self, t: float) -> DegreesOfFreedom:
        """
        Evaluate trajectory at time t.
        Syntactic sugar for .evaluate_degrees_of_freedom(t).
        """
        return self.evaluate_degrees_of_freedom(t)
