'''Cubic Hermite interpolation and adaptive spline segmentation.'''

import numpy as np
from typing import List


class Hermite3:
    """
    Cubic Hermite interpolant through two points.

    Parameters
    ----------
    arguments : pair of float
        Abscissae (t0, t1), distinct
    values : pair of array_like
        Values at t0 and t1
    derivatives : pair of array_like
        Derivatives at t0 and t1
    """
    def __init__(self, arguments, values, derivatives):
        t0, t1 = (float(a) for a in arguments)
        if t0 == t1:
            raise ValueError(f"Hermite interpolation needs distinct arguments, got {t0}")
        p0, p1 = (np.asarray(value, dtype=float) for value in values)
        v0, v1 = (np.asarray(derivative, dtype=float) for derivative in derivatives)
        h = t1 - t0
        delta = p1 - p0
        # Power basis in s = t - t0.
        self._t0 = t0
        self._a0 = p0
        self._a1 = v0
        self._a2 = (3.0 * delta - h * (2.0 * v0 + v1)) / h**2
        self._a3 = (h * (v0 + v1) - 2.0 * delta) / h**3

    def evaluate(self, t) -> np.ndarray:
        """Value at t; an array of n times gives shape (n, dimension)."""
        s = np.asarray(t, dtype=float) - self._t0
        if s.ndim > 0 and self._a0.ndim > 0:
            s = s[:, np.newaxis]
        return self._a0 + s * (self._a1 + s * (self._a2 + s * self._a3))

    def evaluate_derivative(self, t) -> np.ndarray:
        """Derivative at t, same shapes as evaluate()."""
        s = np.asarray(t, dtype=float) - self._t0
        if s.ndim > 0 and self._a0.ndim > 0:
            s = s[:, np.newaxis]
        return self._a1 + s * (2.0 * self._a2 + s * 3.0 * self._a3)

    def l_infinity_error(self, arguments, values) -> float:
        """Largest Euclidean distance between the interpolant and the samples."""
        values = np.asarray(values, dtype=float)
        deviations = self.evaluate(np.asarray(arguments, dtype=float)) - values
        if deviations.ndim == 1:
            return float(np.max(np.abs(deviations)))
        return float(np.max(np.linalg.norm(deviations, axis=1)))


def fit_hermite_spline(arguments, values, derivatives, tolerance: float) -> List[int]:
    """
    Partition samples into the fewest Hermite intervals within tolerance.

    Each interval runs from one breakpoint to the next (sharing the sample at
    the breakpoint) and is interpolated by the cubic through the values and
    derivatives at its two ends; its error over the samples it covers is
    strictly less than tolerance.

    Parameters
    ----------
    arguments : array_like
        Increasing abscissae, shape (n,)
    values : array_like
        Values, shape (n,) or (n, dimension)
    derivatives : array_like
        Derivatives, same shape as values
    tolerance : float
        Maximum error of each interval

    Returns
    -------
    list of int
        Indices of the breakpoints.  A breakpoint is the inclusive last
        sample of its interval and also the first sample of the next one:
        breakpoints [i, j] describe the intervals [0, i], [i, j] and
        [j, n - 1], each including both ends.  Empty when there are fewer
        than 3 samples (the error of a 2-point interpolant cannot be
        estimated) or when a single interpolant fits all the samples (there
        is then no way to know whether a longer interval would also fit, and
        the caller should retry once more samples are available).

    Notes
    -----
    Each breakpoint ends the longest prefix of the remaining samples that
    fits, found by binary search, so a breakpoint costs O(log n) fits.
    """
    arguments = np.asarray(arguments, dtype=float)
    values = np.asarray(values, dtype=float)
    derivatives = np.asarray(derivatives, dtype=float)
    size = len(arguments)
    if len(values) != size or len(derivatives) != size:
        raise ValueError(f"Got {size} arguments, {len(values)} values and "
                         f"{len(derivatives)} derivatives")

    def fits(first: int, last: int) -> bool:
        interpolant = Hermite3((arguments[first], arguments[last]),
                               (values[first], values[last]),
                               (derivatives[first], derivatives[last]))
        return interpolant.l_infinity_error(arguments[first:last + 1],
                                            values[first:last + 1]) < tolerance

    breakpoints = []
    begin = 0
    while size - begin >= 3 and not fits(begin, size - 1):
        # Invariant: [begin, lower] fits, [begin, upper] does not.
        lower = begin + 1
        upper = size - 1
        while upper - lower > 1:
            middle = lower + (upper - lower) // 2
            if fits(begin, middle):
                lower = middle
            else:
                upper = middle
        breakpoints.append(lower)
        begin = lower
    return breakpoints
