'''Newhall approximation of sampled positions and velocities in the Chebyshev basis.'''

import numpy as np
import numpy.polynomial.chebyshev as cheb
from typing import Tuple


class ChebyshevSeries:
    """
    A vector polynomial in the Chebyshev basis over [t_min, t_max].

    The series is immutable once built.  It is the polynomial piece of a
    continuous trajectory: it also records the error estimate that
    justified its degree and interval.

    Parameters
    ----------
    coefficients : array_like
        Shape (degree + 1, dimension), lowest degree first
    t_min, t_max : float
        Interval mapped onto [-1, 1]
    error_estimate : float, optional
        Norm of the fitting error (default: 0)
    """
    def __init__(self, coefficients, t_min: float, t_max: float,
                 error_estimate: float = 0.0):
        if not t_min < t_max:
            raise ValueError(f"Empty interval [{t_min}, {t_max}]")
        coefficients = np.array(coefficients, dtype=float)
        if coefficients.ndim != 2 or coefficients.shape[0] == 0:
            raise ValueError(f"Coefficients must have shape (degree + 1, dimension), "
                             f"got {coefficients.shape}")
        coefficients.flags.writeable = False
        self._coefficients = coefficients
        self._derivative = cheb.chebder(coefficients, axis=0)
        self._t_min = float(t_min)
        self._t_max = float(t_max)
        self._error_estimate = float(error_estimate)

    @property
    def coefficients(self) -> np.ndarray:
        return self._coefficients

    @property
    def degree(self) -> int:
        return self._coefficients.shape[0] - 1

    @property
    def t_min(self) -> float:
        return self._t_min

    @property
    def t_max(self) -> float:
        return self._t_max

    @property
    def error_estimate(self) -> float:
        return self._error_estimate

    def _reduced_time(self, t):
        return (2.0 * np.asarray(t, dtype=float) - self._t_min - self._t_max) / (
            self._t_max - self._t_min)

    def evaluate(self, t) -> np.ndarray:
        """Value at t (scalar -> (dimension,), array -> (n, dimension))."""
        return np.asarray(cheb.chebval(self._reduced_time(t), self._coefficients)).T

    def evaluate_derivative(self, t) -> np.ndarray:
        """Time derivative at t, same shapes as evaluate()."""
        if self._derivative.shape[0] == 0:
            return np.zeros_like(self.evaluate(t))
        scale = 2.0 / (self._t_max - self._t_min)
        return scale * np.asarray(cheb.chebval(self._reduced_time(t),
                                               self._derivative)).T

    def __repr__(self):
        return (f"ChebyshevSeries(degree={self.degree}, t_min={self._t_min}, "
                f"t_max={self._t_max}, error_estimate={self._error_estimate:.3e})")


def newhall_approximation(degree: int, q, v, t_min: float,
                          t_max: float) -> Tuple[ChebyshevSeries, float]:
    """
    Fit positions and velocities with a Chebyshev series of given degree.

    The samples are taken at uniformly spaced instants covering [t_min, t_max]
    (both ends included).  The coefficients are the least squares solution of
    the position equations stacked with the velocity equations; the latter are
    multiplied by (t_max - t_min) / 2 so that both have the units of a length.

    Parameters
    ----------
    degree : int
        Degree of the series, between 1 and 2 * len(q) - 1
    q : array_like
        Positions, shape (n, dimension) with n >= 2
    v : array_like
        Velocities, same shape as q
    t_min, t_max : float
        Times of the first and last samples

    Returns
    -------
    series : ChebyshevSeries
        Fitted series (its error_estimate is set)
    error_estimate : float
        Larger of the norm of the highest-degree coefficient and the largest
        position residual at the samples
    """
    q = np.asarray(q, dtype=float)
    v = np.asarray(v, dtype=float)
    if q.ndim == 1:
        q = q[:, np.newaxis]
        v = v[:, np.newaxis]
    if q.shape != v.shape:
        raise ValueError(f"Positions {q.shape} and velocities {v.shape} "
                         f"must have the same shape")
    n = q.shape[0]
    if n < 2:
        raise ValueError(f"At least 2 samples are needed, got {n}")
    if not 1 <= degree <= 2 * n - 1:
        raise ValueError(f"Degree must be between 1 and {2 * n - 1} "
                         f"for {n} samples, got {degree}")
    if not t_min < t_max:
        raise ValueError(f"Empty interval [{t_min}, {t_max}]")

    x = np.linspace(-1.0, 1.0, n)
    half_duration = 0.5 * (t_max - t_min)
    values = cheb.chebvander(x, degree)
    # Column k holds the derivative of T_k, expressed in the basis T_0..T_{degree-1}.
    derivatives = cheb.chebvander(x, degree - 1) @ cheb.chebder(
        np.eye(degree + 1), axis=0)

    design = np.vstack([values, derivatives])
    rhs = np.vstack([q, v * half_duration])
    coefficients, *_ = np.linalg.lstsq(design, rhs, rcond=None)

    residuals = values @ coefficients - q
    error_estimate = max(float(np.linalg.norm(coefficients[-1])),
                         float(np.max(np.linalg.norm(residuals, axis=1))))
    series = ChebyshevSeries(coefficients, t_min, t_max, error_estimate)
    return series, error_estimate
