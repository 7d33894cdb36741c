'''KeplerOrbit class definition
Closed-form two-body state vectors from Keplerian elements'''

import math
import numpy as np
from dataclasses import dataclass, replace
from typing import Union
from .bodies import DegreesOfFreedom, MassiveBody, MasslessBody
from .root_finders import bisect
from .utils import validation_error


@dataclass(frozen=True)
class KeplerianElements:
    """
    Immutable Keplerian elements of a conic.

    Attributes
    ----------
    semimajor_axis : float
        Positive for ellipses, negative for hyperbolae
    eccentricity : float
        Non-negative; 1 (parabola) cannot be described with a semimajor axis
    inclination : float
        [rad], in [0, π]
    longitude_of_ascending_node : float
        [rad]
    argument_of_periapsis : float
        [rad]
    mean_anomaly : float
        [rad]

    Notes
    -----
    Inconsistent elements go through utils.validation_error: they raise
    ValueError when config.STRICT_VALIDATION is set and warn otherwise.
    Non-finite elements always raise.
    """
    semimajor_axis: float
    eccentricity: float
    inclination: float = 0.0
    longitude_of_ascending_node: float = 0.0
    argument_of_periapsis: float = 0.0
    mean_anomaly: float = 0.0

    def __post_init__(self):
        values = (self.semimajor_axis, self.eccentricity, self.inclination,
                  self.longitude_of_ascending_node, self.argument_of_periapsis,
                  self.mean_anomaly)
        if not all(np.isfinite(values)):
            raise ValueError(f"Keplerian elements must be finite, got {values}")
        a, e = self.semimajor_axis, self.eccentricity
        # Validate a-e combination for physical consistency
        if e < 0:
            validation_error(f"Eccentricity must be non-negative, got {e}")
        elif e < 1 and a <= 0:
            validation_error(f"Elliptic orbit (e={e}) "
                             f"requires positive semi-major axis, got a={a}")
        elif e > 1 and a >= 0:
            validation_error(f"Hyperbolic orbit (e={e}) "
                             f"requires negative semi-major axis, got a={a}")
        if self.inclination < 0 or self.inclination > np.pi:
            validation_error(f"Inclination out of range [0, π], got {self.inclination}")

    def to_numpy(self) -> np.ndarray:
        """Return [a, e, i, Ω, ω, M]."""
        return np.array([self.semimajor_axis, self.eccentricity, self.inclination,
                         self.longitude_of_ascending_node,
                         self.argument_of_periapsis, self.mean_anomaly])

    def with_mean_anomaly(self, mean_anomaly: float) -> 'KeplerianElements':
        """Same conic, another point on it."""
        return replace(self, mean_anomaly=float(mean_anomaly))


def _eccentric_anomaly(mean_anomaly: float, eccentricity: float) -> float:
    """Solve M = E - e sin E for E, with M reduced to [-π, π]."""
    M = math.remainder(mean_anomaly, 2 * math.pi)
    e = eccentricity
    if e == 0:
        return M

    def kepler(E):
        return E - e * math.sin(E) - M

    lower, upper = M - e, M + e
    # The bracket is tight: f(M - e) <= 0 <= f(M + e).
    if kepler(lower) == 0:
        return lower
    if kepler(upper) == 0:
        return upper
    return bisect(kepler, lower, upper)


def _hyperbolic_anomaly(mean_anomaly: float, eccentricity: float) -> float:
    """Solve M = e sinh H - H for H."""
    M = abs(mean_anomaly)
    e = eccentricity
    if M == 0:
        return 0.0

    def kepler(H):
        return e * math.sinh(H) - H - M

    # f(asinh(M / e)) = -asinh(M / e) < 0.  The upper bound is found by
    # doubling its distance from the lower one, so sinh never overflows
    # before the root is bracketed.
    lower = math.asinh(M / e)
    width = 1.0
    upper = lower + width
    while kepler(upper) < 0:
        width *= 2
        upper = lower + width
    if kepler(upper) == 0:
        H = upper
    else:
        H = bisect(kepler, lower, upper)
    return math.copysign(H, mean_anomaly)


def true_anomaly(elements: KeplerianElements) -> float:
    """
    True anomaly of the point at the given mean anomaly.

    Raises
    ------
    NotImplementedError
        For parabolic orbits (e == 1)
    """
    e = elements.eccentricity
    if e == 1:
        raise NotImplementedError("Parabolic orbits are not supported")
    if e < 1:
        E = _eccentric_anomaly(elements.mean_anomaly, e)
        return 2 * math.atan2(math.sqrt(1 + e) * math.sin(E / 2),
                              math.sqrt(1 - e) * math.cos(E / 2))
    H = _hyperbolic_anomaly(elements.mean_anomaly, e)
    return 2 * math.atan2(math.sqrt(e + 1) * math.sinh(H / 2),
                          math.sqrt(e - 1) * math.cosh(H / 2))


def _rotation(inclination: float, longitude_of_ascending_node: float,
              argument_of_periapsis: float) -> np.ndarray:
    """Perifocal to reference frame: R3(Ω) R1(i) R3(ω)."""
    i, omega, w = inclination, longitude_of_ascending_node, argument_of_periapsis
    # rotation about z-axis by RAAN
    R3_omega = np.array([
        [np.cos(omega), -np.sin(omega), 0],
        [np.sin(omega),  np.cos(omega), 0],
        [0,              0,              1]
    ])
    # rotation about x-axis by inclination
    R1_i = np.array([
        [1,  0,             0            ],
        [0,  np.cos(i),    -np.sin(i)    ],
        [0,  np.sin(i),     np.cos(i)    ]
    ])
    # rotation about z-axis by argument of periapsis
    R3_w = np.array([
        [np.cos(w), -np.sin(w), 0],
        [np.sin(w),  np.cos(w), 0],
        [0,          0,          1]
    ])
    return R3_omega @ R1_i @ R3_w


class KeplerOrbit:
    """
    Relative motion of a secondary about a primary, in closed form.

    Parameters
    ----------
    primary : MassiveBody
    secondary : MassiveBody or MasslessBody
    epoch : float
        Time at which elements.mean_anomaly holds
    elements : KeplerianElements
        Elements of the secondary relative to the primary

    Examples
    --------
    >>> sun = MassiveBody(1.32712440018e11, name="Sun")
    >>> earth = MassiveBody(398600.435436, name="Earth")
    >>> orbit = KeplerOrbit(sun, earth, 0.0,
    ...                     KeplerianElements(1.495978707e8, 0.0167))
    >>> relative = orbit.primocentric_state_vectors(86400.0)
    """
    def __init__(self, primary: MassiveBody,
                 secondary: Union[MassiveBody, MasslessBody],
                 epoch: float, elements: KeplerianElements):
        if not isinstance(primary, MassiveBody):
            raise TypeError(f"Primary must be a MassiveBody, got {type(primary).__name__}")
        if not isinstance(elements, KeplerianElements):
            raise TypeError(f"Expected KeplerianElements, got {type(elements).__name__}")
        self._primary = primary
        self._secondary = secondary
        self._epoch = float(epoch)
        self._elements = elements

    # ========== PROPERTY ACCESS ==========
    @property
    def primary(self) -> MassiveBody:
        return self._primary

    @property
    def secondary(self) -> Union[MassiveBody, MasslessBody]:
        return self._secondary

    @property
    def epoch(self) -> float:
        return self._epoch

    @property
    def elements_at_epoch(self) -> KeplerianElements:
        return self._elements

    @property
    def gravitational_parameter(self) -> float:
        """μ1 + μ2, the parameter of the relative motion."""
        return (self._primary.gravitational_parameter
                + self._secondary.gravitational_parameter)

    def mean_motion(self) -> float:
        """n = √(μ / |a|³) [rad per unit time]"""
        return math.sqrt(self.gravitational_parameter
                         / abs(self._elements.semimajor_axis)**3)

    def orbital_period(self) -> float:
        """
        Period of the relative motion.

        Raises
        ------
        ValueError
            For hyperbolic orbits
        """
        if self._elements.eccentricity >= 1:
            raise ValueError("Orbital period undefined for parabolic/hyperbolic orbits")
        return 2 * math.pi / self.mean_motion()

    def elements_at(self, t: float) -> KeplerianElements:
        """Elements with the mean anomaly advanced to t."""
        M = self._elements.mean_anomaly + self.mean_motion() * (t - self._epoch)
        return self._elements.with_mean_anomaly(M)

    # ========== STATE VECTORS ==========
    def primocentric_state_vectors(self, t: float) -> DegreesOfFreedom:
        """Position and velocity of the secondary relative to the primary at t."""
        return self.test_particle_state_vectors(self.elements_at(t),
                                                self.gravitational_parameter)

    def barycentric_state_vectors(self, t: float) -> DegreesOfFreedom:
        """
        Position and velocity of the secondary relative to the barycentre at t.

        The secondary moves on the relative conic scaled by μ1 / (μ1 + μ2),
        which is a Kepler orbit of parameter μ1³ / (μ1 + μ2)² with the same
        period.
        """
        mu1 = self._primary.gravitational_parameter
        mu = self.gravitational_parameter
        elements = self.elements_at(t)
        barycentric = replace(elements,
                              semimajor_axis=elements.semimajor_axis * mu1 / mu)
        return self.test_particle_state_vectors(barycentric, mu1**3 / mu**2)

    @staticmethod
    def test_particle_state_vectors(elements: KeplerianElements,
                                    gravitational_parameter: float) -> DegreesOfFreedom:
        """
        Position and velocity on the conic of a massless particle.

        Parameters
        ----------
        elements : KeplerianElements
            The mean anomaly locates the particle
        gravitational_parameter : float
            μ of the attracting body

        Raises
        ------
        NotImplementedError
            For parabolic orbits (e == 1)
        """
        a, e = elements.semimajor_axis, elements.eccentricity
        nu = true_anomaly(elements)
        mu = gravitational_parameter
        # find semi-latus rectum
        p = a * (1 - e**2)
        # find position in perifocal frame
        r_mag = p / (1 + e * np.cos(nu))
        rvec = np.array([r_mag * np.cos(nu), r_mag * np.sin(nu), 0])
        # find velocity in perifocal frame
        vvec = np.array([-np.sqrt(mu / p) * np.sin(nu),
                         np.sqrt(mu / p) * (e + np.cos(nu)), 0])
        DCM = _rotation(elements.inclination, elements.longitude_of_ascending_node,
                        elements.argument_of_periapsis)
        return DegreesOfFreedom(DCM @ rvec, DCM @ vvec)

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"KeplerOrbit(primary={self._primary!r}, secondary={self._secondary!r}, "
                f"epoch={self._epoch}, a={self._elements.semimajor_axis}, "
                f"e={self._elements.eccentricity})")
