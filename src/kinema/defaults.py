"""
Default Bodies and Ephemerides
==============================

Predefined Solar System bodies and factory functions for commonly-used
ephemerides.  The factories create Ephemeris objects on demand, placing the
bodies on Kepler orbits about their common barycentre.

Examples
--------
>>> from kinema import earth_moon, EARTH, MOON
>>> ephemeris = earth_moon(step=60.0)
>>> ephemeris.prolong(86400.0 * 27.3)
>>> ephemeris.trajectory(MOON).evaluate_position(86400.0)
"""
import numpy as np
from typing import Optional, Sequence, Tuple
from .bodies import DegreesOfFreedom, MassiveBody
from .ephemeris import Ephemeris, FixedStepParameters
from .kepler_orbit import KeplerianElements, KeplerOrbit

"""
Predefined Solar System bodies for Ephemeris creation
Values taken from Vallado, Fundamentals of Astrdynamics, Fifth Edition, 2022, Appendix D
Units referenced to km (i.e. mu = km^3/s^2)
"""
# Pre-defined common bodies for convenience

SUN = MassiveBody(gravitational_parameter=1.32712428e11, name='Sun')
MERCURY = MassiveBody(gravitational_parameter=2.2032e4, name='Mercury')
VENUS = MassiveBody(gravitational_parameter=3.257e5, name='Venus')
EARTH = MassiveBody(gravitational_parameter=3.986004415e5, name='Earth')
MOON = MassiveBody(gravitational_parameter=4.902799e3, name='Moon')
MARS = MassiveBody(gravitational_parameter=4.305e4, name='Mars')
JUPITER = MassiveBody(gravitational_parameter=1.268e8, name='Jupiter')

"""
Predefined orbits for convenience (mean elements, J2000 ecliptic)
"""
MOON_ELEMENTS = KeplerianElements(
    semimajor_axis=384400.0,
    eccentricity=0.0549,
    inclination=np.radians(5.145),
    longitude_of_ascending_node=np.radians(125.08),
    argument_of_periapsis=np.radians(318.15),
    mean_anomaly=np.radians(135.27),
)

EARTH_MOON_BARYCENTRE_ELEMENTS = KeplerianElements(
    semimajor_axis=1.495978707e8,
    eccentricity=0.0167086,
    inclination=0.0,
    longitude_of_ascending_node=np.radians(-11.26064),
    argument_of_periapsis=np.radians(114.20783),
    mean_anomaly=np.radians(358.617),
)

# Default fitting tolerances [km]
LOW_FITTING_TOLERANCE = 1e-3
HIGH_FITTING_TOLERANCE = 1.0


def two_body_states(orbit: KeplerOrbit,
                    t: float) -> Tuple[DegreesOfFreedom, DegreesOfFreedom]:
    """
    Degrees of freedom of the primary and secondary of an orbit about their barycentre.

    Returns
    -------
    primary, secondary : DegreesOfFreedom
    """
    secondary = orbit.barycentric_state_vectors(t)
    ratio = (orbit.secondary.gravitational_parameter
             / orbit.primary.gravitational_parameter)
    primary = DegreesOfFreedom(-ratio * secondary.position, -ratio * secondary.velocity)
    return primary, secondary


def ephemeris_from_orbits(bodies: Sequence[MassiveBody],
                          states: Sequence[DegreesOfFreedom],
                          t: float, step: float,
                          low_fitting_tolerance: float = LOW_FITTING_TOLERANCE,
                          high_fitting_tolerance: float = HIGH_FITTING_TOLERANCE,
                          integrator=None) -> Ephemeris:
    """Build an ephemeris, with the default integrator unless one is given."""
    if integrator is None:
        parameters = FixedStepParameters(step)
    else:
        parameters = FixedStepParameters(step, integrator)
    return Ephemeris(bodies, states, t, parameters,
                     low_fitting_tolerance, high_fitting_tolerance)


def earth_moon(step: float = 60.0, t: float = 0.0, integrator=None,
               low_fitting_tolerance: float = LOW_FITTING_TOLERANCE,
               high_fitting_tolerance: float = HIGH_FITTING_TOLERANCE) -> Ephemeris:
    """
    Earth and Moon about their barycentre.

    Parameters
    ----------
    step : float, optional
        Integration step [s] (default: 60)
    t : float, optional
        Initial time, at which MOON_ELEMENTS hold (default: 0)
    integrator : optional
        Fixed-step integrator (default: Forest-Ruth)
    """
    orbit = KeplerOrbit(EARTH, MOON, t, MOON_ELEMENTS)
    earth, moon = two_body_states(orbit, t)
    return ephemeris_from_orbits([EARTH, MOON], [earth, moon], t, step,
                                 low_fitting_tolerance, high_fitting_tolerance,
                                 integrator)


def sun_earth_moon(step: float = 600.0, t: float = 0.0, integrator=None,
                   low_fitting_tolerance: float = LOW_FITTING_TOLERANCE,
                   high_fitting_tolerance: float = HIGH_FITTING_TOLERANCE) -> Ephemeris:
    """
    Sun, Earth and Moon about the barycentre of the system.

    The Earth-Moon barycentre follows EARTH_MOON_BARYCENTRE_ELEMENTS about
    the Sun and the Moon follows MOON_ELEMENTS about the Earth.
    """
    earth_moon_mu = EARTH.gravitational_parameter + MOON.gravitational_parameter
    barycentre_body = MassiveBody(earth_moon_mu, name='Earth-Moon barycentre')
    sun, barycentre = two_body_states(
        KeplerOrbit(SUN, barycentre_body, t, EARTH_MOON_BARYCENTRE_ELEMENTS), t)
    earth, moon = two_body_states(KeplerOrbit(EARTH, MOON, t, MOON_ELEMENTS), t)
    return ephemeris_from_orbits([SUN, EARTH, MOON],
                                 [sun, barycentre + earth, barycentre + moon],
                                 t, step,
                                 low_fitting_tolerance, high_fitting_tolerance,
                                 integrator)
