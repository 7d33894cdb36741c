"""
Kinema: N-body Ephemerides with Continuous Trajectories

A Python package for integrating the motion of massive bodies, fitting the
integrated states with Chebyshev polynomials for continuous-time queries,
and flowing massless particles through the resulting gravitational field.
"""

# Configuration
from .config import config, temp_config

# Core classes
from .bodies import DegreesOfFreedom, DegreesOfFreedom as DOF, MassiveBody, MasslessBody
from .continuous_trajectory import ContinuousTrajectory
from .discrete_trajectory import DiscreteTrajectory
from .ephemeris import Ephemeris, FixedStepParameters, AdaptiveStepParameters
from .integrators import (
    SymplecticPartitionedRungeKutta,
    TaylorIntegrator,
    AdaptiveStepIntegrator,
    SystemState,
)
from .kepler_orbit import KeplerianElements, KeplerOrbit
from .pile_up import PileUp, Vessel

# Numerical building blocks
from .root_finders import bisect, solve_quadratic_equation
from .newhall import ChebyshevSeries, newhall_approximation
from .hermite import Hermite3, fit_hermite_spline

# Commonly-used celestial bodies and ephemerides
from .defaults import SUN, EARTH, MOON, MARS, JUPITER, earth_moon, sun_earth_moon

# Package metadata
__version__ = "0.1.0"
__author__ = "Shane Billingsley"

# Define what gets imported with "from kinema import *"
__all__ = [
    # Configuration
    "config",
    "temp_config",
    # Classes
    "DegreesOfFreedom",
    "MassiveBody",
    "MasslessBody",
    "ContinuousTrajectory",
    "DiscreteTrajectory",
    "Ephemeris",
    "FixedStepParameters",
    "AdaptiveStepParameters",
    "SymplecticPartitionedRungeKutta",
    "TaylorIntegrator",
    "AdaptiveStepIntegrator",
    "SystemState",
    "KeplerianElements",
    "KeplerOrbit",
    "PileUp",
    "Vessel",
    "ChebyshevSeries",
    "Hermite3",
    # Abbreviations
    "DOF",
    # Functions
    "bisect",
    "solve_quadratic_equation",
    "newhall_approximation",
    "fit_hermite_spline",
    "earth_moon",
    "sun_earth_moon",
    # Constants
    "SUN",
    "EARTH",
    "MOON",
    "MARS",
    "JUPITER",
]
