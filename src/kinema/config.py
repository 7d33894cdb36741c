"""
Global Configuration for Kinema Package
=======================================

This module provides package-wide configuration settings that users can modify
to control numerical tolerances, fitting behaviour, and validation behaviour.

Examples
--------
View current configuration:

>>> import kinema
>>> print(kinema.config)

Modify settings:

>>> kinema.config.NEWHALL_MAX_DEGREE = 12  # Cheaper pieces
>>> kinema.config.MAX_PIECE_DIVISIONS = 16  # Longer pieces

Reset to defaults:

>>> kinema.config.reset()

Temporarily modify settings:

>>> with kinema.temp_config(STRICT_VALIDATION=False):
...     # Invalid elements only warn inside this block
...     elements = kinema.KeplerianElements(-1.0, 0.5, 0, 0, 0, 0)

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent operations until changed again or reset.
"""

from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class KinemaConfig:
    """
    Global configuration for Kinema package.

    Attributes
    ----------
    EQUALITY_RTOL : float
        Relative tolerance for comparing degrees of freedom.
        Default: 1e-12
    EQUALITY_ATOL : float
        Absolute tolerance for comparing degrees of freedom.
        Default: 1e-14
    GRAVITATIONAL_CONSTANT : float
        Used to derive body masses from gravitational parameters.
        Default: 6.6743e-20 (km^3 / (kg s^2), matching the km-based
        parameters of the predefined bodies)
    STRICT_VALIDATION : bool
        If True, validation failures raise exceptions.
        If False, validation failures issue warnings.
        Default: True
    NEWHALL_MIN_DEGREE : int
        Lowest Chebyshev degree tried when fitting a piece.
        Default: 3
    NEWHALL_MAX_DEGREE : int
        Highest Chebyshev degree tried when fitting a piece.
        Default: 17
    MAX_PIECE_DIVISIONS : int
        Number of steps covered by a piece when the whole raw tail
        fits a single Hermite interpolant.
        Default: 8
    STEP_SPACING_RTOL : float
        Relative tolerance on the spacing of samples appended to a
        continuous trajectory.
        Default: 1e-6
    ADAPTIVE_METHOD : str
        Embedded Runge-Kutta method used for adaptive-step flows.
        Default: 'DOP853'
    ADAPTIVE_RTOL : float
        Relative tolerance given to the adaptive integrator on top of
        the length/speed absolute tolerances.
        Default: 1e-12
    TAYLOR_TOLERANCE : float or None
        Tolerance of the compiled Taylor integrators (None uses machine
        epsilon).
        Default: None
    INSTANCE_WARNING_THRESHOLD : int
        Number of compiled Taylor integrators cached before a warning
        is issued.
        Default: 10
    """

    # Numerical tolerance for equality comparisons
    EQUALITY_RTOL: float = 1e-12
    EQUALITY_ATOL: float = 1e-14

    # Physical constants
    GRAVITATIONAL_CONSTANT: float = 6.6743e-20

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Continuous trajectory fitting
    NEWHALL_MIN_DEGREE: int = 3
    NEWHALL_MAX_DEGREE: int = 17
    MAX_PIECE_DIVISIONS: int = 8
    STEP_SPACING_RTOL: float = 1e-6

    # Integration
    ADAPTIVE_METHOD: str = 'DOP853'
    ADAPTIVE_RTOL: float = 1e-12
    TAYLOR_TOLERANCE: float | None = None
    INSTANCE_WARNING_THRESHOLD: int = 10

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import kinema
        >>> kinema.config.MAX_PIECE_DIVISIONS = 4  # Modify
        >>> kinema.config.reset()  # Back to defaults
        >>> kinema.config.MAX_PIECE_DIVISIONS
        8
        """
        defaults = KinemaConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["KinemaConfig:"]
        lines.append("  Numerical Tolerances:")
        lines.append(f"    EQUALITY_RTOL = {self.EQUALITY_RTOL}")
        lines.append(f"    EQUALITY_ATOL = {self.EQUALITY_ATOL}")
        lines.append(f"    GRAVITATIONAL_CONSTANT = {self.GRAVITATIONAL_CONSTANT}")
        lines.append("  Fitting:")
        lines.append(f"    NEWHALL_MIN_DEGREE = {self.NEWHALL_MIN_DEGREE}")
        lines.append(f"    NEWHALL_MAX_DEGREE = {self.NEWHALL_MAX_DEGREE}")
        lines.append(f"    MAX_PIECE_DIVISIONS = {self.MAX_PIECE_DIVISIONS}")
        lines.append(f"    STEP_SPACING_RTOL = {self.STEP_SPACING_RTOL}")
        lines.append("  Integration:")
        lines.append(f"    ADAPTIVE_METHOD = '{self.ADAPTIVE_METHOD}'")
        lines.append(f"    ADAPTIVE_RTOL = {self.ADAPTIVE_RTOL}")
        lines.append(f"    TAYLOR_TOLERANCE = {self.TAYLOR_TOLERANCE}")
        lines.append(f"    INSTANCE_WARNING_THRESHOLD = {self.INSTANCE_WARNING_THRESHOLD}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        return "\n".join(lines)


# Global configuration instance
config = KinemaConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import kinema
    >>> with kinema.temp_config(MAX_PIECE_DIVISIONS=4):
    ...     # Shorter pieces inside this block
    ...     ephemeris.prolong(100.0)
    >>> # Original config restored here
    >>> kinema.config.MAX_PIECE_DIVISIONS
    8

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"KinemaConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
