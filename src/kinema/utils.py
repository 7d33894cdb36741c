"""
Utility functions and classes for the Kinema package.
"""

import logging
from time import perf_counter
import warnings
from typing import Optional, Type
from .config import config

class Timer:
    """
    Context manager for timing code execution.

    The elapsed time is reported to a logger at INFO level when one is
    given, or printed when verbose.

    Examples
    --------
    >>> from kinema.utils import Timer
    >>> with Timer("Prolongation"):
    ...     ephemeris.prolong(86400.0)
    Prolongation: 0.123456 s

    >>> log = logging.getLogger("kinema.integrators")
    >>> with Timer("Taylor compilation", logger=log) as t:
    ...     # ... code ...
    >>> t.elapsed
    """
    def __init__(self, name="Operation", verbose=True,
                 logger: Optional[logging.Logger] = None):
        """
        Parameters
        ----------
        name : str, optional
            Name of the timed operation (default: "Operation")
        verbose : bool, optional
            Whether to print timing when no logger is given (default: True)
        logger : logging.Logger, optional
            Logger receiving the timing instead of stdout
        """
        self.name = name
        self.verbose = verbose
        self.logger = logger
        self.elapsed = None

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed = perf_counter() - self.start
        if self.logger is not None:
            self.logger.info("%s took %.3f s", self.name, self.elapsed)
        elif self.verbose:
            print(f"{self.name}: {self.elapsed:.6f} s")

def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Raise error or warn based on config.STRICT_VALIDATION.

    Used for checks on physical plausibility of user-supplied data
    (orbital elements, body parameters).  Violated preconditions of the
    engine itself always raise and never go through this function.

    Parameters
    ----------
    message : str
        Validation error message
    error_class : Type[Exception], optional
        Exception class to raise if STRICT_VALIDATION is True.
        Default: ValueError

    Raises
    ------
    Exception (of type error_class)
        If config.STRICT_VALIDATION is True

    Warns
    -----
    UserWarning
        If config.STRICT_VALIDATION is False

    Examples
    --------
    >>> from kinema.utils import validation_error
    >>> from kinema import config
    >>> config.STRICT_VALIDATION = True
    >>> validation_error("Invalid value")  # Raises ValueError

    >>> config.STRICT_VALIDATION = False
    >>> validation_error("Invalid value")  # Issues warning
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    else:
        warnings.warn(message, UserWarning, stacklevel=2)
