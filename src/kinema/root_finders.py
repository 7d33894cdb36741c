'''Scalar equation solvers: bisection and closed-form quadratics.'''

import math
from typing import Callable, List


def bisect(f: Callable[[float], float], lower: float, upper: float) -> float:
    """
    Approximate a root of f between lower and upper by bisection.

    The result is less than one ULP from a root of any continuous function
    agreeing with f on floats.  The bounds may be given in either order.

    Parameters
    ----------
    f : callable
        Scalar function of one float
    lower, upper : float
        Bracket of the root; f(lower) and f(upper) must be nonzero and
        of opposite signs

    Returns
    -------
    float
        Approximate root

    Raises
    ------
    ValueError
        If f does not change sign strictly over the bracket
    """
    f_lower = f(lower)
    f_upper = f(upper)
    if f_lower == 0 or f_upper == 0 or (f_lower > 0) == (f_upper > 0):
        raise ValueError(
            f"Bisection requires values of opposite signs at the bounds, "
            f"got f({lower}) = {f_lower} and f({upper}) = {f_upper}"
        )
    while True:
        middle = lower + 0.5 * (upper - lower)
        # No float lies strictly between the bounds any more.
        if middle == lower or middle == upper:
            return middle
        f_middle = f(middle)
        if f_middle == 0:
            return middle
        if (f_middle > 0) == (f_lower > 0):
            lower, f_lower = middle, f_middle
        else:
            upper = middle


def solve_quadratic_equation(a2: float, a1: float, a0: float) -> List[float]:
    """
    Solve a2 x² + a1 x + a0 = 0 over the reals.

    Parameters
    ----------
    a2, a1, a0 : float
        Coefficients of the 2nd, 1st and 0th degree terms

    Returns
    -------
    list of float
        Sorted roots: empty if there is no real root, one value if the
        discriminant is exactly zero, two values otherwise

    Notes
    -----
    Uses q = -(a1 + sign(a1)·√Δ) / 2 and the roots q / a2 and a0 / q, which
    avoids the cancellation of the textbook formula when a1² ≫ |a2 a0|.
    """
    if a2 == 0:
        if a1 == 0:
            return []
        return [-a0 / a1]
    discriminant = a1 * a1 - 4.0 * a2 * a0
    if discriminant < 0:
        return []
    if discriminant == 0:
        return [-a1 / (2.0 * a2)]
    q = -0.5 * (a1 + math.copysign(math.sqrt(discriminant), a1))
    return sorted([q / a2, a0 / q])
