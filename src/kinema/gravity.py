'''Newtonian gravitational accelerations.'''

import numpy as np
from typing import Iterable, Tuple


def mutual_accelerations(positions: np.ndarray, gravitational_parameters: np.ndarray) -> np.ndarray:
    """
    Accelerations of massive bodies attracting each other.

    a_i = Σ_{j≠i} μ_j (q_j - q_i) / |q_j - q_i|³

    Parameters
    ----------
    positions : np.ndarray
        Shape (n, 3)
    gravitational_parameters : np.ndarray
        Shape (n,)

    Returns
    -------
    np.ndarray
        Shape (n, 3); non-finite if two bodies coincide
    """
    # displacements[i, j] points from body i to body j
    displacements = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
    distances_squared = np.einsum('ijk,ijk->ij', displacements, displacements)
    np.fill_diagonal(distances_squared, np.inf)
    with np.errstate(divide='ignore', invalid='ignore'):
        factors = gravitational_parameters[np.newaxis, :] * distances_squared**-1.5
    return np.einsum('ij,ijk->ik', factors, displacements)


def massless_accelerations(body_positions: np.ndarray,
                           gravitational_parameters: np.ndarray,
                           points: np.ndarray) -> np.ndarray:
    """
    Accelerations of test particles attracted by massive bodies.

    Parameters
    ----------
    body_positions : np.ndarray
        Shape (n, 3)
    gravitational_parameters : np.ndarray
        Shape (n,)
    points : np.ndarray
        Particle positions, shape (m, 3)

    Returns
    -------
    np.ndarray
        Shape (m, 3)
    """
    displacements = body_positions[np.newaxis, :, :] - points[:, np.newaxis, :]
    distances_squared = np.einsum('ijk,ijk->ij', displacements, displacements)
    with np.errstate(divide='ignore', invalid='ignore'):
        factors = gravitational_parameters[np.newaxis, :] * distances_squared**-1.5
    return np.einsum('ij,ijk->ik', factors, displacements)


class NewtonianGravity:
    """
    Right-hand side of the N-body equation q'' = f(t, q).

    The equation is autonomous; t is accepted so that the object can be
    used wherever an integrator expects compute_acceleration(t, positions).

    Parameters
    ----------
    gravitational_parameters : iterable of float
        μ of each body, in the order of the positions
    """
    def __init__(self, gravitational_parameters: Iterable[float]):
        self._gravitational_parameters = np.array(list(gravitational_parameters),
                                                   dtype=float)
        self._gravitational_parameters.flags.writeable = False

    @property
    def gravitational_parameters(self) -> Tuple[float, ...]:
        return tuple(self._gravitational_parameters.tolist())

    def __call__(self, t: float, positions: np.ndarray) -> np.ndarray:
        return mutual_accelerations(positions, self._gravitational_parameters)

    def __repr__(self):
        return f"NewtonianGravity(bodies={len(self._gravitational_parameters)})"
