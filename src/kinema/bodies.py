'''Core data model: degrees of freedom and bodies.

DegreesOfFreedom is immutable; extract position and velocity with numpy
methods and create a new instance to change them.  Bodies compare by
identity, so that an ephemeris can tell apart two bodies with the same
gravitational parameter.
'''

import numpy as np
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple
from .config import config
from .utils import validation_error


def _frozen_vector(values, name: str) -> np.ndarray:
    vector = np.array(values, dtype=float)
    if vector.shape != (3,):
        raise ValueError(f"{name} must be a 3-vector, got shape {vector.shape}")
    vector.flags.writeable = False
    return vector


class DegreesOfFreedom:
    """
    A (position, velocity) pair at one instant.

    The frame is implicit: absolute degrees of freedom live in the frame of
    the ephemeris, relative ones (differences, Kepler state vectors) in the
    same axes centred on another point.

    Parameters
    ----------
    position : array_like
        Position 3-vector
    velocity : array_like
        Velocity 3-vector
    """
    __slots__ = ('_position', '_velocity')

    def __init__(self, position, velocity):
        self._position = _frozen_vector(position, "position")
        self._velocity = _frozen_vector(velocity, "velocity")

    @classmethod
    def from_array(cls, state) -> 'DegreesOfFreedom':
        """Build from a 6-element [x, y, z, vx, vy, vz] array."""
        state = np.asarray(state, dtype=float)
        if state.shape != (6,):
            raise ValueError(f"State must have 6 elements, got shape {state.shape}")
        return cls(state[:3], state[3:])

    @staticmethod
    def barycentre(degrees_of_freedom: Iterable['DegreesOfFreedom'],
                   weights: Iterable[float]) -> 'DegreesOfFreedom':
        """
        Weighted barycentre of several degrees of freedom.

        Raises
        ------
        ValueError
            If the collections are empty, of different sizes, or the
            weights sum to zero
        """
        dofs = list(degrees_of_freedom)
        weights = np.asarray(list(weights), dtype=float)
        if not dofs or len(dofs) != len(weights):
            raise ValueError(
                f"Barycentre needs matching non-empty collections, got "
                f"{len(dofs)} degrees of freedom and {len(weights)} weights"
            )
        total = weights.sum()
        if total == 0:
            raise ValueError("Barycentre weights sum to zero")
        positions = np.array([dof.position for dof in dofs])
        velocities = np.array([dof.velocity for dof in dofs])
        return DegreesOfFreedom(weights @ positions / total,
                                weights @ velocities / total)

    @property
    def position(self) -> np.ndarray:
        return self._position

    @property
    def velocity(self) -> np.ndarray:
        return self._velocity

    def to_array(self) -> np.ndarray:
        """Return [x, y, z, vx, vy, vz] as a new writable array."""
        return np.concatenate([self._position, self._velocity])

    # ========== SPECIAL METHODS ==========
    def __add__(self, other):
        if not isinstance(other, DegreesOfFreedom):
            return NotImplemented
        return DegreesOfFreedom(self._position + other._position,
                                self._velocity + other._velocity)

    def __sub__(self, other):
        if not isinstance(other, DegreesOfFreedom):
            return NotImplemented
        return DegreesOfFreedom(self._position - other._position,
                                self._velocity - other._velocity)

    def __eq__(self, other):
        #Check equality with tolerance
        if not isinstance(other, DegreesOfFreedom):
            return False
        return (np.allclose(self._position, other._position,
                            rtol=config.EQUALITY_RTOL, atol=config.EQUALITY_ATOL)
                and np.allclose(self._velocity, other._velocity,
                                rtol=config.EQUALITY_RTOL,
                                atol=config.EQUALITY_ATOL))

    __hash__ = None

    def __repr__(self):
        return (f"DegreesOfFreedom(position={self._position.tolist()}, "
                f"velocity={self._velocity.tolist()})")


@dataclass(frozen=True, eq=False)
class MassiveBody:
    """
    Immutable massive body.

    Attributes
    ----------
    gravitational_parameter : float
        μ = G·m, in the length and time units of the simulation
    name : str, optional
        Body identifier
    """
    gravitational_parameter: float
    name: Optional[str] = field(default=None)

    def __post_init__(self):
        if not np.isfinite(self.gravitational_parameter):
            raise ValueError(f"Gravitational parameter must be finite, "
                             f"got {self.gravitational_parameter}")
        if self.gravitational_parameter <= 0:
            validation_error(f"Gravitational parameter must be positive, "
                             f"got {self.gravitational_parameter}")

    @classmethod
    def from_mass(cls, mass: float, name: Optional[str] = None,
                  gravitational_constant: Optional[float] = None) -> 'MassiveBody':
        """Create a body from its mass, using config.GRAVITATIONAL_CONSTANT by default."""
        G = (config.GRAVITATIONAL_CONSTANT
             if gravitational_constant is None else gravitational_constant)
        return cls(gravitational_parameter=G * mass, name=name)

    @property
    def mass(self) -> float:
        """Mass derived from config.GRAVITATIONAL_CONSTANT."""
        return self.gravitational_parameter / config.GRAVITATIONAL_CONSTANT

    @property
    def is_massless(self) -> bool:
        return False

    def __repr__(self):
        label = f", name='{self.name}'" if self.name is not None else ""
        return f"MassiveBody(μ={self.gravitational_parameter:.6e}{label})"


@dataclass(frozen=True, eq=False)
class MasslessBody:
    """A test particle: contributes nothing to the dynamics."""
    name: Optional[str] = None

    @property
    def gravitational_parameter(self) -> float:
        return 0.0

    @property
    def mass(self) -> float:
        return 0.0

    @property
    def is_massless(self) -> bool:
        return True


def gravitational_parameters(bodies: Iterable[MassiveBody]) -> Tuple[float, ...]:
    """Gravitational parameters of bodies, in order."""
    return tuple(float(body.gravitational_parameter) for body in bodies)
