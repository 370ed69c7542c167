"""Planar poses: a 2-D position plus a rotation angle about the normal axis."""

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..units import LENGTH, UnitSystem


def rotate(angle: Array, v: Array) -> Array:
    """Rotate ``(..., 2)`` vectors counter-clockwise by ``angle``."""
    c, s = jnp.cos(angle), jnp.sin(angle)
    return jnp.stack([c * v[..., 0] - s * v[..., 1], s * v[..., 0] + c * v[..., 1]], axis=-1)


@struct.dataclass
class PlanarPose:
    """Position and orientation of a frame in the plane.

    Attributes:
        position: (..., 2) origin of the frame.
        orientation: (...) angle of the frame axes in radians.
    """
    position: Array
    orientation: Array

    @classmethod
    def create(cls, position=None, orientation=0.0) -> "PlanarPose":
        position = jnp.zeros(2) if position is None else jnp.asarray(position, dtype=jnp.float64)
        return cls(position=position, orientation=jnp.asarray(orientation, dtype=jnp.float64))

    @classmethod
    def origin(cls) -> "PlanarPose":
        return cls.create()

    @classmethod
    def at(cls, position) -> "PlanarPose":
        return cls.create(position=position)

    @classmethod
    def along_x(cls, distance) -> "PlanarPose":
        return cls.create(position=jnp.array([1.0, 0.0]) * distance)

    @classmethod
    def along_y(cls, distance) -> "PlanarPose":
        return cls.create(position=jnp.array([0.0, 1.0]) * distance)

    @classmethod
    def about_z(cls, angle) -> "PlanarPose":
        return cls.create(orientation=angle)

    def from_local(self, local: "PlanarPose") -> "PlanarPose":
        """World pose of a frame given relative to this one."""
        return PlanarPose(
            position=self.position + rotate(self.orientation, local.position),
            orientation=self.orientation + local.orientation,
        )

    def to_local(self, world: "PlanarPose") -> "PlanarPose":
        """Pose of the world frame ``world`` relative to this one."""
        return PlanarPose(
            position=rotate(-self.orientation, world.position - self.position),
            orientation=world.orientation - self.orientation,
        )

    def from_local_point(self, point: Array) -> Array:
        return self.position + rotate(self.orientation, point)

    def from_local_direction(self, direction: Array) -> Array:
        return rotate(self.orientation, direction)

    def convert(self, units: UnitSystem, target: UnitSystem) -> "PlanarPose":
        return PlanarPose(LENGTH.convert(units, target) * self.position, self.orientation)
