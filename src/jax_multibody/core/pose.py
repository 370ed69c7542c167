"""Rigid poses as position plus quaternion.

:class:`Pose` is a PyTree, so batches of poses (leading dimensions on both
fields) flow through ``jax.vmap`` and ``jax.jit``. Besides composition it has
plain vector-space algebra (+, -, scalar *), which the integrators use to
form weighted sums of poses and pose rates.
"""

import jax
import jax.numpy as jnp
from jax import Array
from flax import struct

from ..spatial import so3, screw
from ..units import LENGTH, UnitSystem


@struct.dataclass
class Pose:
    """Position and orientation of a frame.

    Attributes:
        position: (..., 3) origin of the frame.
        orientation: (..., 4) quaternion (w, x, y, z) of the frame axes.
    """
    position: Array
    orientation: Array

    @classmethod
    def create(cls, position=None, orientation=None) -> "Pose":
        position = jnp.zeros(3) if position is None else jnp.asarray(position, dtype=jnp.float64)
        orientation = so3.identity() if orientation is None else jnp.asarray(orientation, dtype=jnp.float64)
        return cls(position=position, orientation=orientation)

    @classmethod
    def origin(cls) -> "Pose":
        return cls.create()

    @classmethod
    def at(cls, position) -> "Pose":
        return cls.create(position=position)

    @classmethod
    def about(cls, orientation) -> "Pose":
        return cls.create(orientation=orientation)

    @classmethod
    def along_x(cls, distance) -> "Pose":
        return cls.create(position=jnp.array([1.0, 0.0, 0.0]) * distance)

    @classmethod
    def along_y(cls, distance) -> "Pose":
        return cls.create(position=jnp.array([0.0, 1.0, 0.0]) * distance)

    @classmethod
    def along_z(cls, distance) -> "Pose":
        return cls.create(position=jnp.array([0.0, 0.0, 1.0]) * distance)

    @classmethod
    def about_x(cls, angle) -> "Pose":
        return cls.create(orientation=so3.about_x(angle))

    @classmethod
    def about_y(cls, angle) -> "Pose":
        return cls.create(orientation=so3.about_y(angle))

    @classmethod
    def about_z(cls, angle) -> "Pose":
        return cls.create(orientation=so3.about_z(angle))

    @property
    def rotation(self) -> Array:
        return so3.to_matrix(self.orientation)

    def from_local(self, local: "Pose") -> "Pose":
        """World pose of a frame given relative to this one."""
        return Pose(
            position=self.position + so3.rotate(self.orientation, local.position),
            orientation=so3.multiply(self.orientation, local.orientation),
        )

    def to_local(self, world: "Pose") -> "Pose":
        """Pose of ``world`` relative to this frame; inverse of :meth:`from_local`."""
        return Pose(
            position=so3.inverse_rotate(self.orientation, world.position - self.position),
            orientation=so3.multiply(so3.inverse(self.orientation), world.orientation),
        )

    def from_local_point(self, point: Array) -> Array:
        return self.position + so3.rotate(self.orientation, jnp.asarray(point, dtype=jnp.float64))

    def to_local_point(self, point: Array) -> Array:
        return so3.inverse_rotate(self.orientation, point - self.position)

    def from_local_direction(self, direction: Array) -> Array:
        return so3.rotate(self.orientation, jnp.asarray(direction, dtype=jnp.float64))

    def to_local_direction(self, direction: Array) -> Array:
        return so3.inverse_rotate(self.orientation, direction)

    def calc_rate(self, motion: Array) -> "Pose":
        """Pose rate under a twist whose linear part is the velocity at :attr:`position`."""
        return Pose(
            position=screw.linear(motion),
            orientation=so3.derivative(self.orientation, screw.angular(motion)),
        )

    def normalized(self) -> "Pose":
        return self.replace(orientation=so3.normalize(self.orientation))

    def convert(self, units: UnitSystem, target: UnitSystem) -> "Pose":
        return self.replace(position=LENGTH.convert(units, target) * self.position)

    def __add__(self, other: "Pose") -> "Pose":
        return Pose(self.position + other.position, self.orientation + other.orientation)

    def __sub__(self, other: "Pose") -> "Pose":
        return Pose(self.position - other.position, self.orientation - other.orientation)

    def __neg__(self) -> "Pose":
        return Pose(-self.position, -self.orientation)

    def __mul__(self, factor) -> "Pose":
        return Pose(factor * self.position, factor * self.orientation)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "Pose":
        return self * (1.0 / divisor)


def stack(poses) -> Pose:
    """Stack a sequence of poses into one batched pose."""
    return jax.tree_util.tree_map(lambda *xs: jnp.stack(xs), *poses)
