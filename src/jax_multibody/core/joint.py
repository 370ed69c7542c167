"""Single degree-of-freedom joints.

A joint either slides along or rotates about one axis of its frame. Its
driver callback ``(time, q, qp) -> value`` supplies either the joint load
(:attr:`Prescribed.LOAD`, the solver finds the acceleration) or the joint
acceleration (:attr:`Prescribed.MOTION`, the solver finds the load).
"""

import enum
from typing import Callable

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..spatial import screw, so3
from ..units import FORCE, LENGTH, TORQUE, UnitSystem
from .pose import Pose

Driver = Callable[[Array, Array, Array], Array]


def _zero_driver(time, q, qp):
    return jnp.zeros(())


# Identity-compared sentinel; unit conversion leaves it unwrapped.
ZERO_DRIVER: Driver = _zero_driver


class JointType(enum.Enum):
    SLIDE_ALONG_X = 0
    SLIDE_ALONG_Y = 1
    SLIDE_ALONG_Z = 2
    ROTATE_ABOUT_X = 3
    ROTATE_ABOUT_Y = 4
    ROTATE_ABOUT_Z = 5

    @property
    def is_prismatic(self) -> bool:
        return self.value < 3

    @property
    def is_revolute(self) -> bool:
        return self.value >= 3

    @property
    def local_axis(self) -> Array:
        """Unit vector of the joint axis in the joint frame."""
        return jnp.eye(3)[self.value % 3]


class Prescribed(enum.Enum):
    """What the joint driver supplies."""

    MOTION = "motion"
    LOAD = "load"


@struct.dataclass
class JointState:
    """Coordinate and rate of one joint."""
    angle: Array
    speed: Array

    def __add__(self, other: "JointState") -> "JointState":
        return JointState(self.angle + other.angle, self.speed + other.speed)

    def __sub__(self, other: "JointState") -> "JointState":
        return JointState(self.angle - other.angle, self.speed - other.speed)

    def __mul__(self, factor) -> "JointState":
        return JointState(factor * self.angle, factor * self.speed)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "JointState":
        return self * (1.0 / divisor)


@struct.dataclass
class JointInfo:
    """Joint state together with its acceleration and load at one instant."""
    angle: Array
    speed: Array
    acceleration: Array
    torque: Array

    def rate(self) -> JointState:
        return JointState(self.speed, self.acceleration)


@struct.dataclass
class JointProperties:
    """Axis type, prescribed mode and driver of a joint.

    Attributes:
        type: Axis variant. Static for JIT compilation.
        motion: Whether the driver supplies load or acceleration.
        driver: Callback ``(time, q, qp) -> value``.
    """
    type: JointType = struct.field(pytree_node=False)
    motion: Prescribed = struct.field(pytree_node=False, default=Prescribed.LOAD)
    driver: Driver = struct.field(pytree_node=False, default=ZERO_DRIVER)

    @property
    def is_prismatic(self) -> bool:
        return self.type.is_prismatic

    @property
    def is_revolute(self) -> bool:
        return self.type.is_revolute

    def get_local_step(self, q: Array) -> Pose:
        """Pose across the joint at coordinate ``q``."""
        axis = self.type.local_axis
        if self.is_prismatic:
            return Pose.at(axis * q)
        return Pose.about(so3.from_axis_angle(axis, q))

    def get_direction(self, pose: Pose) -> Array:
        """World direction of the joint axis for a joint frame at ``pose``."""
        return pose.from_local_direction(self.type.local_axis)

    def get_axis(self, pose: Pose) -> Array:
        """
        Spatial axis of the joint: the twist produced by a unit joint rate.

        Args:
            pose: World pose of the joint frame.

        Returns:
            (6,) twist. Prismatic joints give a pure translation; revolute
            joints rotate about the axis through the joint origin.
        """
        direction = self.get_direction(pose)
        if self.is_prismatic:
            return screw.pure_twist(direction)
        return screw.twist(direction, pose.position, 0.0)

    def evaluate(self, time: Array, state: JointState) -> JointInfo:
        """Call the driver and route its value to acceleration or torque."""
        value = jnp.asarray(self.driver(time, state.angle, state.speed), dtype=jnp.float64)
        zero = jnp.zeros_like(value)
        if self.motion is Prescribed.MOTION:
            return JointInfo(state.angle, state.speed, value, zero)
        return JointInfo(state.angle, state.speed, zero, value)

    def convert_from_to(self, units: UnitSystem, target: UnitSystem) -> "JointProperties":
        """Joint whose driver takes and returns values in ``target`` units."""
        original = self.driver
        if original is ZERO_DRIVER or units is target:
            return self
        fl = LENGTH.convert(units, target)
        if self.motion is Prescribed.LOAD:
            if self.is_prismatic:
                f_in, f_out = 1 / fl, FORCE.convert(units, target)
            else:
                f_in, f_out = 1.0, TORQUE.convert(units, target)
        else:
            f_in, f_out = (1 / fl, fl) if self.is_prismatic else (1.0, 1.0)

        def driver(time, q, qp):
            return f_out * original(time, f_in * q, f_in * qp)

        return self.replace(driver=driver)


ALONG_X = JointProperties(JointType.SLIDE_ALONG_X)
ALONG_Y = JointProperties(JointType.SLIDE_ALONG_Y)
ALONG_Z = JointProperties(JointType.SLIDE_ALONG_Z)
ABOUT_X = JointProperties(JointType.ROTATE_ABOUT_X)
ABOUT_Y = JointProperties(JointType.ROTATE_ABOUT_Y)
ABOUT_Z = JointProperties(JointType.ROTATE_ABOUT_Z)
