"""Integrable simulation states.

Both state types are PyTrees with vector-space operators (+, -, scalar *, /),
which is all the Runge-Kutta integrators need to form their weighted stage
sums.
"""

from typing import Sequence

import jax
import jax.numpy as jnp
from jax import Array
from flax import struct

from ..spatial import screw
from ..units import LENGTH, MOMENTUM, UnitSystem
from .joint import JointState
from .pose import Pose


@struct.dataclass
class ChainStates:
    """Coordinates and rates of every joint of a chain, in solver order.

    Attributes:
        angle: (num_links,) joint coordinates.
        speed: (num_links,) joint rates.
    """
    angle: Array
    speed: Array

    @classmethod
    def from_joint_states(cls, states: Sequence[JointState]) -> "ChainStates":
        return cls(
            angle=jnp.stack([jnp.asarray(s.angle, dtype=jnp.float64) for s in states]),
            speed=jnp.stack([jnp.asarray(s.speed, dtype=jnp.float64) for s in states]),
        )

    @property
    def count(self) -> int:
        return self.angle.shape[0]

    def __len__(self) -> int:
        return self.count

    def __getitem__(self, index: int) -> JointState:
        return JointState(self.angle[index], self.speed[index])

    def with_speed(self, index: int, speed: Array) -> "ChainStates":
        return self.replace(speed=self.speed.at[index].set(speed))

    def is_finite(self) -> bool:
        return bool(jnp.all(jnp.isfinite(self.angle)) & jnp.all(jnp.isfinite(self.speed)))

    def convert_from_to(
        self, units: UnitSystem, target: UnitSystem, prismatic: Sequence[bool]
    ) -> "ChainStates":
        """Scale the coordinates and rates of sliding joints by the length factor."""
        fl = LENGTH.convert(units, target)
        factor = jnp.where(jnp.asarray(prismatic), fl, 1.0)
        return ChainStates(factor * self.angle, factor * self.speed)

    def __add__(self, other: "ChainStates") -> "ChainStates":
        return ChainStates(self.angle + other.angle, self.speed + other.speed)

    def __sub__(self, other: "ChainStates") -> "ChainStates":
        return ChainStates(self.angle - other.angle, self.speed - other.speed)

    def __neg__(self) -> "ChainStates":
        return ChainStates(-self.angle, -self.speed)

    def __mul__(self, factor) -> "ChainStates":
        return ChainStates(factor * self.angle, factor * self.speed)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "ChainStates":
        return self * (1.0 / divisor)


@struct.dataclass
class BodyState:
    """Pose and spatial momentum of free bodies.

    Fields may carry a leading batch dimension, one entry per body.

    Attributes:
        pose: Pose of the body frame.
        momentum: (..., 6) momentum wrench about the world origin.
    """
    pose: Pose
    momentum: Array

    @classmethod
    def stack(cls, states: Sequence["BodyState"]) -> "BodyState":
        return jax.tree_util.tree_map(lambda *xs: jnp.stack(xs), *states)

    @property
    def count(self) -> int:
        return self.momentum.shape[0]

    def __getitem__(self, index: int) -> "BodyState":
        return jax.tree_util.tree_map(lambda x: x[index], self)

    def convert_from_to(self, units: UnitSystem, target: UnitSystem) -> "BodyState":
        return BodyState(
            self.pose.convert(units, target),
            screw.convert_wrench(self.momentum, units, target, MOMENTUM),
        )

    def __add__(self, other: "BodyState") -> "BodyState":
        return BodyState(self.pose + other.pose, self.momentum + other.momentum)

    def __sub__(self, other: "BodyState") -> "BodyState":
        return BodyState(self.pose - other.pose, self.momentum - other.momentum)

    def __neg__(self) -> "BodyState":
        return BodyState(-self.pose, -self.momentum)

    def __mul__(self, factor) -> "BodyState":
        return BodyState(factor * self.pose, factor * self.momentum)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "BodyState":
        return self * (1.0 / divisor)
