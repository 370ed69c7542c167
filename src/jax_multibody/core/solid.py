"""Free rigid bodies for the multibody solver."""

from typing import Optional

import jax.numpy as jnp
from jax import Array

from ..spatial import screw
from ..units import SPEED, UnitSystem
from .body import ZERO_FORCE, AppliedForce, Body, convert_applied_force
from .mass_properties import MassProperties
from .pose import Pose
from .states import BodyState


def get_motion(velocity: Array, omega: Array, pivot: Pose) -> Array:
    """
    Twist of a body moving with ``velocity`` at a pivot while spinning at ``omega``.

    Args:
        velocity: (3,) translational velocity of the pivot point, in the pivot frame.
        omega: (3,) rotational velocity, in the pivot frame.
        pivot: Pose of the pivot.

    Returns:
        (6,) world twist, linear part taken at the world origin.
    """
    v = pivot.from_local_direction(velocity)
    w = pivot.from_local_direction(omega)
    return screw.compose(v + jnp.cross(pivot.position, w), w)


class Solid(Body):
    """Unconstrained rigid body with an initial pose and velocity.

    Attributes:
        initial_displacement: Pose of the body frame at reset.
        initial_translational_velocity: (3,) velocity of the center of mass at reset.
        initial_rotational_velocity: (3,) angular velocity at reset.
    """

    def __init__(
        self,
        mass_properties: MassProperties,
        mesh_origin: Optional[Pose] = None,
        initial_displacement: Optional[Pose] = None,
        initial_translational_velocity=None,
        initial_rotational_velocity=None,
        applied_force: AppliedForce = ZERO_FORCE,
        name: Optional[str] = None,
    ):
        super().__init__(mass_properties, mesh_origin, applied_force, name)
        self.initial_displacement = Pose.origin() if initial_displacement is None else initial_displacement
        self.initial_translational_velocity = _vector(initial_translational_velocity)
        self.initial_rotational_velocity = _vector(initial_rotational_velocity)

    def set_motion(self, velocity, omega) -> None:
        self.initial_translational_velocity = _vector(velocity)
        self.initial_rotational_velocity = _vector(omega)

    def set_motion_twist(self, motion: Array) -> None:
        """Set the initial velocities from a world twist."""
        cg = self.initial_displacement.from_local_point(self.cg)
        self.initial_translational_velocity = screw.twist_value_at(motion, cg)
        self.initial_rotational_velocity = screw.angular(motion)

    def get_state(self, pose: Pose, cg: Array, motion: Array) -> BodyState:
        """State whose momentum is the spatial inertia at ``pose`` times ``motion``."""
        inertia = self.mass_properties.spi(pose.from_local(self.mesh_origin).orientation, cg)
        return BodyState(pose, screw.mul(inertia, motion))

    def get_initial_state(self) -> BodyState:
        pose = self.initial_displacement
        cg = pose.from_local_point(self.cg)
        motion = get_motion(
            self.initial_translational_velocity,
            self.initial_rotational_velocity,
            Pose(cg, pose.orientation),
        )
        return self.get_state(pose, cg, motion)

    def get_motion(self, state: BodyState, cg: Array) -> Array:
        """Twist of the body from its momentum; ``cg`` is the world center of mass."""
        mobility = self.mass_properties.spm(state.pose.from_local(self.mesh_origin).orientation, cg)
        return screw.mul(mobility, state.momentum)

    def convert_to(self, target: UnitSystem) -> "Solid":
        units = self.units
        return Solid(
            mass_properties=self.mass_properties.convert_to(target),
            mesh_origin=self.mesh_origin.convert(units, target),
            initial_displacement=self.initial_displacement.convert(units, target),
            initial_translational_velocity=SPEED.convert(units, target) * self.initial_translational_velocity,
            initial_rotational_velocity=self.initial_rotational_velocity,
            applied_force=convert_applied_force(self.applied_force, units, target),
            name=self.name,
        )


def _vector(value) -> Array:
    return jnp.zeros(3) if value is None else jnp.asarray(value, dtype=jnp.float64)
