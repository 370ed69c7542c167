"""Rigid bodies: mass properties placed in a mesh frame, plus applied loads."""

from typing import Callable, Optional

import jax.numpy as jnp
from jax import Array

from ..spatial import screw
from ..units import FORCE, UnitSystem
from .mass_properties import MassProperties
from .pose import Pose

AppliedForce = Callable[[Array, Pose, Array], Array]


def _zero_force(time, pose, velocity):
    return jnp.zeros(6)


# Identity-compared sentinel; solvers and unit conversion skip it.
ZERO_FORCE: AppliedForce = _zero_force


def convert_applied_force(
    force: AppliedForce, units: UnitSystem, target: UnitSystem
) -> AppliedForce:
    """Wrap ``force`` written for ``units`` so it is called with and returns ``target`` values."""
    if force is ZERO_FORCE or units is target:
        return force

    def converted(time, pose, velocity):
        load = force(
            time,
            pose.convert(target, units),
            screw.convert_twist(velocity, target, units),
        )
        return screw.convert_wrench(load, units, target, FORCE)

    return converted


class Body:
    """A rigid body whose mass properties are given in its mesh frame.

    Attributes:
        mass_properties: Inertia of the body, in the body's unit system.
        mesh_origin: Pose of the mesh frame relative to the body frame.
        applied_force: Callback ``(time, pose, velocity) -> wrench`` for loads
            other than gravity. ``ZERO_FORCE`` means none.
    """

    def __init__(
        self,
        mass_properties: MassProperties,
        mesh_origin: Optional[Pose] = None,
        applied_force: AppliedForce = ZERO_FORCE,
        name: Optional[str] = None,
    ):
        self.mass_properties = mass_properties
        self.mesh_origin = Pose.origin() if mesh_origin is None else mesh_origin
        self.applied_force = applied_force
        self.name = name

    @property
    def units(self) -> UnitSystem:
        return self.mass_properties.units

    @property
    def cg(self) -> Array:
        """Center of mass in the body frame."""
        return self.mesh_origin.from_local_point(self.mass_properties.cg)

    @property
    def has_applied_force(self) -> bool:
        return self.applied_force is not None and self.applied_force is not ZERO_FORCE

    def add_solid(self, other: MassProperties) -> None:
        self.mass_properties = self.mass_properties + other.convert_to(self.units)

    def remove_solid(self, other: MassProperties) -> None:
        self.mass_properties = self.mass_properties - other.convert_to(self.units)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, mass={float(self.mass_properties.mass):g})"
