"""Planar joints, frames and the world that owns them.

A :class:`PlanarWorld` keeps its frames in a flat list, each referring to its
parent by index (``-1`` for a root), like :class:`~jax_multibody.core.chain.Chain`
does in 3-D. Joints either slide along the x or y axis of their base frame or
rotate about the out-of-plane axis.
"""

import enum
from typing import Callable, List, Optional, Tuple

import jax.numpy as jnp
from jax import Array
from flax import struct

from .. import logging
from ..core.joint import ZERO_DRIVER, Driver, JointProperties, JointState, Prescribed
from ..exceptions import ConfigurationError
from ..spatial import planar
from ..units import ACCELERATION, UnitSystem
from .mass_properties import PlanarMassProperties
from .pose import PlanarPose

PlanarForce = Callable[[Array, PlanarPose, Array], Array]

STANDARD_PLANAR_GRAVITY = (0.0, -10.0)


def _zero_force(time, pose, velocity):
    return jnp.zeros(3)


# Identity-compared sentinel; the solver skips it.
ZERO_PLANAR_FORCE: PlanarForce = _zero_force


def default_planar_gravity(units: UnitSystem) -> Array:
    """Gravity of ``-10 y`` m/s² expressed in ``units``."""
    return ACCELERATION.convert(UnitSystem.SI, units) * jnp.array(STANDARD_PLANAR_GRAVITY)


class PlanarJointType(enum.Enum):
    SLIDE_ALONG_X = 0
    SLIDE_ALONG_Y = 1
    REVOLUTE = 2

    @property
    def is_prismatic(self) -> bool:
        return self is not PlanarJointType.REVOLUTE

    @property
    def is_revolute(self) -> bool:
        return self is PlanarJointType.REVOLUTE


@struct.dataclass
class PlanarJointProperties(JointProperties):
    """Axis type, prescribed mode and driver of a planar joint.

    Drivers and their routing to load or acceleration work as for
    :class:`~jax_multibody.core.joint.JointProperties`.
    """
    type: PlanarJointType = struct.field(pytree_node=False)

    def get_local_step(self, q: Array) -> PlanarPose:
        """Pose across the joint at coordinate ``q``."""
        if self.type is PlanarJointType.SLIDE_ALONG_X:
            return PlanarPose.along_x(q)
        if self.type is PlanarJointType.SLIDE_ALONG_Y:
            return PlanarPose.along_y(q)
        return PlanarPose.about_z(q)

    def get_direction(self, pose: PlanarPose) -> Array:
        """World direction of a sliding axis for a joint frame at ``pose``."""
        return pose.from_local_direction(jnp.eye(2)[self.type.value])

    def get_axis(self, pose: PlanarPose) -> Array:
        """
        Planar twist produced by a unit joint rate.

        Args:
            pose: World pose of the joint frame.

        Returns:
            (3,) twist. Sliders translate along their rotated axis; the
            revolute joint turns about the joint origin.
        """
        if self.is_prismatic:
            return planar.pure_twist(self.get_direction(pose))
        return planar.twist(1.0, pose.position)


SLIDE_X = PlanarJointProperties(PlanarJointType.SLIDE_ALONG_X)
SLIDE_Y = PlanarJointProperties(PlanarJointType.SLIDE_ALONG_Y)
REVOLUTE = PlanarJointProperties(PlanarJointType.REVOLUTE)


class Frame:
    """A planar body attached to its parent through one joint.

    Attributes:
        mass_properties: Inertia of the body in its joint frame.
        joint: Joint connecting the frame to its parent.
        location_on_parent: Pose of the joint base in the parent's joint frame.
        parent: Index of the parent frame in the world, ``-1`` for a root.
        initial_displacement: Joint coordinate at reset.
        initial_speed: Joint rate at reset.
        applied_force: Callback ``(time, pose, velocity) -> wrench`` for loads
            other than gravity, with ``pose`` the joint frame.
    """

    def __init__(
        self,
        mass_properties: PlanarMassProperties,
        joint: PlanarJointProperties,
        location_on_parent: Optional[PlanarPose] = None,
        parent: int = -1,
        initial_displacement: float = 0.0,
        initial_speed: float = 0.0,
        applied_force: PlanarForce = ZERO_PLANAR_FORCE,
        name: Optional[str] = None,
    ):
        self.mass_properties = mass_properties
        self.joint = joint
        self.location_on_parent = PlanarPose.origin() if location_on_parent is None else location_on_parent
        self.parent = parent
        self.initial_displacement = initial_displacement
        self.initial_speed = initial_speed
        self.applied_force = applied_force
        self.name = name

    @property
    def units(self) -> UnitSystem:
        return self.mass_properties.units

    @property
    def is_root(self) -> bool:
        return self.parent < 0

    @property
    def has_applied_force(self) -> bool:
        return self.applied_force is not ZERO_PLANAR_FORCE

    def get_initial(self) -> JointState:
        return JointState(
            jnp.asarray(self.initial_displacement, dtype=jnp.float64),
            jnp.asarray(self.initial_speed, dtype=jnp.float64),
        )

    def add_solid(self, other: PlanarMassProperties) -> None:
        self.mass_properties = self.mass_properties + other

    def remove_solid(self, other: PlanarMassProperties) -> None:
        self.mass_properties = self.mass_properties - other

    def __repr__(self) -> str:
        return f"Frame(name={self.name!r}, joint={self.joint.type.name}, parent={self.parent})"


class PlanarWorld:
    """Gravity plus a tree of planar frames.

    Example:
        >>> world = PlanarWorld(UnitSystem.SI)
        >>> bar = PlanarMassProperties.rectangle(UnitSystem.SI, 1.0, 1.0, 0.1, cg=[0.5, 0.0])
        >>> world.add_chain(3, PlanarPose.along_x(1.0), bar)
        2
        >>> solver = world.get_solver()
    """

    def __init__(self, units: UnitSystem = UnitSystem.SI, gravity: Optional[Array] = None):
        self.units = units
        self.gravity = default_planar_gravity(units) if gravity is None else jnp.asarray(gravity, dtype=jnp.float64)
        self.frames: List[Frame] = []

    def __len__(self) -> int:
        return len(self.frames)

    def __getitem__(self, index: int) -> Frame:
        return self.frames[index]

    def __iter__(self):
        return iter(self.frames)

    def add_child(
        self,
        parent: int,
        mass_properties: PlanarMassProperties,
        location_on_parent: Optional[PlanarPose] = None,
        joint: PlanarJointProperties = REVOLUTE,
        **kwargs,
    ) -> int:
        """
        Attach a new frame to ``parent`` (``-1`` for a new root).

        Args:
            parent: Index of the parent frame.
            mass_properties: Inertia of the new frame, converted to world units.
            location_on_parent: Joint base in the parent's joint frame.
            joint: Joint of the new frame.
            **kwargs: Further :class:`Frame` attributes such as
                ``initial_displacement`` or ``applied_force``.

        Returns:
            Index of the new frame.

        Raises:
            ConfigurationError: If ``parent`` is not an existing frame.
        """
        if parent >= len(self.frames) or parent < -1:
            raise ConfigurationError(
                f"Parent index {parent} does not refer to an existing frame "
                f"(world has {len(self.frames)})"
            )
        frame = Frame(mass_properties.convert_to(self.units), joint, location_on_parent, parent, **kwargs)
        self.frames.append(frame)
        return len(self.frames) - 1

    def add_revolute(self, parent, mass_properties, location_on_parent=None,
                     initial_angle=0.0, driver: Driver = ZERO_DRIVER) -> int:
        joint = PlanarJointProperties(PlanarJointType.REVOLUTE, Prescribed.LOAD, driver)
        return self.add_child(parent, mass_properties, location_on_parent, joint,
                              initial_displacement=initial_angle)

    def slide_along_x(self, parent, mass_properties, location_on_parent=None,
                      initial_displacement=0.0) -> int:
        return self.add_child(parent, mass_properties, location_on_parent, SLIDE_X,
                              initial_displacement=initial_displacement)

    def slide_along_y(self, parent, mass_properties, location_on_parent=None,
                      initial_displacement=0.0) -> int:
        return self.add_child(parent, mass_properties, location_on_parent, SLIDE_Y,
                              initial_displacement=initial_displacement)

    def add_collar_along_x(self, parent, mass_properties, location_on_parent=None,
                           initial_displacement=0.0, initial_angle=0.0) -> int:
        """Massless slider along x carrying a pinned body. Returns the pinned frame."""
        slider = self.slide_along_x(parent, PlanarMassProperties.zero(self.units), location_on_parent,
                                    initial_displacement)
        return self.add_revolute(slider, mass_properties, None, initial_angle)

    def add_collar_along_y(self, parent, mass_properties, location_on_parent=None,
                           initial_displacement=0.0, initial_angle=0.0) -> int:
        """Massless slider along y carrying a pinned body. Returns the pinned frame."""
        slider = self.slide_along_y(parent, PlanarMassProperties.zero(self.units), location_on_parent,
                                    initial_displacement)
        return self.add_revolute(slider, mass_properties, None, initial_angle)

    def add_free(self, parent, mass_properties, location_on_parent=None,
                 initial_x=0.0, initial_y=0.0, initial_angle=0.0) -> int:
        """Free body: x slider, y slider and pin stacked. Returns the pinned frame."""
        zero = PlanarMassProperties.zero(self.units)
        x = self.slide_along_x(parent, zero, location_on_parent, initial_x)
        y = self.slide_along_y(x, zero, None, initial_y)
        return self.add_revolute(y, mass_properties, None, initial_angle)

    def add_chain(
        self, count: int, location_on_parent: PlanarPose, mass_properties: PlanarMassProperties
    ) -> Optional[int]:
        """
        Add a serial chain of ``count`` identical pinned frames.

        The first frame is pinned at the origin and every following frame at
        ``location_on_parent`` on its predecessor.

        Returns:
            Index of the last frame, or ``None`` when ``count`` is zero.
        """
        if count <= 0:
            return None
        index = self.add_revolute(-1, mass_properties)
        for _ in range(1, count):
            index = self.add_revolute(index, mass_properties, location_on_parent)
        logging.debug("Added planar chain of %d frames to world", count)
        return index

    def remove_child(self, index: int) -> Frame:
        """Remove a frame. Its children become roots and later indices shift down."""
        frame = self.frames.pop(index)
        for other in self.frames:
            if other.parent == index:
                other.parent = -1
            elif other.parent > index:
                other.parent -= 1
        return frame

    def children_of(self, index: int) -> Tuple[int, ...]:
        return tuple(i for i, frame in enumerate(self.frames) if frame.parent == index)

    def level(self, index: int) -> int:
        """Number of joints between the frame and its root."""
        level = 0
        parent = self.frames[index].parent
        while parent >= 0:
            level += 1
            parent = self.frames[parent].parent
        return level

    def get_solver(self, **kwargs) -> "PlanarSolver":
        from .simulation import PlanarSolver

        return PlanarSolver(self, **kwargs)

    def __repr__(self) -> str:
        return f"PlanarWorld(count={len(self.frames)}, gravity={self.gravity}, units={self.units.name})"
