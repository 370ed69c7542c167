"""Links and chains: the tree of jointed bodies a chain solver works on.

A :class:`Chain` owns its links in a flat list. Each link refers to its parent
by index into that list (``-1`` for a root), so the tree is an arena of nodes
rather than a web of object references.
"""

from typing import List, Optional, Sequence, Tuple

import jax.numpy as jnp
from jax import Array

from ..exceptions import ConfigurationError
from ..units import LENGTH, UnitSystem
from .body import ZERO_FORCE, AppliedForce, Body, convert_applied_force
from .joint import (
    ZERO_DRIVER,
    Driver,
    JointProperties,
    JointState,
    JointType,
    Prescribed,
)
from .mass_properties import MassProperties
from .pose import Pose


class Link(Body):
    """A body attached to its parent through one joint.

    Attributes:
        joint: Joint connecting the link to its parent.
        location_on_parent: Pose of the joint base in the parent's joint frame.
        parent: Index of the parent link in the owning chain, ``-1`` for a root.
        initial_displacement: Joint coordinate at reset.
        initial_speed: Joint rate at reset.
        local_marker: Point in the joint frame used for contact; defaults to
            twice the center of mass, the far end of a link centred mid-span.
    """

    def __init__(
        self,
        mass_properties: MassProperties,
        joint: JointProperties,
        location_on_parent: Optional[Pose] = None,
        mesh_origin: Optional[Pose] = None,
        parent: int = -1,
        initial_displacement: float = 0.0,
        initial_speed: float = 0.0,
        local_marker: Optional[Array] = None,
        applied_force: AppliedForce = ZERO_FORCE,
        name: Optional[str] = None,
    ):
        super().__init__(mass_properties, mesh_origin, applied_force, name)
        self.joint = joint
        self.location_on_parent = Pose.origin() if location_on_parent is None else location_on_parent
        self.parent = parent
        self.initial_displacement = initial_displacement
        self.initial_speed = initial_speed
        self.local_marker = 2 * self.cg if local_marker is None else jnp.asarray(local_marker, dtype=jnp.float64)

    @property
    def is_root(self) -> bool:
        return self.parent < 0

    def get_initial(self) -> JointState:
        return JointState(
            jnp.asarray(self.initial_displacement, dtype=jnp.float64),
            jnp.asarray(self.initial_speed, dtype=jnp.float64),
        )

    def convert_to(self, target: UnitSystem) -> "Link":
        """Copy of this link in ``target`` units, with callbacks wrapped to match."""
        units = self.units
        fl = LENGTH.convert(units, target)
        # joint coordinates carry length only for sliding joints
        fq = fl if self.joint.is_prismatic else 1.0
        return Link(
            mass_properties=self.mass_properties.convert_to(target),
            joint=self.joint.convert_from_to(units, target),
            location_on_parent=self.location_on_parent.convert(units, target),
            mesh_origin=self.mesh_origin.convert(units, target),
            parent=self.parent,
            initial_displacement=fq * self.initial_displacement,
            initial_speed=fq * self.initial_speed,
            local_marker=fl * self.local_marker,
            applied_force=convert_applied_force(self.applied_force, units, target),
            name=self.name,
        )

    def __repr__(self) -> str:
        return f"Link(name={self.name!r}, joint={self.joint.type.name}, parent={self.parent})"


class Chain:
    """Ordered links plus one declared contact point and normal.

    The first link's :attr:`Link.location_on_parent` doubles as the chain
    pivot. A zero :attr:`contact_normal` means no contact is declared.

    Example:
        >>> chain = Chain(UnitSystem.SI)
        >>> body = MassProperties.box(UnitSystem.SI, 1.0, 1.0, 0.1, 0.1, cg=[0.5, 0, 0])
        >>> chain.add_revolute(-1, body)
        0
        >>> chain.add_revolute(0, body, Pose.along_x(1.0))
        1
    """

    def __init__(self, units: UnitSystem = UnitSystem.SI, links: Sequence[Link] = ()):
        self.units = units
        self.links: List[Link] = []
        for link in links:
            self._append(link)
        self.contact_point = jnp.zeros(3)
        self.contact_normal = jnp.zeros(3)
        self.contact_link: Optional[int] = None

    @classmethod
    def uniform(
        cls,
        units: UnitSystem,
        count: int,
        mass_properties: MassProperties,
        location_on_parent: Pose,
        joint: JointProperties,
        mesh_origin: Optional[Pose] = None,
    ) -> "Chain":
        """Serial chain of ``count`` identical links.

        Every link, the first included, sits at ``location_on_parent`` on its
        predecessor. Contact is declared with normal +y at ``count`` steps of
        ``location_on_parent`` from the origin.
        """
        chain = cls(units)
        for _ in range(count):
            chain.add_link(mass_properties, location_on_parent, joint, mesh_origin)
        chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
        chain.contact_point = count * location_on_parent.position
        return chain

    def __len__(self) -> int:
        return len(self.links)

    def __getitem__(self, index: int) -> Link:
        return self.links[index]

    def __iter__(self):
        return iter(self.links)

    def _append(self, link: Link) -> int:
        if link.parent >= len(self.links) or link.parent < -1:
            raise ConfigurationError(
                f"Parent index {link.parent} does not refer to an existing link "
                f"(chain has {len(self.links)})"
            )
        if link.units is not self.units:
            raise ConfigurationError(
                f"Link in {link.units.name} added to a chain in {self.units.name}"
            )
        self.links.append(link)
        return len(self.links) - 1

    def add_link(
        self,
        mass_properties: MassProperties,
        location_on_parent: Optional[Pose] = None,
        joint: JointProperties = JointProperties(JointType.ROTATE_ABOUT_Z),
        mesh_origin: Optional[Pose] = None,
        **kwargs,
    ) -> int:
        """Append a link onto the last link, or as the root of an empty chain."""
        return self.add_child(
            len(self.links) - 1, mass_properties, location_on_parent, joint, mesh_origin, **kwargs
        )

    def add_child(
        self,
        parent: int,
        mass_properties: MassProperties,
        location_on_parent: Optional[Pose] = None,
        joint: JointProperties = JointProperties(JointType.ROTATE_ABOUT_Z),
        mesh_origin: Optional[Pose] = None,
        **kwargs,
    ) -> int:
        """
        Attach a new link to ``parent`` (``-1`` for a new root).

        Args:
            parent: Index of the parent link.
            mass_properties: Inertia of the new link, converted to chain units.
            location_on_parent: Joint base in the parent's joint frame.
            joint: Joint of the new link.
            mesh_origin: Mesh frame in the joint frame.
            **kwargs: Further :class:`Link` attributes such as
                ``initial_displacement`` or ``applied_force``.

        Returns:
            Index of the new link.
        """
        link = Link(
            mass_properties.convert_to(self.units),
            joint,
            location_on_parent,
            mesh_origin,
            parent=parent,
            **kwargs,
        )
        return self._append(link)

    def add_revolute(self, parent, mass_properties, location_on_parent=None, mesh_origin=None,
                     initial_angle=0.0, driver: Driver = ZERO_DRIVER) -> int:
        joint = JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.LOAD, driver)
        return self.add_child(parent, mass_properties, location_on_parent, joint, mesh_origin,
                              initial_displacement=initial_angle)

    def slide_along_x(self, parent, mass_properties, location_on_parent=None, mesh_origin=None,
                      initial_displacement=0.0) -> int:
        return self.add_child(parent, mass_properties, location_on_parent,
                              JointProperties(JointType.SLIDE_ALONG_X), mesh_origin,
                              initial_displacement=initial_displacement)

    def slide_along_y(self, parent, mass_properties, location_on_parent=None, mesh_origin=None,
                      initial_displacement=0.0) -> int:
        return self.add_child(parent, mass_properties, location_on_parent,
                              JointProperties(JointType.SLIDE_ALONG_Y), mesh_origin,
                              initial_displacement=initial_displacement)

    def add_collar_along_x(self, parent, mass_properties, location_on_parent=None, mesh_origin=None,
                           initial_displacement=0.0, initial_angle=0.0) -> int:
        """Massless slider along x carrying a pinned body. Returns the pinned link."""
        slider = self.slide_along_x(parent, MassProperties.zero(self.units), location_on_parent,
                                    initial_displacement=initial_displacement)
        return self.add_revolute(slider, mass_properties, None, mesh_origin, initial_angle)

    def add_collar_along_y(self, parent, mass_properties, location_on_parent=None, mesh_origin=None,
                           initial_displacement=0.0, initial_angle=0.0) -> int:
        """Massless slider along y carrying a pinned body. Returns the pinned link."""
        slider = self.slide_along_y(parent, MassProperties.zero(self.units), location_on_parent,
                                    initial_displacement=initial_displacement)
        return self.add_revolute(slider, mass_properties, None, mesh_origin, initial_angle)

    def add_free(self, parent, mass_properties, location_on_parent=None, mesh_origin=None,
                 initial_x=0.0, initial_y=0.0, initial_angle=0.0) -> int:
        """Planar free body: x slider, y slider and pin stacked. Returns the pinned link."""
        zero = MassProperties.zero(self.units)
        x = self.slide_along_x(parent, zero, location_on_parent, initial_displacement=initial_x)
        y = self.slide_along_y(x, zero, initial_displacement=initial_y)
        return self.add_revolute(y, mass_properties, None, mesh_origin, initial_angle)

    def remove_child(self, index: int) -> Link:
        """Remove a link. Its children become roots and later indices shift down."""
        link = self.links.pop(index)
        for other in self.links:
            if other.parent == index:
                other.parent = -1
            elif other.parent > index:
                other.parent -= 1
        if self.contact_link is not None:
            if self.contact_link == index:
                self.contact_link = None
            elif self.contact_link > index:
                self.contact_link -= 1
        return link

    def children_of(self, index: int) -> Tuple[int, ...]:
        return tuple(i for i, link in enumerate(self.links) if link.parent == index)

    def index_of(self, name: str) -> int:
        for i, link in enumerate(self.links):
            if link.name == name:
                return i
        raise ValueError(f"Link '{name}' not found in chain")

    def level(self, index: int) -> int:
        """Number of joints between the link and its root."""
        level = 0
        parent = self.links[index].parent
        while parent >= 0:
            level += 1
            if level > len(self.links):
                raise ConfigurationError(f"Link {index} is part of a parent cycle")
            parent = self.links[parent].parent
        return level

    def get_contact_link(self) -> int:
        """Index of the link carrying the contact marker; the last link by default."""
        return len(self.links) - 1 if self.contact_link is None else self.contact_link

    @property
    def has_contact(self) -> bool:
        return bool(jnp.any(self.contact_normal != 0))

    @property
    def pivot(self) -> Pose:
        return self.links[0].location_on_parent

    @pivot.setter
    def pivot(self, value: Pose) -> None:
        first = self.links[0]
        self.contact_point = self.contact_point - first.location_on_parent.position + value.position
        first.location_on_parent = value

    def convert_to(self, target: UnitSystem) -> "Chain":
        chain = Chain(target, [link.convert_to(target) for link in self.links])
        chain.contact_point = LENGTH.convert(self.units, target) * self.contact_point
        chain.contact_normal = self.contact_normal
        chain.contact_link = self.contact_link
        return chain

    def __repr__(self) -> str:
        return f"Chain(units={self.units.name}, count={len(self.links)})"
