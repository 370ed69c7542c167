"""World: the bodies and chains of one scene, in one unit system."""

from typing import List, Optional

import jax.numpy as jnp
from jax import Array

from . import logging
from .core.chain import Chain
from .core.joint import Driver, JointProperties, JointType, Prescribed
from .core.mass_properties import MassProperties
from .core.pose import Pose
from .core.solid import Solid
from .solvers import ChainSolver, MbdSolver, default_gravity
from .units import LENGTH, UnitSystem


def damped_spring(time, q, qp):
    """Light spring and damper used as the default chain joint load."""
    return -0.02 * qp - 0.1 * q


class World:
    """Container for free bodies and chains sharing units and gravity.

    Example:
        >>> world = World(UnitSystem.SI)
        >>> rod = MassProperties.box(UnitSystem.SI, 1.0, 1.0, 0.05, 0.05, cg=[0.5, 0, 0])
        >>> chain = world.add_chain(3, rod, on_parent=Pose.along_x(1.0))
        >>> solver = world.get_chain_solver(0)
    """

    def __init__(self, units: UnitSystem = UnitSystem.SI, gravity: Optional[Array] = None):
        self.units = units
        self.gravity = default_gravity(units) if gravity is None else jnp.asarray(gravity, dtype=jnp.float64)
        self.bodies: List[Solid] = []
        self.chains: List[Chain] = []

    def add_body(self, body: Solid) -> int:
        self.bodies.append(body if body.units is self.units else body.convert_to(self.units))
        return len(self.bodies) - 1

    def add_chain(
        self,
        count: int,
        mass_properties: MassProperties,
        mesh_origin: Optional[Pose] = None,
        on_parent: Optional[Pose] = None,
        driver: Driver = damped_spring,
    ) -> Optional[Chain]:
        """
        Add a serial chain of ``count`` identical pinned links.

        Args:
            count: Number of links; no chain is added for zero.
            mass_properties: Inertia of each link, converted to world units.
            mesh_origin: Mesh frame of each link in its joint frame.
            on_parent: Joint location of each link on its predecessor.
            driver: Joint load of every pin.

        Returns:
            The new chain, or ``None`` when ``count`` is zero.
        """
        if count <= 0:
            return None
        joint = JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.LOAD, driver)
        chain = Chain.uniform(
            self.units,
            count,
            mass_properties.convert_to(self.units),
            Pose.origin() if on_parent is None else on_parent,
            joint,
            mesh_origin,
        )
        self.chains.append(chain)
        logging.debug("Added chain of %d links to world", count)
        return chain

    def get_chain_solver(self, index: int, enable_contacts: bool = False, **kwargs) -> ChainSolver:
        return ChainSolver(self.chains[index], enable_contacts, gravity=self.gravity, **kwargs)

    def get_chain_solvers(self, enable_contacts: bool = False, **kwargs) -> List[ChainSolver]:
        return [self.get_chain_solver(i, enable_contacts, **kwargs) for i in range(len(self.chains))]

    def get_mbd_solver(self, **kwargs) -> MbdSolver:
        return MbdSolver(self.bodies, self.gravity, self.units, **kwargs)

    def convert_to(self, target: UnitSystem) -> "World":
        world = World(target, LENGTH.convert(self.units, target) * self.gravity)
        world.bodies = [body.convert_to(target) for body in self.bodies]
        world.chains = [chain.convert_to(target) for chain in self.chains]
        return world
