"""Tests for the world container and package-level helpers."""

import logging

import jax.numpy as jnp
import numpy as np

import jax_multibody
from jax_multibody import World
from jax_multibody.core.mass_properties import MassProperties
from jax_multibody.core.pose import Pose
from jax_multibody.core.solid import Solid
from jax_multibody.units import UnitSystem
from jax_multibody.world import damped_spring

SI = UnitSystem.SI


def _rod():
    return MassProperties.box(SI, 1.0, 1.0, 0.05, 0.05, cg=[0.5, 0.0, 0.0])


def test_default_gravity():
    """Test default gravity in SI and imperial units."""
    np.testing.assert_allclose(World().gravity, [0.0, -10.0, 0.0])
    np.testing.assert_allclose(World(UnitSystem.IPS).gravity, [0.0, -10.0 / 0.0254, 0.0], rtol=1e-12)


def test_add_chain():
    """Test that add_chain builds a damped serial chain in world units."""
    world = World(UnitSystem.MMKS)
    chain = world.add_chain(3, _rod(), on_parent=Pose.along_x(1000.0))
    assert len(chain) == 3
    assert chain.units is UnitSystem.MMKS
    assert chain[0].joint.driver is damped_spring
    np.testing.assert_allclose(chain[0].mass_properties.cg, [500.0, 0.0, 0.0])
    assert world.add_chain(0, _rod()) is None
    assert len(world.chains) == 1


def test_damped_spring():
    """Test the default joint load."""
    np.testing.assert_allclose(damped_spring(0.0, 1.0, 2.0), -0.14)


def test_chain_solvers_run():
    """Test solvers built from the world's chains."""
    world = World()
    world.add_chain(2, _rod(), on_parent=Pose.along_x(1.0))
    world.add_chain(1, _rod())
    solvers = world.get_chain_solvers()
    assert len(solvers) == 2
    for solver in solvers:
        solver.update(0.01)
        assert solver.current.is_finite()
    np.testing.assert_allclose(solvers[0].gravity, world.gravity)


def test_chain_solver_with_contacts():
    """Test that a world chain solver can resolve its floor contact."""
    world = World()
    world.add_chain(2, _rod(), on_parent=Pose.along_x(1.0))
    solver = world.get_chain_solver(0, enable_contacts=True, restitution=0.1)
    assert solver.enable_contacts
    solver.step(0.01, 5)
    assert solver.current.is_finite()


def test_mbd_solver():
    """Test that the world's bodies go to the multibody solver in world units."""
    world = World(UnitSystem.MMKS)
    world.add_body(Solid(MassProperties.sphere(SI, 1.0, 0.1), initial_displacement=Pose.along_y(1.0)))
    assert world.bodies[0].units is UnitSystem.MMKS
    solver = world.get_mbd_solver()
    solver.step(0.01, 10)
    np.testing.assert_allclose(solver.current.pose.position[0, 1], 1000.0 - 0.5 * 10000.0 * 0.01, rtol=1e-9)


def test_convert_world():
    """Test conversion of gravity, bodies and chains."""
    world = World()
    world.add_chain(1, _rod())
    world.add_body(Solid(MassProperties.sphere(SI, 1.0, 0.1)))
    converted = world.convert_to(UnitSystem.IPS)
    assert converted.units is UnitSystem.IPS
    assert converted.chains[0].units is UnitSystem.IPS
    assert converted.bodies[0].units is UnitSystem.IPS
    np.testing.assert_allclose(converted.gravity, World(UnitSystem.IPS).gravity, rtol=1e-12)


def test_logging_level():
    """Test the package logging helpers."""
    jax_multibody.logging.set_logging_level("DEBUG")
    assert jax_multibody.logging.get_logging_level() == logging.DEBUG
    jax_multibody.logging.set_logging_level(logging.WARNING)
    assert jax_multibody.logging.get_logger().name == "jax_multibody"


def test_double_precision():
    """Test that importing the package enables 64-bit floats."""
    assert jnp.zeros(1).dtype == jnp.float64
