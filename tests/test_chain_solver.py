"""Tests for the articulated chain solver."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_multibody.core.chain import Chain
from jax_multibody.core.joint import ABOUT_Z, JointProperties, JointType, Prescribed
from jax_multibody.core.mass_properties import MassProperties
from jax_multibody.core.pose import Pose
from jax_multibody.core.states import ChainStates
from jax_multibody.exceptions import SingularityError
from jax_multibody.solvers import ChainSolver
from jax_multibody.spatial import screw
from jax_multibody.units import UnitSystem

SI = UnitSystem.SI
NO_GRAVITY = jnp.zeros(3)


def _rod(mass=1.0, length=1.0):
    return MassProperties.box(SI, mass, length, 0.05, 0.05, cg=[length / 2, 0.0, 0.0])


def _pendulum(**kwargs):
    chain = Chain(SI)
    chain.add_revolute(-1, _rod(), **kwargs)
    return chain


def _tree():
    """Pin at the origin carrying two branches, one of them two links deep."""
    chain = Chain(SI)
    chain.add_revolute(-1, _rod(), initial_angle=0.2)
    chain.add_revolute(0, _rod(0.5), Pose.along_x(1.0), initial_angle=-0.4)
    chain.add_child(0, MassProperties.sphere(SI, 0.3, 0.1), Pose.along_x(0.5),
                    JointProperties(JointType.SLIDE_ALONG_Y), initial_displacement=0.1)
    chain.add_revolute(1, _rod(0.7), Pose.along_x(1.0), initial_angle=0.6)
    return chain


def _energy(solver):
    kinematics = solver.get_kinematics(solver.time, solver.current)
    kinetic = sum(0.5 * screw.dot(k.velocity, k.momentum) for k in kinematics)
    potential = sum(
        -jnp.dot(solver.gravity, k.cg) * link.mass_properties.mass
        for k, link in zip(kinematics, solver.bodies)
    )
    return kinetic + potential


def test_horizontal_pendulum_acceleration():
    """Test the initial angular acceleration of a pendulum released horizontally."""
    rod = _rod()
    solver = ChainSolver(_pendulum())
    rate = solver.calc_rate(0.0, solver.current)
    pivot_inertia = rod.mmoi[2, 2] + rod.mass * 0.25
    np.testing.assert_allclose(rate.speed[0], -10.0 * 0.5 / pivot_inertia, rtol=1e-12)
    np.testing.assert_allclose(rate.speed[0], -(10.0 / 2) / (1.0 / 3), rtol=1e-2)
    np.testing.assert_allclose(rate.angle[0], 0.0)


def test_holding_torque_of_motion_joint():
    """Test the load a motion-driven joint needs to hold a horizontal rod."""
    chain = Chain(SI)
    chain.add_child(-1, _rod(), joint=JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.MOTION))
    solver = ChainSolver(chain)
    infos, _, _ = solver.calc_dynamics(0.0, solver.current)
    np.testing.assert_allclose(infos[0].torque, 5.0, rtol=1e-12)
    np.testing.assert_allclose(infos[0].acceleration, 0.0)


def test_motion_child_moves_rigidly():
    """Test that a motion-driven child at rest with zero acceleration acts as welded on."""
    chain = Chain(SI)
    chain.add_revolute(-1, _rod())
    chain.add_child(0, _rod(), Pose.along_x(1.0),
                    JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.MOTION))
    solver = ChainSolver(chain)
    rate = solver.calc_rate(0.0, solver.current)

    welded = _rod() + MassProperties.create(SI, 1.0, _rod().mmoi, [1.5, 0.0, 0.0])
    pivot_inertia = welded.mmoi[2, 2] + welded.mass * welded.cg[0] ** 2
    expected = -10.0 * welded.mass * welded.cg[0] / pivot_inertia
    np.testing.assert_allclose(rate.speed[0], expected, rtol=1e-10)
    np.testing.assert_allclose(rate.speed[1], 0.0)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None, max_examples=10)
def test_force_balance_load_tree(seed):
    """Test that every link balances its forces for random states of a branched tree."""
    solver = ChainSolver(_tree())
    k1, k2 = jax.random.split(jax.random.PRNGKey(seed))
    states = ChainStates(jax.random.normal(k1, (4,)), jax.random.normal(k2, (4,)))
    residual = solver.check_force_balance(0.3, states)
    assert residual.shape == (4, 6)
    np.testing.assert_allclose(residual, jnp.zeros((4, 6)), atol=1e-9)


def test_force_balance_motion_chain():
    """Test force balance with motion-driven joints at the root and mid-chain."""
    def swing(t, q, qp):
        return jnp.sin(t) - 0.5 * qp

    motion = JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.MOTION, swing)
    chain = Chain(SI)
    chain.add_child(-1, _rod(), joint=motion, initial_displacement=0.4)
    chain.add_revolute(0, _rod(), Pose.along_x(1.0), initial_angle=-0.3)
    chain.add_child(1, _rod(0.4), Pose.along_x(1.0), motion, initial_speed=1.2)
    chain.add_revolute(2, _rod(0.2), Pose.along_x(1.0))
    solver = ChainSolver(chain)
    solver.step(0.01, 3)
    np.testing.assert_allclose(solver.check_force_balance(), jnp.zeros((4, 6)), atol=1e-9)
    rate = solver.calc_rate(solver.time, solver.current)
    np.testing.assert_allclose(
        rate.speed[0], jnp.sin(solver.time) - 0.5 * solver.current.speed[0], rtol=1e-12
    )


def test_static_free_body_without_gravity():
    """Test that a planar free body at rest without gravity stays at rest."""
    chain = Chain(SI)
    chain.add_free(-1, _rod(), initial_x=0.5, initial_y=-0.2, initial_angle=0.3)
    solver = ChainSolver(chain, gravity=NO_GRAVITY)
    initial = solver.current
    np.testing.assert_allclose(solver.calc_rate(0.0, initial).speed, jnp.zeros(3), atol=1e-12)
    solver.step(0.01, 2)
    np.testing.assert_allclose(solver.current.angle, initial.angle, atol=1e-12)
    np.testing.assert_allclose(solver.current.speed, initial.speed, atol=1e-12)


def test_free_body_falls_without_spinning():
    """Test that a planar free body under gravity falls at g and keeps its angle."""
    chain = Chain(SI)
    chain.add_free(-1, _rod(), initial_angle=0.7)
    solver = ChainSolver(chain)
    rate = solver.calc_rate(0.0, solver.current)
    np.testing.assert_allclose(rate.speed, [0.0, -10.0, 0.0], atol=1e-9)


def test_kinematics_of_massless_sliders_are_finite():
    """Test that the per-link kinematics of collar and free joints hold no inf or nan."""
    chain = Chain(SI)
    collar = chain.add_collar_along_x(-1, _rod(), initial_displacement=0.3, initial_angle=0.2)
    chain.add_free(collar, _rod(), Pose.along_x(1.0), initial_x=0.1, initial_y=-0.4)
    solver = ChainSolver(chain)
    states = ChainStates(solver.current.angle, jnp.linspace(-1.0, 1.0, len(chain)))
    for leaf in jax.tree_util.tree_leaves(solver.get_kinematics(0.0, states)):
        assert bool(jnp.all(jnp.isfinite(leaf)))


def test_linear_oscillator_period():
    """Test that RK4 brings a spring-driven slider back after one period."""
    def spring(t, q, qp):
        return -4.0 * q

    chain = Chain(SI)
    chain.add_child(-1, MassProperties.sphere(SI, 1.0, 0.1),
                    joint=JointProperties(JointType.SLIDE_ALONG_X, Prescribed.LOAD, spring),
                    initial_displacement=0.1)
    solver = ChainSolver(chain, jit=True)
    steps = 200
    solver.step(jnp.pi / steps, steps)
    np.testing.assert_allclose(solver.time, jnp.pi, rtol=1e-12)
    np.testing.assert_allclose(solver.current.angle, [0.1], atol=1e-6)
    np.testing.assert_allclose(solver.current.speed, [0.0], atol=1e-6)


def test_double_pendulum_energy():
    """Test that a frictionless double pendulum conserves energy."""
    chain = Chain(SI)
    chain.add_revolute(-1, _rod(), initial_angle=0.3)
    chain.add_revolute(0, _rod(), Pose.along_x(1.0), initial_angle=-0.2)
    solver = ChainSolver(chain)
    before = _energy(solver)
    solver.step(0.005, 60)
    np.testing.assert_allclose(_energy(solver), before, atol=1e-6)
    assert jnp.any(solver.current.speed != 0)


def test_inelastic_contact_stops_pendulum():
    """Test that a plastic impact cancels the approach speed of a single link."""
    chain = _pendulum()
    chain.contact_point = jnp.array([1.0, 0.0, 0.0])
    chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True)
    states = ChainStates(jnp.array([-0.01]), jnp.array([-1.0]))
    applied, after = solver.handle_contact(0.0, states)
    assert applied
    np.testing.assert_allclose(after.speed, [0.0], atol=1e-12)
    np.testing.assert_allclose(after.angle, states.angle)


def test_restitution_reverses_speed():
    """Test a partially elastic impact."""
    chain = _pendulum()
    chain.contact_point = jnp.array([1.0, 0.0, 0.0])
    chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True, restitution=0.5)
    _, after = solver.handle_contact(0.0, ChainStates(jnp.array([-0.01]), jnp.array([-1.0])))
    np.testing.assert_allclose(after.speed, [0.5], atol=1e-12)


def test_inelastic_contact_two_links():
    """Test zero normal velocity at the contact point after a plastic impact."""
    chain = Chain.uniform(SI, 2, _rod(), Pose.along_x(1.0), ABOUT_Z)
    chain.contact_point = jnp.array([2.5, 0.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True)
    states = ChainStates(jnp.array([0.0, -0.1]), jnp.array([-0.5, -1.0]))
    applied, after = solver.handle_contact(0.0, states)
    assert applied
    n_hat = screw.wrench(chain.contact_normal, chain.contact_point)
    velocity = solver.get_kinematics(0.0, after)[1].velocity
    np.testing.assert_allclose(screw.dot(n_hat, velocity), 0.0, atol=1e-9)


def test_contact_keeps_motion_joint_rate():
    """Test that a plastic impact only changes the rates of load-driven joints."""
    chain = Chain(SI)
    chain.add_child(-1, _rod(), joint=JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.MOTION))
    chain.add_revolute(0, _rod(), Pose.along_x(1.0))
    chain.contact_point = jnp.array([2.5, 0.0, 0.0])
    chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True)
    states = ChainStates(jnp.array([0.0, -0.1]), jnp.array([-0.5, -1.0]))
    applied, after = solver.handle_contact(0.0, states)
    assert applied
    np.testing.assert_allclose(after.speed, [-0.5, 1.25 / 1.5], atol=1e-9)
    n_hat = screw.wrench(chain.contact_normal, chain.contact_point)
    velocity = solver.get_kinematics(0.0, after)[1].velocity
    np.testing.assert_allclose(screw.dot(n_hat, velocity), 0.0, atol=1e-9)


def test_contact_on_motion_driven_path_is_ignored():
    """Test that no impulse acts when every joint on the path is motion-driven."""
    chain = Chain(SI)
    chain.add_child(-1, _rod(), joint=JointProperties(JointType.ROTATE_ABOUT_Z, Prescribed.MOTION))
    chain.contact_point = jnp.array([1.0, 0.0, 0.0])
    chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True)
    states = ChainStates(jnp.array([-0.01]), jnp.array([-1.0]))
    applied, after = solver.handle_contact(0.0, states)
    assert not applied
    assert after is states


def test_contact_ignored_when_separating():
    """Test that a penetrating but separating marker gets no impulse."""
    chain = _pendulum()
    chain.contact_point = jnp.array([1.0, 0.0, 0.0])
    chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True)
    states = ChainStates(jnp.array([-0.01]), jnp.array([1.0]))
    applied, after = solver.handle_contact(0.0, states)
    assert not applied
    assert after is states


def test_zero_normal_disables_contact():
    """Test that a chain without a declared normal never reports contact."""
    solver = ChainSolver(_pendulum(), enable_contacts=True)
    states = ChainStates(jnp.array([-1.0]), jnp.array([-1.0]))
    applied, _ = solver.handle_contact(0.0, states)
    assert not applied


def test_pendulum_bounces_on_floor():
    """Test that contacts keep a falling pendulum above the floor."""
    chain = _pendulum()
    chain.contact_point = jnp.array([jnp.sqrt(3.0) / 2, -0.5, 0.0])
    chain.contact_normal = jnp.array([0.0, 1.0, 0.0])
    solver = ChainSolver(chain, enable_contacts=True, restitution=0.2)
    solver.step(0.01, 80)
    tip = solver.get_kinematics(solver.time, solver.current)[0].pose.from_local_point(jnp.array([1.0, 0.0, 0.0]))
    assert tip[1] > -0.6


def test_constrained_inverse_inertia_of_single_link():
    """Test that Y reduces to the joint inverse inertia for one link."""
    solver = ChainSolver(_pendulum())
    kinematics = solver.get_kinematics(0.0, solver.current)
    articulated, _ = solver.get_articulated(kinematics)
    path, phi, y = solver.get_constrained_inverse_inertia(0, articulated)
    assert path == (0,)
    np.testing.assert_allclose(y[0], articulated[0].joint_inverse_inertia, atol=1e-12)
    assert solver.get_constrained_inverse_inertia(-1, articulated) is None


def test_articulated_forces_accumulate():
    """Test that the accumulated force of the root includes its whole subtree."""
    solver = ChainSolver(_tree())
    kinematics = solver.get_kinematics(0.0, solver.current)
    _, forces = solver.get_articulated(kinematics)
    total = sum(k.force for k in kinematics)
    np.testing.assert_allclose(forces[0], total, atol=1e-12)


def test_massless_link_raises():
    """Test that a joint with zero effective inertia stops the integration."""
    chain = Chain(SI)
    chain.add_revolute(-1, MassProperties.zero(SI))
    solver = ChainSolver(chain)
    with pytest.raises(SingularityError):
        solver.update(0.01)
    assert solver.time == 0.0


def test_reset_and_accessors():
    """Test time keeping, reset and read access to the topology."""
    solver = ChainSolver(_tree())
    initial = solver.current
    solver.step(0.01, 3)
    np.testing.assert_allclose(solver.time, 0.03)
    assert solver.count == 4
    assert solver.parent == (-1, 0, 0, 1)
    assert solver.children[0] == (1, 2)
    assert solver.get_index_to_root(3) == (0, 1, 3)
    assert len(solver.get_poses()) == 4
    solver.reset()
    assert solver.time == 0.0
    np.testing.assert_allclose(solver.current.angle, initial.angle)


def test_convert_solver():
    """Test that a converted solver follows the same motion."""
    chain = Chain(SI)
    chain.add_collar_along_y(-1, _rod(), initial_displacement=0.2, initial_angle=0.4)
    solver = ChainSolver(chain)
    solver.step(0.01, 5)
    converted = solver.convert_to(UnitSystem.MMKS)
    np.testing.assert_allclose(converted.current.angle, solver.current.angle * jnp.array([1000.0, 1.0]))
    np.testing.assert_allclose(converted.gravity, [0.0, -10000.0, 0.0])
    solver.step(0.01, 5)
    converted.step(0.01, 5)
    np.testing.assert_allclose(converted.time, solver.time)
    np.testing.assert_allclose(converted.current.angle[1], solver.current.angle[1], rtol=1e-9)
    np.testing.assert_allclose(converted.current.angle[0], 1000.0 * solver.current.angle[0], rtol=1e-9)
