"""Tests for the spatial algebra modules."""

import hypothesis
import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_multibody.exceptions import ConfigurationError
from jax_multibody.spatial import mat3, planar, screw, so3
from jax_multibody.units import UnitSystem, UnitType

hypothesis.settings.register_profile("ci", max_examples=10, deadline=None)


def _random_symmetric(key):
    a = jax.random.normal(key, (3, 3))
    return a + a.T


def _random_quaternion(key):
    q = jax.random.normal(key, (4,))
    return q / jnp.linalg.norm(q)


def _random_inertia(key):
    k1, k2, k3 = jax.random.split(key, 3)
    mass = 1.0 + jax.random.uniform(k1)
    a = jax.random.normal(k2, (3, 3))
    mmoi = a @ a.T + jnp.eye(3)
    cg = jax.random.normal(k3, (3,))
    cx = mat3.cross_matrix(cg)
    return screw.block(mass * jnp.eye(3), -mass * cx, mass * cx, mmoi + mass * mat3.mmoi(cg))


# mat3
def test_cross_matrix():
    """Test that the cross matrix reproduces the cross product."""
    a = jnp.array([1.0, -2.0, 0.5])
    b = jnp.array([0.3, 4.0, -1.0])
    np.testing.assert_allclose(mat3.cross_matrix(a) @ b, jnp.cross(a, b), rtol=1e-12)


def test_mmoi_of_point():
    """Test mmoi(r) == -[r x][r x]."""
    r = jnp.array([1.0, 2.0, 3.0])
    cx = mat3.cross_matrix(r)
    np.testing.assert_allclose(mat3.mmoi(r), -cx @ cx, atol=1e-12)


def test_symmetric_and_skew_parts():
    """Test that a matrix splits into its symmetric and skew parts."""
    a = jnp.arange(9.0).reshape(3, 3)
    np.testing.assert_allclose(mat3.symmetric_part(a) + mat3.skew_part(a), a)
    np.testing.assert_allclose(mat3.skew_part(a), -mat3.transpose(mat3.skew_part(a)))


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_inverse_and_solve(seed):
    """Test the analytic 3x3 inverse against identity and solve."""
    key = jax.random.PRNGKey(seed)
    k1, k2 = jax.random.split(key)
    a = jax.random.normal(k1, (3, 3)) + 6 * jnp.eye(3)
    b = jax.random.normal(k2, (3,))
    np.testing.assert_allclose(a @ mat3.inverse(a), jnp.eye(3), atol=1e-9)
    np.testing.assert_allclose(a @ mat3.solve(a, b), b, atol=1e-9)
    np.testing.assert_allclose(mat3.determinant(a), jnp.linalg.det(a), rtol=1e-9)


def test_eigen_diagonal():
    """Test eigenvalues of a diagonal matrix come out ascending."""
    a = mat3.diagonal(jnp.array([3.0, 1.0, 2.0]))
    np.testing.assert_allclose(mat3.eigenvalues(a), [1.0, 2.0, 3.0], atol=1e-9)


def test_eigen_repeated():
    """Test eigenvectors stay orthonormal for repeated eigenvalues."""
    a = mat3.diagonal(jnp.array([2.0, 2.0, 5.0]))
    values = mat3.eigenvalues(a)
    vectors = mat3.eigenvectors(a, values)
    np.testing.assert_allclose(values, [2.0, 2.0, 5.0], atol=1e-9)
    np.testing.assert_allclose(vectors.T @ vectors, jnp.eye(3), atol=1e-9)
    np.testing.assert_allclose(a @ vectors, vectors * values, atol=1e-9)


@pytest.mark.parametrize("diag", [[1.0, 1.0, 2.0], [1.0, 3.0, 3.0]])
def test_eigen_rotated_double_root(diag):
    """Test that a rotated matrix with a double eigenvalue keeps full precision."""
    r = mat3.rotation(jnp.array([1.0, 2.0, 2.0]) / 3.0, 0.7)
    a = r @ mat3.diagonal(jnp.array(diag)) @ r.T
    values = mat3.eigenvalues(a)
    vectors = mat3.eigenvectors(a, values)
    np.testing.assert_allclose(values, diag, rtol=0, atol=1e-12)
    np.testing.assert_allclose(a @ vectors, vectors * values, atol=1e-9)
    np.testing.assert_allclose(vectors.T @ vectors, jnp.eye(3), atol=1e-9)


def test_eigen_scalar_matrix():
    """Test that a multiple of identity yields an orthonormal basis."""
    vectors = mat3.eigenvectors(mat3.scalar(4.0))
    np.testing.assert_allclose(vectors.T @ vectors, jnp.eye(3), atol=1e-12)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_eigen_random(seed):
    """Test a V = V diag(values) and orthonormality for random symmetric matrices."""
    a = _random_symmetric(jax.random.PRNGKey(seed))
    values = mat3.eigenvalues(a)
    vectors = mat3.eigenvectors(a, values)
    np.testing.assert_allclose(values, jnp.linalg.eigvalsh(a), atol=1e-8)
    np.testing.assert_allclose(a @ vectors, vectors * values, atol=1e-6)
    np.testing.assert_allclose(vectors.T @ vectors, jnp.eye(3), atol=1e-6)
    np.testing.assert_allclose(jnp.linalg.det(vectors), 1.0, atol=1e-6)


def test_axis_rotation_matches_quaternion():
    """Test the Rodrigues matrix against the quaternion rotation."""
    axis = jnp.array([1.0, 2.0, 2.0]) / 3.0
    np.testing.assert_allclose(mat3.rotation(axis, 0.8), so3.to_matrix(so3.from_axis_angle(axis, 0.8)), atol=1e-12)
    rows = mat3.from_rows(jnp.array([1.0, 2.0, 3.0]), jnp.zeros(3), jnp.ones(3))
    np.testing.assert_allclose(mat3.from_columns(rows[0], rows[1], rows[2]), rows.T)


# so3
def test_quaternion_matrix_round_trip():
    """Test from_matrix(to_matrix(q)) up to sign."""
    q = so3.from_axis_angle(jnp.array([1.0, 2.0, -1.0]), 2.5)
    back = so3.from_matrix(so3.to_matrix(q))
    np.testing.assert_allclose(jnp.abs(jnp.dot(back, q)), 1.0, atol=1e-9)


def test_rotate_about_z():
    """Test that a quarter turn about z maps x onto y."""
    q = so3.about_z(jnp.pi / 2)
    np.testing.assert_allclose(so3.rotate(q, jnp.array([1.0, 0.0, 0.0])), [0.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(so3.to_matrix(q), mat3.rotation_z(jnp.pi / 2), atol=1e-12)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_multiply_matches_matrix_product(seed):
    """Test that quaternion products compose like rotation matrices."""
    k1, k2, k3 = jax.random.split(jax.random.PRNGKey(seed), 3)
    q1, q2 = _random_quaternion(k1), _random_quaternion(k2)
    v = jax.random.normal(k3, (3,))
    np.testing.assert_allclose(
        so3.to_matrix(so3.multiply(q1, q2)), so3.to_matrix(q1) @ so3.to_matrix(q2), atol=1e-9
    )
    np.testing.assert_allclose(so3.inverse_rotate(q1, so3.rotate(q1, v)), v, atol=1e-9)


def test_derivative_about_z():
    """Test the quaternion rate of a spin about z."""
    q = so3.identity()
    np.testing.assert_allclose(so3.derivative(q, jnp.array([0.0, 0.0, 2.0])), [0.0, 0.0, 0.0, 1.0])


def test_exp_of_rotation_vector():
    """Test the exponential map, including the zero rotation."""
    np.testing.assert_allclose(so3.exp(jnp.array([0.0, 0.0, jnp.pi / 2])), so3.about_z(jnp.pi / 2), atol=1e-12)
    np.testing.assert_allclose(so3.exp(jnp.zeros(3)), so3.identity())


# screw
def test_twist_of_rotation():
    """Test that a pure rotation about an offset axis moves the origin."""
    t = screw.twist(jnp.array([0.0, 0.0, 1.0]), [1.0, 0.0, 0.0])
    np.testing.assert_allclose(screw.twist_value_at(t, jnp.array([1.0, 0.0, 0.0])), jnp.zeros(3), atol=1e-12)
    np.testing.assert_allclose(screw.linear(t), [0.0, -1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(screw.twist_position(t), [1.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(screw.twist_pitch(t), 0.0, atol=1e-12)


def test_twist_and_wrench_at_point():
    """Test construction from the velocity or moment at a given point."""
    r = jnp.array([1.0, -2.0, 0.5])
    t = screw.twist_at(jnp.array([0.3, 0.0, 1.0]), jnp.array([0.0, 2.0, 1.0]), r)
    np.testing.assert_allclose(screw.twist_value_at(t, r), [0.3, 0.0, 1.0], atol=1e-12)
    w = screw.wrench_at(jnp.array([1.0, 1.0, 0.0]), jnp.array([0.0, 0.0, 4.0]), r)
    np.testing.assert_allclose(screw.wrench_moment_at(w, r), [1.0, 1.0, 0.0], atol=1e-12)


def test_wrench_position_and_pitch():
    """Test recovery of the line of action and pitch of a screw wrench."""
    w = screw.wrench(jnp.array([0.0, 2.0, 0.0]), [0.0, 0.0, 3.0], 0.5)
    np.testing.assert_allclose(screw.wrench_position(w), [0.0, 0.0, 3.0], atol=1e-12)
    np.testing.assert_allclose(screw.wrench_pitch(w), 0.5, atol=1e-12)
    np.testing.assert_allclose(screw.wrench_moment_at(w, jnp.array([0.0, 0.0, 3.0])), [0.0, 1.0, 0.0], atol=1e-12)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_power_is_frame_independent(seed):
    """Test that twist . wrench equals the power computed at any point."""
    k1, k2, k3 = jax.random.split(jax.random.PRNGKey(seed), 3)
    t = jax.random.normal(k1, (6,))
    w = jax.random.normal(k2, (6,))
    p = jax.random.normal(k3, (3,))
    power = jnp.dot(screw.twist_value_at(t, p), screw.linear(w)) + jnp.dot(
        screw.angular(t), screw.wrench_moment_at(w, p)
    )
    np.testing.assert_allclose(screw.dot(t, w), power, rtol=1e-9, atol=1e-9)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_cross_products(seed):
    """Test the duality of the motion and force cross products."""
    k1, k2, k3 = jax.random.split(jax.random.PRNGKey(seed), 3)
    a, b = jax.random.normal(k1, (6,)), jax.random.normal(k2, (6,))
    w = jax.random.normal(k3, (6,))
    np.testing.assert_allclose(screw.cross_twist_twist(a, a), jnp.zeros(6), atol=1e-12)
    np.testing.assert_allclose(
        screw.dot(screw.cross_twist_twist(a, b), w), -screw.dot(b, screw.cross_twist_wrench(a, w)), atol=1e-9
    )
    np.testing.assert_allclose(screw.cross_wrench_twist(w, a), -screw.cross_twist_wrench(a, w), atol=1e-12)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_spatial_inverse(seed):
    """Test the block inverse and solve of a spatial inertia."""
    k1, k2 = jax.random.split(jax.random.PRNGKey(seed))
    m = _random_inertia(k1)
    x = jax.random.normal(k2, (6,))
    np.testing.assert_allclose(m @ screw.inverse(m), jnp.eye(6), atol=1e-8)
    np.testing.assert_allclose(screw.mul(m, screw.solve(m, x)), x, atol=1e-8)
    np.testing.assert_allclose(screw.determinant(m), jnp.linalg.det(m), rtol=1e-8)


def test_quadratic_and_outer():
    """Test s' M s and the outer product on a diagonal matrix."""
    s = jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 2.0])
    m = jnp.diag(jnp.arange(1.0, 7.0))
    np.testing.assert_allclose(screw.quadratic(s, m), 1.0 + 4.0 * 6.0)
    np.testing.assert_allclose(screw.outer(s, s)[5, 0], 2.0)


def test_blocks_round_trip():
    """Test that block and blocks are inverses."""
    a11, a12, a21, a22 = (jnp.full((3, 3), float(i)) for i in range(4))
    np.testing.assert_allclose(jnp.stack(screw.blocks(screw.block(a11, a12, a21, a22))),
                               jnp.stack([a11, a12, a21, a22]))


def test_batched_twists():
    """Test twist construction with a leading batch dimension."""
    values = jnp.tile(jnp.array([0.0, 0.0, 1.0]), (5, 1))
    positions = jnp.arange(15.0).reshape(5, 3)
    t = screw.twist(values, positions)
    assert t.shape == (5, 6)
    np.testing.assert_allclose(screw.twist_position(t)[:, :2], positions[:, :2], atol=1e-9)


def test_convert_twist_and_wrench():
    """Test the length factor placement in twist and wrench conversion."""
    x = jnp.ones(6)
    t = screw.convert_twist(x, UnitSystem.SI, UnitSystem.MMKS)
    w = screw.convert_wrench(x, UnitSystem.SI, UnitSystem.MMKS)
    np.testing.assert_allclose(t, [1000.0] * 3 + [1.0] * 3)
    np.testing.assert_allclose(w, [1.0] * 3 + [1000.0] * 3)
    np.testing.assert_allclose(screw.convert(x, UnitSystem.SI, UnitSystem.MMKS, UnitType.LENGTH), t)
    with pytest.raises(ConfigurationError):
        screw.convert(x, UnitSystem.SI, UnitSystem.MMKS, UnitType.TIME)


def test_jit_twist_value():
    """Test twist_value_at under JIT."""
    t = jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 1.0])
    value = jax.jit(screw.twist_value_at)(t, jnp.array([0.0, 1.0, 0.0]))
    np.testing.assert_allclose(value, [0.0, 0.0, 0.0], atol=1e-12)


# planar
def test_planar_twist_value():
    """Test that a planar rotation about a point leaves the point at rest."""
    p = jnp.array([2.0, -1.0])
    t = planar.twist(3.0, p)
    np.testing.assert_allclose(planar.twist_value_at(t, p), jnp.zeros(2), atol=1e-12)


def test_planar_wrench_moment():
    """Test the moment of a planar force about its own line of action."""
    p = jnp.array([1.0, 1.0])
    w = planar.wrench(jnp.array([0.0, 2.0]), p)
    np.testing.assert_allclose(planar.wrench_moment_at(w, p), 0.0, atol=1e-12)
    np.testing.assert_allclose(planar.scalar(w), 2.0, atol=1e-12)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_planar_inverse(seed):
    """Test the block inverse of a planar inertia."""
    k1, k2, k3 = jax.random.split(jax.random.PRNGKey(seed), 3)
    mass = 1.0 + jax.random.uniform(k1)
    c = jax.random.normal(k2, (2,))
    inertia = 1.0 + jax.random.uniform(k3)
    cp = planar.perpendicular(c)
    a = planar.block(mass * jnp.eye(2), -mass * cp, -mass * cp, inertia + mass * jnp.dot(c, c))
    np.testing.assert_allclose(a @ planar.inverse(a), jnp.eye(3), atol=1e-8)
    x = jnp.array([1.0, -2.0, 0.5])
    np.testing.assert_allclose(planar.mul(a, planar.solve(a, x)), x, atol=1e-8)


def test_planar_power():
    """Test that the planar dot product is frame independent."""
    t = jnp.array([1.0, 2.0, 0.5])
    w = jnp.array([-1.0, 0.5, 2.0])
    p = jnp.array([0.3, -0.7])
    power = jnp.dot(planar.twist_value_at(t, p), planar.vector(w)) + planar.scalar(t) * planar.wrench_moment_at(w, p)
    np.testing.assert_allclose(planar.dot(t, w), power, atol=1e-12)
