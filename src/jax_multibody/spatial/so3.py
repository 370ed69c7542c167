"""Quaternion rotations in JAX.

Quaternions are ``(..., 4)`` arrays in ``(w, x, y, z)`` order. Rotations do
not assume unit norm: :func:`to_matrix` normalises first, so quaternions that
drift during numerical integration still rotate rigidly.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def identity(dtype=jnp.float64) -> Array:
    return jnp.array([1.0, 0.0, 0.0, 0.0], dtype=dtype)


def from_axis_angle(axis: Array, angle: Array) -> Array:
    """
    Quaternion rotating by ``angle`` about ``axis``.

    Args:
        axis: (..., 3) rotation axis, normalised internally
        angle: (...) rotation angle in radians

    Returns:
        (..., 4) unit quaternion
    """
    axis = jnp.asarray(axis, dtype=jnp.float64)
    angle = jnp.asarray(angle, dtype=jnp.float64)
    axis = axis / jnp.linalg.norm(axis, axis=-1, keepdims=True)
    half = 0.5 * angle
    return jnp.concatenate(
        [jnp.cos(half)[..., None], jnp.sin(half)[..., None] * axis], axis=-1
    )


def about_x(angle: Array) -> Array:
    return from_axis_angle(jnp.array([1.0, 0.0, 0.0]), angle)


def about_y(angle: Array) -> Array:
    return from_axis_angle(jnp.array([0.0, 1.0, 0.0]), angle)


def about_z(angle: Array) -> Array:
    return from_axis_angle(jnp.array([0.0, 0.0, 1.0]), angle)


def multiply(q1: Array, q2: Array) -> Array:
    """
    Hamilton product ``q1 ⊗ q2`` (apply ``q2`` first, then ``q1``).

    Args:
        q1: (..., 4) left quaternion
        q2: (..., 4) right quaternion

    Returns:
        (..., 4) product
    """
    w1, x1, y1, z1 = jnp.moveaxis(q1, -1, 0)
    w2, x2, y2, z2 = jnp.moveaxis(q2, -1, 0)
    return jnp.stack([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ], axis=-1)


def conjugate(q: Array) -> Array:
    return q * jnp.array([1.0, -1.0, -1.0, -1.0], dtype=q.dtype)


def inverse(q: Array) -> Array:
    return conjugate(q) / jnp.sum(q * q, axis=-1, keepdims=True)


def normalize(q: Array) -> Array:
    return q / jnp.linalg.norm(q, axis=-1, keepdims=True)


def to_matrix(q: Array) -> Array:
    """
    Rotation matrix of a quaternion.

    Args:
        q: (..., 4) quaternion in (w, x, y, z) format, any non-zero norm

    Returns:
        (..., 3, 3) rotation matrix
    """
    w, x, y, z = jnp.moveaxis(normalize(q), -1, 0)
    xx, yy, zz = x * x, y * y, z * z
    wx, wy, wz = w * x, w * y, w * z
    xy, xz, yz = x * y, x * z, y * z
    return jnp.stack([
        jnp.stack([1 - 2 * (yy + zz), 2 * (xy - wz), 2 * (xz + wy)], axis=-1),
        jnp.stack([2 * (xy + wz), 1 - 2 * (xx + zz), 2 * (yz - wx)], axis=-1),
        jnp.stack([2 * (xz - wy), 2 * (yz + wx), 1 - 2 * (xx + yy)], axis=-1),
    ], axis=-2)


def from_matrix(matrix: Array) -> Array:
    """
    Unit quaternion of a rotation matrix, with non-negative scalar part.

    The four classical extraction formulas are evaluated for the whole batch
    and the best conditioned one is selected per matrix.

    Args:
        matrix: (..., 3, 3) rotation matrix

    Returns:
        (..., 4) quaternion in (w, x, y, z) format
    """
    m = matrix
    trace = m[..., 0, 0] + m[..., 1, 1] + m[..., 2, 2]
    candidates = jnp.stack([
        jnp.stack([1.0 + trace, m[..., 2, 1] - m[..., 1, 2],
                   m[..., 0, 2] - m[..., 2, 0], m[..., 1, 0] - m[..., 0, 1]], axis=-1),
        jnp.stack([m[..., 2, 1] - m[..., 1, 2], 1.0 + m[..., 0, 0] - m[..., 1, 1] - m[..., 2, 2],
                   m[..., 0, 1] + m[..., 1, 0], m[..., 0, 2] + m[..., 2, 0]], axis=-1),
        jnp.stack([m[..., 0, 2] - m[..., 2, 0], m[..., 0, 1] + m[..., 1, 0],
                   1.0 + m[..., 1, 1] - m[..., 0, 0] - m[..., 2, 2], m[..., 1, 2] + m[..., 2, 1]], axis=-1),
        jnp.stack([m[..., 1, 0] - m[..., 0, 1], m[..., 0, 2] + m[..., 2, 0],
                   m[..., 1, 2] + m[..., 2, 1], 1.0 + m[..., 2, 2] - m[..., 0, 0] - m[..., 1, 1]], axis=-1),
    ], axis=-2)
    # Shepperd: pivot on the largest of the trace and the diagonal
    pivots = jnp.stack([
        trace, m[..., 0, 0], m[..., 1, 1], m[..., 2, 2]
    ], axis=-1)
    k = jnp.argmax(pivots, axis=-1)
    q = jnp.take_along_axis(candidates, k[..., None, None], axis=-2)[..., 0, :]
    q = normalize(q)
    return jnp.where(q[..., 0:1] < 0, -q, q)


def rotate(q: Array, v: Array) -> Array:
    """Rotate ``(..., 3)`` vectors by quaternion ``q``."""
    return jnp.einsum("...ij,...j->...i", to_matrix(q), v)


def inverse_rotate(q: Array, v: Array) -> Array:
    """Rotate ``(..., 3)`` vectors by the inverse of ``q``."""
    return jnp.einsum("...ji,...j->...i", to_matrix(q), v)


def derivative(q: Array, omega: Array) -> Array:
    """
    Time derivative of ``q`` under world-frame angular velocity ``omega``.

    ``q̇ = ½ (0, ω) ⊗ q``

    Args:
        q: (..., 4) orientation
        omega: (..., 3) angular velocity

    Returns:
        (..., 4) quaternion rate
    """
    pure = jnp.concatenate([jnp.zeros_like(omega[..., :1]), omega], axis=-1)
    return 0.5 * multiply(pure, q)


def exp(rotation_vector: Array) -> Array:
    """Quaternion of the rotation ``|v|`` about ``v / |v|``; identity for ``v = 0``."""
    v = jnp.asarray(rotation_vector, dtype=jnp.float64)
    angle = jnp.linalg.norm(v, axis=-1, keepdims=True)
    # sin(θ/2)/θ through sinc stays finite at θ = 0
    return jnp.concatenate([jnp.cos(angle / 2), 0.5 * jnp.sinc(angle / (2 * jnp.pi)) * v], axis=-1)
