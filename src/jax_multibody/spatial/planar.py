"""Planar spatial algebra: the 3-dof analogue of :mod:`screw`.

Planar vectors are ``(..., 3)`` arrays ``[x, y, s]``. Twists hold the velocity
of the origin and the rotation rate about the out-of-plane axis; wrenches hold
the in-plane force and the moment about the origin. Planar matrices are
``(..., 3, 3)`` arrays read as ``[[M, u], [vᵀ, s]]`` with a 2x2 block ``M``,
two 2-vectors ``u``/``v`` and a scalar ``s``.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def compose(vector: Array, value: Array) -> Array:
    vector = jnp.asarray(vector, dtype=jnp.float64)
    value = jnp.asarray(value, dtype=jnp.float64)
    return jnp.concatenate([vector, value[..., None]], axis=-1)


def vector(x: Array) -> Array:
    return x[..., :2]


def scalar(x: Array) -> Array:
    return x[..., 2]


def cross(a: Array, b: Array) -> Array:
    """Out-of-plane component of ``a × b`` for 2-vectors."""
    return a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]


def perpendicular(v: Array) -> Array:
    """``ẑ × v``, the 2-vector rotated a quarter turn counter-clockwise."""
    return jnp.stack([-v[..., 1], v[..., 0]], axis=-1)


def twist(value: Array, position: Array) -> Array:
    """Twist of a rotation rate ``value`` about the point ``position``."""
    value = jnp.asarray(value, dtype=jnp.float64)
    position = jnp.asarray(position, dtype=jnp.float64)
    # position × (value ẑ)
    return compose(-value[..., None] * perpendicular(position), value)


def pure_twist(value: Array) -> Array:
    value = jnp.asarray(value, dtype=jnp.float64)
    return compose(value, jnp.zeros(value.shape[:-1]))


def wrench(value: Array, position: Array) -> Array:
    """Wrench of the force ``value`` acting through ``position``."""
    value = jnp.asarray(value, dtype=jnp.float64)
    position = jnp.asarray(position, dtype=jnp.float64)
    return compose(value, cross(position, value))


def pure_wrench(value: Array) -> Array:
    value = jnp.asarray(value, dtype=jnp.float64)
    return compose(jnp.zeros(value.shape + (2,)), value)


def twist_value_at(t: Array, point: Array) -> Array:
    """Velocity of ``point`` moving with twist ``t``."""
    return vector(t) + scalar(t)[..., None] * perpendicular(point)


def wrench_moment_at(w: Array, point: Array) -> Array:
    return scalar(w) - cross(point, vector(w))


def dot(a: Array, b: Array) -> Array:
    return jnp.sum(a * b, axis=-1)


def outer(a: Array, b: Array) -> Array:
    return a[..., :, None] * b[..., None, :]


def cross_twist_twist(a: Array, b: Array) -> Array:
    wa, wb = scalar(a)[..., None], scalar(b)[..., None]
    v = wa * perpendicular(vector(b)) - wb * perpendicular(vector(a))
    return compose(v, jnp.zeros(v.shape[:-1]))


def cross_twist_wrench(a: Array, b: Array) -> Array:
    wa = scalar(a)[..., None]
    return compose(wa * perpendicular(vector(b)), cross(vector(a), vector(b)))


def cross_wrench_twist(a: Array, b: Array) -> Array:
    wb = scalar(b)[..., None]
    return compose(-wb * perpendicular(vector(a)), cross(vector(a), vector(b)))


def cross_wrench_wrench(a: Array, b: Array) -> Array:
    ta, tb = scalar(a)[..., None], scalar(b)[..., None]
    f = ta * perpendicular(vector(b)) - tb * perpendicular(vector(a))
    return compose(f, cross(vector(a), vector(b)))


def block(m: Array, u: Array, v: Array, s: Array) -> Array:
    """Assemble ``[[m, u], [vᵀ, s]]``."""
    m = jnp.asarray(m, dtype=jnp.float64)
    u = jnp.asarray(u, dtype=jnp.float64)
    v = jnp.asarray(v, dtype=jnp.float64)
    s = jnp.asarray(s, dtype=jnp.float64)
    top = jnp.concatenate([m, u[..., :, None]], axis=-1)
    bottom = jnp.concatenate([v, s[..., None]], axis=-1)[..., None, :]
    return jnp.concatenate([top, bottom], axis=-2)


def blocks(a: Array):
    """Split into ``(m, u, v, s)``."""
    return a[..., :2, :2], a[..., :2, 2], a[..., 2, :2], a[..., 2, 2]


def mul(a: Array, x: Array) -> Array:
    return jnp.einsum("...ij,...j->...i", a, x)


def _inverse2(m: Array) -> Array:
    det = m[..., 0, 0] * m[..., 1, 1] - m[..., 0, 1] * m[..., 1, 0]
    adj = jnp.stack([
        jnp.stack([m[..., 1, 1], -m[..., 0, 1]], axis=-1),
        jnp.stack([-m[..., 1, 0], m[..., 0, 0]], axis=-1),
    ], axis=-2)
    return adj / det[..., None, None]


def _mul2(m: Array, v: Array) -> Array:
    return jnp.einsum("...ij,...j->...i", m, v)


def inverse(a: Array) -> Array:
    """
    Inverse of a planar matrix from its blocks.

    Requires the 2x2 block, the scalar and their Schur complements to be
    invertible, as they are for planar inertias of bodies with mass.
    """
    m, u, v, s = blocks(a)
    s_ = s[..., None]
    eye = jnp.eye(2, dtype=a.dtype)
    m_inv = _inverse2(m)
    # upper right column and lower right scalar, through the complement of s
    u1 = _mul2(_inverse2(m - outer(u, v) / s[..., None, None]), -u / s_)
    t = (1.0 - jnp.sum(v * u1, axis=-1)) / s
    # lower left row and upper left block, through the complement of m
    r2 = _mul2(jnp.swapaxes(m_inv, -1, -2), v)
    u2 = r2 / (jnp.sum(u * r2, axis=-1) - s)[..., None]
    upper = m_inv @ (eye - outer(u, u2))
    return block(upper, u1, u2, t)


def solve(a: Array, x: Array) -> Array:
    return mul(inverse(a), x)
