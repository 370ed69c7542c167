"""Spatial (screw) vectors and 6x6 block matrices.

A spatial vector is a ``(..., 6)`` array made of two 3-vectors. Twists
(motion) store ``[v, ω]``: the linear velocity of the point at the origin
followed by the angular velocity. Wrenches (loads) store ``[F, τ]``: the force
followed by the moment about the origin. Both share storage, but composing
them needs the matching cross product variant: passing a wrench where a twist
is expected gives wrong numbers without any error.

Spatial matrices are ``(..., 6, 6)`` arrays handled as four 3x3 blocks. They
are inverted through Schur complements of the diagonal blocks.
"""

import jax
import jax.numpy as jnp

from . import mat3
from .. import units as _units
from ..exceptions import ConfigurationError
from ..units import UnitSystem, UnitType

Array = jax.Array


def compose(first: Array, second: Array) -> Array:
    """Stack two ``(..., 3)`` vectors into one ``(..., 6)`` spatial vector."""
    first, second = jnp.broadcast_arrays(
        jnp.asarray(first, dtype=jnp.float64), jnp.asarray(second, dtype=jnp.float64)
    )
    return jnp.concatenate([first, second], axis=-1)


def linear(x: Array) -> Array:
    return x[..., :3]


def angular(x: Array) -> Array:
    return x[..., 3:]


def zero() -> Array:
    return jnp.zeros(6)


def twist(value: Array, position: Array, pitch: Array = 0.0) -> Array:
    """
    Twist of a rotation ``value`` about an axis through ``position``.

    Args:
        value: (..., 3) angular velocity
        position: (..., 3) any point on the rotation axis
        pitch: (...) linear speed along the axis per unit of rotation

    Returns:
        (..., 6) twist ``[position × value + pitch·value, value]``
    """
    value = jnp.asarray(value, dtype=jnp.float64)
    pitch = jnp.asarray(pitch, dtype=jnp.float64)[..., None]
    position = jnp.asarray(position, dtype=jnp.float64)
    return compose(jnp.cross(position, value) + pitch * value, value)


def twist_at(moment: Array, value: Array, position: Array) -> Array:
    """Twist whose point ``position`` moves at ``moment`` while rotating at ``value``."""
    value = jnp.asarray(value, dtype=jnp.float64)
    position = jnp.asarray(position, dtype=jnp.float64)
    return compose(moment + jnp.cross(position, value), value)


def pure_twist(value: Array) -> Array:
    """Translation-only twist ``[value, 0]``."""
    value = jnp.asarray(value, dtype=jnp.float64)
    return compose(value, jnp.zeros_like(value))


def wrench(value: Array, position: Array, pitch: Array = 0.0) -> Array:
    """
    Wrench of a force ``value`` acting along a line through ``position``.

    Args:
        value: (..., 3) force
        position: (..., 3) any point on the line of action
        pitch: (...) moment along the line per unit of force

    Returns:
        (..., 6) wrench ``[value, position × value + pitch·value]``
    """
    value = jnp.asarray(value, dtype=jnp.float64)
    pitch = jnp.asarray(pitch, dtype=jnp.float64)[..., None]
    position = jnp.asarray(position, dtype=jnp.float64)
    return compose(value, jnp.cross(position, value) + pitch * value)


def wrench_at(moment: Array, value: Array, position: Array) -> Array:
    """Wrench of force ``value`` with moment ``moment`` about ``position``."""
    value = jnp.asarray(value, dtype=jnp.float64)
    position = jnp.asarray(position, dtype=jnp.float64)
    return compose(value, moment + jnp.cross(position, value))


def pure_wrench(value: Array) -> Array:
    """Pure moment wrench ``[0, value]``."""
    value = jnp.asarray(value, dtype=jnp.float64)
    return compose(jnp.zeros_like(value), value)


def twist_value_at(t: Array, point: Array) -> Array:
    """Linear velocity of ``point`` moving with twist ``t``: ``v + ω × r``."""
    return linear(t) + jnp.cross(angular(t), point)


def wrench_moment_at(w: Array, point: Array) -> Array:
    """Moment of wrench ``w`` about ``point``: ``τ − r × F``."""
    return angular(w) - jnp.cross(point, linear(w))


def twist_pitch(t: Array) -> Array:
    """Pitch ``ω·v / |ω|²`` of a rotating twist."""
    w = angular(t)
    return jnp.sum(w * linear(t), axis=-1) / jnp.sum(w * w, axis=-1)


def twist_position(t: Array) -> Array:
    """Point on the screw axis closest to the origin: ``ω × v / |ω|²``."""
    w = angular(t)
    return jnp.cross(w, linear(t)) / jnp.sum(w * w, axis=-1)[..., None]


def wrench_pitch(w: Array) -> Array:
    f = linear(w)
    return jnp.sum(f * angular(w), axis=-1) / jnp.sum(f * f, axis=-1)


def wrench_position(w: Array) -> Array:
    """Point on the line of action closest to the origin: ``F × τ / |F|²``."""
    f = linear(w)
    return jnp.cross(f, angular(w)) / jnp.sum(f * f, axis=-1)[..., None]


def dot(a: Array, b: Array) -> Array:
    """Reciprocal product; twist·wrench is power."""
    return jnp.sum(a * b, axis=-1)


def outer(a: Array, b: Array) -> Array:
    """``(..., 6, 6)`` matrix ``a bᵀ``."""
    return a[..., :, None] * b[..., None, :]


def cross_twist_twist(a: Array, b: Array) -> Array:
    """Motion cross product ``a ×ᵐ b`` of two twists."""
    va, wa = linear(a), angular(a)
    vb, wb = linear(b), angular(b)
    return jnp.concatenate(
        [jnp.cross(wa, vb) + jnp.cross(va, wb), jnp.cross(wa, wb)], axis=-1
    )


def cross_twist_wrench(a: Array, b: Array) -> Array:
    """Force cross product ``a ×* b`` of a twist and a wrench."""
    va, wa = linear(a), angular(a)
    fb, tb = linear(b), angular(b)
    return jnp.concatenate(
        [jnp.cross(wa, fb), jnp.cross(va, fb) + jnp.cross(wa, tb)], axis=-1
    )


def cross_wrench_twist(a: Array, b: Array) -> Array:
    """Cross product of a wrench ``a`` with a twist ``b``; equals ``-cross_twist_wrench(b, a)``."""
    fa, ta = linear(a), angular(a)
    vb, wb = linear(b), angular(b)
    return jnp.concatenate(
        [jnp.cross(fa, wb), jnp.cross(fa, vb) + jnp.cross(ta, wb)], axis=-1
    )


def cross_wrench_wrench(a: Array, b: Array) -> Array:
    fa, ta = linear(a), angular(a)
    fb, tb = linear(b), angular(b)
    return jnp.concatenate(
        [jnp.cross(fa, tb) + jnp.cross(ta, fb), jnp.cross(fa, fb)], axis=-1
    )


def identity() -> Array:
    return jnp.eye(6)


def block(a11: Array, a12: Array, a21: Array, a22: Array) -> Array:
    """Assemble ``[[a11, a12], [a21, a22]]`` from ``(..., 3, 3)`` blocks."""
    a11, a12, a21, a22 = jnp.broadcast_arrays(a11, a12, a21, a22)
    top = jnp.concatenate([a11, a12], axis=-1)
    bottom = jnp.concatenate([a21, a22], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)


def blocks(m: Array):
    """Split a spatial matrix into its ``(a11, a12, a21, a22)`` blocks."""
    return m[..., :3, :3], m[..., :3, 3:], m[..., 3:, :3], m[..., 3:, 3:]


def transpose(m: Array) -> Array:
    return jnp.swapaxes(m, -1, -2)


def mul(m: Array, x: Array) -> Array:
    """Spatial matrix times spatial vector."""
    return jnp.einsum("...ij,...j->...i", m, x)


def matmul(a: Array, b: Array) -> Array:
    return jnp.matmul(a, b)


def quadratic(s: Array, m: Array) -> Array:
    """Scalar ``sᵀ m s``."""
    return dot(s, mul(m, s))


def determinant(m: Array) -> Array:
    """``det(A22)·det(A11 − A12 A22⁻¹ A21)``."""
    a11, a12, a21, a22 = blocks(m)
    schur = a11 - a12 @ mat3.inverse(a22) @ a21
    return mat3.determinant(a22) * mat3.determinant(schur)


def inverse(m: Array) -> Array:
    """
    Inverse of a spatial matrix through block Schur complements.

    Both diagonal blocks must be invertible, which holds for spatial inertias
    of bodies with positive mass and for their articulated sums.

    Args:
        m: (..., 6, 6) spatial matrix

    Returns:
        (..., 6, 6) inverse
    """
    a11, a12, a21, a22 = blocks(m)
    a11_inv = mat3.inverse(a11)
    a22_inv = mat3.inverse(a22)
    s11 = mat3.inverse(a11 - a12 @ a22_inv @ a21)
    s22 = mat3.inverse(a22 - a21 @ a11_inv @ a12)
    return block(s11, -s11 @ a12 @ a22_inv, -s22 @ a21 @ a11_inv, s22)


def solve(m: Array, x: Array) -> Array:
    """Solve ``m y = x`` for a spatial vector ``y`` without forming ``m⁻¹``."""
    a11, a12, a21, a22 = blocks(m)
    x1, x2 = linear(x), angular(x)
    a11_inv = mat3.inverse(a11)
    a22_inv = mat3.inverse(a22)
    y1 = mat3.solve(a11 - a12 @ a22_inv @ a21, x1 - mat3.mul(a12, mat3.mul(a22_inv, x2)))
    y2 = mat3.solve(a22 - a21 @ a11_inv @ a12, x2 - mat3.mul(a21, mat3.mul(a11_inv, x1)))
    return jnp.concatenate([y1, y2], axis=-1)


def convert_twist(
    x: Array, units: UnitSystem, target: UnitSystem, unit: _units.Unit = _units.NONE
) -> Array:
    """
    Convert a twist whose angular part carries ``unit``.

    The linear part is the angular part times a length, so it picks up one
    extra length factor.
    """
    f = unit.convert(units, target)
    fl = _units.LENGTH.convert(units, target)
    return compose(f * fl * linear(x), f * angular(x))


def convert_wrench(
    x: Array, units: UnitSystem, target: UnitSystem, unit: _units.Unit = _units.FORCE
) -> Array:
    """
    Convert a wrench whose linear part carries ``unit``.

    The moment part is the linear part times a length, so it picks up one
    extra length factor.
    """
    f = unit.convert(units, target)
    fl = _units.LENGTH.convert(units, target)
    return compose(f * linear(x), f * fl * angular(x))


def convert(x: Array, units: UnitSystem, target: UnitSystem, unit_type: UnitType) -> Array:
    """
    Convert a spatial vector tagged by a base dimension.

    ``LENGTH`` tags a displacement-like twist, ``MASS`` and ``FORCE`` tag
    wrench-like quantities whose linear part carries that dimension.

    Raises:
        ConfigurationError: For any other dimension.
    """
    if unit_type is UnitType.LENGTH:
        return convert_twist(x, units, target)
    if unit_type in (UnitType.MASS, UnitType.FORCE):
        return convert_wrench(x, units, target, _units.Unit.base(unit_type))
    raise ConfigurationError(f"Cannot convert a spatial vector by {unit_type.name}")
