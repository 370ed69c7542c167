"""Closed-form 3x3 matrix operations in JAX.

Every function works on ``(..., 3, 3)`` matrices and ``(..., 3)`` vectors with
arbitrary leading batch dimensions. Inverses, solves and eigen decompositions
are explicit formulas; nothing here iterates or pivots, which keeps the
functions branch-free under ``jax.jit``.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def identity(dtype=jnp.float64) -> Array:
    return jnp.eye(3, dtype=dtype)


def diagonal(d: Array) -> Array:
    """Build diagonal matrices from ``(..., 3)`` diagonal entries."""
    d = jnp.asarray(d)
    return d[..., :, None] * jnp.eye(3, dtype=d.dtype)


def scalar(value: Array) -> Array:
    """Return ``value`` times the identity."""
    value = jnp.asarray(value, dtype=jnp.float64)
    return value[..., None, None] * jnp.eye(3, dtype=value.dtype)


def symmetric(a11, a12, a13, a22, a23, a33) -> Array:
    """Build a symmetric matrix from its upper triangle."""
    return jnp.stack([
        jnp.stack([a11, a12, a13], axis=-1),
        jnp.stack([a12, a22, a23], axis=-1),
        jnp.stack([a13, a23, a33], axis=-1),
    ], axis=-2).astype(jnp.float64)


def skew_symmetric(a12, a13, a23) -> Array:
    """Build a skew-symmetric matrix from its upper triangle."""
    a12, a13, a23 = (jnp.asarray(a, dtype=jnp.float64) for a in (a12, a13, a23))
    zeros = jnp.zeros_like(a12)
    return jnp.stack([
        jnp.stack([zeros, a12, a13], axis=-1),
        jnp.stack([-a12, zeros, a23], axis=-1),
        jnp.stack([-a13, -a23, zeros], axis=-1),
    ], axis=-2)


def cross_matrix(v: Array) -> Array:
    """Matrix ``[v×]`` such that ``cross_matrix(v) @ u == cross(v, u)``.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    v = jnp.asarray(v)
    return skew_symmetric(-v[..., 2], v[..., 1], -v[..., 0])


def outer(a: Array, b: Array) -> Array:
    return a[..., :, None] * b[..., None, :]


def mmoi(r: Array) -> Array:
    """Unit-mass moment of inertia of a point at ``r``: ``|r|²·1 − r rᵀ``.

    This equals ``-[r×][r×]`` and is the parallel-axis term.
    """
    r = jnp.asarray(r)
    return scalar(jnp.sum(r * r, axis=-1)) - outer(r, r)


def transpose(a: Array) -> Array:
    return jnp.swapaxes(a, -1, -2)


def symmetric_part(a: Array) -> Array:
    return 0.5 * (a + transpose(a))


def skew_part(a: Array) -> Array:
    return 0.5 * (a - transpose(a))


def trace(a: Array) -> Array:
    return a[..., 0, 0] + a[..., 1, 1] + a[..., 2, 2]


def mul(a: Array, v: Array) -> Array:
    """Matrix-vector product."""
    return jnp.einsum("...ij,...j->...i", a, v)


def determinant(a: Array) -> Array:
    return (
        a[..., 0, 0] * (a[..., 1, 1] * a[..., 2, 2] - a[..., 1, 2] * a[..., 2, 1])
        - a[..., 0, 1] * (a[..., 1, 0] * a[..., 2, 2] - a[..., 1, 2] * a[..., 2, 0])
        + a[..., 0, 2] * (a[..., 1, 0] * a[..., 2, 1] - a[..., 1, 1] * a[..., 2, 0])
    )


def adjugate(a: Array) -> Array:
    """Transposed cofactor matrix, so that ``a @ adjugate(a) == det(a)·1``."""
    c00 = a[..., 1, 1] * a[..., 2, 2] - a[..., 1, 2] * a[..., 2, 1]
    c01 = a[..., 0, 2] * a[..., 2, 1] - a[..., 0, 1] * a[..., 2, 2]
    c02 = a[..., 0, 1] * a[..., 1, 2] - a[..., 0, 2] * a[..., 1, 1]
    c10 = a[..., 1, 2] * a[..., 2, 0] - a[..., 1, 0] * a[..., 2, 2]
    c11 = a[..., 0, 0] * a[..., 2, 2] - a[..., 0, 2] * a[..., 2, 0]
    c12 = a[..., 0, 2] * a[..., 1, 0] - a[..., 0, 0] * a[..., 1, 2]
    c20 = a[..., 1, 0] * a[..., 2, 1] - a[..., 1, 1] * a[..., 2, 0]
    c21 = a[..., 0, 1] * a[..., 2, 0] - a[..., 0, 0] * a[..., 2, 1]
    c22 = a[..., 0, 0] * a[..., 1, 1] - a[..., 0, 1] * a[..., 1, 0]
    return jnp.stack([
        jnp.stack([c00, c01, c02], axis=-1),
        jnp.stack([c10, c11, c12], axis=-1),
        jnp.stack([c20, c21, c22], axis=-1),
    ], axis=-2)


def inverse(a: Array, factor: Array = 1.0) -> Array:
    """Return ``factor · a⁻¹`` from the adjugate formula.

    A singular matrix yields ``inf``/``nan`` entries; no error is raised.
    """
    det = determinant(a)
    return (jnp.asarray(factor) / det)[..., None, None] * adjugate(a)


def solve(a: Array, b: Array) -> Array:
    """Solve ``a x = b`` for a vector ``(..., 3)`` or matrix ``(..., 3, k)`` right-hand side."""
    inv = inverse(a)
    if b.ndim == a.ndim - 1:
        return mul(inv, b)
    return jnp.matmul(inv, b)


def rotation_x(angle: Array) -> Array:
    c, s = jnp.cos(angle), jnp.sin(angle)
    one, zero = jnp.ones_like(c), jnp.zeros_like(c)
    return jnp.stack([
        jnp.stack([one, zero, zero], axis=-1),
        jnp.stack([zero, c, -s], axis=-1),
        jnp.stack([zero, s, c], axis=-1),
    ], axis=-2)


def rotation_y(angle: Array) -> Array:
    c, s = jnp.cos(angle), jnp.sin(angle)
    one, zero = jnp.ones_like(c), jnp.zeros_like(c)
    return jnp.stack([
        jnp.stack([c, zero, s], axis=-1),
        jnp.stack([zero, one, zero], axis=-1),
        jnp.stack([-s, zero, c], axis=-1),
    ], axis=-2)


def rotation_z(angle: Array) -> Array:
    c, s = jnp.cos(angle), jnp.sin(angle)
    one, zero = jnp.ones_like(c), jnp.zeros_like(c)
    return jnp.stack([
        jnp.stack([c, -s, zero], axis=-1),
        jnp.stack([s, c, zero], axis=-1),
        jnp.stack([zero, zero, one], axis=-1),
    ], axis=-2)


def rotation(axis: Array, angle: Array) -> Array:
    """Rodrigues rotation by ``angle`` about the unit vector ``axis``."""
    axis = jnp.asarray(axis, dtype=jnp.float64)
    angle = jnp.asarray(angle, dtype=jnp.float64)[..., None, None]
    k = cross_matrix(axis)
    return identity() + jnp.sin(angle) * k + (1 - jnp.cos(angle)) * jnp.matmul(k, k)


def from_rows(r1: Array, r2: Array, r3: Array) -> Array:
    return jnp.stack([r1, r2, r3], axis=-2)


def from_columns(c1: Array, c2: Array, c3: Array) -> Array:
    return jnp.stack([c1, c2, c3], axis=-1)


def eigenvalues(a: Array) -> Array:
    """Eigenvalues of a symmetric 3x3 matrix, sorted ascending.

    Uses the trigonometric solution of the characteristic cubic in its
    depressed form. With ``w`` the shifted mean and ``c``/``s`` the cosine and
    sine terms of the root angle, the three roots are ``w + c`` and
    ``w ± s``. Their order is decided once, without sorting:

    * ``c >= s``: ``(w - s, w + s, w + c)``
    * ``-s <= c < s``: ``(w - s, w + c, w + s)``
    * ``c < -s``: ``(w + c, w - s, w + s)``

    When two roots coincide the comparisons fall into the first matching
    branch, so ties keep this order.

    Near a double root the cubic only resolves the roots to about the square
    root of machine precision. Each root is therefore replaced by the
    Rayleigh quotient ``vᵀ a v`` of its eigenvector, which is accurate to
    machine precision even when the vector itself is only roughly known.

    Args:
        a: (..., 3, 3) symmetric matrix

    Returns:
        (..., 3) eigenvalues
    """
    vectors = _eigenvectors(a, _cubic_roots(a))
    return jnp.einsum("...ji,...jk,...ki->...i", vectors, a, vectors)


def _cubic_roots(a: Array) -> Array:
    """Ordered roots of the characteristic cubic; reads the upper triangle only."""
    m11, m22, m33 = a[..., 0, 0], a[..., 1, 1], a[..., 2, 2]
    m12, m13, m23 = a[..., 0, 1], a[..., 0, 2], a[..., 1, 2]

    de = m12 * m23
    dd = m12 * m12
    ee = m23 * m23
    ff = m13 * m13
    m = m11 + m22 + m33
    c1 = m11 * m22 + m11 * m33 + m22 * m33 - (dd + ee + ff)
    c0 = m33 * dd + m11 * ee + m22 * ff - m11 * m22 * m33 - 2.0 * m13 * de

    p = m * m - 3.0 * c1
    q = m * (p - 1.5 * c1) - 13.5 * c0
    sqrt_p = jnp.sqrt(jnp.abs(p))
    z = 27.0 * (0.25 * c1 * c1 * (p - c1) + c0 * (q + 6.75 * c0))
    phi = jnp.arctan2(jnp.sqrt(jnp.abs(z)), q) / 3.0

    c = sqrt_p * jnp.cos(phi)
    s = sqrt_p * jnp.abs(jnp.sin(phi)) / jnp.sqrt(3.0)
    w = (m - c) / 3.0

    high = jnp.stack([w - s, w + s, w + c], axis=-1)
    middle = jnp.stack([w - s, w + c, w + s], axis=-1)
    low = jnp.stack([w + c, w - s, w + s], axis=-1)
    return jnp.where(
        (c >= s)[..., None],
        high,
        jnp.where((c >= -s)[..., None], middle, low),
    )


def _null_direction(b: Array):
    """Unit vector spanning the null space of a rank-2 matrix ``b``.

    The null space is orthogonal to every row of ``b``, so it is parallel to
    the cross product of any two independent rows. The largest of the three
    row products is kept. Returns the vector and the norm of that product.
    """
    r0, r1, r2 = b[..., 0, :], b[..., 1, :], b[..., 2, :]
    candidates = jnp.stack(
        [jnp.cross(r0, r1), jnp.cross(r0, r2), jnp.cross(r1, r2)], axis=-2
    )
    norms = jnp.linalg.norm(candidates, axis=-1)
    k = jnp.argmax(norms, axis=-1)
    best = jnp.take_along_axis(candidates, k[..., None, None], axis=-2)[..., 0, :]
    norm = jnp.take_along_axis(norms, k[..., None], axis=-1)[..., 0]
    safe = jnp.where(norm > 0, norm, 1.0)
    return best / safe[..., None], norm


def _perpendicular(v: Array) -> Array:
    """Any unit vector perpendicular to unit vector ``v``."""
    k = jnp.argmin(jnp.abs(v), axis=-1)
    axis = jnp.eye(3, dtype=v.dtype)[k]
    p = jnp.cross(v, axis)
    return p / jnp.linalg.norm(p, axis=-1, keepdims=True)


def eigenvectors(a: Array, values: Array = None) -> Array:
    """Unit eigenvectors of a symmetric 3x3 matrix by direct substitution.

    The first and last eigenvectors solve ``(a - λ·1) x = 0`` through row
    cross products; the middle one completes a right-handed basis. Repeated
    eigenvalues leave a plane (or all of space) of valid vectors, in which
    case any orthonormal completion is returned.

    Args:
        a: (..., 3, 3) symmetric matrix
        values: (..., 3) eigenvalues from :func:`eigenvalues`. Computed when omitted.

    Returns:
        (..., 3, 3) matrix whose columns are the eigenvectors, ordered like ``values``.
    """
    if values is None:
        values = eigenvalues(a)
    return _eigenvectors(a, values)


def _eigenvectors(a: Array, values: Array) -> Array:
    eye = jnp.eye(3, dtype=a.dtype)
    scale = jnp.max(jnp.abs(a), axis=(-2, -1))
    tol = 1e-10 * scale * scale + jnp.finfo(a.dtype).tiny

    v0, n0 = _null_direction(a - values[..., 0, None, None] * eye)
    v2, n2 = _null_direction(a - values[..., 2, None, None] * eye)
    ok0 = (n0 > tol)[..., None]
    ok2 = (n2 > tol)[..., None]

    e_x = jnp.broadcast_to(eye[0], v0.shape)
    e_z = jnp.broadcast_to(eye[2], v2.shape)
    v0_fix = jnp.where(ok0, v0, jnp.where(ok2, _perpendicular(v2), e_x))
    v2_fix = jnp.where(ok2, v2, jnp.where(ok0, _perpendicular(v0), e_z))
    v1 = jnp.cross(v2_fix, v0_fix)
    return jnp.stack([v0_fix, v1, v2_fix], axis=-1)
