"""Rigid-body mass properties and the spatial inertia built from them."""

from typing import Protocol, Tuple

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..exceptions import ConfigurationError, SingularityError
from ..spatial import mat3, screw, so3
from ..units import LENGTH, MASS, MASS_MOMENT_OF_INERTIA, UnitSystem
from .pose import Pose


class VolumeProvider(Protocol):
    """Geometry that can report its volume properties, e.g. a closed mesh.

    ``get_volume_properties`` returns the volume, the centroid and the
    specific (per unit mass) inertia tensor about the centroid, all in
    :attr:`units`.
    """

    units: UnitSystem

    def get_volume_properties(self) -> Tuple[float, Array, Array]:
        ...


@struct.dataclass
class MassProperties:
    """Mass, inertia tensor about the center of mass, and center of mass.

    The inertia tensor and the center of mass are expressed in the body
    (mesh) frame. Array fields may carry leading batch dimensions, in which
    case every method below works per body.

    Attributes:
        units: Unit system of all fields. Static for JIT compilation.
        mass: (...) mass.
        mmoi: (..., 3, 3) mass moment of inertia tensor about ``cg``.
        cg: (..., 3) center of mass in the body frame.
    """
    units: UnitSystem = struct.field(pytree_node=False)
    mass: Array
    mmoi: Array
    cg: Array

    @classmethod
    def create(cls, units: UnitSystem, mass, mmoi, cg=None) -> "MassProperties":
        cg = jnp.zeros(3) if cg is None else cg
        return cls(
            units=units,
            mass=jnp.asarray(mass, dtype=jnp.float64),
            mmoi=jnp.asarray(mmoi, dtype=jnp.float64),
            cg=jnp.asarray(cg, dtype=jnp.float64),
        )

    @classmethod
    def zero(cls, units: UnitSystem = UnitSystem.SI) -> "MassProperties":
        return cls.create(units, 0.0, jnp.zeros((3, 3)))

    @classmethod
    def sphere(cls, units: UnitSystem, mass: float, radius: float, cg=None) -> "MassProperties":
        i = 2 * mass / 5 * radius**2
        return cls.create(units, mass, mat3.diagonal(jnp.array([i, i, i])), cg)

    @classmethod
    def cylinder(
        cls, units: UnitSystem, mass: float, radius: float, height: float, cg=None
    ) -> "MassProperties":
        """Solid cylinder with its axis along z."""
        i = mass / 4 * radius**2 + mass / 12 * height**2
        return cls.create(
            units, mass, mat3.diagonal(jnp.array([i, i, mass / 2 * radius**2])), cg
        )

    @classmethod
    def box(
        cls,
        units: UnitSystem,
        mass: float,
        width: float,
        height: float,
        thickness: float,
        cg=None,
    ) -> "MassProperties":
        """Solid box with sides ``width`` along x, ``height`` along y and ``thickness`` along z."""
        return cls.create(
            units,
            mass,
            mat3.diagonal(jnp.array([
                mass / 12 * (thickness**2 + height**2),
                mass / 12 * (width**2 + thickness**2),
                mass / 12 * (width**2 + height**2),
            ])),
            cg,
        )

    @classmethod
    def from_mass(cls, provider: VolumeProvider, mass: float) -> "MassProperties":
        """Mass properties of a uniform solid of the given total mass."""
        _, centroid, specific_mmoi = provider.get_volume_properties()
        return cls.create(provider.units, mass, mass * jnp.asarray(specific_mmoi), centroid)

    @classmethod
    def from_density(cls, provider: VolumeProvider, density: float) -> "MassProperties":
        """Mass properties of a uniform solid with density in the provider's units."""
        volume, centroid, specific_mmoi = provider.get_volume_properties()
        mass = density * volume
        return cls.create(provider.units, mass, mass * jnp.asarray(specific_mmoi), centroid)

    def spi(self, orientation: Array, cg: Array) -> Array:
        """
        Spatial inertia about the world origin.

        ``[[m·1, −m·c×], [m·c×, R I Rᵀ − m·c×c×]]``

        Args:
            orientation: (..., 4) world orientation of the body frame
            cg: (..., 3) world position of the center of mass

        Returns:
            (..., 6, 6) spatial inertia mapping twists to momentum wrenches
        """
        cx = mat3.cross_matrix(cg)
        r = so3.to_matrix(orientation)
        i_c = r @ self.mmoi @ mat3.transpose(r)
        m = self.mass[..., None, None]
        return screw.block(m * jnp.eye(3), -m * cx, m * cx, i_c + m * mat3.mmoi(cg))

    def spm(self, orientation: Array, cg: Array) -> Array:
        """
        Spatial mobility (inverse spatial inertia) about the world origin.

        ``[[1/m − c× M c×, c× M], [−M c×, M]]`` with ``M = R I⁻¹ Rᵀ``, built
        directly rather than by inverting :meth:`spi`. Massless bodies give
        non-finite entries.
        """
        cx = mat3.cross_matrix(cg)
        r = so3.to_matrix(orientation)
        m_c = r @ mat3.inverse(self.mmoi) @ mat3.transpose(r)
        inv_m = (1.0 / self.mass)[..., None, None]
        return screw.block(inv_m * jnp.eye(3) - cx @ m_c @ cx, cx @ m_c, -m_c @ cx, m_c)

    def spi_at(self, pose: Pose) -> Array:
        return self.spi(pose.orientation, pose.from_local_point(self.cg))

    def spm_at(self, pose: Pose) -> Array:
        return self.spm(pose.orientation, pose.from_local_point(self.cg))

    def weight(self, gravity: Array, cg: Array) -> Array:
        """Wrench of gravity acting through the world point ``cg``."""
        return screw.wrench(self.mass[..., None] * gravity, cg)

    def weight_at(self, pose: Pose, gravity: Array) -> Array:
        return self.weight(gravity, pose.from_local_point(self.cg))

    def principal_mmoi(self) -> Tuple[Array, Pose]:
        """Principal moments of inertia and the pose of the principal axes.

        Returns:
            Ascending principal moments, and a pose located at the center of
            mass whose axes are the principal directions.
        """
        values = mat3.eigenvalues(self.mmoi)
        vectors = mat3.eigenvectors(self.mmoi, values)
        return values, Pose(position=self.cg, orientation=so3.from_matrix(vectors))

    def _check_units(self, other: "MassProperties") -> None:
        if self.units is not other.units:
            raise ConfigurationError(
                f"Cannot combine mass properties in {self.units.name} and {other.units.name}"
            )

    def __add__(self, other: "MassProperties") -> "MassProperties":
        self._check_units(other)
        m = self.mass + other.mass
        cg = (self.cg * self.mass + other.cg * other.mass) / m
        mmoi = (
            self.mmoi + self.mass * mat3.mmoi(self.cg)
            + other.mmoi + other.mass * mat3.mmoi(other.cg)
        )
        return MassProperties(self.units, m, mmoi - m * mat3.mmoi(cg), cg)

    def __sub__(self, other: "MassProperties") -> "MassProperties":
        """Remove a constituent body.

        Raises:
            SingularityError: If the remaining mass is not positive.
        """
        self._check_units(other)
        m = self.mass - other.mass
        if jnp.any(m <= 0):
            raise SingularityError(f"Subtracting mass {other.mass} from {self.mass} leaves {m}")
        cg = (self.cg * self.mass - other.cg * other.mass) / m
        mmoi = (
            self.mmoi + self.mass * mat3.mmoi(self.cg)
            - other.mmoi - other.mass * mat3.mmoi(other.cg)
        )
        return MassProperties(self.units, m, mmoi - m * mat3.mmoi(cg), cg)

    def __mul__(self, factor) -> "MassProperties":
        return MassProperties(self.units, factor * self.mass, factor * self.mmoi, self.cg)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "MassProperties":
        return self * (1.0 / divisor)

    def convert_to(self, target: UnitSystem) -> "MassProperties":
        if self.units is target:
            return self
        return MassProperties(
            units=target,
            mass=MASS.convert(self.units, target) * self.mass,
            mmoi=MASS_MOMENT_OF_INERTIA.convert(self.units, target) * self.mmoi,
            cg=LENGTH.convert(self.units, target) * self.cg,
        )
