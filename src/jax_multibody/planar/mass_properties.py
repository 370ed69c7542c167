"""Mass properties of bodies moving in the plane."""

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..core.mass_properties import MassProperties
from ..exceptions import ConfigurationError, SingularityError
from ..spatial import planar
from ..units import LENGTH, MASS, MASS_MOMENT_OF_INERTIA, UnitSystem


@struct.dataclass
class PlanarMassProperties:
    """Mass, moment of inertia about the center of mass, and center of mass.

    Attributes:
        units: Unit system of all fields. Static for JIT compilation.
        mass: (...) mass.
        mmoi: (...) moment of inertia about the out-of-plane axis through ``cg``.
        cg: (..., 2) center of mass in the body frame.
    """
    units: UnitSystem = struct.field(pytree_node=False)
    mass: Array
    mmoi: Array
    cg: Array

    @classmethod
    def create(cls, units: UnitSystem, mass, mmoi, cg=None) -> "PlanarMassProperties":
        cg = jnp.zeros(2) if cg is None else cg
        return cls(
            units=units,
            mass=jnp.asarray(mass, dtype=jnp.float64),
            mmoi=jnp.asarray(mmoi, dtype=jnp.float64),
            cg=jnp.asarray(cg, dtype=jnp.float64),
        )

    @classmethod
    def zero(cls, units: UnitSystem = UnitSystem.SI) -> "PlanarMassProperties":
        return cls.create(units, 0.0, 0.0)

    @classmethod
    def circle(cls, units: UnitSystem, mass: float, radius: float, cg=None) -> "PlanarMassProperties":
        """Uniform disk."""
        return cls.create(units, mass, mass / 2 * radius**2, cg)

    @classmethod
    def sphere(cls, units: UnitSystem, mass: float, radius: float, cg=None) -> "PlanarMassProperties":
        return cls.create(units, mass, 2 * mass / 5 * radius**2, cg)

    @classmethod
    def rectangle(
        cls, units: UnitSystem, mass: float, width: float, height: float, cg=None
    ) -> "PlanarMassProperties":
        """Uniform rectangle with sides ``width`` along x and ``height`` along y."""
        return cls.create(units, mass, mass / 12 * (width**2 + height**2), cg)

    @classmethod
    def from_spatial(cls, mass_properties: MassProperties) -> "PlanarMassProperties":
        """Section of 3-D mass properties moving in the xy-plane of their body frame."""
        return cls.create(
            mass_properties.units,
            mass_properties.mass,
            mass_properties.mmoi[..., 2, 2],
            mass_properties.cg[..., :2],
        )

    def spi(self, cg: Array) -> Array:
        """
        Planar inertia about the world origin.

        ``[[m·1, m·c⊥], [m·c⊥ᵀ, I + m|c|²]]`` with ``c⊥ = ẑ × c``.

        Args:
            cg: (..., 2) world position of the center of mass

        Returns:
            (..., 3, 3) inertia mapping twists to momentum wrenches
        """
        m = self.mass
        u = m[..., None] * planar.perpendicular(cg)
        return planar.block(
            m[..., None, None] * jnp.eye(2), u, u, self.mmoi + m * jnp.sum(cg * cg, axis=-1)
        )

    def spm(self, cg: Array) -> Array:
        """Planar mobility, the inverse of :meth:`spi`. Massless bodies give non-finite entries."""
        p = planar.perpendicular(cg)
        inv_i = 1.0 / self.mmoi
        u = -inv_i[..., None] * p
        return planar.block(
            (1.0 / self.mass)[..., None, None] * jnp.eye(2) + inv_i[..., None, None] * planar.outer(p, p),
            u,
            u,
            inv_i,
        )

    def weight(self, gravity: Array, cg: Array) -> Array:
        """Wrench of gravity acting through the world point ``cg``."""
        return planar.wrench(self.mass[..., None] * gravity, cg)

    def _check_units(self, other: "PlanarMassProperties") -> None:
        if self.units is not other.units:
            raise ConfigurationError(
                f"Cannot combine mass properties in {self.units.name} and {other.units.name}"
            )

    def __add__(self, other: "PlanarMassProperties") -> "PlanarMassProperties":
        self._check_units(other)
        m = self.mass + other.mass
        cg = (self.cg * self.mass + other.cg * other.mass) / m
        mmoi = (
            self.mmoi + self.mass * jnp.sum(self.cg**2, axis=-1)
            + other.mmoi + other.mass * jnp.sum(other.cg**2, axis=-1)
        )
        return PlanarMassProperties(self.units, m, mmoi - m * jnp.sum(cg**2, axis=-1), cg)

    def __sub__(self, other: "PlanarMassProperties") -> "PlanarMassProperties":
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
            self.mmoi + self.mass * jnp.sum(self.cg**2, axis=-1)
            - other.mmoi - other.mass * jnp.sum(other.cg**2, axis=-1)
        )
        return PlanarMassProperties(self.units, m, mmoi - m * jnp.sum(cg**2, axis=-1), cg)

    def __mul__(self, factor) -> "PlanarMassProperties":
        return PlanarMassProperties(self.units, factor * self.mass, factor * self.mmoi, self.cg)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "PlanarMassProperties":
        return self * (1.0 / divisor)

    def convert_to(self, target: UnitSystem) -> "PlanarMassProperties":
        if self.units is target:
            return self
        return PlanarMassProperties(
            units=target,
            mass=MASS.convert(self.units, target) * self.mass,
            mmoi=MASS_MOMENT_OF_INERTIA.convert(self.units, target) * self.mmoi,
            cg=LENGTH.convert(self.units, target) * self.cg,
        )
