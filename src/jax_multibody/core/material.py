"""Isotropic engineering materials."""

import enum

from flax import struct

from ..exceptions import ConfigurationError
from ..units import DENSITY, PER_TEMPERATURE, PRESSURE, UnitSystem
from .mass_properties import MassProperties, VolumeProvider


class MaterialSpec(enum.Enum):
    CUSTOM = "custom"
    ALUMINUM = "aluminum"
    STEEL = "steel"
    CAST_IRON = "cast_iron"


@struct.dataclass
class Material:
    """Density, elastic modulus, Poisson ratio and thermal expansion.

    Attributes:
        units: Unit system of the dimensional fields.
        density: Mass per volume.
        elastic: Young's modulus.
        poissons: Poisson ratio (dimensionless).
        cte: Coefficient of thermal expansion, per degree.
        spec: Library entry the values came from.
    """
    units: UnitSystem = struct.field(pytree_node=False)
    density: float
    elastic: float
    poissons: float
    cte: float
    spec: MaterialSpec = struct.field(pytree_node=False, default=MaterialSpec.CUSTOM)

    @classmethod
    def library(cls, spec: MaterialSpec) -> "Material":
        """SI values of a library material."""
        try:
            density, elastic, poissons, cte = _LIBRARY[spec]
        except KeyError:
            raise ConfigurationError(f"Material '{spec.name}' has no library values")
        return cls(UnitSystem.SI, density, elastic, poissons, cte, spec)

    def convert_to(self, target: UnitSystem) -> "Material":
        if self.units is target:
            return self
        return Material(
            target,
            self.density * DENSITY.convert(self.units, target),
            self.elastic * PRESSURE.convert(self.units, target),
            self.poissons,
            self.cte * PER_TEMPERATURE.convert(self.units, target),
            self.spec,
        )

    def mass_properties(self, provider: VolumeProvider) -> MassProperties:
        """Mass properties of a solid of this material."""
        return MassProperties.from_density(provider, self.convert_to(provider.units).density)


_LIBRARY = {
    MaterialSpec.ALUMINUM: (2.69e3, 68950e6, 0.33, 23.94e-6),
    MaterialSpec.STEEL: (7.68e3, 206800e6, 0.3, 11.7e-6),
    MaterialSpec.CAST_IRON: (7.40e3, 176500e6, 0.27, 5.8e-6),
}
