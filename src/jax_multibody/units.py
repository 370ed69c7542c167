"""Physical units and unit systems.

A :class:`Unit` is an immutable expression built from five base dimensions
(length, mass, force, time and temperature) through products, integer powers
and scalar scaling. Each base dimension carries one SI conversion factor per
:class:`UnitSystem`; every derived unit computes its factor from them, so a new
unit system only needs new base factors.

Example:
    >>> from jax_multibody.units import AREA, UnitSystem
    >>> round(AREA.convert(UnitSystem.IPS, UnitSystem.SI), 8)
    0.00064516
"""

import enum
import math
from typing import Dict, Tuple, Union

from .exceptions import ConfigurationError

Number = Union[int, float]


class UnitSystem(enum.Enum):
    """Supported systems of units."""

    SI = "SI"
    MMKS = "MMKS"
    IPS = "IPS"
    FPS = "FPS"


class UnitType(enum.Enum):
    """Base dimensions. ``NONE`` is the dimensionless unit."""

    NONE = 0
    LENGTH = 1
    MASS = 2
    FORCE = 3
    TIME = 4
    TEMPERATURE = 5


# SI value of one unit of each base dimension, per unit system.
_BASE_FACTORS: Dict[UnitType, Dict[UnitSystem, float]] = {
    UnitType.NONE: {
        UnitSystem.SI: 1.0,
        UnitSystem.MMKS: 1.0,
        UnitSystem.IPS: 1.0,
        UnitSystem.FPS: 1.0,
    },
    UnitType.LENGTH: {
        UnitSystem.SI: 1.0,
        UnitSystem.MMKS: 0.001,
        UnitSystem.IPS: 0.0254,
        UnitSystem.FPS: 12 * 0.0254,
    },
    UnitType.MASS: {
        UnitSystem.SI: 1.0,
        UnitSystem.MMKS: 1.0,
        UnitSystem.IPS: 0.4535924,
        UnitSystem.FPS: 0.4535924,
    },
    UnitType.FORCE: {
        UnitSystem.SI: 1.0,
        UnitSystem.MMKS: 1.0,
        UnitSystem.IPS: 4.4482216,
        UnitSystem.FPS: 4.4482216,
    },
    UnitType.TIME: {
        UnitSystem.SI: 1.0,
        UnitSystem.MMKS: 1.0,
        UnitSystem.IPS: 1.0,
        UnitSystem.FPS: 1.0,
    },
    UnitType.TEMPERATURE: {
        UnitSystem.SI: 1.0,
        UnitSystem.MMKS: 1.0,
        UnitSystem.IPS: 1 / 1.8,
        UnitSystem.FPS: 1 / 1.8,
    },
}

_SYMBOLS = {
    UnitType.LENGTH: "L",
    UnitType.MASS: "M",
    UnitType.FORCE: "F",
    UnitType.TIME: "T",
    UnitType.TEMPERATURE: "K",
}

Terms = Tuple[Tuple[UnitType, int], ...]


def _canonical(exponents: Dict[UnitType, int]) -> Terms:
    """Drop zero exponents and sort by complexity, then by dimension."""
    items = [(t, e) for t, e in exponents.items() if e != 0 and t is not UnitType.NONE]
    return tuple(sorted(items, key=lambda item: (-abs(item[1]), item[0].value)))


class Unit:
    """Immutable unit expression.

    Subclasses describe the expression node; all of them normalise into a
    scale and one integer exponent per base dimension, which defines equality.
    """

    def _normalize(self) -> Tuple[float, Dict[UnitType, int]]:
        raise NotImplementedError

    @property
    def scale(self) -> float:
        return self._normalize()[0]

    @property
    def terms(self) -> Terms:
        """Canonical ``(UnitType, exponent)`` pairs of this unit."""
        return _canonical(self._normalize()[1])

    @staticmethod
    def base(unit_type: UnitType) -> "Unit":
        """Return the base unit of a dimension."""
        if unit_type is UnitType.NONE:
            return NONE
        return BaseUnit(unit_type)

    def factor(self, system: UnitSystem) -> float:
        """SI value of one of this unit expressed in ``system``."""
        scale, exponents = self._normalize()
        value = scale
        for unit_type, exponent in exponents.items():
            value *= _BASE_FACTORS[unit_type][system] ** exponent
        return value

    def convert(self, units: UnitSystem, target: UnitSystem) -> float:
        """Multiplier taking a value in ``units`` to the same value in ``target``."""
        if units is target:
            return 1.0
        return self.factor(units) / self.factor(target)

    def get_base(self) -> UnitType:
        """Return the single base dimension of this unit.

        Pure powers of one dimension (e.g. area, per-temperature) report that
        dimension and dimensionless units report ``UnitType.NONE``.

        Raises:
            ConfigurationError: If the unit mixes more than one dimension.
        """
        terms = self.terms
        if not terms:
            return UnitType.NONE
        if len(terms) > 1:
            raise ConfigurationError(f"{self!r} has no single base dimension")
        return terms[0][0]

    def __mul__(self, other: Union["Unit", Number]) -> "Unit":
        if isinstance(other, Unit):
            return ProductUnit(self, other)
        if isinstance(other, (int, float)):
            return ScaledUnit(float(other), self)
        return NotImplemented

    def __rmul__(self, other: Number) -> "Unit":
        if isinstance(other, (int, float)):
            return ScaledUnit(float(other), self)
        return NotImplemented

    def __truediv__(self, other: Union["Unit", Number]) -> "Unit":
        if isinstance(other, Unit):
            return ProductUnit(self, PowerUnit(other, -1))
        if isinstance(other, (int, float)):
            return ScaledUnit(1.0 / other, self)
        return NotImplemented

    def __rtruediv__(self, other: Number) -> "Unit":
        if isinstance(other, (int, float)):
            return ScaledUnit(float(other), PowerUnit(self, -1))
        return NotImplemented

    def __pow__(self, exponent: int) -> "Unit":
        if not isinstance(exponent, int):
            return NotImplemented
        return PowerUnit(self, exponent)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Unit):
            return NotImplemented
        return self.terms == other.terms and math.isclose(
            self.scale, other.scale, rel_tol=1e-9
        )

    def __hash__(self) -> int:
        return hash(self.terms)

    def __repr__(self) -> str:
        scale, _ = self._normalize()
        parts = []
        for unit_type, exponent in self.terms:
            symbol = _SYMBOLS[unit_type]
            parts.append(symbol if exponent == 1 else f"{symbol}^{exponent}")
        text = "*".join(parts) if parts else "1"
        if scale != 1.0:
            text = f"{scale:g}*{text}"
        return f"Unit({text})"


class BaseUnit(Unit):
    def __init__(self, unit_type: UnitType):
        self.unit_type = unit_type

    def _normalize(self):
        if self.unit_type is UnitType.NONE:
            return 1.0, {}
        return 1.0, {self.unit_type: 1}


class ProductUnit(Unit):
    def __init__(self, *factors: Unit):
        self.factors = factors

    def _normalize(self):
        scale = 1.0
        exponents: Dict[UnitType, int] = {}
        for factor in self.factors:
            s, e = factor._normalize()
            scale *= s
            for unit_type, exponent in e.items():
                exponents[unit_type] = exponents.get(unit_type, 0) + exponent
        return scale, exponents


class PowerUnit(Unit):
    def __init__(self, unit: Unit, exponent: int):
        self.unit = unit
        self.exponent = exponent

    def _normalize(self):
        scale, exponents = self.unit._normalize()
        return scale**self.exponent, {
            unit_type: e * self.exponent for unit_type, e in exponents.items()
        }


class ScaledUnit(Unit):
    def __init__(self, scale: float, unit: Unit):
        self.value = scale
        self.unit = unit

    def _normalize(self):
        scale, exponents = self.unit._normalize()
        return self.value * scale, dict(exponents)


NONE = BaseUnit(UnitType.NONE)
LENGTH = BaseUnit(UnitType.LENGTH)
MASS = BaseUnit(UnitType.MASS)
FORCE = BaseUnit(UnitType.FORCE)
TIME = BaseUnit(UnitType.TIME)
TEMPERATURE = BaseUnit(UnitType.TEMPERATURE)

AREA = LENGTH**2
VOLUME = LENGTH**3
SPEED = LENGTH / TIME
ACCELERATION = LENGTH / TIME**2
ROTATIONAL_SPEED = NONE / TIME
ROTATIONAL_ACCELERATION = NONE / TIME**2
FREQUENCY = NONE / TIME
MOMENTUM = MASS * SPEED
ANGULAR_MOMENTUM = MOMENTUM * LENGTH
WORK = FORCE * LENGTH
TORQUE = FORCE * LENGTH
POWER = WORK / TIME
PRESSURE = FORCE / AREA
STIFFNESS = FORCE / LENGTH
DENSITY = MASS / VOLUME
MASS_MOMENT_OF_INERTIA = MASS * AREA
PER_TEMPERATURE = TEMPERATURE**-1

DERIVED_UNITS: Dict[str, Unit] = {
    "area": AREA,
    "volume": VOLUME,
    "speed": SPEED,
    "acceleration": ACCELERATION,
    "rotational_speed": ROTATIONAL_SPEED,
    "rotational_acceleration": ROTATIONAL_ACCELERATION,
    "frequency": FREQUENCY,
    "momentum": MOMENTUM,
    "angular_momentum": ANGULAR_MOMENTUM,
    "work": WORK,
    "torque": TORQUE,
    "power": POWER,
    "pressure": PRESSURE,
    "stiffness": STIFFNESS,
    "density": DENSITY,
    "mass_moment_of_inertia": MASS_MOMENT_OF_INERTIA,
    "per_temperature": PER_TEMPERATURE,
}
