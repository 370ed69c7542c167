"""
JAX Multibody: articulated rigid-body dynamics in JAX.

This library provides spatial algebra, unit systems, mass properties and
joints, plus two solvers built on them: an articulated-body solver for trees
of single degree-of-freedom joints with point contact, and a solver for free
rigid bodies. Both integrate with fourth-order Runge-Kutta.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import logging
from . import spatial
from . import core
from . import solvers
from . import planar
from .core import (
    BodyState,
    Chain,
    ChainStates,
    JointProperties,
    JointType,
    Link,
    MassProperties,
    Material,
    Pose,
    Prescribed,
    Solid,
)
from .exceptions import ConfigurationError, SingularityError
from .solvers import ChainSolver, MbdSolver
from .units import UnitSystem, UnitType
from .world import World

__version__ = "0.1.0"
__all__ = [
    "logging",
    "spatial",
    "core",
    "solvers",
    "planar",
    "Pose",
    "MassProperties",
    "Material",
    "JointType",
    "Prescribed",
    "JointProperties",
    "Link",
    "Chain",
    "Solid",
    "ChainStates",
    "BodyState",
    "ChainSolver",
    "MbdSolver",
    "World",
    "UnitSystem",
    "UnitType",
    "ConfigurationError",
    "SingularityError",
]
