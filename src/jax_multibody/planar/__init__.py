"""Planar (2-D) multibody simulation.

Frames joined by x/y sliders and pins, moving in the xy-plane under gravity.
The solver runs the articulated-body passes of the 3-D chain solver on planar
twists and wrenches from :mod:`jax_multibody.spatial.planar`.
"""

from .frame import (
    REVOLUTE,
    SLIDE_X,
    SLIDE_Y,
    STANDARD_PLANAR_GRAVITY,
    ZERO_PLANAR_FORCE,
    Frame,
    PlanarForce,
    PlanarJointProperties,
    PlanarJointType,
    PlanarWorld,
    default_planar_gravity,
)
from .mass_properties import PlanarMassProperties
from .pose import PlanarPose
from .simulation import PlanarArticulated, PlanarKinematics, PlanarSolver

__all__ = [
    "PlanarPose",
    "PlanarMassProperties",
    "PlanarJointType",
    "PlanarJointProperties",
    "SLIDE_X",
    "SLIDE_Y",
    "REVOLUTE",
    "Frame",
    "PlanarForce",
    "ZERO_PLANAR_FORCE",
    "PlanarWorld",
    "STANDARD_PLANAR_GRAVITY",
    "default_planar_gravity",
    "PlanarKinematics",
    "PlanarArticulated",
    "PlanarSolver",
]
