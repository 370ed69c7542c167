"""Core data structures for jax_multibody.

Poses, mass properties, materials, joints, bodies, chains and the integrable
states the solvers advance.
"""

from .body import ZERO_FORCE, AppliedForce, Body
from .chain import Chain, Link
from .joint import (
    ABOUT_X,
    ABOUT_Y,
    ABOUT_Z,
    ALONG_X,
    ALONG_Y,
    ALONG_Z,
    ZERO_DRIVER,
    Driver,
    JointInfo,
    JointProperties,
    JointState,
    JointType,
    Prescribed,
)
from .mass_properties import MassProperties, VolumeProvider
from .material import Material, MaterialSpec
from .pose import Pose
from .solid import Solid
from .states import BodyState, ChainStates
from .topology import ChainTopology, build_topology

__all__ = [
    "Pose",
    "MassProperties",
    "VolumeProvider",
    "Material",
    "MaterialSpec",
    "JointType",
    "Prescribed",
    "JointState",
    "JointInfo",
    "JointProperties",
    "Driver",
    "ZERO_DRIVER",
    "ALONG_X",
    "ALONG_Y",
    "ALONG_Z",
    "ABOUT_X",
    "ABOUT_Y",
    "ABOUT_Z",
    "Body",
    "AppliedForce",
    "ZERO_FORCE",
    "Link",
    "Chain",
    "ChainTopology",
    "build_topology",
    "Solid",
    "ChainStates",
    "BodyState",
]
