from .body_solver import MbdSolver
from .chain_solver import STANDARD_GRAVITY, ChainSolver, default_gravity
from .kinematics import FrameArticulated, PartialKinematics, ResolvedKinematics

__all__ = [
    "ChainSolver",
    "MbdSolver",
    "PartialKinematics",
    "ResolvedKinematics",
    "FrameArticulated",
    "STANDARD_GRAVITY",
    "default_gravity",
]
