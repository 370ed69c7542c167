"""
Spatial algebra for rigid-body dynamics.

This package provides closed-form, JIT-compilable implementations of:
- 3x3 matrices with analytic inverse and eigen decomposition (mat3 module)
- Quaternion rotations (so3 module)
- 6D twists, wrenches and block spatial matrices (screw module)
- The 3-dof planar analogue of spatial vectors (planar module)

All functions are pure and operate on JAX arrays with leading batch dimensions.
"""

from . import mat3
from . import so3
from . import screw
from . import planar

__all__ = [
    "mat3",
    "so3",
    "screw",
    "planar",
]
