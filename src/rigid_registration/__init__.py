"""
Rigid Registration Package

A Python package for rigid registration of 3D point clouds with the Iterative
Closest Point (ICP) algorithm. A reading cloud is aligned to a reference cloud
starting from an initial guess; matching, outlier weighting, error minimization,
preprocessing and the convergence policy are pluggable.
"""

__version__ = "0.1.0"

from .geometry import *
from .alignment import *
from .preprocessing import *
from .visualization import *
from .utils import *

__all__ = [
    "geometry",
    "alignment",
    "preprocessing",
    "visualization",
    "utils",
]
