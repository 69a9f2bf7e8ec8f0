"""
Geometry Module

Value types used throughout registration:
- RigidTransform: unit-quaternion rotation + translation with compose/inverse
- PointCloud: immutable positions with optional normals
"""

from .rigid_transform import RigidTransform
from .point_cloud import PointCloud

__all__ = [
    "RigidTransform",
    "PointCloud",
]
