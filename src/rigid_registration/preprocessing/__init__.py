"""
Preprocessing Module

Filters applied to reading and reference clouds before ICP.
"""

from .filters import (
    DataPointsFilter,
    DataPointsFilterChain,
    IdentityDataPointsFilter,
    RandomSamplingDataPointsFilter,
    MaxPointCountDataPointsFilter,
    VoxelGridDataPointsFilter,
    SurfaceNormalDataPointsFilter,
    SamplingSurfaceNormalDataPointsFilter,
)

__all__ = [
    "DataPointsFilter",
    "DataPointsFilterChain",
    "IdentityDataPointsFilter",
    "RandomSamplingDataPointsFilter",
    "MaxPointCountDataPointsFilter",
    "VoxelGridDataPointsFilter",
    "SurfaceNormalDataPointsFilter",
    "SamplingSurfaceNormalDataPointsFilter",
]
