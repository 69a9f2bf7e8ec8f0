"""
Strategy configuration for ICP.

``StrategyConfig`` is the immutable bundle of collaborators the orchestrator
uses. Field defaults give the standard pipeline; ``replace`` swaps any of
them for a single registration call. ``build_strategies`` produces a bundle
from the typed YAML configuration.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List

from ..preprocessing.filters import (
    DataPointsFilter,
    DataPointsFilterChain,
    IdentityDataPointsFilter,
    MaxPointCountDataPointsFilter,
    RandomSamplingDataPointsFilter,
    SamplingSurfaceNormalDataPointsFilter,
    SurfaceNormalDataPointsFilter,
    VoxelGridDataPointsFilter,
)
from ..visualization.inspectors import (
    Inspector,
    LoggingInspector,
    NoOpInspector,
    PlotlyInspector,
    RecordingInspector,
)
from .error_minimizers import ErrorMinimizer, PointToPlaneErrorMinimizer, PointToPointErrorMinimizer
from .matching import KDTreeMatcherFactory, MatcherFactory
from .outlier_filters import (
    CompositeOutlierFilter,
    MaxDistOutlierFilter,
    MedianDistOutlierFilter,
    NullOutlierFilter,
    OutlierFilter,
    TrimmedDistOutlierFilter,
)
from .transformation_checkers import DefaultTransformationCheckerFactory, TransformationCheckerFactory

if TYPE_CHECKING:
    from ..utils.config import FilterConfig, OutlierFilterConfig, RegistrationConfig


@dataclass(frozen=True)
class StrategyConfig:
    """Collaborators used by one registration call."""

    reference_filter: DataPointsFilter = field(default_factory=SamplingSurfaceNormalDataPointsFilter)
    reading_filter: DataPointsFilter = field(default_factory=RandomSamplingDataPointsFilter)
    matcher_factory: MatcherFactory = field(default_factory=KDTreeMatcherFactory)
    outlier_filter: OutlierFilter = field(default_factory=TrimmedDistOutlierFilter)
    error_minimizer: ErrorMinimizer = field(default_factory=PointToPlaneErrorMinimizer)
    checker_factory: TransformationCheckerFactory = field(default_factory=DefaultTransformationCheckerFactory)
    inspector: Inspector = field(default_factory=NoOpInspector)

    def replace(self, **changes: Any) -> "StrategyConfig":
        """Copy with some collaborators substituted."""
        return dataclasses.replace(self, **changes)


# -----------------------
# Builders from config
# -----------------------


def build_filter(cfg: "FilterConfig") -> DataPointsFilter:
    method = cfg.method
    if method == "identity":
        return IdentityDataPointsFilter()
    if method == "random_sampling":
        return RandomSamplingDataPointsFilter(prob=cfg.prob, seed=cfg.seed)
    if method == "max_points":
        return MaxPointCountDataPointsFilter(max_count=cfg.max_points, seed=cfg.seed)
    if method == "voxel_grid":
        return VoxelGridDataPointsFilter(voxel_size=cfg.voxel_size)
    if method == "surface_normal":
        return SurfaceNormalDataPointsFilter(knn=cfg.knn)
    if method == "sampling_surface_normal":
        return SamplingSurfaceNormalDataPointsFilter(bin_size=cfg.bin_size)
    raise ValueError(f"Unknown filter method '{method}'")


def build_filter_chain(cfgs: List["FilterConfig"]) -> DataPointsFilter:
    if not cfgs:
        return IdentityDataPointsFilter()
    if len(cfgs) == 1:
        return build_filter(cfgs[0])
    return DataPointsFilterChain([build_filter(c) for c in cfgs])


def build_outlier_filter(cfg: "OutlierFilterConfig") -> OutlierFilter:
    filters: List[OutlierFilter] = []
    for method in cfg.methods:
        if method == "null":
            filters.append(NullOutlierFilter())
        elif method == "trimmed":
            filters.append(TrimmedDistOutlierFilter(ratio=cfg.ratio))
        elif method == "max_distance":
            if cfg.max_distance is None:
                raise ValueError("outlier_filter.max_distance is required for the 'max_distance' method")
            filters.append(MaxDistOutlierFilter(max_distance=cfg.max_distance))
        elif method == "median":
            filters.append(MedianDistOutlierFilter(factor=cfg.factor))
        else:
            raise ValueError(f"Unknown outlier filter method '{method}'")
    if not filters:
        return NullOutlierFilter()
    if len(filters) == 1:
        return filters[0]
    return CompositeOutlierFilter(filters)


def build_error_minimizer(method: str) -> ErrorMinimizer:
    if method == "point_to_point":
        return PointToPointErrorMinimizer()
    if method == "point_to_plane":
        return PointToPlaneErrorMinimizer()
    raise ValueError(f"Unknown error minimizer '{method}'")


def build_inspector(method: str) -> Inspector:
    if method == "none":
        return NoOpInspector()
    if method == "logging":
        return LoggingInspector()
    if method == "recording":
        return RecordingInspector()
    if method == "plotly":
        return PlotlyInspector()
    raise ValueError(f"Unknown inspector '{method}'")


def build_strategies(cfg: "RegistrationConfig") -> StrategyConfig:
    """Build the collaborator bundle described by a ``RegistrationConfig``."""
    return StrategyConfig(
        reference_filter=build_filter_chain(cfg.reference_filters),
        reading_filter=build_filter_chain(cfg.reading_filters),
        matcher_factory=KDTreeMatcherFactory(
            knn=cfg.matcher.knn,
            max_distance=cfg.matcher.max_distance,
            leaf_size=cfg.matcher.leaf_size,
            algorithm=cfg.matcher.algorithm,
        ),
        outlier_filter=build_outlier_filter(cfg.outlier_filter),
        error_minimizer=build_error_minimizer(cfg.error_minimizer),
        checker_factory=DefaultTransformationCheckerFactory(
            max_iterations=cfg.checker.max_iterations,
            min_diff_rot_err=cfg.checker.min_diff_rot_err,
            min_diff_trans_err=cfg.checker.min_diff_trans_err,
            smooth_length=cfg.checker.smooth_length,
            max_rotation_norm=cfg.checker.max_rotation_norm,
            max_translation_norm=cfg.checker.max_translation_norm,
        ),
        inspector=build_inspector(cfg.inspector),
    )
