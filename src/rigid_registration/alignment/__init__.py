"""
Spatial Alignment Module

This module provides rigid registration of point clouds with the ICP
(Iterative Closest Point) algorithm. The orchestrator is generic; matching,
outlier weighting, error minimization and the continuation policy are
pluggable collaborators bundled in a ``StrategyConfig``.
"""

from .icp import ICP, RegistrationResult, register
from .strategies import StrategyConfig, build_strategies
from .matching import Matches, Matcher, MatcherFactory, KDTreeMatcherFactory, INVALID_ID
from .outlier_filters import (
    OutlierFilter,
    NullOutlierFilter,
    MaxDistOutlierFilter,
    TrimmedDistOutlierFilter,
    MedianDistOutlierFilter,
    CompositeOutlierFilter,
)
from .error_minimizers import (
    ErrorMinimizer,
    PointToPointErrorMinimizer,
    PointToPlaneErrorMinimizer,
    build_error_elements,
)
from .transformation_checkers import (
    TransformationChecker,
    TransformationCheckerFactory,
    CounterTransformationChecker,
    DifferentialTransformationChecker,
    BoundTransformationChecker,
    CompositeTransformationChecker,
    CallableCheckerFactory,
    DefaultTransformationCheckerFactory,
)
from .coarse_registration import CoarseRegistration
from .transform_io import save_transform, load_transform

__all__ = [
    "ICP",
    "RegistrationResult",
    "register",
    "StrategyConfig",
    "build_strategies",
    "Matches",
    "Matcher",
    "MatcherFactory",
    "KDTreeMatcherFactory",
    "INVALID_ID",
    "OutlierFilter",
    "NullOutlierFilter",
    "MaxDistOutlierFilter",
    "TrimmedDistOutlierFilter",
    "MedianDistOutlierFilter",
    "CompositeOutlierFilter",
    "ErrorMinimizer",
    "PointToPointErrorMinimizer",
    "PointToPlaneErrorMinimizer",
    "build_error_elements",
    "TransformationChecker",
    "TransformationCheckerFactory",
    "CounterTransformationChecker",
    "DifferentialTransformationChecker",
    "BoundTransformationChecker",
    "CompositeTransformationChecker",
    "CallableCheckerFactory",
    "DefaultTransformationCheckerFactory",
    "CoarseRegistration",
    "save_transform",
    "load_transform",
]
