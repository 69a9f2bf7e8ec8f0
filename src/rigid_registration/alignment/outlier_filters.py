"""
Outlier weighting for ICP correspondences.

An outlier filter turns a ``Matches`` table into a weight table of exactly
the same shape. Weights are consumed by the error minimizer as-is; they are
not normalised. Candidates rejected by the matcher always get weight 0.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from ..geometry.point_cloud import PointCloud
from .matching import Matches


class OutlierFilter(ABC):
    """Computes one scalar weight per candidate match."""

    @abstractmethod
    def compute_weights(self, reading: PointCloud, reference: PointCloud, matches: Matches) -> np.ndarray:
        """Return an array with ``matches.shape``."""


class NullOutlierFilter(OutlierFilter):
    """Weight 1 for every accepted match."""

    def compute_weights(self, reading: PointCloud, reference: PointCloud, matches: Matches) -> np.ndarray:
        return matches.valid_mask.astype(np.float64)


class MaxDistOutlierFilter(OutlierFilter):
    """Reject matches farther than ``max_distance``."""

    def __init__(self, max_distance: float):
        if max_distance <= 0:
            raise ValueError(f"max_distance must be positive, got {max_distance}")
        self.max_distance = float(max_distance)

    def compute_weights(self, reading: PointCloud, reference: PointCloud, matches: Matches) -> np.ndarray:
        keep = matches.valid_mask & (matches.distances <= self.max_distance)
        return keep.astype(np.float64)


class TrimmedDistOutlierFilter(OutlierFilter):
    """
    Keep the ``ratio`` fraction of matches with the smallest distances.

    The threshold is the ``ratio`` quantile of all accepted distances, so a
    ratio of 0.85 drops the worst 15% of correspondences every iteration.
    """

    def __init__(self, ratio: float = 0.85):
        if not 0.0 < ratio <= 1.0:
            raise ValueError(f"ratio must be in (0, 1], got {ratio}")
        self.ratio = float(ratio)

    def compute_weights(self, reading: PointCloud, reference: PointCloud, matches: Matches) -> np.ndarray:
        valid = matches.valid_mask
        if not np.any(valid):
            return np.zeros(matches.shape, dtype=np.float64)
        limit = float(np.quantile(matches.distances[valid], self.ratio))
        keep = valid & (matches.distances <= limit)
        return keep.astype(np.float64)


class MedianDistOutlierFilter(OutlierFilter):
    """Reject matches farther than ``factor`` times the median distance."""

    def __init__(self, factor: float = 3.0):
        if factor <= 0:
            raise ValueError(f"factor must be positive, got {factor}")
        self.factor = float(factor)

    def compute_weights(self, reading: PointCloud, reference: PointCloud, matches: Matches) -> np.ndarray:
        valid = matches.valid_mask
        if not np.any(valid):
            return np.zeros(matches.shape, dtype=np.float64)
        limit = self.factor * float(np.median(matches.distances[valid]))
        keep = valid & (matches.distances <= limit)
        return keep.astype(np.float64)


class CompositeOutlierFilter(OutlierFilter):
    """Element-wise product of the weights of several filters."""

    def __init__(self, filters: Sequence[OutlierFilter]):
        if not filters:
            raise ValueError("CompositeOutlierFilter needs at least one filter")
        self.filters = list(filters)

    def compute_weights(self, reading: PointCloud, reference: PointCloud, matches: Matches) -> np.ndarray:
        weights = np.ones(matches.shape, dtype=np.float64)
        for f in self.filters:
            weights = weights * f.compute_weights(reading, reference, matches)
        return weights
