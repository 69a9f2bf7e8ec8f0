"""
Point Cloud Preprocessing Filters

Filters applied to the reading and reference clouds before registration:
subsampling, voxel averaging and surface normal estimation. Every filter
returns a new ``PointCloud``; inputs are never modified.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..geometry.point_cloud import PointCloud
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


class DataPointsFilter(ABC):
    """Transforms a point cloud into a new point cloud."""

    @abstractmethod
    def filter(self, cloud: PointCloud) -> PointCloud:
        ...


class IdentityDataPointsFilter(DataPointsFilter):
    """Returns the cloud unchanged."""

    def filter(self, cloud: PointCloud) -> PointCloud:
        return cloud


class DataPointsFilterChain(DataPointsFilter):
    """Applies filters in sequence."""

    def __init__(self, filters: Sequence[DataPointsFilter]):
        self.filters: List[DataPointsFilter] = list(filters)

    def filter(self, cloud: PointCloud) -> PointCloud:
        for f in self.filters:
            n_before = len(cloud)
            cloud = f.filter(cloud)
            logger.debug("%s: %d -> %d points", type(f).__name__, n_before, len(cloud))
        return cloud


class RandomSamplingDataPointsFilter(DataPointsFilter):
    """
    Keep each point independently with probability ``prob``.

    Args:
        prob: Keep probability in (0, 1].
        seed: Seed for the random generator; the same seed gives the same
            subset on every call.
    """

    def __init__(self, prob: float = 0.75, seed: Optional[int] = None):
        if not 0.0 < prob <= 1.0:
            raise ValueError(f"prob must be in (0, 1], got {prob}")
        self.prob = prob
        self.seed = seed

    def filter(self, cloud: PointCloud) -> PointCloud:
        if self.prob == 1.0 or cloud.is_empty:
            return cloud
        rng = np.random.default_rng(self.seed)
        mask = rng.random(len(cloud)) < self.prob
        return cloud.select(mask)


class MaxPointCountDataPointsFilter(DataPointsFilter):
    """Randomly subsample down to at most ``max_count`` points, preserving order."""

    def __init__(self, max_count: int = 50000, seed: Optional[int] = None):
        if max_count < 1:
            raise ValueError(f"max_count must be >= 1, got {max_count}")
        self.max_count = max_count
        self.seed = seed

    def filter(self, cloud: PointCloud) -> PointCloud:
        if len(cloud) <= self.max_count:
            return cloud
        rng = np.random.default_rng(self.seed)
        idx = np.sort(rng.choice(len(cloud), self.max_count, replace=False))
        return cloud.select(idx)


class VoxelGridDataPointsFilter(DataPointsFilter):
    """Replace the points inside each voxel by their centroid (normals averaged)."""

    def __init__(self, voxel_size: float = 1.0):
        if voxel_size <= 0:
            raise ValueError(f"voxel_size must be positive, got {voxel_size}")
        self.voxel_size = voxel_size

    def filter(self, cloud: PointCloud) -> PointCloud:
        if cloud.is_empty:
            return cloud
        pts = cloud.points
        keys = np.floor((pts - pts.min(axis=0)) / self.voxel_size).astype(np.int64)
        _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
        inverse = inverse.reshape(-1)
        n_voxels = counts.shape[0]

        sums = np.zeros((n_voxels, 3))
        np.add.at(sums, inverse, pts)
        centroids = sums / counts[:, None]

        normals = None
        if cloud.has_normals:
            nsum = np.zeros((n_voxels, 3))
            np.add.at(nsum, inverse, cloud.normals)
            norms = np.linalg.norm(nsum, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            normals = nsum / norms
        return PointCloud(points=centroids, normals=normals)


def _plane_normals(neighborhoods: np.ndarray) -> np.ndarray:
    """Normals of (N, k, 3) neighborhoods: eigenvector of the smallest covariance eigenvalue."""
    centered = neighborhoods - neighborhoods.mean(axis=1, keepdims=True)
    cov = np.einsum("nki,nkj->nij", centered, centered) / neighborhoods.shape[1]
    _, vecs = np.linalg.eigh(cov)
    return vecs[:, :, 0]


class SurfaceNormalDataPointsFilter(DataPointsFilter):
    """
    Estimate a normal for every point from its ``knn`` nearest neighbours.

    Positions are kept as they are; the cloud gains (or replaces) normals.
    """

    def __init__(self, knn: int = 10):
        if knn < 3:
            raise ValueError(f"knn must be >= 3 to fit a plane, got {knn}")
        self.knn = knn

    def filter(self, cloud: PointCloud) -> PointCloud:
        if len(cloud) < 3:
            raise ValueError(f"Normal estimation needs at least 3 points, got {len(cloud)}")
        k = min(self.knn, len(cloud))
        nbrs = NearestNeighbors(n_neighbors=k, algorithm="kd_tree").fit(cloud.points)
        _, indices = nbrs.kneighbors(cloud.points)
        normals = _plane_normals(cloud.points[indices])
        return cloud.with_normals(normals)


class SamplingSurfaceNormalDataPointsFilter(DataPointsFilter):
    """
    Subsample while estimating normals.

    The cloud is split recursively at the median of its longest axis until
    every bin holds at most ``bin_size`` points. Each bin is replaced by its
    mean point, with the normal of the plane fitted through the bin. Bins
    with fewer than 3 points cannot define a plane and are dropped.
    """

    def __init__(self, bin_size: int = 7):
        if bin_size < 3:
            raise ValueError(f"bin_size must be >= 3, got {bin_size}")
        self.bin_size = bin_size

    def _split_bins(self, points: np.ndarray) -> List[np.ndarray]:
        bins: List[np.ndarray] = []
        stack = [np.arange(len(points))]
        while stack:
            idx = stack.pop()
            if len(idx) <= self.bin_size:
                bins.append(idx)
                continue
            pts = points[idx]
            extent = pts.max(axis=0) - pts.min(axis=0)
            axis = int(np.argmax(extent))
            if extent[axis] == 0.0:
                # Coincident points cannot be split further
                bins.append(idx)
                continue
            order = np.argsort(pts[:, axis], kind="stable")
            half = len(idx) // 2
            stack.append(idx[order[half:]])
            stack.append(idx[order[:half]])
        return bins

    def filter(self, cloud: PointCloud) -> PointCloud:
        if cloud.is_empty:
            return cloud
        bins = [b for b in self._split_bins(cloud.points) if len(b) >= 3]
        if not bins:
            logger.warning("SamplingSurfaceNormal: no bin holds 3 points; returning empty cloud.")
            return PointCloud.empty()

        means = np.empty((len(bins), 3))
        normals = np.empty((len(bins), 3))
        for i, idx in enumerate(bins):
            pts = cloud.points[idx]
            means[i] = pts.mean(axis=0)
            normals[i] = _plane_normals(pts[None, :, :])[0]

        logger.debug("SamplingSurfaceNormal: %d points -> %d bins", len(cloud), len(bins))
        return PointCloud(points=means, normals=normals)
