"""
Nearest-neighbour matching between reading and reference clouds.

A matcher is built once over the (recentered) reference cloud and queried
once per ICP iteration with the current reading estimate. The result is a
``Matches`` table of shape (n_reading, k): for every reading point, the ids
of its k candidate reference points and the corresponding distances.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import time
from typing import Optional, Tuple

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..geometry.point_cloud import PointCloud
from ..utils.logging import setup_logger
from ..utils.validation import PreconditionError

logger = setup_logger(__name__)

# Reference id used for candidates rejected by the matcher
INVALID_ID = -1


@dataclass(frozen=True, eq=False)
class Matches:
    """Correspondence set.

    Attributes:
        ids: (n_reading, k) int array of reference indices, ``INVALID_ID`` where
            the matcher rejected the candidate
        distances: (n_reading, k) float array of Euclidean distances, ``inf``
            for rejected candidates
    """

    ids: np.ndarray
    distances: np.ndarray

    def __post_init__(self) -> None:
        ids = np.atleast_2d(np.asarray(self.ids, dtype=np.int64))
        distances = np.atleast_2d(np.asarray(self.distances, dtype=np.float64))
        if ids.shape != distances.shape:
            raise PreconditionError(
                f"Match ids shape {ids.shape} does not match distances shape {distances.shape}"
            )
        object.__setattr__(self, "ids", ids)
        object.__setattr__(self, "distances", distances)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.ids.shape

    @property
    def k(self) -> int:
        return self.ids.shape[1]

    @property
    def valid_mask(self) -> np.ndarray:
        """Boolean (n_reading, k) mask of candidates the matcher accepted."""
        return self.ids != INVALID_ID


class Matcher(ABC):
    """Index over a reference cloud answering closest-point queries."""

    @abstractmethod
    def find_closest(self, reading: PointCloud) -> Matches:
        """Return the candidate reference points for every reading point."""


class MatcherFactory(ABC):
    """Builds a ``Matcher`` over a reference cloud."""

    @abstractmethod
    def build(self, reference: PointCloud) -> Matcher:
        """Index ``reference`` for closest-point queries."""


class KDTreeMatcher(Matcher):
    """k-nearest-neighbour matcher backed by scikit-learn's ``NearestNeighbors``."""

    def __init__(self, nbrs: NearestNeighbors, knn: int, max_distance: float):
        self.nbrs = nbrs
        self.knn = knn
        self.max_distance = max_distance

    def find_closest(self, reading: PointCloud) -> Matches:
        if reading.is_empty:
            raise PreconditionError("Cannot match an empty reading cloud")

        distances, indices = self.nbrs.kneighbors(reading.points, n_neighbors=self.knn)
        ids = indices.astype(np.int64)
        distances = distances.astype(np.float64)

        if np.isfinite(self.max_distance):
            rejected = distances > self.max_distance
            ids[rejected] = INVALID_ID
            distances[rejected] = np.inf

        return Matches(ids=ids, distances=distances)


class KDTreeMatcherFactory(MatcherFactory):
    """
    Default matcher: a KD-Tree over the reference cloud.

    Args:
        knn: Number of candidates returned per reading point.
        max_distance: Candidates farther than this are marked invalid.
            ``None`` accepts every candidate.
        leaf_size: KD-Tree leaf size.
        algorithm: scikit-learn neighbour algorithm ("kd_tree", "ball_tree", "brute").
    """

    def __init__(
        self,
        knn: int = 1,
        max_distance: Optional[float] = None,
        leaf_size: int = 30,
        algorithm: str = "kd_tree",
    ):
        if knn < 1:
            raise ValueError(f"knn must be >= 1, got {knn}")
        self.knn = knn
        self.max_distance = float("inf") if max_distance is None else float(max_distance)
        self.leaf_size = leaf_size
        self.algorithm = algorithm

    def build(self, reference: PointCloud) -> KDTreeMatcher:
        if len(reference) < self.knn:
            raise ValueError(
                f"Reference cloud has {len(reference)} points, fewer than knn={self.knn}"
            )
        build_start = time.time()
        nbrs = NearestNeighbors(
            n_neighbors=self.knn, algorithm=self.algorithm, leaf_size=self.leaf_size
        ).fit(reference.points)
        logger.debug(
            "Nearest-neighbor structure built in %.4f s (%d points, algorithm=%s).",
            time.time() - build_start,
            len(reference),
            self.algorithm,
        )
        return KDTreeMatcher(nbrs, knn=self.knn, max_distance=self.max_distance)
