"""
Point cloud value type.

A ``PointCloud`` is an ordered set of 3D positions with optional per-point
normals. The index of a point is its identity for correspondence and weight
tables. Clouds are immutable: filtering, recentering and transformation all
return new clouds, so a caller-owned cloud is never modified by registration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

import numpy as np

from ..utils.validation import PreconditionError, as_points_array, as_vector3, frozen_copy
from .rigid_transform import RigidTransform

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True, eq=False)
class PointCloud:
    """Immutable point cloud.

    Attributes:
        points: (N, 3) array of positions
        normals: Optional (N, 3) array of normal directions
    """

    points: "NDArray[np.float64]"
    normals: Optional["NDArray[np.float64]"] = None

    def __post_init__(self) -> None:
        points = as_points_array(self.points, "points")
        object.__setattr__(self, "points", frozen_copy(points))
        if self.normals is not None:
            normals = as_points_array(self.normals, "normals")
            if normals.shape != points.shape:
                raise PreconditionError(
                    f"normals shape {normals.shape} does not match points shape {points.shape}"
                )
            object.__setattr__(self, "normals", frozen_copy(normals))

    @classmethod
    def from_points(cls, points: "ArrayLike", normals: Optional["ArrayLike"] = None) -> "PointCloud":
        return cls(points=np.asarray(points, dtype=np.float64),
                   normals=None if normals is None else np.asarray(normals, dtype=np.float64))

    @classmethod
    def empty(cls) -> "PointCloud":
        return cls(points=np.empty((0, 3)))

    @property
    def has_normals(self) -> bool:
        return self.normals is not None

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def centroid(self) -> "NDArray[np.float64]":
        """Mean position of the cloud.

        Raises:
            PreconditionError: If the cloud is empty
        """
        if self.is_empty:
            raise PreconditionError("Cannot compute centroid of an empty point cloud")
        return np.mean(self.points, axis=0)

    def transformed(self, transform: RigidTransform) -> "PointCloud":
        """Positions through ``transform.apply``, normals through ``apply_to_direction``."""
        normals = None
        if self.normals is not None:
            normals = transform.apply_to_direction(self.normals)
        return PointCloud(points=transform.apply(self.points), normals=normals)

    def translated(self, offset: "ArrayLike") -> "PointCloud":
        """Shift every position by ``offset``; normals are unchanged."""
        t = as_vector3(offset, "offset")
        return PointCloud(points=self.points + t, normals=self.normals)

    def select(self, indices: Union["ArrayLike", slice]) -> "PointCloud":
        """Subset by integer indices, boolean mask or slice."""
        idx = indices if isinstance(indices, slice) else np.asarray(indices)
        normals = None if self.normals is None else self.normals[idx]
        return PointCloud(points=self.points[idx], normals=normals)

    def with_normals(self, normals: Optional["ArrayLike"]) -> "PointCloud":
        return PointCloud(points=self.points,
                          normals=None if normals is None else np.asarray(normals, dtype=np.float64))

    def __repr__(self) -> str:
        return f"PointCloud(n_points={len(self)}, has_normals={self.has_normals})"
