"""
Error minimizers for ICP.

Given the current reading estimate, the reference cloud and a weighted
correspondence table, a minimizer returns the incremental rigid transform
that best moves the reading onto its matches. Both minimizers here work on
the flattened list of valid, positively weighted candidate pairs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..geometry.point_cloud import PointCloud
from ..geometry.rigid_transform import RigidTransform
from ..utils.validation import PreconditionError
from .matching import Matches


@dataclass(frozen=True)
class ErrorElements:
    """Paired points entering the error minimization.

    Attributes:
        reading: (M, 3) reading positions
        reference: (M, 3) matched reference positions
        reference_normals: (M, 3) matched reference normals, if available
        weights: (M,) positive weights
    """

    reading: np.ndarray
    reference: np.ndarray
    reference_normals: Optional[np.ndarray]
    weights: np.ndarray

    def __len__(self) -> int:
        return int(self.weights.shape[0])


def build_error_elements(
    reading: PointCloud,
    reference: PointCloud,
    weights: np.ndarray,
    matches: Matches,
) -> ErrorElements:
    """
    Pair every accepted candidate with positive weight.

    Raises:
        PreconditionError: If ``weights`` and ``matches`` shapes differ.
        ValueError: If no pair survives.
    """
    weights = np.asarray(weights, dtype=np.float64)
    if weights.shape != matches.shape:
        raise PreconditionError(
            f"Weight table shape {weights.shape} does not match correspondence shape {matches.shape}"
        )
    if matches.shape[0] != len(reading):
        raise PreconditionError(
            f"Correspondence table has {matches.shape[0]} rows for {len(reading)} reading points"
        )

    keep = matches.valid_mask & (weights > 0.0)
    rows, cols = np.nonzero(keep)
    if rows.size == 0:
        raise ValueError("No valid correspondences with positive weight; cannot minimize error.")

    ref_ids = matches.ids[rows, cols]
    normals = reference.normals[ref_ids] if reference.has_normals else None
    return ErrorElements(
        reading=reading.points[rows],
        reference=reference.points[ref_ids],
        reference_normals=normals,
        weights=weights[rows, cols],
    )


class ErrorMinimizer(ABC):
    """Computes the incremental transform aligning a reading onto its matches."""

    @abstractmethod
    def compute(
        self,
        reading: PointCloud,
        reference: PointCloud,
        weights: np.ndarray,
        matches: Matches,
    ) -> RigidTransform:
        """Return the transform ``dT`` such that ``dT(reading)`` best fits the matches."""


class PointToPointErrorMinimizer(ErrorMinimizer):
    """
    Weighted least-squares rigid fit between paired points (SVD / Kabsch).

    Requires at least three pairs.
    """

    def compute(self, reading, reference, weights, matches) -> RigidTransform:
        elements = build_error_elements(reading, reference, weights, matches)
        if len(elements) < 3:
            raise ValueError(
                f"Point-to-point minimization needs at least 3 correspondences, got {len(elements)}."
            )
        return self.estimate_transformation(elements.reading, elements.reference, elements.weights)

    @staticmethod
    def estimate_transformation(
        source_points: np.ndarray,
        target_points: np.ndarray,
        weights: Optional[np.ndarray] = None,
    ) -> RigidTransform:
        """
        Estimate the rigid transform mapping source points onto target points.

        Args:
            source_points: Source points (N x 3).
            target_points: Corresponding target points (N x 3).
            weights: Optional non-negative weights (N,).

        Returns:
            RigidTransform minimizing the weighted squared distances.
        """
        if weights is None:
            weights = np.ones(len(source_points))
        w_sum = float(np.sum(weights))
        if w_sum <= 0.0:
            raise ValueError("Sum of correspondence weights must be positive.")

        # Center the point sets
        source_centroid = weights @ source_points / w_sum
        target_centroid = weights @ target_points / w_sum

        source_centered = source_points - source_centroid
        target_centered = target_points - target_centroid

        # Weighted cross-covariance matrix
        H = (source_centered * weights[:, None]).T @ target_centered

        U, _, Vt = np.linalg.svd(H)
        R = Vt.T @ U.T

        # Ensure proper rotation (det(R) should be 1)
        if np.linalg.det(R) < 0:
            Vt[-1, :] *= -1
            R = Vt.T @ U.T

        t = target_centroid - R @ source_centroid

        return RigidTransform.from_matrix(np.block([[R, t[:, None]], [np.zeros((1, 3)), np.ones((1, 1))]]))


class PointToPlaneErrorMinimizer(ErrorMinimizer):
    """
    Weighted point-to-plane minimization using the small-angle linearization.

    Each pair contributes the residual ``n . (R p + t - q)`` with ``n`` the
    reference normal at ``q``. Linearizing ``R`` around identity gives a
    6x6 normal system in (rotation vector, translation). The reference cloud
    must carry normals.
    """

    def compute(self, reading, reference, weights, matches) -> RigidTransform:
        if not reference.has_normals:
            raise ValueError("Point-to-plane minimization requires normals on the reference cloud.")
        elements = build_error_elements(reading, reference, weights, matches)

        p = elements.reading
        q = elements.reference
        n = elements.reference_normals
        w = elements.weights

        A = np.hstack([np.cross(p, n), n])
        b = np.einsum("ij,ij->i", n, q - p)

        Aw = A * w[:, None]
        lhs = Aw.T @ A
        rhs = Aw.T @ b

        # Raises LinAlgError for a singular (unconstrained) system
        x = np.linalg.solve(lhs, rhs)

        return RigidTransform.from_rotation_vector(x[:3], translation=x[3:])
