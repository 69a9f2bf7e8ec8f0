"""
Coarse Registration Methods

Provides coarse alignment strategies that produce an initial guess for ICP.

Methods implemented:
- none: identity
- centroid: translation-only alignment by centroids
- pca: rigid alignment by principal axes (3D), then centroid translation

All methods return a ``RigidTransform`` mapping the reading onto the reference.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..geometry.point_cloud import PointCloud
from ..geometry.rigid_transform import RigidTransform
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass
class CoarseRegistration:
    method: str = "centroid"  # none | centroid | pca
    fallback_threshold: float = 1.1

    def compute_initial_transform(self, reading: PointCloud, reference: PointCloud) -> RigidTransform:
        """
        Compute a coarse initial transform aligning reading -> reference.

        Args:
            reading: Cloud to align
            reference: Target cloud

        Returns:
            RigidTransform initial guess
        """
        method = self.method.lower()
        if method == "none":
            return RigidTransform.identity()

        if reading.is_empty or reference.is_empty:
            logger.warning("CoarseRegistration: empty inputs; returning identity transform.")
            return RigidTransform.identity()

        src, dst = reading.points, reference.points
        if method == "centroid":
            return self._centroid_transform(src, dst)
        if method == "pca":
            T = self._pca_transform(src, dst)
            return self._validate_or_fallback(src, dst, T)

        raise ValueError(f"Unknown coarse registration method '{self.method}'")

    # ------------------------ Methods ------------------------
    @staticmethod
    def _centroid_transform(src: np.ndarray, dst: np.ndarray) -> RigidTransform:
        return RigidTransform.from_translation(np.mean(dst, axis=0) - np.mean(src, axis=0))

    @staticmethod
    def _pca_transform(src: np.ndarray, dst: np.ndarray) -> RigidTransform:
        c_src = np.mean(src, axis=0)
        c_dst = np.mean(dst, axis=0)
        A = src - c_src
        B = dst - c_dst

        # Small regularization avoids singularities on degenerate clouds
        C_A = (A.T @ A) / max(1, len(A)) + 1e-12 * np.eye(3)
        C_B = (B.T @ B) / max(1, len(B)) + 1e-12 * np.eye(3)

        wA, VA = np.linalg.eigh(C_A)
        wB, VB = np.linalg.eigh(C_B)
        # Sort by descending eigenvalues
        VA = VA[:, np.argsort(wA)[::-1]]
        VB = VB[:, np.argsort(wB)[::-1]]

        R = VB @ VA.T
        # Fix reflection if needed
        if np.linalg.det(R) < 0:
            VB[:, -1] *= -1
            R = VB @ VA.T

        T = np.eye(4)
        T[:3, :3] = R
        T[:3, 3] = c_dst - R @ c_src
        return RigidTransform.from_matrix(T)

    # ------------------------ Helpers ------------------------
    def _validate_or_fallback(self, src: np.ndarray, dst: np.ndarray, T: RigidTransform) -> RigidTransform:
        """Fall back to the centroid transform when ``T`` scores clearly worse.

        Principal axes are sign-ambiguous, so a PCA estimate can be flipped by
        180 degrees; the nearest-neighbour RMSE catches that.
        """
        rmse_T = self.score_rmse(src, dst, T)
        T_cent = self._centroid_transform(src, dst)
        rmse_C = self.score_rmse(src, dst, T_cent)
        if not np.isfinite(rmse_T) or rmse_T > self.fallback_threshold * rmse_C:
            logger.warning(
                "CoarseRegistration: candidate transform worse than centroid (rmse %.3f vs %.3f). Using centroid.",
                rmse_T, rmse_C,
            )
            return T_cent
        return T

    @staticmethod
    def score_rmse(src: np.ndarray, dst: np.ndarray, T: RigidTransform, *, max_pairs: int = 3000) -> float:
        """Nearest-neighbour RMSE of ``T(src)`` against ``dst`` on a fixed random subsample."""
        if src.size == 0 or dst.size == 0:
            return float("inf")
        rng = np.random.default_rng(0)
        idx = rng.choice(len(src), max_pairs, replace=False) if len(src) > max_pairs else np.arange(len(src))
        nn = NearestNeighbors(n_neighbors=1, algorithm="kd_tree").fit(dst)
        d, _ = nn.kneighbors(T.apply(src[idx]))
        return float(np.sqrt(np.mean(d ** 2)))
