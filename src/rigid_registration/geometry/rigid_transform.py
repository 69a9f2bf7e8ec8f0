"""
Rigid transforms (rotation + translation) for point cloud registration.

A transform ``T = (q, t)`` maps a position ``x`` to ``R(q) @ x + t`` and a
direction ``n`` to ``R(q) @ n``. Rotations are stored as unit quaternions
``(w, x, y, z)`` so that repeated composition can be re-normalised cheaply
instead of drifting away from an orthonormal matrix.

Transforms are immutable values:

    >>> T = RigidTransform.from_translation([1.0, 0.0, 0.0])
    >>> T.apply([0.0, 0.0, 0.0])
    array([1., 0., 0.])
    >>> (T @ T.inverse()).is_close(RigidTransform.identity())
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict

import numpy as np

from ..utils.validation import PreconditionError, as_vector3, frozen_copy

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

# Allowed deviation of a stored quaternion from unit norm
UNIT_NORM_TOLERANCE = 1e-6
# Allowed deviation of R^T R from identity when importing matrices
ORTHONORMAL_TOLERANCE = 1e-6


def quaternion_multiply(q1: "NDArray[np.float64]", q2: "NDArray[np.float64]") -> "NDArray[np.float64]":
    """Hamilton product ``q1 * q2`` of two (w, x, y, z) quaternions."""
    w1, v1 = q1[0], q1[1:]
    w2, v2 = q2[0], q2[1:]
    w = w1 * w2 - np.dot(v1, v2)
    v = w1 * v2 + w2 * v1 + np.cross(v1, v2)
    return np.array([w, v[0], v[1], v[2]], dtype=np.float64)


def quaternion_to_matrix(q: "NDArray[np.float64]") -> "NDArray[np.float64]":
    """Rotation matrix of a unit (w, x, y, z) quaternion."""
    w, x, y, z = q
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def quaternion_from_matrix(R: "NDArray[np.float64]") -> "NDArray[np.float64]":
    """Unit quaternion of a proper rotation matrix (Shepperd's method)."""
    trace = R[0, 0] + R[1, 1] + R[2, 2]
    if trace > 0.0:
        s = 2.0 * np.sqrt(trace + 1.0)
        q = [0.25 * s, (R[2, 1] - R[1, 2]) / s, (R[0, 2] - R[2, 0]) / s, (R[1, 0] - R[0, 1]) / s]
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        q = [(R[2, 1] - R[1, 2]) / s, 0.25 * s, (R[0, 1] + R[1, 0]) / s, (R[0, 2] + R[2, 0]) / s]
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        q = [(R[0, 2] - R[2, 0]) / s, (R[0, 1] + R[1, 0]) / s, 0.25 * s, (R[1, 2] + R[2, 1]) / s]
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        q = [(R[1, 0] - R[0, 1]) / s, (R[0, 2] + R[2, 0]) / s, (R[1, 2] + R[2, 1]) / s, 0.25 * s]
    q = np.asarray(q, dtype=np.float64)
    return q / np.linalg.norm(q)


def _normalized(q: "NDArray[np.float64]") -> "NDArray[np.float64]":
    norm = float(np.linalg.norm(q))
    if not np.isfinite(norm) or norm == 0.0:
        raise PreconditionError(f"Cannot normalise quaternion {q}")
    return q / norm


@dataclass(frozen=True, eq=False)
class RigidTransform:
    """Distance-preserving map ``x -> R @ x + t``.

    Attributes:
        rotation: Unit quaternion (w, x, y, z), canonicalised to ``w >= 0``
        translation: Translation vector (3,)

    Raises:
        PreconditionError: On non-finite values, wrong shapes or a
            quaternion that is not unit norm.
    """

    rotation: "NDArray[np.float64]" = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))
    translation: "NDArray[np.float64]" = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        q = np.asarray(self.rotation, dtype=np.float64)
        if q.shape != (4,):
            raise PreconditionError(f"rotation must be a (w, x, y, z) quaternion, got shape {q.shape}")
        if not np.all(np.isfinite(q)):
            raise PreconditionError(f"rotation contains non-finite values: {q}")
        norm = float(np.linalg.norm(q))
        if abs(norm - 1.0) > UNIT_NORM_TOLERANCE:
            raise PreconditionError(f"rotation quaternion must be unit norm, got norm {norm:.9f}")
        q = q / norm
        if q[0] < 0.0:
            q = -q
        t = as_vector3(self.translation, "translation")
        object.__setattr__(self, "rotation", frozen_copy(q))
        object.__setattr__(self, "translation", frozen_copy(t))

    # ------------------------ Constructors ------------------------
    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    @classmethod
    def from_translation(cls, translation: "ArrayLike") -> "RigidTransform":
        """Pure translation with identity rotation."""
        return cls(translation=np.asarray(translation, dtype=np.float64))

    @classmethod
    def from_quaternion(cls, quaternion: "ArrayLike", translation: "ArrayLike" = (0.0, 0.0, 0.0)) -> "RigidTransform":
        """Build a transform from any non-zero (w, x, y, z) quaternion, normalising it first."""
        q = np.asarray(quaternion, dtype=np.float64)
        if q.shape != (4,) or not np.all(np.isfinite(q)):
            raise PreconditionError(f"Invalid quaternion {q}")
        return cls(rotation=_normalized(q), translation=np.asarray(translation, dtype=np.float64))

    @classmethod
    def from_rotation_vector(cls, rotation_vector: "ArrayLike", translation: "ArrayLike" = (0.0, 0.0, 0.0)) -> "RigidTransform":
        """Build a transform from an axis * angle rotation vector (radians)."""
        rv = as_vector3(rotation_vector, "rotation_vector")
        angle = float(np.linalg.norm(rv))
        if angle < 1e-12:
            # First-order expansion; exact up to rounding at this magnitude
            q = np.array([1.0, 0.5 * rv[0], 0.5 * rv[1], 0.5 * rv[2]])
        else:
            half = 0.5 * angle
            axis = rv / angle
            q = np.concatenate([[np.cos(half)], np.sin(half) * axis])
        return cls(rotation=_normalized(q), translation=np.asarray(translation, dtype=np.float64))

    @classmethod
    def from_axis_angle(cls, axis: "ArrayLike", angle: float, translation: "ArrayLike" = (0.0, 0.0, 0.0)) -> "RigidTransform":
        """Rotation of ``angle`` radians about ``axis`` (need not be unit length)."""
        a = as_vector3(axis, "axis")
        norm = float(np.linalg.norm(a))
        if norm == 0.0:
            raise PreconditionError("Rotation axis must be non-zero")
        return cls.from_rotation_vector(a / norm * float(angle), translation)

    @classmethod
    def from_matrix(cls, matrix: "ArrayLike") -> "RigidTransform":
        """Build a transform from a 4x4 homogeneous matrix or a 3x3 rotation matrix.

        Raises:
            PreconditionError: If the rotation block is not a proper rotation.
        """
        M = np.asarray(matrix, dtype=np.float64)
        if M.shape == (4, 4):
            R, t = M[:3, :3], M[:3, 3]
        elif M.shape == (3, 3):
            R, t = M, np.zeros(3)
        else:
            raise PreconditionError(f"Expected 4x4 or 3x3 matrix, got shape {M.shape}")
        if not np.all(np.isfinite(M)):
            raise PreconditionError("Transformation matrix contains non-finite values")
        if not np.allclose(R.T @ R, np.eye(3), atol=ORTHONORMAL_TOLERANCE):
            raise PreconditionError("Rotation block is not orthonormal")
        if np.linalg.det(R) < 0.0:
            raise PreconditionError("Rotation block is a reflection (det < 0)")
        return cls(rotation=quaternion_from_matrix(R), translation=t)

    # ------------------------ Algebra ------------------------
    @property
    def rotation_matrix(self) -> "NDArray[np.float64]":
        return quaternion_to_matrix(self.rotation)

    def as_matrix(self) -> "NDArray[np.float64]":
        """4x4 homogeneous matrix of this transform."""
        T = np.eye(4)
        T[:3, :3] = self.rotation_matrix
        T[:3, 3] = self.translation
        return T

    def apply(self, points: "ArrayLike") -> "NDArray[np.float64]":
        """Map positions: a single (3,) vector or an (N, 3) batch."""
        p = np.asarray(points, dtype=np.float64)
        if p.size == 0:
            return p.reshape(0, 3)
        return p @ self.rotation_matrix.T + self.translation

    def apply_to_direction(self, directions: "ArrayLike") -> "NDArray[np.float64]":
        """Rotate directions (e.g. normals); translation does not apply."""
        d = np.asarray(directions, dtype=np.float64)
        if d.size == 0:
            return d.reshape(0, 3)
        return d @ self.rotation_matrix.T

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """Return ``self ∘ other``, i.e. the map ``x -> self(other(x))``."""
        q = _normalized(quaternion_multiply(self.rotation, other.rotation))
        t = self.rotation_matrix @ other.translation + self.translation
        return RigidTransform(rotation=q, translation=t)

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return self.compose(other)

    def inverse(self) -> "RigidTransform":
        """Return ``(R^-1, -R^-1 t)``."""
        q_inv = self.rotation * np.array([1.0, -1.0, -1.0, -1.0])
        t = -(quaternion_to_matrix(q_inv) @ self.translation)
        return RigidTransform(rotation=q_inv, translation=t)

    # ------------------------ Metrics ------------------------
    @property
    def rotation_angle(self) -> float:
        """Rotation magnitude in radians, in [0, pi]."""
        return float(2.0 * np.arctan2(np.linalg.norm(self.rotation[1:]), abs(self.rotation[0])))

    @property
    def translation_norm(self) -> float:
        return float(np.linalg.norm(self.translation))

    def angular_distance(self, other: "RigidTransform") -> float:
        """Angle (radians) of the relative rotation between ``self`` and ``other``."""
        conj = self.rotation * np.array([1.0, -1.0, -1.0, -1.0])
        q_rel = quaternion_multiply(conj, other.rotation)
        return float(2.0 * np.arctan2(np.linalg.norm(q_rel[1:]), abs(q_rel[0])))

    def is_close(self, other: "RigidTransform", atol: float = 1e-9, angle_atol: float | None = None) -> bool:
        """Compare translation (absolute tolerance) and rotation (angular distance)."""
        if angle_atol is None:
            angle_atol = atol
        return bool(
            np.allclose(self.translation, other.translation, atol=atol, rtol=0.0)
            and self.angular_distance(other) <= angle_atol
        )

    # ------------------------ Serialization ------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a dictionary for JSON/YAML storage."""
        return {
            "rotation": [float(v) for v in self.rotation],
            "translation": [float(v) for v in self.translation],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RigidTransform":
        """Deserialize from a dictionary produced by ``to_dict``."""
        return cls.from_quaternion(
            data.get("rotation", [1.0, 0.0, 0.0, 0.0]),
            data.get("translation", [0.0, 0.0, 0.0]),
        )

    def __repr__(self) -> str:
        w, x, y, z = self.rotation
        tx, ty, tz = self.translation
        return (
            f"RigidTransform(rotation=[{w:.6f}, {x:.6f}, {y:.6f}, {z:.6f}], "
            f"translation=[{tx:.6f}, {ty:.6f}, {tz:.6f}])"
        )

    def __str__(self) -> str:
        return (
            f"RigidTransform(angle={np.rad2deg(self.rotation_angle):.4f} deg, "
            f"translation=[{self.translation[0]:.4f}, {self.translation[1]:.4f}, {self.translation[2]:.4f}])"
        )
