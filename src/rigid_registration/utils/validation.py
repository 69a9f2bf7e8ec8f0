"""
Validation helpers and error types shared across the registration package.

Precondition violations are fatal for a registration call and are raised as
``PreconditionError``. Failures inside pluggable collaborators propagate
with their own exception types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


class PreconditionError(ValueError):
    """Raised when an input violates a precondition of a registration operation."""


class ConvergenceError(RuntimeError):
    """Raised by a continuation policy when the estimate leaves its admissible bounds."""


def as_vector3(value: "ArrayLike", name: str = "vector") -> "NDArray[np.float64]":
    """Return ``value`` as a finite float64 array of shape (3,)."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (3,):
        raise PreconditionError(f"{name} must have shape (3,), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise PreconditionError(f"{name} contains non-finite values: {arr}")
    return arr


def as_points_array(value: "ArrayLike", name: str = "points") -> "NDArray[np.float64]":
    """Return ``value`` as a finite float64 array of shape (N, 3).

    Raises:
        PreconditionError: If the array has the wrong shape or non-finite entries.
    """
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 1 and arr.size == 0:
        arr = arr.reshape(0, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise PreconditionError(f"Expected Nx3 array for {name}, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise PreconditionError(f"{name} contains non-finite values")
    return arr


def frozen_copy(arr: "NDArray") -> "NDArray":
    """Copy ``arr`` and mark the copy read-only."""
    out = np.array(arr, copy=True)
    out.setflags(write=False)
    return out
