"""
Continuation policies for the ICP loop.

A checker is created fresh for every registration call and is asked after
each iteration whether to continue, given the accumulated transform
``T_iter``. Checkers may keep state across calls (iteration counters,
sliding windows of recent increments). When a checker stops the loop it
records why in ``termination_reason``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence

import numpy as np

from ..geometry.rigid_transform import RigidTransform
from ..utils.logging import setup_logger
from ..utils.validation import ConvergenceError

logger = setup_logger(__name__)

CONVERGED = "converged"
MAX_ITERATIONS = "max_iterations"


class TransformationChecker(ABC):
    """Decides after each iteration whether ICP should continue."""

    def __init__(self) -> None:
        self.termination_reason: Optional[str] = None

    @abstractmethod
    def should_continue(self, transform: RigidTransform) -> bool:
        """Return False to stop iterating."""


class TransformationCheckerFactory(ABC):
    """Creates a fresh checker per registration call."""

    @abstractmethod
    def create(self) -> TransformationChecker:
        ...


class CounterTransformationChecker(TransformationChecker):
    """Stop after ``max_iterations`` calls."""

    def __init__(self, max_iterations: int = 40):
        super().__init__()
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.max_iterations = max_iterations
        self.iteration = 0

    def should_continue(self, transform: RigidTransform) -> bool:
        self.iteration += 1
        if self.iteration >= self.max_iterations:
            self.termination_reason = MAX_ITERATIONS
            return False
        return True


class DifferentialTransformationChecker(TransformationChecker):
    """
    Stop when the estimate stops moving.

    Keeps the last ``smooth_length`` differences between successive
    estimates (rotation angle and translation distance) and stops once both
    window means drop below their thresholds. The first estimate is compared
    against the identity, which is where every ICP run starts.

    Args:
        min_diff_rot_err: Rotation threshold (radians).
        min_diff_trans_err: Translation threshold (same unit as the clouds).
        smooth_length: Number of recent increments averaged.
    """

    def __init__(
        self,
        min_diff_rot_err: float = 0.001,
        min_diff_trans_err: float = 0.001,
        smooth_length: int = 3,
    ):
        super().__init__()
        if smooth_length < 1:
            raise ValueError(f"smooth_length must be >= 1, got {smooth_length}")
        self.min_diff_rot_err = min_diff_rot_err
        self.min_diff_trans_err = min_diff_trans_err
        self.smooth_length = smooth_length
        self._previous = RigidTransform.identity()
        self._rotation_steps: Deque[float] = deque(maxlen=smooth_length)
        self._translation_steps: Deque[float] = deque(maxlen=smooth_length)

    def should_continue(self, transform: RigidTransform) -> bool:
        self._rotation_steps.append(self._previous.angular_distance(transform))
        self._translation_steps.append(
            float(np.linalg.norm(transform.translation - self._previous.translation))
        )
        self._previous = transform

        if len(self._rotation_steps) < self.smooth_length:
            return True

        rot_mean = float(np.mean(self._rotation_steps))
        trans_mean = float(np.mean(self._translation_steps))
        logger.debug("Mean increments over last %d: Δθ=%.3e rad, |Δt|=%.3e",
                     self.smooth_length, rot_mean, trans_mean)
        if rot_mean < self.min_diff_rot_err and trans_mean < self.min_diff_trans_err:
            self.termination_reason = CONVERGED
            return False
        return True


class BoundTransformationChecker(TransformationChecker):
    """
    Abort when the accumulated motion leaves the admissible region.

    Raises:
        ConvergenceError: If the rotation angle exceeds ``max_rotation_norm``
            (radians) or the translation exceeds ``max_translation_norm``.
    """

    def __init__(self, max_rotation_norm: float = 1.0, max_translation_norm: float = 1.0):
        super().__init__()
        self.max_rotation_norm = max_rotation_norm
        self.max_translation_norm = max_translation_norm

    def should_continue(self, transform: RigidTransform) -> bool:
        if transform.rotation_angle > self.max_rotation_norm:
            raise ConvergenceError(
                f"Rotation {transform.rotation_angle:.4f} rad exceeds bound {self.max_rotation_norm:.4f} rad"
            )
        if transform.translation_norm > self.max_translation_norm:
            raise ConvergenceError(
                f"Translation {transform.translation_norm:.4f} exceeds bound {self.max_translation_norm:.4f}"
            )
        return True


class CompositeTransformationChecker(TransformationChecker):
    """Continue only while every child checker agrees.

    All children see every estimate, so stateful checkers stay in sync even
    after another child has voted to stop.
    """

    def __init__(self, checkers: Sequence[TransformationChecker]):
        super().__init__()
        if not checkers:
            raise ValueError("CompositeTransformationChecker needs at least one checker")
        self.checkers: List[TransformationChecker] = list(checkers)

    def should_continue(self, transform: RigidTransform) -> bool:
        votes = [checker.should_continue(transform) for checker in self.checkers]
        if all(votes):
            return True
        # Convergence takes precedence when it fires on the last allowed iteration
        reasons = [c.termination_reason for c, v in zip(self.checkers, votes) if not v]
        self.termination_reason = CONVERGED if CONVERGED in reasons else reasons[0]
        return False


class CallableCheckerFactory(TransformationCheckerFactory):
    """Adapter turning a zero-argument callable into a checker factory."""

    def __init__(self, create_fn: Callable[[], TransformationChecker]):
        self._create_fn = create_fn

    def create(self) -> TransformationChecker:
        return self._create_fn()


class DefaultTransformationCheckerFactory(TransformationCheckerFactory):
    """
    Default continuation policy: iteration budget plus differential convergence.

    Args:
        max_iterations: Iteration budget.
        min_diff_rot_err: Rotation convergence threshold (radians).
        min_diff_trans_err: Translation convergence threshold.
        smooth_length: Sliding window length for the differential check.
        max_rotation_norm: Optional rotation bound (radians); enables a bound check.
        max_translation_norm: Optional translation bound; enables a bound check.
    """

    def __init__(
        self,
        max_iterations: int = 40,
        min_diff_rot_err: float = 0.001,
        min_diff_trans_err: float = 0.001,
        smooth_length: int = 3,
        max_rotation_norm: Optional[float] = None,
        max_translation_norm: Optional[float] = None,
    ):
        self.max_iterations = max_iterations
        self.min_diff_rot_err = min_diff_rot_err
        self.min_diff_trans_err = min_diff_trans_err
        self.smooth_length = smooth_length
        self.max_rotation_norm = max_rotation_norm
        self.max_translation_norm = max_translation_norm

    def create(self) -> TransformationChecker:
        checkers: List[TransformationChecker] = [
            CounterTransformationChecker(self.max_iterations),
            DifferentialTransformationChecker(
                self.min_diff_rot_err, self.min_diff_trans_err, self.smooth_length
            ),
        ]
        if self.max_rotation_norm is not None or self.max_translation_norm is not None:
            checkers.append(
                BoundTransformationChecker(
                    max_rotation_norm=self.max_rotation_norm if self.max_rotation_norm is not None else np.inf,
                    max_translation_norm=self.max_translation_norm if self.max_translation_norm is not None else np.inf,
                )
            )
        return CompositeTransformationChecker(checkers)
