"""
ICP Registration

This module implements the Iterative Closest Point (ICP) orchestrator that
refines an initial guess of the rigid transform taking a reading cloud into
the frame of a reference cloud.

The loop runs in a working frame centered on the reference centroid so that
rotation updates do not couple into large translation errors. Frames used
below (``T_a_b`` maps coordinates expressed in frame <b> into frame <a>):

    <refIn>    frame of the reference as passed in
    <dataIn>   frame of the reading as passed in
    <refMean>  working frame at the reference centroid, equal to <iter(0)>
    <iter(i)>  frame of the reading estimate after i iterations

The returned transform is ``T_refIn_dataIn`` after refinement.
"""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Optional, Union

import numpy as np

from ..geometry.point_cloud import PointCloud
from ..geometry.rigid_transform import RigidTransform
from ..utils.logging import setup_logger
from ..utils.validation import PreconditionError
from ..visualization.inspectors import REFERENCE_LABEL, iteration_label
from .matching import Matcher
from .strategies import StrategyConfig
from .transformation_checkers import CONVERGED

logger = setup_logger(__name__)

CloudLike = Union[PointCloud, np.ndarray]
TransformLike = Union[RigidTransform, np.ndarray, None]


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of one ICP run.

    Attributes:
        transform: Best-fit transform from the reading frame to the reference frame
        iterations: Number of completed match/weight/minimize/check passes
        termination_reason: Why the continuation policy stopped, if it reported it
    """

    transform: RigidTransform
    iterations: int
    termination_reason: Optional[str] = None

    @property
    def converged(self) -> bool:
        return self.termination_reason == CONVERGED


def _as_point_cloud(cloud: CloudLike) -> PointCloud:
    if isinstance(cloud, PointCloud):
        return cloud
    return PointCloud.from_points(cloud)


def _as_transform(transform: TransformLike) -> RigidTransform:
    if transform is None:
        return RigidTransform.identity()
    if isinstance(transform, RigidTransform):
        return transform
    return RigidTransform.from_matrix(transform)


def _require_points(cloud: PointCloud, name: str) -> None:
    if cloud.is_empty:
        raise PreconditionError(f"{name} point cloud is empty")


class ICP:
    """
    Iterative Closest Point registration with pluggable collaborators.

    Each iteration:
    1. Moves the reading by the current estimate
    2. Finds closest-point correspondences in the reference
    3. Weights them against outliers
    4. Minimizes the alignment error to get an increment
    5. Composes the increment onto the estimate and asks the continuation
       policy whether to go on

    The orchestrator keeps no per-call state, so one instance can serve
    independent registrations.
    """

    def __init__(self, strategies: Optional[StrategyConfig] = None):
        self.strategies = strategies if strategies is not None else StrategyConfig()

    def compute(
        self,
        reading: CloudLike,
        reference: CloudLike,
        initial_guess: TransformLike = None,
    ) -> RegistrationResult:
        """
        Align ``reading`` onto ``reference``.

        Args:
            reading: Cloud to align, as a PointCloud or an (N, 3) array.
            reference: Fixed target cloud, as a PointCloud or an (M, 3) array.
            initial_guess: Initial ``T_refIn_dataIn`` as RigidTransform, 4x4
                matrix, or None for identity.

        Returns:
            RegistrationResult with the refined transform.

        Raises:
            PreconditionError: On empty clouds, weight/match shape mismatch or
                non-finite transforms.
        """
        reading_in = _as_point_cloud(reading)
        reference_in = _as_point_cloud(reference)
        T_refIn_dataIn = _as_transform(initial_guess)
        _require_points(reading_in, "Reading")
        _require_points(reference_in, "Reference")

        s = self.strategies
        logger.info(
            "Starting ICP with %d reading points and %d reference points.",
            len(reading_in),
            len(reference_in),
        )

        # Reference is expressed in <refIn>
        reference_filtered = s.reference_filter.filter(reference_in)
        _require_points(reference_filtered, "Filtered reference")

        # Working frame at the reference center of mass
        mean_reference = reference_filtered.centroid()
        T_refIn_refMean = RigidTransform.from_translation(mean_reference)

        # From here the reference is expressed in <refMean>
        reference_mean = reference_filtered.translated(-mean_reference)

        matcher = s.matcher_factory.build(reference_mean)

        return self._compute_with_transformed_reference(
            reading_in, reference_mean, matcher, T_refIn_refMean, T_refIn_dataIn
        )

    def _compute_with_transformed_reference(
        self,
        reading_in: PointCloud,
        reference: PointCloud,
        matcher: Matcher,
        T_refIn_refMean: RigidTransform,
        T_refIn_dataIn: RigidTransform,
    ) -> RegistrationResult:
        s = self.strategies

        # Reading is expressed in <dataIn>
        reading_filtered = s.reading_filter.filter(reading_in)
        _require_points(reading_filtered, "Filtered reading")

        # From here the reading is expressed in <refMean>
        T_refMean_dataIn = T_refIn_refMean.inverse() @ T_refIn_dataIn
        reading = reading_filtered.transformed(T_refMean_dataIn)

        self._inspect(reference, REFERENCE_LABEL)

        # <refMean> is <iter(0)>, so the estimate starts at identity
        T_iter = RigidTransform.identity()
        checker = s.checker_factory.create()
        iteration = 0
        icp_start = time.time()

        while True:
            step_reading = reading.transformed(T_iter)
            self._inspect(step_reading, iteration_label(iteration))

            matches = matcher.find_closest(step_reading)

            weights = np.asarray(
                s.outlier_filter.compute_weights(step_reading, reference, matches)
            )
            if weights.shape != matches.shape:
                raise PreconditionError(
                    f"Outlier weights shape {weights.shape} does not match "
                    f"correspondence shape {matches.shape}"
                )

            delta = s.error_minimizer.compute(step_reading, reference, weights, matches)

            # The increment is applied after all accumulated motion
            T_iter = delta @ T_iter

            iterate = checker.should_continue(T_iter)
            iteration += 1

            logger.debug(
                "Iteration %d: inliers=%d/%d, |Δt|=%.6e, Δθ=%.6e rad",
                iteration,
                int(np.count_nonzero(weights > 0)),
                weights.size,
                delta.translation_norm,
                delta.rotation_angle,
            )

            if not iterate:
                break

        reason = getattr(checker, "termination_reason", None)
        logger.info(
            "ICP finished in %.4f s after %d iterations (%s).",
            time.time() - icp_start,
            iteration,
            reason or "stopped by continuation policy",
        )

        # T_iter is T_iter(n)_iter(0) and <iter(0)> equals <refMean>, so
        #   T_iter(n)_dataIn = T_iter * T_refMean_dataIn
        # and T_refIn_refMean removes the temporary frame.
        transform = T_refIn_refMean @ T_iter @ T_refMean_dataIn
        return RegistrationResult(transform=transform, iterations=iteration, termination_reason=reason)

    def _inspect(self, cloud: PointCloud, label: str) -> None:
        try:
            self.strategies.inspector.inspect(cloud, label)
        except Exception as e:
            logger.warning("Inspector %s failed on '%s' (%s); continuing registration.",
                           type(self.strategies.inspector).__name__, label, e)


def register(
    reading: CloudLike,
    reference: CloudLike,
    initial_guess: TransformLike = None,
    strategies: Optional[StrategyConfig] = None,
) -> RigidTransform:
    """
    Register ``reading`` onto ``reference`` and return ``T_refIn_dataIn``.

    Convenience wrapper around ``ICP(strategies).compute``.
    """
    return ICP(strategies).compute(reading, reference, initial_guess).transform
