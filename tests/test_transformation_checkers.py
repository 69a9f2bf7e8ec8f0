"""
Tests for ICP continuation policies.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from rigid_registration.alignment.transformation_checkers import (
    CONVERGED,
    MAX_ITERATIONS,
    BoundTransformationChecker,
    CallableCheckerFactory,
    CompositeTransformationChecker,
    CounterTransformationChecker,
    DefaultTransformationCheckerFactory,
    DifferentialTransformationChecker,
)
from rigid_registration.geometry import RigidTransform
from rigid_registration.utils.validation import ConvergenceError


IDENTITY = RigidTransform.identity()


def test_counter_stops_at_budget():
    checker = CounterTransformationChecker(max_iterations=3)

    assert checker.should_continue(IDENTITY)
    assert checker.should_continue(IDENTITY)
    assert not checker.should_continue(IDENTITY)
    assert checker.termination_reason == MAX_ITERATIONS


def test_counter_budget_of_one():
    checker = CounterTransformationChecker(max_iterations=1)

    assert not checker.should_continue(IDENTITY)


def test_counter_rejects_zero():
    with pytest.raises(ValueError):
        CounterTransformationChecker(max_iterations=0)


def test_differential_waits_for_full_window():
    checker = DifferentialTransformationChecker(1e-3, 1e-3, smooth_length=3)

    # Estimate never moves, but the window needs three samples
    assert checker.should_continue(IDENTITY)
    assert checker.should_continue(IDENTITY)
    assert not checker.should_continue(IDENTITY)
    assert checker.termination_reason == CONVERGED


def test_differential_first_step_compared_to_identity():
    checker = DifferentialTransformationChecker(1e-3, 1e-3, smooth_length=1)

    assert checker.should_continue(RigidTransform.from_translation([1.0, 0.0, 0.0]))
    # Same estimate again: zero increment
    assert not checker.should_continue(RigidTransform.from_translation([1.0, 0.0, 0.0]))


def test_differential_requires_both_thresholds():
    checker = DifferentialTransformationChecker(1e-3, 1e-3, smooth_length=1)
    checker.should_continue(IDENTITY)

    # Translation settled but rotation still moving
    assert checker.should_continue(RigidTransform.from_axis_angle([0, 0, 1], 0.01))
    assert checker.termination_reason is None


def test_bound_checker_raises():
    checker = BoundTransformationChecker(max_rotation_norm=0.1, max_translation_norm=1.0)

    assert checker.should_continue(RigidTransform.from_translation([0.5, 0.0, 0.0]))
    with pytest.raises(ConvergenceError, match="Translation"):
        checker.should_continue(RigidTransform.from_translation([2.0, 0.0, 0.0]))
    with pytest.raises(ConvergenceError, match="Rotation"):
        checker.should_continue(RigidTransform.from_axis_angle([1, 0, 0], 0.5))


def test_composite_prefers_convergence_reason():
    checker = CompositeTransformationChecker([
        CounterTransformationChecker(max_iterations=1),
        DifferentialTransformationChecker(1e-3, 1e-3, smooth_length=1),
    ])

    assert not checker.should_continue(IDENTITY)
    assert checker.termination_reason == CONVERGED


def test_composite_reports_budget():
    checker = CompositeTransformationChecker([
        CounterTransformationChecker(max_iterations=2),
        DifferentialTransformationChecker(1e-9, 1e-9, smooth_length=1),
    ])

    assert checker.should_continue(RigidTransform.from_translation([1.0, 0.0, 0.0]))
    assert not checker.should_continue(RigidTransform.from_translation([2.0, 0.0, 0.0]))
    assert checker.termination_reason == MAX_ITERATIONS


def test_default_factory_creates_fresh_checkers():
    factory = DefaultTransformationCheckerFactory(max_iterations=2, min_diff_rot_err=0.0, min_diff_trans_err=0.0)
    first = factory.create()
    second = factory.create()

    assert first is not second
    assert first.should_continue(IDENTITY)
    assert not first.should_continue(IDENTITY)
    # The second checker has its own counter
    assert second.should_continue(IDENTITY)


def test_default_factory_adds_bounds():
    factory = DefaultTransformationCheckerFactory(max_translation_norm=1.0)
    checker = factory.create()

    with pytest.raises(ConvergenceError):
        checker.should_continue(RigidTransform.from_translation([np.sqrt(2.0), 1.0, 0.0]))


def test_callable_factory():
    factory = CallableCheckerFactory(lambda: CounterTransformationChecker(5))

    assert isinstance(factory.create(), CounterTransformationChecker)
