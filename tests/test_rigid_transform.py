"""
Unit tests for the RigidTransform value type.

These tests verify:
- Group laws (inverse, associativity, identity) on random transforms
- Unit-norm preservation under repeated composition
- Apply / apply_to_direction semantics
- Conversions to and from matrices and dictionaries
- Precondition violations
"""

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from rigid_registration.geometry.rigid_transform import RigidTransform
from rigid_registration.utils.validation import PreconditionError


SEEDS = list(range(10))


def _random_transform(rng: np.random.Generator, max_translation: float = 100.0) -> RigidTransform:
    q = rng.normal(size=4)
    t = rng.uniform(-max_translation, max_translation, size=3)
    return RigidTransform.from_quaternion(q, t)


def _rot_z(deg: float) -> np.ndarray:
    th = np.deg2rad(deg)
    return np.array([
        [np.cos(th), -np.sin(th), 0.0],
        [np.sin(th), np.cos(th), 0.0],
        [0.0, 0.0, 1.0],
    ])


class TestGroupLaws:
    """Algebraic laws checked over a set of random transforms."""

    @pytest.mark.parametrize("seed", SEEDS)
    def test_compose_with_inverse_is_identity(self, seed):
        rng = np.random.default_rng(seed)
        T = _random_transform(rng)
        identity = RigidTransform.identity()

        assert (T @ T.inverse()).is_close(identity, atol=1e-9)
        assert (T.inverse() @ T).is_close(identity, atol=1e-9)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_composition_is_associative(self, seed):
        rng = np.random.default_rng(seed)
        T1, T2, T3 = (_random_transform(rng) for _ in range(3))

        left = (T1 @ T2) @ T3
        right = T1 @ (T2 @ T3)
        assert left.is_close(right, atol=1e-9)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_identity_leaves_points_unchanged(self, seed):
        rng = np.random.default_rng(seed)
        x = rng.normal(size=(50, 3)) * 1000.0

        np.testing.assert_array_equal(RigidTransform.identity().apply(x), x)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_compose_matches_sequential_application(self, seed):
        """(T1 ∘ T2)(x) == T1(T2(x))."""
        rng = np.random.default_rng(seed)
        T1, T2 = _random_transform(rng), _random_transform(rng)
        x = rng.normal(size=(20, 3))

        np.testing.assert_allclose((T1 @ T2).apply(x), T1.apply(T2.apply(x)), atol=1e-9)

    def test_composition_is_not_commutative(self):
        T1 = RigidTransform.from_axis_angle([0, 0, 1], np.pi / 2)
        T2 = RigidTransform.from_translation([1.0, 0.0, 0.0])

        assert not (T1 @ T2).is_close(T2 @ T1, atol=1e-6)

    @pytest.mark.parametrize("seed", SEEDS[:3])
    def test_rotation_stays_unit_norm_after_repeated_composition(self, seed):
        rng = np.random.default_rng(seed)
        step = RigidTransform.from_rotation_vector(rng.normal(size=3) * 0.01, rng.normal(size=3) * 0.01)

        T = RigidTransform.identity()
        for _ in range(5000):
            T = step @ T

        assert abs(np.linalg.norm(T.rotation) - 1.0) < 1e-12
        R = T.rotation_matrix
        np.testing.assert_allclose(R.T @ R, np.eye(3), atol=1e-12)


class TestApply:
    """Tests for position and direction mapping."""

    def test_apply_rotation_and_translation(self):
        T = RigidTransform.from_axis_angle([0, 0, 1], np.pi / 2, translation=[1.0, 2.0, 3.0])

        np.testing.assert_allclose(T.apply([1.0, 0.0, 0.0]), [1.0, 3.0, 3.0], atol=1e-12)

    def test_apply_to_direction_ignores_translation(self):
        T = RigidTransform.from_axis_angle([0, 0, 1], np.pi / 2, translation=[10.0, 20.0, 30.0])

        np.testing.assert_allclose(T.apply_to_direction([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)

    def test_apply_batch_matches_matrix(self):
        rng = np.random.default_rng(3)
        T = _random_transform(rng)
        pts = rng.normal(size=(100, 3))

        homog = np.column_stack([pts, np.ones(len(pts))])
        expected = (T.as_matrix() @ homog.T).T[:, :3]
        np.testing.assert_allclose(T.apply(pts), expected, atol=1e-9)

    def test_apply_empty(self):
        T = RigidTransform.from_translation([1.0, 1.0, 1.0])

        assert T.apply(np.empty((0, 3))).shape == (0, 3)

    def test_inverse_formula(self):
        """Inverse(T) = (R^-1, -R^-1 t)."""
        rng = np.random.default_rng(4)
        T = _random_transform(rng)
        inv = T.inverse()

        R = T.rotation_matrix
        np.testing.assert_allclose(inv.rotation_matrix, R.T, atol=1e-12)
        np.testing.assert_allclose(inv.translation, -R.T @ T.translation, atol=1e-9)


class TestConstructors:
    """Tests for alternative constructors and conversions."""

    def test_from_matrix_round_trip(self):
        rng = np.random.default_rng(5)
        T = _random_transform(rng)

        restored = RigidTransform.from_matrix(T.as_matrix())
        assert restored.is_close(T, atol=1e-9)

    @pytest.mark.parametrize("deg", [0.0, 30.0, 90.0, 179.0, 180.0, -120.0])
    def test_from_matrix_rotation_angle(self, deg):
        T = RigidTransform.from_matrix(_rot_z(deg))

        assert T.rotation_angle == pytest.approx(np.deg2rad(abs(deg)), abs=1e-9)
        np.testing.assert_allclose(T.rotation_matrix, _rot_z(deg), atol=1e-12)

    def test_from_axis_angle_matches_rotation_vector(self):
        a = RigidTransform.from_axis_angle([0, 0, 2.0], 0.3)
        b = RigidTransform.from_rotation_vector([0, 0, 0.3])

        assert a.is_close(b, atol=1e-12)

    def test_tiny_rotation_vector(self):
        T = RigidTransform.from_rotation_vector([1e-14, 0.0, 0.0])

        assert T.rotation_angle == pytest.approx(1e-14, abs=1e-20)

    def test_quaternion_is_canonicalised(self):
        T = RigidTransform(rotation=np.array([-1.0, 0.0, 0.0, 0.0]))

        assert T.rotation[0] == 1.0
        assert T.is_close(RigidTransform.identity())

    def test_dict_round_trip(self):
        rng = np.random.default_rng(6)
        T = _random_transform(rng)

        restored = RigidTransform.from_dict(T.to_dict())
        assert restored.is_close(T, atol=1e-12)

    def test_is_immutable(self):
        T = RigidTransform.from_translation([1.0, 2.0, 3.0])

        with pytest.raises(ValueError):
            T.translation[0] = 5.0
        with pytest.raises(AttributeError):
            T.translation = np.zeros(3)

    def test_caller_array_is_copied(self):
        t = np.array([1.0, 2.0, 3.0])
        T = RigidTransform.from_translation(t)
        t[0] = 100.0

        assert T.translation[0] == 1.0


class TestPreconditions:
    """Malformed inputs are rejected at construction."""

    def test_non_unit_quaternion_raises(self):
        with pytest.raises(PreconditionError, match="unit norm"):
            RigidTransform(rotation=np.array([2.0, 0.0, 0.0, 0.0]))

    def test_non_finite_translation_raises(self):
        with pytest.raises(PreconditionError, match="non-finite"):
            RigidTransform.from_translation([np.nan, 0.0, 0.0])

    def test_non_finite_rotation_raises(self):
        with pytest.raises(PreconditionError):
            RigidTransform(rotation=np.array([np.inf, 0.0, 0.0, 0.0]))

    def test_zero_quaternion_raises(self):
        with pytest.raises(PreconditionError):
            RigidTransform.from_quaternion([0.0, 0.0, 0.0, 0.0])

    def test_reflection_matrix_raises(self):
        with pytest.raises(PreconditionError, match="reflection"):
            RigidTransform.from_matrix(np.diag([1.0, 1.0, -1.0]))

    def test_non_orthonormal_matrix_raises(self):
        with pytest.raises(PreconditionError, match="orthonormal"):
            RigidTransform.from_matrix(np.diag([2.0, 1.0, 1.0]))

    def test_wrong_translation_shape_raises(self):
        with pytest.raises(PreconditionError, match="shape"):
            RigidTransform.from_translation([1.0, 2.0])

    def test_zero_axis_raises(self):
        with pytest.raises(PreconditionError):
            RigidTransform.from_axis_angle([0.0, 0.0, 0.0], 1.0)
