import math
import random

import pytest

from coach_service.models import JointType, Landmark, average_visibility, calculate_angle, has_landmarks


def lm(x, y, visibility=None):
    return Landmark(x=x, y=y, visibility=visibility)


def test_right_angle():
    assert calculate_angle(lm(1, 0), lm(0, 0), lm(0, 1)) == pytest.approx(90.0)


def test_straight_line_is_180():
    assert calculate_angle(lm(-1, 0), lm(0, 0), lm(1, 0)) == pytest.approx(180.0)


def test_reflex_difference_is_folded_below_180():
    a = lm(math.cos(math.radians(170)), math.sin(math.radians(170)))
    c = lm(math.cos(math.radians(-170)), math.sin(math.radians(-170)))
    assert calculate_angle(a, lm(0, 0), c) == pytest.approx(20.0)


def test_angle_is_symmetric_and_bounded():
    rng = random.Random(7)
    for _ in range(200):
        a, b, c = (lm(rng.uniform(-1, 1), rng.uniform(-1, 1)) for _ in range(3))
        forward = calculate_angle(a, b, c)
        assert forward == pytest.approx(calculate_angle(c, b, a))
        assert 0.0 <= forward <= 180.0


def test_nan_propagates():
    assert math.isnan(calculate_angle(lm(float("nan"), 0), lm(0, 0), lm(1, 1)))


def test_average_visibility_counts_missing_as_zero():
    landmarks = [lm(0, 0, 1.0), lm(0, 0, None), lm(0, 0, 0.5)]
    assert average_visibility(landmarks, [0, 1, 2]) == pytest.approx(0.5)


def test_average_visibility_out_of_range_and_empty():
    landmarks = [lm(0, 0, 1.0)]
    assert average_visibility(landmarks, [0, 40]) == pytest.approx(0.5)
    assert average_visibility([], [JointType.LEFT_HIP]) == 0.0
    assert average_visibility(landmarks, []) == 0.0


def test_average_visibility_ignores_non_finite_and_clamps():
    landmarks = [lm(0, 0, float("nan")), lm(0, 0, float("inf")), lm(0, 0, 3.0), lm(0, 0, -1.0)]
    assert average_visibility(landmarks, [0, 1]) == 0.0
    assert average_visibility(landmarks, [2, 3]) == pytest.approx(0.5)


def test_average_visibility_accepts_joint_types():
    landmarks = [lm(0, 0, 0.8) for _ in range(33)]
    assert average_visibility(landmarks, [JointType.LEFT_KNEE, JointType.RIGHT_KNEE]) == pytest.approx(0.8)


def test_has_landmarks():
    landmarks = [lm(0.1, 0.2, 0.9) for _ in range(26)]
    assert has_landmarks(landmarks, [JointType.LEFT_KNEE])
    assert not has_landmarks(landmarks, [JointType.LEFT_ANKLE])

    landmarks[JointType.LEFT_KNEE.value] = lm(float("inf"), 0.2, 0.9)
    assert not has_landmarks(landmarks, [JointType.LEFT_KNEE])


def test_landmark_from_dict_defaults():
    point = Landmark.from_dict({"x": 0.25, "y": "0.5"})
    assert point == Landmark(x=0.25, y=0.5, z=0.0, visibility=None)
