import copy

import pytest

from coach_service.models import (
    EXERCISE_THRESHOLDS,
    ExerciseType,
    JointType,
    PoseAnalyzer,
    analyze_pose,
)
from coach_service.models.pose_analyzer import (
    MSG_FULL_BODY,
    MSG_NOT_RECOGNIZED,
    MSG_REP_COUNTED,
    MSG_SIDEWAYS,
)

from .pose_builders import blank_pose, jumping_jack_pose, pushup_pose, squat_pose


@pytest.fixture
def analyzer():
    return PoseAnalyzer()


# ============= Squat =============

def test_squat_full_repetition(analyzer):
    standing = analyzer.analyze_squat(squat_pose(170, 170), "up")
    assert standing.stage == "up"
    assert not standing.rep_counted
    assert standing.feedback.messages == ["Keep it up!"]

    bottom = analyzer.analyze_squat(squat_pose(80, 80), "up")
    assert bottom.stage == "down"
    assert not bottom.rep_counted
    assert bottom.feedback.is_correct
    assert bottom.feedback.messages == ["Keep it up!"]

    top = analyzer.analyze_squat(squat_pose(170, 170), "down")
    assert top.stage == "up"
    assert top.rep_counted
    assert MSG_REP_COUNTED in top.feedback.messages


def test_squat_counted_rep_keeps_earlier_corrections(analyzer):
    top = analyzer.analyze_squat(squat_pose(170, 170), "down")
    assert top.feedback.messages == ["Squat deeper!", MSG_REP_COUNTED]
    assert not top.feedback.is_correct


def test_squat_down_phase_checks(analyzer):
    deep = analyzer.analyze_squat(squat_pose(80, 100), "down")
    assert deep.feedback.messages == ["Good depth!"]
    assert deep.feedback.is_correct
    assert deep.stage == "down"

    shallow = analyzer.analyze_squat(squat_pose(120, 80), "down")
    assert shallow.feedback.messages == ["Squat deeper!", "Keep your chest up!"]
    assert not shallow.feedback.is_correct
    assert shallow.stage == "down"
    assert not shallow.rep_counted


def test_corrections_exclude_praise(analyzer):
    result = analyzer.analyze_squat(squat_pose(80, 80), "down")
    assert result.feedback.messages == ["Good depth!", "Keep your chest up!"]
    assert result.feedback.corrections == ["Keep your chest up!"]
    assert "corrections" not in result.to_dict()["feedback"]


def test_squat_entry_uses_hip_tolerance(analyzer):
    assert analyzer.analyze_squat(squat_pose(80, 105), "up").stage == "down"
    assert analyzer.analyze_squat(squat_pose(80, 115), "up").stage == "up"
    assert analyzer.analyze_squat(squat_pose(95, 80), "up").stage == "up"


def test_squat_visibility_gate(analyzer):
    result = analyzer.analyze_squat(squat_pose(170, 170, visibility=0.5), "down")
    assert result.feedback.messages == [MSG_FULL_BODY]
    assert not result.feedback.is_correct
    assert result.stage == "down"
    assert not result.rep_counted


def test_squat_rep_not_counted_twice(analyzer):
    frames = [(170, 170), (80, 80), (80, 80), (170, 170), (170, 170), (170, 170),
              (85, 85), (170, 170)]
    stage, reps = "up", 0
    for knee, hip in frames:
        result = analyzer.analyze_squat(squat_pose(knee, hip), stage)
        stage = result.stage
        reps += result.rep_counted
    assert reps == 2
    assert stage == "up"


def test_squat_non_finite_coordinates_are_gated(analyzer):
    landmarks = squat_pose(80, 80)
    landmarks[JointType.LEFT_KNEE.value].x = float("nan")
    result = analyzer.analyze_squat(landmarks, "up")
    assert result.feedback.messages == [MSG_FULL_BODY]
    assert result.stage == "up"


def test_nan_visibility_is_gated(analyzer):
    stage, reps = "up", 0
    for knee, hip in ((80, 80), (170, 170)):
        landmarks = squat_pose(knee, hip, visibility=float("nan"))
        result = analyzer.analyze_squat(landmarks, stage)
        assert result.feedback.messages == [MSG_FULL_BODY]
        stage = result.stage
        reps += result.rep_counted
    assert reps == 0
    assert stage == "up"


# ============= Push-up =============

def test_pushup_visibility_gate(analyzer):
    result = analyzer.analyze_pushup(pushup_pose(170, 175, visibility=0.5), "up")
    assert result.feedback.messages == [MSG_SIDEWAYS]
    assert not result.feedback.is_correct
    assert result.stage == "up"
    assert not result.rep_counted


def test_pushup_repetition(analyzer):
    lowering = analyzer.analyze_pushup(pushup_pose(100, 175), "up")
    assert lowering.stage == "down"
    assert lowering.feedback.messages == ["Perfect form!"]

    not_deep = analyzer.analyze_pushup(pushup_pose(100, 175), "down")
    assert not_deep.feedback.messages == ["Go lower!"]
    assert not not_deep.feedback.is_correct

    bottom = analyzer.analyze_pushup(pushup_pose(80, 175), "down")
    assert bottom.feedback.messages == ["Great depth!"]
    assert bottom.feedback.is_correct

    top = analyzer.analyze_pushup(pushup_pose(170, 175), "down")
    assert top.stage == "up"
    assert top.rep_counted
    assert top.feedback.messages == ["Go lower!", MSG_REP_COUNTED]


def test_pushup_back_checked_in_every_phase(analyzer):
    up = analyzer.analyze_pushup(pushup_pose(170, 140), "up")
    assert up.feedback.messages == ["Keep your back straight!"]
    assert up.stage == "up"

    down = analyzer.analyze_pushup(pushup_pose(80, 140), "down")
    assert down.feedback.messages == ["Keep your back straight!", "Great depth!"]
    assert not down.feedback.is_correct


def test_pushup_missing_knee_is_gated(analyzer):
    landmarks = pushup_pose(100, 175)[:JointType.LEFT_KNEE.value]
    result = analyzer.analyze_pushup(landmarks, "up")
    assert result.feedback.messages == [MSG_SIDEWAYS]
    assert result.stage == "up"


def test_pushup_entry_uses_elbow_tolerance(analyzer):
    assert analyzer.analyze_pushup(pushup_pose(105, 175), "up").stage == "down"
    assert analyzer.analyze_pushup(pushup_pose(115, 175), "up").stage == "up"


# ============= Jumping jack =============

def test_jumping_jack_repetition(analyzer):
    opened = analyzer.analyze_jumping_jack(jumping_jack_pose(True, 0.9), "closed")
    assert opened.stage == "open"
    assert opened.feedback.messages == ["Good energy!"]

    holding = analyzer.analyze_jumping_jack(jumping_jack_pose(True, 0.9), "open")
    assert holding.stage == "open"
    assert holding.feedback.is_correct

    closed = analyzer.analyze_jumping_jack(jumping_jack_pose(False, 0.15), "open")
    assert closed.stage == "closed"
    assert closed.rep_counted
    assert closed.feedback.messages == ["Raise your hands higher!", "Spread your feet wider!", MSG_REP_COUNTED]


def test_jumping_jack_needs_hands_and_spread_to_open(analyzer):
    assert analyzer.analyze_jumping_jack(jumping_jack_pose(True, 0.5), "closed").stage == "closed"
    assert analyzer.analyze_jumping_jack(jumping_jack_pose(False, 0.9), "closed").stage == "closed"


def test_jumping_jack_gates(analyzer):
    low = analyzer.analyze_jumping_jack(jumping_jack_pose(True, 0.9, visibility=0.65), "closed")
    assert low.feedback.messages == [MSG_FULL_BODY]
    assert low.stage == "closed"

    flat = analyzer.analyze_jumping_jack(jumping_jack_pose(True, 0.9, shoulder_width=0.0), "open")
    assert flat.feedback.messages == [MSG_FULL_BODY]
    assert flat.stage == "open"
    assert not flat.rep_counted


# ============= Stage handling =============

@pytest.mark.parametrize("analyze, frame, initial", [
    ("analyze_squat", squat_pose(170, 170), "up"),
    ("analyze_pushup", pushup_pose(170, 175), "up"),
    ("analyze_jumping_jack", jumping_jack_pose(False, 0.1), "closed"),
])
def test_unknown_stage_resets_to_initial(analyzer, analyze, frame, initial):
    result = getattr(analyzer, analyze)(frame, "start")
    assert result.stage == initial
    assert not result.rep_counted


def test_unknown_stage_reset_then_transition(analyzer):
    assert analyzer.analyze_squat(squat_pose(80, 80), "sideways").stage == "down"


def test_gated_frame_with_unknown_stage_returns_initial(analyzer):
    result = analyzer.analyze_jumping_jack([], "start")
    assert result.stage == "closed"
    assert result.feedback.messages == [MSG_FULL_BODY]


@pytest.mark.parametrize("exercise", list(ExerciseType))
def test_empty_frame_is_gated(analyzer, exercise):
    result = analyzer.analyze_pose(exercise, [], "up" if exercise != ExerciseType.JUMPING_JACKS else "open")
    assert not result.feedback.is_correct
    assert not result.rep_counted
    assert len(result.feedback.messages) == 1


# ============= Dispatcher =============

@pytest.mark.parametrize("exercise", ["burpees", "", None, 42])
def test_dispatch_unknown_exercise(analyzer, exercise):
    result = analyzer.analyze_pose(exercise, squat_pose(80, 80), "up")
    assert result.to_dict() == {
        "feedback": {"messages": [MSG_NOT_RECOGNIZED], "is_correct": False},
        "stage": "start",
        "rep_counted": False,
    }


def test_dispatch_by_value_and_enum(analyzer):
    assert analyzer.analyze_pose("squats", squat_pose(80, 80), "up").stage == "down"
    assert analyzer.analyze_pose(ExerciseType.PUSHUPS, pushup_pose(100, 175), "up").stage == "down"
    assert analyze_pose("jumping_jacks", jumping_jack_pose(True, 0.9), "closed").stage == "open"


def test_threshold_table_drives_behaviour():
    thresholds = copy.deepcopy(EXERCISE_THRESHOLDS)
    thresholds[ExerciseType.SQUATS]["down"]["knee_angle"] = 100
    tuned = PoseAnalyzer(thresholds=thresholds)

    assert PoseAnalyzer().analyze_squat(squat_pose(95, 80), "up").stage == "up"
    assert tuned.analyze_squat(squat_pose(95, 80), "up").stage == "down"


def test_blank_pose_with_low_visibility_never_counts(analyzer):
    for exercise, stage in [("squats", "down"), ("pushups", "down"), ("jumping_jacks", "open")]:
        result = analyzer.analyze_pose(exercise, blank_pose(visibility=0.1), stage)
        assert result.stage == stage
        assert not result.rep_counted
