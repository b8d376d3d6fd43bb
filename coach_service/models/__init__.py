"""
FITSIGHT Coach Service Models

Rule-based exercise form analysis, workout orchestration and coaching tips.
"""

from .geometry import (
    JointType,
    Landmark,
    calculate_angle,
    average_visibility,
    has_landmarks
)

from .exercises import (
    ExerciseType,
    ExerciseDefinition,
    EXERCISE_DEFINITIONS,
    EXERCISE_THRESHOLDS,
    get_exercise_definition
)

from .pose_analyzer import (
    PoseAnalyzer,
    FormFeedback,
    AnalysisResult,
    analyze_pose,
    get_pose_analyzer
)

from .workout_session import (
    WorkoutSession,
    WorkoutSessionHandler,
    SessionState,
    SessionRecord,
    SetRecord,
    estimate_calories,
    get_session_handler
)

from .tip_generator import (
    TipGenerator,
    get_tip_generator
)

__all__ = [
    # Geometry
    "JointType",
    "Landmark",
    "calculate_angle",
    "average_visibility",
    "has_landmarks",
    # Exercises
    "ExerciseType",
    "ExerciseDefinition",
    "EXERCISE_DEFINITIONS",
    "EXERCISE_THRESHOLDS",
    "get_exercise_definition",
    # Pose Analyzer
    "PoseAnalyzer",
    "FormFeedback",
    "AnalysisResult",
    "analyze_pose",
    "get_pose_analyzer",
    # Workout Session
    "WorkoutSession",
    "WorkoutSessionHandler",
    "SessionState",
    "SessionRecord",
    "SetRecord",
    "estimate_calories",
    "get_session_handler",
    # Tips
    "TipGenerator",
    "get_tip_generator",
]
