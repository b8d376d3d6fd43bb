"""
FITSIGHT Coach Service - Exercise Catalogue

Static exercise metadata and the per-exercise threshold table that separates
posture phases and correctness bands. Tuning form sensitivity happens here,
never in the analyzer control flow.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple, Union


class ExerciseType(Enum):
    """Supported exercise types."""
    SQUATS = "squats"
    PUSHUPS = "pushups"
    JUMPING_JACKS = "jumping_jacks"


@dataclass(frozen=True)
class ExerciseDefinition:
    """Static description of an exercise."""
    name: ExerciseType
    display_name: str
    met_value: float
    instructions: str
    initial_state: str
    stages: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name.value,
            "display_name": self.display_name,
            "met_value": self.met_value,
            "instructions": self.instructions,
            "initial_state": self.initial_state,
            "stages": list(self.stages),
        }


EXERCISE_DEFINITIONS: Dict[ExerciseType, ExerciseDefinition] = {
    ExerciseType.SQUATS: ExerciseDefinition(
        name=ExerciseType.SQUATS,
        display_name="Squats",
        met_value=5.5,
        instructions="Keep your back straight and lower your hips until your thighs are parallel to the floor.",
        initial_state="up",
        stages=("up", "down"),
    ),
    ExerciseType.PUSHUPS: ExerciseDefinition(
        name=ExerciseType.PUSHUPS,
        display_name="Push-ups",
        met_value=8.0,
        instructions="Keep your body in a straight line from head to heels. Lower until your chest nearly touches the floor.",
        initial_state="up",
        stages=("up", "down"),
    ),
    ExerciseType.JUMPING_JACKS: ExerciseDefinition(
        name=ExerciseType.JUMPING_JACKS,
        display_name="Jumping Jacks",
        met_value=8.0,
        instructions="Jump while spreading your legs and bringing your arms overhead. Return to the starting position.",
        initial_state="closed",
        stages=("closed", "open"),
    ),
}


# Angles in degrees, ratios dimensionless. "*_tolerance" widens the
# phase-entry threshold so the stage does not chatter at the boundary.
EXERCISE_THRESHOLDS: Dict[ExerciseType, Dict[str, Any]] = {
    ExerciseType.SQUATS: {
        "up": {
            "hip_angle": 160,
            "knee_angle": 160,
        },
        "down": {
            "hip_angle": 90,
            "knee_angle": 90,
        },
        "hip_tolerance": 20,
        "min_visibility": 0.7,
    },
    ExerciseType.PUSHUPS: {
        "up": {
            "elbow_angle": 160,
            "shoulder_angle": 90,  # reference only
            "hip_angle": 160,
        },
        "down": {
            "elbow_angle": 90,
            "hip_angle": 160,
        },
        "elbow_tolerance": 20,
        "min_visibility": 0.6,
    },
    ExerciseType.JUMPING_JACKS: {
        "closed": {
            "left_shoulder_angle": 20,  # reference only
            "right_shoulder_angle": 20,
            "hip_distance_ratio": 0.2,  # ankle spread / shoulder width
        },
        "open": {
            "left_shoulder_angle": 160,
            "right_shoulder_angle": 160,
            "hip_distance_ratio": 0.8,
        },
        "min_visibility": 0.7,
    },
}


def get_exercise_definition(exercise: Union[ExerciseType, str]) -> ExerciseDefinition:
    """
    Look up an exercise definition.

    Raises:
        ValueError: If the exercise is not one of ExerciseType's values
    """
    return EXERCISE_DEFINITIONS[ExerciseType(exercise)]
