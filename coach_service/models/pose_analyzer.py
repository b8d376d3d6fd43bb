"""
FITSIGHT Coach Service - Pose Analyzer

Rule-based exercise form evaluation and repetition counting.

Each analyzer is a pure function of (landmarks, current stage): it holds no
memory between frames. The caller persists the returned stage and passes it
back with the next frame, so calls for one workout must be made sequentially.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .exercises import EXERCISE_DEFINITIONS, EXERCISE_THRESHOLDS, ExerciseType
from .geometry import JointType, Landmark, average_visibility, calculate_angle, has_landmarks

logger = logging.getLogger("fitsight.coach.analyzer")


# ═══════════════════════════════════════════════════════════════════════════════
# FEEDBACK MESSAGES
# ═══════════════════════════════════════════════════════════════════════════════

MSG_FULL_BODY = "Please make sure your full body is visible."
MSG_SIDEWAYS = "Please position yourself sideways to the camera."
MSG_REP_COUNTED = "Rep counted!"
MSG_NOT_RECOGNIZED = "Exercise not recognized."

UNKNOWN_EXERCISE_STAGE = "start"


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FormFeedback:
    """Form messages for one frame. is_correct is False once any correction is added.

    corrections holds the corrective subset of messages, in order.
    """
    messages: List[str] = field(default_factory=list)
    is_correct: bool = True
    corrections: List[str] = field(default_factory=list, repr=False)

    def correct(self, message: str):
        self.messages.append(message)
        self.corrections.append(message)
        self.is_correct = False

    def to_dict(self) -> Dict[str, Any]:
        return {"messages": list(self.messages), "is_correct": self.is_correct}


@dataclass
class AnalysisResult:
    """Outcome of analyzing one frame."""
    feedback: FormFeedback
    stage: str
    rep_counted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feedback": self.feedback.to_dict(),
            "stage": self.stage,
            "rep_counted": self.rep_counted,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# POSE ANALYZER CLASS
# ═══════════════════════════════════════════════════════════════════════════════

class PoseAnalyzer:
    """
    Per-exercise state machines over body landmarks.

    Every analyzer follows the same steps:
    - Visibility gate (low confidence leaves the stage untouched)
    - Feature extraction (joint angles, distance ratios)
    - Rest -> active phase entry
    - Form checks while active, and rep completion on return to rest
    - Default encouragement when nothing else was said
    """

    SQUAT_JOINTS = [
        JointType.LEFT_HIP, JointType.RIGHT_HIP,
        JointType.LEFT_KNEE, JointType.RIGHT_KNEE,
        JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE,
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
    ]
    PUSHUP_JOINTS = [
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
        JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW,
        JointType.LEFT_WRIST, JointType.RIGHT_WRIST,
        JointType.LEFT_HIP, JointType.RIGHT_HIP,
    ]
    # Side view: only the left side is measured
    PUSHUP_SIDE_JOINTS = [
        JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_WRIST,
        JointType.LEFT_HIP, JointType.LEFT_KNEE,
    ]
    JUMPING_JACK_JOINTS = [
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
        JointType.LEFT_WRIST, JointType.RIGHT_WRIST,
        JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE,
    ]

    def __init__(self, thresholds: Optional[Dict[ExerciseType, Dict[str, Any]]] = None):
        """
        Args:
            thresholds: Exercise-keyed threshold table (defaults to EXERCISE_THRESHOLDS)
        """
        self.thresholds = thresholds or EXERCISE_THRESHOLDS
        self._analyzers = {
            ExerciseType.SQUATS: self.analyze_squat,
            ExerciseType.PUSHUPS: self.analyze_pushup,
            ExerciseType.JUMPING_JACKS: self.analyze_jumping_jack,
        }

    # ═══════════════════════════════════════════════════════════════════════════
    # SHARED HELPERS
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _normalize_stage(exercise: ExerciseType, stage: str) -> str:
        """Reset an unknown stage token to the exercise's initial state."""
        definition = EXERCISE_DEFINITIONS[exercise]
        if stage in definition.stages:
            return stage
        logger.debug(f"Unknown {exercise.value} stage {stage!r}, resetting to {definition.initial_state!r}")
        return definition.initial_state

    @staticmethod
    def _gated(stage: str, message: str) -> AnalysisResult:
        feedback = FormFeedback()
        feedback.correct(message)
        return AnalysisResult(feedback=feedback, stage=stage, rep_counted=False)

    def _passes_gate(self, landmarks: Sequence[Landmark], exercise: ExerciseType,
                     required: List[JointType], measured: List[JointType]) -> bool:
        if average_visibility(landmarks, required) < self.thresholds[exercise]["min_visibility"]:
            return False
        return has_landmarks(landmarks, measured)

    # ═══════════════════════════════════════════════════════════════════════════
    # EXERCISE ANALYZERS
    # ═══════════════════════════════════════════════════════════════════════════

    def analyze_squat(self, landmarks: Sequence[Landmark], current_stage: str) -> AnalysisResult:
        """Squat: average knee and hip angles over both legs, stages up/down."""
        stage = self._normalize_stage(ExerciseType.SQUATS, current_stage)

        if not self._passes_gate(landmarks, ExerciseType.SQUATS, self.SQUAT_JOINTS, self.SQUAT_JOINTS):
            return self._gated(stage, MSG_FULL_BODY)

        lm = landmarks
        left_knee = calculate_angle(lm[JointType.LEFT_HIP.value], lm[JointType.LEFT_KNEE.value], lm[JointType.LEFT_ANKLE.value])
        right_knee = calculate_angle(lm[JointType.RIGHT_HIP.value], lm[JointType.RIGHT_KNEE.value], lm[JointType.RIGHT_ANKLE.value])
        left_hip = calculate_angle(lm[JointType.LEFT_SHOULDER.value], lm[JointType.LEFT_HIP.value], lm[JointType.LEFT_KNEE.value])
        right_hip = calculate_angle(lm[JointType.RIGHT_SHOULDER.value], lm[JointType.RIGHT_HIP.value], lm[JointType.RIGHT_KNEE.value])

        knee_angle = (left_knee + right_knee) / 2
        hip_angle = (left_hip + right_hip) / 2

        thresholds = self.thresholds[ExerciseType.SQUATS]
        up, down = thresholds["up"], thresholds["down"]

        feedback = FormFeedback()
        rep_counted = False
        next_stage = stage

        if stage == "up":
            if knee_angle < down["knee_angle"] and hip_angle < down["hip_angle"] + thresholds["hip_tolerance"]:
                next_stage = "down"
        else:
            if knee_angle < down["knee_angle"]:
                feedback.messages.append("Good depth!")
            else:
                feedback.correct("Squat deeper!")

            if hip_angle < down["hip_angle"]:
                feedback.correct("Keep your chest up!")

            if knee_angle > up["knee_angle"] and hip_angle > up["hip_angle"]:
                next_stage = "up"
                rep_counted = True
                feedback.messages.append(MSG_REP_COUNTED)

        if not feedback.messages:
            feedback.messages.append("Keep it up!")

        logger.debug(f"squat knee={knee_angle:.1f} hip={hip_angle:.1f} {stage}->{next_stage}")
        return AnalysisResult(feedback=feedback, stage=next_stage, rep_counted=rep_counted)

    def analyze_pushup(self, landmarks: Sequence[Landmark], current_stage: str) -> AnalysisResult:
        """Push-up: left-side elbow and hip angles (side view), stages up/down."""
        stage = self._normalize_stage(ExerciseType.PUSHUPS, current_stage)

        if not self._passes_gate(landmarks, ExerciseType.PUSHUPS, self.PUSHUP_JOINTS, self.PUSHUP_SIDE_JOINTS):
            return self._gated(stage, MSG_SIDEWAYS)

        shoulder = landmarks[JointType.LEFT_SHOULDER.value]
        elbow = landmarks[JointType.LEFT_ELBOW.value]
        wrist = landmarks[JointType.LEFT_WRIST.value]
        hip = landmarks[JointType.LEFT_HIP.value]
        knee = landmarks[JointType.LEFT_KNEE.value]

        elbow_angle = calculate_angle(shoulder, elbow, wrist)
        hip_angle = calculate_angle(shoulder, hip, knee)

        thresholds = self.thresholds[ExerciseType.PUSHUPS]
        up, down = thresholds["up"], thresholds["down"]

        feedback = FormFeedback()
        rep_counted = False
        next_stage = stage

        # Back line is checked in every phase
        if hip_angle < up["hip_angle"]:
            feedback.correct("Keep your back straight!")

        if stage == "up":
            if elbow_angle < down["elbow_angle"] + thresholds["elbow_tolerance"]:
                next_stage = "down"
        else:
            if elbow_angle > down["elbow_angle"]:
                feedback.correct("Go lower!")
            else:
                feedback.messages.append("Great depth!")

            if elbow_angle > up["elbow_angle"]:
                next_stage = "up"
                rep_counted = True
                feedback.messages.append(MSG_REP_COUNTED)

        if not feedback.messages:
            feedback.messages.append("Perfect form!")

        logger.debug(f"pushup elbow={elbow_angle:.1f} hip={hip_angle:.1f} {stage}->{next_stage}")
        return AnalysisResult(feedback=feedback, stage=next_stage, rep_counted=rep_counted)

    def analyze_jumping_jack(self, landmarks: Sequence[Landmark], current_stage: str) -> AnalysisResult:
        """Jumping jack: ankle spread over shoulder width plus hands-up test, stages closed/open."""
        stage = self._normalize_stage(ExerciseType.JUMPING_JACKS, current_stage)

        if not self._passes_gate(landmarks, ExerciseType.JUMPING_JACKS, self.JUMPING_JACK_JOINTS, self.JUMPING_JACK_JOINTS):
            return self._gated(stage, MSG_FULL_BODY)

        left_shoulder = landmarks[JointType.LEFT_SHOULDER.value]
        right_shoulder = landmarks[JointType.RIGHT_SHOULDER.value]
        left_wrist = landmarks[JointType.LEFT_WRIST.value]
        right_wrist = landmarks[JointType.RIGHT_WRIST.value]
        left_ankle = landmarks[JointType.LEFT_ANKLE.value]
        right_ankle = landmarks[JointType.RIGHT_ANKLE.value]

        shoulder_width = abs(left_shoulder.x - right_shoulder.x)
        if shoulder_width < 1e-6:
            return self._gated(stage, MSG_FULL_BODY)

        spread_ratio = abs(left_ankle.x - right_ankle.x) / shoulder_width
        # Image y grows downward
        hands_up = left_wrist.y < left_shoulder.y and right_wrist.y < right_shoulder.y

        thresholds = self.thresholds[ExerciseType.JUMPING_JACKS]
        open_ratio = thresholds["open"]["hip_distance_ratio"]
        closed_ratio = thresholds["closed"]["hip_distance_ratio"]

        feedback = FormFeedback()
        rep_counted = False
        next_stage = stage

        if stage == "closed":
            if hands_up and spread_ratio > open_ratio:
                next_stage = "open"
        else:
            if not hands_up:
                feedback.correct("Raise your hands higher!")
            if spread_ratio < open_ratio:
                feedback.correct("Spread your feet wider!")

            if not hands_up and spread_ratio < closed_ratio:
                next_stage = "closed"
                rep_counted = True
                feedback.messages.append(MSG_REP_COUNTED)

        if not feedback.messages:
            feedback.messages.append("Good energy!")

        logger.debug(f"jumping_jack spread={spread_ratio:.2f} hands_up={hands_up} {stage}->{next_stage}")
        return AnalysisResult(feedback=feedback, stage=next_stage, rep_counted=rep_counted)

    # ═══════════════════════════════════════════════════════════════════════════
    # DISPATCH
    # ═══════════════════════════════════════════════════════════════════════════

    def analyze_pose(
        self,
        exercise: Union[ExerciseType, str],
        landmarks: Sequence[Landmark],
        current_stage: str
    ) -> AnalysisResult:
        """
        Route a frame to the analyzer for the selected exercise.

        Never raises: an unknown exercise yields a terminal "not recognized"
        result with stage "start".
        """
        try:
            exercise_type = ExerciseType(exercise)
        except (ValueError, TypeError):
            logger.warning(f"Exercise not recognized: {exercise!r}")
            return AnalysisResult(
                feedback=FormFeedback(messages=[MSG_NOT_RECOGNIZED], is_correct=False),
                stage=UNKNOWN_EXERCISE_STAGE,
                rep_counted=False,
            )

        return self._analyzers[exercise_type](landmarks, current_stage)


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_analyzer_instance: Optional[PoseAnalyzer] = None


def get_pose_analyzer() -> PoseAnalyzer:
    """Get or create the global pose analyzer instance."""
    global _analyzer_instance
    if _analyzer_instance is None:
        _analyzer_instance = PoseAnalyzer()
    return _analyzer_instance


def analyze_pose(
    exercise: Union[ExerciseType, str],
    landmarks: Sequence[Landmark],
    current_stage: str
) -> AnalysisResult:
    """Analyze one frame with the global analyzer."""
    return get_pose_analyzer().analyze_pose(exercise, landmarks, current_stage)
