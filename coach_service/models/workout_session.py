"""
FITSIGHT Coach Service - Workout Session Handler

Drives a workout around the pose analyzer: carries the stage token between
frames, counts reps against the set target, inserts rest periods, estimates
calories, and keeps per-user workout history.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from core.config import settings

from .exercises import ExerciseDefinition, ExerciseType, get_exercise_definition
from .geometry import Landmark
from .pose_analyzer import PoseAnalyzer, get_pose_analyzer

logger = logging.getLogger("fitsight.coach.session")


class SessionState(Enum):
    """Workout session states."""
    IDLE = "idle"
    ACTIVE = "active"
    RESTING = "resting"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class SetRecord:
    """Record of an exercise set."""
    set_number: int
    target_reps: int
    completed_reps: int = 0
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def duration_seconds(self) -> float:
        return self.end_time - self.start_time if self.end_time > self.start_time else 0.0

    @property
    def is_complete(self) -> bool:
        return self.completed_reps >= self.target_reps


@dataclass
class SessionRecord:
    """History entry written when a workout ends."""
    name: str
    reps: int
    duration: int  # active seconds
    calories: float
    date: datetime
    sets: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "reps": self.reps,
            "duration": self.duration,
            "calories": self.calories,
            "date": self.date.isoformat(),
            "sets": self.sets,
        }


def estimate_calories(met_value: float, weight_kg: float, seconds: float) -> float:
    """Calories burned: MET x body weight (kg) x hours."""
    return met_value * weight_kg * (seconds / 3600.0)


@dataclass
class WorkoutSession:
    """One user's workout on one exercise."""
    session_id: str
    user_id: str
    exercise_type: ExerciseType
    state: SessionState = SessionState.IDLE

    # Configuration
    target_sets: int = 3
    target_reps_per_set: int = 12
    rest_duration_seconds: int = 60
    weight_kg: float = 70.0

    # Caller-held analyzer stage
    stage: str = ""

    # Progress tracking
    current_set: int = 1
    current_rep: int = 0
    total_reps: int = 0
    sets: List[SetRecord] = field(default_factory=list)

    # Timing
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    active_seconds: float = 0.0
    active_since: Optional[float] = None
    rest_started_at: Optional[float] = None

    # Metrics
    calories: float = 0.0
    frames_analyzed: int = 0
    correct_frames: int = 0

    # Real-time feedback
    current_feedback: List[str] = field(default_factory=list)
    is_correct: bool = True

    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if not self.stage:
            self.stage = self.definition.initial_state

    @property
    def definition(self) -> ExerciseDefinition:
        return get_exercise_definition(self.exercise_type)

    @property
    def sets_completed(self) -> int:
        return len([s for s in self.sets if s.is_complete])

    @property
    def has_progress(self) -> bool:
        return self.total_reps > 0 or self.active_seconds > 0 or self.current_set > 1

    @property
    def form_accuracy(self) -> float:
        """Percentage of analyzed frames with no correction."""
        if self.frames_analyzed == 0:
            return 0.0
        return self.correct_frames / self.frames_analyzed * 100

    def elapsed_active(self, now: float) -> float:
        """Active workout seconds, excluding rest and pauses."""
        if self.state == SessionState.ACTIVE and self.active_since is not None:
            return self.active_seconds + (now - self.active_since)
        return self.active_seconds

    def rest_remaining(self, now: float) -> float:
        if self.state != SessionState.RESTING or self.rest_started_at is None:
            return 0.0
        return max(0.0, self.rest_duration_seconds - (now - self.rest_started_at))

    def to_dict(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        now = now if now is not None else time.time()
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "exercise_type": self.exercise_type.value,
            "state": self.state.value,
            "stage": self.stage,
            "target_sets": self.target_sets,
            "target_reps_per_set": self.target_reps_per_set,
            "current_set": self.current_set,
            "current_rep": self.current_rep,
            "total_reps": self.total_reps,
            "weight_kg": self.weight_kg,
            "calories": round(self.calories, 2),
            "duration_seconds": round(self.elapsed_active(now), 1),
            "rest_remaining": round(self.rest_remaining(now), 1),
            "form_accuracy": round(self.form_accuracy, 1),
            "current_feedback": self.current_feedback,
            "is_correct": self.is_correct,
            "sets": [
                {
                    "set_number": s.set_number,
                    "completed_reps": s.completed_reps,
                    "target_reps": s.target_reps,
                    "duration_seconds": round(s.duration_seconds, 1)
                }
                for s in self.sets
            ]
        }


class WorkoutSessionHandler:
    """
    Manages workout sessions with real-time pose analysis.

    Features:
    - Stage token carried between frames and re-seeded on every reset
    - Multi-set rep counting with rest periods
    - Calorie estimation from the exercise's MET value
    - Per-user workout history
    """

    def __init__(
        self,
        pose_analyzer: Optional[PoseAnalyzer] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize session handler.

        Args:
            pose_analyzer: PoseAnalyzer instance (uses global if None)
            clock: Time source in seconds
        """
        self.pose_analyzer = pose_analyzer or get_pose_analyzer()
        self.clock = clock
        self.active_sessions: Dict[str, WorkoutSession] = {}
        self.history: Dict[str, List[SessionRecord]] = {}

    def create_session(
        self,
        user_id: str,
        exercise_type: Union[ExerciseType, str],
        target_sets: Optional[int] = None,
        target_reps: Optional[int] = None,
        rest_duration: Optional[int] = None,
        weight_kg: Optional[float] = None
    ) -> WorkoutSession:
        """
        Create a new workout session.

        Args:
            user_id: User ID
            exercise_type: Exercise to perform
            target_sets: Number of sets
            target_reps: Reps per set
            rest_duration: Rest time between sets (seconds)
            weight_kg: Body weight for calorie estimation

        Returns:
            New WorkoutSession

        Raises:
            ValueError: On an unknown exercise or non-positive targets
        """
        exercise_type = ExerciseType(exercise_type)
        target_sets = target_sets if target_sets is not None else settings.DEFAULT_TARGET_SETS
        target_reps = target_reps if target_reps is not None else settings.DEFAULT_TARGET_REPS
        rest_duration = rest_duration if rest_duration is not None else settings.DEFAULT_REST_SECONDS
        weight_kg = weight_kg if weight_kg is not None else settings.DEFAULT_WEIGHT_KG

        if target_sets < 1 or target_reps < 1:
            raise ValueError("target_sets and target_reps must be at least 1")
        if rest_duration < 0 or weight_kg <= 0:
            raise ValueError("rest_duration must be >= 0 and weight_kg > 0")

        session = WorkoutSession(
            session_id=str(uuid.uuid4())[:8],
            user_id=user_id,
            exercise_type=exercise_type,
            target_sets=target_sets,
            target_reps_per_set=target_reps,
            rest_duration_seconds=rest_duration,
            weight_kg=weight_kg
        )

        self.active_sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id} for {user_id}: {exercise_type.value} {target_sets}x{target_reps}")

        return session

    def start_session(self, session_id: str) -> Dict[str, Any]:
        """
        Start a workout session.

        Returns status dict.
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found", "session_id": session_id}

        with session.lock:
            if session.state != SessionState.IDLE:
                return {"error": f"Session already {session.state.value}", "session_id": session_id}

            now = self.clock()
            session.state = SessionState.ACTIVE
            session.start_time = now
            session.active_since = now
            session.stage = session.definition.initial_state
            session.sets.append(SetRecord(
                set_number=1,
                target_reps=session.target_reps_per_set,
                start_time=now
            ))

        logger.info(f"Session {session_id} started")

        return {
            "status": "started",
            "session_id": session_id,
            "exercise": session.exercise_type.value,
            "stage": session.stage,
            "target_sets": session.target_sets,
            "target_reps": session.target_reps_per_set
        }

    def process_frame(self, session_id: str, landmarks: Sequence[Landmark]) -> Dict[str, Any]:
        """
        Process one frame of landmarks during a workout.

        Args:
            session_id: Active session ID
            landmarks: Landmark set for the frame (may be empty)

        Returns:
            Real-time feedback dict
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        with session.lock:
            now = self.clock()
            response: Dict[str, Any] = {"session_id": session_id}

            if session.state == SessionState.RESTING and session.rest_remaining(now) <= 0:
                self._begin_next_set(session, now)
                response["rest_ended"] = True

            if session.state != SessionState.ACTIVE:
                response.update({
                    "status": session.state.value,
                    "message": "Session not active",
                    "rest_remaining": round(session.rest_remaining(now), 1)
                })
                return response

            result = self.pose_analyzer.analyze_pose(session.exercise_type, landmarks, session.stage)

            session.stage = result.stage
            session.current_feedback = result.feedback.messages
            session.is_correct = result.feedback.is_correct
            session.frames_analyzed += 1
            if result.feedback.is_correct:
                session.correct_frames += 1

            if result.rep_counted:
                self._record_rep(session)

            session.calories = estimate_calories(
                session.definition.met_value, session.weight_kg, session.elapsed_active(now)
            )

            response.update({
                "state": session.state.value,
                "stage": session.stage,
                "current_set": session.current_set,
                "current_rep": session.current_rep,
                "target_reps": session.target_reps_per_set,
                "total_reps": session.total_reps,
                "feedback": result.feedback.messages,
                "corrections": result.feedback.corrections,
                "is_correct": result.feedback.is_correct,
                "rep_completed": result.rep_counted,
                "calories": round(session.calories, 2)
            })

            current_set = session.sets[-1] if session.sets else None
            if result.rep_counted and current_set and current_set.is_complete:
                current_set.end_time = now
                response["set_completed"] = True
                response["message"] = f"Set {session.current_set} complete!"

                if session.current_set >= session.target_sets:
                    response["session_completed"] = True
                    response["summary"] = self._finish(session, now)
                else:
                    self._pause_clock(session, now)
                    session.state = SessionState.RESTING
                    session.rest_started_at = now
                    response["state"] = session.state.value
                    response["rest_duration"] = session.rest_duration_seconds
                    logger.info(f"Session {session_id} resting after set {session.current_set}")

            return response

    def _record_rep(self, session: WorkoutSession):
        """Record a completed repetition."""
        if session.sets:
            session.sets[-1].completed_reps += 1
        session.current_rep += 1
        session.total_reps += 1

    def _pause_clock(self, session: WorkoutSession, now: float):
        if session.active_since is not None:
            session.active_seconds += now - session.active_since
            session.active_since = None

    def _begin_next_set(self, session: WorkoutSession, now: float):
        session.current_set += 1
        session.current_rep = 0
        session.state = SessionState.ACTIVE
        session.active_since = now
        session.rest_started_at = None
        session.stage = session.definition.initial_state
        session.sets.append(SetRecord(
            set_number=session.current_set,
            target_reps=session.target_reps_per_set,
            start_time=now
        ))
        logger.info(f"Session {session.session_id} starting set {session.current_set}/{session.target_sets}")

    def start_next_set(self, session_id: str) -> Dict[str, Any]:
        """
        Skip the remaining rest and start the next set.

        Returns status dict.
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        with session.lock:
            if session.state != SessionState.RESTING:
                return {"error": "Session is not resting"}

            self._begin_next_set(session, self.clock())

        return {
            "status": "set_started",
            "session_id": session_id,
            "current_set": session.current_set,
            "total_sets": session.target_sets,
            "stage": session.stage
        }

    def pause_session(self, session_id: str) -> Dict[str, Any]:
        """Pause an active session."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        with session.lock:
            if session.state != SessionState.ACTIVE:
                return {"error": "Session not active"}
            self._pause_clock(session, self.clock())
            session.state = SessionState.PAUSED

        return {"status": "paused", "session_id": session_id}

    def resume_session(self, session_id: str) -> Dict[str, Any]:
        """Resume a paused session."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        with session.lock:
            if session.state != SessionState.PAUSED:
                return {"error": "Session not paused"}
            session.state = SessionState.ACTIVE
            session.active_since = self.clock()

        return {"status": "resumed", "session_id": session_id}

    def change_exercise(self, session_id: str, exercise_type: Union[ExerciseType, str]) -> Dict[str, Any]:
        """
        Switch the exercise of a session that has not started yet.

        Raises:
            ValueError: On an unknown exercise
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        exercise_type = ExerciseType(exercise_type)

        with session.lock:
            if session.state != SessionState.IDLE:
                return {"error": "Exercise can only be changed before the session starts"}
            session.exercise_type = exercise_type
            session.stage = session.definition.initial_state

        return {
            "status": "exercise_changed",
            "session_id": session_id,
            "exercise": exercise_type.value,
            "stage": session.stage
        }

    def reset_session(self, session_id: str) -> Dict[str, Any]:
        """Discard progress and return the session to idle."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        with session.lock:
            session.state = SessionState.IDLE
            session.stage = session.definition.initial_state
            session.current_set = 1
            session.current_rep = 0
            session.total_reps = 0
            session.sets = []
            session.start_time = None
            session.end_time = None
            session.active_seconds = 0.0
            session.active_since = None
            session.rest_started_at = None
            session.calories = 0.0
            session.frames_analyzed = 0
            session.correct_frames = 0
            session.current_feedback = ["Get in position."]
            session.is_correct = True

        return {"status": "reset", "session_id": session_id, "stage": session.stage}

    def stop_session(self, session_id: str) -> Dict[str, Any]:
        """
        Stop a workout and generate its summary.

        The session is removed from active sessions afterwards.
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        with session.lock:
            if session.state == SessionState.COMPLETED:
                return {"error": "Session not found"}
            return self._finish(session, self.clock())

    def _finish(self, session: WorkoutSession, now: float) -> Dict[str, Any]:
        """Complete the session, log it to history, release it, and summarize."""
        self._pause_clock(session, now)
        session.state = SessionState.COMPLETED
        session.end_time = now
        session.rest_started_at = None
        session.calories = estimate_calories(
            session.definition.met_value, session.weight_kg, session.active_seconds
        )

        if session.sets and not session.sets[-1].end_time:
            session.sets[-1].end_time = now

        recorded = session.has_progress
        if recorded:
            record = SessionRecord(
                name=session.exercise_type.value,
                reps=session.total_reps,
                duration=int(round(session.active_seconds)),
                calories=round(session.calories, 2),
                date=datetime.now(),
                sets=session.sets_completed
            )
            self.history.setdefault(session.user_id, []).append(record)

        self.cleanup_session(session.session_id)
        logger.info(f"Session {session.session_id} completed: {session.total_reps} reps, {session.sets_completed} sets")

        return self._generate_summary(session, recorded)

    def _generate_summary(self, session: WorkoutSession, recorded: bool) -> Dict[str, Any]:
        """Summarize a finished session: totals against targets plus per-set reps."""
        return {
            "status": "completed",
            "session_id": session.session_id,
            "user_id": session.user_id,
            "exercise": session.exercise_type.value,
            "summary": {
                "total_reps": session.total_reps,
                "target_reps": session.target_sets * session.target_reps_per_set,
                "sets_completed": session.sets_completed,
                "target_sets": session.target_sets,
                "form_accuracy": round(session.form_accuracy, 1),
                "duration_seconds": round(session.active_seconds, 1),
                "calories": round(session.calories, 2)
            },
            "sets": [
                {
                    "set_number": s.set_number,
                    "reps": s.completed_reps,
                    "duration": round(s.duration_seconds, 1)
                }
                for s in session.sets
            ],
            "recorded": recorded,
            "completed_at": datetime.now().isoformat()
        }

    def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def get_session_status(self, session_id: str) -> Dict[str, Any]:
        """Get current session status."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        return session.to_dict(self.clock())

    def get_history(self, user_id: str) -> List[Dict[str, Any]]:
        """Workout history for a user, oldest first."""
        return [record.to_dict() for record in self.history.get(user_id, [])]

    def cleanup_session(self, session_id: str):
        """Remove session from active sessions."""
        self.active_sessions.pop(session_id, None)


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[WorkoutSessionHandler] = None


def get_session_handler() -> WorkoutSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = WorkoutSessionHandler()
    return _handler_instance
