"""
FITSIGHT Coach Service Router

Endpoints for per-frame form analysis, workout sessions and coaching tips.
Landmarks come from the client's pose model; this service never sees video.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError

from .models import (
    EXERCISE_DEFINITIONS,
    ExerciseType,
    Landmark,
    PoseAnalyzer,
    SessionState,
    TipGenerator,
    WorkoutSessionHandler,
    get_pose_analyzer,
    get_session_handler,
    get_tip_generator
)

logger = logging.getLogger("fitsight.coach.router")

router = APIRouter()


# Service instances (singleton pattern)
_pose_analyzer: Optional[PoseAnalyzer] = None
_session_handler: Optional[WorkoutSessionHandler] = None
_tip_generator: Optional[TipGenerator] = None


def get_services():
    """Get or initialize service instances."""
    global _pose_analyzer, _session_handler, _tip_generator
    if _pose_analyzer is None:
        _pose_analyzer = get_pose_analyzer()
    if _session_handler is None:
        _session_handler = get_session_handler()
    if _tip_generator is None:
        _tip_generator = get_tip_generator()
    return _pose_analyzer, _session_handler, _tip_generator


# ============= Pydantic Models =============

class LandmarkIn(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    def to_landmark(self) -> Landmark:
        return Landmark(x=self.x, y=self.y, z=self.z, visibility=self.visibility)


class AnalyzeRequest(BaseModel):
    exercise: str
    landmarks: List[LandmarkIn] = []
    stage: str = "start"


class StartSessionRequest(BaseModel):
    user_id: str
    exercise_type: str
    target_reps: Optional[int] = Field(default=None, ge=1)
    target_sets: Optional[int] = Field(default=None, ge=1)
    rest_duration: Optional[int] = Field(default=None, ge=0)
    weight_kg: Optional[float] = Field(default=None, gt=0)


class FrameRequest(BaseModel):
    landmarks: List[LandmarkIn] = []


class ChangeExerciseRequest(BaseModel):
    exercise_type: str


class TipRequest(BaseModel):
    exercise: str
    correction: str


def _to_landmarks(items: List[LandmarkIn]) -> List[Landmark]:
    return [item.to_landmark() for item in items]


def _invalid_exercise() -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=f"Invalid exercise type. Valid types: {[e.value for e in ExerciseType]}"
    )


def _check(result: Dict[str, Any]) -> Dict[str, Any]:
    """Map handler error dicts onto HTTP errors."""
    error = result.get("error")
    if error == "Session not found":
        raise HTTPException(status_code=404, detail=error)
    if error:
        raise HTTPException(status_code=409, detail=error)
    return result


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """Get the exercise catalogue."""
    exercises = [definition.to_dict() for definition in EXERCISE_DEFINITIONS.values()]
    return {"exercises": exercises, "total": len(exercises)}


@router.post("/analyze")
async def analyze_frame(request: AnalyzeRequest):
    """
    Analyze a single landmark frame.

    Stateless: the client sends the stage returned by the previous call.
    An unknown exercise yields the "not recognized" result, not an error.
    """
    pose_analyzer, _, _ = get_services()
    result = pose_analyzer.analyze_pose(request.exercise, _to_landmarks(request.landmarks), request.stage)
    return result.to_dict()


@router.post("/session/start")
async def create_workout_session(request: StartSessionRequest):
    """
    Create a new workout session.

    Returns a session ID for use with the frame endpoint or WebSocket stream.
    """
    _, session_handler, _ = get_services()

    try:
        session = session_handler.create_session(
            user_id=request.user_id,
            exercise_type=request.exercise_type,
            target_sets=request.target_sets,
            target_reps=request.target_reps,
            rest_duration=request.rest_duration,
            weight_kg=request.weight_kg
        )
    except ValueError:
        raise _invalid_exercise()

    return {
        "status": "created",
        "session_id": session.session_id,
        "user_id": request.user_id,
        "exercise_type": session.exercise_type.value,
        "stage": session.stage,
        "target": {
            "reps": session.target_reps_per_set,
            "sets": session.target_sets
        },
        "websocket_url": f"/api/coach/ws/session/{session.session_id}"
    }


@router.post("/session/{session_id}/begin")
async def begin_session(session_id: str):
    _, session_handler, _ = get_services()
    return _check(session_handler.start_session(session_id))


@router.post("/session/{session_id}/frame")
async def submit_frame(session_id: str, request: FrameRequest):
    """Analyze one frame within a workout session."""
    _, session_handler, _ = get_services()
    return _check(session_handler.process_frame(session_id, _to_landmarks(request.landmarks)))


@router.post("/session/{session_id}/next-set")
async def next_set(session_id: str):
    _, session_handler, _ = get_services()
    return _check(session_handler.start_next_set(session_id))


@router.post("/session/{session_id}/pause")
async def pause_session(session_id: str):
    _, session_handler, _ = get_services()
    return _check(session_handler.pause_session(session_id))


@router.post("/session/{session_id}/resume")
async def resume_session(session_id: str):
    _, session_handler, _ = get_services()
    return _check(session_handler.resume_session(session_id))


@router.post("/session/{session_id}/exercise")
async def change_exercise(session_id: str, request: ChangeExerciseRequest):
    _, session_handler, _ = get_services()
    try:
        return _check(session_handler.change_exercise(session_id, request.exercise_type))
    except ValueError:
        raise _invalid_exercise()


@router.post("/session/{session_id}/reset")
async def reset_session(session_id: str):
    _, session_handler, _ = get_services()
    return _check(session_handler.reset_session(session_id))


@router.post("/session/{session_id}/stop")
async def stop_session(session_id: str):
    """Stop a workout session and get its summary."""
    _, session_handler, _ = get_services()
    return _check(session_handler.stop_session(session_id))


@router.get("/session/{session_id}")
async def get_session_status(session_id: str):
    _, session_handler, _ = get_services()
    return _check(session_handler.get_session_status(session_id))


@router.get("/history/{user_id}")
async def get_history(user_id: str):
    """Get completed workouts for a user."""
    _, session_handler, _ = get_services()
    sessions = session_handler.get_history(user_id)
    return {"user_id": user_id, "sessions": sessions, "total": len(sessions)}


@router.post("/tips")
async def get_tip(request: TipRequest):
    """Get a short motivational tip for a correction."""
    _, _, tip_generator = get_services()
    tip = await tip_generator.get_motivational_tip(request.exercise, request.correction)
    return {"exercise": request.exercise, "correction": request.correction, "tip": tip}


# ============= WebSocket Endpoints =============

async def _send_tip(websocket: WebSocket, tip_generator: TipGenerator, exercise: ExerciseType, correction: str):
    """Fetch a tip off the frame path and push it when ready."""
    tip = await tip_generator.get_motivational_tip(exercise, correction)
    try:
        await websocket.send_json({"type": "TIP", "correction": correction, "tip": tip})
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Tip for {correction!r} not delivered: {e}")


@router.websocket("/ws/session/{session_id}")
async def workout_session_stream(websocket: WebSocket, session_id: str):
    """
    Real-time workout monitoring.

    Receives JSON frames {"landmarks": [...]} and replies with:
    - FRAME_RESULT for every analyzed frame
    - SET_COMPLETED / REST_STARTED / SESSION_COMPLETED on progress
    - TIP when a new correction appears (sent whenever it is ready)

    Connecting starts an idle session and resumes a paused one.
    """
    await websocket.accept()
    _, session_handler, tip_generator = get_services()

    session = session_handler.get_session(session_id)
    if not session:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    if session.state == SessionState.IDLE:
        session_handler.start_session(session_id)
    elif session.state == SessionState.PAUSED:
        session_handler.resume_session(session_id)

    last_correction: Optional[str] = None
    tip_tasks: Set[asyncio.Task] = set()

    try:
        await websocket.send_json({
            "type": "SESSION_STARTED",
            "session_id": session_id,
            "exercise_type": session.exercise_type.value,
            "state": session.state.value,
            "stage": session.stage,
            "target_reps": session.target_reps_per_set,
            "target_sets": session.target_sets
        })

        while True:
            try:
                data = await websocket.receive_json()
                frame = FrameRequest.model_validate(data)
            except json.JSONDecodeError as e:
                await websocket.send_json({"type": "ERROR", "message": f"Invalid JSON: {e}"})
                continue
            except ValidationError as e:
                await websocket.send_json({"type": "ERROR", "message": str(e)})
                continue

            result = session_handler.process_frame(session_id, _to_landmarks(frame.landmarks))

            if "feedback" not in result:
                await websocket.send_json({"type": "STATUS", **result})
                continue

            await websocket.send_json({"type": "FRAME_RESULT", **{k: v for k, v in result.items() if k != "summary"}})

            if result.get("set_completed"):
                await websocket.send_json({
                    "type": "SET_COMPLETED",
                    "set_number": result["current_set"],
                    "message": result.get("message")
                })

            if result.get("rest_duration") is not None:
                await websocket.send_json({
                    "type": "REST_STARTED",
                    "rest_duration": result["rest_duration"]
                })

            if result.get("session_completed"):
                await websocket.send_json({
                    "type": "SESSION_COMPLETED",
                    "summary": result.get("summary", {})
                })
                break

            correction = result["corrections"][0] if result["corrections"] else None
            if correction and correction != last_correction:
                task = asyncio.create_task(_send_tip(websocket, tip_generator, session.exercise_type, correction))
                tip_tasks.add(task)
                task.add_done_callback(tip_tasks.discard)
            last_correction = correction

        await websocket.close()

    except WebSocketDisconnect:
        logger.info(f"Session {session_id} disconnected")
        session_handler.pause_session(session_id)

    finally:
        for task in tip_tasks:
            task.cancel()
