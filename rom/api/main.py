# rom/api/main.py
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Dict, Any, Optional
import uvicorn
import asyncio
import json
import logging
import uuid

from rom.api.config_endpoints import router as config_router, get_config_manager
from rom.config.config_manager import ConfigManager
from rom.config.joint_catalog import JOINT_CATALOG
from rom.core.base import Point, Side, SessionStateError, UnknownJointError
from rom.core.countdown import CountdownTimer
from rom.core.session import SamplingSession

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("rom-api")


# Define API models
class PointModel(BaseModel):
    """Normalized landmark position."""
    x: float
    y: float
    visibility: float = 1.0


class LandmarkFrameModel(BaseModel):
    """One frame from the landmark source; null for undetected landmarks."""
    landmarks: Dict[str, Optional[PointModel]] = {}


class CreateSessionRequest(BaseModel):
    """Parameters for a new sampling session."""
    joint_id: Optional[str] = None
    patient_id: str = ""
    duration_seconds: Optional[int] = None


class StartSessionRequest(BaseModel):
    auto_countdown: bool = True


# Create FastAPI app
app = FastAPI(
    title="ROM Assessment API",
    description="Session control surface for single-joint Range of Motion assessment",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this to specific domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(config_router)

# In-memory session registry; sessions are not persisted
active_sessions: Dict[str, SamplingSession] = {}
countdown_timers: Dict[str, CountdownTimer] = {}


def get_session(session_id: str) -> SamplingSession:
    session = active_sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


def _cancel_countdown(session_id: str):
    timer = countdown_timers.pop(session_id, None)
    if timer:
        timer.cancel()


def _frame_from_model(frame: LandmarkFrameModel) -> Dict[str, Optional[Point]]:
    return {
        name: Point(x=p.x, y=p.y, visibility=p.visibility) if p is not None else None
        for name, p in frame.landmarks.items()
    }


def _readings_to_dict(readings: Dict[Side, Optional[float]]) -> Dict[str, Optional[float]]:
    return {side.value: value for side, value in readings.items()}


def _live_update(session: SamplingSession, readings: Dict[Side, Optional[float]]) -> Dict[str, Any]:
    response = {"angles": _readings_to_dict(readings), **session.status()}
    if session.report is not None:
        response["report"] = session.report.to_dict()
    return response


# Routes
@app.get("/api/joints")
async def get_available_joints():
    """Get the joints that can be assessed."""
    return {"joints": [joint.to_dict() for joint in JOINT_CATALOG.values()]}


@app.post("/api/sessions")
async def create_session(request: CreateSessionRequest,
                         config_manager: ConfigManager = Depends(get_config_manager)):
    """Create an idle sampling session."""
    overrides = {}
    if request.duration_seconds is not None:
        overrides["duration_seconds"] = request.duration_seconds

    try:
        session = config_manager.create_session(request.joint_id, request.patient_id, **overrides)
    except UnknownJointError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    session_id = uuid.uuid4().hex[:12]
    active_sessions[session_id] = session

    logger.info(f"Created session {session_id} for joint {session.joint.joint_id}")
    return {"session_id": session_id, **session.status()}


@app.get("/api/sessions/{session_id}")
async def get_session_status(session_id: str):
    """Current state and countdown of a session."""
    return {"session_id": session_id, **get_session(session_id).status()}


@app.post("/api/sessions/{session_id}/start")
async def start_session(session_id: str,
                        request: Optional[StartSessionRequest] = None,
                        config_manager: ConfigManager = Depends(get_config_manager)):
    """Start recording; optionally attach a one-second countdown timer."""
    session = get_session(session_id)
    request = request or StartSessionRequest()

    timer = None
    if request.auto_countdown:
        try:
            timer = CountdownTimer(
                session,
                interval=config_manager.get_session_config().get("tick_interval", 1.0)
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    try:
        session.start()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    _cancel_countdown(session_id)
    if timer is not None:
        countdown_timers[session_id] = timer
        timer.start()

    return {"session_id": session_id, **session.status()}


@app.post("/api/sessions/{session_id}/stop")
async def stop_session(session_id: str):
    """Abort a recording session without producing a report."""
    session = get_session(session_id)
    try:
        session.stop()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    finally:
        _cancel_countdown(session_id)

    return {"session_id": session_id, **session.status()}


@app.post("/api/sessions/{session_id}/reset")
async def reset_session(session_id: str):
    """Clear samples and report of an idle or completed session."""
    session = get_session(session_id)
    try:
        session.reset()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"session_id": session_id, **session.status()}


@app.post("/api/sessions/{session_id}/frames")
async def feed_frame(session_id: str, frame: LandmarkFrameModel):
    """Push one landmark frame; returns the live per-side readout."""
    session = get_session(session_id)
    readings = session.feed_frame(_frame_from_model(frame))
    return {
        "session_id": session_id,
        "angles": _readings_to_dict(readings),
        **session.status()
    }


@app.post("/api/sessions/{session_id}/tick")
async def tick_session(session_id: str):
    """Advance the countdown by one second (for clients that drive time themselves)."""
    session = get_session(session_id)
    completed = session.advance_one_second()
    return {"session_id": session_id, "completed": completed, **session.status()}


@app.get("/api/sessions/{session_id}/report")
async def get_report(session_id: str):
    """Report of a completed session."""
    session = get_session(session_id)
    if session.report is None:
        raise HTTPException(status_code=404, detail=f"No report for session {session_id} (state: {session.state.value})")
    return session.report.to_dict()


@app.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str):
    """Discard a session and its countdown."""
    get_session(session_id)
    _cancel_countdown(session_id)
    del active_sessions[session_id]
    logger.info(f"Deleted session {session_id}")
    return {"status": "success", "session_id": session_id}


@app.websocket("/api/sessions/{session_id}/stream")
async def session_stream(websocket: WebSocket, session_id: str):
    """
    Stream landmark frames for a session.

    Each message is a JSON landmark frame ({"landmarks": {...}}); each reply
    carries the live angles and session status, plus the report once the
    session has completed.
    """
    session = active_sessions.get(session_id)
    if session is None:
        await websocket.close(code=1008, reason=f"Unknown session: {session_id}")
        return

    await websocket.accept()
    logger.info(f"Opened frame stream for session {session_id}")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = LandmarkFrameModel(**json.loads(data))
            except (ValueError, TypeError) as e:
                await websocket.send_json({"error": f"Invalid landmark frame: {e}"})
                continue

            readings = session.feed_frame(_frame_from_model(frame))
            await websocket.send_json(_live_update(session, readings))

    except WebSocketDisconnect:
        logger.info(f"Frame stream closed for session {session_id}")


@app.websocket("/api/sessions/{session_id}/video")
async def session_video(websocket: WebSocket, session_id: str,
                        config_manager: ConfigManager = Depends(get_config_manager)):
    """
    Stream camera images for a session.

    Each message is a base64 image (a "data:image/jpeg;base64,..." URL or
    bare base64). Landmarks are detected with MediaPipe Pose using the
    "pose" configuration section and fed to the session; replies match
    the landmark stream, plus a "detected" flag.
    """
    session = active_sessions.get(session_id)
    if session is None:
        await websocket.close(code=1008, reason=f"Unknown session: {session_id}")
        return

    await websocket.accept()

    try:
        from rom.utils.pose_detector import PoseDetector
        pose_detector = PoseDetector.from_config(config_manager.get_pose_config())
    except (ImportError, RuntimeError) as e:
        logger.error(f"Error initializing pose detector: {e}")
        await websocket.send_json({"error": f"Failed to initialize pose detector: {e}"})
        await websocket.close(code=1011, reason="Failed to initialize pose detection")
        return

    logger.info(f"Opened video stream for session {session_id}")

    try:
        while True:
            data = await websocket.receive_text()
            image = PoseDetector.decode_image(data)
            if image is None:
                await websocket.send_json({"error": "Invalid image frame"})
                continue

            landmarks = await asyncio.to_thread(pose_detector.find_landmarks, image)
            readings = session.feed_frame(landmarks)

            response = _live_update(session, readings)
            response["detected"] = any(point is not None for point in landmarks.values())
            await websocket.send_json(response)

    except WebSocketDisconnect:
        logger.info(f"Video stream closed for session {session_id}")
    finally:
        pose_detector.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="ROM Assessment API Server")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind the server to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind the server to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    logging_config = get_config_manager().get_logging_config()
    logging.getLogger().setLevel(logging_config.get("level", "INFO"))

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    uvicorn.run(
        "rom.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info" if not args.debug else "debug",
        access_log=True
    )
