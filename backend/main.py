"""
FastAPI Backend for the Adaptive Lesson Engine

Provides REST API endpoints for live lesson sessions:
- Start a lesson (plan + first turn)
- Advance turn by turn
- Submit responses and branch choices
- Inspect and end sessions

Idle sessions are swept in the background.
"""

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Union
import os
import sys
import logging
import signal

from lib.logger import setup_logging, get_logger

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")

# Add the adaptive_lesson_engine package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)
package_src = os.path.join(project_root, 'adaptive_lesson_engine', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.auth import get_current_user

from adaptive_lesson_engine.config import EngineSettings
from adaptive_lesson_engine.errors import SessionNotFoundError
from adaptive_lesson_engine.generation_service import OpenAIGenerationService
from adaptive_lesson_engine.lesson_session_engine import LearnerIdentity, LessonRequest, LessonSessionEngine
from adaptive_lesson_engine.session_store import InMemorySessionStore, SessionSweeper

settings = EngineSettings.from_env()

# Singletons so sessions survive across requests
_engine_instance = None
_session_sweeper = None


def get_engine() -> LessonSessionEngine:
    """Get or create the singleton LessonSessionEngine."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = LessonSessionEngine(
            generation=OpenAIGenerationService(settings),
            store=InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds),
            settings=settings,
        )
    return _engine_instance


def get_session_sweeper() -> Optional[SessionSweeper]:
    """Get or create the sweeper for the engine's session store."""
    global _session_sweeper
    if _session_sweeper is None:
        engine = get_engine()
        if isinstance(engine.store, InMemorySessionStore):
            _session_sweeper = SessionSweeper(
                engine.store,
                interval_seconds=settings.session_sweep_interval_seconds,
                learner_caches=[engine.memory, engine.context_cache],
            )
    return _session_sweeper


app = FastAPI(
    title="Adaptive Lesson Engine API",
    description="REST API for AI-driven, multi-turn lesson sessions",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Pydantic Models ====================

class StartLessonRequest(BaseModel):
    topic: Optional[str] = None
    mission_id: Optional[str] = None
    difficulty_level: Optional[str] = None
    learning_objectives: List[str] = []
    learner_profile: Optional[Dict[str, Any]] = None


class LessonResponse(BaseModel):
    response: Union[Dict[str, Any], str]


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Adaptive Lesson Engine API",
        "version": "1.0.0",
        "model": settings.openai_model,
    }


@app.post("/api/lesson-sessions")
async def start_lesson(
    request: StartLessonRequest,
    user: dict = Depends(get_current_user),
    engine: LessonSessionEngine = Depends(get_engine)
):
    """Start a lesson and return its first turn."""
    logger.request("POST", "/api/lesson-sessions", user_id=user["id"],
                   mission_id=request.mission_id, data={"topic": request.topic})
    payload = await engine.start_session(
        LearnerIdentity(id=user["id"], name=user.get("name")),
        LessonRequest(
            topic=request.topic,
            mission_id=request.mission_id,
            difficulty_level=request.difficulty_level,
            learning_objectives=request.learning_objectives,
            learner_profile=request.learner_profile,
        )
    )
    logger.lesson_event("started", user["id"], payload["mission_id"], data={"block_id": payload["block_id"]})
    return payload


@app.post("/api/lesson-sessions/{mission_id}/next")
async def next_turn(
    mission_id: str,
    user: dict = Depends(get_current_user),
    engine: LessonSessionEngine = Depends(get_engine)
):
    """Advance the lesson by one turn."""
    try:
        return await engine.next_turn(user["id"], mission_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@app.post("/api/lesson-sessions/{mission_id}/respond")
async def respond(
    mission_id: str,
    body: LessonResponse,
    user: dict = Depends(get_current_user),
    engine: LessonSessionEngine = Depends(get_engine)
):
    """Submit a learner response or a choice selection."""
    logger.request("POST", f"/api/lesson-sessions/{mission_id}/respond", user_id=user["id"], mission_id=mission_id)
    try:
        payload = await engine.submit_response(user["id"], mission_id, body.response)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    if payload.get("branched"):
        logger.lesson_event("branched", user["id"], mission_id, data={"choice": payload.get("choice")})
    return payload


@app.get("/api/lesson-sessions/{mission_id}")
async def get_state(
    mission_id: str,
    user: dict = Depends(get_current_user),
    engine: LessonSessionEngine = Depends(get_engine)
):
    """Get the current session state."""
    try:
        return await engine.get_state(user["id"], mission_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@app.delete("/api/lesson-sessions/{mission_id}")
async def end_session(
    mission_id: str,
    user: dict = Depends(get_current_user),
    engine: LessonSessionEngine = Depends(get_engine)
):
    """End a session."""
    return await engine.end_session(user["id"], mission_id)


@app.on_event("startup")
async def startup_event():
    """Startup event - start the session sweeper."""
    sweeper = get_session_sweeper()
    if sweeper:
        await sweeper.start()
        logger.success("Session sweeper started")


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event - stop the session sweeper."""
    if _session_sweeper:
        await _session_sweeper.stop()
        logger.info("🛑 Session sweeper stopped")


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "signal received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=settings.port)
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
