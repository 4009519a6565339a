"""
Design Challenge Coach - FastAPI Backend

A timed, three-phase mock design interview with:
- Phase timer (Discovery, Heads-down, Presentation)
- Transcript with coverage-tag detection
- Gemini coaching nudges, spoken through Gemini TTS
- Whisper speech capture
- Structured end-of-session evaluation
"""
import sys
import os
import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models.schemas import (
    MuteRequest,
    Phase,
    PhaseSelectRequest,
    StartSessionRequest,
    SynthesisRequest,
    TextTurnRequest,
)
from session.orchestrator import SessionOrchestrator
from session.services import CoachService, EvaluatorService, SpeechSynthesisService
from session.state import SessionState
from speech import transcriber
from speech.capture import WhisperRecognitionBackend
from speech.playback import ClipAudioSink, SpeechPlaybackController
from utils.errors import CoachError, EvaluationParseError, UnsupportedCapabilityError

logger = logging.getLogger(__name__)

# ================================================================
# FastAPI App Initialization
# ================================================================

app = FastAPI(
    title="Design Challenge Coach API",
    description="Timed design interview practice with an AI coach",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CoachError)
async def coach_error_handler(request: Request, exc: CoachError):
    body: Dict[str, Any] = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, EvaluationParseError):
        body["raw"] = exc.raw
    return JSONResponse(status_code=exc.status_code, content=body)


# ================================================================
# Collaborators
# ================================================================

coach_service = CoachService()
evaluator_service = EvaluatorService()
synthesis_service = SpeechSynthesisService()

# ================================================================
# Session Management
# ================================================================

# Single session for now; sessions are never persisted
_current_session: Optional[SessionOrchestrator] = None


def get_current_session() -> SessionOrchestrator:
    """Get the current coaching session."""
    if _current_session is None:
        raise HTTPException(
            status_code=400,
            detail="No active session. Please start a session first."
        )
    return _current_session


async def create_new_session(prompt: Optional[str], muted: bool) -> SessionOrchestrator:
    """Tear down any previous session and start a new one."""
    global _current_session
    await clear_session()

    playback = SpeechPlaybackController(synthesis_service, ClipAudioSink(), muted=muted)
    _current_session = SessionOrchestrator(
        SessionState(prompt=prompt),
        coach=coach_service,
        evaluator=evaluator_service,
        playback=playback,
        recognition=WhisperRecognitionBackend(),
    )
    _current_session.start()
    logger.info(f"New session created: {_current_session.state.session_id}")
    return _current_session


async def clear_session():
    """End and forget the current session."""
    global _current_session
    if _current_session:
        await _current_session.end_session()
    _current_session = None


def _session_status(session: SessionOrchestrator) -> Dict[str, Any]:
    status = session.state.get_status()
    playback = session.playback
    status.update({
        "recording": session.recording,
        "speaking": bool(playback and playback.speaking),
        "muted": bool(playback and playback.muted),
        "playback_error": playback.last_error if playback else None,
        "recording_error": session.capture.last_error if session.capture else None,
    })
    return status


# ================================================================
# API Endpoints
# ================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "running",
        "version": "1.0.0",
        "service": "Design Challenge Coach",
        "speech_recognition": transcriber.whisper_available(),
        "phases": [p.value for p in Phase.get_order()],
    }


@app.post("/session/start")
async def start_session(request: StartSessionRequest):
    """
    Start a new session.

    Returns:
        Session status including the welcome turn
    """
    session = await create_new_session(request.prompt, request.muted)
    return _session_status(session)


@app.get("/session/status")
async def session_status():
    return _session_status(get_current_session())


@app.post("/session/phase")
async def select_phase(request: PhaseSelectRequest):
    """Jump to a phase with its full duration."""
    session = get_current_session()
    session.select_phase(request.phase)
    return _session_status(session)


@app.post("/session/text")
async def submit_text(request: TextTurnRequest):
    """Manual text entry from the participant."""
    session = get_current_session()
    turn = session.submit_text(request.text)
    return {
        "turn": {"order": turn.order, "speaker": turn.speaker.value, "text": turn.text} if turn else None,
        "coverage": session.state.coverage.as_dict(),
    }


@app.post("/session/screenshots")
async def upload_screenshots(files: List[UploadFile] = File(...)):
    """Attach screenshots; only their count reaches the coach and evaluator."""
    session = get_current_session()
    for upload in files:
        session.add_screenshot(upload.filename or "screenshot", await upload.read())
    return {"screenshot_count": len(session.state.screenshots)}


@app.post("/session/recording/start")
async def start_recording():
    session = get_current_session()
    session.start_recording()
    return {"recording": session.recording}


@app.post("/session/recording/stop")
async def stop_recording():
    session = get_current_session()
    session.stop_recording()
    return {"recording": session.recording}


@app.post("/session/recording/audio")
async def push_recording_audio(file: UploadFile = File(...)):
    """
    Push one recorded audio segment into the active recognition session.
    """
    session = get_current_session()
    backend = session.capture.backend if session.capture else None
    if not isinstance(backend, WhisperRecognitionBackend):
        raise UnsupportedCapabilityError("No audio-fed recognition backend configured")

    content_type = file.content_type or ""
    if "audio" not in content_type and "video" not in content_type and "webm" not in content_type:
        raise HTTPException(
            status_code=400,
            detail=f"File must be audio or video. Got: {content_type}"
        )

    suffix = os.path.splitext(file.filename or "")[1] or ".webm"
    text = await backend.submit_audio(await file.read(), suffix=suffix)
    return {
        "transcript": text,
        "recording": session.recording,
        "coverage": session.state.coverage.as_dict(),
    }


@app.post("/session/mute")
async def set_muted(request: MuteRequest):
    session = get_current_session()
    if session.playback:
        if request.muted:
            session.playback.mute()
        else:
            session.playback.unmute()
    return {"muted": request.muted}


@app.get("/session/audio")
async def current_audio():
    """The clip currently being spoken, if any."""
    session = get_current_session()
    sink = session.playback.sink if session.playback else None
    clip = getattr(sink, "current", None)
    if clip is None:
        raise HTTPException(status_code=404, detail="Nothing is being spoken")
    return Response(content=clip.data, media_type="audio/wav", headers={"X-Clip-Id": clip.clip_id})


@app.post("/coach")
async def coach_nudge():
    """Ask the coach for a nudge."""
    session = get_current_session()
    turn = await session.request_coach_nudge()
    return {
        "turn": {"order": turn.order, "speaker": turn.speaker.value, "text": turn.text} if turn else None,
        "missing_topics": session.state.coverage.missing(),
    }


@app.post("/evaluate")
async def evaluate():
    """End & debrief: evaluate the session and stop the timer."""
    session = get_current_session()
    result = await session.request_evaluation()
    if result is None:
        raise HTTPException(status_code=410, detail="Session ended before the evaluation arrived")
    return result.model_dump()


@app.post("/tts")
async def text_to_speech(request: SynthesisRequest):
    """Stand-alone speech synthesis."""
    audio = await asyncio.to_thread(synthesis_service.synthesize, request.text)
    return Response(content=audio, media_type="audio/wav")


@app.post("/transcribe")
async def transcribe(file: UploadFile = File(...)):
    """Stand-alone transcription of one audio file."""
    if not transcriber.whisper_available():
        raise UnsupportedCapabilityError("Speech recognition is not available in this environment")
    suffix = os.path.splitext(file.filename or "")[1] or ".webm"
    text = await asyncio.to_thread(transcriber.transcribe_audio, await file.read(), suffix)
    return {"text": text}


@app.post("/session/end")
async def end_session():
    """Tear down the current session."""
    session = get_current_session()
    status = _session_status(session)
    await clear_session()
    status["is_closed"] = True
    return status


# ================================================================
# Main Entry Point
# ================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
