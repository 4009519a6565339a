"""
Session orchestration.

Owns one SessionState and drives everything that touches it: manual text
and captured speech, the phase timer, coach nudges, the final evaluation and
spoken playback. All mutations run on the event loop that created the
orchestrator; blocking collaborator calls run in worker threads and their
results are applied back on the loop.
"""
import asyncio
import json
import logging
from typing import Optional, Set

from pydantic import ValidationError

from llm.prompts import coverage_reminder
from models.schemas import CoachResponse, EvaluationResult, Phase, Speaker
from session.phases import PhaseInfo
from session.services import CoachService, EvaluatorService
from session.state import SessionSnapshot, SessionState
from session.transcript import Turn
from speech.capture import RecognitionBackend, SpeechCaptureLoop
from speech.playback import SpeechPlaybackController
from utils.cleaning import ResponseCleaner
from utils.errors import (
    CoachError,
    EvaluationParseError,
    InvalidRequestError,
    RequestInFlightError,
    SessionClosedError,
    TransportError,
    UnsupportedCapabilityError,
)

logger = logging.getLogger(__name__)

COACH_FAILURE_MESSAGE = "Failed to get coaching nudge."
DEBRIEF_MESSAGE = "Debrief ready. Review your scores and recommendations."
TIME_UP_MESSAGE = "Time is up. Wrap up your presentation and request your debrief."


def phase_change_message(info: PhaseInfo) -> str:
    """Coach turn announcing the phase that just began."""
    return (
        f"Moving to {info.phase.value}: {info.description}. "
        f"Focus on {', '.join(info.focus_areas)}."
    )


def parse_evaluation(raw: str) -> EvaluationResult:
    """
    Parse the evaluator's raw text.

    Raises:
        EvaluationParseError: carrying the untouched raw text
    """
    body = ResponseCleaner.extract_json_object(raw)
    if body is None:
        raise EvaluationParseError("Evaluator response contained no JSON object", raw=raw)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise EvaluationParseError(f"Evaluator response is not valid JSON: {e}", raw=raw) from e
    try:
        return EvaluationResult.model_validate(data)
    except ValidationError as e:
        raise EvaluationParseError(f"Evaluator response does not match the rubric schema: {e}", raw=raw) from e


class SessionOrchestrator:
    """
    Composes timer, transcript, coverage, capture and playback for one session.
    """

    def __init__(
        self,
        state: SessionState,
        coach: Optional[CoachService] = None,
        evaluator: Optional[EvaluatorService] = None,
        playback: Optional[SpeechPlaybackController] = None,
        recognition: Optional[RecognitionBackend] = None,
    ):
        self.state = state
        self.coach = coach or CoachService()
        self.evaluator = evaluator or EvaluatorService()
        self.playback = playback
        self.capture = SpeechCaptureLoop(recognition, self.submit_text) if recognition else None

        self._coach_pending = False
        self._evaluation_pending = False
        self._timer_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

        self.state.timer.on_phase_change(self._on_phase_change)
        self.state.timer.on_finished(self._on_timer_finished)

    # ========================================
    # Lifecycle
    # ========================================

    def start(self, speak_welcome: bool = True):
        """Start the timer task (and speak the welcome turn) on the running loop."""
        if self._timer_task is None:
            self._timer_task = asyncio.create_task(self.state.timer.run())
        welcome = self.state.transcript.snapshot()[0]
        if speak_welcome:
            self._speak(welcome.text)
        logger.info(f"Session {self.state.session_id} started in phase {self.state.phase.value}")

    async def end_session(self):
        """
        Tear the session down. Responses still in flight are dropped when
        they arrive.
        """
        if self.state.closed:
            return
        self.state.close()
        if self.capture:
            self.capture.stop()
        if self.playback:
            self.playback.stop()

        tasks = list(self._background)
        if self._timer_task is not None:
            tasks.append(self._timer_task)
            self._timer_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Session {self.state.session_id} ended")

    def _ensure_open(self):
        if self.state.closed:
            raise SessionClosedError("Session has ended")

    # ========================================
    # Input
    # ========================================

    def submit_text(self, text: str) -> Optional[Turn]:
        """Manual text entry and captured speech both land here."""
        if self.state.closed:
            logger.info("Dropping participant input for a closed session")
            return None
        text = (text or "").strip()
        if not text:
            return None
        return self.state.add_turn(Speaker.PARTICIPANT, text)

    def add_screenshot(self, display_name: str, data: bytes):
        self._ensure_open()
        record = self.state.add_screenshot(display_name, data)
        logger.info(f"Screenshot added: {display_name} ({len(self.state.screenshots)} total)")
        return record

    def select_phase(self, phase: Phase):
        self._ensure_open()
        self.state.timer.select_phase(phase)

    def start_recording(self):
        self._ensure_open()
        if self.capture is None:
            raise UnsupportedCapabilityError("No speech recognition backend configured")
        self.capture.start()

    def stop_recording(self):
        if self.capture:
            self.capture.stop()

    @property
    def recording(self) -> bool:
        return bool(self.capture and self.capture.recording)

    # ========================================
    # Coach
    # ========================================

    @staticmethod
    def _validate_coach(snapshot: SessionSnapshot):
        missing = []
        if not snapshot.phase:
            missing.append("phase")
        if not snapshot.prompt:
            missing.append("prompt")
        if not snapshot.transcript:
            missing.append("transcript")
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

    async def request_coach_nudge(self, snapshot: Optional[SessionSnapshot] = None) -> Optional[Turn]:
        """
        Ask the coach for a nudge and append it as a Coach turn.

        Transport failures become a Coach turn reporting the failure. Returns
        None when the session ended before the response arrived.
        """
        self._ensure_open()
        snapshot = snapshot or self.state.snapshot()
        self._validate_coach(snapshot)
        if self._coach_pending:
            raise RequestInFlightError("A coach request is already in flight")

        self._coach_pending = True
        try:
            response: CoachResponse = await asyncio.to_thread(self.coach.request, snapshot.to_payload())
            text = self._compose_nudge(response, snapshot)
        except TransportError as e:
            logger.error(f"Coach request failed: {e}")
            text = None
        finally:
            self._coach_pending = False

        if self.state.closed:
            logger.info("Coach response arrived after session end; dropped")
            return None

        if text is None:
            return self.state.add_turn(Speaker.COACH, COACH_FAILURE_MESSAGE)
        if response.error or not response.nudge:
            return self.state.add_turn(Speaker.COACH, text)

        turn = self.state.add_turn(Speaker.COACH, text)
        self._speak(text)
        return turn

    @staticmethod
    def _compose_nudge(response: CoachResponse, snapshot: SessionSnapshot) -> str:
        if response.error or not response.nudge:
            return f"Error: {response.error or 'empty nudge'}"

        reminder = response.coverage_reminder
        if reminder is None:
            missing = snapshot.missing_topics()
            reminder = coverage_reminder(missing) if missing else None
        if not reminder:
            return response.nudge
        return f"{response.nudge} {reminder}"

    # ========================================
    # Evaluation
    # ========================================

    async def request_evaluation(self, snapshot: Optional[SessionSnapshot] = None) -> Optional[EvaluationResult]:
        """
        Ask the evaluator for the final debrief.

        Raises:
            InvalidRequestError: prompt or transcript missing
            TransportError: the evaluator call failed
            EvaluationParseError: the response did not match the rubric schema
        """
        self._ensure_open()
        snapshot = snapshot or self.state.snapshot()
        missing = [name for name, value in (("prompt", snapshot.prompt), ("transcript", snapshot.transcript)) if not value]
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")
        if self._evaluation_pending:
            raise RequestInFlightError("An evaluation request is already in flight")

        self._evaluation_pending = True
        try:
            raw = await asyncio.to_thread(self.evaluator.request, snapshot.to_payload())
        except CoachError:
            if self.state.closed:
                logger.info("Evaluation failed after session end; dropped")
                return None
            raise
        finally:
            self._evaluation_pending = False

        if self.state.closed:
            logger.info("Evaluation arrived after session end; dropped")
            return None

        result = parse_evaluation(raw)

        self.state.timer.stop()
        self.state.add_turn(Speaker.COACH, DEBRIEF_MESSAGE)
        logger.info(f"Evaluation complete, average rubric score {result.rubric.average}")
        return result

    # ========================================
    # Playback and timer events
    # ========================================

    def _speak(self, text: str):
        if self.playback is None or self.playback.muted:
            return
        task = asyncio.create_task(self.playback.speak(text))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_phase_change(self, previous: Phase, current: Phase):
        logger.info(f"Session {self.state.session_id}: {previous.value} -> {current.value}")
        if self.state.closed:
            return
        info = self.state.timer.phases[current]
        self.state.add_turn(Speaker.COACH, phase_change_message(info))

    def _on_timer_finished(self, phase: Phase):
        logger.info(f"Session {self.state.session_id}: time is up in {phase.value}")
        if self.state.closed:
            return
        self.state.add_turn(Speaker.COACH, TIME_UP_MESSAGE)
