"""
Session state owned by one event loop, and the immutable snapshots taken
from it for the external AI collaborators.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from models.schemas import Phase, SessionPayload, Speaker
from session.coverage import CoverageState
from session.phases import PhaseTimer
from session.transcript import Transcript, Turn
from utils.config import config


WELCOME_MESSAGE = (
    "Welcome to your design challenge. We're starting with Discovery phase. "
    "Focus on understanding the problem space, constraints, and users. "
    "Remember the strong constraint in the prompt - keep it central to your thinking."
)


@dataclass(frozen=True)
class ScreenshotRecord:
    display_name: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time view of a session; later mutations never reach it."""
    phase: Optional[Phase]
    prompt: str
    transcript: Tuple[Turn, ...]
    coverage: Mapping[str, bool]
    screenshot_count: int

    def missing_topics(self) -> List[str]:
        return [topic for topic, covered in self.coverage.items() if not covered]

    def to_payload(self) -> SessionPayload:
        return SessionPayload(
            phase=self.phase,
            prompt=self.prompt,
            transcript=[turn.to_payload() for turn in self.transcript],
            coverage=dict(self.coverage),
            screenshot_count=self.screenshot_count,
        )


class SessionState:
    """
    The single mutation surface for one coaching session.
    """

    def __init__(self, prompt: Optional[str] = None, timer: Optional[PhaseTimer] = None):
        self.session_id = f"session-{uuid.uuid4().hex[:12]}"
        self.prompt = prompt or config.session.default_prompt
        self.start_time = datetime.now()

        self.timer = timer or PhaseTimer()
        self.coverage = CoverageState()
        self.transcript = Transcript(coverage=self.coverage)
        self.screenshots: List[ScreenshotRecord] = []

        self.closed = False

        self.transcript.append(Speaker.COACH, WELCOME_MESSAGE)

    # ========================================
    # Mutations
    # ========================================

    def add_turn(self, speaker: Speaker, text: str) -> Turn:
        return self.transcript.append(speaker, text)

    def add_screenshot(self, display_name: str, data: bytes) -> ScreenshotRecord:
        record = ScreenshotRecord(display_name=display_name, data=data)
        self.screenshots.append(record)
        return record

    def close(self):
        self.timer.stop()
        self.closed = True

    # ========================================
    # Views
    # ========================================

    @property
    def phase(self) -> Phase:
        return self.timer.phase

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self.timer.phase,
            prompt=self.prompt,
            transcript=self.transcript.snapshot(),
            coverage=MappingProxyType(self.coverage.as_dict()),
            screenshot_count=len(self.screenshots),
        )

    def get_status(self) -> Dict[str, Any]:
        clock = self.timer.clock
        return {
            "session_id": self.session_id,
            "prompt": self.prompt,
            "phase": clock.phase.value,
            "remaining_seconds": clock.remaining_seconds,
            "remaining_display": clock.display,
            "running": clock.running,
            "coverage": self.coverage.as_dict(),
            "missing_topics": self.coverage.missing(),
            "screenshot_count": len(self.screenshots),
            "transcript": [
                {"order": t.order, "speaker": t.speaker.value, "text": t.text}
                for t in self.transcript.snapshot()
            ],
            "is_closed": self.closed,
        }
