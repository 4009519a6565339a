"""
Append-only transcript of coach and participant turns.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models.schemas import Speaker, TurnPayload
from session.coverage import CoverageState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Turn:
    order: int
    speaker: Speaker
    text: str

    def to_payload(self) -> TurnPayload:
        return TurnPayload(speaker=self.speaker, text=self.text)


class Transcript:
    """
    Ordered log of turns.

    Participant turns are fed to the coverage detector as they are appended.
    """

    def __init__(self, coverage: Optional[CoverageState] = None):
        self.coverage = coverage
        self._turns: List[Turn] = []
        self._next_order = 1

    def append(self, speaker: Speaker, text: str) -> Turn:
        turn = Turn(order=self._next_order, speaker=Speaker(speaker), text=text)
        self._next_order += 1
        self._turns.append(turn)

        if turn.speaker == Speaker.PARTICIPANT and self.coverage is not None:
            newly = self.coverage.observe(text)
            if newly:
                logger.info(f"Coverage updated: {', '.join(sorted(newly))}")

        return turn

    def snapshot(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)
