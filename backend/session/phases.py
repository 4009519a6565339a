"""
Phase definitions and the countdown timer that drives phase transitions.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from models.schemas import Phase
from utils.config import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseInfo:
    """Information about a single session phase."""
    phase: Phase
    duration_seconds: int
    description: str
    focus_areas: List[str]


# Phase order for progression
PHASE_ORDER = Phase.get_order()

_DESCRIPTIONS = {
    Phase.DISCOVERY: ("Understand the problem space", ["framing", "constraints", "users"]),
    Phase.HEADS_DOWN: ("Explore and converge on a design", ["ideation", "systems", "accessibility"]),
    Phase.PRESENTATION: ("Walk through the design and its trade-offs", ["metrics", "communication"]),
}


def build_phases(durations: Optional[Dict[str, int]] = None) -> Dict[Phase, PhaseInfo]:
    durations = durations or config.session.phase_durations
    return {
        phase: PhaseInfo(
            phase=phase,
            duration_seconds=int(durations[phase.value]),
            description=_DESCRIPTIONS[phase][0],
            focus_areas=_DESCRIPTIONS[phase][1],
        )
        for phase in PHASE_ORDER
    }


def get_next_phase(current: Phase) -> Optional[Phase]:
    """The phase after `current`, or None at the terminal phase."""
    idx = PHASE_ORDER.index(current)
    if idx < len(PHASE_ORDER) - 1:
        return PHASE_ORDER[idx + 1]
    return None


def format_time(seconds: int) -> str:
    """Render seconds as m:ss."""
    mins, secs = divmod(max(int(seconds), 0), 60)
    return f"{mins}:{secs:02d}"


@dataclass(frozen=True)
class SessionClock:
    phase: Phase
    remaining_seconds: int
    running: bool

    @property
    def display(self) -> str:
        return format_time(self.remaining_seconds)


PhaseListener = Callable[[Phase, Phase], None]
StopListener = Callable[[Phase], None]


class PhaseTimer:
    """
    Single-threaded countdown clock.

    `tick()` is the only place time passes; `run()` calls it once per tick
    interval on the event loop that owns the session.
    """

    def __init__(
        self,
        durations: Optional[Dict[str, int]] = None,
        tick_seconds: Optional[float] = None,
    ):
        self.phases = build_phases(durations)
        self.tick_seconds = tick_seconds if tick_seconds is not None else config.session.tick_seconds

        self.phase = Phase.DISCOVERY
        self.remaining = self.duration_of(self.phase)
        self.running = True

        self._phase_listeners: List[PhaseListener] = []
        self._stop_listeners: List[StopListener] = []

    def duration_of(self, phase: Phase) -> int:
        return self.phases[phase].duration_seconds

    @property
    def clock(self) -> SessionClock:
        return SessionClock(phase=self.phase, remaining_seconds=self.remaining, running=self.running)

    def on_phase_change(self, listener: PhaseListener):
        self._phase_listeners.append(listener)

    def on_finished(self, listener: StopListener):
        self._stop_listeners.append(listener)

    # ========================================
    # Transitions
    # ========================================

    def tick(self):
        """Advance the clock by one interval."""
        if not self.running:
            return

        if self.remaining > 1:
            self.remaining -= 1
            return

        next_phase = get_next_phase(self.phase)
        if next_phase is None:
            self.remaining = 0
            self.running = False
            logger.info(f"Timer finished at terminal phase {self.phase.value}")
            for listener in self._stop_listeners:
                listener(self.phase)
            return

        # The boundary tick is absorbed by the new phase's full duration
        previous = self.phase
        self.phase = next_phase
        self.remaining = self.duration_of(next_phase)
        logger.info(f"Phase advanced: {previous.value} -> {next_phase.value}")
        for listener in self._phase_listeners:
            listener(previous, next_phase)

    def select_phase(self, phase: Phase):
        """Manual override: jump to a phase with its full duration and run."""
        previous = self.phase
        self.phase = phase
        self.remaining = self.duration_of(phase)
        self.running = True
        logger.info(f"Phase selected: {previous.value} -> {phase.value}")
        if previous != phase:
            for listener in self._phase_listeners:
                listener(previous, phase)

    def stop(self):
        """Stop counting; phase and remaining time stay inspectable."""
        self.running = False

    async def run(self):
        """Tick forever at the configured interval; cancel the task to end it."""
        try:
            while True:
                await asyncio.sleep(self.tick_seconds)
                self.tick()
        except asyncio.CancelledError:
            logger.info("Timer task cancelled")
            raise
