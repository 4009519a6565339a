"""
External AI collaborators: coach, evaluator and speech synthesis.

Each service turns a session payload into one synchronous Gemini call.
They are blocking on purpose; the orchestrator runs them off the event loop.
"""
import logging
from typing import Optional

from llm.client import LLMClient, llm_client
from llm.prompts import Prompts, coverage_reminder
from models.schemas import CoachResponse, SessionPayload
from speech.wav import pcm_to_wav
from utils.cleaning import ResponseCleaner
from utils.config import config
from utils.errors import EvaluationParseError

# Set up logging
logger = logging.getLogger(__name__)


def _split_coverage(payload: SessionPayload):
    covered = [topic for topic, flag in payload.coverage.items() if flag]
    missing = [topic for topic, flag in payload.coverage.items() if not flag]
    return covered, missing


class CoachService:
    """
    Produces a short coaching nudge for the current phase.
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self.llm = client or llm_client

    def request(self, payload: SessionPayload) -> CoachResponse:
        covered, missing = _split_coverage(payload)
        phase = payload.phase.value if payload.phase else "unknown"
        logger.info(f"Requesting coach nudge for phase: {phase}")

        response = self.llm.generate(
            prompt=Prompts.coach_request(payload, covered, missing),
            system_instruction=Prompts.coach_system(phase),
            temperature=self.llm.settings.coach_temperature,
        )

        nudge = ResponseCleaner.clean_nudge(response.content)
        if not nudge:
            logger.warning("Coach returned an empty nudge")
            return CoachResponse(error="Coach returned an empty nudge")

        logger.info(f"Coach nudge: {nudge[:80]}...")
        return CoachResponse(
            nudge=nudge,
            coverage_reminder=coverage_reminder(missing) if missing else None,
        )


class EvaluatorService:
    """
    Grades the whole session. Returns the evaluator's raw text; parsing and
    validation belong to the caller so the raw text is never lost.
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self.llm = client or llm_client

    def request(self, payload: SessionPayload) -> str:
        covered, _ = _split_coverage(payload)
        logger.info(f"Requesting evaluation ({len(payload.transcript)} turns)")

        response = self.llm.generate(
            prompt=Prompts.evaluator_request(payload, covered),
            system_instruction=Prompts.evaluator_system(),
            temperature=self.llm.settings.evaluator_temperature,
            json_mode=True,
        )
        if not response.is_valid:
            raise EvaluationParseError("Evaluator returned an empty response", raw=response.content)
        return response.content


class SpeechSynthesisService:
    """
    Text in, WAV bytes out.
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self.llm = client or llm_client

    def synthesize(self, text: str) -> bytes:
        pcm = self.llm.synthesize(text)
        audio = config.audio
        logger.info(f"Synthesized {len(pcm)} bytes of PCM for {len(text)} chars")
        return pcm_to_wav(
            pcm,
            sample_rate=audio.sample_rate,
            channels=audio.channels,
            sample_width=audio.sample_width,
        )
