"""
Prompt templates for the coach and evaluator.
Each prompt is designed to:
1. Keep the coach asking, not designing for the participant
2. Keep the strong constraint of the design prompt central
3. Produce compact, parseable outputs
"""
from typing import Iterable, List

from models.schemas import SessionPayload


RUBRIC_KEYS = [
    "problem_framing",
    "idea_breadth",
    "systems_thinking",
    "prioritization",
    "metrics_discipline",
    "communication",
    "velocity_with_rigor",
]


def _transcript_text(payload: SessionPayload) -> str:
    return "\n".join(f"{turn.speaker.value}: {turn.text}" for turn in payload.transcript)


def _join(items: Iterable[str]) -> str:
    items = list(items)
    return ", ".join(items) if items else "none"


class Prompts:
    """Collection of all collaborator prompts."""

    # ============================================================
    # COACH PROMPTS
    # ============================================================

    @staticmethod
    def coach_system(phase: str) -> str:
        """System instruction for the coaching nudge."""
        return f"""You are a product design challenge coach. Guide without dictating solutions.
Enforce current phase: {phase}. Keep the single strong constraint central.
Probe for: problem framing, constraints, users, ideation breadth, systems thinking, metrics, accessibility.
Prefer questions over advice. Return a short nudge (<= 2 sentences).
Escalate specificity when the user stalls."""

    @staticmethod
    def coach_request(payload: SessionPayload, covered: List[str], missing: List[str]) -> str:
        """User prompt for the coaching nudge."""
        phase = payload.phase.value if payload.phase else "unknown"
        return f"""Design Prompt: {payload.prompt}

Current Phase: {phase}
Screenshot Count: {payload.screenshot_count}
Covered Topics: {_join(covered)}
Missing Topics: {_join(missing)}

Transcript:
{_transcript_text(payload)}

Provide a coaching nudge (max 2 sentences) that guides the designer without dictating solutions. Focus on the current phase and missing coverage areas."""

    # ============================================================
    # EVALUATOR PROMPTS
    # ============================================================

    @staticmethod
    def evaluator_system() -> str:
        rubric = ",\n".join(f'    "{key}": 1-5' for key in RUBRIC_KEYS)
        return f"""You are an expert design interview evaluator. Produce compact JSON with rubric scores (1-5) and improvement drills. Be specific and actionable.

Schema:
{{
  "rubric": {{
{rubric}
  }},
  "strengths": [string],
  "weaknesses": [string],
  "drills": [{{"title": string, "minutes": number, "description": string}}],
  "narrative": string
}}

Strictly adhere to this schema. Scores are integers."""

    @staticmethod
    def evaluator_request(payload: SessionPayload, covered: List[str]) -> str:
        phase = payload.phase.value if payload.phase else "unknown"
        return f"""Design Prompt: {payload.prompt}

Transcript:
{_transcript_text(payload)}

Coverage Tags: {_join(covered)}
Screenshot Count: {payload.screenshot_count}
Final Phase: {phase}

Evaluate this design interview performance and provide scores, strengths, weaknesses, practice drills, and a brief narrative summary."""


def coverage_reminder(missing: List[str]) -> str:
    """Short reminder appended after a nudge when topics are still uncovered."""
    return f"You're missing: {', '.join(missing)}."
