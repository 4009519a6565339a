"""
Shared enums and pydantic schemas for the coaching session and its HTTP API.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Phase(str, Enum):
    DISCOVERY = "Discovery"
    HEADS_DOWN = "Heads-down"
    PRESENTATION = "Presentation"

    @classmethod
    def get_order(cls) -> List["Phase"]:
        return [cls.DISCOVERY, cls.HEADS_DOWN, cls.PRESENTATION]


class Speaker(str, Enum):
    COACH = "Coach"
    PARTICIPANT = "Participant"


# ================================================================
# Collaborator wire format
# ================================================================

class TurnPayload(BaseModel):
    speaker: Speaker
    text: str


class SessionPayload(BaseModel):
    """Request body sent to the coach and evaluator services."""
    model_config = ConfigDict(populate_by_name=True)

    phase: Optional[Phase] = None
    prompt: str
    transcript: List[TurnPayload]
    coverage: Dict[str, bool]
    screenshot_count: int = Field(0, alias="screenshotCount")


class CoachResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nudge: Optional[str] = None
    coverage_reminder: Optional[str] = Field(None, alias="coverageReminder")
    error: Optional[str] = None


class Rubric(BaseModel):
    problem_framing: int = Field(..., ge=1, le=5)
    idea_breadth: int = Field(..., ge=1, le=5)
    systems_thinking: int = Field(..., ge=1, le=5)
    prioritization: int = Field(..., ge=1, le=5)
    metrics_discipline: int = Field(..., ge=1, le=5)
    communication: int = Field(..., ge=1, le=5)
    velocity_with_rigor: int = Field(..., ge=1, le=5)

    @property
    def average(self) -> float:
        scores = list(self.model_dump().values())
        return round(sum(scores) / len(scores), 2)


class Drill(BaseModel):
    title: str
    # Evaluator prompts historically asked for "time"
    minutes: float = Field(..., validation_alias=AliasChoices("minutes", "time"))
    description: str


class EvaluationResult(BaseModel):
    rubric: Rubric
    strengths: List[str]
    weaknesses: List[str]
    drills: List[Drill]
    narrative: str


# ================================================================
# HTTP request bodies
# ================================================================

class StartSessionRequest(BaseModel):
    prompt: Optional[str] = None
    muted: bool = False


class TextTurnRequest(BaseModel):
    text: str = Field(..., min_length=1)


class PhaseSelectRequest(BaseModel):
    phase: Phase


class MuteRequest(BaseModel):
    muted: bool


class SynthesisRequest(BaseModel):
    text: str = Field(..., min_length=1)
