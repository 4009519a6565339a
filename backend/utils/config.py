"""
Configuration settings for the Design Challenge Coach.
All settings can be overridden via environment variables.
"""
import os
from typing import Dict
from dataclasses import dataclass, field


DEFAULT_DESIGN_PROMPT = (
    "Design a collaboration tool that works fully offline for 24 hours. "
    "Strong constraint: No background sync during offline period."
)


@dataclass
class LLMConfig:
    """Gemini REST configuration shared by the coach, evaluator and TTS calls."""
    api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    base_url: str = field(default_factory=lambda: os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com"
    ))
    model: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", "gemini-2.0-flash"))
    tts_model: str = field(default_factory=lambda: os.getenv(
        "GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"
    ))
    tts_voice: str = field(default_factory=lambda: os.getenv("GEMINI_TTS_VOICE", "Kore"))
    timeout: int = field(default_factory=lambda: int(os.getenv("LLM_TIMEOUT", "60")))
    # Failed calls are reported to the session, not retried behind its back
    max_retries: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_RETRIES", "0")))

    coach_temperature: float = 0.7
    evaluator_temperature: float = 0.2

    def generate_url(self, model: str) -> str:
        return f"{self.base_url.rstrip('/')}/v1beta/models/{model}:generateContent"


@dataclass
class WhisperConfig:
    """Whisper STT configuration."""
    model_path: str = field(default_factory=lambda: os.getenv("WHISPER_MODEL_PATH", "small"))
    device: str = field(default_factory=lambda: os.getenv("WHISPER_DEVICE", "cpu"))
    compute_type: str = field(default_factory=lambda: os.getenv("WHISPER_COMPUTE_TYPE", "int8"))
    language: str = "en"

    # Utterances per listening segment before the backend ends it
    segment_utterance_limit: int = 20


@dataclass
class AudioConfig:
    """Framing of the PCM returned by the speech synthesis model."""
    sample_rate: int = 24000
    channels: int = 1
    sample_width: int = 2  # bytes, 16-bit


@dataclass
class SessionConfig:
    """Session flow configuration."""
    default_prompt: str = field(default_factory=lambda: os.getenv("DESIGN_PROMPT", DEFAULT_DESIGN_PROMPT))
    tick_seconds: float = field(default_factory=lambda: float(os.getenv("TIMER_TICK_SECONDS", "1.0")))

    # Phase durations in seconds
    phase_durations: Dict[str, int] = field(default_factory=lambda: {
        "Discovery": 20 * 60,
        "Heads-down": 25 * 60,
        "Presentation": 15 * 60,
    })


class Config:
    """Main configuration class combining all config sections."""

    def __init__(self):
        self.llm = LLMConfig()
        self.whisper = WhisperConfig()
        self.audio = AudioConfig()
        self.session = SessionConfig()


# Global config instance
config = Config()
