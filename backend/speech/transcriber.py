"""
Speech-to-text with faster-whisper.
"""
import importlib.util
import logging
import os
import tempfile

from utils.config import config

logger = logging.getLogger(__name__)

# Lazy loading of Whisper model to avoid startup delay
_whisper_model = None


def whisper_available() -> bool:
    return importlib.util.find_spec("faster_whisper") is not None


def get_whisper_model():
    """Lazy load the Whisper model."""
    global _whisper_model
    if _whisper_model is None:
        from faster_whisper import WhisperModel
        logger.info(f"Loading Whisper model: {config.whisper.model_path} on {config.whisper.device}")
        _whisper_model = WhisperModel(
            config.whisper.model_path,
            device=config.whisper.device,
            compute_type=config.whisper.compute_type
        )
    return _whisper_model


def transcribe_audio(data: bytes, suffix: str = ".webm") -> str:
    """
    Transcribe one audio segment.

    Blocking; call it through asyncio.to_thread from the event loop.
    """
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        tmp.write(data)
        audio_path = tmp.name

    try:
        segments, _ = get_whisper_model().transcribe(audio_path, language=config.whisper.language)
        return " ".join(s.text for s in segments).strip()
    finally:
        try:
            os.unlink(audio_path)
        except OSError:
            logger.warning(f"Could not remove temp audio file {audio_path}")
