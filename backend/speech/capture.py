"""
Continuous speech capture.

A recognition backend pushes utterance, error and end-of-segment events.
The capture loop keeps exactly one canonical recognition session alive,
restarts listening when the backend closes a segment on its own, and turns
every utterance into one participant turn.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, NamedTuple, Optional

from speech import transcriber
from utils.config import config
from utils.errors import InvalidRequestError, UnsupportedCapabilityError

logger = logging.getLogger(__name__)


class RecognitionCallbacks(NamedTuple):
    on_utterance: Callable[[str], None]
    on_error: Callable[[Exception], None]
    on_end: Callable[[], None]


class RecognitionBackend(ABC):
    """Push-based speech recognizer."""

    @property
    @abstractmethod
    def available(self) -> bool:
        pass

    @abstractmethod
    def start(self, callbacks: RecognitionCallbacks) -> None:
        """Begin a listening segment delivering events to `callbacks`."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class SpeechCaptureLoop:
    """
    Turns a recognition backend into participant turns.

    Args:
        backend: The recognizer
        on_utterance: Called once per completed utterance
    """

    def __init__(self, backend: RecognitionBackend, on_utterance: Callable[[str], Any]):
        self.backend = backend
        self.on_utterance = on_utterance
        self.recording = False
        self.segments = 0
        self.last_error: Optional[str] = None
        self._token = 0

    def start(self):
        if not self.backend.available:
            raise UnsupportedCapabilityError("Speech recognition is not available in this environment")
        if self.recording:
            return

        self._token += 1
        self.recording = True
        self.last_error = None
        self.segments = 0
        logger.info("Recording started")
        try:
            self._listen(self._token)
        except Exception:
            self.recording = False
            self._token += 1
            raise

    def stop(self):
        """After this returns no further utterance is delivered."""
        if not self.recording:
            return
        self.recording = False
        self._token += 1
        self.backend.stop()
        logger.info("Recording stopped")

    def _listen(self, token: int):
        self.segments += 1
        self.backend.start(RecognitionCallbacks(
            on_utterance=lambda text: self._handle_utterance(token, text),
            on_error=lambda error: self._handle_error(token, error),
            on_end=lambda: self._handle_end(token),
        ))

    def _is_current(self, token: int) -> bool:
        return self.recording and token == self._token

    def _handle_utterance(self, token: int, text: str):
        if not self._is_current(token):
            logger.info("Dropping utterance from a stopped recording session")
            return
        text = (text or "").strip()
        if text:
            self.on_utterance(text)

    def _handle_error(self, token: int, error: Exception):
        if not self._is_current(token):
            return
        logger.error(f"Speech recognition error: {error}")
        self.last_error = str(error)
        self.recording = False
        self._token += 1
        self.backend.stop()

    def _handle_end(self, token: int):
        if not self._is_current(token):
            return
        logger.info(f"Recognition segment {self.segments} ended, listening again")
        try:
            self._listen(token)
        except Exception as e:
            self._handle_error(token, e)


class WhisperRecognitionBackend(RecognitionBackend):
    """
    Recognizer fed with audio segments recorded by the browser.

    Each submitted segment is transcribed with faster-whisper and delivered as
    one utterance. A listening segment ends after `segment_utterance_limit`
    utterances, like a capped browser recognition session.
    """

    def __init__(self, segment_utterance_limit: Optional[int] = None, transcribe=None):
        self.segment_utterance_limit = segment_utterance_limit or config.whisper.segment_utterance_limit
        self._transcribe = transcribe or transcriber.transcribe_audio
        self._callbacks: Optional[RecognitionCallbacks] = None
        self._count = 0

    @property
    def available(self) -> bool:
        return transcriber.whisper_available()

    @property
    def listening(self) -> bool:
        return self._callbacks is not None

    def start(self, callbacks: RecognitionCallbacks) -> None:
        self._callbacks = callbacks
        self._count = 0

    def stop(self) -> None:
        self._callbacks = None

    async def submit_audio(self, data: bytes, suffix: str = ".webm") -> str:
        """Transcribe a recorded segment and push the result."""
        callbacks = self._callbacks
        if callbacks is None:
            raise InvalidRequestError("Recording is not active")

        try:
            text = await asyncio.to_thread(self._transcribe, data, suffix)
        except Exception as e:
            callbacks.on_error(e)
            return ""

        # Delivered even if the segment rolled over meanwhile; the capture
        # loop decides whether its session is still current.
        callbacks.on_utterance(text)

        if callbacks is self._callbacks:
            self._count += 1
            if self._count >= self.segment_utterance_limit:
                self._callbacks = None
                callbacks.on_end()
        return text
