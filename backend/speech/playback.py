"""
Speech playback: one synthesis request and one live audio clip at a time.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from speech.wav import wav_duration

logger = logging.getLogger(__name__)


@dataclass
class AudioClip:
    """A loaded audio resource. Released exactly once."""
    data: bytes = field(repr=False)
    duration: float
    clip_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    released: bool = False
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)


class AudioSink(ABC):
    """Where synthesized audio goes to be played."""

    @abstractmethod
    def load(self, data: bytes) -> AudioClip:
        pass

    @abstractmethod
    async def play(self, clip: AudioClip) -> None:
        """Return when the clip has finished playing or has been released."""
        pass

    @abstractmethod
    def release(self, clip: AudioClip) -> None:
        pass


class ClipAudioSink(AudioSink):
    """
    Holds the live clip so the browser can fetch and play it, and treats the
    clip's duration as its playback time.
    """

    def __init__(self):
        self.current: Optional[AudioClip] = None

    def load(self, data: bytes) -> AudioClip:
        clip = AudioClip(data=data, duration=wav_duration(data))
        self.current = clip
        return clip

    async def play(self, clip: AudioClip) -> None:
        if clip.released:
            return
        try:
            await asyncio.wait_for(clip._done.wait(), timeout=clip.duration)
        except asyncio.TimeoutError:
            pass

    def release(self, clip: AudioClip) -> None:
        if clip.released:
            return
        clip.released = True
        clip._done.set()
        if self.current is clip:
            self.current = None


class SpeechPlaybackController:
    """
    Serializes speech synthesis and playback.

    A newer `speak` supersedes an unfinished one; the superseded clip is
    released before the new one is loaded.
    """

    def __init__(self, synthesizer, sink: Optional[AudioSink] = None, muted: bool = False):
        self.synthesizer = synthesizer
        self.sink = sink or ClipAudioSink()
        self.muted = muted
        self.speaking = False
        self.last_error: Optional[str] = None

        self._clip: Optional[AudioClip] = None
        self._generation = 0

    async def speak(self, text: str) -> None:
        if self.muted or not text or not text.strip():
            return

        self._generation += 1
        generation = self._generation
        self._release_current()
        self.speaking = True
        clip = None

        try:
            audio = await asyncio.to_thread(self.synthesizer.synthesize, text)
            if generation != self._generation:
                logger.info("Synthesis finished after being superseded; dropping audio")
                return

            clip = self.sink.load(audio)
            self._clip = clip
            await self.sink.play(clip)
        except Exception as e:
            # Playback failure is reported, never fatal to the session
            self.last_error = str(e)
            logger.error(f"Speech playback failed: {e}")
        finally:
            if clip is not None:
                self.sink.release(clip)
                if self._clip is clip:
                    self._clip = None
            if generation == self._generation:
                self.speaking = False

    def stop(self):
        """Stop whatever is playing and forget pending synthesis."""
        self._generation += 1
        self._release_current()
        self.speaking = False

    def mute(self):
        self.muted = True
        self.stop()

    def unmute(self):
        self.muted = False

    def _release_current(self):
        if self._clip is not None:
            self.sink.release(self._clip)
            self._clip = None
