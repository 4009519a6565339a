"""
Speech module for the coaching session.
Provides Whisper transcription, continuous capture and spoken playback.
"""

from . import transcriber
from .playback import SpeechPlaybackController, ClipAudioSink
from .capture import SpeechCaptureLoop, WhisperRecognitionBackend

__all__ = ['transcriber', 'SpeechPlaybackController', 'ClipAudioSink',
           'SpeechCaptureLoop', 'WhisperRecognitionBackend']
