import json
import threading

import pytest

from models.schemas import CoachResponse
from speech.capture import RecognitionBackend
from speech.wav import pcm_to_wav
from utils.errors import TransportError


VALID_EVALUATION = {
    "rubric": {
        "problem_framing": 4,
        "idea_breadth": 3,
        "systems_thinking": 3,
        "prioritization": 4,
        "metrics_discipline": 2,
        "communication": 5,
        "velocity_with_rigor": 3,
    },
    "strengths": ["Clear framing of the offline constraint"],
    "weaknesses": ["No success metrics"],
    "drills": [{"title": "Metric ladder", "time": 10, "description": "Define a north star and two guardrails."}],
    "narrative": "Solid discovery, thin on measurement.",
}


def silent_wav(seconds: float) -> bytes:
    frames = int(24000 * seconds)
    return pcm_to_wav(b"\x00\x00" * frames)


class FakeCoach:
    def __init__(self, nudge="What problem are they trying to solve?", error=None, fail=False, gate=None, reminder=None):
        self.nudge = nudge
        self.reminder = reminder
        self.error = error
        self.fail = fail
        self.gate = gate
        self.payloads = []

    def request(self, payload):
        self.payloads.append(payload)
        if self.gate is not None:
            self.gate.wait(2)
        if self.fail:
            raise TransportError("coach unreachable", status=503)
        if self.error:
            return CoachResponse(error=self.error)
        return CoachResponse(nudge=self.nudge, coverage_reminder=self.reminder)


class FakeEvaluator:
    def __init__(self, raw=None, fail=False, gate=None):
        self.raw = raw if raw is not None else json.dumps(VALID_EVALUATION)
        self.fail = fail
        self.gate = gate
        self.payloads = []

    def request(self, payload):
        self.payloads.append(payload)
        if self.gate is not None:
            self.gate.wait(2)
        if self.fail:
            raise TransportError("evaluator unreachable", status=500)
        return self.raw


class FakeSynthesizer:
    def __init__(self, clips=None, fail=False):
        self.clips = clips or {}
        self.fail = fail
        self.texts = []
        self.lock = threading.Lock()

    def synthesize(self, text):
        with self.lock:
            self.texts.append(text)
        if self.fail:
            raise TransportError("tts failed")
        return self.clips.get(text, silent_wav(0.01))


class FakePlayback:
    def __init__(self, muted=False):
        self.muted = muted
        self.spoken = []
        self.stopped = False

    async def speak(self, text):
        self.spoken.append(text)

    def stop(self):
        self.stopped = True


class FakeRecognitionBackend(RecognitionBackend):
    def __init__(self, available=True):
        self._available = available
        self.callbacks = None
        self.starts = 0
        self.stops = 0

    @property
    def available(self):
        return self._available

    def start(self, callbacks):
        self.callbacks = callbacks
        self.starts += 1

    def stop(self):
        self.stops += 1

    def say(self, text):
        self.callbacks.on_utterance(text)

    def fail(self, error):
        self.callbacks.on_error(error)

    def end_segment(self):
        self.callbacks.on_end()


@pytest.fixture
def fake_coach():
    return FakeCoach()


@pytest.fixture
def fake_evaluator():
    return FakeEvaluator()


@pytest.fixture
def fake_playback():
    return FakePlayback()
