import pytest
from fastapi.testclient import TestClient

import main
from speech import transcriber

from conftest import FakeCoach, FakeEvaluator, FakeSynthesizer


@pytest.fixture
def collaborators(monkeypatch):
    fakes = {
        "coach": FakeCoach(nudge="Who exactly is the user?"),
        "evaluator": FakeEvaluator(),
        "synthesizer": FakeSynthesizer(),
    }
    monkeypatch.setattr(main, "coach_service", fakes["coach"])
    monkeypatch.setattr(main, "evaluator_service", fakes["evaluator"])
    monkeypatch.setattr(main, "synthesis_service", fakes["synthesizer"])
    monkeypatch.setattr(transcriber, "whisper_available", lambda: True)
    monkeypatch.setattr(transcriber, "transcribe_audio", lambda data, suffix=".webm": data.decode())
    return fakes


@pytest.fixture
def client(collaborators):
    with TestClient(main.app) as test_client:
        yield test_client
        if main._current_session is not None:
            test_client.post("/session/end")


@pytest.fixture
def session(client):
    response = client.post("/session/start", json={"prompt": "Design a notes app", "muted": True})
    assert response.status_code == 200
    return response.json()


def test_root(client):
    body = client.get("/").json()
    assert body["status"] == "running"
    assert body["phases"] == ["Discovery", "Heads-down", "Presentation"]


def test_status_without_session(client):
    assert client.get("/session/status").status_code == 400


def test_start_session(session):
    assert session["phase"] == "Discovery"
    assert session["remaining_seconds"] == 1200
    assert session["muted"] is True
    assert session["transcript"][0]["speaker"] == "Coach"
    assert session["transcript"][0]["text"].startswith("Welcome")


def test_text_turn_updates_coverage(client, session):
    response = client.post("/session/text", json={"text": "Our main user is a busy parent"})
    body = response.json()
    assert body["turn"]["speaker"] == "Participant"
    assert body["turn"]["order"] == 2
    assert body["coverage"]["users"] is True


def test_empty_text_rejected(client, session):
    assert client.post("/session/text", json={"text": ""}).status_code == 422


def test_coach_nudge_with_reminder(client, session, collaborators):
    client.post("/session/text", json={"text": "Our main user is a busy parent"})
    body = client.post("/coach").json()
    assert body["turn"]["text"] == (
        "Who exactly is the user? "
        "You're missing: framing, constraints, ideation, systems, metrics, accessibility."
    )
    assert collaborators["coach"].payloads[0].coverage["users"] is True
    assert collaborators["synthesizer"].texts == []


def test_coach_transport_failure_is_a_turn(client, session, collaborators):
    collaborators["coach"].fail = True
    body = client.post("/coach").json()
    assert body["turn"]["text"] == "Failed to get coaching nudge."


def test_screenshots_counted(client, session, collaborators):
    files = [
        ("files", ("one.png", b"\x89PNG1", "image/png")),
        ("files", ("two.png", b"\x89PNG2", "image/png")),
    ]
    assert client.post("/session/screenshots", files=files).json() == {"screenshot_count": 2}

    client.post("/coach")
    assert collaborators["coach"].payloads[0].screenshot_count == 2


def test_select_phase(client, session):
    body = client.post("/session/phase", json={"phase": "Presentation"}).json()
    assert body["phase"] == "Presentation"
    assert body["remaining_seconds"] == 900
    assert client.post("/session/phase", json={"phase": "Lunch"}).status_code == 422


def test_recording_audio_becomes_turns(client, session):
    assert client.post("/session/recording/start").json() == {"recording": True}

    response = client.post(
        "/session/recording/audio",
        files={"file": ("segment.webm", b"the goal is fewer conflicts", "audio/webm")},
    )
    body = response.json()
    assert body["transcript"] == "the goal is fewer conflicts"
    assert body["coverage"]["framing"] is True

    assert client.post("/session/recording/stop").json() == {"recording": False}
    status = client.get("/session/status").json()
    assert status["transcript"][-1]["text"] == "the goal is fewer conflicts"


def test_recording_audio_rejects_non_audio(client, session):
    client.post("/session/recording/start")
    response = client.post(
        "/session/recording/audio",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400


def test_recording_audio_when_not_recording(client, session):
    response = client.post(
        "/session/recording/audio",
        files={"file": ("segment.webm", b"hello", "audio/webm")},
    )
    assert response.status_code == 400
    assert response.json()["type"] == "InvalidRequestError"


def test_recording_unsupported(client, session, monkeypatch):
    monkeypatch.setattr(transcriber, "whisper_available", lambda: False)
    response = client.post("/session/recording/start")
    assert response.status_code == 501


def test_evaluate_parse_error_then_success(client, session, collaborators):
    evaluator = collaborators["evaluator"]
    good_raw = evaluator.raw
    evaluator.raw = '{"strengths": []}'

    response = client.post("/evaluate")
    assert response.status_code == 422
    assert response.json()["raw"] == '{"strengths": []}'

    evaluator.raw = good_raw
    response = client.post("/evaluate")
    assert response.status_code == 200
    body = response.json()
    assert body["rubric"]["communication"] == 5
    assert body["drills"][0]["minutes"] == 10

    status = client.get("/session/status").json()
    assert status["running"] is False
    assert status["transcript"][-1]["text"] == "Debrief ready. Review your scores and recommendations."


def test_evaluate_transport_failure(client, session, collaborators):
    collaborators["evaluator"].fail = True
    response = client.post("/evaluate")
    assert response.status_code == 502
    assert response.json()["type"] == "TransportError"


def test_tts_returns_wav(client, collaborators):
    response = client.post("/tts", json={"text": "hello"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/wav"
    assert response.content[:4] == b"RIFF"
    assert collaborators["synthesizer"].texts == ["hello"]


def test_no_audio_when_silent(client, session):
    assert client.get("/session/audio").status_code == 404


def test_mute_toggle(client, session):
    assert client.post("/session/mute", json={"muted": False}).json() == {"muted": False}
    assert client.get("/session/status").json()["muted"] is False


def test_end_session(client, session):
    body = client.post("/session/end").json()
    assert body["is_closed"] is True
    assert client.get("/session/status").status_code == 400
