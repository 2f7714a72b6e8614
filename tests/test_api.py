import os

import pytest
from fastapi.testclient import TestClient

from main import app
from src.routes import transcription_routes
from src.transcription.orchestrator import get_orchestrator

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator(max_concurrent=2)


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(name="clip.mp3", content=b"ID3 audio", mime="audio/mpeg"):
    return {"audio": (name, content, mime)}


def _uploads_left():
    upload_dir = transcription_routes.cfg.UPLOAD_DIR
    return os.listdir(upload_dir) if os.path.isdir(upload_dir) else []


# ── Service information ──────────────────────────────────────────────────


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "OK"
    assert "timestamp" in body["data"]
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in response.headers


def test_root_and_info(client):
    assert client.get("/").json()["data"]["status"] == "running"
    assert "transcribe" in client.get("/api").json()["data"]["endpoints"]


def test_models_and_languages(client):
    models = client.get("/api/models").json()["data"]
    languages = client.get("/api/languages").json()["data"]

    assert models["current"] == "tiny"
    assert any(model["name"] == "tiny" for model in models["models"])
    assert "en" in languages["languages"]
    assert languages["default"] == "en"


def test_unknown_route_is_not_found(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Endpoint not found", "code": "NOT_FOUND"}


# ── Transcription ────────────────────────────────────────────────────────


def test_transcribe_success(client, auth_headers, recognizer):
    response = client.post("/api/transcribe", headers=auth_headers, files=_upload())

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["transcription"] == "hello world"
    assert data["model"] == "tiny"
    assert data["language"] == "en"
    assert data["filename"] == "clip.mp3"
    assert data["size"] == len(b"ID3 audio")
    assert data["processingTime"] >= 0
    assert len(recognizer.calls) == 1
    assert _uploads_left() == []


def test_language_from_form_or_query(client, auth_headers):
    form = client.post(
        "/api/transcribe", headers=auth_headers, files=_upload(), data={"language": "fr"}
    )
    query = client.post("/api/transcribe?language=de", headers=auth_headers, files=_upload())

    assert form.json()["data"]["language"] == "fr"
    assert query.json()["data"]["language"] == "de"


def test_transcribe_requires_token(client):
    response = client.post("/api/transcribe", files=_upload())

    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_transcribe_rejects_bad_token(client):
    response = client.post(
        "/api/transcribe", headers={"Authorization": "Bearer junk"}, files=_upload()
    )

    assert response.status_code == 403
    assert response.json()["code"] == "INVALID_TOKEN"


def test_transcribe_without_file(client, auth_headers):
    response = client.post("/api/transcribe", headers=auth_headers, data={"language": "en"})

    assert response.status_code == 400
    assert response.json()["code"] == "NO_FILE"


def test_transcribe_rejects_non_audio(client, auth_headers, recognizer):
    response = client.post(
        "/api/transcribe",
        headers=auth_headers,
        files=_upload("notes.txt", b"hello", "text/plain"),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_FILE_TYPE"
    assert recognizer.calls == []


def test_audio_extension_is_enough(client, auth_headers):
    response = client.post(
        "/api/transcribe",
        headers=auth_headers,
        files=_upload("voice.m4a", b"data", "application/octet-stream"),
    )

    assert response.status_code == 200


def test_transcribe_rejects_oversized_upload(client, auth_headers, monkeypatch, recognizer):
    monkeypatch.setattr(transcription_routes.cfg, "MAX_UPLOAD_SIZE", 8)

    response = client.post(
        "/api/transcribe", headers=auth_headers, files=_upload(content=b"x" * 64)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "FILE_TOO_LARGE"
    assert recognizer.calls == []
    assert _uploads_left() == []


def test_recognizer_failure_is_sanitized(client, auth_headers, recognizer):
    recognizer.fail_all = True

    response = client.post("/api/transcribe", headers=auth_headers, files=_upload())

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "TRANSCRIPTION_FAILED"
    assert body["error"] == "Failed to process audio file"
    assert _uploads_left() == []


# ── Queue and metrics ────────────────────────────────────────────────────


def test_queue_status_for_signed_in_user(client, auth_headers):
    response = client.get("/api/queue", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["active"] == 0
    assert data["queued"] == 0
    assert data["maxConcurrent"] == 2


def test_queue_status_refuses_anonymous(client, auth_token_factory):
    token = auth_token_factory(uid="guest", email=None, anonymous=True)

    response = client.get("/api/queue", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json()["code"] == "ANONYMOUS_NOT_ALLOWED"


def test_metrics_require_admin_key(client):
    response = client.get("/api/metrics", headers={"X-Admin-Key": "wrong"})

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_metrics_track_transcriptions_and_reset(client, auth_headers):
    client.post("/api/transcribe", headers=auth_headers, files=_upload())

    metrics = client.get("/api/metrics", headers=ADMIN_HEADERS).json()["data"]
    assert metrics["performance"]["totalTranscriptions"] == 1
    assert metrics["queue"]["maxConcurrent"] == 2
    assert metrics["jobs"] == []

    reset = client.post("/api/metrics/reset", headers=ADMIN_HEADERS)
    assert reset.status_code == 200

    metrics = client.get("/api/metrics", headers=ADMIN_HEADERS).json()["data"]
    assert metrics["performance"]["totalTranscriptions"] == 0
