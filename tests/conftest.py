"""Shared fixtures: isolated directories, fake collaborators, tokens."""

import asyncio
import os
import shutil
import stat
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

# Settings are read once at import time, so the environment has to be in
# place before any application module is imported.
_RUNTIME_DIR = tempfile.mkdtemp(prefix="stt-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_RUNTIME_DIR, "logs"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(_RUNTIME_DIR, "uploads"))
os.environ.setdefault("WHISPER_OUTPUT_DIR", os.path.join(_RUNTIME_DIR, "whisper_output"))
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("CACHE_ENABLED", "false")

from src.auth.tokens import create_access_token  # noqa: E402
from src.transcription.admission import AdmissionController  # noqa: E402
from src.transcription.exceptions import RecognitionFailed  # noqa: E402
from src.transcription.models import TranscriptionResult  # noqa: E402
from src.transcription.orchestrator import TranscriptionOrchestrator  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_RUNTIME_DIR, ignore_errors=True)


# ── Fake collaborators ───────────────────────────────────────────────────


class FakeRecognizer:
    """Stands in for the whisper subprocess and records concurrency."""

    def __init__(self, delay: float = 0.0, text: str = "hello world") -> None:
        self.delay = delay
        self.text = text
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0
        self.fail_all = False

    async def recognize(self, audio_path: str, model: str, language: str) -> TranscriptionResult:
        self.calls.append(audio_path)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.fail_all or "fail" in os.path.basename(audio_path):
                raise RecognitionFailed("Whisper process failed: boom", diagnostics="boom")
            return TranscriptionResult(
                text=self.text, model=model, language=language, processing_time=5
            )
        finally:
            self.active -= 1


class FakePreprocessor:
    """Copies the input to a ``*_processed.wav`` sibling, like ffmpeg would."""

    def __init__(self, passthrough: bool = False) -> None:
        self.passthrough = passthrough
        self.outputs: List[str] = []

    async def prepare(self, input_path: str, user_id: str = "anonymous") -> str:
        if self.passthrough:
            return input_path
        stem, _ = os.path.splitext(input_path)
        output = f"{stem}_{user_id}_processed.wav"
        shutil.copyfile(input_path, output)
        self.outputs.append(output)
        return output


class InMemoryCache:
    """Async cache with the same surface as ResultCache."""

    def __init__(self) -> None:
        self.entries: Dict[str, TranscriptionResult] = {}
        self.puts = 0

    async def get(self, fingerprint: str) -> Optional[TranscriptionResult]:
        return self.entries.get(fingerprint)

    async def put(self, fingerprint: str, result: TranscriptionResult) -> None:
        self.puts += 1
        self.entries[fingerprint] = result


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def preprocessor() -> FakePreprocessor:
    return FakePreprocessor()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def make_orchestrator(recognizer, preprocessor) -> Callable[..., TranscriptionOrchestrator]:
    def factory(max_concurrent: int = 2, cache=None, **kwargs) -> TranscriptionOrchestrator:
        return TranscriptionOrchestrator(
            admission=AdmissionController(max_concurrent=max_concurrent),
            recognizer=kwargs.pop("recognizer", recognizer),
            preprocessor=kwargs.pop("preprocessor", preprocessor),
            cache=cache,
            model="tiny",
            default_language="en",
            **kwargs,
        )

    return factory


@pytest.fixture
def audio_file(tmp_path: Path) -> Callable[..., str]:
    def factory(name: str = "sample.mp3", content: bytes = b"ID3 fake audio bytes") -> str:
        path = tmp_path / name
        path.write_bytes(content)
        return str(path)

    return factory


# ── Executable stand-ins for external binaries ───────────────────────────


@pytest.fixture
def make_executable(tmp_path: Path) -> Callable[[str, str], str]:
    """Write a Python script that can be spawned as a subprocess."""

    def factory(name: str, body: str) -> str:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\nimport os, sys, time\n{body}\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return factory


# ── Auth helpers ─────────────────────────────────────────────────────────


@pytest.fixture
def auth_token_factory() -> Callable[..., str]:
    def factory(
        uid: str = "user-123",
        email: Optional[str] = "user@example.com",
        anonymous: bool = False,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        claims = {"sub": uid}
        if email:
            claims["email"] = email
        if anonymous:
            claims["firebase"] = {"sign_in_provider": "anonymous"}
        return create_access_token(claims, expires_delta=expires_delta)

    return factory


@pytest.fixture
def auth_headers(auth_token_factory) -> Dict[str, str]:
    return {"Authorization": f"Bearer {auth_token_factory()}"}
