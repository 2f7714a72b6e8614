"""
Data models for the transcription module.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(str, Enum):
    """Possible states of a transcription job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TranscriptionResult:
    """Recognized text plus the parameters that produced it.

    ``processing_time`` is in milliseconds.
    """

    text: str
    model: str
    language: str
    processing_time: int

    def to_document(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "model": self.model,
            "language": self.language,
            "processing_time": self.processing_time,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "TranscriptionResult":
        """Rebuild a result from a stored document; raises on missing fields."""
        return cls(
            text=str(doc["text"]),
            model=str(doc["model"]),
            language=str(doc["language"]),
            processing_time=int(doc["processing_time"]),
        )


@dataclass(frozen=True)
class CacheEntry:
    """A cached result keyed by the content fingerprint of the source audio."""

    fingerprint: str
    result: TranscriptionResult
    created_at: datetime

    def to_document(self) -> Dict[str, Any]:
        doc = {"fingerprint": self.fingerprint, "created_at": self.created_at}
        doc.update(self.result.to_document())
        return doc


@dataclass
class TranscriptionJob:
    """One queued or running recognizer invocation."""

    id: str
    source_path: str
    audio_path: str
    user_id: str
    language: str
    state: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "audio_path": self.audio_path,
            "user_id": self.user_id,
            "language": self.language,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
        }


# ── Static catalogs ──────────────────────────────────────────────────────

AVAILABLE_MODELS: List[Dict[str, str]] = [
    {"name": "tiny", "size": "39 MB", "speed": "fastest", "accuracy": "basic"},
    {"name": "base", "size": "74 MB", "speed": "fast", "accuracy": "good"},
    {"name": "small", "size": "244 MB", "speed": "medium", "accuracy": "better"},
    {"name": "medium", "size": "769 MB", "speed": "slow", "accuracy": "high"},
    {"name": "large", "size": "1550 MB", "speed": "slowest", "accuracy": "best"},
]

SUPPORTED_LANGUAGES: List[str] = [
    "en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh", "ar",
    "hi", "th", "vi", "tr", "pl", "nl", "sv", "da", "no", "fi",
]


def find_model(name: str) -> Optional[Dict[str, str]]:
    """Return the catalog entry for ``name``, if any."""
    for model in AVAILABLE_MODELS:
        if model["name"] == name:
            return model
    return None
