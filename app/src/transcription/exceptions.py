"""
Error taxonomy for the transcription pipeline.

Every exception that can reach the HTTP layer carries a stable ``code``
and the status it maps to.  Degraded preprocessing and cache failures are
not part of this hierarchy's public surface: they are logged and absorbed
where they happen.
"""

from typing import Optional


class TranscriptionError(Exception):
    """Base class for failures surfaced to the caller."""

    code = "TRANSCRIPTION_ERROR"
    status_code = 500

    def __init__(self, message: str, diagnostics: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.diagnostics = diagnostics


class AudioFileNotFound(TranscriptionError):
    code = "FILE_NOT_FOUND"
    status_code = 400


class RecognitionFailed(TranscriptionError):
    """The recognizer exited non-zero or produced no output artifact."""

    code = "TRANSCRIPTION_FAILED"
    status_code = 500


class RecognitionLaunchFailed(RecognitionFailed):
    """The recognizer binary is missing or could not be spawned."""

    code = "RECOGNIZER_UNAVAILABLE"
    status_code = 503


class RecognitionTimeout(RecognitionFailed):
    code = "TRANSCRIPTION_TIMEOUT"
    status_code = 504


class QueueFull(TranscriptionError):
    """The admission wait list is at its configured depth limit."""

    code = "QUEUE_FULL"
    status_code = 503


class CacheUnavailable(Exception):
    """Raised inside the cache repository; never propagated past it."""
