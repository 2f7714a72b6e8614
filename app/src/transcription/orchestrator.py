"""
Per-request transcription pipeline.

    check cache -> preprocess -> admit -> recognize -> cache -> cleanup

The orchestrator is the only caller of the admission controller, the
cache and the preprocessor.  Slot release and removal of the
preprocessed intermediate happen in ``finally`` blocks, so every exit
path (success, recognizer failure, timeout, cancellation) runs them
exactly once.
"""

import asyncio
import dataclasses
import logging
import os
import time
from typing import Dict, List, Optional, Set

from starlette.concurrency import run_in_threadpool

from commons import generate_job_id
from configs.config import get_config
from src.database.cache_repository import ResultCache
from src.transcription.admission import AdmissionController
from src.transcription.exceptions import AudioFileNotFound
from src.transcription.fingerprint import fingerprint_file
from src.transcription.metrics import PerformanceMetrics
from src.transcription.models import JobStatus, TranscriptionJob, TranscriptionResult, find_model
from src.transcription.preprocessor import AudioPreprocessor
from src.transcription.recognizer import Recognizer

logger = logging.getLogger(__name__)

cfg = get_config()


class TranscriptionOrchestrator:
    """Sequences one transcription request through the shared collaborators."""

    def __init__(
        self,
        admission: AdmissionController,
        recognizer: Recognizer,
        preprocessor: AudioPreprocessor,
        cache: Optional[ResultCache] = None,
        model: str = "tiny",
        default_language: str = "en",
        metrics: Optional[PerformanceMetrics] = None,
    ) -> None:
        self.admission = admission
        self.recognizer = recognizer
        self.preprocessor = preprocessor
        self.cache = cache
        self.model = model
        self.default_language = default_language
        self.metrics = metrics or PerformanceMetrics()
        self._jobs: Dict[str, TranscriptionJob] = {}
        self._pending_writes: Set["asyncio.Task[None]"] = set()

    # ── Introspection ────────────────────────────────────────────────────

    def jobs(self) -> List[TranscriptionJob]:
        """Snapshot of the jobs currently queued or running."""
        return list(self._jobs.values())

    def queue_status(self) -> Dict[str, int]:
        return self.admission.snapshot()

    # ── Pipeline ─────────────────────────────────────────────────────────

    async def transcribe(
        self,
        audio_path: str,
        user_id: str = "anonymous",
        language: Optional[str] = None,
    ) -> TranscriptionResult:
        """Transcribe ``audio_path``, serving byte-identical repeats from cache."""
        language = language or self.default_language
        logger.info("Starting Whisper transcription for: %s", audio_path)

        if not os.path.isfile(audio_path):
            raise AudioFileNotFound(f"Audio file not found: {audio_path}")

        fingerprint = None
        if self.cache is not None:
            fingerprint = await run_in_threadpool(fingerprint_file, audio_path)
            cached = await self.cache.get(fingerprint)
            if cached is not None:
                logger.info("Cache hit for %s (%s)", audio_path, fingerprint)
                self.metrics.record_cache_hit()
                return cached
            logger.debug("Cache miss for %s (%s)", audio_path, fingerprint)

        size_mb = os.path.getsize(audio_path) / (1024 * 1024)
        logger.info("File size: %.2f MB", size_mb)

        started = time.monotonic()
        processed_path = await self.preprocessor.prepare(audio_path, user_id)
        preprocess_ms = int((time.monotonic() - started) * 1000)

        job = TranscriptionJob(
            id=generate_job_id(user_id),
            source_path=audio_path,
            audio_path=processed_path,
            user_id=user_id,
            language=language,
        )
        try:
            self._jobs[job.id] = job
            async with self.admission.slot(job.id):
                job.state = JobStatus.RUNNING
                logger.info("Job %s running (%s)", job.id, processed_path)
                result = await self.recognizer.recognize(processed_path, self.model, language)
            job.state = JobStatus.COMPLETED
        except BaseException:
            job.state = JobStatus.FAILED
            self.metrics.record_failure()
            logger.error("Job %s failed", job.id)
            raise
        finally:
            self._jobs.pop(job.id, None)
            if processed_path != audio_path:
                _remove_intermediate(processed_path)

        result = dataclasses.replace(
            result, processing_time=preprocess_ms + result.processing_time
        )
        self.metrics.record_success(result.processing_time)
        logger.info(
            "Transcription completed in %dms for %.2fMB file",
            result.processing_time, size_mb,
        )

        if fingerprint is not None:
            self._schedule_cache_write(fingerprint, result)
        return result

    # ── Background cache writes ──────────────────────────────────────────

    def _schedule_cache_write(self, fingerprint: str, result: TranscriptionResult) -> None:
        task = asyncio.ensure_future(self.cache.put(fingerprint, result))
        self._pending_writes.add(task)
        task.add_done_callback(self._on_cache_write_done)

    def _on_cache_write_done(self, task: "asyncio.Task[None]") -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background cache write failed: %s", exc)

    async def drain(self) -> None:
        """Wait for in-flight cache writes (used at shutdown and in tests)."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)


def _remove_intermediate(path: str) -> None:
    try:
        os.remove(path)
        logger.info("Cleaned up processed file: %s", path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error("Could not remove processed file %s: %s", path, exc)


# ── Process-wide instance ────────────────────────────────────────────────

_orchestrator: Optional[TranscriptionOrchestrator] = None


def build_orchestrator() -> TranscriptionOrchestrator:
    """Create an orchestrator wired from configuration."""
    if find_model(cfg.WHISPER_MODEL) is None:
        logger.warning("Whisper model %r is not in the model catalog", cfg.WHISPER_MODEL)
    return TranscriptionOrchestrator(
        admission=AdmissionController(
            max_concurrent=cfg.MAX_CONCURRENT_JOBS,
            max_queue_depth=cfg.MAX_QUEUE_DEPTH,
        ),
        recognizer=Recognizer(
            binary=cfg.WHISPER_BINARY,
            output_dir=cfg.WHISPER_OUTPUT_DIR,
            timeout=cfg.JOB_TIMEOUT_SECONDS,
        ),
        preprocessor=AudioPreprocessor(
            ffmpeg_binary=cfg.FFMPEG_BINARY,
            sample_rate=cfg.PREPROCESS_SAMPLE_RATE,
        ),
        cache=ResultCache() if cfg.CACHE_ENABLED else None,
        model=cfg.WHISPER_MODEL,
        default_language=cfg.WHISPER_LANGUAGE,
    )


def get_orchestrator() -> TranscriptionOrchestrator:
    """FastAPI dependency returning the shared orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
        logger.info(
            "Transcription orchestrator ready (model=%s, max concurrent=%d)",
            cfg.WHISPER_MODEL, cfg.MAX_CONCURRENT_JOBS,
        )
    return _orchestrator
