"""
Recognizer subprocess invocation.

Runs the ``whisper`` CLI against a single audio file and turns its exit
status and ``<basename>.txt`` artifact into a TranscriptionResult.

The flag set is fixed so that identical input always yields identical
output; cached results rely on that.
"""

import asyncio
import logging
import os
import time
from typing import List, Optional

from src.transcription.exceptions import (
    RecognitionFailed,
    RecognitionLaunchFailed,
    RecognitionTimeout,
)
from src.transcription.models import TranscriptionResult

logger = logging.getLogger(__name__)

# Greedy single-beam decoding at temperature 0, no conditioning on prior text.
PERFORMANCE_FLAGS = [
    "--verbose", "False",
    "--fp16", "True",
    "--condition_on_previous_text", "False",
    "--compression_ratio_threshold", "2.4",
    "--no_speech_threshold", "0.6",
    "--temperature", "0.0",
    "--best_of", "1",
    "--beam_size", "1",
]


class Recognizer:
    """Launches the external recognizer and collects its text output."""

    def __init__(
        self,
        binary: str = "whisper",
        output_dir: str = "./whisper_output",
        timeout: Optional[float] = None,
    ) -> None:
        self.binary = binary
        self.output_dir = output_dir
        self.timeout = timeout or None
        os.makedirs(self.output_dir, exist_ok=True)

    def build_command(self, audio_path: str, model: str, language: str) -> List[str]:
        return [
            self.binary,
            audio_path,
            "--model", model,
            "--language", language,
            "--output_dir", self.output_dir,
            "--output_format", "txt",
            *PERFORMANCE_FLAGS,
        ]

    def artifact_path(self, audio_path: str) -> str:
        base_name = os.path.splitext(os.path.basename(audio_path))[0]
        return os.path.join(self.output_dir, f"{base_name}.txt")

    async def recognize(self, audio_path: str, model: str, language: str) -> TranscriptionResult:
        """Transcribe ``audio_path``; raises a RecognitionFailed subtype on failure."""
        cmd = self.build_command(audio_path, model, language)
        artifact = self.artifact_path(audio_path)
        logger.info("Running Whisper command: %s", " ".join(cmd))
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Failed to start Whisper process: %s", exc)
            raise RecognitionLaunchFailed(
                f"Failed to start Whisper: {exc}", diagnostics=str(exc)
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            await _terminate(process)
            _discard_artifact(artifact)
            logger.error(
                "Whisper process exceeded %.1fs for %s, killed", self.timeout, audio_path
            )
            raise RecognitionTimeout(
                f"Whisper process timed out after {self.timeout:g}s"
            )
        except asyncio.CancelledError:
            await _terminate(process)
            _discard_artifact(artifact)
            raise

        stderr_text = stderr.decode("utf-8", errors="replace")
        if stdout:
            logger.debug("Whisper stdout: %s", stdout.decode("utf-8", errors="replace"))

        if process.returncode != 0:
            logger.error("Whisper process failed with code: %s", process.returncode)
            logger.error("Whisper stderr: %s", stderr_text)
            _discard_artifact(artifact)
            raise RecognitionFailed(
                f"Whisper process failed: {stderr_text.strip()}", diagnostics=stderr_text
            )

        try:
            with open(artifact, "r", encoding="utf-8") as fh:
                text = fh.read().strip()
        except FileNotFoundError:
            logger.error("Whisper output file not found: %s", artifact)
            raise RecognitionFailed("Whisper output file not found", diagnostics=stderr_text)
        except (OSError, UnicodeError) as exc:
            logger.error("Could not read Whisper output %s: %s", artifact, exc)
            raise RecognitionFailed(
                "Whisper output file unreadable", diagnostics=str(exc)
            ) from exc
        finally:
            _discard_artifact(artifact)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("Transcription completed successfully in %dms", elapsed_ms)
        return TranscriptionResult(
            text=text,
            model=model,
            language=language,
            processing_time=elapsed_ms,
        )


async def _terminate(process: "asyncio.subprocess.Process") -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


def _discard_artifact(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove Whisper output %s: %s", path, exc)
