"""
Best-effort audio normalization before recognition.

Converts the upload to 16 kHz mono 16-bit PCM WAV with ffmpeg.  Any
failure (non-zero exit, missing output, ffmpeg not installed) falls back
to the original file; preprocessing never fails a request.
"""

import asyncio
import logging
import os
import re
import time

from commons import random_token

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class AudioPreprocessor:
    """Wraps the ffmpeg CLI contract used to normalize recognizer input."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg", sample_rate: int = 16000) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.sample_rate = sample_rate

    def output_path_for(self, input_path: str, user_id: str = "anonymous") -> str:
        """Derive a collision-free ``*_processed.wav`` path next to the input."""
        stem, _ = os.path.splitext(input_path)
        owner = _UNSAFE_CHARS.sub("", user_id) or "anonymous"
        return f"{stem}_{owner}_{int(time.time() * 1000)}_{random_token()}_processed.wav"

    def build_command(self, input_path: str, output_path: str) -> list:
        return [
            self.ffmpeg_binary,
            "-hide_banner", "-loglevel", "error",
            "-i", input_path,
            "-ar", str(self.sample_rate),
            "-ac", "1",
            "-acodec", "pcm_s16le",
            "-y",
            output_path,
        ]

    async def prepare(self, input_path: str, user_id: str = "anonymous") -> str:
        """Return the path the recognizer should read.

        This is either a new intermediate file (owned by the caller, who
        must delete it) or ``input_path`` itself when conversion failed.
        """
        output_path = self.output_path_for(input_path, user_id)
        cmd = self.build_command(input_path, output_path)
        logger.info("Preprocessing audio: %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning("FFmpeg not available, using original file: %s", exc)
            return input_path

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            _remove_partial(output_path)
            raise

        if process.returncode == 0 and os.path.exists(output_path):
            logger.info("Audio preprocessing completed: %s", output_path)
            return output_path

        logger.warning(
            "FFmpeg preprocessing failed (exit %s), using original file: %s",
            process.returncode,
            stderr.decode("utf-8", errors="replace").strip(),
        )
        _remove_partial(output_path)
        return input_path


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
        logger.debug("Removed partially created file: %s", path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error("Could not remove partially created file %s: %s", path, exc)
