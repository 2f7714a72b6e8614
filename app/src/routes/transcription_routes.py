"""
Transcription API routes.

Endpoints:
    POST /api/transcribe  — upload audio and return its transcription
"""

import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from commons import ApiError, generate_upload_name, limiter
from configs.config import get_config
from security import safe_error_response, validate_audio_upload
from src.auth.tokens import AuthenticatedUser, get_current_user
from src.transcription.exceptions import TranscriptionError
from src.transcription.orchestrator import TranscriptionOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(prefix="/api", tags=["transcription"])

CHUNK_SIZE = 1024 * 1024


async def _save_upload(upload: UploadFile, destination: str) -> int:
    """Stream ``upload`` to disk, enforcing MAX_UPLOAD_SIZE. Returns bytes written."""
    os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
    total_bytes = 0
    with open(destination, "wb") as out:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            total_bytes += len(chunk)
            if total_bytes > cfg.MAX_UPLOAD_SIZE:
                raise ApiError(
                    400,
                    f"File too large. Maximum size is "
                    f"{cfg.MAX_UPLOAD_SIZE / (1024 * 1024):g}MB.",
                    "FILE_TOO_LARGE",
                )
            out.write(chunk)
    logger.debug("File saved to %s (%d bytes)", destination, total_bytes)
    return total_bytes


def _remove_upload(path: str) -> None:
    try:
        os.remove(path)
        logger.info("File cleaned up: %s", path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.error("Could not remove uploaded file %s: %s", path, exc)


@router.post("/transcribe")
@limiter.limit(cfg.RATE_LIMIT)
async def transcribe_endpoint(
    request: Request,
    audio: Optional[UploadFile] = File(default=None),
    language: Optional[str] = Form(default=None),
    current_user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Upload an audio file and transcribe it."""
    if audio is None:
        raise ApiError(400, "No audio file uploaded", "NO_FILE")

    extension = validate_audio_upload(audio.filename, audio.content_type)
    language_str = (
        language or request.query_params.get("language") or cfg.WHISPER_LANGUAGE
    )
    upload_path = os.path.join(cfg.UPLOAD_DIR, generate_upload_name(extension))

    logger.info(
        "Processing audio file: %s for user: %s",
        audio.filename, current_user.email or current_user.uid,
    )

    try:
        size = await _save_upload(audio, upload_path)
        result = await orchestrator.transcribe(upload_path, current_user.uid, language_str)
    except (ApiError, TranscriptionError):
        raise
    except Exception as exc:
        safe_error_response(exc, context="transcribe")
    finally:
        _remove_upload(upload_path)

    return {
        "success": True,
        "data": {
            "transcription": result.text,
            "model": result.model,
            "language": result.language,
            "filename": audio.filename,
            "size": size,
            "processingTime": result.processing_time,
            "timestamp": datetime.utcnow().isoformat(),
        },
    }
