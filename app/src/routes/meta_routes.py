"""
Service information routes.

Endpoints:
    GET /api            — endpoint listing
    GET /api/health     — liveness check
    GET /api/models     — recognizer model catalog
    GET /api/languages  — supported language codes
    GET /api/queue      — admission queue snapshot (signed-in users)
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from configs.config import get_config
from src.auth.tokens import AuthenticatedUser, require_non_anonymous
from src.transcription.models import AVAILABLE_MODELS, SUPPORTED_LANGUAGES
from src.transcription.orchestrator import TranscriptionOrchestrator, get_orchestrator

cfg = get_config()

router = APIRouter(prefix="/api", tags=["meta"])


def _now() -> str:
    return datetime.utcnow().isoformat()


@router.get("")
def api_info() -> dict:
    return {
        "success": True,
        "data": {
            "service": "Speech-to-Text API",
            "version": cfg.SERVICE_VERSION,
            "endpoints": {
                "health": "GET /health - Service health check",
                "transcribe": "POST /transcribe - Upload audio file for transcription",
                "models": "GET /models - Get available Whisper models",
                "languages": "GET /languages - Get supported languages",
            },
            "authentication": "Bearer token required for transcription endpoints",
        },
    }


@router.get("/health")
def health() -> dict:
    return {
        "success": True,
        "data": {
            "status": "OK",
            "timestamp": _now(),
            "service": cfg.SERVICE_NAME,
            "version": cfg.SERVICE_VERSION,
        },
    }


@router.get("/models")
def list_models() -> dict:
    """Model catalog; the active model is fixed by configuration."""
    return {
        "success": True,
        "data": {
            "models": AVAILABLE_MODELS,
            "current": cfg.WHISPER_MODEL,
            "note": "Model is fixed by the service for optimal performance",
        },
    }


@router.get("/languages")
def list_languages() -> dict:
    return {
        "success": True,
        "data": {
            "languages": SUPPORTED_LANGUAGES,
            "default": cfg.WHISPER_LANGUAGE,
            "note": "Language is optional in transcription requests, "
                    f"defaults to '{cfg.WHISPER_LANGUAGE}'",
        },
    }


@router.get("/queue")
def queue_status(
    _: AuthenticatedUser = Depends(require_non_anonymous),
    orchestrator: TranscriptionOrchestrator = Depends(get_orchestrator),
) -> dict:
    return {
        "success": True,
        "data": {**orchestrator.queue_status(), "timestamp": _now()},
    }
