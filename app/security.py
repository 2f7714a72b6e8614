"""
Security utilities for the FastAPI application.
Provides middlewares, validators, and helpers for hardening the server.
"""

import os
import uuid
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from commons import ApiError
from configs.config import get_config

logger = logging.getLogger(__name__)

cfg = get_config()

_DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


# --------------- Middlewares ---------------


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject standard security headers on every response."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
        if not request.url.path.startswith(_DOCS_PATHS):
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'"
            )
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains"
            )
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Request-ID to every request / response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# --------------- Validators ---------------


def validate_audio_upload(filename: Optional[str], content_type: Optional[str]) -> str:
    """Accept a file whose MIME type or extension is an allowed audio type.

    Returns the lower-cased extension (possibly empty), or raises 400.
    """
    if not filename:
        raise ApiError(400, "No audio file uploaded", "NO_FILE")
    logger.info("File upload attempt: %s, MIME type: %s", filename, content_type)

    ext = os.path.splitext(filename)[1].lower()
    if content_type in cfg.ALLOWED_MIMES or ext in cfg.ALLOWED_EXTENSIONS:
        return ext

    logger.warning(
        "File rejected: %s, MIME: %s, Extension: %s", filename, content_type, ext
    )
    raise ApiError(
        400,
        f"Only audio files are allowed! Received: {content_type} ({ext})",
        "INVALID_FILE_TYPE",
    )


# --------------- Error Helpers ---------------


def safe_error_response(exc: Exception, context: str = "operation") -> None:
    """
    Log the real exception but raise a sanitized error for the client.
    In development mode, the real error is included for debugging.
    """
    logger.error("Error in %s: %s", context, exc, exc_info=True)
    detail = f"[DEV] {context}: {exc}" if cfg.ENVIRONMENT == "development" else None
    raise ApiError(500, "Internal server error", "INTERNAL_ERROR", detail=detail)


# --------------- Admin Auth ---------------


def require_admin_key(request: Request) -> None:
    """
    Dependency that checks for a valid X-Admin-Key header.
    Raises 403 if missing or incorrect.
    """
    provided_key = request.headers.get("X-Admin-Key", "")
    if not provided_key or provided_key != cfg.ADMIN_API_KEY:
        logger.warning(
            "Unauthorized admin access attempt from %s",
            request.client.host if request.client else "unknown",
        )
        raise ApiError(403, "Forbidden: invalid admin key", "FORBIDDEN")
