import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from commons import ApiError, limiter
from configs.config import get_config
from logging_config import setup_logging
from security import RequestIdMiddleware, SecurityHeadersMiddleware
from src.database.connection import DatabaseManager
from src.routes import admin_routes, meta_routes, transcription_routes
from src.transcription.exceptions import RecognitionFailed, TranscriptionError
from src.transcription.orchestrator import get_orchestrator

# ── Logging ──────────────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

cfg = get_config()
DEVELOPMENT = cfg.ENVIRONMENT == "development"


def error_body(message: str, code: str, detail: str = None) -> dict:
    body = {"success": False, "error": message, "code": code}
    if detail and DEVELOPMENT:
        body["message"] = detail
    return body


# ── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(_app: FastAPI):
    for path in (cfg.UPLOAD_DIR, cfg.WHISPER_OUTPUT_DIR):
        os.makedirs(path, exist_ok=True)
    orchestrator = get_orchestrator()
    logger.info("🌍 Environment: %s", cfg.ENVIRONMENT)
    logger.info("🎤 Whisper model: %s", cfg.WHISPER_MODEL)
    logger.info("🗣️  Whisper language: %s", cfg.WHISPER_LANGUAGE)
    logger.info("🚦 Max concurrent jobs: %d", cfg.MAX_CONCURRENT_JOBS)
    logger.info(
        "🔒 Allowed CORS origins: %s",
        ", ".join(cfg.CORS_ORIGINS) if cfg.CORS_ORIGINS else "None configured",
    )
    yield
    await orchestrator.drain()
    DatabaseManager().close()


# ── App Factory ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Speech-to-Text API",
    version=cfg.SERVICE_VERSION,
    docs_url="/docs" if cfg.DOCS_ENABLED else None,
    redoc_url="/redoc" if cfg.DOCS_ENABLED else None,
    openapi_url="/openapi.json" if cfg.DOCS_ENABLED else None,
    lifespan=lifespan,
)
app.state.limiter = limiter

# ── Middleware Stack (order matters – outermost first) ───────────────────────

# 1. Request-ID tracking
app.add_middleware(RequestIdMiddleware)

# 2. Security response headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Trusted hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=cfg.ALLOWED_HOSTS)

# 4. CORS – explicit methods & headers instead of wildcards
app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=cfg.CORS_METHODS,
    allow_headers=cfg.CORS_HEADERS,
)


# ── Exception handlers ───────────────────────────────────────────────────────


@app.exception_handler(TranscriptionError)
async def _transcription_error_handler(_request: Request, exc: TranscriptionError):
    logger.error("Transcription error [%s]: %s", exc.code, exc.message)
    # Recognizer messages embed raw stderr; only development mode echoes them.
    if isinstance(exc, RecognitionFailed):
        message = "Failed to process audio file"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, exc.code, exc.message),
    )


@app.exception_handler(ApiError)
async def _api_error_handler(_request: Request, exc: ApiError):
    logger.warning("API error %s [%s]: %s", exc.status_code, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.detail),
    )


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded for %s: %s", request.client, exc.detail)
    return JSONResponse(
        status_code=429,
        content=error_body(
            "Too many requests from this IP, please try again later.",
            "RATE_LIMIT_EXCEEDED",
        ),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_request: Request, exc: RequestValidationError):
    logger.error("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content=error_body("Invalid request", "VALIDATION_ERROR", str(exc.errors())),
    )


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(_request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404, content=error_body("Endpoint not found", "NOT_FOUND")
        )
    logger.error("HTTP exception %s: %s", exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), "HTTP_ERROR"),
    )


@app.exception_handler(Exception)
async def _generic_error_handler(_request: Request, exc: Exception):
    logger.exception("Unhandled application error: %s", exc)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR", str(exc)),
    )


# ── Routers ──────────────────────────────────────────────────────────────────

app.include_router(meta_routes.router)
app.include_router(transcription_routes.router)
app.include_router(admin_routes.router)


@app.get("/")
def home() -> dict:
    return {
        "success": True,
        "data": {
            "service": "Speech-to-Text API",
            "version": cfg.SERVICE_VERSION,
            "status": "running",
            "documentation": "/api",
        },
    }


# ═══════════════════════════════════════════════════════════════════════════
#  ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    import argparse

    parser = argparse.ArgumentParser(description="Run the Speech-to-Text API")
    parser.add_argument("--host", default=cfg.HOST, help=f"Host to bind to (default: {cfg.HOST})")
    parser.add_argument("--port", type=int, default=cfg.PORT, help=f"Port to bind to (default: {cfg.PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload on code changes")

    args = parser.parse_args()

    logger.info("🚀 Server running on port %d", args.port)
    logger.info("📡 API endpoint: http://localhost:%d/api", args.port)
    logger.info("🏥 Health check: http://localhost:%d/api/health", args.port)

    # A single worker: admission state is per-process.
    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
        workers=1,
    )
