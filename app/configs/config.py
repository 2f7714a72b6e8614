"""
Centralized configuration loader.

Reads the ENVIRONMENT env-var and merges the correct environment module
(config_prod or config_local) into a single settings namespace.

Usage:
    from configs.config import get_config
    cfg = get_config()
    print(cfg.MAX_CONCURRENT_JOBS)
"""

import os
import importlib
import logging
from types import SimpleNamespace

logger = logging.getLogger(__name__)


def _env(key: str, default: str) -> str:
    # Empty strings (e.g. ``KEY=`` in a compose file) fall back to the default.
    return os.getenv(key) or default


def _env_flag(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if not value:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Environment detection ────────────────────────────────────────────────
ENVIRONMENT = _env("ENVIRONMENT", "production")

# ── Shared constants (environment-independent) ───────────────────────────

SERVICE_NAME = "speech-to-text-api"
SERVICE_VERSION = "1.0.0"

# Server
HOST = _env("HOST", "0.0.0.0")
PORT = int(_env("PORT", "5050"))

# Recognizer
WHISPER_BINARY = _env("WHISPER_BINARY", "whisper")
WHISPER_MODEL = _env("WHISPER_MODEL", "tiny")
WHISPER_LANGUAGE = _env("WHISPER_LANGUAGE", "en")
WHISPER_OUTPUT_DIR = _env("WHISPER_OUTPUT_DIR", "./whisper_output")

# Audio preprocessing
FFMPEG_BINARY = _env("FFMPEG_BINARY", "ffmpeg")
PREPROCESS_SAMPLE_RATE = 16000

# Admission control
MAX_CONCURRENT_JOBS = int(_env("MAX_CONCURRENT_JOBS", "6"))
MAX_QUEUE_DEPTH = int(_env("MAX_QUEUE_DEPTH", "0"))          # 0 = unbounded
JOB_TIMEOUT_SECONDS = float(_env("JOB_TIMEOUT_SECONDS", "0"))  # 0 = disabled

# File storage
UPLOAD_DIR = _env("UPLOAD_DIR", "./uploads")
MAX_UPLOAD_SIZE = int(_env("MAX_FILE_SIZE", str(10 * 1024 * 1024)))  # 10 MB

ALLOWED_EXTENSIONS = frozenset({
    ".wav", ".mp3", ".mp4", ".aac", ".ogg", ".webm", ".flac", ".m4a",
})
ALLOWED_MIMES = frozenset({
    "audio/wav",
    "audio/mp3",
    "audio/mpeg",
    "audio/mp4",
    "audio/aac",
    "audio/ogg",
    "audio/webm",
    "audio/flac",
    "application/octet-stream",
})

# Rate limiting
RATE_LIMIT = _env("RATE_LIMIT", "100/15minutes")
RATE_LIMIT_ENABLED = _env_flag("RATE_LIMIT_ENABLED", True)

# Security
JWT_SECRET_KEY = _env("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = _env("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE") or None
JWT_ISSUER = os.getenv("JWT_ISSUER") or None
ACCESS_TOKEN_EXPIRE_MINUTES = int(_env("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
ADMIN_API_KEY = _env("ADMIN_API_KEY", "change-me-in-production")

CORS_METHODS = ["GET", "POST", "PUT", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-Request-ID", "X-Admin-Key"]

# Database / result cache
MONGODB_URL = _env("MONGODB_URL", "mongodb://127.0.0.1:27017")
DATABASE_NAME = _env("DATABASE_NAME", "speech_to_text")
CACHE_COLLECTION = "transcription_cache"
CACHE_TTL_SECONDS = int(_env("CACHE_TTL_SECONDS", "0"))  # 0 = never expire
CACHE_ENABLED = _env_flag("CACHE_ENABLED", True)
MONGODB_TIMEOUT_MS = 5000

# Logging
LOG_DIR = _env("LOG_DIR", "logs")
LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
LOG_FILE_APP = "app.log"
LOG_FILE_ERRORS = "errors.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5


# ── Config loader ────────────────────────────────────────────────────────

_config_cache = None


def get_config() -> SimpleNamespace:
    """
    Return a merged configuration namespace.

    Environment-specific values from config_local or config_prod
    override the shared defaults defined above.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    # Start with all module-level constants
    base = {
        key: value
        for key, value in globals().items()
        if key.isupper() and not key.startswith("_")
    }

    # Overlay environment-specific settings
    env_module_name = (
        "configs.config_local" if ENVIRONMENT == "development"
        else "configs.config_prod"
    )
    try:
        env_module = importlib.import_module(env_module_name)
        for key in dir(env_module):
            if key.isupper():
                base[key] = getattr(env_module, key)
        logger.info("Loaded configuration from %s", env_module_name)
    except ImportError:
        logger.warning(
            "Environment config '%s' not found; using shared defaults.",
            env_module_name,
        )

    _config_cache = SimpleNamespace(**base)
    return _config_cache
