"""
Development / local environment configuration overrides.

Only values that DIFFER from production need to be declared here.
The base config.py merges these on top of the production defaults.
"""

import os

# FastAPI docs are enabled in development
DOCS_ENABLED = True

# Relaxed CORS for local development
CORS_ORIGINS = [
    origin
    for origin in (
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        os.getenv("FRONTEND_URL"),
        os.getenv("FRONTEND_URL2"),
    )
    if origin
]

# Trusted hosts include anything in development (TestClient uses "testserver")
ALLOWED_HOSTS = ["*"]

# Verbose by default locally; LOG_LEVEL still wins when set
LOG_LEVEL = (os.getenv("LOG_LEVEL") or "DEBUG").upper()
