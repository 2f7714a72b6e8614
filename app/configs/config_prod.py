"""
Production environment configuration.

These are the baseline defaults. Local overrides live in config_local.py.
"""

import os

# FastAPI docs are disabled in production
DOCS_ENABLED = False

CORS_ORIGINS = [
    origin
    for origin in (os.getenv("FRONTEND_URL"), os.getenv("FRONTEND_URL2"))
    if origin
]

ALLOWED_HOSTS = [
    host.strip()
    for host in (os.getenv("ALLOWED_HOSTS") or "*").split(",")
    if host.strip()
]
