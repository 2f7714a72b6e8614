"""
Shared utility functions and singletons used across multiple modules.
"""

import random
import string
import time
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from configs.config import get_config

cfg = get_config()

# ── Shared rate-limiter instance ─────────────────────────────────────────
# Created here (not in main.py) so that route modules can import it
# without a circular dependency.
limiter = Limiter(key_func=get_remote_address, enabled=cfg.RATE_LIMIT_ENABLED)


class ApiError(Exception):
    """HTTP-layer failure rendered as ``{success, error, code}``."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.detail = detail


def random_token(length: int = 6) -> str:
    """Return a short lowercase alphanumeric token."""
    chars = string.ascii_lowercase + string.digits
    return "".join(random.choices(chars, k=length))


def generate_job_id(user_id: str) -> str:
    """Generate a job id of the form ``<uid>_<millis>_<token>``."""
    return f"{user_id}_{int(time.time() * 1000)}_{random_token()}"


def generate_upload_name(extension: str) -> str:
    """Generate a unique on-disk name for an uploaded audio file."""
    return f"audio-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension}"
