"""
Content-addressed transcription cache backed by MongoDB.

One document per fingerprint.  Reads and writes are strictly best-effort:
a failing or unreachable database, or a malformed document, degrades to
"cache miss" / "write skipped" and is only logged.
"""

import logging
import time
from datetime import datetime
from typing import Optional

from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, PyMongoError
from starlette.concurrency import run_in_threadpool

from configs.config import get_config
from src.database.connection import get_db
from src.transcription.exceptions import CacheUnavailable
from src.transcription.models import CacheEntry, TranscriptionResult

logger = logging.getLogger(__name__)

cfg = get_config()

# Seconds to skip the database after a connection failure.
RETRY_AFTER_SECONDS = 30.0


class ResultCache:
    """Maps audio fingerprints to previously computed results."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self._collection = collection
        self._unavailable_until = 0.0

    def _get_collection(self) -> Collection:
        if time.monotonic() < self._unavailable_until:
            raise CacheUnavailable("cache database recently unreachable")
        if self._collection is None:
            try:
                self._collection = get_db()[cfg.CACHE_COLLECTION]
            except PyMongoError as exc:
                self._back_off()
                raise CacheUnavailable(str(exc)) from exc
        return self._collection

    def _back_off(self) -> None:
        self._unavailable_until = time.monotonic() + RETRY_AFTER_SECONDS

    # ── Read ─────────────────────────────────────────────────────────────

    def lookup(self, fingerprint: str) -> Optional[TranscriptionResult]:
        """Return the cached result for ``fingerprint`` or None."""
        try:
            doc = self._get_collection().find_one({"fingerprint": fingerprint})
        except (PyMongoError, CacheUnavailable) as exc:
            if isinstance(exc, ConnectionFailure):
                self._back_off()
            logger.warning("Cache read for %s failed, treating as miss: %s", fingerprint, exc)
            return None

        if doc is None:
            return None

        try:
            return TranscriptionResult.from_document(doc)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Corrupt cache entry for %s ignored: %s", fingerprint, exc)
            return None

    # ── Write ────────────────────────────────────────────────────────────

    def store(self, fingerprint: str, result: TranscriptionResult) -> bool:
        """Upsert the entry for ``fingerprint``; returns False when skipped."""
        entry = CacheEntry(
            fingerprint=fingerprint,
            result=result,
            created_at=datetime.utcnow(),
        )
        try:
            self._get_collection().replace_one(
                {"fingerprint": fingerprint},
                entry.to_document(),
                upsert=True,
            )
        except (PyMongoError, CacheUnavailable) as exc:
            if isinstance(exc, ConnectionFailure):
                self._back_off()
            logger.warning("Cache write for %s skipped: %s", fingerprint, exc)
            return False
        logger.debug("Cached result for %s", fingerprint)
        return True

    # ── Async facade ─────────────────────────────────────────────────────

    async def get(self, fingerprint: str) -> Optional[TranscriptionResult]:
        return await run_in_threadpool(self.lookup, fingerprint)

    async def put(self, fingerprint: str, result: TranscriptionResult) -> None:
        await run_in_threadpool(self.store, fingerprint, result)
