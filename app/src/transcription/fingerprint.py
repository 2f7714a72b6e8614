"""Content fingerprinting for cache keys."""

import hashlib

CHUNK_SIZE = 1024 * 1024


def fingerprint_file(path: str) -> str:
    """Return the SHA-256 hex digest of the file's raw bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
