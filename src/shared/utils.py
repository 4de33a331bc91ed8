"""Shared utility functions."""
import hashlib
from datetime import datetime, timezone

from src.shared.constants import HASH_PREFIX_LENGTH


def now_utc() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def sha256_prefix(text: str, length: int = HASH_PREFIX_LENGTH) -> str:
    """Hex SHA-256 of *text*, truncated to *length* characters."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]
