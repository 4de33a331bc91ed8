"""Canonicalization and content hashing for baselines."""
from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel

from src.shared.models.baseline import Baseline
from src.shared.utils import sha256_prefix

logger = logging.getLogger(__name__)

_EXCLUDED_FIELDS = frozenset({"hash"})


def canonicalize(value: Any) -> Any:
    """Reduce *value* to plain JSON types with every mapping key-sorted.

    Pydantic models are dumped in JSON mode first, so a model and its
    serialized dict canonicalize identically. Datetimes become ISO-8601
    strings (``Z`` for UTC), enums their values, and tuples or sets lists.
    """
    if isinstance(value, BaseModel):
        return canonicalize(value.model_dump(mode="json", exclude_none=True))
    if isinstance(value, datetime):
        return _format_datetime(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return canonicalize(value.value)
    if isinstance(value, dict):
        return {str(key): canonicalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(item) for item in value]
        return sorted(items, key=_dumps)
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    return value


def _format_datetime(value: datetime) -> str:
    text = value.isoformat()
    if value.utcoffset() == timedelta(0) and text.endswith("+00:00"):
        return text[: -len("+00:00")] + "Z"
    return text


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def calculate_baseline_hash(baseline: Baseline | dict[str, Any]) -> str:
    """Content hash of *baseline*, ignoring its own ``hash`` field."""
    content = canonicalize(baseline)
    for name in _EXCLUDED_FIELDS:
        content.pop(name, None)
    return sha256_prefix(_dumps(content))


def verify_baseline_hash(baseline: Baseline) -> bool:
    """True when the stored hash matches the content."""
    expected = calculate_baseline_hash(baseline)
    if baseline.hash != expected:
        logger.warning(
            "Baseline hash mismatch: stored=%s computed=%s",
            baseline.hash or "<none>",
            expected,
            extra={"baseline_hash": baseline.hash},
        )
        return False
    return True


def recalculate_baseline_hash(baseline: Baseline) -> Baseline:
    """Return a copy of *baseline* carrying a freshly computed hash."""
    return baseline.model_copy(update={"hash": calculate_baseline_hash(baseline)})


def compute_schema_hash(input_schema: dict[str, Any] | None) -> str:
    """Hash a tool's input schema; ``"empty"`` when it has none."""
    if not input_schema:
        return "empty"
    return sha256_prefix(_dumps(canonicalize(input_schema)))
