"""Response fingerprinting for structural drift detection.

Builds deterministic fingerprints of tool responses: the shape of the data
(keys, types, nesting) rather than its values, an inferred output schema,
and normalized error patterns.
"""
from __future__ import annotations

import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.shared.constants import (
    ERROR_EXAMPLE_MAX_LENGTH,
    ERROR_PATTERN_HASH_LENGTH,
    HIGH_CONFIDENCE_MIN_SAMPLES,
    SCHEMA_ARRAY_SAMPLE,
    SIZE_MEDIUM_MAX,
    SIZE_SMALL_MAX,
    SIZE_TINY_MAX,
    STRUCTURE_ARRAY_SAMPLE,
    STRUCTURE_MAX_DEPTH,
)
from src.shared.models.baseline import (
    ErrorPattern,
    InferredSchema,
    ResponseFingerprint,
    ResponseSchemaEvolution,
    SchemaHistoryEntry,
)
from src.shared.models.tools import BinaryContent, TextContent, ToolCallResult
from src.shared.utils import sha256_prefix

logger = logging.getLogger(__name__)

_NO_CONTENT = object()

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_URL_RE = re.compile(r"^https?://")
_EMAIL_RE = re.compile(r"^[\w.-]+@[\w.-]+\.\w+$")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

# Ordered: the first category whose keywords appear wins
_ERROR_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("validation", ("invalid", "required", "missing", "must be", "expected")),
    ("not_found", ("not found", "does not exist", "no such", "404")),
    ("permission", ("permission", "denied", "unauthorized", "forbidden", "access")),
    ("timeout", ("timeout", "timed out")),
    ("internal", ("internal", "server error", "unexpected")),
)

_ERROR_NORMALIZERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.I), "<UUID>"),
    (re.compile(r"/[\w./\-]+"), "<PATH>"),
    (re.compile(r"\b\d+\b"), "<N>"),
    (re.compile(r'"[^"]*"'), '"<STR>"'),
    (re.compile(r"'[^']*'"), "'<STR>'"),
    (re.compile(r"\s+"), " "),
)


@dataclass
class ResponseSample:
    """One observed call outcome: a result, a transport error, or both."""
    response: ToolCallResult | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return bool(self.error) or (self.response is not None and self.response.is_error)


@dataclass
class ResponseAnalysis:
    """Aggregate view over several responses from one tool."""
    fingerprint: ResponseFingerprint
    inferred_schema: InferredSchema | None = None
    error_patterns: list[ErrorPattern] = field(default_factory=list)
    is_consistent: bool = True
    schemas: list[InferredSchema] = field(default_factory=list)


# ======================================================================
# Analysis
# ======================================================================

def analyze_responses(samples: list[ResponseSample]) -> ResponseAnalysis:
    """Fingerprint successful responses and collect error patterns."""
    successful = [s for s in samples if s.response is not None and not s.failed]
    failed = [s for s in samples if s.failed]

    structures: list[str] = []
    schemas: list[InferredSchema] = []
    for sample in successful:
        content = extract_response_content(sample.response)
        if content is _NO_CONTENT:
            continue
        structures.append(compute_structure_hash(content))
        schemas.append(infer_schema_from_value(content))

    logger.debug(
        "Analyzed %d response(s): %d failed, %d distinct structure(s)",
        len(samples),
        len(failed),
        len(set(structures)),
    )
    return ResponseAnalysis(
        fingerprint=_build_fingerprint(successful, structures),
        inferred_schema=merge_schemas(schemas) if schemas else None,
        error_patterns=analyze_error_patterns(failed),
        is_consistent=len(set(structures)) <= 1,
        schemas=schemas,
    )


def extract_response_content(response: ToolCallResult | None) -> Any:
    """Return the parsed content of *response*.

    Text blocks are parsed as JSON when possible; a single block yields its
    value and multiple blocks yield a list. Returns a private sentinel when
    the response has no content.
    """
    if response is None or not response.content:
        return _NO_CONTENT

    values = [_block_value(block) for block in response.content]
    if len(values) == 1:
        return values[0]
    return values


def _block_value(block: TextContent | BinaryContent) -> Any:
    if isinstance(block, TextContent):
        try:
            return json.loads(block.text)
        except (json.JSONDecodeError, ValueError, RecursionError):
            return block.text
    return block.model_dump(exclude={"data"}, exclude_none=True)


def _build_fingerprint(
    successful: list[ResponseSample],
    structures: list[str],
) -> ResponseFingerprint:
    if not successful or not structures:
        return ResponseFingerprint(
            structure_hash="empty",
            content_type="empty",
            size="tiny",
            is_empty=True,
            sample_count=0,
            confidence=0.0,
        )

    # Counter.most_common keeps first-seen order among ties
    dominant_hash, dominant_count = Counter(structures).most_common(1)[0]

    first = successful[0].response
    content = extract_response_content(first)

    return ResponseFingerprint(
        structure_hash=dominant_hash,
        content_type=_classify_content_type(content),
        fields=sorted(content) if isinstance(content, dict) else None,
        array_item_structure=(
            compute_structure_hash(content[0])
            if isinstance(content, list) and content
            else None
        ),
        size=_classify_size(first),
        is_empty=_is_empty(content),
        sample_count=len(successful),
        confidence=dominant_count / len(structures),
    )


def _classify_content_type(content: Any) -> str:
    if content is _NO_CONTENT or content is None:
        return "empty"
    if isinstance(content, str):
        return "text" if content.strip() else "empty"
    if isinstance(content, list):
        return "array"
    if isinstance(content, dict):
        return "binary" if content.get("type") == "binary" else "object"
    if isinstance(content, (bool, int, float)):
        return "primitive"
    return "mixed"


def _classify_size(response: ToolCallResult | None) -> str:
    if response is None:
        return "tiny"
    total = sum(len(b.text) for b in response.content if isinstance(b, TextContent))
    if total < SIZE_TINY_MAX:
        return "tiny"
    if total < SIZE_SMALL_MAX:
        return "small"
    if total < SIZE_MEDIUM_MAX:
        return "medium"
    return "large"


def _is_empty(content: Any) -> bool:
    if content is _NO_CONTENT or content is None:
        return True
    if isinstance(content, str):
        return not content.strip()
    if isinstance(content, (list, dict)):
        return len(content) == 0
    return False


# ======================================================================
# Structure hashing
# ======================================================================

def compute_structure_hash(value: Any) -> str:
    """Hash the shape of *value* (types, keys, nesting) but not its data."""
    structure = _extract_structure(value)
    return sha256_prefix(json.dumps(structure, sort_keys=True, separators=(",", ":")))


def _extract_structure(value: Any, depth: int = 0) -> dict[str, Any]:
    if depth > STRUCTURE_MAX_DEPTH:
        return {"type": "deep"}
    if value is None:
        return {"type": "null"}
    if isinstance(value, str):
        if not value:
            return {"type": "string", "subtype": "empty"}
        for subtype, pattern in (
            ("date", _DATE_RE),
            ("url", _URL_RE),
            ("email", _EMAIL_RE),
            ("uuid", _UUID_RE),
        ):
            if pattern.search(value):
                return {"type": "string", "subtype": subtype}
        return {"type": "string"}
    if isinstance(value, bool):
        return {"type": "boolean"}
    if isinstance(value, (int, float)):
        return {"type": _number_type(value)}
    if isinstance(value, list):
        if not value:
            return {"type": "array", "items": {"type": "unknown"}, "empty": True}
        items = [_extract_structure(v, depth + 1) for v in value[:STRUCTURE_ARRAY_SAMPLE]]
        homogeneous = all(item == items[0] for item in items)
        return {
            "type": "array",
            "items": items[0] if homogeneous else {"type": "mixed"},
            "homogeneous": homogeneous,
        }
    if isinstance(value, dict):
        if not value:
            return {"type": "object", "properties": {}, "empty": True}
        keys = sorted(value)
        return {
            "type": "object",
            "properties": {k: _extract_structure(value[k], depth + 1) for k in keys},
            "keys": len(keys),
        }
    return {"type": type(value).__name__}


def _number_type(value: int | float) -> str:
    if isinstance(value, int) or (isinstance(value, float) and value.is_integer()):
        return "integer"
    return "number"


# ======================================================================
# Schema inference
# ======================================================================

def infer_schema_from_value(value: Any, depth: int = 0) -> InferredSchema:
    """Infer a structural schema from a single decoded JSON value.

    Containers nested deeper than the structure depth limit keep their
    type but lose their children.
    """
    if value is None:
        return InferredSchema(type="null", nullable=True)
    if isinstance(value, str):
        return InferredSchema(type="string")
    if isinstance(value, bool):
        return InferredSchema(type="boolean")
    if isinstance(value, (int, float)):
        return InferredSchema(type=_number_type(value))
    if isinstance(value, list):
        if not value or depth >= STRUCTURE_MAX_DEPTH:
            return InferredSchema(type="array")
        item_schemas = [
            infer_schema_from_value(v, depth + 1) for v in value[:SCHEMA_ARRAY_SAMPLE]
        ]
        return InferredSchema(type="array", items=merge_schemas(item_schemas, depth + 1))
    if isinstance(value, dict):
        if depth >= STRUCTURE_MAX_DEPTH:
            return InferredSchema(type="object")
        properties = {
            key: infer_schema_from_value(val, depth + 1) for key, val in value.items()
        }
        required = sorted(key for key, val in value.items() if val is not None)
        return InferredSchema(
            type="object",
            properties=properties,
            required=required or None,
        )
    return InferredSchema(type="unknown")


def merge_schemas(schemas: list[InferredSchema], depth: int = 0) -> InferredSchema:
    """Merge several inferred schemas into one.

    Object properties are unioned; a field stays required only if every
    sample requires it. Mixing ``null`` with one other type marks the
    result nullable; any other type mix collapses to ``mixed``.
    """
    if not schemas:
        return InferredSchema(type="unknown")
    if len(schemas) == 1:
        return schemas[0]

    types = {s.type for s in schemas}
    if len(types) == 1:
        kind = schemas[0].type
        if depth >= STRUCTURE_MAX_DEPTH:
            return InferredSchema(type=kind)
        if kind == "object":
            return _merge_objects(schemas, depth)
        if kind == "array" and all(s.items is not None for s in schemas):
            return InferredSchema(
                type="array",
                items=merge_schemas([s.items for s in schemas], depth + 1),
            )
        return InferredSchema(type=kind)

    non_null = [s for s in schemas if s.type != "null"]
    if "null" in types and non_null:
        merged = merge_schemas(non_null, depth).model_copy(update={"nullable": True})
        return merged

    return InferredSchema(type="mixed")


def _merge_objects(schemas: list[InferredSchema], depth: int) -> InferredSchema:
    grouped: dict[str, list[InferredSchema]] = {}
    required_sets: list[set[str]] = []
    for schema in schemas:
        for key, prop in (schema.properties or {}).items():
            grouped.setdefault(key, []).append(prop)
        if schema.required:
            required_sets.append(set(schema.required))

    required: list[str] | None = None
    if required_sets:
        common = set.intersection(*required_sets)
        if common:
            required = sorted(common)

    return InferredSchema(
        type="object",
        properties={key: merge_schemas(props, depth + 1) for key, props in grouped.items()},
        required=required,
    )


def compute_inferred_schema_hash(schema: InferredSchema | None) -> str:
    """Stable hash of an inferred schema, independent of property order."""
    if schema is None:
        return "empty"
    normalized = _normalize_inferred_schema(schema)
    return sha256_prefix(json.dumps(normalized, sort_keys=True, separators=(",", ":")))


def _normalize_inferred_schema(schema: InferredSchema) -> dict[str, Any]:
    result: dict[str, Any] = {"type": schema.type}
    if schema.nullable:
        result["nullable"] = True
    if schema.properties is not None:
        result["properties"] = {
            key: _normalize_inferred_schema(schema.properties[key])
            for key in sorted(schema.properties)
        }
    if schema.items is not None:
        result["items"] = _normalize_inferred_schema(schema.items)
    if schema.required:
        result["required"] = sorted(schema.required)
    return result


# ======================================================================
# Error patterns
# ======================================================================

def analyze_error_patterns(samples: list[ResponseSample]) -> list[ErrorPattern]:
    """Group failed calls by category and normalized message."""
    patterns: dict[str, ErrorPattern] = {}
    for sample in samples:
        message = sample.error or _extract_error_message(sample.response)
        if not message:
            continue
        category = categorize_error(message)
        pattern_hash = hash_error_pattern(message)
        key = f"{category}:{pattern_hash}"
        existing = patterns.get(key)
        if existing is not None:
            existing.count += 1
            continue
        patterns[key] = ErrorPattern(
            category=category,
            pattern_hash=pattern_hash,
            example=message[:ERROR_EXAMPLE_MAX_LENGTH],
            count=1,
        )
    return list(patterns.values())


def _extract_error_message(response: ToolCallResult | None) -> str | None:
    if response is None or not response.is_error:
        return None
    for block in response.content:
        if isinstance(block, TextContent):
            return block.text
    return None


def categorize_error(message: str) -> str:
    """Bucket an error message by keyword."""
    lower = message.lower()
    for category, keywords in _ERROR_CATEGORIES:
        if any(keyword in lower for keyword in keywords):
            return category
    return "unknown"


def hash_error_pattern(message: str) -> str:
    """Hash *message* after masking ids, paths, numbers and quoted strings."""
    normalized = message
    for pattern, replacement in _ERROR_NORMALIZERS:
        normalized = pattern.sub(replacement, normalized)
    return sha256_prefix(normalized.strip().lower(), length=ERROR_PATTERN_HASH_LENGTH)


# ======================================================================
# Schema evolution
# ======================================================================

def build_schema_evolution(
    schemas: list[InferredSchema],
    observed_at: datetime,
) -> ResponseSchemaEvolution:
    """Summarize how stable a tool's response schema was across samples.

    A top-level field is inconsistent when it is missing from some samples
    or appears with more than one type. Confidence reaches its full value
    only once ``HIGH_CONFIDENCE_MIN_SAMPLES`` samples have been seen.
    """
    if not schemas:
        return ResponseSchemaEvolution(
            current_hash="empty",
            is_stable=True,
            stability_confidence=0.0,
            sample_count=0,
        )

    presence: Counter[str] = Counter()
    field_types: dict[str, set[str]] = {}
    for schema in schemas:
        for name, prop in (schema.properties or {}).items():
            presence[name] += 1
            field_types.setdefault(name, set()).add(prop.type)

    inconsistent = sorted(
        name
        for name, count in presence.items()
        if count < len(schemas) or len(field_types[name]) > 1
    )
    is_stable = not inconsistent

    confidence = 1.0 if is_stable else 1.0 - len(inconsistent) / max(1, len(presence))
    confidence *= min(1.0, len(schemas) / HIGH_CONFIDENCE_MIN_SAMPLES)

    current = schemas[-1]
    current_hash = compute_inferred_schema_hash(current)
    return ResponseSchemaEvolution(
        current_hash=current_hash,
        history=[
            SchemaHistoryEntry(
                hash=current_hash,
                schema_def=current,
                observed_at=observed_at,
                sample_count=len(schemas),
            )
        ],
        is_stable=is_stable,
        stability_confidence=round(confidence, 2),
        inconsistent_fields=inconsistent,
        sample_count=len(schemas),
    )
