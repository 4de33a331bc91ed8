"""Classify tool responses and fingerprint their shape."""
from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import re
from typing import Any

from src.drift_engine.services.response_fingerprint import (
    compute_inferred_schema_hash,
    infer_schema_from_value,
)
from src.shared.models.baseline import MarkdownStructure, ResponseSchema
from src.shared.models.tools import BinaryContent, TextContent, ToolCallResult

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_TABLE_RE = re.compile(r"^\|.+\|\s*$", re.MULTILINE)
_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")


def infer_response_schema(response: ToolCallResult) -> ResponseSchema | None:
    """Classify *response* as json, markdown, text, or binary.

    Returns ``None`` when there is neither text nor a binary block.
    Binary responses carry no fingerprint. JSON responses are fingerprinted
    by their structural schema; markdown and text by the raw text.
    """
    text = extract_text_content(response)
    if not text:
        if any(not isinstance(block, TextContent) for block in response.content):
            return ResponseSchema(inferred_type="binary", sample_fingerprints=[])
        return None

    parsed, ok = _try_parse_json(text)
    if ok:
        json_schema = infer_schema_from_value(parsed)
        return ResponseSchema(
            inferred_type="json",
            json_schema=json_schema,
            sample_fingerprints=[compute_inferred_schema_hash(json_schema)],
        )

    structure = detect_markdown_structure(text)
    if structure.has_markers:
        return ResponseSchema(
            inferred_type="markdown",
            markdown_structure=structure,
            sample_fingerprints=[_hash_text(text)],
        )

    return ResponseSchema(
        inferred_type="text",
        sample_fingerprints=[_hash_text(text)],
    )


def extract_text_content(response: ToolCallResult) -> str | None:
    """Join the response's text blocks with newlines.

    When there are no text blocks, binary blocks with a textual or JSON
    mime type are decoded instead. Returns ``None`` if nothing is textual.
    """
    if not response.content:
        return None

    texts = [block.text for block in response.content if isinstance(block, TextContent)]
    if texts:
        return "\n".join(texts)

    decoded = [
        text
        for block in response.content
        if isinstance(block, BinaryContent)
        for text in [_decode_data_block(block.data, block.mime_type)]
        if text is not None
    ]
    if not decoded:
        return None
    return "\n".join(decoded)


def detect_markdown_structure(text: str) -> MarkdownStructure:
    return MarkdownStructure(
        has_headers=bool(_HEADER_RE.search(text)),
        has_tables=bool(_TABLE_RE.search(text)),
        has_code_blocks=bool(_CODE_BLOCK_RE.search(text)),
    )


def _try_parse_json(text: str) -> tuple[Any, bool]:
    try:
        return json.loads(text), True
    except (json.JSONDecodeError, ValueError, RecursionError):
        return None, False


def _hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _decode_data_block(data: str | None, mime_type: str | None) -> str | None:
    if not data:
        return None
    mime = (mime_type or "").lower()
    if "json" not in mime and not mime.startswith("text/"):
        return None
    try:
        raw = base64.b64decode(data)
    except (binascii.Error, ValueError) as exc:
        logger.debug("Undecodable %s data block: %s", mime, exc)
        return None
    return raw.decode("utf-8", errors="replace")
