"""Shared test fixtures for the toolprobe test suite."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from src.drift_engine.services.baseline_hash import recalculate_baseline_hash
from src.shared.models.baseline import (
    Baseline,
    BaselineCapabilities,
    BaselineMetadata,
    ResponseFingerprint,
    ToolFingerprint,
)
from src.shared.models.tools import (
    BinaryContent,
    InterviewQuestion,
    TextContent,
    ToolAnnotations,
    ToolCallResult,
    ToolSignature,
)

FIXED_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_time() -> datetime:
    """A fixed, timezone-aware timestamp for deterministic documents."""
    return FIXED_TIME


@pytest.fixture
def text_result() -> Callable[..., ToolCallResult]:
    """Build a ToolCallResult from text blocks."""

    def _make(*texts: str, is_error: bool = False) -> ToolCallResult:
        return ToolCallResult(
            content=[TextContent(text=t) for t in texts],
            is_error=is_error,
        )

    return _make


@pytest.fixture
def json_result() -> Callable[[Any], ToolCallResult]:
    """Build a ToolCallResult whose single text block is *value* as JSON."""

    def _make(value: Any) -> ToolCallResult:
        return ToolCallResult(content=[TextContent(text=json.dumps(value))])

    return _make


@pytest.fixture
def binary_result() -> Callable[..., ToolCallResult]:
    def _make(data: str = "iVBORw0KGgo=", mime_type: str = "image/png") -> ToolCallResult:
        return ToolCallResult(content=[BinaryContent(data=data, mime_type=mime_type)])

    return _make


@pytest.fixture
def sample_tools() -> list[ToolSignature]:
    """Three tools with differing annotations."""
    return [
        ToolSignature(
            name="list_users",
            description="List all users",
            input_schema={"type": "object", "properties": {"limit": {"type": "integer"}}},
            annotations=ToolAnnotations(read_only_hint=True),
        ),
        ToolSignature(
            name="get_user",
            description="Fetch one user",
            input_schema={
                "type": "object",
                "properties": {"user_id": {"type": "string"}},
                "required": ["user_id"],
            },
        ),
        ToolSignature(
            name="delete_user",
            description="Delete a user",
            input_schema={
                "type": "object",
                "properties": {"user_id": {"type": "string"}},
            },
            annotations=ToolAnnotations(destructive_hint=True),
        ),
    ]


@pytest.fixture
def sample_question() -> Callable[..., InterviewQuestion]:
    def _make(**args: Any) -> InterviewQuestion:
        return InterviewQuestion(description="probe", category="happy_path", args=args)

    return _make


@pytest.fixture
def make_fingerprint() -> Callable[..., ToolFingerprint]:
    """Build a ToolFingerprint with sensible defaults."""

    def _make(name: str, **overrides: Any) -> ToolFingerprint:
        data: dict[str, Any] = {
            "name": name,
            "description": f"{name} tool",
            "schema_hash": f"hash-{name}",
        }
        data.update(overrides)
        return ToolFingerprint(**data)

    return _make


@pytest.fixture
def make_baseline(fixed_time: datetime) -> Callable[..., Baseline]:
    """Build a hashed Baseline from fingerprints."""

    def _make(tools: list[ToolFingerprint], **overrides: Any) -> Baseline:
        data: dict[str, Any] = {
            "metadata": BaselineMetadata(
                generated_at=fixed_time,
                server_command="npx example-server",
                server_name="example",
            ),
            "capabilities": BaselineCapabilities(tools=tools),
            "summary": "test baseline",
        }
        data.update(overrides)
        return recalculate_baseline_hash(Baseline(**data))

    return _make


@pytest.fixture
def sample_baseline(make_baseline, make_fingerprint) -> Baseline:
    """A two-tool baseline with a response fingerprint on one tool."""
    return make_baseline([
        make_fingerprint(
            "get_user",
            security_notes=["Returns email addresses"],
            response_fingerprint=ResponseFingerprint(
                structure_hash="abc123",
                content_type="object",
                fields=["email", "id"],
                is_empty=False,
                sample_count=2,
                confidence=1.0,
            ),
        ),
        make_fingerprint("list_users", limitations=["Max 100 results"]),
    ])


@pytest.fixture
def legacy_baseline_document() -> dict[str, Any]:
    """A 1.x baseline document (flat camelCase layout)."""
    return {
        "version": "1.0.0",
        "createdAt": "2024-06-01T10:00:00Z",
        "mode": "full",
        "serverCommand": "node server.js",
        "server": {"name": "legacy-server", "version": "0.3.0", "protocolVersion": "2024-11-05"},
        "tools": [
            {
                "name": "search",
                "description": "Search documents",
                "schemaHash": "aaaa1111bbbb2222",
                "inputSchema": {
                    "type": "object",
                    "properties": {"queryText": {"type": "string"}},
                    "additionalProperties": False,
                },
                "assertions": [],
                "securityNotes": ["Query is logged"],
                "limitations": [],
                "baselineP50Ms": 12.5,
            }
        ],
        "assertions": [
            {
                "tool": "search",
                "aspect": "response_format",
                "assertion": "Returns a list",
                "isPositive": True,
            }
        ],
        "summary": "legacy",
        "integrityHash": "deadbeefdeadbeef",
    }
