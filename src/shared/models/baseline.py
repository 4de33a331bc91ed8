"""Baseline, fingerprint, and response-shape models."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.shared.constants import BASELINE_FORMAT_VERSION
from src.shared.models.drift import BehaviorAspect, ChangeSeverity
from src.shared.models.tools import ToolAnnotations


class InferredSchema(BaseModel):
    """Structural (type-shape only) schema inferred from a response value."""
    type: str
    properties: dict[str, InferredSchema] | None = None
    items: InferredSchema | None = None
    required: list[str] | None = None
    nullable: bool | None = None

    model_config = {"from_attributes": True}


class MarkdownStructure(BaseModel):
    """Which markdown markers were found in a text response."""
    has_headers: bool = False
    has_tables: bool = False
    has_code_blocks: bool = False

    model_config = {"from_attributes": True}

    @property
    def has_markers(self) -> bool:
        return self.has_headers or self.has_tables or self.has_code_blocks


class ResponseSchema(BaseModel):
    """Classification of one tool response."""
    inferred_type: str = Field(..., pattern=r"^(json|markdown|text|binary)$")
    json_schema: InferredSchema | None = None
    markdown_structure: MarkdownStructure | None = None
    sample_fingerprints: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ResponseFingerprint(BaseModel):
    """Aggregated structural fingerprint of a tool's successful responses."""
    structure_hash: str
    content_type: str = Field(
        ..., pattern=r"^(text|object|array|primitive|empty|error|mixed|binary)$"
    )
    fields: list[str] | None = None
    array_item_structure: str | None = None
    size: str = Field(default="tiny", pattern=r"^(tiny|small|medium|large)$")
    is_empty: bool = True
    sample_count: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"from_attributes": True}


class ErrorPattern(BaseModel):
    """Normalized error message pattern observed for a tool."""
    category: str = Field(
        ..., pattern=r"^(validation|not_found|permission|timeout|internal|unknown)$"
    )
    pattern_hash: str
    example: str
    count: int = Field(default=1, ge=1)

    model_config = {"from_attributes": True}


class SchemaHistoryEntry(BaseModel):
    """One observed response schema."""
    hash: str
    schema_def: InferredSchema
    observed_at: datetime
    sample_count: int = Field(default=0, ge=0)

    model_config = {"from_attributes": True}


class ResponseSchemaEvolution(BaseModel):
    """Stability of a tool's response schema across samples."""
    current_hash: str
    history: list[SchemaHistoryEntry] = Field(default_factory=list)
    is_stable: bool = True
    stability_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    inconsistent_fields: list[str] = Field(default_factory=list)
    sample_count: int = Field(default=0, ge=0)

    model_config = {"from_attributes": True}


class BehavioralAssertion(BaseModel):
    """A single behavioral statement about a tool."""
    tool: str
    aspect: BehaviorAspect
    assertion: str
    evidence: str | None = None
    is_positive: bool = True

    model_config = {"from_attributes": True}


class ToolFingerprint(BaseModel):
    """Per-tool record captured during one test session."""
    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)
    annotations: ToolAnnotations | None = None
    schema_hash: str
    assertions: list[BehavioralAssertion] = Field(default_factory=list)
    security_notes: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)
    response_schema_evolution: ResponseSchemaEvolution | None = None
    last_tested_at: datetime | None = None
    input_schema_hash_at_test: str | None = None
    response_fingerprint: ResponseFingerprint | None = None
    inferred_output_schema: InferredSchema | None = None
    error_patterns: list[ErrorPattern] = Field(default_factory=list)
    baseline_p50_ms: float | None = Field(default=None, ge=0)
    baseline_p95_ms: float | None = Field(default=None, ge=0)
    baseline_p99_ms: float | None = Field(default=None, ge=0)
    baseline_success_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"from_attributes": True}


class ToolProfile(BaseModel):
    """Behavioral profile of a tool as stored in a baseline."""
    name: str
    description: str = ""
    schema_hash: str
    assertions: list[BehavioralAssertion] = Field(default_factory=list)
    security_notes: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)
    behavioral_notes: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class BaselineMode(str, Enum):
    """How the baseline was produced."""
    CHECK = "check"
    EXPLORE = "explore"


class BaselineMetadata(BaseModel):
    """Provenance of a baseline."""
    generated_at: datetime
    server_command: str
    server_name: str | None = None
    mode: BaselineMode = BaselineMode.CHECK
    duration_ms: int = Field(default=0, ge=0)
    personas: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class BaselineCapabilities(BaseModel):
    """Discovered capabilities captured by a baseline."""
    tools: list[ToolFingerprint] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class AcceptedDiff(BaseModel):
    """Snapshot of the diff a baseline acceptance refers to."""
    tools_added: list[str] = Field(default_factory=list)
    tools_removed: list[str] = Field(default_factory=list)
    tools_modified: list[str] = Field(default_factory=list)
    severity: ChangeSeverity = ChangeSeverity.NONE
    breaking_count: int = Field(default=0, ge=0)
    warning_count: int = Field(default=0, ge=0)
    info_count: int = Field(default=0, ge=0)

    model_config = {"from_attributes": True}


class DriftAcceptance(BaseModel):
    """Who accepted which drift, when, and why."""
    accepted_at: datetime
    accepted_by: str | None = None
    reason: str | None = None
    accepted_diff: AcceptedDiff

    model_config = {"from_attributes": True}


class Baseline(BaseModel):
    """Versioned, hashed snapshot of a server's tools and fingerprints."""
    version: str = Field(default=BASELINE_FORMAT_VERSION, pattern=r"^\d+\.\d+\.\d+$")
    metadata: BaselineMetadata
    capabilities: BaselineCapabilities = Field(default_factory=BaselineCapabilities)
    tool_profiles: list[ToolProfile] = Field(default_factory=list)
    summary: str = ""
    hash: str = ""
    acceptance: DriftAcceptance | None = None

    model_config = {"from_attributes": True}

    @property
    def tools(self) -> list[ToolFingerprint]:
        return self.capabilities.tools

    def tool_map(self) -> dict[str, ToolFingerprint]:
        return {tool.name: tool for tool in self.capabilities.tools}
