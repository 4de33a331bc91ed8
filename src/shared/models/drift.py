"""Drift comparison and format-version models."""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChangeSeverity(str, Enum):
    """Severity of a detected change, ordered from least to most severe."""
    NONE = "none"
    INFO = "info"
    WARNING = "warning"
    BREAKING = "breaking"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def highest(cls, severities: list[ChangeSeverity]) -> ChangeSeverity:
        """Return the most severe entry, or NONE for an empty list."""
        return max(severities, key=lambda s: s.rank, default=cls.NONE)


_SEVERITY_RANK: dict[ChangeSeverity, int] = {
    ChangeSeverity.NONE: 0,
    ChangeSeverity.INFO: 1,
    ChangeSeverity.WARNING: 2,
    ChangeSeverity.BREAKING: 3,
}


class BehaviorAspect(str, Enum):
    """Aspect of tool behavior that changed."""
    RESPONSE_FORMAT = "response_format"
    ERROR_HANDLING = "error_handling"
    SECURITY = "security"
    PERFORMANCE = "performance"
    SCHEMA = "schema"
    DESCRIPTION = "description"
    ANNOTATIONS = "annotations"


class BehaviorChange(BaseModel):
    """A single change detected on one tool."""
    tool: str
    aspect: BehaviorAspect
    before: str = ""
    after: str = ""
    severity: ChangeSeverity = ChangeSeverity.INFO
    description: str = ""

    model_config = {"from_attributes": True}


class ToolDiff(BaseModel):
    """All changes detected for a tool present in both baselines."""
    tool: str
    changes: list[BehaviorChange] = Field(default_factory=list)
    schema_changed: bool = False
    description_changed: bool = False
    annotations_changed: bool = False

    model_config = {"from_attributes": True}


class FormatVersion(BaseModel):
    """Parsed semantic version of a baseline document."""
    major: int = Field(..., ge=0)
    minor: int = Field(default=0, ge=0)
    patch: int = Field(default=0, ge=0)
    raw: str

    model_config = {"from_attributes": True, "frozen": True}

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)


class VersionCompatibility(BaseModel):
    """Non-throwing verdict on whether two baselines may be compared."""
    compatible: bool
    warning: str | None = None
    source_version: str
    target_version: str

    model_config = {"from_attributes": True}


class BehavioralDiff(BaseModel):
    """Complete diff between two baselines."""
    tools_added: list[str] = Field(default_factory=list)
    tools_removed: list[str] = Field(default_factory=list)
    tools_modified: list[ToolDiff] = Field(default_factory=list)
    behavior_changes: list[BehaviorChange] = Field(default_factory=list)
    severity: ChangeSeverity = ChangeSeverity.NONE
    breaking_count: int = Field(default=0, ge=0)
    warning_count: int = Field(default=0, ge=0)
    info_count: int = Field(default=0, ge=0)
    summary: str = ""
    version_compatibility: VersionCompatibility | None = None

    model_config = {"from_attributes": True}


class MigrationInfo(BaseModel):
    """What loading a raw baseline document would do to it."""
    current_version: str
    target_version: str
    needs_migration: bool
    migrations_to_apply: list[str] = Field(default_factory=list)
    can_migrate: bool

    model_config = {"from_attributes": True}


class CompareOptions(BaseModel):
    """Knobs for baseline comparison."""
    ignore_schema_changes: bool = False
    ignore_description_changes: bool = False
    ignore_version_mismatch: bool = False
    tools: list[str] = Field(default_factory=list)
    minimum_severity: ChangeSeverity = ChangeSeverity.NONE

    model_config = {"from_attributes": True}


class FormatVersionInfo(BaseModel):
    """Current baseline format and the registered migrations."""
    baseline_format_version: str
    migrations: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class BaselineHashResult(BaseModel):
    """Stored versus recomputed hash of a baseline document."""
    stored_hash: str
    computed_hash: str
    matches: bool

    model_config = {"from_attributes": True}


class MigrateResult(BaseModel):
    """A migrated baseline document and the plan that produced it."""
    info: MigrationInfo
    baseline: dict[str, Any]

    model_config = {"from_attributes": True}


class CompareRequest(BaseModel):
    """Two raw baseline documents to diff."""
    previous: dict[str, Any]
    current: dict[str, Any]
    options: CompareOptions | None = None

    model_config = {"from_attributes": True}


class AcceptRequest(BaseModel):
    """Accept *diff* on top of the raw *current* baseline document."""
    current: dict[str, Any]
    diff: BehavioralDiff
    accepted_by: str | None = None
    reason: str | None = None

    model_config = {"from_attributes": True}
