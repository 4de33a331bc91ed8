"""Tests for the shared Pydantic data models."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.shared.config import DriftEngineConfig
from src.shared.models.baseline import (
    Baseline,
    BaselineMetadata,
    BaselineMode,
    ErrorPattern,
    MarkdownStructure,
    ResponseFingerprint,
    ResponseSchema,
    ToolFingerprint,
)
from src.shared.models.common import HealthStatus, ServiceSettings
from src.shared.models.drift import (
    BehavioralDiff,
    ChangeSeverity,
    CompareOptions,
    FormatVersion,
)
from src.shared.models.tools import (
    BinaryContent,
    DependencyEdge,
    TextContent,
    ToolCallResult,
)


class TestChangeSeverity:
    def test_ranks_ascend(self):
        ranks = [s.rank for s in (
            ChangeSeverity.NONE, ChangeSeverity.INFO, ChangeSeverity.WARNING, ChangeSeverity.BREAKING,
        )]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    def test_highest(self):
        assert ChangeSeverity.highest([ChangeSeverity.INFO, ChangeSeverity.BREAKING]) == ChangeSeverity.BREAKING

    def test_highest_of_empty_is_none(self):
        assert ChangeSeverity.highest([]) == ChangeSeverity.NONE


class TestToolCallResult:
    def test_content_discriminated_by_type(self):
        result = ToolCallResult.model_validate({
            "content": [
                {"type": "text", "text": "hi"},
                {"type": "binary", "data": "AAAA", "mime_type": "image/png"},
            ]
        })
        assert isinstance(result.content[0], TextContent)
        assert isinstance(result.content[1], BinaryContent)
        assert result.is_error is False

    def test_unknown_content_type_rejected(self):
        with pytest.raises(ValidationError):
            ToolCallResult.model_validate({"content": [{"type": "video", "data": "x"}]})


class TestDependencyEdge:
    def test_alias_and_field_names(self):
        by_alias = DependencyEdge.model_validate({"from": "a", "to": "b"})
        by_name = DependencyEdge(from_tool="a", to_tool="b")
        assert by_alias == by_name
        assert by_alias.model_dump(by_alias=True)["from"] == "a"

    def test_confidence_bounded(self):
        with pytest.raises(ValidationError):
            DependencyEdge(from_tool="a", to_tool="b", confidence=1.5)


class TestResponseModels:
    def test_markdown_markers(self):
        assert MarkdownStructure().has_markers is False
        assert MarkdownStructure(has_tables=True).has_markers is True

    def test_response_schema_type_pattern(self):
        with pytest.raises(ValidationError):
            ResponseSchema(inferred_type="xml")

    def test_fingerprint_content_type_pattern(self):
        with pytest.raises(ValidationError):
            ResponseFingerprint(structure_hash="x", content_type="table")

    def test_error_pattern_category(self):
        with pytest.raises(ValidationError):
            ErrorPattern(category="fatal", pattern_hash="x", example="boom")


class TestBaseline:
    def test_defaults(self, fixed_time):
        baseline = Baseline(metadata=BaselineMetadata(generated_at=fixed_time, server_command="srv"))
        assert baseline.version == "2.0.0"
        assert baseline.metadata.mode == BaselineMode.CHECK
        assert baseline.tools == []
        assert baseline.acceptance is None

    def test_version_must_be_semver(self, fixed_time):
        with pytest.raises(ValidationError):
            Baseline(
                version="2",
                metadata=BaselineMetadata(generated_at=fixed_time, server_command="srv"),
            )

    def test_tool_map(self, sample_baseline):
        assert set(sample_baseline.tool_map()) == {"get_user", "list_users"}

    def test_fingerprint_confidence_bounded(self):
        with pytest.raises(ValidationError):
            ToolFingerprint(name="t", schema_hash="h", confidence=2.0)

    def test_negative_latency_rejected(self):
        with pytest.raises(ValidationError):
            ToolFingerprint(name="t", schema_hash="h", baseline_p50_ms=-1)


class TestDriftModels:
    def test_diff_defaults(self):
        diff = BehavioralDiff()
        assert diff.severity == ChangeSeverity.NONE
        assert diff.breaking_count == 0

    def test_compare_options_defaults(self):
        options = CompareOptions()
        assert options.tools == []
        assert options.minimum_severity == ChangeSeverity.NONE
        assert options.ignore_version_mismatch is False

    def test_format_version_frozen(self):
        version = FormatVersion(major=2, raw="2.0.0")
        assert version.as_tuple() == (2, 0, 0)
        with pytest.raises(ValidationError):
            version.major = 3


class TestHealthStatus:
    def test_status_pattern(self):
        with pytest.raises(ValidationError):
            HealthStatus(
                status="sleepy",
                service_name="drift-engine",
                version="2.0.0",
                baseline_format_version="2.0.0",
                uptime_seconds=0,
            )

    def test_settings_read_from_config(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("IGNORE_VERSION_MISMATCH", "true")
        settings = ServiceSettings.model_validate(DriftEngineConfig())
        assert settings.ignore_version_mismatch is True
        assert settings.verify_baseline_integrity is True
