"""Tests for baseline format migrations."""
from __future__ import annotations

import pytest

from src.drift_engine.services.baseline_document import dump_baseline_document
from src.drift_engine.services.migrations import (
    MIGRATIONS,
    can_migrate,
    get_migration_info,
    get_migrations_to_apply,
    migrate_baseline,
    needs_migration,
)
from src.shared.constants import BASELINE_FORMAT_VERSION
from src.shared.errors import MigrationError
from src.shared.models.baseline import Baseline


class TestRegistry:
    def test_registered_versions(self):
        assert set(MIGRATIONS) == {"1.0.0", "2.0.0"}


class TestGetMigrationsToApply:
    def test_current_needs_nothing(self):
        assert get_migrations_to_apply(BASELINE_FORMAT_VERSION) == []

    def test_same_major_needs_nothing(self):
        assert get_migrations_to_apply("2.0.0", "2.3.0") == []

    def test_one_x_needs_layout_migration(self):
        assert get_migrations_to_apply("1.4.0") == ["2.0.0"]

    def test_pre_semver_needs_both(self):
        assert get_migrations_to_apply("0.9.0") == ["1.0.0", "2.0.0"]

    def test_can_migrate(self):
        assert can_migrate("1.0.0")
        assert not can_migrate(BASELINE_FORMAT_VERSION)
        assert not can_migrate("99.0.0")


class TestMigrateBaseline:
    def test_current_version_is_idempotent(self, sample_baseline):
        document = dump_baseline_document(sample_baseline)
        once = migrate_baseline(document)
        twice = migrate_baseline(once)
        assert once == document
        assert twice == once

    def test_downgrade_raises(self):
        with pytest.raises(MigrationError) as exc_info:
            migrate_baseline({"version": "99.0.0"})
        assert exc_info.value.from_version == "99.0.0"
        assert exc_info.value.to_version == BASELINE_FORMAT_VERSION

    def test_does_not_mutate_input(self, legacy_baseline_document):
        snapshot = dict(legacy_baseline_document)
        migrate_baseline(legacy_baseline_document)
        assert legacy_baseline_document == snapshot

    def test_legacy_layout_becomes_valid_baseline(self, legacy_baseline_document):
        migrated = migrate_baseline(legacy_baseline_document)
        baseline = Baseline.model_validate(migrated)

        assert baseline.version == BASELINE_FORMAT_VERSION
        assert baseline.metadata.server_command == "node server.js"
        assert baseline.metadata.server_name == "legacy-server"
        assert baseline.metadata.mode.value == "explore"
        tool = baseline.tools[0]
        assert tool.schema_hash == "aaaa1111bbbb2222"
        assert tool.security_notes == ["Query is logged"]
        assert tool.baseline_p50_ms == 12.5
        assert "queryText" in tool.input_schema["properties"]
        assert tool.input_schema["additionalProperties"] is False

    def test_legacy_assertions_become_profiles(self, legacy_baseline_document):
        baseline = Baseline.model_validate(migrate_baseline(legacy_baseline_document))
        profile = baseline.tool_profiles[0]
        assert profile.name == "search"
        assert profile.assertions[0].assertion == "Returns a list"
        assert profile.assertions[0].is_positive

    def test_integer_version_is_normalized(self, legacy_baseline_document):
        legacy_baseline_document["version"] = 1
        migrated = migrate_baseline(legacy_baseline_document)
        assert migrated["version"] == BASELINE_FORMAT_VERSION
        assert "metadata" in migrated


class TestMigrationInfo:
    def test_info_for_legacy_document(self, legacy_baseline_document):
        info = get_migration_info(legacy_baseline_document)
        assert info.current_version == "1.0.0"
        assert info.target_version == BASELINE_FORMAT_VERSION
        assert info.needs_migration
        assert info.migrations_to_apply == ["2.0.0"]
        assert info.can_migrate

    def test_needs_migration(self, legacy_baseline_document):
        assert needs_migration(legacy_baseline_document)
        assert not needs_migration({"version": BASELINE_FORMAT_VERSION})
