"""Tests for format version parsing and compatibility."""
from __future__ import annotations

import pytest

from src.drift_engine.services.version import (
    assert_version_compatibility,
    check_version_compatibility,
    compare_versions,
    format_version,
    get_baseline_version,
    is_current_version,
    is_newer_version,
    is_older_version,
    parse_version,
    requires_migration,
)
from src.shared.constants import BASELINE_FORMAT_VERSION
from src.shared.errors import BaselineVersionError


class TestParseVersion:
    def test_semver_string(self):
        v = parse_version("1.2.3")
        assert v.as_tuple() == (1, 2, 3)
        assert v.raw == "1.2.3"

    def test_legacy_integer(self):
        assert parse_version(1).raw == "1.0.0"

    def test_none_is_current(self):
        assert parse_version(None).raw == BASELINE_FORMAT_VERSION

    def test_partial_components_default_to_zero(self):
        assert parse_version("3").raw == "3.0.0"
        assert parse_version("3.1").raw == "3.1.0"
        assert parse_version("3.x.7").raw == "3.0.7"

    def test_unparsable_falls_back_to_current(self):
        assert parse_version("garbage").raw == BASELINE_FORMAT_VERSION
        assert parse_version("").raw == BASELINE_FORMAT_VERSION


class TestCompatibility:
    def test_same_major_is_compatible(self):
        assert check_version_compatibility("1.2.3", "1.9.0").compatible

    def test_different_major_is_incompatible(self):
        assert not check_version_compatibility("1.0.0", "2.0.0").compatible

    def test_symmetric_and_reflexive(self):
        assert check_version_compatibility("2.1.0", "2.1.0").compatible
        assert check_version_compatibility("2.0.0", "3.0.0").compatible == \
            check_version_compatibility("3.0.0", "2.0.0").compatible

    def test_minor_difference_warns(self):
        result = check_version_compatibility("1.2.3", "1.9.0")
        assert result.warning is not None
        assert "differ" in result.warning

    def test_identical_has_no_warning(self):
        assert check_version_compatibility("1.0.0", "1.0.0").warning is None

    def test_assert_raises_with_both_versions(self):
        with pytest.raises(BaselineVersionError) as exc_info:
            assert_version_compatibility("1.0.0", 2)
        assert exc_info.value.source_version == "1.0.0"
        assert exc_info.value.target_version == "2.0.0"
        assert exc_info.value.status_code == 409

    def test_assert_passes_for_same_major(self):
        assert_version_compatibility("2.0.0", "2.5.1")


class TestOrdering:
    def test_lexicographic(self):
        assert compare_versions(parse_version("1.10.0"), parse_version("1.9.9")) == 1
        assert compare_versions(parse_version("1.0.0"), parse_version("2.0.0")) == -1
        assert compare_versions(parse_version("1.0"), parse_version("1.0.0")) == 0

    def test_relative_to_current(self):
        assert is_current_version(get_baseline_version())
        assert is_older_version("1.0.0")
        assert is_newer_version("99.0.0")
        assert requires_migration("1.5.0")
        assert not requires_migration("2.9.0")

    def test_format_version(self):
        assert format_version(1) == "v1.0.0"
