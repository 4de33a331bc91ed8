"""Tests for shared constants values."""
from __future__ import annotations

import re

from src.shared.constants import (
    BASELINE_FORMAT_VERSION,
    ERROR_PATTERN_HASH_LENGTH,
    HASH_PREFIX_LENGTH,
    PREFERRED_PARAM_PATTERNS,
    SIZE_MEDIUM_MAX,
    SIZE_SMALL_MAX,
    SIZE_TINY_MAX,
)


class TestFormatVersion:
    def test_is_semver(self):
        assert re.fullmatch(r"\d+\.\d+\.\d+", BASELINE_FORMAT_VERSION)


class TestHashLengths:
    def test_baseline_hash_is_64_bits(self):
        assert HASH_PREFIX_LENGTH == 16

    def test_error_pattern_hash_shorter(self):
        assert ERROR_PATTERN_HASH_LENGTH < HASH_PREFIX_LENGTH


class TestThresholds:
    def test_size_thresholds_ascending(self):
        assert SIZE_TINY_MAX < SIZE_SMALL_MAX < SIZE_MEDIUM_MAX

    def test_param_patterns_compile(self):
        for pattern in PREFERRED_PARAM_PATTERNS:
            re.compile(pattern)
