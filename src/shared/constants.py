"""Shared constants used across the interview and drift engine packages."""
from __future__ import annotations

# Application version
VERSION: str = "2.0.0"

# Baseline document format version. Baselines sharing a major version are
# comparable; anything else must go through a registered migration.
BASELINE_FORMAT_VERSION: str = "2.0.0"

# Service names
DRIFT_ENGINE_SERVICE_NAME: str = "drift-engine"

# Hex characters kept from SHA-256 digests (64 bits)
HASH_PREFIX_LENGTH: int = 16
ERROR_PATTERN_HASH_LENGTH: int = 12

# Stateful testing
DEFAULT_MAX_STORED_VALUES: int = 50
PREFERRED_PARAM_PATTERNS: tuple[str, ...] = (
    r"_?id$",
    r"token",
    r"session",
    r"cursor",
    r"account",
    r"resource",
)

# JSONPath collection limits
JSONPATH_MAX_DEPTH: int = 4
JSONPATH_MAX_ARRAY_ITEMS: int = 3

# Schema inference
STRUCTURE_MAX_DEPTH: int = 10
STRUCTURE_ARRAY_SAMPLE: int = 3
SCHEMA_ARRAY_SAMPLE: int = 5
HIGH_CONFIDENCE_MIN_SAMPLES: int = 10

# Response size thresholds (characters of text content)
SIZE_TINY_MAX: int = 100
SIZE_SMALL_MAX: int = 1000
SIZE_MEDIUM_MAX: int = 10000

ERROR_EXAMPLE_MAX_LENGTH: int = 200
