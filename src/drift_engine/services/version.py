"""Baseline format versions: parsing, ordering, and compatibility checks.

Format versions follow semver. Baselines with the same major version can
be compared directly; a different major version means the layout changed
and the older document must be migrated first.
"""
from __future__ import annotations

import logging
from typing import Union

from src.shared.constants import BASELINE_FORMAT_VERSION
from src.shared.errors import BaselineVersionError
from src.shared.models.drift import FormatVersion, VersionCompatibility

logger = logging.getLogger(__name__)

VersionInput = Union[str, int, FormatVersion, None]


def get_baseline_version() -> str:
    """The format version written into new baselines."""
    return BASELINE_FORMAT_VERSION


def parse_version(version: VersionInput) -> FormatVersion:
    """Parse a dotted version string, a legacy integer, or ``None``.

    ``None`` means the current format version. Missing or non-numeric
    minor and patch components default to 0. A value whose major
    component cannot be read at all falls back to the current version
    rather than being rejected.
    """
    if isinstance(version, FormatVersion):
        return version
    if version is None:
        return parse_version(BASELINE_FORMAT_VERSION)
    if isinstance(version, bool):
        logger.warning("Unparsable baseline version %r, assuming current", version)
        return parse_version(BASELINE_FORMAT_VERSION)
    if isinstance(version, int):
        if version < 0:
            logger.warning("Unparsable baseline version %r, assuming current", version)
            return parse_version(BASELINE_FORMAT_VERSION)
        return FormatVersion(major=version, minor=0, patch=0, raw=f"{version}.0.0")

    parts = str(version).strip().lstrip("vV").split(".")
    components = [_component(part) for part in parts[:3]]
    if components[0] is None:
        logger.warning("Unparsable baseline version %r, assuming current", version)
        return parse_version(BASELINE_FORMAT_VERSION)

    components += [0] * (3 - len(components))
    major, minor, patch = (c or 0 for c in components)
    return FormatVersion(
        major=major,
        minor=minor,
        patch=patch,
        raw=f"{major}.{minor}.{patch}",
    )


def _component(text: str) -> int | None:
    text = text.strip()
    if not text or any(ch not in "0123456789" for ch in text):
        return None
    return int(text)


def compare_versions(v1: FormatVersion, v2: FormatVersion) -> int:
    """-1, 0 or 1, ordering lexicographically over (major, minor, patch)."""
    a, b = v1.as_tuple(), v2.as_tuple()
    if a == b:
        return 0
    return -1 if a < b else 1


def are_versions_compatible(v1: FormatVersion, v2: FormatVersion) -> bool:
    return v1.major == v2.major


def get_compatibility_warning(v1: FormatVersion, v2: FormatVersion) -> str | None:
    if v1.major != v2.major:
        return (
            f"Baseline format versions are incompatible: v{v1.raw} vs v{v2.raw}. "
            "A major version mismatch may produce incorrect comparison results. "
            "Migrate or recreate the older baseline."
        )
    if v1.as_tuple() != v2.as_tuple():
        return (
            f"Baseline format versions differ: v{v1.raw} vs v{v2.raw}. "
            "Comparison is supported, but newer fields may be absent from the "
            "older baseline."
        )
    return None


def check_version_compatibility(
    source_version: VersionInput,
    target_version: VersionInput,
) -> VersionCompatibility:
    """Non-raising form of :func:`assert_version_compatibility`."""
    v1 = parse_version(source_version)
    v2 = parse_version(target_version)
    return VersionCompatibility(
        compatible=are_versions_compatible(v1, v2),
        warning=get_compatibility_warning(v1, v2),
        source_version=v1.raw,
        target_version=v2.raw,
    )


def assert_version_compatibility(
    source_version: VersionInput,
    target_version: VersionInput,
) -> None:
    """Raise :class:`BaselineVersionError` when the major versions differ."""
    v1 = parse_version(source_version)
    v2 = parse_version(target_version)
    if not are_versions_compatible(v1, v2):
        raise BaselineVersionError(
            detail=(
                f"Cannot compare baselines with incompatible format versions: "
                f"v{v1.raw} vs v{v2.raw}. Migrate the older baseline, or set "
                f"ignore_version_mismatch to force the comparison."
            ),
            source_version=v1.raw,
            target_version=v2.raw,
        )


def format_version(version: VersionInput) -> str:
    return f"v{parse_version(version).raw}"


def is_current_version(version: VersionInput) -> bool:
    return compare_versions(parse_version(version), parse_version(None)) == 0


def is_older_version(version: VersionInput) -> bool:
    return compare_versions(parse_version(version), parse_version(None)) < 0


def is_newer_version(version: VersionInput) -> bool:
    return compare_versions(parse_version(version), parse_version(None)) > 0


def requires_migration(version: VersionInput) -> bool:
    """True when *version* has a different major than the current format."""
    return parse_version(version).major != parse_version(None).major
