"""Registered migrations that bring older baseline documents up to date.

Migrations operate on raw JSON-ready dicts, before validation into
:class:`~src.shared.models.baseline.Baseline`. Each one is registered under
the format version it produces, and only migrations that cross a major
version boundary are ever applied.
"""
from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable

from src.drift_engine.services.version import (
    VersionInput,
    compare_versions,
    parse_version,
)
from src.shared.constants import BASELINE_FORMAT_VERSION
from src.shared.errors import MigrationError
from src.shared.models.drift import FormatVersion, MigrationInfo

logger = logging.getLogger(__name__)

MigrationFn = Callable[[dict[str, Any]], dict[str, Any]]

MIGRATIONS: dict[str, MigrationFn] = {}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

# 1.x recorded the run mode as full/structural
_LEGACY_MODES = {"full": "explore", "structural": "check"}

# Keys whose values are user data and must not be rewritten
_OPAQUE_KEYS = frozenset({"inputSchema", "input_schema"})


def register_migration(version: str) -> Callable[[MigrationFn], MigrationFn]:
    """Register the decorated function as the migration producing *version*."""
    def decorator(fn: MigrationFn) -> MigrationFn:
        MIGRATIONS[parse_version(version).raw] = fn
        return fn
    return decorator


def _migration_versions() -> list[FormatVersion]:
    return sorted((parse_version(v) for v in MIGRATIONS), key=FormatVersion.as_tuple)


# ======================================================================
# Planning
# ======================================================================

def get_migrations_to_apply(
    from_version: VersionInput,
    to_version: VersionInput = BASELINE_FORMAT_VERSION,
) -> list[str]:
    """Migration versions needed to move from *from_version* to *to_version*.

    Only migrations newer than the source, no newer than the target, and
    in a higher major version than the source are returned, in order.
    """
    source = parse_version(from_version)
    target = parse_version(to_version)

    plan: list[str] = []
    for migration in _migration_versions():
        if compare_versions(migration, source) <= 0:
            continue
        if compare_versions(migration, target) > 0:
            break
        if migration.major > source.major:
            plan.append(migration.raw)
    return plan


def can_migrate(
    from_version: VersionInput,
    to_version: VersionInput = BASELINE_FORMAT_VERSION,
) -> bool:
    """True if every major version between source and target has a migration."""
    source = parse_version(from_version)
    target = parse_version(to_version)
    if compare_versions(source, target) >= 0:
        return False

    covered = {parse_version(v).major for v in get_migrations_to_apply(source, target)}
    return all(major in covered for major in range(source.major + 1, target.major + 1))


def needs_migration(document: dict[str, Any]) -> bool:
    """True when *document* is older than the current format."""
    return compare_versions(
        parse_version(document.get("version")),
        parse_version(BASELINE_FORMAT_VERSION),
    ) < 0


def get_migration_info(document: dict[str, Any]) -> MigrationInfo:
    version = document.get("version")
    source = parse_version(version)
    target = parse_version(BASELINE_FORMAT_VERSION)
    return MigrationInfo(
        current_version=source.raw,
        target_version=target.raw,
        needs_migration=compare_versions(source, target) < 0,
        migrations_to_apply=get_migrations_to_apply(version),
        can_migrate=can_migrate(version),
    )


# ======================================================================
# Execution
# ======================================================================

def migrate_baseline(
    document: dict[str, Any],
    target_version: VersionInput = BASELINE_FORMAT_VERSION,
) -> dict[str, Any]:
    """Return a migrated copy of *document* stamped with *target_version*.

    A document already at the target version only has its version string
    normalized, so applying this twice is the same as applying it once.

    Raises:
        MigrationError: if the document is newer than the target version,
            or a major version in between has no registered migration.
    """
    source_raw = document.get("version")
    source = parse_version(source_raw)
    target = parse_version(target_version)
    order = compare_versions(source, target)

    if order == 0:
        if source_raw == target.raw:
            return document
        return {**document, "version": target.raw}

    if order > 0:
        raise MigrationError(
            detail=(
                f"Cannot downgrade baseline from v{source.raw} to v{target.raw}. "
                "Downgrading baselines is not supported."
            ),
            from_version=source.raw,
            to_version=target.raw,
        )

    if source.major != target.major and not can_migrate(source, target):
        raise MigrationError(
            detail=f"No migration path from v{source.raw} to v{target.raw}",
            from_version=source.raw,
            to_version=target.raw,
        )

    current = copy.deepcopy(document)
    for version in get_migrations_to_apply(source, target):
        logger.info("Applying baseline migration %s (from v%s)", version, source.raw)
        current = MIGRATIONS[version](current)

    current["version"] = target.raw
    return current


# ======================================================================
# Migrations
# ======================================================================

@register_migration("1.0.0")
def _legacy_integer_version(document: dict[str, Any]) -> dict[str, Any]:
    """Pre-semver documents stored the version as a bare integer."""
    version = document.get("version")
    if isinstance(version, str) and "." in version:
        return document
    return {**document, "version": "1.0.0"}


@register_migration("2.0.0")
def _nested_snake_case_layout(document: dict[str, Any]) -> dict[str, Any]:
    """Move the flat camelCase 1.x layout into metadata/capabilities sections."""
    if "metadata" in document and "capabilities" in document:
        return document

    server = document.get("server") or {}
    legacy_mode = document.get("mode") or "structural"
    tools = [_snake_keys(tool) for tool in document.get("tools") or []]
    assertions = [_snake_keys(a) for a in document.get("assertions") or []]

    profiles = document.get("toolProfiles")
    if profiles is None:
        profiles = [_profile_from_tool(tool, assertions) for tool in tools]
    else:
        profiles = [_snake_keys(profile) for profile in profiles]

    migrated: dict[str, Any] = {
        "version": document.get("version"),
        "metadata": {
            "generated_at": document.get("createdAt"),
            "server_command": document.get("serverCommand", ""),
            "server_name": document.get("serverName") or server.get("name"),
            "mode": _LEGACY_MODES.get(legacy_mode, legacy_mode),
            "duration_ms": document.get("durationMs", 0),
            "personas": document.get("personas") or [],
        },
        "capabilities": {"tools": tools},
        "tool_profiles": profiles,
        "summary": document.get("summary", ""),
        "hash": document.get("integrityHash", ""),
    }
    if document.get("acceptance"):
        migrated["acceptance"] = _snake_keys(document["acceptance"])

    dropped = sorted(set(document) - _LEGACY_KNOWN_KEYS)
    if dropped:
        logger.debug("Dropping legacy baseline fields: %s", ", ".join(dropped))
    return migrated


_LEGACY_KNOWN_KEYS = frozenset({
    "version", "createdAt", "serverCommand", "serverName", "server", "mode",
    "durationMs", "personas", "tools", "assertions", "toolProfiles", "summary",
    "integrityHash", "acceptance",
})


def _profile_from_tool(
    tool: dict[str, Any],
    assertions: list[dict[str, Any]],
) -> dict[str, Any]:
    name = tool.get("name", "")
    return {
        "name": name,
        "description": tool.get("description", ""),
        "schema_hash": tool.get("schema_hash", ""),
        "assertions": [a for a in assertions if a.get("tool") == name],
        "security_notes": list(tool.get("security_notes") or []),
        "limitations": list(tool.get("limitations") or []),
    }


def _snake_keys(value: Any) -> Any:
    """Recursively convert camelCase keys to snake_case.

    Values under input-schema keys are left verbatim, and the field names
    inside inferred-schema ``properties`` mappings are preserved.
    """
    if isinstance(value, list):
        return [_snake_keys(item) for item in value]
    if not isinstance(value, dict):
        return value

    result: dict[str, Any] = {}
    for key, child in value.items():
        new_key = _to_snake(key)
        if key in _OPAQUE_KEYS:
            result[new_key] = child
        elif key == "properties" and isinstance(child, dict):
            result[new_key] = {name: _snake_keys(prop) for name, prop in child.items()}
        elif key == "schema" and isinstance(child, dict):
            result["schema_def"] = _snake_keys(child)
        else:
            result[new_key] = _snake_keys(child)
    return result


def _to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()
