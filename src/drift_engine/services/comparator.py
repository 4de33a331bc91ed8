"""Behavioral drift detection between two baselines."""
from __future__ import annotations

import logging
from typing import Protocol

from src.drift_engine.services.version import (
    assert_version_compatibility,
    check_version_compatibility,
)
from src.shared.models.baseline import Baseline, ToolFingerprint
from src.shared.models.drift import (
    BehaviorAspect,
    BehaviorChange,
    BehavioralDiff,
    ChangeSeverity,
    CompareOptions,
    ToolDiff,
)
from src.shared.models.tools import ToolAnnotations

logger = logging.getLogger(__name__)


class SeverityPolicy(Protocol):
    """Decides how severe a single change on a modified tool is."""

    def classify(
        self,
        change: BehaviorChange,
        previous: ToolFingerprint,
        current: ToolFingerprint,
    ) -> ChangeSeverity:
        ...


class DefaultSeverityPolicy:
    """Severity rules used when the caller does not supply a policy.

    - schema hash changed: breaking
    - description changed: info
    - annotations changed: warning, or breaking if the tool became destructive
    - security note added: breaking; removed: warning
    - limitation added: warning; removed: info
    - response structure changed: warning
    """

    def classify(
        self,
        change: BehaviorChange,
        previous: ToolFingerprint,
        current: ToolFingerprint,
    ) -> ChangeSeverity:
        aspect = change.aspect
        added = bool(change.after) and not change.before

        if aspect == BehaviorAspect.SCHEMA:
            return ChangeSeverity.BREAKING
        if aspect == BehaviorAspect.DESCRIPTION:
            return ChangeSeverity.INFO
        if aspect == BehaviorAspect.ANNOTATIONS:
            if _is_destructive(current.annotations) and not _is_destructive(previous.annotations):
                return ChangeSeverity.BREAKING
            return ChangeSeverity.WARNING
        if aspect == BehaviorAspect.SECURITY:
            return ChangeSeverity.BREAKING if added else ChangeSeverity.WARNING
        if aspect == BehaviorAspect.ERROR_HANDLING:
            return ChangeSeverity.WARNING if added else ChangeSeverity.INFO
        if aspect == BehaviorAspect.RESPONSE_FORMAT:
            return ChangeSeverity.WARNING
        return ChangeSeverity.INFO


def _is_destructive(annotations: ToolAnnotations | None) -> bool:
    return bool(annotations and annotations.destructive_hint)


# ======================================================================
# Comparison
# ======================================================================

def compare_baselines(
    previous: Baseline,
    current: Baseline,
    options: CompareOptions | None = None,
    policy: SeverityPolicy | None = None,
) -> BehavioralDiff:
    """Diff *previous* against *current*.

    Removed tools are always breaking and added tools are informational.
    Severity of changes on tools present in both comes from *policy*.
    The overall severity is the maximum over every counted change.

    Raises:
        BaselineVersionError: if the format majors differ and
            ``options.ignore_version_mismatch`` is not set.
    """
    options = options or CompareOptions()
    policy = policy or DefaultSeverityPolicy()

    compatibility = check_version_compatibility(previous.version, current.version)
    if not compatibility.compatible:
        if not options.ignore_version_mismatch:
            assert_version_compatibility(previous.version, current.version)
        logger.warning("Comparing across format versions: %s", compatibility.warning)

    previous_tools = previous.tool_map()
    current_tools = current.tool_map()
    selected = set(options.tools)

    def included(name: str) -> bool:
        return not selected or name in selected

    tools_removed = sorted(n for n in previous_tools if n not in current_tools and included(n))
    tools_added = sorted(n for n in current_tools if n not in previous_tools and included(n))

    tools_modified: list[ToolDiff] = []
    behavior_changes: list[BehaviorChange] = []
    for name in sorted(set(previous_tools) & set(current_tools)):
        if not included(name):
            continue
        tool_diff = compare_tool(previous_tools[name], current_tools[name], options, policy)
        if tool_diff.changes:
            tools_modified.append(tool_diff)
            behavior_changes.extend(tool_diff.changes)

    breaking = len(tools_removed) + _count(behavior_changes, ChangeSeverity.BREAKING)
    warning = _count(behavior_changes, ChangeSeverity.WARNING)
    info = len(tools_added) + _count(behavior_changes, ChangeSeverity.INFO)
    severities = [change.severity for change in behavior_changes]
    if tools_removed:
        severities.append(ChangeSeverity.BREAKING)
    if tools_added:
        severities.append(ChangeSeverity.INFO)
    severity = ChangeSeverity.highest(severities)

    diff = BehavioralDiff(
        tools_added=tools_added,
        tools_removed=tools_removed,
        tools_modified=tools_modified,
        behavior_changes=behavior_changes,
        severity=severity,
        breaking_count=breaking,
        warning_count=warning,
        info_count=info,
        summary=generate_summary(tools_added, tools_removed, tools_modified, behavior_changes, severity),
        version_compatibility=compatibility,
    )
    logger.info(
        "Baseline comparison finished: severity=%s breaking=%d warning=%d info=%d",
        severity.value, breaking, warning, info,
        extra={"baseline_hash": current.hash},
    )
    return diff


def compare_tool(
    previous: ToolFingerprint,
    current: ToolFingerprint,
    options: CompareOptions | None = None,
    policy: SeverityPolicy | None = None,
) -> ToolDiff:
    """Detect and classify every change on a tool present in both baselines."""
    options = options or CompareOptions()
    policy = policy or DefaultSeverityPolicy()
    name = current.name
    raw: list[BehaviorChange] = []

    schema_changed = (
        previous.schema_hash != current.schema_hash and not options.ignore_schema_changes
    )
    if schema_changed:
        raw.append(BehaviorChange(
            tool=name,
            aspect=BehaviorAspect.SCHEMA,
            before=f"Schema hash: {previous.schema_hash}",
            after=f"Schema hash: {current.schema_hash}",
            description=f"Schema for {name} has changed",
        ))

    description_changed = (
        previous.description != current.description
        and not options.ignore_description_changes
    )
    if description_changed:
        raw.append(BehaviorChange(
            tool=name,
            aspect=BehaviorAspect.DESCRIPTION,
            before=previous.description,
            after=current.description,
            description=f"Description for {name} has changed",
        ))

    before_hints = _annotation_text(previous.annotations)
    after_hints = _annotation_text(current.annotations)
    annotations_changed = before_hints != after_hints
    if annotations_changed:
        raw.append(BehaviorChange(
            tool=name,
            aspect=BehaviorAspect.ANNOTATIONS,
            before=before_hints,
            after=after_hints,
            description=f"Annotations for {name} have changed",
        ))

    raw.extend(_note_changes(
        name, BehaviorAspect.SECURITY, previous.security_notes, current.security_notes,
        added="New security note", removed="Removed security note",
    ))
    raw.extend(_note_changes(
        name, BehaviorAspect.ERROR_HANDLING, previous.limitations, current.limitations,
        added="New limitation", removed="Resolved limitation",
    ))

    before_shape = previous.response_fingerprint.structure_hash if previous.response_fingerprint else None
    after_shape = current.response_fingerprint.structure_hash if current.response_fingerprint else None
    if before_shape and after_shape and before_shape != after_shape:
        raw.append(BehaviorChange(
            tool=name,
            aspect=BehaviorAspect.RESPONSE_FORMAT,
            before=f"Response structure: {before_shape}",
            after=f"Response structure: {after_shape}",
            description=f"Response structure for {name} has changed",
        ))

    changes: list[BehaviorChange] = []
    for change in raw:
        severity = policy.classify(change, previous, current)
        if severity == ChangeSeverity.NONE or severity.rank < options.minimum_severity.rank:
            continue
        changes.append(change.model_copy(update={"severity": severity}))

    return ToolDiff(
        tool=name,
        changes=changes,
        schema_changed=schema_changed,
        description_changed=description_changed,
        annotations_changed=annotations_changed,
    )


def _note_changes(
    tool: str,
    aspect: BehaviorAspect,
    before: list[str],
    after: list[str],
    added: str,
    removed: str,
) -> list[BehaviorChange]:
    previous_set, current_set = set(before), set(after)
    changes = [
        BehaviorChange(
            tool=tool, aspect=aspect, before="", after=note,
            description=f"{added} for {tool}: {note}",
        )
        for note in after
        if note not in previous_set
    ]
    changes.extend(
        BehaviorChange(
            tool=tool, aspect=aspect, before=note, after="",
            description=f"{removed} for {tool}: {note}",
        )
        for note in before
        if note not in current_set
    )
    return changes


def _annotation_text(annotations: ToolAnnotations | None) -> str:
    if annotations is None:
        return ""
    hints = []
    if annotations.read_only_hint is not None:
        hints.append(f"read_only={str(annotations.read_only_hint).lower()}")
    if annotations.destructive_hint is not None:
        hints.append(f"destructive={str(annotations.destructive_hint).lower()}")
    return ", ".join(hints)


def _count(changes: list[BehaviorChange], severity: ChangeSeverity) -> int:
    return sum(1 for change in changes if change.severity == severity)


def generate_summary(
    tools_added: list[str],
    tools_removed: list[str],
    tools_modified: list[ToolDiff],
    changes: list[BehaviorChange],
    severity: ChangeSeverity,
) -> str:
    """One-paragraph human summary of a diff."""
    if severity == ChangeSeverity.NONE:
        return "No behavioral changes detected."

    parts: list[str] = []
    if tools_removed:
        parts.append(f"{len(tools_removed)} tool(s) removed: {', '.join(tools_removed)}")
    if tools_added:
        parts.append(f"{len(tools_added)} tool(s) added: {', '.join(tools_added)}")
    if tools_modified:
        parts.append(f"{len(tools_modified)} tool(s) modified")

    breaking = _count(changes, ChangeSeverity.BREAKING)
    warning = _count(changes, ChangeSeverity.WARNING)
    if breaking:
        parts.append(f"{breaking} breaking change(s)")
    if warning:
        parts.append(f"{warning} warning(s)")
    return ". ".join(parts) + "."


# ======================================================================
# Queries
# ======================================================================

def has_breaking_changes(diff: BehavioralDiff) -> bool:
    return diff.severity == ChangeSeverity.BREAKING


def has_security_changes(diff: BehavioralDiff) -> bool:
    return any(change.aspect == BehaviorAspect.SECURITY for change in diff.behavior_changes)


def filter_by_minimum_severity(
    diff: BehavioralDiff,
    minimum: ChangeSeverity,
) -> list[BehaviorChange]:
    """Changes in *diff* at or above *minimum*."""
    return [c for c in diff.behavior_changes if c.severity.rank >= minimum.rank]
