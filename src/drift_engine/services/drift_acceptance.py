"""Record that a detected drift was intentional."""
from __future__ import annotations

import logging
from datetime import datetime

from src.drift_engine.services.baseline_hash import recalculate_baseline_hash
from src.shared.models.baseline import AcceptedDiff, Baseline, DriftAcceptance
from src.shared.models.drift import BehavioralDiff
from src.shared.utils import now_utc

logger = logging.getLogger(__name__)


def accept_drift(
    current: Baseline,
    diff: BehavioralDiff,
    accepted_by: str | None = None,
    reason: str | None = None,
    accepted_at: datetime | None = None,
) -> Baseline:
    """Stamp *current* with acceptance of *diff* and rehash it.

    Tool fingerprints and profiles are carried over unchanged; only the
    acceptance record and the hash differ from *current*.
    """
    acceptance = DriftAcceptance(
        accepted_at=accepted_at or now_utc(),
        accepted_by=accepted_by,
        reason=reason,
        accepted_diff=AcceptedDiff(
            tools_added=list(diff.tools_added),
            tools_removed=list(diff.tools_removed),
            tools_modified=[tool_diff.tool for tool_diff in diff.tools_modified],
            severity=diff.severity,
            breaking_count=diff.breaking_count,
            warning_count=diff.warning_count,
            info_count=diff.info_count,
        ),
    )
    accepted = recalculate_baseline_hash(current.model_copy(update={"acceptance": acceptance}))
    logger.info(
        "Accepted %s drift (%d breaking)%s",
        diff.severity.value,
        diff.breaking_count,
        f" by {accepted_by}" if accepted_by else "",
        extra={"baseline_hash": accepted.hash},
    )
    return accepted


def has_acceptance(baseline: Baseline) -> bool:
    return baseline.acceptance is not None


def clear_acceptance(baseline: Baseline) -> Baseline:
    """Drop the acceptance record and rehash."""
    return recalculate_baseline_hash(baseline.model_copy(update={"acceptance": None}))
