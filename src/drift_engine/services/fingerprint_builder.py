"""Assemble tool fingerprints, tool profiles, and baselines from a session."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.drift_engine.services.baseline_hash import (
    compute_schema_hash,
    recalculate_baseline_hash,
)
from src.drift_engine.services.response_fingerprint import (
    ResponseSample,
    analyze_responses,
    build_schema_evolution,
)
from src.shared.constants import BASELINE_FORMAT_VERSION, HIGH_CONFIDENCE_MIN_SAMPLES
from src.shared.models.baseline import (
    Baseline,
    BaselineCapabilities,
    BaselineMetadata,
    BaselineMode,
    BehavioralAssertion,
    ToolFingerprint,
    ToolProfile,
)
from src.shared.models.drift import BehaviorAspect
from src.shared.models.tools import ToolCallResult, ToolSignature

logger = logging.getLogger(__name__)

_NEGATIVE_SECURITY_MARKERS = ("risk", "vulnerab", "dangerous")


@dataclass
class ToolInteraction:
    """One call made against a tool during a session."""
    args: dict[str, Any] = field(default_factory=dict)
    response: ToolCallResult | None = None
    error: str | None = None
    duration_ms: float | None = None
    mocked: bool = False

    @property
    def succeeded(self) -> bool:
        if self.error:
            return False
        return self.response is not None and not self.response.is_error


def build_tool_fingerprint(
    tool: ToolSignature,
    interactions: list[ToolInteraction],
    tested_at: datetime,
    security_notes: list[str] | None = None,
    limitations: list[str] | None = None,
    assertions: list[BehavioralAssertion] | None = None,
) -> ToolFingerprint:
    """Build the per-tool record for one session.

    Mocked interactions never reach the response or latency analysis.
    """
    real = [i for i in interactions if not i.mocked]
    analysis = analyze_responses(
        [ResponseSample(response=i.response, error=i.error) for i in real]
    )
    evolution = build_schema_evolution(analysis.schemas, observed_at=tested_at)

    durations = sorted(
        i.duration_ms for i in real if i.succeeded and i.duration_ms is not None
    )
    schema_hash = compute_schema_hash(tool.input_schema)
    success_rate = (
        sum(1 for i in real if i.succeeded) / len(real) if real else None
    )

    fingerprint = ToolFingerprint(
        name=tool.name,
        description=tool.description,
        input_schema=tool.input_schema or {},
        annotations=tool.annotations,
        schema_hash=schema_hash,
        assertions=list(assertions or []),
        security_notes=list(security_notes or []),
        limitations=list(limitations or []),
        response_schema_evolution=evolution if analysis.schemas else None,
        last_tested_at=tested_at,
        input_schema_hash_at_test=schema_hash,
        response_fingerprint=analysis.fingerprint if real else None,
        inferred_output_schema=analysis.inferred_schema,
        error_patterns=analysis.error_patterns,
        baseline_p50_ms=calculate_percentile(durations, 50),
        baseline_p95_ms=calculate_percentile(durations, 95),
        baseline_p99_ms=calculate_percentile(durations, 99),
        baseline_success_rate=success_rate,
        confidence=_fingerprint_confidence(
            analysis.fingerprint.sample_count,
            analysis.fingerprint.confidence,
        ),
    )
    logger.debug(
        "Built fingerprint for %s from %d interaction(s) (%d mocked)",
        tool.name,
        len(interactions),
        len(interactions) - len(real),
        extra={"tool": tool.name},
    )
    return fingerprint


def calculate_percentile(sorted_values: list[float], percentile: float) -> float | None:
    """Linearly interpolated percentile of an already-sorted list."""
    if not sorted_values:
        return None
    if len(sorted_values) == 1:
        return sorted_values[0]

    index = (percentile / 100) * (len(sorted_values) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return sorted_values[lower]
    fraction = index - lower
    return sorted_values[lower] + fraction * (sorted_values[upper] - sorted_values[lower])


def _fingerprint_confidence(sample_count: int, consistency: float) -> float:
    if sample_count == 0:
        return 0.0
    factor = min(1.0, sample_count / HIGH_CONFIDENCE_MIN_SAMPLES)
    return round(consistency * factor, 2)


def build_tool_profile(
    fingerprint: ToolFingerprint,
    behavioral_notes: list[str] | None = None,
) -> ToolProfile:
    """Derive the stored behavioral profile for *fingerprint*.

    Behavioral notes become positive response-format assertions,
    limitations become negative error-handling assertions, and security
    notes become security assertions that are negative when they describe
    a risk.
    """
    notes = list(behavioral_notes or [])
    assertions = list(fingerprint.assertions)

    for note in notes:
        assertions.append(
            BehavioralAssertion(
                tool=fingerprint.name,
                aspect=BehaviorAspect.RESPONSE_FORMAT,
                assertion=note,
                is_positive=True,
            )
        )
    for limitation in fingerprint.limitations:
        assertions.append(
            BehavioralAssertion(
                tool=fingerprint.name,
                aspect=BehaviorAspect.ERROR_HANDLING,
                assertion=limitation,
                is_positive=False,
            )
        )
    for note in fingerprint.security_notes:
        lower = note.lower()
        assertions.append(
            BehavioralAssertion(
                tool=fingerprint.name,
                aspect=BehaviorAspect.SECURITY,
                assertion=note,
                is_positive=not any(m in lower for m in _NEGATIVE_SECURITY_MARKERS),
            )
        )

    return ToolProfile(
        name=fingerprint.name,
        description=fingerprint.description,
        schema_hash=fingerprint.schema_hash,
        assertions=assertions,
        security_notes=list(fingerprint.security_notes),
        limitations=list(fingerprint.limitations),
        behavioral_notes=notes,
    )


def create_baseline(
    fingerprints: list[ToolFingerprint],
    server_command: str,
    generated_at: datetime,
    server_name: str | None = None,
    mode: BaselineMode = BaselineMode.CHECK,
    duration_ms: int = 0,
    personas: list[str] | None = None,
    behavioral_notes: dict[str, list[str]] | None = None,
    summary: str | None = None,
) -> Baseline:
    """Assemble a hashed baseline at the current format version.

    Tools are stored sorted by name so the document layout does not depend
    on the order in which tools were tested.
    """
    notes = behavioral_notes or {}
    tools = sorted(fingerprints, key=lambda f: f.name)
    profiles = [build_tool_profile(f, notes.get(f.name)) for f in tools]

    baseline = Baseline(
        version=BASELINE_FORMAT_VERSION,
        metadata=BaselineMetadata(
            generated_at=generated_at,
            server_command=server_command,
            server_name=server_name,
            mode=mode,
            duration_ms=duration_ms,
            personas=list(personas or []),
        ),
        capabilities=BaselineCapabilities(tools=tools),
        tool_profiles=profiles,
        summary=summary if summary is not None else _default_summary(tools),
    )
    baseline = recalculate_baseline_hash(baseline)
    logger.info(
        "Created baseline with %d tool(s)",
        len(tools),
        extra={"baseline_hash": baseline.hash},
    )
    return baseline


def _default_summary(tools: list[ToolFingerprint]) -> str:
    flagged = sum(1 for tool in tools if tool.security_notes)
    limited = sum(1 for tool in tools if tool.limitations)
    return (
        f"{len(tools)} tool(s) fingerprinted; "
        f"{flagged} with security notes; {limited} with known limitations"
    )
