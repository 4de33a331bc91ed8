"""Stateless baseline operations: hashing, migration, comparison, acceptance."""
from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Request

from src.drift_engine.services.baseline_document import (
    dump_baseline_document,
    load_baseline_document,
)
from src.drift_engine.services.baseline_hash import calculate_baseline_hash
from src.drift_engine.services.comparator import compare_baselines
from src.drift_engine.services.drift_acceptance import accept_drift
from src.drift_engine.services.migrations import MIGRATIONS, get_migration_info
from src.shared.config import DriftEngineConfig
from src.shared.constants import BASELINE_FORMAT_VERSION
from src.shared.errors import ValidationError
from src.shared.models.drift import (
    AcceptRequest,
    BaselineHashResult,
    BehavioralDiff,
    CompareOptions,
    CompareRequest,
    FormatVersionInfo,
    MigrateResult,
)

router = APIRouter(prefix="/api/baselines", tags=["baselines"])


def _config(request: Request) -> DriftEngineConfig:
    config = getattr(request.app.state, "config", None)
    return config if config is not None else DriftEngineConfig()


@router.get("/version", response_model=FormatVersionInfo)
async def format_version() -> FormatVersionInfo:
    return FormatVersionInfo(
        baseline_format_version=BASELINE_FORMAT_VERSION,
        migrations=sorted(MIGRATIONS),
    )


@router.post("/hash", response_model=BaselineHashResult)
async def hash_baseline(body: dict[str, Any]) -> BaselineHashResult:
    """Recompute the hash of a baseline document without enforcing it."""
    baseline = await asyncio.to_thread(load_baseline_document, body, False)
    computed = calculate_baseline_hash(baseline)
    stored = str(body.get("hash") or body.get("integrityHash") or "")
    return BaselineHashResult(
        stored_hash=stored,
        computed_hash=computed,
        matches=stored == computed,
    )


@router.post("/migrate", response_model=MigrateResult)
async def migrate(body: dict[str, Any]) -> MigrateResult:
    """Bring a baseline document to the current format.

    The migrated document is validated and rehashed before it is returned.
    """
    info = get_migration_info(body)
    baseline = await asyncio.to_thread(load_baseline_document, body, False)
    return MigrateResult(info=info, baseline=dump_baseline_document(baseline))


@router.post("/compare", response_model=BehavioralDiff)
async def compare(body: CompareRequest, request: Request) -> BehavioralDiff:
    """Diff two baseline documents.

    When no options are sent, the version-mismatch override comes from
    ``IGNORE_VERSION_MISMATCH``.
    """
    config = _config(request)
    options = body.options or CompareOptions(
        ignore_version_mismatch=config.ignore_version_mismatch,
    )

    def _run() -> BehavioralDiff:
        previous = load_baseline_document(body.previous, config.verify_baseline_integrity)
        current = load_baseline_document(body.current, config.verify_baseline_integrity)
        return compare_baselines(previous, current, options)

    return await asyncio.to_thread(_run)


@router.post("/accept")
async def accept(body: AcceptRequest, request: Request) -> dict[str, Any]:
    """Stamp the current baseline with acceptance of a diff."""
    config = _config(request)
    current = await asyncio.to_thread(
        load_baseline_document, body.current, config.verify_baseline_integrity
    )
    if not body.diff.tools_added and not body.diff.tools_removed and not body.diff.tools_modified:
        raise ValidationError("Nothing to accept: the diff contains no changes")
    accepted = accept_drift(
        current,
        body.diff,
        accepted_by=body.accepted_by,
        reason=body.reason,
    )
    return dump_baseline_document(accepted)
