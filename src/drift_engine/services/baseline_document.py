"""Load and dump baseline documents in their JSON-ready form."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.drift_engine.services.baseline_hash import (
    calculate_baseline_hash,
    recalculate_baseline_hash,
)
from src.drift_engine.services.migrations import get_migrations_to_apply, migrate_baseline
from src.drift_engine.services.version import parse_version
from src.shared.errors import BaselineIntegrityError, ParsingError
from src.shared.models.baseline import Baseline

logger = logging.getLogger(__name__)


def load_baseline_document(
    raw: dict[str, Any],
    verify_integrity: bool = True,
) -> Baseline:
    """Migrate *raw* to the current format and validate it.

    A document that went through a registered migration is rehashed,
    since migration changes its content. Any other document has its stored
    hash checked when *verify_integrity* is set; a document whose version
    string was only normalized may match either before or after
    normalization, and is rehashed once it passes.

    Raises:
        ParsingError: if *raw* is not an object or fails validation.
        MigrationError: if *raw* is newer than the current format.
        BaselineIntegrityError: if the stored hash does not match.
    """
    if not isinstance(raw, dict):
        raise ParsingError(f"Baseline document must be an object, got {type(raw).__name__}")

    source = parse_version(raw.get("version"))
    migrations = get_migrations_to_apply(source)
    migrated = migrate_baseline(raw)

    try:
        baseline = Baseline.model_validate(migrated)
    except PydanticValidationError as exc:
        raise ParsingError(f"Invalid baseline document: {exc.error_count()} error(s): {exc}") from exc

    if migrations:
        logger.info(
            "Migrated baseline from v%s to v%s via %s",
            source.raw,
            baseline.version,
            ", ".join(migrations),
        )
        return recalculate_baseline_hash(baseline)

    if verify_integrity:
        expected = calculate_baseline_hash(baseline)
        if baseline.hash != expected and baseline.hash != calculate_baseline_hash(raw):
            raise BaselineIntegrityError(
                f"Baseline hash mismatch: stored {baseline.hash or '<none>'}, computed {expected}"
            )

    if migrated is not raw:
        logger.info("Normalized baseline version %r to v%s", raw.get("version"), baseline.version)
        return recalculate_baseline_hash(baseline)
    return baseline


def dump_baseline_document(baseline: Baseline) -> dict[str, Any]:
    """JSON-ready dict that :func:`load_baseline_document` reads back unchanged."""
    return baseline.model_dump(mode="json", exclude_none=True)
