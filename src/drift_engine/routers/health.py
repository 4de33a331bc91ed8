"""Health check endpoint for the Drift Engine."""
from __future__ import annotations

import time

from fastapi import APIRouter, Request

from src.shared.constants import BASELINE_FORMAT_VERSION, DRIFT_ENGINE_SERVICE_NAME, VERSION
from src.shared.models.common import HealthStatus, ServiceSettings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health(request: Request) -> HealthStatus:
    start_time = getattr(request.app.state, "start_time", time.time())
    config = getattr(request.app.state, "config", None)
    return HealthStatus(
        status="healthy",
        service_name=DRIFT_ENGINE_SERVICE_NAME,
        version=VERSION,
        baseline_format_version=BASELINE_FORMAT_VERSION,
        uptime_seconds=max(0.0, time.time() - start_time),
        settings=ServiceSettings.model_validate(config) if config is not None else None,
    )
