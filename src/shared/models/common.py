"""Service-level models used by the HTTP surface."""
from __future__ import annotations

from pydantic import BaseModel, Field


class ServiceSettings(BaseModel):
    """Comparison and loading switches a running service was started with."""
    ignore_version_mismatch: bool = False
    verify_baseline_integrity: bool = True

    model_config = {"from_attributes": True}


class HealthStatus(BaseModel):
    """Liveness report, including the baseline format this build writes."""
    status: str = Field(
        default="healthy",
        pattern=r"^(healthy|degraded|unhealthy)$"
    )
    service_name: str
    version: str
    baseline_format_version: str
    uptime_seconds: float = Field(default=0.0, ge=0.0)
    settings: ServiceSettings | None = None

    model_config = {"from_attributes": True}
