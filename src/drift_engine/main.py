"""Drift Engine service FastAPI application."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.shared.config import DriftEngineConfig
from src.shared.constants import BASELINE_FORMAT_VERSION, DRIFT_ENGINE_SERVICE_NAME, VERSION
from src.shared.errors import register_exception_handlers
from src.shared.logging import TraceIDMiddleware, setup_logging

config = DriftEngineConfig()
logger = setup_logging(DRIFT_ENGINE_SERVICE_NAME, config.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - record start time and configuration."""
    app.state.start_time = time.time()
    app.state.config = config

    logger.info(
        "Service started: name=%s version=%s format=%s",
        DRIFT_ENGINE_SERVICE_NAME, VERSION, BASELINE_FORMAT_VERSION,
    )
    yield
    logger.info("Service stopped: name=%s", DRIFT_ENGINE_SERVICE_NAME)


app = FastAPI(
    title="Drift Engine",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(TraceIDMiddleware)
register_exception_handlers(app)

from src.drift_engine.routers.health import router as health_router
from src.drift_engine.routers.baselines import router as baselines_router

app.include_router(health_router)
app.include_router(baselines_router)
