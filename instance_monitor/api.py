"""FastAPI application exposing host metrics in the Prometheus text format."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from .config import Settings, get_settings
from .errors import RenderError
from .monitor import SystemMonitor
from .registry import MetricRegistry
from .sampler import HostSampler

logger = logging.getLogger(__name__)

GREETING = "A Simple Instance Monitor."


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[MetricRegistry] = None,
    sampler: Optional[HostSampler] = None,
) -> FastAPI:
    """Build the app; also a uvicorn target via ``--factory instance_monitor.api:create_app``."""
    settings = settings or get_settings()
    registry = registry if registry is not None else MetricRegistry()
    monitor = SystemMonitor(
        registry,
        sampler if sampler is not None else HostSampler(),
        delay=settings.delay,
        instance=settings.instance,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitor.start()
        try:
            yield
        finally:
            await monitor.stop()

    app = FastAPI(
        title="Instance Monitor",
        description="Minimal exporter for host CPU and memory utilization.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.monitor = monitor

    @app.get("/", response_class=PlainTextResponse, summary="Identify the service", tags=["system"])
    async def root():
        return GREETING

    @app.get(
        "/metrics",
        response_class=PlainTextResponse,
        summary="Current metrics in the text exposition format",
        tags=["metrics"],
    )
    async def metrics():
        try:
            body = registry.export()
        except RenderError:
            logger.exception("Failed to render metrics")
            return PlainTextResponse("Failed to retrieve metrics", status_code=500)
        return PlainTextResponse(body)

    @app.get("/health", summary="Service health check", tags=["system"])
    async def health():
        return {"status": "ok"}

    return app
