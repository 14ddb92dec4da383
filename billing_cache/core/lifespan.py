"""Application lifespan: startup and shutdown.

Single place for startup/shutdown wiring: telemetry, the cache runtime
(Redis connection, recompute registry, background pool) and the SQL
engine used by recompute transactions. No business logic here.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from billing_cache.core.config import get_settings
from billing_cache.infrastructure.cache.runtime import build_cache_runtime, set_cache_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: telemetry (if enabled), cache runtime. The runtime is
    built from app.state.recomputable_caches and app.state.transaction_runner
    (set by create_app). Shutdown order: drain background pool and
    disconnect cache, telemetry shutdown, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    if settings.telemetry_enabled:
        from billing_cache.shared.telemetry.telemetry import TelemetryConfig, set_telemetry

        telemetry = TelemetryConfig.from_settings(settings)
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        telemetry.instrument(app)

    runtime = build_cache_runtime(
        getattr(app.state, "recomputable_caches", ()),
        getattr(app.state, "transaction_runner", None),
    )
    await runtime.start()
    set_cache_runtime(runtime)
    app.state.cache_runtime = runtime
    logger.info(
        "Cache runtime started (backend available: %s)", runtime.cache.is_available()
    )

    yield

    # ---- Shutdown ----
    set_cache_runtime(None)
    await runtime.stop()
    app.state.cache_runtime = None
    logger.info("Cache runtime stopped")

    from billing_cache.shared.telemetry.telemetry import get_telemetry

    telemetry_instance = get_telemetry()
    if telemetry_instance is not None:
        telemetry_instance.shutdown()

    from billing_cache.infrastructure.persistence import database

    await database.dispose_engine()
