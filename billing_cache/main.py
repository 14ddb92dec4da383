"""FastAPI application entry point.

Wiring only: logging, lifespan, routers. Settings are loaded inside
create_app() so that tests can set env (and clear the get_settings cache)
before building the app.
"""

from collections.abc import Sequence

from fastapi import FastAPI

from billing_cache.api.health import router as health_router
from billing_cache.core.config import get_settings
from billing_cache.core.lifespan import create_lifespan
from billing_cache.infrastructure.cache.registry import RecomputableDefinition
from billing_cache.infrastructure.persistence.transactions import TransactionRunner
from billing_cache.shared.telemetry import setup_logging


def create_app(
    recomputable_caches: Sequence[RecomputableDefinition] = (),
    transaction_runner: TransactionRunner | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        recomputable_caches: Every RecomputableCache this process defines;
            each namespace gets a recompute handler at startup.
        transaction_runner: Runner for recompute transactions (default: SQL).
    """
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=create_lifespan,
    )
    app.state.recomputable_caches = tuple(recomputable_caches)
    app.state.transaction_runner = transaction_runner

    app.include_router(health_router, prefix="/health", tags=["health"])

    return app
