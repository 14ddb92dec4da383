"""Health check endpoints. Used for liveness probes and cache diagnostics."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from billing_cache.core.config import get_settings
from billing_cache.infrastructure.cache.runtime import get_cache_runtime
from billing_cache.schemas.health import CacheHealthResponse, HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/cache",
    response_model=CacheHealthResponse,
    responses={503: {"description": "Redis enabled but unreachable", "model": CacheHealthResponse}},
)
async def cache_health() -> CacheHealthResponse | JSONResponse:
    """Report cache backend availability and background queue depth.

    Cached reads fail open, so an unavailable backend never breaks callers;
    the 503 only tells operators the service is running uncached.
    """
    settings = get_settings()
    runtime = get_cache_runtime()
    if runtime is None:
        body = CacheHealthResponse(status="unavailable", backend_available=False)
    else:
        available = runtime.cache.is_available()
        body = CacheHealthResponse(
            status="ok" if available else ("unavailable" if settings.redis_enabled else "degraded"),
            backend_available=available,
            pending_recomputations=runtime.task_pool.pending,
            recompute_namespaces=runtime.registry.namespaces(),
        )
    if not body.backend_available and settings.redis_enabled:
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
