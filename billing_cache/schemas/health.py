"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class CacheHealthResponse(BaseModel):
    """Response for GET /health/cache."""

    status: str = Field(..., description="ok, degraded (cache disabled) or unavailable")
    backend_available: bool = Field(..., description="Redis connected and usable")
    pending_recomputations: int = Field(
        default=0, description="Background cache jobs queued and not yet started"
    )
    recompute_namespaces: list[str] = Field(
        default_factory=list, description="Namespaces with a registered recompute handler"
    )
