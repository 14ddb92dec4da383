"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Cache TTL overrides arrive as one JSON blob
(CACHE_TTLS) and are parsed leniently by the namespace table, so a bad
value never prevents startup.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env."""

    # App
    app_name: str = "billing-cache"
    app_version: str = "1.0.0"
    debug: bool = False
    # Emit one debug line per cached read (hit/miss, latency)
    log_cache_stats: bool = False

    # Database (only used to reconstruct transactions for recomputation)
    database_url: str = ""
    database_echo: bool = False
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # Redis cache backend
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    redis_socket_timeout: float = 5.0

    # Namespace TTL overrides: JSON object {"subscriptionsByCustomer": 600, ...}
    cache_ttls: str = ""
    # Must stay longer than any cache entry TTL.
    cache_dependency_registry_ttl: int = 86400

    # Background recomputation / write-back pool
    recompute_workers: int = 4
    recompute_queue_size: int = 1000

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_pool_and_ttls(self) -> "Settings":
        """Reject pool sizes and registry TTLs that would disable the engine silently."""
        if self.recompute_workers < 1:
            raise ValueError("RECOMPUTE_WORKERS must be at least 1")
        if self.recompute_queue_size < 1:
            raise ValueError("RECOMPUTE_QUEUE_SIZE must be at least 1")
        if self.cache_dependency_registry_ttl < 1:
            raise ValueError("CACHE_DEPENDENCY_REGISTRY_TTL must be a positive number of seconds")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    In tests, call get_settings.cache_clear() after overriding env vars so
    the next get_settings() uses the new values.
    """
    return Settings()
