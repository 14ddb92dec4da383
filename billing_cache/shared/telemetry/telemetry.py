"""OpenTelemetry setup for the cache service.

Spans come from the traced() decorator (invalidation, recomputation), the
attributes cached wrappers add to the caller's span, and the Redis client
instrumentation. Exporters: console (development), otlp, or none.
"""

import logging
import threading
from collections.abc import Callable

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from billing_cache.core.config import Settings

logger = logging.getLogger(__name__)


def build_span_exporter(exporter_type: str, otlp_endpoint: str | None = None) -> SpanExporter | None:
    """Exporter for TELEMETRY_EXPORTER; None means spans are recorded but not exported.

    An otlp exporter without endpoint, or an unknown type, falls back to console.
    """
    if exporter_type == "none":
        return None
    if exporter_type == "otlp" and otlp_endpoint:
        logger.info("Using OTLP span exporter: %s", otlp_endpoint)
        return OTLPSpanExporter(endpoint=otlp_endpoint, insecure=otlp_endpoint.startswith("http://"))
    if exporter_type != "console":
        logger.warning("Unusable exporter configuration '%s'; using console", exporter_type)
    return ConsoleSpanExporter()


class TelemetryConfig:
    """Tracer provider and instrumentation lifecycle.

    Built from settings at startup; instrument() is best-effort and never
    prevents the service from starting.
    """

    def __init__(
        self,
        service_name: str,
        service_version: str,
        enabled: bool = True,
        environment: str = "development",
    ) -> None:
        self.service_name = service_name
        self.service_version = service_version
        self.enabled = enabled
        self.environment = environment
        self.tracer_provider: TracerProvider | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelemetryConfig":
        return cls(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=settings.telemetry_enabled,
            environment=settings.telemetry_environment,
        )

    def setup_telemetry(
        self,
        exporter_type: str = "console",
        otlp_endpoint: str | None = None,
        sample_rate: float = 1.0,
    ) -> TracerProvider | None:
        """Create the tracer provider and install it globally.

        Args:
            exporter_type: "console", "otlp", or "none".
            otlp_endpoint: OTLP gRPC endpoint (e.g. http://localhost:4317).
            sample_rate: Root sampling ratio 0.0-1.0; child spans follow their parent.

        Returns:
            TracerProvider, or None if telemetry is disabled.
        """
        if not self.enabled:
            logger.info("Telemetry disabled")
            return None
        resource = Resource(
            attributes={
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
                "deployment.environment": self.environment,
            }
        )
        provider = TracerProvider(resource=resource, sampler=ParentBased(TraceIdRatioBased(sample_rate)))
        exporter = build_span_exporter(exporter_type, otlp_endpoint)
        if exporter is not None:
            provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        self.tracer_provider = provider
        logger.info(
            "OpenTelemetry initialized: service=%s, exporter=%s, sample_rate=%s",
            self.service_name,
            exporter_type,
            sample_rate,
        )
        return provider

    def instrument(self, app: FastAPI | None = None) -> list[str]:
        """Instrument Redis commands, log records and (if given) the FastAPI app.

        Returns:
            Names of the instrumentations that were enabled.
        """
        if not self.enabled or self.tracer_provider is None:
            return []
        provider = self.tracer_provider
        steps: list[tuple[str, Callable[[], None]]] = [
            ("redis", lambda: RedisInstrumentor().instrument(tracer_provider=provider)),
            (
                "logging",
                lambda: LoggingInstrumentor().instrument(tracer_provider=provider, set_logging_format=True),
            ),
        ]
        if app is not None:
            steps.append(
                (
                    "fastapi",
                    lambda: FastAPIInstrumentor.instrument_app(
                        app, tracer_provider=provider, excluded_urls="/health"
                    ),
                )
            )
        enabled: list[str] = []
        for name, instrument in steps:
            try:
                instrument()
            except Exception as e:
                logger.exception("Failed to instrument %s: %s", name, e)
                continue
            enabled.append(name)
        logger.info("Instrumentation enabled: %s", ", ".join(enabled) or "-")
        return enabled

    def shutdown(self) -> None:
        """Flush remaining spans and shut the provider down."""
        if self.tracer_provider is None:
            return
        self.tracer_provider.shutdown()
        self.tracer_provider = None
        logger.info("Telemetry shutdown complete")


_telemetry: TelemetryConfig | None = None
_telemetry_lock = threading.RLock()


def get_telemetry() -> TelemetryConfig | None:
    """Return the global telemetry instance (set at startup)."""
    with _telemetry_lock:
        return _telemetry


def set_telemetry(telemetry: TelemetryConfig | None) -> None:
    """Set (or clear) the global telemetry instance."""
    global _telemetry
    with _telemetry_lock:
        _telemetry = telemetry
