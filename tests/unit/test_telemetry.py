"""Tests for telemetry configuration and the traced decorator."""

import pytest
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import ConsoleSpanExporter

from billing_cache.core.config import Settings
from billing_cache.shared.telemetry import (
    TelemetryConfig,
    add_span_attributes,
    get_telemetry,
    set_telemetry,
    traced,
)
from billing_cache.shared.telemetry.telemetry import build_span_exporter


class TestBuildSpanExporter:
    def test_none_disables_export(self) -> None:
        assert build_span_exporter("none") is None

    def test_console(self) -> None:
        assert isinstance(build_span_exporter("console"), ConsoleSpanExporter)

    def test_otlp_with_endpoint(self) -> None:
        exporter = build_span_exporter("otlp", "http://localhost:4317")
        assert isinstance(exporter, OTLPSpanExporter)

    def test_otlp_without_endpoint_falls_back_to_console(self) -> None:
        assert isinstance(build_span_exporter("otlp", None), ConsoleSpanExporter)

    def test_unknown_type_falls_back_to_console(self) -> None:
        assert isinstance(build_span_exporter("jaeger"), ConsoleSpanExporter)


class TestTelemetryConfig:
    def test_from_settings(self) -> None:
        settings = Settings(
            app_name="cache-test",
            app_version="9.9.9",
            telemetry_enabled=True,
            telemetry_environment="staging",
        )
        config = TelemetryConfig.from_settings(settings)
        assert config.service_name == "cache-test"
        assert config.service_version == "9.9.9"
        assert config.enabled is True
        assert config.environment == "staging"

    def test_disabled_setup_returns_none(self) -> None:
        config = TelemetryConfig("cache-test", "1.0.0", enabled=False)
        assert config.setup_telemetry(exporter_type="none") is None
        assert config.tracer_provider is None

    def test_instrument_without_provider_is_noop(self) -> None:
        config = TelemetryConfig("cache-test", "1.0.0", enabled=True)
        assert config.instrument() == []

    def test_shutdown_without_provider(self) -> None:
        config = TelemetryConfig("cache-test", "1.0.0")
        config.shutdown()
        assert config.tracer_provider is None

    def test_global_instance(self) -> None:
        config = TelemetryConfig("cache-test", "1.0.0", enabled=False)
        set_telemetry(config)
        try:
            assert get_telemetry() is config
        finally:
            set_telemetry(None)
        assert get_telemetry() is None


class TestTraced:
    async def test_async_result_passes_through(self) -> None:
        @traced("test.async")
        async def double(value: int, namespace: str = "x") -> int:
            return value * 2

        assert await double(21, namespace="ns") == 42

    def test_sync_result_passes_through(self) -> None:
        @traced()
        def greet(name: str) -> str:
            return f"hi {name}"

        assert greet("cache") == "hi cache"
        assert greet.__name__ == "greet"

    async def test_exception_propagates(self) -> None:
        @traced("test.failing")
        async def boom() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await boom()

    def test_add_span_attributes_without_span(self) -> None:
        add_span_attributes(**{"cache.hit": True, "cache.namespace": "items"})
