"""
Pytest configuration and fixtures for Fibonacci server tests.

Telemetry is injected: every test gets a TelemetryContext backed by the SDK's
in-memory span exporter and metric reader. Nothing is published as the
OpenTelemetry globals.
"""

from typing import List

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader, NumberDataPoint
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from fibonacci_server.api import create_app
from fibonacci_server.config import Settings, get_settings
from fibonacci_server.handler import COUNTER_NAME, FibonacciHandler
from fibonacci_server.observability.telemetry import TelemetryContext


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the host environment."""
    return Settings(
        app_env="test",
        service_name="fibonacci-test",
        log_json=False,
        otlp_endpoint="https://collector.test:4317",
        otlp_traces_endpoint=None,
        otlp_metrics_endpoint=None,
        otlp_protocol="grpc",
        otlp_insecure=False,
        otlp_headers=None,
        prometheus_enabled=False,
        shutdown_timeout_ms=1000,
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """get_settings() is lru-cached; keep tests independent."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def telemetry(span_exporter, metric_reader):
    """In-memory telemetry context, shut down after the test."""
    resource = Resource({"service.name": "fibonacci-test"})
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])

    context = TelemetryContext(tracer_provider, meter_provider, resource=resource)
    yield context
    context.shutdown(timeout_millis=1000)


@pytest.fixture
def handler(telemetry) -> FibonacciHandler:
    return FibonacciHandler(telemetry)


@pytest.fixture
def app(telemetry, test_settings):
    return create_app(telemetry, test_settings)


@pytest.fixture
def client(app):
    """Test client with lifespan: leaving the block shuts telemetry down."""
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# HELPERS
# ============================================================================

def spans_named(exporter: InMemorySpanExporter, name: str) -> List[ReadableSpan]:
    return [span for span in exporter.get_finished_spans() if span.name == name]


def counter_points(reader: InMemoryMetricReader, name: str = COUNTER_NAME) -> List[NumberDataPoint]:
    """Cumulative data points of one counter, across all scopes."""
    data = reader.get_metrics_data()
    if data is None:
        return []
    points = []
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    points.extend(metric.data.data_points)
    return points


def counter_total(reader: InMemoryMetricReader, name: str = COUNTER_NAME) -> int:
    return sum(point.value for point in counter_points(reader, name))
