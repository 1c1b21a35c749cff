"""
Exporter Configuration

Describes how spans and metrics leave the process: which collector, over which
OTLP transport, with which TLS trust roots, and how often.

Operators configure the transport ONCE (TransportConfig). The trace and metric
ExporterConfig values are both derived from it and only differ in endpoint
path and batching/interval settings.

TLS: the system trust store is used (the CA bundle OpenSSL was built against).
No custom CA bundle support. Plain-text export must be requested explicitly
with insecure=True.
"""

import logging
import os
import ssl
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

import grpc
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as GrpcMetricExporter,
)
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GrpcSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as HttpMetricExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as HttpSpanExporter,
)
from opentelemetry.sdk.metrics.export import MetricExporter
from opentelemetry.sdk.trace.export import SpanExporter
from opentelemetry.util.re import parse_env_headers

from ..config import Settings
from ..exceptions import ExporterConfigError

logger = logging.getLogger(__name__)

PROTOCOL_GRPC = "grpc"
PROTOCOL_HTTP_PROTOBUF = "http/protobuf"
SUPPORTED_PROTOCOLS = (PROTOCOL_GRPC, PROTOCOL_HTTP_PROTOBUF)

SIGNAL_TRACES = "traces"
SIGNAL_METRICS = "metrics"

# OTLP/HTTP signal paths appended to a shared base endpoint
_HTTP_SIGNAL_PATHS = {
    SIGNAL_TRACES: "/v1/traces",
    SIGNAL_METRICS: "/v1/metrics",
}


# ============================================================================
# TLS: system trust roots
# ============================================================================

def system_ca_file() -> Optional[str]:
    """Path of the system CA bundle, or None if OpenSSL knows of none."""
    paths = ssl.get_default_verify_paths()
    for candidate in (paths.cafile, paths.openssl_cafile):
        if candidate and os.path.isfile(candidate):
            return candidate
    return None


def system_root_certificates() -> Optional[bytes]:
    """
    PEM bytes of the system trust store.

    Returns None when no bundle is found; gRPC then falls back to its own
    default roots.

    Raises:
        ExporterConfigError: if a bundle exists but cannot be read
    """
    ca_file = system_ca_file()
    if ca_file is None:
        logger.warning("No system CA bundle found, using gRPC default trust roots")
        return None
    try:
        return Path(ca_file).read_bytes()
    except OSError as e:
        raise ExporterConfigError(f"Cannot read system CA bundle {ca_file}: {e}") from e


def grpc_channel_credentials() -> grpc.ChannelCredentials:
    """TLS channel credentials backed by the system trust store."""
    return grpc.ssl_channel_credentials(root_certificates=system_root_certificates())


# ============================================================================
# CONFIG VALUES
# ============================================================================

@dataclass(frozen=True)
class TransportConfig:
    """Transport settings shared by the trace and metric exporters."""

    protocol: str = PROTOCOL_GRPC
    insecure: bool = False
    headers: Tuple[Tuple[str, str], ...] = ()
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.protocol not in SUPPORTED_PROTOCOLS:
            raise ExporterConfigError(
                f"Unsupported OTLP protocol {self.protocol!r} "
                f"(expected one of {', '.join(SUPPORTED_PROTOCOLS)})"
            )
        if self.timeout_seconds <= 0:
            raise ExporterConfigError("Export timeout must be positive")

    @classmethod
    def from_header_string(
        cls,
        protocol: str,
        insecure: bool,
        headers: Optional[str],
        timeout_seconds: float,
    ) -> "TransportConfig":
        """Build from the `key=value,key2=value2` header format used by OTEL_EXPORTER_OTLP_HEADERS."""
        parsed: Dict[str, str] = parse_env_headers(headers, liberal=True) if headers else {}
        return cls(
            protocol=protocol,
            insecure=insecure,
            headers=tuple(parsed.items()),
            timeout_seconds=timeout_seconds,
        )


@dataclass(frozen=True)
class ExporterConfig:
    """
    Immutable description of one export pipeline (traces OR metrics).

    export_interval_ms is the batch span processor's schedule delay for traces
    and the periodic reader's interval for metrics. The queue and batch sizes
    only apply to traces.
    """

    signal: str
    endpoint: str
    transport: TransportConfig = field(default_factory=TransportConfig)
    export_interval_ms: int = 5000
    export_timeout_ms: int = 30000
    max_queue_size: int = 2048
    max_export_batch_size: int = 512

    def __post_init__(self) -> None:
        if self.signal not in _HTTP_SIGNAL_PATHS:
            raise ExporterConfigError(f"Unknown telemetry signal {self.signal!r}")
        self._validate_endpoint()
        if self.export_interval_ms <= 0:
            raise ExporterConfigError(f"{self.signal}: export interval must be positive")
        if self.export_timeout_ms <= 0:
            raise ExporterConfigError(f"{self.signal}: export timeout must be positive")
        if self.max_queue_size <= 0 or self.max_export_batch_size <= 0:
            raise ExporterConfigError(f"{self.signal}: queue and batch sizes must be positive")
        if self.max_export_batch_size > self.max_queue_size:
            raise ExporterConfigError(
                f"{self.signal}: max_export_batch_size ({self.max_export_batch_size}) "
                f"exceeds max_queue_size ({self.max_queue_size})"
            )

    def _validate_endpoint(self) -> None:
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ExporterConfigError(
                f"{self.signal}: malformed collector endpoint {self.endpoint!r} "
                "(expected http[s]://host[:port])"
            )
        try:
            parsed.port
        except ValueError as e:
            raise ExporterConfigError(
                f"{self.signal}: malformed port in endpoint {self.endpoint!r}"
            ) from e
        if parsed.scheme == "http" and not self.transport.insecure:
            raise ExporterConfigError(
                f"{self.signal}: endpoint {self.endpoint!r} is plain http but TLS is "
                "required; use https:// or enable insecure export"
            )

    def build_span_exporter(self) -> SpanExporter:
        """OTLP span exporter for this configuration."""
        if self.transport.protocol == PROTOCOL_HTTP_PROTOBUF:
            return HttpSpanExporter(
                endpoint=self.endpoint,
                certificate_file=self._http_certificate_file(),
                headers=dict(self.transport.headers),
                timeout=self.transport.timeout_seconds,
            )
        return GrpcSpanExporter(
            endpoint=self.endpoint,
            insecure=self.transport.insecure,
            credentials=self._grpc_credentials(),
            headers=self.transport.headers,
            timeout=self.transport.timeout_seconds,
        )

    def build_metric_exporter(self) -> MetricExporter:
        """OTLP metric exporter for this configuration."""
        if self.transport.protocol == PROTOCOL_HTTP_PROTOBUF:
            return HttpMetricExporter(
                endpoint=self.endpoint,
                certificate_file=self._http_certificate_file(),
                headers=dict(self.transport.headers),
                timeout=self.transport.timeout_seconds,
            )
        return GrpcMetricExporter(
            endpoint=self.endpoint,
            insecure=self.transport.insecure,
            credentials=self._grpc_credentials(),
            headers=self.transport.headers,
            timeout=self.transport.timeout_seconds,
        )

    def _grpc_credentials(self) -> Optional[grpc.ChannelCredentials]:
        if self.transport.insecure:
            return None
        return grpc_channel_credentials()

    def _http_certificate_file(self) -> Optional[str]:
        if self.transport.insecure:
            return None
        return system_ca_file()


# ============================================================================
# SETTINGS -> (trace config, metric config)
# ============================================================================

def _signal_endpoint(base: str, override: Optional[str], signal: str, protocol: str) -> str:
    if override:
        return override
    if protocol == PROTOCOL_HTTP_PROTOBUF:
        return base.rstrip("/") + _HTTP_SIGNAL_PATHS[signal]
    return base


def exporter_configs_from_settings(settings: Settings) -> Tuple[ExporterConfig, ExporterConfig]:
    """
    Derive the trace and metric exporter configs from one transport setting.

    Raises:
        ExporterConfigError: on any malformed value
    """
    transport = TransportConfig.from_header_string(
        protocol=settings.otlp_protocol,
        insecure=settings.otlp_insecure,
        headers=settings.otlp_headers,
        timeout_seconds=settings.otlp_timeout_seconds,
    )

    trace_config = ExporterConfig(
        signal=SIGNAL_TRACES,
        endpoint=_signal_endpoint(
            settings.otlp_endpoint, settings.otlp_traces_endpoint, SIGNAL_TRACES, transport.protocol
        ),
        transport=transport,
        export_interval_ms=settings.bsp_schedule_delay_ms,
        export_timeout_ms=settings.bsp_export_timeout_ms,
        max_queue_size=settings.bsp_max_queue_size,
        max_export_batch_size=settings.bsp_max_export_batch_size,
    )
    metric_config = ExporterConfig(
        signal=SIGNAL_METRICS,
        endpoint=_signal_endpoint(
            settings.otlp_endpoint, settings.otlp_metrics_endpoint, SIGNAL_METRICS, transport.protocol
        ),
        transport=transport,
        export_interval_ms=settings.metric_export_interval_ms,
        export_timeout_ms=settings.metric_export_timeout_ms,
    )

    logger.info(
        "Exporters configured: %s traces -> %s, metrics -> %s (tls=%s)",
        transport.protocol,
        trace_config.endpoint,
        metric_config.endpoint,
        not transport.insecure,
    )
    return trace_config, metric_config
