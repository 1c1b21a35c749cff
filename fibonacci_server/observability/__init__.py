"""
Observability Package

Bootstraps the OpenTelemetry pipelines for the Fibonacci server:
1. RESOURCE: who is emitting (resource.py)
2. EXPORTERS: where spans/metrics go and over which transport (exporters.py)
3. LIFECYCLE: tracer/meter providers, propagator, ordered shutdown (telemetry.py)
4. LOGS: JSON logs correlated with the active trace (logging_config.py)
"""

from .exporters import ExporterConfig, TransportConfig, exporter_configs_from_settings
from .resource import build_resource
from .telemetry import TelemetryContext

__all__ = [
    "ExporterConfig",
    "TransportConfig",
    "TelemetryContext",
    "build_resource",
    "exporter_configs_from_settings",
]
