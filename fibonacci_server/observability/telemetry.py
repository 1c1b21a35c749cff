"""
Telemetry Provider Lifecycle

TelemetryContext owns the tracer provider, the meter provider and the
trace-context propagator for the life of the process.

It is constructed explicitly and INJECTED into the HTTP front and the request
handler. Nothing on the request path reads OpenTelemetry's global state, so
tests can hand in in-memory providers:

    context = TelemetryContext(
        tracer_provider=TracerProvider(),
        meter_provider=MeterProvider(metric_readers=[InMemoryMetricReader()]),
    )

In production, TelemetryContext.install() builds the batched OTLP pipelines and
(once per process) publishes them as the OpenTelemetry globals, so third-party
libraries that call trace.get_tracer() join the same pipeline.

FAILURE MODE:
If either pipeline cannot be built, install() raises TelemetryInitError. The
service must NOT start with a half-initialized telemetry stack.

SHUTDOWN ORDER:
    tracer force_flush -> tracer shutdown -> meter force_flush -> meter shutdown
Both pipelines get an explicit flush, so the last batch of metrics is not lost
to interpreter teardown.
"""

import logging
import threading
from typing import Optional, Sequence

from opentelemetry import metrics, propagate, trace
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from .. import __version__
from ..exceptions import TelemetryAlreadyInstalledError, TelemetryInitError
from .exporters import ExporterConfig

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT_MS = 30000

# The context currently published as the OpenTelemetry globals
_published: Optional["TelemetryContext"] = None
_publish_lock = threading.Lock()


class TelemetryContext:
    """Tracer provider, meter provider and propagator for one process."""

    def __init__(
        self,
        tracer_provider: TracerProvider,
        meter_provider: MeterProvider,
        propagator: Optional[TextMapPropagator] = None,
        resource: Optional[Resource] = None,
    ):
        self.tracer_provider = tracer_provider
        self.meter_provider = meter_provider
        self.propagator = propagator or TraceContextTextMapPropagator()
        self.resource = resource
        self._shutdown_lock = threading.Lock()
        self._shutdown_result: Optional[bool] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def install(
        cls,
        resource: Resource,
        trace_config: ExporterConfig,
        metric_config: ExporterConfig,
        *,
        extra_metric_readers: Sequence[MetricReader] = (),
        publish_globals: bool = True,
    ) -> "TelemetryContext":
        """
        Build the batched trace and metrics pipelines bound to one resource.

        Args:
            resource: Merged resource shared by both pipelines
            trace_config: Exporter config for spans
            metric_config: Exporter config for metrics
            extra_metric_readers: Additional readers (e.g. Prometheus bridge)
            publish_globals: Also install as the process-wide OTel globals

        Returns:
            The installed TelemetryContext

        Raises:
            TelemetryInitError: if either pipeline cannot be initialized
        """
        try:
            span_exporter = trace_config.build_span_exporter()
            tracer_provider = TracerProvider(resource=resource)
            tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    span_exporter,
                    max_queue_size=trace_config.max_queue_size,
                    schedule_delay_millis=trace_config.export_interval_ms,
                    max_export_batch_size=trace_config.max_export_batch_size,
                    export_timeout_millis=trace_config.export_timeout_ms,
                )
            )
        except Exception as e:
            raise TelemetryInitError(f"failed to initialize the trace pipeline: {e}") from e

        try:
            metric_exporter = metric_config.build_metric_exporter()
            reader = PeriodicExportingMetricReader(
                metric_exporter,
                export_interval_millis=metric_config.export_interval_ms,
                export_timeout_millis=metric_config.export_timeout_ms,
            )
            meter_provider = MeterProvider(
                resource=resource,
                metric_readers=[reader, *extra_metric_readers],
            )
        except Exception as e:
            tracer_provider.shutdown()
            raise TelemetryInitError(f"failed to initialize the metrics pipeline: {e}") from e

        context = cls(tracer_provider, meter_provider, resource=resource)
        if publish_globals:
            try:
                context.publish_globals()
            except TelemetryInitError:
                context.shutdown()
                raise

        logger.info(
            "Telemetry installed: traces -> %s, metrics -> %s",
            trace_config.endpoint,
            metric_config.endpoint,
        )
        return context

    def publish_globals(self) -> None:
        """
        Install this context as OpenTelemetry's process-wide globals.

        Raises:
            TelemetryAlreadyInstalledError: if another context was published before
        """
        global _published
        with _publish_lock:
            if _published is self:
                return
            if _published is not None:
                raise TelemetryAlreadyInstalledError(
                    "a telemetry context is already installed for this process"
                )
            propagate.set_global_textmap(self.propagator)
            trace.set_tracer_provider(self.tracer_provider)
            metrics.set_meter_provider(self.meter_provider)
            _published = self
        logger.debug("Telemetry providers published as process globals")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def tracer(self, name: str) -> trace.Tracer:
        return self.tracer_provider.get_tracer(name, __version__)

    def meter(self, name: str) -> metrics.Meter:
        return self.meter_provider.get_meter(name, __version__)

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_result is not None

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self, timeout_millis: int = DEFAULT_SHUTDOWN_TIMEOUT_MS) -> bool:
        """
        Flush then close both pipelines, traces first.

        Must run after the HTTP front stopped accepting requests. Safe to call
        more than once; later calls return the first outcome.

        Returns:
            True if both pipelines flushed within the timeout
        """
        with self._shutdown_lock:
            if self._shutdown_result is not None:
                return self._shutdown_result

            traces_flushed = self.tracer_provider.force_flush(timeout_millis)
            self.tracer_provider.shutdown()

            metrics_flushed = self.meter_provider.force_flush(timeout_millis)
            self.meter_provider.shutdown(timeout_millis)

            self._shutdown_result = bool(traces_flushed and metrics_flushed)

        if self._shutdown_result:
            logger.info("Telemetry flushed and shut down")
        else:
            logger.warning(
                "Telemetry shut down with unflushed data (traces=%s, metrics=%s)",
                traces_flushed,
                metrics_flushed,
            )
        return self._shutdown_result
