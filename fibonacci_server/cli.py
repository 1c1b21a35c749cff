"""CLI for the Fibonacci server.

Startup sequence for `serve`:
    settings -> logging -> resource -> exporters -> telemetry -> HTTP listener

Any telemetry failure stops the sequence before the listener exists (exit 1).
"""

import logging
from typing import Optional

import typer
import uvicorn
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .api import create_app
from .config import Settings, get_settings
from .exceptions import TelemetryInitError
from .observability.exporters import exporter_configs_from_settings
from .observability.logging_config import setup_logging
from .observability.resource import build_resource, resource_attributes
from .observability.telemetry import TelemetryContext

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="fibonacci-server",
    help="Fibonacci HTTP service instrumented with OpenTelemetry",
    add_completion=False,
)

console = Console()


def install_telemetry(settings: Settings) -> TelemetryContext:
    """
    Build the resource and exporters, then install both telemetry pipelines.

    Raises:
        TelemetryInitError: if any step fails
    """
    resource = build_resource(settings)
    trace_config, metric_config = exporter_configs_from_settings(settings)
    extra_readers = [PrometheusMetricReader()] if settings.prometheus_enabled else []
    return TelemetryContext.install(
        resource,
        trace_config,
        metric_config,
        extra_metric_readers=extra_readers,
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Bind address (default: FIBONACCI_API_HOST or 0.0.0.0)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Bind port (default: FIBONACCI_API_PORT or 8080)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override the configured log level",
    ),
) -> None:
    """Install telemetry and serve GET /fibonacci."""
    settings = get_settings()
    setup_logging(
        level=log_level or settings.log_level,
        service_name=settings.service_name,
        json_output=settings.log_json,
    )

    try:
        telemetry = install_telemetry(settings)
    except TelemetryInitError as e:
        logger.critical("Telemetry initialization failed: %s", e, extra=e.to_dict())
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    api = create_app(telemetry, settings)
    try:
        uvicorn.run(
            api,
            host=host or settings.api_host,
            port=port or settings.api_port,
            log_config=None,
            lifespan="on",
        )
    finally:
        # No-op when the lifespan exit already flushed
        telemetry.shutdown(timeout_millis=settings.shutdown_timeout_ms)


@app.command()
def resource() -> None:
    """Show the resource attributes that would be attached to exported telemetry."""
    settings = get_settings()
    attributes = resource_attributes(build_resource(settings))

    table = Table(title="Telemetry Resource")
    table.add_column("Attribute", style="cyan")
    table.add_column("Value")
    for key, value in attributes.items():
        table.add_row(key, str(value))
    console.print(table)


def main() -> None:
    """Entry point for the fibonacci-server console script."""
    app()


if __name__ == "__main__":
    main()
