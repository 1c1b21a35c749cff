"""Configuration settings for the Fibonacci server."""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str, otel_name: Optional[str] = None) -> AliasChoices:
    """Accept FIBONACCI_<NAME> and, where one exists, the standard OTEL_* variable."""
    choices = [f"FIBONACCI_{name}"]
    if otel_name:
        choices.append(otel_name)
    return AliasChoices(*choices)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FIBONACCI_",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_env: str = Field(
        default="development",
        validation_alias=_env("APP_ENV"),
        description="Deployment environment reported as deployment.environment",
    )
    service_name: str = Field(
        default="fibonacci_server",
        validation_alias=_env("SERVICE_NAME"),
        description="service.name resource attribute (OTEL_SERVICE_NAME still wins)",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # OTLP transport, shared by traces and metrics
    otlp_endpoint: str = Field(
        default="https://localhost:4317",
        validation_alias=_env("OTLP_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT"),
    )
    otlp_traces_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=_env("OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"),
    )
    otlp_metrics_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=_env("OTLP_METRICS_ENDPOINT", "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT"),
    )
    otlp_protocol: str = Field(
        default="grpc",
        validation_alias=_env("OTLP_PROTOCOL", "OTEL_EXPORTER_OTLP_PROTOCOL"),
        description="grpc | http/protobuf",
    )
    otlp_insecure: bool = Field(
        default=False,
        validation_alias=_env("OTLP_INSECURE", "OTEL_EXPORTER_OTLP_INSECURE"),
        description="Disable TLS (local collectors only)",
    )
    otlp_headers: Optional[str] = Field(
        default=None,
        validation_alias=_env("OTLP_HEADERS", "OTEL_EXPORTER_OTLP_HEADERS"),
        description="Comma-separated key=value pairs sent with every export",
    )
    otlp_timeout_seconds: float = Field(default=10.0, description="Per-export request timeout")

    # Batch span processor
    bsp_schedule_delay_ms: int = Field(
        default=5000, validation_alias=_env("BSP_SCHEDULE_DELAY_MS", "OTEL_BSP_SCHEDULE_DELAY")
    )
    bsp_max_queue_size: int = Field(
        default=2048, validation_alias=_env("BSP_MAX_QUEUE_SIZE", "OTEL_BSP_MAX_QUEUE_SIZE")
    )
    bsp_max_export_batch_size: int = Field(
        default=512,
        validation_alias=_env("BSP_MAX_EXPORT_BATCH_SIZE", "OTEL_BSP_MAX_EXPORT_BATCH_SIZE"),
    )
    bsp_export_timeout_ms: int = Field(
        default=30000, validation_alias=_env("BSP_EXPORT_TIMEOUT_MS", "OTEL_BSP_EXPORT_TIMEOUT")
    )

    # Periodic metric reader
    metric_export_interval_ms: int = Field(
        default=60000,
        validation_alias=_env("METRIC_EXPORT_INTERVAL_MS", "OTEL_METRIC_EXPORT_INTERVAL"),
    )
    metric_export_timeout_ms: int = Field(
        default=30000,
        validation_alias=_env("METRIC_EXPORT_TIMEOUT_MS", "OTEL_METRIC_EXPORT_TIMEOUT"),
    )

    # Prometheus Settings
    prometheus_enabled: bool = Field(
        default=False, description="Bridge OTel metrics into the /metrics endpoint"
    )

    # Shutdown
    shutdown_timeout_ms: int = Field(
        default=30000, description="Budget for flushing each telemetry pipeline on exit"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
