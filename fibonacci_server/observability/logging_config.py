"""
Structured Logging Configuration

Every log line is a JSON object carrying the trace_id/span_id of the active
span, so a log line from a slow /fibonacci call links straight to its trace:

    {"timestamp": "...", "level": "INFO", "logger": "fibonacci_server.api.app",
     "msg": "Request served", "trace_id": "0af7...", "span_id": "b7ad..."}

Set log_json=False for human-readable output during local development.
"""

import logging
import sys
from typing import Any, Dict

from opentelemetry import trace
from pythonjsonlogger import jsonlogger


class CorrelationJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that injects trace_id and span_id into every log."""

    def __init__(self, *args: Any, service_name: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.update(get_trace_context())
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["service"] = self.service_name


def get_trace_context() -> Dict[str, str]:
    """
    Trace and span ID of the current span, hex encoded.

    Returns:
        Dict with trace_id and span_id (or empty if no active trace)
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        return {
            "trace_id": format(ctx.trace_id, "032x"),
            "span_id": format(ctx.span_id, "016x"),
        }
    return {}


def setup_logging(
    level: str = "INFO",
    service_name: str = "unknown",
    json_output: bool = True,
) -> None:
    """
    Configure root logging on stdout.

    Replaces any handlers already on the root logger, so calling it twice does
    not duplicate lines.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name to include in JSON logs
        json_output: JSON lines (True) or plain text (False)
    """
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(
            CorrelationJsonFormatter(
                fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
                rename_fields={"message": "msg"},
                service_name=service_name,
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.setLevel(level.upper())
    root_logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root_logger.info("Logging initialized for %s", service_name)


def get_logger(name: str, **context: Any) -> logging.LoggerAdapter:
    """
    Create a logger with pre-bound context.

        request_logger = get_logger(__name__, route="/fibonacci")
        request_logger.info("Request served")  # includes route

    Args:
        name: Logger name (usually __name__)
        **context: Key-value pairs to include in every log from this logger

    Returns:
        LoggerAdapter with pre-bound context
    """
    return logging.LoggerAdapter(logging.getLogger(name), extra=context)
