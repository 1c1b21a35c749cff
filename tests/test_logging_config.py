"""Tests for trace-correlated JSON logging."""

import json
import logging

from opentelemetry.sdk.trace import TracerProvider

from fibonacci_server.observability.logging_config import (
    CorrelationJsonFormatter,
    get_logger,
    get_trace_context,
)


def _record(message="Request served"):
    return logging.LogRecord(
        name="fibonacci_server.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


def _formatter():
    return CorrelationJsonFormatter(
        fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
        rename_fields={"message": "msg"},
        service_name="fibonacci-test",
    )


def test_formats_json_without_active_span():
    payload = json.loads(_formatter().format(_record()))

    assert payload["msg"] == "Request served"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "fibonacci_server.test"
    assert payload["service"] == "fibonacci-test"
    assert "trace_id" not in payload


def test_injects_active_trace_context():
    tracer = TracerProvider().get_tracer("test")
    with tracer.start_as_current_span("fibonacci") as span:
        payload = json.loads(_formatter().format(_record()))
        context = span.get_span_context()

    assert payload["trace_id"] == format(context.trace_id, "032x")
    assert payload["span_id"] == format(context.span_id, "016x")


def test_trace_context_empty_outside_span():
    assert get_trace_context() == {}


def test_get_logger_binds_context():
    adapter = get_logger("fibonacci_server.test", route="/fibonacci")
    assert adapter.extra == {"route": "/fibonacci"}
