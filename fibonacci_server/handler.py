"""
Instrumented Fibonacci request handler.

Per request:
    validate n -> compute -> annotate span -> count -> return result

One span ("fibonacci") and one counter increment per call, on success AND on
error. The span is a child of whatever span is current (normally the server
span opened by TracingMiddleware) and is always ended before returning.

METRIC SEMANTICS:
fibo_counter counts requests ATTEMPTED, not requests succeeded. Both paths add
1 with the same fixed attribute set. Failures are visible on the spans
(status=ERROR).
"""

from typing import Optional

from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, Field

from .exceptions import FibonacciError
from .fibonacci import compute_fibonacci
from .observability.logging_config import get_logger
from .observability.telemetry import TelemetryContext


TRACER_NAME = "fibonacci_server"
METER_NAME = "fibonacci_server_metric"
SPAN_NAME = "fibonacci"
COUNTER_NAME = "fibo_counter"
COUNTER_ATTRIBUTES = {"id": "1234"}

ATTR_N = "fibonacci.n"
ATTR_RESULT = "fibonacci.result"


class FibonacciResult(BaseModel):
    """
    Response body: exactly one of {n, result} or {message}.

    Serialize with exclude_none so the absent variant never appears.
    """

    n: Optional[int] = Field(default=None, description="Requested index")
    result: Optional[int] = Field(default=None, description="fib(n)")
    message: Optional[str] = Field(default=None, description="Why no result was computed")

    @classmethod
    def success(cls, n: int, result: int) -> "FibonacciResult":
        return cls(n=n, result=result)

    @classmethod
    def failure(cls, message: str) -> "FibonacciResult":
        return cls(message=message)

    @property
    def ok(self) -> bool:
        return self.message is None

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class FibonacciHandler:
    """Computes fib(n) inside a span and counts every attempt."""

    def __init__(self, telemetry: TelemetryContext):
        self._tracer = telemetry.tracer(TRACER_NAME)
        meter = telemetry.meter(METER_NAME)
        self._requests = meter.create_counter(
            COUNTER_NAME,
            unit="1",
            description="Fibonacci computations attempted",
        )

    def handle(self, n: int) -> FibonacciResult:
        with self._tracer.start_as_current_span(SPAN_NAME) as span:
            span.set_attribute(ATTR_N, n)
            try:
                result = compute_fibonacci(n)
            except FibonacciError as e:
                span.set_status(Status(StatusCode.ERROR, e.message))
                get_logger(__name__, n=n).info("Rejected fibonacci request: %s", e.message)
                outcome = FibonacciResult.failure(e.message)
            else:
                span.set_attribute(ATTR_RESULT, result)
                outcome = FibonacciResult.success(n, result)
            finally:
                self._requests.add(1, COUNTER_ATTRIBUTES)
        return outcome
