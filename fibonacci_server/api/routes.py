"""API routes for the Fibonacci server."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..handler import FibonacciHandler, FibonacciResult
from ..observability.telemetry import TelemetryContext

router = APIRouter()


# Dependency injection
def get_handler(request: Request) -> FibonacciHandler:
    return request.app.state.handler


def get_telemetry(request: Request) -> TelemetryContext:
    return request.app.state.telemetry


@router.get(
    "/fibonacci",
    response_model=FibonacciResult,
    response_model_exclude_none=True,
)
async def fibonacci(
    n: int = Query(..., description="Index of the Fibonacci number (1-90)"),
    handler: FibonacciHandler = Depends(get_handler),
) -> FibonacciResult:
    """
    Compute fib(n).

    Always 200: out-of-range input yields {"message": ...} instead of {"n", "result"}.
    """
    return handler.handle(n)


@router.get("/health")
async def health(telemetry: TelemetryContext = Depends(get_telemetry)) -> dict:
    """Liveness probe."""
    return {
        "status": "ok",
        "telemetry": "shut_down" if telemetry.is_shut_down else "active",
    }


@router.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics() -> PlainTextResponse:
    """Prometheus scrape endpoint."""
    return PlainTextResponse(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
