"""
FastAPI application factory.

The telemetry context is installed BEFORE the app is created and handed in, so
no request can ever run without a tracer and meter. The lifespan exit runs
after uvicorn stopped accepting connections and drained in-flight requests:
that is where both telemetry pipelines are flushed and closed.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI

from .. import __version__
from ..config import Settings, get_settings
from ..handler import FibonacciHandler
from ..observability.telemetry import TelemetryContext
from .middleware import TracingMiddleware
from .routes import router

logger = logging.getLogger(__name__)

HTTP_TRACER_NAME = "fibonacci_server.http"


def create_app(telemetry: TelemetryContext, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the HTTP front around an installed telemetry context.

    Args:
        telemetry: Installed (or test) telemetry context
        settings: Application settings; defaults to get_settings()

    Returns:
        The FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        logger.info("Fibonacci server started", extra={"app_env": settings.app_env})
        yield
        logger.info("Fibonacci server stopping, flushing telemetry")
        telemetry.shutdown(timeout_millis=settings.shutdown_timeout_ms)

    app = FastAPI(
        title="Fibonacci Server",
        description="Computes Fibonacci numbers with OpenTelemetry traces and metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.telemetry = telemetry
    app.state.handler = FibonacciHandler(telemetry)

    app.add_middleware(
        TracingMiddleware,
        tracer=telemetry.tracer(HTTP_TRACER_NAME),
        propagator=telemetry.propagator,
    )
    app.include_router(router)
    return app
