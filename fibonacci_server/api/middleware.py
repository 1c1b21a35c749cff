"""
Server-span middleware.

Opens the outer SERVER span for every HTTP request, parented on the trace
context carried in the inbound `traceparent`/`tracestate` headers. Handlers
that start their own spans become its children through the active context.
"""

from typing import Any, Awaitable, Callable, Dict

from opentelemetry import trace
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace import SpanKind, Status, StatusCode

Scope = Dict[str, Any]
Message = Dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]


def _header_carrier(scope: Scope) -> Dict[str, str]:
    return {
        name.decode("latin-1"): value.decode("latin-1")
        for name, value in scope.get("headers", [])
    }


class TracingMiddleware:
    """Pure ASGI middleware; a no-op for lifespan and websocket scopes."""

    def __init__(self, app: Any, tracer: trace.Tracer, propagator: TextMapPropagator):
        self.app = app
        self.tracer = tracer
        self.propagator = propagator

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        parent = self.propagator.extract(carrier=_header_carrier(scope))
        method = scope.get("method", "GET")
        path = scope.get("path", "/")

        with self.tracer.start_as_current_span(
            f"{method} {path}",
            context=parent,
            kind=SpanKind.SERVER,
            attributes={
                "http.request.method": method,
                "url.path": path,
                "url.scheme": scope.get("scheme", "http"),
            },
        ) as span:

            async def traced_receive() -> Message:
                message = await receive()
                if message["type"] == "http.disconnect":
                    span.set_attribute("http.disconnect", True)
                return message

            async def traced_send(message: Message) -> None:
                if message["type"] == "http.response.start":
                    status_code = message["status"]
                    span.set_attribute("http.response.status_code", status_code)
                    if status_code >= 500:
                        span.set_status(Status(StatusCode.ERROR))
                await send(message)

            await self.app(scope, traced_receive, traced_send)
