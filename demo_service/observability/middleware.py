from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable

from starlette.applications import Starlette

from demo_service.observability.metrics import CounterFamily, MetricRegistry
from demo_service.observability.request_log import LogRecord, RequestLogger, Severity


REQUEST_COUNTER = "http_requests_total"
REQUEST_COUNTER_HELP = "Total number of HTTP requests"
REQUEST_LABELS = ("method", "path", "status")

# nginx's "client closed request"; used when a request is cancelled before a
# response was started.
CLIENT_CLOSED_REQUEST = 499
UNMATCHED_ROUTE = "<unmatched>"

_SCOPE_MARKER = "demo_service.instrumented"


@dataclass
class RequestContext:
    method: str
    path: str
    started: float = field(default_factory=perf_counter)

    def elapsed_ms(self) -> float:
        return (perf_counter() - self.started) * 1000.0


def ensure_request_counter(registry: MetricRegistry, name: str = REQUEST_COUNTER) -> CounterFamily:
    """Return the request counter family, registering it on first use."""

    return registry.ensure_family(name, REQUEST_COUNTER_HELP, REQUEST_LABELS)


def route_template(scope: dict[str, Any]) -> str:
    """The matched route's path template, so path parameters don't explode label cardinality."""

    route = scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    return template or UNMATCHED_ROUTE


class InstrumentationMiddleware:
    """Logs, times and counts every HTTP request passing through ``app``.

    Handler exceptions and cancellations are observed (status 500 / 499 unless
    a response had already started) and re-raised unchanged.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        registry: MetricRegistry,
        request_logger: RequestLogger,
        metric_name: str = REQUEST_COUNTER,
    ) -> None:
        self.app = app
        self.registry = registry
        self.request_logger = request_logger
        self.counter = ensure_request_counter(registry, metric_name)

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http" or scope.get(_SCOPE_MARKER):
            await self.app(scope, receive, send)
            return

        scope[_SCOPE_MARKER] = True
        ctx = RequestContext(method=scope.get("method", ""), path=scope.get("path", ""))
        self.request_logger.info("incoming", method=ctx.method, path=ctx.path)

        status_code: int | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except asyncio.CancelledError:
            if status_code is None:
                status_code = CLIENT_CLOSED_REQUEST
            raise
        except Exception:
            if status_code is None:
                status_code = 500
            raise
        finally:
            self._observe(ctx, scope, 500 if status_code is None else status_code)

    def _observe(self, ctx: RequestContext, scope: dict[str, Any], status_code: int) -> None:
        elapsed_ms = ctx.elapsed_ms()
        route = route_template(scope)

        # Update metrics first so they update even if logging misbehaves.
        self.counter.inc((ctx.method, route, str(status_code)))

        severity = Severity.ERROR if status_code >= 500 else Severity.INFO
        self.request_logger.log(
            LogRecord.create(
                severity,
                "completed",
                method=ctx.method,
                path=ctx.path,
                route=route,
                status=status_code,
                duration_ms=round(elapsed_ms, 2),
            )
        )


def instrument(app: Any, *, registry: MetricRegistry, request_logger: RequestLogger) -> Any:
    """Attach request instrumentation to ``app`` exactly once.

    Starlette/FastAPI apps get the middleware registered on their stack; any
    other ASGI callable is wrapped. Calling this again is a no-op.
    """

    ensure_request_counter(registry)
    if isinstance(app, Starlette):
        if not any(m.cls is InstrumentationMiddleware for m in app.user_middleware):
            app.add_middleware(InstrumentationMiddleware, registry=registry, request_logger=request_logger)
        return app

    if isinstance(app, InstrumentationMiddleware):
        return app
    return InstrumentationMiddleware(app, registry=registry, request_logger=request_logger)
