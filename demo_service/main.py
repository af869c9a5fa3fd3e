from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from demo_service.api.demo import router as demo_router
from demo_service.api.metrics import router as metrics_router
from demo_service.config import Settings, get_settings
from demo_service.observability.exposition import ExpositionEndpoint
from demo_service.observability.metrics import MetricRegistry
from demo_service.observability.middleware import instrument
from demo_service.observability.process import register_process_metrics
from demo_service.observability.request_log import RequestLogger
from demo_service.observability.sinks import BufferedSink, ConsoleSink, FileSink, Sink


SINK_ERRORS_COUNTER = "log_sink_errors_total"


def build_request_logger(settings: Settings, registry: MetricRegistry) -> RequestLogger:
    sinks: list[Sink] = [
        BufferedSink(ConsoleSink()),
        BufferedSink(FileSink(settings.log_path)),
    ]
    errors = registry.ensure_family(SINK_ERRORS_COUNTER, "Log records a sink failed to write", ("sink",))
    return RequestLogger(sinks, error_counter=errors)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    _ = request
    structlog.get_logger("http").error("unhandled_exception", error=repr(exc))
    return JSONResponse({"error": "Internal Server Error"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    registry: MetricRegistry | None = None,
    request_logger: RequestLogger | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    registry = registry if registry is not None else MetricRegistry()
    register_process_metrics(registry)
    request_logger = request_logger or build_request_logger(settings, registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        request_logger.info("Service running", port=settings.port)
        yield
        request_logger.close()

    app = FastAPI(title="Observability Demo", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.request_logger = request_logger
    app.state.exposition = ExpositionEndpoint(registry)

    app.include_router(demo_router)
    app.include_router(metrics_router)
    app.add_exception_handler(Exception, _unhandled_error)

    return instrument(app, registry=registry, request_logger=request_logger)
