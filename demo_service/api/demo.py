from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from demo_service.observability.request_log import RequestLogger


router = APIRouter()


def _request_logger(request: Request) -> RequestLogger:
    return request.app.state.request_logger


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    _request_logger(request).info("Health check", status="UP")
    return {"status": "UP"}


@router.get("/api/data")
async def data(request: Request) -> dict[str, str]:
    payload = {
        "message": "Observability demo",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
    _request_logger(request).info("Served data", data=payload)
    return payload


@router.get("/api/error")
async def error(request: Request) -> JSONResponse:
    _request_logger(request).error("Simulated error", code="DEMO_ERROR")
    return JSONResponse({"error": "Simulated error"}, status_code=500)
