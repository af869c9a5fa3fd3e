from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import Response


router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics(request: Request) -> Response:
    return request.app.state.exposition.handle(request)
