"""Operations endpoints providing health checks and metrics."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from errands.obs import health

router = APIRouter(tags=["ops"])


@router.get("/health/live")
async def health_live() -> Dict[str, Any]:
	return await health.liveness()


@router.get("/health/ready")
async def health_ready() -> Response:
	status_code, payload = await health.readiness()
	return JSONResponse(status_code=status_code, content=payload)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
