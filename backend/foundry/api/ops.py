"""Probes and the Prometheus scrape endpoint."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from foundry.obs import health

router = APIRouter(tags=["ops"])


@router.get("/health")
async def liveness_endpoint() -> Dict[str, Any]:
	return await health.liveness()


@router.get("/health/ready")
async def readiness_endpoint() -> JSONResponse:
	status_code, payload = await health.readiness()
	return JSONResponse(payload, status_code=status_code)


@router.get("/metrics", include_in_schema=False)
async def metrics_endpoint() -> Response:
	return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
