"""Operations endpoints: health and Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from newsflash.api import envelope
from newsflash.infra.redis import outbox_status
from newsflash.services import Services, get_services
from newsflash.settings import settings

router = APIRouter(tags=["ops"])


@router.get("/health")
async def health(services: Services = Depends(get_services)) -> JSONResponse:
	checks = {"storage": settings.storage_backend, "redis": await outbox_status()}
	body = envelope.ok(
		"Service is healthy",
		{
			"status": "ok",
			"service": settings.service_name,
			"version": settings.git_commit,
			"relationshipModel": services.relationships.model,
			"checks": checks,
		},
	)
	return JSONResponse(body, status_code=status.HTTP_200_OK)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	if not settings.metrics_enabled:
		return Response(status_code=status.HTTP_404_NOT_FOUND)
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
