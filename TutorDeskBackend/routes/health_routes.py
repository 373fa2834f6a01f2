from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from TutorDeskBackend.app_context import AppContext, get_app_context
from TutorDeskBackend.metrics import metrics_payload

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    data, content_type = metrics_payload()
    return Response(content=data, media_type=content_type)


@router.get("/health")
def health(ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    return ctx.health_service.basic_health()


@router.get("/health/firestore")
def health_firestore(ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    return ctx.health_service.firestore_health()


@router.get("/health/algolia")
def health_algolia(ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    return ctx.health_service.algolia_health()


@router.get("/health/redis")
def health_redis(ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    return ctx.health_service.redis_health()


@router.get("/health/full")
def health_full(ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    return ctx.health_service.full_health()
