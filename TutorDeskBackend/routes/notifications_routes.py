from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from TutorDeskBackend.app_context import AppContext, get_app_context
from TutorDeskBackend.services.notifications_service import DEFAULT_LIMIT

router = APIRouter(prefix="/api/notifications")


@router.get("")
def list_notifications(request: Request, limit: int = DEFAULT_LIMIT, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.notifications_service.list_notifications(limit)}


@router.post("/seen-all")
def mark_all_seen(request: Request, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.notifications_service.mark_all_seen()}


@router.post("/{notification_id}/seen")
def mark_seen(request: Request, notification_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.notifications_service.mark_seen(notification_id)}
