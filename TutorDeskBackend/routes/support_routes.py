from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from TutorDeskBackend.app_context import AppContext, get_app_context
from TutorDeskBackend.models import SupportMessageCreate, SupportMessageEdit, SupportRoomMembership

router = APIRouter(prefix="/api/support")


@router.post("/admin/join-room")
def join_room(request: Request, body: SupportRoomMembership, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.support_service.join_room(body.room_id, body.admin_id)}


@router.post("/admin/leave-room")
def leave_room(request: Request, body: SupportRoomMembership, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.support_service.leave_room(body.room_id, body.admin_id)}


@router.post("/messages")
def send_message(request: Request, body: SupportMessageCreate, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.support_service.send_message(body)}


@router.put("/messages/{message_id}")
def edit_message(
    request: Request,
    message_id: str,
    body: SupportMessageEdit,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.support_service.edit_message(body.room_id, message_id, body.message)}


@router.delete("/messages/{message_id}")
def delete_message(request: Request, message_id: str, room_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.support_service.delete_message(room_id, message_id)}
