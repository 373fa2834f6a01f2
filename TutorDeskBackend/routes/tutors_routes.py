from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from TutorDeskBackend.app_context import AppContext, get_app_context
from TutorDeskBackend.models import (
    CancelledToggle,
    NotificationsToggle,
    SearchRequest,
    TutorRestoreRequest,
    VerificationUpdate,
)
from TutorDeskBackend.services.people_service import TUTORS

router = APIRouter(prefix="/api/tutors")


@router.post("/search")
def search_tutors(request: Request, body: SearchRequest, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return ctx.search_service.search_tutors(body)


@router.post("/restore")
def restore_tutor(request: Request, body: TutorRestoreRequest, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.restore_tutor(body.tutor_id)}


@router.get("/{tutor_id}")
def get_tutor(request: Request, tutor_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, "tutor": ctx.people_service.get_tutor(tutor_id)}


@router.delete("/{tutor_id}")
def delete_tutor(request: Request, tutor_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.soft_delete(TUTORS, tutor_id)}


@router.post("/{tutor_id}/verification")
def set_tutor_verification(
    request: Request,
    tutor_id: str,
    body: VerificationUpdate,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.set_tutor_verified(tutor_id, body.verified)}


@router.post("/{tutor_id}/notifications")
def set_tutor_notifications(
    request: Request,
    tutor_id: str,
    body: NotificationsToggle,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.set_tutor_notifications(tutor_id, body.enabled)}


@router.post("/{tutor_id}/cancelled")
def set_tutor_cancelled(
    request: Request,
    tutor_id: str,
    body: CancelledToggle,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.set_tutor_cancelled(tutor_id, body.cancelled)}
