from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from TutorDeskBackend.app_context import AppContext, get_app_context
from TutorDeskBackend.models import SearchRequest, VerificationUpdate
from TutorDeskBackend.services.people_service import STUDENTS

router = APIRouter(prefix="/api/students")


@router.post("/search")
def search_students(request: Request, body: SearchRequest, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return ctx.search_service.search_students(body)


@router.get("/{student_id}")
def get_student(request: Request, student_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, "student": ctx.people_service.get_student(student_id)}


@router.delete("/{student_id}")
def delete_student(request: Request, student_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.soft_delete(STUDENTS, student_id)}


@router.post("/{student_id}/verification")
def set_student_verification(
    request: Request,
    student_id: str,
    body: VerificationUpdate,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.people_service.set_student_verified(student_id, body.verified)}
