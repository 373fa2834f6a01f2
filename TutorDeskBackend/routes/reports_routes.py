from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from TutorDeskBackend.app_context import AppContext, get_app_context

router = APIRouter(prefix="/api/reports")


@router.get("/dashboard")
async def dashboard_report(
    request: Request,
    year: Optional[int] = None,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    data = await ctx.report_service.dashboard(year)
    cached = data.pop("cached", False)
    return {"success": True, "cached": cached, "data": data}
