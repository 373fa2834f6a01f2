from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from TutorDeskBackend.app_context import AppContext, get_app_context
from TutorDeskBackend.models import (
    AcceptOfferAction,
    RejectOfferAction,
    SearchRequest,
    TutorOfferCreate,
    parse_offer_action,
    parse_request_action,
)

router = APIRouter(prefix="/api/requests")


@router.post("/search")
def search_requests(request: Request, body: SearchRequest, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return ctx.search_service.search_requests(body)


@router.post("/{request_id}/actions")
async def request_action(
    request: Request,
    request_id: str,
    body: Dict[str, Any] = Body(...),
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    action = parse_request_action(body)
    result = await ctx.request_actions_service.perform(request_id, action)
    return {"success": True, "message": "Action completed successfully", **result}


@router.get("/{request_id}/report")
def request_report(request: Request, request_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.report_service.request_report(request_id)}


@router.get("/{request_id}/tutor-offers")
def list_tutor_offers(request: Request, request_id: str, ctx: AppContext = Depends(get_app_context)) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    ctx.offers_service.get_request(request_id)
    return {"success": True, "offers": ctx.offers_service.list_offers(request_id)}


@router.post("/{request_id}/tutor-offers")
def create_tutor_offer(
    request: Request,
    request_id: str,
    body: TutorOfferCreate,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    return {"success": True, **ctx.offers_service.create_offer(request_id, body)}


@router.put("/{request_id}/tutor-offers/{offer_id}")
async def update_tutor_offer(
    request: Request,
    request_id: str,
    offer_id: str,
    body: Dict[str, Any] = Body(...),
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    action = parse_offer_action(body)
    offers = ctx.offers_service

    if isinstance(action, AcceptOfferAction):
        result = await offers.accept_offer(request_id, offer_id)
        return {"success": True, "message": "Tutor offer accepted", **result}
    if isinstance(action, RejectOfferAction):
        offers.reject_offer(request_id, offer_id, action.reason)
        return {"success": True, "message": "Tutor offer rejected"}
    offers.update_offer(request_id, offer_id, status=action.status, price=action.price)
    return {"success": True, "message": "Tutor offer updated"}


@router.delete("/{request_id}/tutor-offers/{offer_id}")
def delete_tutor_offer(
    request: Request,
    request_id: str,
    offer_id: str,
    ctx: AppContext = Depends(get_app_context),
) -> Dict[str, Any]:
    ctx.auth_service.require_admin(request)
    ctx.offers_service.delete_offer(request_id, offer_id)
    return {"success": True, "message": "Tutor offer deleted"}
