"""
Admin actions on tutoring requests (POST /api/requests/{id}/actions).

Each action is a validated model from `TutorDeskBackend.models`; the service
looks the request up once, applies the action and reports the outcome in the
`tutordesk_request_actions_total` counter.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.metrics import request_actions_total
from TutorDeskBackend.models import (
    AssignStudentAction,
    AssignTutorAction,
    CancelAction,
    ChangeStatusAction,
    CompleteAction,
    SetMinPriceAction,
    SetStudentPriceAction,
    SetTutorPriceAction,
)
from TutorDeskBackend.services.chat_service import ChatService
from TutorDeskBackend.services.offers_service import REQUESTS, OffersService, offers_path
from TutorDeskBackend.utils.time_utils import utc_now
from shared.domain.pricing import UNSET, resolve_effective_price
from shared.domain.request_status import OfferStatus, RequestStatus, validate_status_transition
from shared.exceptions import NotFoundError, TutorDeskError

logger = logging.getLogger("tutordesk_backend.request_actions")

DEFAULT_CANCEL_REASON = "Cancelled by admin"


def new_invoice_id() -> str:
    """`INV-` followed by 10 upper-case hex characters."""
    return "INV-" + secrets.token_hex(5).upper()


def _clean(value: Any) -> str:
    return str(value or "").strip()


class RequestActionsService:
    def __init__(
        self,
        db: FirestoreStore,
        offers: OffersService,
        chat: ChatService,
        *,
        enforce_transitions: bool = False,
    ):
        self.db = db
        self.offers = offers
        self.chat = chat
        self.enforce_transitions = enforce_transitions
        self._handlers = {
            "change_status": self.change_status,
            "assign_tutor": self.assign_tutor,
            "assign_student": self.assign_student,
            "set_tutor_price": self.set_tutor_price,
            "set_student_price": self.set_student_price,
            "set_min_price": self.set_min_price,
            "cancel": self.cancel,
            "complete": self.complete,
        }

    async def perform(self, request_id: str, action) -> Dict[str, Any]:
        request = self.db.get(REQUESTS, request_id)
        if request is None:
            request_actions_total.labels(action=action.action, outcome="not_found").inc()
            raise NotFoundError("Request not found")

        try:
            result = await self._handlers[action.action](request, action)
        except TutorDeskError:
            request_actions_total.labels(action=action.action, outcome="rejected").inc()
            raise
        except Exception:
            request_actions_total.labels(action=action.action, outcome="error").inc()
            raise

        request_actions_total.labels(action=action.action, outcome="ok").inc()
        logger.info("request_action_applied", extra={"entity_id": request_id, "action": action.action})
        return result or {}

    def _check_transition(self, request: Dict[str, Any], new_status: str) -> str:
        return validate_status_transition(
            request.get("request_status"),
            new_status,
            request_id=request["id"],
            enforce=self.enforce_transitions,
        )

    # ------------------------------------------------------------------
    # change_status
    # ------------------------------------------------------------------

    def _accepted_offer(self, request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        path = offers_path(request["id"])
        tutor_id = _clean(request.get("tutor_id"))
        if tutor_id:
            offer = self.db.get(path, tutor_id)
            if offer and offer.get("status") == OfferStatus.ACCEPTED.value:
                return offer
        found = self.db.query(path, where=[("status", "==", OfferStatus.ACCEPTED.value)], limit=1)
        return found[0] if found else None

    async def change_status(self, request: Dict[str, Any], action: ChangeStatusAction) -> Dict[str, Any]:
        status = self._check_transition(request, action.status)
        now = utc_now()
        update: Dict[str, Any] = {"request_status": status, "updated_at": now}
        if action.reason:
            update["cancel_reason"] = action.reason

        result: Dict[str, Any] = {"status": status}
        chat_tutor: Optional[str] = None
        invoice_amount: Optional[str] = None

        if status == RequestStatus.CANCELLED.value:
            update["cancelled"] = "1"
            update["cancel_reason"] = action.reason or DEFAULT_CANCEL_REASON
        elif status == RequestStatus.COMPLETED.value:
            update["completed"] = "1"
            update["accepted"] = "1"
        elif status == RequestStatus.ONGOING.value:
            update["accepted"] = "1"
            if _clean(request.get("request_status")).lower() != RequestStatus.ONGOING.value:
                offer = self._accepted_offer(request)
                invoice_amount = _clean((offer or {}).get("price")) or _clean(request.get("student_price"))
                invoice_id = new_invoice_id()
                update.update(
                    {
                        "invoice_id": invoice_id,
                        "invoice_amount": invoice_amount,
                        "invoice_created_at": now,
                        "invoice_updated_at": now,
                        "is_paid": "1",
                    }
                )
                result["invoice_id"] = invoice_id
                chat_tutor = _clean((offer or {}).get("tutor_id")) or _clean(request.get("tutor_id")) or None

        self.db.update(REQUESTS, request["id"], update)

        if "invoice_id" in result:
            if chat_tutor:
                await self.chat.post_sequence(
                    request,
                    chat_tutor,
                    [("studentpaid", invoice_amount), ("studentongoing", None)],
                )
            else:
                logger.warning("ongoing_without_tutor_chat_skipped", extra={"entity_id": request["id"]})
        return result

    # ------------------------------------------------------------------
    # assign_tutor
    # ------------------------------------------------------------------

    async def assign_tutor(self, request: Dict[str, Any], action: AssignTutorAction) -> Dict[str, Any]:
        request_id = request["id"]
        new_tutor = _clean(action.tutor_id)
        current_tutor = _clean(request.get("tutor_id"))

        resolved = resolve_effective_price(
            request,
            action.tutor_price,
            student_price=action.student_price if action.provided("student_price") else UNSET,
            min_price=action.min_price if action.provided("min_price") else UNSET,
        )

        now = utc_now()
        update: Dict[str, Any] = {
            "tutor_price": action.tutor_price,
            "student_price": resolved.student_price,
            "updated_at": now,
        }
        if resolved.min_price_changed:
            update["min_price"] = resolved.min_price
        if new_tutor:
            self._check_transition(request, RequestStatus.PENDING_PAYMENT.value)
            update.update(
                {
                    "tutor_id": new_tutor,
                    "tutor_accepted": "1",
                    "accepted": "1",
                    "request_status": RequestStatus.PENDING_PAYMENT.value,
                }
            )
        if new_tutor or (resolved.min_price_changed and resolved.min_price is not None):
            update["had_fixed_price_before_payment"] = True

        self.db.update(REQUESTS, request_id, update)

        tutor_id = new_tutor or current_tutor
        if not tutor_id:
            return {"student_price": resolved.student_price, "tutor_id": None}

        path = offers_path(request_id)
        existing = self.db.get(path, tutor_id)
        if existing:
            self.db.update(
                path,
                tutor_id,
                {
                    "tutor_price": action.tutor_price,
                    "price": resolved.offer_price,
                    "status": OfferStatus.ACCEPTED.value,
                    "updated_at": now,
                },
            )
        else:
            self.db.set(
                path,
                tutor_id,
                {
                    "tutor_id": tutor_id,
                    "request_id": request_id,
                    "tutor_price": action.tutor_price,
                    "price": resolved.offer_price,
                    "status": OfferStatus.ACCEPTED.value,
                    "cancel_reason": None,
                    "created_at": now,
                    "updated_at": now,
                },
            )

        if new_tutor and new_tutor != current_tutor:
            self.offers.reject_sibling_offers(request_id, tutor_id)

        if existing is None or existing.get("status") != OfferStatus.ACCEPTED.value:
            bid_type = "tutorbid" if existing is None else "tutoreditbid"
            await self.chat.post_sequence(
                request,
                tutor_id,
                [(bid_type, resolved.offer_price), ("studentaccept", resolved.student_price)],
            )

        return {"student_price": resolved.student_price, "tutor_id": tutor_id}

    # ------------------------------------------------------------------
    # Field setters
    # ------------------------------------------------------------------

    async def assign_student(self, request: Dict[str, Any], action: AssignStudentAction) -> None:
        update: Dict[str, Any] = {"student_id": action.student_id, "updated_at": utc_now()}
        if action.student_price is not None:
            update["student_price"] = action.student_price
        self.db.update(REQUESTS, request["id"], update)

    async def set_tutor_price(self, request: Dict[str, Any], action: SetTutorPriceAction) -> None:
        self.db.update(REQUESTS, request["id"], {"tutor_price": action.tutor_price, "updated_at": utc_now()})

    async def set_student_price(self, request: Dict[str, Any], action: SetStudentPriceAction) -> None:
        self.db.update(REQUESTS, request["id"], {"student_price": action.student_price, "updated_at": utc_now()})

    async def set_min_price(self, request: Dict[str, Any], action: SetMinPriceAction) -> None:
        min_price = _clean(action.min_price) or None
        update: Dict[str, Any] = {"min_price": min_price, "updated_at": utc_now()}
        if min_price is not None:
            update["had_fixed_price_before_payment"] = True
        self.db.update(REQUESTS, request["id"], update)

    async def cancel(self, request: Dict[str, Any], action: CancelAction) -> None:
        self._check_transition(request, RequestStatus.CANCELLED.value)
        self.db.update(
            REQUESTS,
            request["id"],
            {
                "request_status": RequestStatus.CANCELLED.value,
                "cancelled": "1",
                "cancel_reason": action.reason or DEFAULT_CANCEL_REASON,
                "updated_at": utc_now(),
            },
        )

    async def complete(self, request: Dict[str, Any], action: CompleteAction) -> None:
        self._check_transition(request, RequestStatus.COMPLETED.value)
        update: Dict[str, Any] = {
            "request_status": RequestStatus.COMPLETED.value,
            "completed": "1",
            "accepted": "1",
            "updated_at": utc_now(),
        }
        if action.feedback:
            update["feedback"] = action.feedback
        self.db.update(REQUESTS, request["id"], update)
