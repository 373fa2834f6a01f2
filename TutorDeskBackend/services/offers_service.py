"""
Tutor offer lifecycle.

Offers live at `requests/{request_id}/tutor_offers/{tutor_id}`: one document per
tutor, so a re-bid overwrites the previous bid. Accepting an offer attaches the
tutor to the request and rejects the other pending bids.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.models import TutorOfferCreate
from TutorDeskBackend.services.chat_service import ChatService
from TutorDeskBackend.utils.time_utils import utc_now
from shared.domain.pricing import (
    calculate_tutor_offer_price,
    is_student_price_override,
    resolve_effective_price,
)
from shared.domain.request_status import OfferStatus, RequestStatus, validate_status_transition
from shared.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("tutordesk_backend.offers")

REQUESTS = "requests"
SIBLING_REJECTION_REASON = "Another tutor was selected"


def offers_path(request_id: str) -> str:
    return f"{REQUESTS}/{request_id}/tutor_offers"


def _clean(value: Any) -> str:
    return str(value or "").strip()


class OffersService:
    def __init__(self, db: FirestoreStore, chat: ChatService, *, enforce_transitions: bool = False):
        self.db = db
        self.chat = chat
        self.enforce_transitions = enforce_transitions

    def get_request(self, request_id: str) -> Dict[str, Any]:
        request = self.db.get(REQUESTS, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    def get_offer(self, request_id: str, offer_id: str) -> Dict[str, Any]:
        offer = self.db.get(offers_path(request_id), offer_id)
        if offer is None:
            raise NotFoundError("Tutor offer not found")
        return offer

    def list_offers(self, request_id: str) -> List[Dict[str, Any]]:
        return self.db.query(offers_path(request_id), order_by="created_at", descending=True)

    def create_offer(self, request_id: str, body: TutorOfferCreate) -> Dict[str, Any]:
        """Create or overwrite a tutor's pending bid."""
        tutor_id = _clean(body.tutor_id)
        if not tutor_id:
            raise ValidationError("Tutor ID is required")
        tutor_price = _clean(body.tutor_price) or _clean(body.price)
        if not tutor_price:
            raise ValidationError("Tutor price is required")

        request = self.get_request(request_id)
        path = offers_path(request_id)
        existing = self.db.get(path, tutor_id)
        if existing and existing.get("status") == OfferStatus.ACCEPTED.value:
            raise ConflictError("Tutor offer is already accepted")

        stored_student_price = request.get("student_price")
        if is_student_price_override(stored_student_price):
            price = str(stored_student_price)
        else:
            price = calculate_tutor_offer_price(tutor_price, request.get("country"))

        now = utc_now()
        if existing:
            self.db.update(
                path,
                tutor_id,
                {"tutor_price": tutor_price, "price": price, "status": OfferStatus.PENDING.value, "updated_at": now},
            )
        else:
            self.db.set(
                path,
                tutor_id,
                {
                    "tutor_id": tutor_id,
                    "request_id": request_id,
                    "tutor_price": tutor_price,
                    "price": price,
                    "status": OfferStatus.PENDING.value,
                    "cancel_reason": None,
                    "created_at": now,
                    "updated_at": now,
                },
            )
        logger.info("tutor_offer_saved", extra={"entity_id": request_id, "action": "bid", "context": tutor_id})
        return {"id": tutor_id, "message": "Tutor offer created successfully"}

    def update_offer(self, request_id: str, offer_id: str, *, status: Optional[str] = None, price: Optional[str] = None) -> None:
        self.get_offer(request_id, offer_id)
        update: Dict[str, Any] = {"updated_at": utc_now()}
        if status:
            try:
                update["status"] = OfferStatus(status.strip().lower()).value
            except ValueError:
                raise ValidationError(f"Invalid offer status: {status!r}")
        if price:
            update["price"] = price
        self.db.update(offers_path(request_id), offer_id, update)

    def reject_offer(self, request_id: str, offer_id: str, reason: Optional[str] = None) -> None:
        self.get_offer(request_id, offer_id)
        update: Dict[str, Any] = {"status": OfferStatus.REJECTED.value, "updated_at": utc_now()}
        if reason:
            update["cancel_reason"] = reason
        self.db.update(offers_path(request_id), offer_id, update)

    def delete_offer(self, request_id: str, offer_id: str) -> None:
        self.db.delete(offers_path(request_id), offer_id)

    def reject_sibling_offers(self, request_id: str, keep_tutor_id: str) -> int:
        """Reject every pending offer except `keep_tutor_id`'s in one batched write."""
        pending = self.db.query(offers_path(request_id), where=[("status", "==", OfferStatus.PENDING.value)])
        ids = [o["id"] for o in pending if _clean(o.get("tutor_id") or o["id"]) != keep_tutor_id]
        if not ids:
            return 0
        count = self.db.update_many(
            offers_path(request_id),
            ids,
            {"status": OfferStatus.REJECTED.value, "cancel_reason": SIBLING_REJECTION_REASON, "updated_at": utc_now()},
        )
        logger.info("tutor_offers_rejected", extra={"entity_id": request_id, "context": f"count={count}"})
        return count

    async def accept_offer(self, request_id: str, offer_id: str) -> Dict[str, Any]:
        """
        Accept a bid and attach its tutor to the request.

        Accepting the offer that is already accepted for the assigned tutor is a
        no-op: no writes, no second chat message, no second rejection pass.
        """
        offer = self.get_offer(request_id, offer_id)
        request = self.get_request(request_id)
        tutor_id = _clean(offer.get("tutor_id")) or offer_id

        if offer.get("status") == OfferStatus.ACCEPTED.value and _clean(request.get("tutor_id")) == tutor_id:
            logger.info("tutor_offer_already_accepted", extra={"entity_id": request_id, "context": tutor_id})
            return {"already_accepted": True}

        validate_status_transition(
            request.get("request_status"),
            RequestStatus.PENDING_PAYMENT.value,
            request_id=request_id,
            enforce=self.enforce_transitions,
        )

        # Legacy offers only carry `price`.
        tutor_price = offer.get("tutor_price") or offer.get("price")
        resolved = resolve_effective_price(request, tutor_price)
        now = utc_now()

        self.db.update(offers_path(request_id), offer_id, {"status": OfferStatus.ACCEPTED.value, "updated_at": now})
        self.db.update(
            REQUESTS,
            request_id,
            {
                "tutor_id": tutor_id,
                "tutor_price": tutor_price,
                "student_price": resolved.student_price,
                "tutor_accepted": "1",
                "accepted": "1",
                "request_status": RequestStatus.PENDING_PAYMENT.value,
                "had_fixed_price_before_payment": True,
                "updated_at": now,
            },
        )
        rejected = self.reject_sibling_offers(request_id, tutor_id)
        await self.chat.post_sequence(request, tutor_id, [("studentaccept", resolved.student_price)])

        logger.info("tutor_offer_accepted", extra={"entity_id": request_id, "action": "accept", "context": tutor_id})
        return {"already_accepted": False, "student_price": resolved.student_price, "rejected_offers": rejected}
