"""
Tests for the tutor offer lifecycle.
"""
from datetime import datetime, timezone

import pytest

from TutorDeskBackend.models import TutorOfferCreate, parse_offer_action, AcceptOfferAction, RejectOfferAction
from shared.exceptions import ConflictError, NotFoundError, ValidationError

OFFERS = "requests/req1/tutor_offers"


@pytest.fixture
def offers(app_context):
    return app_context.offers_service


@pytest.fixture
def seeded(memory_db, sample_request):
    memory_db.seed("requests", "req1", sample_request)
    return memory_db


def _offer(**kw):
    return TutorOfferCreate(**kw)


class TestCreateOffer:
    def test_price_uses_country_multiplier(self, offers, seeded):
        result = offers.create_offer("req1", _offer(tutorId="t1", tutor_price="25"))

        assert result["id"] == "t1"
        stored = seeded.raw(OFFERS, "t1")
        assert stored["price"] == "50.00"
        assert stored["tutor_price"] == "25"
        assert stored["status"] == "pending"

    def test_student_price_override_wins(self, offers, memory_db, sample_request):
        memory_db.seed("requests", "req1", {**sample_request, "student_price": "99"})
        offers.create_offer("req1", _offer(tutorId="t1", tutor_price="25"))
        assert memory_db.raw(OFFERS, "t1")["price"] == "99"

    def test_legacy_price_field(self, offers, memory_db, sample_request):
        memory_db.seed("requests", "req1", {**sample_request, "country": "France"})
        offers.create_offer("req1", _offer(tutorId="t1", price=10))
        assert memory_db.raw(OFFERS, "t1")["price"] == "30.00"

    def test_rebid_overwrites(self, offers, seeded):
        offers.create_offer("req1", _offer(tutorId="t1", tutor_price="25"))
        offers.create_offer("req1", _offer(tutorId="t1", tutor_price="30"))
        assert len(seeded.docs(OFFERS)) == 1
        assert seeded.raw(OFFERS, "t1")["price"] == "60.00"

    def test_required_fields(self, offers, seeded):
        with pytest.raises(ValidationError, match="Tutor ID"):
            offers.create_offer("req1", _offer(tutor_price="25"))
        with pytest.raises(ValidationError, match="Tutor price"):
            offers.create_offer("req1", _offer(tutorId="t1"))

    def test_missing_request(self, offers):
        with pytest.raises(NotFoundError):
            offers.create_offer("nope", _offer(tutorId="t1", tutor_price="25"))

    def test_accepted_offer_cannot_be_rebid(self, offers, seeded):
        seeded.seed(OFFERS, "t1", {"tutor_id": "t1", "status": "accepted"})
        with pytest.raises(ConflictError):
            offers.create_offer("req1", _offer(tutorId="t1", tutor_price="25"))


class TestAcceptOffer:
    @pytest.mark.asyncio
    async def test_accept_attaches_tutor(self, offers, seeded):
        seeded.seed(OFFERS, "t1", {"tutor_id": "t1", "status": "pending", "tutor_price": "20", "price": "40.00"})
        seeded.seed(OFFERS, "t2", {"tutor_id": "t2", "status": "pending", "tutor_price": "25", "price": "50.00"})

        result = await offers.accept_offer("req1", "t1")

        assert result == {"already_accepted": False, "student_price": "40.00", "rejected_offers": 1}
        request = seeded.raw("requests", "req1")
        assert request["tutor_id"] == "t1"
        assert request["request_status"] == "pending_payment"
        assert request["student_price"] == "40.00"
        assert seeded.raw(OFFERS, "t2")["status"] == "rejected"
        assert seeded.batch_calls == [{"path": OFFERS, "ids": ["t2"]}]
        assert len(seeded.docs("request_chats/req1_t1/messages")) == 1

    @pytest.mark.asyncio
    async def test_accept_is_idempotent(self, offers, seeded):
        seeded.seed(OFFERS, "t1", {"tutor_id": "t1", "status": "pending", "tutor_price": "20"})
        await offers.accept_offer("req1", "t1")

        again = await offers.accept_offer("req1", "t1")

        assert again == {"already_accepted": True}
        assert len(seeded.docs("request_chats/req1_t1/messages")) == 1

    @pytest.mark.asyncio
    async def test_accept_missing_offer(self, offers, seeded):
        with pytest.raises(NotFoundError, match="Tutor offer not found"):
            await offers.accept_offer("req1", "ghost")


class TestOfferUpdates:
    def test_reject_with_reason(self, offers, seeded):
        seeded.seed(OFFERS, "t1", {"tutor_id": "t1", "status": "pending"})
        offers.reject_offer("req1", "t1", "Too expensive")
        stored = seeded.raw(OFFERS, "t1")
        assert (stored["status"], stored["cancel_reason"]) == ("rejected", "Too expensive")

    def test_update_status_and_price(self, offers, seeded):
        seeded.seed(OFFERS, "t1", {"tutor_id": "t1", "status": "pending", "price": "40.00"})
        offers.update_offer("req1", "t1", status="Rejected", price="35.00")
        stored = seeded.raw(OFFERS, "t1")
        assert (stored["status"], stored["price"]) == ("rejected", "35.00")

    def test_update_invalid_status(self, offers, seeded):
        seeded.seed(OFFERS, "t1", {"tutor_id": "t1", "status": "pending"})
        with pytest.raises(ValidationError):
            offers.update_offer("req1", "t1", status="withdrawn")

    def test_list_newest_first_and_delete(self, offers, seeded):
        seeded.seed(OFFERS, "old", {"created_at": datetime(2026, 3, 1, tzinfo=timezone.utc)})
        seeded.seed(OFFERS, "new", {"created_at": datetime(2026, 3, 5, tzinfo=timezone.utc)})
        assert [o["id"] for o in offers.list_offers("req1")] == ["new", "old"]

        offers.delete_offer("req1", "old")
        assert [o["id"] for o in offers.list_offers("req1")] == ["new"]

    def test_parse_offer_action(self):
        assert isinstance(parse_offer_action({"action": "accept"}), AcceptOfferAction)
        assert parse_offer_action({"action": "reject", "reason": "x"}) == RejectOfferAction(action="reject", reason="x")
        with pytest.raises(ValidationError):
            parse_offer_action({"action": "withdraw"})
