"""
Tests for the Request Status State Machine.

Transitions are checked, but only enforced when asked to.
"""
import pytest

from shared.domain.request_status import (
    OfferStatus,
    RequestStateMachine,
    RequestStatus,
    StatusTransitionError,
    parse_request_status,
    validate_status_transition,
)
from shared.exceptions import ValidationError


class TestRequestStatus:
    """Test RequestStatus enum."""

    def test_status_values(self):
        """Test that all expected statuses exist."""
        assert [s.value for s in RequestStatus] == [
            "new",
            "pending",
            "pending_payment",
            "ongoing",
            "tutor_completed",
            "completed",
            "cancelled",
        ]
        assert {s.value for s in OfferStatus} == {"pending", "accepted", "rejected"}


class TestRequestStateMachine:
    """Test state machine transition logic."""

    def test_same_status_always_allowed(self):
        for status in RequestStatus:
            assert RequestStateMachine.can_transition(status, status)

    def test_happy_path(self):
        path = [
            RequestStatus.NEW,
            RequestStatus.PENDING,
            RequestStatus.PENDING_PAYMENT,
            RequestStatus.ONGOING,
            RequestStatus.TUTOR_COMPLETED,
            RequestStatus.COMPLETED,
        ]
        for current, nxt in zip(path, path[1:]):
            assert RequestStateMachine.can_transition(current, nxt)

    def test_cancel_from_every_open_status(self):
        for status in RequestStatus:
            if RequestStateMachine.is_terminal(status):
                continue
            assert RequestStateMachine.can_transition(status, RequestStatus.CANCELLED)

    def test_terminal_statuses(self):
        assert RequestStateMachine.is_terminal(RequestStatus.COMPLETED)
        assert RequestStateMachine.is_terminal(RequestStatus.CANCELLED)
        assert not RequestStateMachine.is_terminal(RequestStatus.ONGOING)

    def test_invalid_transition_not_enforced_by_default(self):
        result = RequestStateMachine.transition(RequestStatus.COMPLETED, RequestStatus.NEW)
        assert result == RequestStatus.NEW

    def test_invalid_transition_enforced(self):
        with pytest.raises(StatusTransitionError) as exc_info:
            RequestStateMachine.transition(RequestStatus.COMPLETED, RequestStatus.NEW, enforce=True)
        assert exc_info.value.from_status == RequestStatus.COMPLETED
        assert exc_info.value.status_code == 400


class TestValidateStatusTransition:
    """String-level helper used by the request actions."""

    def test_normalizes_case(self):
        assert validate_status_transition("new", " ONGOING ") == "ongoing"

    def test_missing_current_is_new(self):
        assert validate_status_transition(None, "pending_payment", enforce=True) == "pending_payment"

    def test_unknown_target_rejected(self):
        with pytest.raises(ValidationError):
            validate_status_transition("new", "archived")

    def test_unknown_current_allowed(self):
        assert validate_status_transition("legacy_state", "cancelled", enforce=True) == "cancelled"

    def test_enforced_terminal(self):
        with pytest.raises(StatusTransitionError):
            validate_status_transition("cancelled", "ongoing", request_id="r1", enforce=True)

    def test_parse_request_status(self):
        assert parse_request_status("Pending_Payment") is RequestStatus.PENDING_PAYMENT
        with pytest.raises(ValidationError):
            parse_request_status("")
