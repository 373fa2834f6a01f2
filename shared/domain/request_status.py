"""
Request Status State Machine.

Documents the tutoring request lifecycle and checks status transitions.
Admins are allowed to override the lifecycle, so enforcement is opt-in
(`ENFORCE_STATUS_TRANSITIONS`); by default an illegal move is logged and allowed.
"""
from enum import Enum
from typing import Optional, Set
import logging

from shared.exceptions import ValidationError

logger = logging.getLogger(__name__)


class RequestStatus(str, Enum):
    """
    Valid request statuses.

    Lifecycle:
    NEW → PENDING → PENDING_PAYMENT → ONGOING → (TUTOR_COMPLETED →) COMPLETED
    with CANCELLED reachable from every non-terminal status.
    """
    NEW = "new"                          # Just submitted by the student
    PENDING = "pending"                  # Open for tutor bids
    PENDING_PAYMENT = "pending_payment"  # Tutor assigned, waiting for the student to pay
    ONGOING = "ongoing"                  # Paid, session in progress
    TUTOR_COMPLETED = "tutor_completed"  # Tutor marked done, awaiting confirmation
    COMPLETED = "completed"              # Terminal
    CANCELLED = "cancelled"              # Terminal


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class StatusTransitionError(ValidationError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, from_status: RequestStatus, to_status: RequestStatus, message: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        default_message = f"Invalid status transition: {from_status.value} → {to_status.value}"
        super().__init__(message or default_message)


class RequestStateMachine:
    """
    Checks status transitions for tutoring requests.

    Valid transitions:
    - NEW → PENDING, PENDING_PAYMENT, CANCELLED
    - PENDING → PENDING_PAYMENT, CANCELLED
    - PENDING_PAYMENT → ONGOING, CANCELLED
    - ONGOING → TUTOR_COMPLETED, COMPLETED, CANCELLED
    - TUTOR_COMPLETED → COMPLETED, CANCELLED
    - COMPLETED, CANCELLED → (terminal)
    """

    VALID_TRANSITIONS: dict[RequestStatus, Set[RequestStatus]] = {
        RequestStatus.NEW: {
            RequestStatus.PENDING,
            RequestStatus.PENDING_PAYMENT,
            RequestStatus.CANCELLED,
        },
        RequestStatus.PENDING: {
            RequestStatus.PENDING_PAYMENT,
            RequestStatus.CANCELLED,
        },
        RequestStatus.PENDING_PAYMENT: {
            RequestStatus.ONGOING,
            RequestStatus.CANCELLED,
        },
        RequestStatus.ONGOING: {
            RequestStatus.TUTOR_COMPLETED,
            RequestStatus.COMPLETED,
            RequestStatus.CANCELLED,
        },
        RequestStatus.TUTOR_COMPLETED: {
            RequestStatus.COMPLETED,
            RequestStatus.CANCELLED,
        },
        RequestStatus.COMPLETED: set(),
        RequestStatus.CANCELLED: set(),
    }

    @classmethod
    def can_transition(cls, from_status: RequestStatus, to_status: RequestStatus) -> bool:
        if from_status == to_status:
            return True
        return to_status in cls.VALID_TRANSITIONS.get(from_status, set())

    @classmethod
    def transition(
        cls,
        from_status: RequestStatus,
        to_status: RequestStatus,
        request_id: Optional[str] = None,
        enforce: bool = False,
    ) -> RequestStatus:
        """
        Execute a status transition with validation.

        Args:
            from_status: Current status
            to_status: Desired status
            request_id: Request ID for logging
            enforce: If True, raises on invalid transition. If False, logs warning and allows.

        Returns:
            The new status

        Raises:
            StatusTransitionError: If transition is invalid and enforce=True
        """
        if from_status == to_status:
            return to_status

        if not cls.can_transition(from_status, to_status):
            error_msg = f"Invalid transition: {from_status.value} → {to_status.value}"
            if request_id:
                error_msg += f" (request_id={request_id})"

            if enforce:
                logger.error(error_msg)
                raise StatusTransitionError(from_status, to_status)
            logger.warning(f"{error_msg} - allowing admin override")

        logger.info(
            "request_status_transition",
            extra={
                "request_id": request_id,
                "from_status": from_status.value,
                "to_status": to_status.value,
            },
        )
        return to_status

    @classmethod
    def is_terminal(cls, status: RequestStatus) -> bool:
        return len(cls.VALID_TRANSITIONS.get(status, set())) == 0


def parse_request_status(value: Optional[str]) -> RequestStatus:
    """Normalize and parse a status string; raises ValidationError for unknown values."""
    normalized = str(value or "").strip().lower()
    try:
        return RequestStatus(normalized)
    except ValueError:
        raise ValidationError(f"Invalid request status: {value!r}")


def validate_status_transition(
    current: Optional[str],
    new: str,
    request_id: Optional[str] = None,
    enforce: bool = False,
) -> str:
    """
    Validate and execute a status transition from string values.

    A request without a stored status is treated as NEW.

    Raises:
        ValidationError: If `new` is not a known status
        StatusTransitionError: If transition is invalid and enforce=True
    """
    to_status = parse_request_status(new)
    try:
        from_status = RequestStatus(str(current or RequestStatus.NEW.value).strip().lower())
    except ValueError:
        # Legacy/unknown stored values cannot be checked; let the admin move on.
        logger.warning(
            "request_status_unknown_current",
            extra={"request_id": request_id, "current_status": current},
        )
        return to_status.value

    return RequestStateMachine.transition(from_status, to_status, request_id, enforce).value
