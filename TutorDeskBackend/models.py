"""
Pydantic models for TutorDeskBackend routes.

Request bodies keep the camelCase keys the web console already sends
(`tutorId`, `tutorPrice`, ...); Python code reads the snake_case attributes.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ValidationError


def _price_to_str(value: Any) -> Any:
    # Prices are stored as strings; the console sometimes sends numbers.
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ----------------------------------------------------------------------------
# Request actions (POST /api/requests/{id}/actions)
# ----------------------------------------------------------------------------


class ChangeStatusAction(_Body):
    action: Literal["change_status"]
    status: str
    reason: Optional[str] = None


class AssignTutorAction(_Body):
    action: Literal["assign_tutor"]
    tutor_id: Optional[str] = Field(None, alias="tutorId")
    tutor_price: str = Field(alias="tutorPrice")
    # Presence matters: omitted keeps the stored override, "" forces recalculation.
    student_price: Optional[str] = Field(None, alias="studentPrice")
    min_price: Optional[str] = Field(None, alias="minPrice")

    coerce_prices = field_validator("tutor_price", "student_price", "min_price", mode="before")(_price_to_str)

    def provided(self, field_name: str) -> bool:
        return field_name in self.model_fields_set


class AssignStudentAction(_Body):
    action: Literal["assign_student"]
    student_id: str = Field(alias="studentId")
    student_price: Optional[str] = Field(None, alias="studentPrice")

    coerce_prices = field_validator("student_price", mode="before")(_price_to_str)


class SetTutorPriceAction(_Body):
    action: Literal["set_tutor_price"]
    tutor_price: str = Field(alias="tutorPrice")

    coerce_prices = field_validator("tutor_price", mode="before")(_price_to_str)


class SetStudentPriceAction(_Body):
    action: Literal["set_student_price"]
    student_price: str = Field(alias="studentPrice")

    coerce_prices = field_validator("student_price", mode="before")(_price_to_str)


class SetMinPriceAction(_Body):
    action: Literal["set_min_price"]
    min_price: Optional[str] = Field(None, alias="minPrice")

    coerce_prices = field_validator("min_price", mode="before")(_price_to_str)


class CancelAction(_Body):
    action: Literal["cancel"]
    reason: Optional[str] = None


class CompleteAction(_Body):
    action: Literal["complete"]
    feedback: Optional[str] = None


RequestAction = Annotated[
    Union[
        ChangeStatusAction,
        AssignTutorAction,
        AssignStudentAction,
        SetTutorPriceAction,
        SetStudentPriceAction,
        SetMinPriceAction,
        CancelAction,
        CompleteAction,
    ],
    Field(discriminator="action"),
]

_REQUEST_ACTION_ADAPTER: TypeAdapter = TypeAdapter(RequestAction)
REQUEST_ACTIONS = frozenset(
    {
        "change_status",
        "assign_tutor",
        "assign_student",
        "set_tutor_price",
        "set_student_price",
        "set_min_price",
        "cancel",
        "complete",
    }
)


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())[1:]) or "body"
    return f"{loc}: {err.get('msg', 'invalid value')}"


def parse_request_action(body: Any):
    """Validate an action body; unknown actions and bad fields raise ValidationError (400)."""
    if not isinstance(body, dict) or body.get("action") not in REQUEST_ACTIONS:
        raise ValidationError("Invalid action")
    try:
        return _REQUEST_ACTION_ADAPTER.validate_python(body)
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e)) from e


# ----------------------------------------------------------------------------
# Tutor offers
# ----------------------------------------------------------------------------


class TutorOfferCreate(_Body):
    tutor_id: Optional[str] = Field(None, alias="tutorId")
    tutor_price: Optional[str] = None
    # Legacy clients send the tutor's price as `price`.
    price: Optional[str] = None

    coerce_prices = field_validator("tutor_price", "price", mode="before")(_price_to_str)


class UpdateOfferAction(_Body):
    action: Literal["update"]
    status: Optional[str] = None
    price: Optional[str] = None

    coerce_prices = field_validator("price", mode="before")(_price_to_str)


class AcceptOfferAction(_Body):
    action: Literal["accept"]


class RejectOfferAction(_Body):
    action: Literal["reject"]
    reason: Optional[str] = None


OfferAction = Annotated[
    Union[UpdateOfferAction, AcceptOfferAction, RejectOfferAction],
    Field(discriminator="action"),
]

_OFFER_ACTION_ADAPTER: TypeAdapter = TypeAdapter(OfferAction)
OFFER_ACTIONS = frozenset({"update", "accept", "reject"})


def parse_offer_action(body: Any):
    if not isinstance(body, dict) or body.get("action") not in OFFER_ACTIONS:
        raise ValidationError("Invalid action")
    try:
        return _OFFER_ACTION_ADAPTER.validate_python(body)
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e)) from e


# ----------------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------------


class SearchRequest(_Body):
    query: Optional[str] = None
    # Extra free-text fields folded into the query (students / tutors).
    email: Optional[str] = None
    nickname: Optional[str] = None
    phone_number: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_phone: Optional[str] = None
    page: Optional[int] = Field(None, description="1-based page number")
    per_page: Optional[int] = Field(None, alias="perPage")
    filters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("filters", mode="before")
    @classmethod
    def default_filters(cls, v: Any) -> Any:
        return v if v is not None else {}


# ----------------------------------------------------------------------------
# Students / tutors
# ----------------------------------------------------------------------------


class TutorRestoreRequest(_Body):
    tutor_id: Optional[str] = Field(None, alias="tutorId")


class VerificationUpdate(_Body):
    verified: bool


class NotificationsToggle(_Body):
    enabled: bool


class CancelledToggle(_Body):
    cancelled: bool


# ----------------------------------------------------------------------------
# Support console
# ----------------------------------------------------------------------------


class SupportRoomMembership(_Body):
    room_id: Optional[str] = None
    admin_id: Optional[str] = None


class SupportMessageCreate(_Body):
    room_id: str
    message: str = ""
    message_type: str = "text"
    sender_id: str
    user_type: Literal["student", "tutor", "admin"] = "admin"
    url: Optional[str] = None
    file_name: Optional[str] = None


class SupportMessageEdit(_Body):
    room_id: str
    message: str
