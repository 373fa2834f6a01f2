"""
Student and tutor profile administration.

Covers profile reads (with sign-in method and OTP phone enrichment), soft
delete, restore with contact conflict checks, and the admin flag toggles.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional, Tuple

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.utils.time_utils import utc_now
from shared.domain.account_flags import primary_sign_in_method, sign_in_methods
from shared.exceptions import ConflictError, NotFoundError, ValidationError
from shared.observability.exception_handler import swallow_exception

logger = logging.getLogger("tutordesk_backend.people")

STUDENTS = "students"
TUTORS = "tutors"
OTP_VERIFICATIONS = "otp_verifications"

# Known national formats first; the generic rule would otherwise always take four digits.
_PHONE_PATTERNS = (
    re.compile(r"^(\+\d{3})(\d{8})$"),  # +961 Lebanon
    re.compile(r"^(\+\d{2})(\d{9,10})$"),  # +44 UK, +33 France, ...
    re.compile(r"^(\+\d{1})(\d{10})$"),  # +1 US/Canada
    re.compile(r"^(\+\d{1,4})(\d+)$"),
)


def split_full_phone(full_phone: str) -> Optional[Tuple[str, str]]:
    """Split "+96181238670" into ("+961", "81238670"); None when it is not an E.164-like id."""
    s = str(full_phone or "").strip()
    if not s.startswith("+"):
        return None
    for pattern in _PHONE_PATTERNS:
        m = pattern.match(s)
        if m:
            return m.group(1), m.group(2)
    # Leave at least seven characters for the subscriber number.
    split_at = max(1, min(5, len(s) - 7))
    return s[:split_at], s[split_at:]


def _deleted(doc: Dict[str, Any]) -> bool:
    value = doc.get("deleted_at")
    return value is not None and str(value).strip() != ""


def _with_sign_in(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(doc)
    out["sign_in_method"] = primary_sign_in_method(doc)
    out["sign_in_methods"] = sign_in_methods(doc)
    return out


class PeopleService:
    def __init__(self, db: FirestoreStore):
        self.db = db

    def _get(self, collection: str, doc_id: str, label: str) -> Dict[str, Any]:
        doc = self.db.get(collection, doc_id)
        if doc is None:
            raise NotFoundError(f"{label} not found")
        return doc

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def phone_from_otp(self, email: str) -> Optional[Dict[str, str]]:
        if not email:
            return None
        found = self.db.query(OTP_VERIFICATIONS, where=[("email", "==", email)], limit=1)
        if not found:
            return None
        record = found[0]
        country_code = str(record.get("countryCode") or "").strip()
        phone_number = str(record.get("phoneNumber") or "").strip()
        if country_code and phone_number:
            return {"country_code": country_code, "phone_number": phone_number}
        parsed = split_full_phone(record["id"])
        if parsed is None:
            return None
        return {"country_code": parsed[0], "phone_number": parsed[1]}

    def enrich_with_otp_phone(self, student: Dict[str, Any]) -> Dict[str, Any]:
        if student.get("phone_number") or not student.get("email"):
            return student
        try:
            phone = self.phone_from_otp(str(student["email"]))
        except Exception as e:
            swallow_exception(e, context="otp_phone_lookup", extra={"entity_id": student.get("id")})
            return student
        if not phone:
            return student
        return {**student, **phone, "phone_from_otp": True}

    def get_student(self, student_id: str) -> Dict[str, Any]:
        student = self._get(STUDENTS, student_id, "Student")
        return _with_sign_in(self.enrich_with_otp_phone(student))

    def get_tutor(self, tutor_id: str) -> Dict[str, Any]:
        return _with_sign_in(self._get(TUTORS, tutor_id, "Tutor"))

    # ------------------------------------------------------------------
    # Soft delete / restore
    # ------------------------------------------------------------------

    def soft_delete(self, collection: str, doc_id: str) -> Dict[str, Any]:
        label = "Student" if collection == STUDENTS else "Tutor"
        self._get(collection, doc_id, label)
        now = utc_now()
        self.db.update(collection, doc_id, {"deleted_at": now, "updated_at": now})
        logger.info("profile_soft_deleted", extra={"collection": collection, "entity_id": doc_id})
        return {"id": doc_id, "message": f"{label} deleted successfully"}

    def _active_tutor_conflict(self, tutor_id: str, where) -> Optional[Dict[str, Any]]:
        # Filtered here: an equality filter on null skips documents that lack `deleted_at`.
        for other in self.db.query(TUTORS, where=where):
            if other["id"] != tutor_id and not _deleted(other):
                return other
        return None

    def restore_tutor(self, tutor_id: Optional[str]) -> Dict[str, Any]:
        tutor_id = str(tutor_id or "").strip()
        if not tutor_id:
            raise ValidationError("Tutor ID is required")
        tutor = self._get(TUTORS, tutor_id, "Tutor")
        if not _deleted(tutor):
            raise ValidationError("Tutor is not deleted")

        if tutor.get("email"):
            other = self._active_tutor_conflict(tutor_id, [("email", "==", tutor["email"])])
            if other:
                raise ConflictError(
                    f"Email already exists for another active tutor ({other.get('full_name') or other.get('email')})",
                    extra={"conflictType": "email"},
                )

        if tutor.get("phone"):
            where = [("phone", "==", tutor["phone"])]
            if tutor.get("phone_country_code"):
                where.append(("phone_country_code", "==", tutor["phone_country_code"]))
            other = self._active_tutor_conflict(tutor_id, where)
            if other:
                raise ConflictError(
                    f"Phone number already exists for another active tutor ({other.get('full_name') or other.get('email')})",
                    extra={"conflictType": "phone"},
                )

        self.db.update(TUTORS, tutor_id, {"deleted_at": None, "updated_at": utc_now()})
        logger.info("tutor_restored", extra={"collection": TUTORS, "entity_id": tutor_id})
        return {"tutorId": tutor_id, "message": "Tutor restored successfully"}

    # ------------------------------------------------------------------
    # Flag toggles (stored as strings, as the mobile apps read them)
    # ------------------------------------------------------------------

    def _set_field(self, collection: str, doc_id: str, field: str, value: str) -> Dict[str, Any]:
        label = "Student" if collection == STUDENTS else "Tutor"
        self._get(collection, doc_id, label)
        self.db.update(collection, doc_id, {field: value, "updated_at": utc_now()})
        return {"id": doc_id, field: value}

    def set_student_verified(self, student_id: str, verified: bool) -> Dict[str, Any]:
        return self._set_field(STUDENTS, student_id, "verified", "1" if verified else "0")

    def set_tutor_verified(self, tutor_id: str, verified: bool) -> Dict[str, Any]:
        return self._set_field(TUTORS, tutor_id, "verified", "2" if verified else "0")

    def set_tutor_notifications(self, tutor_id: str, enabled: bool) -> Dict[str, Any]:
        return self._set_field(TUTORS, tutor_id, "send_notifications", "1" if enabled else "0")

    def set_tutor_cancelled(self, tutor_id: str, cancelled: bool) -> Dict[str, Any]:
        return self._set_field(TUTORS, tutor_id, "cancelled", "1" if cancelled else "0")
