"""
Search over students, tutors and requests.

Algolia answers first. For students and requests an empty or failed Algolia
search falls back to a bounded Firestore scan filtered in memory, so records
that have not been indexed yet (or an Algolia outage) never hide matches from
the console. Tutors are Algolia-only.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from TutorDeskBackend.algolia_store import AlgoliaStore
from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.metrics import search_fallbacks_total, search_requests_total
from TutorDeskBackend.models import SearchRequest
from TutorDeskBackend.utils.time_utils import sort_key_desc
from shared.config import BackendConfig
from shared.domain.account_flags import FLAG_SET, compute_account_flags, sign_in_methods
from shared.domain.pricing import parse_leading_number, price_to_float
from shared.exceptions import DataAccessError, ExternalServiceError

logger = logging.getLogger("tutordesk_backend.search")

MAX_PER_PAGE = 100

STUDENT_ATTRIBUTES = [
    "objectID", "id", "full_name", "nickname", "email", "country_code", "phone_number",
    "created_at", "updated_at", "deleted_at", "verified", "is_banned", "facebook_id",
    "google_id", "apple_id", "student_level", "nationality", "country", "city", "majorId",
    "otherMajor", "languages", "rating", "spend_amount", "gender", "send_notifications",
]

TUTOR_ATTRIBUTES = [
    "objectID", "id", "full_name", "nickname", "email", "phone", "phone_country_code",
    "whatsapp_phone", "whatsapp_country_code", "created_at", "updated_at", "deleted_at",
    "verified", "cancelled", "facebook_id", "google_id", "apple_id", "nationality", "country",
    "city", "major", "languages", "subjects", "skills", "experience_years", "rating", "gender",
    "send_notifications", "bio", "profile_image", "degree", "university", "date_of_birth",
]

REQUEST_ATTRIBUTES = [
    "objectID", "id", "label", "description", "assistance_type", "request_status", "subject",
    "sub_subject", "language", "country", "student_price", "tutor_price", "min_price",
    "deadline", "timezone", "created_at", "updated_at", "student_id", "tutor_id", "date",
    "time", "duration", "exam_type", "feedback", "file_links", "file_names", "invoice_amount",
    "invoice_created_at", "invoice_id", "invoice_updated_at", "is_paid", "issue_reported",
    "locked", "notes", "paid", "rating", "receipt_submitted", "saved_by", "state", "version",
    "zoom_information", "zoom_user_id", "tutor_completed_at", "tutor_paid", "tutor_accepted",
    "tutor_meeting_url", "cancel_reason",
]

STUDENT_TEXT_FIELDS = ("id", "full_name", "nickname", "email", "phone_number", "country_code")
REQUEST_TEXT_FIELDS = (
    "id", "label", "description", "subject", "sub_subject", "assistance_type",
    "language", "country", "student_id", "tutor_id",
)

RATED_STATUSES = ("completed", "tutor_completed")
SIGN_IN_PROVIDERS = ("google", "facebook", "apple")

Where = List[Tuple[str, str, Any]]
Predicate = Callable[[Mapping[str, Any]], bool]


# ----------------------------------------------------------------------------
# Filter helpers
# ----------------------------------------------------------------------------


def _quote(value: Any) -> str:
    s = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{s}"'


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(value)


def _flag01(value: Any) -> str:
    return "1" if str(value).strip() == "1" or value is True else "0"


def parse_max_rating(value: Any) -> Optional[float]:
    if not _present(value):
        return None
    return parse_leading_number(value)


def _sign_in_filter(method: Any) -> Optional[str]:
    m = str(method or "").strip().lower()
    if m == "manual":
        return "has_google_id=-1 AND has_facebook_id=-1 AND has_apple_id=-1"
    if m in SIGN_IN_PROVIDERS:
        return f"has_{m}_id={FLAG_SET}"
    return None


def build_student_filters(f: Mapping[str, Any]) -> str:
    parts: List[str] = []
    if f.get("verified") is not None:
        parts.append(f"verified:{_quote(_flag01(f['verified']))}")
        parts.append("is_deleted:-1")
    if f.get("is_banned") is not None:
        parts.append(f"is_banned:{_quote(_flag01(f['is_banned']))}")
    if f.get("deleted") is True:
        parts.append("is_deleted:1")
    sign_in = _sign_in_filter(f.get("sign_in_method"))
    if sign_in:
        parts.append(sign_in)
    for field in ("country", "nationality", "gender"):
        if _present(f.get(field)):
            parts.append(f"{field}:{_quote(f[field])}")
    return " AND ".join(parts)


def build_tutor_filters(f: Mapping[str, Any]) -> str:
    parts: List[str] = []
    if f.get("verified") is not None:
        verified = _as_bool(f["verified"])
        parts.append(f"verified:{_quote('2' if verified else '0')}")
        if not verified:
            parts.append('cancelled:"0"')
            parts.append("is_deleted:-1")
    if f.get("cancelled") is not None:
        parts.append(f"cancelled:{_quote('1' if _as_bool(f['cancelled']) else '0')}")
    if f.get("deleted") is True:
        parts.append('cancelled:"0"')
        parts.append("is_deleted:1")
    sign_in = _sign_in_filter(f.get("sign_in_method"))
    if sign_in:
        parts.append(sign_in)
    for field in ("country", "nationality", "gender"):
        if _present(f.get(field)):
            parts.append(f"{field}:{_quote(f[field])}")
    return " AND ".join(parts)


def build_request_filters(f: Mapping[str, Any]) -> str:
    parts: List[str] = []
    if _present(f.get("assistance_type")):
        parts.append(f"assistance_type:{_quote(f['assistance_type'])}")
    if _present(f.get("max_rating")):
        max_rating = parse_max_rating(f["max_rating"])
        if max_rating is not None:
            parts.append(f"rating <= {max_rating:g}")
        # Ratings only exist on finished requests.
        parts.append('(request_status:"completed" OR request_status:"tutor_completed")')
    elif _present(f.get("request_status")):
        parts.append(f"request_status:{_quote(f['request_status'])}")
    for field in ("country", "language", "subject", "student_id", "tutor_id"):
        if _present(f.get(field)):
            parts.append(f"{field}:{_quote(f[field])}")
    return " AND ".join(parts)


def combined_query(body: SearchRequest, fields: Sequence[str]) -> str:
    terms = [str(getattr(body, name) or "").strip() for name in fields]
    return " ".join(t for t in terms if t)


def paging(body: SearchRequest, default_per_page: int) -> Tuple[int, int]:
    page = max(1, int(body.page or 1))
    per_page = max(1, min(MAX_PER_PAGE, int(body.per_page or default_per_page)))
    return page, per_page


def matches_text(doc: Mapping[str, Any], query: str, fields: Sequence[str]) -> bool:
    """Every whitespace-separated query term must appear in one of `fields` (case-insensitive)."""
    terms = [t.lower() for t in query.split() if t]
    if not terms:
        return True
    haystack = " ".join(str(doc.get(f) or "") for f in fields).lower()
    return all(t in haystack for t in terms)


# ----------------------------------------------------------------------------
# Firestore fallback predicates
# ----------------------------------------------------------------------------


def student_fallback_plan(f: Mapping[str, Any]) -> Tuple[Where, List[Predicate]]:
    where: Where = []
    checks: List[Predicate] = []
    if f.get("verified") is not None:
        where.append(("verified", "==", _flag01(f["verified"])))
        checks.append(lambda d: compute_account_flags(d)["is_deleted"] != FLAG_SET)
    if f.get("is_banned") is not None:
        where.append(("is_banned", "==", _flag01(f["is_banned"])))
    if f.get("deleted") is True:
        checks.append(lambda d: compute_account_flags(d)["is_deleted"] == FLAG_SET)
    method = str(f.get("sign_in_method") or "").strip().lower()
    if method == "manual" or method in SIGN_IN_PROVIDERS:
        checks.append(lambda d, m=method: m in sign_in_methods(d))
    for field in ("country", "nationality", "gender"):
        if _present(f.get(field)):
            where.append((field, "==", f[field]))
    return where, checks


def request_fallback_plan(f: Mapping[str, Any]) -> Tuple[Where, List[Predicate]]:
    where: Where = []
    checks: List[Predicate] = []
    for field in ("assistance_type", "country", "language", "subject", "student_id", "tutor_id"):
        if _present(f.get(field)):
            where.append((field, "==", f[field]))
    if _present(f.get("max_rating")):
        max_rating = parse_max_rating(f["max_rating"])
        checks.append(lambda d: str(d.get("request_status") or "").lower() in RATED_STATUSES)
        if max_rating is not None:
            checks.append(
                lambda d, n=max_rating: _present(d.get("rating")) and price_to_float(d.get("rating")) <= n
            )
    elif _present(f.get("request_status")):
        where.append(("request_status", "==", f["request_status"]))
    return where, checks


def _project(doc: Mapping[str, Any], attributes: Sequence[str]) -> Dict[str, Any]:
    out = {k: doc[k] for k in attributes if k in doc}
    out["objectID"] = doc.get("id")
    return out


def _sorted_hits(hits: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(hits, key=lambda h: sort_key_desc(h.get("created_at")))


class SearchService:
    def __init__(self, db: FirestoreStore, algolia: AlgoliaStore, cfg: BackendConfig):
        self.db = db
        self.algolia = algolia
        self.cfg = cfg

    def _algolia(self, index_name: str, query: str, filters: str, page: int, per_page: int, attributes: List[str]) -> Dict[str, Any]:
        res = self.algolia.search(
            index_name,
            query=query,
            page=page - 1,
            hits_per_page=per_page,
            filters=filters,
            attributes=attributes,
        )
        return {
            "success": True,
            "hits": _sorted_hits(res["hits"]),
            "total": res["nbHits"],
            "page": res["page"] + 1,
            "totalPages": res["nbPages"],
            "perPage": per_page,
            "source": "algolia",
        }

    def _firestore(
        self,
        collection: str,
        *,
        query: str,
        where: Where,
        checks: List[Predicate],
        text_fields: Sequence[str],
        attributes: List[str],
        page: int,
        per_page: int,
    ) -> Dict[str, Any]:
        # TODO: page with start_after cursors instead of a fixed scan window once
        # the console needs results beyond SEARCH_FALLBACK_SCAN_LIMIT.
        docs = self.db.query(
            collection,
            where=where,
            order_by="created_at",
            descending=True,
            limit=self.cfg.search_fallback_scan_limit,
        )
        matched = [
            d for d in docs
            if matches_text(d, query, text_fields) and all(check(d) for check in checks)
        ]
        total = len(matched)
        start = (page - 1) * per_page
        return {
            "success": True,
            "hits": [_project(d, attributes) for d in matched[start : start + per_page]],
            "total": total,
            "page": page,
            "totalPages": math.ceil(total / per_page) if total else 0,
            "perPage": per_page,
            "source": "firestore",
        }

    def _with_fallback(
        self,
        index: str,
        index_name: str,
        collection: str,
        *,
        query: str,
        filters: str,
        where: Where,
        checks: List[Predicate],
        text_fields: Sequence[str],
        attributes: List[str],
        page: int,
        per_page: int,
    ) -> Dict[str, Any]:
        algolia_result: Optional[Dict[str, Any]] = None
        algolia_error: Optional[Exception] = None

        if self.algolia.enabled():
            try:
                algolia_result = self._algolia(index_name, query, filters, page, per_page, attributes)
            except ExternalServiceError as e:
                algolia_error = e
            # A page past the end of a non-empty result set is still Algolia's answer.
            if algolia_result is not None and (algolia_result["hits"] or algolia_result["total"]):
                search_requests_total.labels(index=index, source="algolia").inc()
                return algolia_result
            reason = "error" if algolia_error else "empty"
        else:
            reason = "disabled"

        search_fallbacks_total.labels(index=index, reason=reason).inc()
        logger.info("search_fallback_firestore", extra={"index": index, "source": "firestore", "context": reason})
        try:
            result = self._firestore(
                collection,
                query=query,
                where=where,
                checks=checks,
                text_fields=text_fields,
                attributes=attributes,
                page=page,
                per_page=per_page,
            )
        except DataAccessError as e:
            if algolia_result is not None:
                # Algolia answered (with nothing); report that rather than failing.
                search_requests_total.labels(index=index, source="algolia").inc()
                return algolia_result
            logger.error("search_failed index=%s algolia_error=%s firestore_error=%s", index, algolia_error, e)
            raise ExternalServiceError(str(algolia_error or e) or "Search failed") from e

        search_requests_total.labels(index=index, source="firestore").inc()
        return result

    def search_students(self, body: SearchRequest) -> Dict[str, Any]:
        page, per_page = paging(body, 10)
        f = body.filters
        where, checks = student_fallback_plan(f)
        return self._with_fallback(
            "students",
            self.cfg.algolia_students_index,
            "students",
            query=combined_query(body, ("query", "email", "nickname", "phone_number")),
            filters=build_student_filters(f),
            where=where,
            checks=checks,
            text_fields=STUDENT_TEXT_FIELDS,
            attributes=STUDENT_ATTRIBUTES,
            page=page,
            per_page=per_page,
        )

    def search_requests(self, body: SearchRequest) -> Dict[str, Any]:
        page, per_page = paging(body, 20)
        f = body.filters
        where, checks = request_fallback_plan(f)
        return self._with_fallback(
            "requests",
            self.cfg.algolia_requests_index,
            "requests",
            query=(body.query or "").strip(),
            filters=build_request_filters(f),
            where=where,
            checks=checks,
            text_fields=REQUEST_TEXT_FIELDS,
            attributes=REQUEST_ATTRIBUTES,
            page=page,
            per_page=per_page,
        )

    def search_tutors(self, body: SearchRequest) -> Dict[str, Any]:
        page, per_page = paging(body, 10)
        result = self._algolia(
            self.cfg.algolia_tutors_index,
            combined_query(body, ("query", "email", "nickname", "phone", "whatsapp_phone")),
            build_tutor_filters(body.filters),
            page,
            per_page,
            TUTOR_ATTRIBUTES,
        )
        search_requests_total.labels(index="tutors", source="algolia").inc()
        return result
