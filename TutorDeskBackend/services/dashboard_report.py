"""
Dashboard report aggregation.

Pure functions over already-loaded documents so the report can be tested and
cached without Firestore. `ReportService` does the I/O.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from TutorDeskBackend.utils.time_utils import sort_key_desc, to_datetime
from shared.domain.pricing import price_to_float

COMPLETED_STATUSES = ("completed", "tutor_completed")
OPEN_STATUSES = ("new", "pending")

TOP_N = 10
ACCEPTANCE_RATES_MAX = 20
LIST_MAX = 50
DETAIL_REQUESTS_MAX = 5
REPEAT_THRESHOLD = 2

UNKNOWN = "Unknown"
UNTITLED = "Untitled Request"
NO_REASON = "No reason provided"

Doc = Dict[str, Any]


def _not_deleted(docs: Iterable[Doc]) -> List[Doc]:
    return [d for d in docs if d.get("deleted_at") is None]


def _iso(value: Any) -> Optional[str]:
    dt = to_datetime(value)
    return dt.isoformat() if dt else None


def _json_safe(doc: Mapping[str, Any]) -> Doc:
    return {k: (v.isoformat() if isinstance(v, (datetime, date)) else v) for k, v in doc.items()}


def _status(doc: Mapping[str, Any]) -> str:
    return str(doc.get("request_status") or "").strip().lower()


def _profit(doc: Mapping[str, Any]) -> float:
    return price_to_float(doc.get("student_price")) - price_to_float(doc.get("tutor_price"))


@dataclass(frozen=True)
class Windows:
    """Half-open [start, end) ranges the tracking counters use."""

    today_start: datetime
    today_end: datetime
    month_start: datetime
    month_end: datetime
    last_month_start: datetime

    @classmethod
    def around(cls, now: datetime) -> "Windows":
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month = today.replace(day=1)
        next_month = (month + timedelta(days=32)).replace(day=1)
        last_month = (month - timedelta(days=1)).replace(day=1)
        return cls(today, today + timedelta(days=1), month, next_month, last_month)

    def buckets(self, value: Any) -> List[str]:
        dt = to_datetime(value)
        if dt is None:
            return []
        out = []
        if self.today_start <= dt < self.today_end:
            out.append("daily")
        if self.month_start <= dt < self.month_end:
            out.append("monthly")
        if self.last_month_start <= dt < self.month_start:
            out.append("lastMonth")
        return out


class _Names:
    def __init__(self, docs: Iterable[Doc]):
        self._by_id = {d["id"]: d for d in docs}

    def name(self, doc_id: Any) -> str:
        doc = self._by_id.get(doc_id)
        return (doc or {}).get("full_name") or UNKNOWN

    def email(self, doc_id: Any) -> str:
        doc = self._by_id.get(doc_id)
        return (doc or {}).get("email") or "N/A"


def _year_of(value: Any) -> Optional[int]:
    dt = to_datetime(value)
    return dt.year if dt else None


def profit_summary(requests: List[Doc], year: int) -> Dict[str, Any]:
    this_year = 0.0
    last_year = 0.0
    for r in requests:
        if _status(r) not in COMPLETED_STATUSES:
            continue
        created = _year_of(r.get("created_at"))
        if created == year:
            this_year += _profit(r)
        elif created == year - 1:
            last_year += _profit(r)
    return {"thisYear": this_year, "lastYear": last_year, "year": year}


def top_tutors(requests: List[Doc], tutors: _Names) -> List[Doc]:
    stats: Dict[str, Doc] = {}
    for r in requests:
        tutor_id = r.get("tutor_id")
        if not tutor_id or _status(r) not in COMPLETED_STATUSES:
            continue
        s = stats.setdefault(
            tutor_id,
            {
                "tutorId": tutor_id,
                "tutorName": tutors.name(tutor_id),
                "completedCount": 0,
                "totalProfit": 0.0,
                "requestTypes": Counter(),
                "requests": [],
            },
        )
        s["completedCount"] += 1
        s["totalProfit"] += _profit(r)
        s["requestTypes"][r.get("assistance_type") or "unknown"] += 1
        if len(s["requests"]) < DETAIL_REQUESTS_MAX:
            s["requests"].append(_json_safe(r))

    ranked = sorted(stats.values(), key=lambda s: s["completedCount"], reverse=True)[:TOP_N]
    return [{**s, "requestTypes": dict(s["requestTypes"])} for s in ranked]


def top_students(requests: List[Doc], students: _Names) -> List[Doc]:
    stats: Dict[str, Doc] = {}
    for r in requests:
        student_id = r.get("student_id")
        if not student_id:
            continue
        s = stats.setdefault(
            student_id,
            {"studentId": student_id, "studentName": students.name(student_id), "requestCount": 0, "requests": []},
        )
        s["requestCount"] += 1
        if len(s["requests"]) < DETAIL_REQUESTS_MAX:
            s["requests"].append(
                {
                    "id": r["id"],
                    "label": r.get("label"),
                    "assistance_type": r.get("assistance_type"),
                    "created_at": _iso(r.get("created_at")),
                    "request_status": r.get("request_status"),
                }
            )
    return sorted(stats.values(), key=lambda s: s["requestCount"], reverse=True)[:TOP_N]


def _registrations(docs: List[Doc], windows: Windows) -> Dict[str, int]:
    counts = {"daily": 0, "monthly": 0, "lastMonth": 0}
    for d in docs:
        for bucket in windows.buckets(d.get("created_at")):
            counts[bucket] += 1
    return counts


def _active(requests: List[Doc], field: str, windows: Windows) -> Dict[str, int]:
    ids: Dict[str, Set[str]] = {"daily": set(), "monthly": set(), "lastMonth": set()}
    for r in requests:
        who = r.get(field)
        if not who:
            continue
        for bucket in windows.buckets(r.get("created_at")):
            ids[bucket].add(who)
    return {k: len(v) for k, v in ids.items()}


def pending_payment_students(requests: List[Doc], students: _Names) -> List[Doc]:
    grouped: Dict[str, Doc] = {}
    for r in requests:
        student_id = r.get("student_id")
        if not student_id or _status(r) != "pending_payment":
            continue
        s = grouped.setdefault(
            student_id,
            {
                "studentId": student_id,
                "studentName": students.name(student_id),
                "email": students.email(student_id),
                "requestCount": 0,
                "totalAmount": 0.0,
                "requests": [],
            },
        )
        s["requestCount"] += 1
        s["totalAmount"] += price_to_float(r.get("student_price"))
        s["requests"].append(
            {
                "id": r["id"],
                "label": r.get("label") or UNTITLED,
                "student_price": r.get("student_price") or "0",
                "created_at": _iso(r.get("created_at")),
            }
        )
    return sorted(grouped.values(), key=lambda s: s["totalAmount"], reverse=True)


def students_without_bids(requests: List[Doc], students: _Names, with_offers: Set[str]) -> List[Doc]:
    grouped: Dict[str, Doc] = {}
    for r in requests:
        student_id = r.get("student_id")
        if not student_id or _status(r) not in OPEN_STATUSES or r["id"] in with_offers:
            continue
        s = grouped.setdefault(
            student_id,
            {
                "studentId": student_id,
                "studentName": students.name(student_id),
                "email": students.email(student_id),
                "requestCount": 0,
                "requests": [],
            },
        )
        s["requestCount"] += 1
        s["requests"].append({"id": r["id"], "label": r.get("label") or UNTITLED, "created_at": _iso(r.get("created_at"))})
    return sorted(grouped.values(), key=lambda s: s["requestCount"], reverse=True)


def repeat_students(requests: List[Doc], students: _Names) -> List[Doc]:
    grouped: Dict[str, Doc] = {}
    for r in requests:
        student_id = r.get("student_id")
        if not student_id:
            continue
        s = grouped.setdefault(
            student_id,
            {
                "studentId": student_id,
                "studentName": students.name(student_id),
                "email": students.email(student_id),
                "requestCount": 0,
                "totalSpent": 0.0,
            },
        )
        s["requestCount"] += 1
        if _status(r) == "completed" or str(r.get("is_paid") or "") == "1":
            s["totalSpent"] += price_to_float(r.get("student_price"))
    repeat = [s for s in grouped.values() if s["requestCount"] > REPEAT_THRESHOLD]
    return sorted(repeat, key=lambda s: s["requestCount"], reverse=True)


def top_subjects(requests: List[Doc], windows: Windows) -> List[Doc]:
    stats: Dict[str, Doc] = {}
    for r in requests:
        subject = r.get("subject") or UNKNOWN
        s = stats.setdefault(subject, {"subject": subject, "daily": 0, "monthly": 0, "lastMonth": 0})
        for bucket in windows.buckets(r.get("created_at")):
            s[bucket] += 1
    return sorted(stats.values(), key=lambda s: s["monthly"], reverse=True)[:TOP_N]


def acceptance_rates(requests: List[Doc], tutors: _Names) -> List[Doc]:
    """Accepted assignments over all assignments per tutor, highest rate first."""
    stats: Dict[str, Doc] = {}
    for r in requests:
        tutor_id = r.get("tutor_id")
        if not tutor_id:
            continue
        s = stats.setdefault(
            tutor_id,
            {"tutorId": tutor_id, "tutorName": tutors.name(tutor_id), "totalOffers": 0, "acceptedOffers": 0},
        )
        s["totalOffers"] += 1
        if str(r.get("tutor_accepted") or "") == "1":
            s["acceptedOffers"] += 1
    rows = [{**s, "acceptanceRate": round(s["acceptedOffers"] / s["totalOffers"] * 100)} for s in stats.values()]
    return sorted(rows, key=lambda s: s["acceptanceRate"], reverse=True)


def top_rated_tutors(requests: List[Doc], tutors: List[Doc]) -> List[Doc]:
    completed = Counter(r.get("tutor_id") for r in requests if _status(r) in COMPLETED_STATUSES and r.get("tutor_id"))
    rated = []
    for t in tutors:
        rating = price_to_float(t.get("rating"))
        if rating > 0:
            rated.append(
                {
                    "tutorId": t["id"],
                    "tutorName": t.get("full_name") or UNKNOWN,
                    "rating": rating,
                    "requestCount": completed.get(t["id"], 0),
                }
            )
    rated.sort(key=lambda s: (s["rating"], s["requestCount"]), reverse=True)
    return rated[:TOP_N]


def requests_and_sessions(requests: List[Doc], students: _Names, with_offers: Set[str]) -> Dict[str, Any]:
    totals = {"pending": 0, "ongoing": 0, "completed": 0, "cancelled": 0}
    waiting_for_payment = 0
    unmatched: List[Doc] = []
    cancelled: List[Doc] = []

    for r in requests:
        status = _status(r)
        if status in OPEN_STATUSES:
            totals["pending"] += 1
        elif status == "ongoing":
            totals["ongoing"] += 1
        elif status in COMPLETED_STATUSES:
            totals["completed"] += 1
        elif status == "cancelled":
            totals["cancelled"] += 1
            cancelled.append(
                {
                    "id": r["id"],
                    "label": r.get("label") or UNTITLED,
                    "studentId": r.get("student_id"),
                    "studentName": students.name(r.get("student_id")),
                    "cancelReason": r.get("cancel_reason") or NO_REASON,
                    "created_at": _iso(r.get("created_at")),
                    "cancelled_at": _iso(r.get("updated_at") or r.get("created_at")),
                }
            )
        elif status == "pending_payment":
            waiting_for_payment += 1

        if status in OPEN_STATUSES and not r.get("tutor_id") and r["id"] not in with_offers:
            unmatched.append(
                {
                    "id": r["id"],
                    "label": r.get("label") or UNTITLED,
                    "studentId": r.get("student_id"),
                    "studentName": students.name(r.get("student_id")),
                    "subject": r.get("subject") or UNKNOWN,
                    "created_at": _iso(r.get("created_at")),
                    "request_status": status.upper(),
                }
            )

    cancelled.sort(key=lambda c: sort_key_desc(c["cancelled_at"]))
    unmatched.sort(key=lambda u: sort_key_desc(u["created_at"]))

    reasons = Counter(c["cancelReason"] for c in cancelled)
    total = len(requests)
    return {
        "totalByStatus": totals,
        "unmatchedRequests": {"count": len(unmatched), "requests": unmatched[:LIST_MAX]},
        "waitingForPayment": waiting_for_payment,
        "completionRate": round(totals["completed"] / total * 100) if total else 0,
        "canceledSessions": {
            "count": totals["cancelled"],
            "requests": cancelled[:LIST_MAX],
            "reasons": [{"reason": reason, "count": count} for reason, count in reasons.most_common(TOP_N)],
        },
    }


def build_dashboard_report(
    requests: Iterable[Doc],
    students: Iterable[Doc],
    tutors: Iterable[Doc],
    *,
    year: int,
    now: datetime,
    requests_with_offers: Optional[Set[str]] = None,
) -> Dict[str, Any]:
    """
    Aggregate the admin dashboard.

    `requests_with_offers` holds the ids of new/pending requests that have at
    least one tutor offer; every other open request counts as unbid.
    Deleted documents are excluded everywhere. Timestamps are returned as ISO
    strings so the payload can be cached as JSON.
    """
    requests = _not_deleted(requests)
    students = _not_deleted(students)
    tutors = _not_deleted(tutors)
    with_offers = set(requests_with_offers or ())
    windows = Windows.around(now)
    student_names = _Names(students)
    tutor_names = _Names(tutors)

    pending_payment = pending_payment_students(requests, student_names)
    no_bids = students_without_bids(requests, student_names, with_offers)
    repeat = repeat_students(requests, student_names)

    return {
        "profit": profit_summary(requests, year),
        "visitors": {"today": 0, "thisWeek": 0, "thisMonth": 0, "total": 0},
        "topTutors": top_tutors(requests, tutor_names),
        "topStudents": top_students(requests, student_names),
        "studentTracking": {
            "newRegistrations": _registrations(students, windows),
            "activeStudents": _active(requests, "student_id", windows),
            "pendingPayment": {"count": len(pending_payment), "students": pending_payment[:LIST_MAX]},
            "noBids": {"count": len(no_bids), "students": no_bids[:LIST_MAX]},
            "repeatStudents": {"count": len(repeat), "students": repeat[:LIST_MAX]},
            "topSubjects": top_subjects(requests, windows),
            "tutorTracking": {
                "newRegistrations": _registrations(tutors, windows),
                "activeTutors": _active(requests, "tutor_id", windows),
                "acceptanceRates": acceptance_rates(requests, tutor_names)[:ACCEPTANCE_RATES_MAX],
                "topRated": top_rated_tutors(requests, tutors),
            },
            "requestsAndSessions": requests_and_sessions(requests, student_names, with_offers),
        },
    }
