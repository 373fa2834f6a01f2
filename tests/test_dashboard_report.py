"""
Tests for the admin dashboard aggregation.
"""
from datetime import datetime, timezone
import json

import pytest

from TutorDeskBackend.services.dashboard_report import Windows, build_dashboard_report, profit_summary

NOW = datetime(2026, 5, 15, 12, tzinfo=timezone.utc)


def _at(year, month, day, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


STUDENTS = [
    {"id": "s1", "full_name": "Ali Haddad", "email": "ali@example.com", "created_at": _at(2026, 5, 15, 8)},
    {"id": "s2", "full_name": "Maya Khoury", "email": "maya@example.com", "created_at": _at(2026, 4, 10)},
    {"id": "s3", "full_name": "Gone", "created_at": _at(2026, 5, 15), "deleted_at": _at(2026, 5, 15)},
]

TUTORS = [
    {"id": "t1", "full_name": "Rami Aoun", "rating": "4.5", "created_at": _at(2026, 5, 2)},
    {"id": "t2", "full_name": "Nour Saleh", "rating": 4.5, "created_at": _at(2026, 3, 1)},
    {"id": "t3", "full_name": "Deleted", "rating": "5", "created_at": _at(2026, 5, 3), "deleted_at": _at(2026, 5, 4)},
]

REQUESTS = [
    {"id": "r1", "student_id": "s1", "tutor_id": "t1", "request_status": "completed", "student_price": "60", "tutor_price": "20",
     "assistance_type": "homework", "subject": "Math", "tutor_accepted": "1", "created_at": _at(2026, 5, 15, 10)},
    {"id": "r2", "student_id": "s1", "tutor_id": "t1", "request_status": "tutor_completed", "student_price": "50", "tutor_price": "20",
     "assistance_type": "exam", "subject": "Physics", "tutor_accepted": "1", "created_at": _at(2025, 6, 1)},
    {"id": "r3", "student_id": "s1", "tutor_id": None, "request_status": "new", "label": "Algebra", "subject": "Math",
     "created_at": _at(2026, 5, 10)},
    {"id": "r4", "student_id": "s1", "tutor_id": None, "request_status": "Pending", "subject": "Math", "created_at": _at(2026, 4, 20)},
    {"id": "r5", "student_id": "s2", "tutor_id": "t2", "request_status": "pending_payment", "student_price": "45", "tutor_price": "15",
     "subject": "Chemistry", "created_at": _at(2026, 4, 5)},
    {"id": "r6", "student_id": "s2", "request_status": "cancelled", "cancel_reason": "Found another tutor",
     "created_at": _at(2026, 3, 1), "updated_at": _at(2026, 3, 2)},
    {"id": "r7", "student_id": "s2", "request_status": "cancelled", "created_at": _at(2026, 3, 5), "updated_at": _at(2026, 3, 6)},
    {"id": "r8", "student_id": "s1", "tutor_id": "t1", "request_status": "completed", "student_price": "999", "tutor_price": "1",
     "created_at": _at(2026, 5, 1), "deleted_at": _at(2026, 5, 2)},
]


@pytest.fixture(scope="module")
def report():
    return build_dashboard_report(REQUESTS, STUDENTS, TUTORS, year=2026, now=NOW, requests_with_offers={"r4"})


class TestWindows:
    def test_buckets(self):
        windows = Windows.around(NOW)
        assert windows.buckets(_at(2026, 5, 15, 0)) == ["daily", "monthly"]
        assert windows.buckets(_at(2026, 5, 1, 0)) == ["monthly"]
        assert windows.buckets(_at(2026, 4, 30, 23)) == ["lastMonth"]
        assert windows.buckets(_at(2026, 6, 1, 0)) == []
        assert windows.buckets(None) == []

    def test_year_boundary(self):
        windows = Windows.around(_at(2026, 1, 3))
        assert windows.last_month_start == _at(2025, 12, 1, 0)
        assert windows.month_end == _at(2026, 2, 1, 0)


class TestProfit:
    def test_completed_only_by_year(self, report):
        assert report["profit"] == {"thisYear": 40.0, "lastYear": 30.0, "year": 2026}

    def test_malformed_prices_count_as_zero(self):
        requests = [{"id": "x", "request_status": "completed", "student_price": "abc", "tutor_price": "10", "created_at": _at(2026, 1, 1)}]
        assert profit_summary(requests, 2026)["thisYear"] == -10.0


class TestRankings:
    def test_top_tutors(self, report):
        (top,) = report["topTutors"]
        assert top["tutorId"] == "t1"
        assert top["tutorName"] == "Rami Aoun"
        assert top["completedCount"] == 2
        assert top["totalProfit"] == 70.0
        assert top["requestTypes"] == {"homework": 1, "exam": 1}
        assert [r["id"] for r in top["requests"]] == ["r1", "r2"]

    def test_top_students(self, report):
        assert [(s["studentId"], s["requestCount"]) for s in report["topStudents"]] == [("s1", 4), ("s2", 3)]

    def test_acceptance_rates(self, report):
        rates = report["studentTracking"]["tutorTracking"]["acceptanceRates"]
        assert [(r["tutorId"], r["acceptanceRate"]) for r in rates] == [("t1", 100), ("t2", 0)]

    def test_top_rated_excludes_deleted(self, report):
        rated = report["studentTracking"]["tutorTracking"]["topRated"]
        assert [(t["tutorId"], t["requestCount"]) for t in rated] == [("t1", 2), ("t2", 0)]


class TestTracking:
    def test_registrations_and_activity(self, report):
        tracking = report["studentTracking"]
        assert tracking["newRegistrations"] == {"daily": 1, "monthly": 1, "lastMonth": 1}
        assert tracking["activeStudents"] == {"daily": 1, "monthly": 1, "lastMonth": 2}
        tutors = tracking["tutorTracking"]
        assert tutors["newRegistrations"] == {"daily": 0, "monthly": 1, "lastMonth": 0}
        assert tutors["activeTutors"] == {"daily": 1, "monthly": 1, "lastMonth": 1}

    def test_pending_payment(self, report):
        pending = report["studentTracking"]["pendingPayment"]
        assert pending["count"] == 1
        (student,) = pending["students"]
        assert (student["studentId"], student["email"], student["totalAmount"]) == ("s2", "maya@example.com", 45.0)

    def test_no_bids_skips_requests_with_offers(self, report):
        no_bids = report["studentTracking"]["noBids"]
        assert no_bids["count"] == 1
        assert [r["id"] for r in no_bids["students"][0]["requests"]] == ["r3"]

    def test_repeat_students(self, report):
        repeat = report["studentTracking"]["repeatStudents"]
        assert [(s["studentId"], s["totalSpent"]) for s in repeat["students"]] == [("s1", 60.0), ("s2", 0.0)]

    def test_top_subjects(self, report):
        top = report["studentTracking"]["topSubjects"][0]
        assert top == {"subject": "Math", "daily": 1, "monthly": 2, "lastMonth": 1}


class TestRequestsAndSessions:
    def test_totals(self, report):
        sessions = report["studentTracking"]["requestsAndSessions"]
        assert sessions["totalByStatus"] == {"pending": 2, "ongoing": 0, "completed": 2, "cancelled": 2}
        assert sessions["waitingForPayment"] == 1
        assert sessions["completionRate"] == 29

    def test_unmatched(self, report):
        unmatched = report["studentTracking"]["requestsAndSessions"]["unmatchedRequests"]
        assert unmatched["count"] == 1
        (request,) = unmatched["requests"]
        assert (request["id"], request["request_status"], request["studentName"]) == ("r3", "NEW", "Ali Haddad")

    def test_cancelled_sessions(self, report):
        cancelled = report["studentTracking"]["requestsAndSessions"]["canceledSessions"]
        assert cancelled["count"] == 2
        assert [r["id"] for r in cancelled["requests"]] == ["r7", "r6"]
        assert cancelled["requests"][0]["cancelReason"] == "No reason provided"
        assert {(r["reason"], r["count"]) for r in cancelled["reasons"]} == {
            ("Found another tutor", 1),
            ("No reason provided", 1),
        }


def test_empty_collections():
    report = build_dashboard_report([], [], [], year=2026, now=NOW)
    assert report["profit"] == {"thisYear": 0.0, "lastYear": 0.0, "year": 2026}
    assert report["visitors"] == {"today": 0, "thisWeek": 0, "thisMonth": 0, "total": 0}
    assert report["studentTracking"]["requestsAndSessions"]["completionRate"] == 0


def test_report_is_json_serializable(report):
    json.dumps(report)
