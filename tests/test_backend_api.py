"""
HTTP Integration Tests for TutorDesk Backend API.

Uses the FastAPI TestClient against the in-memory store. Validates
request/response contracts and the JSON error shape.
"""
import json
from unittest.mock import patch
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def seeded(memory_db, sample_request):
    memory_db.seed("requests", "req1", sample_request)
    memory_db.seed("students", "stu1", {"full_name": "Ali Haddad", "email": "ali@example.com", "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc)})
    memory_db.seed("tutors", "t1", {"full_name": "Rami Aoun", "email": "rami@example.com"})
    return memory_db


class TestHealthEndpoints:
    """Test health check and monitoring endpoints."""

    def test_health_basic(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_health_algolia_disabled(self, client: TestClient):
        assert client.get("/health/algolia").json()["skipped"] is True

    def test_health_full_ignores_redis(self, client: TestClient, mock_redis):
        mock_redis.ping.side_effect = ConnectionError("redis down")
        data = client.get("/health/full").json()
        assert data["ok"] is True
        assert data["redis"]["ok"] is False

    def test_metrics_endpoint(self, client: TestClient):
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "tutordesk_http_requests_total" in response.text

    def test_request_id_header(self, client: TestClient):
        response = client.get("/health", headers={"x-request-id": "abc-123"})
        assert response.headers["x-request-id"] == "abc-123"


class TestAdminAuth:
    """Admin routes require the API key (or a Firebase token)."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("post", "/api/requests/search"),
            ("post", "/api/students/search"),
            ("get", "/api/tutors/t1"),
            ("get", "/api/notifications"),
            ("get", "/api/reports/dashboard"),
        ],
    )
    def test_unauthorized(self, client: TestClient, method, path):
        kwargs = {"json": {}} if method == "post" else {}
        response = getattr(client, method)(path, **kwargs)
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "admin_unauthorized"}

    def test_app_user_token_cannot_run_actions(self, client: TestClient, seeded):
        with patch(
            "TutorDeskBackend.services.auth_service.verify_bearer_token",
            return_value={"uid": "student-app-user"},
        ):
            response = client.post(
                "/api/requests/req1/actions",
                json={"action": "cancel", "reason": "nope"},
                headers={"Authorization": "Bearer app-token"},
            )

        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "admin_forbidden"}
        assert seeded.raw("requests", "req1")["request_status"] == "new"

    def test_admin_claim_token_runs_actions(self, client: TestClient, seeded):
        with patch(
            "TutorDeskBackend.services.auth_service.verify_bearer_token",
            return_value={"uid": "console-admin", "admin": True},
        ):
            response = client.post(
                "/api/requests/req1/actions",
                json={"action": "cancel", "reason": "duplicate"},
                headers={"Authorization": "Bearer admin-token"},
            )

        assert response.status_code == 200
        assert seeded.raw("requests", "req1")["request_status"] == "cancelled"


class TestRequestEndpoints:
    def test_action_and_offers(self, client: TestClient, admin_headers, seeded):
        response = client.post(
            "/api/requests/req1/actions",
            json={"action": "assign_tutor", "tutorId": "t1", "tutorPrice": 20},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Action completed successfully"
        assert body["student_price"] == "40.00"

        offers = client.get("/api/requests/req1/tutor-offers", headers=admin_headers).json()["offers"]
        assert [(o["id"], o["status"]) for o in offers] == [("t1", "accepted")]

    def test_unknown_action(self, client: TestClient, admin_headers, seeded):
        response = client.post("/api/requests/req1/actions", json={"action": "archive"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid action"}

    def test_missing_request(self, client: TestClient, admin_headers):
        response = client.post("/api/requests/nope/actions", json={"action": "cancel"}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Request not found"}

    def test_offers_of_missing_request(self, client: TestClient, admin_headers):
        assert client.get("/api/requests/nope/tutor-offers", headers=admin_headers).status_code == 404

    def test_offer_lifecycle(self, client: TestClient, admin_headers, seeded):
        created = client.post("/api/requests/req1/tutor-offers", json={"tutorId": "t2", "tutor_price": "25"}, headers=admin_headers)
        assert created.json() == {"success": True, "id": "t2", "message": "Tutor offer created successfully"}

        rejected = client.put("/api/requests/req1/tutor-offers/t2", json={"action": "reject", "reason": "Late"}, headers=admin_headers)
        assert rejected.json()["message"] == "Tutor offer rejected"

        accepted = client.put("/api/requests/req1/tutor-offers/t2", json={"action": "accept"}, headers=admin_headers)
        assert accepted.json()["message"] == "Tutor offer accepted"
        assert seeded.raw("requests", "req1")["tutor_id"] == "t2"

        deleted = client.delete("/api/requests/req1/tutor-offers/t2", headers=admin_headers)
        assert deleted.json()["message"] == "Tutor offer deleted"

    def test_report(self, client: TestClient, admin_headers, memory_db, sample_request):
        memory_db.seed("requests", "req1", {**sample_request, "issue_reported": "1", "report": "Tutor did not show up"})
        response = client.get("/api/requests/req1/report", headers=admin_headers)
        assert response.json() == {"success": True, "report": "Tutor did not show up"}

    def test_report_without_issue(self, client: TestClient, admin_headers, seeded):
        assert client.get("/api/requests/req1/report", headers=admin_headers).status_code == 404

    def test_search_validation_error(self, client: TestClient, admin_headers):
        response = client.post("/api/requests/search", json={"page": "first"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("page:")


class TestPeopleEndpoints:
    def test_student_profile(self, client: TestClient, admin_headers, seeded):
        body = client.get("/api/students/stu1", headers=admin_headers).json()
        assert body["success"] is True
        assert body["student"]["sign_in_method"] == "manual"

    def test_tutor_delete_and_restore(self, client: TestClient, admin_headers, seeded):
        assert client.delete("/api/tutors/t1", headers=admin_headers).json()["success"] is True
        restored = client.post("/api/tutors/restore", json={"tutorId": "t1"}, headers=admin_headers)
        assert restored.json() == {"success": True, "tutorId": "t1", "message": "Tutor restored successfully"}

    def test_restore_conflict_shape(self, client: TestClient, admin_headers, seeded):
        seeded.seed("tutors", "t9", {"email": "rami@example.com", "deleted_at": "2026-01-01"})
        response = client.post("/api/tutors/restore", json={"tutorId": "t9"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["conflictType"] == "email"

    def test_tutor_toggles(self, client: TestClient, admin_headers, seeded):
        client.post("/api/tutors/t1/verification", json={"verified": True}, headers=admin_headers)
        client.post("/api/tutors/t1/cancelled", json={"cancelled": True}, headers=admin_headers)
        tutor = seeded.raw("tutors", "t1")
        assert (tutor["verified"], tutor["cancelled"]) == ("2", "1")


class TestSupportAndNotifications:
    def test_support_room_conflict(self, client: TestClient, admin_headers, memory_db):
        memory_db.seed("support_rooms", "room1", {"admin_id": "admin2"})
        response = client.post("/api/support/admin/join-room", json={"room_id": "room1", "admin_id": "admin1"}, headers=admin_headers)
        assert response.status_code == 409

    def test_notifications(self, client: TestClient, admin_headers, memory_db):
        memory_db.seed("admin_notifications", "n1", {"seen": False, "createdAt": datetime(2026, 1, 1, tzinfo=timezone.utc)})
        assert client.get("/api/notifications", headers=admin_headers).json()["unseen"] == 1
        assert client.post("/api/notifications/seen-all", headers=admin_headers).json()["updated"] == 1


class TestDashboardEndpoint:
    def test_fresh_then_cached(self, client: TestClient, admin_headers, seeded, mock_redis):
        first = client.get("/api/reports/dashboard?year=2026", headers=admin_headers).json()
        assert first["success"] is True
        assert first["cached"] is False
        assert first["data"]["profit"]["year"] == 2026
        assert "cached" not in first["data"]

        stored = mock_redis.r.setex.call_args.args[2]
        mock_redis.r.get.return_value = stored
        second = client.get("/api/reports/dashboard?year=2026", headers=admin_headers).json()
        assert second["cached"] is True
        assert second["data"] == json.loads(stored)
