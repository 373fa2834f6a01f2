"""
Tests for the admin notification feed.
"""
from datetime import datetime, timezone

import pytest

from shared.exceptions import NotFoundError


@pytest.fixture
def notifications(app_context, memory_db):
    for i, seen in enumerate([True, False, False], start=1):
        memory_db.seed(
            "admin_notifications",
            f"n{i}",
            {"title": f"Notification {i}", "seen": seen, "createdAt": datetime(2026, 5, i, tzinfo=timezone.utc)},
        )
    return app_context.notifications_service


class TestNotifications:
    def test_list_newest_first(self, notifications):
        result = notifications.list_notifications()
        assert [n["id"] for n in result["notifications"]] == ["n3", "n2", "n1"]
        assert result["unseen"] == 2

    def test_limit_is_clamped(self, notifications):
        assert len(notifications.list_notifications(limit=0)["notifications"]) == 1

    def test_mark_seen(self, notifications, memory_db):
        notifications.mark_seen("n2")
        assert memory_db.raw("admin_notifications", "n2")["seen"] is True
        with pytest.raises(NotFoundError):
            notifications.mark_seen("ghost")

    def test_mark_all_seen_batches(self, notifications, memory_db):
        assert notifications.mark_all_seen() == {"updated": 2}
        assert sorted(memory_db.batch_calls[0]["ids"]) == ["n2", "n3"]
        assert notifications.list_notifications()["unseen"] == 0
        assert notifications.mark_all_seen() == {"updated": 0}
