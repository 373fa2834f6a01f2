"""
Admin notification feed (`admin_notifications`).

Notification documents use camelCase timestamps (`createdAt`, `updatedAt`)
because the console writes them directly.
"""
import logging
from typing import Any, Dict

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.utils.time_utils import utc_now
from shared.exceptions import NotFoundError

logger = logging.getLogger("tutordesk_backend.notifications")

ADMIN_NOTIFICATIONS = "admin_notifications"
DEFAULT_LIMIT = 100
MAX_LIMIT = 500


class NotificationsService:
    def __init__(self, db: FirestoreStore):
        self.db = db

    def list_notifications(self, limit: int = DEFAULT_LIMIT) -> Dict[str, Any]:
        limit = max(1, min(MAX_LIMIT, int(limit)))
        items = self.db.query(ADMIN_NOTIFICATIONS, order_by="createdAt", descending=True, limit=limit)
        unseen = sum(1 for n in items if not n.get("seen"))
        return {"notifications": items, "unseen": unseen}

    def mark_seen(self, notification_id: str) -> Dict[str, Any]:
        if self.db.get(ADMIN_NOTIFICATIONS, notification_id) is None:
            raise NotFoundError("Notification not found")
        self.db.update(ADMIN_NOTIFICATIONS, notification_id, {"seen": True, "updatedAt": utc_now()})
        return {"id": notification_id}

    def mark_all_seen(self) -> Dict[str, Any]:
        unseen = self.db.query(ADMIN_NOTIFICATIONS, where=[("seen", "==", False)])
        count = self.db.update_many(ADMIN_NOTIFICATIONS, [n["id"] for n in unseen], {"seen": True, "updatedAt": utc_now()})
        logger.info("notifications_marked_seen", extra={"context": f"count={count}"})
        return {"updated": count}
