"""
Support console: live chat rooms between app users and admin agents.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.models import SupportMessageCreate
from TutorDeskBackend.utils.time_utils import utc_now
from shared.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("tutordesk_backend.support")

SUPPORT_ROOMS = "support_rooms"

MESSAGE_TYPES = frozenset(
    {
        "text",
        "image",
        "audio",
        "video",
        "file",
        "connectagent",
        "connectagentfailed",
        "connectedagent",
        "agentleft",
        "anythingelse",
    }
)


def messages_path(room_id: str) -> str:
    return f"{SUPPORT_ROOMS}/{room_id}/messages"


def _clean(value: Any) -> str:
    return str(value or "").strip()


class SupportService:
    def __init__(self, db: FirestoreStore):
        self.db = db

    def _room(self, room_id: str) -> Dict[str, Any]:
        room = self.db.get(SUPPORT_ROOMS, room_id)
        if room is None:
            raise NotFoundError("Room not found")
        return room

    def _message(self, room_id: str, message_id: str) -> Dict[str, Any]:
        message = self.db.get(messages_path(room_id), message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def join_room(self, room_id: Optional[str], admin_id: Optional[str]) -> Dict[str, Any]:
        room_id, admin_id = _clean(room_id), _clean(admin_id)
        if not room_id or not admin_id:
            raise ValidationError("Room ID and admin ID are required")
        room = self._room(room_id)
        holder = _clean(room.get("admin_id"))
        if holder and holder != admin_id:
            raise ConflictError("Room is already handled by another admin")
        self.db.update(SUPPORT_ROOMS, room_id, {"admin_id": admin_id, "with_agent": True, "updated_at": utc_now()})
        logger.info("support_room_joined", extra={"entity_id": room_id, "uid": admin_id})
        return {"message": "Successfully joined the room"}

    def leave_room(self, room_id: Optional[str], admin_id: Optional[str]) -> Dict[str, Any]:
        room_id, admin_id = _clean(room_id), _clean(admin_id)
        if not room_id or not admin_id:
            raise ValidationError("Room ID and admin ID are required")
        room = self._room(room_id)
        if _clean(room.get("admin_id")) != admin_id:
            raise ValidationError("Admin is not connected to this room")
        self.db.update(SUPPORT_ROOMS, room_id, {"admin_id": None, "with_agent": False, "updated_at": utc_now()})
        logger.info("support_room_left", extra={"entity_id": room_id, "uid": admin_id})
        return {"message": "Successfully left the room"}

    def _project_last_message(self, room_id: str, message_id: Optional[str], message: Optional[Dict[str, Any]]) -> None:
        now = utc_now()
        if message is None:
            projection: Dict[str, Any] = {
                "last_message_id": None,
                "last_message": None,
                "last_message_type": None,
                "last_message_sender_id": None,
                "last_message_at": None,
            }
        else:
            projection = {
                "last_message_id": message_id,
                "last_message": message.get("message"),
                "last_message_type": message.get("message_type"),
                "last_message_sender_id": message.get("sender_id"),
                "last_message_at": message.get("created_at"),
            }
        projection["updated_at"] = now
        self.db.update(SUPPORT_ROOMS, room_id, projection)

    def send_message(self, body: SupportMessageCreate) -> Dict[str, Any]:
        if body.message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Invalid message type: {body.message_type!r}")
        if body.message_type == "text" and not body.message.strip():
            raise ValidationError("Message text is required")
        self._room(body.room_id)

        now = utc_now()
        message: Dict[str, Any] = {
            "message": body.message,
            "message_type": body.message_type,
            "sender_id": body.sender_id,
            "user_type": body.user_type,
            "room_id": body.room_id,
            "seen": False,
            "url": body.url,
            "file_name": body.file_name,
            "created_at": now,
            "updated_at": now,
        }
        message_id = self.db.add(messages_path(body.room_id), message)
        self._project_last_message(body.room_id, message_id, message)
        return {"id": message_id}

    def edit_message(self, room_id: str, message_id: str, text: str) -> Dict[str, Any]:
        message = self._message(room_id, message_id)
        if message.get("message_type") != "text":
            raise ValidationError("Only text messages can be edited")
        if not text.strip():
            raise ValidationError("Message text is required")
        self.db.update(messages_path(room_id), message_id, {"message": text, "updated_at": utc_now()})

        room = self._room(room_id)
        if room.get("last_message_id") == message_id:
            self._project_last_message(room_id, message_id, {**message, "message": text})
        return {"id": message_id}

    def delete_message(self, room_id: str, message_id: str) -> Dict[str, Any]:
        self._message(room_id, message_id)
        self.db.delete(messages_path(room_id), message_id)

        room = self._room(room_id)
        if room.get("last_message_id") == message_id:
            latest = self.db.query(messages_path(room_id), order_by="created_at", descending=True, limit=1)
            if latest:
                self._project_last_message(room_id, latest[0]["id"], latest[0])
            else:
                self._project_last_message(room_id, None, None)
        return {"id": message_id}
