"""
Request chat threads.

Each (request, tutor) pair has a thread at `request_chats/{request_id}_{tutor_id}`
whose parent document mirrors the newest message for list views. Admin actions
post system messages into the thread on the participants' behalf so the
student and tutor apps show the same history as the console.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from TutorDeskBackend.firestore_store import FirestoreStore
from TutorDeskBackend.utils.time_utils import utc_now

logger = logging.getLogger("tutordesk_backend.chat")

REQUEST_CHATS = "request_chats"

# message_type -> (sender role, text template)
CHAT_MESSAGE_TEMPLATES: Dict[str, Tuple[str, str]] = {
    "tutorbid": ("tutor", "Tutor placed a bid of {price}"),
    "tutoreditbid": ("tutor", "Tutor updated the bid to {price}"),
    "studentaccept": ("student", "Student accepted the offer of {price}"),
    "studentpaid": ("student", "Student paid {price}"),
    "studentongoing": ("student", "The session is now ongoing"),
}


def chat_id_for(request_id: str, tutor_id: str) -> str:
    return f"{request_id}_{tutor_id}"


class ChatService:
    def __init__(self, db: FirestoreStore, *, message_delay_s: float = 0.0):
        self.db = db
        self.message_delay_s = max(0.0, float(message_delay_s))

    def _ensure_thread(self, request: Mapping[str, Any], tutor_id: str) -> str:
        chat_id = chat_id_for(str(request["id"]), tutor_id)
        if self.db.get(REQUEST_CHATS, chat_id) is None:
            now = utc_now()
            self.db.set(
                REQUEST_CHATS,
                chat_id,
                {
                    "request_id": request["id"],
                    "tutor_id": tutor_id,
                    "student_id": request.get("student_id"),
                    "created_at": now,
                    "updated_at": now,
                },
            )
        return chat_id

    def post_message(
        self,
        request: Mapping[str, Any],
        tutor_id: str,
        message_type: str,
        *,
        price: Optional[str] = None,
    ) -> str:
        """Append one system message and refresh the thread's last_message projection."""
        role, template = CHAT_MESSAGE_TEMPLATES[message_type]
        chat_id = self._ensure_thread(request, tutor_id)
        sender_id = tutor_id if role == "tutor" else request.get("student_id")
        text = template.format(price=price or "")
        now = utc_now()

        message: Dict[str, Any] = {
            "message": text,
            "message_type": message_type,
            "sender_id": sender_id,
            "user_type": role,
            "request_id": request["id"],
            "tutor_id": tutor_id,
            "seen": False,
            "created_at": now,
            "updated_at": now,
        }
        if price is not None:
            message["price"] = price

        message_id = self.db.add(f"{REQUEST_CHATS}/{chat_id}/messages", message)
        self.db.update(
            REQUEST_CHATS,
            chat_id,
            {
                "last_message": text,
                "last_message_type": message_type,
                "last_message_sender_id": sender_id,
                "last_message_at": now,
                "updated_at": now,
            },
        )
        logger.info(
            "chat_message_posted",
            extra={"entity_id": request["id"], "action": message_type, "context": chat_id},
        )
        return message_id

    async def post_sequence(
        self,
        request: Mapping[str, Any],
        tutor_id: str,
        messages: List[Tuple[str, Optional[str]]],
    ) -> List[str]:
        """Post (message_type, price) pairs in order, pausing between them when configured."""
        ids: List[str] = []
        for i, (message_type, price) in enumerate(messages):
            if i and self.message_delay_s > 0:
                await asyncio.sleep(self.message_delay_s)
            ids.append(self.post_message(request, tutor_id, message_type, price=price))
        return ids
