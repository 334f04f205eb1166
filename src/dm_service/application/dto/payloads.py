"""Plain-dict renderings of domain objects for realtime events."""
from __future__ import annotations

from typing import Any

from dm_service.application.dto.chat_list import ChatListEntry
from dm_service.domain.entities.message import Message


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "body": message.body,
        "sent_at": message.sent_at,
        "status": message.status.value,
        "conversation_key": str(message.conversation_key),
    }


def chat_list_payload(user_id: int, entries: list[ChatListEntry]) -> dict[str, Any]:
    return {
        "current_user_id": user_id,
        "chats": [
            {
                "counterpart_id": e.counterpart_id,
                "name": e.name,
                "avatar_url": e.avatar_url,
                "last_message": e.last_message,
                "last_message_time": e.last_message_time,
                "unread_count": e.unread_count,
            }
            for e in entries
        ],
    }
