from __future__ import annotations

from datetime import datetime
from typing import Protocol

from dm_service.application.dto.chat_list import ConversationSummary
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import MessageStatus


class MessageReader(Protocol):
    async def query_range(self, user_a: int, user_b: int, limit: int) -> list[Message]:
        """Most recent ``limit`` messages between two users, oldest first."""
        ...

    async def query_conversation_summaries(self, user_id: int) -> list[ConversationSummary]:
        """Last message and unread count per counterpart, newest conversation first."""
        ...

    async def count_unread(self, receiver_id: int, sender_id: int) -> int: ...


class MessageWriter(Protocol):
    async def append(
        self,
        sender_id: int,
        receiver_id: int,
        body: str,
        sent_at: datetime | None = None,
    ) -> Message:
        """Insert a message with status ``sent``; the log assigns id and timestamp."""
        ...

    async def update_status(self, message_id: int, status: MessageStatus) -> bool:
        """Advance a message's status. Return False if it was already at or past ``status``."""
        ...

    async def batch_mark_read(self, receiver_id: int, sender_id: int) -> int:
        """Mark every non-read message from sender to receiver as read. Return rows affected."""
        ...
