from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """One row of the per-counterpart aggregation over the message log."""

    counterpart_id: int
    last_message: str
    last_message_time: datetime
    last_message_id: int
    unread_count: int


@dataclass(frozen=True, slots=True)
class ChatListEntry:
    counterpart_id: int
    name: str
    avatar_url: str | None
    last_message: str
    last_message_time: datetime
    unread_count: int
