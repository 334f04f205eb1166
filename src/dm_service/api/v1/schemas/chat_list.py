from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ChatListEntryResponse(BaseModel):
    counterpart_id: int
    name: str
    avatar_url: str | None
    last_message: str
    last_message_time: datetime
    unread_count: int

    model_config = {"from_attributes": True}


class ChatListResponse(BaseModel):
    chats: list[ChatListEntryResponse]
    current_user_id: int
