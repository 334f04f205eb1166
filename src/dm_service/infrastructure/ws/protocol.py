"""WebSocket message envelope and per-event payload models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # join | leave | typing | send | mark_read | get_chat_list | get_unread_count | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # new_message | message_ack | message_failed | user_joined | user_typing | chat_list_updated | ...
    data: dict[str, Any] = {}


class CounterpartPayload(BaseModel):
    counterpart_id: int


class TypingPayload(CounterpartPayload):
    is_typing: bool = True


class SendPayload(BaseModel):
    receiver_id: int
    body: str | None = None
    client_msg_id: str | None = None

    @field_validator("client_msg_id", mode="before")
    @classmethod
    def _numeric_temp_id(cls, v: object) -> object:
        # clients may correlate with numeric temp ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
