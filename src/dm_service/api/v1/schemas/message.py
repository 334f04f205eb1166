from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class SendMessageRequest(BaseModel):
    body: str | None = None
    client_msg_id: str | None = None

    @field_validator("client_msg_id", mode="before")
    @classmethod
    def _numeric_temp_id(cls, v: object) -> object:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    body: str
    sent_at: datetime
    status: str

    model_config = {"from_attributes": True}


class SendMessageResponse(BaseModel):
    message: MessageResponse
    client_msg_id: str | None = None


class HistoryResponse(BaseModel):
    messages: list[MessageResponse]
    current_user_id: int


class MarkReadResponse(BaseModel):
    counterpart_id: int
    updated: int


class UnreadCountResponse(BaseModel):
    counterpart_id: int
    count: int
