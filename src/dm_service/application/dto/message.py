from __future__ import annotations

from dataclasses import dataclass

from dm_service.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    sender_id: int
    receiver_id: int
    body: str
    client_msg_id: str | None = None


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    message: Message
    recipient_online: bool
    broadcast_ok: bool
