from __future__ import annotations

from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import MessageStatus
from dm_service.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        body=model.body,
        sent_at=model.sent_at,
        status=MessageStatus(model.status),
    )
