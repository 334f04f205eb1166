from __future__ import annotations

from datetime import datetime

from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import MessageStatus


async def append_message(
    dto: SendMessageDTO,
    sent_at: datetime | None,
    uow: UnitOfWork,
) -> Message:
    """Durably append a message with status ``sent``."""
    msg = await uow.messages_w.append(dto.sender_id, dto.receiver_id, dto.body, sent_at)
    await uow.commit()
    return msg


async def advance_status(
    message: Message,
    status: MessageStatus,
    uow: UnitOfWork,
) -> Message:
    if not message.status.can_advance_to(status):
        return message
    changed = await uow.messages_w.update_status(message.id, status)
    await uow.commit()
    return message.with_status(status) if changed else message


async def mark_read(reader_id: int, other_id: int, uow: UnitOfWork) -> int:
    """Batch-mark everything ``other_id`` sent to ``reader_id`` as read."""
    updated = await uow.messages_w.batch_mark_read(reader_id, other_id)
    await uow.commit()
    return updated


async def history(
    user_a: int,
    user_b: int,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    return await uow.messages.query_range(user_a, user_b, limit)


async def unread_count(reader_id: int, other_id: int, uow: UnitOfWork) -> int:
    return await uow.messages.count_unread(reader_id, other_id)
