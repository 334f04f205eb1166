from __future__ import annotations

from dm_service.application.dto.chat_list import ChatListEntry
from dm_service.application.uow import UnitOfWork


async def chat_list(
    user_id: int,
    uow: UnitOfWork,
    *,
    placeholder_name: str = "User",
) -> list[ChatListEntry]:
    """Every conversation of ``user_id`` with its last message and unread count.

    Newest conversation first. Counterparts missing from the directory get
    ``placeholder_name`` and no avatar.
    """
    summaries = await uow.messages.query_conversation_summaries(user_id)
    summaries = sorted(
        summaries,
        key=lambda s: (s.last_message_time, s.last_message_id),
        reverse=True,
    )
    profiles = await uow.users.lookup_many(s.counterpart_id for s in summaries)

    entries: list[ChatListEntry] = []
    for s in summaries:
        profile = profiles.get(s.counterpart_id)
        entries.append(
            ChatListEntry(
                counterpart_id=s.counterpart_id,
                name=profile.name if profile and profile.name else placeholder_name,
                avatar_url=profile.avatar_url if profile else None,
                last_message=s.last_message,
                last_message_time=s.last_message_time,
                unread_count=s.unread_count,
            )
        )
    return entries
