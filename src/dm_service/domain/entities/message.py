from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from dm_service.domain.value_objects.conversation_key import ConversationKey, address_of
from dm_service.domain.value_objects.enums import MessageStatus


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    sender_id: int
    receiver_id: int
    body: str
    sent_at: datetime
    status: MessageStatus

    @property
    def conversation_key(self) -> ConversationKey:
        return address_of(self.sender_id, self.receiver_id)

    def with_status(self, status: MessageStatus) -> Message:
        if not self.status.can_advance_to(status):
            return self
        return replace(self, status=status)
