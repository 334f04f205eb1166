from __future__ import annotations

from enum import StrEnum


class MessageStatus(StrEnum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def predecessors(self) -> tuple[MessageStatus, ...]:
        """Statuses a message may hold right before advancing to this one."""
        return tuple(s for s in MessageStatus if s.rank < self.rank)

    def can_advance_to(self, target: MessageStatus) -> bool:
        return target.rank > self.rank


_RANK: dict[MessageStatus, int] = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}
