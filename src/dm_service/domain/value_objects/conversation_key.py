"""Canonical addressing for one-to-one conversations."""
from __future__ import annotations

from dataclasses import dataclass

SEPARATOR = "-"


@dataclass(frozen=True, slots=True, order=True)
class ConversationKey:
    """Order-independent key of a two-party conversation.

    Always holds ``low < high``; build it with :func:`address_of`.
    """

    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low >= self.high:
            raise ValueError("ConversationKey requires two distinct identities in ascending order")

    def __str__(self) -> str:
        return f"{self.low}{SEPARATOR}{self.high}"

    @property
    def members(self) -> tuple[int, int]:
        return self.low, self.high

    def involves(self, user_id: int) -> bool:
        return user_id == self.low or user_id == self.high

    def counterpart_of(self, user_id: int) -> int:
        if user_id == self.low:
            return self.high
        if user_id == self.high:
            return self.low
        raise ValueError(f"user {user_id} is not a member of conversation {self}")


def address_of(id_a: int, id_b: int) -> ConversationKey:
    low, high = sorted((int(id_a), int(id_b)))
    return ConversationKey(low, high)
