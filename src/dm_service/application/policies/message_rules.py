from __future__ import annotations

from dm_service.application.exceptions import InvalidMessage


def assert_sendable(sender_id: int, receiver_id: int, body: str | None, max_length: int) -> str:
    """Raise InvalidMessage unless ``body`` may be sent from sender to receiver."""
    if sender_id == receiver_id:
        raise InvalidMessage("Cannot send a message to yourself")
    if body is None or not body.strip():
        raise InvalidMessage("Message body must not be empty")
    if len(body) > max_length:
        raise InvalidMessage(f"Message body exceeds {max_length} characters")
    return body


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    if limit is None:
        return default
    return max(1, min(limit, maximum))
