from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Display data served by the user directory."""

    user_id: int
    name: str
    avatar_url: str | None = None
