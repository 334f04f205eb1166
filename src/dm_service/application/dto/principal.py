from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Identity claim extracted from a verified bearer token."""

    user_id: int
    email: str | None = None


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller, resolved against the user directory."""

    user_id: int
    name: str
    email: str | None = None
