from __future__ import annotations

from typing import Any

from dm_service.application.dto.principal import TokenClaims
from dm_service.application.exceptions import InvalidCredential


def claims_from_payload(payload: dict[str, Any]) -> TokenClaims:
    """Read the identity claim: ``sub``, falling back to the legacy ``userId``."""
    raw = payload.get("sub", payload.get("userId"))
    if raw is None:
        raise InvalidCredential("Token carries no identity claim")
    try:
        user_id = int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidCredential("Identity claim is not an integer id") from exc
    return TokenClaims(user_id=user_id, email=payload.get("email"))
