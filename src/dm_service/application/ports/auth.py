from __future__ import annotations

from typing import Protocol

from dm_service.application.dto.principal import TokenClaims


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry. Raise InvalidCredential on failure."""
        ...
