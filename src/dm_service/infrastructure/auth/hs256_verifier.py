from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from dm_service.application.dto.principal import TokenClaims
from dm_service.application.exceptions import InvalidCredential
from dm_service.infrastructure.auth.claims import claims_from_payload


class HS256Verifier:
    """Verify JWTs signed with a shared HS256 secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", *, require_exp: bool = True) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._required = ["exp"] if require_exp else []

    async def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": self._required},
            )
        except jwt.PyJWTError as exc:
            raise InvalidCredential(str(exc)) from exc
        return claims_from_payload(payload)

    def issue(self, user_id: int, ttl_seconds: int, *, email: str | None = None) -> str:
        """Mint a token for development and tests."""
        now = datetime.now(timezone.utc)
        payload: dict[str, object] = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
        }
        if email:
            payload["email"] = email
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)
