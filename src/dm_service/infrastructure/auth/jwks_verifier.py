from __future__ import annotations

import asyncio
import logging

import jwt
from jwt import PyJWKClient

from dm_service.application.dto.principal import TokenClaims
from dm_service.application.exceptions import InvalidCredential
from dm_service.infrastructure.auth.claims import claims_from_payload

logger = logging.getLogger(__name__)


class JWKSVerifier:
    """Verify JWTs using a remote JWKS endpoint."""

    def __init__(self, jwks_url: str, *, require_exp: bool = True) -> None:
        self._jwks_url = jwks_url
        self._jwk_client = PyJWKClient(jwks_url)
        self._required = ["exp"] if require_exp else []

    async def verify(self, token: str) -> TokenClaims:
        try:
            # PyJWKClient fetches keys with blocking urllib
            signing_key = await asyncio.to_thread(self._jwk_client.get_signing_key_from_jwt, token)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                options={"require": self._required},
            )
        except jwt.PyJWTError as exc:
            logger.debug("JWKS verification failed against %s", self._jwks_url, exc_info=True)
            raise InvalidCredential(str(exc)) from exc
        return claims_from_payload(payload)
