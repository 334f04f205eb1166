from __future__ import annotations

from typing import Any, Protocol


class RelayPublisher(Protocol):
    """Carries fan-out envelopes to peer instances of the service."""

    async def publish(self, envelope: dict[str, Any]) -> None: ...
