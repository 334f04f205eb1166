"""Wire format of relay envelopes shared between service instances."""
from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

ROUTES: dict[str, tuple[str, ...]] = {
    "conversation": ("members",),
    "user": ("user_id",),
}


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def encode_envelope(envelope: dict[str, Any]) -> str:
    return json.dumps(envelope, cls=_Encoder, separators=(",", ":"))


def decode_envelope(raw: str | bytes) -> dict[str, Any]:
    """Parse an envelope; raise ValueError if it is not routable."""
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or "event_type" not in envelope:
        raise ValueError("relay envelope without event_type")
    required = ROUTES.get(envelope.get("target", ""))
    if required is None:
        raise ValueError(f"relay envelope with unknown target {envelope.get('target')!r}")
    missing = [k for k in required if k not in envelope]
    if missing:
        raise ValueError(f"relay envelope missing {', '.join(missing)}")
    envelope.setdefault("data", {})
    return envelope
