from __future__ import annotations
from enum import StrEnum
from typing import Any, Optional, Tuple

from .envelope import (
    DATA_EVENT, METADATA_EVENT, METADATA_REQUEST, NOT_REGISTERED,
    Envelope, EnvelopeType,
)

class Control(StrEnum):
    """Hub -> client instructions carried on the 'message' event."""
    METADATA_REQUEST = METADATA_REQUEST

def pack_envelope(env: Envelope) -> Tuple[str, Any]:
    """Return (event name, payload) for an outbound envelope."""
    # metadata goes out bare on its own event
    if env.type == EnvelopeType.INSTANCE_METADATA:
        return METADATA_EVENT, env.data
    return DATA_EVENT, env.to_dict()

def unpack_control(payload: Any) -> Optional[Control]:
    """Unknown or non-string payloads -> None (ignored by the caller)."""
    if not isinstance(payload, str):
        return None
    try:
        return Control(payload)
    except ValueError:
        return None

def is_not_registered(payload: Any) -> bool:
    if payload == NOT_REGISTERED:
        return True
    # connect_error carries {"message": ...}
    if isinstance(payload, dict):
        return payload.get("message") == NOT_REGISTERED
    return False
