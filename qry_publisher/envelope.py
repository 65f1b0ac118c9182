from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Dict, Optional, Union

# Outbound envelope types
class EnvelopeType(StrEnum):
    API_USAGE_MAP     = "api_usage_map"
    API_USAGE         = "api_usage"
    PAST_API_USAGE    = "past_api_usage"
    INDEXER_STATUS    = "indexer_status"
    INSTANCE_METADATA = "instance-metadata"

class IndexerStatus(StrEnum):
    NONE    = "none"
    OFFLINE = "offline"
    DELAYED = "delayed"
    ACTIVE  = "active"

# Socket event names
DATA_EVENT     = "instance-data"
METADATA_EVENT = "instance-metadata"

# Inbound control
METADATA_REQUEST = "metadata-request"
NOT_REGISTERED   = "INSTANCE_NOT_REGISTERED"

Timestamp = Union[str, datetime]

@dataclass(frozen=True)
class Envelope:
    """
    {type, data} structure carried by every outbound event.
    'data' is whatever JSON-compatible payload the type calls for.
    """
    type: EnvelopeType
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": str(self.type), "data": self.data}

@dataclass(frozen=True)
class UsagePoint:
    ct: int     # request count
    ts: str     # bucket timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {"ct": self.ct, "ts": self.ts}

def format_ts(value: Optional[Timestamp]) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if not isinstance(value, datetime):
        raise TypeError(f"timestamp must be a str or datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
