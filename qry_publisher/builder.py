from __future__ import annotations
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

from .codecs import UsageTable, format_stats_array
from .envelope import Envelope, EnvelopeType, IndexerStatus, Timestamp, UsagePoint, format_ts

PointLike = Union[UsagePoint, Mapping[str, Any], Sequence[Any]]

class EnvelopeBuilder:
    """
    Builder that always produces a valid Envelope for one of the
    outbound types. Payload keys whose value is None are left out,
    matching the hub's JSON expectations (undefined fields are dropped).
    """
    def __init__(self):
        self._type: Optional[EnvelopeType] = None
        self._data: Any = None

    def api_usage_map(self, table: UsageTable, from_ts: Optional[Timestamp] = None,
                      to_ts: Optional[Timestamp] = None):
        self._type = EnvelopeType.API_USAGE_MAP
        self._data = _compact({
            "usage":  format_stats_array(table),
            "fromTs": format_ts(from_ts),
            "toTs":   format_ts(to_ts),
        })
        return self

    def api_usage(self, counter: int, timestamp: Optional[Timestamp] = None):
        self._type = EnvelopeType.API_USAGE
        self._data = _compact({"counter": counter, "timestamp": format_ts(timestamp)})
        return self

    def past_api_usage(self, points: Iterable[PointLike]):
        self._type = EnvelopeType.PAST_API_USAGE
        self._data = [_point(p).to_dict() for p in points]
        return self

    def indexer_status(self, status: Union[IndexerStatus, str]):
        try:
            value = IndexerStatus(status)
        except ValueError:
            raise ValueError(
                f"Invalid indexer status {status!r}; expected one of "
                f"{', '.join(s.value for s in IndexerStatus)}"
            ) from None
        self._type = EnvelopeType.INDEXER_STATUS
        self._data = {"status": str(value)}
        return self

    def metadata(self, data: Any):
        self._type = EnvelopeType.INSTANCE_METADATA
        self._data = data
        return self

    def build(self) -> Envelope:
        if self._type is None:
            raise ValueError("Envelope type not set.")
        return Envelope(self._type, self._data)

def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}

def _point(p: PointLike) -> UsagePoint:
    if isinstance(p, UsagePoint):
        return p
    if isinstance(p, Mapping):
        return UsagePoint(ct=p["ct"], ts=format_ts(p["ts"]))
    ct, ts = p
    return UsagePoint(ct=ct, ts=format_ts(ts))
