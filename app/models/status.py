"""
Canonical stream status record and its wire form.

- StreamStatus is shared by the cache, the broadcaster and the HTTP layer.
- Wire frames use camelCase keys and "viewers"; conversion happens only here.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

STREAM_STATUS = "stream_status"
INITIAL_STATUSES = "initial_statuses"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StreamStatus:
    """Last known liveness of one stream key. Replaced wholesale on update."""

    stream_key: str
    is_live: bool
    viewer_count: int = 0
    last_checked_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.viewer_count < 0:
            raise ValueError(f"viewer_count must be >= 0, got {self.viewer_count}")

    @classmethod
    def live(cls, stream_key: str, viewer_count: int = 0) -> "StreamStatus":
        return cls(stream_key=stream_key, is_live=True, viewer_count=viewer_count)

    @classmethod
    def offline(cls, stream_key: str) -> "StreamStatus":
        return cls(stream_key=stream_key, is_live=False, viewer_count=0)

    def to_wire(self) -> dict[str, Any]:
        return {
            "streamKey": self.stream_key,
            "isLive": self.is_live,
            "viewers": self.viewer_count,
            "lastChecked": self.last_checked_at.isoformat(),
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "StreamStatus":
        """Parse one wire entry. Raises KeyError/TypeError/ValueError on bad input."""
        if not isinstance(data, dict):
            raise TypeError(f"status entry must be an object, got {type(data).__name__}")
        raw_ts = data.get("lastChecked")
        if raw_ts is not None and not isinstance(raw_ts, str):
            raise ValueError(f"lastChecked must be an ISO-8601 string, got {raw_ts!r}")
        checked = datetime.fromisoformat(raw_ts.replace("Z", "+00:00")) if raw_ts else utcnow()
        return cls(
            stream_key=str(data["streamKey"]),
            is_live=bool(data.get("isLive", False)),
            viewer_count=int(data.get("viewers") or 0),
            last_checked_at=checked,
        )


def status_frame(status: StreamStatus) -> str:
    """JSON frame broadcast to every connection on publish."""
    return json.dumps({"type": STREAM_STATUS, **status.to_wire()})


def snapshot_frame(statuses: Iterable[StreamStatus]) -> str:
    """JSON frame sent once to a newly attached connection."""
    return json.dumps(
        {"type": INITIAL_STATUSES, "statuses": [s.to_wire() for s in statuses]}
    )
