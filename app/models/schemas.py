"""HTTP response schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.status import StreamStatus


class StreamStatusOut(BaseModel):
    """Result of a status check, as the frontend reads it."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_live: bool
    viewers: int = 0
    last_checked: datetime
    stream_key: str

    @classmethod
    def from_status(cls, status: StreamStatus) -> "StreamStatusOut":
        return cls(
            is_live=status.is_live,
            viewers=status.viewer_count,
            last_checked=status.last_checked_at,
            stream_key=status.stream_key,
        )


class CallbackAck(BaseModel):
    """SRS treats code 0 as success; anything else rejects the client."""
    code: int = 0
    msg: str = "OK"


class MonitorOut(BaseModel):
    is_monitoring: bool = False
    current_interval: float = 0.0
    has_active_streams: bool = False
    active_streams: list[str] = []


class ConnectionsOut(BaseModel):
    connections: int = 0
    cached_streams: int = 0
    published: int = 0
    dropped_clients: int = 0
    # Redis mirror counters; None when no mirror is configured
    mirror_dropped: Optional[int] = None
    mirror_errors: Optional[int] = None
