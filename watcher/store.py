"""
Client-side view of stream statuses.

Frames can arrive twice (snapshot plus broadcast, or the same status
published by two producers). apply() records a status but reports a change
only when liveness or viewer count differs from what is already held.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional

from app.models.status import StreamStatus

ChangeCallback = Callable[[StreamStatus, Optional[StreamStatus]], None]


class StreamStatusStore:
    def __init__(self, stream_key: str = "", on_change: Optional[ChangeCallback] = None):
        self.stream_key = stream_key
        self._on_change = on_change
        self._statuses: Dict[str, StreamStatus] = {}
        self.applied = 0

    def apply(self, status: StreamStatus) -> bool:
        if self.stream_key and status.stream_key != self.stream_key:
            return False
        previous = self._statuses.get(status.stream_key)
        if (
            previous is not None
            and previous.is_live == status.is_live
            and previous.viewer_count == status.viewer_count
        ):
            return False
        self._statuses[status.stream_key] = status
        self.applied += 1
        if self._on_change is not None:
            self._on_change(status, previous)
        return True

    def get(self, stream_key: str) -> Optional[StreamStatus]:
        return self._statuses.get(stream_key)

    def __len__(self) -> int:
        return len(self._statuses)
