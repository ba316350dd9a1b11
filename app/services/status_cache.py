"""
In-memory last-known status per stream key.

Used to answer snapshot requests from newly connected clients without
asking SRS again. No eviction: the key set is the set of streams ever seen.
"""
from typing import Dict, List, Optional

from app.models.status import StreamStatus


class StatusCache:
    def __init__(self) -> None:
        self._statuses: Dict[str, StreamStatus] = {}

    def get(self, stream_key: str) -> Optional[StreamStatus]:
        return self._statuses.get(stream_key)

    def set(self, stream_key: str, status: StreamStatus) -> None:
        """Overwrite unconditionally; a late older update can replace a newer one."""
        self._statuses[stream_key] = status

    def values(self) -> List[StreamStatus]:
        return list(self._statuses.values())

    def __contains__(self, stream_key: object) -> bool:
        return stream_key in self._statuses

    def __len__(self) -> int:
        return len(self._statuses)
