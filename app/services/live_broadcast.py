"""
In-memory status broadcaster for status-socket fanout.

- publish(status) overwrites the cache and queues one stream_status frame on
  every registered connection. Connections that cannot take the frame are
  collected and dropped after the pass.
- attach(conn) sends the current cache as an initial_statuses frame and then
  registers the connection, in the same loop turn.
"""
import logging
from typing import Callable, List

from app.models.status import StreamStatus, snapshot_frame, status_frame
from app.services.connection_registry import (
    CLOSE_INTERNAL_ERROR,
    Connection,
    ConnectionRegistry,
)
from app.services.status_cache import StatusCache

logger = logging.getLogger("restream.broadcast")

StatusListener = Callable[[StreamStatus], None]


class StatusBroadcaster:
    """In-process fanout: publish(status) reaches all connected clients."""

    def __init__(self, cache: StatusCache, registry: ConnectionRegistry):
        self._cache = cache
        self._registry = registry
        self._listeners: List[StatusListener] = []
        self._dropped = 0
        self._published = 0

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def publish(self, status: StreamStatus) -> int:
        """Cache and fan out one status. Returns the number of connections reached."""
        self._cache.set(status.stream_key, status)
        frame = status_frame(status)
        dead: List[Connection] = []

        def deliver(conn: Connection) -> None:
            try:
                conn.send(frame)
            except Exception as exc:
                logger.warning("Dropping client %s: %s", conn.id, exc)
                dead.append(conn)

        self._registry.for_each(deliver)

        for conn in dead:
            self._registry.remove(conn)
            conn.close_soon(CLOSE_INTERNAL_ERROR, "send failed")
        self._dropped += len(dead)
        self._published += 1

        for listener in self._listeners:
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed for %s", status.stream_key)

        reached = self._registry.count()
        logger.info(
            "Broadcast %s: %s (viewers=%d) to %d client(s)",
            status.stream_key,
            "LIVE" if status.is_live else "OFFLINE",
            status.viewer_count,
            reached,
        )
        return reached

    def attach(self, conn: Connection) -> None:
        """Send the snapshot to conn only, then register it for broadcasts."""
        conn.send(snapshot_frame(self._cache.values()))
        self._registry.add(conn)

    def detach(self, conn: Connection) -> None:
        self._registry.remove(conn)

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def published(self) -> int:
        return self._published

    @property
    def subscriber_count(self) -> int:
        return self._registry.count()
