"""
Open status-socket connections and their liveness.

- Each Connection owns a bounded outbound queue drained by one sender task,
  so frames reach a client in publish order and a slow client never blocks
  the broadcaster.
- The registry pings every connection on a fixed interval. A connection that
  has not answered the previous ping when the next sweep runs is closed and
  removed (one strike).
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, List, Optional, Set

from websockets.exceptions import ConnectionClosed

logger = logging.getLogger("restream.connections")

CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011


class ConnectionGoneError(Exception):
    """Raised when a frame cannot be queued for a connection."""


class Connection:
    """A status-socket client: transport handle, liveness flag, send queue."""

    def __init__(self, websocket: Any, queue_maxsize: int = 100):
        self.websocket = websocket
        self.id = uuid.uuid4().hex[:8]
        self.is_alive = True
        self.closed = False
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_maxsize)
        self._close_task: Optional[asyncio.Task[None]] = None

    def send(self, frame: str) -> None:
        """Queue a frame for delivery. Raises ConnectionGoneError."""
        if self.closed:
            raise ConnectionGoneError(f"connection {self.id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise ConnectionGoneError(
                f"connection {self.id} send queue full ({self._queue.maxsize})"
            ) from None

    async def drain(self) -> None:
        """Sender loop: write queued frames until the transport fails."""
        while not self.closed:
            frame = await self._queue.get()
            try:
                await self.websocket.send(frame)
            except (ConnectionClosed, OSError) as exc:
                self.closed = True
                logger.warning("Send to %s failed: %s", self.id, exc)
                return

    async def ping(self) -> None:
        """Send a transport ping and mark the connection as awaiting a pong."""
        waiter = await self.websocket.ping()
        self.is_alive = False
        asyncio.ensure_future(waiter).add_done_callback(self._on_pong)

    def _on_pong(self, fut: asyncio.Future[Any]) -> None:
        if fut.cancelled() or fut.exception() is not None:
            return
        self.is_alive = True

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        self.closed = True
        await self.websocket.close(code=code, reason=reason)

    def close_soon(self, code: int = CLOSE_INTERNAL_ERROR, reason: str = "") -> None:
        """Schedule a close without waiting for the close handshake."""
        self.closed = True
        if self._close_task is None:
            self._close_task = asyncio.create_task(
                self.close(code, reason), name=f"ws-close-{self.id}"
            )
            self._close_task.add_done_callback(_log_close_error)


def _log_close_error(task: asyncio.Task[None]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Close failed: %s", task.exception())


class ConnectionRegistry:
    """The set of open connections, swept for liveness on a timer."""

    def __init__(self) -> None:
        self._connections: Set[Connection] = set()

    def add(self, conn: Connection) -> None:
        self._connections.add(conn)
        logger.info("Client %s connected (total: %d)", conn.id, len(self._connections))

    def remove(self, conn: Connection) -> None:
        if conn in self._connections:
            self._connections.discard(conn)
            logger.info(
                "Client %s disconnected (total: %d)", conn.id, len(self._connections)
            )

    def for_each(self, fn: Callable[[Connection], None]) -> None:
        """Call fn on a snapshot, so fn may add or remove connections."""
        for conn in list(self._connections):
            fn(conn)

    def count(self) -> int:
        return len(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: object) -> bool:
        return conn in self._connections

    async def sweep(self) -> List[Connection]:
        """
        One liveness round. Returns the connections that were dropped.
        """
        dead: List[Connection] = []
        for conn in list(self._connections):
            if conn.closed or not conn.is_alive:
                dead.append(conn)
                continue
            try:
                await conn.ping()
            except (ConnectionClosed, OSError) as exc:
                logger.debug("Ping to %s failed: %s", conn.id, exc)
                dead.append(conn)

        for conn in dead:
            self.remove(conn)
        if dead:
            logger.info("Liveness sweep dropped %d connection(s)", len(dead))
            await asyncio.gather(
                *(conn.close(CLOSE_INTERNAL_ERROR, "ping timeout") for conn in dead),
                return_exceptions=True,
            )
        return dead

    async def close_all(self) -> None:
        conns = list(self._connections)
        self._connections.clear()
        await asyncio.gather(
            *(conn.close(CLOSE_NORMAL, "server shutdown") for conn in conns),
            return_exceptions=True,
        )
