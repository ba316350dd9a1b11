"""
Redis mirror of the status cache.

- Every published status is written to a Redis hash (field = stream key).
- At startup the hash warms the in-memory cache, so a restarted process can
  answer snapshots before SRS reports anything new.
- Writes go through a bounded queue drained by one task; publish never waits
  on Redis.
"""
import asyncio
import json
import logging
from typing import List, Optional

import redis.asyncio as redis

from app.models.status import StreamStatus

logger = logging.getLogger("restream.redis")


def _serialize_status(status: StreamStatus) -> str:
    return json.dumps(status.to_wire())


def _deserialize_status(raw: str) -> Optional[StreamStatus]:
    try:
        return StreamStatus.from_wire(json.loads(raw))
    except (TypeError, KeyError, ValueError):
        return None


class RedisStatusMirror:
    def __init__(self, url: str, key: str, queue_maxsize: int = 1000):
        self.key = key
        self._redis = redis.from_url(url, encoding="utf-8", decode_responses=True)
        self._queue: asyncio.Queue[Optional[StreamStatus]] = asyncio.Queue(
            maxsize=queue_maxsize
        )
        self._running = False
        self._task: Optional[asyncio.Task[None]] = None
        self._dropped = 0
        self._errors = 0

    def __call__(self, status: StreamStatus) -> None:
        """Broadcaster listener: queue the status for writing."""
        try:
            self._queue.put_nowait(status)
        except asyncio.QueueFull:
            self._dropped += 1

    async def load(self) -> List[StreamStatus]:
        """Read every mirrored status. Unparsable entries are skipped."""
        raw = await self._redis.hgetall(self.key)
        statuses = []
        for field, value in raw.items():
            status = _deserialize_status(value)
            if status is None:
                logger.warning("Skipping unreadable mirrored status for %s", field)
                continue
            statuses.append(status)
        return statuses

    async def write(self, status: StreamStatus) -> None:
        await self._redis.hset(self.key, status.stream_key, _serialize_status(status))

    async def ping(self) -> bool:
        return await self._redis.ping()

    def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._write_loop(), name="redis-mirror")

    async def _write_loop(self) -> None:
        while self._running:
            try:
                status = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                if status is None:
                    return
                await self.write(status)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            except Exception as exc:
                self._errors += 1
                logger.debug("mirror write error: %s", exc)

    async def close(self) -> None:
        self._running = False
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        await self._redis.aclose()

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def errors(self) -> int:
        return self._errors
