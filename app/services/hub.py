"""
Service container for the stream-status core.

Built once by the app lifespan and handed to the HTTP routes (via
app.state) and the status socket server. Owns the background tasks.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from app.core.config import Settings
from app.services.connection_registry import ConnectionRegistry
from app.services.ingest import StatusIngest
from app.services.live_broadcast import StatusBroadcaster
from app.services.redis_client import RedisStatusMirror
from app.services.srs_client import SrsClient
from app.services.status_cache import StatusCache
from app.services.stream_monitor import StreamMonitor

logger = logging.getLogger("restream.hub")


class StatusHub:
    def __init__(
        self,
        *,
        srs: SrsClient,
        ping_interval: float = 30.0,
        send_queue_size: int = 100,
        viewer_refresh: bool = False,
        monitor: bool = False,
        monitor_active_interval: float = 1.0,
        monitor_idle_interval: float = 30.0,
        mirror: Optional[RedisStatusMirror] = None,
    ):
        self.cache = StatusCache()
        self.registry = ConnectionRegistry()
        self.broadcaster = StatusBroadcaster(self.cache, self.registry)
        self.srs = srs
        self.ingest = StatusIngest(self.broadcaster, srs, viewer_refresh=viewer_refresh)
        self.monitor = StreamMonitor(
            srs,
            self.broadcaster,
            active_interval=monitor_active_interval,
            idle_interval=monitor_idle_interval,
        )
        self.mirror = mirror
        self.ping_interval = ping_interval
        self.send_queue_size = send_queue_size
        self._monitor_enabled = monitor
        self._running = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatusHub":
        mirror = None
        if settings.REDIS_URL.strip():
            mirror = RedisStatusMirror(settings.REDIS_URL.strip(), settings.REDIS_STATUS_KEY)
        return cls(
            srs=SrsClient(settings.SRS_API_URL, settings.SRS_TIMEOUT_SEC),
            ping_interval=settings.WS_PING_INTERVAL_SEC,
            send_queue_size=settings.WS_SEND_QUEUE_SIZE,
            viewer_refresh=settings.CALLBACK_VIEWER_REFRESH,
            monitor=settings.MONITOR_ENABLED,
            monitor_active_interval=settings.MONITOR_ACTIVE_INTERVAL_SEC,
            monitor_idle_interval=settings.MONITOR_IDLE_INTERVAL_SEC,
            mirror=mirror,
        )

    def _spawn(self, coro: Any, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def start(self) -> None:
        self._running = True
        if self.mirror is not None:
            await self._warm_from_mirror()
            self.broadcaster.add_listener(self.mirror)
            self.mirror.start()
        self._spawn(self._liveness_loop(), "ws-liveness")
        if self._monitor_enabled:
            self.monitor.start()
        logger.info(
            "Status hub started (ping every %.0fs, monitor %s, redis mirror %s)",
            self.ping_interval,
            "on" if self._monitor_enabled else "off",
            "on" if self.mirror is not None else "off",
        )

    async def stop(self) -> None:
        self._running = False
        for t in list(self._tasks):
            t.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.monitor.stop()
        await self.registry.close_all()
        if self.mirror is not None:
            await self.mirror.close()
        await self.srs.close()
        logger.info("Status hub stopped")

    async def _warm_from_mirror(self) -> None:
        try:
            statuses = await self.mirror.load()
        except Exception as exc:
            logger.warning("Could not warm cache from Redis: %s", exc)
            return
        for status in statuses:
            self.cache.set(status.stream_key, status)
        logger.info("Warmed status cache with %d stream(s) from Redis", len(statuses))

    async def _liveness_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.ping_interval)
            try:
                await self.registry.sweep()
            except Exception as exc:
                logger.warning("liveness sweep error: %s", exc)
