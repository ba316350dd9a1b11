"""
Background poller of the SRS stream list.

- Polls fast while any stream is publishing, slowly when idle or after an
  SRS error.
- Publishes only on change: live/offline transitions, viewer count changes
  of a live stream, and live streams that vanish from the list.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from app.models.status import StreamStatus
from app.services.live_broadcast import StatusBroadcaster
from app.services.srs_client import SrsClient, SrsUnavailableError, client_count, is_publishing

logger = logging.getLogger("restream.monitor")


class StreamMonitor:
    def __init__(
        self,
        srs: SrsClient,
        broadcaster: StatusBroadcaster,
        active_interval: float = 1.0,
        idle_interval: float = 30.0,
    ):
        self._srs = srs
        self._broadcaster = broadcaster
        self.active_interval = active_interval
        self.idle_interval = idle_interval
        self.current_interval = idle_interval
        self.has_active_streams = False
        self._running = False
        self._task: Optional[asyncio.Task[None]] = None
        self._last_live: Dict[str, bool] = {}
        self._last_viewers: Dict[str, int] = {}

    @property
    def is_monitoring(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            logger.info("Stream monitor already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="srs-monitor")
        logger.info("Stream monitor started (idle %.1fs / active %.1fs)",
                    self.idle_interval, self.active_interval)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Stream monitor stopped")

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.current_interval)
            try:
                await self.check()
            except Exception as exc:
                logger.warning("monitor error: %s", exc)

    async def check(self) -> None:
        """One poll of SRS; adjusts the interval and publishes changes."""
        try:
            streams = await self._srs.list_streams()
        except SrsUnavailableError as exc:
            logger.warning("SRS poll failed: %s", exc)
            self.has_active_streams = False
            self.current_interval = self.idle_interval
            return

        active = [s for s in streams if is_publishing(s)]
        has_active = bool(active)
        if has_active != self.has_active_streams:
            self.has_active_streams = has_active
            self.current_interval = self.active_interval if has_active else self.idle_interval
            logger.info(
                "%s - polling every %.1fs",
                "Active streams detected" if has_active else "No active streams",
                self.current_interval,
            )

        if active or self._last_live:
            self._process(streams)

    def _process(self, streams: List[Dict[str, Any]]) -> None:
        listed = set()
        for stream in streams:
            name = stream.get("name")
            if not name:
                continue
            listed.add(name)
            live = is_publishing(stream)
            viewers = client_count(stream) if live else 0
            previous = self._last_live.get(name)

            if previous != live:
                logger.info("Stream %s: %s -> %s", name,
                            "LIVE" if previous else "OFFLINE",
                            "LIVE" if live else "OFFLINE")
                self._last_live[name] = live
                self._last_viewers[name] = viewers
                self._broadcaster.publish(
                    StreamStatus(stream_key=name, is_live=live, viewer_count=viewers)
                )
            elif live and self._last_viewers.get(name, 0) != viewers:
                logger.info("Stream %s viewers: %d -> %d", name,
                            self._last_viewers.get(name, 0), viewers)
                self._last_viewers[name] = viewers
                self._broadcaster.publish(StreamStatus.live(name, viewer_count=viewers))

        for name, was_live in list(self._last_live.items()):
            if was_live and name not in listed:
                logger.info("Stream %s went offline (no longer listed)", name)
                self._last_live[name] = False
                self._last_viewers.pop(name, None)
                self._broadcaster.publish(StreamStatus.offline(name))

    def status(self) -> Dict[str, Any]:
        return {
            "is_monitoring": self._running,
            "current_interval": self.current_interval,
            "has_active_streams": self.has_active_streams,
            "active_streams": sorted(k for k, v in self._last_live.items() if v),
        }
