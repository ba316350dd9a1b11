"""
Status producers feeding the broadcaster.

- handle_callback: SRS HTTP callback events (publish/unpublish/play/stop).
- check_stream_status: on-demand poll of the SRS stream list for one key.
"""
from __future__ import annotations

import logging

from app.models.events import (
    CallbackEvent,
    PollResult,
    PublishEvent,
    UnpublishEvent,
    ViewerEvent,
)
from app.models.status import StreamStatus
from app.services.live_broadcast import StatusBroadcaster
from app.services.srs_client import (
    SrsClient,
    SrsUnavailableError,
    client_count,
    find_stream,
    is_publishing,
)

logger = logging.getLogger("restream.ingest")


class StatusIngest:
    """Maps callback events and poll results to published statuses."""

    def __init__(
        self,
        broadcaster: StatusBroadcaster,
        srs: SrsClient,
        viewer_refresh: bool = False,
    ):
        self._broadcaster = broadcaster
        self._srs = srs
        self._viewer_refresh = viewer_refresh

    async def handle_callback(self, event: CallbackEvent) -> StreamStatus | None:
        """Apply one SRS callback. Returns the published status, if any."""
        if isinstance(event, PublishEvent):
            logger.info("Stream started: %s", event.stream_key)
            status = StreamStatus.live(event.stream_key, viewer_count=0)
            self._broadcaster.publish(status)
            return status

        if isinstance(event, UnpublishEvent):
            logger.info("Stream stopped: %s", event.stream_key)
            status = StreamStatus.offline(event.stream_key)
            self._broadcaster.publish(status)
            return status

        if isinstance(event, ViewerEvent):
            logger.info(
                "Viewer %s: %s",
                "joined" if event.joined else "left",
                event.stream_key,
            )
            # Viewer counts otherwise change only through polling.
            if self._viewer_refresh:
                return await self.check_stream_status(event.stream_key)
            return None

        logger.warning("Unhandled callback event %r", event)
        return None

    async def poll(self, stream_key: str) -> PollResult:
        """Ask SRS whether stream_key is publishing. Failures read as offline."""
        try:
            streams = await self._srs.list_streams()
        except SrsUnavailableError as exc:
            logger.warning("Status check for %s failed, assuming offline: %s", stream_key, exc)
            return PollResult(stream_key, is_live=False, viewer_count=0)

        stream = find_stream(streams, stream_key)
        live = is_publishing(stream)
        viewers = client_count(stream) if live else 0
        logger.debug(
            "SRS check %s: found=%s live=%s viewers=%d",
            stream_key,
            stream is not None,
            live,
            viewers,
        )
        return PollResult(stream_key, is_live=live, viewer_count=viewers)

    async def check_stream_status(self, stream_key: str) -> StreamStatus:
        """Poll SRS for stream_key, publish the result and return it."""
        result = await self.poll(stream_key)
        status = StreamStatus(
            stream_key=result.stream_key,
            is_live=result.is_live,
            viewer_count=result.viewer_count,
        )
        self._broadcaster.publish(status)
        return status
