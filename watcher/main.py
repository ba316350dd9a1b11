"""
Status watcher: connects to the status socket and logs stream changes.

- Reconnects on abnormal close (3s delay, 5 attempts by default).
- WATCH_STREAM_KEY limits output to one stream.
"""
import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.models.status import StreamStatus
from watcher.client import ClientState, StatusClient
from watcher.store import StreamStatusStore

logger = logging.getLogger("restream.watcher")


def _log_change(status: StreamStatus, previous: Optional[StreamStatus]) -> None:
    was = "new" if previous is None else ("LIVE" if previous.is_live else "OFFLINE")
    logger.info(
        "%s: %s -> %s (viewers=%d, checked %s)",
        status.stream_key,
        was,
        "LIVE" if status.is_live else "OFFLINE",
        status.viewer_count,
        status.last_checked_at.isoformat(),
    )


async def run_watcher() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    store = StreamStatusStore(settings.WATCH_STREAM_KEY.strip(), on_change=_log_change)
    client = StatusClient(
        settings.WATCH_URL,
        on_status=store.apply,
        reconnect_delay=settings.WATCH_RECONNECT_DELAY_SEC,
        max_reconnect_attempts=settings.WATCH_MAX_RECONNECT_ATTEMPTS,
    )
    client.enable()
    try:
        await client.wait()
        if client.state is ClientState.GIVEN_UP:
            logger.error("Watcher stopped: %s", client.connection_error)
    except asyncio.CancelledError:
        pass
    finally:
        await client.disable()


def main() -> None:
    asyncio.run(run_watcher())


if __name__ == "__main__":
    main()
