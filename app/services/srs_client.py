"""
Client for the SRS HTTP API (stream list).

- One aiohttp session per client, created lazily, closed at shutdown.
- Every request is bounded by SRS_TIMEOUT_SEC; any failure surfaces as
  SrsUnavailableError so callers can degrade to "offline".
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from app.core.config import settings

logger = logging.getLogger("restream.srs")


class SrsUnavailableError(Exception):
    """SRS could not be queried (network error, timeout, bad response)."""


def find_stream(streams: List[Dict[str, Any]], stream_key: str) -> Optional[Dict[str, Any]]:
    for stream in streams:
        if stream.get("name") == stream_key:
            return stream
    return None


def is_publishing(stream: Optional[Dict[str, Any]]) -> bool:
    """A stream can be listed without an active publisher; only publish.active counts."""
    if not stream:
        return False
    publish = stream.get("publish")
    if not isinstance(publish, dict):
        return False
    return publish.get("active") is True


def client_count(stream: Optional[Dict[str, Any]]) -> int:
    if not stream:
        return 0
    try:
        return max(int(stream.get("clients") or 0), 0)
    except (TypeError, ValueError):
        return 0


class SrsClient:
    def __init__(self, api_url: Optional[str] = None, timeout_sec: Optional[float] = None):
        self.api_url = api_url or settings.SRS_API_URL
        self.timeout_sec = settings.SRS_TIMEOUT_SEC if timeout_sec is None else timeout_sec
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec)
            )
        return self._session

    async def list_streams(self) -> List[Dict[str, Any]]:
        """GET the stream list. Raises SrsUnavailableError."""
        session = self._get_session()
        try:
            async with session.get(self.api_url) as response:
                if response.status != 200:
                    raise SrsUnavailableError(f"SRS API returned HTTP {response.status}")
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise SrsUnavailableError(f"SRS API timed out after {self.timeout_sec}s") from exc
        except aiohttp.ClientError as exc:
            raise SrsUnavailableError(f"SRS API unreachable: {exc}") from exc
        except ValueError as exc:
            raise SrsUnavailableError(f"SRS API returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise SrsUnavailableError("SRS API returned unexpected payload")
        streams = data.get("streams") or []
        if not isinstance(streams, list):
            raise SrsUnavailableError(
                f"SRS API returned non-list streams: {type(streams).__name__}"
            )
        logger.debug("SRS lists %d stream(s)", len(streams))
        return [s for s in streams if isinstance(s, dict)]

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
