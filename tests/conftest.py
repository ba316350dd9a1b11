import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from app.services.connection_registry import Connection, ConnectionRegistry
from app.services.live_broadcast import StatusBroadcaster
from app.services.srs_client import SrsUnavailableError
from app.services.status_cache import StatusCache


class FakeWebSocket:
    """Server-side transport stand-in: records sends, pings and closes."""

    def __init__(self, respond_to_ping: bool = True):
        self.sent: List[str] = []
        self.pings = 0
        self.close_code: Optional[int] = None
        self.respond_to_ping = respond_to_ping
        self.pong_waiters: List[asyncio.Future] = []

    async def send(self, frame: str) -> None:
        self.sent.append(frame)

    async def ping(self) -> asyncio.Future:
        self.pings += 1
        waiter = asyncio.get_running_loop().create_future()
        if self.respond_to_ping:
            waiter.set_result(0.0)
        else:
            self.pong_waiters.append(waiter)
        return waiter

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code


class FakeSrs:
    """SRS client stand-in returning a fixed stream list or failing."""

    def __init__(self, streams: Optional[List[Dict[str, Any]]] = None, fail: bool = False):
        self.streams = streams or []
        self.fail = fail
        self.calls = 0
        self.closed = False

    async def list_streams(self) -> List[Dict[str, Any]]:
        self.calls += 1
        if self.fail:
            raise SrsUnavailableError("SRS API unreachable: connection refused")
        return list(self.streams)

    async def close(self) -> None:
        self.closed = True


def srs_stream(name: str, active: bool = True, clients: int = 0) -> Dict[str, Any]:
    return {"name": name, "clients": clients, "publish": {"active": active, "cid": "x1"}}


def queued_frames(conn: Connection) -> List[dict]:
    """Pop every frame waiting in a connection's send queue."""
    frames = []
    while not conn._queue.empty():
        frames.append(json.loads(conn._queue.get_nowait()))
    return frames


@pytest.fixture
def cache():
    return StatusCache()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(cache, registry):
    return StatusBroadcaster(cache, registry)


@pytest.fixture
def make_conn():
    def _make(respond_to_ping: bool = True, queue_maxsize: int = 100) -> Connection:
        return Connection(FakeWebSocket(respond_to_ping), queue_maxsize=queue_maxsize)
    return _make
