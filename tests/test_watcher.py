import asyncio
import json
from typing import List, Optional

import pytest

from app.models.status import StreamStatus
from watcher.client import ClientState, StatusClient
from watcher.store import StreamStatusStore


class Refused:
    """Connect attempt that fails during the handshake."""

    async def __aenter__(self):
        raise OSError("connection refused")

    async def __aexit__(self, *exc):
        return False


class FakeClientSocket:
    def __init__(self, frames: List[str] = (), close_code: int = 1011, hold: bool = False):
        self.frames = list(frames)
        self.close_code: Optional[int] = None
        self.close_reason = ""
        self.closed_with: Optional[int] = None
        self._final_code = close_code
        self._hold = hold
        self._closed = asyncio.Event()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield frame
        if self._hold:
            await self._closed.wait()
        if self.close_code is None:
            self.close_code = self._final_code

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_with = code
        self.close_code = code
        self._closed.set()


class ScriptedConnect:
    """connect() replacement: pops the next scripted attempt, refusing once exhausted."""

    def __init__(self, *attempts):
        self.attempts = list(attempts)
        self.urls: List[str] = []

    def __call__(self, url):
        self.urls.append(url)
        if self.attempts:
            return self.attempts.pop(0)
        return Refused()


def status_json(key, live, viewers):
    return json.dumps({
        "type": "stream_status", "streamKey": key, "isLive": live,
        "viewers": viewers, "lastChecked": "2024-05-01T12:00:00+00:00",
    })


async def test_gives_up_after_budget():
    connect = ScriptedConnect()
    client = StatusClient("ws://x/ws", reconnect_delay=0, connect=connect)

    client.enable()
    await client.wait()

    assert client.state is ClientState.GIVEN_UP
    assert client.connect_attempts == 6
    assert client.reconnect_attempts == 5
    assert "5 attempts" in client.connection_error

    await asyncio.sleep(0.01)
    assert len(connect.urls) == 6


async def test_enable_after_giving_up_resets_budget():
    connect = ScriptedConnect()
    client = StatusClient("ws://x/ws", reconnect_delay=0, connect=connect)
    client.enable()
    await client.wait()

    client.enable()
    assert client.reconnect_attempts == 0
    assert client.connection_error is None
    await client.wait()

    assert client.state is ClientState.GIVEN_UP
    assert len(connect.urls) == 12


async def test_successful_open_resets_counter():
    connect = ScriptedConnect(
        Refused(),
        Refused(),
        FakeClientSocket([status_json("abc", True, 1)], close_code=1006),
    )
    opened = []
    client = StatusClient(
        "ws://x/ws",
        on_connection_change=opened.append,
        reconnect_delay=0,
        connect=connect,
    )
    client.enable()
    await client.wait()

    # 2 refusals, then an open session that drops abnormally, then 5 refused reconnects.
    assert len(connect.urls) == 8
    assert opened == [True, False]
    assert client.state is ClientState.GIVEN_UP


async def test_normal_close_does_not_reconnect():
    connect = ScriptedConnect(FakeClientSocket(close_code=1000))
    client = StatusClient("ws://x/ws", reconnect_delay=0, connect=connect)
    client.enable()
    await client.wait()

    assert client.state is ClientState.DISCONNECTED
    assert len(connect.urls) == 1


async def test_frames_are_dispatched():
    snapshot = json.dumps({"type": "initial_statuses", "statuses": [
        {"streamKey": "a", "isLive": True, "viewers": 2, "lastChecked": "2024-05-01T12:00:00Z"},
        {"streamKey": "b", "isLive": False, "viewers": 0, "lastChecked": "2024-05-01T12:00:00Z"},
    ]})
    frames = [snapshot, "garbage", '{"type": "chat_message"}',
              '{"type": "stream_status"}', status_json("a", False, 0)]
    seen = []
    client = StatusClient(
        "ws://x/ws",
        on_status=seen.append,
        connect=ScriptedConnect(FakeClientSocket(frames, close_code=1000)),
    )
    client.enable()
    await client.wait()

    assert [(s.stream_key, s.is_live) for s in seen] == [("a", True), ("b", False), ("a", False)]


async def test_disable_cancels_pending_reconnect():
    connect = ScriptedConnect()
    client = StatusClient("ws://x/ws", reconnect_delay=60, connect=connect)
    client.enable()
    for _ in range(5):
        await asyncio.sleep(0)
    assert client.reconnect_attempts == 1

    await client.disable()
    assert client.state is ClientState.DISCONNECTED
    assert len(connect.urls) == 1


async def test_disable_closes_open_socket_normally():
    socket = FakeClientSocket(hold=True)
    client = StatusClient("ws://x/ws", connect=ScriptedConnect(socket))
    client.enable()
    for _ in range(5):
        await asyncio.sleep(0)
    assert client.is_connected

    await client.disable()
    assert socket.closed_with == 1000
    assert client.state is ClientState.DISCONNECTED


def test_store_ignores_duplicates():
    changes = []
    store = StreamStatusStore(on_change=lambda new, old: changes.append(new))

    assert store.apply(StreamStatus.live("abc", 3))
    assert not store.apply(StreamStatus.live("abc", 3))
    assert store.apply(StreamStatus.live("abc", 4))
    assert store.apply(StreamStatus.offline("abc"))
    assert not store.apply(StreamStatus.offline("abc"))

    assert [(s.is_live, s.viewer_count) for s in changes] == [(True, 3), (True, 4), (False, 0)]
    assert store.applied == 3


def test_store_filters_by_key():
    store = StreamStatusStore("abc")
    assert not store.apply(StreamStatus.live("other"))
    assert store.apply(StreamStatus.live("abc"))
    assert len(store) == 1


async def test_failing_status_callback_keeps_session():
    seen = []

    def on_status(status):
        seen.append(status.stream_key)
        if status.stream_key == "boom":
            raise RuntimeError("consumer failed")

    frames = [status_json("boom", True, 1), status_json("abc", True, 2)]
    client = StatusClient(
        "ws://x/ws",
        on_status=on_status,
        connect=ScriptedConnect(FakeClientSocket(frames, close_code=1000)),
    )
    client.enable()
    await client.wait()

    assert seen == ["boom", "abc"]
    assert client.state is ClientState.DISCONNECTED


async def test_non_string_last_checked_is_skipped():
    bad = json.dumps({
        "type": "stream_status", "streamKey": "abc", "isLive": True,
        "viewers": 1, "lastChecked": 5,
    })
    seen = []
    client = StatusClient(
        "ws://x/ws",
        on_status=seen.append,
        connect=ScriptedConnect(FakeClientSocket([bad, status_json("abc", False, 0)], close_code=1000)),
    )
    client.enable()
    await client.wait()

    assert [(s.stream_key, s.is_live) for s in seen] == [("abc", False)]
    assert client.state is ClientState.DISCONNECTED
