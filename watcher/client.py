"""
Status socket client with bounded reconnects.

States: DISCONNECTED -> CONNECTING -> OPEN -> DISCONNECTED, and GIVEN_UP once
the reconnect budget is spent.

- A close with code 1000 ends the session for good; any other close (or a
  failed handshake) schedules a reconnect after a fixed delay.
- The reconnect counter resets on every successful open. After
  max_reconnect_attempts reconnects, the next failure gives up.
- The server pushes the snapshot on connect; the client never asks for it.
"""
from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from app.models.status import INITIAL_STATUSES, STREAM_STATUS, StreamStatus

logger = logging.getLogger("restream.watcher")

CLOSE_NORMAL = 1000
CLOSE_ABNORMAL = 1006


class ClientState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    GIVEN_UP = "given_up"


class StatusClient:
    def __init__(
        self,
        url: str,
        on_status: Optional[Callable[[StreamStatus], Any]] = None,
        on_connection_change: Optional[Callable[[bool], Any]] = None,
        *,
        reconnect_delay: float = 3.0,
        max_reconnect_attempts: int = 5,
        connect: Callable[..., Any] = ws_connect,
    ):
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.state = ClientState.DISCONNECTED
        self.reconnect_attempts = 0
        self.connect_attempts = 0
        self.connection_error: Optional[str] = None
        self._on_status = on_status
        self._on_connection_change = on_connection_change
        self._connect = connect
        self._ws: Any = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_connected(self) -> bool:
        return self.state is ClientState.OPEN

    def enable(self) -> None:
        """Start connecting. Also the way out of GIVEN_UP: the budget is reset."""
        if self._task is not None and not self._task.done():
            return
        self.reconnect_attempts = 0
        self.connection_error = None
        self._task = asyncio.create_task(self._run(), name="status-client")

    async def disable(self) -> None:
        """Cancel any pending reconnect and close an open socket normally."""
        task, self._task = self._task, None
        if self._ws is not None:
            await self._ws.close(code=CLOSE_NORMAL, reason="Manual disconnect")
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.connection_error = None
        self._set_state(ClientState.DISCONNECTED)

    async def wait(self) -> None:
        """Wait until the client stops on its own (normal close or GIVEN_UP)."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _set_state(self, state: ClientState) -> None:
        if state is not self.state:
            logger.debug("Client state %s -> %s", self.state.value, state.value)
            self.state = state

    async def _run(self) -> None:
        while True:
            self._set_state(ClientState.CONNECTING)
            self.connect_attempts += 1
            logger.info("Connecting to %s", self.url)
            code = await self._session()
            self._set_state(ClientState.DISCONNECTED)

            if code == CLOSE_NORMAL:
                logger.info("Connection closed normally")
                return
            if self.reconnect_attempts >= self.max_reconnect_attempts:
                self.connection_error = (
                    f"Failed to reconnect after {self.max_reconnect_attempts} attempts"
                )
                self._set_state(ClientState.GIVEN_UP)
                logger.error("Max reconnection attempts reached; giving up")
                return
            self.reconnect_attempts += 1
            logger.info(
                "Reconnecting in %.1fs (attempt %d/%d)",
                self.reconnect_delay,
                self.reconnect_attempts,
                self.max_reconnect_attempts,
            )
            await asyncio.sleep(self.reconnect_delay)

    async def _session(self) -> int:
        """One connection lifetime. Returns the close code."""
        opened = False
        try:
            async with self._connect(self.url) as ws:
                self._ws = ws
                opened = True
                self.reconnect_attempts = 0
                self.connection_error = None
                self._set_state(ClientState.OPEN)
                logger.info("Connected")
                self._notify_connection(True)
                try:
                    async for raw in ws:
                        self._handle(raw)
                except ConnectionClosed:
                    pass
                code = ws.close_code
                logger.info("Disconnected: %s %s", code, ws.close_reason or "")
                return code if code is not None else CLOSE_ABNORMAL
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            self.connection_error = f"WebSocket connection error: {exc}"
            logger.warning("Connection to %s failed: %s", self.url, exc)
            return CLOSE_ABNORMAL
        finally:
            self._ws = None
            if opened:
                self._notify_connection(False)

    def _notify_connection(self, connected: bool) -> None:
        if self._on_connection_change is not None:
            self._on_connection_change(connected)

    def _handle(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Error parsing message: %s", exc)
            return
        if not isinstance(message, dict):
            return

        kind = message.get("type")
        try:
            if kind == STREAM_STATUS:
                self._emit(StreamStatus.from_wire(message))
            elif kind == INITIAL_STATUSES:
                for entry in message.get("statuses") or []:
                    self._emit(StreamStatus.from_wire(entry))
            else:
                logger.debug("Ignoring frame type %r", kind)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed %s frame: %s", kind, exc)

    def _emit(self, status: StreamStatus) -> None:
        logger.debug("Status %s: live=%s viewers=%d",
                     status.stream_key, status.is_live, status.viewer_count)
        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception:
            # A failing consumer must not end the session.
            logger.exception("Status callback failed for %s", status.stream_key)
