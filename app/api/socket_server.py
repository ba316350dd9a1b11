"""
Status socket server (websockets).

Runs beside the FastAPI app in the same event loop. Each client gets the
status snapshot on connect and every stream_status broadcast afterwards.
Built-in keepalive is off; the hub's liveness sweep does the pinging.
"""
import asyncio
import functools
import json
import logging
from http import HTTPStatus
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from app.services.connection_registry import Connection, ConnectionGoneError
from app.services.hub import StatusHub

logger = logging.getLogger("restream.socket")

PONG_FRAME = json.dumps({"type": "pong"})


def handle_client_message(raw: str | bytes) -> Optional[str]:
    """Reply frame for one client message, or None. Only ping is answered."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-JSON client message")
        return None
    if not isinstance(message, dict):
        return None
    if message.get("type") == "ping":
        return PONG_FRAME
    logger.debug("Ignoring client message type %r", message.get("type"))
    return None


async def handle_connection(hub: StatusHub, websocket: ServerConnection) -> None:
    conn = Connection(websocket, queue_maxsize=hub.send_queue_size)
    hub.broadcaster.attach(conn)
    sender = asyncio.create_task(conn.drain(), name=f"ws-send-{conn.id}")
    try:
        async for raw in websocket:
            reply = handle_client_message(raw)
            if reply is not None:
                conn.send(reply)
    except ConnectionClosed:
        pass
    except ConnectionGoneError as exc:
        logger.warning("Client %s: %s", conn.id, exc)
    finally:
        conn.closed = True
        hub.broadcaster.detach(conn)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)


def _check_path(path: str, connection: ServerConnection, request: Request) -> Optional[Response]:
    if request.path.split("?", 1)[0] != path:
        return connection.respond(HTTPStatus.NOT_FOUND, "Not found\n")
    return None


async def serve_status_socket(hub: StatusHub, host: str, port: int, path: str = "/ws") -> Server:
    server = await serve(
        functools.partial(handle_connection, hub),
        host,
        port,
        process_request=functools.partial(_check_path, path),
        ping_interval=None,
    )
    logger.info("Status socket listening on ws://%s:%d%s", host, port, path)
    return server
