"""
Stream-status API.

- POST /srs-callback            : SRS HTTP callback (always acknowledged)
- GET  /stream-status/{key}     : poll SRS for one stream, broadcast the result
- GET  /monitor                 : background monitor state
- GET  /connections             : status socket clients and cached streams
"""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from app.models.events import SrsCallback, parse_callback
from app.models.schemas import CallbackAck, ConnectionsOut, MonitorOut, StreamStatusOut
from app.services.hub import StatusHub

router = APIRouter()
logger = logging.getLogger("restream.api")


def get_hub(request: Request) -> StatusHub:
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise RuntimeError("Status hub not initialized")
    return hub


@router.post("/srs-callback", response_model=CallbackAck, summary="SRS HTTP callback")
async def srs_callback(request: Request, hub: StatusHub = Depends(get_hub)):
    """
    SRS retries (or rejects the client) on anything but a 200 with code 0,
    so errors are logged and the callback is acknowledged regardless.
    """
    try:
        body = SrsCallback.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        logger.warning("Malformed SRS callback: %s", exc)
        return CallbackAck()

    logger.info(
        "SRS callback: action=%s stream=%s app=%s client=%s ip=%s",
        body.action, body.stream_key, body.app, body.client_id, body.ip,
    )
    event = parse_callback(body)
    if event is None:
        return CallbackAck()
    try:
        await hub.ingest.handle_callback(event)
    except Exception:
        logger.exception("Error processing SRS callback %s for %s", body.action, body.stream_key)
    return CallbackAck()


@router.get(
    "/stream-status/{stream_key}",
    response_model=StreamStatusOut,
    summary="Check one stream against SRS",
)
async def stream_status(stream_key: str, hub: StatusHub = Depends(get_hub)):
    """Query SRS, broadcast the result to socket clients, and return it."""
    status = await hub.ingest.check_stream_status(stream_key)
    return StreamStatusOut.from_status(status)


@router.get("/monitor", response_model=MonitorOut)
async def monitor_status(hub: StatusHub = Depends(get_hub)):
    return MonitorOut(**hub.monitor.status())


@router.get("/connections", response_model=ConnectionsOut)
async def connections(hub: StatusHub = Depends(get_hub)):
    """Socket clients, cache size, and fanout/mirror counters."""
    broadcaster = hub.broadcaster
    out = ConnectionsOut(
        connections=broadcaster.subscriber_count,
        cached_streams=len(hub.cache),
        published=broadcaster.published,
        dropped_clients=broadcaster.dropped,
    )
    if hub.mirror is not None:
        out.mirror_dropped = hub.mirror.dropped
        out.mirror_errors = hub.mirror.errors
    return out
