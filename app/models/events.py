"""
Inbound status events, validated at the HTTP boundary.

SRS posts a JSON body with an ``action`` tag. parse_callback turns it into
one of the event types below, or None when the action is not one we handle.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import parse_qs

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("restream.events")

UNKNOWN_STREAM = "unknown"


class SrsCallback(BaseModel):
    """Body of an SRS HTTP callback (only the fields we read)."""
    model_config = ConfigDict(extra="ignore")

    action: str = ""
    client_id: Optional[Union[str, int]] = None
    ip: Optional[str] = None
    vhost: Optional[str] = None
    app: Optional[str] = None
    stream: Optional[str] = None
    param: Optional[str] = None

    @property
    def stream_key(self) -> str:
        """``stream``, else ``stream`` from the ``param`` query string, else "unknown"."""
        if self.stream:
            return self.stream
        if self.param:
            values = parse_qs(self.param.lstrip("?")).get("stream")
            if values and values[0]:
                return values[0]
        return UNKNOWN_STREAM


@dataclass(frozen=True)
class PublishEvent:
    stream_key: str


@dataclass(frozen=True)
class UnpublishEvent:
    stream_key: str


@dataclass(frozen=True)
class ViewerEvent:
    """A player attached to (joined=True) or left a stream."""
    stream_key: str
    joined: bool


@dataclass(frozen=True)
class PollResult:
    """Outcome of querying SRS for one stream key."""
    stream_key: str
    is_live: bool
    viewer_count: int = 0


CallbackEvent = Union[PublishEvent, UnpublishEvent, ViewerEvent]


def parse_callback(body: SrsCallback) -> CallbackEvent | None:
    key = body.stream_key
    if body.action == "on_publish":
        return PublishEvent(key)
    if body.action == "on_unpublish":
        return UnpublishEvent(key)
    if body.action == "on_play":
        return ViewerEvent(key, joined=True)
    if body.action == "on_stop":
        return ViewerEvent(key, joined=False)
    logger.info("Ignoring SRS callback with unknown action %r (stream=%s)", body.action, key)
    return None
