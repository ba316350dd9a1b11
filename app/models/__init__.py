from app.models.events import (
    CallbackEvent,
    PollResult,
    PublishEvent,
    SrsCallback,
    UnpublishEvent,
    ViewerEvent,
    parse_callback,
)
from app.models.status import StreamStatus, snapshot_frame, status_frame

__all__ = [
    "CallbackEvent",
    "PollResult",
    "PublishEvent",
    "SrsCallback",
    "StreamStatus",
    "UnpublishEvent",
    "ViewerEvent",
    "parse_callback",
    "snapshot_frame",
    "status_frame",
]
