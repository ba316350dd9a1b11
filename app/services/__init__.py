from app.services.connection_registry import Connection, ConnectionGoneError, ConnectionRegistry
from app.services.hub import StatusHub
from app.services.ingest import StatusIngest
from app.services.live_broadcast import StatusBroadcaster
from app.services.srs_client import SrsClient, SrsUnavailableError
from app.services.status_cache import StatusCache
from app.services.stream_monitor import StreamMonitor

__all__ = [
    "Connection",
    "ConnectionGoneError",
    "ConnectionRegistry",
    "SrsClient",
    "SrsUnavailableError",
    "StatusBroadcaster",
    "StatusCache",
    "StatusHub",
    "StatusIngest",
    "StreamMonitor",
]
