from watcher.client import ClientState, StatusClient
from watcher.store import StreamStatusStore

__all__ = ["ClientState", "StatusClient", "StreamStatusStore"]
