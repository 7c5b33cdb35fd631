"""Search backends and per-execution transport selection."""

from watcher_engine.search.backend import HttpSearchBackend, SearchBackend
from watcher_engine.search.transport import (
    SearchClient,
    SearchTransport,
    detect_federation,
    select_transport,
)

__all__ = [
    "HttpSearchBackend",
    "SearchBackend",
    "SearchClient",
    "SearchTransport",
    "detect_federation",
    "select_transport",
]
