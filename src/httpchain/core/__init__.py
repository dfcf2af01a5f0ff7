"""
=============================================================================
CORE NETWORKING
=============================================================================

The transport underneath the dispatch engine.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► Connection ──submit──► ThreadPool        │
    │   (listening socket)       (one request,          (bounded workers, │
    │                             bounded read)          bounded queue)   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection
from .thread_pool import ThreadPool


__all__ = [
    "SocketServer",
    "Connection",
    "ThreadPool",
]
