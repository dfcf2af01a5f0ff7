"""
=============================================================================
LISTENER
=============================================================================

Owns the listening socket and the accept loop, and hands every accepted
client to a callback as a Connection. It knows nothing about HTTP.

    create_server(host, port) ──► ready.set()
            │
            ▼
    ┌─► accept()  ── no client within POLL_INTERVAL ──┐
    │      │                                           │
    │      ▼                                           │
    │   on_connection(Connection(...))  must not block │
    │      │                                           │
    └──────┴──────────── until shutdown() ◄────────────┘

shutdown() may be called from any thread. When serving on the main thread,
SIGINT and SIGTERM call it too; Python only allows signal handlers there,
so servers run from other threads (tests) are stopped explicitly.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Dict, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SocketServer:
    """
    Accept loop over one listening TCP socket.

    Usage:
        listener = SocketServer(config)
        listener.start(on_connection)    # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self.ready = threading.Event()
        self._stop = threading.Event()
        self._bound: Optional[Tuple[str, int]] = None

    @property
    def is_running(self) -> bool:
        return self.ready.is_set() and not self._stop.is_set()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound address once listening; shows the OS-picked port for port 0."""
        return self._bound or (self.config.host, self.config.port)

    def start(self, on_connection: Callable[[Connection], None]) -> None:
        """
        Listen and accept until shutdown().

        Raises:
            OSError: If the address can't be bound.
        """
        host, port = self.config.host, self.config.port
        try:
            listener = socket.create_server((host, port), backlog=self.config.backlog)
        except OSError as e:
            logger.error(f"Cannot listen on {host}:{port}: {e}")
            raise

        self._stop.clear()
        listener.settimeout(POLL_INTERVAL)
        previous_handlers = self._install_signal_handlers()
        self._bound = listener.getsockname()[:2]
        logger.info(f"Listening on {self._bound[0]}:{self._bound[1]}")
        self.ready.set()

        try:
            with listener:
                self._accept_until_stopped(listener, on_connection)
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
            self.ready.clear()
            logger.info("Listener closed")

    def shutdown(self) -> None:
        """Stop accepting. start() returns within POLL_INTERVAL."""
        self._stop.set()

    def _accept_until_stopped(
        self,
        listener: socket.socket,
        on_connection: Callable[[Connection], None],
    ) -> None:
        while not self._stop.is_set():
            try:
                client, address = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._stop.is_set():
                    logger.error(f"accept() failed: {e}")
                return

            client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            on_connection(Connection(
                client,
                address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            ))

    def _install_signal_handlers(self) -> Dict[int, object]:
        if threading.current_thread() is not threading.main_thread():
            return {}

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        return {signum: signal.signal(signum, on_signal) for signum in STOP_SIGNALS}
