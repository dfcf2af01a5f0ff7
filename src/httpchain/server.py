"""
=============================================================================
HTTP SERVER
=============================================================================

Puts an Application on the network: sockets in, worker threads in the
middle, Application.dispatch() doing the HTTP work.

=============================================================================
REQUEST JOURNEY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer.accept()                                              │
    │        │                                                             │
    │        ▼                                                             │
    │   ThreadPool.submit(process_connection)  ── queue full ──► 503      │
    │        │                                                             │
    │        ▼  (worker thread)                                            │
    │   Connection.read_request()   ── too large ──► 413                  │
    │        │                      ── timeout   ──► 408                  │
    │        ▼                                                             │
    │   RequestParser.parse()       ── malformed ──► 400 / 405 / 505      │
    │        │                                                             │
    │        ▼                                                             │
    │   Application.dispatch()      ── always one Response                │
    │        │                                                             │
    │        ▼                                                             │
    │   Response.to_bytes() ──► Connection.send_response() ──► close      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Errors before dispatch (transport and parse errors) never reach the chain:
there is no Request to hand it. They are answered here with a small JSON
error body.

=============================================================================
"""

import logging
from typing import Optional, Tuple

from .app import Application
from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .http import HTTPParseError, HTTPStatus, RequestParser, Response, error_response


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Serves one Application over HTTP/1.1.

    Usage:
        app = create_todo_app()
        server = HTTPServer(app, ServerConfig(port=3000))
        server.run()                      # blocks until SIGINT/SIGTERM

    From another thread (tests):
        thread = threading.Thread(target=server.run, kwargs={"banner": False})
        thread.start()
        server.wait_until_ready()
        host, port = server.address
        ...
        server.stop()
    """

    def __init__(self, app: Application, config: Optional[ServerConfig] = None):
        self.app = app
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, banner: bool = True) -> None:
        """Start the workers and serve until shutdown. Blocks."""
        self._setup_logging()
        self._thread_pool.start()

        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = 5.0) -> bool:
        """Block until the listening socket is bound. Returns False on timeout."""
        return self._socket_server.ready.wait(timeout)

    def stop(self) -> None:
        """Ask a running server to stop. Returns immediately."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  {self.config.server_name} running")
        print(f"  http://{self.config.host}:{self.config.port}")
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()
        for method, path in self.app.describe_routes():
            print(f"  {method:8} {path}")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httpchain").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._thread_pool.shutdown(wait=True)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Called on the accept thread. Must not block."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Serve exactly one request on a worker thread, then close."""
        try:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except HTTPParseError as e:
                self._send_error(conn, e.status_code, str(e))
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.info(f"[{conn.id}] Rejected request: {e}")
                self._send_error(conn, e.status_code, str(e))
                return

            response = self.app.dispatch(request)
            self._send(conn, response)

        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            conn.close()

    def _send(self, conn: Connection, response: Response) -> None:
        # the response is finalized by now, so bypass set_header()
        response.headers["Connection"] = "close"
        try:
            data = response.to_bytes(self.config.server_name)
        except UnicodeEncodeError as e:
            # headers assigned directly on response.headers skip set_header()
            logger.error(f"[{conn.id}] Response headers not serializable: {e}")
            fallback = error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")
            fallback.headers["Connection"] = "close"
            data = fallback.to_bytes(self.config.server_name)
        conn.send_response(data)

    def _send_error(self, conn: Connection, status: int, message: str) -> None:
        self._send(conn, error_response(status, message))

