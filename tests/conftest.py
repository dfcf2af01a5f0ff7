"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpchain import HTTPServer, ServerConfig, create_todo_app
from httpchain.handlers.todos import TodoStore


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /todos?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"id": 1, "title": "buy milk"}'
    head = (
        "POST /todos HTTP/1.1\r\n"
        "Host: localhost:8080\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode() + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def store() -> TodoStore:
    return TodoStore()


@pytest.fixture
def todo_app(store):
    return create_todo_app(store=store)


class LiveServer:
    """Runs an HTTPServer on a background thread for socket-level tests."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"banner": False},
            daemon=True,
        )
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes, read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            chunks = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def live_server(config, store) -> Generator[LiveServer, None, None]:
    """The todo application served on a free port."""
    server = HTTPServer(create_todo_app(store=store, config=config), config)
    live = LiveServer(server)
    live.start()

    yield live

    live.stop()
