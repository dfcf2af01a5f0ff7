"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted socket carries one request and one response, then closes.
There is no keep-alive, so the reader stops as soon as it holds the header
section plus Content-Length bytes of body:

    recv ──► buffer ──► "\\r\\n\\r\\n" seen? ──► body complete? ──► raw bytes
                │                                    │
                └──── over max_request_size → 413 ───┘

A client that declares a body larger than the limit is refused before any
of that body is read.

=============================================================================
"""

import logging
import socket
import uuid
from typing import Optional, Tuple

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

HEADER_END = b"\r\n\r\n"


class Connection:
    """
    A client socket limited to a single request.

        conn = Connection(sock, address, timeout=30.0)
        try:
            raw = conn.read_request()
            if raw is not None:
                conn.send_response(serve(raw))
        finally:
            conn.close()
    """

    def __init__(
        self,
        sock: socket.socket,
        address: Tuple[str, int],
        buffer_size: int = 8192,
        timeout: Optional[float] = 30.0,
        max_request_size: int = 10 * 1024 * 1024,
    ):
        self.socket = sock
        self.address = address
        self.buffer_size = buffer_size
        self.max_request_size = max_request_size
        self.id = uuid.uuid4().hex[:8]
        self.closed = False
        sock.settimeout(timeout)

    def __repr__(self) -> str:
        return f"<Connection {self.id} {self.address[0]}:{self.address[1]}>"

    def read_request(self) -> Optional[bytes]:
        """
        Read the raw bytes of one request.

        Returns None when the client hangs up before finishing its headers.
        A body cut short is returned as is; RequestParser answers it with 400.

        Raises:
            HTTPParseError: 413 when the request would exceed max_request_size.
            TimeoutError: When the client stalls longer than the timeout.
        """
        buffer = bytearray()
        try:
            while HEADER_END not in buffer:
                if not self._fill(buffer):
                    return None

            body_start = buffer.index(HEADER_END) + len(HEADER_END)
            expected = body_start + _declared_length(bytes(buffer[:body_start]))
            if expected > self.max_request_size:
                raise HTTPParseError(
                    f"Request too large: declared {expected} bytes",
                    status_code=413,
                )

            while len(buffer) < expected:
                if not self._fill(buffer):
                    break
        except socket.timeout:
            raise TimeoutError("Request read timeout")

        return bytes(buffer[:expected])

    def _fill(self, buffer: bytearray) -> bool:
        """Append one recv() to buffer. False once the client is gone."""
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return False
        if not chunk:
            return False

        buffer += chunk
        if len(buffer) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: over {self.max_request_size} bytes",
                status_code=413,
            )
        return True

    def send_response(self, data: bytes) -> bool:
        """Write the serialized response. False if the client already left."""
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Client left before the response was sent: {e}")
            return False
        return True

    def close(self) -> None:
        """
        Half-close, drain what the client still sends for a moment, release.
        Draining keeps the kernel from resetting the connection before the
        client has read the response. Calling it twice is harmless.
        """
        if self.closed:
            return
        self.closed = True

        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(self.buffer_size):
                pass
        except OSError:
            pass
        finally:
            self.socket.close()
        logger.debug(f"[{self.id}] Closed")


def _declared_length(head: bytes) -> int:
    # malformed values count as 0 here; RequestParser rejects them with 400
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            try:
                return max(int(value), 0)
            except ValueError:
                return 0
    return 0
