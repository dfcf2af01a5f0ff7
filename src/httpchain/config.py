"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the server in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpchain --port 3000                           │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_PORT=3000 python -m httpchain                        │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is validated once, at startup. A bad value stops the server
before it binds a socket, never hours later on the first request that
needs it.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    REQUEST LIMITS
    - max_request_size, max_body_size

    THREAD POOL SETTINGS
    - min_workers, max_workers, queue_size

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers)
    """

    port: int = 8080
    """Port to listen on. 0 asks the OS for a free port (used by tests)."""

    backlog: int = 128
    """Maximum number of connections waiting in the accept queue."""

    buffer_size: int = 8192
    """Size of each socket read, in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket read timeout in seconds. A client that stalls mid-request gets
    408. None blocks forever and is only sensible for debugging.
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest raw request (headers + body) read off a socket. Above: 413."""

    max_body_size: int = 1024 * 1024  # 1 MB
    """Largest body the BodyParser decodes. Above: 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started with the server."""

    max_workers: int = 16
    """
    Upper bound on worker threads.
    Rule of thumb: num_cores * 2 for I/O-bound workloads.
    """

    queue_size: int = 128
    """Connections waiting for a worker. When full, new ones get 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """
    Access log format: 'text' (Apache combined) or 'json'.
    JSON is better for log aggregators, text for humans.
    """

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "httpchain/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST           Server host (default: 127.0.0.1)
        HTTP_PORT           Server port (default: 8080)
        HTTP_WORKERS        Max worker threads (default: 16)
        HTTP_TIMEOUT        Socket timeout in seconds (default: 30)
        HTTP_LOG_LEVEL      Logging level (default: INFO)
        HTTP_LOG_FORMAT     Access log format (default: text)
        HTTP_MAX_BODY_SIZE  Body parser limit in bytes (default: 1048576)

        =====================================================================
        """
        defaults = cls()
        max_workers = int(os.getenv("HTTP_WORKERS", str(defaults.max_workers)))

        return cls(
            host=os.getenv("HTTP_HOST", defaults.host),
            port=int(os.getenv("HTTP_PORT", str(defaults.port))),
            max_workers=max_workers,
            min_workers=min(defaults.min_workers, max_workers),
            timeout=float(os.getenv("HTTP_TIMEOUT", str(defaults.timeout))),
            log_level=os.getenv("HTTP_LOG_LEVEL", defaults.log_level).upper(),
            log_format=os.getenv("HTTP_LOG_FORMAT", defaults.log_format).lower(),
            max_body_size=int(os.getenv("HTTP_MAX_BODY_SIZE", str(defaults.max_body_size))),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_body_size < 1:
            raise ValueError("max_body_size must be >= 1")

        if self.max_request_size < self.max_body_size:
            raise ValueError("max_request_size must be >= max_body_size")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be 'text' or 'json'.")
