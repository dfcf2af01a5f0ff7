"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

Records every request on the way in and writes one access-log line once
the response is settled, with timing and a correlation ID.

=============================================================================
WHY THE LINE IS WRITTEN FROM on_finish
=============================================================================

Steps in this chain don't wrap each other, so there is no "after next()"
moment to log from. Instead the middleware registers a completion callback
on the response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   LoggingMiddleware ──► ... ──► Router ──► handler responds          │
    │      │                                                               │
    │      ├── log "GET /todos"          (entry, before any handler)      │
    │      ├── set X-Request-ID                                           │
    │      └── response.on_finish(...)                                    │
    │                                         dispatch done                │
    │                                              │                       │
    │      access line ◄───────────────────────────┘                       │
    │      status, size, duration                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The callback sees the response that was actually sent, including error
responses and the 500 that replaces a response after a contract violation.

=============================================================================
LOG FORMATS
=============================================================================

    APACHE COMBINED LOG FORMAT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 10.0.0.7 - - [18/Oct/2026:10:55:36 +0000] "GET /todos" 200 54 0.41ms│
    │ IP          Timestamp          Method/Path   Status Size Duration   │
    └─────────────────────────────────────────────────────────────────────┘

    JSON FORMAT (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/todos",       │
    │  "client_ip": "10.0.0.7", "status_code": 200, "duration_ms": 0.41}  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import List, Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextFunction
from ..http.request import Request
from ..http.response import Response


# Namespaced so deployments can route access lines separately:
#   logging.getLogger("httpchain.access").addHandler(file_handler)
logger = logging.getLogger("httpchain.access")


@dataclass
class RequestLog:
    """
    Structured log entry for one request.

    request_id:     Correlation ID, also sent back as X-Request-ID
    method:         HTTP method (GET, POST, etc.)
    path:           Request path (e.g., /todos/42)
    query:          Query string parameters
    client_ip:      Client's IP address
    user_agent:     Browser/client identifier
    status_code:    Status of the response that was sent
    content_length: Response body size in bytes
    duration_ms:    Time from entering the chain to completion
    timestamp:      When the request entered the chain
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["status_code"] = int(self.status_code)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Apache combined log format."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {int(self.status_code)} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Register it FIRST so that every request is recorded, including those
    rejected by later steps:

        app.use(LoggingMiddleware())                      # text format
        app.use(LoggingMiddleware(log_format="json"))     # for aggregators
        app.use(LoggingMiddleware(skip_paths=["/"]))      # quiet smoke tests
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[List[str]] = None,
    ):
        """
        Args:
            log_format: "text" (Apache combined) or "json".
            include_request_id: Add an X-Request-ID header to the response.
            log_level: Level used for both the entry line and the access line.
            skip_paths: Paths that are neither announced nor access-logged.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: Request, response: Response, next: NextFunction) -> None:
        # an incoming X-Request-ID is propagated, not replaced
        request_id = request.get_header("x-request-id") or str(uuid.uuid4())[:8]

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path not in self.skip_paths:
            logger.log(self.log_level, f"{request.method} {request.path}")

            start_time = time.time()
            timestamp = time.strftime("%d/%b/%Y:%H:%M:%S %z")

            def write_access_line(sent: Response) -> None:
                entry = RequestLog(
                    request_id=request_id,
                    method=request.method,
                    path=request.path,
                    query=str(request.query_params) if request.query_params else "",
                    client_ip=request.client_address[0],
                    user_agent=request.user_agent or "-",
                    status_code=sent.status_code,
                    content_length=len(sent.body),
                    duration_ms=(time.time() - start_time) * 1000,
                    timestamp=timestamp,
                )
                self.emit(entry)

            response.on_finish(write_access_line)

        next()

    def emit(self, entry: RequestLog) -> None:
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
