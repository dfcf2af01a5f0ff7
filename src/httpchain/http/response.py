"""
=============================================================================
WRITE-ONCE HTTP RESPONSE
=============================================================================

Every request gets exactly one Response, created by the dispatcher and
handed to each step alongside the request. Steps shape it (status,
headers) and exactly one step finalizes it by writing a body.

=============================================================================
RESPONSE LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RESPONSE STATES                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    OPEN ────────────── send() / json() / text() / end() ──► FINAL   │
    │     │                                                          │    │
    │     ├── status(201)          chainable, stays OPEN             │    │
    │     └── set_header(k, v)     chainable, stays OPEN             │    │
    │                                                                 │    │
    │                        any write after FINAL                    │    │
    │                    ──► ResponseAlreadySent (recorded) ◄─────────┘    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A second write is a programming error in some step. It raises, and it is
also remembered in `violation`, so the dispatcher still reports it when the
step catches and ignores the exception.

=============================================================================
WIRE FORMAT
=============================================================================

to_bytes() produces the HTTP/1.1 message:

    HTTP/1.1 201 Created\\r\\n            ← status line
    Content-Type: application/json\\r\\n
    Content-Length: 28\\r\\n              ← auto-added
    Date: Sun, 18 Oct 2026 12:00:00 GMT\\r\\n  ← auto-added
    Server: httpchain/1.0\\r\\n           ← auto-added
    \\r\\n
    {"message": "Todo created"}

=============================================================================
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import json
import logging

from ..errors import ResponseAlreadySent
from .status_codes import HTTPStatus, phrase_for


logger = logging.getLogger(__name__)

DEFAULT_SERVER_NAME = "httpchain/1.0"


class Response:
    """
    Mutable, write-once response builder.

    Usage inside a step:

        def create_todo(request, response, next):
            store.create(request.parsed_body)
            response.status(HTTPStatus.CREATED).json({"message": "Todo created"})

    Finalizing methods: send(), json(), text(), end().
    Chainable, non-finalizing: status(), set_header().
    """

    def __init__(self):
        self.status_code: int = HTTPStatus.OK
        self.headers: Dict[str, str] = {}
        self.body: bytes = b""
        self.version = "HTTP/1.1"
        self.violation: Optional[ResponseAlreadySent] = None
        self._finalized = False
        self._finish_callbacks: List[Callable[["Response"], None]] = []

    def __repr__(self) -> str:
        state = "final" if self._finalized else "open"
        return f"<Response {self.status_code} {state} {len(self.body)} bytes>"

    @property
    def finalized(self) -> bool:
        return self._finalized

    # =========================================================================
    # SHAPING (does not finalize)
    # =========================================================================

    def status(self, code: int) -> "Response":
        """Set the status code. Returns self for chaining."""
        self._check_open("status")
        self.status_code = code
        return self

    def set_header(self, name: str, value: str) -> "Response":
        """
        Set a response header. Returns self for chaining.

        Raises:
            ValueError: If the name or value contains CR/LF or is not
                representable in Latin-1 (the header encoding on the wire).
        """
        self._check_open("set_header")
        value = str(value)
        for part in (name, value):
            if "\r" in part or "\n" in part:
                raise ValueError(f"Header {name!r} contains a line break")
            try:
                part.encode("latin-1")
            except UnicodeEncodeError:
                raise ValueError(f"Header {name!r} is not Latin-1 encodable") from None
        self.headers[name] = value
        return self

    def reset_headers(self, keep: Iterable[str] = ()) -> "Response":
        """Drop every header except those named in `keep` (case-insensitive)."""
        self._check_open("reset_headers")
        kept = {name.lower() for name in keep}
        self.headers = {k: v for k, v in self.headers.items() if k.lower() in kept}
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    # =========================================================================
    # FINALIZING
    # =========================================================================

    def send(self, body: Union[str, bytes, dict, list, None] = b"") -> "Response":
        """
        Write the body and finalize.

        dict/list bodies go through json(), str bodies through text(), bytes
        are sent as-is.
        """
        if isinstance(body, (dict, list)):
            return self.json(body)
        if isinstance(body, str):
            return self.text(body)
        self._check_open("send")
        self.body = body or b""
        self._finalized = True
        return self

    def json(self, data: Any, pretty: bool = False) -> "Response":
        """Serialize `data` as JSON, set Content-Type and finalize."""
        self._check_open("json")
        indent = 2 if pretty else None
        self.body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self.headers.setdefault("Content-Type", "application/json; charset=utf-8")
        self._finalized = True
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "Response":
        """Write a text body, set Content-Type and finalize."""
        self._check_open("text")
        self.body = text.encode("utf-8")
        self.headers.setdefault("Content-Type", content_type)
        self._finalized = True
        return self

    def end(self) -> "Response":
        """Finalize with whatever status and headers are set and no body."""
        self._check_open("end")
        self._finalized = True
        return self

    def _check_open(self, operation: str) -> None:
        if not self._finalized:
            return
        violation = ResponseAlreadySent(
            f"Response.{operation}() called after the response was finalized "
            f"(status {self.status_code})"
        )
        if self.violation is None:
            self.violation = violation
        raise violation

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def on_finish(self, callback: Callable[["Response"], None]) -> None:
        """Register a callback run once the dispatcher is done with the response."""
        self._finish_callbacks.append(callback)

    def run_finish_callbacks(self, sent: Optional["Response"] = None) -> None:
        """
        Run and clear the registered callbacks.

        `sent` is the response that actually went out, when the dispatcher
        had to replace this one (contract violations). Defaults to self.
        """
        callbacks, self._finish_callbacks = self._finish_callbacks, []
        for callback in callbacks:
            try:
                callback(sent or self)
            except Exception:
                logger.exception("on_finish callback %r failed", callback)

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status_code)} {phrase_for(self.status_code)}"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """Serialize to the HTTP/1.1 wire format."""
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date.

    Always GMT: "Sun, 18 Oct 2026 12:00:00 GMT"
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def error_response(status: int, message: str, **extra: Any) -> Response:
    """
    A fresh, finalized JSON error response.

    Used outside the chain, where there is no in-progress response to write
    into: parse errors, an overloaded worker pool, aborted requests.
    """
    return Response().status(status).json({"error": message, **extra})
