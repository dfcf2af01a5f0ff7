"""
=============================================================================
HTTP REQUEST MODEL AND PARSER
=============================================================================

Two things live here:

1. Request: the view of an inbound request that every middleware step and
   route handler receives.
2. RequestParser: turns raw HTTP/1.x bytes from a socket into a Request.

=============================================================================
WHAT A STEP SEES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Request                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   set by the parser (never changed afterwards)                      │
    │     method         "PUT"                                            │
    │     path           "/todos/42"                                      │
    │     headers        {"content-type": "application/json", ...}       │
    │     query_params   {"verbose": ["1"]}                               │
    │     body           b'{"id": "42", "title": "milk"}'                 │
    │                                                                      │
    │   set during dispatch                                               │
    │     path_params    {"id": "42"}              ← Router              │
    │     parsed_body    {"id": "42", ...}         ← BodyParser          │
    │     base_path      "/api"                    ← mounted sub-chain    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Only the fields in the lower box change once dispatch begins. Steps are
free to read anything, but treat the parser-set fields as read-only.

=============================================================================
MOUNTED SUB-CHAINS AND relative_path
=============================================================================

When a chain is mounted under a prefix, it matches its own steps and routes
against the part of the path below that prefix:

    app.use("/api", api_chain)

    GET /api/todos/7
        path           = "/api/todos/7"   (unchanged)
        base_path      = "/api"           (while api_chain runs)
        relative_path  = "/todos/7"       (what api_chain matches on)

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, unquote, urlparse
import re


class Method(str, Enum):
    """
    The fixed set of request methods the server accepts.

    A str Enum, so `Method.GET == "GET"` and members can be used anywhere a
    method string is expected.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def values(cls) -> frozenset:
        return frozenset(member.value for member in cls)


class HTTPParseError(Exception):
    """
    Raised when raw request bytes can't be turned into a Request.

    Carries the status code the server should answer with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Request:
    """
    A parsed HTTP request.

    Headers are stored with lower-case names (HTTP header names are
    case-insensitive per RFC 7230), so lookups never need .lower() except
    through get_header().
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)
    parsed_body: Any = None
    body_parsed: bool = False
    base_path: str = ""

    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        self.method = self.method.upper()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """
        Media type of the body, without parameters.

        "application/json; charset=utf-8" → "application/json"
        """
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Declared Content-Length, 0 if missing or not a number."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def relative_path(self) -> str:
        """Path below the current mount prefix (see module docstring)."""
        if self.base_path and self.path.startswith(self.base_path):
            return self.path[len(self.base_path):] or "/"
        return self.path

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter (?page=1&page=2 → "1")."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> list[str]:
        """Every value of a query parameter, in order."""
        return self.query_params.get(name, [])

    def set_parsed_body(self, value: Any) -> None:
        """Record the decoded body. Called by body-parsing steps only."""
        self.parsed_body = value
        self.body_parsed = True


class RequestParser:
    """
    Parses raw HTTP request bytes into Request objects.

    ==========================================================================
    PARSING STEPS
    ==========================================================================

        raw bytes
            │
            ├── 1. size check                 too big?   → 413
            ├── 2. split at \\r\\n\\r\\n          missing?   → 400
            ├── 3. request line               malformed? → 400
            │                                 method?    → 405
            │                                 version?   → 505
            ├── 4. headers (lower-cased names, repeats joined with ", ")
            └── 5. body, exactly Content-Length bytes

    ==========================================================================
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Largest request (headers + body) accepted, in
                bytes. Anything larger is rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple[str, int] = ("", 0)) -> Request:
        """
        Parse one complete request.

        Raises:
            HTTPParseError: If the bytes are not a valid HTTP/1.x request.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return Request(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, Dict[str, list[str]], str]:
        """METHOD SP REQUEST-URI SP HTTP-VERSION → (method, path, query, version)."""
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in Method.values():
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        # "/../../etc/passwd" style paths never reach the router
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            # obsolete line folding: continuation of the previous header
            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> Request:
    """Parse in one call with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
