"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The subset of RFC 7231 status codes the dispatch engine produces or that
handlers commonly reach for, each with its reason phrase.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ the chain finished and a handler responded               │
    │  4xx   │ the client sent something the chain refused              │
    │        │   (no route, wrong method, bad body, too large)          │
    │  5xx   │ a step failed or broke the chain contract                │
    └────────┴───────────────────────────────────────────────────────────┘

Anything not listed here can still be sent: Response.status() accepts a
plain int, and phrase_for() falls back to "Unknown".

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

    IntEnum, so members compare equal to plain ints:

        >>> HTTPStatus.CREATED == 201
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    LENGTH_REQUIRED = 411
    PAYLOAD_TOO_LARGE = 413
    UNSUPPORTED_MEDIA_TYPE = 415
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line ("HTTP/1.1 404 Not Found")."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """4xx or 5xx. Used by the access log to pick a log level."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",

    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.LENGTH_REQUIRED: "Length Required",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    HTTPStatus.TOO_MANY_REQUESTS: "Too Many Requests",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def phrase_for(status: int) -> str:
    """Reason phrase for any integer status, known or not."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"
