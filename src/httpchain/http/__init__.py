"""
=============================================================================
HTTP LAYER
=============================================================================

The protocol-facing half of httpchain: what a request looks like, how a
response is built and serialized, and how (method, path) pairs map to
handlers.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   raw bytes ──► RequestParser ──► Request                           │
    │                                      │                               │
    │                                      ▼                               │
    │                     Router.resolve() → RouteMatch                    │
    │                                      │                               │
    │                                      ▼                               │
    │                     handler(request, response, next)                 │
    │                                      │                               │
    │                                      ▼                               │
    │   raw bytes ◄── Response.to_bytes() ◄┘                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import Method, Request, RequestParser, HTTPParseError, parse_request
from .response import Response, error_response, format_http_date
from .router import Router, Route, RouteMatch, Segment, SegmentType
from .status_codes import HTTPStatus, phrase_for


__all__ = [
    # Request
    "Method",
    "Request",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response
    "Response",
    "error_response",
    "format_http_date",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "Segment",
    "SegmentType",

    # Status codes
    "HTTPStatus",
    "phrase_for",
]
