"""
=============================================================================
MIDDLEWARE
=============================================================================

The dispatch engine and the steps that ship with it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   base.py         Chain, Continuation, MiddlewareEntry              │
    │                   the dispatch loop and its contract                │
    │                                                                      │
    │   logging.py      LoggingMiddleware    entry line + access line     │
    │   body_parser.py  BodyParser           JSON / form bodies           │
    │   errors.py       json_error_responder, default_error_responder     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A step is any callable taking (request, response, next). An error step
takes (error, request, response, next) and is registered with
use_on_error(), never with use().

=============================================================================
"""

from .base import (
    Chain,
    ChainResult,
    Continuation,
    ErrorMiddleware,
    Middleware,
    MiddlewareEntry,
    NextFunction,
    Outcome,
)
from .body_parser import BodyParser
from .errors import default_error_responder, json_error_responder
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    # Engine
    "Chain",
    "ChainResult",
    "Continuation",
    "ErrorMiddleware",
    "Middleware",
    "MiddlewareEntry",
    "NextFunction",
    "Outcome",

    # Steps
    "BodyParser",
    "LoggingMiddleware",
    "RequestLog",

    # Error steps
    "default_error_responder",
    "json_error_responder",
]
