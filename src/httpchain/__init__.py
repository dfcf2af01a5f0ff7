"""
=============================================================================
HTTPCHAIN - Routing and Middleware Dispatch for HTTP/1.1
=============================================================================

A small HTTP application layer: a router, an ordered middleware chain with
an explicit continuation, a parallel error chain, and a socket server to
run it all on.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTPCHAIN ARCHITECTURE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   server.py        HTTPServer: sockets, worker pool, one request    │
    │        │           per connection                                   │
    │        ▼                                                             │
    │   app.py           Application.dispatch(request) → Response         │
    │        │                                                             │
    │        ▼                                                             │
    │   middleware/      Chain: normal steps, then error steps on failure │
    │        │                                                             │
    │        ▼                                                             │
    │   http/router.py   Router: (method, path) → handler                 │
    │        │                                                             │
    │        ▼                                                             │
    │   handlers/        TodoResource: the worked example                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from httpchain import Application, HTTPServer, ServerConfig
    from httpchain.middleware import LoggingMiddleware, json_error_responder

    app = Application()
    app.use(LoggingMiddleware())

    @app.get("/hello/:name")
    def hello(request, response, next):
        response.json({"hello": request.path_params["name"]})

    app.use_on_error(json_error_responder)

    HTTPServer(app, ServerConfig(port=3000)).run()

Or run the todo example: python -m httpchain --port 3000

=============================================================================
"""

__version__ = "1.0.0"

from .app import Application
from .config import ServerConfig
from .errors import (
    ContractViolation,
    HandlerError,
    HTTPChainError,
    HTTPError,
    MalformedBodyError,
    MethodNotAllowed,
    NotFound,
    PayloadTooLarge,
)
from .server import HTTPServer
from .todo_app import create_todo_app

__all__ = [
    "Application",
    "HTTPServer",
    "ServerConfig",
    "create_todo_app",

    "HTTPChainError",
    "HTTPError",
    "NotFound",
    "MethodNotAllowed",
    "MalformedBodyError",
    "PayloadTooLarge",
    "HandlerError",
    "ContractViolation",

    "__version__",
]
