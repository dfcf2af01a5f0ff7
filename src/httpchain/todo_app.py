"""
=============================================================================
TODO EXAMPLE APPLICATION
=============================================================================

The reference wiring of the engine, end to end:

    normal chain
      0  LoggingMiddleware     every request, before anything else
      1  BodyParser            JSON / form bodies → request.parsed_body
      2  Router
           GET    /             "Welcome to the todo API"
           GET    /about        "A small todo API"
           GET    /todos        list
           POST   /todos        create
           PUT    /todos/:id    update
           DELETE /todos/:id    delete

    error chain
      0  json_error_responder  {"error": ..., "status": ...}

=============================================================================
"""

import logging
from typing import Optional

from .app import Application
from .config import ServerConfig
from .handlers.todos import TodoResource, TodoStore
from .middleware import BodyParser, LoggingMiddleware, json_error_responder


def create_todo_app(
    store: Optional[TodoStore] = None,
    config: Optional[ServerConfig] = None,
) -> Application:
    """
    Build the todo application.

    Args:
        store: Todo store to serve. A fresh empty one by default; tests pass
            their own to inspect it.
        config: Supplies the access-log format and the body size limit.
    """
    config = config or ServerConfig()
    store = store if store is not None else TodoStore()

    app = Application(name="todo-api")
    app.use(LoggingMiddleware(
        log_format=config.log_format,
        log_level=logging.INFO,
    ))
    app.use(BodyParser(max_body_size=config.max_body_size))

    @app.get("/")
    def index(request, response, next):
        response.text("Welcome to the todo API")

    @app.get("/about")
    def about(request, response, next):
        response.text("A small todo API")

    TodoResource(store).register(app.router)

    app.use_on_error(json_error_responder)
    return app
