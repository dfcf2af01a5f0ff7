"""
=============================================================================
HANDLERS MODULE
=============================================================================

Application-level route handlers built on the dispatch engine.

=============================================================================
WHAT IS A HANDLER?
=============================================================================

A handler is the last step a request reaches: the router calls it with the
request, the response and the continuation, and it answers the request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   def handler(request, response, next):                             │
    │       request.path_params     {"id": "42"}     from the router      │
    │       request.parsed_body     {...}            from the BodyParser  │
    │                                                                      │
    │       response.status(201).json({...})         answer               │
    │       raise MalformedBodyError(...)            or fail              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Class handlers (TodoResource) group related routes around shared state and
register themselves on a router.

=============================================================================
"""

from .todos import TodoResource, TodoStore

__all__ = [
    "TodoResource",
    "TodoStore",
]
