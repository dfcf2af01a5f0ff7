"""
=============================================================================
TODO RESOURCE
=============================================================================

An in-memory CRUD resource, the worked example for the dispatch engine.

    ┌────────┬──────────────┬─────────────┬──────────────────────────────┐
    │ Method │ Path         │ Body        │ Success                      │
    ├────────┼──────────────┼─────────────┼──────────────────────────────┤
    │ GET    │ /todos       │ -           │ 200 [todo, ...]              │
    │ POST   │ /todos       │ JSON object │ 201 {"message": "Todo created"}
    │ PUT    │ /todos/:id   │ JSON object │ 200 {"message": "Todo updated"}
    │ DELETE │ /todos/:id   │ -           │ 200 {"message": "Todo deleted"}
    └────────┴──────────────┴─────────────┴──────────────────────────────┘

A todo is any JSON object with an "id" field. Ids are supplied by the
client and not checked for uniqueness, so update and delete act on every
todo whose id matches. An id that matches nothing still succeeds.

=============================================================================
CONCURRENCY
=============================================================================

Requests run on a pool of worker threads, so the store is shared mutable
state. A single lock guards every read and write: list() never sees a
half-applied update, and two concurrent updates can't lose each other.

=============================================================================
"""

from copy import deepcopy
from typing import Any, Dict, List
import logging
import threading

from ..errors import MalformedBodyError
from ..http.request import Request
from ..http.response import Response
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..middleware.base import NextFunction


logger = logging.getLogger(__name__)

Todo = Dict[str, Any]


class TodoStore:
    """
    Ordered, lock-guarded list of todos.

    Example:
        store = TodoStore()
        store.create({"id": 1, "title": "milk"})
        store.update("1", {"id": 1, "title": "oat milk"})   # → 1
        store.delete("7")                                   # → 0, no-op
    """

    def __init__(self, todos: List[Todo] = None):
        self._todos: List[Todo] = list(todos or [])
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._todos)

    def list(self) -> List[Todo]:
        """A deep copy of every todo, in insertion order."""
        with self._lock:
            return deepcopy(self._todos)

    def create(self, todo: Todo) -> Todo:
        with self._lock:
            self._todos.append(todo)
        return todo

    def update(self, todo_id: str, todo: Todo) -> int:
        """Replace every todo with a matching id in place. Returns the count."""
        replaced = 0
        with self._lock:
            for index, existing in enumerate(self._todos):
                if _matches(existing, todo_id):
                    self._todos[index] = todo
                    replaced += 1
        return replaced

    def delete(self, todo_id: str) -> int:
        """Remove every todo with a matching id. Returns the count."""
        with self._lock:
            before = len(self._todos)
            self._todos = [t for t in self._todos if not _matches(t, todo_id)]
            return before - len(self._todos)


def _matches(todo: Todo, todo_id: str) -> bool:
    # ids arrive as path segments, stored ids may be numbers
    return "id" in todo and str(todo["id"]) == todo_id


class TodoResource:
    """
    Route handlers for the todo store.

    Usage:
        resource = TodoResource(TodoStore())
        resource.register(app.router)
    """

    def __init__(self, store: TodoStore):
        self.store = store
        self._router = None

    def register(self, router: Router, prefix: str = "/todos") -> None:
        prefix = "/" + prefix.strip("/")
        self._router = router
        router.register("GET", prefix, self.list_todos, name="list_todos")
        router.register("POST", prefix, self.create_todo, name="create_todo")
        router.register("PUT", f"{prefix}/:id", self.update_todo, name="update_todo")
        router.register("DELETE", f"{prefix}/:id", self.delete_todo, name="delete_todo")

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def list_todos(self, request: Request, response: Response, next: NextFunction) -> None:
        response.json(self.store.list())

    def create_todo(self, request: Request, response: Response, next: NextFunction) -> None:
        todo = self._require_object(request)
        self.store.create(todo)

        location = self._location_of(request, todo)
        if location:
            response.set_header("Location", location)
        response.status(HTTPStatus.CREATED).json({"message": "Todo created"})

    def update_todo(self, request: Request, response: Response, next: NextFunction) -> None:
        todo = self._require_object(request)
        todo_id = request.path_params["id"]
        replaced = self.store.update(todo_id, todo)
        logger.debug(f"Updated {replaced} todo(s) with id {todo_id}")
        response.json({"message": "Todo updated"})

    def delete_todo(self, request: Request, response: Response, next: NextFunction) -> None:
        todo_id = request.path_params["id"]
        removed = self.store.delete(todo_id)
        logger.debug(f"Deleted {removed} todo(s) with id {todo_id}")
        response.json({"message": "Todo deleted"})

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _require_object(request: Request) -> Todo:
        if not request.body_parsed or not isinstance(request.parsed_body, dict):
            raise MalformedBodyError("Request body must be a JSON object")
        return request.parsed_body

    def _location_of(self, request: Request, todo: Todo) -> str:
        if self._router is None or "id" not in todo:
            return ""
        path = self._router.url_for("update_todo", id=todo["id"])
        return request.base_path + path if path else ""
