"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handlers. Supports:
- Static paths: /todos, /about
- Named parameters: /todos/:id or /todos/{id}
- Method-based routing: GET, POST, PUT, DELETE, etc.

The router is also a middleware step: mount it in a Chain and it answers the
requests it has routes for, passing everything else down the chain.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   PUT /todos/42                                                      │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER (scanned in registration order)                      │   │
    │   │  ┌────────────────────────────────────────────────────────┐ │   │
    │   │  │ GET    /todos       → list_todos                       │ │   │
    │   │  │ POST   /todos       → create_todo                      │ │   │
    │   │  │ PUT    /todos/:id   → update_todo      ← MATCH!        │ │   │
    │   │  │ DELETE /todos/:id   → delete_todo                      │ │   │
    │   │  └────────────────────────────────────────────────────────┘ │   │
    │   │                                                              │   │
    │   │  Extracted: path_params = {"id": "42"}                      │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   update_todo(request, response, next)                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    No route for the path at all     → next()          (NotFound)
    Path known, method not           → 405 + Allow     (MethodNotAllowed)
    Handler raised a plain exception → HandlerError    (error pipeline)

=============================================================================
PATTERN MATCHING ALGORITHM
=============================================================================

Routes are compiled to regex patterns when registered:

    Pattern:  /users/:id/posts/{post_id}
                 │     │         │
                 ▼     ▼         ▼
    Regex:    ^/users/(?P<id>[^/]+)/posts/(?P<post_id>[^/]+)$

Parameters bind exactly one non-empty segment. Trailing slashes are ignored
on both the pattern and the request path.

Route conflicts are settled by registration order alone: the first route
whose method and pattern both match wins, so /users/me must be registered
before /users/:id.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import re
from urllib.parse import quote

from ..errors import (
    ContractViolation,
    HandlerError,
    HTTPError,
    InvalidPatternError,
    MethodNotAllowed,
    NotFound,
)
from .request import Request
from .response import Response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# Every handler gets the request, the in-progress response and the
# continuation for the rest of the chain. It either finalizes the response
# or calls next() (optionally with an error).
Handler = Callable[[Request, Response, Callable[..., None]], None]


class SegmentType(Enum):
    """How a single pattern segment is matched."""
    STATIC = "static"   # todos - exact match required
    PARAM = "param"     # :id or {id} - captures one path segment


@dataclass(frozen=True)
class Segment:
    kind: SegmentType
    value: str          # literal text, or the parameter name


@dataclass
class Route:
    """
    A registered route.

        @router.put("/todos/:id", name="update_todo")
        def update_todo(request, response, next):
            ...

        Route(
            method="PUT",
            path="/todos/:id",
            handler=update_todo,
            name="update_todo",
            segments=[Segment(STATIC, "todos"), Segment(PARAM, "id")],
        )
    """

    method: str
    path: str
    handler: Handler
    name: Optional[str] = None
    segments: List[Segment] = field(default_factory=list)

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)

    @property
    def param_names(self) -> List[str]:
        return [s.value for s in self.segments if s.kind is SegmentType.PARAM]


@dataclass
class RouteMatch:
    """
    Result of a successful route match.

    Example:
        Pattern: /todos/:id
        Path:    /todos/42
        Result:  RouteMatch(route=<Route>, params={"id": "42"})
    """
    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered route table that doubles as a middleware step.

    ==========================================================================
    DECORATOR-BASED API
    ==========================================================================

        router = Router()

        @router.get("/todos")
        def list_todos(request, response, next):
            response.json(store.list())

        @router.put("/todos/:id")
        def update_todo(request, response, next):
            store.update(request.path_params["id"], request.parsed_body)
            response.json({"message": "Todo updated"})

    ==========================================================================
    REVERSE ROUTING
    ==========================================================================

        @router.put("/todos/:id", name="update_todo")
        def update_todo(request, response, next):
            ...

        router.url_for("update_todo", id="42")   # "/todos/42"

    ==========================================================================
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._named_routes: Dict[str, Route] = {}

    def __repr__(self) -> str:
        return f"<Router {len(self._routes)} routes>"

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def register(
        self,
        method: str,
        path: str,
        handler: Handler,
        name: Optional[str] = None,
    ) -> Route:
        """
        Append a route to the table.

        Args:
            method: HTTP method the route answers
            path: URL pattern (e.g., /todos/:id)
            handler: Called as handler(request, response, next)
            name: Optional route name for url_for()

        Returns:
            The registered Route object

        Raises:
            InvalidPatternError: If the pattern is malformed.
        """
        segments = self._parse_pattern(path)

        route = Route(
            method=method.upper(),
            path=path,
            handler=handler,
            name=name,
            segments=segments,
            _pattern=self._compile_pattern(segments),
        )
        self._routes.append(route)

        if name:
            self._named_routes[name] = route

        logger.debug(f"Registered route {route.method} {path}")
        return route

    add_route = register

    def _parse_pattern(self, path: str) -> List[Segment]:
        """
        Split a pattern into segments and validate it.

            "/todos/{id}/tags/:tag"
                → [STATIC todos, PARAM id, STATIC tags, PARAM tag]
        """
        if not path.startswith("/"):
            raise InvalidPatternError(f"Route pattern must start with '/': {path!r}")

        segments: List[Segment] = []
        seen: set = set()

        for raw in path.split("/"):
            if not raw:
                continue

            if raw.startswith(":"):
                name = raw[1:]
            elif raw.startswith("{"):
                if not raw.endswith("}") or raw.count("{") != 1 or raw.count("}") != 1:
                    raise InvalidPatternError(f"Unbalanced braces in {path!r}: {raw!r}")
                name = raw[1:-1]
            elif "{" in raw or "}" in raw:
                raise InvalidPatternError(f"Unbalanced braces in {path!r}: {raw!r}")
            else:
                segments.append(Segment(SegmentType.STATIC, raw))
                continue

            if not name:
                raise InvalidPatternError(f"Empty parameter name in {path!r}")
            if not name.isidentifier():
                raise InvalidPatternError(f"Invalid parameter name {name!r} in {path!r}")
            if name in seen:
                raise InvalidPatternError(f"Duplicate parameter {name!r} in {path!r}")

            seen.add(name)
            segments.append(Segment(SegmentType.PARAM, name))

        return segments

    def _compile_pattern(self, segments: List[Segment]) -> re.Pattern:
        """
        Compile parsed segments into an anchored regex.

            [STATIC todos, PARAM id]  →  ^/todos/(?P<id>[^/]+)$
            []                        →  ^/$
        """
        if not segments:
            return re.compile("^/$")

        regex_parts = ["^"]
        for segment in segments:
            regex_parts.append("/")
            if segment.kind is SegmentType.PARAM:
                regex_parts.append(f"(?P<{segment.value}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment.value))
        regex_parts.append("$")

        return re.compile("".join(regex_parts))

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        # "/todos/" and "/todos" are the same route
        return "/" + path.strip("/")

    def match(self, method: str, path: str) -> RouteMatch:
        """
        Find the route for a method and path.

        Scans routes in registration order. The first route whose method
        and pattern both match is returned; there is no backtracking.

        Raises:
            NotFound: If no route matches the path.
            MethodNotAllowed: If routes match the path but none the method.
        """
        path = self._normalize(path)
        method = method.upper()
        allowed: List[str] = []

        for route in self._routes:
            found = route._pattern.match(path)
            if not found:
                continue
            if route.method == method:
                return RouteMatch(route=route, params=found.groupdict())
            if route.method not in allowed:
                allowed.append(route.method)

        if allowed:
            raise MethodNotAllowed(f"{method} not allowed for {path}", allowed=allowed)
        raise NotFound(f"No route matches {method} {path}")

    def resolve(self, request: Request) -> RouteMatch:
        """Match a request on its relative path and fill in path_params."""
        result = self.match(request.method, request.relative_path)
        request.path_params = dict(result.params)
        return result

    def allowed_methods(self, path: str) -> List[str]:
        """Methods with a route for this path, used for the Allow header."""
        path = self._normalize(path)
        return sorted({r.method for r in self._routes if r._pattern.match(path)})

    # =========================================================================
    # MIDDLEWARE STEP
    # =========================================================================

    def __call__(self, request: Request, response: Response, next: Callable[..., None]) -> None:
        try:
            result = self.resolve(request)
        except NotFound:
            next()
            return
        except MethodNotAllowed as exc:
            (response
                .status(HTTPStatus.METHOD_NOT_ALLOWED)
                .set_header("Allow", ", ".join(exc.allowed))
                .json({"error": "Method Not Allowed", "status": 405}))
            return

        handler = result.route.handler
        try:
            handler(request, response, next)
        except (HTTPError, ContractViolation):
            raise
        except Exception as exc:
            name = getattr(handler, "__name__", repr(handler))
            raise HandlerError(f"Handler {name} failed: {exc}") from exc

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================

    def route(
        self,
        path: str,
        method: str = "GET",
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator for registering routes.

        Usage:
            @router.route("/todos", method="POST")
            def create_todo(request, response, next):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.register(method, path, handler, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", name)

    def put(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT", name)

    def delete(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE", name)

    def patch(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "PATCH", name)

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def url_for(self, name: str, **params: Any) -> Optional[str]:
        """
        Build the URL of a named route.

        Parameter values are percent-encoded, so any id round-trips through
        the path. Returns None for an unknown route name. Raises KeyError
        when a parameter the pattern needs is missing.
        """
        route = self._named_routes.get(name)
        if not route:
            return None

        parts = []
        for segment in route.segments:
            if segment.kind is SegmentType.PARAM:
                parts.append(quote(str(params[segment.value]), safe=""))
            else:
                parts.append(segment.value)
        return "/" + "/".join(parts)

    def routes(self) -> List[Route]:
        """All registered routes, in registration order."""
        return list(self._routes)

    def describe(self) -> List[Tuple[str, str]]:
        """(method, path) pairs, for startup logging."""
        return [(route.method, route.path) for route in self._routes]
