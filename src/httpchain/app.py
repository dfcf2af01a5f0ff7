"""
=============================================================================
APPLICATION
=============================================================================

An Application is a Chain that also owns a Router and knows how to turn a
Request into exactly one Response, whatever the steps do.

=============================================================================
WHERE THE ROUTER SITS
=============================================================================

The router joins the step list at the moment the first route is registered:

    app = Application()
    app.use(LoggingMiddleware())       # step 0
    app.use(BodyParser())              # step 1

    @app.get("/todos")                 # router inserted as step 2
    def list_todos(request, response, next): ...

    app.use(audit_step)                # step 3, runs only for unrouted paths

=============================================================================
DISPATCH OUTCOMES
=============================================================================

    ┌───────────────────────────┬──────────────────────────────────────────┐
    │ chain result              │ response sent                            │
    ├───────────────────────────┼──────────────────────────────────────────┤
    │ responded                 │ whatever the step wrote                  │
    │ exhausted                 │ 404 {"error": "Cannot GET /path"}        │
    │ failed (error unhandled)  │ default_error_responder → 500            │
    │ ContractViolation         │ logged; fresh 500, step output discarded │
    └───────────────────────────┴──────────────────────────────────────────┘

NotFound from an exhausted chain is rendered here, outside the error chain:
no step failed, there was simply nothing to answer with.

=============================================================================
"""

from typing import Callable, List, Optional, Tuple
import logging

from .errors import ContractViolation
from .http.request import Request
from .http.response import Response, error_response
from .http.router import Handler, Router
from .http.status_codes import HTTPStatus
from .middleware.base import Chain, MiddlewareEntry, Outcome
from .middleware.errors import default_error_responder


logger = logging.getLogger(__name__)
error_logger = logging.getLogger("httpchain.errors")


class Application(Chain):
    """
    A Chain with a built-in Router and a total dispatch() entry point.

    Usage:
        app = Application()
        app.use(LoggingMiddleware())

        @app.get("/")
        def index(request, response, next):
            response.text("hello")

        response = app.dispatch(request)
    """

    def __init__(self, name: Optional[str] = None):
        super().__init__()
        self._name = name or self.__class__.__name__
        self._router = Router()
        self._router_mounted = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def router(self) -> Router:
        """The application's router. Registering through it also mounts it."""
        self._mount_router()
        return self._router

    def describe_routes(self) -> List[Tuple[str, str]]:
        """(method, path) of every route, without mounting the router."""
        return self._router.describe()

    def _mount_router(self) -> None:
        if not self._router_mounted:
            self._steps.append(MiddlewareEntry(self._router))
            self._router_mounted = True
            logger.debug(f"Router mounted as step {len(self._steps) - 1}")

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def route(self, path: str, method: str = "GET", name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.router.route(path, method, name)

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.router.get(path, name)

    def post(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.router.post(path, name)

    def put(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.router.put(path, name)

    def delete(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.router.delete(path, name)

    def patch(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.router.patch(path, name)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, request: Request) -> Response:
        """
        Run the request through the chain and return the response to send.

        Never raises for step failures: every outcome ends in exactly one
        finalized response.
        """
        response = Response()
        sent = response

        try:
            result = self.run(request, response)

            if result.outcome is Outcome.EXHAUSTED:
                response.status(HTTPStatus.NOT_FOUND).json(
                    {"error": f"Cannot {request.method} {request.path}"}
                )
            elif result.outcome is Outcome.FAILED:
                self._respond_unhandled(result.error, request, response)

        except ContractViolation as violation:
            error_logger.error(
                f"Contract violation during {request.method} {request.path}: {violation}",
                exc_info=(type(violation), violation, violation.__traceback__),
            )
            sent = error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")

        response.run_finish_callbacks(sent)
        return sent

    def _respond_unhandled(self, error: BaseException, request: Request, response: Response) -> None:
        def unreachable(*_args) -> None:
            raise ContractViolation("default_error_responder has no next step")

        default_error_responder(error, request, response, unreachable)
        if response.violation is not None:
            raise response.violation
