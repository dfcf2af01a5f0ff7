"""
=============================================================================
MIDDLEWARE CHAIN
=============================================================================

The dispatch engine: an ordered list of steps, each of which receives the
request, the response and an explicit continuation.

=============================================================================
CONTINUATION-PASSING CHAIN
=============================================================================

A step decides what happens next by what it does before returning:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHAT A STEP CAN DO                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   def step(request, response, next):                                │
    │                                                                      │
    │       next()              → the chain advances to the next step     │
    │       next(error)         → the chain diverts to the error chain    │
    │       raise error         → same as next(error)                     │
    │       response.json(...)  → the chain stops, request answered       │
    │                                                                      │
    │   Anything else is a contract violation:                            │
    │       next() twice, next() AND respond, neither                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Unlike the classic wrap-around middleware (each layer calling the next one
on the stack), the chain is driven by a loop with an explicit cursor. The
continuation only records the step's decision; the loop acts on it once the
step has returned. Stack depth stays flat however many steps are mounted.

=============================================================================
NORMAL CHAIN AND ERROR CHAIN
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   normal   ┌────────┐   ┌────────┐   ┌────────┐   ┌────────┐        │
    │   chain    │ Logger │──►│ Body   │──►│ Router │──►│  ...   │──► exhausted
    │            └────────┘   └────────┘   └───┬────┘   └────────┘        │
    │                                          │ next(err) / raise        │
    │                                          ▼                           │
    │   error    ┌────────────┐   ┌────────────┐                           │
    │   chain    │ ErrStep 1  │──►│ ErrStep 2  │──► failed (unhandled)    │
    │            └────────────┘   └────────────┘                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Once in the error chain the cursor restarts at its first step, and a
failure never re-enters the normal chain. Error steps have the signature
(error, request, response, next). Calling next() there passes the same
error on; next(other) or raising replaces it.

=============================================================================
PREFIXES AND MOUNTING
=============================================================================

    chain.use("/api", api_chain)

A step registered under a prefix only sees requests whose path equals the
prefix or continues it at a segment boundary ("/api" matches "/api" and
"/api/todos", never "/apix"). While it runs, request.base_path is extended
by the prefix so that request.relative_path is the part below the mount.

A Chain (or Router) used as a step behaves like any other step: exhausted
means next(), an unhandled failure means next(error).

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional
import logging

from ..errors import ContractViolation, HTTPError
from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

NextFunction = Callable[..., None]
Step = Callable[[Request, Response, NextFunction], None]
ErrorStep = Callable[[BaseException, Request, Response, NextFunction], None]


class Middleware(ABC):
    """
    Base class for class-based steps.

    Plain functions with the same signature work just as well; subclass
    this when the step carries configuration.

        class RequireJSON(Middleware):
            def __call__(self, request, response, next):
                if request.content_type != "application/json":
                    response.status(415).json({"error": "JSON only"})
                    return
                next()
    """

    @abstractmethod
    def __call__(self, request: Request, response: Response, next: NextFunction) -> None:
        pass

    @property
    def name(self) -> str:
        """Step name for logs and diagnostics."""
        return self.__class__.__name__


class ErrorMiddleware(ABC):
    """Base class for class-based error steps."""

    @abstractmethod
    def __call__(
        self,
        error: BaseException,
        request: Request,
        response: Response,
        next: NextFunction,
    ) -> None:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


# =============================================================================
# CONTINUATION
# =============================================================================

class Continuation:
    """
    The single-use `next` handed to one step invocation.

    Calling it records the step's decision; the dispatch loop reads that
    decision after the step returns. A second call raises ContractViolation
    and is remembered in `violation`, so a step that swallows the exception
    is still caught.
    """

    __slots__ = ("step_name", "called", "error", "violation")

    def __init__(self, step_name: str):
        self.step_name = step_name
        self.called = False
        self.error: Optional[BaseException] = None
        self.violation: Optional[ContractViolation] = None

    def __call__(self, error: Any = None) -> None:
        if self.called:
            violation = ContractViolation(f"{self.step_name} called next() more than once")
            if self.violation is None:
                self.violation = violation
            raise violation

        if error is not None and not isinstance(error, BaseException):
            error = HTTPError(str(error))

        self.called = True
        self.error = error

    def __repr__(self) -> str:
        return f"<Continuation {self.step_name} called={self.called}>"


# =============================================================================
# CHAIN ENTRIES
# =============================================================================

def _normalize_prefix(prefix: str) -> str:
    if not prefix.startswith("/"):
        raise ValueError(f"Mount prefix must start with '/': {prefix!r}")
    return "/" + prefix.strip("/") if prefix != "/" else "/"


def _step_name(step: Any) -> str:
    name = getattr(step, "name", None)
    if isinstance(name, str):
        return name
    return getattr(step, "__name__", None) or step.__class__.__name__


@dataclass
class MiddlewareEntry:
    """A step plus the path prefix that gates it."""

    step: Callable[..., None]
    prefix: str = "/"

    def __post_init__(self):
        self.prefix = _normalize_prefix(self.prefix)

    @property
    def name(self) -> str:
        return _step_name(self.step)

    @property
    def mounted(self) -> bool:
        return self.prefix != "/"

    def matches(self, path: str) -> bool:
        """Segment-boundary prefix match against a (relative) path."""
        if not self.mounted:
            return True
        return path == self.prefix or path.startswith(self.prefix + "/")


class Outcome(Enum):
    RESPONDED = "responded"     # some step finalized the response
    EXHAUSTED = "exhausted"     # every normal step called next()
    FAILED = "failed"           # the error chain ran out without handling


@dataclass
class ChainResult:
    outcome: Outcome
    error: Optional[BaseException] = None


# =============================================================================
# CHAIN
# =============================================================================

class Chain:
    """
    An ordered normal chain plus an ordered error chain.

    =========================================================================
    USAGE
    =========================================================================

        chain = Chain()
        chain.use(LoggingMiddleware())             # every request
        chain.use("/api", BodyParser(), router)    # only under /api
        chain.use_on_error(json_error_responder)

        result = chain.run(request, response)
        if result.outcome is Outcome.FAILED:
            ...

    =========================================================================
    """

    def __init__(self):
        self._steps: List[MiddlewareEntry] = []
        self._error_steps: List[MiddlewareEntry] = []

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {len(self._steps)} steps, {len(self._error_steps)} error steps>"

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def steps(self) -> List[MiddlewareEntry]:
        return list(self._steps)

    @property
    def error_steps(self) -> List[MiddlewareEntry]:
        return list(self._error_steps)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def use(self, *args: Any) -> "Chain":
        """
        Append steps to the normal chain.

            chain.use(step)
            chain.use(step_a, step_b)
            chain.use("/prefix", step_a, step_b)

        Returns self for chaining.
        """
        prefix, steps = self._split_args(args)
        for step in steps:
            self._steps.append(MiddlewareEntry(step, prefix))
            logger.debug(f"Added step {_step_name(step)} at {prefix}")
        return self

    def use_on_error(self, *args: Any) -> "Chain":
        """
        Append steps to the error chain.

        Same calling forms as use(). Error steps are called as
        step(error, request, response, next).
        """
        prefix, steps = self._split_args(args)
        for step in steps:
            self._error_steps.append(MiddlewareEntry(step, prefix))
            logger.debug(f"Added error step {_step_name(step)} at {prefix}")
        return self

    @staticmethod
    def _split_args(args: tuple) -> tuple:
        prefix = "/"
        if args and isinstance(args[0], str):
            prefix, args = args[0], args[1:]
        if not args:
            raise TypeError("use() needs at least one step")
        for step in args:
            if not callable(step):
                raise TypeError(f"Step must be callable, got {step!r}")
        return prefix, args

    # =========================================================================
    # DISPATCH LOOP
    # =========================================================================

    def run(self, request: Request, response: Response) -> ChainResult:
        """
        Drive the request through the chain.

        Returns a ChainResult: RESPONDED, EXHAUSTED, or FAILED with the error
        no error step handled.

        Raises:
            ContractViolation: If any step breaks the chain contract. These
                bypass the error chain entirely.
        """
        error: Optional[BaseException] = None
        index = 0

        while True:
            entries = self._steps if error is None else self._error_steps
            if index >= len(entries):
                if error is None:
                    return ChainResult(Outcome.EXHAUSTED)
                return ChainResult(Outcome.FAILED, error)

            entry = entries[index]
            index += 1

            if not entry.matches(request.relative_path):
                continue

            continuation = Continuation(entry.name)
            raised: Optional[BaseException] = None
            saved_base = request.base_path
            if entry.mounted:
                request.base_path = saved_base + entry.prefix

            try:
                if error is None:
                    entry.step(request, response, continuation)
                else:
                    entry.step(error, request, response, continuation)
            except ContractViolation:
                raise
            except Exception as exc:
                raised = exc
            finally:
                request.base_path = saved_base

            if continuation.violation is not None:
                raise continuation.violation
            if response.violation is not None:
                raise response.violation

            if raised is not None:
                failure = raised
            elif continuation.called:
                if response.finalized:
                    raise ContractViolation(f"{entry.name} both finalized the response and called next()")
                if continuation.error is None:
                    continue
                failure = continuation.error
            elif response.finalized:
                return ChainResult(Outcome.RESPONDED)
            else:
                raise ContractViolation(f"{entry.name} returned without responding or calling next()")

            if error is None:
                logger.debug(f"{entry.name} failed with {failure!r}, switching to the error chain")
                index = 0
            error = failure

    def __call__(self, request: Request, response: Response, next: NextFunction) -> None:
        """Run as a step inside a parent chain."""
        result = self.run(request, response)
        if result.outcome is Outcome.EXHAUSTED:
            next()
        elif result.outcome is Outcome.FAILED:
            next(result.error)
