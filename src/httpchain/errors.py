"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the dispatch engine knows about is one of these classes.

=============================================================================
TWO FAMILIES OF ERRORS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR FAMILIES                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTPError (carries a status code)                                 │
    │   ├── NotFound            404  no route for method + path           │
    │   ├── MethodNotAllowed    405  path exists, method doesn't          │
    │   ├── MalformedBodyError  400  body not parseable as declared       │
    │   ├── PayloadTooLarge     413  body over the configured limit       │
    │   └── HandlerError        500  a route handler blew up              │
    │                                                                      │
    │   ContractViolation (a programming error in a step)                 │
    │   └── ResponseAlreadySent      second write to a finalized response │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

HTTPErrors travel through the error pipeline and are rendered by error
steps. ContractViolations never do: the step that caused them broke the
rules of the chain, so the dispatcher aborts the request with a fresh 500
and logs diagnostics instead of trusting user error steps with a response
in an unknown state.

=============================================================================
"""

from typing import List, Optional


class HTTPChainError(Exception):
    """Base class for every error raised by httpchain."""


class HTTPError(HTTPChainError):
    """
    An error that maps directly to an HTTP status code.

    Raise it from a step (or pass it to the continuation) and the error
    pipeline will see it. Error responders read `status_code` to decide what
    to send back.
    """

    status_code: int = 500

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(HTTPError):
    """No route matches the request method + path."""

    status_code = 404


class MethodNotAllowed(HTTPError):
    """
    Some route matches the path, but none accepts the method.

    `allowed` lists the methods that would have matched; it becomes the
    Allow header of the 405 response (RFC 7231 requires it).
    """

    status_code = 405

    def __init__(self, message: str = "Method Not Allowed", allowed: Optional[List[str]] = None):
        super().__init__(message)
        self.allowed = sorted(allowed or [])


class MalformedBodyError(HTTPError):
    """The request body is present but can't be decoded as declared."""

    status_code = 400


class PayloadTooLarge(HTTPError):
    """The request body is larger than the configured limit."""

    status_code = 413


class HandlerError(HTTPError):
    """
    A route handler raised an unexpected exception.

    The router wraps the original exception with `raise ... from exc`, so
    the real traceback stays available as `__cause__`.
    """

    status_code = 500


class ContractViolation(HTTPChainError):
    """
    A step broke the rules of the chain.

    Raised when a step invokes its continuation twice, both responds and
    continues, returns without doing either, or writes to a response that
    was already finalized.
    """


class ResponseAlreadySent(ContractViolation):
    """A write was attempted on a response that is already finalized."""


class InvalidPatternError(HTTPChainError, ValueError):
    """A route pattern has malformed segment syntax."""
