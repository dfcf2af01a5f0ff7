"""
=============================================================================
ERROR RESPONDERS
=============================================================================

Error steps that turn a failure into a response.

    default_error_responder   built in; Application.dispatch runs it when
                              the error chain is exhausted. Always 500.

    json_error_responder      registered by applications as the last error
                              step. Renders every failure in one shape:

                                  {"error": "<message>", "status": <code>}

Server errors (5xx) are logged with their traceback on "httpchain.errors"
and answered with a generic message; the exception text never reaches the
client. Client errors (4xx) carry their own message.

Both responders drop whatever headers the failing step had already set
(keeping X-Request-ID), so the error body is never mislabelled.

=============================================================================
"""

import logging

from .base import NextFunction
from ..errors import HTTPError, MethodNotAllowed
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import HTTPStatus, phrase_for


error_logger = logging.getLogger("httpchain.errors")

GENERIC_MESSAGE = "Internal Server Error"

# headers set by earlier steps that still describe the error response
PRESERVED_HEADERS = ("X-Request-ID",)


def _log_failure(error: BaseException, request: Request) -> None:
    error_logger.error(
        f"Unhandled {type(error).__name__} for {request.method} {request.path}: {error}",
        exc_info=(type(error), error, error.__traceback__),
    )


def default_error_responder(
    error: BaseException,
    request: Request,
    response: Response,
    next: NextFunction,
) -> None:
    """Log the failure and finalize a 500."""
    _log_failure(error, request)
    if response.finalized:
        return
    response.reset_headers(keep=PRESERVED_HEADERS)
    response.status(HTTPStatus.INTERNAL_SERVER_ERROR).json({"error": GENERIC_MESSAGE})


def json_error_responder(
    error: BaseException,
    request: Request,
    response: Response,
    next: NextFunction,
) -> None:
    """Render any failure as {"error": message, "status": code}."""
    if isinstance(error, HTTPError):
        status = int(error.status_code)
        message = error.message or phrase_for(status)
    else:
        status = int(HTTPStatus.INTERNAL_SERVER_ERROR)
        message = GENERIC_MESSAGE

    if status >= 500:
        _log_failure(error, request)
        message = GENERIC_MESSAGE

    if response.finalized:
        # a handler responded and then raised; the response already went out
        error_logger.warning(
            f"{type(error).__name__} after response was finalized "
            f"for {request.method} {request.path}"
        )
        return

    response.reset_headers(keep=PRESERVED_HEADERS)
    response.status(status)
    if isinstance(error, MethodNotAllowed) and error.allowed:
        response.set_header("Allow", ", ".join(error.allowed))
    response.json({"error": message, "status": status})
