"""
=============================================================================
BODY PARSER MIDDLEWARE
=============================================================================

Decodes structured request bodies once, before any handler runs, and stores
the result on request.parsed_body.

    ┌──────────────────────────────────────┬──────────────────────────────┐
    │ Content-Type                         │ parsed_body                  │
    ├──────────────────────────────────────┼──────────────────────────────┤
    │ application/json                     │ json.loads(body)             │
    │ application/*+json                   │ json.loads(body)             │
    │ application/x-www-form-urlencoded    │ {"a": "1", "b": ["2", "3"]}  │
    │ anything else / no body              │ left unset                   │
    └──────────────────────────────────────┴──────────────────────────────┘

Failures are signalled, never raised past the chain:

    body over max_body_size      → next(PayloadTooLarge)      413
    body not decodable           → next(MalformedBodyError)   400

=============================================================================
"""

from typing import Iterable, Optional
from urllib.parse import parse_qs
import json
import logging

from .base import Middleware, NextFunction
from ..errors import MalformedBodyError, PayloadTooLarge
from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_SIZE = 1024 * 1024  # 1 MB
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class BodyParser(Middleware):
    """
    Structured-body parsing step.

    Usage:
        app.use(BodyParser())
        app.use(BodyParser(max_body_size=64 * 1024, form=False))

    Handlers then read request.parsed_body; request.body_parsed tells
    "decoded to None" (a JSON null) apart from "nothing was decoded".
    """

    def __init__(
        self,
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
        json_types: Optional[Iterable[str]] = None,
        form: bool = True,
    ):
        """
        Args:
            max_body_size: Largest body decoded, in bytes. Larger bodies are
                rejected with 413 before any decoding is attempted.
            json_types: Media types treated as JSON, in addition to any
                "+json" suffix type. Defaults to application/json.
            form: Also decode application/x-www-form-urlencoded bodies.
        """
        if max_body_size <= 0:
            raise ValueError("max_body_size must be positive")

        self.max_body_size = max_body_size
        self.json_types = frozenset(json_types or ("application/json",))
        self.form = form

    def __call__(self, request: Request, response: Response, next: NextFunction) -> None:
        if not request.body:
            next()
            return

        content_type = request.content_type
        is_json = self._is_json(content_type)
        is_form = self.form and content_type == FORM_CONTENT_TYPE

        if not (is_json or is_form):
            next()
            return

        if len(request.body) > self.max_body_size:
            next(PayloadTooLarge(
                f"Request body is {len(request.body)} bytes, limit is {self.max_body_size}"
            ))
            return

        try:
            text = request.body.decode("utf-8")
        except UnicodeDecodeError as e:
            next(MalformedBodyError(f"Request body is not valid UTF-8: {e}"))
            return

        if is_json:
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                next(MalformedBodyError(f"Invalid JSON body: {e}"))
                return
            except (ValueError, RecursionError) as e:
                # nesting too deep for the decoder, or numbers too long
                next(MalformedBodyError(f"Invalid JSON body: {type(e).__name__}"))
                return
        else:
            value = self._decode_form(text)

        request.set_parsed_body(value)
        logger.debug(f"Parsed {content_type} body for {request.method} {request.path}")
        next()

    def _is_json(self, content_type: Optional[str]) -> bool:
        if not content_type:
            return False
        return content_type in self.json_types or content_type.endswith("+json")

    @staticmethod
    def _decode_form(text: str) -> dict:
        """a=1&b=2&b=3 → {"a": "1", "b": ["2", "3"]}"""
        fields = parse_qs(text, keep_blank_values=True)
        return {
            name: values[0] if len(values) == 1 else values
            for name, values in fields.items()
        }
