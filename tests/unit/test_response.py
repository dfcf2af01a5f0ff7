"""
Unit tests for the write-once Response.
"""

import json
from datetime import datetime, timezone

import pytest

from httpchain.errors import ContractViolation, ResponseAlreadySent
from httpchain.http.response import Response, error_response, format_http_date
from httpchain.http.status_codes import HTTPStatus, phrase_for


class TestSerialization:
    """Tests for the HTTP/1.1 wire format."""

    def test_status_line(self):
        response = Response()
        assert response.status_line == "HTTP/1.1 200 OK"

        response.status(HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_unknown_status_phrase(self):
        response = Response().status(599)
        assert response.status_line == "HTTP/1.1 599 Unknown"

    def test_to_bytes_includes_headers(self):
        response = Response().set_header("X-Custom", "value").send(b"test")
        result = response.to_bytes()

        assert b"HTTP/1.1 200 OK\r\n" in result
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"\r\n\r\ntest" in result

    def test_to_bytes_adds_date_and_server(self):
        result = Response().end().to_bytes("test-server/2.0")

        assert b"Server: test-server/2.0\r\n" in result
        assert b"Date: " in result
        assert b"Content-Length: 0\r\n" in result

    def test_format_http_date(self):
        dt = datetime(2026, 10, 18, 9, 5, 3, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Sun, 18 Oct 2026 09:05:03 GMT"


class TestBuilding:
    """Tests for the shaping and finalizing methods."""

    def test_defaults(self):
        response = Response()

        assert response.status_code == HTTPStatus.OK
        assert response.body == b""
        assert response.finalized is False

    def test_json_body(self):
        data = {"title": "buy milk", "done": False}
        response = Response().json(data)

        assert response.finalized is True
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert json.loads(response.body) == data

    def test_text_body(self):
        response = Response().text("Welcome")

        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert response.body == b"Welcome"

    def test_send_dispatches_on_type(self):
        assert json.loads(Response().send({"a": 1}).body) == {"a": 1}
        assert json.loads(Response().send([1, 2]).body) == [1, 2]
        assert Response().send("hi").body == b"hi"
        assert Response().send(b"\x00\x01").body == b"\x00\x01"

    def test_explicit_content_type_is_kept(self):
        response = Response().set_header("Content-Type", "application/problem+json").json({})
        assert response.headers["Content-Type"] == "application/problem+json"

    def test_method_chaining(self):
        response = (Response()
            .status(HTTPStatus.CREATED)
            .set_header("Location", "/todos/1")
            .json({"message": "Todo created"}))

        assert response.status_code == HTTPStatus.CREATED
        assert response.headers["Location"] == "/todos/1"

    def test_get_header_is_case_insensitive(self):
        response = Response().set_header("X-Request-ID", "abc")
        assert response.get_header("x-request-id") == "abc"
        assert response.get_header("x-missing", "none") == "none"


class TestWriteOnce:
    """A finalized response refuses every further write."""

    @pytest.mark.parametrize("write", [
        lambda r: r.send(b"again"),
        lambda r: r.json({"again": True}),
        lambda r: r.text("again"),
        lambda r: r.end(),
        lambda r: r.status(500),
        lambda r: r.set_header("X-Late", "1"),
    ])
    def test_write_after_finalize_raises(self, write):
        response = Response().text("first")

        with pytest.raises(ResponseAlreadySent):
            write(response)

        assert response.body == b"first"
        assert response.status_code == HTTPStatus.OK

    def test_violation_is_recorded_even_if_swallowed(self):
        response = Response().end()

        try:
            response.text("again")
        except ContractViolation:
            pass

        assert isinstance(response.violation, ResponseAlreadySent)

    def test_first_violation_is_kept(self):
        response = Response().end()
        with pytest.raises(ResponseAlreadySent):
            response.status(201)
        first = response.violation
        with pytest.raises(ResponseAlreadySent):
            response.end()

        assert response.violation is first


class TestFinishCallbacks:

    def test_callbacks_run_once_in_order(self):
        seen = []
        response = Response()
        response.on_finish(lambda r: seen.append(("a", r)))
        response.on_finish(lambda r: seen.append(("b", r)))

        response.run_finish_callbacks()
        response.run_finish_callbacks()

        assert seen == [("a", response), ("b", response)]

    def test_callbacks_receive_replacement_response(self):
        seen = []
        original = Response()
        replacement = Response().end()
        original.on_finish(seen.append)

        original.run_finish_callbacks(replacement)

        assert seen == [replacement]

    def test_failing_callback_does_not_stop_others(self, caplog):
        seen = []
        response = Response()
        response.on_finish(lambda r: 1 / 0)
        response.on_finish(seen.append)

        response.run_finish_callbacks()

        assert seen == [response]
        assert "on_finish callback" in caplog.text


class TestHelpers:

    def test_error_response(self):
        response = error_response(503, "Server overloaded")

        assert response.finalized is True
        assert response.status_code == 503
        assert json.loads(response.body) == {"error": "Server overloaded"}

    def test_phrase_for(self):
        assert phrase_for(201) == "Created"
        assert phrase_for(418) == "Unknown"
        assert HTTPStatus.METHOD_NOT_ALLOWED.phrase == "Method Not Allowed"
        assert HTTPStatus.BAD_REQUEST.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error


class TestHeaderValidation:
    """Header names and values must survive the trip onto the wire."""

    @pytest.mark.parametrize("name, value", [
        ("Location", "/todos/1\r\nSet-Cookie: a=b"),
        ("Location", "/todos/1\nX: y"),
        ("X-Bad\r\nName", "v"),
    ])
    def test_line_breaks_rejected(self, name, value):
        response = Response()

        with pytest.raises(ValueError):
            response.set_header(name, value)
        assert response.headers == {}

    def test_non_latin1_value_rejected(self):
        with pytest.raises(ValueError):
            Response().set_header("Location", "/todos/漢")

    def test_latin1_value_accepted(self):
        response = Response().set_header("X-Name", "café").end()

        assert b"X-Name: caf\xe9\r\n" in response.to_bytes()

    def test_reset_headers_keeps_named(self):
        response = Response()
        response.set_header("Content-Type", "text/html")
        response.set_header("x-request-id", "abc")

        response.reset_headers(keep=["X-Request-ID"])

        assert response.headers == {"x-request-id": "abc"}

    def test_reset_headers_after_finalize_raises(self):
        response = Response().end()

        with pytest.raises(ResponseAlreadySent):
            response.reset_headers()
