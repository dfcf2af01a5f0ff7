"""
Unit tests for URL router.
"""

import json

import pytest

from httpchain.errors import (
    HandlerError,
    InvalidPatternError,
    MalformedBodyError,
    MethodNotAllowed,
    NotFound,
)
from httpchain.http.request import Request
from httpchain.http.response import Response
from httpchain.http.router import Router, SegmentType


def make_request(method: str, path: str) -> Request:
    """Helper to create a request for testing."""
    return Request(method=method, path=path)


def dummy_handler(request, response, next):
    """Dummy handler for testing."""
    response.json({"path": request.path, "params": request.path_params})


class Recorder:
    """Stands in for the continuation."""

    def __init__(self):
        self.calls = []

    def __call__(self, error=None):
        self.calls.append(error)


class TestRegistration:
    """Tests for route registration and pattern validation."""

    def test_add_route(self):
        router = Router()
        router.register("get", "/todos", dummy_handler)

        routes = router.routes()
        assert len(routes) == 1
        assert routes[0].path == "/todos"
        assert routes[0].method == "GET"

    def test_add_route_alias(self):
        router = Router()
        route = router.add_route("POST", "/todos", dummy_handler)
        assert route.method == "POST"

    def test_segments(self):
        router = Router()
        route = router.register("GET", "/todos/:id/tags/{tag}", dummy_handler)

        assert [(s.kind, s.value) for s in route.segments] == [
            (SegmentType.STATIC, "todos"),
            (SegmentType.PARAM, "id"),
            (SegmentType.STATIC, "tags"),
            (SegmentType.PARAM, "tag"),
        ]
        assert route.param_names == ["id", "tag"]

    @pytest.mark.parametrize("pattern", [
        "todos",                 # no leading slash
        "/todos/:",              # empty name
        "/todos/{}",             # empty name
        "/todos/{id",            # unbalanced
        "/todos/id}",            # unbalanced
        "/todos/{{id}}",         # unbalanced
        "/todos/:1st",           # not an identifier
        "/todos/{todo-id}",      # not an identifier
        "/a/:id/b/{id}",         # duplicate name
    ])
    def test_invalid_patterns_rejected(self, pattern: str):
        router = Router()

        with pytest.raises(InvalidPatternError):
            router.register("GET", pattern, dummy_handler)

        assert router.routes() == []

    def test_invalid_pattern_is_a_value_error(self):
        with pytest.raises(ValueError):
            Router().register("GET", "/x/{", dummy_handler)


class TestMatching:
    """Tests for Router.match."""

    def test_match_static_path(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)
        router.register("GET", "/about", dummy_handler)

        assert router.match("GET", "/todos").route.path == "/todos"
        assert router.match("GET", "/about").route.path == "/about"

    def test_match_root(self):
        router = Router()
        router.register("GET", "/", dummy_handler)

        assert router.match("GET", "/").params == {}
        with pytest.raises(NotFound):
            router.match("GET", "/anything")

    def test_match_with_method(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)
        router.register("POST", "/todos", dummy_handler)

        assert router.match("GET", "/todos").route.method == "GET"
        assert router.match("post", "/todos").route.method == "POST"

    def test_match_dynamic_params(self):
        router = Router()
        router.register("GET", "/users/:id", dummy_handler)
        router.register("GET", "/users/{user_id}/posts/:post_id", dummy_handler)

        assert router.match("GET", "/users/123").params == {"id": "123"}
        assert router.match("GET", "/users/456/posts/789").params == {
            "user_id": "456",
            "post_id": "789",
        }

    def test_param_binds_exactly_one_segment(self):
        router = Router()
        router.register("GET", "/todos/:id", dummy_handler)

        with pytest.raises(NotFound):
            router.match("GET", "/todos/1/2")
        with pytest.raises(NotFound):
            router.match("GET", "/todos")

    def test_trailing_slash_ignored(self):
        router = Router()
        router.register("GET", "/todos/", dummy_handler)

        assert router.match("GET", "/todos").route.path == "/todos/"
        assert router.match("GET", "/todos/").route.path == "/todos/"

    def test_first_match_wins(self):
        """Registration order is the only disambiguation rule."""
        router = Router()

        def first(request, response, next):
            pass

        def second(request, response, next):
            pass

        router.register("GET", "/todos/:id", first)
        router.register("GET", "/todos/special", second)

        assert router.match("GET", "/todos/special").route.handler is first

    def test_literal_registered_first_wins(self):
        router = Router()

        def me(request, response, next):
            pass

        router.register("GET", "/users/me", me)
        router.register("GET", "/users/:id", dummy_handler)

        assert router.match("GET", "/users/me").route.handler is me
        assert router.match("GET", "/users/42").route.handler is dummy_handler

    def test_no_match_raises_not_found(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)

        with pytest.raises(NotFound):
            router.match("GET", "/nonexistent")

    def test_wrong_method_raises_method_not_allowed(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)
        router.register("POST", "/todos", dummy_handler)

        with pytest.raises(MethodNotAllowed) as exc_info:
            router.match("DELETE", "/todos")

        assert exc_info.value.allowed == ["GET", "POST"]
        assert exc_info.value.status_code == 405

    def test_allowed_methods(self):
        router = Router()
        router.register("PUT", "/todos/:id", dummy_handler)
        router.register("DELETE", "/todos/:id", dummy_handler)

        assert router.allowed_methods("/todos/3") == ["DELETE", "PUT"]
        assert router.allowed_methods("/nope") == []

    def test_resolve_populates_path_params(self):
        router = Router()
        router.register("PUT", "/todos/:id", dummy_handler)
        request = make_request("PUT", "/todos/42")

        router.resolve(request)

        assert request.path_params == {"id": "42"}

    def test_resolve_uses_relative_path(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)
        request = make_request("GET", "/api/todos")
        request.base_path = "/api"

        assert router.resolve(request).route.path == "/todos"


class TestRouterAsStep:
    """The router used as a middleware step."""

    def test_invokes_handler(self):
        router = Router()
        router.register("GET", "/todos/:id", dummy_handler)
        response = Response()
        next = Recorder()

        router(make_request("GET", "/todos/5"), response, next)

        assert json.loads(response.body) == {"path": "/todos/5", "params": {"id": "5"}}
        assert next.calls == []

    def test_not_found_continues(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)
        response = Response()
        next = Recorder()

        router(make_request("GET", "/elsewhere"), response, next)

        assert next.calls == [None]
        assert response.finalized is False

    def test_method_not_allowed_responds_with_allow_header(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler)
        router.register("POST", "/todos", dummy_handler)
        response = Response()
        next = Recorder()

        router(make_request("PATCH", "/todos"), response, next)

        assert response.status_code == 405
        assert response.headers["Allow"] == "GET, POST"
        assert next.calls == []

    def test_plain_exception_wrapped_in_handler_error(self):
        router = Router()

        def broken(request, response, next):
            raise KeyError("title")

        router.register("GET", "/broken", broken)

        with pytest.raises(HandlerError) as exc_info:
            router(make_request("GET", "/broken"), Response(), Recorder())

        assert isinstance(exc_info.value.__cause__, KeyError)
        assert "broken" in str(exc_info.value)

    def test_http_errors_pass_through_unwrapped(self):
        router = Router()

        def picky(request, response, next):
            raise MalformedBodyError("bad")

        router.register("POST", "/picky", picky)

        with pytest.raises(MalformedBodyError):
            router(make_request("POST", "/picky"), Response(), Recorder())


class TestDecorators:
    """Tests for decorator-style registration."""

    def test_get_decorator(self):
        router = Router()

        @router.get("/todos")
        def list_todos(request, response, next):
            response.json([])

        assert router.match("GET", "/todos").route.handler is list_todos

    def test_all_method_decorators(self):
        router = Router()

        @router.post("/x")
        def create(request, response, next): pass

        @router.put("/x")
        def replace(request, response, next): pass

        @router.delete("/x")
        def remove(request, response, next): pass

        @router.patch("/x")
        def modify(request, response, next): pass

        assert router.allowed_methods("/x") == ["DELETE", "PATCH", "POST", "PUT"]


class TestURLGeneration:
    """Tests for reverse routing."""

    def test_url_for_simple(self):
        router = Router()
        router.register("GET", "/todos", dummy_handler, name="list_todos")

        assert router.url_for("list_todos") == "/todos"

    def test_url_for_with_params(self):
        router = Router()
        router.register("PUT", "/todos/{id}", dummy_handler, name="update_todo")

        assert router.url_for("update_todo", id=42) == "/todos/42"

    def test_url_for_unknown_route(self):
        assert Router().url_for("nonexistent") is None

    def test_url_for_missing_param(self):
        router = Router()
        router.register("GET", "/todos/:id", dummy_handler, name="todo")

        with pytest.raises(KeyError):
            router.url_for("todo")

    def test_url_for_percent_encodes_params(self):
        router = Router()
        router.register("PUT", "/todos/{id}", dummy_handler, name="update_todo")

        assert router.url_for("update_todo", id="a b/c") == "/todos/a%20b%2Fc"
        assert router.url_for("update_todo", id="漢") == "/todos/%E6%BC%A2"

    def test_url_for_encodes_line_breaks(self):
        router = Router()
        router.register("PUT", "/todos/{id}", dummy_handler, name="update_todo")

        url = router.url_for("update_todo", id="1\r\nSet-Cookie: a=b")

        assert url == "/todos/1%0D%0ASet-Cookie%3A%20a%3Db"
