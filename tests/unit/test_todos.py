"""
Unit tests for the todo store and the todo application.
"""

import json
import threading

import pytest

from httpchain.handlers.todos import TodoStore
from httpchain.http.request import Request


def make_request(method: str, path: str, body=None, content_type: str = "application/json") -> Request:
    """Build a request; dict/list bodies are JSON-encoded."""
    headers = {}
    raw = b""
    if body is not None:
        raw = json.dumps(body).encode() if not isinstance(body, bytes) else body
        headers["content-type"] = content_type
        headers["content-length"] = str(len(raw))
    return Request(method=method, path=path, headers=headers, body=raw)


class TestTodoStore:

    def test_create_and_list(self, store: TodoStore):
        store.create({"id": 1, "title": "milk"})
        store.create({"id": 2, "title": "eggs"})

        assert [t["title"] for t in store.list()] == ["milk", "eggs"]
        assert len(store) == 2

    def test_list_is_a_deep_copy(self, store: TodoStore):
        store.create({"id": 1, "tags": ["shop"]})

        snapshot = store.list()
        snapshot[0]["tags"].append("mutated")
        snapshot.append({"id": 99})

        assert store.list() == [{"id": 1, "tags": ["shop"]}]

    def test_update_matches_string_and_number_ids(self, store: TodoStore):
        store.create({"id": 1, "title": "milk"})

        assert store.update("1", {"id": 1, "title": "oat milk"}) == 1
        assert store.list() == [{"id": 1, "title": "oat milk"}]

    def test_update_keeps_position(self, store: TodoStore):
        for n in range(3):
            store.create({"id": n})

        store.update("1", {"id": 1, "done": True})

        assert store.list()[1] == {"id": 1, "done": True}

    def test_duplicate_ids_all_affected(self, store: TodoStore):
        store.create({"id": "a", "n": 1})
        store.create({"id": "b", "n": 2})
        store.create({"id": "a", "n": 3})

        assert store.update("a", {"id": "a", "n": 0}) == 2
        assert store.delete("a") == 2
        assert store.list() == [{"id": "b", "n": 2}]

    def test_missing_id_is_a_no_op(self, store: TodoStore):
        store.create({"id": 1})

        assert store.update("7", {"id": 7}) == 0
        assert store.delete("7") == 0
        assert store.list() == [{"id": 1}]

    def test_todos_without_id_never_match(self, store: TodoStore):
        store.create({"title": "anonymous"})

        assert store.delete("None") == 0

    def test_concurrent_creates(self, store: TodoStore):
        def worker(offset):
            for n in range(200):
                store.create({"id": offset + n})

        threads = [threading.Thread(target=worker, args=(i * 1000,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 1600


class TestTodoApplication:
    """The todo routes driven through Application.dispatch."""

    def test_index_and_about(self, todo_app):
        index = todo_app.dispatch(make_request("GET", "/"))
        about = todo_app.dispatch(make_request("GET", "/about"))

        assert index.body == b"Welcome to the todo API"
        assert index.headers["Content-Type"].startswith("text/plain")
        assert about.body == b"A small todo API"

    def test_empty_list(self, todo_app):
        response = todo_app.dispatch(make_request("GET", "/todos"))

        assert response.status_code == 200
        assert json.loads(response.body) == []

    def test_crud_round_trip(self, todo_app, store):
        created = todo_app.dispatch(make_request("POST", "/todos", {"id": 1, "title": "milk"}))
        assert created.status_code == 201
        assert json.loads(created.body) == {"message": "Todo created"}
        assert created.headers["Location"] == "/todos/1"

        updated = todo_app.dispatch(make_request("PUT", "/todos/1", {"id": 1, "title": "oat milk"}))
        assert updated.status_code == 200
        assert json.loads(updated.body) == {"message": "Todo updated"}

        listed = todo_app.dispatch(make_request("GET", "/todos"))
        assert json.loads(listed.body) == [{"id": 1, "title": "oat milk"}]

        deleted = todo_app.dispatch(make_request("DELETE", "/todos/1"))
        assert deleted.status_code == 200
        assert json.loads(deleted.body) == {"message": "Todo deleted"}
        assert store.list() == []

    def test_create_without_id_has_no_location(self, todo_app):
        response = todo_app.dispatch(make_request("POST", "/todos", {"title": "no id"}))

        assert response.status_code == 201
        assert "Location" not in response.headers

    def test_delete_unknown_id_succeeds(self, todo_app):
        response = todo_app.dispatch(make_request("DELETE", "/todos/404"))

        assert response.status_code == 200

    @pytest.mark.parametrize("body", [[1, 2], "just a string", 42])
    def test_non_object_body_is_400(self, todo_app, store, body):
        response = todo_app.dispatch(make_request("POST", "/todos", body))

        assert response.status_code == 400
        assert json.loads(response.body) == {
            "error": "Request body must be a JSON object",
            "status": 400,
        }
        assert store.list() == []

    def test_missing_body_is_400(self, todo_app):
        response = todo_app.dispatch(make_request("PUT", "/todos/1"))

        assert response.status_code == 400

    def test_form_body_is_accepted(self, todo_app, store):
        request = make_request(
            "POST", "/todos", b"id=5&title=bread",
            content_type="application/x-www-form-urlencoded",
        )
        response = todo_app.dispatch(request)

        assert response.status_code == 201
        assert store.list() == [{"id": "5", "title": "bread"}]

    def test_unknown_route_is_404(self, todo_app):
        response = todo_app.dispatch(make_request("GET", "/todo"))

        assert response.status_code == 404
        assert json.loads(response.body) == {"error": "Cannot GET /todo"}

    def test_wrong_method_is_405(self, todo_app):
        response = todo_app.dispatch(make_request("PATCH", "/todos/1"))

        assert response.status_code == 405
        assert response.headers["Allow"] == "DELETE, PUT"

    def test_location_percent_encodes_id(self, todo_app, store):
        created = todo_app.dispatch(make_request("POST", "/todos", {"id": "漢", "title": "kanji"}))

        assert created.status_code == 201
        assert created.headers["Location"] == "/todos/%E6%BC%A2"
        assert b"Location: /todos/%E6%BC%A2\r\n" in created.to_bytes()

        # the server unquotes the path before dispatch
        updated = todo_app.dispatch(make_request("PUT", "/todos/漢", {"id": "漢", "title": "done"}))
        assert updated.status_code == 200
        assert store.list() == [{"id": "漢", "title": "done"}]

    def test_id_with_line_break_cannot_inject_headers(self, todo_app):
        todo = {"id": "1\r\nSet-Cookie: session=x", "title": "sneaky"}
        created = todo_app.dispatch(make_request("POST", "/todos", todo))

        assert created.status_code == 201
        assert "\r" not in created.headers["Location"]
        assert "\n" not in created.headers["Location"]
        assert b"Set-Cookie" not in created.to_bytes()
