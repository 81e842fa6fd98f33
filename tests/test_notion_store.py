"""Tests for scraps.storage.notion.NotionStore against a mocked Notion API."""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import httpx
import pytest

from scraps.protocols import EmptyContentError, RemoteStoreError, RemoteStoreProtocol
from scraps.storage.notion import MAX_CHILDREN_PER_REQUEST, NotionStore
from scraps.storage.sync_engine import SyncEngine
from scraps.types import Note


def _page(page_id, title, *, number=None, edited="2024-01-01T00:00:00.000Z", archived=False):
    props: Dict[str, Any] = {"Name": {"type": "title", "title": [{"plain_text": title}]}}
    if number is not None:
        props["Last Modified"] = {"type": "number", "number": number}
    return {
        "object": "page",
        "id": page_id,
        "archived": archived,
        "last_edited_time": edited,
        "properties": props,
    }


def _para(block_id, text):
    return {
        "object": "block",
        "id": block_id,
        "type": "paragraph",
        "paragraph": {"rich_text": [{"plain_text": text}]},
    }


class FakeNotion:
    """Just enough of the Notion REST API to drive NotionStore."""

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.schema = schema or {
            "Name": {"type": "title"},
            "Last Modified": {"type": "number"},
        }
        self.pages: List[Dict[str, Any]] = []
        self.children: Dict[str, List[Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.errors: Dict[tuple, httpx.Response] = {}
        self.query_page_size: Optional[int] = None
        self._next = 0
        self._next_block = 0

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handle))

    def calls(self, method: str, prefix: str = "") -> List[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path.startswith(prefix)
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")
        key = (request.method, path)
        if key in self.errors:
            return self.errors[key]
        payload = json.loads(request.content) if request.content else {}

        if request.method == "GET" and path.startswith("/databases/"):
            return httpx.Response(200, json={"object": "database", "properties": self.schema})
        if request.method == "POST" and path.endswith("/query"):
            return httpx.Response(200, json=self._query(payload))
        if request.method == "GET" and path.endswith("/children"):
            page_id = path.split("/")[2]
            return httpx.Response(
                200, json={"results": self.children.get(page_id, []), "has_more": False}
            )
        if request.method == "PATCH" and path.endswith("/children"):
            page_id = path.split("/")[2]
            self.children.setdefault(page_id, []).extend(self._with_ids(payload["children"]))
            return httpx.Response(200, json={"results": payload["children"]})
        if request.method == "GET" and path.startswith("/pages/"):
            page_id = path.split("/")[2]
            page = next((p for p in self.pages if p["id"] == page_id), None)
            if page is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json=page)
        if request.method == "POST" and path == "/pages":
            self._next += 1
            page_id = f"new-{self._next}"
            self.pages.append(
                {
                    "object": "page",
                    "id": page_id,
                    "archived": False,
                    "properties": self._typed(payload.get("properties", {})),
                }
            )
            self.children[page_id] = self._with_ids(payload.get("children", []))
            return httpx.Response(200, json={"object": "page", "id": page_id})
        if request.method == "PATCH" and path.startswith("/pages/"):
            page_id = path.split("/")[2]
            page = next((p for p in self.pages if p["id"] == page_id), None)
            if page is not None:
                written = self._typed(payload.get("properties", {}))
                page.setdefault("properties", {}).update(written)
                if "archived" in payload:
                    page["archived"] = payload["archived"]
            return httpx.Response(200, json={"object": "page", "id": page_id})
        if request.method == "DELETE" and path.startswith("/blocks/"):
            block_id = path.split("/")[2]
            for blocks in self.children.values():
                blocks[:] = [b for b in blocks if b.get("id") != block_id]
            return httpx.Response(200, json={"object": "block", "id": block_id})
        return httpx.Response(400, json={"message": f"unhandled {request.method} {path}"})

    def _with_ids(self, blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        stored = []
        for block in blocks:
            self._next_block += 1
            stored.append({"id": f"blk-{self._next_block}", **block})
        return stored

    @staticmethod
    def _typed(properties: Dict[str, Any]) -> Dict[str, Any]:
        """Written properties come back tagged with their type, as Notion returns them."""
        typed = {}
        for name, value in properties.items():
            kind = "title" if "title" in value else "number" if "number" in value else None
            typed[name] = {"type": kind, **value} if kind else value
        return typed

    def _query(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        size = self.query_page_size or len(self.pages) or 1
        start = int(payload.get("start_cursor") or 0)
        chunk = self.pages[start : start + size]
        more = start + size < len(self.pages)
        return {
            "results": chunk,
            "has_more": more,
            "next_cursor": str(start + size) if more else None,
        }


@pytest.fixture
def fake_notion():
    return FakeNotion()


@pytest.fixture
def store(fake_notion):
    s = NotionStore("secret-token", "db1", client=fake_notion.client())
    yield s
    s.close()


class TestConstruction:
    def test_requires_key_and_database(self):
        with pytest.raises(ValueError, match="API key"):
            NotionStore("", "db1")
        with pytest.raises(ValueError, match="database id"):
            NotionStore("key", "")

    def test_satisfies_protocol(self, store):
        assert isinstance(store, RemoteStoreProtocol)


class TestListAll:
    def test_lists_live_titled_pages(self, store, fake_notion):
        fake_notion.pages = [
            _page("p1", "First", number=111),
            _page("p2", "Archived", archived=True),
            _page("p3", "   "),
        ]
        fake_notion.children["p1"] = [_para("b1", "hello")]

        docs = store.list_all()

        assert len(docs) == 1
        assert docs[0].remote_id == "p1"
        assert docs[0].title == "First"
        assert docs[0].body == "hello"
        assert docs[0].last_edited_time == 111

    def test_sends_auth_headers_and_title_filter(self, store, fake_notion):
        store.list_all()
        query = fake_notion.calls("POST", "/v1/databases/db1/query")[0]
        assert query.headers["Authorization"] == "Bearer secret-token"
        assert query.headers["Notion-Version"] == "2022-06-28"
        body = json.loads(query.content)
        assert body["filter"] == {"property": "Name", "title": {"is_not_empty": True}}
        assert body["page_size"] == 100

    def test_follows_pagination(self, store, fake_notion):
        fake_notion.pages = [_page(f"p{i}", f"Note {i}") for i in range(5)]
        fake_notion.query_page_size = 2

        docs = store.list_all()

        assert [d.remote_id for d in docs] == ["p0", "p1", "p2", "p3", "p4"]
        queries = fake_notion.calls("POST", "/v1/databases/db1/query")
        assert len(queries) == 3
        assert json.loads(queries[1].content)["start_cursor"] == "2"

    def test_falls_back_to_last_edited_time(self, store, fake_notion):
        fake_notion.pages = [_page("p1", "No stamp", edited="2024-01-01T00:00:00.000Z")]
        assert store.list_all()[0].last_edited_time == 1704067200000

    def test_schema_fetched_once(self, store, fake_notion):
        store.list_all()
        store.list_all()
        assert len(fake_notion.calls("GET", "/v1/databases/")) == 1

    def test_detects_title_property(self, fake_notion):
        fake_notion.schema = {"Title": {"type": "title"}}
        page = _page("p1", "x")
        page["properties"] = {"Title": page["properties"]["Name"]}
        fake_notion.pages = [page]
        s = NotionStore("k", "db1", client=fake_notion.client())

        docs = s.list_all()

        assert s.title_property == "Title"
        assert docs[0].title == "x"
        query = json.loads(fake_notion.calls("POST", "/v1/databases/db1/query")[0].content)
        assert query["filter"]["property"] == "Title"

    def test_drops_unsupported_blocks(self, store, fake_notion):
        fake_notion.pages = [_page("p1", "Mixed")]
        fake_notion.children["p1"] = [
            {"id": "b1", "type": "image", "image": {}},
            _para("b2", "text"),
        ]
        assert store.list_all()[0].body == "text"


class TestGet:
    def test_get_page(self, store, fake_notion):
        fake_notion.pages = [_page("p1", "One", number=5)]
        fake_notion.children["p1"] = [_para("b1", "body")]
        doc = store.get("p1")
        assert (doc.title, doc.body, doc.last_edited_time) == ("One", "body", 5)

    def test_archived_page_is_not_found(self, store, fake_notion):
        fake_notion.pages = [_page("p1", "Old", archived=True)]
        with pytest.raises(RemoteStoreError) as exc_info:
            store.get("p1")
        assert exc_info.value.error_class == "not_found"

    def test_missing_page(self, store):
        with pytest.raises(RemoteStoreError) as exc_info:
            store.get("ghost")
        assert exc_info.value.status_code == 404
        assert exc_info.value.error_class == "not_found"


class TestWrites:
    def test_create(self, store, fake_notion):
        page_id = store.create("Title", "# Head\ntext", last_modified=1234)

        assert page_id == "new-1"
        payload = json.loads(fake_notion.calls("POST", "/v1/pages")[0].content)
        assert payload["parent"] == {"database_id": "db1"}
        assert payload["properties"]["Name"]["title"][0]["text"]["content"] == "Title"
        assert payload["properties"]["Last Modified"] == {"number": 1234}
        assert [b["type"] for b in payload["children"]] == ["heading_1", "paragraph"]

    def test_create_without_timestamp_property(self, fake_notion):
        fake_notion.schema = {"Name": {"type": "title"}}
        s = NotionStore("k", "db1", client=fake_notion.client())
        s.create("T", "x", last_modified=1234)
        payload = json.loads(fake_notion.calls("POST", "/v1/pages")[0].content)
        assert set(payload["properties"]) == {"Name"}

    def test_create_appends_overflow_children(self, store, fake_notion):
        body = "\n".join(f"line {i}" for i in range(MAX_CHILDREN_PER_REQUEST + 30))
        page_id = store.create("Long", body)

        create = json.loads(fake_notion.calls("POST", "/v1/pages")[0].content)
        assert len(create["children"]) == MAX_CHILDREN_PER_REQUEST
        appends = fake_notion.calls("PATCH", f"/v1/blocks/{page_id}/children")
        assert len(appends) == 1
        assert len(json.loads(appends[0].content)["children"]) == 30
        assert len(fake_notion.children[page_id]) == MAX_CHILDREN_PER_REQUEST + 30

    def test_create_empty_body(self, store, fake_notion):
        store.create("Empty", "")
        payload = json.loads(fake_notion.calls("POST", "/v1/pages")[0].content)
        assert payload["children"] == []

    def test_non_blank_body_without_blocks_is_rejected(self, store, fake_notion):
        with patch("scraps.storage.notion.to_remote_blocks", return_value=[]):
            with pytest.raises(EmptyContentError):
                store.create("T", "something")
        assert fake_notion.calls("POST", "/v1/pages") == []

    def test_update_replaces_title_and_children(self, store, fake_notion):
        fake_notion.children["p1"] = [_para("old-1", "a"), _para("old-2", "b")]

        assert store.update("p1", "Renamed", "new text", last_modified=99) is True

        patches = fake_notion.calls("PATCH", "/v1/pages/p1")
        first, last = [json.loads(r.content)["properties"] for r in patches]
        assert first["Name"]["title"][0]["text"]["content"] == "Renamed"
        assert "Last Modified" not in first
        assert last == {"Last Modified": {"number": 99}}
        deleted = [r.url.path for r in fake_notion.calls("DELETE")]
        assert deleted == ["/v1/blocks/old-1", "/v1/blocks/old-2"]
        remaining = fake_notion.children["p1"]
        assert [b["paragraph"]["rich_text"][0]["text"]["content"] for b in remaining] == [
            "new text"
        ]

    def test_failed_child_replace_leaves_stored_timestamp(self, store, fake_notion):
        fake_notion.pages = [_page("p1", "Note", number=100)]
        fake_notion.children["p1"] = [_para("b1", "old body")]
        fake_notion.errors[("DELETE", "/blocks/b1")] = httpx.Response(500, text="boom")

        with pytest.raises(RemoteStoreError):
            store.update("p1", "Note", "new body", last_modified=200)

        assert fake_notion.pages[0]["properties"]["Last Modified"]["number"] == 100

    def test_create_archives_page_when_overflow_append_fails(self, store, fake_notion):
        body = "\n".join(f"line {i}" for i in range(MAX_CHILDREN_PER_REQUEST + 50))
        fake_notion.errors[("PATCH", "/blocks/new-1/children")] = httpx.Response(
            503, text="unavailable"
        )

        with pytest.raises(RemoteStoreError) as exc_info:
            store.create("Long", body)

        assert exc_info.value.error_class == "server"
        assert fake_notion.pages[0]["archived"] is True
        assert store.list_all() == []

    def test_create_reraises_when_cleanup_also_fails(self, store, fake_notion):
        body = "\n".join(f"line {i}" for i in range(MAX_CHILDREN_PER_REQUEST + 1))
        fake_notion.errors[("PATCH", "/blocks/new-1/children")] = httpx.Response(500, json={})
        fake_notion.errors[("PATCH", "/pages/new-1")] = httpx.Response(500, json={})

        with pytest.raises(RemoteStoreError) as exc_info:
            store.create("Long", body)

        assert "/blocks/new-1/children" in str(exc_info.value)

    def test_archive(self, store, fake_notion):
        assert store.archive("p1") is True
        body = json.loads(fake_notion.calls("PATCH", "/v1/pages/p1")[0].content)
        assert body == {"archived": True}

    def test_archive_missing_page_is_success(self, store, fake_notion):
        fake_notion.errors[("PATCH", "/pages/gone")] = httpx.Response(404, json={})
        assert store.archive("gone") is True

    def test_archive_server_error_raises(self, store, fake_notion):
        fake_notion.errors[("PATCH", "/pages/p1")] = httpx.Response(502, text="bad gateway")
        with pytest.raises(RemoteStoreError) as exc_info:
            store.archive("p1")
        assert exc_info.value.error_class == "server"


class TestErrors:
    def test_http_error_carries_status_and_request_id(self, store, fake_notion):
        fake_notion.errors[("POST", "/databases/db1/query")] = httpx.Response(
            401, text='{"message":"API token is invalid."}', headers={"x-request-id": "req-9"}
        )
        with pytest.raises(RemoteStoreError) as exc_info:
            store.list_all()
        err = exc_info.value
        assert err.status_code == 401
        assert err.error_class == "auth"
        assert err.operation == "list"
        assert "req-9" in str(err)
        assert "API token is invalid" in str(err)

    def test_long_error_detail_is_truncated(self, store, fake_notion):
        fake_notion.errors[("POST", "/pages")] = httpx.Response(400, text="x" * 5000)
        with pytest.raises(RemoteStoreError) as exc_info:
            store.create("T", "b")
        assert "(truncated)" in str(exc_info.value)
        assert len(str(exc_info.value)) < 1000

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        s = NotionStore("k", "db1", client=httpx.Client(transport=httpx.MockTransport(handler)))
        with pytest.raises(RemoteStoreError) as exc_info:
            s.list_all()
        assert exc_info.value.error_class == "timeout"

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        s = NotionStore("k", "db1", client=httpx.Client(transport=httpx.MockTransport(handler)))
        with pytest.raises(RemoteStoreError) as exc_info:
            s.archive("p1")
        assert exc_info.value.error_class == "unknown"

    def test_invalid_json(self, store, fake_notion):
        fake_notion.errors[("GET", "/databases/db1")] = httpx.Response(200, text="<html>")
        with pytest.raises(RemoteStoreError, match="invalid JSON"):
            store.list_all()


class TestConnection:
    def test_connection_ok(self, store):
        assert store.test_connection() is True

    def test_connection_failure_returns_false(self, store, fake_notion):
        fake_notion.errors[("GET", "/databases/db1")] = httpx.Response(403, json={})
        assert store.test_connection() is False


class TestPassesAfterPartialWrites:
    """A write that fails halfway must be retried by the next pass, not forgotten."""

    @pytest.fixture
    def engine(self, store, notes, kv):
        return SyncEngine(notes, store, kv)

    def test_interrupted_update_is_pushed_again(self, engine, store, fake_notion, notes):
        fake_notion.pages = [_page("p1", "Note", number=100)]
        fake_notion.children["p1"] = [_para("b1", "old body")]
        notes.save(Note(id="n1", title="Note", body="new body", remote_id="p1", last_modified=200))
        fake_notion.errors[("DELETE", "/blocks/b1")] = httpx.Response(500, text="boom")

        first = engine.sync()

        assert first.updated == 0
        assert [r.operation for r in first.reports] == ["update"]

        del fake_notion.errors[("DELETE", "/blocks/b1")]
        second = engine.sync()

        assert second.updated == 1
        assert second.pulled == 0
        assert store.get("p1").body == "new body"
        assert fake_notion.pages[0]["properties"]["Last Modified"]["number"] == 200

    def test_interrupted_create_leaves_no_duplicate(self, engine, fake_notion, notes):
        body = "\n".join(f"line {i}" for i in range(MAX_CHILDREN_PER_REQUEST + 50))
        notes.create("Long", body)
        fake_notion.errors[("PATCH", "/blocks/new-1/children")] = httpx.Response(503, json={})

        first = engine.sync()

        assert first.created == 0
        assert notes.list()[0].remote_id is None

        fake_notion.errors.clear()
        second = engine.sync()

        assert (second.created, second.pulled_new) == (1, 0)
        live = [p for p in fake_notion.pages if not p["archived"]]
        assert [p["id"] for p in live] == ["new-2"]
        assert [(n.title, n.remote_id) for n in notes.list()] == [("Long", "new-2")]
