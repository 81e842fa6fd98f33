"""Notion remote store adapter.

Maps notes onto pages of one Notion database: the page title is the note
title, the page's block children are the note body (through
``scraps.codec``), and an optional number property carries the note's
``last_modified`` so that the application's edit time survives
Notion's own metadata updates.

Every call is synchronous and sequential. Any HTTP, transport or
decoding failure is raised as ``RemoteStoreError``; nothing here touches
local state.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from scraps.codec import from_remote_blocks, read_plain_text, to_remote_blocks, to_rich_text
from scraps.protocols import EmptyContentError, RemoteStoreError, classify_http_status
from scraps.types import RemoteDocument, iso_to_ms

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Notion caps page_size and children per request at 100
PAGE_SIZE = 100
MAX_CHILDREN_PER_REQUEST = 100

_ERROR_DETAIL_LIMIT = 500


class NotionStore:
    """RemoteStoreProtocol implementation for a Notion database.

    Args:
        api_key: Notion integration token.
        database_id: Database holding one page per note.
        title_property: Name of the title property (falls back to whichever
            property has type ``title``).
        last_modified_property: Number property that stores the note's
            ``last_modified``. Ignored when the database has no such property.
        client: Pre-built ``httpx.Client`` (tests pass one with a mock transport).
    """

    def __init__(
        self,
        api_key: str,
        database_id: str,
        *,
        title_property: str = "Name",
        last_modified_property: Optional[str] = "Last Modified",
        api_base: str = NOTION_API_BASE,
        notion_version: str = NOTION_VERSION,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        if not api_key:
            raise ValueError("Notion API key is required")
        if not database_id:
            raise ValueError("Notion database id is required")

        self.database_id = database_id
        self.title_property = title_property
        self.last_modified_property = last_modified_property
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": notion_version,
            "Content-Type": "application/json",
        }
        self._schema: Optional[Dict[str, str]] = None

    def close(self) -> None:
        self._client.close()

    # === HTTP ===

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json_payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            response = self._client.request(
                method, url, headers=self._headers, json=json_payload, params=params
            )
        except httpx.TimeoutException as e:
            raise RemoteStoreError(
                operation, f"{method} {path} timed out: {e}", error_class="timeout"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(operation, f"{method} {path} failed: {e}") from e

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text.strip()
            if len(detail) > _ERROR_DETAIL_LIMIT:
                detail = detail[:_ERROR_DETAIL_LIMIT] + "...(truncated)"
            request_id = e.response.headers.get("x-request-id")
            where = f"{method} {path}"
            if request_id:
                where = f"{where} (request_id={request_id})"
            status = e.response.status_code
            raise RemoteStoreError(
                operation,
                f"Notion API error {status} on {where}: {detail}",
                status_code=status,
                error_class=classify_http_status(status),
            ) from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteStoreError(operation, f"{method} {path} returned invalid JSON") from e

    def _paginate(
        self, operation: str, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Follow ``has_more``/``next_cursor`` and collect every result."""
        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            page: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if cursor:
                page["start_cursor"] = cursor
            if method == "GET":
                data = self._request(operation, method, path, params=page)
            else:
                body = {**(payload or {}), **page}
                data = self._request(operation, method, path, json_payload=body)
            results.extend(data.get("results", []))
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break
        return results

    # === Schema ===

    def _ensure_schema(self, operation: str) -> Dict[str, str]:
        """Property name -> type for the database, fetched once."""
        if self._schema is None:
            data = self._request(operation, "GET", f"/databases/{self.database_id}")
            self._schema = {
                name: prop.get("type", "") for name, prop in data.get("properties", {}).items()
            }
            if self.title_property not in self._schema:
                detected = next((n for n, t in self._schema.items() if t == "title"), None)
                if detected:
                    logger.info(
                        f"Title property '{self.title_property}' not found, using '{detected}'"
                    )
                    self.title_property = detected
        return self._schema

    def _writes_timestamp(self) -> bool:
        schema = self._schema or {}
        return bool(self.last_modified_property) and (
            schema.get(self.last_modified_property) == "number"
        )

    # === Page <-> RemoteDocument ===

    def _page_title(self, page: Dict[str, Any]) -> str:
        props = page.get("properties", {})
        prop = props.get(self.title_property) or next(
            (p for p in props.values() if p.get("type") == "title"), {}
        )
        return read_plain_text(prop.get("title", []))

    def _page_timestamp(self, page: Dict[str, Any]) -> int:
        """Prefer the application's stored edit time over Notion's metadata."""
        if self.last_modified_property:
            prop = page.get("properties", {}).get(self.last_modified_property) or {}
            if prop.get("type") == "number" and prop.get("number") is not None:
                return int(prop["number"])
            if prop.get("type") == "date" and prop.get("date"):
                stored = iso_to_ms(prop["date"].get("start"))
                if stored is not None:
                    return stored
        return iso_to_ms(page.get("last_edited_time")) or 0

    def _fetch_body(self, operation: str, page_id: str) -> str:
        blocks = self._paginate(operation, "GET", f"/blocks/{page_id}/children")
        return from_remote_blocks(blocks)

    def _to_document(self, operation: str, page: Dict[str, Any]) -> RemoteDocument:
        return RemoteDocument(
            remote_id=page["id"],
            title=self._page_title(page),
            body=self._fetch_body(operation, page["id"]),
            last_edited_time=self._page_timestamp(page),
        )

    def _properties(self, title: str, last_modified: Optional[int]) -> Dict[str, Any]:
        props: Dict[str, Any] = {self.title_property: {"title": to_rich_text(title)}}
        if last_modified is not None and self._writes_timestamp():
            props[self.last_modified_property] = {"number": last_modified}
        return props

    @staticmethod
    def _encode(operation: str, body: str) -> List[Dict[str, Any]]:
        blocks = to_remote_blocks(body)
        if body.strip() and not blocks:
            raise EmptyContentError(f"{operation}: note body produced no blocks")
        return blocks

    def _append(self, operation: str, page_id: str, blocks: List[Dict[str, Any]]) -> None:
        for start in range(0, len(blocks), MAX_CHILDREN_PER_REQUEST):
            self._request(
                operation,
                "PATCH",
                f"/blocks/{page_id}/children",
                json_payload={"children": blocks[start : start + MAX_CHILDREN_PER_REQUEST]},
            )

    # === RemoteStoreProtocol ===

    def test_connection(self) -> bool:
        try:
            self._request("test_connection", "GET", f"/databases/{self.database_id}")
            return True
        except Exception as e:
            logger.warning(f"Notion connection check failed: {e}")
            return False

    def list_all(self) -> List[RemoteDocument]:
        """Every live page in the database with a non-empty title."""
        self._ensure_schema("list")
        pages = self._paginate(
            "list",
            "POST",
            f"/databases/{self.database_id}/query",
            {"filter": {"property": self.title_property, "title": {"is_not_empty": True}}},
        )
        documents = []
        for page in pages:
            if page.get("object") != "page" or page.get("archived") or page.get("in_trash"):
                continue
            if not self._page_title(page).strip():
                continue
            documents.append(self._to_document("list", page))
        logger.debug(f"Listed {len(documents)} Notion pages")
        return documents

    def get(self, remote_id: str) -> RemoteDocument:
        self._ensure_schema("get")
        page = self._request("get", "GET", f"/pages/{remote_id}")
        if page.get("archived") or page.get("in_trash"):
            raise RemoteStoreError(
                "get", f"page {remote_id} is archived", error_class="not_found"
            )
        return self._to_document("get", page)

    def create(self, title: str, body: str, *, last_modified: Optional[int] = None) -> str:
        self._ensure_schema("create")
        blocks = self._encode("create", body)
        page = self._request(
            "create",
            "POST",
            "/pages",
            json_payload={
                "parent": {"database_id": self.database_id},
                "properties": self._properties(title, last_modified),
                "children": blocks[:MAX_CHILDREN_PER_REQUEST],
            },
        )
        page_id = page.get("id")
        if not page_id:
            raise RemoteStoreError("create", "Notion did not return a page id")
        try:
            self._append("create", page_id, blocks[MAX_CHILDREN_PER_REQUEST:])
        except RemoteStoreError:
            # The caller never learns this id, so a half-written page would be
            # pulled back as a duplicate note.
            self._discard(page_id)
            raise
        logger.debug(f"Created Notion page {page_id} with {len(blocks)} blocks")
        return page_id

    def _discard(self, page_id: str) -> None:
        try:
            self._request(
                "create", "PATCH", f"/pages/{page_id}", json_payload={"archived": True}
            )
        except RemoteStoreError as e:
            logger.warning(f"Could not archive partially created page {page_id}: {e}")

    def update(
        self, remote_id: str, title: str, body: str, *, last_modified: Optional[int] = None
    ) -> bool:
        """Replace title and the full content. Not atomic: see ``_replace_children``."""
        self._ensure_schema("update")
        blocks = self._encode("update", body)
        self._request(
            "update",
            "PATCH",
            f"/pages/{remote_id}",
            json_payload={"properties": self._properties(title, None)},
        )
        self._replace_children(remote_id, blocks)
        if last_modified is not None and self._writes_timestamp():
            self._request(
                "update",
                "PATCH",
                f"/pages/{remote_id}",
                json_payload={
                    "properties": {self.last_modified_property: {"number": last_modified}}
                },
            )
        return True

    def _replace_children(self, page_id: str, blocks: List[Dict[str, Any]]) -> None:
        # The stored timestamp is written only after this succeeds, so a page
        # left half-replaced still looks older than the local note.
        existing = self._paginate("update", "GET", f"/blocks/{page_id}/children")
        for block in existing:
            block_id = block.get("id")
            if block_id:
                self._request("update", "DELETE", f"/blocks/{block_id}")
        self._append("update", page_id, blocks)

    def archive(self, remote_id: str) -> bool:
        try:
            self._request(
                "archive", "PATCH", f"/pages/{remote_id}", json_payload={"archived": True}
            )
        except RemoteStoreError as e:
            if e.error_class != "not_found":
                raise
            logger.info(f"Notion page {remote_id} already gone, nothing to archive")
        return True
