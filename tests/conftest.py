"""
Pytest fixtures and test configuration for scraps tests.
"""

import logging
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from scraps.protocols import ModelResponse, RemoteStoreError
from scraps.storage.notes import LocalNoteStore
from scraps.storage.sqlite import SQLiteKeyValueStore
from scraps.types import RemoteDocument


@pytest.fixture(autouse=True)
def scraps_home(tmp_path, monkeypatch):
    """Point SCRAPS_HOME at a temp directory and clear provider env vars."""
    home = tmp_path / "scraps-home"
    monkeypatch.setenv("SCRAPS_HOME", str(home))
    for var in (
        "SCRAPS_NOTION_API_KEY",
        "SCRAPS_NOTION_DATABASE_ID",
        "SCRAPS_SYNC_ENABLED",
        "SCRAPS_SYNC_INTERVAL",
        "SCRAPS_AI_PROVIDER",
        "SCRAPS_AI_API_KEY",
        "SCRAPS_AI_MODEL",
        "SCRAPS_AI_BASE_URL",
        "SCRAPS_LOG_LEVEL",
        "NOTION_API_KEY",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "CLAUDE_API_KEY",
        "GEMINI_API_KEY",
        "FIREWORKS_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture(autouse=True)
def clean_scraps_logger():
    """Remove all handlers from the scraps logger before/after each test."""
    logger = logging.getLogger("scraps")
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)


@pytest.fixture
def kv(tmp_path):
    store = SQLiteKeyValueStore(tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def notes(kv):
    return LocalNoteStore(kv)


class FakeRemote:
    """In-memory RemoteStoreProtocol implementation.

    ``fail`` maps an operation name ("list_all", "create", ...) to the
    RemoteStoreError it should raise, optionally only for some titles or
    remote ids via ``fail_for``.
    """

    def __init__(self):
        self.docs: Dict[str, RemoteDocument] = {}
        self.archived: Dict[str, RemoteDocument] = {}
        self.calls: List[tuple] = []
        self.fail: Dict[str, RemoteStoreError] = {}
        self.fail_for: Dict[str, set] = {}
        self.clock = 1_000_000
        self._next = 0

    def _tick(self, last_modified: Optional[int]) -> int:
        self.clock += 1000
        return last_modified if last_modified is not None else self.clock

    def _check(self, operation: str, target: Optional[str] = None) -> None:
        err = self.fail.get(operation)
        if err is None:
            return
        targets = self.fail_for.get(operation)
        if targets is None or target in targets:
            raise err

    def put(self, title: str, body: str, last_edited_time: int, remote_id: Optional[str] = None):
        """Seed a document as if it were edited on the remote side."""
        if remote_id is None:
            self._next += 1
            remote_id = f"page-{self._next}"
        self.docs[remote_id] = RemoteDocument(remote_id, title, body, last_edited_time)
        return remote_id

    @property
    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("create", "update", "archive")]

    def test_connection(self) -> bool:
        return "list_all" not in self.fail

    def list_all(self) -> List[RemoteDocument]:
        self.calls.append(("list_all",))
        self._check("list_all")
        return list(self.docs.values())

    def get(self, remote_id: str) -> RemoteDocument:
        self._check("get", remote_id)
        if remote_id not in self.docs:
            raise RemoteStoreError(
                "get", "page not found", status_code=404, error_class="not_found"
            )
        return self.docs[remote_id]

    def create(self, title: str, body: str, *, last_modified: Optional[int] = None) -> str:
        self.calls.append(("create", title))
        self._check("create", title)
        return self.put(title, body, self._tick(last_modified))

    def update(
        self, remote_id: str, title: str, body: str, *, last_modified: Optional[int] = None
    ) -> bool:
        self.calls.append(("update", remote_id))
        self._check("update", remote_id)
        if remote_id not in self.docs:
            raise RemoteStoreError(
                "update", "page not found", status_code=404, error_class="not_found"
            )
        self.docs[remote_id] = RemoteDocument(remote_id, title, body, self._tick(last_modified))
        return True

    def archive(self, remote_id: str) -> bool:
        self.calls.append(("archive", remote_id))
        self._check("archive", remote_id)
        doc = self.docs.pop(remote_id, None)
        if doc is not None:
            self.archived[remote_id] = doc
        return True


@pytest.fixture
def remote():
    return FakeRemote()


def _make_model(content="tidied", model_id="fake-model"):
    model = MagicMock()
    model.model_id = model_id
    if isinstance(content, Exception):
        model.generate.side_effect = content
    else:
        model.generate.return_value = ModelResponse(content=content)
    return model


@pytest.fixture
def make_model():
    """Factory: a MagicMock model that returns (or raises) ``content``."""
    return _make_model
