"""
Scraps Core - local notes mirrored to Notion.

The ``Scraps`` class builds every component exactly once and hands each
one its collaborators: key-value store -> note store -> remote adapter
and AI transform -> sync engine -> scheduler. Tests and embedders can
inject any of them instead.

Local edits and sync passes share the engine's lock, so a note is never
changed underneath a running pass.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

from scraps.config import ScrapsConfig, load_config, validate_config
from scraps.logging_config import log_sync, log_sync_event
from scraps.models.auto import create_model
from scraps.protocols import (
    KeyValueStoreProtocol,
    ModelProtocol,
    RemoteStoreProtocol,
)
from scraps.scheduler import AutoSync
from scraps.status import StatusReporter
from scraps.storage.notes import LocalNoteStore
from scraps.storage.notion import NotionStore
from scraps.storage.sqlite import SQLiteKeyValueStore
from scraps.storage.sync_engine import SyncEngine
from scraps.transform import AITransform
from scraps.types import Note, SyncResult, SyncStatus
from scraps.utils import get_scraps_home

logger = logging.getLogger(__name__)

DB_FILENAME = "scraps.db"


class Scraps:
    """Main interface for note operations and sync.

    An invalid configuration never blocks local note work: it is logged
    once here, kept in ``config_error``, and every sync pass reports it
    until the configuration is fixed.

    Args:
        config: Effective configuration; loaded from ``home`` when omitted.
        home: Data directory (database, config, logs).
        kv: Key-value persistence; SQLite under ``home`` by default.
        remote: Remote store; built from ``config.notion`` by default.
        model: Text-generation model; built from ``config.ai`` by default.
    """

    def __init__(
        self,
        config: Optional[ScrapsConfig] = None,
        *,
        home: Optional[Path] = None,
        kv: Optional[KeyValueStoreProtocol] = None,
        remote: Optional[RemoteStoreProtocol] = None,
        model: Optional[ModelProtocol] = None,
    ):
        self.home = home or get_scraps_home()
        self.config = config or load_config(self.home)

        validation = validate_config(self.config)
        self.config_error: Optional[str] = None if validation.valid else validation.message

        self.kv = kv or SQLiteKeyValueStore(self.home / DB_FILENAME)
        self.notes = LocalNoteStore(self.kv)
        self.status = StatusReporter()

        self.transform = self._build_transform(model)
        if self.config_error:
            logger.warning(f"Sync disabled until configuration is fixed: {self.config_error}")
        self.remote, sync_disabled = self._build_remote(remote)
        self.engine = SyncEngine(
            self.notes,
            self.remote,
            self.kv,
            transform=self.transform,
            status=self.status,
            config_error=sync_disabled,
        )
        self._auto_sync: Optional[AutoSync] = None

    def _build_remote(self, remote: Optional[RemoteStoreProtocol]):
        if self.config_error:
            return None, self.config_error
        if remote is not None:
            return remote, None
        notion = self.config.notion
        if not notion.sync_enabled:
            return None, "Notion sync is disabled (set notion.sync_enabled or SCRAPS_SYNC_ENABLED)"
        store = NotionStore(
            notion.api_key,
            notion.database_id,
            title_property=notion.title_property,
            last_modified_property=notion.last_modified_property,
            api_base=notion.api_base,
            notion_version=notion.notion_version,
            timeout=notion.timeout,
        )
        return store, None

    def _build_transform(self, model: Optional[ModelProtocol]) -> Optional[AITransform]:
        ai = self.config.ai
        if model is None:
            if not ai.enabled or self.config_error:
                return None
            try:
                model = create_model(
                    ai.provider,
                    api_key=ai.api_key,
                    model=ai.resolved_model,
                    base_url=ai.base_url or None,
                    max_tokens=ai.max_tokens,
                )
            except (ImportError, ValueError) as e:
                self.config_error = f"Cannot set up AI provider '{ai.provider}': {e}"
                return None
        return AITransform(model, temperature=ai.temperature, max_tokens=ai.max_tokens)

    # === Notes ===

    def list(self) -> List[Note]:
        return self.notes.list()

    def get(self, note_id: str) -> Note:
        """Look up a note by id or unique id prefix."""
        notes = self.notes.list()
        exact = [n for n in notes if n.id == note_id]
        if exact:
            return exact[0]
        matches = [n for n in notes if note_id and n.id.startswith(note_id)]
        if len(matches) == 1:
            return matches[0]
        if not matches:
            raise ValueError(f"Note {note_id} not found")
        raise ValueError(f"Note id prefix {note_id} is ambiguous ({len(matches)} matches)")

    def add(self, title: str = "Untitled", body: str = "") -> Note:
        with self.engine.exclusive():
            note = self.notes.create(title, body)
        logger.info(f"Added note {note.id} '{note.title}'")
        return note

    def edit(self, note_id: str, body: str) -> Note:
        with self.engine.exclusive():
            note = self.notes.edit(self.get(note_id).id, body=body)
        logger.debug(f"Edited note {note.id}")
        return note

    def rename(self, note_id: str, title: str) -> Note:
        with self.engine.exclusive():
            note = self.notes.edit(self.get(note_id).id, title=title)
        logger.debug(f"Renamed note {note.id} to '{note.title}'")
        return note

    def delete(self, note_id: str) -> Note:
        """Delete a note; a synced note is also archived remotely on the next pass."""
        with self.engine.exclusive():
            note = self.get(note_id)
            self.notes.delete(note.id)
            if note.remote_id:
                self.engine.queue_archive(note.remote_id)
        logger.info(f"Deleted note {note.id} '{note.title}'")
        return note

    def subscribe(self, callback: Callable[[List[Note]], None]) -> None:
        self.notes.subscribe(callback)

    def unsubscribe(self, callback: Callable[[List[Note]], None]) -> None:
        self.notes.unsubscribe(callback)

    # === Sync ===

    def sync(self) -> SyncResult:
        """Run one pass through the engine's single-pass guard."""
        result = self.engine.sync()
        if result.rejected:
            return result
        if result.status == SyncStatus.ERROR:
            log_sync_event("error", result.error or "unknown error")
        else:
            errors = len(result.reports)
            log_sync("push", result.pushed + result.archived, errors)
            log_sync("pull", result.pulled + result.pulled_new + result.deleted_locally)
        return result

    def test_connection(self) -> bool:
        if self.remote is None:
            return False
        return self.remote.test_connection()

    def start_auto_sync(self, interval_seconds: Optional[float] = None) -> AutoSync:
        if self._auto_sync is None:
            self._auto_sync = AutoSync(
                self.sync, interval_seconds or self.config.sync.interval_seconds
            )
        self._auto_sync.start()
        return self._auto_sync

    def stop_auto_sync(self) -> None:
        if self._auto_sync is not None:
            self._auto_sync.stop()
            self._auto_sync = None

    def close(self) -> None:
        self.stop_auto_sync()
        close = getattr(self.remote, "close", None)
        if callable(close):
            close()
