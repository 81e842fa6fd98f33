"""scraps storage layer.

Local-first: notes, tombstones and the pending archive queue live in
SQLite; Notion is the remote mirror.
"""

from .notes import LocalNoteStore
from .notion import NotionStore
from .sqlite import SQLiteKeyValueStore, StorageError
from .sync_engine import SyncEngine

__all__ = [
    "LocalNoteStore",
    "NotionStore",
    "SQLiteKeyValueStore",
    "StorageError",
    "SyncEngine",
]
