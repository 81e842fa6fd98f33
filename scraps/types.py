"""
Shared types for scraps.

The dataclasses here are the vocabulary passed between the local store,
the remote adapter and the sync engine. A ``Note`` is owned by the local
store; a ``RemoteDocument`` is rebuilt on every pull and never persisted
as such.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# === Shared Utility Functions ===


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds."""
    return int(time.time() * 1000)


def iso_to_ms(value: Optional[str]) -> Optional[int]:
    """Parse an ISO-8601 timestamp into integer milliseconds.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def new_note_id() -> str:
    """Generate a fresh local note id. Never reused."""
    return uuid.uuid4().hex


# === Enums ===


class SyncStatus(str, Enum):
    """Observable state of the sync engine."""

    IDLE = "Idle"
    SYNCING = "Syncing"
    SUCCESS = "Success"
    ERROR = "Error"


class NoteAction(str, Enum):
    """Merge decision for one note or remote document."""

    PUSH_CREATE = "push_create"
    PUSH_UPDATE = "push_update"
    PULL = "pull"
    PULL_NEW = "pull_new"
    NONE = "none"  # Equal timestamps
    TOMBSTONED = "tombstoned"  # Frozen, never pushed or pulled


# === Records ===


@dataclass
class Note:
    """A local note."""

    id: str
    title: str = "Untitled"
    body: str = ""
    last_modified: int = field(default_factory=now_ms)
    remote_id: Optional[str] = None  # Set only after a successful remote create
    synced_body: Optional[str] = None  # Body as of the last push or pull

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "remote_id": self.remote_id,
            "title": self.title,
            "body": self.body,
            "last_modified": self.last_modified,
            "synced_body": self.synced_body,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Note":
        return cls(
            id=str(record["id"]),
            remote_id=record.get("remote_id") or None,
            title=record.get("title") or "Untitled",
            body=record.get("body") or "",
            last_modified=int(record.get("last_modified") or 0),
            synced_body=record.get("synced_body"),
        )


@dataclass
class RemoteDocument:
    """A document as seen on the remote store during one pull."""

    remote_id: str
    title: str
    body: str
    last_edited_time: int


# === Sync Types ===


@dataclass
class MergePlan:
    """Per-note decisions computed from one local and one remote snapshot."""

    to_create: List[Note] = field(default_factory=list)
    to_update: List[Tuple[Note, RemoteDocument]] = field(default_factory=list)
    to_pull: List[Tuple[Note, RemoteDocument]] = field(default_factory=list)
    to_pull_new: List[RemoteDocument] = field(default_factory=list)
    unchanged: List[Note] = field(default_factory=list)
    tombstoned: List[Note] = field(default_factory=list)

    def action_for(self, note_id: str) -> NoteAction:
        """Look up the decision made for a local note id."""
        if any(n.id == note_id for n in self.to_create):
            return NoteAction.PUSH_CREATE
        if any(n.id == note_id for n, _ in self.to_update):
            return NoteAction.PUSH_UPDATE
        if any(n.id == note_id for n, _ in self.to_pull):
            return NoteAction.PULL
        if any(n.id == note_id for n in self.tombstoned):
            return NoteAction.TOMBSTONED
        return NoteAction.NONE


@dataclass
class NoteReport:
    """A note-level failure or skip surfaced to the user."""

    operation: str  # "create", "update", "pull", "archive", "transform"
    message: str
    note_id: Optional[str] = None
    remote_id: Optional[str] = None
    title: Optional[str] = None

    def __str__(self) -> str:
        target = self.title or self.note_id or self.remote_id or "?"
        return f"{self.operation} '{target}': {self.message}"


@dataclass
class SyncResult:
    """Outcome of one synchronization pass."""

    status: SyncStatus = SyncStatus.IDLE
    created: int = 0
    updated: int = 0
    pulled: int = 0
    pulled_new: int = 0
    deleted_locally: int = 0
    archived: int = 0
    skipped: int = 0
    reports: List[NoteReport] = field(default_factory=list)
    error: Optional[str] = None  # Abort-level failure message
    rejected: bool = False  # Another pass was already running
    started_at: int = field(default_factory=now_ms)
    finished_at: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    @property
    def pushed(self) -> int:
        return self.created + self.updated

    @property
    def remote_writes(self) -> int:
        """Number of remote write calls that succeeded."""
        return self.created + self.updated + self.archived

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "created": self.created,
            "updated": self.updated,
            "pulled": self.pulled,
            "pulled_new": self.pulled_new,
            "deleted_locally": self.deleted_locally,
            "archived": self.archived,
            "skipped": self.skipped,
            "reports": [str(r) for r in self.reports],
            "error": self.error,
            "rejected": self.rejected,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
