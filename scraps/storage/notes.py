"""Local note store: CRUD over the note collection with change notification."""

import logging
from typing import Callable, List, Optional

from scraps.protocols import KeyValueStoreProtocol
from scraps.types import Note, new_note_id, now_ms

logger = logging.getLogger(__name__)

NOTES_KEY = "items"

NotesObserver = Callable[[List[Note]], None]


class LocalNoteStore:
    """Owns the notes. Every mutation is persisted before observers run."""

    def __init__(self, kv: KeyValueStoreProtocol, key: str = NOTES_KEY):
        self._kv = kv
        self._key = key
        self._observers: List[NotesObserver] = []

    # === Observers ===

    def subscribe(self, callback: NotesObserver) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def unsubscribe(self, callback: NotesObserver) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self, notes: List[Note]) -> None:
        for callback in list(self._observers):
            try:
                callback(list(notes))
            except Exception as e:
                logger.warning(f"Note observer {callback!r} failed: {e}", exc_info=True)

    # === Persistence ===

    def _load(self) -> List[Note]:
        return [Note.from_record(r) for r in self._kv.get(self._key)]

    def _save(self, notes: List[Note]) -> None:
        self._kv.set(self._key, [n.to_record() for n in notes])
        self._notify(notes)

    # === Reads ===

    def list(self) -> List[Note]:
        return self._load()

    def get(self, note_id: str) -> Optional[Note]:
        return next((n for n in self._load() if n.id == note_id), None)

    def find_by_remote_id(self, remote_id: str) -> Optional[Note]:
        return next((n for n in self._load() if n.remote_id == remote_id), None)

    # === Writes ===

    def create(self, title: str = "Untitled", body: str = "") -> Note:
        """Create a note from a local user action."""
        note = Note(id=new_note_id(), title=title.strip() or "Untitled", body=body)
        notes = self._load()
        notes.append(note)
        self._save(notes)
        logger.debug(f"Created note {note.id}")
        return note

    def edit(
        self, note_id: str, *, title: Optional[str] = None, body: Optional[str] = None
    ) -> Note:
        """Apply a local edit and advance ``last_modified``."""
        notes = self._load()
        note = self._find(notes, note_id)
        if title is not None:
            note.title = title.strip() or "Untitled"
        if body is not None:
            note.body = body
        # Never move backwards, even if the wall clock does
        note.last_modified = max(now_ms(), note.last_modified)
        self._save(notes)
        return note

    def save(self, note: Note) -> Note:
        """Insert or replace ``note`` as given, without touching its timestamp."""
        notes = self._load()
        if note.remote_id:
            for other in notes:
                if other.remote_id == note.remote_id and other.id != note.id:
                    raise ValueError(
                        f"Remote id {note.remote_id} is already bound to note {other.id}"
                    )
        for i, existing in enumerate(notes):
            if existing.id == note.id:
                notes[i] = note
                break
        else:
            notes.append(note)
        self._save(notes)
        return note

    def delete(self, note_id: str) -> Optional[Note]:
        """Remove a note. Returns the removed note, or None if it did not exist."""
        notes = self._load()
        for i, note in enumerate(notes):
            if note.id == note_id:
                del notes[i]
                self._save(notes)
                return note
        return None

    def delete_many(self, note_ids: List[str]) -> List[Note]:
        """Remove several notes with one write."""
        wanted = set(note_ids)
        notes = self._load()
        removed = [n for n in notes if n.id in wanted]
        if removed:
            self._save([n for n in notes if n.id not in wanted])
        return removed

    @staticmethod
    def _find(notes: List[Note], note_id: str) -> Note:
        for note in notes:
            if note.id == note_id:
                return note
        raise ValueError(f"Note {note_id} not found")
