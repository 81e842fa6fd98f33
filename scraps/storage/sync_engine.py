"""Sync engine for scraps.

Reconciles the local note store with the remote store, one pass at a
time. A pass runs, in order:

1. Pull the full remote set. Any failure aborts the pass (status Error).
2. Remote-deletion detection: local notes bound to a remote id that is no
   longer listed are removed locally and their id is tombstoned.
3. Pending archives queued by local deletes are sent to the remote.
4. Merge decision per note, last-modified-wins; tombstoned ids are frozen.
5. Push phase (AI transform, then create/update), sequential per note.
6. Pull phase (overwrite or create local notes), never transformed.

Note-level failures in steps 3, 5 and 6 are reported on the result and
never downgrade the terminal status.

The tombstone set and the pending archive queue are owned here, loaded
once at construction and saved after each mutation.
"""

import contextlib
import logging
import threading
from typing import Dict, FrozenSet, List, Optional

from scraps.protocols import (
    KeyValueStoreProtocol,
    RemoteStoreProtocol,
    ScrapsError,
    SyncInProgressError,
)
from scraps.status import StatusReporter
from scraps.storage.notes import LocalNoteStore
from scraps.transform import AITransform
from scraps.types import (
    MergePlan,
    Note,
    NoteReport,
    RemoteDocument,
    SyncResult,
    SyncStatus,
    new_note_id,
    now_ms,
)

logger = logging.getLogger(__name__)

TOMBSTONES_KEY = "tombstones"
PENDING_ARCHIVES_KEY = "pending_archives"


class SyncEngine:
    """Single-pass synchronization between a LocalNoteStore and a remote store.

    Args:
        notes: The local note store.
        remote: The remote store, or None when it is not configured.
        kv: Persistence for the tombstone set and pending archive queue.
        transform: Optional AI transform applied before every push.
        status: Reporter notified of status changes.
        config_error: Message reported when ``remote`` is None.
    """

    def __init__(
        self,
        notes: LocalNoteStore,
        remote: Optional[RemoteStoreProtocol],
        kv: KeyValueStoreProtocol,
        *,
        transform: Optional[AITransform] = None,
        status: Optional[StatusReporter] = None,
        config_error: Optional[str] = None,
    ):
        self.notes = notes
        self.remote = remote
        self.transform = transform
        self.status = status or StatusReporter()
        self._kv = kv
        self._config_error = config_error
        self._lock = threading.Lock()
        self._tombstones = set(kv.get(TOMBSTONES_KEY))
        self._pending_archives: List[str] = list(kv.get(PENDING_ARCHIVES_KEY))

    # === Shared state ===

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def tombstones(self) -> FrozenSet[str]:
        return frozenset(self._tombstones)

    @property
    def pending_archives(self) -> List[str]:
        return list(self._pending_archives)

    def is_tombstoned(self, remote_id: Optional[str]) -> bool:
        return bool(remote_id) and remote_id in self._tombstones

    @contextlib.contextmanager
    def exclusive(self):
        """Hold the pass lock so local mutations never interleave with a pass."""
        with self._lock:
            yield

    def add_tombstone(self, remote_id: str) -> None:
        if remote_id not in self._tombstones:
            self._tombstones.add(remote_id)
            self._kv.set(TOMBSTONES_KEY, sorted(self._tombstones))

    def queue_archive(self, remote_id: str) -> None:
        """Tombstone ``remote_id`` and archive it remotely on the next pass."""
        self.add_tombstone(remote_id)
        if remote_id not in self._pending_archives:
            self._pending_archives.append(remote_id)
            self._save_pending()

    def _save_pending(self) -> None:
        self._kv.set(PENDING_ARCHIVES_KEY, list(self._pending_archives))

    # === Merge ===

    def detect_remote_deletions(
        self, local: List[Note], remote_ids: FrozenSet[str]
    ) -> List[Note]:
        """Remove local notes whose remote document vanished and tombstone their ids."""
        vanished = [n for n in local if n.remote_id and n.remote_id not in remote_ids]
        if not vanished:
            return []
        removed = self.notes.delete_many([n.id for n in vanished])
        for note in removed:
            logger.info(f"Remote page {note.remote_id} is gone, removing note '{note.title}'")
            self.add_tombstone(note.remote_id)
        return removed

    def plan(self, local: List[Note], remote: List[RemoteDocument]) -> MergePlan:
        """Last-modified-wins decision for every note and unclaimed remote document."""
        remote_by_id: Dict[str, RemoteDocument] = {d.remote_id: d for d in remote}
        claimed = set()
        plan = MergePlan()

        for note in local:
            if note.remote_id:
                claimed.add(note.remote_id)
            if self.is_tombstoned(note.remote_id):
                plan.tombstoned.append(note)
                continue
            doc = remote_by_id.get(note.remote_id) if note.remote_id else None
            if doc is None:
                plan.to_create.append(note)
            elif note.last_modified > doc.last_edited_time:
                plan.to_update.append((note, doc))
            elif note.last_modified < doc.last_edited_time:
                plan.to_pull.append((note, doc))
            else:
                plan.unchanged.append(note)

        for doc in remote:
            if doc.remote_id not in claimed and not self.is_tombstoned(doc.remote_id):
                plan.to_pull_new.append(doc)

        return plan

    # === Pass ===

    def sync(self) -> SyncResult:
        """Run a pass; a pass already in flight yields a rejected result instead."""
        try:
            return self.run_pass()
        except SyncInProgressError:
            logger.info("Sync already in progress, request rejected")
            return SyncResult(
                status=SyncStatus.SYNCING,
                rejected=True,
                error="sync already in progress",
                finished_at=now_ms(),
            )

    def run_pass(self) -> SyncResult:
        """Run one full pass.

        Raises:
            SyncInProgressError: another pass holds the engine.
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError("A sync pass is already running")
        try:
            return self._run_pass()
        finally:
            self._lock.release()

    def _run_pass(self) -> SyncResult:
        result = SyncResult(status=SyncStatus.SYNCING)

        if self.remote is None:
            message = self._config_error or "Remote store is not configured"
            logger.warning(f"Sync skipped: {message}")
            return self._finish(result, SyncStatus.ERROR, message)

        self.status.set_syncing()

        # Step 1: pull. Nothing after this is safe without a full remote view.
        try:
            remote_docs = self.remote.list_all()
        except Exception as e:
            logger.error(f"Sync aborted, could not list remote documents: {e}")
            return self._finish(result, SyncStatus.ERROR, f"pull failed: {e}")

        remote_ids = frozenset(d.remote_id for d in remote_docs)

        # Step 2: remote deletions, before any merge decision
        local = self.notes.list()
        removed = self.detect_remote_deletions(local, remote_ids)
        result.deleted_locally = len(removed)
        if removed:
            removed_ids = {n.id for n in removed}
            local = [n for n in local if n.id not in removed_ids]

        # Step 3: archives queued by local deletes
        self._process_pending_archives(remote_ids, result)

        # Step 4: merge decision
        plan = self.plan(local, remote_docs)
        logger.debug(
            f"Plan: create={len(plan.to_create)} update={len(plan.to_update)} "
            f"pull={len(plan.to_pull)} pull_new={len(plan.to_pull_new)} "
            f"unchanged={len(plan.unchanged)} tombstoned={len(plan.tombstoned)}"
        )

        # Step 5: push
        for note in plan.to_create:
            self._push(note, None, result)
        for note, doc in plan.to_update:
            self._push(note, doc, result)

        # Step 6: pull
        for note, doc in plan.to_pull:
            self._pull_existing(note, doc, result)
        for doc in plan.to_pull_new:
            self._pull_new(doc, result)

        return self._finish(result, SyncStatus.SUCCESS)

    def _finish(
        self, result: SyncResult, status: SyncStatus, error: Optional[str] = None
    ) -> SyncResult:
        result.status = status
        result.error = error
        result.finished_at = now_ms()
        self.status.finish(result)
        if status == SyncStatus.SUCCESS:
            logger.info(
                f"Sync complete: created={result.created}, updated={result.updated}, "
                f"pulled={result.pulled + result.pulled_new}, "
                f"deleted_locally={result.deleted_locally}, archived={result.archived}, "
                f"skipped={result.skipped}"
            )
        return result

    def _report(self, result: SyncResult, report: NoteReport) -> None:
        logger.warning(
            f"Sync {report.operation} failed for note {report.note_id} "
            f"'{report.title}' (remote {report.remote_id}): {report.message}"
        )
        result.reports.append(report)
        result.skipped += 1

    def _process_pending_archives(self, remote_ids: FrozenSet[str], result: SyncResult) -> None:
        if not self._pending_archives:
            return
        remaining = []
        for remote_id in self._pending_archives:
            if remote_id not in remote_ids:
                # Already gone remotely
                continue
            try:
                self.remote.archive(remote_id)
                result.archived += 1
            except ScrapsError as e:
                remaining.append(remote_id)
                self._report(result, NoteReport("archive", str(e), remote_id=remote_id))
        self._pending_archives = remaining
        self._save_pending()

    def _push(self, note: Note, doc: Optional[RemoteDocument], result: SyncResult) -> None:
        """Transform, write remotely, then record what the remote now holds."""
        operation = "create" if doc is None else "update"
        body = note.body

        if self.transform is not None:
            outcome = self.transform.transform(note.synced_body or "", note.body)
            if not outcome.ok:
                self._report(
                    result,
                    NoteReport(
                        "transform",
                        outcome.error or "transform failed",
                        note_id=note.id,
                        remote_id=note.remote_id,
                        title=note.title,
                    ),
                )
                return
            body = outcome.text

        try:
            if doc is None:
                remote_id = self.remote.create(note.title, body, last_modified=note.last_modified)
            else:
                remote_id = note.remote_id
                self.remote.update(remote_id, note.title, body, last_modified=note.last_modified)
        except ScrapsError as e:
            self._report(
                result,
                NoteReport(
                    operation, str(e), note_id=note.id, remote_id=note.remote_id, title=note.title
                ),
            )
            return

        note.remote_id = remote_id
        note.body = body
        note.synced_body = body
        try:
            self.notes.save(note)
        except (ScrapsError, ValueError) as e:
            self._report(
                result,
                NoteReport("save", str(e), note_id=note.id, remote_id=remote_id, title=note.title),
            )
            return

        if doc is None:
            result.created += 1
        else:
            result.updated += 1

    def _pull_existing(self, note: Note, doc: RemoteDocument, result: SyncResult) -> None:
        note.title = doc.title
        note.body = doc.body
        note.last_modified = doc.last_edited_time
        note.synced_body = doc.body
        try:
            self.notes.save(note)
        except (ScrapsError, ValueError) as e:
            self._report(
                result,
                NoteReport(
                    "pull", str(e), note_id=note.id, remote_id=doc.remote_id, title=doc.title
                ),
            )
            return
        result.pulled += 1

    def _pull_new(self, doc: RemoteDocument, result: SyncResult) -> None:
        note = Note(
            id=new_note_id(),
            remote_id=doc.remote_id,
            title=doc.title,
            body=doc.body,
            last_modified=doc.last_edited_time,
            synced_body=doc.body,
        )
        try:
            self.notes.save(note)
        except (ScrapsError, ValueError) as e:
            self._report(
                result, NoteReport("pull", str(e), remote_id=doc.remote_id, title=doc.title)
            )
            return
        result.pulled_new += 1
