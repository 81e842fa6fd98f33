"""Sync commands for the scraps CLI - sync, status, watch, test-connection."""

import logging
import sys
import time
from typing import TYPE_CHECKING

from scraps.cli.commands.helpers import format_ms, print_json
from scraps.types import SyncResult, SyncStatus

if TYPE_CHECKING:
    from scraps import Scraps
    from scraps.status import StatusReporter

logger = logging.getLogger(__name__)


def _print_result(result: SyncResult) -> None:
    if result.rejected:
        print("⏳ A sync is already running, try again shortly")
        return
    if result.status == SyncStatus.ERROR:
        print(f"✗ Sync failed: {result.error}")
        return
    print(
        f"✓ Sync complete: {result.created} created, {result.updated} updated, "
        f"{result.pulled + result.pulled_new} pulled, {result.deleted_locally} removed locally, "
        f"{result.archived} archived"
    )
    if result.reports:
        print(f"⚠ {len(result.reports)} note(s) skipped:")
        for report in result.reports:
            print(f"  - {report}")


def cmd_sync(args, s: "Scraps"):
    """Run one sync pass now."""
    result = s.sync()
    if args.json:
        print_json(result.to_dict())
    else:
        _print_result(result)
    if result.status == SyncStatus.ERROR:
        sys.exit(1)


def cmd_status(args, s: "Scraps"):
    notes = s.list()
    unsynced = sum(1 for n in notes if not n.remote_id)
    data = {
        **s.status.to_dict(),
        "notes": len(notes),
        "unsynced": unsynced,
        "tombstones": len(s.engine.tombstones),
        "pending_archives": len(s.engine.pending_archives),
        "sync_enabled": s.remote is not None,
        "ai_enabled": s.transform is not None,
        "config_error": s.config_error,
    }
    if args.json:
        print_json(data)
        return
    print(s.status.describe())
    print(f"Notes: {len(notes)} ({unsynced} never synced)")
    print(f"Sync: {'enabled' if s.remote is not None else 'disabled'}")
    print(f"AI transform: {'enabled' if s.transform is not None else 'disabled'}")
    print(f"Pending archives: {data['pending_archives']}, tombstones: {data['tombstones']}")
    print(f"Last success: {format_ms(s.status.last_success_at)}")


def cmd_watch(args, s: "Scraps"):
    """Sync now, then every interval, until interrupted."""

    def on_status(reporter: "StatusReporter") -> None:
        if reporter.status in (SyncStatus.SUCCESS, SyncStatus.ERROR):
            print(f"[{time.strftime('%H:%M:%S')}] {reporter.describe()}")

    s.status.subscribe(on_status)
    auto = s.start_auto_sync(args.interval)
    print(f"Watching (every {auto.interval_seconds:g}s). Ctrl+C to stop.")
    _print_result(auto.trigger())
    try:
        while auto.running:
            time.sleep(1)
    except KeyboardInterrupt:
        print()
    finally:
        s.stop_auto_sync()
        s.status.unsubscribe(on_status)


def cmd_test_connection(args, s: "Scraps"):
    if s.remote is None:
        print("✗ Notion sync is not configured")
        sys.exit(1)
    if s.test_connection():
        print("✓ Connected to Notion")
    else:
        print("✗ Could not reach the Notion database (check the API key and database id)")
        sys.exit(1)
