"""Note commands for the scraps CLI - add, list, show, edit, rename, delete."""

import logging
import sys
from typing import TYPE_CHECKING

from scraps.cli.commands.helpers import format_ms, print_json, validate_input

if TYPE_CHECKING:
    from scraps import Scraps

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_BODY_LENGTH = 100_000


def _read_body(args) -> str:
    if args.file == "-":
        return sys.stdin.read()
    if args.file:
        with open(args.file, encoding="utf-8") as f:
            return f.read()
    return args.body


def cmd_add(args, s: "Scraps"):
    """Create a note."""
    title = validate_input(args.title, "title", MAX_TITLE_LENGTH)
    body = validate_input(args.body or "", "body", MAX_BODY_LENGTH)
    note = s.add(title, body)
    print(f"✓ Added note {note.id[:8]} '{note.title}'")


def cmd_list(args, s: "Scraps"):
    """List notes, newest first."""
    notes = sorted(s.list(), key=lambda n: n.last_modified, reverse=True)
    if args.json:
        print_json([n.to_record() for n in notes])
        return
    if not notes:
        print("No notes yet. Add one with: scraps add TITLE")
        return
    for note in notes:
        synced = "●" if note.remote_id else "○"
        print(f"{synced} {note.id[:8]}  {format_ms(note.last_modified)}  {note.title}")


def cmd_show(args, s: "Scraps"):
    note = s.get(args.id)
    if args.json:
        print_json(note.to_record())
        return
    print(f"# {note.title}")
    print(f"id: {note.id}")
    print(f"remote: {note.remote_id or '(not synced)'}")
    print(f"modified: {format_ms(note.last_modified)}")
    print()
    print(note.body)


def cmd_edit(args, s: "Scraps"):
    """Replace a note's body from --body or --file."""
    body = validate_input(_read_body(args), "body", MAX_BODY_LENGTH)
    note = s.edit(args.id, body)
    print(f"✓ Updated note {note.id[:8]}")


def cmd_rename(args, s: "Scraps"):
    title = validate_input(args.title, "title", MAX_TITLE_LENGTH)
    note = s.rename(args.id, title)
    print(f"✓ Renamed note {note.id[:8]} to '{note.title}'")


def cmd_delete(args, s: "Scraps"):
    note = s.delete(args.id)
    suffix = " (will be archived in Notion on next sync)" if note.remote_id else ""
    print(f"✓ Deleted note {note.id[:8]} '{note.title}'{suffix}")
