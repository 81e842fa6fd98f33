"""
Scraps CLI - quick notes, mirrored to Notion.

Usage:
    scraps add TITLE [--body TEXT]
    scraps list [--json]
    scraps show ID [--json]
    scraps edit ID (--body TEXT | --file PATH)
    scraps rename ID TITLE
    scraps delete ID
    scraps sync [--json]
    scraps status [--json]
    scraps watch [--interval SECONDS]
    scraps test-connection
    scraps config (show | check)
"""

import argparse
import logging
import sys

from scraps import Scraps
from scraps.cli.commands import (
    cmd_add,
    cmd_config,
    cmd_delete,
    cmd_edit,
    cmd_list,
    cmd_rename,
    cmd_show,
    cmd_status,
    cmd_sync,
    cmd_test_connection,
    cmd_watch,
)
from scraps.config import load_config
from scraps.logging_config import setup_scraps_logging
from scraps.protocols import ScrapsError

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected a number, got '{value}'")
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"Interval must be positive, got {parsed:g}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scraps",
        description="Quick local notes, mirrored to Notion",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # add
    p_add = subparsers.add_parser("add", help="Create a note")
    p_add.add_argument("title", help="Note title")
    p_add.add_argument("--body", "-b", help="Initial body", default="")

    # list
    p_list = subparsers.add_parser("list", help="List notes")
    p_list.add_argument("--json", "-j", action="store_true")

    # show
    p_show = subparsers.add_parser("show", help="Show one note")
    p_show.add_argument("id", help="Note id (or unique prefix)")
    p_show.add_argument("--json", "-j", action="store_true")

    # edit
    p_edit = subparsers.add_parser("edit", help="Replace a note's body")
    p_edit.add_argument("id", help="Note id (or unique prefix)")
    source = p_edit.add_mutually_exclusive_group(required=True)
    source.add_argument("--body", "-b", help="New body text")
    source.add_argument("--file", "-f", help="Read the new body from a file ('-' for stdin)")

    # rename
    p_rename = subparsers.add_parser("rename", help="Rename a note")
    p_rename.add_argument("id", help="Note id (or unique prefix)")
    p_rename.add_argument("title", help="New title")

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete a note")
    p_delete.add_argument("id", help="Note id (or unique prefix)")

    # sync
    p_sync = subparsers.add_parser("sync", help="Run one sync pass")
    p_sync.add_argument("--json", "-j", action="store_true")

    # status
    p_status = subparsers.add_parser("status", help="Show sync status")
    p_status.add_argument("--json", "-j", action="store_true")

    # watch
    p_watch = subparsers.add_parser("watch", help="Sync periodically until interrupted")
    p_watch.add_argument(
        "--interval", "-i", type=_positive_float, default=None, help="Seconds between passes"
    )

    # test-connection
    subparsers.add_parser("test-connection", help="Check Notion credentials and database")

    # config
    p_config = subparsers.add_parser("config", help="Inspect configuration")
    p_config.add_argument("config_action", choices=["show", "check"])

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config()
    setup_scraps_logging(config.log_level)

    if args.command == "config":
        cmd_config(args, config)
        return

    # Initialize Scraps with error handling
    try:
        s = Scraps(config)
    except (ScrapsError, ValueError) as e:
        logger.error(f"Failed to initialize scraps: {e}")
        print(f"✗ {e}")
        sys.exit(1)

    if s.config_error:
        print(f"⚠ Sync disabled: {s.config_error}", file=sys.stderr)

    # Dispatch with error handling
    try:
        if args.command == "add":
            cmd_add(args, s)
        elif args.command == "list":
            cmd_list(args, s)
        elif args.command == "show":
            cmd_show(args, s)
        elif args.command == "edit":
            cmd_edit(args, s)
        elif args.command == "rename":
            cmd_rename(args, s)
        elif args.command == "delete":
            cmd_delete(args, s)
        elif args.command == "sync":
            cmd_sync(args, s)
        elif args.command == "status":
            cmd_status(args, s)
        elif args.command == "watch":
            cmd_watch(args, s)
        elif args.command == "test-connection":
            cmd_test_connection(args, s)
    except (ScrapsError, ValueError, OSError) as e:
        logger.error(f"Command failed: {e}")
        print(f"✗ {e}")
        sys.exit(1)
    finally:
        s.close()


if __name__ == "__main__":
    main()
