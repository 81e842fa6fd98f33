"""CLI command modules for scraps.

Each module holds related command handlers dispatched from __main__.py.
"""

from scraps.cli.commands.config import cmd_config
from scraps.cli.commands.notes import (
    cmd_add,
    cmd_delete,
    cmd_edit,
    cmd_list,
    cmd_rename,
    cmd_show,
)
from scraps.cli.commands.sync import cmd_status, cmd_sync, cmd_test_connection, cmd_watch

__all__ = [
    "cmd_add",
    "cmd_config",
    "cmd_delete",
    "cmd_edit",
    "cmd_list",
    "cmd_rename",
    "cmd_show",
    "cmd_status",
    "cmd_sync",
    "cmd_test_connection",
    "cmd_watch",
]
