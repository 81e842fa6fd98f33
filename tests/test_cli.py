"""Tests for the scraps CLI (scraps/cli/__main__.py and cli/commands)."""

import argparse
import json
from io import StringIO
from unittest.mock import patch

import pytest

from scraps.cli.__main__ import _positive_float, build_parser, main
from scraps.cli.commands.helpers import format_ms, validate_input
from scraps.core import Scraps
from scraps.protocols import RemoteStoreError


def _run(capsys, *argv):
    main(list(argv))
    return capsys.readouterr().out


def _only_note():
    s = Scraps()
    try:
        [note] = s.list()
        return note
    finally:
        s.close()


@pytest.fixture
def synced_env(monkeypatch, remote):
    """Enable sync through the environment, backed by the in-memory remote."""
    monkeypatch.setenv("SCRAPS_SYNC_ENABLED", "1")
    monkeypatch.setenv("SCRAPS_NOTION_API_KEY", "secret")
    monkeypatch.setenv("SCRAPS_NOTION_DATABASE_ID", "db1")
    with patch("scraps.core.NotionStore", return_value=remote):
        yield remote


# ============================================================================
# Helpers
# ============================================================================


class TestHelpers:
    def test_validate_input_strips_control_characters(self):
        assert validate_input("a\x00b\tc\n", "title") == "ab\tc\n"

    def test_validate_input_too_long(self):
        with pytest.raises(ValueError, match="too long"):
            validate_input("x" * 11, "title", 10)

    def test_validate_input_non_string(self):
        with pytest.raises(ValueError, match="must be a string"):
            validate_input(5, "title")

    def test_format_ms(self):
        assert format_ms(None) == "never"
        assert format_ms(0) == "never"
        assert format_ms(1704067200000).startswith("202")

    def test_positive_float(self):
        assert _positive_float("2.5") == 2.5
        with pytest.raises(argparse.ArgumentTypeError):
            _positive_float("0")
        with pytest.raises(argparse.ArgumentTypeError):
            _positive_float("soon")

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ============================================================================
# Note commands
# ============================================================================


class TestNoteCommands:
    def test_add_and_list(self, capsys):
        out = _run(capsys, "add", "Groceries", "--body", "- milk")
        assert "Added note" in out
        assert "'Groceries'" in out

        out = _run(capsys, "list")
        assert "○" in out
        assert "Groceries" in out

    def test_list_empty(self, capsys):
        assert "No notes yet" in _run(capsys, "list")

    def test_list_json(self, capsys):
        _run(capsys, "add", "One")
        data = json.loads(_run(capsys, "list", "--json"))
        assert [n["title"] for n in data] == ["One"]

    def test_show(self, capsys):
        _run(capsys, "add", "Deploy", "--body", "make deploy")
        note = _only_note()
        out = _run(capsys, "show", note.id[:8])
        assert out.startswith("# Deploy\n")
        assert "(not synced)" in out
        assert out.rstrip().endswith("make deploy")

    def test_show_json(self, capsys):
        _run(capsys, "add", "Deploy")
        note = _only_note()
        assert json.loads(_run(capsys, "show", note.id, "--json"))["id"] == note.id

    def test_edit_from_body_and_file(self, capsys, tmp_path):
        _run(capsys, "add", "Doc")
        note = _only_note()

        _run(capsys, "edit", note.id, "--body", "inline")
        assert _only_note().body == "inline"

        path = tmp_path / "body.md"
        path.write_text("# From file\n")
        _run(capsys, "edit", note.id, "--file", str(path))
        assert _only_note().body == "# From file\n"

    def test_edit_from_stdin(self, capsys, monkeypatch):
        _run(capsys, "add", "Doc")
        note = _only_note()
        monkeypatch.setattr("sys.stdin", StringIO("piped text"))
        _run(capsys, "edit", note.id, "--file", "-")
        assert _only_note().body == "piped text"

    def test_rename(self, capsys):
        _run(capsys, "add", "Old")
        note = _only_note()
        assert "to 'New'" in _run(capsys, "rename", note.id, "New")
        assert _only_note().title == "New"

    def test_delete(self, capsys):
        _run(capsys, "add", "Temp")
        note = _only_note()
        out = _run(capsys, "delete", note.id)
        assert "Deleted note" in out
        assert "archived in Notion" not in out

    def test_unknown_id_exits_1(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["show", "nope"])
        assert exc_info.value.code == 1
        assert "not found" in capsys.readouterr().out


# ============================================================================
# Sync commands
# ============================================================================


class TestSyncCommands:
    def test_sync_when_disabled_exits_1(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["sync"])
        assert exc_info.value.code == 1
        assert "Sync failed: Notion sync is disabled" in capsys.readouterr().out

    def test_sync_success(self, capsys, synced_env):
        _run(capsys, "add", "Hello", "--body", "world")
        out = _run(capsys, "sync")
        assert "Sync complete: 1 created" in out
        assert len(synced_env.docs) == 1

        out = _run(capsys, "list")
        assert "●" in out

    def test_sync_json(self, capsys, synced_env):
        synced_env.put("Remote", "text", 10)
        data = json.loads(_run(capsys, "sync", "--json"))
        assert data["status"] == "Success"
        assert data["pulled_new"] == 1

    def test_sync_reports_skipped_notes(self, capsys, synced_env):
        synced_env.fail["create"] = RemoteStoreError("create", "validation failed")
        _run(capsys, "add", "Broken")
        out = _run(capsys, "sync")
        assert "1 note(s) skipped" in out
        assert "create 'Broken': create: validation failed" in out

    def test_delete_synced_note_mentions_archive(self, capsys, synced_env):
        _run(capsys, "add", "Shared")
        _run(capsys, "sync")
        note = _only_note()
        assert "archived in Notion on next sync" in _run(capsys, "delete", note.id)

    def test_status(self, capsys):
        _run(capsys, "add", "x")
        out = _run(capsys, "status")
        assert "Scraps: Idle" in out
        assert "Notes: 1 (1 never synced)" in out
        assert "Sync: disabled" in out

    def test_status_json(self, capsys, synced_env):
        data = json.loads(_run(capsys, "status", "--json"))
        assert data["sync_enabled"] is True
        assert data["ai_enabled"] is False
        assert data["notes"] == 0

    def test_test_connection(self, capsys, synced_env):
        assert "Connected to Notion" in _run(capsys, "test-connection")

    def test_test_connection_not_configured(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["test-connection"])
        assert exc_info.value.code == 1

    def test_watch_runs_once_then_stops_on_interrupt(self, capsys, synced_env):
        _run(capsys, "add", "Watched")
        with patch("scraps.cli.commands.sync.time.sleep", side_effect=KeyboardInterrupt):
            out = _run(capsys, "watch", "--interval", "3600")
        assert "Watching (every 3600s)" in out
        assert "Sync complete: 1 created" in out
        assert "Scraps: Success" in out


# ============================================================================
# Config and startup
# ============================================================================


class TestConfigCommand:
    def test_show_redacts_keys(self, capsys, monkeypatch):
        monkeypatch.setenv("SCRAPS_NOTION_API_KEY", "secret")
        data = json.loads(_run(capsys, "config", "show"))
        assert data["notion"]["api_key"] == "***"

    def test_check_valid(self, capsys):
        assert "Configuration is valid" in _run(capsys, "config", "check")

    def test_check_works_with_broken_config(self, capsys, monkeypatch):
        monkeypatch.setenv("SCRAPS_SYNC_ENABLED", "true")
        with pytest.raises(SystemExit) as exc_info:
            main(["config", "check"])
        assert exc_info.value.code == 1
        assert "Notion API key is required" in capsys.readouterr().out

    def test_broken_config_still_allows_local_commands(self, capsys, monkeypatch):
        monkeypatch.setenv("SCRAPS_SYNC_ENABLED", "true")

        main(["add", "Groceries"])

        captured = capsys.readouterr()
        assert "Groceries" in captured.out
        assert "Sync disabled: Notion API key is required" in captured.err
        assert _only_note().title == "Groceries"

    def test_broken_config_fails_sync(self, capsys, monkeypatch):
        monkeypatch.setenv("SCRAPS_SYNC_ENABLED", "true")
        with pytest.raises(SystemExit) as exc_info:
            main(["sync"])
        assert exc_info.value.code == 1
        assert "Sync failed: Notion API key is required" in capsys.readouterr().out

    def test_status_json_reports_config_error(self, capsys, monkeypatch):
        monkeypatch.setenv("SCRAPS_SYNC_ENABLED", "true")
        data = json.loads(_run(capsys, "status", "--json"))
        assert data["config_error"].startswith("Notion API key is required")
        assert data["sync_enabled"] is False
