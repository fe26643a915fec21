import argparse
import types
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from chatdesk.cli import db
from chatdesk.conversation.records import MessageRecord, Role


def _parser():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="subcommand", required=True)
    db.register_subcommands(subparsers)
    return parser


def test_register_subcommands_parses_messages_command():
    args = _parser().parse_args(["messages", "abc-123", "--file", "chat.db"])
    assert args.subcommand == "messages"
    assert args.session_id == "abc-123"
    assert args.file == "chat.db"


@pytest.mark.parametrize("action, default", [("upgrade", "head"), ("downgrade", "-1")])
def test_register_subcommands_migration_defaults(action, default):
    args = _parser().parse_args([action])
    assert args.revision == default
    assert args.database is None


def test_dispatch_calls_correct_operations(monkeypatch):
    init_mock = MagicMock()
    status_mock = MagicMock()
    sessions_mock = MagicMock(return_value=[])
    messages_mock = MagicMock(return_value=[])
    render_sessions = MagicMock()
    render_messages = MagicMock()

    monkeypatch.setattr("chatdesk.cli.db.operations.initialize", init_mock)
    monkeypatch.setattr("chatdesk.cli.db.operations.check_status", status_mock)
    monkeypatch.setattr("chatdesk.cli.db.operations.list_sessions", sessions_mock)
    monkeypatch.setattr("chatdesk.cli.db.operations.list_messages", messages_mock)
    monkeypatch.setattr(db, "_render_sessions", render_sessions)
    monkeypatch.setattr(db, "_render_messages", render_messages)

    db.dispatch(types.SimpleNamespace(subcommand="status"))
    status_mock.assert_called_once()

    db.dispatch(types.SimpleNamespace(subcommand="init", file="db.sqlite"))
    init_mock.assert_called_once_with(file_path="db.sqlite")

    db.dispatch(types.SimpleNamespace(subcommand="sessions", file=None))
    sessions_mock.assert_called_once_with(file_path=None)
    render_sessions.assert_called_once_with([])

    db.dispatch(types.SimpleNamespace(subcommand="messages", session_id="abc", file=None))
    messages_mock.assert_called_once_with("abc", file_path=None)
    render_messages.assert_called_once_with("abc", [])


@pytest.mark.parametrize("action, revision", [("upgrade", "head"), ("downgrade", "base")])
def test_dispatch_migrations(monkeypatch, action, revision):
    run_mock = MagicMock()
    monkeypatch.setattr(db, "_run_alembic_command", run_mock)

    db.dispatch(types.SimpleNamespace(subcommand=action, revision=revision, database="chat.db"))
    run_mock.assert_called_once_with(action, revision, database="chat.db")


def test_build_alembic_config_points_at_repo_alembic_dir(tmp_path):
    config = db._build_alembic_config(str(tmp_path / "chat.db"))
    assert config.get_main_option("script_location").endswith("alembic")
    assert config.get_main_option("sqlalchemy.url") == f"sqlite:///{tmp_path / 'chat.db'}"


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("   ", None),
        ("sqlite:///x.db", "sqlite:///x.db"),
        ("/tmp/chat.db", "sqlite:////tmp/chat.db"),
    ],
)
def test_normalize_database_option(value, expected):
    assert db._normalize_database_option(value) == expected


def test_render_messages_shows_roles_and_confidence():
    console = Console(record=True, width=160)
    ts = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    db._render_messages(
        "abc",
        [
            MessageRecord(id=1, session_id="abc", role=Role.user, text="hello", timestamp=ts),
            MessageRecord(id=2, session_id="abc", role=Role.bot, text="hi!", timestamp=ts, confidence=0.9),
        ],
        console=console,
    )
    output = console.export_text()
    assert "Session abc" in output
    assert "hello" in output
    assert "0.90" in output


def test_render_sessions_handles_empty_list():
    console = Console(record=True, width=120)
    db._render_sessions([], console=console)
    assert "No sessions found" in console.export_text()
