"""Command-line helpers for inspecting and migrating the chat database.

Subcommands are registered on an ``argparse`` parser by
:func:`register_subcommands` and executed by :func:`dispatch`.
"""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from rich.console import Console
from rich.table import Table

from chatdesk.conversation.records import MessageRecord
from chatdesk.db import operations
from chatdesk.logging import get_logger


def register_subcommands(subparsers):
    """Attach database subcommands to an ``argparse`` parser.

    Examples
    --------
    >>> import argparse
    >>> parser = argparse.ArgumentParser(prog="chatdesk db")
    >>> subparsers = parser.add_subparsers(dest="subcommand", required=True)
    >>> register_subcommands(subparsers)
    >>> parser.parse_args(["init", "--file", "chat.db"])
    Namespace(subcommand='init', file='chat.db')
    """

    init_parser = subparsers.add_parser("init", help="initialize db")
    init_parser.add_argument("--file", required=False)

    _ = subparsers.add_parser("status", help="Check DB status")

    sessions_parser = subparsers.add_parser("sessions", help="List chat sessions")
    sessions_parser.add_argument("--file", required=False)

    messages_parser = subparsers.add_parser("messages", help="Show one session's message log")
    messages_parser.add_argument("session_id")
    messages_parser.add_argument("--file", required=False)

    upgrade_parser = subparsers.add_parser(
        "upgrade", help="Apply Alembic migrations up to a revision"
    )
    upgrade_parser.add_argument(
        "revision",
        nargs="?",
        default="head",
        help="Alembic revision identifier to upgrade to (default: head)",
    )
    upgrade_parser.add_argument(
        "--database",
        dest="database",
        help="Database URL or filesystem path to migrate",
    )

    downgrade_parser = subparsers.add_parser("downgrade", help="Revert Alembic migrations")
    downgrade_parser.add_argument(
        "revision",
        nargs="?",
        default="-1",
        help="Alembic revision identifier to downgrade to (default: -1)",
    )
    downgrade_parser.add_argument(
        "--database",
        dest="database",
        help="Database URL or filesystem path to migrate",
    )


def dispatch(args):
    """Run the database operation associated with ``args.subcommand``."""

    logger = get_logger(__name__)

    if args.subcommand == "status":
        operations.check_status()
    elif args.subcommand == "init":
        operations.initialize(file_path=args.file)
    elif args.subcommand == "sessions":
        _render_sessions(operations.list_sessions(file_path=args.file))
    elif args.subcommand == "messages":
        _render_messages(args.session_id, operations.list_messages(args.session_id, file_path=args.file))
    elif args.subcommand == "upgrade":
        _run_alembic_command("upgrade", args.revision, database=args.database)
    elif args.subcommand == "downgrade":
        _run_alembic_command("downgrade", args.revision, database=args.database)
    else:
        logger.info("no dispatched function provided for %s", args.subcommand)


def _render_sessions(
    sessions: Sequence[Mapping[str, Any]],
    console: Console | None = None,
) -> None:
    """Pretty-print session summaries using ``rich``."""

    if console is None:
        console = Console()

    table = Table(title="Chat sessions")
    table.add_column("Session", style="bold cyan")
    table.add_column("Created", style="green")
    table.add_column("Last activity", style="green")
    table.add_column("Messages", justify="right", style="magenta")

    if not sessions:
        table.add_row("[dim]No sessions found[/dim]", "", "", "")
    for session in sessions:
        table.add_row(
            str(session.get("sessionId", "")),
            str(session.get("createdAt", "")),
            str(session.get("lastActivityAt", "")),
            str(session.get("messageCount", 0)),
        )

    console.print(table)


def _render_messages(
    session_id: str,
    messages: Sequence[MessageRecord],
    console: Console | None = None,
) -> None:
    if console is None:
        console = Console()

    table = Table(title=f"Session {session_id}", show_lines=True)
    table.add_column("#", justify="right", style="bright_black")
    table.add_column("Role", style="bold")
    table.add_column("Timestamp", style="green")
    table.add_column("Text")
    table.add_column("Confidence", justify="right", style="yellow")

    styles = {"user": "cyan", "bot": "magenta", "admin": "red"}
    if not messages:
        table.add_row("", "", "", "[dim]No messages[/dim]", "")
    for message in messages:
        role = message.role.value
        table.add_row(
            str(message.id),
            f"[{styles.get(role, 'white')}]{role}[/]",
            message.timestamp.isoformat(),
            message.text,
            "" if message.confidence is None else f"{message.confidence:.2f}",
        )

    console.print(table)


def _run_alembic_command(action: str, revision: str, database: str | None) -> None:
    """Execute an Alembic migration command."""

    logger = get_logger(__name__)
    config = _build_alembic_config(database)
    logger.info("running alembic %s to %s", action, revision)

    if action == "upgrade":
        command.upgrade(config, revision)
    elif action == "downgrade":
        command.downgrade(config, revision)
    else:  # pragma: no cover - guarded by call sites
        raise ValueError(f"Unsupported Alembic action: {action}")


def _build_alembic_config(database: str | None) -> Config:
    project_root = _find_project_root()
    config_path = project_root / "alembic.ini"

    alembic_config = Config(str(config_path)) if config_path.exists() else Config()
    alembic_config.set_main_option("script_location", str(project_root / "alembic"))

    normalized = _normalize_database_option(database)
    if normalized:
        alembic_config.set_main_option("sqlalchemy.url", normalized)
    elif not alembic_config.get_main_option("sqlalchemy.url"):
        # env.py falls back to get_db_uri() on an empty value.
        alembic_config.set_main_option("sqlalchemy.url", "")

    return alembic_config


def _find_project_root() -> Path:
    """Locate the repository root that contains the Alembic directory."""

    for parent in Path(__file__).resolve().parents:
        if (parent / "alembic").is_dir():
            return parent
    raise FileNotFoundError("Could not locate the Alembic directory.")


def _normalize_database_option(database: str | None) -> str | None:
    """Normalize a database argument into an Alembic-friendly URL."""

    if not database:
        return None

    database = database.strip()
    if not database:
        return None

    if "://" in database:
        return database

    expanded = str(Path(database).expanduser())
    if expanded.startswith("sqlite"):
        return expanded

    return f"sqlite:///{expanded}"
