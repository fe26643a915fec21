from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import text

from chatdesk.conversation.messages import MessageLog
from chatdesk.conversation.records import MessageRecord
from chatdesk.conversation.sessions import SessionStore
from chatdesk.logging import get_logger

from .connect import get_db_uri, get_engine, get_session, get_session_scope


logger = get_logger(__name__)


def initialize(file_path: str | Path | None = None) -> str:
    """Create the chat schema (if missing) and return the database URI."""

    db_uri = get_db_uri(file_path)
    get_engine(db_uri)
    logger.info("initialized chat database at %s", db_uri)
    return db_uri


def check_status(file_path: str | Path | None = None) -> str | None:
    """Query the database for its SQLite version and log/return it."""

    with get_session(file_path) as session:
        result = session.execute(text("SELECT sqlite_version();")).fetchone()
        if result:
            version = result[0]
            logger.info("sqlite version: %s", version)
            return version
        logger.warning("sqlite version query returned no result")
        return None


def list_sessions(file_path: str | Path | None = None) -> list[dict[str, Any]]:
    """Return session summaries (most recently active first) with message counts."""

    scope = get_session_scope(file_path)
    message_log = MessageLog(scope)
    return [
        {**record.to_dict(), "messageCount": message_log.count(record.session_id)}
        for record in SessionStore(scope).list_sessions()
    ]


def list_messages(session_id: str, file_path: str | Path | None = None) -> list[MessageRecord]:
    scope = get_session_scope(file_path)
    return MessageLog(scope).get_messages(session_id)
