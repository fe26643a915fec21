from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatdesk.db.connect import SessionScope
from chatdesk.db.models import ChatSession, utcnow
from chatdesk.logging import get_logger

from .errors import SessionNotFoundError, StorageError
from .records import SessionRecord, as_utc


logger = get_logger(__name__)


def _to_record(row: ChatSession) -> SessionRecord:
    return SessionRecord(
        session_id=row.session_id,
        created_at=as_utc(row.created_at),
        last_activity_at=as_utc(row.last_activity_at),
    )


def _find(db: Session, session_id: str) -> ChatSession | None:
    return db.query(ChatSession).filter(ChatSession.session_id == session_id).first()


class SessionStore:
    """Durable session metadata keyed by the public ``session_id``."""

    def __init__(self, scope: SessionScope):
        self._scope = scope

    def create_session(self) -> SessionRecord:
        now = utcnow()
        row = ChatSession(session_id=str(uuid.uuid4()), created_at=now, last_activity_at=now)
        try:
            with self._scope() as db:
                db.add(row)
                db.flush()
                record = _to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not create session: {exc}") from exc
        logger.info("created session %s", record.session_id)
        return record

    def get_session(self, session_id: str) -> SessionRecord | None:
        try:
            with self._scope() as db:
                row = _find(db, session_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not read session {session_id}: {exc}") from exc

    def require_session(self, session_id: str) -> SessionRecord:
        record = self.get_session(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    def touch(self, session_id: str, at: datetime) -> None:
        """Advance ``last_activity_at`` to ``at``; never moves it backward."""

        at = as_utc(at)
        try:
            with self._scope() as db:
                updated = (
                    db.query(ChatSession)
                    .filter(ChatSession.session_id == session_id)
                    .filter(ChatSession.last_activity_at < at)
                    .update({ChatSession.last_activity_at: at}, synchronize_session=False)
                )
                if not updated and _find(db, session_id) is None:
                    raise SessionNotFoundError(session_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not update session {session_id}: {exc}") from exc

    def list_sessions(self) -> list[SessionRecord]:
        try:
            with self._scope() as db:
                rows = (
                    db.query(ChatSession)
                    .order_by(
                        ChatSession.last_activity_at.desc(),
                        ChatSession.created_at.desc(),
                        ChatSession.id.desc(),
                    )
                    .all()
                )
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not list sessions: {exc}") from exc
