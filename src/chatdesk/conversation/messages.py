from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chatdesk.db.connect import SessionScope
from chatdesk.db.models import ChatMessage, ChatSession, utcnow
from chatdesk.logging import get_logger

from .errors import ChatValidationError, SessionNotFoundError, StorageError
from .locks import SessionLocks
from .records import MessageRecord, Role, as_utc


logger = get_logger(__name__)

# Shared by every MessageLog in the process so per-request instances still
# serialize appends to the same session.
_APPEND_LOCKS = SessionLocks()

_MAX_APPEND_ATTEMPTS = 3


def _to_record(row: ChatMessage) -> MessageRecord:
    return MessageRecord(
        id=int(row.seq),
        session_id=row.session_id,
        role=Role(row.role),
        text=row.text,
        timestamp=as_utc(row.created_at),
        confidence=row.confidence,
    )


class MessageLog:
    """Append-only, per-session ordered message storage.

    Messages are ordered by a per-session sequence number. Timestamps are
    clamped so they never run backwards within a session, which keeps the
    ``(timestamp, id)`` order identical to the sequence order.
    """

    def __init__(self, scope: SessionScope, *, locks: SessionLocks | None = None):
        self._scope = scope
        self._locks = locks if locks is not None else _APPEND_LOCKS

    def append(
        self,
        session_id: str,
        role: Role | str,
        text: str,
        *,
        confidence: float | None = None,
        timestamp: datetime | None = None,
        provider: str | None = None,
        model: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> MessageRecord:
        try:
            role = Role(role)
        except ValueError as exc:
            raise ChatValidationError(f"unknown role {role!r}") from exc
        if not isinstance(text, str) or not text.strip():
            raise ChatValidationError("message text must be a non-empty string")
        if confidence is not None and role is not Role.bot:
            raise ChatValidationError("confidence is only recorded on bot messages")

        meta_json = json.dumps(meta, ensure_ascii=False) if meta else None
        attempt = 0

        with self._locks.hold(session_id):
            while True:
                attempt += 1
                try:
                    with self._scope() as db:
                        exists = (
                            db.query(ChatSession.id)
                            .filter(ChatSession.session_id == session_id)
                            .first()
                        )
                        if exists is None:
                            raise SessionNotFoundError(session_id)

                        last = (
                            db.query(ChatMessage.seq, ChatMessage.created_at)
                            .filter(ChatMessage.session_id == session_id)
                            .order_by(ChatMessage.seq.desc())
                            .first()
                        )
                        stamp = as_utc(timestamp) if timestamp is not None else utcnow()
                        seq = 1
                        if last is not None:
                            seq = int(last.seq) + 1
                            stamp = max(stamp, as_utc(last.created_at))

                        row = ChatMessage(
                            session_id=session_id,
                            seq=seq,
                            role=role.value,
                            text=text,
                            created_at=stamp,
                            confidence=confidence,
                            provider=provider,
                            model=model,
                            meta_json=meta_json,
                        )
                        db.add(row)
                        db.flush()
                        record = _to_record(row)
                except IntegrityError as exc:
                    # Another process took this sequence number; re-read the tail.
                    if attempt >= _MAX_APPEND_ATTEMPTS:
                        raise StorageError(
                            f"Could not append to session {session_id} after {attempt} attempts"
                        ) from exc
                    logger.warning(
                        "append conflict on session %s (attempt %s), retrying", session_id, attempt
                    )
                    continue
                except SQLAlchemyError as exc:
                    raise StorageError(f"Could not append to session {session_id}: {exc}") from exc

                logger.info(
                    "STORED | %s | %s | #%s | %s",
                    record.role.value,
                    record.session_id,
                    record.id,
                    record.timestamp.isoformat(),
                )
                return record

    def get_messages(self, session_id: str) -> list[MessageRecord]:
        try:
            with self._scope() as db:
                rows = (
                    db.query(ChatMessage)
                    .filter(ChatMessage.session_id == session_id)
                    .order_by(ChatMessage.seq.asc())
                    .all()
                )
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not read messages for {session_id}: {exc}") from exc

    def count(self, session_id: str) -> int:
        try:
            with self._scope() as db:
                total = (
                    db.query(func.count(ChatMessage.id))
                    .filter(ChatMessage.session_id == session_id)
                    .scalar()
                )
                return int(total or 0)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not count messages for {session_id}: {exc}") from exc
