"""Conversation orchestrator.

Every chat request passes through :meth:`ConversationOrchestrator.handle_chat`:

    RESOLVE_SESSION -> RECORD_INBOUND -> (DISPATCH_TO_MODEL | SKIP)
        -> RECORD_OUTBOUND -> RESPOND

Each append commits on its own. A completion failure never rolls back the
inbound message and is never retried here.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from chatdesk.db.connect import SessionScope
from chatdesk.logging import get_logger

from .completion import Completion, coerce_confidence, complete_chat
from .context import build_context
from .errors import ChatValidationError, ConversationError, UpstreamError
from .messages import MessageLog
from .records import ContextMessage, MessageRecord, Role, SessionRecord
from .sessions import SessionStore


logger = get_logger(__name__)

CompletionFn = Callable[[list[ContextMessage]], Completion]

_PREVIEW_CHARS = 80


@dataclass(frozen=True)
class ChatOutcome:
    session: SessionRecord
    created_session: bool
    inbound: MessageRecord
    reply: MessageRecord | None = None


def resolve_role(sender_type: Role | str | None) -> Role:
    """Map the client-supplied sender type onto an inbound role.

    Bots never speak through the chat channel, so only ``user`` and
    ``admin`` are accepted.
    """

    if sender_type is None:
        return Role.user
    if isinstance(sender_type, Role):
        if sender_type is Role.bot:
            raise ChatValidationError("bot messages cannot be posted through the chat channel")
        return sender_type
    normalized = str(sender_type).strip().lower()
    if normalized in {"", "user"}:
        return Role.user
    if normalized == "admin":
        return Role.admin
    raise ChatValidationError(f"senderType must be 'user' or 'admin', got {sender_type!r}")


def _require_text(text: str | None) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ChatValidationError("message must not be empty")
    return text


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _PREVIEW_CHARS:
        return flat
    return flat[: _PREVIEW_CHARS - 1] + "…"


class ConversationOrchestrator:
    def __init__(
        self,
        sessions: SessionStore,
        messages: MessageLog,
        complete: CompletionFn = complete_chat,
    ):
        self.sessions = sessions
        self.messages = messages
        self._complete = complete

    @classmethod
    def from_scope(cls, scope: SessionScope, complete: CompletionFn = complete_chat) -> "ConversationOrchestrator":
        return cls(SessionStore(scope), MessageLog(scope), complete)

    # read side

    def create_session(self) -> SessionRecord:
        return self.sessions.create_session()

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get_session(session_id)

    def get_messages(self, session_id: str) -> list[MessageRecord]:
        return self.messages.get_messages(session_id)

    def list_sessions(self) -> list[SessionRecord]:
        return self.sessions.list_sessions()

    # write side

    def handle_chat(
        self,
        text: str,
        session_id: str | None = None,
        sender_type: Role | str | None = None,
    ) -> ChatOutcome:
        role = resolve_role(sender_type)
        text = _require_text(text)

        session, created = self._resolve_session(session_id)
        logger.info("INCOMING | %s | %s | %s", role.value, session.session_id, _preview(text))
        inbound = self._record(session.session_id, role, text)

        if role is Role.admin:
            return ChatOutcome(session=session, created_session=created, inbound=inbound)

        try:
            completion = self._dispatch(session.session_id)
        except UpstreamError as exc:
            exc.session_id = session.session_id
            raise

        reply = self._record(
            session.session_id,
            Role.bot,
            completion.text,
            confidence=completion.confidence,
            provider=completion.provider,
            model=completion.model,
            meta=completion.meta,
        )
        return ChatOutcome(session=session, created_session=created, inbound=inbound, reply=reply)

    def admin_reply(self, session_id: str, text: str) -> MessageRecord:
        """Append a human admin message; the model is never consulted."""

        text = _require_text(text)
        self.sessions.require_session(session_id)
        logger.info("INCOMING | admin | %s | %s", session_id, _preview(text))
        return self._record(session_id, Role.admin, text)

    def _resolve_session(self, session_id: str | None) -> tuple[SessionRecord, bool]:
        candidate = (session_id or "").strip()
        if candidate:
            existing = self.sessions.get_session(candidate)
            if existing is not None:
                return existing, False
            logger.info("unknown session %s, starting a new one", candidate)
        return self.sessions.create_session(), True

    def _record(self, session_id: str, role: Role, text: str, **kwargs) -> MessageRecord:
        record = self.messages.append(session_id, role, text, **kwargs)
        self.sessions.touch(session_id, record.timestamp)
        return record

    def _dispatch(self, session_id: str) -> Completion:
        context = build_context(self.messages, session_id)
        try:
            completion = self._complete(context)
        except UpstreamError as exc:
            logger.warning("completion failed for %s (%s): %s", session_id, exc.reason, exc)
            raise
        except ConversationError:
            raise
        except Exception as exc:
            logger.warning("completion failed for %s: %r", session_id, exc)
            raise UpstreamError(f"completion backend failed: {exc}", reason="error") from exc

        if completion is None or not isinstance(completion.text, str) or not completion.text.strip():
            raise UpstreamError(
                "completion backend returned an empty reply",
                reason="malformed",
                provider=getattr(completion, "provider", None),
            )

        confidence = coerce_confidence(completion.confidence)
        if confidence != completion.confidence:
            completion = replace(completion, confidence=confidence)
        return completion
