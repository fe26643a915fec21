from __future__ import annotations

import os
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.api.security import provided_admin_key, require_admin, verify_admin_key
from chatdesk.config import is_truthy
from chatdesk.conversation.completion import complete_chat
from chatdesk.conversation.errors import (
    ChatValidationError,
    ConversationError,
    SessionNotFoundError,
    StorageError,
    UpstreamError,
)
from chatdesk.conversation.orchestrator import CompletionFn, ConversationOrchestrator, resolve_role
from chatdesk.conversation.records import MessageRecord, Role
from chatdesk.db.connect import get_session_scope
from chatdesk.db.models import utcnow
from chatdesk.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["Chat"])

_DEFAULT_FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble reaching my answer service right now. "
    "Please try again in a moment."
)


class MessageOut(BaseModel):
    id: int | None
    sessionId: str
    role: Literal["user", "bot", "admin"]
    text: str
    timestamp: datetime
    confidence: float | None = None

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageOut":
        return cls(
            id=record.id,
            sessionId=record.session_id,
            role=record.role.value,
            text=record.text,
            timestamp=record.timestamp,
            confidence=record.confidence,
        )


class ChatReply(MessageOut):
    fallback: bool = False


class ChatAck(BaseModel):
    message: Literal["stored"] = "stored"
    sessionId: str
    adminMessage: MessageOut


class ChatRequest(BaseModel):
    message: str = Field(max_length=20_000)
    sessionId: str | None = Field(default=None, max_length=256)
    senderType: str | None = None


class AdminReplyRequest(BaseModel):
    message: str = Field(max_length=20_000)
    sessionId: str = Field(min_length=1, max_length=256)


class AdminReplyResponse(BaseModel):
    success: bool
    adminMessage: MessageOut


class SessionCreated(BaseModel):
    sessionId: str


class SessionSummary(BaseModel):
    sessionId: str
    createdAt: datetime
    lastActivityAt: datetime


class SessionDetail(BaseModel):
    sessionId: str
    createdAt: datetime | None = None
    lastActivityAt: datetime | None = None
    messages: list[MessageOut] = Field(default_factory=list)


def _fallback_enabled() -> bool:
    return is_truthy(os.getenv("CHATDESK_CHAT_FALLBACK"))


def _fallback_reply_text() -> str:
    raw = (os.getenv("CHATDESK_FALLBACK_REPLY") or "").strip()
    return raw or _DEFAULT_FALLBACK_REPLY


def get_completer() -> CompletionFn:
    return complete_chat


def get_orchestrator(complete: CompletionFn = Depends(get_completer)) -> ConversationOrchestrator:
    try:
        scope = get_session_scope()
    except SQLAlchemyError as exc:
        raise _http_error(StorageError(f"Could not open the chat database: {exc}")) from exc
    return ConversationOrchestrator.from_scope(scope, complete)


def _http_error(exc: ConversationError) -> HTTPException:
    if isinstance(exc, ChatValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.")
    if isinstance(exc, UpstreamError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "The assistant could not generate a reply.",
                "reason": exc.reason,
                "sessionId": exc.session_id,
            },
        )
    if isinstance(exc, StorageError):
        logger.error("storage failure: %s", exc)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat storage is temporarily unavailable.",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/session", response_model=SessionCreated)
def create_session(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    try:
        record = orchestrator.create_session()
    except ConversationError as exc:
        raise _http_error(exc) from exc
    return SessionCreated(sessionId=record.session_id)


@router.get("/session/{session_id}", response_model=SessionDetail)
def get_session(session_id: str, orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    try:
        record = orchestrator.get_session(session_id)
        messages = orchestrator.get_messages(session_id) if record is not None else []
    except ConversationError as exc:
        raise _http_error(exc) from exc

    if record is None:
        return SessionDetail(sessionId=session_id)
    return SessionDetail(
        sessionId=record.session_id,
        createdAt=record.created_at,
        lastActivityAt=record.last_activity_at,
        messages=[MessageOut.from_record(message) for message in messages],
    )


@router.get(
    "/sessions",
    response_model=list[SessionSummary],
    dependencies=[Depends(require_admin)],
)
def list_sessions(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    try:
        records = orchestrator.list_sessions()
    except ConversationError as exc:
        raise _http_error(exc) from exc
    return [
        SessionSummary(
            sessionId=record.session_id,
            createdAt=record.created_at,
            lastActivityAt=record.last_activity_at,
        )
        for record in records
    ]


@router.post("/chat", response_model=ChatReply | ChatAck)
def chat(
    payload: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    admin_key: str | None = Depends(provided_admin_key),
):
    try:
        role = resolve_role(payload.senderType)
    except ChatValidationError as exc:
        raise _http_error(exc) from exc
    if role is Role.admin:
        verify_admin_key(admin_key)

    try:
        outcome = orchestrator.handle_chat(payload.message, payload.sessionId, role)
    except UpstreamError as exc:
        if not _fallback_enabled():
            raise _http_error(exc) from exc
        logger.warning(
            "serving fallback reply for session %s (%s): %s", exc.session_id, exc.reason, exc
        )
        return ChatReply(
            id=None,
            sessionId=exc.session_id or (payload.sessionId or ""),
            role="bot",
            text=_fallback_reply_text(),
            timestamp=utcnow(),
            fallback=True,
        )
    except ConversationError as exc:
        raise _http_error(exc) from exc

    if outcome.reply is None:
        return ChatAck(
            sessionId=outcome.session.session_id,
            adminMessage=MessageOut.from_record(outcome.inbound),
        )

    reply = MessageOut.from_record(outcome.reply)
    return ChatReply(**reply.model_dump())


@router.post(
    "/admin/reply",
    response_model=AdminReplyResponse,
    dependencies=[Depends(require_admin)],
)
def admin_reply(
    payload: AdminReplyRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    try:
        record = orchestrator.admin_reply(payload.sessionId, payload.message)
    except ConversationError as exc:
        raise _http_error(exc) from exc
    return AdminReplyResponse(success=True, adminMessage=MessageOut.from_record(record))
