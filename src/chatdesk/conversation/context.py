from __future__ import annotations

from .messages import MessageLog
from .records import ContextMessage, MessageRecord, Role

_CONTEXT_ROLES = frozenset({Role.user, Role.bot})


def context_from_messages(messages: list[MessageRecord]) -> list[ContextMessage]:
    """Project a stored log onto the turns the completion backend sees.

    Admin interjections stay in the displayed log but are never part of the
    model's context.
    """

    return [
        ContextMessage(role=message.role, text=message.text)
        for message in messages
        if message.role in _CONTEXT_ROLES
    ]


def build_context(message_log: MessageLog, session_id: str) -> list[ContextMessage]:
    return context_from_messages(message_log.get_messages(session_id))
