"""Error taxonomy for the conversation engine.

Stores raise these unchanged through the orchestrator; the HTTP layer maps
them to status codes.
"""

from __future__ import annotations


class ConversationError(Exception):
    """Base class for conversation engine failures."""


class ChatValidationError(ConversationError, ValueError):
    """Rejected input (empty text, unknown sender type) before any append."""


class SessionNotFoundError(ConversationError, LookupError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class StorageError(ConversationError):
    """The chat database could not be read or written."""


class UpstreamError(ConversationError):
    """The completion backend failed, timed out or returned garbage."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = "http",
        provider: str | None = None,
        session_id: str | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.provider = provider
        self.session_id = session_id
