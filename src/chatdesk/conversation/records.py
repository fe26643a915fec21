from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


class Role(str, enum.Enum):
    user = "user"
    bot = "bot"
    admin = "admin"


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    created_at: datetime
    last_activity_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "createdAt": self.created_at.isoformat(),
            "lastActivityAt": self.last_activity_at.isoformat(),
        }


@dataclass(frozen=True)
class MessageRecord:
    id: int
    session_id: str
    role: Role
    text: str
    timestamp: datetime
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ContextMessage:
    role: Role
    text: str
