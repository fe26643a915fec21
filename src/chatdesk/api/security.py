"""Admin gate for the chat API.

Admin-tagged traffic (the admin reply endpoint, ``senderType=admin`` on the
chat endpoint and the session listing) goes through :func:`verify_admin_key`.

When ``CHATDESK_ADMIN_API_KEY`` is set, callers must present it via the
``X-Admin-Key`` header or ``Authorization: Bearer <key>``. When it is unset
the admin surface is open, as the console's own login is the only gate, and
a warning is logged once.
"""

from __future__ import annotations

import os
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from chatdesk.logging import get_logger


logger = get_logger(__name__)

_ADMIN_KEY_HEADER = APIKeyHeader(name="X-Admin-Key", auto_error=False)
_BEARER = HTTPBearer(auto_error=False)

_open_admin_warned = False


def _expected_admin_key() -> str | None:
    key = os.getenv("CHATDESK_ADMIN_API_KEY")
    if key is None:
        return None
    key = key.strip()
    return key or None


def provided_admin_key(
    x_admin_key: str | None = Depends(_ADMIN_KEY_HEADER),
    bearer: HTTPAuthorizationCredentials | None = Depends(_BEARER),
) -> str | None:
    if x_admin_key:
        return x_admin_key
    if bearer and bearer.credentials:
        return bearer.credentials
    return None


def verify_admin_key(provided: str | None) -> None:
    global _open_admin_warned

    expected = _expected_admin_key()
    if expected is None:
        if not _open_admin_warned:
            logger.warning("CHATDESK_ADMIN_API_KEY is not set; admin endpoints are unauthenticated")
            _open_admin_warned = True
        return

    if provided is None or not secrets.compare_digest(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid admin key.",
        )


def require_admin(provided: str | None = Depends(provided_admin_key)) -> None:
    """FastAPI dependency enforcing ``CHATDESK_ADMIN_API_KEY`` when configured."""

    verify_admin_key(provided)
