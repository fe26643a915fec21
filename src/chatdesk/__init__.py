"""Core package for the chatdesk support widget backend.

This top-level module exposes the database :func:`get_session` helper for
scripts that want to inspect stored conversations directly.
"""

from .db import get_session

__all__ = ["get_session"]
