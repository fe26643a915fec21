"""Shared helpers for reading ``CHATDESK_*`` environment settings."""

from __future__ import annotations


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}
