from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class SessionLocks:
    """Per-session mutexes, created on demand and dropped once unused.

    Different session ids never contend with each other; only the small
    registry bookkeeping is guarded by a shared lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(session_id, threading.Lock())
            self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                remaining = self._holders[session_id] - 1
                if remaining:
                    self._holders[session_id] = remaining
                else:
                    del self._holders[session_id]
                    del self._locks[session_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
