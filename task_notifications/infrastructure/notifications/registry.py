"""Process-local registry of live connections grouped by user."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import DefaultDict, Set


class ConnectionRegistry:
    """Map each user id to the set of its open connection handles.

    All operations take the same lock, so the registry can be mutated from the
    event loop and from worker threads. Answers are point-in-time snapshots: a
    user reported online may disconnect before a push reaches them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: DefaultDict[str, Set[str]] = defaultdict(set)

    def register(self, user_id: str, handle_id: str) -> None:
        if not user_id:
            raise ValueError("A user identity is required to register a connection")
        if not handle_id:
            raise ValueError("A connection handle is required")
        with self._lock:
            self._handles[user_id].add(handle_id)

    def unregister(self, user_id: str, handle_id: str) -> bool:
        """Remove ``handle_id`` for ``user_id``; return whether it was present."""

        with self._lock:
            handles = self._handles.get(user_id)
            if handles is None or handle_id not in handles:
                return False
            handles.discard(handle_id)
            if not handles:
                del self._handles[user_id]
            return True

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._handles.get(user_id))

    def handle_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._handles.get(user_id, ()))

    def handles_for(self, user_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._handles.get(user_id, ()))

    def all_online_users(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._handles)

    def total_connections(self) -> int:
        with self._lock:
            return sum(len(handles) for handles in self._handles.values())


__all__ = ["ConnectionRegistry"]
