from __future__ import annotations

import threading


class UserLocks:
    """Serializes work per user id; different users never contend."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def for_user(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock


_USER_LOCKS: UserLocks | None = None


def get_user_locks() -> UserLocks:
    global _USER_LOCKS
    if _USER_LOCKS is None:
        _USER_LOCKS = UserLocks()
    return _USER_LOCKS
