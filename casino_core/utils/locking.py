import threading
from contextlib import contextmanager


class KeyedLocks:
    """One re-entrant lock per key (game id, session id) so actions on the same state are serialized."""

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def get(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key):
        lock = self.get(key)
        with lock:
            yield

    def discard(self, key):
        """Forgets a finished key. Callers already waiting keep the old lock."""
        with self._guard:
            self._locks.pop(key, None)
