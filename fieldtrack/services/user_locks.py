import threading
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.RLock()
        self.holders = 0


class UserLocks:
    """One re-entrant lock per user id.

    Serializes visit and invoice writes of the same user inside this process;
    different users never wait on each other. A user's lock is dropped again
    once nobody holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: dict[int, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, user_id: int):
        with self._guard:
            entry = self._entries.get(user_id)
            if entry is None:
                entry = _Entry()
                self._entries[user_id] = entry
            entry.holders += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[user_id]


user_locks = UserLocks()
