import threading
from contextlib import contextmanager
from typing import Dict, List


class RoomLocks:
    """One mutex per room id, created on demand and dropped when unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # room_id -> [lock, refcount]

    @contextmanager
    def hold(self, room_id: str):
        with self._guard:
            entry = self._locks.setdefault(room_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(room_id, None)

    def __len__(self):
        with self._guard:
            return len(self._locks)
