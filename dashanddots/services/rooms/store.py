"""Keyed room storage.

The coordinator only needs ``get``/``set``/``expire`` over opaque bytes, the
shape of a Redis string key. ``RoomRepository`` layers the room record's
JSON encoding and the retention TTL on top of whichever store is configured.
Value and TTL go out in one ``set`` (Redis ``SET ... EX``), so a write is
either fully stored with its expiry or not stored at all.
"""

import json
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError

from dashanddots.errors import StoreUnavailable
from .room import Room


class RoomStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        """Store value under key. Expires after ttl seconds; no ttl clears any previous expiry."""
        ...

    def expire(self, key: str, seconds: int) -> bool:
        """Expire key after seconds. Returns False when the key does not exist."""
        ...


class MemoryRoomStore:
    """Process-local store, for tests and single-process deployments."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}

    def _live(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        with self._lock:
            expires_at = self._clock() + ttl if ttl is not None else None
            self._data[key] = (bytes(value), expires_at)

    def expire(self, key: str, seconds: int) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return False
            self._data[key] = (entry[0], self._clock() + seconds)
            return True


class SQLRoomStore:
    """Store backed by the ``room_record`` table through Flask-SQLAlchemy.

    Must be used inside an application context; Socket.IO handlers and
    request handlers both run in one.
    """

    def __init__(self, db, clock: Callable[[], float] = time.time):
        self.db = db
        self._clock = clock

    def _record(self, key: str):
        from dashanddots.models import RoomRecord
        return self.db.session.get(RoomRecord, key)

    def get(self, key: str) -> Optional[bytes]:
        try:
            record = self._record(key)
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(f'Room store read failed: {exc.__class__.__name__}') from exc
        if record is None or record.is_expired(self._clock()):
            return None
        return bytes(record.value)

    def set(self, key: str, value: bytes, ttl: Optional[int] = None) -> None:
        from dashanddots.models import RoomRecord
        try:
            record = self._record(key)
            if record is None:
                record = RoomRecord(key=key)
            record.value = bytes(value)
            record.expires_at = self._clock() + ttl if ttl is not None else None
            self.db.session.add(record)
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(f'Room store write failed: {exc.__class__.__name__}') from exc

    def expire(self, key: str, seconds: int) -> bool:
        try:
            record = self._record(key)
            if record is None or record.is_expired(self._clock()):
                return False
            record.expires_at = self._clock() + seconds
            self.db.session.add(record)
            self.db.session.commit()
            return True
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(f'Room store write failed: {exc.__class__.__name__}') from exc

    def purge_expired(self) -> int:
        """Delete every expired record. Returns how many were removed."""
        from dashanddots.models import RoomRecord
        try:
            removed = RoomRecord.query.filter(
                RoomRecord.expires_at.isnot(None),
                RoomRecord.expires_at <= self._clock(),
            ).delete(synchronize_session=False)
            self.db.session.commit()
            return removed
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreUnavailable(f'Room store purge failed: {exc.__class__.__name__}') from exc


def room_key(room_id: str) -> str:
    return f'room:{room_id}:state'


class RoomRepository:
    """Reads and writes whole room records; every write refreshes the TTL."""

    def __init__(self, store: RoomStore, ttl_seconds: int = 60 * 60 * 24):
        self.store = store
        self.ttl_seconds = ttl_seconds

    def load(self, room_id: str) -> Optional[Room]:
        raw = self._call(self.store.get, room_key(room_id))
        if raw is None:
            return None
        return Room.from_dict(room_id, json.loads(raw))

    def exists(self, room_id: str) -> bool:
        return self._call(self.store.get, room_key(room_id)) is not None

    def save(self, room: Room) -> None:
        payload = json.dumps(room.to_dict(), separators=(',', ':')).encode('utf-8')
        self._call(self.store.set, room_key(room.room_id), payload, self.ttl_seconds)

    def _call(self, fn, *args):
        try:
            return fn(*args)
        except StoreUnavailable:
            raise
        except Exception as exc:
            raise StoreUnavailable(f'Room store failed: {exc.__class__.__name__}') from exc
