import pytest

from dashanddots import db
from dashanddots.errors import StoreUnavailable
from dashanddots.models import RoomRecord
from dashanddots.services.rooms import MemoryRoomStore, Room, RoomMeta, RoomRepository, SQLRoomStore, UndoRequest, room_key


def make_room(room_id='abc'):
    return Room(
        room_id=room_id,
        game_id='dots-and-boxes',
        players=['alice', 'bob'],
        state={'rows': 2, 'cols': 2, 'edges': {}},
        meta=RoomMeta(owner='alice', colors={'alice': '#f00'}),
    )


# --- MEMORY STORE ---
def test_memory_store_ttl(clock):
    store = MemoryRoomStore(clock=clock)
    store.set('k', b'v')
    assert store.expire('k', 10) is True
    clock.advance(9)
    assert store.get('k') == b'v'
    clock.advance(1)
    assert store.get('k') is None


def test_memory_store_set_clears_ttl(clock):
    store = MemoryRoomStore(clock=clock)
    store.set('k', b'v1')
    store.expire('k', 5)
    store.set('k', b'v2')
    clock.advance(60)
    assert store.get('k') == b'v2'


def test_memory_store_set_with_ttl(clock):
    store = MemoryRoomStore(clock=clock)
    store.set('k', b'v', ttl=10)
    clock.advance(9)
    assert store.get('k') == b'v'
    clock.advance(1)
    assert store.get('k') is None


def test_memory_store_expire_missing_key(clock):
    assert MemoryRoomStore(clock=clock).expire('missing', 10) is False


# --- REPOSITORY ---
def test_repository_round_trip_and_ttl(clock):
    store = MemoryRoomStore(clock=clock)
    repo = RoomRepository(store, ttl_seconds=100)
    room = make_room()
    room.meta.pending_undo = UndoRequest(requested_by='alice', target_revision=3, expires_at=123)
    room.revision = 3
    room.history.append({'player': 'alice', 'move': {'a': [0, 0], 'b': [0, 1]}, 'revision': 3})
    repo.save(room)

    loaded = repo.load('abc')
    assert loaded.to_dict() == room.to_dict()
    assert loaded.meta.pending_undo.requested_by == 'alice'
    assert repo.exists('abc')
    assert store.get(room_key('abc')).startswith(b'{"gameId":')

    clock.advance(100)
    assert repo.load('abc') is None
    assert not repo.exists('abc')


def test_repository_wraps_store_errors():
    class BrokenStore:
        def get(self, key):
            raise OSError('connection refused')

    repo = RoomRepository(BrokenStore())
    with pytest.raises(StoreUnavailable) as exc:
        repo.load('abc')
    assert 'OSError' in exc.value.message


# --- SQL STORE ---
def test_sql_store_get_set_expire(flask_app, clock):
    store = SQLRoomStore(db, clock=clock)
    assert store.get('k') is None
    assert store.expire('k', 10) is False

    store.set('k', b'payload')
    assert store.get('k') == b'payload'
    assert store.expire('k', 10) is True
    clock.advance(10)
    assert store.get('k') is None
    assert store.expire('k', 10) is False


def test_sql_store_set_clears_ttl(flask_app, clock):
    store = SQLRoomStore(db, clock=clock)
    store.set('k', b'one')
    store.expire('k', 5)
    store.set('k', b'two')
    clock.advance(60)
    assert store.get('k') == b'two'
    assert db.session.get(RoomRecord, 'k').expires_at is None


def test_sql_store_set_with_ttl(flask_app, clock):
    store = SQLRoomStore(db, clock=clock)
    store.set('k', b'v', ttl=30)
    assert db.session.get(RoomRecord, 'k').expires_at == pytest.approx(clock() + 30)
    clock.advance(30)
    assert store.get('k') is None


def test_sql_store_purge_expired(flask_app, clock):
    store = SQLRoomStore(db, clock=clock)
    store.set('old', b'1')
    store.expire('old', 5)
    store.set('keep', b'2')
    store.expire('keep', 500)
    store.set('forever', b'3')
    clock.advance(10)

    assert store.purge_expired() == 1
    assert db.session.get(RoomRecord, 'old') is None
    assert store.get('keep') == b'2'
    assert store.get('forever') == b'3'


def test_sql_backed_repository(flask_app, clock):
    repo = RoomRepository(SQLRoomStore(db, clock=clock), ttl_seconds=60)
    repo.save(make_room('xyz'))
    assert repo.load('xyz').meta.colors == {'alice': '#f00'}
    record = db.session.get(RoomRecord, room_key('xyz'))
    assert record.expires_at == pytest.approx(clock() + 60)
