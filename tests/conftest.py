import os
import sys
import pytest

# Ensure the project root (containing the `dashanddots` package and config.py) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from dashanddots import create_app, db, socketio, SOCKET_NAMESPACE
from dashanddots.services.games import default_registry
from dashanddots.services.rooms import (
    CHAT,
    MOVE,
    MemoryRoomStore,
    RateLimiter,
    RoomCoordinator,
    RoomRepository,
)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    ROOM_STORE = 'sql'
    ROOM_TTL_SEC = 60 * 60 * 24
    UNDO_WINDOW_SEC = 30
    CHAT_MAX_LEN = 300
    BOARD_MIN_SIZE = 5
    BOARD_MAX_SIZE = 40


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    """Builds Socket.IO test clients on /ws; all are disconnected at teardown."""
    clients = []

    def make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=SOCKET_NAMESPACE,
        )
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        try:
            test_client.disconnect(namespace=SOCKET_NAMESPACE)
        except Exception:
            pass


# ---- Coordinator fixtures (no Flask, in-memory store) ----

class FakeClock:
    """Controllable wall clock; call it to read, advance() to move forward."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingTransport:
    """Transport double that records every delivery instead of sending it."""

    def __init__(self):
        self.sent = []         # (conn, event, payload)
        self.broadcasts = []   # (room_id, event, payload, skip)
        self.groups = {}       # room_id -> set of conns
        self.disconnected = []

    def send(self, conn, event, payload):
        self.sent.append((conn, event, payload))

    def broadcast(self, room_id, event, payload, skip=None):
        self.broadcasts.append((room_id, event, payload, skip))

    def join_group(self, conn, room_id):
        self.groups.setdefault(room_id, set()).add(conn)

    def leave_group(self, conn, room_id):
        self.groups.get(room_id, set()).discard(conn)

    def disconnect(self, conn):
        self.disconnected.append(conn)
        for members in self.groups.values():
            members.discard(conn)

    def sent_to(self, conn, event=None):
        return [p for c, e, p in self.sent if c == conn and (event is None or e == event)]

    def broadcast_events(self, event):
        return [p for _, e, p, _ in self.broadcasts if e == event]

    def clear(self):
        self.sent.clear()
        self.broadcasts.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def store(clock):
    return MemoryRoomStore(clock=clock)


@pytest.fixture()
def coordinator(store, transport, clock):
    limiter = RateLimiter({MOVE: (4, 2), CHAT: (5, 2)}, clock=clock)
    return RoomCoordinator(
        registry=default_registry(),
        repository=RoomRepository(store, ttl_seconds=60 * 60 * 24),
        transport=transport,
        limiter=limiter,
        clock=clock,
        undo_window_sec=30,
        chat_max_len=300,
    )


@pytest.fixture()
def room(coordinator):
    """A 2x2 Dots and Boxes room for alice (owner) and bob, with both joined."""
    created = coordinator.create_room('dots-and-boxes', ['alice', 'bob'], options={'rows': 2, 'cols': 2})
    coordinator.connect('c-alice')
    coordinator.connect('c-bob')
    coordinator.join(created.room_id, 'alice', 'c-alice')
    coordinator.join(created.room_id, 'bob', 'c-bob')
    coordinator.transport.clear()
    return created
