from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

__version__ = "0.1.0"

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

SOCKET_NAMESPACE = '/ws'


def build_coordinator(flask_app):
    """Wire the room coordinator from app config; stored on app.extensions."""
    from dashanddots.services.games import default_registry
    from dashanddots.services.rooms import (
        CHAT,
        MOVE,
        MemoryRoomStore,
        RateLimiter,
        RoomCoordinator,
        RoomRepository,
        SocketIOTransport,
        SQLRoomStore,
    )

    cfg = flask_app.config
    store_kind = cfg.get('ROOM_STORE', 'sql')
    if store_kind == 'memory':
        store = MemoryRoomStore()
    elif store_kind == 'sql':
        store = SQLRoomStore(db)
    else:
        raise ValueError(f"Unknown ROOM_STORE {store_kind!r}")

    limiter = RateLimiter({
        MOVE: (float(cfg.get('MOVE_BUCKET_CAPACITY', 4)), float(cfg.get('MOVE_REFILL_PER_SEC', 2))),
        CHAT: (float(cfg.get('CHAT_BUCKET_CAPACITY', 5)), float(cfg.get('CHAT_REFILL_PER_SEC', 2))),
    })
    return RoomCoordinator(
        registry=default_registry(),
        repository=RoomRepository(store, ttl_seconds=int(cfg.get('ROOM_TTL_SEC', 60 * 60 * 24))),
        transport=SocketIOTransport(socketio, namespace=SOCKET_NAMESPACE),
        limiter=limiter,
        logger=flask_app.logger,
        undo_window_sec=int(cfg.get('UNDO_WINDOW_SEC', 30)),
        chat_max_len=int(cfg.get('CHAT_MAX_LEN', 300)),
    )


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Ensure the room_record model is registered with SQLAlchemy metadata
    from dashanddots import models  # noqa: F401

    coordinator = build_coordinator(flask_app)
    flask_app.extensions['rooms'] = coordinator

    from dashanddots.main import main
    flask_app.register_blueprint(main)

    from dashanddots.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from dashanddots.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('rooms-purge')
    def rooms_purge_command():
        """Deletes expired room records from the SQL room store."""
        store = coordinator.repository.store
        if not hasattr(store, 'purge_expired'):
            click.echo('Room store does not support purging.')
            return
        with flask_app.app_context():
            removed = store.purge_expired()
        click.echo(f'Purged {removed} expired room(s).')

    @click.command('db-create')
    def db_create_command():
        """Creates the room store tables."""
        with flask_app.app_context():
            db.create_all()
            click.echo('Database tables created.')

    flask_app.cli.add_command(rooms_purge_command)
    flask_app.cli.add_command(db_create_command)

    return flask_app
