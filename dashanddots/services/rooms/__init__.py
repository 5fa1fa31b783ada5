"""Multiplayer room coordination.

Stores, session tracking, rate limiting and the coordinator that serializes
every room mutation. Transport specifics stay behind ``Transport``.
"""

from .coordinator import RoomCoordinator
from .locks import RoomLocks
from .ratelimit import CHAT, MOVE, RateLimiter, TokenBucket
from .room import Room, RoomMeta, UndoRequest
from .sessions import SessionTracker
from .store import MemoryRoomStore, RoomRepository, RoomStore, SQLRoomStore, room_key
from .transport import SocketIOTransport, Transport, group_name

__all__ = [
    'RoomCoordinator',
    'RoomLocks',
    'RateLimiter',
    'TokenBucket',
    'MOVE',
    'CHAT',
    'Room',
    'RoomMeta',
    'UndoRequest',
    'SessionTracker',
    'RoomStore',
    'MemoryRoomStore',
    'SQLRoomStore',
    'RoomRepository',
    'room_key',
    'Transport',
    'SocketIOTransport',
    'group_name',
]
