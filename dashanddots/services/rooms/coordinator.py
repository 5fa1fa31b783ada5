"""Room coordination: the only code path that mutates a room.

Every operation follows the same sequence under the room's lock: load the
persisted record, validate, apply, persist, then broadcast. Broadcasting
while the lock is held keeps every member's view in persist order, and a
failed persist raises before anything is sent.

Connection-originated intents (move, undo, chat) act as the room and
identity the connection registered with ``join``, confirmed again once
the room lock is held.
"""

import logging
import secrets
import time
from typing import Any, Callable, Dict, List, Optional

from dashanddots.errors import (
    Forbidden,
    InvalidMove,
    InvalidRequest,
    NotFound,
    RateLimited,
    StoreUnavailable,
)
from dashanddots.services.games import GameRegistry
from .locks import RoomLocks
from .ratelimit import CHAT, MOVE, RateLimiter
from .room import Room, RoomMeta, UndoRequest
from .sessions import SessionTracker
from .store import RoomRepository
from .transport import Transport

DISPLACED_REASON = 'Name taken by new connection'
KICKED_REASON = 'Removed by room owner'


def _clean_name(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f'{field_name} is required')
    return value.strip()


class RoomCoordinator:
    def __init__(
        self,
        registry: GameRegistry,
        repository: RoomRepository,
        transport: Transport,
        sessions: Optional[SessionTracker] = None,
        limiter: Optional[RateLimiter] = None,
        locks: Optional[RoomLocks] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
        undo_window_sec: int = 30,
        chat_max_len: int = 300,
    ):
        self.registry = registry
        self.repository = repository
        self.transport = transport
        self.sessions = sessions or SessionTracker()
        self.limiter = limiter or RateLimiter({MOVE: (4, 2), CHAT: (5, 2)})
        self.locks = locks or RoomLocks()
        self.logger = logger or logging.getLogger('dashanddots')
        self.clock = clock
        self.undo_window_sec = undo_window_sec
        self.chat_max_len = chat_max_len

    # -- Administration (HTTP surface) --
    def create_room(
        self,
        game_id: str,
        players: List[str],
        options: Optional[Dict[str, Any]] = None,
        owner: Optional[str] = None,
        locked: bool = False,
        chat_enabled: bool = True,
        colors: Optional[Dict[str, str]] = None,
    ) -> Room:
        game = self.registry.get(game_id)
        if game is None:
            raise InvalidRequest('Unknown gameId', code='unknown_game')
        state = game.create_initial_state(dict(options or {}, players=list(players)))
        room = Room(
            room_id=self._new_room_id(),
            game_id=game_id,
            players=list(players),
            state=state.to_dict(),
            meta=RoomMeta(
                owner=owner or players[0],
                locked=bool(locked),
                chat_enabled=bool(chat_enabled),
                colors=dict(colors or {}),
            ),
        )
        self._save(room)
        self.logger.info(f"[create] room={room.room_id} game={game_id} players={room.players} owner={room.meta.owner}")
        return room

    def describe(self, room_id: str) -> Dict[str, Any]:
        room = self._load(room_id)
        payload = room.to_dict()
        pending = room.meta.pending_undo
        if pending and pending.is_expired(self._now_ms()):
            payload['meta']['pendingUndo'] = None
        payload['roomId'] = room.room_id
        payload['status'] = room.status
        payload['online'] = self.sessions.online(room.room_id)
        return payload

    def set_lock(self, room_id: str, requester: str, locked: bool) -> Dict[str, Any]:
        locked = bool(locked)
        with self.locks.hold(room_id):
            room = self._load(room_id)
            if requester != room.meta.owner:
                raise Forbidden('Only the room owner can lock or unlock the room')
            if room.meta.locked != locked:
                room.meta.locked = locked
                self._save(room)
                self._system(room_id, f"Room {'locked' if locked else 'unlocked'} by {requester}")
                self.logger.info(f"[lock] room={room_id} locked={locked} by={requester}")
        return {'ok': True, 'locked': locked}

    def kick(self, room_id: str, requester: str, target: str) -> Dict[str, Any]:
        target = _clean_name(target, 'target')
        with self.locks.hold(room_id):
            room = self._load(room_id)
            if requester != room.meta.owner:
                raise Forbidden('Only the room owner can kick players')
            if target == requester:
                raise InvalidRequest("You can't kick yourself")
            conn = self.sessions.holder(room_id, target)
            if conn is None:
                raise NotFound(f'{target} is not connected', code='not_connected')
            self._evict(conn, room_id, KICKED_REASON)
            self.sessions.release(conn)
            self._system(room_id, f'{target} was removed by {requester}')
            self.logger.info(f"[kick] room={room_id} target={target} by={requester} conn={conn}")
        return {'ok': True}

    # -- Connection lifecycle --
    def connect(self, conn: str) -> None:
        self.limiter.open(conn)

    def disconnect(self, conn: str) -> None:
        self.limiter.close(conn)
        entry = self.sessions.release(conn)
        if entry:
            self.logger.info(f"[disconnect] room={entry[0]} player={entry[1]} conn={conn}")

    def join(self, room_id: str, player_id: str, conn: str) -> Dict[str, Any]:
        room_id = _clean_name(room_id, 'roomId')
        player_id = _clean_name(player_id, 'playerId')
        with self.locks.hold(room_id):
            room = self._load(room_id)
            if room.meta.locked and player_id not in room.players:
                raise Forbidden('Room is locked', code='locked')
            if player_id not in room.players:
                room.players.append(player_id)
                self._save(room)

            previous = self.sessions.lookup(conn)
            if previous and previous[0] != room_id:
                self.transport.leave_group(conn, previous[0])
            displaced = self.sessions.claim(room_id, player_id, conn)
            if displaced:
                self.logger.warning(f"[join] room={room_id} player={player_id} evicting stale conn={displaced}")
                self._evict(displaced, room_id, DISPLACED_REASON)
            self.transport.join_group(conn, room_id)

            self.transport.send(conn, 'game.state', room.state)
            pending = room.meta.pending_undo
            if pending and not pending.is_expired(self._now_ms()):
                self.transport.send(conn, 'undo.request', pending.to_dict())
            self.transport.broadcast(
                room_id,
                'game.events',
                [{'type': 'player-joined', 'payload': {'playerId': player_id}}],
                skip=conn,
            )
            self._system(room_id, f'{player_id} joined')
            self.logger.info(f"[join] room={room_id} player={player_id} conn={conn}")
            return {'ok': True, 'revision': room.revision}

    # -- Gameplay --
    def move(self, conn: str, payload: Any) -> Dict[str, Any]:
        if not self.limiter.allow(conn, MOVE):
            raise RateLimited('Slow down (moves)')
        room_id, player = self._session(conn)
        with self.locks.hold(room_id):
            self._still_holding(room_id, player, conn)
            room = self._load(room_id)
            game = self._game(room)
            state = game.load_state(room.state)
            verdict = game.validate_move(state, payload, player)
            if verdict is not True:
                self.logger.info(f"[move-reject] room={room_id} player={player} reason={verdict}")
                raise InvalidMove(str(verdict))
            result = game.apply_move(state, payload, player)

            room.state = result.state.to_dict()
            room.revision += 1
            room.history.append({
                'player': player,
                'move': result.record if result.record is not None else payload,
                'revision': room.revision,
            })
            room.meta.pending_undo = None
            room.meta.undo_rejected_revision = None
            self._save(room)

            self.transport.broadcast(room_id, 'game.state', room.state)
            if result.events:
                self.transport.broadcast(room_id, 'game.events', result.events)
            self.logger.info(
                f"[move] room={room_id} player={player} revision={room.revision} events={len(result.events)}"
            )
            return {'ok': True, 'revision': room.revision}

    def request_undo(self, conn: str, expected_revision: Optional[int] = None) -> Dict[str, Any]:
        room_id, player = self._session(conn)
        with self.locks.hold(room_id):
            self._still_holding(room_id, player, conn)
            room = self._load(room_id)
            game = self._game(room)
            if not getattr(game, 'supports_undo', False):
                raise InvalidRequest('Undo is not supported for this game', code='undo_unsupported')
            if room.state.get('finished'):
                raise InvalidRequest('Game is finished', code='game_finished')
            last = room.last_move
            if last is None:
                raise InvalidRequest('There is no move to undo', code='nothing_to_undo')
            if last['player'] != player:
                raise Forbidden('Only the player who made the last move can ask to undo it', code='not_authorized')
            if not [p for p in self._game_players(room) if p != player]:
                raise InvalidRequest('No opponent to approve the undo', code='no_opponent')
            if expected_revision is not None and expected_revision != room.revision:
                raise InvalidRequest('The board has changed, refresh and try again', code='stale_revision')
            if room.meta.undo_rejected_revision == room.revision:
                raise InvalidRequest('Undo for this move was already declined', code='already_rejected')

            now = self._now_ms()
            pending = room.meta.pending_undo
            if pending and not pending.is_expired(now):
                raise InvalidRequest('An undo request is already pending', code='undo_pending')

            request = UndoRequest(
                requested_by=player,
                target_revision=room.revision,
                expires_at=now + self.undo_window_sec * 1000,
            )
            room.meta.pending_undo = request
            self._save(room)

            self.transport.broadcast(room_id, 'undo.request', request.to_dict())
            self._system(room_id, f'{player} asked to undo their last move')
            self.logger.info(f"[undo-request] room={room_id} player={player} revision={room.revision}")
            return {'ok': True, 'expiresAt': request.expires_at}

    def respond_undo(self, conn: str, approve: bool) -> Dict[str, Any]:
        room_id, player = self._session(conn)
        with self.locks.hold(room_id):
            self._still_holding(room_id, player, conn)
            room = self._load(room_id)
            pending = room.meta.pending_undo
            if pending is None:
                raise InvalidRequest('No pending undo request', code='no_pending_request')
            if pending.is_expired(self._now_ms()):
                # Lazy expiry: the request lapses when someone next answers it
                room.meta.pending_undo = None
                self._save(room)
                self.transport.broadcast(room_id, 'undo.result', {
                    'approved': False,
                    'requestedBy': pending.requested_by,
                    'reason': 'expired',
                })
                self.logger.info(f"[undo-expired] room={room_id} requested_by={pending.requested_by}")
                raise InvalidRequest('Undo request expired', code='expired')
            if player == pending.requested_by or player not in self._game_players(room):
                raise Forbidden('You cannot answer this undo request', code='not_authorized')

            if not approve:
                room.meta.pending_undo = None
                room.meta.undo_rejected_revision = pending.target_revision
                self._save(room)
                self.transport.broadcast(room_id, 'undo.result', {
                    'approved': False,
                    'requestedBy': pending.requested_by,
                    'by': player,
                })
                self._system(room_id, f'{player} declined the undo')
                self.logger.info(f"[undo-reject] room={room_id} by={player}")
                return {'ok': True, 'approved': False}

            last = room.last_move
            if room.revision != pending.target_revision or last is None or last['player'] != pending.requested_by:
                room.meta.pending_undo = None
                self._save(room)
                raise InvalidRequest('The board changed since the undo was requested', code='stale_revision')

            game = self._game(room)
            state = game.undo_move(game.load_state(room.state), last['move'], last['player'])
            room.state = state.to_dict()
            room.history.pop()
            room.revision += 1
            room.meta.pending_undo = None
            room.meta.undo_rejected_revision = None
            self._save(room)

            self.transport.broadcast(room_id, 'game.state', room.state)
            self.transport.broadcast(room_id, 'undo.result', {
                'approved': True,
                'requestedBy': pending.requested_by,
                'by': player,
            })
            self._system(room_id, f'{player} approved the undo')
            self.logger.info(f"[undo-approve] room={room_id} by={player} revision={room.revision}")
            return {'ok': True, 'approved': True, 'revision': room.revision}

    def chat(self, conn: str, text: Any) -> Dict[str, Any]:
        if not self.limiter.allow(conn, CHAT):
            raise RateLimited('Slow down (chat)')
        room_id, player = self._session(conn)
        if not isinstance(text, str):
            raise InvalidRequest('Message text must be a string')
        text = text.strip()
        if not text:
            raise InvalidRequest('Empty message', code='empty_message')
        with self.locks.hold(room_id):
            self._still_holding(room_id, player, conn)
            room = self._load(room_id)
            if not room.meta.chat_enabled:
                raise Forbidden('Chat is disabled for this room', code='chat_disabled')
            self.transport.broadcast(room_id, 'chat.message', {
                'from': player,
                'text': text[:self.chat_max_len],
                'at': self._now_ms(),
            })
        return {'ok': True}

    # -- Internal helpers --
    def _session(self, conn: str):
        entry = self.sessions.lookup(conn)
        if entry is None:
            raise InvalidRequest('Not in a room', code='not_in_room')
        return entry

    def _still_holding(self, room_id: str, player: str, conn: str) -> None:
        # conn may have been displaced or kicked while waiting for the room lock
        if self.sessions.holder(room_id, player) != conn:
            raise InvalidRequest('Not in a room', code='not_in_room')

    def _load(self, room_id: str) -> Room:
        room = self.repository.load(room_id)
        if room is None:
            raise NotFound('Room not found', code='room_not_found')
        return room

    def _save(self, room: Room) -> None:
        try:
            self.repository.save(room)
        except StoreUnavailable as exc:
            self.logger.error(f"[store] room={room.room_id} persist failed: {exc.message}")
            raise

    def _game(self, room: Room):
        game = self.registry.get(room.game_id)
        if game is None:
            raise NotFound('Game not found', code='game_not_found')
        return game

    def _game_players(self, room: Room) -> List[str]:
        return list(room.state.get('players') or room.players)

    def _evict(self, conn: str, room_id: str, reason: str) -> None:
        self.transport.send(conn, 'room.kicked', {'reason': reason})
        self.transport.leave_group(conn, room_id)
        self.transport.disconnect(conn)

    def _system(self, room_id: str, text: str) -> None:
        self.transport.broadcast(room_id, 'chat.system', {'text': text, 'at': self._now_ms()})

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _new_room_id(self) -> str:
        while True:
            room_id = secrets.token_urlsafe(6)
            if not self.repository.exists(room_id):
                return room_id
