from flask import current_app, request
from flask_socketio import emit
from functools import wraps
from typing import Any, Dict

from dashanddots import socketio, SOCKET_NAMESPACE
from dashanddots.errors import InvalidRequest, RoomError


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _coordinator():
    return current_app.extensions['rooms']


def acknowledged(handler):
    """Run an intent handler and turn its outcome into the client's single ack."""
    @wraps(handler)
    def wrapper(data=None):
        payload = data if isinstance(data, dict) else {}
        try:
            return handler(payload)
        except RoomError as exc:
            return exc.to_ack()
        except Exception:
            current_app.logger.exception(f"[{handler.__name__}] unexpected failure sid={_get_sid()}")
            return {'error': 'Internal error', 'code': 'internal_error'}
    return wrapper


def handle_connect(auth=None):
    _coordinator().connect(_get_sid())
    emit('connected', {'message': f'Connected to {SOCKET_NAMESPACE}'})


def handle_disconnect(reason=None):
    _coordinator().disconnect(_get_sid())


@acknowledged
def handle_room_join(data: Dict[str, Any]):
    return _coordinator().join(data.get('roomId'), data.get('playerId'), _get_sid())


@acknowledged
def handle_game_move(data: Dict[str, Any]):
    return _coordinator().move(_get_sid(), data)


@acknowledged
def handle_undo_request(data: Dict[str, Any]):
    expected = data.get('expectedRevision')
    if expected is not None and (isinstance(expected, bool) or not isinstance(expected, int)):
        raise InvalidRequest('expectedRevision must be an integer')
    return _coordinator().request_undo(_get_sid(), expected)


@acknowledged
def handle_undo_respond(data: Dict[str, Any]):
    if not isinstance(data.get('approve'), bool):
        raise InvalidRequest('approve must be true or false')
    return _coordinator().respond_undo(_get_sid(), data['approve'])


@acknowledged
def handle_chat_message(data: Dict[str, Any]):
    return _coordinator().chat(_get_sid(), data.get('text'))


@acknowledged
def handle_room_lock(data: Dict[str, Any]):
    coordinator = _coordinator()
    entry = coordinator.sessions.lookup(_get_sid())
    if entry is None:
        raise InvalidRequest('Not in a room', code='not_in_room')
    if not isinstance(data.get('locked'), bool):
        raise InvalidRequest('locked must be true or false')
    room_id, player = entry
    return coordinator.set_lock(room_id, player, data['locked'])


@acknowledged
def handle_room_kick(data: Dict[str, Any]):
    coordinator = _coordinator()
    entry = coordinator.sessions.lookup(_get_sid())
    if entry is None:
        raise InvalidRequest('Not in a room', code='not_in_room')
    room_id, player = entry
    return coordinator.kick(room_id, player, data.get('target'))


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('room.join', handle_room_join, namespace=SOCKET_NAMESPACE)
    socketio.on_event('game.move', handle_game_move, namespace=SOCKET_NAMESPACE)
    socketio.on_event('game.undo.request', handle_undo_request, namespace=SOCKET_NAMESPACE)
    socketio.on_event('game.undo.respond', handle_undo_respond, namespace=SOCKET_NAMESPACE)
    socketio.on_event('chat.message', handle_chat_message, namespace=SOCKET_NAMESPACE)
    socketio.on_event('room.lock', handle_room_lock, namespace=SOCKET_NAMESPACE)
    socketio.on_event('room.kick', handle_room_kick, namespace=SOCKET_NAMESPACE)
