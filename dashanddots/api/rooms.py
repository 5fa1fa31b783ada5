from flask import Blueprint, current_app, jsonify, request

from dashanddots.errors import InvalidRequest, RoomError

rooms = Blueprint('rooms', __name__)

DEFAULT_GAME_ID = 'dots-and-boxes'
DEFAULT_PLAYERS = ['p1', 'p2']


def _coordinator():
    return current_app.extensions['rooms']


@rooms.errorhandler(RoomError)
def handle_room_error(exc):
    return jsonify(exc.to_ack()), exc.status_code


def _board_size(value, name):
    cfg = current_app.config
    lo = int(cfg.get('BOARD_MIN_SIZE', 5))
    hi = int(cfg.get('BOARD_MAX_SIZE', 40))
    if value is None:
        return lo
    if isinstance(value, bool):
        raise InvalidRequest(f'{name} must be a number')
    try:
        size = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f'{name} must be a number')
    return max(lo, min(hi, size))


def _players(raw, game):
    if raw is None:
        raw = list(DEFAULT_PLAYERS)
    if not isinstance(raw, list) or not all(isinstance(p, str) for p in raw):
        raise InvalidRequest('players must be a list of names')
    players = [p.strip() for p in raw if p.strip()][:game.max_players]
    if len(set(players)) != len(players):
        raise InvalidRequest('Player names must be unique')
    if len(players) < game.min_players:
        raise InvalidRequest(f'At least {game.min_players} players are required')
    return players


@rooms.route('', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    coordinator = _coordinator()
    game_id = data.get('gameId') or DEFAULT_GAME_ID
    game = coordinator.registry.get(game_id)
    if game is None:
        raise InvalidRequest('Unknown gameId', code='unknown_game')

    players = _players(data.get('players'), game)
    rows = _board_size(data.get('rows'), 'rows')
    cols = _board_size(data.get('cols'), 'cols')

    owner = data.get('owner')
    if owner is not None and (not isinstance(owner, str) or not owner.strip()):
        raise InvalidRequest('owner must be a name')
    colors = data.get('colors') or {}
    if not isinstance(colors, dict):
        raise InvalidRequest('colors must be an object')

    room = coordinator.create_room(
        game_id,
        players,
        options={'rows': rows, 'cols': cols},
        owner=owner.strip() if owner else None,
        locked=bool(data.get('locked', False)),
        chat_enabled=data.get('chatEnabled') is not False,
        colors={str(k): str(v) for k, v in colors.items()},
    )
    return jsonify({'roomId': room.room_id, 'gameId': room.game_id}), 201


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    return jsonify(_coordinator().describe(room_id))


@rooms.route('/<string:room_id>/lock', methods=['POST'])
def set_lock(room_id):
    data = request.get_json(silent=True) or {}
    requester = data.get('requester')
    if not isinstance(data.get('locked'), bool):
        raise InvalidRequest('locked must be true or false')
    return jsonify(_coordinator().set_lock(room_id, requester, data['locked']))


@rooms.route('/<string:room_id>/kick', methods=['POST'])
def kick_player(room_id):
    data = request.get_json(silent=True) or {}
    return jsonify(_coordinator().kick(room_id, data.get('requester'), data.get('target')))
