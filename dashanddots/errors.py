"""Error taxonomy shared by the coordinator, socket handlers and HTTP routes.

Every failure a client can trigger is a ``RoomError``. Socket handlers turn
it into an acknowledgement, blueprints into a JSON response; neither lets it
escape to the server loop.
"""


class RoomError(Exception):
    code = 'error'
    status_code = 400
    default_message = 'Request failed'

    def __init__(self, message=None, code=None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)

    def to_ack(self) -> dict:
        return {'error': self.message, 'code': self.code}


class InvalidRequest(RoomError):
    """Malformed payload or an operation that makes no sense in the current room state."""
    code = 'invalid_request'
    default_message = 'Invalid request'


class InvalidMove(RoomError):
    """The rule engine rejected a move."""
    code = 'invalid_move'
    default_message = 'Invalid move'


class Forbidden(RoomError):
    code = 'forbidden'
    status_code = 403
    default_message = 'Only the room owner may do that'


class NotFound(RoomError):
    code = 'not_found'
    status_code = 404
    default_message = 'Not found'


class RateLimited(RoomError):
    code = 'rate_limited'
    status_code = 429
    default_message = 'Slow down'


class StoreUnavailable(RoomError):
    """The room store failed; nothing was persisted or broadcast."""
    code = 'store_unavailable'
    status_code = 503
    default_message = 'Room store unavailable'
