from typing import Any, Optional, Protocol


def group_name(room_id: str) -> str:
    return f"room:{room_id}"


class Transport(Protocol):
    """Delivery primitives the coordinator broadcasts through."""

    def send(self, conn: str, event: str, payload: Any) -> None:
        ...

    def broadcast(self, room_id: str, event: str, payload: Any, skip: Optional[str] = None) -> None:
        ...

    def join_group(self, conn: str, room_id: str) -> None:
        ...

    def leave_group(self, conn: str, room_id: str) -> None:
        ...

    def disconnect(self, conn: str) -> None:
        ...


class SocketIOTransport:
    """Transport over Flask-SocketIO; connections are Socket.IO session ids."""

    def __init__(self, socketio, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def send(self, conn, event, payload):
        self.socketio.emit(event, payload, to=conn, namespace=self.namespace)

    def broadcast(self, room_id, event, payload, skip=None):
        self.socketio.emit(event, payload, to=group_name(room_id), namespace=self.namespace, skip_sid=skip)

    def join_group(self, conn, room_id):
        self.socketio.server.enter_room(conn, group_name(room_id), namespace=self.namespace)

    def leave_group(self, conn, room_id):
        self.socketio.server.leave_room(conn, group_name(room_id), namespace=self.namespace)

    def disconnect(self, conn):
        self.socketio.server.disconnect(conn, namespace=self.namespace)
