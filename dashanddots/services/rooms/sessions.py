import threading
from typing import Dict, List, Optional, Tuple


class SessionTracker:
    """Maps (room, player identity) to the one connection allowed to act as it.

    Process-local and rebuilt as clients reconnect. ``claim`` is atomic: two
    connections racing for the same identity each see a consistent holder,
    and the loser is handed back to the caller for eviction.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._holders: Dict[str, Dict[str, str]] = {}
        self._by_conn: Dict[str, Tuple[str, str]] = {}

    def claim(self, room_id: str, player_id: str, conn: str) -> Optional[str]:
        """Register conn as holder; return the displaced connection, if any."""
        with self._lock:
            previous_entry = self._by_conn.get(conn)
            if previous_entry and previous_entry != (room_id, player_id):
                self._drop(conn, previous_entry)

            by_player = self._holders.setdefault(room_id, {})
            displaced = by_player.get(player_id)
            if displaced == conn:
                displaced = None
            elif displaced is not None:
                self._by_conn.pop(displaced, None)

            by_player[player_id] = conn
            self._by_conn[conn] = (room_id, player_id)
            return displaced

    def release(self, conn: str) -> Optional[Tuple[str, str]]:
        """Forget conn. Returns the (room, player) it held, or None."""
        with self._lock:
            entry = self._by_conn.get(conn)
            if entry is None:
                return None
            self._drop(conn, entry)
            return entry

    def lookup(self, conn: str) -> Optional[Tuple[str, str]]:
        with self._lock:
            return self._by_conn.get(conn)

    def holder(self, room_id: str, player_id: str) -> Optional[str]:
        with self._lock:
            return self._holders.get(room_id, {}).get(player_id)

    def online(self, room_id: str) -> List[str]:
        with self._lock:
            return sorted(self._holders.get(room_id, {}))

    def _drop(self, conn: str, entry: Tuple[str, str]) -> None:
        room_id, player_id = entry
        self._by_conn.pop(conn, None)
        by_player = self._holders.get(room_id)
        if by_player and by_player.get(player_id) == conn:
            del by_player[player_id]
            if not by_player:
                del self._holders[room_id]
