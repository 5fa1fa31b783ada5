from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union


@dataclass
class MoveResult:
    state: Any
    events: List[Dict[str, Any]] = field(default_factory=list)
    # canonical form of the applied move, kept in the room history for undo
    record: Optional[Dict[str, Any]] = None


class GameDefinition(Protocol):
    """Capability set every rule engine exposes to the coordinator.

    Engines are pure: no I/O, and ``apply_move``/``undo_move`` return a new
    state value rather than touching the one they were given. States know
    how to render themselves with ``to_dict()`` for the room record.
    """

    id: str
    name: str
    min_players: int
    max_players: int
    supports_undo: bool

    def create_initial_state(self, options: Dict[str, Any]) -> Any:
        ...

    def load_state(self, data: Dict[str, Any]) -> Any:
        ...

    def validate_move(self, state: Any, move: Any, player: str) -> Union[bool, str]:
        """Return True when legal, otherwise a human readable rejection reason."""
        ...

    def apply_move(self, state: Any, move: Any, player: str) -> MoveResult:
        ...

    def undo_move(self, state: Any, move: Any, player: str) -> Any:
        """Inverse of apply_move for the most recent move (only if supports_undo)."""
        ...


class GameRegistry:
    """Immutable table of rule engines keyed by game id, built once at startup."""

    def __init__(self, games: Iterable[GameDefinition]):
        table = {}
        for game in games:
            if game.id in table:
                raise ValueError(f'duplicate game id {game.id!r}')
            table[game.id] = game
        self._games = MappingProxyType(table)

    def get(self, game_id: str) -> Optional[GameDefinition]:
        return self._games.get(game_id)

    def __contains__(self, game_id) -> bool:
        return game_id in self._games

    def __iter__(self):
        return iter(self._games.values())

    def __len__(self) -> int:
        return len(self._games)

    def describe(self) -> List[Dict[str, Any]]:
        return [
            {
                'id': g.id,
                'name': g.name,
                'minPlayers': g.min_players,
                'maxPlayers': g.max_players,
            }
            for g in self._games.values()
        ]
