"""Dots and Boxes rules.

Board dimensions count boxes, so a ``rows x cols`` board has
``(rows + 1) x (cols + 1)`` dots. Edges join two adjacent dots and are keyed
by their sorted endpoint strings (``"0,0|0,1"``); cells are keyed ``"r,c"``.
Completing one or more boxes keeps the turn with the same player.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .base import MoveResult

Dot = Tuple[int, int]

GAME_FINISHED = 'Game is finished'
NOT_YOUR_TURN = 'Not your turn'
MISSING_ENDPOINTS = 'Missing edge endpoints'
MALFORMED_ENDPOINTS = 'Malformed edge endpoints'
NOT_ADJACENT = 'Dots must be adjacent'
OUT_OF_BOUNDS = 'Out of bounds'
EDGE_TAKEN = 'Edge already taken'

DEFAULT_SIZE = 5
MIN_SIZE = 2
DEFAULT_PLAYERS = ('p1', 'p2')


def dot_key(dot: Dot) -> str:
    return f'{dot[0]},{dot[1]}'


def edge_key(a: Dot, b: Dot) -> str:
    k1, k2 = dot_key(a), dot_key(b)
    return f'{k1}|{k2}' if k1 < k2 else f'{k2}|{k1}'


def is_adjacent(a: Dot, b: Dot) -> bool:
    dr = abs(a[0] - b[0])
    dc = abs(a[1] - b[1])
    return (dr == 1 and dc == 0) or (dr == 0 and dc == 1)


def cell_edges(r: int, c: int) -> List[str]:
    """Keys of the four edges bounding cell (r, c): top, right, bottom, left."""
    return [
        edge_key((r, c), (r, c + 1)),
        edge_key((r, c + 1), (r + 1, c + 1)),
        edge_key((r + 1, c), (r + 1, c + 1)),
        edge_key((r, c), (r + 1, c)),
    ]


def total_edges(rows: int, cols: int) -> int:
    return (rows + 1) * cols + (cols + 1) * rows


def _parse_dot(value) -> Optional[Dot]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    r, c = value
    # bool is an int subclass; true/false are not coordinates
    if isinstance(r, bool) or isinstance(c, bool):
        return None
    if not isinstance(r, int) or not isinstance(c, int):
        return None
    return (r, c)


def _dimension(value) -> int:
    return DEFAULT_SIZE if value is None else int(value)


def parse_move(move) -> Tuple[Optional[Dot], Optional[Dot], Optional[str]]:
    """Extract the two endpoints of a move payload, or a rejection reason."""
    if not isinstance(move, dict) or move.get('a') is None or move.get('b') is None:
        return None, None, MISSING_ENDPOINTS
    a, b = _parse_dot(move['a']), _parse_dot(move['b'])
    if a is None or b is None:
        return None, None, MALFORMED_ENDPOINTS
    return a, b, None


@dataclass
class DotsState:
    rows: int
    cols: int
    players: List[str]
    current_player: str
    finished: bool = False
    edges: Dict[str, int] = field(default_factory=dict)
    edge_owners: Dict[str, str] = field(default_factory=dict)
    owners: Dict[str, Optional[str]] = field(default_factory=dict)
    remaining_edges: int = 0
    scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'rows': self.rows,
            'cols': self.cols,
            'players': list(self.players),
            'currentPlayer': self.current_player,
            'finished': self.finished,
            'edges': dict(self.edges),
            'edgeOwners': dict(self.edge_owners),
            'owners': dict(self.owners),
            'remainingEdges': self.remaining_edges,
            'scores': dict(self.scores),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'DotsState':
        return cls(
            rows=int(data['rows']),
            cols=int(data['cols']),
            players=list(data['players']),
            current_player=data['currentPlayer'],
            finished=bool(data.get('finished', False)),
            edges=dict(data.get('edges') or {}),
            edge_owners=dict(data.get('edgeOwners') or {}),
            owners=dict(data.get('owners') or {}),
            remaining_edges=int(data.get('remainingEdges', 0)),
            scores={p: int(s) for p, s in (data.get('scores') or {}).items()},
        )


class DotsAndBoxes:
    id = 'dots-and-boxes'
    name = 'Dots & Boxes'
    min_players = 2
    max_players = 2
    supports_undo = True

    def create_initial_state(self, options=None) -> DotsState:
        options = options or {}
        rows = max(MIN_SIZE, _dimension(options.get('rows')))
        cols = max(MIN_SIZE, _dimension(options.get('cols')))
        players = list(options.get('players') or DEFAULT_PLAYERS)
        return DotsState(
            rows=rows,
            cols=cols,
            players=players,
            current_player=players[0],
            remaining_edges=total_edges(rows, cols),
            scores={p: 0 for p in players},
        )

    def load_state(self, data: dict) -> DotsState:
        return DotsState.from_dict(data)

    def validate_move(self, state: DotsState, move, player: str):
        if state.finished:
            return GAME_FINISHED
        if player != state.current_player:
            return NOT_YOUR_TURN
        a, b, reason = parse_move(move)
        if reason:
            return reason
        if not is_adjacent(a, b):
            return NOT_ADJACENT
        for r, c in (a, b):
            if r < 0 or c < 0 or r > state.rows or c > state.cols:
                return OUT_OF_BOUNDS
        if edge_key(a, b) in state.edges:
            return EDGE_TAKEN
        return True

    def adjacent_cells(self, state: DotsState, a: Dot, b: Dot) -> List[Tuple[int, int]]:
        """The one (boundary) or two cells that share the edge a-b."""
        cells = []
        if a[0] == b[0]:
            r, c = a[0], min(a[1], b[1])
            if r > 0:
                cells.append((r - 1, c))
            if r < state.rows:
                cells.append((r, c))
        else:
            c, r = a[1], min(a[0], b[0])
            if c > 0:
                cells.append((r, c - 1))
            if c < state.cols:
                cells.append((r, c))
        return cells

    def apply_move(self, state: DotsState, move, player: str) -> MoveResult:
        """Claim a validated edge. Callers must run validate_move first."""
        state = copy.deepcopy(state)
        a, b, _ = parse_move(move)
        key = edge_key(a, b)
        state.edges[key] = 1
        state.edge_owners[key] = player

        boxes = 0
        for r, c in self.adjacent_cells(state, a, b):
            cell = f'{r},{c}'
            complete = all(e in state.edges for e in cell_edges(r, c))
            if complete and not state.owners.get(cell):
                state.owners[cell] = player
                boxes += 1

        if boxes:
            state.scores[player] = state.scores.get(player, 0) + boxes
        else:
            idx = state.players.index(state.current_player)
            state.current_player = state.players[(idx + 1) % len(state.players)]

        self._recount(state)
        events = [{'type': 'score', 'payload': {'player': player, 'boxes': boxes}}] if boxes else []
        return MoveResult(state=state, events=events, record={'a': list(a), 'b': list(b)})

    def undo_move(self, state: DotsState, move, player: str) -> DotsState:
        state = copy.deepcopy(state)
        a, b, reason = parse_move(move)
        if reason:
            raise ValueError(reason)
        key = edge_key(a, b)
        state.edges.pop(key, None)
        state.edge_owners.pop(key, None)

        # A cell next to the edge can only be complete if the edge was present,
        # so every one the mover owns was won by this move.
        boxes = 0
        for r, c in self.adjacent_cells(state, a, b):
            cell = f'{r},{c}'
            if state.owners.get(cell) == player:
                del state.owners[cell]
                boxes += 1
        if boxes:
            state.scores[player] = max(0, state.scores.get(player, 0) - boxes)

        state.current_player = player
        self._recount(state)
        return state

    def _recount(self, state: DotsState) -> None:
        state.remaining_edges = total_edges(state.rows, state.cols) - len(state.edges)
        state.finished = state.remaining_edges <= 0
