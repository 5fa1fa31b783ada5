from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

STATUS_OPEN = 'open'
STATUS_LOCKED = 'locked'
STATUS_FINISHED = 'finished'


@dataclass
class UndoRequest:
    requested_by: str
    target_revision: int
    expires_at: int  # epoch milliseconds

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def to_dict(self) -> dict:
        return {
            'requestedBy': self.requested_by,
            'targetRevision': self.target_revision,
            'expiresAt': self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['UndoRequest']:
        if not data:
            return None
        return cls(
            requested_by=data['requestedBy'],
            target_revision=int(data['targetRevision']),
            expires_at=int(data['expiresAt']),
        )


@dataclass
class RoomMeta:
    owner: Optional[str] = None
    locked: bool = False
    chat_enabled: bool = True
    colors: Dict[str, str] = field(default_factory=dict)
    pending_undo: Optional[UndoRequest] = None
    undo_rejected_revision: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'owner': self.owner,
            'locked': self.locked,
            'chatEnabled': self.chat_enabled,
            'colors': dict(self.colors),
            'pendingUndo': self.pending_undo.to_dict() if self.pending_undo else None,
            'undoRejectedRevision': self.undo_rejected_revision,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'RoomMeta':
        data = data or {}
        rejected = data.get('undoRejectedRevision')
        return cls(
            owner=data.get('owner'),
            locked=bool(data.get('locked', False)),
            chat_enabled=data.get('chatEnabled') is not False,
            colors=dict(data.get('colors') or {}),
            pending_undo=UndoRequest.from_dict(data.get('pendingUndo')),
            undo_rejected_revision=int(rejected) if rejected is not None else None,
        )


@dataclass
class Room:
    """Persisted room record.

    ``state`` stays in its serialized dict form here; only the rule engine
    selected by ``game_id`` knows how to read it.
    """
    room_id: str
    game_id: str
    players: List[str]
    state: Dict[str, Any]
    meta: RoomMeta = field(default_factory=RoomMeta)
    revision: int = 0
    history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.state.get('finished'):
            return STATUS_FINISHED
        if self.meta.locked:
            return STATUS_LOCKED
        return STATUS_OPEN

    @property
    def last_move(self) -> Optional[Dict[str, Any]]:
        return self.history[-1] if self.history else None

    def to_dict(self) -> dict:
        return {
            'gameId': self.game_id,
            'players': list(self.players),
            'state': self.state,
            'meta': self.meta.to_dict(),
            'revision': self.revision,
            'history': list(self.history),
        }

    @classmethod
    def from_dict(cls, room_id: str, data: dict) -> 'Room':
        return cls(
            room_id=room_id,
            game_id=data['gameId'],
            players=list(data.get('players') or []),
            state=data['state'],
            meta=RoomMeta.from_dict(data.get('meta')),
            revision=int(data.get('revision', 0)),
            history=list(data.get('history') or []),
        )
