"""Game rule engines.

Pure state transition and validation logic, free of transport and storage
concerns, imported by the room coordinator and HTTP routes.
"""

from .base import GameDefinition, GameRegistry, MoveResult
from .dots_and_boxes import DotsAndBoxes, DotsState


def default_registry() -> GameRegistry:
    return GameRegistry([DotsAndBoxes()])


__all__ = [
    'GameDefinition',
    'GameRegistry',
    'MoveResult',
    'DotsAndBoxes',
    'DotsState',
    'default_registry',
]
