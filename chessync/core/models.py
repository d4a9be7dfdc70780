"""
Boundary layer data model(s).

The sync layer converts wire messages into these before handing them to the Game, and the Game exports its state
as a GameSnapshot. Decouples the pydantic wire models (api layer) from the domain layer.
"""

from dataclasses import dataclass, field
from typing import Optional

from chessync.core.shared_types import Color, GameStatus, PieceType


@dataclass(frozen=True)
class MoveRecord:
    """One line of the move history"""

    player: Color
    notation: str
    full_move: int


@dataclass
class GameSnapshot:
    """Authoritative full state of a game: whatever it says replaces the local values wholesale."""

    board_tokens: list[list[Optional[str]]]
    current_turn: Color
    status: GameStatus
    captured: dict[Color, list[PieceType]] = field(
        default_factory=lambda: {Color.WHITE: [], Color.BLACK: []}
    )
    history: list[MoveRecord] = field(default_factory=list)
    winner: Optional[Color] = None
