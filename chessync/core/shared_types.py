"""
Type definitions used across layers
"""

from enum import StrEnum


class GameStatus(StrEnum):
    ACTIVE = "active"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    RESIGNED = "resigned"
    DRAW = "draw"
    TIMEOUT = "timeout"


# --- The values double as the tokens used on the wire ("white_pawn", "black_king", ...)
# --- An empty square is modelled as None, so neither enum has an EMPTY/NONE member.


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


class PlayMode(StrEnum):
    LOCAL = "local"
    NETWORKED = "networked"
