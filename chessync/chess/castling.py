"""
Castling: the squares involved, the rights (explicit flags, never inferred from position) and the legality check.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol, Self

from chessync.chess.pieces import Piece
from chessync.chess.square import Square
from chessync.core.shared_types import Color, PieceType


class AttackBoard(Protocol):
    """Just the parts the castling check needs"""

    def piece(self, square: Square) -> Optional[Piece]: ...
    def is_attacked(self, square: Square, by_color: Color) -> bool: ...


class CastlingSide(Enum):
    KING_SIDE = "kingside"
    QUEEN_SIDE = "queenside"


class CastlingDirection(Enum):
    """The four castling directions. Values are the FEN encodings."""

    WHITE_KING_SIDE = "K"
    WHITE_QUEEN_SIDE = "Q"
    BLACK_KING_SIDE = "k"
    BLACK_QUEEN_SIDE = "q"

    @property
    def color(self) -> Color:
        return Color.WHITE if self.value.isupper() else Color.BLACK

    @property
    def side(self) -> CastlingSide:
        return (
            CastlingSide.KING_SIDE
            if self.value.lower() == "k"
            else CastlingSide.QUEEN_SIDE
        )

    @property
    def notation(self) -> str:
        return "O-O" if self.side == CastlingSide.KING_SIDE else "O-O-O"


@dataclass(frozen=True)
class CastlingSquares:
    """
    Store the squares where king/rook start from/end up in by castling.
    """

    king_from: Square
    king_to: Square
    rook_from: Square
    rook_to: Square

    @classmethod
    def from_algebraic(cls, k_from: str, k_to: str, r_from: str, r_to: str) -> Self:
        """Convenience method: to make mapping shown below (from CastlingDirection) more readable"""
        king_from = Square.from_algebraic(k_from)
        king_to = Square.from_algebraic(k_to)
        rook_from = Square.from_algebraic(r_from)
        rook_to = Square.from_algebraic(r_to)
        return cls(king_from, king_to, rook_from, rook_to)

    def between(self) -> list[Square]:
        """Squares strictly between king and rook: these must all be empty."""
        low, high = sorted((self.king_from.col, self.rook_from.col))
        return [Square(self.king_from.row, col) for col in range(low + 1, high)]

    def king_path(self) -> list[Square]:
        """Squares the king stands on, passes and lands on: none of these may be attacked."""
        step = 1 if self.king_to.col > self.king_from.col else -1
        return [
            Square(self.king_from.row, col)
            for col in range(self.king_from.col, self.king_to.col + step, step)
        ]


# The moves (in classical chess) made when castling
CASTLING_RULES: dict[CastlingDirection, CastlingSquares] = {
    CastlingDirection.WHITE_KING_SIDE: CastlingSquares.from_algebraic(
        "e1", "g1", "h1", "f1"
    ),
    CastlingDirection.WHITE_QUEEN_SIDE: CastlingSquares.from_algebraic(
        "e1", "c1", "a1", "d1"
    ),
    CastlingDirection.BLACK_KING_SIDE: CastlingSquares.from_algebraic(
        "e8", "g8", "h8", "f8"
    ),
    CastlingDirection.BLACK_QUEEN_SIDE: CastlingSquares.from_algebraic(
        "e8", "c8", "a8", "d8"
    ),
}


def directions_for(color: Color) -> list[CastlingDirection]:
    return [direction for direction in CastlingDirection if direction.color == color]


def direction_for_king_move(
    color: Color, king_from: Square, king_to: Square
) -> Optional[CastlingDirection]:
    """A king move matching one of the castling rules of its color IS that castling move."""
    for direction in directions_for(color):
        rule = CASTLING_RULES[direction]
        if rule.king_from == king_from and rule.king_to == king_to:
            return direction
    return None


@dataclass
class CastlingRights:
    """
    Moved-flags tracked per direction.
    ----

    A right is revoked once the king moves, once the matching rook leaves its corner, or once that rook is taken on
    its corner. A king or rook walking back to its original square does NOT restore the right.
    """

    rights: dict[CastlingDirection, bool] = field(
        default_factory=lambda: {direction: True for direction in CastlingDirection}
    )

    def has_right(self, direction: CastlingDirection) -> bool:
        return self.rights[direction]

    def revoke(self, direction: CastlingDirection) -> None:
        self.rights[direction] = False

    def revoke_all(self, color: Color) -> None:
        for direction in directions_for(color):
            self.revoke(direction)

    def update_after_move(
        self, piece: Piece, from_square: Square, to_square: Square
    ) -> None:
        """Revoke whatever the move (made by `piece`) cost either player."""
        if piece.type == PieceType.KING:
            self.revoke_all(piece.color)

        for direction, rule in CASTLING_RULES.items():
            # the rook leaves its corner, or something lands on the corner (capturing the rook that stood there)
            if from_square == rule.rook_from or to_square == rule.rook_from:
                self.revoke(direction)

    def restrict_to_position(self, board: AttackBoard) -> None:
        """After a wholesale board replacement: keep only rights whose king and rook still stand at home."""
        for direction, rule in CASTLING_RULES.items():
            king = board.piece(rule.king_from)
            rook = board.piece(rule.rook_from)
            if king != Piece(PieceType.KING, direction.color) or rook != Piece(
                PieceType.ROOK, direction.color
            ):
                self.revoke(direction)

    def to_fen(self) -> str:
        castling_chars = "".join(
            direction.value for direction in CastlingDirection if self.rights[direction]
        )
        return castling_chars or "-"


def can_castle(
    board: AttackBoard, direction: CastlingDirection, rights: CastlingRights
) -> bool:
    """
    Legal for the given direction iff
    ---

    * the right was not revoked
    * the king stands on its original square, the rook on its original corner
    * the king is not in check
    * every square strictly between king and rook is empty
    * no square on the king's path (current, passed, landing) is attacked
    """
    if not rights.has_right(direction):
        return False

    color = direction.color
    rule = CASTLING_RULES[direction]
    if board.piece(rule.king_from) != Piece(PieceType.KING, color):
        return False
    if board.piece(rule.rook_from) != Piece(PieceType.ROOK, color):
        return False

    if any(board.piece(square) is not None for square in rule.between()):
        return False

    opponent = color.opponent
    # the king's own square comes first in the path: covers "cannot castle out of check"
    return not any(board.is_attacked(square, opponent) for square in rule.king_path())


def legal_castling_directions(
    board: AttackBoard, color: Color, rights: CastlingRights
) -> list[CastlingDirection]:
    return [
        direction
        for direction in directions_for(color)
        if can_castle(board, direction, rights)
    ]
