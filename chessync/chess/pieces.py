"""Defines the chess pieces and their encodings (FEN letters, wire tokens, glyphs)"""

from dataclasses import dataclass
from typing import Optional, Self

from chessync.core.exceptions import GameStateError
from chessync.core.shared_types import Color, PieceType

FEN_TO_PIECE: dict[str, PieceType] = {
    "p": PieceType.PAWN,
    "n": PieceType.KNIGHT,
    "b": PieceType.BISHOP,
    "r": PieceType.ROOK,
    "q": PieceType.QUEEN,
    "k": PieceType.KING,
}

PIECE_TO_FEN: dict[PieceType, str] = {value: key for key, value in FEN_TO_PIECE.items()}

# Letter used in move notation. Pawns have none.
PIECE_LETTERS: dict[PieceType, str] = {
    PieceType.KNIGHT: "N",
    PieceType.BISHOP: "B",
    PieceType.ROOK: "R",
    PieceType.QUEEN: "Q",
    PieceType.KING: "K",
}

PIECE_GLYPHS: dict[Color, dict[PieceType, str]] = {
    Color.WHITE: {
        PieceType.KING: "♔",
        PieceType.QUEEN: "♕",
        PieceType.ROOK: "♖",
        PieceType.BISHOP: "♗",
        PieceType.KNIGHT: "♘",
        PieceType.PAWN: "♙",
    },
    Color.BLACK: {
        PieceType.KING: "♚",
        PieceType.QUEEN: "♛",
        PieceType.ROOK: "♜",
        PieceType.BISHOP: "♝",
        PieceType.KNIGHT: "♞",
        PieceType.PAWN: "♟",
    },
}

PROMOTION_OPTIONS: tuple[PieceType, ...] = (
    PieceType.QUEEN,
    PieceType.ROOK,
    PieceType.BISHOP,
    PieceType.KNIGHT,
)


@dataclass(frozen=True)
class Piece:
    type: PieceType
    color: Color

    @classmethod
    def from_fen(cls, character: str) -> Self:
        # lower case: Black pieces, upper case: White pieces
        color = Color.WHITE if character.isupper() else Color.BLACK
        try:
            piece_type = FEN_TO_PIECE[character.lower()]
        except KeyError as exc:
            raise GameStateError(f"Cannot interpret {character!r} as a piece.") from exc
        return cls(piece_type, color)

    def to_fen(self) -> str:
        return (
            PIECE_TO_FEN[self.type].upper()
            if self.color == Color.WHITE
            else PIECE_TO_FEN[self.type].lower()
        )

    @classmethod
    def from_token(cls, token: str) -> Self:
        """Wire encoding: '{color}_{type}', e.g. 'white_knight'"""
        color_name, _, type_name = token.partition("_")
        try:
            return cls(PieceType(type_name), Color(color_name))
        except ValueError as exc:
            raise GameStateError(f"Cannot interpret {token!r} as a piece.") from exc

    def to_token(self) -> str:
        return f"{self.color}_{self.type}"

    def glyph(self, as_color: Optional[Color] = None) -> str:
        """Unicode symbol. `as_color` lets a view draw a piece in another color's style."""
        return PIECE_GLYPHS[as_color or self.color][self.type]

    def promote_to(self, new_type: PieceType) -> Self:
        return type(self)(new_type, self.color)
