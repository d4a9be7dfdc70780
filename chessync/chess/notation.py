"""
Move text for the history panel.

A short algebraic style: no disambiguation, no check/mate markers.
    e4, exd5, Nf3, Bxe5, O-O, O-O-O, e8=Q
"""

from typing import Optional

from chessync.chess.castling import CastlingDirection
from chessync.chess.pieces import PIECE_LETTERS, Piece
from chessync.chess.square import Square
from chessync.core.shared_types import PieceType


def move_notation(
    piece: Piece,
    from_square: Square,
    to_square: Square,
    is_capture: bool,
    castling: Optional[CastlingDirection] = None,
) -> str:
    if castling is not None:
        return castling.notation

    destination = to_square.to_algebraic()
    if piece.type == PieceType.PAWN:
        return f"{from_square.file_letter}x{destination}" if is_capture else destination

    capture_mark = "x" if is_capture else ""
    return f"{PIECE_LETTERS[piece.type]}{capture_mark}{destination}"


def promotion_suffix(piece_type: PieceType) -> str:
    return f"={PIECE_LETTERS[piece_type]}"
