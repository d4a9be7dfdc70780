"""The Game board: the configuration of pieces, the cached king squares, and the apply/undo of moves on them"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional, Self

from chessync.chess.castling import CASTLING_RULES
from chessync.chess.moves import (
    MOVEMENT_RULES,
    CandidateMovesFn,
    Move,
    is_square_attacked,
)
from chessync.chess.pieces import Piece
from chessync.chess.square import BOARD_DIMENSIONS, Square, all_squares
from chessync.core.exceptions import EmptySquareError, GameStateError
from chessync.core.shared_types import Color, PieceType

STARTING_POSITION_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR"

# One row of the wire format: 8 tokens, None (or "") for an empty square
TokenGrid = Sequence[Sequence[Optional[str]]]


@dataclass(frozen=True)
class MoveUndo:
    """Everything `Board.undo` needs to put the board back exactly as it was before `Board.apply`."""

    move: Move
    piece: Piece
    captured_piece: Optional[Piece] = None
    captured_square: Optional[Square] = None


@dataclass
class Board:
    position: dict[Square, Optional[Piece]] = field(
        default_factory=lambda: {square: None for square in all_squares()}
    )
    kings: dict[Color, Square] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # the cache always follows the position, whatever the caller passed in
        self.kings = {
            piece.color: square
            for square, piece in self.position.items()
            if piece is not None and piece.type == PieceType.KING
        }

    # --- CONSTRUCTION / SERIALIZATION ---
    @classmethod
    def starting_position(cls) -> Self:
        return cls.from_fen(STARTING_POSITION_FEN)

    @classmethod
    def from_fen(cls, fen_str: str) -> Self:
        """Construct a board using the piece placement part of a FEN string.

        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        means:
        * black pieces are on the 8th rank (row 0), the a-file first
        * pawns cover 7th rank entirely
        * ranks 6 through 3 have 8 consecutive empty squares
        * 1st rank (row 7) holds the white pieces (capital letters)
        """
        fen_by_rows = fen_str.split(" ")[0].split("/")
        if len(fen_by_rows) != BOARD_DIMENSIONS[0]:
            raise GameStateError(f"Cannot interpret {fen_str!r} as a board position.")

        position: dict[Square, Optional[Piece]] = {}
        for row, fen_one_row in enumerate(fen_by_rows):
            col = 0
            for character in fen_one_row:
                if character.isdigit():
                    # A number denotes the amount of empty squares after each other
                    for _ in range(int(character)):
                        position[Square(row, col)] = None
                        col += 1
                else:
                    position[Square(row, col)] = Piece.from_fen(character)
                    col += 1
            if col != BOARD_DIMENSIONS[1]:
                raise GameStateError(
                    f"Row {row} of {fen_str!r} does not describe {BOARD_DIMENSIONS[1]} squares."
                )
        return cls(position)

    def to_fen(self) -> str:
        """Rows are separated by slashes in FEN string."""
        return "/".join(self._row_to_fen(row) for row in range(BOARD_DIMENSIONS[0]))

    def _row_to_fen(self, row: int) -> str:
        fen_characters: list[str] = []
        empty_count = 0
        for col in range(BOARD_DIMENSIONS[1]):
            piece = self.piece(Square(row, col))
            if piece is None:
                empty_count += 1
                continue
            if empty_count > 0:
                fen_characters.append(str(empty_count))
                empty_count = 0
            fen_characters.append(piece.to_fen())

        # if the entire row is empty, then we still place this number in the string
        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    @classmethod
    def from_tokens(cls, grid: TokenGrid) -> Self:
        """Wire format: row-major 8x8 grid of None/"" or '{color}_{type}' tokens."""
        if len(grid) != BOARD_DIMENSIONS[0] or any(
            len(row) != BOARD_DIMENSIONS[1] for row in grid
        ):
            raise GameStateError(
                f"Board state must be a {BOARD_DIMENSIONS[0]}x{BOARD_DIMENSIONS[1]} grid."
            )
        position = {
            Square(row, col): Piece.from_token(token) if token else None
            for row, tokens in enumerate(grid)
            for col, token in enumerate(tokens)
        }
        return cls(position)

    def to_tokens(self) -> list[list[Optional[str]]]:
        return [
            [
                piece.to_token() if (piece := self.piece(Square(row, col))) else None
                for col in range(BOARD_DIMENSIONS[1])
            ]
            for row in range(BOARD_DIMENSIONS[0])
        ]

    # --- QUERIES ---
    def piece(self, square: Square) -> Optional[Piece]:
        return self.position[square]

    def locate_color(self, color: Color) -> list[Square]:
        return [
            square
            for square, piece in self.position.items()
            if piece is not None and piece.color == color
        ]

    def king_square(self, color: Color) -> Square:
        if color not in self.kings:
            raise GameStateError(f"There is no {color} king on the board.")
        return self.kings[color]

    def validate(self) -> None:
        """Exactly one king per color (the rest of the game logic relies on it)"""
        for color in Color:
            count = sum(
                1
                for piece in self.position.values()
                if piece == Piece(PieceType.KING, color)
            )
            if count != 1:
                raise GameStateError(
                    f"Board must hold exactly one {color} king, found {count}."
                )

    def is_attacked(self, square: Square, by_color: Color) -> bool:
        return is_square_attacked(square, by_color, self)

    def is_check(self, color: Color) -> bool:
        """Is the king of `color` attacked?"""
        return self.is_attacked(self.king_square(color), color.opponent)

    def generate_candidate_moves(self, square: Square) -> list[Move]:
        """
        Before knowing the set of legal moves, we use raycasting to find candidate moves, which will later be tested
        for legality (making sure it does not put yourself in check.)

        ---
        NOTE: Castling / en passant are added by the Game, as they depend on more than the position.
        """
        piece = self.piece(square)
        if piece is None:
            return []
        movement_rule: CandidateMovesFn = MOVEMENT_RULES[piece.type]
        return movement_rule(square, self)

    # --- MUTATION ---
    def place_piece(self, piece: Optional[Piece], square: Square) -> None:
        """Single entry point for changing a square: keeps the king cache in sync"""
        previous = self.position[square]
        if (
            previous is not None
            and previous.type == PieceType.KING
            and self.kings.get(previous.color) == square
        ):
            del self.kings[previous.color]
        self.position[square] = piece
        if piece is not None and piece.type == PieceType.KING:
            self.kings[piece.color] = square

    def remove_piece(self, square: Square) -> Optional[Piece]:
        piece = self.position[square]
        self.place_piece(None, square)
        return piece

    def apply(self, move: Move) -> MoveUndo:
        """
        Execute the move: capture (incl. en passant), castling rook, promotion.
        ---

        Returns the record to revert it with `undo`. Nothing gets validated here: that is up to the Game.
        """
        piece = self.piece(move.from_square)
        if piece is None:
            raise EmptySquareError(
                f"No piece on {move.from_square.to_algebraic()} to move."
            )

        # en passant: the pawn taken is NOT on the target square, but next to the moving pawn
        captured_square = (
            Square(move.from_square.row, move.to_square.col)
            if move.is_en_passant
            else move.to_square
        )
        captured_piece = self.remove_piece(captured_square)

        self.remove_piece(move.from_square)
        moved_piece = piece.promote_to(move.promote_to) if move.promote_to else piece
        self.place_piece(moved_piece, move.to_square)

        if move.castling:
            rule = CASTLING_RULES[move.castling]
            rook = self.remove_piece(rule.rook_from)
            self.place_piece(rook, rule.rook_to)

        return MoveUndo(
            move=move,
            piece=piece,
            captured_piece=captured_piece,
            captured_square=captured_square if captured_piece else None,
        )

    def undo(self, record: MoveUndo) -> None:
        move = record.move
        if move.castling:
            rule = CASTLING_RULES[move.castling]
            rook = self.remove_piece(rule.rook_to)
            self.place_piece(rook, rule.rook_from)

        self.remove_piece(move.to_square)
        self.place_piece(record.piece, move.from_square)
        if record.captured_square is not None:
            self.place_piece(record.captured_piece, record.captured_square)
