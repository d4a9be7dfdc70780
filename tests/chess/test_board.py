"""Unit tests for /chessync/chess/board.py"""

import pytest

from chessync.chess.board import STARTING_POSITION_FEN, Board
from chessync.chess.castling import CastlingDirection
from chessync.chess.moves import Move, castling_move
from chessync.chess.pieces import Piece
from chessync.chess.square import Square
from chessync.core.exceptions import EmptySquareError, GameStateError
from chessync.core.shared_types import Color, PieceType

EMPTY_FEN = "/".join(["8"] * 8)


def sq(name: str) -> Square:
    return Square.from_algebraic(name)


# --- CONSTRUCTION / SERIALIZATION ---
def test_starting_position() -> None:
    board = Board.starting_position()
    assert board.to_fen() == STARTING_POSITION_FEN
    assert board.kings == {Color.WHITE: sq("e1"), Color.BLACK: sq("e8")}
    assert board.piece(sq("d8")) == Piece(PieceType.QUEEN, Color.BLACK)
    assert board.piece(sq("e4")) is None


@pytest.mark.parametrize(
    "fen",
    [
        "8/8/8",  # too few rows
        "9/8/8/8/8/8/8/8",  # too many squares in a row
        "7/8/8/8/8/8/8/8",  # too few squares in a row
        "rnbxkbnr/8/8/8/8/8/8/8",  # unknown piece letter
    ],
)
def test_invalid_fen(fen: str) -> None:
    with pytest.raises(GameStateError):
        Board.from_fen(fen)


def test_token_grid_roundtrip() -> None:
    board = Board.from_fen("r3k2r/pp3ppp/2n5/3pP3/8/5N2/PPP2PPP/R3K2R")
    assert Board.from_tokens(board.to_tokens()) == board


def test_from_tokens_accepts_empty_strings() -> None:
    grid = [[""] * 8 for _ in range(8)]
    grid[0][4] = "black_king"
    grid[7][4] = "white_king"
    board = Board.from_tokens(grid)
    assert board.to_fen() == "4k3/8/8/8/8/8/8/4K3"
    assert board.kings[Color.BLACK] == sq("e8")


def test_from_tokens_wrong_shape() -> None:
    with pytest.raises(GameStateError):
        Board.from_tokens([[None] * 8 for _ in range(7)])
    with pytest.raises(GameStateError):
        Board.from_tokens([[None] * 7 for _ in range(8)])


# --- QUERIES ---
def test_validate_requires_one_king_per_color() -> None:
    Board.starting_position().validate()

    with pytest.raises(GameStateError):
        Board.from_fen("4k3/8/8/8/8/8/8/8").validate()
    with pytest.raises(GameStateError):
        Board.from_fen("4k3/8/8/8/8/8/8/3KK3").validate()


def test_missing_king() -> None:
    board = Board.from_fen(EMPTY_FEN)
    with pytest.raises(GameStateError):
        board.king_square(Color.WHITE)


def test_is_check() -> None:
    # black rook on h1 looks along the first rank at the white king
    board = Board.from_fen("4k3/8/8/8/8/8/8/4K2r")
    assert board.is_check(Color.WHITE)
    assert not board.is_check(Color.BLACK)


def test_candidate_moves_of_empty_square() -> None:
    assert Board.starting_position().generate_candidate_moves(sq("e4")) == []


def test_locate_color() -> None:
    board = Board.from_fen("4k3/8/8/8/8/8/4P3/4K3")
    assert set(board.locate_color(Color.WHITE)) == {sq("e2"), sq("e1")}
    assert board.locate_color(Color.BLACK) == [sq("e8")]


# --- APPLY / UNDO ---
def test_place_piece_keeps_king_cache() -> None:
    board = Board.from_fen("4k3/8/8/8/8/8/8/4K3")
    board.remove_piece(sq("e1"))
    assert Color.WHITE not in board.kings
    board.place_piece(Piece(PieceType.KING, Color.WHITE), sq("d2"))
    assert board.king_square(Color.WHITE) == sq("d2")


def test_apply_and_undo_capture() -> None:
    fen = "4k3/8/8/3p4/4P3/8/8/4K3"
    board = Board.from_fen(fen)
    record = board.apply(Move(sq("e4"), sq("d5")))

    assert record.captured_piece == Piece(PieceType.PAWN, Color.BLACK)
    assert record.captured_square == sq("d5")
    assert board.piece(sq("d5")) == Piece(PieceType.PAWN, Color.WHITE)
    assert board.piece(sq("e4")) is None

    board.undo(record)
    assert board.to_fen() == fen


def test_apply_and_undo_en_passant() -> None:
    """The pawn taken stands next to the capturing pawn, not on the target square"""
    fen = "4k3/8/8/3pP3/8/8/8/4K3"
    board = Board.from_fen(fen)
    record = board.apply(Move(sq("e5"), sq("d6"), is_en_passant=True))

    assert record.captured_piece == Piece(PieceType.PAWN, Color.BLACK)
    assert record.captured_square == sq("d5")
    assert board.piece(sq("d5")) is None
    assert board.piece(sq("d6")) == Piece(PieceType.PAWN, Color.WHITE)

    board.undo(record)
    assert board.to_fen() == fen


def test_apply_and_undo_castling() -> None:
    fen = "4k3/8/8/8/8/8/8/4K2R"
    board = Board.from_fen(fen)
    record = board.apply(castling_move(CastlingDirection.WHITE_KING_SIDE))

    assert board.to_fen() == "4k3/8/8/8/8/8/8/5RK1"
    assert board.king_square(Color.WHITE) == sq("g1")

    board.undo(record)
    assert board.to_fen() == fen
    assert board.king_square(Color.WHITE) == sq("e1")


def test_apply_and_undo_promotion() -> None:
    fen = "4k3/P7/8/8/8/8/8/4K3"
    board = Board.from_fen(fen)
    record = board.apply(Move(sq("a7"), sq("a8"), promote_to=PieceType.QUEEN))

    assert board.piece(sq("a8")) == Piece(PieceType.QUEEN, Color.WHITE)
    assert board.piece(sq("a7")) is None

    board.undo(record)
    assert board.to_fen() == fen


def test_apply_from_empty_square() -> None:
    board = Board.starting_position()
    with pytest.raises(EmptySquareError):
        board.apply(Move(sq("e4"), sq("e5")))
