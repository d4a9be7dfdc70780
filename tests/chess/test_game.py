"""Unit tests for /chessync/chess/game.py"""

import copy
from collections.abc import Callable
from typing import Optional

import pytest

from chessync.chess.board import Board
from chessync.chess.castling import CastlingDirection
from chessync.chess.game import Game, GamePhase, PendingPromotion
from chessync.chess.moves import Move, is_promotion_square
from chessync.chess.pieces import PROMOTION_OPTIONS, Piece
from chessync.chess.square import Square
from chessync.core.exceptions import (
    EmptySquareError,
    GameOverError,
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
    PromotionPendingError,
)
from chessync.core.models import GameSnapshot, MoveRecord
from chessync.core.shared_types import Color, GameStatus, PieceType

GameFactory = Callable[..., Game]

CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R"
PROMOTION_FEN = "8/P7/8/8/8/7k/8/4K3"


def sq(name: str) -> Square:
    return Square.from_algebraic(name)


def play(game: Game, *moves: str) -> None:
    """Play a sequence of moves given as 'e2e4' strings"""
    for move in moves:
        game.apply_move(sq(move[:2]), sq(move[2:4]))


def destinations(game: Game, square: str) -> set[str]:
    return {target.to_algebraic() for target in game.legal_destinations(sq(square))}


# -- CREATION --
def test_new_game() -> None:
    game = Game.new_game()
    assert game.color_to_move == Color.WHITE
    assert game.status == GameStatus.ACTIVE
    assert game.phase == GamePhase.SETUP
    assert game.history == []
    assert len(game.all_legal_moves(Color.WHITE)) == 20
    assert len(game.all_legal_moves(Color.BLACK)) == 20


def test_new_game_requires_both_kings() -> None:
    with pytest.raises(GameStateError):
        Game.new_game(Board.from_fen("8/8/8/8/8/8/8/4K3"))


def test_start_only_leaves_setup() -> None:
    game = Game.new_game()
    game.start()
    assert game.phase == GamePhase.IN_PROGRESS

    game.resign(Color.WHITE)
    game.start()
    assert game.phase == GamePhase.OVER


# -- MOVES --
def test_first_move() -> None:
    game = Game.new_game()
    record = game.apply_move(sq("e2"), sq("e4"))

    assert record == MoveRecord(Color.WHITE, "e4", 1)
    assert game.history == [record]
    assert game.color_to_move == Color.BLACK
    assert game.phase == GamePhase.IN_PROGRESS
    assert game.board.piece(sq("e4")) == Piece(PieceType.PAWN, Color.WHITE)


def test_history_numbering_and_notation() -> None:
    game = Game.new_game()
    play(game, "e2e4", "d7d5", "e4d5", "g8f6", "g1f3")

    assert [record.notation for record in game.history] == ["e4", "d5", "exd5", "Nf6", "Nf3"]
    assert [record.full_move for record in game.history] == [1, 1, 2, 2, 3]
    assert game.captured == {Color.WHITE: [], Color.BLACK: [PieceType.PAWN]}


@pytest.mark.parametrize(
    "from_square, to_square, error",
    [
        ("e7", "e5", NotYourTurnError),
        ("e4", "e5", EmptySquareError),
        ("e2", "e5", IllegalMoveError),
        ("b1", "d2", IllegalMoveError),
    ],
)
def test_rejected_moves_change_nothing(
    from_square: str, to_square: str, error: type[Exception]
) -> None:
    game = Game.new_game()
    with pytest.raises(error):
        game.apply_move(sq(from_square), sq(to_square))

    assert game.board == Board.starting_position()
    assert game.history == []
    assert game.color_to_move == Color.WHITE
    assert game.phase == GamePhase.SETUP


def test_pinned_piece_cannot_move(game_from_fen: GameFactory) -> None:
    game = game_from_fen("4k3/4r3/8/8/8/8/4B3/4K3")
    assert game.legal_moves(sq("e2")) == []


def test_king_cannot_walk_into_check(game_from_fen: GameFactory) -> None:
    game = game_from_fen("4k3/8/8/8/8/8/r7/4K3")
    assert destinations(game, "e1") == {"d1", "f1"}


def test_legal_moves_never_leave_own_king_attacked(game_from_fen: GameFactory) -> None:
    game = game_from_fen("r3k2r/pp1n1ppp/2p5/3pP1B1/1b1P4/2N2N2/PPP2PPP/R2QK2R")
    position_before = game.board.to_fen()

    moves = game.all_legal_moves(Color.WHITE)
    assert moves
    for move in moves:
        record = game.board.apply(move)
        try:
            assert not game.board.is_check(Color.WHITE), move.to_uci()
        finally:
            game.board.undo(record)

    # computing the moves leaves no trace on the board
    assert game.board.to_fen() == position_before
    assert game.board.king_square(Color.WHITE) == sq("e1")


def test_empty_square_has_no_moves() -> None:
    assert Game.new_game().legal_moves(sq("e4")) == []


# -- CHECKMATE / STALEMATE --
def test_back_rank_mate(game_from_fen: GameFactory) -> None:
    game = game_from_fen("6k1/5ppp/8/8/8/8/8/R5K1")
    record = game.apply_move(sq("a1"), sq("a8"))

    assert record.notation == "Ra8"
    assert game.status == GameStatus.CHECKMATE
    assert game.winner == Color.WHITE
    assert game.in_check
    assert game.is_over

    with pytest.raises(GameOverError):
        game.apply_move(sq("g8"), sq("h8"))


def test_check_is_not_mate(game_from_fen: GameFactory) -> None:
    """Same idea, but the h-pawn has moved: the king escapes to h7"""
    game = game_from_fen("6k1/5pp1/7p/8/8/8/8/R5K1")
    game.apply_move(sq("a1"), sq("a8"))

    assert game.status == GameStatus.ACTIVE
    assert game.in_check
    assert destinations(game, "g8") == {"h7"}


def test_stalemate(game_from_fen: GameFactory) -> None:
    game = game_from_fen("7k/4Q3/6K1/8/8/8/8/8")
    game.apply_move(sq("e7"), sq("f7"))

    assert game.status == GameStatus.STALEMATE
    assert game.winner is None
    assert not game.in_check
    assert game.phase == GamePhase.OVER


# -- CASTLING --
def test_castling_through_game(game_from_fen: GameFactory) -> None:
    game = game_from_fen(CASTLING_FEN)
    assert {"g1", "c1"} <= destinations(game, "e1")

    record = game.apply_move(sq("e1"), sq("g1"))
    assert record.notation == "O-O"
    assert game.board.piece(sq("f1")) == Piece(PieceType.ROOK, Color.WHITE)
    assert game.board.piece(sq("h1")) is None
    assert game.board.king_square(Color.WHITE) == sq("g1")
    assert not game.castling_rights.has_right(CastlingDirection.WHITE_QUEEN_SIDE)

    record = game.apply_move(sq("e8"), sq("c8"))
    assert record.notation == "O-O-O"
    assert game.board.piece(sq("d8")) == Piece(PieceType.ROOK, Color.BLACK)


def test_no_castling_after_king_moved_and_returned(game_from_fen: GameFactory) -> None:
    game = game_from_fen(CASTLING_FEN)
    play(game, "e1f1", "h8g8", "f1e1", "g8h8")

    assert game.board.to_fen() == CASTLING_FEN
    assert destinations(game, "e1").isdisjoint({"g1", "c1"})


def test_no_castling_after_rook_moved_and_returned(game_from_fen: GameFactory) -> None:
    game = game_from_fen(CASTLING_FEN)
    play(game, "h1h2", "e8d8", "h2h1", "d8e8")

    assert "g1" not in destinations(game, "e1")
    assert "c1" in destinations(game, "e1")


def test_no_castling_through_attacked_square(game_from_fen: GameFactory) -> None:
    game = game_from_fen("r3k2r/8/8/8/8/5r2/8/R3K2R")
    assert "g1" not in destinations(game, "e1")
    assert "c1" in destinations(game, "e1")


# -- EN PASSANT --
def test_en_passant() -> None:
    game = Game.new_game()
    play(game, "e2e4", "a7a6", "e4e5", "d7d5")
    assert "d6" in destinations(game, "e5")

    record = game.apply_move(sq("e5"), sq("d6"))
    assert record.notation == "exd6"
    assert game.board.piece(sq("d5")) is None
    assert game.board.piece(sq("d6")) == Piece(PieceType.PAWN, Color.WHITE)
    assert game.captured[Color.BLACK] == [PieceType.PAWN]


def test_en_passant_expires() -> None:
    game = Game.new_game()
    play(game, "e2e4", "a7a6", "e4e5", "d7d5", "h2h3", "a6a5")
    assert "d6" not in destinations(game, "e5")


# -- PROMOTION --
def test_promotion_waits_for_choice(game_from_fen: GameFactory) -> None:
    game = game_from_fen(PROMOTION_FEN)
    game.apply_move(sq("a7"), sq("a8"))

    assert game.pending_promotion == PendingPromotion(sq("a8"), Color.WHITE)
    assert game.phase == GamePhase.AWAITING_PROMOTION
    assert game.color_to_move == Color.WHITE
    assert game.history[-1].notation == "a8"

    with pytest.raises(PromotionPendingError):
        game.apply_move(sq("e1"), sq("d1"))

    record = game.apply_promotion_choice(PieceType.KNIGHT)
    assert record.notation == "a8=N"
    assert game.history[-1].notation == "a8=N"
    assert game.board.piece(sq("a8")) == Piece(PieceType.KNIGHT, Color.WHITE)
    assert game.color_to_move == Color.BLACK
    assert game.phase == GamePhase.IN_PROGRESS
    assert game.pending_promotion is None


def test_invalid_promotion_choice(game_from_fen: GameFactory) -> None:
    game = game_from_fen(PROMOTION_FEN)
    with pytest.raises(IllegalMoveError):
        game.apply_promotion_choice(PieceType.QUEEN)

    game.apply_move(sq("a7"), sq("a8"))
    with pytest.raises(IllegalMoveError):
        game.apply_promotion_choice(PieceType.KING)
    assert game.pending_promotion is not None


def test_promotion_given_up_front(game_from_fen: GameFactory) -> None:
    game = game_from_fen(PROMOTION_FEN)
    record = game.apply_move(sq("a7"), sq("a8"), promote_to=PieceType.QUEEN)

    assert record.notation == "a8=Q"
    assert game.board.piece(sq("a8")) == Piece(PieceType.QUEEN, Color.WHITE)
    assert game.color_to_move == Color.BLACK
    assert game.pending_promotion is None


# -- REMOTE (AUTHORITATIVE) MOVES --
def test_remote_move_uses_given_notation() -> None:
    game = Game.new_game()
    record = game.apply_remote_move(sq("e2"), sq("e4"), notation="e2-e4")
    assert record == MoveRecord(Color.WHITE, "e2-e4", 1)
    assert game.color_to_move == Color.BLACK


def test_remote_move_is_not_filtered() -> None:
    """The server is ground truth: even a bishop jumping over its own pawn gets replayed"""
    game = Game.new_game()
    game.apply_remote_move(sq("c1"), sq("h6"))
    assert game.board.piece(sq("h6")) == Piece(PieceType.BISHOP, Color.WHITE)
    assert game.history[-1].notation == "Bh6"


def test_remote_castling(game_from_fen: GameFactory) -> None:
    game = game_from_fen(CASTLING_FEN)
    record = game.apply_remote_move(sq("e1"), sq("g1"))
    assert record.notation == "O-O"
    assert game.board.to_fen() == "r3k2r/8/8/8/8/8/8/R4RK1"


def test_remote_en_passant(game_from_fen: GameFactory) -> None:
    game = game_from_fen("4k3/8/8/3pP3/8/8/8/4K3")
    game.apply_remote_move(sq("e5"), sq("d6"))
    assert game.board.piece(sq("d5")) is None
    assert game.captured[Color.BLACK] == [PieceType.PAWN]


def test_remote_promotion_defaults_to_queen(game_from_fen: GameFactory) -> None:
    game = game_from_fen(PROMOTION_FEN)
    record = game.apply_remote_move(sq("a7"), sq("a8"))
    assert record.notation == "a8=Q"
    assert game.board.piece(sq("a8")) == Piece(PieceType.QUEEN, Color.WHITE)
    assert game.color_to_move == Color.BLACK


def test_remote_move_from_empty_square() -> None:
    game = Game.new_game()
    with pytest.raises(GameStateError):
        game.apply_remote_move(sq("e4"), sq("e5"))


def test_remote_move_after_game_over() -> None:
    game = Game.new_game()
    game.resign(Color.BLACK)
    with pytest.raises(GameOverError):
        game.apply_remote_move(sq("e2"), sq("e4"))


# -- SNAPSHOTS --
def test_snapshot_replaces_state() -> None:
    source = Game.new_game()
    play(source, "e2e4", "d7d5", "e4d5")

    game = Game.new_game()
    game.apply_snapshot(source.to_snapshot())

    assert game.board == source.board
    assert game.color_to_move == Color.BLACK
    assert game.history == source.history
    assert game.captured == source.captured
    assert game.phase == GamePhase.IN_PROGRESS
    # history length changed: the last move is unknown
    assert game.last_move is None


def test_snapshot_twice_is_idempotent() -> None:
    source = Game.new_game()
    play(source, "e2e4", "e7e5", "e1e2")
    snapshot = source.to_snapshot()

    game = Game.new_game()
    game.apply_snapshot(snapshot)
    state_once = (game.to_snapshot(), game.castling_rights.to_fen(), game.last_move, game.phase, game.in_check)
    game.apply_snapshot(snapshot)
    state_twice = (game.to_snapshot(), game.castling_rights.to_fen(), game.last_move, game.phase, game.in_check)

    assert state_once == state_twice
    assert game.castling_rights.to_fen() == "kq"


def test_snapshot_keeps_last_move_when_history_matches() -> None:
    """Echo + attached snapshot: the replayed double step must still allow en passant"""
    game = Game.new_game()
    play(game, "e2e4", "a7a6", "e4e5")
    game.apply_remote_move(sq("d7"), sq("d5"))

    game.apply_snapshot(game.to_snapshot())
    assert "d6" in destinations(game, "e5")


def test_terminal_snapshot() -> None:
    game = Game.new_game()
    snapshot = game.to_snapshot()
    snapshot.status = GameStatus.RESIGNED
    snapshot.winner = Color.BLACK

    game.apply_snapshot(snapshot)
    assert game.is_over
    assert game.status == GameStatus.RESIGNED
    assert game.winner == Color.BLACK


def test_snapshot_after_game_over_is_ignored() -> None:
    game = Game.new_game()
    game.agree_draw()
    game.apply_snapshot(Game.new_game().to_snapshot())
    assert game.status == GameStatus.DRAW
    assert game.is_over


def test_snapshot_with_invalid_board() -> None:
    game = Game.new_game()
    snapshot = GameSnapshot(
        board_tokens=[[None] * 8 for _ in range(8)],
        current_turn=Color.WHITE,
        status=GameStatus.ACTIVE,
    )
    with pytest.raises(GameStateError):
        game.apply_snapshot(snapshot)
    assert game.board == Board.starting_position()


# -- EXTERNAL TERMINATION --
def test_resign() -> None:
    game = Game.new_game()
    game.resign(Color.WHITE)
    assert game.status == GameStatus.RESIGNED
    assert game.winner == Color.BLACK

    with pytest.raises(GameOverError):
        game.resign(Color.BLACK)
    with pytest.raises(GameOverError):
        game.apply_move(sq("e2"), sq("e4"))


def test_draw_and_timeout() -> None:
    game = Game.new_game()
    game.agree_draw()
    assert game.status == GameStatus.DRAW
    assert game.winner is None

    game = Game.new_game()
    game.flag_timeout(Color.WHITE)
    assert game.status == GameStatus.TIMEOUT
    assert game.winner == Color.BLACK


def test_cannot_end_with_active_status() -> None:
    with pytest.raises(GameStateError):
        Game.new_game().apply_terminal(GameStatus.ACTIVE, None)


# -- MOVE GENERATION COUNTS (PERFT) --
def promotion_choices(game: Game, move: Move) -> tuple[Optional[PieceType], ...]:
    piece = game.board.piece(move.from_square)
    assert piece is not None
    return PROMOTION_OPTIONS if is_promotion_square(piece, move.to_square) else (None,)


def perft(game: Game, depth: int) -> int:
    """Leaf positions `depth` half-moves deep, every promotion piece counts as its own move"""
    moves = [
        (move.from_square, move.to_square, promote_to)
        for move in game.all_legal_moves(game.color_to_move)
        for promote_to in promotion_choices(game, move)
    ]
    if depth == 1:
        return len(moves)

    total = 0
    for from_square, to_square, promote_to in moves:
        child = copy.deepcopy(game)
        child.apply_move(from_square, to_square, promote_to)
        total += perft(child, depth - 1)
    return total


@pytest.mark.parametrize(
    "fen, depth, expected",
    [
        ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR", 3, 8902),
        # castling both ways, en passant, pins and promotions close by
        ("r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R", 3, 97862),
        # en passant that would expose the king along the rank
        ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8", 4, 43238),
    ],
    ids=["starting-position", "kiwipete", "rook-endgame"],
)
def test_perft(game_from_fen: GameFactory, fen: str, depth: int, expected: int) -> None:
    assert perft(game_from_fen(fen), depth) == expected
