"""
The Game class is the entrypoint into the domain layer for the service and sync layers.
It owns the board and all game metadata (turn, history, captures, castling rights, status), and is the only place
where they get mutated. The transitions:

* apply_move              -- a local move, fully validated
* apply_remote_move       -- a move broadcast by the server, trusted (no legality filter)
* apply_promotion_choice  -- completes a half-move that ended with a pawn on the last rank
* apply_snapshot          -- authoritative full state from the server, replaces everything
* apply_terminal          -- resignation / draw agreement / timeout
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional, Self

from chessync.chess.board import Board
from chessync.chess.castling import (
    CastlingRights,
    direction_for_king_move,
    legal_castling_directions,
)
from chessync.chess.moves import (
    LastMove,
    Move,
    castling_move,
    en_passant_moves,
    is_promotion_square,
)
from chessync.chess.notation import move_notation, promotion_suffix
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

logger = logging.getLogger(__name__)


class GamePhase(Enum):
    SETUP = auto()
    IN_PROGRESS = auto()
    AWAITING_PROMOTION = auto()
    OVER = auto()


@dataclass(frozen=True)
class PendingPromotion:
    square: Square
    color: Color


def _empty_captures() -> dict[Color, list[PieceType]]:
    return {Color.WHITE: [], Color.BLACK: []}


@dataclass
class Game:
    board: Board
    color_to_move: Color = Color.WHITE
    history: list[MoveRecord] = field(default_factory=list)
    captured: dict[Color, list[PieceType]] = field(default_factory=_empty_captures)
    castling_rights: CastlingRights = field(default_factory=CastlingRights)
    last_move: Optional[LastMove] = None
    pending_promotion: Optional[PendingPromotion] = None
    status: GameStatus = GameStatus.ACTIVE
    phase: GamePhase = GamePhase.SETUP
    winner: Optional[Color] = None
    in_check: bool = False

    @classmethod
    def new_game(
        cls, board: Optional[Board] = None, color_to_move: Color = Color.WHITE
    ) -> Self:
        """Standard starting position unless a board is given (handy for puzzles / tests)"""
        board = board if board is not None else Board.starting_position()
        board.validate()
        game = cls(board=board, color_to_move=color_to_move)
        game.castling_rights.restrict_to_position(board)
        game.in_check = board.is_check(color_to_move)
        return game

    # --- STATE QUERIES ---
    @property
    def is_over(self) -> bool:
        return self.phase == GamePhase.OVER

    @property
    def is_awaiting_promotion(self) -> bool:
        return self.pending_promotion is not None

    def start(self) -> None:
        """Networked games start once both players are present (local games start with their first move)"""
        if self.phase == GamePhase.SETUP:
            self.phase = GamePhase.IN_PROGRESS

    def to_snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            board_tokens=self.board.to_tokens(),
            current_turn=self.color_to_move,
            status=self.status,
            captured={color: list(types) for color, types in self.captured.items()},
            history=list(self.history),
            winner=self.winner,
        )

    # --- MOVE GENERATION ---
    def legal_moves(self, square: Square) -> list[Move]:
        """
        Legal moves of the piece standing on `square`, whoever's turn it is.
        ----

        1. candidate moves from the basic movement rules (the board does this)
        2. king: add the castling moves that are currently allowed
        3. pawn: add en passant captures (depends on the last move)
        4. remove every move that would leave your own king attacked
        """
        piece = self.board.piece(square)
        if piece is None:
            return []

        candidate_moves = self.board.generate_candidate_moves(square)
        if piece.type == PieceType.KING:
            candidate_moves.extend(
                castling_move(direction)
                for direction in legal_castling_directions(
                    self.board, piece.color, self.castling_rights
                )
            )
        if piece.type == PieceType.PAWN:
            candidate_moves.extend(
                move
                for move in en_passant_moves(self.last_move, piece.color, self.board)
                if move.from_square == square
            )

        return [
            move
            for move in candidate_moves
            if not self._is_putting_yourself_in_check(move, piece.color)
        ]

    def legal_destinations(self, square: Square) -> list[Square]:
        return [move.to_square for move in self.legal_moves(square)]

    def all_legal_moves(self, color: Color) -> list[Move]:
        return [
            move
            for square in self.board.locate_color(color)
            for move in self.legal_moves(square)
        ]

    def has_legal_move(self, color: Color) -> bool:
        return any(self.legal_moves(square) for square in self.board.locate_color(color))

    def find_legal_move(self, from_square: Square, to_square: Square) -> Optional[Move]:
        return next(
            (move for move in self.legal_moves(from_square) if move.to_square == to_square),
            None,
        )

    def _is_putting_yourself_in_check(self, move: Move, color: Color) -> bool:
        """Apply the move, look at the king, and ALWAYS undo it again."""
        record = self.board.apply(move)
        try:
            return self.board.is_check(color)
        finally:
            self.board.undo(record)

    # --- TRANSITIONS ---
    def apply_move(
        self,
        from_square: Square,
        to_square: Square,
        promote_to: Optional[PieceType] = None,
    ) -> MoveRecord:
        """
        Attempt a move for the side to move.
        ----

        Raises an InputRejected subclass (and leaves everything untouched) if the move is not allowed.
        A pawn reaching the last rank without `promote_to` suspends the turn until `apply_promotion_choice`.
        """
        self._assert_accepting_moves()

        piece = self.board.piece(from_square)
        if piece is None:
            raise EmptySquareError(f"No piece on {from_square.to_algebraic()}.")
        if piece.color != self.color_to_move:
            raise NotYourTurnError(
                f"It is {self.color_to_move}'s turn, cannot move a {piece.color} piece."
            )

        move = self.find_legal_move(from_square, to_square)
        if move is None:
            raise IllegalMoveError(
                f"Move not allowed: {from_square.to_algebraic()}{to_square.to_algebraic()}"
            )
        if promote_to is not None:
            self._assert_promotion_option(promote_to)
            if is_promotion_square(piece, to_square):
                move = replace(move, promote_to=promote_to)

        return self._execute(move)

    def apply_remote_move(
        self,
        from_square: Square,
        to_square: Square,
        promote_to: Optional[PieceType] = None,
        notation: Optional[str] = None,
    ) -> MoveRecord:
        """
        Replay a move the server already accepted.
        ---

        No legality filter, no turn check: the broadcast is ground truth. Castling and en passant are recognised from
        the geometry of the move. A pawn arriving on the last rank without a promotion choice becomes a queen.
        """
        if self.is_over:
            raise GameOverError(f"Game is over ({self.status}), cannot replay a move.")

        piece = self.board.piece(from_square)
        if piece is None:
            raise GameStateError(
                f"Out of sync: no piece on {from_square.to_algebraic()} to replay the move from."
            )

        castling = (
            direction_for_king_move(piece.color, from_square, to_square)
            if piece.type == PieceType.KING
            else None
        )
        is_en_passant = (
            piece.type == PieceType.PAWN
            and from_square.col != to_square.col
            and self.board.piece(to_square) is None
        )
        if promote_to is None and is_promotion_square(piece, to_square):
            promote_to = PieceType.QUEEN

        move = Move(from_square, to_square, promote_to, castling, is_en_passant)
        logger.debug("Replaying authoritative move %s", move.to_uci())
        return self._execute(move, notation=notation)

    def apply_promotion_choice(self, piece_type: PieceType) -> MoveRecord:
        if self.pending_promotion is None:
            raise IllegalMoveError("There is no pawn waiting to be promoted.")
        self._assert_promotion_option(piece_type)

        pending = self.pending_promotion
        self.board.place_piece(Piece(piece_type, pending.color), pending.square)

        # amend the newest entry: it holds the pawn move that reached the last rank
        last_entry = self.history[-1]
        amended = replace(last_entry, notation=last_entry.notation + promotion_suffix(piece_type))
        self.history[-1] = amended

        self.pending_promotion = None
        self.phase = GamePhase.IN_PROGRESS
        self._complete_half_move(pending.color)
        return amended

    def apply_snapshot(self, snapshot: GameSnapshot) -> None:
        """
        Overwrite board, turn, status, captures and history with the server's values.
        ---

        Idempotent: applying the same snapshot again changes nothing. The last move is only kept while the
        snapshot's history agrees in length with ours (that is: it already contains the move we replayed).
        A game that is over stays over: snapshots arriving afterwards are ignored.
        """
        if self.is_over:
            logger.debug("Game is over (%s), ignoring snapshot", self.status)
            return

        board = Board.from_tokens(snapshot.board_tokens)
        if snapshot.status == GameStatus.ACTIVE:
            board.validate()

        if len(snapshot.history) != len(self.history):
            self.last_move = None

        self.board = board
        self.color_to_move = snapshot.current_turn
        self.captured = {
            color: list(snapshot.captured.get(color, [])) for color in Color
        }
        self.history = list(snapshot.history)
        self.castling_rights.restrict_to_position(board)
        self.pending_promotion = None
        self.status = snapshot.status
        self.winner = snapshot.winner

        if snapshot.status != GameStatus.ACTIVE:
            self.phase = GamePhase.OVER
            self.in_check = False
            return

        if self.phase != GamePhase.SETUP or self.history:
            self.phase = GamePhase.IN_PROGRESS
        self.in_check = board.is_check(self.color_to_move)

    def apply_terminal(self, status: GameStatus, winner: Optional[Color]) -> None:
        """Externally triggered end of the game. Skips the checkmate/stalemate detection."""
        if status == GameStatus.ACTIVE:
            raise GameStateError("A game cannot be ended with status 'active'.")
        if self.is_over:
            raise GameOverError(f"Game is already over ({self.status}).")
        self._finish(status, winner)

    def resign(self, color: Color) -> None:
        self.apply_terminal(GameStatus.RESIGNED, color.opponent)

    def agree_draw(self) -> None:
        self.apply_terminal(GameStatus.DRAW, None)

    def flag_timeout(self, color: Color) -> None:
        """`color` ran out of time"""
        self.apply_terminal(GameStatus.TIMEOUT, color.opponent)

    # -- PRIVATE HELPERS ---
    def _assert_accepting_moves(self) -> None:
        if self.is_over:
            raise GameOverError(f"Game is over ({self.status}).")
        if self.pending_promotion is not None:
            raise PromotionPendingError(
                f"Choose a piece for the pawn on {self.pending_promotion.square.to_algebraic()} first."
            )

    def _assert_promotion_option(self, piece_type: PieceType) -> None:
        if piece_type not in PROMOTION_OPTIONS:
            raise IllegalMoveError(f"A pawn cannot promote to a {piece_type}.")

    def _execute(self, move: Move, notation: Optional[str] = None) -> MoveRecord:
        """
        Bookkeeping shared by local and remote moves
        ---

        1. update the board (king + rook when castling, the passed pawn when taking en passant)
        2. captured pieces, castling rights, last move
        3. history entry
        4. either wait for a promotion choice or complete the half-move
        """
        piece = self.board.piece(move.from_square)
        assert piece is not None  # both callers checked already

        record = self.board.apply(move)
        captured_piece = record.captured_piece
        if captured_piece is not None:
            self.captured[captured_piece.color].append(captured_piece.type)

        self.castling_rights.update_after_move(piece, move.from_square, move.to_square)
        self.last_move = LastMove(
            move.from_square, move.to_square, piece, captured_piece
        )

        if notation is None:
            notation = move_notation(
                piece,
                move.from_square,
                move.to_square,
                captured_piece is not None,
                move.castling,
            )
            if move.promote_to:
                notation += promotion_suffix(move.promote_to)
        entry = MoveRecord(
            player=piece.color,
            notation=notation,
            full_move=len(self.history) // 2 + 1,
        )
        self.history.append(entry)

        if self.phase == GamePhase.SETUP:
            self.phase = GamePhase.IN_PROGRESS

        if move.promote_to is None and is_promotion_square(piece, move.to_square):
            self.pending_promotion = PendingPromotion(move.to_square, piece.color)
            self.phase = GamePhase.AWAITING_PROMOTION
            return entry

        self._complete_half_move(piece.color)
        return entry

    def _complete_half_move(self, mover: Color) -> None:
        """Switch the turn, then see whether the side to move can still move at all."""
        self.color_to_move = mover.opponent
        self._update_game_status()

    def _update_game_status(self) -> None:
        color = self.color_to_move
        self.in_check = self.board.is_check(color)
        if self.has_legal_move(color):
            return

        if self.in_check:
            self._finish(GameStatus.CHECKMATE, color.opponent)
        else:
            self._finish(GameStatus.STALEMATE, None)

    def _finish(self, status: GameStatus, winner: Optional[Color]) -> None:
        logger.info("Game over: %s, winner: %s", status, winner or "none")
        self.status = status
        self.winner = winner
        self.pending_promotion = None
        self.phase = GamePhase.OVER
