"""Orchestration between the UI (GameView), the game, the clock and (for networked games) the sync adapter."""

import logging
from typing import Optional

from chessync.api.presentation import (
    GameView,
    board_glyph_rows,
    captured_glyphs,
    history_lines,
    status_text,
    to_display,
)
from chessync.chess.clock import AsyncioScheduler, GameClock, Scheduler, format_time
from chessync.chess.game import GamePhase
from chessync.chess.moves import is_promotion_square
from chessync.chess.square import Square
from chessync.core.config import Settings
from chessync.core.exceptions import (
    ChessError,
    ClockUnavailableError,
    GameOverError,
    NotReadyError,
    NotYourTurnError,
    PromotionPendingError,
)
from chessync.core.shared_types import Color, PieceType, PlayMode
from chessync.sync.adapter import RemoteSyncAdapter
from chessync.sync.context import GameContext
from chessync.sync.transport import GameDirectory, Transport

logger = logging.getLogger(__name__)


class ChessService:
    """
    Entry points for the UI.
    ---

    Rejected input never raises out of here: it ends up as a notice on the view. The service also listens to the
    sync adapter (see SyncListener) and redraws after every authoritative update.
    """

    def __init__(
        self,
        view: GameView,
        transport: Optional[Transport] = None,
        directory: Optional[GameDirectory] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.view = view
        self.context = GameContext()
        self.adapter = (
            RemoteSyncAdapter(self.context, transport, self, directory, self.settings)
            if transport is not None
            else None
        )
        self.timer_enabled = self.settings.timer_enabled
        self.clock = GameClock(
            scheduler or AsyncioScheduler(),
            self.settings.time_per_player_seconds,
            interval=self.settings.tick_interval_seconds,
            on_tick=self._on_clock_tick,
            on_timeout=self._on_timeout,
        )
        self.selected: Optional[Square] = None
        self.highlights: list[Square] = []

    @property
    def perspective(self) -> Color:
        """Networked players see the board from their own side"""
        if self.context.is_networked and self.context.local_color is not None:
            return self.context.local_color
        return Color.WHITE

    # --- UI ENTRY POINTS ---
    def square_click(self, row: int, col: int) -> None:
        """`row`/`col` as displayed: row 0 is the top row of the board the user is looking at"""
        square = to_display(Square(row, col), self.perspective)
        try:
            self._handle_click(square)
        except ChessError as exc:
            self._clear_selection()
            self.view.show_notice(str(exc))
        self.refresh()

    def choose_promotion(self, piece_type: PieceType) -> None:
        context = self.context
        try:
            if context.promotion_intent is not None:
                from_square, to_square = context.promotion_intent
                context.promotion_intent = None
                self._networked_adapter().send_move_intent(from_square, to_square, piece_type)
            else:
                context.game.apply_promotion_choice(piece_type)
        except ChessError as exc:
            self.view.show_notice(str(exc))
        self.refresh()

    def resign(self) -> None:
        game = self.context.game
        try:
            if self.context.is_networked:
                self._networked_adapter().resign()
            else:
                game.resign(game.color_to_move)
        except ChessError as exc:
            self.view.show_notice(str(exc))
        self.refresh()

    def offer_draw(self) -> None:
        """Offline there is nobody to ask: the draw is agreed on the spot."""
        try:
            if self.context.is_networked:
                self._networked_adapter().offer_draw()
            else:
                self.context.game.agree_draw()
        except ChessError as exc:
            self.view.show_notice(str(exc))
        self.refresh()

    def accept_draw(self) -> None:
        try:
            self._networked_adapter().accept_draw()
        except ChessError as exc:
            self.view.show_notice(str(exc))
        self.refresh()

    def decline_draw(self) -> None:
        try:
            self._networked_adapter().decline_draw()
        except ChessError as exc:
            self.view.show_notice(str(exc))
        self.refresh()

    def enable_timer(self, enabled: bool, time_per_player: Optional[int] = None) -> None:
        game = self.context.game
        if enabled and game.phase in (GamePhase.IN_PROGRESS, GamePhase.AWAITING_PROMOTION):
            self.view.show_notice("You cannot enable the timer after the game has started.")
            return
        self.timer_enabled = enabled
        self.clock.reset(time_per_player)
        self.refresh()

    def new_game(self) -> None:
        """A fresh local game (leaves any networked game first)"""
        if self.context.is_networked:
            self.reset_to_local()
            return
        self.clock.reset()
        self.context.reset_game()
        self._clear_selection()
        self.refresh()

    def create_online_game(self, player_name: str) -> Optional[str]:
        self._teardown_game()
        try:
            return self._networked_adapter().create_game(player_name)
        except ChessError as exc:
            logger.warning("Could not create a game: %s", exc)
            self.view.show_notice(f"Failed to create game: {exc}")
            return None
        finally:
            self.refresh()

    def join_online_game(self, game_id: str, player_name: str) -> None:
        self._teardown_game()
        try:
            self._networked_adapter().join_game(game_id, player_name)
        except ChessError as exc:
            logger.warning("Could not join game %s: %s", game_id, exc)
            self.view.show_notice(f"Failed to connect to game: {exc}")
        self.refresh()

    def reset_to_local(self) -> None:
        if self.adapter is not None:
            self.adapter.disconnect()
        context = self.context
        context.mode = PlayMode.LOCAL
        context.game_id = None
        context.local_player.color = None
        context.seats = {Color.WHITE: None, Color.BLACK: None}
        self._teardown_game()
        self.view.show_connection_status("Local Game Mode")
        self.refresh()

    def refresh(self) -> None:
        """Push the complete current state to the view"""
        game = self.context.game
        self._sync_clock()

        perspective = self.perspective
        self.view.render(
            board_glyph_rows(game.board, perspective),
            [to_display(square, perspective) for square in self.highlights],
        )
        local_color = self.context.local_color if self.context.is_networked else None
        self.view.show_status(status_text(game, local_color))
        self.view.show_history(history_lines(game.history))
        self.view.show_captured(captured_glyphs(game.captured))
        self._on_clock_tick(self.clock.remaining[Color.WHITE], self.clock.remaining[Color.BLACK])

    # --- SYNC LISTENER ---
    def on_game_updated(self) -> None:
        self._clear_selection()
        self.refresh()

    def on_notice(self, text: str) -> None:
        self.view.show_notice(text)

    def on_draw_offered(self, opponent_name: str) -> None:
        self.view.ask_draw_response(opponent_name)

    def on_connection_changed(self, text: str) -> None:
        self.view.show_connection_status(text)

    # --- PRIVATE HELPERS ---
    def _handle_click(self, square: Square) -> None:
        context = self.context
        game = context.game
        if game.is_over:
            raise GameOverError(f"Game is over ({game.status}).")
        if game.pending_promotion is not None or context.promotion_intent is not None:
            raise PromotionPendingError("Choose a piece to promote to first.")

        if self.selected is not None and square in self.highlights:
            from_square = self.selected
            self._clear_selection()
            self._move(from_square, square)
            return

        if game.board.piece(square) is None or square == self.selected:
            self._clear_selection()
            return
        self._select(square)

    def _select(self, square: Square) -> None:
        game = self.context.game
        if self.context.is_networked:
            self._networked_adapter().check_gate(square)
        else:
            piece = game.board.piece(square)
            if piece is not None and piece.color != game.color_to_move:
                raise NotYourTurnError(f"It is {game.color_to_move}'s turn.")
        self.selected = square
        self.highlights = game.legal_destinations(square)

    def _move(self, from_square: Square, to_square: Square) -> None:
        context = self.context
        game = context.game
        piece = game.board.piece(from_square)
        if piece is None:
            return

        if context.is_networked:
            if is_promotion_square(piece, to_square):
                context.promotion_intent = (from_square, to_square)
                self.view.ask_promotion(piece.color)
                return
            self._networked_adapter().send_move_intent(from_square, to_square)
            return

        game.apply_move(from_square, to_square)
        if game.pending_promotion is not None:
            self.view.ask_promotion(game.pending_promotion.color)

    def _networked_adapter(self) -> RemoteSyncAdapter:
        if self.adapter is None:
            raise NotReadyError("Multiplayer is not available: no connection configured.")
        return self.adapter

    def _teardown_game(self) -> None:
        self.clock.reset()
        self.context.reset_game()
        self._clear_selection()

    def _clear_selection(self) -> None:
        self.selected = None
        self.highlights = []

    def _sync_clock(self) -> None:
        game = self.context.game
        if not self.timer_enabled or game.is_over:
            self.clock.stop()
            return
        if game.phase == GamePhase.SETUP:
            return
        self.clock.switch_to(game.color_to_move)
        if self.clock.is_running:
            return
        try:
            self.clock.start(game.color_to_move)
        except ClockUnavailableError as exc:
            logger.warning("Timer disabled: %s", exc)
            self.timer_enabled = False
            self.view.show_notice(f"Timer disabled: {exc}")

    def _on_clock_tick(self, white: float, black: float) -> None:
        self.view.show_timers(format_time(white), format_time(black))

    def _on_timeout(self, color: Color) -> None:
        game = self.context.game
        if not game.is_over:
            game.flag_timeout(color)
        self.refresh()
