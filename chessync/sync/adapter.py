"""
Client side of a networked game.

The adapter never changes the game because of a local click: it sends a move intent and waits. State only changes
when the server broadcasts the authoritative result (a move echo, a snapshot, a resignation...), which the adapter
hands to the Game. Inbound messages go through one dispatcher keyed by message type.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Optional

from chessync.api.models import (
    GameStateSnapshot,
    InboundMessage,
    InboundType,
    MovePayload,
    OutboundMessage,
    OutboundType,
    destination,
    game_topic,
    parse_message,
    player_topic,
)
from chessync.chess.moves import is_promotion_square
from chessync.chess.notation import move_notation, promotion_suffix
from chessync.chess.pieces import Piece
from chessync.chess.square import Square
from chessync.core.config import Settings
from chessync.core.exceptions import (
    ChessError,
    ConnectionFailureError,
    EmptySquareError,
    GameOverError,
    GameStateError,
    IllegalMoveError,
    NotReadyError,
    NotYourTurnError,
    PromotionPendingError,
    ProtocolError,
    ServerRejectedMoveError,
)
from chessync.core.shared_types import Color, PieceType, PlayMode
from chessync.sync.context import GameContext, PlayerSession
from chessync.sync.transport import GameDirectory, SyncListener, Transport

logger = logging.getLogger(__name__)

Handler = Callable[[GameContext, InboundMessage], None]


def assign_color(player_id: str, state: GameStateSnapshot) -> Optional[Color]:
    """Our seat is the one carrying our id. Otherwise take the first free seat, white first."""
    seats = state.seats()
    for color, info in seats.items():
        if info is not None and info.id == player_id:
            return color
    for color, info in seats.items():
        if info is None:
            return color
    return None


def connection_failure_text(exc: ConnectionFailureError) -> str:
    """Status line for a failed connect, timeouts get their own hint"""
    if "timeout" in str(exc).lower():
        return "Connection timeout - server may be down"
    return f"Failed to connect to server: {exc}" if str(exc) else "Failed to connect to server"


class RemoteSyncAdapter:
    def __init__(
        self,
        context: GameContext,
        transport: Transport,
        listener: SyncListener,
        directory: Optional[GameDirectory] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.context = context
        self.transport = transport
        self.listener = listener
        self.directory = directory
        self.settings = settings or Settings()
        self.handlers: dict[InboundType, Handler] = {
            InboundType.MOVE: self.handle_move,
            InboundType.MOVE_ERROR: self.handle_move_error,
            InboundType.RESIGN: self.handle_resign,
            InboundType.DRAW_OFFER: self.handle_draw_offer,
            InboundType.DRAW_ACCEPT: self.handle_draw_accept,
            InboundType.DRAW_DECLINE: self.handle_draw_decline,
            InboundType.PLAYER_JOINED: self.handle_player_joined,
            InboundType.PLAYER_DISCONNECTED: self.handle_player_disconnected,
            InboundType.GAME_START: self.handle_game_start,
            InboundType.GAME_END: self.handle_game_end,
            InboundType.GAME_JOINED: self.handle_game_joined,
            InboundType.ERROR: self.handle_error,
        }

    # --- CONNECTION / SESSION ---
    def connect(self) -> None:
        if self.context.connected:
            return
        try:
            self.transport.connect(self.settings.connect_timeout_seconds)
        except ConnectionFailureError as exc:
            self.context.connected = False
            self.listener.on_connection_changed(connection_failure_text(exc))
            raise
        self.context.connected = True
        logger.info("Connected to %s", self.settings.websocket_url)
        self.listener.on_connection_changed("Connected to server")

    def create_game(self, player_name: str) -> str:
        """The creator of a game always plays white."""
        if self.directory is None:
            raise NotReadyError("No game directory configured.")
        self.connect()
        game_id = self.directory.create_game(self.context.local_player.id, player_name)

        local = self._enter_game(game_id, player_name)
        local.color = Color.WHITE
        self.context.seats[Color.WHITE] = local
        self.subscribe(game_id)

        logger.info("Created game %s", game_id)
        self.listener.on_notice(f"Game created! Share this ID: {game_id}. Waiting for opponent...")
        self.listener.on_game_updated()
        return game_id

    def join_game(self, game_id: str, player_name: str) -> None:
        """The color is assigned once the server answers with gameJoined."""
        self.connect()
        self._enter_game(game_id, player_name)
        self.subscribe(game_id)
        self._send(OutboundType.JOIN, player_name=player_name)

        logger.info("Joining game %s", game_id)
        self.listener.on_notice(f"Attempting to join game {game_id}...")
        self.listener.on_game_updated()

    def subscribe(self, game_id: str) -> None:
        self._unsubscribe_all()
        player_id = self.context.local_player.id
        for topic in (game_topic(game_id), player_topic(game_id, player_id)):
            self.context.subscriptions.append(self.transport.subscribe(topic, self.handle_raw))
            logger.debug("Subscribed to %s", topic)

    def disconnect(self) -> None:
        """Tell the server we leave (if in a game), drop every subscription, close the connection."""
        context = self.context
        if context.connected and context.game_id is not None:
            try:
                self._send(OutboundType.DISCONNECT, player_name=context.local_player.name)
            except ConnectionFailureError:
                logger.warning("Could not send disconnect message for game %s", context.game_id)

        self._unsubscribe_all()
        if context.connected:
            self.transport.disconnect()
            context.connected = False
            logger.info("Disconnected from server")
            self.listener.on_connection_changed("Disconnected from server")

    # --- OUTBOUND ---
    def check_gate(self, from_square: Square) -> Piece:
        """May the local player move the piece on `from_square` right now? Returns that piece."""
        context = self.context
        game = context.game
        if not context.connected:
            raise NotReadyError("Not connected to the multiplayer server.")
        if not context.both_players_present:
            raise NotReadyError("Waiting for opponent to join...")
        if context.local_color is None:
            raise NotReadyError("Player color not assigned.")
        if game.is_over:
            raise GameOverError(f"Game is over ({game.status}).")
        if context.in_flight is not None:
            raise NotReadyError("Waiting for the server to confirm your last move.")
        if not context.is_local_turn:
            raise NotYourTurnError("It's not your turn!")

        piece = game.board.piece(from_square)
        if piece is None:
            raise EmptySquareError("No piece at selected square.")
        if piece.color != context.local_color:
            raise IllegalMoveError("You can only move your own pieces!")
        return piece

    def send_move_intent(
        self,
        from_square: Square,
        to_square: Square,
        promote_to: Optional[PieceType] = None,
    ) -> MovePayload:
        """Publish the move and return. Nothing changes locally until the server echoes it."""
        piece = self.check_gate(from_square)
        game = self.context.game
        move = game.find_legal_move(from_square, to_square)
        if move is None:
            raise IllegalMoveError(
                f"Move not allowed: {from_square.to_algebraic()}{to_square.to_algebraic()}"
            )
        if is_promotion_square(piece, to_square) and promote_to is None:
            raise PromotionPendingError("Choose a piece to promote to first.")

        captured_square = (
            Square(from_square.row, to_square.col) if move.is_en_passant else to_square
        )
        captured = game.board.piece(captured_square)
        notation = move_notation(piece, from_square, to_square, captured is not None, move.castling)
        if promote_to is not None:
            notation += promotion_suffix(promote_to)

        payload = MovePayload(
            from_row=from_square.row,
            from_col=from_square.col,
            to_row=to_square.row,
            to_col=to_square.col,
            player_id=self.context.local_player.id,
            player_color=piece.color,
            piece=piece.type,
            captured_piece=captured.type if captured else None,
            notation=notation,
            timestamp=datetime.now(timezone.utc).isoformat(),
            promotion=promote_to,
        )
        self._send(OutboundType.MOVE, move=payload)
        self.context.in_flight = payload
        return payload

    def resign(self) -> None:
        """The local player gives up. The game ends right away, the echo gets ignored."""
        context = self.context
        if context.game.is_over:
            raise GameOverError(f"Game is over ({context.game.status}).")
        if context.local_color is None:
            raise NotReadyError("Player color not assigned.")
        self._send(OutboundType.RESIGN)
        context.game.resign(context.local_color)
        self.listener.on_game_updated()

    def offer_draw(self) -> None:
        context = self.context
        if context.game.is_over:
            raise GameOverError(f"Game is over ({context.game.status}).")
        self._send(OutboundType.DRAW_OFFER)
        context.draw_offer_sent = True
        self.listener.on_notice("Draw offer sent. Waiting for opponent response...")

    def accept_draw(self) -> None:
        context = self.context
        if context.draw_offer_from is None:
            raise IllegalMoveError("There is no draw offer to accept.")
        self._send(OutboundType.DRAW_ACCEPT)
        context.draw_offer_from = None
        if not context.game.is_over:
            context.game.agree_draw()
        self.listener.on_game_updated()

    def decline_draw(self) -> None:
        context = self.context
        if context.draw_offer_from is None:
            raise IllegalMoveError("There is no draw offer to decline.")
        self._send(OutboundType.DRAW_DECLINE)
        context.draw_offer_from = None
        self.listener.on_notice("You declined the draw offer.")

    def _send(self, message_type: OutboundType, **fields: Any) -> None:
        context = self.context
        if not context.connected or context.game_id is None:
            raise NotReadyError("Not connected to a multiplayer game.")

        message = OutboundMessage(type=message_type, player_id=context.local_player.id, **fields)
        try:
            self.transport.publish(destination(context.game_id, message_type), message.to_wire())
        except ConnectionFailureError:
            context.connected = False
            self.listener.on_connection_changed("Connection lost")
            raise
        logger.debug("Sent %s for game %s", message_type, context.game_id)

    # --- INBOUND ---
    def handle_raw(self, body: str) -> None:
        """Transport callback for both subscriptions"""
        try:
            message = parse_message(body)
        except ProtocolError as exc:
            logger.warning("Dropping message: %s", exc)
            return
        self.dispatch(message)

    def dispatch(self, message: InboundMessage) -> None:
        try:
            message_type = InboundType(message.type)
        except ValueError:
            logger.warning("Unknown message type: %s", message.type)
            return

        logger.debug("Dispatching %s", message_type)
        try:
            self.handlers[message_type](self.context, message)
        except ChessError as exc:
            logger.warning("Could not apply %s message: %s", message_type, exc)

    def handle_move(self, context: GameContext, message: InboundMessage) -> None:
        if message.move is None:
            raise ProtocolError("move message without a move")

        move = message.move
        if message.game_state is not None:
            # an attached state that cannot be applied rejects the message before the move touches the game
            message.game_state.to_board()
        context.in_flight = None
        try:
            context.game.apply_remote_move(
                move.from_square, move.to_square, move.promotion, move.notation
            )
        except GameStateError as exc:
            if message.game_state is None:
                raise
            logger.warning("Could not replay move (%s), resyncing from the attached state", exc)
        if message.game_state is not None:
            self._apply_game_state(context, message.game_state)
        self.listener.on_game_updated()

    def handle_move_error(self, context: GameContext, message: InboundMessage) -> None:
        context.in_flight = None
        error = ServerRejectedMoveError(message.error or "unknown reason")
        logger.warning("Server rejected move: %s", error.reason)
        self.listener.on_notice(str(error))

    def handle_resign(self, context: GameContext, message: InboundMessage) -> None:
        if self._is_own_echo(context, message) or context.game.is_over:
            return
        resigning = context.session_by_id(message.player_id)
        if resigning is not None and resigning.color is not None:
            loser = resigning.color
        elif context.local_color is not None:
            loser = context.local_color.opponent
        else:
            loser = context.game.color_to_move
        context.game.resign(loser)
        self.listener.on_game_updated()

    def handle_draw_offer(self, context: GameContext, message: InboundMessage) -> None:
        if self._is_own_echo(context, message) or context.game.is_over:
            return
        context.draw_offer_from = message.player_id or ""
        offering = context.session_by_id(message.player_id)
        name = offering.name if offering is not None and offering.name else context.opponent_name()
        self.listener.on_draw_offered(name)

    def handle_draw_accept(self, context: GameContext, message: InboundMessage) -> None:
        if self._is_own_echo(context, message):
            return
        context.draw_offer_sent = False
        if not context.game.is_over:
            context.game.agree_draw()
        self.listener.on_game_updated()

    def handle_draw_decline(self, context: GameContext, message: InboundMessage) -> None:
        if self._is_own_echo(context, message):
            return
        context.draw_offer_sent = False
        self.listener.on_notice("Opponent declined the draw offer.")

    def handle_player_joined(self, context: GameContext, message: InboundMessage) -> None:
        self.listener.on_notice(f"{message.player_name or 'A player'} joined the game")
        if message.game_state is not None:
            self._apply_game_state(context, message.game_state)
        self.listener.on_game_updated()

    def handle_player_disconnected(self, context: GameContext, message: InboundMessage) -> None:
        session = context.session_by_id(message.player_id)
        if session is not None:
            session.connected = False
        self.listener.on_notice(f"{message.player_name or 'Opponent'} disconnected")

    def handle_game_start(self, context: GameContext, message: InboundMessage) -> None:
        self.listener.on_notice("Game started! Both players connected.")
        if message.game_state is not None:
            self._apply_game_state(context, message.game_state)
        elif context.both_players_present:
            context.game.start()
        self.listener.on_game_updated()

    def handle_game_end(self, context: GameContext, message: InboundMessage) -> None:
        if message.game_state is None:
            raise ProtocolError("gameEnd message without a game state")
        self._apply_game_state(context, message.game_state)
        self.listener.on_game_updated()

    def handle_game_joined(self, context: GameContext, message: InboundMessage) -> None:
        state = message.game_state
        if state is None:
            raise ProtocolError("gameJoined message without a game state")
        state.to_board()

        context.game_id = state.game_id or context.game_id
        color = assign_color(context.local_player.id, state)
        if color is None:
            logger.error("Could not determine the local player's color in game %s", context.game_id)
            self.listener.on_notice("Error: Could not determine your color. Try rejoining the game.")
            return

        context.local_player.color = color
        self._apply_game_state(context, state)
        context.seats[color] = context.local_player

        if context.both_players_present:
            context.game.start()
            turn = context.game.color_to_move.capitalize()
            self.listener.on_notice(f"Game ready. You are {color}. {turn} to move.")
        else:
            self.listener.on_notice(f"Waiting for opponent... Share game ID: {context.game_id}")
        self.listener.on_game_updated()

    def handle_error(self, context: GameContext, message: InboundMessage) -> None:
        logger.warning("Server error in game %s: %s", context.game_id, message.error)
        self.listener.on_notice(f"Error: {message.error or 'unknown error'}")

    # --- HELPERS ---
    def _enter_game(self, game_id: str, player_name: str) -> PlayerSession:
        """Fresh game, fresh seats: nothing of a previous game carries over."""
        context = self.context
        context.reset_game()
        context.mode = PlayMode.NETWORKED
        context.game_id = game_id
        context.local_player.name = player_name
        context.local_player.color = None
        context.seats = {Color.WHITE: None, Color.BLACK: None}
        return context.local_player

    def _apply_game_state(self, context: GameContext, state: GameStateSnapshot) -> None:
        snapshot = state.to_domain(context.game.to_snapshot())
        context.game.apply_snapshot(snapshot)
        self._update_seats(context, state)
        if state.is_started:
            context.game.start()

    def _update_seats(self, context: GameContext, state: GameStateSnapshot) -> None:
        for color, info in state.seats().items():
            if info is None:
                context.seats[color] = None
            elif info.id == context.local_player.id:
                context.local_player.connected = info.connected
                context.seats[color] = context.local_player
            else:
                context.seats[color] = PlayerSession.from_info(info, color)

    def _unsubscribe_all(self) -> None:
        for subscription in self.context.subscriptions:
            subscription.unsubscribe()
        self.context.subscriptions.clear()

    def _is_own_echo(self, context: GameContext, message: InboundMessage) -> bool:
        return message.player_id is not None and message.player_id == context.local_player.id
