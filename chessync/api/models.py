"""Wire models: the JSON messages exchanged with the game server over the publish/subscribe transport"""

import json
from enum import StrEnum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from chessync.chess.board import Board
from chessync.chess.game import Game
from chessync.chess.pieces import FEN_TO_PIECE, Piece
from chessync.chess.square import BOARD_DIMENSIONS, Square
from chessync.core.exceptions import GameStateError, ProtocolError
from chessync.core.models import GameSnapshot, MoveRecord
from chessync.core.shared_types import Color, GameStatus, PieceType

# gameStatus values only the server uses
WAITING = "waiting"
FINISHED = "finished"
DRAW_WINNER = "draw"


class InboundType(StrEnum):
    MOVE = "move"
    MOVE_ERROR = "moveError"
    RESIGN = "resign"
    DRAW_OFFER = "drawOffer"
    DRAW_ACCEPT = "drawAccept"
    DRAW_DECLINE = "drawDecline"
    PLAYER_JOINED = "playerJoined"
    PLAYER_DISCONNECTED = "playerDisconnected"
    GAME_START = "gameStart"
    GAME_END = "gameEnd"
    GAME_JOINED = "gameJoined"
    ERROR = "error"


class OutboundType(StrEnum):
    JOIN = "join"
    MOVE = "move"
    RESIGN = "resign"
    DRAW_OFFER = "drawOffer"
    DRAW_ACCEPT = "drawAccept"
    DRAW_DECLINE = "drawDecline"
    DISCONNECT = "disconnect"


# last path segment of the destination each outbound message is published to
OUTBOUND_DESTINATIONS: dict[OutboundType, str] = {
    OutboundType.JOIN: "join",
    OutboundType.MOVE: "move",
    OutboundType.RESIGN: "resign",
    OutboundType.DRAW_OFFER: "draw-offer",
    OutboundType.DRAW_ACCEPT: "draw-accept",
    OutboundType.DRAW_DECLINE: "draw-decline",
    OutboundType.DISCONNECT: "disconnect",
}


def game_topic(game_id: str) -> str:
    """Broadcasts for both players"""
    return f"/topic/game/{game_id}"


def player_topic(game_id: str, player_id: str) -> str:
    """Messages meant for a single player (gameJoined, error)"""
    return f"/topic/game/{game_id}/player/{player_id}"


def destination(game_id: str, message_type: OutboundType) -> str:
    return f"/app/game/{game_id}/{OUTBOUND_DESTINATIONS[message_type]}"


def _piece_type_from_wire(value: Any) -> Any:
    """'queen', 'Q'/'q' or {'type': 'queen', 'color': ...} all mean a queen"""
    if isinstance(value, dict):
        return value.get("type")
    if isinstance(value, str) and value.lower() in FEN_TO_PIECE:
        return FEN_TO_PIECE[value.lower()]
    return value


# --- PAYLOADS ---
class MovePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_row: int = Field(..., ge=0, lt=BOARD_DIMENSIONS[0], alias="fromRow")
    from_col: int = Field(..., ge=0, lt=BOARD_DIMENSIONS[1], alias="fromCol")
    to_row: int = Field(..., ge=0, lt=BOARD_DIMENSIONS[0], alias="toRow")
    to_col: int = Field(..., ge=0, lt=BOARD_DIMENSIONS[1], alias="toCol")
    player_id: Optional[str] = Field(None, alias="playerId")
    player_color: Optional[Color] = Field(None, alias="playerColor")
    piece: Optional[PieceType] = None
    captured_piece: Optional[PieceType] = Field(None, alias="capturedPiece")
    notation: Optional[str] = None
    timestamp: Optional[str] = None
    promotion: Optional[PieceType] = None

    @field_validator("piece", "captured_piece", "promotion", mode="before")
    @classmethod
    def validate_piece_type(cls, value: Any) -> Any:
        return _piece_type_from_wire(value)

    @property
    def from_square(self) -> Square:
        return Square(self.from_row, self.from_col)

    @property
    def to_square(self) -> Square:
        return Square(self.to_row, self.to_col)


class PlayerInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = Field(
        None, validation_alias=AliasChoices("name", "playerName")
    )
    connected: bool = True


class HistoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player: Color
    notation: str
    full_move: int = Field(1, ge=1, alias="fullMove")

    def to_domain(self) -> MoveRecord:
        return MoveRecord(self.player, self.notation, self.full_move)


class GameStateSnapshot(BaseModel):
    """
    Full game state as sent by the server (gameJoined, playerJoined, gameStart, gameEnd, and attached to moves).
    ---

    Every field is optional on the wire: whatever is missing is taken from the local state in `to_domain`.
    """

    model_config = ConfigDict(populate_by_name=True)

    game_id: Optional[str] = Field(None, alias="gameId")
    white_player: Optional[PlayerInfo] = Field(None, alias="whitePlayer")
    black_player: Optional[PlayerInfo] = Field(None, alias="blackPlayer")
    current_turn: Optional[Color] = Field(None, alias="currentTurn")
    game_status: str = Field(GameStatus.ACTIVE, alias="gameStatus")
    board_state: Optional[list[list[Optional[str]]]] = Field(None, alias="boardState")
    captured_pieces: Optional[dict[Color, list[PieceType]]] = Field(
        None, alias="capturedPieces"
    )
    move_history: Optional[list[HistoryEntry]] = Field(None, alias="moveHistory")
    winner: Optional[str] = None

    @field_validator("game_status", mode="before")
    @classmethod
    def validate_game_status(cls, value: Any) -> str:
        status = str(value).lower()
        if status not in {*GameStatus, WAITING, FINISHED}:
            raise ValueError(f"Unknown game status: {value!r}")
        return status

    @field_validator("board_state", mode="before")
    @classmethod
    def validate_board_state(cls, value: Any) -> Any:
        # the server sends the grid wrapped in a JSON string: '{"board": [[...], ...]}'
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("boardState is not valid JSON") from exc
        if isinstance(value, dict):
            value = value.get("board")
        if value is None:
            return None

        rows, cols = BOARD_DIMENSIONS
        if (
            not isinstance(value, list)
            or len(value) != rows
            or any(not isinstance(row, list) or len(row) != cols for row in value)
        ):
            raise ValueError(f"boardState must be a {rows}x{cols} grid")
        grid = [[token or None for token in row] for row in value]
        for token in (token for row in grid for token in row if token is not None):
            if not isinstance(token, str):
                raise ValueError(f"Cannot interpret {token!r} as a piece.")
            try:
                Piece.from_token(token)
            except GameStateError as exc:
                raise ValueError(str(exc)) from exc
        return grid

    @field_validator("captured_pieces", mode="before")
    @classmethod
    def validate_captured_pieces(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            color: [_piece_type_from_wire(item) for item in pieces or []]
            for color, pieces in value.items()
        }

    @field_validator("winner", mode="before")
    @classmethod
    def validate_winner(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        winner = str(value).lower()
        if winner not in {*Color, DRAW_WINNER}:
            raise ValueError(f"Unknown winner: {value!r}")
        return winner

    @property
    def both_players_present(self) -> bool:
        return self.white_player is not None and self.black_player is not None

    @property
    def is_started(self) -> bool:
        return self.game_status == GameStatus.ACTIVE and self.both_players_present

    @property
    def winner_color(self) -> Optional[Color]:
        return Color(self.winner) if self.winner in {*Color} else None

    def to_board(self) -> Optional[Board]:
        """The attached position as a domain Board, None when the state carries no board"""
        if self.board_state is None:
            return None
        board = Board.from_tokens(self.board_state)
        if self.game_status in (WAITING, GameStatus.ACTIVE):
            board.validate()
        return board

    def seats(self) -> dict[Color, Optional[PlayerInfo]]:
        return {Color.WHITE: self.white_player, Color.BLACK: self.black_player}

    def to_domain(self, local: GameSnapshot) -> GameSnapshot:
        """Merge into the local state: values present on the wire win, missing ones are kept."""
        board_tokens = self.board_state if self.board_state is not None else local.board_tokens
        current_turn = self.current_turn or local.current_turn
        status = self._resolve_status(board_tokens, current_turn)

        return GameSnapshot(
            board_tokens=[list(row) for row in board_tokens],
            current_turn=current_turn,
            status=status,
            captured=(
                {color: list(self.captured_pieces.get(color, [])) for color in Color}
                if self.captured_pieces is not None
                else local.captured
            ),
            history=(
                [entry.to_domain() for entry in self.move_history]
                if self.move_history is not None
                else local.history
            ),
            winner=self._resolve_winner(status, current_turn),
        )

    def _resolve_status(
        self, board_tokens: list[list[Optional[str]]], current_turn: Color
    ) -> GameStatus:
        """
        'waiting' is an active game nobody moved in yet. 'finished' says nothing about HOW the game ended:
        the board tells us about checkmate/stalemate, otherwise the winner field decides between draw and resignation.
        """
        if self.game_status == WAITING:
            return GameStatus.ACTIVE
        if self.game_status != FINISHED:
            return GameStatus(self.game_status)

        try:
            position = Game.new_game(Board.from_tokens(board_tokens), current_turn)
        except GameStateError:
            position = None
        if position is not None and not position.has_legal_move(current_turn):
            return GameStatus.CHECKMATE if position.in_check else GameStatus.STALEMATE

        if self.winner_color is None:
            return GameStatus.DRAW
        return GameStatus.RESIGNED

    def _resolve_winner(self, status: GameStatus, current_turn: Color) -> Optional[Color]:
        if status in (GameStatus.ACTIVE, GameStatus.STALEMATE, GameStatus.DRAW):
            return None
        if status == GameStatus.CHECKMATE:
            return self.winner_color or current_turn.opponent
        return self.winner_color


# --- ENVELOPES ---
class InboundMessage(BaseModel):
    """`type` stays a plain string: unknown types must still parse (they get logged and dropped)."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    player_id: Optional[str] = Field(None, alias="playerId")
    player_name: Optional[str] = Field(None, alias="playerName")
    move: Optional[MovePayload] = None
    game_state: Optional[GameStateSnapshot] = Field(None, alias="gameState")
    error: Optional[str] = None


class OutboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: OutboundType
    player_id: str = Field(..., alias="playerId")
    player_name: Optional[str] = Field(None, alias="playerName")
    move: Optional[MovePayload] = None

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def parse_message(body: str | bytes) -> InboundMessage:
    try:
        return InboundMessage.model_validate_json(body)
    except ValidationError as exc:
        raise ProtocolError(
            f"Malformed message ({exc.error_count()} validation error(s)): {body!r}"
        ) from exc
