"""
What the client shows: the GameView collaborator (implemented by whatever UI hosts the client) and the helpers that
turn game state into the plain values it gets to draw.
"""

from typing import Optional, Protocol

from chessync.chess.board import Board
from chessync.chess.game import Game
from chessync.chess.pieces import PIECE_GLYPHS
from chessync.chess.square import BOARD_DIMENSIONS, Square
from chessync.core.models import MoveRecord
from chessync.core.shared_types import Color, GameStatus, PieceType

GlyphRows = list[list[str]]


class GameView(Protocol):
    def render(self, glyph_rows: GlyphRows, highlights: list[Square]) -> None: ...
    def show_status(self, text: str) -> None: ...
    def show_history(self, lines: list[str]) -> None: ...
    def show_captured(self, captured: dict[Color, str]) -> None: ...
    def show_timers(self, white: str, black: str) -> None: ...
    def show_connection_status(self, text: str) -> None: ...
    def show_notice(self, text: str) -> None: ...
    def ask_promotion(self, color: Color) -> None: ...
    def ask_draw_response(self, opponent_name: str) -> None: ...


def to_display(square: Square, perspective: Color = Color.WHITE) -> Square:
    """Black sees the board turned around: the same mapping works both ways."""
    if perspective == Color.WHITE:
        return square
    rows, cols = BOARD_DIMENSIONS
    return Square(rows - 1 - square.row, cols - 1 - square.col)


def board_glyph_rows(board: Board, perspective: Color = Color.WHITE) -> GlyphRows:
    """Unicode glyph per square ('' when empty), top row first as seen by `perspective`"""
    rows, cols = BOARD_DIMENSIONS
    glyph_rows: GlyphRows = []
    for display_row in range(rows):
        glyph_row: list[str] = []
        for display_col in range(cols):
            piece = board.piece(to_display(Square(display_row, display_col), perspective))
            glyph_row.append(piece.glyph() if piece else "")
        glyph_rows.append(glyph_row)
    return glyph_rows


def captured_glyphs(captured: dict[Color, list[PieceType]]) -> dict[Color, str]:
    return {
        color: "".join(PIECE_GLYPHS[color][piece_type] for piece_type in captured.get(color, []))
        for color in Color
    }


def history_lines(history: list[MoveRecord]) -> list[str]:
    """One line per full move: '1. e4 e5'"""
    lines: list[str] = []
    for index in range(0, len(history), 2):
        pair = history[index : index + 2]
        lines.append(f"{pair[0].full_move}. " + " ".join(record.notation for record in pair))
    return lines


def status_text(game: Game, local_color: Optional[Color] = None) -> str:
    winner = game.winner.capitalize() if game.winner else ""
    match game.status:
        case GameStatus.CHECKMATE:
            return f"Checkmate! {winner} wins"
        case GameStatus.STALEMATE:
            return "Stalemate! Game ended in a draw"
        case GameStatus.RESIGNED:
            return f"{winner} wins by resignation"
        case GameStatus.DRAW:
            return "Game ended in a draw (mutual agreement)"
        case GameStatus.TIMEOUT:
            return f"{winner} wins by timeout!"

    to_move = game.color_to_move.capitalize()
    if game.pending_promotion is not None:
        return f"{game.pending_promotion.color.capitalize()}: choose a piece to promote to"
    text = f"{to_move} to move"
    if local_color is not None:
        text += " (your turn)" if local_color == game.color_to_move else " (opponent's turn)"
    if game.in_check:
        text += " - check!"
    return text
