"""
Exceptions shared by all layers.

Everything derives from ChessError, so the service layer can catch a single type when it only needs to turn the
failure into a notice for the user. None of these are process-fatal.
"""


class ChessError(Exception):
    """Base class for every error raised by chessync."""


# --- INPUT REJECTED: reported to the acting user only, state is untouched ---
class InputRejected(ChessError):
    """The user (or a move intent) asked for something the rules or the session do not allow."""


class IllegalMoveError(InputRejected):
    pass


class NotYourTurnError(InputRejected):
    pass


class EmptySquareError(InputRejected):
    pass


class PromotionPendingError(InputRejected):
    """A pawn is waiting on the last rank for its new piece type."""


class GameOverError(InputRejected):
    pass


class NotReadyError(InputRejected):
    """Networked game is not ready: opponent missing, no color assigned, or not connected."""


# --- STATE ---
class GameStateError(ChessError):
    """Constructing or restoring a game from data that cannot describe a valid game."""


# --- CLOCK ---
class ClockUnavailableError(ChessError):
    """The countdown cannot be scheduled, e.g. no asyncio event loop is running."""


# --- NETWORK ---
class ProtocolError(ChessError):
    """Inbound message could not be parsed / validated. Logged and dropped."""


class ServerRejectedMoveError(ChessError):
    """The authoritative server refused a move intent we sent earlier."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Move error: {reason}")
        self.reason = reason


class ConnectionFailureError(ChessError):
    """Transport could not connect or timed out."""
