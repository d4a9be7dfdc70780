"""Everything the client knows about the game in progress, in one place"""

from dataclasses import dataclass, field
from typing import Optional, Self
from uuid import uuid4

from chessync.api.models import MovePayload, PlayerInfo
from chessync.chess.game import Game
from chessync.chess.square import Square
from chessync.core.shared_types import Color, PlayMode
from chessync.sync.transport import Subscription


def generate_player_id() -> str:
    return f"player_{uuid4().hex[:12]}"


@dataclass
class PlayerSession:
    id: str
    name: str = ""
    color: Optional[Color] = None
    connected: bool = True

    @classmethod
    def from_info(cls, info: PlayerInfo, color: Color) -> Self:
        return cls(id=info.id, name=info.name or "", color=color, connected=info.connected)


@dataclass
class GameContext:
    game: Game = field(default_factory=Game.new_game)
    mode: PlayMode = PlayMode.LOCAL
    local_player: PlayerSession = field(
        default_factory=lambda: PlayerSession(id=generate_player_id())
    )
    game_id: Optional[str] = None
    seats: dict[Color, Optional[PlayerSession]] = field(
        default_factory=lambda: {Color.WHITE: None, Color.BLACK: None}
    )
    connected: bool = False
    subscriptions: list[Subscription] = field(default_factory=list)

    # player id of an opponent whose draw offer is waiting for our answer
    draw_offer_from: Optional[str] = None
    draw_offer_sent: bool = False

    # last move intent sent and not yet echoed back by the server
    in_flight: Optional[MovePayload] = None
    # networked promotion: the move waits for the piece choice before it is sent
    promotion_intent: Optional[tuple[Square, Square]] = None

    @property
    def is_networked(self) -> bool:
        return self.mode == PlayMode.NETWORKED

    @property
    def local_color(self) -> Optional[Color]:
        return self.local_player.color

    @property
    def both_players_present(self) -> bool:
        return all(session is not None for session in self.seats.values())

    @property
    def is_local_turn(self) -> bool:
        return self.local_color is not None and self.local_color == self.game.color_to_move

    def session_by_id(self, player_id: Optional[str]) -> Optional[PlayerSession]:
        return next(
            (
                session
                for session in self.seats.values()
                if session is not None and session.id == player_id
            ),
            None,
        )

    def opponent_name(self) -> str:
        if self.local_color is not None:
            opponent = self.seats[self.local_color.opponent]
            if opponent is not None and opponent.name:
                return opponent.name
        return "Opponent"

    def reset_game(self, game: Optional[Game] = None) -> None:
        """A new Game: everything that belonged to the previous one goes"""
        self.game = game if game is not None else Game.new_game()
        self.draw_offer_from = None
        self.draw_offer_sent = False
        self.in_flight = None
        self.promotion_intent = None
