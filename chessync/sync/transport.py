"""
Collaborators of the sync layer. The client only depends on these protocols; a STOMP-over-websocket client and an
HTTP client implement them in the hosting application (and small fakes implement them in the tests).
"""

from collections.abc import Callable
from typing import Protocol

MessageHandler = Callable[[str], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class Transport(Protocol):
    """Publish/subscribe connection to the game server"""

    def connect(self, timeout: float) -> None:
        """Raise ConnectionFailureError when the server cannot be reached in time"""
        ...

    def publish(self, destination: str, body: str) -> None: ...

    def subscribe(self, topic: str, handler: MessageHandler) -> Subscription: ...

    def disconnect(self) -> None: ...


class GameDirectory(Protocol):
    """The HTTP endpoint that creates games"""

    def create_game(self, player_id: str, player_name: str) -> str:
        """Returns the id of the new game. Raise ConnectionFailureError on failure."""
        ...


class SyncListener(Protocol):
    """Receives what the adapter wants the user to see"""

    def on_game_updated(self) -> None: ...
    def on_notice(self, text: str) -> None: ...
    def on_draw_offered(self, opponent_name: str) -> None: ...
    def on_connection_changed(self, text: str) -> None: ...
