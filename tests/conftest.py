"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from collections.abc import Callable
from typing import Optional

import pytest

from chessync.chess.board import Board
from chessync.chess.game import Game
from chessync.core.shared_types import Color
from tests.fakes import (
    FakeDirectory,
    FakeScheduler,
    FakeTransport,
    RecordingListener,
    RecordingView,
)


@pytest.fixture
def game_from_fen() -> Callable[..., Game]:
    """Call the inner function with the piece placement part of a FEN string (and optionally the side to move)"""

    def _create_game(fen: str, color_to_move: Optional[Color] = None) -> Game:
        return Game.new_game(Board.from_fen(fen), color_to_move or Color.WHITE)

    return _create_game


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def view() -> RecordingView:
    return RecordingView()
