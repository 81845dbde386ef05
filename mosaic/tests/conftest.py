"""
Pytest fixtures for Mosaic tests.
"""

import random

import pytest

from ..engine_core.reducer import Reducer
from ..engine_core.setup import new_game
from ..engine_core.state import GameState
from ..relay.rooms import RoomRegistry
from .builders import build_state, B, R, Y, K, W


class FakeClock:
    """Manually advanced clock for registry tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def reducer() -> Reducer:
    """Reducer with a seeded random source."""
    return Reducer(rng=random.Random(7))


@pytest.fixture
def fresh_game() -> GameState:
    """A dealt match, player 0 to act."""
    return new_game(random_seed=42)


@pytest.fixture
def drafting_state() -> GameState:
    """
    Player 0 to act with:
    - factory 0: blue, blue, red, yellow
    - factory 1: black x3, white
    - factory 2: white, white, yellow, yellow
    """
    return build_state(
        factories={
            0: [B, B, R, Y],
            1: [K, K, K, W],
            2: [W, W, Y, Y],
        }
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock) -> RoomRegistry:
    """Registry with one-hour idle TTL and one-minute empty grace."""
    return RoomRegistry(clock=clock, idle_ttl=3600, empty_grace=60)
