"""
Tile Supply - Bag, factory displays, pot and discard pile.

Every function here moves tiles between pools; none of them create or
destroy a tile once the bag has been built. Randomness always comes from
an injected ``random.Random`` so matches can be replayed from a seed.
"""

from __future__ import annotations
import random
from collections import Counter
from enum import Enum
from typing import Iterator

from .state import (
    GameState,
    Tile,
    TileType,
    NUM_FACTORIES,
    TILES_PER_FACTORY,
    TILES_PER_COLOR,
)


class RecycleSource(str, Enum):
    """Pool that refills an exhausted bag."""
    DISCARD = "discard"
    POT = "pot"


def create_tile_bag() -> list[Tile]:
    """Build the full, unshuffled bag: 20 tiles of each color."""
    return [Tile(color) for color in TileType for _ in range(TILES_PER_COLOR)]


def draw_random(pool: list[Tile], n: int, rng: random.Random) -> list[Tile]:
    """
    Remove up to ``n`` tiles from ``pool`` uniformly at random.

    Draws without replacement. Returns fewer than ``n`` tiles when the
    pool runs out.
    """
    drawn: list[Tile] = []
    for _ in range(min(n, len(pool))):
        drawn.append(pool.pop(rng.randrange(len(pool))))
    return drawn


def fill_factories(state: GameState, rng: random.Random) -> list[int]:
    """
    Fill each factory with up to four tiles from the bag.

    The bag is not recycled mid-fill: once it runs dry the remaining
    factories stay short or empty. Returns the number of tiles each
    factory received.
    """
    received: list[int] = []
    for index in range(NUM_FACTORIES):
        drawn = draw_random(state.tile_bag, TILES_PER_FACTORY, rng)
        state.factories[index].extend(drawn)
        received.append(len(drawn))
    return received


def recycle_if_empty(state: GameState, source: RecycleSource, rng: random.Random) -> int:
    """
    Refill an empty bag from ``source`` and shuffle it.

    Returns the number of tiles moved; zero when the bag still had tiles.
    """
    if state.tile_bag:
        return 0
    if source == RecycleSource.POT:
        moved, state.pot = state.pot, []
    else:
        moved, state.discard_pile = state.discard_pile, []
    state.tile_bag.extend(moved)
    rng.shuffle(state.tile_bag)
    return len(moved)


def iter_all_tiles(state: GameState) -> Iterator[Tile]:
    """Yield every tile in the match, wherever it sits."""
    yield from state.tile_bag
    yield from state.discard_pile
    yield from state.pot
    for factory in state.factories:
        yield from factory
    for board in state.players:
        for row in board.wall:
            yield from (t for t in row if t is not None)
        for row in board.staircase:
            yield from (t for t in row if t is not None)
        yield from (t for t in board.floor if t is not None)
        yield from board.holding_area.tiles


def count_tiles(state: GameState) -> Counter:
    """Per-color tile totals across all zones."""
    return Counter(t.type for t in iter_all_tiles(state))
