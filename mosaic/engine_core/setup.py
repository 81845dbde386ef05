"""
Game Setup - Creates the initial match state.

This module handles:
- Building the 100-tile bag
- Shuffling with a seed for determinism
- Filling the five factories for round one
"""

from __future__ import annotations
import random

from .state import GameState, GamePhase
from .supply import create_tile_bag, fill_factories


def new_game(random_seed: int | None = None, rng: random.Random | None = None) -> GameState:
    """
    Set up a new two-player match.

    Args:
        random_seed: Seed for deterministic shuffling and factory fills
        rng: Random source to use instead of one built from the seed

    Returns:
        Initial GameState with factories filled, player 0 to act and
        holding the first-player marker
    """
    rng = rng or random.Random(random_seed)

    state = GameState(
        tile_bag=create_tile_bag(),
        phase=GamePhase.PLAYING,
        current_player=0,
        first_player_marker_index=0,
        random_seed=random_seed,
    )
    rng.shuffle(state.tile_bag)
    fill_factories(state, rng)
    return state
