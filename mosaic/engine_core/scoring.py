"""
Scoring - Wall placement points, floor penalties and end-of-game bonuses.

These are pure functions over a wall or floor; they never touch GameState.

Placement rule: a newly placed tile scores the length of the contiguous
horizontal run and the contiguous vertical run it belongs to. When both
runs are longer than one, both lengths are added, so the new tile is
counted twice. An isolated tile scores 1.
"""

from __future__ import annotations
from typing import Sequence

from .state import Tile, TileType, FLOOR_PENALTIES, WALL_PATTERN, WALL_SIZE

Wall = Sequence[Sequence[Tile | None]]

ROW_BONUS = 2
COLUMN_BONUS = 7
COLOR_BONUS = 10


def _run_length(wall: Wall, row: int, col: int, d_row: int, d_col: int) -> int:
    """Length of the run through (row, col) along one axis, counting (row, col) itself."""
    length = 1
    for sign in (-1, 1):
        r, c = row + sign * d_row, col + sign * d_col
        while 0 <= r < WALL_SIZE and 0 <= c < WALL_SIZE and wall[r][c] is not None:
            length += 1
            r, c = r + sign * d_row, c + sign * d_col
    return length


def score_cell(wall: Wall, row: int, col: int) -> int:
    """Points for a tile placed at (row, col)."""
    horizontal = _run_length(wall, row, col, 0, 1)
    vertical = _run_length(wall, row, col, 1, 0)

    if horizontal > 1 and vertical > 1:
        return horizontal + vertical
    if horizontal > 1:
        return horizontal
    if vertical > 1:
        return vertical
    return 1


def floor_penalty(floor: Sequence[Tile | None]) -> int:
    """Sum of penalty weights for the occupied floor slots (zero or negative)."""
    return sum(
        weight for weight, tile in zip(FLOOR_PENALTIES, floor) if tile is not None
    )


def apply_penalty(score: int, penalty: int) -> int:
    """Scores never go below zero."""
    return max(0, score + penalty)


def complete_rows(wall: Wall) -> list[int]:
    return [r for r in range(WALL_SIZE) if all(cell is not None for cell in wall[r])]


def complete_columns(wall: Wall) -> list[int]:
    return [c for c in range(WALL_SIZE) if all(wall[r][c] is not None for r in range(WALL_SIZE))]


def complete_colors(wall: Wall) -> list[TileType]:
    """Colors placed on all five rows of the wall."""
    done = []
    for color in TileType:
        cells = [
            wall[r][WALL_PATTERN[r].index(color)] for r in range(WALL_SIZE)
        ]
        if all(cell is not None for cell in cells):
            done.append(color)
    return done


def end_game_bonus(wall: Wall) -> int:
    """
    Final bonus for a wall.

    +2 per complete row, +7 per complete column, +10 per color placed
    five times.
    """
    return (
        ROW_BONUS * len(complete_rows(wall))
        + COLUMN_BONUS * len(complete_columns(wall))
        + COLOR_BONUS * len(complete_colors(wall))
    )


def rank_players(scores: Sequence[int], walls: Sequence[Wall]) -> list[int]:
    """
    Player indices from first to last place.

    Ties on score are broken by the number of complete wall rows.
    """
    return sorted(
        range(len(scores)),
        key=lambda i: (scores[i], len(complete_rows(walls[i]))),
        reverse=True,
    )
