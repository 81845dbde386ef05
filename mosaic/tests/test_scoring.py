"""
Tests for scoring.

Tests:
- Wall placement points along both axes
- Floor penalties and the zero floor on scores
- End-of-game bonuses and ranking
"""

from ..engine_core.state import Tile, TileType, WALL_PATTERN, WALL_SIZE, FLOOR_SIZE
from ..engine_core.scoring import (
    apply_penalty,
    complete_colors,
    end_game_bonus,
    floor_penalty,
    rank_players,
    score_cell,
)


def empty_wall():
    return [[None] * WALL_SIZE for _ in range(WALL_SIZE)]


def put(wall, row, col):
    wall[row][col] = Tile(WALL_PATTERN[row][col])


class TestScoreCell:
    """Tests for score_cell."""

    def test_isolated_tile_scores_one(self):
        """A tile with no neighbors scores 1."""
        wall = empty_wall()
        put(wall, 2, 2)

        assert score_cell(wall, 2, 2) == 1

    def test_horizontal_run(self):
        """Columns 0 and 1 filled, placing column 2 scores the run of 3."""
        wall = empty_wall()
        put(wall, 0, 0)
        put(wall, 0, 1)
        put(wall, 0, 2)

        assert score_cell(wall, 0, 2) == 3

    def test_vertical_run(self):
        """A run down a column scores its length."""
        wall = empty_wall()
        put(wall, 0, 4)
        put(wall, 1, 4)
        put(wall, 2, 4)

        assert score_cell(wall, 2, 4) == 3

    def test_both_axes_count_the_new_tile_twice(self):
        """A tile joining a row and a column scores both runs."""
        wall = empty_wall()
        put(wall, 2, 0)
        put(wall, 2, 1)
        put(wall, 0, 2)
        put(wall, 1, 2)
        put(wall, 2, 2)

        assert score_cell(wall, 2, 2) == 6

    def test_gap_breaks_the_run(self):
        """Tiles past an empty cell do not count."""
        wall = empty_wall()
        put(wall, 3, 0)
        put(wall, 3, 2)

        assert score_cell(wall, 3, 2) == 1

    def test_cell_not_yet_set_counts_itself(self):
        """Scoring a cell before it is set counts the new tile."""
        wall = empty_wall()
        put(wall, 4, 3)

        assert score_cell(wall, 4, 4) == 2


class TestFloorPenalty:
    """Tests for floor_penalty and apply_penalty."""

    def test_first_three_slots(self):
        """Slots 0, 1, 2 occupied: -1 + -1 + -2."""
        floor = [Tile(TileType.RED)] * 3 + [None] * (FLOOR_SIZE - 3)

        assert floor_penalty(floor) == -4

    def test_full_floor(self):
        """A full floor costs 14."""
        floor = [Tile(TileType.RED)] * FLOOR_SIZE

        assert floor_penalty(floor) == -14

    def test_empty_floor(self):
        """An empty floor costs nothing."""
        assert floor_penalty([None] * FLOOR_SIZE) == 0

    def test_score_never_goes_negative(self):
        """Penalties stop at zero."""
        assert apply_penalty(3, -14) == 0
        assert apply_penalty(0, -1) == 0

    def test_penalty_subtracts(self):
        """Penalties come off the score."""
        assert apply_penalty(10, -4) == 6


class TestEndGameBonus:
    """Tests for end-of-game bonuses."""

    def test_complete_row(self):
        """A complete row is worth 2."""
        wall = empty_wall()
        for col in range(WALL_SIZE):
            put(wall, 0, col)

        assert end_game_bonus(wall) == 2

    def test_complete_column(self):
        """A complete column is worth 7."""
        wall = empty_wall()
        for row in range(WALL_SIZE):
            put(wall, row, 0)

        assert end_game_bonus(wall) == 7

    def test_complete_color(self):
        """Blue runs down the diagonal."""
        wall = empty_wall()
        for i in range(WALL_SIZE):
            put(wall, i, i)

        assert complete_colors(wall) == [TileType.BLUE]
        assert end_game_bonus(wall) == 10

    def test_empty_wall_has_no_bonus(self):
        """An empty wall earns nothing."""
        assert end_game_bonus(empty_wall()) == 0


class TestRankPlayers:
    """Tests for rank_players."""

    def test_higher_score_first(self):
        """Players rank by score."""
        assert rank_players([10, 25], [empty_wall(), empty_wall()]) == [1, 0]

    def test_tie_broken_by_complete_rows(self):
        """Tied scores rank by complete rows."""
        wall = empty_wall()
        for col in range(WALL_SIZE):
            put(wall, 1, col)

        assert rank_players([20, 20], [empty_wall(), wall]) == [1, 0]
