"""
Tests for the reducer (state transitions).

Tests:
- Draw, select, place, undo and end-turn rules
- Wall tiling and round transitions
- End of game
- Rejections leave the input state untouched
"""

import pytest

from ..engine_core.action import Action, ErrorCode
from ..engine_core.reducer import TurnStage, apply_action, turn_stage
from ..engine_core.state import (
    GamePhase,
    PlacementLocation,
    Tile,
    TileSource,
    FLOOR_SIZE,
    wall_column,
)
from ..engine_core.invariants import validate_state
from .builders import build_state, fill_wall_row, take, B, R, Y, K, W


def run(reducer, state, *actions):
    """Apply actions in order, failing the test on the first rejection."""
    for action in actions:
        result = reducer.apply(state, action)
        assert result.success, result.error
        state = result.new_state
    return state


class TestDraw:
    """Tests for the draw action."""

    def test_draw_moves_whole_factory_to_holding_area(self, reducer, drafting_state):
        """Drawing takes every tile of the factory into the holding area."""
        result = reducer.apply(drafting_state, Action.draw_from_factory(0, 0))

        assert result.success
        state = result.new_state
        assert [t.type for t in state.players[0].holding_area.tiles] == [B, B, R, Y]
        assert state.factories[0] == []
        assert state.current_tile_source == TileSource.factory(0)

    def test_input_state_is_not_modified(self, reducer, drafting_state):
        """The reducer never mutates the state it is given."""
        reducer.apply(drafting_state, Action.draw_from_factory(0, 0))

        assert len(drafting_state.factories[0]) == 4
        assert drafting_state.players[0].holding_area.is_empty

    def test_second_draw_rejected(self, reducer, drafting_state):
        """Only one draw per turn."""
        state = run(reducer, drafting_state, Action.draw_from_factory(0, 0))
        result = reducer.apply(state, Action.draw_from_factory(0, 1))

        assert not result.success
        assert result.error_code == ErrorCode.SOURCE_ALREADY_CHOSEN

    def test_empty_factory_rejected(self, reducer, drafting_state):
        """Drawing from an empty factory fails."""
        result = reducer.apply(drafting_state, Action.draw_from_factory(0, 4))

        assert result.error_code == ErrorCode.EMPTY_SOURCE

    def test_unknown_factory_rejected(self, reducer, drafting_state):
        """Factory indexes past the last factory fail."""
        result = reducer.apply(drafting_state, Action.draw_from_factory(0, 9))

        assert result.error_code == ErrorCode.INVALID_SOURCE

    def test_wrong_player_rejected(self, reducer, drafting_state):
        """Acting out of turn fails and leaves the state alone."""
        result = reducer.apply(drafting_state, Action.draw_from_factory(1, 0))

        assert not result.success
        assert result.error_code == ErrorCode.NOT_YOUR_TURN
        assert result.state_or(drafting_state) is drafting_state

    def test_first_pot_draw_takes_marker(self, reducer):
        """The first pot draw of a round claims the first-player marker."""
        state = build_state(factories={0: [K]}, pot=[R, R], current_player=1)

        state = run(reducer, state, Action.draw_from_pot(1))

        assert state.first_player_marker_index == 1
        assert state.has_first_player_been_moved
        assert state.pot == []

    def test_marker_moves_once_per_round(self, reducer):
        """Later pot draws leave the marker where it is."""
        state = build_state(factories={0: [K]}, pot=[R, R], current_player=1)
        state.has_first_player_been_moved = True

        state = run(reducer, state, Action.draw_from_pot(1))

        assert state.first_player_marker_index == 0


class TestSelectColor:
    """Tests for color selection."""

    def test_select_before_draw_rejected(self, reducer, drafting_state):
        """Selecting needs a draw first."""
        result = reducer.apply(drafting_state, Action.select_color(0, B))

        assert result.error_code == ErrorCode.NO_SOURCE

    def test_select_color_not_held(self, reducer, drafting_state):
        """Only held colors can be selected."""
        state = run(reducer, drafting_state, Action.draw_from_factory(0, 0))
        result = reducer.apply(state, Action.select_color(0, K))

        assert result.error_code == ErrorCode.COLOR_NOT_HELD

    def test_reselect_while_nothing_placed(self, reducer, drafting_state):
        """The selection can change until a tile is placed."""
        state = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
            Action.select_color(0, R),
        )

        assert state.selected_color == R
        assert state.selected_tile == Tile(R)

    def test_other_color_locked_after_placement(self, reducer, drafting_state):
        """After a placement only that color may be selected."""
        state = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
            Action.place_on_row(0, 1),
        )
        result = reducer.apply(state, Action.select_color(0, R))

        assert result.error_code == ErrorCode.COLOR_LOCKED


class TestPlace:
    """Tests for placing the selected color."""

    @pytest.fixture
    def holding_blue(self, reducer, drafting_state):
        return run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
        )

    def test_place_without_selection_rejected(self, reducer, drafting_state):
        """Placing needs a selected color."""
        state = run(reducer, drafting_state, Action.draw_from_factory(0, 0))
        result = reducer.apply(state, Action.place_on_row(0, 0))

        assert result.error_code == ErrorCode.NO_COLOR_SELECTED

    def test_staircase_fills_right_to_left(self, reducer, holding_blue):
        """Staircase rows fill from the wall side."""
        state = run(reducer, holding_blue, Action.place_on_row(0, 2))

        assert state.players[0].staircase[2] == [None, None, Tile(B)]
        record = state.placed_tiles_this_turn[0]
        assert record.location == PlacementLocation.STAIRCASE
        assert record.row_index == 2
        assert record.position == 2
        assert state.players[0].holding_area.locked_color == B

    def test_selection_advances_to_next_tile_of_color(self, reducer, holding_blue):
        """The selection stays on the color while tiles of it remain."""
        state = run(reducer, holding_blue, Action.place_on_row(0, 2))

        assert state.selected_color == B
        assert not state.has_placed_tile

        state = run(reducer, state, Action.place_on_row(0, 2))

        assert state.selected_color is None
        assert state.has_placed_tile
        assert state.players[0].staircase[2] == [None, Tile(B), Tile(B)]

    def test_wall_already_has_color(self, reducer, holding_blue):
        """A row whose wall already holds the color refuses it."""
        holding_blue.players[0].wall[1][wall_column(1, B)] = Tile(B)

        result = reducer.apply(holding_blue, Action.place_on_row(0, 1))

        assert result.error_code == ErrorCode.WALL_HAS_COLOR

    def test_row_holds_other_color(self, reducer, holding_blue):
        """A row already started in another color refuses it."""
        holding_blue.players[0].staircase[3][3] = Tile(R)

        result = reducer.apply(holding_blue, Action.place_on_row(0, 3))

        assert result.error_code == ErrorCode.ROW_COLOR_MISMATCH

    def test_full_row(self, reducer, holding_blue):
        """A full row refuses more tiles."""
        holding_blue.players[0].staircase[0][0] = Tile(B)

        result = reducer.apply(holding_blue, Action.place_on_row(0, 0))

        assert result.error_code == ErrorCode.ROW_FULL

    def test_row_out_of_range(self, reducer, holding_blue):
        """Row indexes outside the staircase fail."""
        result = reducer.apply(holding_blue, Action.place_on_row(0, 5))

        assert result.error_code == ErrorCode.INVALID_ROW

    def test_floor_fills_left_to_right(self, reducer, holding_blue):
        """Floor tiles go in the first empty cell."""
        holding_blue.players[0].floor[0] = Tile(R)

        state = run(reducer, holding_blue, Action.place_on_floor(0))

        assert state.players[0].floor[1] == Tile(B)
        assert state.placed_tiles_this_turn[0].position == 1

    def test_full_floor_rejected(self, reducer, holding_blue):
        """A full floor refuses more tiles."""
        holding_blue.players[0].floor = [Tile(R)] * FLOOR_SIZE

        result = reducer.apply(holding_blue, Action.place_on_floor(0))

        assert result.error_code == ErrorCode.FLOOR_FULL


class TestUndo:
    """Tests for undo placement and undo turn."""

    def test_undo_placement_round_trip(self, reducer, drafting_state):
        """Placing then undoing restores holding area, boards and the log."""
        before = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
        )
        placed = run(reducer, before, Action.place_on_row(0, 1), Action.place_on_floor(0))
        undone = run(reducer, placed, Action.undo_placement(0))

        board, original = undone.players[0], before.players[0]
        assert board.holding_area.tiles == original.holding_area.tiles
        assert board.staircase == original.staircase
        assert board.floor == original.floor
        assert undone.placed_tiles_this_turn == before.placed_tiles_this_turn
        assert board.holding_area.locked_color is None
        assert not undone.has_placed_tile
        assert undone.current_tile_source == TileSource.factory(0)

    def test_undo_restores_holding_order(self, reducer, drafting_state):
        """Undone tiles return to their original holding position."""
        state = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 2),
            Action.select_color(0, Y),
            Action.place_on_row(0, 4),
            Action.place_on_row(0, 4),
            Action.undo_placement(0),
        )

        assert [t.type for t in state.players[0].holding_area.tiles] == [W, W, Y, Y]

    def test_undo_with_nothing_placed(self, reducer, drafting_state):
        """Undoing with no placement fails."""
        state = run(reducer, drafting_state, Action.draw_from_factory(0, 0))
        result = reducer.apply(state, Action.undo_placement(0))

        assert result.error_code == ErrorCode.NOTHING_TO_UNDO

    def test_undo_turn_returns_tiles_to_factory(self, reducer, drafting_state):
        """Undoing the turn puts the drawn tiles back on their factory."""
        state = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
            Action.place_on_row(0, 3),
            Action.undo_turn(0),
        )

        assert state.factories[0] == drafting_state.factories[0]
        assert state.players[0].holding_area.is_empty
        assert state.current_tile_source is None
        assert state.players[0].staircase == drafting_state.players[0].staircase

    def test_undo_turn_returns_marker(self, reducer):
        """Undoing a pot draw gives the first-player marker back."""
        state = build_state(factories={0: [K]}, pot=[R, R], current_player=1)

        state = run(reducer, state, Action.draw_from_pot(1), Action.undo_turn(1))

        assert state.pot == [Tile(R), Tile(R)]
        assert state.first_player_marker_index == 0
        assert not state.has_first_player_been_moved

    def test_undo_turn_without_draw(self, reducer, drafting_state):
        """Undoing a turn that has not started fails."""
        result = reducer.apply(drafting_state, Action.undo_turn(0))

        assert result.error_code == ErrorCode.NOTHING_TO_UNDO


class TestEndTurn:
    """Tests for ending a turn."""

    def test_tiles_of_selected_color_remaining(self, reducer, drafting_state):
        """The turn cannot end while the locked color can still be placed."""
        state = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
            Action.place_on_row(0, 3),
        )
        result = reducer.apply(state, Action.end_turn(0))

        assert result.error_code == ErrorCode.TILES_REMAINING

    def test_must_place_something(self, reducer, drafting_state):
        """The turn cannot end before any placement."""
        state = run(reducer, drafting_state, Action.draw_from_factory(0, 0))
        result = reducer.apply(state, Action.end_turn(0))

        assert result.error_code == ErrorCode.TILES_REMAINING

    def test_leftovers_go_to_pot_and_turn_passes(self, reducer, drafting_state):
        """Unplaced tiles go to the pot and the other player is up."""
        state = run(
            reducer, drafting_state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
            Action.place_on_row(0, 1),
            Action.place_on_row(0, 1),
            Action.end_turn(0),
        )

        assert sorted(t.type.value for t in state.pot) == ["red", "yellow"]
        assert state.current_player == 1
        assert state.players[0].holding_area.is_empty
        assert state.placed_tiles_this_turn == []
        assert state.current_tile_source is None
        assert state.phase == GamePhase.PLAYING
        assert validate_state(state).valid

    def test_last_source_ends_round_without_passing_turn(self, reducer):
        """Emptying the last source ends the round with the same player current."""
        state = build_state(factories={0: [B, B]})

        state = run(
            reducer, state,
            Action.draw_from_factory(0, 0),
            Action.select_color(0, B),
            Action.place_on_row(0, 1),
            Action.place_on_row(0, 1),
            Action.end_turn(0),
        )

        assert state.phase == GamePhase.READY_TO_WALL_TILE
        assert state.current_player == 0
        assert turn_stage(state) == TurnStage.ROUND_END

    def test_stranded_tiles_do_not_block(self, reducer):
        """Floor full and no row accepts the color: the turn can end without placing."""
        state = build_state(factories={0: [B], 1: [K]})
        board = state.players[0]
        board.floor = take(state, *[R] * FLOOR_SIZE)
        for row in range(5):
            board.wall[row][wall_column(row, B)] = take(state, B)[0]

        state = run(reducer, state, Action.draw_from_factory(0, 0), Action.end_turn(0))

        assert state.pot == [Tile(B)]
        assert state.current_player == 1


class TestWallTiling:
    """Tests for the wall-tiling transition."""

    @pytest.fixture
    def round_over(self):
        state = build_state(phase=GamePhase.READY_TO_WALL_TILE)
        board = state.players[0]
        board.staircase[1] = take(state, B, B)
        board.staircase[2] = [None, None] + take(state, R)
        board.floor = take(state, K, K, K) + [None] * (FLOOR_SIZE - 3)
        board.score = 5
        return state

    def test_full_row_moves_to_wall_and_scores(self, reducer, round_over):
        """A full row puts one tile on the wall and scores it."""
        state = run(reducer, round_over, Action.wall_tiling(0))
        board = state.players[0]

        assert board.wall[1][wall_column(1, B)] == Tile(B)
        assert board.staircase[1] == [None, None]
        # 5 + 1 for the isolated tile - 4 on the floor
        assert board.score == 2
        assert state.phase == GamePhase.DONE_WALL_TILING

    def test_incomplete_row_persists(self, reducer, round_over):
        """Partial rows carry over to the next round."""
        state = run(reducer, round_over, Action.wall_tiling(0))

        assert state.players[0].staircase[2] == [None, None, Tile(R)]

    def test_floor_and_spare_tiles_discarded(self, reducer, round_over):
        """Floor tiles and the rest of a full row go to the discard pile."""
        state = run(reducer, round_over, Action.wall_tiling(0))

        assert state.players[0].floor == [None] * FLOOR_SIZE
        assert sorted(t.type.value for t in state.discard_pile) == ["black", "black", "black", "blue"]
        assert validate_state(state).valid

    def test_wall_tiling_outside_round_end(self, reducer, drafting_state):
        """Wall tiling is only allowed at round end."""
        result = reducer.apply(drafting_state, Action.wall_tiling(0))

        assert result.error_code == ErrorCode.WRONG_PHASE


class TestRoundTransitions:
    """Tests for starting the next round and ending the game."""

    def test_next_round_starts_with_marker_holder(self, reducer):
        """The marker holder starts the next round."""
        state = build_state(phase=GamePhase.DONE_WALL_TILING)
        state.first_player_marker_index = 1
        state.has_first_player_been_moved = True

        state = run(reducer, state, Action.start_next_round(0))

        assert state.phase == GamePhase.PLAYING
        assert state.current_player == 1
        assert state.round_number == 2
        assert not state.has_first_player_been_moved
        assert all(len(f) == 4 for f in state.factories)

    def test_short_bag_is_not_recycled_mid_fill(self, reducer):
        """Six tiles in the bag: factories come up short, nothing is lost."""
        state = build_state(phase=GamePhase.DONE_WALL_TILING)
        state.discard_pile, state.tile_bag = state.tile_bag[6:], state.tile_bag[:6]

        state = run(reducer, state, Action.start_next_round(0))

        assert [len(f) for f in state.factories] == [4, 2, 0, 0, 0]
        assert validate_state(state).valid

    def test_empty_bag_recycles_discard(self, reducer):
        """An empty bag is refilled from the discard pile."""
        state = build_state(phase=GamePhase.DONE_WALL_TILING)
        state.discard_pile, state.tile_bag = state.tile_bag, []

        state = run(reducer, state, Action.start_next_round(0))

        assert all(len(f) == 4 for f in state.factories)
        assert state.discard_pile == []

    def test_next_round_refused_after_complete_row(self, reducer):
        """A complete wall row forbids another round."""
        state = build_state(phase=GamePhase.DONE_WALL_TILING)
        fill_wall_row(state, 0, 0)

        result = reducer.apply(state, Action.start_next_round(0))

        assert result.error_code == ErrorCode.GAME_OVER

    def test_end_game_applies_bonuses(self, reducer):
        """Ending the game adds bonuses and records standings."""
        state = build_state(phase=GamePhase.DONE_WALL_TILING)
        fill_wall_row(state, 0, 1)
        state.players[1].score = 30

        state = run(reducer, state, Action.end_game(0))

        assert state.phase == GamePhase.GAME_OVER
        assert state.players[0].score == 2
        assert state.players[1].score == 30
        assert state.metadata["standings"] == [1, 0]

    def test_end_game_needs_complete_row(self, reducer):
        """The game cannot end before some wall row is complete."""
        state = build_state(phase=GamePhase.DONE_WALL_TILING)

        result = reducer.apply(state, Action.end_game(0))

        assert result.error_code == ErrorCode.GAME_NOT_OVER

    def test_nothing_allowed_after_game_over(self, reducer):
        """Every action fails once the game is over."""
        state = build_state(phase=GamePhase.GAME_OVER, factories={0: [B]})

        result = apply_action(state, Action.draw_from_factory(0, 0))

        assert result.error_code == ErrorCode.GAME_OVER


class TestTurnStage:
    """Tests for turn_stage."""

    def test_stages_through_a_turn(self, reducer, drafting_state):
        """The stage follows a turn from draw to end."""
        assert turn_stage(drafting_state) == TurnStage.NO_SOURCE_SELECTED

        state = run(reducer, drafting_state, Action.draw_from_factory(0, 0), Action.select_color(0, B))
        assert turn_stage(state) == TurnStage.SOURCE_CHOSEN

        state = run(reducer, state, Action.place_on_row(0, 4))
        assert turn_stage(state) == TurnStage.COLOR_LOCKED

        state = run(reducer, state, Action.place_on_row(0, 4))
        assert turn_stage(state) == TurnStage.READY_TO_END_TURN
