"""
Tests for action generation and match setup.

Tests:
- A new match is dealt correctly
- Generated actions per phase and turn stage
- Every generated action is accepted by the reducer
"""

import random

from ..engine_core.action import Action, ActionType, ErrorCode
from ..engine_core.action_generator import ActionGenerator, legal_actions
from ..engine_core.reducer import can_end_turn, end_turn_refusal
from ..engine_core.invariants import validate_state
from ..engine_core.setup import new_game
from ..engine_core.state import GamePhase, FLOOR_SIZE, TOTAL_TILES, wall_column
from .builders import build_state, fill_wall_row, take, B, R, K, Y


def action_types(actions):
    return [a.action_type for a in actions]


class TestNewGame:
    """Tests for new_game."""

    def test_factories_filled_and_player_zero_first(self, fresh_game):
        """A new match fills every factory and player 0 starts."""
        assert [len(f) for f in fresh_game.factories] == [4, 4, 4, 4, 4]
        assert len(fresh_game.tile_bag) == TOTAL_TILES - 20
        assert fresh_game.current_player == 0
        assert fresh_game.first_player_marker_index == 0
        assert fresh_game.phase == GamePhase.PLAYING
        assert fresh_game.pot == []

    def test_new_game_is_valid(self, fresh_game):
        """A dealt match passes every invariant."""
        assert validate_state(fresh_game).valid

    def test_same_seed_same_deal(self):
        """The same seed deals the same factories."""
        assert new_game(random_seed=5).factories == new_game(random_seed=5).factories


class TestGenerate:
    """Tests for ActionGenerator.generate."""

    def test_start_of_turn_offers_draws(self, drafting_state):
        """A fresh turn offers one draw per non-empty factory."""
        actions = legal_actions(drafting_state)

        assert action_types(actions) == [ActionType.DRAW] * 3
        assert [a.payload.source.index for a in actions] == [0, 1, 2]

    def test_pot_offered_when_not_empty(self):
        """The pot is offered once it holds tiles."""
        state = build_state(factories={0: [B]}, pot=[R])

        actions = legal_actions(state)

        assert any(a.payload.source.is_pot for a in actions)

    def test_other_player_gets_nothing(self, drafting_state):
        """The player who is not on turn has no actions."""
        assert legal_actions(drafting_state, player_index=1) == []

    def test_after_draw_offers_colors_and_undo(self, reducer, drafting_state):
        """After a draw every held color can be selected."""
        state = reducer.apply(drafting_state, Action.draw_from_factory(0, 0)).new_state

        actions = legal_actions(state)

        selects = [a.payload.color for a in actions if a.action_type == ActionType.SELECT_COLOR]
        assert set(selects) == {B, R, Y}
        assert ActionType.END_TURN not in action_types(actions)
        assert ActionType.UNDO_TURN in action_types(actions)

    def test_selected_color_offers_rows_and_floor(self, reducer, drafting_state):
        """A selected color can go to any open row or the floor."""
        state = reducer.apply(drafting_state, Action.draw_from_factory(0, 0)).new_state
        state = reducer.apply(state, Action.select_color(0, B)).new_state

        actions = legal_actions(state, include_undo=False)

        rows = [a.payload.row_index for a in actions if a.action_type == ActionType.PLACE and a.payload.row_index is not None]
        assert rows == [0, 1, 2, 3, 4]
        assert ActionType.UNDO_TURN not in action_types(actions)

    def test_stranded_tiles_allow_end_turn(self, reducer):
        """Tiles with nowhere to go do not block the end of turn."""
        state = build_state(factories={0: [B], 1: [K]})
        board = state.players[0]
        board.floor = take(state, *[R] * FLOOR_SIZE)
        for row in range(5):
            board.wall[row][wall_column(row, B)] = take(state, B)[0]
        state = reducer.apply(state, Action.draw_from_factory(0, 0)).new_state

        assert ActionType.END_TURN in action_types(legal_actions(state))

    def test_round_transitions(self):
        """Round-end phases offer wall tiling, next round or end game."""
        tiling = build_state(phase=GamePhase.READY_TO_WALL_TILE)
        done = build_state(phase=GamePhase.DONE_WALL_TILING)
        finished = build_state(phase=GamePhase.DONE_WALL_TILING)
        fill_wall_row(finished, 1, 4)

        assert action_types(legal_actions(tiling)) == [ActionType.WALL_TILING]
        assert action_types(legal_actions(done)) == [ActionType.START_NEXT_ROUND]
        assert action_types(legal_actions(finished)) == [ActionType.END_GAME]

    def test_game_over_offers_nothing(self):
        """A finished game offers nothing."""
        assert legal_actions(build_state(phase=GamePhase.GAME_OVER)) == []


class TestGeneratedActionsAreLegal:
    """Every generated action must be accepted by the reducer."""

    def test_random_walk(self, reducer):
        rng = random.Random(11)
        generator = ActionGenerator()
        state = new_game(random_seed=11)

        for _ in range(400):
            actions = generator.generate(state)
            if not actions:
                break
            for action in actions:
                result = reducer.apply(state, action)
                assert result.success, f"{action.action_type}: {result.error}"
            state = reducer.apply(state, rng.choice(actions)).new_state
            assert validate_state(state).valid


class TestCanEndTurn:
    """The end-turn check shared by the generator and the reducer."""

    def test_refused_before_draw(self, drafting_state):
        """No draw yet, so there is no turn to end."""
        assert not can_end_turn(drafting_state, 0)
        assert end_turn_refusal(drafting_state, 0).error_code == ErrorCode.NO_SOURCE

    def test_refused_while_tiles_can_be_placed(self, reducer, drafting_state):
        """A fresh draw with open rows must place something first."""
        state = reducer.apply(drafting_state, Action.draw_from_factory(0, 0)).new_state

        assert end_turn_refusal(state, 0).error_code == ErrorCode.TILES_REMAINING
        assert reducer.apply(state, Action.end_turn(0)).error_code == ErrorCode.TILES_REMAINING

    def test_allowed_once_selection_placed(self, reducer, drafting_state):
        """Placing every tile of the chosen color unlocks the end of turn."""
        state = reducer.apply(drafting_state, Action.draw_from_factory(0, 0)).new_state
        state = reducer.apply(state, Action.select_color(0, R)).new_state
        state = reducer.apply(state, Action.place_on_row(0, 0)).new_state

        assert can_end_turn(state, 0)
        assert ActionType.END_TURN in action_types(legal_actions(state))
        assert reducer.apply(state, Action.end_turn(0)).success
