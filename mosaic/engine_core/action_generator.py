"""
Action Generator - Generates all legal actions from a game state.

The action generator is used by:
1. The loopback simulator to pick moves
2. UI collaborators to show available affordances
3. Tests (every generated action must be accepted by the reducer)

Design: Generates Action objects, not just action types, using the same
placement predicates as the reducer.
"""

from __future__ import annotations
from dataclasses import dataclass

from .state import GameState, GamePhase, TileSource, WALL_SIZE
from .action import Action
from .reducer import can_end_turn, can_place_on_row


@dataclass
class ActionGenerator:
    """Generates legal actions for one player."""

    include_undo: bool = True

    def generate(self, state: GameState, player_index: int | None = None) -> list[Action]:
        """
        Generate all legal actions for ``player_index`` (default: the
        current player).

        Returns an empty list for the player who is not on turn.
        """
        if player_index is None:
            player_index = state.current_player
        if state.phase == GamePhase.GAME_OVER or player_index != state.current_player:
            return []

        if state.phase == GamePhase.READY_TO_WALL_TILE:
            return [Action.wall_tiling(player_index)]

        if state.phase == GamePhase.DONE_WALL_TILING:
            if any(board.complete_wall_rows() for board in state.players):
                return [Action.end_game(player_index)]
            return [Action.start_next_round(player_index)]

        if state.current_tile_source is None:
            return self._generate_draws(state, player_index)

        return self._generate_turn_actions(state, player_index)

    def _generate_draws(self, state: GameState, player_index: int) -> list[Action]:
        actions = [
            Action.draw_from_factory(player_index, i)
            for i, factory in enumerate(state.factories)
            if factory
        ]
        if state.pot:
            actions.append(Action.draw(player_index, TileSource.pot()))
        return actions

    def _generate_turn_actions(self, state: GameState, player_index: int) -> list[Action]:
        board = state.players[player_index]
        holding = board.holding_area
        actions: list[Action] = []

        if not state.has_placed_tile:
            for color in holding.colors():
                if holding.locked_color is None or holding.locked_color == color:
                    if color != state.selected_color:
                        actions.append(Action.select_color(player_index, color))

        color = state.selected_color
        if color is not None and holding.count(color):
            for row in range(WALL_SIZE):
                if can_place_on_row(board, row, color):
                    actions.append(Action.place_on_row(player_index, row))
            if not board.is_floor_full:
                actions.append(Action.place_on_floor(player_index))

        if can_end_turn(state, player_index):
            actions.append(Action.end_turn(player_index))

        if self.include_undo:
            if state.placed_tiles_this_turn:
                actions.append(Action.undo_placement(player_index))
            actions.append(Action.undo_turn(player_index))

        return actions


def legal_actions(state: GameState, player_index: int | None = None, include_undo: bool = True) -> list[Action]:
    """Convenience function to get legal actions."""
    return ActionGenerator(include_undo=include_undo).generate(state, player_index)
