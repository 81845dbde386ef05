"""
Reducer - Applies actions to game state.

The reducer is the single point of state mutation.
All state changes must go through apply_action().

Design principles:
- (state, action) -> new state; the input state is never modified
- Validates before applying
- Returns ActionResult with success/failure, never raises for illegal moves

Turn stages for the acting player:

    NO_SOURCE_SELECTED -> SOURCE_CHOSEN -> COLOR_LOCKED -> READY_TO_END_TURN
        -> (end turn) -> NO_SOURCE_SELECTED | ROUND_END

Rule note: a draw moves the whole source into the holding area, every
color included. Tiles of colors the player did not place go to the pot
when the turn ends, rather than at draw time.
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass, field
from enum import Enum

from .state import (
    GameState,
    GamePhase,
    PlayerBoard,
    HoldingArea,
    PlacedTile,
    PlacementLocation,
    SourceKind,
    Tile,
    TileType,
    FLOOR_SIZE,
    TILES_PER_FACTORY,
    WALL_SIZE,
    wall_column,
)
from .action import Action, ActionType, ActionResult, ErrorCode
from .scoring import score_cell, floor_penalty, apply_penalty, end_game_bonus, rank_players
from .supply import RecycleSource, recycle_if_empty, fill_factories

logger = logging.getLogger(__name__)


class TurnStage(Enum):
    """Where the current player is within their turn."""
    NO_SOURCE_SELECTED = "no_source_selected"
    SOURCE_CHOSEN = "source_chosen"
    COLOR_LOCKED = "color_locked"
    READY_TO_END_TURN = "ready_to_end_turn"
    ROUND_END = "round_end"


def turn_stage(state: GameState) -> TurnStage:
    if state.phase != GamePhase.PLAYING:
        return TurnStage.ROUND_END
    if state.current_tile_source is None:
        return TurnStage.NO_SOURCE_SELECTED
    if state.has_placed_tile:
        return TurnStage.READY_TO_END_TURN
    if state.placed_tiles_this_turn:
        return TurnStage.COLOR_LOCKED
    return TurnStage.SOURCE_CHOSEN


def can_place_on_row(board: PlayerBoard, row: int, color: TileType) -> bool:
    """Whether one more ``color`` tile fits on staircase ``row``."""
    if not 0 <= row < WALL_SIZE:
        return False
    if board.wall_row_has(row, color):
        return False
    row_color = board.staircase_row_color(row)
    if row_color is not None and row_color != color:
        return False
    return not board.is_row_full(row)


def has_destination(board: PlayerBoard, color: TileType) -> bool:
    """Whether a ``color`` tile can go anywhere on this board right now."""
    if not board.is_floor_full:
        return True
    return any(can_place_on_row(board, row, color) for row in range(WALL_SIZE))


def end_turn_refusal(state: GameState, player_index: int) -> ActionResult | None:
    """The failure an end-turn would get right now, or None if it is allowed."""
    if state.current_tile_source is None:
        return ActionResult.failure("Draw tiles before ending the turn", ErrorCode.NO_SOURCE)

    board = state.players[player_index]
    holding = board.holding_area
    pending = holding.locked_color or state.selected_color
    if pending is not None and holding.count(pending) and has_destination(board, pending):
        return ActionResult.failure(
            f"{holding.count(pending)} {pending.value} tile(s) still to place",
            ErrorCode.TILES_REMAINING,
        )
    # A player with no legal placement at all may pass the whole draw to the pot
    if not state.placed_tiles_this_turn and any(
        has_destination(board, color) for color in holding.colors()
    ):
        return ActionResult.failure(
            "Place at least one tile before ending the turn", ErrorCode.TILES_REMAINING
        )
    return None


def can_end_turn(state: GameState, player_index: int) -> bool:
    return end_turn_refusal(state, player_index) is None


# Phase each action is legal in
_ACTION_PHASES = {
    ActionType.DRAW: GamePhase.PLAYING,
    ActionType.SELECT_COLOR: GamePhase.PLAYING,
    ActionType.PLACE: GamePhase.PLAYING,
    ActionType.UNDO_PLACEMENT: GamePhase.PLAYING,
    ActionType.UNDO_TURN: GamePhase.PLAYING,
    ActionType.END_TURN: GamePhase.PLAYING,
    ActionType.WALL_TILING: GamePhase.READY_TO_WALL_TILE,
    ActionType.START_NEXT_ROUND: GamePhase.DONE_WALL_TILING,
    ActionType.END_GAME: GamePhase.DONE_WALL_TILING,
}


@dataclass
class Reducer:
    """
    Reducer applies actions to game state.

    Stateless apart from the random source used to refill factories.
    """
    rng: random.Random = field(default_factory=random.Random)

    def apply(self, state: GameState, action: Action) -> ActionResult:
        """
        Apply an action to the game state.

        Returns ActionResult with new state or error.
        """
        validation_error = self._validate_action(state, action)
        if validation_error:
            message, code = validation_error
            logger.debug("Rejected %s: %s", action.action_type.value, message)
            return ActionResult.failure(message, error_code=code)

        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"No handler for action type: {action.action_type}",
                error_code=ErrorCode.NO_HANDLER,
            )

        try:
            result = handler(state, action)
        except (IndexError, KeyError, ValueError) as e:
            logger.exception("Handler for %s failed", action.action_type.value)
            return ActionResult.failure(str(e), error_code=ErrorCode.HANDLER_ERROR)

        if not result.success:
            logger.debug("Rejected %s: %s", action.action_type.value, result.error)
        return result

    def _validate_action(self, state: GameState, action: Action) -> tuple[str, ErrorCode] | None:
        """
        Checks shared by every action: game not over, valid player,
        player's turn, and the right phase.
        """
        if state.phase == GamePhase.GAME_OVER:
            return "Game is over - no actions allowed", ErrorCode.GAME_OVER

        player_index = action.payload.player_index
        if not 0 <= player_index < state.num_players:
            return f"No player with index {player_index}", ErrorCode.INVALID_PLAYER

        if player_index != state.current_player:
            return f"Not player {player_index}'s turn", ErrorCode.NOT_YOUR_TURN

        required = _ACTION_PHASES.get(action.action_type)
        if required is not None and state.phase != required:
            return (
                f"{action.action_type.value} is not allowed during {state.phase.value}",
                ErrorCode.WRONG_PHASE,
            )

        return None

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.DRAW: self._handle_draw,
            ActionType.SELECT_COLOR: self._handle_select_color,
            ActionType.PLACE: self._handle_place,
            ActionType.UNDO_PLACEMENT: self._handle_undo_placement,
            ActionType.UNDO_TURN: self._handle_undo_turn,
            ActionType.END_TURN: self._handle_end_turn,
            ActionType.WALL_TILING: self._handle_wall_tiling,
            ActionType.START_NEXT_ROUND: self._handle_start_next_round,
            ActionType.END_GAME: self._handle_end_game,
        }
        return handlers.get(action_type)

    # =========================================================================
    # Turn actions
    # =========================================================================

    def _handle_draw(self, state: GameState, action: Action) -> ActionResult:
        """Move an entire factory or the pot into the holding area."""
        source = action.payload.source
        if source is None:
            return ActionResult.failure("No source given", ErrorCode.INVALID_SOURCE)
        if state.current_tile_source is not None:
            return ActionResult.failure(
                f"Already drew from {state.current_tile_source.describe()} this turn",
                ErrorCode.SOURCE_ALREADY_CHOSEN,
            )

        tiles = state.source_tiles(source)
        if tiles is None:
            return ActionResult.failure(f"No such source: {source}", ErrorCode.INVALID_SOURCE)
        if not tiles:
            return ActionResult.failure(f"{source.describe()} is empty", ErrorCode.EMPTY_SOURCE)

        player_index = action.payload.player_index
        new_state = state.clone()
        board = new_state.players[player_index]

        if source.is_pot:
            drawn, new_state.pot = new_state.pot, []
        else:
            drawn, new_state.factories[source.index] = new_state.factories[source.index], []
        board.holding_area = HoldingArea(tiles=board.holding_area.tiles + drawn)
        new_state.current_tile_source = source

        changes = [f"Player {player_index} drew {len(drawn)} tile(s) from {source.describe()}"]

        if source.is_pot and not new_state.has_first_player_been_moved:
            new_state.marker_claimed_from = new_state.first_player_marker_index
            new_state.first_player_marker_index = player_index
            new_state.has_first_player_been_moved = True
            changes.append(f"Player {player_index} took the first-player marker")

        return ActionResult.success_with_state(new_state, changes=changes)

    def _handle_select_color(self, state: GameState, action: Action) -> ActionResult:
        """Choose which held color to place next."""
        color = action.payload.color
        if state.current_tile_source is None:
            return ActionResult.failure("Draw tiles before selecting a color", ErrorCode.NO_SOURCE)
        if state.has_placed_tile:
            return ActionResult.failure(
                "All tiles of the chosen color are already placed", ErrorCode.COLOR_LOCKED
            )

        holding = state.players[action.payload.player_index].holding_area
        if color is None or holding.count(color) == 0:
            return ActionResult.failure(f"No {color} tile in the holding area", ErrorCode.COLOR_NOT_HELD)
        if holding.locked_color is not None and holding.locked_color != color:
            return ActionResult.failure(
                f"Turn is locked to {holding.locked_color.value}", ErrorCode.COLOR_LOCKED
            )

        new_state = state._copy_with(selected_color=color)
        return ActionResult.success_with_state(new_state, changes=[f"Selected {color.value}"])

    def _handle_place(self, state: GameState, action: Action) -> ActionResult:
        """Place one tile of the selected color on a staircase row or the floor."""
        color = state.selected_color
        if color is None:
            return ActionResult.failure("No color selected", ErrorCode.NO_COLOR_SELECTED)

        player_index = action.payload.player_index
        board = state.players[player_index]
        if board.holding_area.index_of(color) is None:
            return ActionResult.failure(f"No {color.value} tile left to place", ErrorCode.COLOR_NOT_HELD)

        location = action.payload.location
        row = action.payload.row_index
        if location == PlacementLocation.STAIRCASE:
            if row is None or not 0 <= row < WALL_SIZE:
                return ActionResult.failure(f"Invalid staircase row: {row}", ErrorCode.INVALID_ROW)
            # The wall decides, not what is already on the staircase
            if board.wall_row_has(row, color):
                return ActionResult.failure(
                    f"Wall row {row} already has {color.value}", ErrorCode.WALL_HAS_COLOR
                )
            row_color = board.staircase_row_color(row)
            if row_color is not None and row_color != color:
                return ActionResult.failure(
                    f"Row {row} already holds {row_color.value}", ErrorCode.ROW_COLOR_MISMATCH
                )
            slot = board.rightmost_empty_slot(row)
            if slot is None:
                return ActionResult.failure(f"Row {row} is full", ErrorCode.ROW_FULL)
        elif location == PlacementLocation.FLOOR:
            slot = board.leftmost_empty_floor_slot()
            if slot is None:
                return ActionResult.failure("Floor is full", ErrorCode.FLOOR_FULL)
            row = None
        else:
            return ActionResult.failure(f"Unknown placement location: {location}", ErrorCode.INVALID_ROW)

        new_state = state.clone()
        new_board = new_state.players[player_index]
        holding = new_board.holding_area
        holding_index = holding.index_of(color)
        tile = holding.tiles.pop(holding_index)

        if location == PlacementLocation.STAIRCASE:
            new_board.staircase[row][slot] = tile
            where = f"row {row}"
        else:
            new_board.floor[slot] = tile
            where = "the floor"

        holding.locked_color = color
        new_state.placed_tiles_this_turn.append(
            PlacedTile(
                type=color,
                location=location,
                position=slot,
                holding_index=holding_index,
                row_index=row,
            )
        )

        # Auto-advance: keep the color selected while more of it is held
        if holding.count(color) == 0:
            new_state.has_placed_tile = True
            new_state.selected_color = None

        return ActionResult.success_with_state(
            new_state,
            changes=[f"Player {player_index} placed {color.value} on {where}"],
        )

    def _handle_undo_placement(self, state: GameState, action: Action) -> ActionResult:
        """Take back this turn's placements, keeping the draw."""
        if not state.placed_tiles_this_turn:
            return ActionResult.failure("Nothing placed this turn", ErrorCode.NOTHING_TO_UNDO)

        new_state = state.clone()
        count = _revert_placements(new_state, new_state.players[action.payload.player_index])
        return ActionResult.success_with_state(
            new_state,
            changes=[f"Undid {count} placement(s)"],
        )

    def _handle_undo_turn(self, state: GameState, action: Action) -> ActionResult:
        """Take back placements and the draw, returning tiles to their source."""
        source = state.current_tile_source
        if source is None:
            return ActionResult.failure("No draw to undo", ErrorCode.NOTHING_TO_UNDO)

        new_state = state.clone()
        board = new_state.players[action.payload.player_index]
        _revert_placements(new_state, board)

        tiles = board.holding_area.tiles
        board.holding_area = HoldingArea()
        if source.kind == SourceKind.FACTORY:
            new_state.factories[source.index].extend(tiles)
        else:
            new_state.pot.extend(tiles)
        new_state.current_tile_source = None

        if new_state.marker_claimed_from is not None:
            new_state.first_player_marker_index = new_state.marker_claimed_from
            new_state.has_first_player_been_moved = False
            new_state.marker_claimed_from = None

        return ActionResult.success_with_state(
            new_state,
            changes=[f"Returned {len(tiles)} tile(s) to {source.describe()}"],
        )

    def _handle_end_turn(self, state: GameState, action: Action) -> ActionResult:
        """
        Finish the turn.

        Leftover tiles of other colors go to the pot. When every factory
        and the pot are empty the round ends and the same player stays
        current for wall tiling.
        """
        player_index = action.payload.player_index
        refusal = end_turn_refusal(state, player_index)
        if refusal is not None:
            return refusal

        new_state = state.clone()
        new_board = new_state.players[player_index]
        leftovers = new_board.holding_area.tiles
        new_state.pot.extend(leftovers)
        new_board.holding_area = HoldingArea()

        new_state.selected_color = None
        new_state.has_placed_tile = False
        new_state.current_tile_source = None
        new_state.placed_tiles_this_turn = []
        new_state.marker_claimed_from = None

        changes = [f"Player {player_index} ended their turn"]
        if leftovers:
            changes.append(f"{len(leftovers)} tile(s) moved to the pot")

        if new_state.all_sources_empty():
            new_state.phase = GamePhase.READY_TO_WALL_TILE
            changes.append(f"Round {new_state.round_number} drafting is over")
        else:
            new_state.current_player = (player_index + 1) % new_state.num_players

        return ActionResult.success_with_state(new_state, changes=changes)

    # =========================================================================
    # Round transitions
    # =========================================================================

    def _handle_wall_tiling(self, state: GameState, action: Action) -> ActionResult:
        """Move full staircase rows onto the wall, score, then apply floor penalties."""
        new_state = state.clone()
        changes = []

        for index, board in enumerate(new_state.players):
            for row in range(WALL_SIZE):
                if not board.is_row_full(row):
                    continue
                tiles = board.staircase[row]
                color = tiles[0].type
                col = wall_column(row, color)
                board.wall[row][col] = tiles[0]
                points = score_cell(board.wall, row, col)
                board.score += points
                new_state.discard_pile.extend(tiles[1:])
                board.staircase[row] = [None] * (row + 1)
                changes.append(f"Player {index} tiled {color.value} at ({row}, {col}) for {points}")

            penalty = floor_penalty(board.floor)
            board.score = apply_penalty(board.score, penalty)
            new_state.discard_pile.extend(t for t in board.floor if t is not None)
            board.floor = [None] * FLOOR_SIZE
            if penalty:
                changes.append(f"Player {index} lost {-penalty} on the floor")

        new_state.phase = GamePhase.DONE_WALL_TILING
        return ActionResult.success_with_state(new_state, changes=changes)

    def _handle_start_next_round(self, state: GameState, action: Action) -> ActionResult:
        """Refill factories and hand the turn to the first-player marker holder."""
        if _game_should_end(state):
            return ActionResult.failure(
                "A wall row is complete - end the game instead", ErrorCode.GAME_OVER
            )

        new_state = state.clone()
        recycled = recycle_if_empty(new_state, RecycleSource.DISCARD, self.rng)
        received = fill_factories(new_state, self.rng)

        new_state.phase = GamePhase.PLAYING
        new_state.has_first_player_been_moved = False
        new_state.marker_claimed_from = None
        new_state.current_player = new_state.first_player_marker_index
        new_state.round_number += 1

        changes = [f"Round {new_state.round_number} started by player {new_state.current_player}"]
        if recycled:
            changes.append(f"Recycled {recycled} discarded tile(s) into the bag")
        if sum(received) < len(received) * TILES_PER_FACTORY:
            changes.append(f"Bag ran short: factories got {received}")
        return ActionResult.success_with_state(new_state, changes=changes)

    def _handle_end_game(self, state: GameState, action: Action) -> ActionResult:
        """Apply end-of-game bonuses once somebody completed a wall row."""
        if not _game_should_end(state):
            return ActionResult.failure("No wall row is complete yet", ErrorCode.GAME_NOT_OVER)

        new_state = state.clone()
        changes = []
        for index, board in enumerate(new_state.players):
            bonus = end_game_bonus(board.wall)
            board.score += bonus
            changes.append(f"Player {index} bonus {bonus}, final score {board.score}")

        new_state.phase = GamePhase.GAME_OVER
        standings = rank_players(
            [b.score for b in new_state.players],
            [b.wall for b in new_state.players],
        )
        new_state.metadata["standings"] = standings
        changes.append(f"Player {standings[0]} wins")
        return ActionResult.success_with_state(new_state, changes=changes)


def _game_should_end(state: GameState) -> bool:
    return any(board.complete_wall_rows() for board in state.players)


def _revert_placements(state: GameState, board: PlayerBoard) -> int:
    """Undo this turn's placements in reverse order. Returns how many were undone."""
    placed = state.placed_tiles_this_turn
    for record in reversed(placed):
        if record.location == PlacementLocation.STAIRCASE:
            board.staircase[record.row_index][record.position] = None
        else:
            board.floor[record.position] = None
        board.holding_area.tiles.insert(record.holding_index, Tile(record.type))

    board.holding_area.locked_color = None
    state.placed_tiles_this_turn = []
    state.has_placed_tile = False
    state.selected_color = None
    return len(placed)


def apply_action(state: GameState, action: Action, rng: random.Random | None = None) -> ActionResult:
    """
    Convenience function to apply an action.

    Creates a Reducer and applies the action.
    """
    reducer = Reducer(rng=rng) if rng is not None else Reducer()
    return reducer.apply(state, action)
