"""
State Validation - Structural invariants of a match snapshot.

Validates that:
1. Tiles are conserved (20 per color, 100 in total)
2. Wall cells follow WALL_PATTERN and no wall row repeats a color
3. Staircase rows are single-colored and absent from their wall row
4. The holding area agrees with the locked color and this turn's placements
5. Scores are non-negative

Used by tests, by the loopback simulator after every action, and by the
replication layer to refuse corrupt snapshots.
"""

from __future__ import annotations
from dataclasses import dataclass

from .state import (
    GameState,
    PlayerBoard,
    PlacementLocation,
    TileType,
    TILES_PER_COLOR,
    TOTAL_TILES,
    WALL_PATTERN,
    WALL_SIZE,
)
from .supply import count_tiles


class InvariantViolation(Exception):
    """Raised when a state breaks one or more invariants."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"State validation failed with {len(errors)} error(s): {errors[:3]}")


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str]
    warnings: list[str]


def validate_state(state: GameState) -> ValidationResult:
    """
    Validate a complete game state.

    Returns ValidationResult with errors and warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    errors.extend(check_conservation(state))
    for index, board in enumerate(state.players):
        errors.extend(check_wall(board, index))
        errors.extend(check_staircase(board, index))
        if board.score < 0:
            errors.append(f"player {index}: negative score {board.score}")

    errors.extend(check_holding_area(state))

    if not 0 <= state.current_player < state.num_players:
        errors.append(f"current_player {state.current_player} out of range")
    if not 0 <= state.first_player_marker_index < state.num_players:
        errors.append(f"first_player_marker_index {state.first_player_marker_index} out of range")

    if state.current_tile_source is None and state.placed_tiles_this_turn:
        warnings.append("placements recorded without a draw")

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def assert_valid(state: GameState) -> None:
    """Raise InvariantViolation if the state is invalid."""
    result = validate_state(state)
    if not result.valid:
        raise InvariantViolation(result.errors)


def check_conservation(state: GameState) -> list[str]:
    counts = count_tiles(state)
    errors = []
    for color in TileType:
        if counts.get(color, 0) != TILES_PER_COLOR:
            errors.append(f"{color.value}: {counts.get(color, 0)} tiles, expected {TILES_PER_COLOR}")
    total = sum(counts.values())
    if total != TOTAL_TILES:
        errors.append(f"total tiles {total}, expected {TOTAL_TILES}")
    return errors


def check_wall(board: PlayerBoard, index: int) -> list[str]:
    errors = []
    for r in range(WALL_SIZE):
        seen: set[TileType] = set()
        for c in range(WALL_SIZE):
            cell = board.wall[r][c]
            if cell is None:
                continue
            if cell.type != WALL_PATTERN[r][c]:
                errors.append(
                    f"player {index}: wall ({r}, {c}) holds {cell.type.value}, "
                    f"pattern says {WALL_PATTERN[r][c].value}"
                )
            if cell.type in seen:
                errors.append(f"player {index}: wall row {r} repeats {cell.type.value}")
            seen.add(cell.type)
    return errors


def check_staircase(board: PlayerBoard, index: int) -> list[str]:
    errors = []
    for r, row in enumerate(board.staircase):
        if len(row) != r + 1:
            errors.append(f"player {index}: staircase row {r} has {len(row)} slots")
        colors = {cell.type for cell in row if cell is not None}
        if len(colors) > 1:
            errors.append(f"player {index}: staircase row {r} mixes colors")
        for color in colors:
            if board.wall_row_has(r, color):
                errors.append(f"player {index}: staircase row {r} color {color.value} already on wall")
    return errors


def check_holding_area(state: GameState) -> list[str]:
    """The locked color is derived from this turn's placements; keep them in step."""
    errors = []
    for index, board in enumerate(state.players):
        holding = board.holding_area
        if index != state.current_player:
            if not holding.is_empty:
                errors.append(f"player {index}: holds tiles outside their turn")
            continue

        if state.current_tile_source is None and not holding.is_empty:
            errors.append(f"player {index}: holds tiles without a draw")

        placed_colors = {p.type for p in state.placed_tiles_this_turn}
        if len(placed_colors) > 1:
            errors.append(f"player {index}: placed more than one color this turn")
        if placed_colors and holding.locked_color not in placed_colors:
            errors.append(f"player {index}: locked color does not match placements")
        if not placed_colors and holding.locked_color is not None:
            errors.append(f"player {index}: color locked without a placement")

        if state.selected_color is not None:
            if holding.count(state.selected_color) == 0:
                errors.append(f"player {index}: selected color not in holding area")
            if holding.locked_color not in (None, state.selected_color):
                errors.append(f"player {index}: selection differs from locked color")

        for record in state.placed_tiles_this_turn:
            if record.location == PlacementLocation.STAIRCASE:
                cell = board.staircase[record.row_index][record.position]
            else:
                cell = board.floor[record.position]
            if cell is None or cell.type != record.type:
                errors.append(f"player {index}: placement record {record} not on the board")
    return errors
