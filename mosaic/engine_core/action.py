"""
Action System - Actions, payloads, and results.

Actions represent:
1. Turn actions (draw, select color, place, undo, end turn)
2. Round transitions (wall tiling, next round, end of game)

All state changes flow through actions. An illegal action never raises:
the reducer answers with a failed ActionResult and the caller keeps its
previous state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .state import TileSource, TileType, PlacementLocation


class ActionType(Enum):
    """Types of actions in the system."""
    # Turn actions
    DRAW = "draw"
    SELECT_COLOR = "select_color"
    PLACE = "place"
    UNDO_PLACEMENT = "undo_placement"
    UNDO_TURN = "undo_turn"
    END_TURN = "end_turn"

    # Round transitions
    WALL_TILING = "wall_tiling"
    START_NEXT_ROUND = "start_next_round"
    END_GAME = "end_game"


# Actions that close a turn or a round. Their snapshots override the
# receiving client's reconciliation filters.
PRIORITY_ACTIONS = frozenset({
    ActionType.END_TURN,
    ActionType.WALL_TILING,
    ActionType.START_NEXT_ROUND,
    ActionType.END_GAME,
})


class ErrorCode(str, Enum):
    """Machine-readable rejection reasons."""
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    WRONG_PHASE = "WRONG_PHASE"
    GAME_OVER = "GAME_OVER"
    INVALID_PLAYER = "INVALID_PLAYER"
    SOURCE_ALREADY_CHOSEN = "SOURCE_ALREADY_CHOSEN"
    INVALID_SOURCE = "INVALID_SOURCE"
    EMPTY_SOURCE = "EMPTY_SOURCE"
    NO_SOURCE = "NO_SOURCE"
    COLOR_NOT_HELD = "COLOR_NOT_HELD"
    COLOR_LOCKED = "COLOR_LOCKED"
    NO_COLOR_SELECTED = "NO_COLOR_SELECTED"
    INVALID_ROW = "INVALID_ROW"
    ROW_FULL = "ROW_FULL"
    ROW_COLOR_MISMATCH = "ROW_COLOR_MISMATCH"
    WALL_HAS_COLOR = "WALL_HAS_COLOR"
    FLOOR_FULL = "FLOOR_FULL"
    NOTHING_TO_UNDO = "NOTHING_TO_UNDO"
    TILES_REMAINING = "TILES_REMAINING"
    GAME_NOT_OVER = "GAME_NOT_OVER"
    NO_HANDLER = "NO_HANDLER"
    HANDLER_ERROR = "HANDLER_ERROR"


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types use different fields; validation happens in
    the reducer.
    """
    player_index: int
    source: TileSource | None = None
    color: TileType | None = None
    location: PlacementLocation | None = None
    row_index: int | None = None


@dataclass
class Action:
    """
    A complete action to be applied to the game state.

    ``action_id`` and ``timestamp`` are filled in by the replication layer
    when the resulting snapshot is sent to the relay.
    """
    action_type: ActionType
    payload: ActionPayload
    timestamp: float | None = None
    action_id: str | None = None

    @property
    def player_index(self) -> int:
        return self.payload.player_index

    @property
    def is_priority(self) -> bool:
        return self.action_type in PRIORITY_ACTIONS

    @classmethod
    def draw(cls, player_index: int, source: TileSource) -> Action:
        """Factory for a draw from any source."""
        return cls(
            action_type=ActionType.DRAW,
            payload=ActionPayload(player_index=player_index, source=source),
        )

    @classmethod
    def draw_from_factory(cls, player_index: int, factory_index: int) -> Action:
        return cls.draw(player_index, TileSource.factory(factory_index))

    @classmethod
    def draw_from_pot(cls, player_index: int) -> Action:
        return cls.draw(player_index, TileSource.pot())

    @classmethod
    def select_color(cls, player_index: int, color: TileType) -> Action:
        return cls(
            action_type=ActionType.SELECT_COLOR,
            payload=ActionPayload(player_index=player_index, color=TileType(color)),
        )

    @classmethod
    def place_on_row(cls, player_index: int, row_index: int) -> Action:
        """Factory for placing the selected tile on a staircase row."""
        return cls(
            action_type=ActionType.PLACE,
            payload=ActionPayload(
                player_index=player_index,
                location=PlacementLocation.STAIRCASE,
                row_index=row_index,
            ),
        )

    @classmethod
    def place_on_floor(cls, player_index: int) -> Action:
        return cls(
            action_type=ActionType.PLACE,
            payload=ActionPayload(player_index=player_index, location=PlacementLocation.FLOOR),
        )

    @classmethod
    def undo_placement(cls, player_index: int) -> Action:
        return cls(ActionType.UNDO_PLACEMENT, ActionPayload(player_index=player_index))

    @classmethod
    def undo_turn(cls, player_index: int) -> Action:
        return cls(ActionType.UNDO_TURN, ActionPayload(player_index=player_index))

    @classmethod
    def end_turn(cls, player_index: int) -> Action:
        return cls(ActionType.END_TURN, ActionPayload(player_index=player_index))

    @classmethod
    def wall_tiling(cls, player_index: int) -> Action:
        return cls(ActionType.WALL_TILING, ActionPayload(player_index=player_index))

    @classmethod
    def start_next_round(cls, player_index: int) -> Action:
        return cls(ActionType.START_NEXT_ROUND, ActionPayload(player_index=player_index))

    @classmethod
    def end_game(cls, player_index: int) -> Action:
        return cls(ActionType.END_GAME, ActionPayload(player_index=player_index))


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether action succeeded
    - New state (if succeeded)
    - Error and error code (if rejected)
    - Human-readable changes for logs and UI notices
    """
    success: bool
    new_state: Any | None = None  # GameState
    error: str | None = None
    error_code: ErrorCode | None = None
    state_changes: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode | None = None) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state, state_changes=changes or [])

    def state_or(self, previous: Any) -> Any:
        """The new state on success, ``previous`` unchanged otherwise."""
        if self.success and self.new_state is not None:
            return self.new_state
        return previous
