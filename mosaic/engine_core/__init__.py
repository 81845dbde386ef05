"""
Engine Core - Deterministic tile-drafting rules.

The engine is the runtime that:
1. Creates a GameState for a new match
2. Generates legal actions
3. Applies actions via the reducer
4. Scores wall placements, floor penalties and end-of-game bonuses
5. Converts snapshots to and from the wire format
"""

from .state import (
    GameState,
    GamePhase,
    PlayerBoard,
    HoldingArea,
    Tile,
    TileType,
    TileSource,
    PlacedTile,
    PlacementLocation,
    WALL_PATTERN,
)
from .action import Action, ActionType, ActionPayload, ActionResult, ErrorCode
from .reducer import Reducer, TurnStage, apply_action, can_end_turn, turn_stage
from .action_generator import ActionGenerator, legal_actions
from .setup import new_game
from .invariants import InvariantViolation, ValidationResult, validate_state, assert_valid
from .serialization import SnapshotFormatError, state_to_dict, state_from_dict

__all__ = [
    "GameState",
    "GamePhase",
    "PlayerBoard",
    "HoldingArea",
    "Tile",
    "TileType",
    "TileSource",
    "PlacedTile",
    "PlacementLocation",
    "WALL_PATTERN",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "ErrorCode",
    "Reducer",
    "TurnStage",
    "apply_action",
    "turn_stage",
    "can_end_turn",
    "ActionGenerator",
    "legal_actions",
    "new_game",
    "InvariantViolation",
    "ValidationResult",
    "validate_state",
    "assert_valid",
    "SnapshotFormatError",
    "state_to_dict",
    "state_from_dict",
]
