"""
Snapshot Serialization - GameState <-> JSON-compatible dicts.

The wire format is the camelCase shape both browser clients already
exchange through the relay: ``players[].wall/staircase/floor/score/
holdingArea``, ``currentPlayer``, ``tileBag``, ``factories``, ``pot``,
``discardPile``, ``selectedTile``, ``selectedColor``, ``hasPlacedTile``,
``firstPlayerMarkerIndex``, ``hasFirstPlayerBeenMoved``,
``placedTilesThisTurn``, ``currentTileSource`` and ``phase``.

Tiles are ``{"type": color}`` and empty cells are ``null``. Fields this
engine adds (``lockedColor``, ``holdingIndex``, ``roundNumber``,
``markerClaimedFrom``) are optional on the way in, so snapshots from older
peers still load.
"""

from __future__ import annotations
from typing import Any

from .state import (
    GameState,
    GamePhase,
    HoldingArea,
    PlacedTile,
    PlacementLocation,
    PlayerBoard,
    SourceKind,
    Tile,
    TileSource,
    TileType,
    FLOOR_SIZE,
    NUM_FACTORIES,
    WALL_SIZE,
)


class SnapshotFormatError(ValueError):
    """Raised when a wire snapshot cannot be turned into a GameState."""


# Phase names used by earlier client builds
_LEGACY_PHASES = {
    "wall_tiling": GamePhase.READY_TO_WALL_TILE,
    "scoring": GamePhase.DONE_WALL_TILING,
    "readyToWallTile": GamePhase.READY_TO_WALL_TILE,
    "doneWallTiling": GamePhase.DONE_WALL_TILING,
}


def _tile_to_dict(tile: Tile | None) -> dict | None:
    return None if tile is None else {"type": tile.type.value}


def _tiles_to_list(tiles) -> list:
    return [_tile_to_dict(t) for t in tiles]


def _source_to_dict(source: TileSource | None) -> dict | None:
    if source is None:
        return None
    data: dict[str, Any] = {"type": source.kind.value}
    if source.index is not None:
        data["index"] = source.index
    return data


def _placed_to_dict(record: PlacedTile) -> dict:
    data: dict[str, Any] = {
        "type": record.type.value,
        "location": record.location.value,
        "position": record.position,
        "holdingIndex": record.holding_index,
    }
    if record.row_index is not None:
        data["rowIndex"] = record.row_index
    return data


def board_to_dict(board: PlayerBoard) -> dict:
    return {
        "wall": [_tiles_to_list(row) for row in board.wall],
        "staircase": [_tiles_to_list(row) for row in board.staircase],
        "floor": _tiles_to_list(board.floor),
        "score": board.score,
        "holdingArea": _tiles_to_list(board.holding_area.tiles),
        "lockedColor": board.holding_area.locked_color.value if board.holding_area.locked_color else None,
    }


def state_to_dict(state: GameState) -> dict:
    """Serialize a GameState to the wire snapshot."""
    selected = state.selected_tile
    return {
        "players": [board_to_dict(b) for b in state.players],
        "currentPlayer": state.current_player,
        "tileBag": _tiles_to_list(state.tile_bag),
        "factories": [_tiles_to_list(f) for f in state.factories],
        "pot": _tiles_to_list(state.pot),
        "discardPile": _tiles_to_list(state.discard_pile),
        "selectedTile": _tile_to_dict(selected),
        "selectedColor": state.selected_color.value if state.selected_color else None,
        "hasPlacedTile": state.has_placed_tile,
        "firstPlayerMarkerIndex": state.first_player_marker_index,
        "hasFirstPlayerBeenMoved": state.has_first_player_been_moved,
        "markerClaimedFrom": state.marker_claimed_from,
        "placedTilesThisTurn": [_placed_to_dict(p) for p in state.placed_tiles_this_turn],
        "currentTileSource": _source_to_dict(state.current_tile_source),
        "phase": state.phase.value,
        "roundNumber": state.round_number,
    }


# =============================================================================
# Parsing
# =============================================================================

def _parse_color(value: Any, where: str) -> TileType:
    try:
        return TileType(value)
    except ValueError:
        raise SnapshotFormatError(f"{where}: unknown tile color {value!r}") from None


def _parse_tile(value: Any, where: str) -> Tile | None:
    if value is None:
        return None
    if not isinstance(value, dict) or "type" not in value:
        raise SnapshotFormatError(f"{where}: expected a tile object, got {value!r}")
    return Tile(_parse_color(value["type"], where))


def _parse_cells(values: Any, size: int, where: str) -> list[Tile | None]:
    if values is None:
        return [None] * size
    if not isinstance(values, list) or len(values) != size:
        raise SnapshotFormatError(f"{where}: expected {size} cells")
    return [_parse_tile(v, where) for v in values]


def _parse_pool(values: Any, where: str) -> list[Tile]:
    """A pool never holds empty cells; nulls from older clients are dropped."""
    if values is None:
        return []
    if not isinstance(values, list):
        raise SnapshotFormatError(f"{where}: expected a list of tiles")
    return [t for t in (_parse_tile(v, where) for v in values) if t is not None]


def _parse_source(value: Any) -> TileSource | None:
    if value is None:
        return None
    try:
        kind = SourceKind(value["type"])
    except (KeyError, TypeError, ValueError):
        raise SnapshotFormatError(f"currentTileSource: bad value {value!r}") from None
    if kind == SourceKind.POT:
        return TileSource.pot()
    index = value.get("index")
    if not isinstance(index, int) or not 0 <= index < NUM_FACTORIES:
        raise SnapshotFormatError(f"currentTileSource: bad factory index {index!r}")
    return TileSource.factory(index)


def _parse_int(value: Any, where: str) -> int:
    if isinstance(value, bool):
        raise SnapshotFormatError(f"{where}: expected a number, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SnapshotFormatError(f"{where}: expected a number, got {value!r}") from None


def _parse_placed(value: Any, position_in_log: int) -> PlacedTile:
    where = f"placedTilesThisTurn[{position_in_log}]"
    if not isinstance(value, dict):
        raise SnapshotFormatError(f"{where}: expected a placement object")
    try:
        location = PlacementLocation(value.get("location"))
    except ValueError:
        raise SnapshotFormatError(f"{where}: bad location {value.get('location')!r}") from None
    if "type" not in value or "position" not in value:
        raise SnapshotFormatError(f"{where}: type and position are required")

    position = _parse_int(value["position"], f"{where}.position")
    row_index = None
    if location == PlacementLocation.STAIRCASE:
        row_index = _parse_int(value.get("rowIndex"), f"{where}.rowIndex")
        if not 0 <= row_index < WALL_SIZE:
            raise SnapshotFormatError(f"{where}: staircase row {row_index} out of range")
        size = row_index + 1
    else:
        size = FLOOR_SIZE
    if not 0 <= position < size:
        raise SnapshotFormatError(f"{where}: position {position} out of range")

    return PlacedTile(
        type=_parse_color(value["type"], where),
        location=location,
        position=position,
        holding_index=_parse_int(value.get("holdingIndex", 0), f"{where}.holdingIndex"),
        row_index=row_index,
    )


def _parse_phase(value: Any) -> GamePhase:
    if isinstance(value, str) and value in _LEGACY_PHASES:
        return _LEGACY_PHASES[value]
    try:
        return GamePhase(value)
    except ValueError:
        raise SnapshotFormatError(f"unknown phase {value!r}") from None


def board_from_dict(data: dict, index: int) -> PlayerBoard:
    where = f"players[{index}]"
    if not isinstance(data, dict):
        raise SnapshotFormatError(f"{where}: expected a player object")
    wall_rows = data.get("wall") or [None] * WALL_SIZE
    stair_rows = data.get("staircase") or [None] * WALL_SIZE
    if not isinstance(wall_rows, list) or not isinstance(stair_rows, list):
        raise SnapshotFormatError(f"{where}: wall and staircase must be lists")
    if len(wall_rows) != WALL_SIZE or len(stair_rows) != WALL_SIZE:
        raise SnapshotFormatError(f"{where}: wall and staircase need {WALL_SIZE} rows")

    locked = data.get("lockedColor")
    return PlayerBoard(
        wall=[_parse_cells(row, WALL_SIZE, f"{where}.wall[{r}]") for r, row in enumerate(wall_rows)],
        staircase=[
            _parse_cells(row, r + 1, f"{where}.staircase[{r}]") for r, row in enumerate(stair_rows)
        ],
        floor=_parse_cells(data.get("floor"), FLOOR_SIZE, f"{where}.floor"),
        holding_area=HoldingArea(
            tiles=_parse_pool(data.get("holdingArea"), f"{where}.holdingArea"),
            locked_color=_parse_color(locked, f"{where}.lockedColor") if locked else None,
        ),
        score=_parse_int(data.get("score", 0), f"{where}.score"),
    )


def state_from_dict(data: dict) -> GameState:
    """
    Parse a wire snapshot into a GameState.

    Envelope fields (``actionId``, ``timestamp``, ``isPriorityUpdate``) and
    any other unknown keys are ignored. Raises SnapshotFormatError on
    structurally invalid input.
    """
    if not isinstance(data, dict):
        raise SnapshotFormatError("snapshot must be an object")
    players = data.get("players")
    if not isinstance(players, list) or not players:
        raise SnapshotFormatError("snapshot has no players")

    factories = data.get("factories") or [[] for _ in range(NUM_FACTORIES)]
    if not isinstance(factories, list) or len(factories) != NUM_FACTORIES:
        raise SnapshotFormatError(f"expected a list of {NUM_FACTORIES} factories")
    placed = data.get("placedTilesThisTurn") or []
    if not isinstance(placed, list):
        raise SnapshotFormatError("placedTilesThisTurn must be a list")

    selected = data.get("selectedColor")
    state = GameState(
        players=[board_from_dict(p, i) for i, p in enumerate(players)],
        current_player=_parse_int(data.get("currentPlayer", 0), "currentPlayer"),
        tile_bag=_parse_pool(data.get("tileBag"), "tileBag"),
        factories=[_parse_pool(f, f"factories[{i}]") for i, f in enumerate(factories)],
        pot=_parse_pool(data.get("pot"), "pot"),
        discard_pile=_parse_pool(data.get("discardPile"), "discardPile"),
        selected_color=_parse_color(selected, "selectedColor") if selected else None,
        has_placed_tile=bool(data.get("hasPlacedTile", False)),
        current_tile_source=_parse_source(data.get("currentTileSource")),
        placed_tiles_this_turn=[
            _parse_placed(p, i) for i, p in enumerate(placed)
        ],
        first_player_marker_index=_parse_int(data.get("firstPlayerMarkerIndex", 0), "firstPlayerMarkerIndex"),
        has_first_player_been_moved=bool(data.get("hasFirstPlayerBeenMoved", False)),
        marker_claimed_from=data.get("markerClaimedFrom"),
        phase=_parse_phase(data.get("phase", GamePhase.PLAYING.value)),
        round_number=_parse_int(data.get("roundNumber", 1), "roundNumber"),
    )

    # Older peers do not send lockedColor; recover it from this turn's placements
    board = state.players[state.current_player] if 0 <= state.current_player < len(state.players) else None
    if board is not None and board.holding_area.locked_color is None and state.placed_tiles_this_turn:
        board.holding_area.locked_color = state.placed_tiles_this_turn[0].type

    return state
