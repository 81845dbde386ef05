"""
Game State - Tiles, player boards and the shared tile supply.

Design principles:
- Immutable-friendly: the reducer works on a clone and returns it
- Serializable: every field maps onto the wire snapshot (see serialization.py)
- Two players, fixed board geometry

The holding area is a plain ordered sequence of tiles. The color a player is
committed to for the current turn is tracked separately as ``locked_color``;
invariants.py checks the two stay consistent.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any
from copy import deepcopy
from enum import Enum


class TileType(str, Enum):
    """The five tile colors."""
    BLUE = "blue"
    RED = "red"
    BLACK = "black"
    YELLOW = "yellow"
    WHITE = "white"


class GamePhase(str, Enum):
    """Round-level phases."""
    PLAYING = "playing"
    READY_TO_WALL_TILE = "ready_to_wall_tile"
    DONE_WALL_TILING = "done_wall_tiling"
    GAME_OVER = "game_over"


class SourceKind(str, Enum):
    FACTORY = "factory"
    POT = "pot"


class PlacementLocation(str, Enum):
    STAIRCASE = "staircase"
    FLOOR = "floor"


NUM_PLAYERS = 2
NUM_FACTORIES = 5
TILES_PER_FACTORY = 4
TILES_PER_COLOR = 20
TOTAL_TILES = TILES_PER_COLOR * len(TileType)
WALL_SIZE = 5
FLOOR_SIZE = 7
FLOOR_PENALTIES = (-1, -1, -2, -2, -2, -3, -3)

# Each wall cell only ever accepts the color shown here
WALL_PATTERN: tuple[tuple[TileType, ...], ...] = (
    (TileType.BLUE, TileType.YELLOW, TileType.RED, TileType.BLACK, TileType.WHITE),
    (TileType.WHITE, TileType.BLUE, TileType.YELLOW, TileType.RED, TileType.BLACK),
    (TileType.BLACK, TileType.WHITE, TileType.BLUE, TileType.YELLOW, TileType.RED),
    (TileType.RED, TileType.BLACK, TileType.WHITE, TileType.BLUE, TileType.YELLOW),
    (TileType.YELLOW, TileType.RED, TileType.BLACK, TileType.WHITE, TileType.BLUE),
)


def wall_column(row: int, color: TileType) -> int:
    """Column of the wall cell that accepts ``color`` in ``row``."""
    return WALL_PATTERN[row].index(color)


@dataclass(frozen=True)
class Tile:
    """A single tile. Tiles of the same color are interchangeable."""
    type: TileType


@dataclass(frozen=True)
class TileSource:
    """Where the current turn's tiles were drawn from."""
    kind: SourceKind
    index: int | None = None

    @classmethod
    def factory(cls, index: int) -> TileSource:
        return cls(kind=SourceKind.FACTORY, index=index)

    @classmethod
    def pot(cls) -> TileSource:
        return cls(kind=SourceKind.POT)

    @property
    def is_pot(self) -> bool:
        return self.kind == SourceKind.POT

    def describe(self) -> str:
        return "the pot" if self.is_pot else f"factory {self.index}"


@dataclass(frozen=True)
class PlacedTile:
    """
    One placement made this turn, kept so the turn can be undone.

    ``holding_index`` is the position the tile occupied in the holding area
    at the moment it was placed.
    """
    type: TileType
    location: PlacementLocation
    position: int
    holding_index: int
    row_index: int | None = None


@dataclass
class HoldingArea:
    """Tiles drafted this turn and not yet placed."""
    tiles: list[Tile] = field(default_factory=list)
    locked_color: TileType | None = None

    @property
    def is_empty(self) -> bool:
        return len(self.tiles) == 0

    def count(self, color: TileType) -> int:
        return sum(1 for t in self.tiles if t.type == color)

    def index_of(self, color: TileType) -> int | None:
        for i, t in enumerate(self.tiles):
            if t.type == color:
                return i
        return None

    def colors(self) -> list[TileType]:
        """Distinct colors held, in first-seen order."""
        seen: list[TileType] = []
        for t in self.tiles:
            if t.type not in seen:
                seen.append(t.type)
        return seen


def _empty_wall() -> list[list[Tile | None]]:
    return [[None] * WALL_SIZE for _ in range(WALL_SIZE)]


def _empty_staircase() -> list[list[Tile | None]]:
    return [[None] * (row + 1) for row in range(WALL_SIZE)]


def _empty_floor() -> list[Tile | None]:
    return [None] * FLOOR_SIZE


@dataclass
class PlayerBoard:
    """
    One player's board.

    - wall: 5x5 permanent grid following WALL_PATTERN
    - staircase: row i has i+1 slots, filled right-to-left, one color per row
    - floor: 7 penalty slots, filled left-to-right
    """
    wall: list[list[Tile | None]] = field(default_factory=_empty_wall)
    staircase: list[list[Tile | None]] = field(default_factory=_empty_staircase)
    floor: list[Tile | None] = field(default_factory=_empty_floor)
    holding_area: HoldingArea = field(default_factory=HoldingArea)
    score: int = 0

    def wall_row_has(self, row: int, color: TileType) -> bool:
        return any(cell is not None and cell.type == color for cell in self.wall[row])

    def staircase_row_color(self, row: int) -> TileType | None:
        for cell in self.staircase[row]:
            if cell is not None:
                return cell.type
        return None

    def is_row_full(self, row: int) -> bool:
        return all(cell is not None for cell in self.staircase[row])

    def rightmost_empty_slot(self, row: int) -> int | None:
        cells = self.staircase[row]
        for i in range(len(cells) - 1, -1, -1):
            if cells[i] is None:
                return i
        return None

    def leftmost_empty_floor_slot(self) -> int | None:
        for i, cell in enumerate(self.floor):
            if cell is None:
                return i
        return None

    @property
    def is_floor_full(self) -> bool:
        return self.leftmost_empty_floor_slot() is None

    def complete_wall_rows(self) -> list[int]:
        return [r for r in range(WALL_SIZE) if all(cell is not None for cell in self.wall[r])]


@dataclass
class GameState:
    """
    Complete match state at a point in time.

    This is the snapshot both clients hold and replicate.
    All rule-governed changes go through the reducer.
    """
    players: list[PlayerBoard] = field(
        default_factory=lambda: [PlayerBoard() for _ in range(NUM_PLAYERS)]
    )
    current_player: int = 0

    # Supply
    tile_bag: list[Tile] = field(default_factory=list)
    factories: list[list[Tile]] = field(
        default_factory=lambda: [[] for _ in range(NUM_FACTORIES)]
    )
    pot: list[Tile] = field(default_factory=list)
    discard_pile: list[Tile] = field(default_factory=list)

    # Transient turn state
    selected_color: TileType | None = None
    has_placed_tile: bool = False
    current_tile_source: TileSource | None = None
    placed_tiles_this_turn: list[PlacedTile] = field(default_factory=list)

    # First-player marker
    first_player_marker_index: int = 0
    has_first_player_been_moved: bool = False
    marker_claimed_from: int | None = None  # previous holder, while the claim can still be undone

    phase: GamePhase = GamePhase.PLAYING
    round_number: int = 1

    random_seed: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def num_players(self) -> int:
        return len(self.players)

    @property
    def current_board(self) -> PlayerBoard:
        return self.players[self.current_player]

    @property
    def selected_tile(self) -> Tile | None:
        """The tile being placed; a view onto the holding area, not a separate container."""
        if self.selected_color is None:
            return None
        return Tile(self.selected_color)

    def source_tiles(self, source: TileSource) -> list[Tile] | None:
        """Tiles currently at ``source``, or None if the source does not exist."""
        if source.is_pot:
            return self.pot
        if source.index is None or not 0 <= source.index < len(self.factories):
            return None
        return self.factories[source.index]

    def all_sources_empty(self) -> bool:
        return not self.pot and all(not f for f in self.factories)

    def _copy_with(self, **kwargs) -> GameState:
        """Create a shallow copy with some fields replaced."""
        return replace(self, **kwargs)

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)
