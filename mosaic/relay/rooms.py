"""
Room Registry - Two-seat rooms for the state relay.

The relay holds no game logic. A room is an id, two participant slots,
the last accepted envelope, an activity timestamp and a bounded window
of processed action ids.

LIFECYCLE:
1. First join creates the room
2. Every message touches ``last_activity``
3. When the last participant leaves, ``empty_since`` is set; a rejoin clears it
4. ``expire_if_empty()`` deletes an empty room once its grace timer fires;
   ``sweep_expired()`` deletes rooms idle past ``idle_ttl`` and empty rooms
   past ``empty_grace``

The registry never awaits, so each call is atomic with respect to the
other socket handlers on the event loop. The clock is injected so tests
can move time.
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..replication.envelope import ProcessedActions
from .config import RelayConfig
from .errors import InvalidRoomIdError, RoomFullError, RoomNotFoundError

logger = logging.getLogger(__name__)

ROOM_CAPACITY = 2


class UpdateOutcome(Enum):
    """What the relay did with an ``updateGameState`` envelope."""
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    STALE = "stale"
    ROOM_NOT_FOUND = "room_not_found"


@dataclass
class Room:
    room_id: str
    created_at: float
    last_activity: float
    slots: list[str | None] = field(default_factory=lambda: [None] * ROOM_CAPACITY)
    snapshot: dict[str, Any] | None = None
    processed_actions: ProcessedActions = field(default_factory=ProcessedActions)
    empty_since: float | None = None

    @property
    def participants(self) -> list[str]:
        return [sid for sid in self.slots if sid is not None]

    @property
    def occupancy(self) -> int:
        return len(self.participants)

    @property
    def is_full(self) -> bool:
        return None not in self.slots

    @property
    def is_empty(self) -> bool:
        return self.occupancy == 0

    def slot_of(self, sid: str) -> int | None:
        try:
            return self.slots.index(sid)
        except ValueError:
            return None

    def peers_of(self, sid: str) -> list[str]:
        return [p for p in self.participants if p != sid]


@dataclass
class Departure:
    """A participant leaving a room, for peer notification."""
    room_id: str
    player_index: int
    remaining: list[str]

    @property
    def room_empty(self) -> bool:
        return not self.remaining


@dataclass
class JoinResult:
    room_id: str
    player_index: int
    rejoined: bool = False
    # True when this join filled the last seat
    game_start: bool = False
    snapshot: dict[str, Any] | None = None
    departure: Departure | None = None


class RoomRegistry:
    """
    Owns every room of one relay process.

    Usage:
        registry = RoomRegistry.from_config(config)
        result = registry.join("abcd", sid)
        outcome = registry.update_state("abcd", envelope)
        removed = registry.sweep_expired()
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        idle_ttl: float = 3600.0,
        empty_grace: float = 60.0,
        min_room_id_length: int = 4,
        reject_stale_updates: bool = False,
    ):
        self.clock = clock
        self.idle_ttl = idle_ttl
        self.empty_grace = empty_grace
        self.min_room_id_length = min_room_id_length
        self.reject_stale_updates = reject_stale_updates
        self._rooms: dict[str, Room] = {}
        self._membership: dict[str, str] = {}

    @classmethod
    def from_config(cls, config: RelayConfig, clock: Callable[[], float] = time.time) -> RoomRegistry:
        return cls(
            clock=clock,
            idle_ttl=config.room_idle_ttl,
            empty_grace=config.empty_room_grace,
            min_room_id_length=config.min_room_id_length,
            reject_stale_updates=config.reject_stale_updates,
        )

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def room_of(self, sid: str) -> str | None:
        return self._membership.get(sid)

    def list_rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def validate_room_id(self, room_id: Any) -> str:
        if not isinstance(room_id, str) or len(room_id) < self.min_room_id_length:
            raise InvalidRoomIdError("Invalid room ID", context={"room_id": room_id})
        return room_id

    # =========================================================================
    # Membership
    # =========================================================================

    def join(self, room_id: Any, sid: str) -> JoinResult:
        """
        Seat ``sid`` in ``room_id``.

        Raises InvalidRoomIdError for a bad id and RoomFullError when both
        seats are taken. A participant switching rooms leaves the old room
        only once the new seat is secured.
        """
        room_id = self.validate_room_id(room_id)
        now = self.clock()

        current = self.room_of(sid)
        if current == room_id:
            room = self._rooms[room_id]
            room.last_activity = now
            logger.info("Participant %s rejoined room %s as player %d", sid, room_id, room.slot_of(sid))
            return JoinResult(
                room_id=room_id,
                player_index=room.slot_of(sid),
                rejoined=True,
                snapshot=room.snapshot,
            )

        room = self._rooms.get(room_id)
        if room is not None and room.is_full:
            room.last_activity = now
            raise RoomFullError("Room is full", context={"room_id": room_id, "sid": sid})

        departure = self.leave(sid) if current is not None else None

        if room is None:
            room = Room(room_id=room_id, created_at=now, last_activity=now)
            self._rooms[room_id] = room
            logger.info("Created room %s", room_id)
        else:
            room.last_activity = now

        player_index = room.slots.index(None)
        room.slots[player_index] = sid
        room.empty_since = None
        self._membership[sid] = room_id
        logger.info("Participant %s joined room %s as player %d", sid, room_id, player_index)

        return JoinResult(
            room_id=room_id,
            player_index=player_index,
            game_start=room.is_full,
            snapshot=room.snapshot,
            departure=departure,
        )

    def leave(self, sid: str) -> Departure | None:
        """Free ``sid``'s seat. Returns None when it was not seated anywhere."""
        room_id = self._membership.pop(sid, None)
        if room_id is None:
            return None
        room = self._rooms.get(room_id)
        if room is None:
            return None

        player_index = room.slot_of(sid)
        room.slots[player_index] = None
        if room.is_empty:
            room.empty_since = self.clock()
            logger.info("Room %s is now empty", room_id)
        logger.info("Participant %s left room %s", sid, room_id)
        return Departure(room_id=room_id, player_index=player_index, remaining=room.participants)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def touch(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError("Room not found", context={"room_id": room_id})
        room.last_activity = self.clock()
        return room

    def update_state(self, room_id: str, envelope: dict[str, Any]) -> UpdateOutcome:
        """
        Store an envelope unless it is a duplicate.

        Non-priority envelopes whose action id is already in the room's
        window are dropped. With ``reject_stale_updates`` enabled,
        non-priority envelopes older than the stored one are dropped too.
        """
        room = self._rooms.get(room_id)
        if room is None:
            logger.debug("Update for unknown room %s ignored", room_id)
            return UpdateOutcome.ROOM_NOT_FOUND
        room.last_activity = self.clock()

        action_id = envelope.get("actionId")
        priority = envelope.get("isPriorityUpdate") is True

        if not priority and action_id and action_id in room.processed_actions:
            logger.debug("Room %s: action %s already processed", room_id, action_id)
            return UpdateOutcome.DUPLICATE

        if self.reject_stale_updates and not priority and room.snapshot is not None:
            current = room.snapshot.get("timestamp") or 0
            incoming = envelope.get("timestamp") or 0
            if incoming < current:
                logger.debug("Room %s: stale update %s < %s", room_id, incoming, current)
                return UpdateOutcome.STALE

        if action_id:
            room.processed_actions.add(action_id)
        room.snapshot = envelope
        return UpdateOutcome.ACCEPTED

    def request_state(self, room_id: str) -> Room:
        """Touch the room and return it so the caller can read its snapshot."""
        return self.touch(room_id)

    def provide_state(self, room_id: str, snapshot: dict[str, Any]) -> Room:
        """Store a peer-provided snapshot. Bypasses dedup."""
        room = self.touch(room_id)
        room.snapshot = snapshot
        return room

    # =========================================================================
    # Expiry
    # =========================================================================

    def sweep_expired(self) -> list[str]:
        """
        Delete idle rooms and empty rooms past their grace period.

        Called periodically by the server. Returns removed room ids.
        """
        now = self.clock()
        to_remove = []

        for room_id, room in self._rooms.items():
            if now - room.last_activity > self.idle_ttl:
                to_remove.append(room_id)
            elif room.empty_since is not None and now - room.empty_since >= self.empty_grace:
                to_remove.append(room_id)

        for room_id in to_remove:
            room = self._rooms.pop(room_id)
            for sid in room.participants:
                self._membership.pop(sid, None)
            logger.info("Deleted room %s", room_id)

        return to_remove

    def expire_if_empty(self, room_id: str, since: float) -> bool:
        """
        Delete ``room_id`` if it is still empty since ``since``.

        Called by the server's per-room grace timer. A rejoin, or a later
        leave that restarted the grace period, keeps the room.
        """
        room = self._rooms.get(room_id)
        if room is None or room.empty_since is None or room.empty_since != since:
            return False
        del self._rooms[room_id]
        logger.info("Deleted empty room %s", room_id)
        return True
