"""
Relay Module - Room-scoped snapshot relay.

The relay is a pass-through: it seats two participants per room, keeps the
latest envelope and a dedup window, and rebroadcasts. It holds no game
logic and is the source of truth for nothing but room membership.
"""

from .config import RelayConfig
from .errors import RelayError, InvalidRoomIdError, RoomFullError, RoomNotFoundError, ConnectionFailedError
from .rooms import Room, RoomRegistry, JoinResult, Departure, UpdateOutcome
from .app import RelayHandlers, create_app

__all__ = [
    "RelayConfig",
    "RelayError",
    "InvalidRoomIdError",
    "RoomFullError",
    "RoomNotFoundError",
    "ConnectionFailedError",
    "Room",
    "RoomRegistry",
    "JoinResult",
    "Departure",
    "UpdateOutcome",
    "RelayHandlers",
    "create_app",
]
