"""
Relay Error Hierarchy

Protocol errors raised by the room registry and the relay client. Socket
handlers translate them into ``error`` / ``roomFull`` emits; they are never
fatal to the relay process.

Usage:
    try:
        registry.join(room_id, sid)
    except RoomFullError:
        await sio.emit("roomFull", to=sid)
    except RelayError as e:
        await sio.emit("error", {"message": e.message}, to=sid)
"""

from typing import Any

__all__ = [
    "RelayError",
    "InvalidRoomIdError",
    "RoomFullError",
    "RoomNotFoundError",
    "ConnectionFailedError",
]


class RelayError(Exception):
    """Base exception for relay protocol errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description, safe to send to clients
        context: Additional context for logs
    """
    code: str = "RELAY_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class InvalidRoomIdError(RelayError):
    """Room id missing, not a string, or too short."""
    code: str = "INVALID_ROOM_ID"


class RoomFullError(RelayError):
    """Both participant slots are taken."""
    code: str = "ROOM_FULL"


class RoomNotFoundError(RelayError):
    """No room with this id (never created, or already swept)."""
    code: str = "ROOM_NOT_FOUND"


class ConnectionFailedError(RelayError):
    """The client could not reach the relay."""
    code: str = "CONNECTION_FAILED"
