"""
Pydantic Schemas for the relay - Socket.IO message bodies and HTTP responses.

Socket.IO payloads use the camelCase names the browser clients already
send; models are populated by either name and dumped with
``model_dump(by_alias=True)``.
"""

from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Socket.IO Messages
# =============================================================================

class RoomJoined(BaseModel):
    """Sent to a participant once they hold a seat."""
    room_id: str = Field(alias="roomId")
    player_index: int = Field(alias="playerIndex", ge=0, le=1)

    model_config = ConfigDict(populate_by_name=True)


class GameStart(BaseModel):
    """Sent to the room when its second seat fills."""
    room_id: str = Field(alias="roomId")
    # Seat 0 deals only when the room holds no match yet
    has_snapshot: bool = Field(False, alias="hasSnapshot")

    model_config = ConfigDict(populate_by_name=True)


class ErrorMessage(BaseModel):
    """Non-fatal protocol error."""
    message: str
    code: Optional[str] = None


class EnvelopeHeader(BaseModel):
    """
    Header fields of an ``updateGameState`` envelope.

    The snapshot fields travel alongside and are kept as extras; the relay
    never interprets them.
    """
    action_id: Optional[str] = Field(None, alias="actionId")
    timestamp: float = 0
    is_priority_update: bool = Field(False, alias="isPriorityUpdate")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class StateRequest(BaseModel):
    """Forwarded to the peer when a participant asks for the latest snapshot."""
    room_id: str = Field(alias="roomId")
    requester_id: str = Field(alias="requesterId")

    model_config = ConfigDict(populate_by_name=True)


class PingResponse(BaseModel):
    """Ack for the ``ping`` event."""
    time: str
    socket_id: str = Field(alias="socketId")
    rooms: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# HTTP Responses
# =============================================================================

class RoomSummary(BaseModel):
    """One room, as listed by ``GET /api/v1/rooms``."""
    room_id: str
    occupancy: int
    capacity: int = 2
    has_snapshot: bool = False
    last_activity: float = Field(description="Unix time of the last message")
    empty_since: Optional[float] = None

    model_config = {"from_attributes": True}


class RoomListResponse(BaseModel):
    rooms: list[RoomSummary] = Field(default_factory=list)
    total: int = 0


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    rooms: int = 0
    details: Optional[dict[str, Any]] = None
