"""
Relay Application - Socket.IO state relay mounted on FastAPI.

Socket.IO events (client -> relay):
    joinRoom            room id                      seat the caller
    requestGameState    room id                      latest snapshot to caller, ask the peer
    provideGameState    room id, state, target id    deliver a snapshot to one participant
    updateGameState     room id, envelope            dedup, store, rebroadcast
    ping                (ack)                        time, socket id and rooms

Socket.IO events (relay -> client):
    roomJoined{roomId, playerIndex}, roomFull, gameStart{roomId, hasSnapshot}, syncGameState,
    provideGameState, requestGameState{roomId, requesterId},
    playerDisconnected <slot>, error{message, code}

HTTP:
    GET /health          Liveness and room count
    GET /api/v1/rooms    Room occupancy

The relay never runs game rules. It is a pass-through for snapshots with
a per-room dedup window.
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from .. import __version__
from .config import RelayConfig
from .errors import RelayError, RoomFullError, RoomNotFoundError
from .rooms import Departure, RoomRegistry, UpdateOutcome
from .schemas import (
    EnvelopeHeader,
    ErrorMessage,
    GameStart,
    HealthResponse,
    PingResponse,
    RoomJoined,
    RoomListResponse,
    RoomSummary,
    StateRequest,
)

logger = logging.getLogger(__name__)


class RelayHandlers:
    """
    Socket.IO event handlers bound to one room registry.

    ``sio`` is a ``socketio.AsyncServer`` (or anything with the same
    ``emit``/``enter_room``/``leave_room``/``rooms``/``on`` methods).
    """

    def __init__(self, sio: Any, registry: RoomRegistry):
        self.sio = sio
        self.registry = registry

    def register(self) -> None:
        """Attach every handler to the server."""
        for event, handler in self.handlers().items():
            self.sio.on(event, handler)

    def handlers(self) -> dict[str, Any]:
        return {
            "connect": self.connect,
            "disconnect": self.disconnect,
            "ping": self.ping,
            "joinRoom": self.join_room,
            "requestGameState": self.request_game_state,
            "provideGameState": self.provide_game_state,
            "updateGameState": self.update_game_state,
        }

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        logger.info("Connected: %s", sid)

    async def disconnect(self, sid: str, reason: Any = None) -> None:
        logger.info("Disconnected (%s): %s", reason, sid)
        departure = self.registry.leave(sid)
        if departure is not None:
            await self._announce_departure(departure, sid)

    async def ping(self, sid: str, *args: Any) -> dict:
        """Answered through the client's ack callback."""
        return PingResponse(
            time=datetime.now(timezone.utc).isoformat(),
            socket_id=sid,
            rooms=list(self.sio.rooms(sid)),
        ).model_dump(by_alias=True)

    # =========================================================================
    # Rooms
    # =========================================================================

    async def join_room(self, sid: str, room_id: Any = None) -> None:
        try:
            result = self.registry.join(room_id, sid)
        except RoomFullError:
            logger.info("Room %s is full, rejecting %s", room_id, sid)
            await self.sio.emit("roomFull", to=sid)
            return
        except RelayError as e:
            logger.info("Join rejected for %s: %s", sid, e)
            await self._emit_error(sid, e.message, e.code)
            return
        except Exception:
            logger.exception("Error joining room %s", room_id)
            await self._emit_error(sid, "Failed to join room")
            return

        if result.departure is not None:
            await self.sio.leave_room(sid, result.departure.room_id)
            await self._announce_departure(result.departure, sid)

        await self.sio.enter_room(sid, result.room_id)
        joined = RoomJoined(room_id=result.room_id, player_index=result.player_index)
        await self.sio.emit("roomJoined", joined.model_dump(by_alias=True), to=sid)

        if result.game_start:
            logger.info("Room %s is full, starting game", result.room_id)
            start = GameStart(room_id=result.room_id, has_snapshot=result.snapshot is not None)
            await self.sio.emit("gameStart", start.model_dump(by_alias=True), room=result.room_id)
            if result.snapshot is not None:
                await self.sio.emit("syncGameState", result.snapshot, room=result.room_id)
        elif result.snapshot is not None:
            await self.sio.emit("syncGameState", result.snapshot, to=sid)

    async def _announce_departure(self, departure: Departure, sid: str) -> None:
        for peer in departure.remaining:
            await self.sio.emit("playerDisconnected", departure.player_index, to=peer)
        if departure.room_empty:
            self._schedule_expiry(departure.room_id)

    def _schedule_expiry(self, room_id: str) -> None:
        room = self.registry.get(room_id)
        if room is None or room.empty_since is None:
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self.registry.empty_grace, self.registry.expire_if_empty, room_id, room.empty_since)

    async def _emit_error(self, sid: str, message: str, code: str | None = None) -> None:
        payload = ErrorMessage(message=message, code=code).model_dump(exclude_none=True)
        await self.sio.emit("error", payload, to=sid)

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def request_game_state(self, sid: str, room_id: Any = None) -> None:
        """
        Send the stored snapshot to the requester and ask the peer for a
        fresher one.
        """
        try:
            room = self.registry.request_state(room_id)
        except RoomNotFoundError:
            logger.debug("State request for unknown room %s", room_id)
            return

        if room.snapshot is not None:
            await self.sio.emit("provideGameState", room.snapshot, to=sid)

        request = StateRequest(room_id=room.room_id, requester_id=sid)
        for peer in room.peers_of(sid):
            await self.sio.emit("requestGameState", request.model_dump(by_alias=True), to=peer)

    async def provide_game_state(
        self,
        sid: str,
        room_id: Any = None,
        state: Any = None,
        target_id: Any = None,
    ) -> None:
        if not isinstance(state, dict):
            await self._emit_error(sid, "Malformed game state")
            return

        room = self.registry.get(room_id) if isinstance(room_id, str) else None
        if room is None:
            logger.debug("State provided for unknown room %s", room_id)
            return
        if target_id not in room.participants:
            logger.debug("Room %s: provide target %s is not seated", room_id, target_id)
            return

        self.registry.provide_state(room_id, state)
        await self.sio.emit("provideGameState", state, to=target_id)

    async def update_game_state(self, sid: str, room_id: Any = None, envelope: Any = None) -> None:
        try:
            EnvelopeHeader.model_validate(envelope)
        except ValidationError:
            await self._emit_error(sid, "Malformed state update")
            return

        try:
            outcome = self.registry.update_state(room_id, envelope)
        except Exception:
            # A single room's update must never take the relay down
            logger.exception("Error updating game state for room %s", room_id)
            return

        if outcome == UpdateOutcome.ACCEPTED:
            await self.sio.emit("syncGameState", envelope, room=room_id)


def room_summaries(registry: RoomRegistry) -> RoomListResponse:
    rooms = [
        RoomSummary(
            room_id=room.room_id,
            occupancy=room.occupancy,
            capacity=len(room.slots),
            has_snapshot=room.snapshot is not None,
            last_activity=room.last_activity,
            empty_since=room.empty_since,
        )
        for room in registry.list_rooms()
    ]
    return RoomListResponse(rooms=rooms, total=len(rooms))


async def sweep_periodically(registry: RoomRegistry, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        removed = registry.sweep_expired()
        if removed:
            logger.info("Swept %d room(s): %s", len(removed), ", ".join(removed))


def create_app(config: RelayConfig | None = None, registry: RoomRegistry | None = None):
    """
    Create the relay ASGI application.

    Args:
        config: Relay settings (read from the environment if not provided)
        registry: Room registry (built from the config if not provided)

    Returns:
        socketio.ASGIApp serving Socket.IO and the FastAPI routes
    """
    try:
        import socketio
        from fastapi import FastAPI
        from fastapi.middleware.cors import CORSMiddleware
    except ImportError:
        raise ImportError(
            "Relay dependencies not installed. Install with: pip install fastapi uvicorn python-socketio"
        )

    if config is None:
        config = RelayConfig.from_env()
    if registry is None:
        registry = RoomRegistry.from_config(config)

    @contextlib.asynccontextmanager
    async def lifespan(app):
        task = asyncio.create_task(sweep_periodically(registry, config.sweep_interval))
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    app = FastAPI(
        title="Mosaic Relay",
        description="Room relay that replicates match snapshots between two clients.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=config.cors_origins,
        ping_timeout=config.ping_timeout,
        ping_interval=config.ping_interval,
    )
    handlers = RelayHandlers(sio, registry)
    handlers.register()

    app.state.registry = registry
    app.state.config = config

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            service="mosaic-relay",
            version=__version__,
            rooms=len(registry),
        )

    @app.get("/api/v1/rooms", response_model=RoomListResponse, tags=["Rooms"])
    async def list_rooms() -> RoomListResponse:
        return room_summaries(registry)

    return socketio.ASGIApp(sio, other_asgi_app=app)
