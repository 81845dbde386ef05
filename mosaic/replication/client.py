"""
Relay Client - Connects a Replica to the relay over Socket.IO.

Local actions are applied immediately. Their envelopes are sent after a
short trailing delay; actions within the delay are coalesced into one
envelope, which is priority if any of them was. The replica settles back
to IDLE once the envelope is out.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Callable

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from ..engine_core.action import Action, ActionResult
from ..relay.errors import ConnectionFailedError
from .envelope import StateEnvelope
from .reconciler import Decision, Replica

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.1


class RelayClient:
    """
    One participant's connection to a relay room.

    Usage:
        client = RelayClient("http://localhost:3000", "abcd")
        await client.connect()
        await client.perform(Action.draw_from_factory(client.player_index, 0))
    """

    def __init__(
        self,
        url: str,
        room_id: str,
        replica: Replica | None = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sio: Any = None,
        seed: int | None = None,
        on_state: Callable[[Replica], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        on_room_full: Callable[[], None] | None = None,
        on_peer_left: Callable[[int], None] | None = None,
    ):
        self.url = url
        self.room_id = room_id
        self.replica = replica or Replica()
        self.settle_delay = settle_delay
        self.seed = seed
        self.sio = sio or socketio.AsyncClient(reconnection=True)

        self.on_state = on_state
        self.on_error = on_error
        self.on_room_full = on_room_full
        self.on_peer_left = on_peer_left

        self.joined = asyncio.Event()
        self._pending: StateEnvelope | None = None
        self._flush_task: asyncio.Task | None = None
        self._settle_handle: asyncio.TimerHandle | None = None

        self._register()

    @property
    def player_index(self) -> int | None:
        return self.replica.player_index

    def _register(self) -> None:
        handlers = {
            "connect": self._on_connect,
            "disconnect": self._on_disconnect,
            "roomJoined": self._on_room_joined,
            "roomFull": self._on_room_full,
            "gameStart": self._on_game_start,
            "syncGameState": self._on_sync,
            "provideGameState": self._on_provided,
            "requestGameState": self._on_state_requested,
            "playerDisconnected": self._on_player_disconnected,
            "error": self._on_error,
        }
        for event, handler in handlers.items():
            self.sio.on(event, handler)

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> None:
        try:
            await self.sio.connect(self.url, transports=["websocket", "polling"])
        except SocketConnectionError as e:
            message = f"Could not reach relay at {self.url}"
            if self.on_error:
                self.on_error(message)
            raise ConnectionFailedError(message, context={"url": self.url}) from e

    async def disconnect(self) -> None:
        await self.flush()
        await self.sio.disconnect()

    async def _on_connect(self) -> None:
        logger.info("Connected to relay, joining room %s", self.room_id)
        await self.sio.emit("joinRoom", self.room_id)

    async def _on_disconnect(self, *args: Any) -> None:
        logger.info("Disconnected from relay")
        self.joined.clear()

    async def _on_room_joined(self, data: dict) -> None:
        self.replica.player_index = data["playerIndex"]
        logger.info("Seated in room %s as player %d", data["roomId"], data["playerIndex"])
        self.joined.set()
        await self.sio.emit("requestGameState", self.room_id)

    async def _on_room_full(self, *args: Any) -> None:
        logger.warning("Room %s is full", self.room_id)
        if self.on_room_full:
            self.on_room_full()

    async def _on_game_start(self, data: Any = None) -> None:
        # Seat 0 deals only when the room has no match yet; a stored one
        # arrives as syncGameState right after this event
        has_snapshot = isinstance(data, dict) and data.get("hasSnapshot") is True
        if has_snapshot or self.replica.state is not None or self.replica.player_index != 0:
            return
        envelope = self.replica.start_match(self.seed)
        await self._send(envelope)

    async def _on_player_disconnected(self, slot: int) -> None:
        logger.info("Player %s left room %s", slot, self.room_id)
        if self.on_peer_left:
            self.on_peer_left(slot)

    async def _on_error(self, data: Any) -> None:
        message = data.get("message") if isinstance(data, dict) else str(data)
        logger.warning("Relay error: %s", message)
        if self.on_error:
            self.on_error(message)

    # =========================================================================
    # Local actions
    # =========================================================================

    async def perform(self, action: Action) -> ActionResult:
        outcome = self.replica.perform(action)
        if outcome.envelope is None:
            return outcome.result

        # The guard stays up until flush() has sent this envelope
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
        if self._pending is not None and self._pending.is_priority_update:
            outcome.envelope.is_priority_update = True
        self._pending = outcome.envelope

        if self._flush_task is not None:
            self._flush_task.cancel()
        self._flush_task = asyncio.create_task(self._flush_after(self.settle_delay))
        self._notify()
        return outcome.result

    async def _flush_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.flush()

    async def flush(self) -> None:
        """Send the pending envelope now and settle the replica."""
        envelope, self._pending = self._pending, None
        if envelope is not None:
            await self._send(envelope)
        self.replica.settle()

    async def _send(self, envelope: StateEnvelope) -> None:
        await self.sio.emit("updateGameState", (self.room_id, envelope.to_wire()))

    # =========================================================================
    # Remote snapshots
    # =========================================================================

    async def _on_sync(self, data: dict) -> None:
        decision = self.replica.receive(data)
        self._after_remote(decision)

    async def _on_provided(self, data: dict) -> None:
        decision = self.replica.receive_provided(data)
        self._after_remote(decision)

    async def _on_state_requested(self, data: dict) -> None:
        if self.replica.state is None:
            return
        requester = data.get("requesterId") if isinstance(data, dict) else None
        if requester is None:
            return
        envelope = self.replica.publish()
        await self.sio.emit("provideGameState", (self.room_id, envelope.to_wire(), requester))

    def _after_remote(self, decision: Decision) -> None:
        if not decision.applied:
            return
        if self._pending is not None:
            # A priority snapshot overrode our unsent local edit
            logger.debug("Dropping unsent envelope %s", self._pending.action_id)
            self._pending = None
            if self._flush_task is not None:
                self._flush_task.cancel()
                self._flush_task = None
        if self._settle_handle is not None:
            self._settle_handle.cancel()
        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self.settle_delay, self.replica.settle)
        self._notify()

    def _notify(self) -> None:
        if self.on_state:
            self.on_state(self.replica)
