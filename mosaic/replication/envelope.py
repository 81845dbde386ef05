"""
State Envelopes - What travels through the relay.

An envelope is a full wire snapshot (see engine_core/serialization.py)
flattened together with three header fields:

    {...snapshot, "actionId": str, "timestamp": int (ms), "isPriorityUpdate": bool}

The relay stores and rebroadcasts envelopes without interpreting the
snapshot. Clients use the header to deduplicate and to let turn-ending
transitions override their reconciliation filters.
"""

from __future__ import annotations
import itertools
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

HEADER_KEYS = ("actionId", "timestamp", "isPriorityUpdate")

# Fields compared before accepting a remote snapshot
IMPORTANT_STATE_KEYS = ("currentPlayer", "phase", "factories", "pot")
IMPORTANT_PLAYER_KEYS = ("wall", "staircase", "floor", "score", "holdingArea")

PROCESSED_ACTIONS_CAP = 100
PROCESSED_ACTIONS_KEEP = 50


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StateEnvelope:
    """A snapshot plus its replication header."""
    snapshot: dict[str, Any]
    action_id: str | None = None
    timestamp: int = 0
    is_priority_update: bool = False

    def to_wire(self) -> dict[str, Any]:
        data = dict(self.snapshot)
        data["timestamp"] = self.timestamp
        if self.action_id is not None:
            data["actionId"] = self.action_id
        if self.is_priority_update:
            data["isPriorityUpdate"] = True
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> StateEnvelope:
        """Split a flattened envelope. Missing header fields take defaults."""
        snapshot = {k: v for k, v in data.items() if k not in HEADER_KEYS}
        timestamp = data.get("timestamp") or 0
        return cls(
            snapshot=snapshot,
            action_id=data.get("actionId"),
            timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else 0,
            is_priority_update=data.get("isPriorityUpdate") is True,
        )


def important_subset(snapshot: dict[str, Any]) -> dict[str, Any]:
    """The part of a snapshot that changes what a player sees on the board."""
    subset = {key: snapshot.get(key) for key in IMPORTANT_STATE_KEYS}
    subset["players"] = [
        {key: player.get(key) for key in IMPORTANT_PLAYER_KEYS}
        for player in snapshot.get("players") or []
    ]
    return subset


def differs_in_important_fields(a: dict[str, Any], b: dict[str, Any]) -> bool:
    return important_subset(a) != important_subset(b)


class ProcessedActions:
    """
    Bounded set of recently processed action ids.

    Once it holds more than ``cap`` ids it is trimmed to the ``keep``
    most recently added.
    """

    def __init__(self, cap: int = PROCESSED_ACTIONS_CAP, keep: int = PROCESSED_ACTIONS_KEEP):
        self.cap = cap
        self.keep = keep
        self._ids: dict[str, None] = {}

    def add(self, action_id: str) -> None:
        self._ids.pop(action_id, None)
        self._ids[action_id] = None
        if len(self._ids) > self.cap:
            newest = list(self._ids)[-self.keep:]
            self._ids = dict.fromkeys(newest)

    def __contains__(self, action_id: object) -> bool:
        return action_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)


@dataclass
class ActionIdFactory:
    """
    Issues action ids of the form ``<client>-<counter>-<nonce>``.

    Ids are unique per sender; the nonce keeps them unique across
    reconnects that reset the counter.
    """
    client_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    nonce: Callable[[], str] = field(default=lambda: uuid.uuid4().hex[:6])
    _counter: Iterator[int] = field(default_factory=lambda: itertools.count(1), repr=False)

    def next_id(self) -> str:
        return f"{self.client_id}-{next(self._counter)}-{self.nonce()}"
