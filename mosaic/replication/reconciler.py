"""
Replica - One client's copy of the match and the rules for accepting
remote snapshots.

Protocol state (named, not scattered flags):

    IDLE             nothing in flight
    LOCAL_CHANGE     a local action was applied; its envelope is not yet
                     settled, so ordinary remote snapshots are ignored
    APPLYING_REMOTE  a remote snapshot was just applied; ordinary remote
                     snapshots are ignored until it settles

The transport calls ``settle()`` after a short trailing delay to return
to IDLE.

Acceptance filter for an incoming envelope, in order:
1. Echo of one of our own action ids: ignored, even when priority
2. Priority envelope: applied
3. Applying a remote snapshot: ignored
4. Action id already processed: ignored
5. Local change in flight: ignored
6. Important subset unchanged: ignored (id recorded)
7. Otherwise: applied

Step 1 deliberately runs before the priority check. The relay broadcasts
every envelope to the whole room, sender included, so a priority envelope
we emitted comes back to us; reapplying it could roll back local actions
taken since. Priority snapshots from the peer are still applied
unconditionally.

Snapshots that fail to parse or break state invariants are rejected
whatever their priority.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ..engine_core.action import Action, ActionResult, ErrorCode
from ..engine_core.invariants import validate_state
from ..engine_core.reducer import Reducer
from ..engine_core.serialization import SnapshotFormatError, state_from_dict, state_to_dict
from ..engine_core.setup import new_game
from ..engine_core.state import GameState
from .envelope import (
    ActionIdFactory,
    ProcessedActions,
    StateEnvelope,
    differs_in_important_fields,
    now_ms,
)

logger = logging.getLogger(__name__)


class ReplicaStatus(Enum):
    IDLE = "idle"
    LOCAL_CHANGE = "local_change"
    APPLYING_REMOTE = "applying_remote"


class Decision(Enum):
    """What the replica did with an incoming snapshot."""
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    IGNORED_OWN_ECHO = "ignored_own_echo"
    IGNORED_DUPLICATE = "ignored_duplicate"
    IGNORED_APPLYING = "ignored_applying"
    IGNORED_LOCAL_CHANGE = "ignored_local_change"
    REJECTED = "rejected"

    @property
    def applied(self) -> bool:
        return self is Decision.APPLIED


@dataclass
class PerformResult:
    """Reducer result plus the envelope to send, when the action succeeded."""
    result: ActionResult
    envelope: StateEnvelope | None = None


class Replica:
    """
    Local match state with the replication protocol around it.

    Usage:
        replica = Replica(player_index=0)
        envelope = replica.start_match(seed=7)      # first player creates the match
        outcome = replica.perform(Action.draw_from_factory(0, 2))
        send(outcome.envelope)
        ...
        decision = replica.receive(incoming_envelope)
        replica.settle()
    """

    def __init__(
        self,
        state: GameState | None = None,
        player_index: int | None = None,
        reducer: Reducer | None = None,
        ids: ActionIdFactory | None = None,
        clock: Callable[[], int] = now_ms,
        validate: bool = True,
    ):
        self.state = state
        self.player_index = player_index
        self.reducer = reducer or Reducer()
        self.ids = ids or ActionIdFactory()
        self.clock = clock
        self.validate = validate

        self.status = ReplicaStatus.IDLE
        self.processed = ProcessedActions()
        self._emitted = ProcessedActions()
        self.last_action_id: str | None = None

    # =========================================================================
    # Local side
    # =========================================================================

    def start_match(self, seed: int | None = None) -> StateEnvelope:
        """Create a fresh match locally and return the envelope announcing it."""
        self.state = new_game(random_seed=seed)
        return self.publish(priority=True)

    def perform(self, action: Action) -> PerformResult:
        """
        Apply a local action under the local-change guard.

        Stays in LOCAL_CHANGE until ``settle()``; a rejected action leaves
        the state and the status untouched.
        """
        if self.state is None:
            return PerformResult(ActionResult.failure("No match in progress", ErrorCode.WRONG_PHASE))
        if self.player_index is not None and action.player_index != self.player_index:
            return PerformResult(
                ActionResult.failure(
                    f"This client plays seat {self.player_index}", ErrorCode.INVALID_PLAYER
                )
            )

        previous_status = self.status
        self.status = ReplicaStatus.LOCAL_CHANGE
        result = self.reducer.apply(self.state, action)
        if not result.success:
            self.status = previous_status
            return PerformResult(result)

        self.state = result.new_state
        envelope = self.publish(priority=action.is_priority)
        action.action_id = envelope.action_id
        action.timestamp = envelope.timestamp
        return PerformResult(result, envelope)

    def publish(self, priority: bool = False) -> StateEnvelope:
        """Wrap the current state in a fresh envelope."""
        action_id = self.ids.next_id()
        self._emitted.add(action_id)
        self.last_action_id = action_id
        return StateEnvelope(
            snapshot=self.snapshot(),
            action_id=action_id,
            timestamp=self.clock(),
            is_priority_update=priority,
        )

    def snapshot(self) -> dict[str, Any]:
        if self.state is None:
            return {}
        return state_to_dict(self.state)

    def settle(self) -> None:
        self.status = ReplicaStatus.IDLE

    # =========================================================================
    # Remote side
    # =========================================================================

    def receive(self, data: dict[str, Any]) -> Decision:
        """Run an incoming ``syncGameState`` envelope through the acceptance filter."""
        envelope = StateEnvelope.from_wire(data)
        action_id = envelope.action_id

        if action_id is not None and action_id in self._emitted:
            return self._ignore(Decision.IGNORED_OWN_ECHO, action_id)

        if not envelope.is_priority_update:
            if self.status == ReplicaStatus.APPLYING_REMOTE:
                return self._ignore(Decision.IGNORED_APPLYING, action_id)
            if action_id is not None and action_id in self.processed:
                return self._ignore(Decision.IGNORED_DUPLICATE, action_id)
            if self.status == ReplicaStatus.LOCAL_CHANGE:
                return self._ignore(Decision.IGNORED_LOCAL_CHANGE, action_id)
            if self.state is not None and not differs_in_important_fields(
                envelope.snapshot, self.snapshot()
            ):
                if action_id is not None:
                    self.processed.add(action_id)
                return Decision.UNCHANGED

        return self._apply(envelope)

    def receive_provided(self, data: dict[str, Any]) -> Decision:
        """Resync path: a snapshot sent directly to us is applied unconditionally."""
        envelope = StateEnvelope.from_wire(data)
        if not envelope.snapshot.get("players"):
            return self._ignore(Decision.REJECTED, envelope.action_id)
        return self._apply(envelope)

    def _apply(self, envelope: StateEnvelope) -> Decision:
        try:
            state = state_from_dict(envelope.snapshot)
        except SnapshotFormatError as e:
            logger.warning("Rejected malformed snapshot %s: %s", envelope.action_id, e)
            return Decision.REJECTED

        if self.validate:
            validation = validate_state(state)
            if not validation.valid:
                logger.warning(
                    "Rejected invalid snapshot %s: %s", envelope.action_id, validation.errors[:3]
                )
                return Decision.REJECTED

        self.state = state
        self.status = ReplicaStatus.APPLYING_REMOTE
        if envelope.action_id is not None:
            self.processed.add(envelope.action_id)
        return Decision.APPLIED

    def _ignore(self, decision: Decision, action_id: str | None) -> Decision:
        logger.debug("Snapshot %s: %s", action_id, decision.value)
        return decision
