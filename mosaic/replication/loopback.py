"""
Loopback Match - Two replicas playing through an in-process room registry.

No sockets: every envelope goes through ``RoomRegistry.update_state`` and,
when accepted, is delivered to both replicas the way the relay's
``syncGameState`` broadcast would be. Used by ``mosaic simulate`` and the
integration tests to exercise engine, reconciliation and dedup together.
"""

from __future__ import annotations
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from ..engine_core.action import Action, ActionType
from ..engine_core.action_generator import legal_actions
from ..engine_core.invariants import assert_valid
from ..engine_core.reducer import Reducer
from ..engine_core.scoring import rank_players
from ..engine_core.state import GamePhase, GameState, PlacementLocation
from ..relay.rooms import RoomRegistry, UpdateOutcome
from .envelope import ActionIdFactory, StateEnvelope, differs_in_important_fields
from .reconciler import Replica

logger = logging.getLogger(__name__)


@dataclass
class LoopbackReport:
    """Summary of a finished (or capped) loopback match."""
    final_state: GameState
    actions_applied: int = 0
    rounds: int = 1
    finished: bool = False
    standings: list[int] = field(default_factory=list)
    divergences: int = 0
    relay_outcomes: Counter = field(default_factory=Counter)
    decisions: Counter = field(default_factory=Counter)

    def to_dict(self) -> dict[str, Any]:
        return {
            "finished": self.finished,
            "rounds": self.rounds,
            "actions_applied": self.actions_applied,
            "scores": [b.score for b in self.final_state.players],
            "standings": self.standings,
            "divergences": self.divergences,
            "relay_outcomes": {k.value: v for k, v in self.relay_outcomes.items()},
            "decisions": {k.value: v for k, v in self.decisions.items()},
        }


def choose_action(actions: list[Action], rng: random.Random) -> Action:
    """
    Simple playing policy: staircase placements first, then the floor,
    then anything else at random.
    """
    rows = [
        a for a in actions
        if a.action_type == ActionType.PLACE and a.payload.location == PlacementLocation.STAIRCASE
    ]
    if rows:
        return rng.choice(rows)
    floors = [a for a in actions if a.action_type == ActionType.PLACE]
    if floors:
        return floors[0]
    return rng.choice(actions)


def run_loopback_match(
    seed: int | None = None,
    max_actions: int = 5000,
    room_id: str = "loopback",
    check_invariants: bool = True,
) -> LoopbackReport:
    """
    Play one match between two replicas through a room registry.

    Args:
        seed: Seeds the deal, factory refills and the playing policy
        max_actions: Stop after this many accepted actions
        room_id: Room used in the registry
        check_invariants: Validate both replicas after every delivery

    Returns:
        LoopbackReport with the final state of seat 0
    """
    rng = random.Random(seed)
    registry = RoomRegistry()
    replicas = [
        Replica(player_index=i, reducer=Reducer(rng=random.Random(rng.random())), ids=ActionIdFactory(f"seat{i}"))
        for i in range(2)
    ]
    for i in range(2):
        registry.join(room_id, f"seat{i}")

    report = LoopbackReport(final_state=GameState())

    def deliver(envelope: StateEnvelope) -> None:
        wire = envelope.to_wire()
        outcome = registry.update_state(room_id, wire)
        report.relay_outcomes[outcome] += 1
        if outcome != UpdateOutcome.ACCEPTED:
            return
        for replica in replicas:
            decision = replica.receive(wire)
            report.decisions[decision] += 1
            replica.settle()
            if check_invariants and replica.state is not None:
                assert_valid(replica.state)

    deliver(replicas[0].start_match(seed))
    replicas[0].settle()

    while report.actions_applied < max_actions:
        state = replicas[0].state
        if state.phase == GamePhase.GAME_OVER:
            break

        actor = replicas[state.current_player]
        actions = legal_actions(actor.state, actor.player_index, include_undo=False)
        if not actions:
            logger.warning("No legal action for seat %d, stopping", actor.player_index)
            break

        outcome = actor.perform(choose_action(actions, rng))
        if not outcome.result.success:
            logger.warning("Generated action rejected: %s", outcome.result.error)
            break
        report.actions_applied += 1
        deliver(outcome.envelope)
        actor.settle()

        if differs_in_important_fields(replicas[0].snapshot(), replicas[1].snapshot()):
            report.divergences += 1
            logger.warning("Replicas diverged after %s", outcome.envelope.action_id)

    report.final_state = replicas[0].state
    report.finished = report.final_state.phase == GamePhase.GAME_OVER
    report.rounds = report.final_state.round_number
    if report.finished:
        report.standings = rank_players(
            [b.score for b in report.final_state.players],
            [b.wall for b in report.final_state.players],
        )
    return report
