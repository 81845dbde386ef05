"""
Replication Module - Keeps two engine copies consistent through the relay.

Snapshot-based, peer-replicated: whoever acts broadcasts the full state;
the relay deduplicates by action id and rebroadcasts; each client decides
whether to accept what it receives. There is no server-side simulation.
"""

from .envelope import (
    StateEnvelope,
    ProcessedActions,
    ActionIdFactory,
    important_subset,
    differs_in_important_fields,
)
from .reconciler import Replica, ReplicaStatus, Decision, PerformResult

__all__ = [
    "StateEnvelope",
    "ProcessedActions",
    "ActionIdFactory",
    "important_subset",
    "differs_in_important_fields",
    "Replica",
    "ReplicaStatus",
    "Decision",
    "PerformResult",
]
