"""
Mosaic Duel - Two-player tile-drafting engine with a peer-replicated relay.

The package provides:
- A deterministic rules engine (tile supply, turn reducer, scoring)
- A replication layer that keeps two engine copies consistent
- A room relay (Socket.IO over ASGI) that forwards state snapshots
"""

__version__ = "0.1.0"
