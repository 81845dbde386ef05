"""
Relay configuration, read from MOSAIC_* environment variables.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Mapping


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class RelayConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    # Rooms with no traffic for this long are deleted (seconds)
    room_idle_ttl: float = 3600.0
    # Empty rooms survive this long to allow a reconnect (seconds)
    empty_room_grace: float = 60.0
    sweep_interval: float = 300.0
    min_room_id_length: int = 4
    # Drop non-priority envelopes older than the stored snapshot
    reject_stale_updates: bool = False
    ping_timeout: int = 60
    ping_interval: int = 25
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelayConfig:
        env = os.environ if environ is None else environ
        origins = env.get("MOSAIC_ALLOWED_ORIGINS", "*")
        return cls(
            host=env.get("MOSAIC_HOST", "0.0.0.0"),
            port=int(env.get("MOSAIC_PORT", "3000")),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            room_idle_ttl=float(env.get("MOSAIC_ROOM_IDLE_TTL", "3600")),
            empty_room_grace=float(env.get("MOSAIC_EMPTY_ROOM_GRACE", "60")),
            sweep_interval=float(env.get("MOSAIC_SWEEP_INTERVAL", "300")),
            min_room_id_length=int(env.get("MOSAIC_MIN_ROOM_ID_LENGTH", "4")),
            reject_stale_updates=_env_bool(env.get("MOSAIC_REJECT_STALE_UPDATES", "false")),
            ping_timeout=int(env.get("MOSAIC_PING_TIMEOUT", "60")),
            ping_interval=int(env.get("MOSAIC_PING_INTERVAL", "25")),
            log_level=env.get("MOSAIC_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def cors_origins(self) -> str | list[str]:
        """python-socketio takes the bare string ``"*"`` for any origin."""
        if self.allowed_origins == ["*"]:
            return "*"
        return self.allowed_origins
