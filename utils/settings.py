"""Environment-driven settings for the sync service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class SyncSettings:
    """
    Immutable configuration built once at startup and attached to `app.state`.

    - `sign_key` may be None; the process still starts, but session start and
      token verification fail closed with a 500 until it is provided.
    - Timing values use milliseconds except the heartbeat, which is seconds.
    """

    sign_key: Optional[str] = None
    token_issuer: str = "sync-stream"
    token_algorithm: str = "HS256"
    token_ttl_seconds: int = 86400
    force_lock_window_ms: float = 1500
    drift_threshold_pct: float = 5
    heartbeat_seconds: float = 15
    push_queue_size: int = 100
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 3001

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Read settings from the process environment (call `load_dotenv()` first)."""
        sign_key = os.getenv("SIGN_KEY")
        origins = os.getenv("ALLOWED_ORIGINS", "*")
        return cls(
            sign_key=sign_key if sign_key and sign_key.strip() else None,
            token_issuer=os.getenv("TOKEN_ISSUER", "sync-stream"),
            token_algorithm=os.getenv("TOKEN_ALGORITHM", "HS256"),
            token_ttl_seconds=_env_int("TOKEN_TTL_SECONDS", 86400),
            force_lock_window_ms=_env_float("FORCE_LOCK_WINDOW_MS", 1500),
            drift_threshold_pct=_env_float("DRIFT_THRESHOLD_PCT", 5),
            heartbeat_seconds=_env_float("SYNC_HEARTBEAT_SECONDS", 15),
            push_queue_size=_env_int("PUSH_QUEUE_SIZE", 100),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3001),
        )
