"""Relay configuration from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .groww_client import DEFAULT_BASE_URL
from .instruments import DEFAULT_INSTRUMENTS_URL

_FALSE = {"0", "false", "no", "off"}


def _number(env: Mapping[str, str], name: str, default: float, cast=float, minimum: float = 0):
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class RelayConfig:
    """Tunables for caching, pacing and the upstream provider.

    Batch size and delay encode the upstream's rate-limit policy and are
    expected to change per provider.
    """

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    instruments_url: str = DEFAULT_INSTRUMENTS_URL
    cache_ttl: float = 5.0
    fetch_timeout: float = 5.0
    batch_size: int = 3
    batch_delay: float = 0.5
    refresh_interval: float = 10.0
    refresh_batch_size: int = 10
    max_calls_per_minute: int = 60
    rate_limit_cooldown: float = 3.0
    session_retention: float = 300.0
    load_instruments: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @property
    def use_upstream(self) -> bool:
        """True when a real API key is configured."""
        return bool(self.api_key.strip())

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> RelayConfig:
        """Build from ``env`` (default: os.environ). Raises ValueError on bad numbers."""
        env = os.environ if env is None else env
        return cls(
            api_key=env.get("GROWW_API_KEY", "").strip(),
            base_url=env.get("GROWW_BASE_URL", "").strip() or DEFAULT_BASE_URL,
            instruments_url=env.get("INSTRUMENTS_URL", "").strip() or DEFAULT_INSTRUMENTS_URL,
            cache_ttl=_number(env, "QUOTE_CACHE_TTL", 5.0),
            fetch_timeout=_number(env, "FETCH_TIMEOUT", 5.0, minimum=0.1),
            batch_size=_number(env, "BATCH_SIZE", 3, cast=int, minimum=1),
            batch_delay=_number(env, "BATCH_DELAY", 0.5),
            refresh_interval=_number(env, "REFRESH_INTERVAL", 10.0, minimum=0.1),
            refresh_batch_size=_number(env, "REFRESH_BATCH_SIZE", 10, cast=int, minimum=1),
            max_calls_per_minute=_number(env, "MAX_CALLS_PER_MINUTE", 60, cast=int),
            rate_limit_cooldown=_number(env, "RATE_LIMIT_COOLDOWN", 3.0),
            session_retention=_number(env, "SESSION_RETENTION", 300.0),
            load_instruments=env.get("LOAD_INSTRUMENTS", "true").strip().lower() not in _FALSE,
            host=env.get("HOST", "").strip() or "0.0.0.0",
            port=_number(env, "PORT", 3000, cast=int, minimum=1),
            log_level=env.get("LOG_LEVEL", "").strip().upper() or "INFO",
        )
