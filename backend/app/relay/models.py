"""Data models for the quote relay."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable snapshot of a single symbol at a point in time."""

    symbol: str
    last: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    high: float = 0.0
    low: float = 0.0
    open: float = 0.0
    previous_close: float = 0.0
    name: str | None = None
    source: str = "upstream"
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat' relative to the previous close."""
        if self.change > 0:
            return "up"
        elif self.change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON / WebSocket transmission.

        Keys follow the dashboard's wire format; the timestamp is epoch milliseconds.
        """
        return {
            "symbol": self.symbol,
            "name": self.name or self.symbol,
            "last": self.last,
            "chg": self.change,
            "pchg": self.change_percent,
            "vol": self.volume,
            "high": self.high,
            "low": self.low,
            "open": self.open,
            "previousClose": self.previous_close,
            "source": self.source,
            "timestamp": int(self.timestamp * 1000),
        }


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached quote and the time it was stored."""

    quote: Quote
    inserted_at: float

    def age(self, now: float | None = None) -> float:
        """Seconds since insertion."""
        ref = time.time() if now is None else now
        return max(ref - self.inserted_at, 0.0)
