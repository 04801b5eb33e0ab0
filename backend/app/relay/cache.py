"""Thread-safe in-memory quote cache."""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import Lock

from .models import CacheEntry, Quote


class QuoteCache:
    """Thread-safe in-memory cache of the latest quote for each symbol.

    Writers: UpstreamFetcher (one in-flight fetch per symbol).
    Readers: fetcher freshness checks, HTTP endpoints, health reporting.

    Entries are never evicted by age. Stale entries stay as last-known-good
    data, so memory is bounded by the universe of tradable symbols rather
    than by request volume.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._clock = clock
        self._version: int = 0  # Monotonically increasing; bumped on every accepted put

    def put(self, symbol: str, quote: Quote) -> CacheEntry:
        """Store ``quote`` for ``symbol`` and return the resulting entry.

        A quote older than the one already stored is ignored so readers never
        see a symbol regress; the existing entry is returned instead.
        """
        with self._lock:
            current = self._entries.get(symbol)
            if current is not None and quote.timestamp < current.quote.timestamp:
                return current
            entry = CacheEntry(quote=quote, inserted_at=self._clock())
            self._entries[symbol] = entry
            self._version += 1
            return entry

    def get(self, symbol: str) -> CacheEntry | None:
        """Get the entry for a symbol regardless of staleness, or None if unknown."""
        with self._lock:
            return self._entries.get(symbol)

    def get_quote(self, symbol: str) -> Quote | None:
        """Convenience: get just the quote, or None."""
        entry = self.get(symbol)
        return entry.quote if entry else None

    def is_fresh(self, symbol: str, ttl: float) -> bool:
        """True when the symbol is cached and younger than ``ttl`` seconds."""
        entry = self.get(symbol)
        if entry is None:
            return False
        return self._clock() - entry.inserted_at < ttl

    def age(self, symbol: str) -> float | None:
        """Seconds since the symbol was last stored, or None if unknown."""
        entry = self.get(symbol)
        return entry.age(self._clock()) if entry else None

    def get_all(self) -> dict[str, CacheEntry]:
        """Snapshot of all entries. Returns a shallow copy."""
        with self._lock:
            return dict(self._entries)

    def symbols(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def remove(self, symbol: str) -> None:
        """Remove a symbol from the cache (e.g., when delisted)."""
        with self._lock:
            self._entries.pop(symbol, None)

    @property
    def version(self) -> int:
        """Current version counter."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._entries
