"""Per-connection symbol interest."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from threading import Lock

from .scheduler import unique_symbols

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Tracks, per connection, which symbols it wants live updates for.

    A subscribe call replaces the connection's whole interest set; it never
    merges. The global interest set is recomputed under the same lock as
    every write, so readers always see post-write state.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, tuple[str, ...]] = {}
        self._interest: tuple[str, ...] = ()
        self._lock = Lock()

    def subscribe(self, connection_id: str, symbols: Iterable[str]) -> tuple[str, ...]:
        """Replace the connection's symbols. Returns the normalized, de-duplicated set."""
        normalized = tuple(unique_symbols(symbols))
        with self._lock:
            self._subscriptions[connection_id] = normalized
            self._recompute()
        logger.debug("Connection %s subscribed to %d symbols", connection_id, len(normalized))
        return normalized

    def unsubscribe_all(self, connection_id: str) -> None:
        """Drop the connection's record entirely. No-op if unknown."""
        with self._lock:
            if self._subscriptions.pop(connection_id, None) is None:
                return
            self._recompute()
        logger.debug("Connection %s unsubscribed", connection_id)

    def interest_set(self) -> list[str]:
        """Union of every connection's symbols, first-seen order preserved."""
        with self._lock:
            return list(self._interest)

    def symbols_for(self, connection_id: str) -> tuple[str, ...]:
        with self._lock:
            return self._subscriptions.get(connection_id, ())

    def connection_ids(self) -> list[str]:
        with self._lock:
            return list(self._subscriptions)

    def _recompute(self) -> None:
        # Caller holds the lock
        seen: dict[str, None] = {}
        for symbols in self._subscriptions.values():
            for symbol in symbols:
                seen.setdefault(symbol, None)
        self._interest = tuple(seen)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __contains__(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._subscriptions
