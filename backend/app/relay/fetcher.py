"""Per-symbol upstream fetch with cache, fallback and stale-data degradation."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .cache import QuoteCache
from .errors import SymbolNotFound, UpstreamError, UpstreamRateLimited, UpstreamUnavailable
from .instruments import InstrumentTable
from .interface import QuoteProvider
from .models import CacheEntry, Quote
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpstreamFetcher:
    """Resolves one symbol to a Quote, calling the provider only when needed.

    Resolution order for ``fetch_one``:
      1. Unknown symbol (instrument table loaded, symbol absent) -> SymbolNotFound
      2. Fresh cache entry (younger than ``ttl``) -> cached quote, no upstream call
      3. Provider quote endpoint, bounded by ``timeout``
      4. Provider LTP endpoint, priced against the previous cached quote
      5. Stale cache entry, if any
      6. Raise the primary UpstreamError

    A rate-limit refusal (upstream 429 or local budget) skips step 4.
    Concurrent calls for the same symbol share a single upstream round trip.
    """

    def __init__(
        self,
        provider: QuoteProvider,
        cache: QuoteCache,
        ttl: float = 5.0,
        timeout: float = 5.0,
        rate_limiter: RateLimiter | None = None,
        instruments: InstrumentTable | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._ttl = ttl
        self._timeout = timeout
        self._limiter = rate_limiter
        self._instruments = instruments
        self._inflight: dict[str, asyncio.Task[Quote]] = {}
        self._stats = {
            "cache_hits": 0,
            "upstream_calls": 0,
            "fallbacks": 0,
            "stale_served": 0,
            "failures": 0,
        }

    @property
    def cache(self) -> QuoteCache:
        return self._cache

    @property
    def provider(self) -> QuoteProvider:
        return self._provider

    async def fetch_one(self, symbol: str) -> Quote:
        """Return a quote for ``symbol``; see the class docstring for the order.

        Raises an UpstreamError subclass only when no cached data exists at all
        (or the symbol is unknown).
        """
        if self._instruments is not None and self._instruments.is_loaded and symbol not in self._instruments:
            raise SymbolNotFound(symbol)

        if self._cache.is_fresh(symbol, self._ttl):
            self._stats["cache_hits"] += 1
            logger.debug("Using cached data for %s", symbol)
            return self._cache.get(symbol).quote

        task = self._inflight.get(symbol)
        if task is None:
            task = asyncio.create_task(self._refresh(symbol), name=f"fetch-{symbol}")
            self._inflight[symbol] = task
            task.add_done_callback(lambda t, s=symbol: self._forget(s, t))
        # Shield so one cancelled waiter does not cancel the fetch for the others
        return await asyncio.shield(task)

    def metrics(self) -> dict[str, int]:
        return {**self._stats, "in_flight": len(self._inflight)}

    # --- Internal ---

    def _forget(self, symbol: str, task: asyncio.Task) -> None:
        if self._inflight.get(symbol) is task:
            del self._inflight[symbol]
        if not task.cancelled():
            task.exception()  # Mark retrieved; waiters re-raise it themselves

    async def _refresh(self, symbol: str) -> Quote:
        previous = self._cache.get(symbol)
        try:
            quote = await self._call(symbol, lambda: self._provider.fetch_quote(symbol))
        except UpstreamRateLimited as e:
            return self._stale_or_raise(symbol, previous, e)
        except UpstreamError as e:
            logger.warning("Quote call failed for %s (%s); falling back to LTP", symbol, e)
            try:
                quote = await self._fallback(symbol, previous)
            except UpstreamError as fallback_error:
                logger.warning("LTP fallback also failed for %s: %s", symbol, fallback_error)
                return self._stale_or_raise(symbol, previous, e)

        entry = self._cache.put(symbol, self._with_name(quote))
        logger.debug("Fetched %s: %.2f (%s)", symbol, entry.quote.last, entry.quote.source)
        return entry.quote

    async def _fallback(self, symbol: str, previous: CacheEntry | None) -> Quote:
        self._stats["fallbacks"] += 1
        price = await self._call(symbol, lambda: self._provider.fetch_ltp(symbol))
        if previous is None:
            return Quote(
                symbol=symbol,
                last=price,
                high=price,
                low=price,
                open=price,
                previous_close=price,
                source=f"{self._provider.name}-ltp",
            )

        prior = previous.quote
        reference = prior.previous_close or prior.last
        change = price - reference
        return Quote(
            symbol=symbol,
            last=price,
            change=round(change, 2),
            change_percent=round(change / reference * 100, 2) if reference else 0.0,
            volume=prior.volume,
            high=max(prior.high, price),
            low=min(prior.low, price) if prior.low else price,
            open=prior.open or price,
            previous_close=reference,
            name=prior.name,
            source=f"{self._provider.name}-ltp",
        )

    async def _call(self, symbol: str, request: Callable[[], Awaitable[T]]) -> T:
        if self._limiter is not None and not self._limiter.try_acquire():
            raise UpstreamRateLimited(symbol, "local call budget exhausted")

        self._stats["upstream_calls"] += 1
        try:
            return await asyncio.wait_for(request(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(symbol, f"timed out after {self._timeout:g}s") from e
        except UpstreamRateLimited:
            if self._limiter is not None:
                self._limiter.penalize()
            raise
        except UpstreamError:
            raise
        except Exception as e:
            # A provider bug must still degrade to fallback and stale data
            logger.debug("Unexpected provider error for %s", symbol, exc_info=True)
            raise UpstreamUnavailable(symbol, f"{type(e).__name__}: {e}") from e

    def _stale_or_raise(self, symbol: str, previous: CacheEntry | None, error: UpstreamError) -> Quote:
        if previous is None:
            self._stats["failures"] += 1
            raise error
        self._stats["stale_served"] += 1
        logger.warning("Returning expired cache for %s (age %.1fs): %s", symbol, self._cache.age(symbol) or 0.0, error)
        return previous.quote

    def _with_name(self, quote: Quote) -> Quote:
        if quote.name is not None or self._instruments is None:
            return quote
        name = self._instruments.name_for(quote.symbol)
        return dataclasses.replace(quote, name=name) if name else quote
