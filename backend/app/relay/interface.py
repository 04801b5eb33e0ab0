"""Abstract interface for upstream quote providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Quote


class QuoteProvider(ABC):
    """Contract for upstream quote providers.

    Providers make exactly one upstream call per method invocation and never
    cache. Caching, fallback and stale-data policy belong to UpstreamFetcher.

    Lifecycle:
        provider = create_quote_provider(config)
        quote = await provider.fetch_quote("RELIANCE")
        price = await provider.fetch_ltp("RELIANCE")
        # ... app shutting down ...
        await provider.close()
    """

    name: str = "provider"

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch a full quote (price, change, OHLC, volume) for one symbol.

        Raises an UpstreamError subclass on network failure, non-2xx status,
        rate limiting or a payload that does not match the expected schema.
        """

    @abstractmethod
    async def fetch_ltp(self, symbol: str) -> float:
        """Fetch only the last traded price. Cheaper fallback for fetch_quote.

        Raises an UpstreamError subclass on failure.
        """

    async def close(self) -> None:
        """Release network resources. Safe to call multiple times."""
