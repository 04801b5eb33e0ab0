"""Factory for creating upstream quote providers."""

from __future__ import annotations

import logging

from .config import RelayConfig
from .interface import QuoteProvider

logger = logging.getLogger(__name__)


def create_quote_provider(config: RelayConfig) -> QuoteProvider:
    """Create the appropriate quote provider based on configuration.

    - GROWW_API_KEY set and non-empty -> GrowwQuoteProvider (real market data)
    - Otherwise -> SimulatedQuoteProvider (GBM simulation)
    """
    if config.use_upstream:
        from .groww_client import GrowwQuoteProvider

        logger.info("Quote provider: Groww API (real data)")
        return GrowwQuoteProvider(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.fetch_timeout,
        )
    else:
        from .simulator import SimulatedQuoteProvider

        logger.info("Quote provider: GBM Simulator")
        return SimulatedQuoteProvider()
