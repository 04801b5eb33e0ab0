"""Application entry point: wires the relay services into a FastAPI app."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI

from app.relay import (
    BatchScheduler,
    BroadcastDispatcher,
    QuoteCache,
    RelayConfig,
    SessionTracker,
    SubscriptionRegistry,
    UpstreamFetcher,
    create_api_router,
    create_quote_provider,
    create_stream_router,
)
from app.relay.instruments import InstrumentTable
from app.relay.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# The instrument CSV is a multi-megabyte download
INSTRUMENTS_TIMEOUT = 30.0


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler (first call only) and set the root level."""
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())


def create_app(config: RelayConfig | None = None) -> FastAPI:
    """Build the relay application.

    All services are created here and exposed on ``app.state`` so tests and
    operators can reach them; the lifespan only starts and stops them.
    """
    config = config or RelayConfig.from_env()

    cache = QuoteCache()
    instruments = InstrumentTable()
    provider = create_quote_provider(config)
    # The simulator has no call budget to protect
    limiter = None
    if config.use_upstream:
        limiter = RateLimiter(max_calls=config.max_calls_per_minute, cooldown=config.rate_limit_cooldown)
    fetcher = UpstreamFetcher(
        provider,
        cache,
        ttl=config.cache_ttl,
        timeout=config.fetch_timeout,
        rate_limiter=limiter,
        instruments=instruments,
    )
    scheduler = BatchScheduler(fetcher, batch_size=config.batch_size, batch_delay=config.batch_delay)
    registry = SubscriptionRegistry()
    sessions = SessionTracker(retention=config.session_retention)
    dispatcher = BroadcastDispatcher(
        registry,
        scheduler,
        fetcher,
        refresh_interval=config.refresh_interval,
        refresh_batch_size=config.refresh_batch_size,
    )

    async def reload_instruments() -> bool:
        async with httpx.AsyncClient(timeout=INSTRUMENTS_TIMEOUT, follow_redirects=True) as client:
            return await instruments.reload(client, config.instruments_url)

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        loader: asyncio.Task | None = None
        if config.load_instruments:
            loader = asyncio.create_task(reload_instruments(), name="instrument-load")
        await dispatcher.start()
        logger.info("Relay started with %s provider", provider.name)

        yield

        await dispatcher.stop()
        if loader is not None and not loader.done():
            loader.cancel()
            await asyncio.gather(loader, return_exceptions=True)
        try:
            await provider.close()
        except Exception as exc:
            logger.warning("Error closing provider %s: %s", provider.name, exc)
        logger.info("Relay stopped")

    app = FastAPI(
        title="Quote Relay",
        description="Cached, rate-paced relay of live NSE quotes to WebSocket clients",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.cache = cache
    app.state.instruments = instruments
    app.state.provider = provider
    app.state.fetcher = fetcher
    app.state.scheduler = scheduler
    app.state.registry = registry
    app.state.sessions = sessions
    app.state.dispatcher = dispatcher

    app.include_router(create_api_router(dispatcher, fetcher, registry, instruments, reload_instruments))
    app.include_router(create_stream_router(dispatcher, sessions))
    return app


def run() -> None:
    """Run the server with uvicorn, configured from the environment."""
    config = RelayConfig.from_env()
    configure_logging(config.log_level)
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    run()
