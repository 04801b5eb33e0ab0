"""HTTP routes: health, one-off quote lookup and instrument reload."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query

from .dispatcher import BroadcastDispatcher
from .errors import SymbolNotFound, UpstreamError, UpstreamRateLimited
from .fetcher import UpstreamFetcher
from .instruments import InstrumentTable
from .registry import SubscriptionRegistry

logger = logging.getLogger(__name__)


def create_api_router(
    dispatcher: BroadcastDispatcher,
    fetcher: UpstreamFetcher,
    registry: SubscriptionRegistry,
    instruments: InstrumentTable,
    reload_instruments: Callable[[], Awaitable[bool]],
) -> APIRouter:
    """Create the HTTP router. ``reload_instruments`` re-downloads the instrument CSV."""
    router = APIRouter()

    @router.get("/health", tags=["system"])
    async def health() -> dict:
        return {
            "status": "ok",
            "time": datetime.now(timezone.utc).isoformat(),
            "connections": dispatcher.connection_count,
            "cached_symbols": len(fetcher.cache),
            "interest": len(registry.interest_set()),
            "provider": fetcher.provider.name,
            "instruments": len(instruments),
            "fetcher": fetcher.metrics(),
        }

    @router.get("/api/stock", tags=["quotes"])
    async def get_stock(symbol: str | None = Query(default=None)) -> dict:
        """Fetch one quote through the cache, as a WebSocket requestStock would."""
        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise HTTPException(status_code=400, detail="symbol parameter is required")
        try:
            quote = await fetcher.fetch_one(symbol)
        except SymbolNotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except UpstreamRateLimited as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except UpstreamError as e:
            logger.warning("HTTP lookup for %s failed: %s", symbol, e)
            raise HTTPException(status_code=502, detail=str(e)) from e
        return quote.to_dict()

    @router.get("/api/instruments", tags=["instruments"])
    async def refresh_instruments() -> dict:
        if not await reload_instruments():
            raise HTTPException(status_code=404, detail="no instruments could be loaded")
        return {"status": "ok", "count": len(instruments)}

    return router
