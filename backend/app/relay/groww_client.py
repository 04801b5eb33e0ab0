"""Groww live-data API client for NSE cash-segment quotes."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from typing import Any

import httpx

from .errors import MalformedResponse, UpstreamRateLimited, UpstreamUnavailable
from .interface import QuoteProvider
from .models import Quote

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groww.in"


def _to_float(value: Any, default: float | None = None) -> float | None:
    try:
        if value is None or value == "":
            return default
        result = float(value)
    except (TypeError, ValueError):
        return default
    # NaN and infinities are not prices
    return result if math.isfinite(result) else default


def parse_ohlc(raw: Any) -> dict[str, float]:
    """Normalize the ``ohlc`` field, which arrives either as a mapping or as
    a loose string like ``"{open: 149.50,high: 150.50,low: 148.50,close: 149.50}"``.
    Unparseable parts are dropped.
    """
    if isinstance(raw, Mapping):
        items = raw.items()
    elif isinstance(raw, str):
        items = []
        for part in raw.strip().strip("{}").split(","):
            key, sep, value = part.partition(":")
            if sep:
                items.append((key.strip().strip("\"'"), value.strip()))
    else:
        return {}

    result: dict[str, float] = {}
    for key, value in items:
        number = _to_float(value)
        if number is not None:
            result[str(key).lower()] = number
    return result


def parse_quote_payload(symbol: str, data: Any, now: float | None = None) -> Quote:
    """Build a Quote from a quote-endpoint response body.

    Raises MalformedResponse when the envelope or the price is missing.
    """
    if not isinstance(data, Mapping) or data.get("status") != "SUCCESS":
        raise MalformedResponse(symbol, "unexpected response envelope")
    payload = data.get("payload")
    if not isinstance(payload, Mapping):
        raise MalformedResponse(symbol, "missing payload")

    price = _to_float(payload.get("last_price"))
    if price is None:
        price = _to_float(payload.get("last_trade_price"))
    if price is None or price <= 0:
        raise MalformedResponse(symbol, "missing last price")

    change = _to_float(payload.get("day_change"), 0.0)
    change_percent = _to_float(payload.get("day_change_perc"), 0.0)
    ohlc = parse_ohlc(payload.get("ohlc"))

    volume = _to_float(payload.get("volume"))
    if volume is None:
        volume = (_to_float(payload.get("total_buy_quantity"), 0.0)
                  + _to_float(payload.get("total_sell_quantity"), 0.0))
        if not math.isfinite(volume):
            volume = 0.0

    high = _to_float(payload.get("high_trade_range")) or ohlc.get("high") or price
    low = _to_float(payload.get("low_trade_range")) or ohlc.get("low") or price
    previous_close = ohlc.get("close") or round(price - change, 2)

    return Quote(
        symbol=symbol,
        last=round(price, 2),
        change=round(change, 2),
        change_percent=round(change_percent, 2),
        volume=max(int(volume), 0),
        high=round(high, 2),
        low=round(low, 2),
        open=round(ohlc.get("open", price), 2),
        previous_close=round(previous_close, 2),
        source="groww-quote",
        timestamp=time.time() if now is None else now,
    )


def parse_ltp_payload(symbol: str, data: Any, exchange: str = "NSE") -> float:
    """Extract the last traded price from an LTP-endpoint response body."""
    key = f"{exchange}_{symbol}"
    if not isinstance(data, Mapping) or data.get("status") != "SUCCESS":
        raise MalformedResponse(symbol, "unexpected response envelope")
    payload = data.get("payload")
    if not isinstance(payload, Mapping) or key not in payload:
        raise MalformedResponse(symbol, f"missing {key} in payload")
    price = _to_float(payload[key])
    if price is None or price <= 0:
        raise MalformedResponse(symbol, "invalid last traded price")
    return round(price, 2)


class GrowwQuoteProvider(QuoteProvider):
    """QuoteProvider backed by the Groww live-data REST API.

    Primary: GET /v1/live-data/quote (full quote with OHLC and volume).
    Fallback: GET /v1/live-data/ltp (price only, cheaper).

    Responses are keyed by exchange + segment + trading symbol. A 429 maps to
    UpstreamRateLimited, any other non-2xx or transport error to
    UpstreamUnavailable, and schema mismatches to MalformedResponse.
    """

    name = "groww"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 5.0,
        exchange: str = "NSE",
        segment: str = "CASH",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._exchange = exchange
        self._segment = segment
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "X-API-VERSION": "1.0",
        }

    async def fetch_quote(self, symbol: str) -> Quote:
        data = await self._get(
            symbol,
            "/v1/live-data/quote",
            {"exchange": self._exchange, "segment": self._segment, "trading_symbol": symbol},
        )
        quote = parse_quote_payload(symbol, data)
        logger.debug("Groww quote %s: %.2f", symbol, quote.last)
        return quote

    async def fetch_ltp(self, symbol: str) -> float:
        data = await self._get(
            symbol,
            "/v1/live-data/ltp",
            {"segment": self._segment, "exchange_symbols": f"{self._exchange}_{symbol}"},
        )
        return parse_ltp_payload(symbol, data, exchange=self._exchange)

    async def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    # --- Internal ---

    async def _get(self, symbol: str, path: str, params: dict[str, str]) -> Any:
        try:
            response = await self._client.get(path, params=params, headers=self._headers)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(symbol, "request timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(symbol, e) from e

        if response.status_code == 429:
            raise UpstreamRateLimited(symbol, "HTTP 429")
        if response.is_error:
            logger.debug("Groww %s for %s: %s", path, symbol, response.text[:200])
            raise UpstreamUnavailable(symbol, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(symbol, "response is not JSON") from e
