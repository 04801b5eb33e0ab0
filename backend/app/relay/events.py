"""Wire events exchanged with real-time clients.

Every frame is a JSON object ``{"event": <name>, "data": <payload>}``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from .models import Quote

# Client -> server
SUBSCRIBE_STOCKS = "subscribeStocks"
REQUEST_STOCK = "requestStock"

# Server -> client
PRICE_UPDATE = "priceUpdate"
STOCK_ERROR = "stockError"
SUBSCRIBED = "subscribed"
ERROR = "error"


class ClientMessage(BaseModel):
    event: Literal["subscribeStocks", "requestStock"]
    data: Any = None

    def symbols(self) -> list[str]:
        """Payload of subscribeStocks: a list of symbols (a lone string is accepted)."""
        if isinstance(self.data, str):
            return [self.data]
        if isinstance(self.data, list):
            return [str(s) for s in self.data if isinstance(s, (str, int))]
        raise ValueError("subscribeStocks expects a list of symbols")

    def symbol(self) -> str:
        """Payload of requestStock: a single non-empty symbol."""
        if isinstance(self.data, str) and self.data.strip():
            return self.data.strip().upper()
        raise ValueError("requestStock expects a symbol string")


def parse_client_message(raw: Any) -> ClientMessage:
    """Validate an inbound frame. Raises ValueError with a client-safe message."""
    try:
        return ClientMessage.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"invalid message: {e.errors()[0]['msg']}") from e


def price_update(quotes: Iterable[Quote]) -> dict:
    return {"event": PRICE_UPDATE, "data": [q.to_dict() for q in quotes]}


def stock_error(symbol: str, error: str) -> dict:
    return {"event": STOCK_ERROR, "data": {"symbol": symbol, "error": error}}


def subscribed(symbols: Iterable[str], replayed: bool = False) -> dict:
    return {"event": SUBSCRIBED, "data": {"symbols": list(symbols), "replayed": replayed}}


def error(message: str) -> dict:
    return {"event": ERROR, "data": {"error": message}}
