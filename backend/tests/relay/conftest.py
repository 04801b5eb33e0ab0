"""Shared fakes for relay tests."""

import asyncio
import time

import pytest

from app.relay.cache import QuoteCache
from app.relay.connection import Connection
from app.relay.errors import UpstreamUnavailable
from app.relay.fetcher import UpstreamFetcher
from app.relay.interface import QuoteProvider
from app.relay.models import Quote


class FakeClock:
    """Manually advanced clock, injectable wherever a ``clock`` callable is accepted."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(QuoteProvider):
    """Scripted provider.

    ``prices`` drives fetch_quote, ``ltp_prices`` (falling back to ``prices``)
    drives fetch_ltp. ``quote_errors`` / ``ltp_errors`` map a symbol to an
    UpstreamError subclass to raise instead.
    """

    name = "fake"

    def __init__(self, prices=None, delay: float = 0.0):
        self.prices = dict(prices or {})
        self.ltp_prices = {}
        self.quote_errors = {}
        self.ltp_errors = {}
        self.delay = delay
        self.quote_calls = []
        self.ltp_calls = []
        self.call_times = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def fetch_quote(self, symbol):
        self.quote_calls.append(symbol)
        try:
            await self._enter()
            error = self.quote_errors.get(symbol)
            if error is not None:
                raise error(symbol, "scripted failure")
            if symbol not in self.prices:
                raise UpstreamUnavailable(symbol, "HTTP 404")
            price = self.prices[symbol]
            return Quote(
                symbol=symbol,
                last=price,
                change=1.0,
                change_percent=round(100 / (price - 1), 2),
                volume=1000,
                high=price + 5,
                low=price - 5,
                open=price - 2,
                previous_close=price - 1,
                source="fake",
            )
        finally:
            self.active -= 1

    async def fetch_ltp(self, symbol):
        self.ltp_calls.append(symbol)
        try:
            await self._enter()
            error = self.ltp_errors.get(symbol)
            if error is not None:
                raise error(symbol, "scripted failure")
            price = self.ltp_prices.get(symbol, self.prices.get(symbol))
            if price is None:
                raise UpstreamUnavailable(symbol, "HTTP 404")
            return price
        finally:
            self.active -= 1

    async def close(self):
        self.closed = True

    async def _enter(self):
        self.call_times.append(time.monotonic())
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        if self.delay:
            await asyncio.sleep(self.delay)


class RecordingConnection(Connection):
    """In-memory connection that records every event it is sent."""

    def __init__(self, connection_id: str, fail: bool = False):
        super().__init__(connection_id)
        self.events = []
        self.open = True
        self.fail = fail

    async def send(self, event):
        if self.fail:
            raise ConnectionError("socket closed")
        self.events.append(event)

    @property
    def is_alive(self):
        return self.open

    def named(self, name):
        return [e for e in self.events if e["event"] == name]

    def updated_symbols(self):
        return [q["symbol"] for e in self.named("priceUpdate") for q in e["data"]]


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider({"RELIANCE": 2450.75, "TCS": 3890.50, "INFY": 1456.80, "SBIN": 542.30})


@pytest.fixture
def cache():
    return QuoteCache()


@pytest.fixture
def fetcher(provider, cache):
    return UpstreamFetcher(provider, cache, ttl=5.0, timeout=1.0)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def make_connection():
    return RecordingConnection
