"""GBM-based quote simulator, used when no upstream API key is configured."""

from __future__ import annotations

import logging
import math
import random
import time
from collections.abc import Callable

import numpy as np

from .interface import QuoteProvider
from .models import Quote
from .seed_prices import (
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_PARAMS,
    INTRA_BANK_CORR,
    INTRA_CONSUMER_CORR,
    INTRA_IT_CORR,
    SEED_PRICES,
    SYMBOL_PARAMS,
)

logger = logging.getLogger(__name__)

_GROUP_CORR = {
    "it": INTRA_IT_CORR,
    "banks": INTRA_BANK_CORR,
    "consumer": INTRA_CONSUMER_CORR,
}


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated stock prices.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Where dt is the elapsed time as a fraction of a trading year and Z is a
    correlated standard normal draw (Cholesky factor of the sector
    correlation matrix).
    """

    # NSE: ~250 trading days * 6.25h/day
    TRADING_SECONDS_PER_YEAR = 250 * 6.25 * 3600  # 5,625,000
    DEFAULT_DT = 1.0 / TRADING_SECONDS_PER_YEAR

    def __init__(
        self,
        symbols: list[str] | None = None,
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability

        self._symbols: list[str] = []
        self._prices: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}
        self._cholesky: np.ndarray | None = None

        for symbol in symbols or []:
            self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    # --- Public API ---

    def step(self, dt: float | None = None) -> dict[str, float]:
        """Advance every symbol by one time step. Returns {symbol: new_price}."""
        n = len(self._symbols)
        if n == 0:
            return {}
        dt = self._dt if dt is None else dt

        z = np.random.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        result: dict[str, float] = {}
        for i, symbol in enumerate(self._symbols):
            mu = self._params[symbol]["mu"]
            sigma = self._params[symbol]["sigma"]

            drift = (mu - 0.5 * sigma**2) * dt
            diffusion = sigma * math.sqrt(dt) * z[i]
            self._prices[symbol] *= math.exp(drift + diffusion)

            # Rare news shock
            if random.random() < self._event_prob:
                shock = random.uniform(0.01, 0.03) * random.choice([-1, 1])
                self._prices[symbol] *= 1 + shock
                logger.debug("Simulated shock on %s: %+.1f%%", symbol, shock * 100)

            result[symbol] = round(self._prices[symbol], 2)

        return result

    def add_symbol(self, symbol: str) -> None:
        """Add a symbol to the simulation. Rebuilds the correlation matrix."""
        if symbol in self._prices:
            return
        self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    def get_price(self, symbol: str) -> float | None:
        return self._prices.get(symbol)

    def symbols(self) -> list[str]:
        return list(self._symbols)

    # --- Internals ---

    def _add_symbol_internal(self, symbol: str) -> None:
        if symbol in self._prices:
            return
        self._symbols.append(symbol)
        self._prices[symbol] = SEED_PRICES.get(symbol, random.uniform(100.0, 3000.0))
        self._params[symbol] = SYMBOL_PARAMS.get(symbol, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        n = len(self._symbols)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._symbols[i], self._symbols[j])
                corr[i, j] = rho
                corr[j, i] = rho

        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(s1: str, s2: str) -> float:
        """Same sector: the sector's coefficient. Otherwise CROSS_GROUP_CORR.

        Every sector coefficient is >= CROSS_GROUP_CORR, which keeps the
        matrix positive definite for Cholesky.
        """
        g1 = next((g for g, members in CORRELATION_GROUPS.items() if s1 in members), None)
        g2 = next((g for g, members in CORRELATION_GROUPS.items() if s2 in members), None)
        if g1 is not None and g1 == g2:
            return _GROUP_CORR[g1]
        return CROSS_GROUP_CORR


class SimulatedQuoteProvider(QuoteProvider):
    """QuoteProvider backed by the GBM simulator.

    Prices advance lazily: a fetch steps the whole simulation forward by the
    wall-clock time elapsed since the previous step, so the relay's polling
    cadence drives the simulated market. Session open/high/low/volume are
    tracked per symbol so quotes look like the real endpoint's.
    """

    name = "simulator"

    def __init__(
        self,
        event_probability: float = 0.001,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sim = GBMSimulator(event_probability=event_probability)
        self._clock = clock
        self._last_step: float | None = None
        self._open: dict[str, float] = {}
        self._high: dict[str, float] = {}
        self._low: dict[str, float] = {}
        self._volume: dict[str, int] = {}

    async def fetch_quote(self, symbol: str) -> Quote:
        price = self._advance(symbol)
        open_price = self._open[symbol]
        change = price - open_price
        return Quote(
            symbol=symbol,
            last=price,
            change=round(change, 2),
            change_percent=round(change / open_price * 100, 2) if open_price else 0.0,
            volume=self._volume[symbol],
            high=self._high[symbol],
            low=self._low[symbol],
            open=open_price,
            previous_close=open_price,
            source=self.name,
            timestamp=self._clock(),
        )

    async def fetch_ltp(self, symbol: str) -> float:
        return self._advance(symbol)

    def get_symbols(self) -> list[str]:
        return self._sim.symbols()

    # --- Internal ---

    def _advance(self, symbol: str) -> float:
        if symbol not in self._open:
            self._sim.add_symbol(symbol)
            seed = round(self._sim.get_price(symbol), 2)
            self._open[symbol] = seed
            self._high[symbol] = seed
            self._low[symbol] = seed
            self._volume[symbol] = random.randint(100_000, 500_000)
            logger.info("Simulator: tracking %s from %.2f", symbol, seed)

        now = self._clock()
        elapsed = 0.0 if self._last_step is None else now - self._last_step
        if self._last_step is None or elapsed > 0:
            dt = max(elapsed, 1.0) / GBMSimulator.TRADING_SECONDS_PER_YEAR
            for sym, price in self._sim.step(dt).items():
                if sym in self._open:
                    self._high[sym] = max(self._high[sym], price)
                    self._low[sym] = min(self._low[sym], price)
                    self._volume[sym] += random.randint(0, 5_000)
            self._last_step = now

        return round(self._sim.get_price(symbol), 2)
