"""Instrument reference data: trading symbol -> company name."""

from __future__ import annotations

import csv
import io
import logging
from threading import Lock

import httpx

logger = logging.getLogger(__name__)

DEFAULT_INSTRUMENTS_URL = "https://growwapi-assets.groww.in/instruments/instrument.csv"

_MISSING_NAMES = {"", "nan", "none", "null"}


class InstrumentTable:
    """Read-mostly lookup of NSE cash-segment instruments.

    Until a load succeeds the table is empty and ``is_loaded`` is False;
    callers should then treat every symbol as potentially valid and use the
    symbol itself as the display name.
    """

    def __init__(self, exchange: str = "NSE", segment: str = "CASH") -> None:
        self._exchange = exchange
        self._segment = segment
        self._names: dict[str, str] = {}
        self._lock = Lock()

    def load_csv(self, text: str) -> int:
        """Replace the table from instrument CSV text. Returns the number of mappings.

        A CSV yielding no mappings leaves the current table untouched.

        Requires ``trading_symbol`` and ``name`` columns; ``exchange`` and
        ``segment`` default to NSE / CASH when absent. Raises ValueError when
        the header is missing a required column.
        """
        reader = csv.reader(io.StringIO(text))
        try:
            header = [h.strip().lower() for h in next(reader)]
        except StopIteration:
            raise ValueError("instrument CSV is empty") from None

        if "trading_symbol" not in header or "name" not in header:
            raise ValueError("instrument CSV missing trading_symbol or name column")
        symbol_idx = header.index("trading_symbol")
        name_idx = header.index("name")
        exchange_idx = header.index("exchange") if "exchange" in header else None
        segment_idx = header.index("segment") if "segment" in header else None

        width = max(i for i in (symbol_idx, name_idx, exchange_idx, segment_idx) if i is not None)
        names: dict[str, str] = {}
        rows = 0
        for row in reader:
            if len(row) <= width:
                continue
            rows += 1
            symbol = row[symbol_idx].strip()
            name = row[name_idx].strip()
            exchange = row[exchange_idx].strip() if exchange_idx is not None else self._exchange
            segment = row[segment_idx].strip() if segment_idx is not None else self._segment
            if exchange != self._exchange or segment != self._segment:
                continue
            if not symbol or name.lower() in _MISSING_NAMES:
                continue
            names[symbol] = name

        if names:
            with self._lock:
                self._names = names
        logger.info("Parsed %d instrument rows, %d %s %s mappings", rows, len(names), self._exchange, self._segment)
        return len(names)

    async def reload(self, client: httpx.AsyncClient, url: str = DEFAULT_INSTRUMENTS_URL) -> bool:
        """Download and load the instrument CSV. Returns False when nothing usable was loaded.

        The previous table is kept on failure.
        """
        try:
            response = await client.get(url, headers={"Accept": "text/csv"})
            response.raise_for_status()
            count = self.load_csv(response.text)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Instrument download failed: %s", e)
            return False
        return count > 0

    def name_for(self, symbol: str) -> str | None:
        with self._lock:
            return self._names.get(symbol)

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return bool(self._names)

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._names
