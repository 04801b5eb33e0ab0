"""Batched, paced upstream fetching."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from .errors import UpstreamError
from .fetcher import UpstreamFetcher
from .models import Quote

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[list[Quote]], Awaitable[None]]


def unique_symbols(symbols: Iterable[str]) -> list[str]:
    """Normalize (strip, upper-case) and de-duplicate, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in symbols:
        symbol = str(raw).strip().upper()
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)
        result.append(symbol)
    return result


def chunked(symbols: list[str], size: int) -> list[list[str]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [symbols[i:i + size] for i in range(0, len(symbols), size)]


@dataclass
class BatchRun:
    """Outcome of one scheduler run."""

    symbols: list[str]
    chunks: int = 0
    quotes: list[Quote] = field(default_factory=list)
    failures: dict[str, BaseException] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[str]:
        return [q.symbol for q in self.quotes]


class BatchScheduler:
    """Drives UpstreamFetcher over a symbol list in fixed-size, paced chunks.

    Each chunk's symbols are fetched concurrently; the scheduler then waits
    ``batch_delay`` seconds before issuing the next chunk. Within one run,
    concurrency is therefore at most ``batch_size`` and the call rate at most
    ``batch_size`` per ``batch_delay``. These bounds are per run, not per
    process: each subscription and each refresh starts its own run, and
    concurrent runs are not coordinated with each other. The process-wide
    call budget is enforced by the fetcher's RateLimiter.

    Per-symbol failures never abort the run: they are collected in
    ``BatchRun.failures`` and logged.
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        batch_size: int = 3,
        batch_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if batch_delay < 0:
            raise ValueError("batch_delay must be >= 0")
        self._fetcher = fetcher
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._sleep = sleep

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def batch_delay(self) -> float:
        return self._batch_delay

    async def run(
        self,
        symbols: Iterable[str],
        on_chunk: ChunkCallback | None = None,
        *,
        batch_size: int | None = None,
        batch_delay: float | None = None,
    ) -> BatchRun:
        """Fetch every symbol, chunk by chunk, handing each chunk's quotes to ``on_chunk``.

        ``on_chunk`` is awaited only for chunks with at least one quote. No delay
        is incurred after the final chunk, so an empty list returns immediately.
        """
        ordered = unique_symbols(symbols)
        size = batch_size or self._batch_size
        delay = self._batch_delay if batch_delay is None else batch_delay
        batches = chunked(ordered, size)
        result = BatchRun(symbols=ordered)

        for index, batch in enumerate(batches, start=1):
            logger.info("Fetching batch %d/%d: %s", index, len(batches), ", ".join(batch))
            quotes = await self._fetch_chunk(batch, result)
            result.chunks += 1

            if quotes:
                result.quotes.extend(quotes)
                if on_chunk is not None:
                    try:
                        await on_chunk(quotes)
                    except Exception:
                        logger.exception("Chunk handler failed for batch %d", index)
            else:
                logger.warning("No data returned for batch: %s", ", ".join(batch))

            if index < len(batches):
                await self._sleep(delay)

        if batches:
            logger.info(
                "Finished run: %d/%d symbols in %d batches",
                len(result.quotes),
                len(ordered),
                result.chunks,
            )
        return result

    async def _fetch_chunk(self, batch: list[str], result: BatchRun) -> list[Quote]:
        outcomes = await asyncio.gather(
            *(self._fetcher.fetch_one(symbol) for symbol in batch),
            return_exceptions=True,
        )
        quotes: list[Quote] = []
        for symbol, outcome in zip(batch, outcomes):
            if isinstance(outcome, Quote):
                quotes.append(outcome)
            elif isinstance(outcome, UpstreamError):
                result.failures[symbol] = outcome
                logger.warning("Failed to fetch %s: %s", symbol, outcome)
            elif isinstance(outcome, asyncio.CancelledError):
                raise outcome
            else:
                result.failures[symbol] = outcome
                logger.error("Unexpected error fetching %s", symbol, exc_info=outcome)
        return quotes
