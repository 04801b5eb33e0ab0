"""Fan-out of fetched quotes to every connected client."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from typing import Any

from . import events
from .connection import Connection, Outbox
from .errors import UpstreamError
from .fetcher import UpstreamFetcher
from .models import Quote
from .registry import SubscriptionRegistry
from .scheduler import BatchRun, BatchScheduler

logger = logging.getLogger(__name__)

Listener = Callable[[list[Quote]], Awaitable[None] | None]


class BroadcastDispatcher:
    """Turns scheduler output into push events for all connections.

    Every chunk a BatchScheduler run completes is broadcast to every
    connected client, not only to the one whose subscription triggered the
    fetch: the cache and upstream data are shared, so any client benefits
    from any fetch.

    A background task re-runs the scheduler over the registry's interest set
    every ``refresh_interval`` seconds so clients keep receiving updates
    without re-subscribing.

    Lifecycle:
        dispatcher = BroadcastDispatcher(registry, scheduler, fetcher)
        await dispatcher.start()
        dispatcher.attach(connection)
        await dispatcher.subscribe(connection.connection_id, ["RELIANCE", "TCS"])
        await dispatcher.detach(connection.connection_id)
        await dispatcher.stop()
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        scheduler: BatchScheduler,
        fetcher: UpstreamFetcher,
        refresh_interval: float = 10.0,
        refresh_batch_size: int | None = None,
        outbox_size: int = 256,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._fetcher = fetcher
        self._interval = refresh_interval
        self._refresh_batch_size = refresh_batch_size
        self._outbox_size = outbox_size
        self._outboxes: dict[str, Outbox] = {}
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task] = set()
        self._task: asyncio.Task | None = None
        self.broadcasts = 0

    # --- Connections ---

    def attach(self, connection: Connection) -> None:
        """Register a connected client. Must be called from the event loop."""
        if connection.connection_id in self._outboxes:
            raise ValueError(f"connection {connection.connection_id} already attached")
        self._outboxes[connection.connection_id] = Outbox(connection, maxsize=self._outbox_size)
        logger.info("Client connected: %s", connection.connection_id)

    async def detach(self, connection_id: str) -> None:
        """Forget a client and its subscription. Safe to call multiple times."""
        self._registry.unsubscribe_all(connection_id)
        outbox = self._outboxes.pop(connection_id, None)
        if outbox is not None:
            await outbox.close()
            logger.info("Client disconnected: %s", connection_id)

    @property
    def connection_count(self) -> int:
        return len(self._outboxes)

    def connection_ids(self) -> list[str]:
        return list(self._outboxes)

    # --- Listener channel ---

    def add_listener(self, listener: Listener) -> None:
        """Observe every broadcast batch. No replay of earlier batches."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # --- Delivery ---

    async def broadcast(self, quotes: list[Quote]) -> int:
        """Push one priceUpdate with ``quotes`` to every connection.

        Returns the number of connections the event was queued for. Dead
        connections are skipped silently and nothing is retried.
        """
        if not quotes:
            return 0
        event = events.price_update(quotes)
        delivered = sum(1 for outbox in list(self._outboxes.values()) if outbox.put(event))
        self.broadcasts += 1
        logger.debug("Broadcasted %d quotes to %d clients", len(quotes), delivered)

        for listener in list(self._listeners):
            try:
                result = listener(quotes)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Broadcast listener failed")
        return delivered

    async def flush(self) -> None:
        """Wait until every queued event has reached its transport."""
        await asyncio.gather(*(outbox.flush() for outbox in list(self._outboxes.values())))

    def send_to(self, connection_id: str, event: dict) -> bool:
        """Queue an event for one connection. False if it is gone."""
        outbox = self._outboxes.get(connection_id)
        return outbox.put(event) if outbox is not None else False

    # --- Client requests ---

    async def subscribe(self, connection_id: str, symbols: Iterable[str]) -> BatchRun:
        """Replace the connection's interest and fetch those symbols now.

        Each completed chunk is broadcast to all connections as it lands.
        A connection that has already detached is ignored.
        """
        if connection_id not in self._outboxes:
            logger.debug("Ignoring subscription from detached client %s", connection_id)
            return BatchRun(symbols=[])
        accepted = self._registry.subscribe(connection_id, symbols)
        logger.info(
            "Client %s subscribed to %d stocks: %s%s",
            connection_id,
            len(accepted),
            ", ".join(accepted[:5]),
            "..." if len(accepted) > 5 else "",
        )
        return await self._scheduler.run(accepted, on_chunk=self.broadcast)

    async def request_stock(self, connection_id: str, symbol: str) -> Quote | None:
        """Fetch one symbol immediately.

        Success is broadcast to every client; an irrecoverable failure is
        reported as stockError to the requester only.
        """
        symbol = symbol.strip().upper()
        try:
            quote = await self._fetcher.fetch_one(symbol)
        except UpstreamError as e:
            logger.warning("Request for %s from %s failed: %s", symbol, connection_id, e)
            self.send_to(connection_id, events.stock_error(symbol, str(e)))
            return None
        await self.broadcast([quote])
        return quote

    def submit(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a client request in the background, tracked until it finishes."""
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._request_done)
        return task

    def _request_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Client request failed", exc_info=task.exception())

    # --- Background refresh ---

    async def refresh_once(self) -> BatchRun | None:
        """Re-fetch the interest set and broadcast it. None when there is nothing to do."""
        symbols = self._registry.interest_set()
        if not self._outboxes or not symbols:
            return None
        logger.info("Periodic update for %d clients, %d symbols", len(self._outboxes), len(symbols))
        return await self._scheduler.run(
            symbols,
            on_chunk=self.broadcast,
            batch_size=self._refresh_batch_size,
        )

    async def start(self) -> None:
        """Start the periodic refresh task. No-op if already running."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._refresh_loop(), name="relay-refresh")
        logger.info("Refresh loop started: every %.1fs", self._interval)

    async def stop(self) -> None:
        """Stop refreshing, cancel outstanding requests and close every outbox.

        Safe to call multiple times.
        """
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        for connection_id in list(self._outboxes):
            await self.detach(connection_id)
        logger.info("Refresh loop stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh_once()
            except Exception:
                logger.exception("Periodic update failed")
