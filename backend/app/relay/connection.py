"""Client connection handles and their outbound queues."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Connection(ABC):
    """Opaque handle for one connected client.

    Implementations wrap a transport (a WebSocket in production, a list in
    tests). ``send`` may raise when the transport is gone; callers treat that
    as a lost connection, never as an error to propagate.
    """

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id

    @abstractmethod
    async def send(self, event: dict) -> None:
        """Deliver one event frame to the client."""

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        """False once the transport is known to be closed."""


class Outbox:
    """FIFO delivery lane for a single connection.

    One sender task drains the queue, so events reach each client in the
    order they were enqueued and a slow client only delays itself. When the
    queue is full new events are dropped; the next refresh re-delivers
    current data anyway.
    """

    def __init__(self, connection: Connection, maxsize: int = 256) -> None:
        self.connection = connection
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0
        self._task = asyncio.create_task(self._drain(), name=f"outbox-{connection.connection_id}")

    @property
    def alive(self) -> bool:
        return not self._closed and self.connection.is_alive

    def put(self, event: dict) -> bool:
        """Enqueue an event. Never raises; returns False when not enqueued."""
        if not self.alive:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Outbox full for %s; dropping %s", self.connection.connection_id, event.get("event"))
            return False
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def close(self) -> None:
        """Stop the sender. Undelivered events are discarded. Safe to call twice."""
        self._closed = True
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._discard_queued()

    async def flush(self) -> None:
        """Wait until every queued event has been handed to the transport."""
        if not self._task.done():
            await self._queue.join()

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.connection.send(event)
            except Exception as e:
                logger.debug("Delivery to %s failed: %s", self.connection.connection_id, e)
                self._closed = True
                self._discard_queued()
                return
            finally:
                self._queue.task_done()

    def _discard_queued(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
