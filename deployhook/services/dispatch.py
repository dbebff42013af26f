"""Single-consumer serialization point between webhook ingress and the deployer.

The ingress enqueues validated events; exactly one worker task pulls them in
FIFO order and runs each to completion before taking the next.  No two
deployments ever overlap, even for different repositories.

``InMemoryEventQueue`` is a test double for the ingress side that records
enqueued events without processing them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog

from deployhook.schemas.webhooks import WebhookEvent

logger = structlog.get_logger()

EventHandler = Callable[[WebhookEvent], Awaitable[Any]]


class QueueFullError(Exception):
    """A bounded queue has no room for another event."""


class EventQueue(Protocol):
    """Protocol for the producer side of the dispatch queue."""

    def enqueue(self, event: WebhookEvent) -> None:
        """Accept ``event`` for processing.

        Raises:
            QueueFullError: If the queue is bounded and full.
        """
        ...

    def qsize(self) -> int:
        """Number of events waiting to be processed."""
        ...


class DispatchQueue:
    """FIFO queue drained by a single worker task.

    ``maxsize`` of 0 means unbounded; otherwise ``enqueue`` rejects new
    events while the queue is full.
    """

    def __init__(self, handler: EventHandler, maxsize: int = 0) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[WebhookEvent] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None

    def enqueue(self, event: WebhookEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            raise QueueFullError(f"Dispatch queue is full ({self._queue.maxsize} events)") from None
        logger.debug("event_enqueued", repository=event.full_name, queued=self._queue.qsize())

    def qsize(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the single consumer; calling it twice is an error."""
        if self._worker is not None:
            msg = "Dispatch worker already started"
            raise RuntimeError(msg)
        self._worker = asyncio.create_task(self._consume(), name="dispatch-worker")

    async def stop(self) -> None:
        """Cancel the consumer, abandoning any event still queued.

        A command running under the worker is killed with it.  A git fetch or
        merge already running in a worker thread cannot be interrupted and
        finishes in the background, so the working tree may still change
        after this returns.
        """
        if self._worker is None:
            return
        abandoned = self._queue.qsize()
        if abandoned:
            logger.warning("dispatch_events_abandoned", count=abandoned)
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def join(self) -> None:
        """Wait until every enqueued event has been handled."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._handler(event)
            except Exception:
                logger.exception("event_handler_failed", repository=event.full_name)
            finally:
                self._queue.task_done()


class InMemoryEventQueue:
    """Test double that records enqueued events for assertions."""

    def __init__(self, maxsize: int = 0) -> None:
        self.events: list[WebhookEvent] = []
        self.maxsize = maxsize

    def enqueue(self, event: WebhookEvent) -> None:
        if self.maxsize and len(self.events) >= self.maxsize:
            raise QueueFullError(f"Dispatch queue is full ({self.maxsize} events)")
        self.events.append(event)

    def qsize(self) -> int:
        return len(self.events)
