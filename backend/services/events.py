"""
StockDecreased event publishing.

The service hands events to a BackgroundEventPublisher, which only enqueues.
A worker task drains the queue into the transport (Redis Stream by default),
so the decrement response never waits on publish latency. Delivery retries
live in the transport; the service never retries a publish.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

STOCK_DECREASED = "StockDecreased"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_event_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class StockDecreasedEvent:
    item_id: str
    quantity: int
    resulting_stock: int
    type: str = STOCK_DECREASED
    # lets consumers de-duplicate at-least-once deliveries
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: str = field(default_factory=_utcnow_iso)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class EventPublisher(Protocol):
    async def publish_stock_decreased(self, item_id: str, quantity: int, resulting_stock: int) -> None:
        ...


class EventTransport(Protocol):
    async def send(self, event: StockDecreasedEvent) -> None:
        ...


class RedisStreamEventPublisher:
    """Appends events to a Redis Stream, retrying failed XADDs."""

    def __init__(
        self,
        redis: Redis,
        stream: str = "inventory-out-0",
        maxlen: Optional[int] = 100_000,
        retries: int = 3,
        retry_delay: float = 0.2,
    ):
        self.redis = redis
        self.stream = stream
        self.maxlen = maxlen
        self.retries = max(0, retries)
        self.retry_delay = retry_delay

    async def send(self, event: StockDecreasedEvent) -> None:
        fields = {"type": event.type, "payload": event.to_json()}
        attempt = 0
        while True:
            try:
                await self.redis.xadd(self.stream, fields, maxlen=self.maxlen, approximate=True)
                return
            except RedisError:
                if attempt >= self.retries:
                    raise
                attempt += 1
                logger.warning(
                    "XADD to %s failed for event %s (attempt %d/%d), retrying",
                    self.stream, event.event_id, attempt, self.retries,
                )
                await asyncio.sleep(self.retry_delay * attempt)

    async def publish_stock_decreased(self, item_id: str, quantity: int, resulting_stock: int) -> None:
        await self.send(StockDecreasedEvent(item_id, quantity, resulting_stock))


class InMemoryEventPublisher:
    """Keeps published events in a list (local runs, tests)."""

    def __init__(self):
        self.events: List[StockDecreasedEvent] = []

    async def send(self, event: StockDecreasedEvent) -> None:
        self.events.append(event)

    async def publish_stock_decreased(self, item_id: str, quantity: int, resulting_stock: int) -> None:
        await self.send(StockDecreasedEvent(item_id, quantity, resulting_stock))


class BackgroundEventPublisher:
    """
    Fire-and-forget publisher.

    Delivery is at-least-once only while the process holds the event. An event
    is logged at ERROR and dropped when:
    - the queue is full at publish time
    - the transport still fails after its own retries
    - stop() times out with events left in the queue
    Consumers needing stronger guarantees must reconcile against stock reads.

    Usage:
        publisher = BackgroundEventPublisher(RedisStreamEventPublisher(redis))
        publisher.start()
        await publisher.publish_stock_decreased("1", 10, 90)  # returns immediately
        await publisher.stop()
    """

    def __init__(self, transport: EventTransport, max_queue_size: int = 10_000):
        self.transport = transport
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="stock-event-publisher")

    async def stop(self, timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Event publisher stopped with %d undelivered event(s)", self._queue.qsize())
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def publish_stock_decreased(self, item_id: str, quantity: int, resulting_stock: int) -> None:
        event = StockDecreasedEvent(item_id, quantity, resulting_stock)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("Event queue full, dropping %s: %s", event.type, event.to_json())

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.transport.send(event)
            except Exception:
                logger.exception("Failed to deliver %s: %s", event.type, event.to_json())
            finally:
                self._queue.task_done()
