"""
Inventory service - the stock-mutation protocol.

The cache is the serving copy and the only mutation target; the store is read
only to seed a missing cache entry. Live traffic never writes the store.
"""

import logging
from dataclasses import dataclass

from core.errors import InsufficientStock, InvalidQuantity, InvalidStock, ItemNotFound
from services.events import EventPublisher
from services.stock_cache import DecrementStatus, StockCache
from services.stock_store import StockStore

logger = logging.getLogger(__name__)

# Redis INCRBY/DECRBY operate on signed 64-bit integers
MAX_STOCK = 2**63 - 1


@dataclass(frozen=True)
class StockView:
    item_id: str
    stock: int

    def to_dict(self) -> dict:
        return {"item_id": self.item_id, "stock": self.stock}


def _is_int(value) -> bool:
    # bool is an int subclass but never a valid quantity
    return isinstance(value, int) and not isinstance(value, bool)


class InventoryService:
    def __init__(self, cache: StockCache, store: StockStore, events: EventPublisher):
        self.cache = cache
        self.store = store
        self.events = events

    async def get_stock(self, item_id: str) -> StockView:
        return StockView(item_id, await self._load_stock(item_id))

    async def decrease_stock(self, item_id: str, quantity: int) -> StockView:
        if not _is_int(quantity) or not 0 < quantity <= MAX_STOCK:
            raise InvalidQuantity(item_id, quantity)

        await self._load_stock(item_id)

        result = await self.cache.decrement_by(item_id, quantity)
        if result.status is DecrementStatus.INSUFFICIENT_STOCK:
            logger.info(
                "Rejected decrease of %s by %d: only %d in stock",
                item_id, quantity, result.stock,
            )
            raise InsufficientStock(item_id, requested=quantity, available=result.stock)
        if result.status is DecrementStatus.NOT_FOUND:
            # evicted between seeding and decrement
            raise ItemNotFound(item_id)

        try:
            await self.events.publish_stock_decreased(item_id, quantity, result.stock)
        except Exception:
            # decrement stays committed even when publishing fails
            logger.exception("Failed to publish StockDecreased for %s (stock=%d)", item_id, result.stock)

        return StockView(item_id, result.stock)

    async def set_stock(self, item_id: str, stock: int) -> StockView:
        if not _is_int(stock) or not 0 <= stock <= MAX_STOCK:
            raise InvalidStock(item_id, stock)

        await self._load_stock(item_id)

        committed = await self.cache.set(item_id, stock)
        if committed is None:
            raise ItemNotFound(item_id)
        return StockView(item_id, committed)

    async def _load_stock(self, item_id: str) -> int:
        """Cache lookup, seeding the cache from the store on a miss."""
        cached = await self.cache.get(item_id)
        if cached is not None:
            return cached

        record = await self.store.find_by_item_id(item_id)
        if record is None:
            raise ItemNotFound(item_id)

        if await self.cache.set_if_absent(item_id, record.stock):
            logger.info("Seeded cache for %s with stock %d", item_id, record.stock)
            return record.stock

        # another caller seeded (or mutated) first; serve what the cache holds
        cached = await self.cache.get(item_id)
        return record.stock if cached is None else cached
