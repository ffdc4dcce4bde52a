"""
Stock cache - the serving copy of every item's stock.

All reads are answered from here and every mutation lands here. The decrement
is a single compare-and-subtract so concurrent callers can never both observe
the pre-decrement value:

- RedisStockCache runs it as a server-side Lua script
- InMemoryStockCache runs it under an asyncio.Lock
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol

from redis.asyncio import Redis


class DecrementStatus(str, Enum):
    OK = "OK"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class DecrementResult:
    status: DecrementStatus
    # new stock on OK, unchanged current stock on INSUFFICIENT_STOCK
    stock: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is DecrementStatus.OK


class StockCache(Protocol):
    async def get(self, item_id: str) -> Optional[int]:
        ...

    async def set_if_absent(self, item_id: str, stock: int) -> bool:
        ...

    async def decrement_by(self, item_id: str, quantity: int) -> DecrementResult:
        ...

    async def set(self, item_id: str, stock: int) -> Optional[int]:
        ...


# Returns {status, stock}: 1 = decremented, 0 = insufficient (current stock), -1 = missing key.
DECREMENT_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
    return {-1, 0}
end
current = tonumber(current)
local quantity = tonumber(ARGV[1])
if current < quantity then
    return {0, current}
end
return {1, redis.call('DECRBY', KEYS[1], quantity)}
"""

_SCRIPT_STATUS = {
    1: DecrementStatus.OK,
    0: DecrementStatus.INSUFFICIENT_STOCK,
    -1: DecrementStatus.NOT_FOUND,
}


class RedisStockCache:
    """StockCache on a Redis string key per item."""

    def __init__(self, redis: Redis, key_prefix: str = "inventory:stock:"):
        self.redis = redis
        self.key_prefix = key_prefix
        self._decrement = redis.register_script(DECREMENT_SCRIPT)

    def key(self, item_id: str) -> str:
        return f"{self.key_prefix}{item_id}"

    async def get(self, item_id: str) -> Optional[int]:
        value = await self.redis.get(self.key(item_id))
        if value is None:
            return None
        return int(value)

    async def set_if_absent(self, item_id: str, stock: int) -> bool:
        return bool(await self.redis.set(self.key(item_id), int(stock), nx=True))

    async def decrement_by(self, item_id: str, quantity: int) -> DecrementResult:
        status, stock = await self._decrement(keys=[self.key(item_id)], args=[int(quantity)])
        status = _SCRIPT_STATUS[int(status)]
        if status is DecrementStatus.NOT_FOUND:
            return DecrementResult(status)
        return DecrementResult(status, int(stock))

    async def set(self, item_id: str, stock: int) -> Optional[int]:
        # XX: only overwrite a key that was already seeded
        updated = await self.redis.set(self.key(item_id), int(stock), xx=True)
        if not updated:
            return None
        return int(stock)

    async def delete(self, item_id: str) -> bool:
        return bool(await self.redis.delete(self.key(item_id)))


class InMemoryStockCache:
    """Process-local StockCache for local runs and tests."""

    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self._values: Dict[str, int] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, item_id: str) -> Optional[int]:
        return self._values.get(item_id)

    async def set_if_absent(self, item_id: str, stock: int) -> bool:
        async with self._lock:
            if item_id in self._values:
                return False
            self._values[item_id] = int(stock)
            return True

    async def decrement_by(self, item_id: str, quantity: int) -> DecrementResult:
        async with self._lock:
            current = self._values.get(item_id)
            if current is None:
                return DecrementResult(DecrementStatus.NOT_FOUND)
            if current < quantity:
                return DecrementResult(DecrementStatus.INSUFFICIENT_STOCK, current)
            self._values[item_id] = current - quantity
            return DecrementResult(DecrementStatus.OK, current - quantity)

    async def set(self, item_id: str, stock: int) -> Optional[int]:
        async with self._lock:
            if item_id not in self._values:
                return None
            self._values[item_id] = int(stock)
            return int(stock)

    async def delete(self, item_id: str) -> bool:
        async with self._lock:
            return self._values.pop(item_id, None) is not None

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._values

    def __len__(self) -> int:
        return len(self._values)
