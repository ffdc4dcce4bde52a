"""
Seed the durable inventory store.

This script:
- Creates the inventory table if needed.
- Inserts or overwrites one store row per seeded item.
- Optionally drops the matching cache keys so the next read re-seeds the cache
  from the store.

Run inside docker (recommended):
  docker exec -i inventory-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/seed_inventory.py"

Optional env vars:
- SEED_ITEMS (default: "1:100") comma separated item_id:stock pairs
- CLEAR_CACHE (default: true)
"""

from __future__ import annotations

import asyncio
import os

from core.config import settings
from core.redis_client import close_redis, get_redis
from db.database import async_session_maker, create_db_and_tables, engine
from services.stock_cache import RedisStockCache
from services.stock_store import SqlAlchemyStockStore


def parse_seed_items(raw: str) -> list[tuple[str, int]]:
    out: list[tuple[str, int]] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        item_id, sep, stock = part.rpartition(":")
        item_id = item_id.strip()
        if not sep or not item_id:
            raise ValueError(f"expected item_id:stock, got {part!r}")
        qty = int(stock)
        if qty < 0:
            raise ValueError(f"stock for {item_id!r} must be >= 0")
        out.append((item_id, qty))
    return out


async def main() -> None:
    items = parse_seed_items(os.getenv("SEED_ITEMS", "1:100"))
    clear_cache = os.getenv("CLEAR_CACHE", "true").strip().lower() == "true"

    try:
        await create_db_and_tables()
        store = SqlAlchemyStockStore(async_session_maker)
        for item_id, stock in items:
            record = await store.save(item_id, stock)
            print(f"Seeded item {record.item_id}: stock={record.stock}")

        if clear_cache and settings.cache_backend == "redis":
            cache = RedisStockCache(get_redis(), key_prefix=settings.inventory_key_prefix)
            cleared = 0
            for item_id, _ in items:
                if await cache.delete(item_id):
                    cleared += 1
            print(f"Cleared cache keys: {cleared}")
    finally:
        await close_redis()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
