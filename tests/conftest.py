"""Pytest configuration and fixtures"""
import asyncio
import os
from typing import Dict, Optional

import pytest

# Set test environment variables (read by core.config at import time)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("EVENT_BACKEND", "memory")

from services.events import InMemoryEventPublisher  # noqa: E402
from services.inventory import InventoryService  # noqa: E402
from services.stock_cache import InMemoryStockCache  # noqa: E402
from services.stock_store import StockRecord  # noqa: E402


class DictStockStore:
    """StockStore over a plain dict; yields to the loop so seeding can race."""

    def __init__(self, rows: Optional[Dict[str, int]] = None):
        self.rows = dict(rows or {})
        self.lookups = 0

    async def find_by_item_id(self, item_id: str) -> Optional[StockRecord]:
        self.lookups += 1
        await asyncio.sleep(0)
        if item_id not in self.rows:
            return None
        return StockRecord(item_id=item_id, stock=self.rows[item_id])


@pytest.fixture
def store():
    """Store with item "1" seeded at 100"""
    return DictStockStore({"1": 100})


@pytest.fixture
def cache():
    return InMemoryStockCache()


@pytest.fixture
def events():
    return InMemoryEventPublisher()


@pytest.fixture
def service(cache, store, events):
    return InventoryService(cache, store, events)
