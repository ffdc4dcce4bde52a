"""Durable stock store. Read by the service only to seed the cache."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.inventory.stock import InventoryStock


@dataclass(frozen=True)
class StockRecord:
    item_id: str
    stock: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, m: InventoryStock) -> "StockRecord":
        return cls(
            item_id=m.item_id,
            stock=int(m.stock),
            created_at=m.created_at,
            updated_at=m.updated_at,
        )


class StockStore(Protocol):
    async def find_by_item_id(self, item_id: str) -> Optional[StockRecord]:
        ...


class SqlAlchemyStockStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def find_by_item_id(self, item_id: str) -> Optional[StockRecord]:
        async with self.session_maker() as db:
            res = await db.execute(select(InventoryStock).where(InventoryStock.item_id == item_id))
            m = res.scalar_one_or_none()
            return StockRecord.from_model(m) if m else None

    async def save(self, item_id: str, stock: int) -> StockRecord:
        """Insert or overwrite a store row. Seeding/import only, never live traffic."""
        if stock < 0:
            raise ValueError("stock must be >= 0")
        async with self.session_maker() as db:
            res = await db.execute(select(InventoryStock).where(InventoryStock.item_id == item_id))
            m = res.scalar_one_or_none()
            if m is None:
                m = InventoryStock(item_id=item_id, stock=stock)
                db.add(m)
            else:
                m.stock = stock
            await db.commit()
            await db.refresh(m)
            return StockRecord.from_model(m)
