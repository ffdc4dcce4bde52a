"""Tests for InventoryService"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from core.errors import InsufficientStock, InvalidQuantity, InvalidStock, ItemNotFound
from services.inventory import MAX_STOCK, InventoryService, StockView
from services.stock_cache import DecrementResult, DecrementStatus
from services.stock_store import StockRecord


class TestGetStock:
    @pytest.mark.asyncio
    async def test_returns_cached_value_without_store_lookup(self, service, cache, store):
        await cache.set_if_absent("1", 42)

        view = await service.get_stock("1")

        assert view == StockView("1", 42)
        assert store.lookups == 0

    @pytest.mark.asyncio
    async def test_seeds_cache_from_store_on_miss(self, service, cache, store):
        view = await service.get_stock("1")

        assert view.stock == 100
        assert await cache.get("1") == 100
        assert store.lookups == 1

        # second read is served by the cache
        await service.get_stock("1")
        assert store.lookups == 1

    @pytest.mark.asyncio
    async def test_unknown_item(self, service, cache):
        with pytest.raises(ItemNotFound) as exc_info:
            await service.get_stock("2")

        assert exc_info.value.item_id == "2"
        assert "2" not in cache

    @pytest.mark.asyncio
    async def test_concurrent_first_reads_seed_once(self, service, cache):
        first, second = await asyncio.gather(service.get_stock("1"), service.get_stock("1"))

        assert first.stock == second.stock == 100
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_lost_seed_race_serves_cache_value(self, store, events):
        cache = AsyncMock()
        cache.get.side_effect = [None, 77]
        cache.set_if_absent.return_value = False
        service = InventoryService(cache, store, events)

        view = await service.get_stock("1")

        assert view.stock == 77


class TestDecreaseStock:
    @pytest.mark.asyncio
    async def test_decrease_within_stock(self, service, cache, events):
        view = await service.decrease_stock("1", 10)

        assert view == StockView("1", 90)
        assert await cache.get("1") == 90
        assert len(events.events) == 1
        event = events.events[0]
        assert event.item_id == "1"
        assert event.quantity == 10
        assert event.resulting_stock == 90

    @pytest.mark.asyncio
    async def test_decrease_to_exactly_zero(self, service, cache, events):
        view = await service.decrease_stock("1", 100)

        assert view.stock == 0
        assert await cache.get("1") == 0
        assert events.events[0].resulting_stock == 0

    @pytest.mark.asyncio
    async def test_insufficient_stock_leaves_value_unchanged(self, service, cache, events):
        with pytest.raises(InsufficientStock) as exc_info:
            await service.decrease_stock("1", 110)

        assert exc_info.value.requested == 110
        assert exc_info.value.available == 100
        assert await cache.get("1") == 100
        assert events.events == []

    @pytest.mark.asyncio
    async def test_unknown_item(self, service, events):
        with pytest.raises(ItemNotFound):
            await service.decrease_stock("2", 1)
        assert events.events == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -5, True, 1.5, MAX_STOCK + 1])
    async def test_invalid_quantity_touches_nothing(self, store, events, quantity):
        cache = AsyncMock()
        service = InventoryService(cache, store, events)

        with pytest.raises(InvalidQuantity):
            await service.decrease_stock("1", quantity)

        cache.get.assert_not_awaited()
        cache.decrement_by.assert_not_awaited()
        assert store.lookups == 0

    @pytest.mark.asyncio
    async def test_evicted_between_seed_and_decrement(self, store, events):
        cache = AsyncMock()
        cache.get.return_value = 100
        cache.decrement_by.return_value = DecrementResult(DecrementStatus.NOT_FOUND)
        service = InventoryService(cache, store, events)

        with pytest.raises(ItemNotFound):
            await service.decrease_stock("1", 1)
        assert events.events == []

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_decrement(self, cache, store, caplog):
        publisher = AsyncMock()
        publisher.publish_stock_decreased.side_effect = RuntimeError("broker down")
        service = InventoryService(cache, store, publisher)

        view = await service.decrease_stock("1", 10)

        assert view.stock == 90
        assert await cache.get("1") == 90
        assert "Failed to publish StockDecreased" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_decreases_never_oversell(self, service, cache, events):
        results = await asyncio.gather(
            *[service.decrease_stock("1", 5) for _ in range(20)]
        )

        assert all(r.stock >= 0 for r in results)
        assert sorted(r.stock for r in results) == list(range(0, 100, 5))
        assert await cache.get("1") == 0
        assert len(events.events) == 20

    @pytest.mark.asyncio
    async def test_concurrent_oversubscription(self, service, cache, events):
        results = await asyncio.gather(
            *[service.decrease_stock("1", 7) for _ in range(20)],
            return_exceptions=True,
        )

        succeeded = [r for r in results if isinstance(r, StockView)]
        rejected = [r for r in results if isinstance(r, InsufficientStock)]
        assert len(succeeded) == 14
        assert len(rejected) == 6
        assert await cache.get("1") == 100 - 14 * 7
        assert len(events.events) == 14


class TestSetStock:
    @pytest.mark.asyncio
    async def test_overwrite(self, service, events):
        view = await service.set_stock("1", 1000)

        assert view == StockView("1", 1000)
        assert (await service.get_stock("1")).stock == 1000
        assert events.events == []

    @pytest.mark.asyncio
    async def test_overwrite_to_zero(self, service):
        view = await service.set_stock("1", 0)
        assert view.stock == 0

    @pytest.mark.asyncio
    async def test_negative_stock_rejected(self, service, cache):
        await service.get_stock("1")

        with pytest.raises(InvalidStock) as exc_info:
            await service.set_stock("1", -100)

        assert exc_info.value.stock == -100
        assert await cache.get("1") == 100

    @pytest.mark.asyncio
    async def test_unknown_item(self, service):
        with pytest.raises(ItemNotFound):
            await service.set_stock("2", 5)

    @pytest.mark.asyncio
    async def test_store_is_never_written(self, service, store):
        await service.set_stock("1", 5)
        await service.decrease_stock("1", 2)

        assert store.rows["1"] == 100

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stock", [MAX_STOCK + 1, 2**64])
    async def test_stock_beyond_64_bit_range_rejected(self, service, cache, stock):
        await service.get_stock("1")

        with pytest.raises(InvalidStock):
            await service.set_stock("1", stock)

        assert await cache.get("1") == 100
        assert (await service.decrease_stock("1", 1)).stock == 99

    @pytest.mark.asyncio
    async def test_stock_at_64_bit_limit(self, service):
        view = await service.set_stock("1", MAX_STOCK)

        assert view.stock == MAX_STOCK
        assert (await service.decrease_stock("1", 1)).stock == MAX_STOCK - 1


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_decrease_and_overwrite_sequence(self, service, events):
        assert (await service.get_stock("1")).stock == 100

        with pytest.raises(InsufficientStock):
            await service.decrease_stock("1", 110)
        assert (await service.get_stock("1")).stock == 100

        assert (await service.decrease_stock("1", 10)).stock == 90
        assert [(e.item_id, e.quantity, e.resulting_stock) for e in events.events] == [("1", 10, 90)]

        with pytest.raises(InvalidStock):
            await service.set_stock("1", -100)
        assert (await service.get_stock("1")).stock == 90

        assert (await service.set_stock("1", 1000)).stock == 1000
        assert len(events.events) == 1

    @pytest.mark.asyncio
    async def test_seed_uses_store_record(self, cache, events):
        store = AsyncMock()
        store.find_by_item_id.return_value = StockRecord(item_id="sku-9", stock=3)
        service = InventoryService(cache, store, events)

        assert (await service.decrease_stock("sku-9", 3)).stock == 0
        store.find_by_item_id.assert_awaited_once_with("sku-9")
