"""
Inventory services.

- stock_cache: serving copy of stock with atomic decrement
- stock_store: durable record used to seed the cache
- events: StockDecreased publishing
- inventory: orchestration of the three
"""
