"""
Inventory persistence.

Models:
- InventoryStock (durable stock record per item, seeded out-of-band)
"""
