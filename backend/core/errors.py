"""
Inventory domain errors.

Every error carries a stable ``code`` and a human readable ``message`` which the
API layer copies into the response envelope. Infrastructure failures (Redis,
database) are not part of this taxonomy and propagate unchanged.
"""

from typing import Optional

# Error codes
ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
INVALID_DECREASE_QUANTITY = "INVALID_DECREASE_QUANTITY"
INVALID_STOCK = "INVALID_STOCK"
INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
INVALID_REQUEST = "INVALID_REQUEST"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

# Error messages
ERROR_ITEM_NOT_FOUND = "Item not found"
ERROR_INVALID_DECREASE_QUANTITY = "Decrease quantity must be a positive 64-bit integer"
ERROR_INVALID_STOCK = "Stock must be a non-negative 64-bit integer"
ERROR_INSUFFICIENT_STOCK = "Insufficient stock"
ERROR_INVALID_REQUEST = "Invalid request"
ERROR_SERVICE_UNAVAILABLE = "Inventory backend unavailable"


class InventoryError(Exception):
    code: str = "INVENTORY_ERROR"
    message: str = "Inventory error"

    def __init__(self, item_id: Optional[str] = None, message: Optional[str] = None):
        self.item_id = item_id
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def context(self) -> dict:
        return {"item_id": self.item_id}


class ItemNotFound(InventoryError):
    code = ITEM_NOT_FOUND
    message = ERROR_ITEM_NOT_FOUND


class InvalidQuantity(InventoryError):
    code = INVALID_DECREASE_QUANTITY
    message = ERROR_INVALID_DECREASE_QUANTITY

    def __init__(self, item_id: Optional[str], quantity):
        self.quantity = quantity
        super().__init__(item_id)

    def context(self) -> dict:
        return {"item_id": self.item_id, "quantity": self.quantity}


class InvalidStock(InventoryError):
    code = INVALID_STOCK
    message = ERROR_INVALID_STOCK

    def __init__(self, item_id: Optional[str], stock):
        self.stock = stock
        super().__init__(item_id)

    def context(self) -> dict:
        return {"item_id": self.item_id, "stock": self.stock}


class InsufficientStock(InventoryError):
    code = INSUFFICIENT_STOCK
    message = ERROR_INSUFFICIENT_STOCK

    def __init__(self, item_id: str, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(item_id)

    def context(self) -> dict:
        return {
            "item_id": self.item_id,
            "requested": self.requested,
            "available": self.available,
        }
