from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, StrictInt


T = TypeVar("T")


class DecreaseStockRequest(BaseModel):
    # strict: JSON true/false/"10" are rejected; sign is checked by the service
    quantity: StrictInt


class UpdateStockRequest(BaseModel):
    stock: StrictInt


class StockRead(BaseModel):
    item_id: str
    stock: int

    class Config:
        from_attributes = True


class ErrorRead(BaseModel):
    code: str
    local_message: str
    detail: Optional[dict[str, Any]] = None


class ApiResponse(BaseModel, Generic[T]):
    data: Optional[T] = None
    error: Optional[ErrorRead] = None

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(data=data)

    @classmethod
    def fail(cls, code: str, message: str, detail: Optional[dict] = None) -> "ApiResponse[Any]":
        return cls(error=ErrorRead(code=code, local_message=message, detail=detail))
