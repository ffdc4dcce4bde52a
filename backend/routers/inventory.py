from fastapi import APIRouter, Depends, Request

from schemas.inventory import ApiResponse, DecreaseStockRequest, StockRead, UpdateStockRequest
from services.inventory import InventoryService

router = APIRouter()


def get_inventory_service(request: Request) -> InventoryService:
    return request.app.state.inventory_service


@router.get("/{item_id}", response_model=ApiResponse[StockRead])
async def get_stock(
    item_id: str,
    service: InventoryService = Depends(get_inventory_service),
):
    view = await service.get_stock(item_id)
    return ApiResponse.ok(StockRead(**view.to_dict()))


@router.post("/{item_id}/decrease", response_model=ApiResponse[StockRead])
async def decrease_stock(
    item_id: str,
    payload: DecreaseStockRequest,
    service: InventoryService = Depends(get_inventory_service),
):
    view = await service.decrease_stock(item_id, payload.quantity)
    return ApiResponse.ok(StockRead(**view.to_dict()))


@router.patch("/{item_id}/stock", response_model=ApiResponse[StockRead])
async def update_stock(
    item_id: str,
    payload: UpdateStockRequest,
    service: InventoryService = Depends(get_inventory_service),
):
    """Administrative overwrite. Does not emit a StockDecreased event."""
    view = await service.set_stock(item_id, payload.stock)
    return ApiResponse.ok(StockRead(**view.to_dict()))
