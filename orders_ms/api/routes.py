from orders_ms.api.rpc import RpcRouter
from orders_ms.application.service import OrderService
from orders_ms.application.schemas import (
    CreateOrderRequest,
    OrderPaginationRequest,
    FindOneOrderRequest,
    ChangeOrderStatusRequest,
)

router = RpcRouter(tags=["orders"])


@router.message("create_order", request_model=CreateOrderRequest)
async def create_order(payload: CreateOrderRequest, service: OrderService):
    return await service.create(payload)


@router.message("find_all_orders", request_model=OrderPaginationRequest)
async def find_all_orders(payload: OrderPaginationRequest, service: OrderService):
    """Paginated orders, optionally filtered by status (items not included)."""
    return await service.find_all(payload)


@router.message("find_one_order", request_model=FindOneOrderRequest)
async def find_one_order(payload: FindOneOrderRequest, service: OrderService):
    return await service.find_one(payload.id)


@router.message("change_order_status", request_model=ChangeOrderStatusRequest)
async def change_order_status(payload: ChangeOrderStatusRequest, service: OrderService):
    return await service.change_status(payload)
