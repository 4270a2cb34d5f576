from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Protocol, Sequence
import math
import uuid

from orders_ms.domain.models import Order, OrderItem, OrderStatus, MAX_AMOUNT, MAX_QUANTITY, MONEY_QUANTUM
from orders_ms.domain.errors import (
    UnknownProductsError,
    UpstreamError,
    OrderNotFoundError,
    RequestValidationError,
)
from shared.core import get_logger
from .schemas import (
    CreateOrderRequest,
    OrderPaginationRequest,
    ChangeOrderStatusRequest,
    OrderRead,
    OrderItemRead,
    OrderWithItemsRead,
    OrderPage,
    PageMeta,
    ProductRead,
)

logger = get_logger(__name__)


class ProductValidator(Protocol):
    async def validate_products(self, product_ids: List[str]) -> List[ProductRead]: ...


class OrderRepository(Protocol):
    async def create_order_with_items(self, order: Order, items: List[OrderItem]) -> Order: ...
    async def count_orders(self, status: Optional[OrderStatus] = None) -> int: ...
    async def list_orders(self, status: Optional[OrderStatus], offset: int, limit: int) -> Sequence[Order]: ...
    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]: ...
    async def update_order_status(self, order_id: uuid.UUID, status: OrderStatus) -> Order: ...


def _distinct(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


class OrderService:
    def __init__(self, repository: OrderRepository, products: ProductValidator):
        self.repository = repository
        self.products = products

    async def _resolve_products(self, product_ids: List[str]) -> Dict[str, ProductRead]:
        """Look up products in the catalog, keyed by id."""
        products = await self.products.validate_products(product_ids)
        return {p.id: p for p in products}

    def _to_read(self, order: Order, names: Dict[str, str]) -> OrderWithItemsRead:
        items = [
            OrderItemRead(
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                name=names[item.product_id],
            )
            for item in order.items
        ]
        return OrderWithItemsRead(
            id=order.id,
            total_amount=order.total_amount,
            total_items=order.total_items,
            status=order.status,
            paid=order.paid,
            paid_at=order.paid_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=items,
        )

    async def create(self, data: CreateOrderRequest) -> OrderWithItemsRead:
        product_ids = _distinct(item.product_id for item in data.items)
        catalog = await self._resolve_products(product_ids)

        missing = [pid for pid in product_ids if pid not in catalog]
        if missing:
            logger.warning(
                "Rejecting order with unknown products",
                extra={'extra_fields': {'product_ids': missing}},
            )
            raise UnknownProductsError(missing)

        total_amount = Decimal("0")
        total_items = 0
        items = []
        for position, line in enumerate(data.items):
            # stored as Numeric(10, 2); totals must match what is persisted
            price = catalog[line.product_id].price.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
            total_amount += price * line.quantity
            total_items += line.quantity
            items.append(
                OrderItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=price,
                    position=position,
                )
            )

        if total_amount > MAX_AMOUNT or total_items > MAX_QUANTITY:
            raise RequestValidationError([{
                "field": "items",
                "message": f"Order totals exceed the storable maximum of {MAX_AMOUNT} amount and {MAX_QUANTITY} items",
            }])

        order = Order(
            total_amount=total_amount,
            total_items=total_items,
            status=OrderStatus.PENDING,
            paid=False,
        )
        order = await self.repository.create_order_with_items(order, items)
        logger.info(
            f"Order {order.id} created",
            extra={'extra_fields': {
                'order_id': str(order.id),
                'total_amount': str(total_amount),
                'total_items': total_items,
            }},
        )
        return self._to_read(order, {pid: p.name for pid, p in catalog.items()})

    async def find_all(self, query: OrderPaginationRequest) -> OrderPage:
        total = await self.repository.count_orders(query.status)
        pages = math.ceil(total / query.limit)
        orders = await self.repository.list_orders(
            query.status,
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return OrderPage(
            data=[OrderRead.model_validate(o) for o in orders],
            meta=PageMeta(page=query.page, limit=query.limit, total=total, pages=pages),
        )

    async def find_one(self, order_id: uuid.UUID) -> OrderWithItemsRead:
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        product_ids = _distinct(item.product_id for item in order.items)
        catalog = await self._resolve_products(product_ids) if product_ids else {}
        missing = [pid for pid in product_ids if pid not in catalog]
        if missing:
            # Historical items must never be dropped from the view
            raise UpstreamError(
                f"Catalog no longer resolves products of order {order_id}",
                detail={'product_ids': missing},
            )
        return self._to_read(order, {pid: p.name for pid, p in catalog.items()})

    async def change_status(self, data: ChangeOrderStatusRequest) -> OrderWithItemsRead:
        current = await self.find_one(data.id)
        if current.status == data.status:
            return current

        updated = await self.repository.update_order_status(data.id, data.status)
        logger.info(
            f"Order {data.id} status changed",
            extra={'extra_fields': {'from': current.status.value, 'to': data.status.value}},
        )
        return self._to_read(updated, {item.product_id: item.name for item in current.items})
