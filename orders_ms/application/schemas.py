from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
import uuid

from orders_ms.domain.models import OrderStatus, MAX_QUANTITY


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Requests

class OrderItemCreate(CamelModel):
    product_id: str = Field(min_length=1, max_length=64)
    quantity: int = Field(gt=0, le=MAX_QUANTITY)

    class Config:
        coerce_numbers_to_str = True


class CreateOrderRequest(CamelModel):
    items: List[OrderItemCreate] = Field(min_length=1)


class OrderPaginationRequest(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    status: Optional[OrderStatus] = None


class FindOneOrderRequest(CamelModel):
    id: uuid.UUID


class ChangeOrderStatusRequest(CamelModel):
    id: uuid.UUID
    status: OrderStatus


# Catalog view

class ProductRead(CamelModel):
    """Product as returned by the catalog's validate_products command."""
    id: str
    name: str
    price: Decimal = Field(ge=0)

    class Config:
        coerce_numbers_to_str = True
        extra = "ignore"


# Responses

class OrderItemRead(CamelModel):
    product_id: str
    quantity: int
    price: float
    # Not persisted, resolved from the catalog when the order is read
    name: Optional[str] = None


class OrderRead(CamelModel):
    id: uuid.UUID
    total_amount: float
    total_items: int
    status: OrderStatus
    paid: bool
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderWithItemsRead(OrderRead):
    items: List[OrderItemRead]


class PageMeta(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderPage(CamelModel):
    data: List[OrderRead]
    meta: PageMeta
