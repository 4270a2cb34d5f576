from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Enum as SAEnum, CheckConstraint, Uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class Base(DeclarativeBase):
    pass


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ORDER_STATUS_LIST = [s.value for s in OrderStatus]

# Storage limits: INTEGER columns and Numeric(10, 2) money columns
MAX_QUANTITY = 2_147_483_647
MONEY_QUANTUM = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_amount"),
        CheckConstraint("total_items >= 0", name="ck_orders_total_items"),
    )
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_items: Mapped[int]
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, index=True
    )
    paid: Mapped[bool] = mapped_column(default=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position"
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
    )
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    # Key into the external product catalog (no FK - microservices pattern)
    product_id: Mapped[str] = mapped_column(String(64))
    quantity: Mapped[int]
    # Catalog price captured at creation time
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    # Line number inside the order, keeps items in request order
    position: Mapped[int] = mapped_column(default=0)
    order: Mapped[Order] = relationship("Order", back_populates="items")
