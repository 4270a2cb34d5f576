from typing import List, Optional, Sequence
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from orders_ms.domain.errors import OrderNotFoundError, StorageError
from orders_ms.domain.models import Order, OrderItem, OrderStatus
from shared.core import get_logger

logger = get_logger(__name__)


class SqlAlchemyOrderRepository:
    """Orders and their items in a relational store.

    Every method runs in its own session and transaction; nothing is
    shared between calls besides the engine's connection pool.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _filtered(statement, status: Optional[OrderStatus]):
        if status is not None:
            statement = statement.where(Order.status == status)
        return statement

    async def create_order_with_items(self, order: Order, items: List[OrderItem]) -> Order:
        order.items = list(items)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(order)
                    await session.flush()
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"Failed to persist order: {e}")
            raise StorageError("Order could not be stored", detail=str(e.__class__.__name__)) from e
        return order

    async def count_orders(self, status: Optional[OrderStatus] = None) -> int:
        try:
            async with self.session_factory() as session:
                statement = self._filtered(select(func.count()).select_from(Order), status)
                return int((await session.execute(statement)).scalar_one())
        except SQLAlchemyError as e:
            raise StorageError("Orders could not be counted") from e

    async def list_orders(self, status: Optional[OrderStatus], offset: int, limit: int) -> Sequence[Order]:
        try:
            async with self.session_factory() as session:
                statement = (
                    self._filtered(select(Order), status)
                    .order_by(Order.created_at, Order.id)
                    .offset(offset)
                    .limit(limit)
                )
                return list((await session.scalars(statement)).all())
        except SQLAlchemyError as e:
            raise StorageError("Orders could not be listed") from e

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        try:
            async with self.session_factory() as session:
                statement = select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
                return (await session.scalars(statement)).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Order {order_id} could not be read") from e

    async def update_order_status(self, order_id: uuid.UUID, status: OrderStatus) -> Order:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    statement = select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
                    order = (await session.scalars(statement)).first()
                    if order is None:
                        raise OrderNotFoundError(order_id)
                    order.status = status
                return order
        except SQLAlchemyError as e:
            logger.error(f"Failed to update order {order_id}: {e}")
            raise StorageError(f"Order {order_id} could not be updated") from e
