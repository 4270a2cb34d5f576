from datetime import datetime
from decimal import Decimal
import uuid

import pytest

from orders_ms.application.schemas import ProductRead
from orders_ms.application.service import OrderService
from orders_ms.domain.errors import OrderNotFoundError, StorageError
from orders_ms.infrastructure.db import create_engine, create_session_factory, init_models
from orders_ms.infrastructure.repository import SqlAlchemyOrderRepository


class FakeCatalog:
    """In-memory product catalog; records every lookup."""

    def __init__(self, products=None):
        self.products = {}
        self.calls = []
        self.error = None
        for pid, name, price in products or []:
            self.add(pid, name, price)

    def add(self, pid, name, price):
        self.products[pid] = ProductRead(id=pid, name=name, price=Decimal(str(price)))

    async def validate_products(self, product_ids):
        self.calls.append(list(product_ids))
        if self.error is not None:
            raise self.error
        return [self.products[pid] for pid in product_ids if pid in self.products]


class FakeRepository:
    """Dict-backed repository counting writes."""

    def __init__(self):
        self.orders = {}
        self.writes = 0
        self.fail_on_create = False

    async def create_order_with_items(self, order, items):
        if self.fail_on_create:
            raise StorageError("Order could not be stored")
        self.writes += 1
        now = datetime.utcnow()
        order.id = uuid.uuid4()
        order.created_at = now
        order.updated_at = now
        order.items = list(items)
        self.orders[order.id] = order
        return order

    async def count_orders(self, status=None):
        return len(self._matching(status))

    async def list_orders(self, status, offset, limit):
        return self._matching(status)[offset:offset + limit]

    async def get_order_by_id(self, order_id):
        return self.orders.get(order_id)

    async def update_order_status(self, order_id, status):
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        self.writes += 1
        order.status = status
        order.updated_at = datetime.utcnow()
        return order

    def _matching(self, status):
        orders = sorted(self.orders.values(), key=lambda o: o.created_at)
        return [o for o in orders if status is None or o.status == status]


@pytest.fixture
def catalog():
    return FakeCatalog([
        ("A", "Keyboard", "10"),
        ("B", "Mouse", "2.50"),
        ("C", "Monitor", "199.99"),
    ])


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def service(repository, catalog):
    return OrderService(repository, catalog)


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_repository(engine):
    return SqlAlchemyOrderRepository(create_session_factory(engine))
