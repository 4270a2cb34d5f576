"""Commands dispatched through the RPC layer against a real database."""

import json

import pytest

from orders_ms.api.routes import router
from orders_ms.api.rpc import RpcServer
from orders_ms.application.service import OrderService
from orders_ms.infrastructure import messaging

pytestmark = pytest.mark.integration


@pytest.fixture
def server(sql_repository, catalog):
    server = RpcServer(OrderService(sql_repository, catalog))
    server.include_router(router)
    return server


async def call(server, subject, data):
    return json.loads(await server.dispatch(subject, messaging.encode_request(subject, data)))


async def test_order_lifecycle(server):
    created = await call(server, "create_order", {"items": [{"productId": "A", "quantity": 2}, {"productId": "C", "quantity": 1}]})
    order = created["response"]
    assert order["totalAmount"] == 219.99
    assert order["totalItems"] == 3

    found = (await call(server, "find_one_order", {"id": order["id"]}))["response"]
    assert [i["name"] for i in found["items"]] == ["Keyboard", "Monitor"]

    paid = (await call(server, "change_order_status", {"id": order["id"], "status": "PAID"}))["response"]
    assert paid["status"] == "PAID"

    listed = (await call(server, "find_all_orders", {"status": "PAID"}))["response"]
    assert [o["id"] for o in listed["data"]] == [order["id"]]
    assert listed["meta"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}


async def test_unknown_product_creates_nothing(server, engine):
    reply = await call(server, "create_order", {"items": [{"productId": "A", "quantity": 1}, {"productId": "Z", "quantity": 1}]})

    assert reply["err"]["kind"] == "validation"
    assert reply["err"]["product_ids"] == ["Z"]
    listed = (await call(server, "find_all_orders", {}))["response"]
    assert listed == {"data": [], "meta": {"page": 1, "limit": 10, "total": 0, "pages": 0}}


async def test_pagination_past_the_end(server):
    for _ in range(17):
        await call(server, "create_order", {"items": [{"productId": "B", "quantity": 1}]})

    last = (await call(server, "find_all_orders", {"page": 4, "limit": 5}))["response"]
    beyond = (await call(server, "find_all_orders", {"page": 5, "limit": 5}))["response"]

    assert len(last["data"]) == 2
    assert beyond["data"] == []
    assert beyond["meta"] == {"page": 5, "limit": 5, "total": 17, "pages": 4}


async def test_sub_cent_price_is_stored_as_returned(server, catalog):
    catalog.add("X", "Washer", "0.005")

    created = (await call(server, "create_order", {"items": [{"productId": "X", "quantity": 3}]}))["response"]
    found = (await call(server, "find_one_order", {"id": created["id"]}))["response"]

    assert created["totalAmount"] == found["totalAmount"] == 0.03
    assert created["items"][0]["price"] == found["items"][0]["price"] == 0.01
