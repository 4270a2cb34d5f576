import json
import uuid

import pytest

from orders_ms.api.routes import router
from orders_ms.api.rpc import RpcRouter, RpcServer
from orders_ms.infrastructure import messaging


@pytest.fixture
def server(service):
    server = RpcServer(service)
    server.include_router(router)
    return server


async def call(server, subject, data, headers=None):
    raw = messaging.encode_request(subject, data, request_id="req-1")
    return json.loads(await server.dispatch(subject, raw, headers))


def test_routes_cover_every_order_command(server):
    assert set(server.routes) == {"create_order", "find_all_orders", "find_one_order", "change_order_status"}


def test_duplicate_route_is_rejected(server):
    with pytest.raises(ValueError):
        server.include_router(router)


async def test_create_order_replies_with_camel_case_order(server):
    reply = await call(server, "create_order", {"items": [{"productId": "A", "quantity": 2}]})

    assert reply["id"] == "req-1"
    assert reply["isDisposed"] is True
    order = reply["response"]
    assert order["totalAmount"] == 20.0
    assert order["totalItems"] == 2
    assert order["status"] == "PENDING"
    assert order["items"] == [{"productId": "A", "quantity": 2, "price": 10.0, "name": "Keyboard"}]
    uuid.UUID(order["id"])


async def test_invalid_payload_never_reaches_the_service(server, repository, catalog):
    reply = await call(server, "create_order", {"items": [{"productId": "A", "quantity": 0}]})

    assert reply["err"]["kind"] == "validation"
    assert reply["err"]["status"] == 400
    assert reply["err"]["errors"][0]["field"] == "items.0.quantity"
    assert catalog.calls == []
    assert repository.writes == 0


async def test_not_found_is_translated(server):
    order_id = str(uuid.uuid4())

    reply = await call(server, "find_one_order", {"id": order_id})

    assert reply["err"] == {
        "kind": "not_found",
        "status": 404,
        "message": f"Order with id {order_id} not found",
        "order_id": order_id,
    }
    assert "response" not in reply


async def test_find_all_orders_reply_shape(server):
    await call(server, "create_order", {"items": [{"productId": "B", "quantity": 1}]})

    reply = await call(server, "find_all_orders", {"page": 1, "limit": 10})

    assert reply["response"]["meta"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert reply["response"]["data"][0]["totalAmount"] == 2.5
    assert "items" not in reply["response"]["data"][0]


async def test_change_order_status_round_trip(server):
    created = (await call(server, "create_order", {"items": [{"productId": "A", "quantity": 1}]}))["response"]

    reply = await call(server, "change_order_status", {"id": created["id"], "status": "CANCELLED"})

    assert reply["response"]["status"] == "CANCELLED"
    assert reply["response"]["id"] == created["id"]


async def test_unknown_subject(server):
    reply = await call(server, "delete_order", {"id": "x"})

    assert reply["err"]["status"] == 404


async def test_malformed_envelope(server):
    reply = json.loads(await server.dispatch("create_order", b"not json"))

    assert reply["err"]["kind"] == "validation"
    assert reply["id"] is None


async def test_unexpected_error_becomes_internal_error(service):
    broken = RpcRouter()

    @broken.message("explode")
    async def explode(payload, service):
        raise RuntimeError("boom")

    server = RpcServer(service)
    server.include_router(broken)

    reply = await call(server, "explode", {})

    assert reply["err"] == {"kind": "internal", "status": 500, "message": "Internal server error"}


async def test_object_patterns_use_compact_sorted_json(service):
    custom = RpcRouter()

    @custom.message({"cmd": "ping"})
    async def ping(payload, service):
        return {"pong": payload}

    server = RpcServer(service)
    server.include_router(custom)

    assert list(server.routes) == ['{"cmd":"ping"}']
    reply = await call(server, '{"cmd":"ping"}', 1)
    assert reply["response"] == {"pong": 1}


class FakeSubscription:
    def __init__(self):
        self.unsubscribed = False

    async def unsubscribe(self):
        self.unsubscribed = True


class FakeMsg:
    def __init__(self, data, reply="_INBOX.1", headers=None):
        self.data = data
        self.reply = reply
        self.headers = headers
        self.responses = []

    async def respond(self, data):
        self.responses.append(data)


class FakeNats:
    def __init__(self):
        self.subscriptions = {}

    async def subscribe(self, subject, queue="", cb=None):
        sub = FakeSubscription()
        self.subscriptions[subject] = (queue, cb, sub)
        return sub


async def test_start_subscribes_in_queue_group_and_responds(server):
    nc = FakeNats()
    server.queue = "orders-ms"

    await server.start(nc)

    assert set(nc.subscriptions) == set(server.routes)
    queue, cb, _ = nc.subscriptions["find_all_orders"]
    assert queue == "orders-ms"

    msg = FakeMsg(messaging.encode_request("find_all_orders", {}, request_id="r"), headers={"X-Request-ID": "abc"})
    await cb(msg)
    assert json.loads(msg.responses[0])["response"]["meta"]["total"] == 0

    await server.stop()
    assert all(sub.unsubscribed for _, _, sub in nc.subscriptions.values())


async def test_oversized_quantity_is_a_validation_error(server, repository, catalog):
    reply = await call(server, "create_order", {"items": [{"productId": "A", "quantity": 10 ** 19}]})

    assert reply["err"]["kind"] == "validation"
    assert reply["err"]["status"] == 400
    assert reply["err"]["errors"][0]["field"] == "items.0.quantity"
    assert catalog.calls == []
    assert repository.writes == 0
