import io
import json
import logging

import pytest

from shared.core import get_logger, request_context, setup_logging


@pytest.fixture
def stream():
    stream = io.StringIO()
    setup_logging("orders-ms", level="INFO", version="9.9.9", stream=stream)
    yield stream
    logging.getLogger().handlers = []


def lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_lines_are_json_with_service_metadata(stream):
    get_logger("orders").info("Order created", extra={'extra_fields': {'order_id': "o-1"}})

    record = lines(stream)[-1]
    assert record["message"] == "Order created"
    assert record["service"] == "orders-ms"
    assert record["version"] == "9.9.9"
    assert record["custom"] == {"order_id": "o-1"}
    assert "trace" not in record


def test_request_context_uses_headers(stream):
    with request_context({"X-Request-ID": "req-42", "X-Correlation-ID": "corr-7"}) as request_id:
        get_logger("orders").info("inside")
    get_logger("orders").info("outside")

    inside, outside = lines(stream)[-2:]
    assert request_id == "req-42"
    assert inside["trace"] == {"request_id": "req-42", "correlation_id": "corr-7"}
    assert "trace" not in outside


def test_request_context_generates_id(stream):
    with request_context(None) as request_id:
        get_logger("orders").info("inside")

    assert lines(stream)[-1]["trace"] == {"request_id": request_id}


def test_exceptions_are_structured(stream):
    try:
        raise ValueError("bad price")
    except ValueError:
        get_logger("orders").error("failed", exc_info=True)

    error = lines(stream)[-1]["error"]
    assert error["type"] == "ValueError"
    assert error["message"] == "bad price"


def test_sensitive_words_are_redacted(stream):
    get_logger("orders").info("using password hunter2")

    assert "password=***REDACTED***" in lines(stream)[-1]["message"]
