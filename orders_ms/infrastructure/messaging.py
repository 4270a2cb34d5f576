"""NATS connection and the message envelope spoken by the other services.

Subjects and envelopes follow the NestJS NATS transport, so this service
can call, and be called by, the NestJS microservices on the same bus:

* request: ``{"pattern": <pattern>, "data": <payload>, "id": <uuid>}``
* reply:   ``{"id": <uuid>, "response": <result>, "isDisposed": true}``
  or       ``{"id": <uuid>, "err": <error>, "isDisposed": true}``
"""

from typing import Any, Dict, Optional, Union
import json
import uuid

import nats
from nats.aio.client import Client as NATS

from orders_ms.core_settings import Settings
from shared.core import get_logger

logger = get_logger(__name__)

Pattern = Union[str, Dict[str, Any]]


class EnvelopeError(ValueError):
    """The bytes on the wire are not a valid envelope."""


def normalize_pattern(pattern: Pattern) -> str:
    """Subject for a pattern: strings as is, objects as key-sorted compact JSON."""
    if isinstance(pattern, str):
        return pattern
    return json.dumps(pattern, sort_keys=True, separators=(",", ":"))


def _dumps(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), default=str).encode()


def _loads(raw: bytes) -> Dict[str, Any]:
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise EnvelopeError(f"Malformed message: {e}") from e
    if not isinstance(obj, dict):
        raise EnvelopeError("Message envelope must be a JSON object")
    return obj


def encode_request(pattern: Pattern, data: Any, request_id: Optional[str] = None) -> bytes:
    return _dumps({"pattern": pattern, "data": data, "id": request_id or str(uuid.uuid4())})


def decode_request(raw: bytes) -> Dict[str, Any]:
    """Returns the envelope; ``data`` defaults to None and ``id`` may be missing."""
    envelope = _loads(raw)
    envelope.setdefault("data", None)
    return envelope


def encode_response(request_id: Optional[str], response: Any) -> bytes:
    return _dumps({"id": request_id, "response": response, "isDisposed": True})


def encode_error(request_id: Optional[str], err: Any) -> bytes:
    return _dumps({"id": request_id, "err": err, "isDisposed": True})


def decode_reply(raw: bytes) -> Dict[str, Any]:
    envelope = _loads(raw)
    if "err" not in envelope and "response" not in envelope:
        raise EnvelopeError("Reply carries neither 'response' nor 'err'")
    return envelope


async def connect(settings: Settings) -> NATS:
    """Open the process-wide NATS connection."""

    async def error_cb(e):
        logger.error(f"NATS error: {e}")

    async def disconnected_cb():
        logger.warning("NATS disconnected")

    async def reconnected_cb():
        logger.info("NATS reconnected")

    nc = await nats.connect(
        servers=settings.nats_servers,
        name=settings.SERVICE_NAME,
        error_cb=error_cb,
        disconnected_cb=disconnected_cb,
        reconnected_cb=reconnected_cb,
    )
    logger.info(f"Connected to NATS at {nc.connected_url.netloc if nc.connected_url else settings.nats_servers}")
    return nc
