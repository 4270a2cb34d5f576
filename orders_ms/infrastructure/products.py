from typing import List

import nats.errors
from pydantic import ValidationError

from orders_ms.application.schemas import ProductRead
from orders_ms.domain.errors import UpstreamError, UpstreamUnavailableError
from shared.core import get_logger
from . import messaging

logger = get_logger(__name__)

VALIDATE_PRODUCTS = {"cmd": "validate_products"}


class ProductCatalogClient:
    """Client for the product catalog's ``validate_products`` command.

    Products are fetched per call and never cached.
    """

    def __init__(self, nc, timeout: float = 5.0):
        self.nc = nc
        self.timeout = timeout

    async def validate_products(self, product_ids: List[str]) -> List[ProductRead]:
        subject = messaging.normalize_pattern(VALIDATE_PRODUCTS)
        payload = messaging.encode_request(VALIDATE_PRODUCTS, list(product_ids))
        try:
            msg = await self.nc.request(subject, payload, timeout=self.timeout)
        except nats.errors.TimeoutError as e:
            logger.error(f"Product catalog timed out after {self.timeout}s")
            raise UpstreamUnavailableError(
                f"Product catalog did not answer within {self.timeout}s"
            ) from e
        except nats.errors.NoRespondersError as e:
            raise UpstreamUnavailableError("Product catalog has no responders") from e
        except nats.errors.Error as e:
            raise UpstreamUnavailableError(f"Product catalog unreachable: {e}") from e

        try:
            reply = messaging.decode_reply(msg.data)
        except messaging.EnvelopeError as e:
            raise UpstreamError("Product catalog sent a malformed reply", detail=str(e)) from e

        if reply.get("err") is not None:
            err = reply["err"]
            message = err.get("message") if isinstance(err, dict) else str(err)
            logger.warning(f"Product catalog rejected products: {message}")
            raise UpstreamError(message or "Product catalog returned an error", detail=err)

        response = reply.get("response")
        if not isinstance(response, list):
            raise UpstreamError("Product catalog reply is not a list", detail=response)
        try:
            return [ProductRead.model_validate(p) for p in response]
        except ValidationError as e:
            raise UpstreamError("Product catalog returned invalid products", detail=str(e)) from e
