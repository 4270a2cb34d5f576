"""Failure taxonomy shared by the service, its collaborators and the RPC layer.

Every error carries a machine readable ``kind``, an HTTP-style ``status`` and
a human readable ``message``; the RPC layer sends ``to_payload()`` back to
the caller as the ``err`` part of the reply.
"""

from http import HTTPStatus
from typing import Any, Dict, List, Optional


class OrderServiceError(Exception):
    kind = "internal"
    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "kind": self.kind,
            "status": int(self.status),
            "message": self.message,
        }
        payload.update(self.details)
        return payload


class RequestValidationError(OrderServiceError):
    """Malformed request shape, detected before any business logic runs."""

    kind = "validation"
    status = HTTPStatus.BAD_REQUEST

    def __init__(self, errors: List[Dict[str, str]], message: str = "Request validation failed"):
        super().__init__(message, errors=errors)
        self.errors = errors


class UnknownProductsError(OrderServiceError):
    kind = "validation"
    status = HTTPStatus.BAD_REQUEST

    def __init__(self, product_ids: List[str]):
        super().__init__(
            f"Products not found in catalog: {', '.join(product_ids)}",
            product_ids=product_ids,
        )
        self.product_ids = product_ids


class OrderNotFoundError(OrderServiceError):
    kind = "not_found"
    status = HTTPStatus.NOT_FOUND

    def __init__(self, order_id: Any):
        super().__init__(f"Order with id {order_id} not found", order_id=str(order_id))
        self.order_id = order_id


class UpstreamError(OrderServiceError):
    """The product catalog answered with an error."""

    kind = "failed_dependency"
    status = HTTPStatus.FAILED_DEPENDENCY

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message, detail=detail)
        self.detail = detail


class UpstreamUnavailableError(UpstreamError):
    """The product catalog could not be reached or did not answer in time."""

    kind = "upstream_unavailable"
    status = HTTPStatus.SERVICE_UNAVAILABLE


class StorageError(OrderServiceError):
    kind = "storage"
    status = HTTPStatus.INTERNAL_SERVER_ERROR
