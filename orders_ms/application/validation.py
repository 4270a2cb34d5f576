"""Explicit request validation, run before any OrderService method."""

from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from orders_ms.domain.errors import RequestValidationError
from orders_ms.domain.models import ORDER_STATUS_LIST

M = TypeVar("M", bound=BaseModel)


def _field_path(loc) -> str:
    return ".".join(str(part) for part in loc) or "payload"


def _message(error: Dict[str, Any]) -> str:
    if error.get("type") == "enum":
        return f"Valid status are {ORDER_STATUS_LIST}"
    return error.get("msg", "invalid value")


def collect_errors(exc: ValidationError) -> List[Dict[str, str]]:
    return [
        {"field": _field_path(err["loc"]), "message": _message(err)}
        for err in exc.errors()
    ]


def validate_request(model: Type[M], payload: Any) -> M:
    """Parse ``payload`` into ``model`` or raise RequestValidationError.

    The error lists one entry per offending field, e.g.
    ``{"field": "items.0.quantity", "message": "Input should be greater than 0"}``.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise RequestValidationError(
            [{"field": "payload", "message": "Payload must be an object"}]
        )
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(collect_errors(e)) from e
