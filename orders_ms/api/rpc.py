"""Message handlers over NATS, organised like FastAPI routers.

Handlers are registered on an ``RpcRouter`` with the pydantic model their
payload must satisfy; ``RpcServer`` subscribes one queue-group subscription
per pattern, validates every payload before the handler runs and translates
failures into error replies.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel

from orders_ms.application.validation import validate_request
from orders_ms.domain.errors import OrderServiceError
from orders_ms.infrastructure import messaging
from shared.core import get_logger, request_context, CallTimer

logger = get_logger(__name__)

Handler = Callable[..., Awaitable[Any]]


@dataclass
class Route:
    pattern: messaging.Pattern
    handler: Handler
    request_model: Optional[Type[BaseModel]]

    @property
    def subject(self) -> str:
        return messaging.normalize_pattern(self.pattern)


class RpcRouter:
    def __init__(self, tags: Optional[List[str]] = None):
        self.tags = tags or []
        self.routes: List[Route] = []

    def message(self, pattern: messaging.Pattern, request_model: Optional[Type[BaseModel]] = None):
        """Register ``handler(payload, service)`` for ``pattern``."""
        def decorator(handler: Handler) -> Handler:
            self.routes.append(Route(pattern, handler, request_model))
            return handler
        return decorator


def _serialize(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True)
    return result


class RpcServer:
    def __init__(self, service: Any, queue: str = ""):
        self.service = service
        self.queue = queue
        self.routes: Dict[str, Route] = {}
        self._subscriptions = []

    def include_router(self, router: RpcRouter) -> None:
        for route in router.routes:
            if route.subject in self.routes:
                raise ValueError(f"Duplicate handler for '{route.subject}'")
            self.routes[route.subject] = route

    async def dispatch(self, subject: str, raw: bytes, headers: Optional[Mapping[str, str]] = None) -> bytes:
        """Handle one request and return the encoded reply."""
        with request_context(headers) as request_id:
            try:
                envelope = messaging.decode_request(raw)
            except messaging.EnvelopeError as e:
                logger.warning(f"Dropping malformed request on {subject}: {e}")
                return messaging.encode_error(None, {
                    "kind": "validation", "status": 400, "message": str(e),
                })
            message_id = envelope.get("id")

            route = self.routes.get(subject)
            if route is None:
                return messaging.encode_error(message_id, {
                    "kind": "not_found", "status": 404,
                    "message": f"There is no matching message handler defined for '{subject}'",
                })

            logger.info(
                f"Request started: {subject}",
                extra={'extra_fields': {'subject': subject, 'request_id': request_id}},
            )
            timer = CallTimer()
            try:
                with timer:
                    payload = envelope["data"]
                    if route.request_model is not None:
                        payload = validate_request(route.request_model, payload)
                    result = await route.handler(payload, self.service)
            except OrderServiceError as e:
                logger.warning(
                    f"Request failed: {subject}",
                    extra={'extra_fields': {
                        'subject': subject, 'kind': e.kind, 'status': int(e.status),
                        'duration_ms': timer.duration_ms,
                    }},
                )
                return messaging.encode_error(message_id, e.to_payload())
            except Exception:
                logger.error(
                    f"Request crashed: {subject}",
                    exc_info=True,
                    extra={'extra_fields': {'subject': subject, 'duration_ms': timer.duration_ms}},
                )
                return messaging.encode_error(message_id, {
                    "kind": "internal", "status": 500, "message": "Internal server error",
                })

            logger.info(
                f"Request completed: {subject}",
                extra={'extra_fields': {'subject': subject, 'duration_ms': timer.duration_ms}},
            )
            return messaging.encode_response(message_id, _serialize(result))

    async def start(self, nc) -> None:
        for subject in self.routes:
            async def callback(msg, subject=subject):
                reply = await self.dispatch(subject, msg.data, msg.headers)
                if msg.reply:
                    await msg.respond(reply)

            self._subscriptions.append(await nc.subscribe(subject, queue=self.queue, cb=callback))
            logger.info(f"Listening on '{subject}'")

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            await subscription.unsubscribe()
        self._subscriptions = []
