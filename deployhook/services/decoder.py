"""Classify and parse inbound webhook payloads."""

from pydantic import BaseModel, ValidationError

from deployhook.errors import MalformedPayload, UnknownEventType
from deployhook.schemas.webhooks import PingEvent, PushEvent, WebhookEvent

_EVENT_SCHEMAS: dict[str, type[BaseModel]] = {
    "push": PushEvent,
    "ping": PingEvent,
}


def decode_event(event_type: str | None, payload: bytes) -> WebhookEvent:
    """Parse ``payload`` according to the ``X-GitHub-Event`` header value.

    Raises:
        UnknownEventType: The header is missing or names an unsupported event.
        MalformedPayload: The body is not JSON or does not match the schema.
    """
    schema = _EVENT_SCHEMAS.get(event_type or "")
    if schema is None:
        raise UnknownEventType(event_type)

    try:
        return schema.model_validate_json(payload)  # type: ignore[return-value]
    except ValidationError as exc:
        raise MalformedPayload(f"Invalid {event_type} payload: {exc.error_count()} error(s)") from exc
