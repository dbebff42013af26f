"""GitHub webhook ingress: authenticate, decode, and enqueue for deployment."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from deployhook.dependencies import get_config, get_event_queue
from deployhook.errors import AuthError, DecodeError
from deployhook.schemas.config import DeployConfig
from deployhook.schemas.webhooks import PingEvent
from deployhook.services.auth import strip_signature_prefix, validate_signature
from deployhook.services.config_resolver import resolve_secret
from deployhook.services.decoder import decode_event
from deployhook.services.dispatch import EventQueue, QueueFullError

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/github", status_code=status.HTTP_202_ACCEPTED)
async def github_webhook(
    request: Request,
    config: Annotated[DeployConfig, Depends(get_config)],
    event_queue: Annotated[EventQueue, Depends(get_event_queue)],
    x_github_event: Annotated[str | None, Header()] = None,
    x_hub_signature_256: Annotated[str | None, Header()] = None,
) -> dict:
    """Receive a GitHub push or ping event.

    The signature is checked against the exact bytes received, using the
    secret resolved for the repository named in the payload.  Accepted events
    are queued for the deployment worker and acknowledged immediately; the
    deployment outcome is only reported through notifications and logs.
    """
    body = await request.body()

    try:
        event = decode_event(x_github_event, body)
        secret = resolve_secret(config, event.full_name)
        validate_signature(
            body,
            secret.encode("utf-8") if secret is not None else None,
            strip_signature_prefix(x_hub_signature_256),
        )
    except (AuthError, DecodeError) as exc:
        logger.warning(
            "webhook_rejected",
            event_type=x_github_event,
            reason=type(exc).__name__,
        )
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from None

    try:
        event_queue.enqueue(event)
    except QueueFullError as exc:
        logger.warning("webhook_dropped_queue_full", repository=event.full_name)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from None

    logger.info("webhook_enqueued", event_type=x_github_event, repository=event.full_name)

    if isinstance(event, PingEvent):
        return {"status": "accepted", "detail": event.acknowledgement}
    return {"status": "accepted", "repository": event.full_name}
