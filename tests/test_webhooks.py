"""Tests for the GitHub webhook ingress: authentication, decoding, and enqueueing."""

import json

import pytest
from httpx import AsyncClient
from payloads import make_ping_payload, make_push_payload, sign

from deployhook.schemas.webhooks import PingEvent, PushEvent
from deployhook.services.dispatch import InMemoryEventQueue

WEBHOOK_SECRET = "dev-secret"
ENDPOINT = "/webhooks/github"


def _headers(event: str | None = "push", signature: str | None = None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if event is not None:
        headers["X-GitHub-Event"] = event
    if signature is not None:
        headers["X-Hub-Signature-256"] = signature
    return headers


# ---------------------------------------------------------------------------
# Signature verification
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_webhook_valid_signature(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """POST with correct HMAC-SHA256 signature returns 202 and enqueues the push."""
    body = json.dumps(make_push_payload()).encode()

    response = await client.post(
        ENDPOINT, content=body, headers=_headers(signature=sign(body, WEBHOOK_SECRET))
    )

    assert response.status_code == 202
    assert response.json() == {"status": "accepted", "repository": "testuser/my-repo"}
    assert len(mock_event_queue.events) == 1
    event = mock_event_queue.events[0]
    assert isinstance(event, PushEvent)
    assert event.ref == "refs/heads/master"


@pytest.mark.anyio
async def test_webhook_invalid_signature(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """POST signed with the wrong secret returns 401 and enqueues nothing."""
    body = json.dumps(make_push_payload()).encode()

    response = await client.post(
        ENDPOINT, content=body, headers=_headers(signature=sign(body, "wrong-secret"))
    )

    assert response.status_code == 401
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_signature_covers_exact_bytes(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """Re-serialising the payload after signing invalidates the signature."""
    payload = make_push_payload()
    signature = sign(json.dumps(payload).encode(), WEBHOOK_SECRET)
    body = json.dumps(payload, indent=2).encode()

    response = await client.post(ENDPOINT, content=body, headers=_headers(signature=signature))

    assert response.status_code == 401
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_missing_signature_when_secret_configured(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """An unsigned request for a repository with a secret is rejected with 400."""
    body = json.dumps(make_push_payload()).encode()

    response = await client.post(ENDPOINT, content=body, headers=_headers())

    assert response.status_code == 400
    assert "not signed" in response.json()["detail"]
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_unexpected_signature_without_secret(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """A signed request for a repository without a secret is rejected with 400."""
    body = json.dumps(make_push_payload(full_name="testuser/open-repo")).encode()

    response = await client.post(
        ENDPOINT, content=body, headers=_headers(signature=sign(body, WEBHOOK_SECRET))
    )

    assert response.status_code == 400
    assert "no secret" in response.json()["detail"]
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_unsigned_without_secret_is_accepted(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """No secret and no signature means no verification was requested."""
    body = json.dumps(make_push_payload(full_name="testuser/open-repo")).encode()

    response = await client.post(ENDPOINT, content=body, headers=_headers())

    assert response.status_code == 202
    assert len(mock_event_queue.events) == 1


@pytest.mark.anyio
async def test_webhook_non_hex_signature(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """A signature that is not hex is rejected as malformed, not a server error."""
    body = json.dumps(make_push_payload()).encode()

    response = await client.post(
        ENDPOINT, content=body, headers=_headers(signature="sha256=not-hex-at-all")
    )

    assert response.status_code == 400
    assert mock_event_queue.events == []


# ---------------------------------------------------------------------------
# Event decoding
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_webhook_unknown_event_type(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    body = json.dumps(make_push_payload()).encode()

    response = await client.post(
        ENDPOINT,
        content=body,
        headers=_headers(event="issues", signature=sign(body, WEBHOOK_SECRET)),
    )

    assert response.status_code == 400
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_missing_event_type(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    body = json.dumps(make_push_payload()).encode()

    response = await client.post(
        ENDPOINT,
        content=body,
        headers=_headers(event=None, signature=sign(body, WEBHOOK_SECRET)),
    )

    assert response.status_code == 400
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_malformed_payload(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """A body that is not a push payload returns 422."""
    body = b'{"ref": "refs/heads/master"'

    response = await client.post(
        ENDPOINT, content=body, headers=_headers(signature=sign(body, WEBHOOK_SECRET))
    )

    assert response.status_code == 422
    assert mock_event_queue.events == []


@pytest.mark.anyio
async def test_webhook_ping_is_acknowledged(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """A ping is queued like any event and acknowledged with the hook URL."""
    body = json.dumps(make_ping_payload()).encode()

    response = await client.post(
        ENDPOINT,
        content=body,
        headers=_headers(event="ping", signature=sign(body, WEBHOOK_SECRET)),
    )

    assert response.status_code == 202
    assert response.json()["detail"] == (
        "Received a ping event from testuser/my-repo for hook at "
        "https://deploy.example.com/webhooks/github"
    )
    assert len(mock_event_queue.events) == 1
    assert isinstance(mock_event_queue.events[0], PingEvent)


# ---------------------------------------------------------------------------
# Enqueueing
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_webhook_events_enqueued_in_arrival_order(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    ids = ["a" * 40, "b" * 40, "c" * 40]
    for commit_id in ids:
        body = json.dumps(make_push_payload(commit_id=commit_id)).encode()
        response = await client.post(
            ENDPOINT, content=body, headers=_headers(signature=sign(body, WEBHOOK_SECRET))
        )
        assert response.status_code == 202

    queued = [event.head_commit.id for event in mock_event_queue.events]
    assert queued == ids


@pytest.mark.anyio
async def test_webhook_rejected_when_queue_full(
    client: AsyncClient, mock_event_queue: InMemoryEventQueue
) -> None:
    """A bounded queue with no room answers 503 and drops the event."""
    mock_event_queue.maxsize = 1
    body = json.dumps(make_push_payload()).encode()
    headers = _headers(signature=sign(body, WEBHOOK_SECRET))

    first = await client.post(ENDPOINT, content=body, headers=headers)
    second = await client.post(ENDPOINT, content=body, headers=headers)

    assert first.status_code == 202
    assert second.status_code == 503
    assert len(mock_event_queue.events) == 1
