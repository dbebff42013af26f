"""Tests for the event history and the /events endpoint."""

import pytest
from httpx import AsyncClient

from deployhook.services.history import EventHistory, EventVariant


def test_history_keeps_order_and_caps_length() -> None:
    history = EventHistory(maxlen=3)
    for i in range(5):
        history.push(EventVariant.BUILD, f"build {i}")

    assert len(history) == 3
    assert [record.message for record in history.read()] == ["build 2", "build 3", "build 4"]


def test_history_read_returns_a_snapshot() -> None:
    history = EventHistory()
    history.push(EventVariant.PING)

    snapshot = history.read()
    history.push(EventVariant.PULL, "org/repo: fast_forward")

    assert len(snapshot) == 1
    assert snapshot[0].message is None


@pytest.mark.anyio
async def test_events_endpoint_lists_history(client: AsyncClient, history: EventHistory) -> None:
    history.push(EventVariant.PULL, "testuser/my-repo: fast_forward")
    history.push(EventVariant.RESTART, "restarted api-server")

    response = await client.get("/events")

    assert response.status_code == 200
    events = response.json()["events"]
    assert [event["variant"] for event in events] == ["pull", "restart"]
    assert events[1]["message"] == "restarted api-server"
    assert "timestamp" in events[0]


@pytest.mark.anyio
async def test_events_endpoint_empty(client: AsyncClient) -> None:
    response = await client.get("/events")

    assert response.status_code == 200
    assert response.json() == {"events": []}
