"""Shared fixtures: deployment document, test doubles, and FastAPI test client."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from payloads import make_config

from deployhook.dependencies import get_config, get_event_queue, get_history
from deployhook.main import app
from deployhook.schemas.config import DeployConfig
from deployhook.services.dispatch import InMemoryEventQueue
from deployhook.services.history import EventHistory


@pytest.fixture
def anyio_backend() -> str:
    """The service is built on asyncio; run anyio-marked tests on it only."""
    return "asyncio"


@pytest.fixture
def deploy_config(tmp_path: Path) -> DeployConfig:
    """A deployment document rooted in a temporary directory."""
    return make_config(tmp_path)


@pytest.fixture
def mock_event_queue() -> InMemoryEventQueue:
    """Create a fresh in-memory event queue for test inspection."""
    return InMemoryEventQueue()


@pytest.fixture
def history() -> EventHistory:
    return EventHistory(maxlen=50)


@pytest.fixture
async def client(
    deploy_config: DeployConfig,
    mock_event_queue: InMemoryEventQueue,
    history: EventHistory,
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient with dependencies overridden.

    The app lifespan is not run, so no dispatch worker exists: accepted
    events stay in the in-memory queue for inspection.
    """
    app.dependency_overrides[get_config] = lambda: deploy_config
    app.dependency_overrides[get_event_queue] = lambda: mock_event_queue
    app.dependency_overrides[get_history] = lambda: history
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
