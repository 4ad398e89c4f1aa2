"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from transit_feed_api.main import create_app
from transit_feed_api.routers.deps import get_coordinator, get_queries
from transit_feed_api.services.feed.reload import ReloadCoordinator
from transit_feed_api.services.queries import FeedQueries


@pytest.fixture
def mock_store() -> Any:
    """Store handle whose health check succeeds."""
    store = MagicMock()
    store.check_connection = AsyncMock(return_value=True)
    store.close = AsyncMock()
    return store


@pytest.fixture
def mock_queries() -> Any:
    """Query façade with every operation mocked."""
    return AsyncMock(spec=FeedQueries)


@pytest.fixture
def mock_coordinator() -> Any:
    coordinator = MagicMock(spec=ReloadCoordinator)
    coordinator.get_status.return_value = {"running": False, "current": None, "last_report": None}
    return coordinator


@pytest.fixture
def app(mock_store: Any, mock_queries: Any, mock_coordinator: Any) -> FastAPI:
    application = create_app(store=mock_store)
    application.state.coordinator = mock_coordinator
    application.dependency_overrides[get_queries] = lambda: mock_queries
    application.dependency_overrides[get_coordinator] = lambda: mock_coordinator
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
