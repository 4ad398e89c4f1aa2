"""Tests for the admin reload endpoints."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

from httpx import AsyncClient

from transit_feed_api.services.feed.reload import ReloadInProgressError


class TestStartReload:
    async def test_local_reload_accepted(self, client: AsyncClient, mock_coordinator: Any) -> None:
        mock_coordinator.start.return_value = "load-1"

        response = await client.post(
            "/admin/data/reload",
            json={"source_type": "local", "source": "/data/feed.zip"},
        )

        assert response.status_code == 202
        assert response.json() == {
            "status": "accepted",
            "load_id": "load-1",
            "source_type": "local",
            "source": "/data/feed.zip",
        }
        mock_coordinator.start.assert_called_once_with("local", "/data/feed.zip")

    async def test_remote_defaults_to_configured_url(
        self, client: AsyncClient, mock_coordinator: Any
    ) -> None:
        mock_coordinator.start.return_value = "load-2"

        with patch("transit_feed_api.routers.admin.get_settings") as mock_settings:
            mock_settings.return_value.feed_url = "https://example.com/feed.zip"
            response = await client.post("/admin/data/reload")

        assert response.status_code == 202
        mock_coordinator.start.assert_called_once_with("remote", "https://example.com/feed.zip")

    async def test_local_requires_source(self, client: AsyncClient, mock_coordinator: Any) -> None:
        response = await client.post("/admin/data/reload", json={"source_type": "local"})

        assert response.status_code == 400
        mock_coordinator.start.assert_not_called()

    async def test_concurrent_reload_is_409(
        self, client: AsyncClient, mock_coordinator: Any
    ) -> None:
        mock_coordinator.start.side_effect = ReloadInProgressError("Reload x is already in progress")

        response = await client.post(
            "/admin/data/reload",
            json={"source_type": "local", "source": "/data/feed.zip"},
        )

        assert response.status_code == 409
        assert "already in progress" in response.json()["detail"]


class TestReloadStatus:
    async def test_status(self, client: AsyncClient, mock_coordinator: Any) -> None:
        mock_coordinator.get_status.return_value = {
            "running": True,
            "current": {"load_id": "load-1", "source_type": "local", "source": "/f.zip"},
            "last_report": None,
        }

        response = await client.get("/admin/data/reload")

        assert response.status_code == 200
        assert response.json()["running"] is True
        assert response.json()["current"]["load_id"] == "load-1"
