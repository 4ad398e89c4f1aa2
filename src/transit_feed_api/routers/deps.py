"""FastAPI dependencies handing the app-owned store components to routes."""

from __future__ import annotations

from fastapi import Request

from transit_feed_api.database import FeedStore
from transit_feed_api.services.feed.reload import ReloadCoordinator
from transit_feed_api.services.queries import FeedQueries


def get_store(request: Request) -> FeedStore:
    return request.app.state.store


def get_queries(request: Request) -> FeedQueries:
    return request.app.state.queries


def get_coordinator(request: Request) -> ReloadCoordinator:
    return request.app.state.coordinator
