"""Admin routes for feed reloads."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from transit_feed_api.config import get_settings
from transit_feed_api.logging import get_logger
from transit_feed_api.routers.deps import get_coordinator
from transit_feed_api.services.feed.reload import ReloadCoordinator, ReloadInProgressError

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

Coordinator = Annotated[ReloadCoordinator, Depends(get_coordinator)]


class ReloadRequest(BaseModel):
    """Request body for a feed reload."""

    source_type: Literal["remote", "local"] = Field(
        default="remote",
        description="Source type: 'remote' for URL download, 'local' for filesystem path",
    )
    source: str = Field(
        default="",
        description="URL or local file path. Empty uses the configured FEED_URL.",
    )


class ReloadAccepted(BaseModel):
    status: Literal["accepted"] = "accepted"
    load_id: str
    source_type: str
    source: str


class ReloadStatus(BaseModel):
    running: bool
    current: dict[str, Any] | None = None
    last_report: dict[str, Any] | None = None


# TODO: Protect with an admin-role check once auth is wired up.
@router.post(
    "/data/reload",
    status_code=202,
    response_model=ReloadAccepted,
    summary="Reload the static feed",
    description=(
        "Start a wholesale reload of the feed tables in the background. "
        "Returns 409 while another reload is running. Poll "
        "`GET /admin/data/reload` for the outcome."
    ),
)
async def start_reload(
    coordinator: Coordinator, body: ReloadRequest | None = None
) -> dict[str, Any]:
    body = body or ReloadRequest()
    source = body.source
    if not source:
        if body.source_type == "remote":
            source = get_settings().feed_url
        if not source:
            raise HTTPException(
                status_code=400,
                detail=f"source is required when source_type is {body.source_type!r} "
                "and no FEED_URL is configured",
            )

    try:
        load_id = coordinator.start(body.source_type, source)
    except ReloadInProgressError as exc:
        logger.warning("Rejected overlapping reload request", error=str(exc))
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return {"load_id": load_id, "source_type": body.source_type, "source": source}


@router.get(
    "/data/reload",
    response_model=ReloadStatus,
    summary="Feed reload status",
)
async def get_reload_status(coordinator: Coordinator) -> dict[str, Any]:
    return coordinator.get_status()
