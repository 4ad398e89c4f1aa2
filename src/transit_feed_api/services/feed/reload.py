"""Background reload coordinator - at most one feed load at a time."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import suppress
from functools import partial
from typing import TYPE_CHECKING, Any

from transit_feed_api.logging import get_logger
from transit_feed_api.services.feed.loader import FeedLoader, LoadReport, LoadStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from transit_feed_api.database import FeedStore

logger = get_logger(__name__)


class ReloadInProgressError(Exception):
    """Raised when a reload is requested while another one is running."""


class ReloadCoordinator:
    """Runs feed loads as background tasks, rejecting overlapping requests.

    Truncation and index drop/rebuild are destructive to an in-flight insert,
    so a second request while one is running is refused rather than queued.
    The guard is per process: the API must run as a single worker
    (`uvicorn --workers 1`), otherwise each worker can start its own reload.

    Usage:
        coordinator = ReloadCoordinator(store)
        load_id = coordinator.start("remote", url)
        status = coordinator.get_status()
    """

    def __init__(
        self,
        store: FeedStore,
        loader_factory: Callable[[FeedStore], FeedLoader] | None = None,
    ) -> None:
        self._store = store
        self._loader_factory = loader_factory or FeedLoader
        self._task: asyncio.Task[LoadReport] | None = None
        self._current: dict[str, Any] | None = None
        self._last_report: LoadReport | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_report(self) -> LoadReport | None:
        return self._last_report

    def start(self, source_type: str, source: str) -> str:
        """Launch a reload in the background and return its load id.

        Raises:
            ReloadInProgressError: If a reload is already running.
        """
        if self.is_running:
            running_id = self._current["load_id"] if self._current else "unknown"
            msg = f"Reload {running_id} is already in progress"
            raise ReloadInProgressError(msg)

        load_id = str(uuid.uuid4())
        current = {"load_id": load_id, "source_type": source_type, "source": source}
        self._current = current
        loader = self._loader_factory(self._store)
        self._task = asyncio.create_task(
            loader.run(source_type=source_type, source=source, load_id=load_id),
            name=f"feed-reload-{load_id}",
        )
        self._task.add_done_callback(partial(self._on_done, current))
        logger.info("Feed reload started", load_id=load_id, source_type=source_type, source=source)
        return load_id

    async def wait(self) -> LoadReport | None:
        """Wait for the running reload, if any, and return its report."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self._last_report

    async def shutdown(self) -> None:
        """Cancel a running reload on application shutdown."""
        if self._task and not self._task.done():
            logger.warning("Cancelling in-flight feed reload at shutdown", **(self._current or {}))
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    def get_status(self) -> dict[str, Any]:
        """Current and last reload state for the admin endpoint."""
        return {
            "running": self.is_running,
            "current": self._current if self.is_running else None,
            "last_report": self._last_report.to_dict() if self._last_report else None,
        }

    def _on_done(self, current: dict[str, Any], task: asyncio.Task[LoadReport]) -> None:
        if task is self._task:
            self._current = None
        if task.cancelled():
            logger.warning("Feed reload cancelled", **current)
            self._last_report = _aborted_report(current, "Reload cancelled before completion")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Feed reload crashed", exc_info=exc, **current)
            self._last_report = _aborted_report(current, f"{type(exc).__name__}: {exc}")
            return
        self._last_report = task.result()


def _aborted_report(current: dict[str, Any], error: str) -> LoadReport:
    """Failed report for a reload task that ended without returning one."""
    report = LoadReport(source=current.get("source", ""), load_id=current.get("load_id"))
    report.errors.append(error)
    report.status = LoadStatus.FAILED
    report.finish()
    return report
