"""Feed loader - wholesale replace of the feed tables from one archive.

A load validates every recognised file's header, truncates all feed tables,
drops the derived indexes, streams each file into batches that are committed
as they fill, and finally rebuilds the indexes. The replace is not atomic: a
failure after truncation leaves whatever batches were already committed and
is reported with status ``partial``.
"""

from __future__ import annotations

import uuid
import zipfile
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateIndex, DropIndex

from transit_feed_api.config import get_settings
from transit_feed_api.logging import get_logger, load_context
from transit_feed_api.models import DERIVED_INDEXES
from transit_feed_api.services.feed.fetcher import FeedFetcher, FetchError, InvalidZipError
from transit_feed_api.services.feed.normalizer import FeedNormalizer
from transit_feed_api.services.feed.parser import FeedParser, MalformedCsvError
from transit_feed_api.services.feed.reader import FeedArchive, MissingRequiredFileError
from transit_feed_api.services.feed.schema import FEED_TABLES, ColumnCountError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession

    from transit_feed_api.database import FeedStore
    from transit_feed_api.services.feed.schema import FeedTable

logger = get_logger(__name__)

MAX_REPORTED_MESSAGES = 100


class RowRejectedError(Exception):
    """Raised in strict mode when a row fails normalization."""


# Expected load failures. Anything else is still recorded but logged as a crash.
LOAD_ERRORS: tuple[type[BaseException], ...] = (
    FetchError,
    InvalidZipError,
    zipfile.BadZipFile,
    MissingRequiredFileError,
    ColumnCountError,
    MalformedCsvError,
    RowRejectedError,
    SQLAlchemyError,
    OSError,
    ValueError,
)


class LoadStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class LoadReport:
    """Collects load metrics, warnings, errors, and the final outcome."""

    def __init__(self, source: str, load_id: str | None = None) -> None:
        self.load_id = load_id or str(uuid.uuid4())
        self.source = source
        self.feed_hash = ""
        self.dry_run = False
        self.started_at = datetime.now(timezone.utc)
        self.ended_at: datetime | None = None
        self.duration_ms: int | None = None
        self.counts: dict[str, dict[str, int]] = {}
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.store_modified = False
        self.status: LoadStatus | None = None

    def init_table(self, table: str) -> None:
        self.counts[table] = {"read": 0, "inserted": 0, "failed": 0}

    def fail(self, exc: BaseException) -> None:
        self.errors.append(f"{type(exc).__name__}: {exc}")
        self.status = LoadStatus.PARTIAL if self.store_modified else LoadStatus.FAILED

    def finish(self) -> None:
        if self.status is None:
            self.status = LoadStatus.SUCCESS
        self.ended_at = datetime.now(timezone.utc)
        self.duration_ms = int((self.ended_at - self.started_at).total_seconds() * 1000)

    @property
    def succeeded(self) -> bool:
        return self.status is LoadStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value if self.status else "running",
            "load_id": self.load_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "source": self.source,
            "feed_hash": self.feed_hash,
            "dry_run": self.dry_run,
            "store_modified": self.store_modified,
            "counts": self.counts,
            "warnings": self.warnings[:MAX_REPORTED_MESSAGES],
            "errors": self.errors[:MAX_REPORTED_MESSAGES],
        }


class FeedLoader:
    """Runs the fetch, validate, truncate, and batched-insert pipeline.

    In lenient mode a row that fails normalization is skipped and counted as
    ``failed``; in strict mode it aborts the load.
    """

    def __init__(
        self,
        store: FeedStore | None,
        batch_size: int | None = None,
        strict: bool | None = None,
        fetcher: FeedFetcher | None = None,
    ) -> None:
        settings = get_settings()
        self._store = store
        self.batch_size = batch_size if batch_size is not None else settings.feed_load_batch_size
        self.strict = strict if strict is not None else settings.feed_load_strict
        self._fetcher = fetcher or FeedFetcher(
            timeout_sec=settings.feed_fetch_timeout_sec,
            max_retries=settings.feed_fetch_max_retries,
            backoff_base=settings.feed_fetch_backoff_base,
        )
        self._normalizer = FeedNormalizer()

    async def run(
        self,
        source_type: str,
        source: str,
        dry_run: bool = False,
        session_override: AsyncSession | None = None,
        load_id: str | None = None,
    ) -> LoadReport:
        """Load a feed and return the report; load failures never raise.

        Args:
            source_type: "remote" or "local".
            source: URL or file path.
            dry_run: If True, parse and validate but skip DB writes.
            session_override: Optional session for testing.
            load_id: Optional identifier to use for the report.
        """
        report = LoadReport(source=source, load_id=load_id)
        report.dry_run = dry_run

        with load_context(report.load_id, source):
            logger.info("Starting feed load", source_type=source_type, dry_run=dry_run)
            try:
                await self._run(source_type, source, dry_run, session_override, report)
            except LOAD_ERRORS as exc:
                report.fail(exc)
                logger.error(
                    "Feed load aborted",
                    status=report.status.value if report.status else None,
                    store_modified=report.store_modified,
                    error=str(exc),
                    exc_info=exc,
                )
            except Exception as exc:
                report.fail(exc)
                logger.error(
                    "Feed load crashed",
                    status=report.status.value if report.status else None,
                    store_modified=report.store_modified,
                    error=str(exc),
                    exc_info=exc,
                )

            report.finish()
            logger.info(
                "Feed load finished",
                status=report.status.value if report.status else None,
                duration_ms=report.duration_ms,
                counts=report.counts,
                warnings_count=len(report.warnings),
                errors_count=len(report.errors),
            )
        return report

    async def _run(
        self,
        source_type: str,
        source: str,
        dry_run: bool,
        session_override: AsyncSession | None,
        report: LoadReport,
    ) -> None:
        feed = await self._fetcher.fetch(source_type, source)
        report.feed_hash = feed.feed_hash

        with FeedArchive(feed.data) as archive:
            parser = FeedParser(archive)
            tables = self._validate_headers(archive, parser, report)

            if dry_run:
                for table in tables:
                    self._dry_run_table(parser, table, report)
            else:
                async with self._session(session_override) as session:
                    await self._replace_all(session, parser, tables, report)

    @asynccontextmanager
    async def _session(
        self, session_override: AsyncSession | None
    ) -> AsyncGenerator[AsyncSession, None]:
        if session_override is not None:
            yield session_override
            return
        if self._store is None:
            msg = "FeedLoader needs a store for non-dry-run loads"
            raise ValueError(msg)
        async with self._store.session() as session:
            yield session

    def _validate_headers(
        self, archive: FeedArchive, parser: FeedParser, report: LoadReport
    ) -> list[FeedTable]:
        """Check every present file before anything in the store is touched."""
        present: list[FeedTable] = []
        for table in FEED_TABLES:
            if not archive.has_file(table.filename):
                report.warnings.append(f"{table.filename} not in archive; table left empty")
                continue
            mismatches = parser.validate(table)
            if mismatches:
                report.warnings.append(
                    f"{table.filename} header names differ from layout: {', '.join(mismatches)}"
                )
            present.append(table)
        return present

    def _dry_run_table(self, parser: FeedParser, table: FeedTable, report: LoadReport) -> None:
        report.init_table(table.table)
        for line, fields in parser.iter_rows(table):
            result = self._normalizer.normalize(table, line, fields)
            self._tally(table, result.error, report)

    def _tally(self, table: FeedTable, error: str | None, report: LoadReport) -> bool:
        """Count one row; returns True when the row should be inserted."""
        counts = report.counts[table.table]
        counts["read"] += 1
        if error is None:
            return True
        counts["failed"] += 1
        if self.strict:
            raise RowRejectedError(error)
        report.warnings.append(error)
        return False

    async def _replace_all(
        self,
        session: AsyncSession,
        parser: FeedParser,
        tables: list[FeedTable],
        report: LoadReport,
    ) -> None:
        await self._truncate(session)
        report.store_modified = True
        await self._drop_indexes(session)

        for table in tables:
            await self._load_table(session, parser, table, report)

        await self._create_indexes(session)

    async def _truncate(self, session: AsyncSession) -> None:
        names = ", ".join(table.table for table in FEED_TABLES)
        await session.execute(text(f"TRUNCATE TABLE {names}"))
        await session.commit()
        logger.info("Truncated feed tables", tables=names)

    async def _drop_indexes(self, session: AsyncSession) -> None:
        conn = await session.connection()
        for index in DERIVED_INDEXES:
            await conn.execute(DropIndex(index, if_exists=True))
        await session.commit()

    async def _create_indexes(self, session: AsyncSession) -> None:
        logger.info("Generating indexes", indexes=[index.name for index in DERIVED_INDEXES])
        conn = await session.connection()
        for index in DERIVED_INDEXES:
            await conn.execute(CreateIndex(index, if_not_exists=True))
        await session.commit()

    async def _load_table(
        self,
        session: AsyncSession,
        parser: FeedParser,
        table: FeedTable,
        report: LoadReport,
    ) -> None:
        report.init_table(table.table)
        targets = table.targets
        stmt = text(
            f"INSERT INTO {table.table} ({', '.join(targets)}) "
            f"VALUES ({', '.join(f':{col}' for col in targets)})"
        )

        batch: list[dict[str, Any]] = []
        for line, fields in parser.iter_rows(table):
            result = self._normalizer.normalize(table, line, fields)
            if not self._tally(table, result.error, report):
                continue
            batch.append(result.values)  # type: ignore[arg-type]
            if len(batch) >= self.batch_size:
                await self._commit_batch(session, stmt, batch, table, report)
                batch = []

        if batch:
            await self._commit_batch(session, stmt, batch, table, report)

        logger.info(
            "Loaded table",
            table=table.table,
            **report.counts[table.table],
        )

    async def _commit_batch(
        self,
        session: AsyncSession,
        stmt: Any,
        batch: list[dict[str, Any]],
        table: FeedTable,
        report: LoadReport,
    ) -> None:
        """Insert one batch and commit, so the open transaction stays bounded."""
        try:
            await session.execute(stmt, batch)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
        report.counts[table.table]["inserted"] += len(batch)
        logger.debug("Committed batch", table=table.table, rows=len(batch))
