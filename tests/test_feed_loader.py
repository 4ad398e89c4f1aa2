"""Tests for FeedLoader - dry runs, row leniency, batching, and outcomes."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

if TYPE_CHECKING:
    from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import CreateIndex, DropIndex

from transit_feed_api.models import DERIVED_INDEXES, Base
from transit_feed_api.services.feed.loader import FeedLoader, LoadReport, LoadStatus
from transit_feed_api.services.feed.schema import FEED_TABLES

from .fixtures.feed_fixture import EXPECTED_COUNTS, STOPS_TXT, build_feed_zip, corrupt_member

BAD_STOPS = STOPS_TXT + "S9,1009,Broken,,abc,-123.1,Z1,,0\n"


@pytest.fixture
def feed_file(tmp_path: Path) -> Path:
    path = tmp_path / "feed.zip"
    path.write_bytes(build_feed_zip())
    return path


def write_feed(tmp_path: Path, **files: str) -> Path:
    path = tmp_path / "custom.zip"
    path.write_bytes(build_feed_zip(**files))
    return path


def mock_session() -> AsyncMock:
    session = AsyncMock()
    session.execute.return_value = MagicMock()
    session.connection = AsyncMock(return_value=AsyncMock())
    return session


class TestLoadReport:
    def test_init_table(self) -> None:
        report = LoadReport(source="test")
        report.init_table("stops")
        assert report.counts["stops"] == {"read": 0, "inserted": 0, "failed": 0}

    def test_fail_before_modification_is_failed(self) -> None:
        report = LoadReport(source="test")
        report.fail(ValueError("boom"))
        report.finish()
        assert report.status is LoadStatus.FAILED
        assert report.errors == ["ValueError: boom"]

    def test_fail_after_modification_is_partial(self) -> None:
        report = LoadReport(source="test")
        report.store_modified = True
        report.fail(ValueError("boom"))
        assert report.status is LoadStatus.PARTIAL

    def test_to_dict(self) -> None:
        report = LoadReport(source="test", load_id="id-1")
        report.finish()
        d = report.to_dict()
        assert d["status"] == "success"
        assert d["load_id"] == "id-1"
        assert isinstance(d["ended_at"], str)
        assert d["duration_ms"] >= 0


class TestLoaderDryRun:
    async def test_dry_run_counts_every_table(self, feed_file: Path) -> None:
        report = await FeedLoader(store=None).run("local", str(feed_file), dry_run=True)

        assert report.succeeded
        assert {t: c["read"] for t, c in report.counts.items()} == EXPECTED_COUNTS
        assert all(c["failed"] == 0 for c in report.counts.values())
        assert report.store_modified is False
        assert len(report.feed_hash) == 64

    async def test_missing_optional_file_warns(self, tmp_path: Path) -> None:
        path = tmp_path / "feed.zip"
        path.write_bytes(build_feed_zip(exclude_files={"shapes.txt"}))

        report = await FeedLoader(store=None).run("local", str(path), dry_run=True)

        assert report.succeeded
        assert "shapes" not in report.counts
        assert any("shapes.txt" in w for w in report.warnings)


class TestLoaderLeniency:
    async def test_lenient_mode_skips_bad_row(self, tmp_path: Path) -> None:
        path = write_feed(tmp_path, stops=BAD_STOPS)

        report = await FeedLoader(store=None, strict=False).run("local", str(path), dry_run=True)

        assert report.succeeded
        assert report.counts["stops"] == {"read": 6, "inserted": 0, "failed": 1}
        assert any("stops.txt line 7" in w for w in report.warnings)

    async def test_strict_mode_aborts_load(self, tmp_path: Path) -> None:
        path = write_feed(tmp_path, stops=BAD_STOPS)

        report = await FeedLoader(store=None, strict=True).run("local", str(path), dry_run=True)

        assert report.status is LoadStatus.FAILED
        assert report.errors[0].startswith("RowRejectedError: stops.txt line 7")

    async def test_lenient_rows_are_not_inserted(self, tmp_path: Path) -> None:
        path = write_feed(tmp_path, stops=BAD_STOPS)
        session = mock_session()

        report = await FeedLoader(store=None, strict=False, batch_size=100).run(
            "local", str(path), session_override=session
        )

        assert report.succeeded
        assert report.counts["stops"]["inserted"] == 5
        stops_insert = next(
            call.args
            for call in session.execute.call_args_list
            if "INSERT INTO stops" in str(call.args[0])
        )
        assert [row["stop_id"] for row in stops_insert[1]] == ["S1", "S2", "S3", "S4", "S5"]


class TestLoaderWithMockSession:
    async def test_replace_all_sequence(self, feed_file: Path) -> None:
        session = mock_session()

        report = await FeedLoader(store=None, batch_size=3).run(
            "local", str(feed_file), session_override=session
        )

        assert report.succeeded
        assert report.store_modified is True
        assert {t: c["inserted"] for t, c in report.counts.items()} == EXPECTED_COUNTS

        statements = [str(call.args[0]) for call in session.execute.call_args_list]
        assert statements[0].startswith("TRUNCATE TABLE agency, routes")
        # stop_times (8 rows) in batches of 3 -> 3 inserts
        assert sum("INSERT INTO stop_times" in s for s in statements) == 3

        conn = session.connection.return_value
        ddl = [call.args[0] for call in conn.execute.call_args_list]
        assert sum(isinstance(d, DropIndex) for d in ddl) == len(DERIVED_INDEXES)
        assert sum(isinstance(d, CreateIndex) for d in ddl) == len(DERIVED_INDEXES)
        assert isinstance(ddl[-1], CreateIndex)

    async def test_one_commit_per_batch(self, feed_file: Path) -> None:
        session = mock_session()

        await FeedLoader(store=None, batch_size=100).run(
            "local", str(feed_file), session_override=session
        )

        # truncate + drop indexes + 8 table batches + create indexes
        assert session.commit.await_count == 11

    async def test_store_error_after_truncate_is_partial(self, feed_file: Path) -> None:
        session = mock_session()
        session.execute.side_effect = [
            MagicMock(),
            OperationalError("INSERT", {}, Exception("connection lost")),
        ]

        report = await FeedLoader(store=None).run(
            "local", str(feed_file), session_override=session
        )

        assert report.status is LoadStatus.PARTIAL
        assert report.store_modified is True
        assert "OperationalError" in report.errors[0]
        session.rollback.assert_awaited()

    async def test_column_count_mismatch_fails_before_truncate(self, tmp_path: Path) -> None:
        path = write_feed(
            tmp_path, stops="stop_id,stop_name,stop_lat,stop_lon\nS1,Test,49.0,-123.0\n"
        )
        session = mock_session()

        report = await FeedLoader(store=None).run("local", str(path), session_override=session)

        assert report.status is LoadStatus.FAILED
        assert report.store_modified is False
        assert "ColumnCountError" in report.errors[0]
        session.execute.assert_not_called()

    async def test_reload_is_idempotent(self, feed_file: Path) -> None:
        loader = FeedLoader(store=None, batch_size=4)

        first = await loader.run("local", str(feed_file), session_override=mock_session())
        second = await loader.run("local", str(feed_file), session_override=mock_session())

        assert first.counts == second.counts
        assert first.feed_hash == second.feed_hash


class TestLoaderUnexpectedErrors:
    async def test_corrupt_member_is_reported_not_raised(self, tmp_path: Path) -> None:
        path = tmp_path / "corrupt.zip"
        path.write_bytes(corrupt_member(build_feed_zip(), "stop_times.txt"))

        report = await FeedLoader(store=None).run("local", str(path), dry_run=True)

        assert report.status is LoadStatus.FAILED
        assert report.errors[0].startswith("error:")
        assert report.ended_at is not None

    async def test_corrupt_member_leaves_store_untouched(self, tmp_path: Path) -> None:
        path = tmp_path / "corrupt.zip"
        path.write_bytes(corrupt_member(build_feed_zip(), "stop_times.txt"))
        session = mock_session()

        report = await FeedLoader(store=None).run("local", str(path), session_override=session)

        assert report.status is LoadStatus.FAILED
        assert report.store_modified is False
        session.execute.assert_not_called()

    async def test_crash_after_truncate_is_partial(self, feed_file: Path) -> None:
        loader = FeedLoader(store=None)
        loader._normalizer = MagicMock()
        loader._normalizer.normalize.side_effect = RuntimeError("normalizer exploded")
        session = mock_session()

        report = await loader.run("local", str(feed_file), session_override=session)

        assert report.status is LoadStatus.PARTIAL
        assert report.store_modified is True
        assert report.errors == ["RuntimeError: normalizer exploded"]


class TestStoreLayout:
    def test_every_layout_has_a_mapped_table(self) -> None:
        assert set(Base.metadata.tables) == {table.table for table in FEED_TABLES}

    def test_layout_targets_are_mapped_columns(self) -> None:
        for table in FEED_TABLES:
            columns = set(Base.metadata.tables[table.table].columns.keys())
            assert set(table.targets) <= columns, table.table


class TestLoaderSourceErrors:
    async def test_invalid_source_type(self) -> None:
        report = await FeedLoader(store=None).run("ftp", "ftp://example.com/feed.zip")
        assert report.status is LoadStatus.FAILED
        assert "Invalid source_type" in report.errors[0]

    async def test_missing_local_file(self) -> None:
        report = await FeedLoader(store=None).run("local", "/nonexistent/feed.zip", dry_run=True)
        assert report.status is LoadStatus.FAILED
        assert report.errors[0].startswith("FileNotFoundError")

    async def test_missing_required_file_in_zip(self, tmp_path: Path) -> None:
        path = tmp_path / "feed.zip"
        path.write_bytes(build_feed_zip(exclude_files={"stops.txt"}))

        report = await FeedLoader(store=None).run("local", str(path), dry_run=True)

        assert report.status is LoadStatus.FAILED
        assert "stops.txt" in report.errors[0]

    async def test_non_dry_run_without_store_fails(self, feed_file: Path) -> None:
        report = await FeedLoader(store=None).run("local", str(feed_file))
        assert report.status is LoadStatus.FAILED
        assert "needs a store" in report.errors[0]
