"""Positional CSV parser with header validation and streaming."""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING

from transit_feed_api.logging import get_logger
from transit_feed_api.services.feed.schema import ColumnCountError, check_header

if TYPE_CHECKING:
    from collections.abc import Iterator

    from transit_feed_api.services.feed.reader import FeedArchive
    from transit_feed_api.services.feed.schema import FeedTable

logger = get_logger(__name__)


class MalformedCsvError(Exception):
    """Raised when a CSV file cannot be tokenised."""


class FeedParser:
    """Streams raw field lists out of the files of a feed archive."""

    def __init__(self, archive: FeedArchive) -> None:
        self._archive = archive

    def validate(self, table: FeedTable) -> list[str]:
        """Check a file's header without reading its rows.

        Returns:
            Header name mismatches (warnings only).

        Raises:
            ColumnCountError: If the header is missing or has the wrong width.
        """
        with self._archive.open_file(table.filename) as text_io:
            header = next(csv.reader(text_io), None)
        if header is None:
            msg = f"{table.filename} is empty (no header row)"
            raise ColumnCountError(msg)
        return check_header(table, header)

    def iter_rows(self, table: FeedTable) -> Iterator[tuple[int, list[str]]]:
        """Yield ``(line_number, fields)`` for every data row.

        The header is skipped and blank lines are ignored. Line numbers are
        1-based and count the header.

        Raises:
            ColumnCountError: If the header has the wrong width.
            MalformedCsvError: If the CSV cannot be tokenised.
        """
        with self._archive.open_file(table.filename) as text_io:
            reader = csv.reader(text_io)
            try:
                header = next(reader, None)
                if header is None:
                    msg = f"{table.filename} is empty (no header row)"
                    raise ColumnCountError(msg)
                check_header(table, header)
                logger.info("Parsing feed file", filename=table.filename, columns=len(header))

                for fields in reader:
                    if not fields:
                        continue
                    yield reader.line_num, fields
            except csv.Error as exc:
                msg = f"{table.filename} line {reader.line_num}: {exc}"
                raise MalformedCsvError(msg) from exc
