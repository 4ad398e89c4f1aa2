"""Row normalizer - converts raw CSV fields into typed insert values.

Every row produces a :class:`RowResult`. A field that cannot be parsed never
falls back to a default such as ``0.0``; the row is reported as rejected and
the loader decides whether that is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from transit_feed_api.services.feed.schema import ColumnKind

if TYPE_CHECKING:
    from transit_feed_api.services.feed.schema import FeedColumn, FeedTable


class TimeParseError(ValueError):
    """Raised when a feed time string cannot be parsed."""


class FieldError(ValueError):
    """Raised when a single field fails conversion."""


@dataclass(frozen=True)
class RowResult:
    """Outcome of normalizing one row: values or an error, never both."""

    line: int
    values: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def accepted(cls, line: int, values: dict[str, Any]) -> RowResult:
        return cls(line=line, values=values)

    @classmethod
    def rejected(cls, line: int, error: str) -> RowResult:
        return cls(line=line, error=error)


class FeedNormalizer:
    """Normalizes raw positional rows according to a :class:`FeedTable`."""

    def normalize(self, table: FeedTable, line: int, fields: list[str]) -> RowResult:
        if len(fields) != table.width:
            return RowResult.rejected(
                line,
                f"{table.filename} line {line}: {len(fields)} fields, expected {table.width}",
            )

        values: dict[str, Any] = {}
        for column, raw in zip(table.columns, fields):
            try:
                _convert_into(values, column, raw.strip())
            except (FieldError, TimeParseError) as exc:
                return RowResult.rejected(line, f"{table.filename} line {line}: {exc}")

        return RowResult.accepted(line, values)


def _convert_into(values: dict[str, Any], column: FeedColumn, raw: str) -> None:
    kind = column.kind

    if column.required and not raw:
        msg = f"missing {column.header}"
        raise FieldError(msg)

    if kind is ColumnKind.TEXT:
        values[column.target] = raw
    elif kind is ColumnKind.OPTIONAL_TEXT:
        values[column.target] = raw or None
    elif kind is ColumnKind.INTEGER:
        values[column.target] = _parse_int(column.header, raw)
    elif kind is ColumnKind.OPTIONAL_INTEGER:
        values[column.target] = _parse_int(column.header, raw) if raw else None
    elif kind is ColumnKind.LATITUDE:
        values[column.target] = parse_coordinate(column.header, raw, limit=90.0)
    elif kind is ColumnKind.LONGITUDE:
        values[column.target] = parse_coordinate(column.header, raw, limit=180.0)
    elif kind is ColumnKind.FLAG:
        values[column.target] = _parse_choice(column.header, raw, (0, 1))
    elif kind is ColumnKind.EXCEPTION_TYPE:
        values[column.target] = _parse_choice(column.header, raw, (1, 2))
    elif kind is ColumnKind.DATE:
        values[column.target] = parse_feed_date(column.header, raw)
    elif kind is ColumnKind.TIME:
        values[column.target] = raw or None
        if column.seconds_target:
            values[column.seconds_target] = parse_gtfs_time(raw) if raw else None


def parse_coordinate(name: str, raw: str, limit: float) -> float:
    """Parse a latitude/longitude, rejecting blanks and out-of-range values."""
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"invalid {name}={raw!r}"
        raise FieldError(msg) from exc
    if not -limit <= value <= limit:
        msg = f"{name}={raw!r} outside ±{limit:g}"
        raise FieldError(msg)
    return value


def parse_feed_date(name: str, raw: str) -> date:
    """Parse a ``YYYYMMDD`` service date."""
    try:
        return datetime.strptime(raw, "%Y%m%d").date()
    except ValueError as exc:
        msg = f"invalid {name}={raw!r} (expected YYYYMMDD)"
        raise FieldError(msg) from exc


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"invalid {name}={raw!r}"
        raise FieldError(msg) from exc


def _parse_choice(name: str, raw: str, allowed: tuple[int, ...]) -> int:
    value = _parse_int(name, raw)
    if value not in allowed:
        msg = f"{name}={raw!r} not in {allowed}"
        raise FieldError(msg)
    return value


def parse_gtfs_time(time_str: str) -> int:
    """Parse a feed time string (H:MM:SS) to seconds from midnight.

    Supports times >= 24:00:00 for trips spanning past midnight.

    Examples:
        "08:30:00" -> 30600
        "25:01:30" -> 90090

    Raises:
        TimeParseError: If the format is invalid.
    """
    time_str = time_str.strip()
    parts = time_str.split(":")
    if len(parts) != 3:
        msg = f"Invalid time format: {time_str!r} (expected HH:MM:SS)"
        raise TimeParseError(msg)

    try:
        hours, minutes, seconds = (int(part) for part in parts)
    except ValueError as exc:
        msg = f"Non-numeric components in time: {time_str!r}"
        raise TimeParseError(msg) from exc

    if not 0 <= minutes <= 59 or not 0 <= seconds <= 59:
        msg = f"Invalid minutes/seconds in time: {time_str!r}"
        raise TimeParseError(msg)

    if hours < 0:
        msg = f"Negative hours in time: {time_str!r}"
        raise TimeParseError(msg)

    return hours * 3600 + minutes * 60 + seconds
