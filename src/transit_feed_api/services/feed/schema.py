"""Declarative column layout for every recognised feed file.

Columns are mapped by position. Each file's header must have exactly as many
columns as its layout below; names are only compared to warn about feeds
that reorder columns.

    agency.txt          agency_name, agency_url, agency_timezone, agency_lang, agency_phone
    routes.txt          route_id, route_short_name, route_long_name, route_desc,
                        route_type, route_url
    trips.txt           route_id, service_id, trip_id, trip_headsign, direction_id,
                        block_id, shape_id
    calendar.txt        service_id, monday .. sunday, start_date, end_date
    calendar_dates.txt  service_id, date, exception_type
    shapes.txt          shape_id, shape_pt_lat, shape_pt_lon, shape_pt_sequence
    stop_times.txt      trip_id, arrival_time, departure_time, stop_id, stop_sequence,
                        pickup_type, drop_off_type
    stops.txt           stop_id, stop_code, stop_name, stop_desc, stop_lat, stop_lon,
                        zone_id, stop_url, location_type
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ColumnKind(str, Enum):
    """How a raw CSV field is converted before insert."""

    TEXT = "text"
    OPTIONAL_TEXT = "optional_text"
    INTEGER = "integer"
    OPTIONAL_INTEGER = "optional_integer"
    LATITUDE = "latitude"
    LONGITUDE = "longitude"
    FLAG = "flag"
    DATE = "date"
    TIME = "time"
    EXCEPTION_TYPE = "exception_type"


@dataclass(frozen=True)
class FeedColumn:
    """One positional CSV column and the table column it fills.

    Time columns fill two table columns: ``target`` with the raw string and
    ``seconds_target`` with seconds after midnight.
    """

    header: str
    target: str
    kind: ColumnKind = ColumnKind.TEXT
    required: bool = False
    seconds_target: str | None = None


@dataclass(frozen=True)
class FeedTable:
    """Positional layout of one feed file."""

    filename: str
    table: str
    columns: tuple[FeedColumn, ...]

    @property
    def width(self) -> int:
        return len(self.columns)

    @property
    def headers(self) -> tuple[str, ...]:
        return tuple(col.header for col in self.columns)

    @property
    def targets(self) -> tuple[str, ...]:
        out: list[str] = []
        for col in self.columns:
            out.append(col.target)
            if col.seconds_target:
                out.append(col.seconds_target)
        return tuple(out)


class ColumnCountError(Exception):
    """Raised when a file's header width differs from its declared layout."""


_C = FeedColumn
_K = ColumnKind

AGENCY = FeedTable(
    filename="agency.txt",
    table="agency",
    columns=(
        _C("agency_name", "name", required=True),
        _C("agency_url", "url"),
        _C("agency_timezone", "timezone"),
        _C("agency_lang", "lang"),
        _C("agency_phone", "phone"),
    ),
)

ROUTES = FeedTable(
    filename="routes.txt",
    table="routes",
    columns=(
        _C("route_id", "route_id", required=True),
        _C("route_short_name", "short_name"),
        _C("route_long_name", "long_name"),
        _C("route_desc", "description"),
        _C("route_type", "route_type", _K.OPTIONAL_INTEGER),
        _C("route_url", "url"),
    ),
)

TRIPS = FeedTable(
    filename="trips.txt",
    table="trips",
    columns=(
        _C("route_id", "route_id", required=True),
        _C("service_id", "service_id", required=True),
        _C("trip_id", "trip_id", required=True),
        _C("trip_headsign", "headsign"),
        _C("direction_id", "direction_id", _K.OPTIONAL_INTEGER),
        _C("block_id", "block_id"),
        _C("shape_id", "shape_id", _K.OPTIONAL_TEXT),
    ),
)

CALENDAR = FeedTable(
    filename="calendar.txt",
    table="calendar",
    columns=(
        _C("service_id", "service_id", required=True),
        _C("monday", "monday", _K.FLAG),
        _C("tuesday", "tuesday", _K.FLAG),
        _C("wednesday", "wednesday", _K.FLAG),
        _C("thursday", "thursday", _K.FLAG),
        _C("friday", "friday", _K.FLAG),
        _C("saturday", "saturday", _K.FLAG),
        _C("sunday", "sunday", _K.FLAG),
        _C("start_date", "start_date", _K.DATE),
        _C("end_date", "end_date", _K.DATE),
    ),
)

CALENDAR_DATES = FeedTable(
    filename="calendar_dates.txt",
    table="calendar_dates",
    columns=(
        _C("service_id", "service_id", required=True),
        _C("date", "date", _K.DATE),
        _C("exception_type", "exception_type", _K.EXCEPTION_TYPE),
    ),
)

SHAPES = FeedTable(
    filename="shapes.txt",
    table="shapes",
    columns=(
        _C("shape_id", "shape_id", required=True),
        _C("shape_pt_lat", "lat", _K.LATITUDE),
        _C("shape_pt_lon", "lon", _K.LONGITUDE),
        _C("shape_pt_sequence", "sequence", _K.INTEGER),
    ),
)

STOP_TIMES = FeedTable(
    filename="stop_times.txt",
    table="stop_times",
    columns=(
        _C("trip_id", "trip_id", required=True),
        _C("arrival_time", "arrival_time", _K.TIME, seconds_target="arrival_sec"),
        _C("departure_time", "departure_time", _K.TIME, seconds_target="departure_sec"),
        _C("stop_id", "stop_id", required=True),
        _C("stop_sequence", "stop_sequence", _K.INTEGER),
        _C("pickup_type", "pickup_type", _K.OPTIONAL_INTEGER),
        _C("drop_off_type", "drop_off_type", _K.OPTIONAL_INTEGER),
    ),
)

STOPS = FeedTable(
    filename="stops.txt",
    table="stops",
    columns=(
        _C("stop_id", "stop_id", required=True),
        _C("stop_code", "code"),
        _C("stop_name", "name"),
        _C("stop_desc", "description"),
        _C("stop_lat", "lat", _K.LATITUDE),
        _C("stop_lon", "lon", _K.LONGITUDE),
        _C("zone_id", "zone_id"),
        _C("stop_url", "url"),
        _C("location_type", "location_type", _K.OPTIONAL_INTEGER),
    ),
)

# Load order: parents before the rows that reference them
FEED_TABLES: tuple[FeedTable, ...] = (
    AGENCY,
    ROUTES,
    CALENDAR,
    CALENDAR_DATES,
    STOPS,
    SHAPES,
    TRIPS,
    STOP_TIMES,
)

TABLES_BY_FILENAME: dict[str, FeedTable] = {t.filename: t for t in FEED_TABLES}


def check_header(table: FeedTable, header: list[str]) -> list[str]:
    """Validate a header row against a layout.

    Returns:
        Names of positions whose header differs from the documented name.

    Raises:
        ColumnCountError: If the header width differs from the layout.
    """
    if len(header) != table.width:
        msg = (
            f"{table.filename} has {len(header)} columns, expected {table.width}: "
            f"{', '.join(table.headers)}"
        )
        raise ColumnCountError(msg)

    return [
        f"{expected}<-{actual.strip()}"
        for expected, actual in zip(table.headers, header)
        if actual.strip() != expected
    ]
