"""Read-only queries composing the store with calendar, spatial and shape logic.

Every lookup returns an empty list (or ``None`` for single-entity lookups)
when nothing matches. Store failures surface as
:class:`~transit_feed_api.database.StoreUnavailableError` so callers can tell
"no results" apart from "query failed".
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from transit_feed_api.database import StoreUnavailableError
from transit_feed_api.logging import get_logger
from transit_feed_api.services.service_calendar.resolver import (
    load_active_service_ids,
    service_day,
)
from transit_feed_api.services.shapes.simplifier import DEFAULT_TOLERANCE, build_shape_paths
from transit_feed_api.services.spatial.geo import (
    GeoPoint,
    bounding_box,
    distance,
    nearest,
    to_km,
    within_radius,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncSession

    from transit_feed_api.database import FeedStore
    from transit_feed_api.services.spatial.geo import DistanceUnit

logger = get_logger(__name__)

AGENCY_COLUMNS = "a.name, a.url, a.timezone, a.lang, a.phone"
ROUTE_COLUMNS = "r.route_id, r.short_name, r.long_name, r.description, r.route_type, r.url"
TRIP_COLUMNS = (
    "t.trip_id, t.route_id, t.service_id, t.headsign, t.direction_id, t.block_id, t.shape_id"
)
STOP_COLUMNS = (
    "s.stop_id, s.code, s.name, s.description, s.lat, s.lon, s.zone_id, s.url, s.location_type"
)
STOP_TIME_COLUMNS = (
    "st.trip_id, st.arrival_time, st.departure_time, st.stop_id, st.stop_sequence, "
    "st.pickup_type, st.drop_off_type"
)
CALENDAR_COLUMNS = (
    "c.service_id, c.monday, c.tuesday, c.wednesday, c.thursday, c.friday, "
    "c.saturday, c.sunday, c.start_date, c.end_date"
)


def _as_dicts(rows: Sequence[Any]) -> list[dict[str, Any]]:
    return [dict(row._mapping) for row in rows]


def _like_pattern(fragment: str) -> str:
    escaped = fragment.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class FeedQueries:
    """Query façade over the feed store.

    Holds nothing but the store handle and two settings, so one instance may
    serve any number of concurrent requests.
    """

    def __init__(
        self,
        store: FeedStore,
        service_timezone: str = "UTC",
        shape_tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        self._store = store
        self._service_timezone = service_timezone
        self._shape_tolerance = shape_tolerance

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._store.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Feed store query failed", error=str(exc), exc_info=exc)
            msg = f"Feed store unavailable: {type(exc).__name__}"
            raise StoreUnavailableError(msg) from exc

    def _day(self, day: date | None) -> date:
        return day if day is not None else service_day(self._service_timezone)

    # -- calendar ---------------------------------------------------------

    async def active_service_ids(self, day: date | None = None) -> set[str]:
        async with self._session() as session:
            return await load_active_service_ids(session, self._day(day))

    async def calendars(self) -> list[dict[str, Any]]:
        async with self._session() as session:
            result = await session.execute(
                text(f"SELECT {CALENDAR_COLUMNS} FROM calendar c ORDER BY c.service_id")
            )
            return _as_dicts(result.fetchall())

    async def active_calendars(self, day: date | None = None) -> list[dict[str, Any]]:
        """Calendar rows of the services active on ``day``."""
        async with self._session() as session:
            service_ids = await load_active_service_ids(session, self._day(day))
            if not service_ids:
                return []
            result = await session.execute(
                text(
                    f"SELECT {CALENDAR_COLUMNS} FROM calendar c "
                    "WHERE c.service_id = ANY(:service_ids) ORDER BY c.service_id"
                ),
                {"service_ids": sorted(service_ids)},
            )
            return _as_dicts(result.fetchall())

    async def exceptions(self, day: date) -> list[dict[str, Any]]:
        async with self._session() as session:
            result = await session.execute(
                text(
                    "SELECT cd.service_id, cd.date, cd.exception_type FROM calendar_dates cd "
                    "WHERE cd.date = :day ORDER BY cd.service_id"
                ),
                {"day": day},
            )
            return _as_dicts(result.fetchall())

    # -- agency / routes / trips ------------------------------------------

    async def agency(self) -> dict[str, Any] | None:
        async with self._session() as session:
            result = await session.execute(
                text(f"SELECT {AGENCY_COLUMNS} FROM agency a ORDER BY a.id LIMIT 1")
            )
            row = result.fetchone()
            return dict(row._mapping) if row else None

    async def find_routes(self, fragment: str) -> list[dict[str, Any]]:
        """Routes whose short or long name contains ``fragment`` (case-insensitive)."""
        async with self._session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {ROUTE_COLUMNS}
                    FROM routes r
                    WHERE LOWER(r.short_name) LIKE :pattern ESCAPE '\\'
                       OR LOWER(r.long_name) LIKE :pattern ESCAPE '\\'
                    ORDER BY r.short_name, r.route_id
                    """
                ),
                {"pattern": _like_pattern(fragment)},
            )
            return _as_dicts(result.fetchall())

    async def routes_for_stop(self, stop_id: str, day: date | None = None) -> list[dict[str, Any]]:
        """Routes with an active trip calling at the stop, ordered by short name."""
        async with self._session() as session:
            service_ids = await load_active_service_ids(session, self._day(day))
            if not service_ids:
                return []
            result = await session.execute(
                text(
                    f"""
                    SELECT {ROUTE_COLUMNS}
                    FROM routes r
                    WHERE r.route_id IN (
                        SELECT t.route_id
                        FROM trips t
                        JOIN stop_times st ON st.trip_id = t.trip_id
                        WHERE st.stop_id = :stop_id
                          AND t.service_id = ANY(:service_ids)
                    )
                    ORDER BY r.short_name, r.route_id
                    """
                ),
                {"stop_id": stop_id, "service_ids": sorted(service_ids)},
            )
            return _as_dicts(result.fetchall())

    async def trip(self, trip_id: str) -> dict[str, Any] | None:
        async with self._session() as session:
            result = await session.execute(
                text(f"SELECT {TRIP_COLUMNS} FROM trips t WHERE t.trip_id = :trip_id"),
                {"trip_id": trip_id},
            )
            row = result.fetchone()
            return dict(row._mapping) if row else None

    async def trips_for_route(self, route_id: str, day: date | None = None) -> list[dict[str, Any]]:
        async with self._session() as session:
            service_ids = await load_active_service_ids(session, self._day(day))
            if not service_ids:
                return []
            result = await session.execute(
                text(
                    f"""
                    SELECT {TRIP_COLUMNS}
                    FROM trips t
                    WHERE t.route_id = :route_id
                      AND t.service_id = ANY(:service_ids)
                    ORDER BY t.trip_id
                    """
                ),
                {"route_id": route_id, "service_ids": sorted(service_ids)},
            )
            return _as_dicts(result.fetchall())

    # -- schedules --------------------------------------------------------

    async def trip_schedule(self, trip_id: str) -> list[dict[str, Any]]:
        """Stop times of a trip in arrival order."""
        async with self._session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {STOP_TIME_COLUMNS}
                    FROM stop_times st
                    WHERE st.trip_id = :trip_id
                    ORDER BY st.arrival_sec NULLS LAST, st.stop_sequence
                    """
                ),
                {"trip_id": trip_id},
            )
            return _as_dicts(result.fetchall())

    async def stop_schedule(
        self, stop_id: str, route_id: str, day: date | None = None
    ) -> list[dict[str, Any]]:
        """Stop times at a stop for the route's active trips, in arrival order."""
        async with self._session() as session:
            service_ids = await load_active_service_ids(session, self._day(day))
            if not service_ids:
                return []
            result = await session.execute(
                text(
                    f"""
                    SELECT {STOP_TIME_COLUMNS}
                    FROM stop_times st
                    JOIN trips t ON t.trip_id = st.trip_id
                    WHERE st.stop_id = :stop_id
                      AND t.route_id = :route_id
                      AND t.service_id = ANY(:service_ids)
                    ORDER BY st.arrival_sec NULLS LAST, st.trip_id
                    """
                ),
                {"stop_id": stop_id, "route_id": route_id, "service_ids": sorted(service_ids)},
            )
            return _as_dicts(result.fetchall())

    # -- stops ------------------------------------------------------------

    async def find_stop(self, stop_code: str) -> dict[str, Any] | None:
        async with self._session() as session:
            result = await session.execute(
                text(
                    f"SELECT {STOP_COLUMNS} FROM stops s WHERE s.code = :code "
                    "ORDER BY s.stop_id LIMIT 1"
                ),
                {"code": stop_code},
            )
            row = result.fetchone()
            return dict(row._mapping) if row else None

    async def _route_stop_rows(
        self, session: AsyncSession, route_id: str, direction_id: int, day: date
    ) -> Sequence[Any]:
        service_ids = await load_active_service_ids(session, day)
        if not service_ids:
            return []
        result = await session.execute(
            text(
                f"""
                SELECT {STOP_COLUMNS}
                FROM stops s
                WHERE s.stop_id IN (
                    SELECT st.stop_id
                    FROM stop_times st
                    JOIN trips t ON t.trip_id = st.trip_id
                    WHERE t.route_id = :route_id
                      AND t.direction_id = :direction_id
                      AND t.service_id = ANY(:service_ids)
                )
                ORDER BY s.stop_id
                """
            ),
            {
                "route_id": route_id,
                "direction_id": direction_id,
                "service_ids": sorted(service_ids),
            },
        )
        return result.fetchall()

    async def stops_for_route(
        self, route_id: str, direction_id: int, day: date | None = None
    ) -> list[dict[str, Any]]:
        """Stops served by the route's active trips in one direction."""
        async with self._session() as session:
            rows = await self._route_stop_rows(session, route_id, direction_id, self._day(day))
        return _as_dicts(rows)

    async def nearest_stop_for_route(
        self,
        route_id: str,
        direction_id: int,
        lat: float,
        lon: float,
        day: date | None = None,
        unit: DistanceUnit = "km",
    ) -> dict[str, Any] | None:
        """Closest stop of the route to a coordinate; ties keep stop_id order."""
        async with self._session() as session:
            rows = await self._route_stop_rows(session, route_id, direction_id, self._day(day))
        query = GeoPoint(lat=lat, lon=lon)
        row = nearest(query, rows, unit)
        if row is None:
            return None
        return {**row._mapping, "distance": distance(row, query, unit)}

    async def stops_in_range(
        self, lat: float, lon: float, radius: float, unit: DistanceUnit = "km"
    ) -> list[dict[str, Any]]:
        """Every stop strictly within ``radius`` of the coordinate."""
        lat_min, lat_max, lon_min, lon_max = bounding_box(lat, lon, to_km(radius, unit))
        async with self._session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {STOP_COLUMNS}
                    FROM stops s
                    WHERE s.lat BETWEEN :lat_min AND :lat_max
                      AND s.lon BETWEEN :lon_min AND :lon_max
                    ORDER BY s.stop_id
                    """
                ),
                {"lat_min": lat_min, "lat_max": lat_max, "lon_min": lon_min, "lon_max": lon_max},
            )
            rows = result.fetchall()

        query = GeoPoint(lat=lat, lon=lon)
        return [
            {**row._mapping, "distance": distance(row, query, unit)}
            for row in within_radius(query, rows, radius, unit)
        ]

    # -- shapes -----------------------------------------------------------

    async def shapes_for_route(
        self, route_id: str, direction_id: int, day: date | None = None
    ) -> list[dict[str, Any]]:
        """Simplified, encoded paths of the shapes used by active trips."""
        async with self._session() as session:
            service_ids = await load_active_service_ids(session, self._day(day))
            if not service_ids:
                return []
            result = await session.execute(
                text(
                    """
                    SELECT sh.shape_id, sh.lat, sh.lon, sh.sequence
                    FROM shapes sh
                    WHERE sh.shape_id IN (
                        SELECT t.shape_id
                        FROM trips t
                        WHERE t.route_id = :route_id
                          AND t.direction_id = :direction_id
                          AND t.service_id = ANY(:service_ids)
                    )
                    ORDER BY sh.shape_id, sh.sequence
                    """
                ),
                {
                    "route_id": route_id,
                    "direction_id": direction_id,
                    "service_ids": sorted(service_ids),
                },
            )
            rows = result.fetchall()
        return [asdict(path) for path in build_shape_paths(rows, self._shape_tolerance)]

    async def shape_by_id(self, shape_id: str) -> list[dict[str, Any]]:
        async with self._session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT sh.shape_id, sh.lat, sh.lon, sh.sequence
                    FROM shapes sh
                    WHERE sh.shape_id = :shape_id
                    ORDER BY sh.sequence
                    """
                ),
                {"shape_id": shape_id},
            )
            rows = result.fetchall()
        return [asdict(path) for path in build_shape_paths(rows, self._shape_tolerance)]
