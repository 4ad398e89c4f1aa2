"""Public read-only transit endpoints.

Endpoints
---------
GET /transit/agency                              – feed agency
GET /transit/calendars                           – all calendar rows
GET /transit/calendars/active                    – calendars active today
GET /transit/calendars/{year}/{month}/{day}      – calendars active on a date
GET /transit/exceptions/{yyyymmdd}               – calendar exceptions on a date
GET /transit/services                            – active service ids
GET /transit/routes/search                       – routes by name fragment
GET /transit/routes/{route_id}/stops             – stops of a route direction
GET /transit/routes/{route_id}/trips             – active trips of a route
GET /transit/routes/{route_id}/shapes            – encoded shapes of a route direction
GET /transit/routes/{route_id}/nearest-stop      – route stop closest to a point
GET /transit/shapes/{shape_id}                   – one encoded shape
GET /transit/stops/nearby                        – stops within a radius
GET /transit/stops/code/{stop_code}              – stop by public code
GET /transit/stops/{stop_id}/routes              – active routes at a stop
GET /transit/stops/{stop_id}/schedule            – stop times for a route at a stop
GET /transit/trips/{trip_id}                     – one trip
GET /transit/trips/{trip_id}/schedule            – stop times of a trip

Date-dependent endpoints accept an optional ``day`` (ISO date); when omitted
the current day in SERVICE_TIMEZONE is used.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel

from transit_feed_api.config import get_settings
from transit_feed_api.routers.deps import get_queries
from transit_feed_api.services.feed.normalizer import FieldError, parse_feed_date
from transit_feed_api.services.queries import FeedQueries
from transit_feed_api.services.spatial.geo import from_km, to_km

router = APIRouter(prefix="/transit", tags=["transit"])

Queries = Annotated[FeedQueries, Depends(get_queries)]
Day = Annotated[
    date | None,
    Query(description="Service day (YYYY-MM-DD); defaults to today in SERVICE_TIMEZONE"),
]
DirectionId = Annotated[int, Query(ge=0, le=1, description="Trip direction (0 or 1)")]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AgencyOut(BaseModel):
    name: str
    url: str | None = None
    timezone: str | None = None
    lang: str | None = None
    phone: str | None = None


class RouteOut(BaseModel):
    route_id: str
    short_name: str | None = None
    long_name: str | None = None
    description: str | None = None
    route_type: int | None = None
    url: str | None = None


class TripOut(BaseModel):
    trip_id: str
    route_id: str
    service_id: str
    headsign: str | None = None
    direction_id: int | None = None
    block_id: str | None = None
    shape_id: str | None = None


class StopOut(BaseModel):
    stop_id: str
    code: str | None = None
    name: str
    description: str | None = None
    lat: float
    lon: float
    zone_id: str | None = None
    url: str | None = None
    location_type: int | None = None


class StopDistanceOut(StopOut):
    distance: float


class StopTimeOut(BaseModel):
    trip_id: str
    arrival_time: str | None = None
    departure_time: str | None = None
    stop_id: str
    stop_sequence: int
    pickup_type: int | None = None
    drop_off_type: int | None = None


class CalendarOut(BaseModel):
    service_id: str
    monday: int
    tuesday: int
    wednesday: int
    thursday: int
    friday: int
    saturday: int
    sunday: int
    start_date: date
    end_date: date


class CalendarExceptionOut(BaseModel):
    service_id: str
    date: date
    exception_type: int


class ShapeOut(BaseModel):
    shape_id: str
    path: str


def _found(item: dict[str, Any] | None, what: str, key: str) -> dict[str, Any]:
    if item is None:
        raise HTTPException(status_code=404, detail=f"{what} {key!r} not found")
    return item


# ---------------------------------------------------------------------------
# Agency & calendar
# ---------------------------------------------------------------------------


@router.get("/agency", response_model=AgencyOut, summary="Feed agency")
async def get_agency(queries: Queries) -> dict[str, Any]:
    return _found(await queries.agency(), "Agency", "default")


@router.get("/calendars", response_model=list[CalendarOut], summary="All service calendars")
async def list_calendars(queries: Queries) -> list[dict[str, Any]]:
    return await queries.calendars()


@router.get(
    "/calendars/active",
    response_model=list[CalendarOut],
    summary="Calendars of services active on a day",
)
async def list_active_calendars(queries: Queries, day: Day = None) -> list[dict[str, Any]]:
    return await queries.active_calendars(day)


@router.get(
    "/calendars/{year}/{month}/{day}",
    response_model=list[CalendarOut],
    summary="Calendars of services active on a given date",
)
async def list_calendars_on(
    queries: Queries,
    year: Annotated[int, Path(ge=1, le=9999)],
    month: Annotated[int, Path(ge=1, le=12)],
    day: Annotated[int, Path(ge=1, le=31)],
) -> list[dict[str, Any]]:
    try:
        on = date(year, month, day)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await queries.active_calendars(on)


@router.get(
    "/exceptions/{yyyymmdd}",
    response_model=list[CalendarExceptionOut],
    summary="Calendar exceptions on a date",
)
async def list_exceptions(queries: Queries, yyyymmdd: str) -> list[dict[str, Any]]:
    try:
        on = parse_feed_date("date", yyyymmdd)
    except FieldError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await queries.exceptions(on)


@router.get("/services", response_model=list[str], summary="Active service ids")
async def list_active_services(queries: Queries, day: Day = None) -> list[str]:
    return sorted(await queries.active_service_ids(day))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/routes/search", response_model=list[RouteOut], summary="Search routes by name")
async def search_routes(
    queries: Queries,
    q: Annotated[
        str,
        Query(min_length=1, max_length=100, description="Fragment of short or long name"),
    ],
) -> list[dict[str, Any]]:
    return await queries.find_routes(q)


@router.get(
    "/routes/{route_id}/stops",
    response_model=list[StopOut],
    summary="Stops served by a route in one direction",
)
async def list_route_stops(
    queries: Queries, route_id: str, direction_id: DirectionId = 0, day: Day = None
) -> list[dict[str, Any]]:
    return await queries.stops_for_route(route_id, direction_id, day)


@router.get("/routes/{route_id}/trips", response_model=list[TripOut], summary="Active trips")
async def list_route_trips(
    queries: Queries, route_id: str, day: Day = None
) -> list[dict[str, Any]]:
    return await queries.trips_for_route(route_id, day)


@router.get(
    "/routes/{route_id}/shapes",
    response_model=list[ShapeOut],
    summary="Simplified, polyline-encoded shapes of a route direction",
)
async def list_route_shapes(
    queries: Queries, route_id: str, direction_id: DirectionId = 0, day: Day = None
) -> list[dict[str, Any]]:
    return await queries.shapes_for_route(route_id, direction_id, day)


@router.get(
    "/routes/{route_id}/nearest-stop",
    response_model=StopDistanceOut,
    summary="Route stop closest to a location",
)
async def get_nearest_route_stop(
    queries: Queries,
    route_id: str,
    lat: Annotated[float, Query(ge=-90, le=90)],
    lon: Annotated[float, Query(ge=-180, le=180)],
    direction_id: DirectionId = 0,
    unit: Literal["km", "mi"] = "km",
    day: Day = None,
) -> dict[str, Any]:
    stop = await queries.nearest_stop_for_route(route_id, direction_id, lat, lon, day, unit)
    return _found(stop, "Stop for route", route_id)


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------


@router.get("/shapes/{shape_id}", response_model=ShapeOut, summary="One encoded shape")
async def get_shape(queries: Queries, shape_id: str) -> dict[str, Any]:
    paths = await queries.shape_by_id(shape_id)
    return _found(paths[0] if paths else None, "Shape", shape_id)


# ---------------------------------------------------------------------------
# Stops
# ---------------------------------------------------------------------------


@router.get(
    "/stops/nearby",
    response_model=list[StopDistanceOut],
    summary="Stops within a radius",
    description=(
        "Return every stop strictly within `radius` of the given coordinates. "
        "Uses a bounding-box pre-filter on ix_stops_lat_lon and then applies "
        "the exact haversine distance."
    ),
)
async def list_nearby_stops(
    queries: Queries,
    lat: Annotated[float, Query(ge=-90, le=90, description="Latitude of the search centre")],
    lon: Annotated[float, Query(ge=-180, le=180, description="Longitude of the search centre")],
    radius: Annotated[float | None, Query(gt=0, description="Search radius in `unit`")] = None,
    unit: Literal["km", "mi"] = "km",
) -> list[dict[str, Any]]:
    settings = get_settings()
    if radius is None:
        radius = from_km(settings.default_range_km, unit)
    if to_km(radius, unit) > settings.max_range_km:
        limit = from_km(settings.max_range_km, unit)
        raise HTTPException(status_code=422, detail=f"radius must not exceed {limit:.3f} {unit}")
    return await queries.stops_in_range(lat, lon, radius, unit)


@router.get("/stops/code/{stop_code}", response_model=StopOut, summary="Stop by public code")
async def get_stop_by_code(queries: Queries, stop_code: str) -> dict[str, Any]:
    return _found(await queries.find_stop(stop_code), "Stop code", stop_code)


@router.get(
    "/stops/{stop_id}/routes",
    response_model=list[RouteOut],
    summary="Routes with active trips at a stop",
)
async def list_stop_routes(
    queries: Queries, stop_id: str, day: Day = None
) -> list[dict[str, Any]]:
    return await queries.routes_for_stop(stop_id, day)


@router.get(
    "/stops/{stop_id}/schedule",
    response_model=list[StopTimeOut],
    summary="Stop times at a stop for one route",
)
async def get_stop_schedule(
    queries: Queries,
    stop_id: str,
    route_id: Annotated[str, Query(min_length=1)],
    day: Day = None,
) -> list[dict[str, Any]]:
    return await queries.stop_schedule(stop_id, route_id, day)


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


@router.get("/trips/{trip_id}", response_model=TripOut, summary="One trip")
async def get_trip(queries: Queries, trip_id: str) -> dict[str, Any]:
    return _found(await queries.trip(trip_id), "Trip", trip_id)


@router.get(
    "/trips/{trip_id}/schedule",
    response_model=list[StopTimeOut],
    summary="Stop times of a trip in arrival order",
)
async def get_trip_schedule(queries: Queries, trip_id: str) -> list[dict[str, Any]]:
    return await queries.trip_schedule(trip_id)
