"""Static feed tables, one per feed file."""

from __future__ import annotations

import datetime as dt  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[dt.date]

from sqlalchemy import Date, Float, Index, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from transit_feed_api.models.base import Base


class Agency(Base):
    """Transit agency operating the feed."""

    __tablename__ = "agency"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    lang: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(64), nullable=False, default="")


class Route(Base):
    """Transit route."""

    __tablename__ = "routes"

    route_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    short_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    long_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    route_type: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    url: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class Trip(Base):
    """Transit trip (a specific run of a route).

    ``service_id`` is resolved through calendar and calendar_dates and is not
    a foreign key.
    """

    __tablename__ = "trips"

    trip_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    route_id: Mapped[str] = mapped_column(String(64), nullable=False)
    service_id: Mapped[str] = mapped_column(String(64), nullable=False)
    headsign: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    direction_id: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    block_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    shape_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_trips_service_id", "service_id"),
        Index("ix_trips_trip_id", "trip_id"),
        Index("ix_trips_route_id", "route_id"),
    )


class Calendar(Base):
    """Weekly service pattern between two dates."""

    __tablename__ = "calendar"

    service_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    monday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    tuesday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    wednesday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    thursday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    friday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    saturday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    sunday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)


class CalendarDate(Base):
    """Single-date service exception (1 = added, 2 = removed)."""

    __tablename__ = "calendar_dates"

    service_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    exception_type: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    __table_args__ = (Index("ix_calendar_dates_date", "date"),)


class ShapePoint(Base):
    """One point of a shape polyline."""

    __tablename__ = "shapes"

    shape_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)


class StopTime(Base):
    """Scheduled stop time for a trip."""

    __tablename__ = "stop_times"

    trip_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    stop_sequence: Mapped[int] = mapped_column(Integer, primary_key=True)
    stop_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Raw HH:MM:SS plus seconds from midnight (may exceed 24h)
    arrival_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    departure_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    arrival_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)
    departure_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)

    pickup_type: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    drop_off_type: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    __table_args__ = (
        Index("ix_stop_times_stop_id", "stop_id"),
        Index("ix_stop_times_trip_id", "trip_id"),
    )


class Stop(Base):
    """Transit stop/station."""

    __tablename__ = "stops"

    stop_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    zone_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    url: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    location_type: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    __table_args__ = (
        Index("ix_stops_code", "code"),
        Index("ix_stops_lat_lon", "lat", "lon"),
    )


# Indexes the loader drops before a reload and rebuilds afterwards
DERIVED_INDEXES: tuple[Index, ...] = tuple(
    index
    for model in (StopTime, Trip)
    for index in model.__table__.indexes  # type: ignore[attr-defined]
)
