"""SQLAlchemy models for the static feed store."""

from transit_feed_api.models.base import Base
from transit_feed_api.models.gtfs import (
    DERIVED_INDEXES,
    Agency,
    Calendar,
    CalendarDate,
    Route,
    ShapePoint,
    Stop,
    StopTime,
    Trip,
)

__all__ = [
    "DERIVED_INDEXES",
    "Agency",
    "Base",
    "Calendar",
    "CalendarDate",
    "Route",
    "ShapePoint",
    "Stop",
    "StopTime",
    "Trip",
]
