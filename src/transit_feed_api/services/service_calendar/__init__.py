"""Service calendar resolution."""

from transit_feed_api.services.service_calendar.resolver import (
    EXCEPTION_ADDED,
    EXCEPTION_REMOVED,
    CalendarRow,
    ServiceException,
    load_active_service_ids,
    resolve_active_services,
    service_day,
)

__all__ = [
    "EXCEPTION_ADDED",
    "EXCEPTION_REMOVED",
    "CalendarRow",
    "ServiceException",
    "load_active_service_ids",
    "resolve_active_services",
    "service_day",
]
