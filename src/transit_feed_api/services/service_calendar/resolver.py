"""Service calendar resolution.

A service runs on a date when either

* a calendar row covers the date, has that weekday's flag set, and no
  "removed" exception exists for the service on that date; or
* a calendar_dates row marks the service as "added" on that date, whether
  or not any calendar row covers it.

The result is the union of the two paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy import text

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

EXCEPTION_ADDED = 1
EXCEPTION_REMOVED = 2

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class CalendarRow:
    service_id: str
    start_date: date
    end_date: date
    weekdays: frozenset[str]

    def runs_on(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date and weekday_name(day) in self.weekdays


@dataclass(frozen=True)
class ServiceException:
    service_id: str
    date: date
    exception_type: int


def weekday_name(day: date) -> str:
    """Lower-case English weekday, matching the calendar flag columns."""
    return WEEKDAYS[day.weekday()]


def resolve_active_services(
    day: date,
    calendars: Iterable[CalendarRow],
    exceptions: Iterable[ServiceException],
) -> set[str]:
    """Return the ids of every service active on ``day``.

    Exceptions for other dates are ignored, so callers may pass a superset.
    """
    added: set[str] = set()
    removed: set[str] = set()
    for exc in exceptions:
        if exc.date != day:
            continue
        if exc.exception_type == EXCEPTION_ADDED:
            added.add(exc.service_id)
        elif exc.exception_type == EXCEPTION_REMOVED:
            removed.add(exc.service_id)

    scheduled = {
        row.service_id
        for row in calendars
        if row.runs_on(day) and row.service_id not in removed
    }
    return scheduled | added


def service_day(tz_name: str, now: datetime | None = None) -> date:
    """Today's date in the service timezone."""
    tz = ZoneInfo(tz_name)
    return (now.astimezone(tz) if now else datetime.now(tz)).date()


async def load_active_service_ids(session: AsyncSession, day: date) -> set[str]:
    """Resolve active services for ``day`` from the store.

    Only the calendar rows covering the date and the exceptions on the date
    are fetched; the decision itself is made by
    :func:`resolve_active_services`.
    """
    calendar_result = await session.execute(
        text(
            f"""
            SELECT service_id, start_date, end_date, {", ".join(WEEKDAYS)}
            FROM calendar
            WHERE start_date <= :day AND end_date >= :day
            """
        ),
        {"day": day},
    )
    calendars = [
        CalendarRow(
            service_id=r.service_id,
            start_date=r.start_date,
            end_date=r.end_date,
            weekdays=frozenset(name for name in WEEKDAYS if getattr(r, name) == 1),
        )
        for r in calendar_result.fetchall()
    ]

    exception_result = await session.execute(
        text("SELECT service_id, date, exception_type FROM calendar_dates WHERE date = :day"),
        {"day": day},
    )
    exceptions = [
        ServiceException(service_id=r.service_id, date=r.date, exception_type=r.exception_type)
        for r in exception_result.fetchall()
    ]

    return resolve_active_services(day, calendars, exceptions)
