"""Tests for active-service resolution."""

from __future__ import annotations

from datetime import date, datetime, timezone

from transit_feed_api.services.service_calendar import (
    EXCEPTION_ADDED,
    EXCEPTION_REMOVED,
    CalendarRow,
    ServiceException,
    load_active_service_ids,
    resolve_active_services,
    service_day,
)

from .fixtures.store_fixture import calendar_row, exception_row, make_session, result

WEEKDAYS_ONLY = frozenset({"monday", "tuesday", "wednesday", "thursday", "friday"})

WD = CalendarRow("WD", date(2024, 1, 1), date(2024, 12, 31), WEEKDAYS_ONLY)
WE = CalendarRow("WE", date(2024, 1, 1), date(2024, 12, 31), frozenset({"saturday", "sunday"}))

MONDAY = date(2024, 3, 4)
SATURDAY = date(2024, 3, 9)


class TestResolveActiveServices:
    def test_weekday_match(self) -> None:
        assert resolve_active_services(MONDAY, [WD, WE], []) == {"WD"}
        assert resolve_active_services(SATURDAY, [WD, WE], []) == {"WE"}

    def test_outside_date_range(self) -> None:
        assert resolve_active_services(date(2025, 1, 6), [WD], []) == set()

    def test_range_is_inclusive(self) -> None:
        assert resolve_active_services(date(2024, 12, 31), [WD], []) == {"WD"}

    def test_removed_exception_excludes_service(self) -> None:
        removed = ServiceException("WD", MONDAY, EXCEPTION_REMOVED)
        assert resolve_active_services(MONDAY, [WD], [removed]) == set()

    def test_added_exception_without_calendar_row(self) -> None:
        added = ServiceException("HOL", MONDAY, EXCEPTION_ADDED)
        assert resolve_active_services(MONDAY, [WD], [added]) == {"WD", "HOL"}

    def test_added_exception_on_inactive_weekday(self) -> None:
        added = ServiceException("WD", SATURDAY, EXCEPTION_ADDED)
        assert resolve_active_services(SATURDAY, [WD], [added]) == {"WD"}

    def test_exceptions_for_other_dates_ignored(self) -> None:
        removed = ServiceException("WD", date(2024, 3, 5), EXCEPTION_REMOVED)
        assert resolve_active_services(MONDAY, [WD], [removed]) == {"WD"}


class TestServiceDay:
    def test_converts_to_service_timezone(self) -> None:
        now = datetime(2024, 3, 5, 3, 0, tzinfo=timezone.utc)
        assert service_day("America/Vancouver", now) == date(2024, 3, 4)
        assert service_day("UTC", now) == date(2024, 3, 5)


class TestLoadActiveServiceIds:
    async def test_reads_calendar_and_exceptions(self) -> None:
        new_year = date(2024, 1, 1)
        session = make_session(
            result([calendar_row("WD"), calendar_row("WE", days="0000011")]),
            result([exception_row("WD", new_year, 2), exception_row("HOL", new_year, 1)]),
        )

        active = await load_active_service_ids(session, new_year)

        assert active == {"HOL"}
        assert session.execute.await_count == 2
        for call in session.execute.call_args_list:
            assert call.args[1] == {"day": new_year}
