from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

import holidays as pyholidays

from .booking import Reservation

ALL_FACILITIES = "all"
DEFAULT_UPCOMING_LIMIT = 5
GRID_CELLS = 42
WEEKDAY_HEADERS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_HOLIDAY_CACHE: dict[tuple[str, int], dict[date, str]] = {}


@dataclass(frozen=True)
class DayCell:
    day: date
    in_month: bool
    is_today: bool = False
    holiday: str | None = None


@dataclass(frozen=True)
class UpcomingReservations:
    items: tuple[Reservation, ...]
    remaining: int


class CalendarIndex:
    """Read-only views over a point-in-time copy of the reservation snapshot."""

    def __init__(self, reservations: Iterable[Reservation]) -> None:
        self._reservations: tuple[Reservation, ...] = tuple(reservations)

    def __len__(self) -> int:
        return len(self._reservations)

    def reservations_on(self, day: date | str, facility_filter: str = ALL_FACILITIES) -> list[Reservation]:
        day_key = day.isoformat() if isinstance(day, date) else str(day)
        return [
            reservation
            for reservation in self._reservations
            if reservation.date.isoformat() == day_key and _matches_facility(reservation, facility_filter)
        ]

    def upcoming(
        self,
        now: datetime,
        limit: int = DEFAULT_UPCOMING_LIMIT,
        facility_filter: str = ALL_FACILITIES,
    ) -> UpcomingReservations:
        if limit < 0:
            raise ValueError("limit must not be negative")

        pending = [reservation for reservation in self._reservations if reservation.end > now]
        pending.sort(key=lambda reservation: (reservation.date, reservation.time_range.start))
        filtered = [reservation for reservation in pending if _matches_facility(reservation, facility_filter)]
        return UpcomingReservations(items=tuple(filtered[:limit]), remaining=max(0, len(filtered) - limit))


def month_grid(
    year: int,
    month: int,
    holiday_country: str | None = None,
    today: date | None = None,
) -> list[DayCell]:
    """Return the 6x7 Sunday-first grid for a month, padded with adjacent-month days."""
    first = date(year, month, 1)
    leading_days = (first.weekday() + 1) % 7
    grid_start = first - timedelta(days=leading_days)
    holiday_names = _holidays_between(holiday_country, grid_start, grid_start + timedelta(days=GRID_CELLS - 1))

    cells: list[DayCell] = []
    for offset in range(GRID_CELLS):
        day = grid_start + timedelta(days=offset)
        cells.append(
            DayCell(
                day=day,
                in_month=(day.year, day.month) == (year, month),
                is_today=today is not None and day == today,
                holiday=holiday_names.get(day),
            )
        )
    return cells


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = (year * 12) + (month - 1) + delta
    return index // 12, (index % 12) + 1


def is_bookable_day(day: date, now: datetime) -> bool:
    """Day-click rule: any day from today (midnight-truncated) onwards."""
    return day >= now.date()


def _matches_facility(reservation: Reservation, facility_filter: str) -> bool:
    return facility_filter == ALL_FACILITIES or reservation.facility_id == facility_filter


def _holidays_between(country: str | None, start: date, end: date) -> dict[date, str]:
    if not country:
        return {}

    names: dict[date, str] = {}
    for year in range(start.year, end.year + 1):
        key = (country, year)
        if key not in _HOLIDAY_CACHE:
            holiday_map = pyholidays.country_holidays(country, years=[year])
            _HOLIDAY_CACHE[key] = {day: str(name) for day, name in holiday_map.items()}
        names.update(_HOLIDAY_CACHE[key])
    return {day: name for day, name in names.items() if start <= day <= end}
