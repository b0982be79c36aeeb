from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable
import re

from .errors import ValidationError

_TIME_RE = re.compile(r"^(?P<hour>[01]?\d|2[0-3]):(?P<minute>[0-5]\d)$")


@dataclass(frozen=True)
class TimeRange:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("End time must be after start time.")

    @staticmethod
    def parse(start: str | time, end: str | time) -> "TimeRange":
        return TimeRange(_parse_clock(start, "start"), _parse_clock(end, "end"))

    def overlaps(self, other: "TimeRange") -> bool:
        return has_time_overlap(self, other)

    @property
    def duration_minutes(self) -> int:
        return (self.end.hour * 60 + self.end.minute) - (self.start.hour * 60 + self.start.minute)

    def to_dict(self) -> dict[str, str]:
        return {"timeStart": format_clock(self.start), "timeEnd": format_clock(self.end)}

    def __str__(self) -> str:
        return f"{format_clock(self.start)}-{format_clock(self.end)}"


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    date: date
    time_range: TimeRange
    facility_id: str
    attendee_count: int
    organizer_name: str
    owner_token: str

    @property
    def start(self) -> datetime:
        return datetime.combine(self.date, self.time_range.start)

    @property
    def end(self) -> datetime:
        return datetime.combine(self.date, self.time_range.end)

    def to_document(self) -> dict[str, Any]:
        """Document body for the ``reservations`` collection (the id is the document key)."""
        return {
            "date": self.date.isoformat(),
            **self.time_range.to_dict(),
            "facility": self.facility_id,
            "attendees": self.attendee_count,
            "organizer": self.organizer_name,
            "employeeID": self.owner_token,
        }

    def to_public_dict(self) -> dict[str, Any]:
        payload = self.to_document()
        payload.pop("employeeID")
        payload["id"] = self.reservation_id
        return payload

    @staticmethod
    def from_document(data: dict[str, Any]) -> "Reservation":
        try:
            return Reservation(
                reservation_id=str(data["id"]),
                date=date.fromisoformat(str(data["date"])),
                time_range=TimeRange.parse(str(data["timeStart"]), str(data["timeEnd"])),
                facility_id=str(data["facility"]),
                attendee_count=parse_attendee_count(data.get("attendees", 1)),
                organizer_name=str(data.get("organizer") or ""),
                owner_token=str(data.get("employeeID") or ""),
            )
        except (KeyError, TypeError, ValueError) as error:
            raise ValidationError(f"Malformed reservation document: {error}") from error


def has_time_overlap(new_range: TimeRange, existing_range: TimeRange) -> bool:
    """Return True when two time ranges overlap by even one minute.

    Ranges are treated as half-open intervals: [start, end)
    so touching boundaries (e.g. 09:00-10:00 and 10:00-11:00) do not overlap.
    """
    return new_range.start < existing_range.end and new_range.end > existing_range.start


def find_conflicts(
    candidate: Reservation,
    existing_reservations: Iterable[Reservation],
    exclude_id: str | None = None,
) -> list[Reservation]:
    """Return every reservation that blocks ``candidate`` on its date and facility."""
    return [
        reservation
        for reservation in existing_reservations
        if reservation.date == candidate.date
        and reservation.facility_id == candidate.facility_id
        and (exclude_id is None or reservation.reservation_id != exclude_id)
        and has_time_overlap(candidate.time_range, reservation.time_range)
    ]


def is_available(
    candidate: Reservation,
    existing_reservations: Iterable[Reservation],
    exclude_id: str | None = None,
) -> bool:
    return not find_conflicts(candidate, existing_reservations, exclude_id)


def parse_attendee_count(value: int | str | None) -> int:
    if isinstance(value, bool):
        raise ValidationError("Number of attendees must be a whole number.")
    try:
        count = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as error:
        raise ValidationError("Number of attendees must be a whole number.") from error
    if count < 1:
        raise ValidationError("Number of attendees must be at least 1.")
    return count


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def _parse_clock(value: str | time, label: str) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    match = _TIME_RE.match(str(value).strip())
    if not match:
        raise ValidationError(f"Invalid {label} time: {value!r} (expected HH:MM).")
    return time(int(match.group("hour")), int(match.group("minute")))
