from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import Any, Callable

from .booking import Reservation, TimeRange, find_conflicts, parse_attendee_count
from .calendar_index import CalendarIndex
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .facilities import FacilityRegistry
from .store import RESERVATIONS, DocumentStore
from .yaml_store import record_event


@dataclass(frozen=True)
class ReservationRequest:
    """Booking form input. ``date`` may be left as None on update (it cannot change)."""

    date: date | str | None = None
    time_start: str | time = "09:00"
    time_end: str | time = "10:00"
    facility_id: str = ""
    attendee_count: int | str = 1
    organizer_name: str = ""

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRequest":
        time_start = data.get("timeStart")
        time_end = data.get("timeEnd")
        if not str(time_start or "").strip() or not str(time_end or "").strip():
            raise ValidationError("Start and end times are required.")
        defaults = ReservationRequest()
        return ReservationRequest(
            date=data.get("date") or None,
            time_start=time_start,
            time_end=time_end,
            facility_id=str(data.get("facility") or ""),
            attendee_count=data.get("attendees", defaults.attendee_count),
            organizer_name=str(data.get("organizer") or ""),
        )


class ReservationService:
    """Validates, authorizes and persists reservations.

    The service owns the authoritative snapshot: an immutable tuple that is
    replaced wholesale once a store write has completed. Conflict checks run
    against whatever snapshot is current when the command starts, so two
    commands racing on the same slot can both succeed; there is no locking
    across store calls.

    Ownership checks compare the caller's token with the one stored at
    creation by plain equality. This is a trust-boundary convenience for an
    internal office calendar, not authentication.
    """

    def __init__(
        self,
        store: DocumentStore,
        facilities: FacilityRegistry,
        clock: Callable[[], datetime] | None = None,
        event_log: Any = None,
    ) -> None:
        self.store = store
        self.facilities = facilities
        self.clock: Callable[[], datetime] = clock or datetime.now
        self.event_log = event_log
        self._snapshot: tuple[Reservation, ...] = ()

    @property
    def snapshot(self) -> tuple[Reservation, ...]:
        return self._snapshot

    def get(self, reservation_id: str) -> Reservation | None:
        for reservation in self._snapshot:
            if reservation.reservation_id == reservation_id:
                return reservation
        return None

    def index(self) -> CalendarIndex:
        return CalendarIndex(self._snapshot)

    async def refresh(self) -> tuple[Reservation, ...]:
        rows = await self.store.list_all(RESERVATIONS)
        loaded: list[Reservation] = []
        for row in rows:
            try:
                loaded.append(Reservation.from_document(row))
            except ValidationError as error:
                self._record("RESERVATION_SKIPPED", {"reservation_id": str(row.get("id")), "reason": str(error)})
        self._snapshot = tuple(loaded)
        return self._snapshot

    async def create(self, request: ReservationRequest, owner_token: str) -> Reservation:
        day = _parse_day(request.date)
        if day < self.clock().date():
            raise ValidationError("Cannot book dates in the past.")
        time_range, facility_id, attendee_count, organizer_name = self._validate_shape(request)
        if not owner_token or not str(owner_token).strip():
            raise ValidationError("Employee ID is required.")

        candidate = Reservation(
            reservation_id="",
            date=day,
            time_range=time_range,
            facility_id=facility_id,
            attendee_count=attendee_count,
            organizer_name=organizer_name,
            owner_token=owner_token,
        )
        conflicts = find_conflicts(candidate, self._snapshot)
        if conflicts:
            raise ConflictError(conflicts)

        reservation_id = await self.store.insert(RESERVATIONS, candidate.to_document())
        created = replace(candidate, reservation_id=reservation_id)
        self._snapshot = (*self._snapshot, created)

        self._record("RESERVATION_CREATED", _event_payload(created))
        return created

    async def update(self, reservation_id: str, request: ReservationRequest, supplied_token: str) -> Reservation:
        current = self._require_owned(reservation_id, supplied_token)
        if request.date is not None and _parse_day(request.date) != current.date:
            raise ValidationError("Date cannot be changed when editing a reservation.")
        time_range, facility_id, attendee_count, organizer_name = self._validate_shape(request)

        updated = replace(
            current,
            time_range=time_range,
            facility_id=facility_id,
            attendee_count=attendee_count,
            organizer_name=organizer_name,
        )
        conflicts = find_conflicts(updated, self._snapshot, exclude_id=reservation_id)
        if conflicts:
            raise ConflictError(conflicts)

        await self.store.update_by_id(RESERVATIONS, reservation_id, updated.to_document())
        self._snapshot = tuple(updated if row.reservation_id == reservation_id else row for row in self._snapshot)

        self._record("RESERVATION_UPDATED", _event_payload(updated))
        return updated

    async def delete(self, reservation_id: str, supplied_token: str) -> None:
        current = self._require_owned(reservation_id, supplied_token)

        await self.store.delete_by_id(RESERVATIONS, reservation_id)
        self._snapshot = tuple(row for row in self._snapshot if row.reservation_id != reservation_id)

        self._record("RESERVATION_DELETED", _event_payload(current))

    def _require_owned(self, reservation_id: str, supplied_token: str) -> Reservation:
        current = self.get(reservation_id)
        if current is None:
            raise NotFoundError(f"Reservation not found: {reservation_id}")
        if supplied_token != current.owner_token:
            raise AuthorizationError()
        return current

    def _validate_shape(self, request: ReservationRequest) -> tuple[TimeRange, str, int, str]:
        time_range = TimeRange.parse(request.time_start, request.time_end)
        attendee_count = parse_attendee_count(request.attendee_count)

        organizer_name = (request.organizer_name or "").strip()
        if not organizer_name:
            raise ValidationError("Organizer name is required.")

        facility_id = (request.facility_id or "").strip()
        if facility_id not in self.facilities:
            raise ValidationError(f"Unknown facility: {facility_id or '(none)'}")

        return time_range, facility_id, attendee_count, organizer_name

    def _record(self, event_type: str, payload: dict[str, Any]) -> None:
        record_event(self.event_log, event_type, payload, self.clock())


def _parse_day(value: date | str | None) -> date:
    if value is None or value == "":
        raise ValidationError("Date is required.")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as error:
        raise ValidationError(f"Invalid date: {value!r} (expected YYYY-MM-DD).") from error


def _event_payload(reservation: Reservation) -> dict[str, Any]:
    return {
        "reservation_id": reservation.reservation_id,
        "facility": reservation.facility_id,
        "date": reservation.date.isoformat(),
        "time": str(reservation.time_range),
        "attendees": reservation.attendee_count,
        "organizer": reservation.organizer_name,
    }
