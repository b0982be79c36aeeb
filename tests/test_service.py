import asyncio
import unittest
from datetime import date, datetime, time
from typing import Any

from facility_calendar import (
    AdminDirectory,
    AuthorizationError,
    ConflictError,
    FacilityRegistry,
    InMemoryDocumentStore,
    NotFoundError,
    ReservationRequest,
    ReservationService,
    StoreError,
    ValidationError,
)
from facility_calendar.store import RESERVATIONS

NOW = datetime(2025, 6, 1, 12, 0)


class RecordingEventLog:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def record(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        self.events.append((event_type, payload))


class FailingInsertStore(InMemoryDocumentStore):
    async def insert(self, collection: str, record: dict[str, Any]) -> str:
        raise StoreError("network unavailable")


class FailingEventLog:
    def record(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        raise StoreError("journal disk full")


def _request(
    start: str = "09:00",
    end: str = "10:00",
    facility_id: str = "F1",
    day: str | None = "2025-06-10",
    attendees: int | str = 2,
    organizer: str = "Alice",
) -> ReservationRequest:
    return ReservationRequest(
        date=day,
        time_start=start,
        time_end=end,
        facility_id=facility_id,
        attendee_count=attendees,
        organizer_name=organizer,
    )


class ServiceTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryDocumentStore(
            {
                "facilities": {"F1": {"name": "F1"}, "F2": {"name": "F2"}},
                "admin": {"a1": {"employeeID": "ADMIN"}},
            }
        )
        self.registry = FacilityRegistry(self.store, AdminDirectory(self.store))
        await self.registry.load()
        self.events = RecordingEventLog()
        self.now = NOW
        self.service = ReservationService(self.store, self.registry, clock=lambda: self.now, event_log=self.events)


class TestCreate(ServiceTestCase):
    async def test_non_overlapping_reservations_all_succeed(self) -> None:
        created = [
            await self.service.create(_request("09:00", "10:00"), "T1"),
            await self.service.create(_request("10:00", "11:00"), "T2"),
            await self.service.create(_request("09:00", "10:00", facility_id="F2"), "T3"),
            await self.service.create(_request("09:30", "10:30", day="2025-06-11"), "T4"),
        ]

        self.assertEqual(len(self.service.snapshot), 4)
        self.assertEqual(len({record.reservation_id for record in created}), 4)
        self.assertEqual(len(await self.store.list_all(RESERVATIONS)), 4)

    async def test_overlap_on_same_facility_and_date_is_rejected(self) -> None:
        first = await self.service.create(_request("09:00", "10:00"), "T1")

        with self.assertRaises(ConflictError) as context:
            await self.service.create(_request("09:30", "10:30"), "T2")

        self.assertEqual([item.reservation_id for item in context.exception.conflicts], [first.reservation_id])
        self.assertEqual(len(self.service.snapshot), 1)
        self.assertEqual(len(await self.store.list_all(RESERVATIONS)), 1)

    async def test_touching_boundaries_do_not_conflict(self) -> None:
        await self.service.create(_request("09:00", "10:00"), "T1")
        second = await self.service.create(_request("10:00", "11:00"), "T2")

        self.assertEqual(second.time_range.start, time(10, 0))

    async def test_stores_owner_token_verbatim(self) -> None:
        created = await self.service.create(_request(), " Emp 42 ")
        stored = await self.store.get_by_id(RESERVATIONS, created.reservation_id)

        self.assertEqual(created.owner_token, " Emp 42 ")
        self.assertIsNotNone(stored)
        self.assertEqual(stored["employeeID"], " Emp 42 ")
        self.assertEqual(stored["date"], "2025-06-10")

    async def test_past_date_rejected_but_today_allowed_at_any_time(self) -> None:
        self.now = datetime(2025, 6, 10, 23, 59)

        with self.assertRaises(ValidationError):
            await self.service.create(_request(day="2025-06-09"), "T1")

        created = await self.service.create(_request("08:00", "09:00", day="2025-06-10"), "T1")
        self.assertEqual(created.date, date(2025, 6, 10))

    async def test_invalid_input_never_mutates_state(self) -> None:
        invalid = [
            _request(attendees=0),
            _request(attendees="many"),
            _request(organizer="   "),
            _request(facility_id="Nowhere"),
            _request(start="10:00", end="09:00"),
            _request(day=None),
            _request(day="06/10/2025"),
        ]
        for request in invalid:
            with self.assertRaises(ValidationError):
                await self.service.create(request, "T1")

        with self.assertRaises(ValidationError):
            await self.service.create(_request(), "")

        self.assertEqual(self.service.snapshot, ())
        self.assertEqual(await self.store.list_all(RESERVATIONS), [])
        self.assertEqual(self.events.events, [])

    async def test_store_failure_propagates_and_leaves_snapshot(self) -> None:
        service = ReservationService(FailingInsertStore(), self.registry, clock=lambda: self.now)

        with self.assertRaises(StoreError):
            await service.create(_request(), "T1")

        self.assertEqual(service.snapshot, ())

    async def test_concurrent_creates_against_stale_snapshot_both_succeed(self) -> None:
        first, second = await asyncio.gather(
            self.service.create(_request("09:00", "10:00"), "T1"),
            self.service.create(_request("09:30", "10:30"), "T2"),
        )

        self.assertNotEqual(first.reservation_id, second.reservation_id)
        self.assertEqual(len(self.service.snapshot), 2)
        self.assertEqual(len(await self.store.list_all(RESERVATIONS)), 2)

        with self.assertRaises(ConflictError) as context:
            await self.service.create(_request("09:45", "09:50"), "T3")
        self.assertEqual(len(context.exception.conflicts), 2)


class TestUpdate(ServiceTestCase):
    async def test_shrinking_or_shifting_own_range_does_not_conflict_with_itself(self) -> None:
        created = await self.service.create(_request("09:00", "11:00"), "T1")

        shrunk = await self.service.update(created.reservation_id, _request("09:30", "10:00"), "T1")
        shifted = await self.service.update(created.reservation_id, _request("10:30", "11:30"), "T1")

        self.assertEqual(str(shrunk.time_range), "09:30-10:00")
        self.assertEqual(str(shifted.time_range), "10:30-11:30")
        self.assertEqual(len(self.service.snapshot), 1)
        stored = await self.store.get_by_id(RESERVATIONS, created.reservation_id)
        self.assertEqual(stored["timeStart"], "10:30")

    async def test_update_conflicting_with_another_reservation_is_rejected(self) -> None:
        first = await self.service.create(_request("09:00", "10:00"), "T1")
        await self.service.create(_request("10:00", "11:00"), "T2")

        with self.assertRaises(ConflictError):
            await self.service.update(first.reservation_id, _request("09:00", "10:30"), "T1")

        self.assertEqual(self.service.get(first.reservation_id), first)

    async def test_wrong_token_fails_and_leaves_reservation_unchanged(self) -> None:
        created = await self.service.create(_request(), "T1")

        for token in ["T2", "", "t1", "T1 "]:
            with self.assertRaises(AuthorizationError):
                await self.service.update(created.reservation_id, _request("12:00", "13:00"), token)

        self.assertEqual(self.service.get(created.reservation_id), created)
        stored = await self.store.get_by_id(RESERVATIONS, created.reservation_id)
        self.assertEqual(stored["timeStart"], "09:00")

    async def test_update_keeps_date_and_owner_token(self) -> None:
        created = await self.service.create(_request(), "T1")

        updated = await self.service.update(
            created.reservation_id,
            _request("13:00", "14:00", facility_id="F2", day=None, attendees="5", organizer="Bob"),
            "T1",
        )

        self.assertEqual(updated.date, created.date)
        self.assertEqual(updated.owner_token, "T1")
        self.assertEqual(updated.facility_id, "F2")
        self.assertEqual(updated.attendee_count, 5)
        self.assertEqual(updated.organizer_name, "Bob")

    async def test_changing_the_date_is_rejected(self) -> None:
        created = await self.service.create(_request(), "T1")

        with self.assertRaises(ValidationError):
            await self.service.update(created.reservation_id, _request(day="2025-06-11"), "T1")

    async def test_missing_reservation_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.update("missing", _request(), "T1")

    async def test_update_against_removed_facility_is_rejected(self) -> None:
        created = await self.service.create(_request(), "T1")
        await self.registry.remove("F1", "ADMIN")

        self.assertEqual(self.service.index().reservations_on("2025-06-10"), [created])
        with self.assertRaises(ValidationError):
            await self.service.update(created.reservation_id, _request("11:00", "12:00"), "T1")

    async def test_update_racing_a_delete_does_not_restore_the_reservation(self) -> None:
        created = await self.service.create(_request(), "T1")

        results = await asyncio.gather(
            self.service.delete(created.reservation_id, "T1"),
            self.service.update(created.reservation_id, _request("11:00", "12:00"), "T1"),
            return_exceptions=True,
        )

        self.assertIsNone(results[0])
        self.assertIsInstance(results[1], StoreError)
        self.assertEqual(self.service.snapshot, ())
        self.assertEqual(await self.store.list_all(RESERVATIONS), [])


class TestDelete(ServiceTestCase):
    async def test_create_then_delete_round_trip(self) -> None:
        created = await self.service.create(_request(), "T1")

        self.assertEqual(self.service.index().reservations_on("2025-06-10", "all").count(created), 1)

        await self.service.delete(created.reservation_id, "T1")

        self.assertEqual(self.service.index().reservations_on("2025-06-10", "all"), [])
        self.assertIsNone(await self.store.get_by_id(RESERVATIONS, created.reservation_id))

    async def test_wrong_token_cannot_delete(self) -> None:
        created = await self.service.create(_request(), "T1")

        with self.assertRaises(AuthorizationError):
            await self.service.delete(created.reservation_id, "T2")

        self.assertEqual(self.service.snapshot, (created,))

    async def test_missing_reservation_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            await self.service.delete("missing", "T1")


class TestBookingScenario(ServiceTestCase):
    async def test_create_conflict_update_and_delete_flow(self) -> None:
        first = await self.service.create(_request("09:00", "10:00", attendees=2, organizer="Alice"), "T1")

        with self.assertRaises(ConflictError) as context:
            await self.service.create(_request("09:30", "10:30"), "T2")
        self.assertEqual(context.exception.conflicts[0].reservation_id, first.reservation_id)

        moved = await self.service.update(first.reservation_id, _request("10:00", "11:00"), "T1")
        self.assertEqual(str(moved.time_range), "10:00-11:00")

        with self.assertRaises(AuthorizationError):
            await self.service.delete(first.reservation_id, "T2")

        await self.service.delete(first.reservation_id, "T1")
        self.assertEqual(self.service.index().reservations_on("2025-06-10", "all"), [])

        event_types = [event_type for event_type, _ in self.events.events]
        self.assertEqual(event_types, ["RESERVATION_CREATED", "RESERVATION_UPDATED", "RESERVATION_DELETED"])
        self.assertTrue(all("T1" not in str(payload.values()) for _, payload in self.events.events))


class TestRefresh(ServiceTestCase):
    async def test_refresh_loads_documents_and_skips_malformed_rows(self) -> None:
        await self.store.set_by_id(
            RESERVATIONS,
            "good",
            {
                "date": "2025-06-12",
                "timeStart": "09:00",
                "timeEnd": "10:00",
                "facility": "F1",
                "attendees": 3,
                "organizer": "Carol",
                "employeeID": "T9",
            },
        )
        await self.store.set_by_id(RESERVATIONS, "broken", {"date": "2025-06-12", "timeStart": "10:00"})

        loaded = await self.service.refresh()

        self.assertEqual([record.reservation_id for record in loaded], ["good"])
        self.assertEqual(self.events.events[0][0], "RESERVATION_SKIPPED")
        self.assertEqual(self.events.events[0][1]["reservation_id"], "broken")

    async def test_refresh_skips_rows_with_non_positive_attendees(self) -> None:
        row = {
            "date": "2025-06-12",
            "timeStart": "09:00",
            "timeEnd": "10:00",
            "facility": "F1",
            "organizer": "Carol",
            "employeeID": "T9",
        }
        await self.store.set_by_id(RESERVATIONS, "zero", {**row, "attendees": 0})
        await self.store.set_by_id(RESERVATIONS, "negative", {**row, "attendees": -2, "timeStart": "11:00", "timeEnd": "12:00"})
        await self.store.set_by_id(RESERVATIONS, "unset", {**row, "timeStart": "13:00", "timeEnd": "14:00"})

        loaded = await self.service.refresh()

        self.assertEqual([(record.reservation_id, record.attendee_count) for record in loaded], [("unset", 1)])
        skipped = [payload["reservation_id"] for event_type, payload in self.events.events if event_type == "RESERVATION_SKIPPED"]
        self.assertEqual(sorted(skipped), ["negative", "zero"])


class TestEventJournalFailure(ServiceTestCase):
    async def test_committed_changes_survive_a_failing_journal(self) -> None:
        service = ReservationService(self.store, self.registry, clock=lambda: self.now, event_log=FailingEventLog())

        with self.assertWarns(RuntimeWarning):
            created = await service.create(_request(), "T1")

        self.assertEqual(service.snapshot, (created,))
        stored = await self.store.get_by_id(RESERVATIONS, created.reservation_id)
        self.assertEqual(stored["employeeID"], "T1")

        with self.assertWarns(RuntimeWarning):
            moved = await service.update(created.reservation_id, _request("10:00", "11:00"), "T1")
        self.assertEqual(service.get(created.reservation_id), moved)

        with self.assertWarns(RuntimeWarning):
            await service.delete(created.reservation_id, "T1")
        self.assertEqual(service.snapshot, ())
        self.assertEqual(await self.store.list_all(RESERVATIONS), [])


if __name__ == "__main__":
    unittest.main()
