from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta
from pathlib import Path
import sys
import traceback

WORKSPACE_ROOT = Path(__file__).resolve().parent.parent
if str(WORKSPACE_ROOT) not in sys.path:
    sys.path.insert(0, str(WORKSPACE_ROOT))

from facility_calendar import (  # noqa: E402
    CalendarSettings,
    ConflictError,
    Reservation,
    ReservationRequest,
    TimeRange,
    has_time_overlap,
    open_calendar,
)


async def run(data_dir: Path) -> int:
    print("[INFO] Facility Calendar Quick Check")
    service = await open_calendar(CalendarSettings(data_dir=data_dir))
    print(f"[OK] Facilities loaded: {len(service.facilities)}")
    print(f"[OK] Reservations loaded: {len(service.snapshot)}")

    facility = service.facilities.list()[0]
    day = date.today() + timedelta(days=1)
    booked = service.index().reservations_on(day, facility.facility_id)
    free_hour = next(
        (hour for hour in range(8, 22) if not any(_covers_hour(record, hour) for record in booked)),
        None,
    )
    if free_hour is None:
        print(f"[ERROR] No free hour left on {day.isoformat()} for {facility.display_name}.")
        return 1

    request = ReservationRequest(
        date=day,
        time_start=f"{free_hour:02d}:00",
        time_end=f"{free_hour + 1:02d}:00",
        facility_id=facility.facility_id,
        attendee_count=2,
        organizer_name="Quick Check",
    )

    created = await service.create(request, "quickcheck")
    print(f"[OK] Reserved: {created.facility_id} {created.date.isoformat()} {created.time_range}")

    try:
        await service.create(request, "someone-else")
        print("[ERROR] Overlapping reservation was accepted.")
        return 1
    except ConflictError as error:
        print(f"[OK] Overlap rejected: {error}")

    upcoming = service.index().upcoming(datetime.now(), limit=5)
    print(f"[OK] Upcoming reservations shown: {len(upcoming.items)} (+{upcoming.remaining} more)")

    await service.delete(created.reservation_id, "quickcheck")
    print("[OK] Quick check reservation deleted")
    print(f"[OK] Data directory: {data_dir.resolve()}")
    print("[DONE] Quick check completed successfully.")
    return 0


def _covers_hour(record: Reservation, hour: int) -> bool:
    return has_time_overlap(record.time_range, TimeRange(time(hour, 0), time(hour + 1, 0)))


def main() -> int:
    return asyncio.run(run(Path("data")))


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
