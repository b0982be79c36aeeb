from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from facility_calendar import ReservationRequest, ReservationService, load_settings, open_calendar
from facility_calendar.calendar_index import ALL_FACILITIES

mcp = FastMCP(
    "Facility Calendar MCP Server",
    instructions="Expose facility reservations and booking commands from the facility_calendar project.",
    json_response=True,
)

SETTINGS_FILE = Path(__file__).parent / "calendar.yaml"
_SERVICE: ReservationService | None = None


async def _service() -> ReservationService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = await open_calendar(load_settings(SETTINGS_FILE))
    return _SERVICE


@mcp.resource("calendar://facilities")
async def list_facilities() -> list[dict[str, str]]:
    """List bookable facilities with their display colours."""
    service = await _service()
    return [facility.to_dict() for facility in service.facilities.list()]


@mcp.tool()
async def reservations_on(date: str, facility: str = ALL_FACILITIES) -> list[dict[str, Any]]:
    """Return reservations on a YYYY-MM-DD date, optionally for one facility id."""
    service = await _service()
    return [record.to_public_dict() for record in service.index().reservations_on(date, facility)]


@mcp.tool()
async def upcoming_reservations(limit: int = 5, facility: str = ALL_FACILITIES) -> dict[str, Any]:
    """Return the next reservations that have not ended yet."""
    service = await _service()
    upcoming = service.index().upcoming(datetime.now(), limit, facility)
    return {"reservations": [record.to_public_dict() for record in upcoming.items], "remaining": upcoming.remaining}


@mcp.tool()
async def create_reservation(
    date: str,
    time_start: str,
    time_end: str,
    facility: str,
    organizer: str,
    employee_id: str,
    attendees: int = 1,
) -> dict[str, Any]:
    """Book a facility for a time range on one date."""
    service = await _service()
    request = ReservationRequest(
        date=date,
        time_start=time_start,
        time_end=time_end,
        facility_id=facility,
        attendee_count=attendees,
        organizer_name=organizer,
    )
    created = await service.create(request, employee_id)
    return created.to_public_dict()


@mcp.tool()
async def cancel_reservation(reservation_id: str, employee_id: str) -> dict[str, str]:
    """Delete a reservation; the employee ID must match the one used to book it."""
    service = await _service()
    await service.delete(reservation_id, employee_id)
    return {"id": reservation_id, "status": "deleted"}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
