from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .booking import Reservation
from .bootstrap import open_calendar
from .calendar_index import ALL_FACILITIES, WEEKDAY_HEADERS, is_bookable_day, month_grid, shift_month
from .errors import AuthorizationError, ConflictError, NotFoundError, ReservationError, StoreError, ValidationError
from .facilities import FALLBACK_COLOR
from .service import ReservationRequest
from .settings import CalendarSettings


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    settings: CalendarSettings | None = None,
) -> Flask:
    app = Flask(__name__)
    settings = settings or CalendarSettings()
    if data_dir is not None:
        settings = replace(settings, data_dir=Path(data_dir))
    clock: Callable[[], datetime] = now_provider or datetime.now
    service = asyncio.run(open_calendar(settings, clock))
    registry = service.facilities

    def _serialize_reservation(record: Reservation) -> dict[str, Any]:
        facility = registry.get(record.facility_id)
        return {
            **record.to_public_dict(),
            "facility_name": facility.display_name if facility else record.facility_id,
            "color": facility.color_key if facility else FALLBACK_COLOR,
        }

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(ReservationError)
    def handle_reservation_error(error: ReservationError) -> Any:
        if isinstance(error, ConflictError):
            return (
                jsonify(
                    {
                        "ok": False,
                        "message": str(error),
                        "conflicts": [_serialize_reservation(record) for record in error.conflicts],
                    }
                ),
                409,
            )
        status = 400
        if isinstance(error, AuthorizationError):
            status = 403
        elif isinstance(error, NotFoundError):
            status = 404
        return jsonify({"ok": False, "message": str(error)}), status

    @app.errorhandler(StoreError)
    def handle_store_error(error: StoreError) -> Any:
        return jsonify({"ok": False, "message": "Error saving reservation. Please try again."}), 503

    @app.get("/api/facilities")
    async def list_facilities() -> Any:
        return jsonify({"ok": True, "facilities": [facility.to_dict() for facility in registry.list()]})

    @app.post("/api/facilities")
    async def add_facility() -> Any:
        payload = _json_payload()
        facility = await registry.add(str(payload.get("name", "")), str(payload.get("token", "")))
        return jsonify({"ok": True, "facility": facility.to_dict()}), 201

    @app.post("/api/facilities/rename")
    async def rename_facility() -> Any:
        payload = _json_payload()
        facility = await registry.rename(
            _require_text(payload, "facility_id"),
            str(payload.get("name", "")),
            str(payload.get("token", "")),
        )
        return jsonify({"ok": True, "facility": facility.to_dict()})

    @app.post("/api/facilities/delete")
    async def remove_facility() -> Any:
        payload = _json_payload()
        facility_id = _require_text(payload, "facility_id")
        await registry.remove(facility_id, str(payload.get("token", "")))
        return jsonify({"ok": True, "facility_id": facility_id})

    @app.get("/api/calendar")
    async def get_calendar() -> Any:
        now = clock()
        year, month = _parse_month(request.args.get("month"), now)
        facility_filter = str(request.args.get("facility", ALL_FACILITIES))
        index = service.index()

        cells = []
        for cell in month_grid(year, month, settings.holiday_country, today=now.date()):
            cells.append(
                {
                    "date": cell.day.isoformat(),
                    "in_month": cell.in_month,
                    "is_today": cell.is_today,
                    "holiday": cell.holiday,
                    "bookable": is_bookable_day(cell.day, now),
                    "reservations": [
                        _serialize_reservation(record) for record in index.reservations_on(cell.day, facility_filter)
                    ],
                }
            )

        return jsonify(
            {
                "ok": True,
                "month": f"{year:04d}-{month:02d}",
                "previous": "{:04d}-{:02d}".format(*shift_month(year, month, -1)),
                "next": "{:04d}-{:02d}".format(*shift_month(year, month, 1)),
                "weekdays": list(WEEKDAY_HEADERS),
                "cells": cells,
            }
        )

    @app.get("/api/reservations")
    async def get_reservations() -> Any:
        day = str(request.args.get("date", "")).strip()
        if not day:
            raise ValidationError("date is required.")
        facility_filter = str(request.args.get("facility", ALL_FACILITIES))
        records = service.index().reservations_on(day, facility_filter)
        return jsonify({"ok": True, "date": day, "reservations": [_serialize_reservation(record) for record in records]})

    @app.get("/api/upcoming")
    async def get_upcoming() -> Any:
        try:
            limit = int(request.args.get("limit", settings.upcoming_limit))
        except ValueError as error:
            raise ValidationError("limit must be an integer.") from error
        if limit < 0:
            raise ValidationError("limit must not be negative.")
        facility_filter = str(request.args.get("facility", ALL_FACILITIES))

        upcoming = service.index().upcoming(clock(), limit, facility_filter)
        return jsonify(
            {
                "ok": True,
                "reservations": [_serialize_reservation(record) for record in upcoming.items],
                "remaining": upcoming.remaining,
            }
        )

    @app.post("/api/reservations")
    async def create_reservation() -> Any:
        payload = _json_payload()
        created = await service.create(ReservationRequest.from_dict(payload), str(payload.get("employeeID", "")))
        return jsonify({"ok": True, "reservation": _serialize_reservation(created)}), 201

    @app.post("/api/reservations/update")
    async def update_reservation() -> Any:
        payload = _json_payload()
        updated = await service.update(
            _require_text(payload, "id"),
            ReservationRequest.from_dict(payload),
            str(payload.get("employeeID", "")),
        )
        return jsonify({"ok": True, "reservation": _serialize_reservation(updated)})

    @app.post("/api/reservations/delete")
    async def delete_reservation() -> Any:
        payload = _json_payload()
        reservation_id = _require_text(payload, "id")
        await service.delete(reservation_id, str(payload.get("employeeID", "")))
        return jsonify({"ok": True, "id": reservation_id})

    return app


def _json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _require_text(payload: dict[str, Any], key: str) -> str:
    value = str(payload.get(key, "")).strip()
    if not value:
        raise ValidationError(f"{key} is required.")
    return value


def _parse_month(raw: str | None, now: datetime) -> tuple[int, int]:
    if not raw:
        return now.year, now.month
    try:
        parsed = datetime.strptime(raw.strip(), "%Y-%m")
    except ValueError as error:
        raise ValidationError(f"Invalid month: {raw!r} (expected YYYY-MM).") from error
    return parsed.year, parsed.month


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
