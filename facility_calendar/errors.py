from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .booking import Reservation


class ReservationError(Exception):
    """Base class for recoverable reservation/facility errors."""


class ValidationError(ReservationError, ValueError):
    pass


class ConflictError(ReservationError, ValueError):
    def __init__(self, conflicts: Sequence["Reservation"], message: str | None = None) -> None:
        self.conflicts: tuple["Reservation", ...] = tuple(conflicts)
        if message is None:
            described = ", ".join(
                f"{item.facility_id} {item.date.isoformat()} {item.time_range}" for item in self.conflicts
            )
            message = f"This time slot is already booked for the selected facility ({described})."
        super().__init__(message)


class AuthorizationError(ReservationError, PermissionError):
    def __init__(self, message: str = "Employee ID does not match.") -> None:
        super().__init__(message)


class NotFoundError(ReservationError, LookupError):
    pass


class StoreError(RuntimeError):
    pass
