from .booking import Reservation, TimeRange, find_conflicts, has_time_overlap, is_available, parse_attendee_count
from .bootstrap import open_calendar
from .calendar_index import CalendarIndex, DayCell, UpcomingReservations, is_bookable_day, month_grid, shift_month
from .errors import (
	AuthorizationError,
	ConflictError,
	NotFoundError,
	ReservationError,
	StoreError,
	ValidationError,
)
from .facilities import AdminDirectory, Facility, FacilityRegistry, color_key, facility_id_for
from .service import ReservationRequest, ReservationService
from .settings import CalendarSettings, load_settings
from .store import DocumentStore, InMemoryDocumentStore
from .yaml_store import YamlDocumentStore, YamlEventLog

__all__ = [
	"Reservation",
	"TimeRange",
	"find_conflicts",
	"has_time_overlap",
	"is_available",
	"parse_attendee_count",
	"open_calendar",
	"CalendarIndex",
	"DayCell",
	"UpcomingReservations",
	"is_bookable_day",
	"month_grid",
	"shift_month",
	"AuthorizationError",
	"ConflictError",
	"NotFoundError",
	"ReservationError",
	"StoreError",
	"ValidationError",
	"AdminDirectory",
	"Facility",
	"FacilityRegistry",
	"color_key",
	"facility_id_for",
	"ReservationRequest",
	"ReservationService",
	"CalendarSettings",
	"load_settings",
	"DocumentStore",
	"InMemoryDocumentStore",
	"YamlDocumentStore",
	"YamlEventLog",
]
