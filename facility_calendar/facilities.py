from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator
import hashlib

from .errors import AuthorizationError, NotFoundError, ValidationError
from .store import ADMIN, FACILITIES, DocumentStore
from .yaml_store import record_event

DEFAULT_FACILITY_COLORS: dict[str, str] = {
    "Activity Center A": "#4285F4",
    "Activity Center B": "#EA4335",
    "Conference Room 1": "#FBBC05",
    "Conference Room 2": "#34A853",
    "Conference Room 3": "#8E24AA",
    "Conference Room 4": "#FB8C00",
    "Conference Room 5": "#0097A7",
    "Conference Room 6": "#607D8B",
}
DEFAULT_FACILITIES: tuple[str, ...] = tuple(DEFAULT_FACILITY_COLORS)
FALLBACK_COLOR = "#9E9E9E"
_PALETTE: tuple[str, ...] = tuple(DEFAULT_FACILITY_COLORS.values())

ADMIN_TOKEN_FIELD = "employeeID"


@dataclass(frozen=True)
class Facility:
    facility_id: str
    display_name: str
    color_key: str

    @staticmethod
    def from_name(display_name: str) -> "Facility":
        name = _normalize_name(display_name)
        return Facility(facility_id=facility_id_for(name), display_name=name, color_key=color_key(name))

    def to_dict(self) -> dict[str, str]:
        return {"id": self.facility_id, "name": self.display_name, "color": self.color_key}


def facility_id_for(name: str) -> str:
    return "".join(name.split())


def color_key(display_name: str) -> str:
    name = display_name.strip()
    if not name:
        return FALLBACK_COLOR
    if name in DEFAULT_FACILITY_COLORS:
        return DEFAULT_FACILITY_COLORS[name]
    digest = hashlib.sha1(name.encode("utf-8")).digest()
    return _PALETTE[digest[0] % len(_PALETTE)]


class AdminDirectory:
    """Equality lookup of caller tokens against the ``admin`` collection.

    This is a cooperative-office convenience and not an authentication
    boundary: anyone who knows an admin employee ID passes.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def is_admin(self, token: str | None) -> bool:
        if not token:
            return False
        matches = await self.store.query_by_field(ADMIN, ADMIN_TOKEN_FIELD, token)
        return bool(matches)


class FacilityRegistry:
    def __init__(
        self,
        store: DocumentStore,
        admin_directory: AdminDirectory | None = None,
        event_log: Any = None,
    ) -> None:
        self.store = store
        self.admin_directory = admin_directory
        self.event_log = event_log
        self._facilities: dict[str, Facility] = {}

    def __contains__(self, facility_id: object) -> bool:
        return facility_id in self._facilities

    def __iter__(self) -> Iterator[Facility]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._facilities)

    def list(self) -> list[Facility]:
        return list(self._facilities.values())

    def get(self, facility_id: str) -> Facility | None:
        return self._facilities.get(facility_id)

    async def load(self, seed_defaults: bool = False, defaults: tuple[str, ...] = DEFAULT_FACILITIES) -> list[Facility]:
        rows = await self.store.list_all(FACILITIES)
        loaded: dict[str, Facility] = {}
        for row in rows:
            name = str(row.get("name") or "").strip()
            if not name:
                continue
            facility = Facility(facility_id=str(row["id"]), display_name=name, color_key=color_key(name))
            loaded[facility.facility_id] = facility

        if not loaded and seed_defaults:
            for name in defaults:
                facility = Facility.from_name(name)
                if facility.facility_id in loaded:
                    continue
                await self.store.set_by_id(FACILITIES, facility.facility_id, {"name": facility.display_name})
                loaded[facility.facility_id] = facility
            self._record("FACILITIES_SEEDED", {"count": len(loaded)})

        self._facilities = loaded
        return self.list()

    async def add(self, name: str, caller_token: str) -> Facility:
        await self._require_admin(caller_token)
        facility = Facility.from_name(name)
        if facility.facility_id in self._facilities:
            raise ValidationError(f"Facility already exists: {facility.display_name}")
        existing = await self.store.get_by_id(FACILITIES, facility.facility_id)
        if existing is not None:
            raise ValidationError(f"Facility already exists: {facility.display_name}")

        await self.store.set_by_id(FACILITIES, facility.facility_id, {"name": facility.display_name})
        self._facilities = {**self._facilities, facility.facility_id: facility}
        self._record("FACILITY_ADDED", {"facility_id": facility.facility_id, "name": facility.display_name})
        return facility

    async def rename(self, facility_id: str, new_name: str, caller_token: str) -> Facility:
        await self._require_admin(caller_token)
        current = self._facilities.get(facility_id)
        if current is None:
            raise NotFoundError(f"Facility not found: {facility_id}")
        name = _normalize_name(new_name)

        await self.store.update_by_id(FACILITIES, facility_id, {"name": name})
        renamed = Facility(facility_id=facility_id, display_name=name, color_key=color_key(name))
        self._facilities = {**self._facilities, facility_id: renamed}
        self._record(
            "FACILITY_RENAMED",
            {"facility_id": facility_id, "from": current.display_name, "to": name},
        )
        return renamed

    async def remove(self, facility_id: str, caller_token: str) -> None:
        """Remove a facility. Its reservations are left in place as orphans."""
        await self._require_admin(caller_token)
        if facility_id not in self._facilities:
            raise NotFoundError(f"Facility not found: {facility_id}")

        await self.store.delete_by_id(FACILITIES, facility_id)
        self._facilities = {key: value for key, value in self._facilities.items() if key != facility_id}
        self._record("FACILITY_REMOVED", {"facility_id": facility_id})

    async def _require_admin(self, caller_token: str) -> None:
        if self.admin_directory is None or not await self.admin_directory.is_admin(caller_token):
            raise AuthorizationError("Not authorized to manage facilities.")

    def _record(self, event_type: str, payload: dict[str, Any]) -> None:
        record_event(self.event_log, event_type, payload)


def _normalize_name(name: str | None) -> str:
    if name is None:
        raise ValidationError("Facility name is required.")

    normalized = " ".join(name.split())
    if not normalized:
        raise ValidationError("Facility name is required.")
    return normalized
