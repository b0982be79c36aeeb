from __future__ import annotations

from datetime import datetime
from typing import Callable

from .facilities import AdminDirectory, FacilityRegistry
from .service import ReservationService
from .settings import CalendarSettings
from .yaml_store import YamlDocumentStore


async def open_calendar(
    settings: CalendarSettings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ReservationService:
    """Wire a YAML-backed service and load facilities and reservations from disk."""
    settings = settings or CalendarSettings()
    store = YamlDocumentStore(settings.data_dir)
    registry = FacilityRegistry(store, AdminDirectory(store), event_log=store.event_log)
    await registry.load(seed_defaults=settings.seed_default_facilities, defaults=settings.facilities)

    service = ReservationService(store, registry, clock=clock, event_log=store.event_log)
    await service.refresh()
    return service
