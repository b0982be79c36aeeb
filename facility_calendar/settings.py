from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .calendar_index import DEFAULT_UPCOMING_LIMIT
from .errors import ValidationError
from .facilities import DEFAULT_FACILITIES

DEFAULT_SETTINGS_FILE = "calendar.yaml"


@dataclass(frozen=True)
class CalendarSettings:
    data_dir: Path = Path("data")
    facilities: tuple[str, ...] = field(default=DEFAULT_FACILITIES)
    upcoming_limit: int = DEFAULT_UPCOMING_LIMIT
    holiday_country: str | None = None
    seed_default_facilities: bool = True

    @staticmethod
    def from_dict(data: dict[str, Any], base_dir: Path | None = None) -> "CalendarSettings":
        defaults = CalendarSettings()

        data_dir = Path(str(data.get("data_dir", defaults.data_dir)))
        if base_dir is not None and not data_dir.is_absolute():
            data_dir = base_dir / data_dir

        facilities = data.get("facilities", list(defaults.facilities))
        if not isinstance(facilities, list) or not all(isinstance(name, str) and name.strip() for name in facilities):
            raise ValidationError("settings.facilities must be a list of non-empty names")

        try:
            upcoming_limit = int(data.get("upcoming_limit", defaults.upcoming_limit))
        except (TypeError, ValueError) as error:
            raise ValidationError("settings.upcoming_limit must be an integer") from error
        if upcoming_limit <= 0:
            raise ValidationError("settings.upcoming_limit must be greater than zero")

        holiday_country = data.get("holiday_country")
        return CalendarSettings(
            data_dir=data_dir,
            facilities=tuple(name.strip() for name in facilities),
            upcoming_limit=upcoming_limit,
            holiday_country=str(holiday_country).upper() if holiday_country else None,
            seed_default_facilities=bool(data.get("seed_default_facilities", defaults.seed_default_facilities)),
        )


def load_settings(path: str | Path | None = None) -> CalendarSettings:
    settings_path = Path(path) if path is not None else Path(DEFAULT_SETTINGS_FILE)
    try:
        payload = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return CalendarSettings()
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
        raise ValidationError(f"Failed to read settings file: {settings_path}") from error

    if payload is None:
        return CalendarSettings()
    if not isinstance(payload, dict):
        raise ValidationError(f"Settings file must contain a mapping: {settings_path}")
    return CalendarSettings.from_dict(payload, base_dir=settings_path.parent)
