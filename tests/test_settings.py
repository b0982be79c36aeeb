import tempfile
import unittest
from pathlib import Path

from facility_calendar import CalendarSettings, ValidationError, load_settings
from facility_calendar.facilities import DEFAULT_FACILITIES


class TestLoadSettings(unittest.TestCase):
    def test_missing_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            settings = load_settings(Path(temp_dir) / "calendar.yaml")

        self.assertEqual(settings, CalendarSettings())
        self.assertEqual(settings.facilities, DEFAULT_FACILITIES)
        self.assertEqual(settings.upcoming_limit, 5)

    def test_reads_values_relative_to_settings_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "calendar.yaml"
            path.write_text(
                "data_dir: bookings\n"
                "facilities:\n  - Board Room\n  - ' Studio '\n"
                "upcoming_limit: 3\n"
                "holiday_country: us\n"
                "seed_default_facilities: false\n",
                encoding="utf-8",
            )

            settings = load_settings(path)

            self.assertEqual(settings.data_dir, Path(temp_dir) / "bookings")
            self.assertEqual(settings.facilities, ("Board Room", "Studio"))
            self.assertEqual(settings.upcoming_limit, 3)
            self.assertEqual(settings.holiday_country, "US")
            self.assertFalse(settings.seed_default_facilities)

    def test_invalid_values_raise_validation_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "calendar.yaml"
            for body in ["upcoming_limit: 0\n", "upcoming_limit: lots\n", "facilities: Board Room\n", "- a\n- b\n", "key: [\n"]:
                path.write_text(body, encoding="utf-8")
                with self.assertRaises(ValidationError):
                    load_settings(path)


if __name__ == "__main__":
    unittest.main()
