from __future__ import annotations

from datetime import date, datetime, timezone
import unittest
from zoneinfo import ZoneInfo

from app.services.date_range import local_day, local_today, resolve_date_range

ISTANBUL = ZoneInfo("Europe/Istanbul")
UTC = ZoneInfo("UTC")


class DateRangeTests(unittest.TestCase):
    def test_default_window_ends_on_local_today(self) -> None:
        # 23:30 UTC is already the next calendar day in Istanbul (UTC+3).
        now_utc = datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)

        window = resolve_date_range(ISTANBUL, now_utc=now_utc)

        self.assertEqual(window.end_date, date(2026, 3, 3))
        self.assertEqual(window.start_date, date(2026, 2, 2))
        self.assertEqual(window.days, 30)

    def test_explicit_bounds_override_independently(self) -> None:
        now_utc = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)

        start_only = resolve_date_range(UTC, start_date=date(2026, 3, 10), now_utc=now_utc)
        end_only = resolve_date_range(UTC, end_date=date(2026, 3, 30), default_days=7, now_utc=now_utc)

        self.assertEqual((start_only.start_date, start_only.end_date), (date(2026, 3, 10), date(2026, 3, 31)))
        self.assertEqual((end_only.start_date, end_only.end_date), (date(2026, 3, 25), date(2026, 3, 30)))

    def test_reversed_bounds_are_swapped(self) -> None:
        window = resolve_date_range(UTC, start_date=date(2026, 3, 20), end_date=date(2026, 3, 1))

        self.assertEqual(window.start_date, date(2026, 3, 1))
        self.assertEqual(window.end_date, date(2026, 3, 20))
        self.assertEqual(len(list(window.iter_days())), 20)

    def test_utc_bounds_follow_company_timezone(self) -> None:
        window = resolve_date_range(ISTANBUL, start_date=date(2026, 3, 1), end_date=date(2026, 3, 1))

        start_utc, end_utc = window.utc_bounds()

        self.assertEqual(start_utc, datetime(2026, 2, 28, 21, 0, tzinfo=timezone.utc))
        self.assertEqual(end_utc, datetime(2026, 3, 1, 21, 0, tzinfo=timezone.utc))

    def test_local_day_treats_naive_values_as_utc(self) -> None:
        self.assertEqual(local_day(datetime(2026, 3, 1, 22, 30), ISTANBUL), date(2026, 3, 2))
        self.assertIsNone(local_day(None, ISTANBUL))
        self.assertEqual(
            local_today(UTC, datetime(2026, 3, 1, 22, 30, tzinfo=timezone.utc)),
            date(2026, 3, 1),
        )


if __name__ == "__main__":
    unittest.main()
