from __future__ import annotations

from datetime import date, datetime, timezone
from types import SimpleNamespace
import unittest
from zoneinfo import ZoneInfo

from app.models import TaskStatus
from app.services.date_range import resolve_date_range
from app.services.scoring_calc import (
    AttendanceTally,
    TaskTally,
    calculate_attendance_score,
    calculate_overall_score,
    calculate_task_score,
    collapse_daily_checkins,
    count_expected_days,
    display_score,
    is_completed_on_time,
    score_employee,
    tally_attendance,
)

UTC = ZoneInfo("UTC")
ISTANBUL = ZoneInfo("Europe/Istanbul")
WEEKDAYS = frozenset({1, 2, 3, 4, 5})


def _record(user_id: int, clock_in: datetime | None, late: bool | None = False) -> SimpleNamespace:
    return SimpleNamespace(user_id=user_id, clock_in_time=clock_in, is_late_arrival=late)


class ScoringCalcTests(unittest.TestCase):
    def test_expected_days_counts_configured_weekdays(self) -> None:
        self.assertEqual(count_expected_days(date(2026, 3, 1), date(2026, 3, 31), WEEKDAYS), 22)
        self.assertEqual(count_expected_days(date(2026, 3, 1), date(2026, 3, 31), {6, 7}), 9)
        self.assertEqual(count_expected_days(date(2026, 3, 1), date(2026, 3, 31), set()), 0)
        self.assertEqual(count_expected_days(date(2026, 3, 31), date(2026, 3, 1), WEEKDAYS), 0)

    def test_attendance_scenario_present_twenty_of_twenty_two_with_two_late(self) -> None:
        score = calculate_attendance_score(present_days=20, late_days=2, expected_days=22, late_penalty=5)

        self.assertAlmostEqual(score, 20 / 22 * 100 - 10)
        self.assertEqual(display_score(score), 81)

    def test_task_scenario_three_of_five_on_time(self) -> None:
        self.assertEqual(calculate_task_score(due_total=5, completed_on_time=3), 60.0)

    def test_overall_scenario_weighted_forty_sixty(self) -> None:
        overall = calculate_overall_score(attendance_score=81, task_score=60, attendance_weight=40, task_weight=60)

        self.assertAlmostEqual(overall, 68.4)
        self.assertEqual(display_score(overall), 68)

    def test_scores_are_clamped_to_percentage_bounds(self) -> None:
        self.assertEqual(calculate_attendance_score(present_days=30, late_days=0, expected_days=22), 100.0)
        self.assertEqual(calculate_attendance_score(present_days=5, late_days=10, expected_days=22), 0.0)
        self.assertEqual(calculate_task_score(due_total=2, completed_on_time=5), 100.0)

    def test_zero_denominators_score_zero(self) -> None:
        self.assertEqual(calculate_attendance_score(present_days=3, late_days=0, expected_days=0), 0.0)
        self.assertEqual(calculate_task_score(due_total=0, completed_on_time=0), 0.0)
        self.assertEqual(
            calculate_overall_score(attendance_score=90, task_score=90, attendance_weight=0, task_weight=0),
            0.0,
        )

    def test_overall_is_reproducible_from_inputs_and_weights(self) -> None:
        overall = calculate_overall_score(attendance_score=50, task_score=100, attendance_weight=1, task_weight=3)

        self.assertAlmostEqual(overall, (50 * 1 + 100 * 3) / 4)

    def test_display_score_rounds_half_up(self) -> None:
        self.assertEqual(display_score(68.5), 69)
        self.assertEqual(display_score(68.49), 68)
        self.assertEqual(display_score(None), 0)
        self.assertEqual(display_score(float("nan")), 0)

    def test_collapse_keeps_latest_checkin_per_local_day(self) -> None:
        records = [
            _record(1, datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc), late=False),
            _record(1, datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc), late=True),
            _record(1, datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc), late=False),
            _record(2, datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc), late=True),
        ]

        collapsed = collapse_daily_checkins(records, UTC)

        self.assertEqual(
            [(item.user_id, item.day, item.is_late) for item in collapsed],
            [
                (1, date(2026, 3, 2), True),
                (1, date(2026, 3, 3), False),
                (2, date(2026, 3, 2), True),
            ],
        )

    def test_collapse_groups_by_company_local_day(self) -> None:
        # 22:30 UTC on March 1 and 08:00 UTC on March 2 are the same Istanbul day.
        records = [
            _record(1, datetime(2026, 3, 1, 22, 30, tzinfo=timezone.utc), late=False),
            _record(1, datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc), late=True),
        ]

        self.assertEqual(len(collapse_daily_checkins(records, UTC)), 2)
        collapsed = collapse_daily_checkins(records, ISTANBUL)
        self.assertEqual(len(collapsed), 1)
        self.assertEqual(collapsed[0].day, date(2026, 3, 2))
        self.assertTrue(collapsed[0].is_late)

    def test_collapse_rejects_record_without_clock_in(self) -> None:
        with self.assertRaises(ValueError):
            collapse_daily_checkins([_record(1, None)], UTC)

    def test_tally_attendance_ignores_days_outside_window(self) -> None:
        window = resolve_date_range(UTC, start_date=date(2026, 3, 2), end_date=date(2026, 3, 2))
        checkins = collapse_daily_checkins(
            [
                _record(1, datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc), late=True),
                _record(1, datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc), late=True),
            ],
            UTC,
        )

        tally = tally_attendance(checkins, window)

        self.assertEqual(tally, AttendanceTally(present_days=1, late_days=1))
        self.assertEqual(tally.on_time_days, 0)

    def test_completed_on_time_requires_completion_by_due_date(self) -> None:
        due = datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc)

        self.assertTrue(is_completed_on_time(TaskStatus.COMPLETED, datetime(2026, 3, 10, 17, 0), due))
        self.assertFalse(is_completed_on_time(TaskStatus.COMPLETED, datetime(2026, 3, 11, tzinfo=timezone.utc), due))
        self.assertFalse(is_completed_on_time(TaskStatus.OPEN, datetime(2026, 3, 9, tzinfo=timezone.utc), due))
        self.assertFalse(is_completed_on_time("COMPLETED", None, due))

    def test_score_employee_reproduces_full_scenario(self) -> None:
        result = score_employee(
            user_id=7,
            attendance=AttendanceTally(present_days=20, late_days=2),
            tasks=TaskTally(due_total=5, completed_on_time=3),
            expected_days=22,
            attendance_weight=40,
            task_weight=60,
            late_penalty=5,
        )

        self.assertEqual(result.display_attendance, 81)
        self.assertEqual(result.display_task, 60)
        self.assertEqual(result.display_overall, 68)
        for value in (result.attendance_score, result.task_score, result.overall_score):
            self.assertGreaterEqual(value, 0)
            self.assertLessEqual(value, 100)


if __name__ == "__main__":
    unittest.main()
