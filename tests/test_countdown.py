import unittest
from datetime import datetime, timedelta, timezone

from studenttracker.core.countdown import CountdownState, compute_countdown, countdowns_for, parse_due, sort_reminders


NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


class CountdownTests(unittest.TestCase):
    def test_days_hours_minutes(self):
        due = NOW + timedelta(days=2, hours=3, minutes=5)
        self.assertEqual(compute_countdown(due, NOW), CountdownState(days=2, hours=3, minutes=5, overdue=False))

    def test_seconds_are_dropped(self):
        due = NOW + timedelta(hours=1, minutes=2, seconds=59, milliseconds=999)
        self.assertEqual(compute_countdown(due, NOW), CountdownState(0, 1, 2, False))

    def test_overdue_reports_zero(self):
        due = NOW - timedelta(minutes=1)
        self.assertEqual(compute_countdown(due, NOW), CountdownState(0, 0, 0, True))

    def test_long_overdue_still_zero(self):
        due = NOW - timedelta(days=40)
        self.assertEqual(compute_countdown(due, NOW).as_dict(), {"days": 0, "hours": 0, "minutes": 0, "overdue": True})

    def test_due_now_is_not_overdue(self):
        self.assertEqual(compute_countdown(NOW, NOW), CountdownState(0, 0, 0, False))

    def test_naive_values_read_as_utc(self):
        due = datetime(2026, 3, 2, 9, 30)
        self.assertEqual(compute_countdown(due, NOW), CountdownState(1, 0, 0, False))

    def test_other_offsets(self):
        due = datetime(2026, 3, 1, 12, 30, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(compute_countdown(due, NOW), CountdownState(0, 1, 0, False))

    def test_monotonic_until_due_then_overdue(self):
        due = NOW + timedelta(days=3, hours=5)
        previous = None
        now = NOW
        while now <= due + timedelta(hours=2):
            state = compute_countdown(due, now)
            if now <= due:
                self.assertFalse(state.overdue)
                remaining = (state.days, state.hours, state.minutes)
                if previous is not None:
                    self.assertLessEqual(remaining, previous)
                previous = remaining
            else:
                self.assertEqual(state, CountdownState(0, 0, 0, True))
            now += timedelta(minutes=7, seconds=13)


class ReminderOrderTests(unittest.TestCase):
    def test_sorted_by_due_date(self):
        reminders = [
            {"id": "c", "due_date": NOW + timedelta(days=3)},
            {"id": "a", "due_date": NOW + timedelta(days=1)},
            {"id": "b", "due_date": NOW + timedelta(days=2)},
        ]
        self.assertEqual([r["id"] for r in sort_reminders(reminders)], ["a", "b", "c"])

    def test_iso_strings_and_ties(self):
        reminders = [
            {"id": "late", "due_date": "2026-03-05T10:00:00+00:00"},
            {"id": "first", "due_date": "2026-03-02T10:00:00Z"},
            {"id": "second", "due_date": "2026-03-02T12:00:00+02:00"},
            {"id": "undated", "due_date": None},
        ]
        self.assertEqual([r["id"] for r in sort_reminders(reminders)], ["first", "second", "late", "undated"])

    def test_sort_does_not_mutate_input(self):
        reminders = [{"id": "b", "due_date": NOW + timedelta(days=2)}, {"id": "a", "due_date": NOW}]
        sort_reminders(reminders)
        self.assertEqual(reminders[0]["id"], "b")

    def test_countdowns_for(self):
        reminders = [
            {"id": "exam", "due_date": (NOW + timedelta(days=1, minutes=30)).isoformat()},
            {"id": "missed", "due_date": (NOW - timedelta(hours=1)).isoformat()},
            {"id": "broken", "due_date": "not a date"},
        ]
        pairs = countdowns_for(reminders, NOW)
        self.assertEqual([r["id"] for r, _ in pairs], ["missed", "exam", "broken"])
        self.assertTrue(pairs[0][1].overdue)
        self.assertEqual(pairs[1][1], CountdownState(1, 0, 30, False))
        self.assertIsNone(pairs[2][1])

    def test_parse_due(self):
        self.assertIsNone(parse_due(""))
        self.assertIsNone(parse_due("tomorrow"))
        self.assertEqual(parse_due("2026-03-01T09:30:00Z"), NOW)


if __name__ == "__main__":
    unittest.main()
