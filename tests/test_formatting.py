import unittest
from datetime import datetime, timezone

from studenttracker.core.countdown import CountdownState
from studenttracker.core.formatting import format_countdown, format_percentage, parse_due_date, parse_number


class ParseNumberTests(unittest.TestCase):
    def test_accepts_numbers_and_text(self):
        self.assertEqual(parse_number(30, "weight"), 30.0)
        self.assertEqual(parse_number(" 81.5 ", "score"), 81.5)
        self.assertEqual(parse_number("-4", "score"), -4.0)

    def test_rejects_blank_and_garbage(self):
        for value in ("", None, "abc", True, "nan", "inf", "-Infinity", float("nan"), float("inf")):
            with self.assertRaises(ValueError) as ctx:
                parse_number(value, "Test score")
            self.assertEqual(str(ctx.exception), "Test score must be a number")


class FormatTests(unittest.TestCase):
    def test_percentage(self):
        self.assertEqual(format_percentage(81), "81.0%")
        self.assertEqual(format_percentage(None), "0.0%")
        self.assertEqual(format_percentage(81.0, places=2), "81.00%")

    def test_countdown(self):
        self.assertEqual(format_countdown(CountdownState(2, 3, 5, False)), "2d 3h 5m")
        self.assertEqual(format_countdown(CountdownState(0, 0, 0, True)), "Overdue")
        self.assertEqual(format_countdown(None), "-")


class ParseDueDateTests(unittest.TestCase):
    def test_plain_format_is_local_time(self):
        parsed = parse_due_date("2026-02-15 23:59")
        self.assertIsNotNone(parsed.tzinfo)
        self.assertEqual((parsed.year, parsed.month, parsed.day, parsed.hour, parsed.minute), (2026, 2, 15, 23, 59))

    def test_iso_with_zulu(self):
        self.assertEqual(parse_due_date("2026-02-15T23:59Z"), datetime(2026, 2, 15, 23, 59, tzinfo=timezone.utc))

    def test_invalid(self):
        with self.assertRaises(ValueError):
            parse_due_date("15/02/2026")
        with self.assertRaises(ValueError):
            parse_due_date("  ")


if __name__ == "__main__":
    unittest.main()
