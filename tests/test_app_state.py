import unittest

from studenttracker.state.app_state import AppState


class AppStateTests(unittest.TestCase):
    def setUp(self):
        self.state = AppState()
        self.state.session.uid = "u1"
        self.state.session.id_token = "secret"
        self.state.session.role = "student"
        self.state.session.student = {"first_name": "Ada", "last_name": "Lovelace"}

    def test_session_flags(self):
        self.assertTrue(self.state.session.is_authenticated)
        self.assertFalse(self.state.session.is_admin)
        self.assertEqual(self.state.session.display_name, "Ada Lovelace")

    def test_reminders_kept_in_due_order(self):
        self.state.set_reminders(
            [
                {"id": "r2", "due_date": "2026-05-03T10:00:00+00:00"},
                {"id": "r1", "due_date": "2026-05-01T10:00:00+00:00"},
            ]
        )
        self.assertEqual([r["id"] for r in self.state.reminders], ["r1", "r2"])

    def test_update_term(self):
        self.state.set_subjects([{"id": "s1", "term1": 0.0}])
        self.state.update_term("s1", "term1", 81.0)
        self.state.update_term("missing", "term1", 99.0)
        self.assertEqual(self.state.find_subject("s1")["term1"], 81.0)
        self.assertIsNone(self.state.find_subject("missing"))

    def test_reset(self):
        self.state.set_subjects([{"id": "s1"}])
        self.state.reset()
        self.assertFalse(self.state.session.is_authenticated)
        self.assertEqual(self.state.subjects, [])
        self.assertEqual(self.state.session.student, {})


if __name__ == "__main__":
    unittest.main()
