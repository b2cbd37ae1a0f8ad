import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from studenttracker.app import app
from studenttracker.core.grades import ValidationError
from studenttracker.services.appwrite_service import AppwriteServiceError
from studenttracker.services.auth_service import AuthResult, AuthServiceError


SESSION = {"x-appwrite-session": "secret"}


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self.store = MagicMock()
        self.auth = MagicMock()
        self.auth.current_user_id.return_value = "u1"

        store_patch = patch("studenttracker.app.AppwriteService")
        auth_patch = patch("studenttracker.app.AppwriteAuthService")
        store_cls = store_patch.start()
        auth_cls = auth_patch.start()
        self.addCleanup(store_patch.stop)
        self.addCleanup(auth_patch.stop)
        store_cls.from_settings.return_value = self.store
        auth_cls.from_settings.return_value = self.auth


class AuthRouteTests(ApiTestCase):
    def test_login(self):
        self.auth.sign_in.return_value = AuthResult("u1", "ada@example.com", "secret", "sess1")
        self.store.get_student_profile.return_value = {"id": "doc1", "first_name": "Ada"}

        res = self.client.post("/auth/login", json={"email": "ada@example.com", "password": "pw"})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["uid"], "u1")
        self.assertEqual(res.json()["role"], "student")

    def test_login_bad_credentials(self):
        self.auth.sign_in.side_effect = AuthServiceError("Invalid credentials")
        res = self.client.post("/auth/login", json={"email": "ada@example.com", "password": "bad"})
        self.assertEqual(res.status_code, 401)

    def test_login_without_profile(self):
        self.auth.sign_in.return_value = AuthResult("u1", "ada@example.com", "secret", "sess1")
        self.store.get_student_profile.return_value = {}
        res = self.client.post("/auth/login", json={"email": "ada@example.com", "password": "pw"})
        self.assertEqual(res.status_code, 404)

    def test_admin_login_denied_signs_out(self):
        self.auth.sign_in.return_value = AuthResult("u1", "ada@example.com", "secret", "sess1")
        self.store.has_role.return_value = False

        res = self.client.post("/auth/admin/login", json={"email": "ada@example.com", "password": "pw"})

        self.assertEqual(res.status_code, 403)
        self.auth.sign_out.assert_called_once_with("secret")

    def test_register(self):
        self.auth.sign_up.return_value = AuthResult("u1", "ada@example.com", "secret", "sess1")
        self.store.create_student_profile.return_value = {"id": "doc1", "student_id": "STU1"}

        res = self.client.post(
            "/auth/register",
            json={"email": "ada@example.com", "password": "pw", "first_name": "Ada", "last_name": "Lovelace"},
        )

        self.assertEqual(res.status_code, 200)
        self.store.ensure_role.assert_called_once_with("u1", "student")


class CallerIdentityTests(ApiTestCase):
    def test_user_header_alone_is_rejected(self):
        self.store.has_role.return_value = True

        res = self.client.delete("/admin/students/victim", headers={"x-user-id": "known-admin-uid"})

        self.assertEqual(res.status_code, 401)
        self.store.delete_student.assert_not_called()
        self.auth.current_user_id.assert_not_called()

    def test_user_header_must_match_session(self):
        self.store.has_role.return_value = True

        res = self.client.delete(
            "/admin/students/victim",
            headers={**SESSION, "x-user-id": "known-admin-uid"},
        )

        self.assertEqual(res.status_code, 401)
        self.store.delete_student.assert_not_called()

    def test_rejected_session(self):
        self.auth.current_user_id.side_effect = AuthServiceError("user_unauthorized")
        res = self.client.get("/subjects", headers={"x-appwrite-session": "expired"})
        self.assertEqual(res.status_code, 401)
        self.store.list_subjects.assert_not_called()

    def test_uid_comes_from_session(self):
        self.store.list_subjects.return_value = []
        res = self.client.get("/subjects", headers={**SESSION, "x-user-id": "u1"})
        self.assertEqual(res.status_code, 200)
        self.store.list_subjects.assert_called_once_with("u1")
        self.auth.current_user_id.assert_called_once_with(session_secret="secret", jwt=None)

    def test_jwt_accepted(self):
        self.store.get_student_profile.return_value = {"id": "doc1"}
        res = self.client.get("/profile", headers={"x-appwrite-user-jwt": "token"})
        self.assertEqual(res.status_code, 200)
        self.auth.current_user_id.assert_called_once_with(session_secret=None, jwt="token")


class SubjectRouteTests(ApiTestCase):
    def test_requires_credentials(self):
        self.assertEqual(self.client.get("/subjects").status_code, 401)

    def test_save_term_uses_default_weights(self):
        self.store.save_term_percentage.return_value = 81.0

        res = self.client.post(
            "/subjects/s1/terms/term1",
            json={"test_score": 80, "assignment_score": 70, "exam_score": 90},
            headers=SESSION,
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["percentage"], 81.0)
        inputs = self.store.save_term_percentage.call_args.args[3]
        self.assertEqual(inputs.weights, (30.0, 30.0, 40.0))

    def test_save_term_echoes_normalized_slot(self):
        self.store.save_term_percentage.return_value = 81.0

        res = self.client.post(
            "/subjects/s1/terms/TERM1",
            json={"test_score": 80, "assignment_score": 70, "exam_score": 90},
            headers=SESSION,
        )

        self.assertEqual(res.json()["term"], "term1")

    def test_save_term_rejects_non_finite(self):
        res = self.client.post(
            "/subjects/s1/terms/term1",
            content='{"test_score": NaN, "assignment_score": 70, "exam_score": 90}',
            headers={**SESSION, "content-type": "application/json"},
        )
        self.assertEqual(res.status_code, 422)
        self.store.save_term_percentage.assert_not_called()

    def test_save_term_bad_weights(self):
        self.store.save_term_percentage.side_effect = ValidationError("weights must sum to 100")

        res = self.client.post(
            "/subjects/s1/terms/term1",
            json={"test_score": 80, "assignment_score": 70, "exam_score": 90, "exam_weight": 30},
            headers=SESSION,
        )

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "weights must sum to 100")

    def test_subject_cap(self):
        self.store.create_subject.side_effect = AppwriteServiceError("You can only add up to 10 subjects.")
        res = self.client.post("/subjects", json={"name": "Art"}, headers=SESSION)
        self.assertEqual(res.status_code, 400)


class ReminderRouteTests(ApiTestCase):
    def test_list_includes_countdown(self):
        self.store.list_reminders.return_value = [
            {"id": "old", "due_date": "2020-01-01T00:00:00+00:00"},
            {"id": "future", "due_date": "2099-01-01T00:00:00+00:00"},
        ]

        res = self.client.get("/reminders", headers=SESSION)

        body = res.json()
        self.assertEqual([r["id"] for r in body], ["old", "future"])
        self.assertEqual(body[0]["countdown"], {"days": 0, "hours": 0, "minutes": 0, "overdue": True})
        self.assertFalse(body[1]["countdown"]["overdue"])

    def test_create_rejects_unknown_type(self):
        res = self.client.post(
            "/reminders",
            json={"subject_id": "s1", "type": "quiz", "title": "Quiz", "due_date": "2026-05-01T10:00:00Z"},
            headers=SESSION,
        )
        self.assertEqual(res.status_code, 422)
        self.store.create_reminder.assert_not_called()


class AdminRouteTests(ApiTestCase):
    def test_non_admin_forbidden(self):
        self.store.has_role.return_value = False
        res = self.client.get("/admin/students", headers=SESSION)
        self.assertEqual(res.status_code, 403)
        self.store.list_students.assert_not_called()

    def test_delete_student(self):
        self.auth.current_user_id.return_value = "admin"
        self.store.has_role.return_value = True

        res = self.client.delete("/admin/students/doc1", headers=SESSION)

        self.assertEqual(res.status_code, 200)
        self.store.has_role.assert_called_once_with("admin", "admin")
        self.store.delete_student.assert_called_once_with("doc1")


if __name__ == "__main__":
    unittest.main()
