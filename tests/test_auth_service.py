import unittest
from unittest.mock import MagicMock, patch

from requests import ConnectionError as RequestsConnectionError

from studenttracker.services.auth_service import AppwriteAuthService, AuthServiceError


def response(status_code, payload=None):
    res = MagicMock()
    res.status_code = status_code
    if payload is None:
        res.json.side_effect = ValueError("no body")
    else:
        res.json.return_value = payload
    return res


class AuthServiceTests(unittest.TestCase):
    def setUp(self):
        self.auth = AppwriteAuthService("https://cloud.appwrite.io/v1/", "project")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_sign_in(self, request):
        request.return_value = response(201, {"$id": "sess1", "secret": "s3cr3t", "userId": "u1"})

        result = self.auth.sign_in("ada@example.com", "pw")

        self.assertEqual((result.uid, result.id_token, result.refresh_token), ("u1", "s3cr3t", "sess1"))
        method, url = request.call_args.args
        self.assertEqual((method, url), ("POST", "https://cloud.appwrite.io/v1/account/sessions/email"))
        self.assertEqual(request.call_args.kwargs["headers"]["X-Appwrite-Project"], "project")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_sign_up_then_sign_in(self, request):
        request.side_effect = [
            response(201, {"$id": "u1"}),
            response(201, {"$id": "sess1", "secret": "s", "userId": "u1"}),
        ]

        result = self.auth.sign_up("ada@example.com", "pw", name=" Ada ")

        self.assertEqual(result.uid, "u1")
        self.assertEqual(request.call_args_list[0].kwargs["json"]["name"], "Ada")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_rejected_credentials(self, request):
        request.return_value = response(401, {"message": "Invalid credentials", "type": "user_invalid_credentials"})
        with self.assertRaises(AuthServiceError) as ctx:
            self.auth.sign_in("ada@example.com", "bad")
        self.assertEqual(str(ctx.exception), "Invalid credentials")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_network_failure(self, request):
        request.side_effect = RequestsConnectionError("down")
        with self.assertRaises(AuthServiceError) as ctx:
            self.auth.sign_in("ada@example.com", "pw")
        self.assertEqual(str(ctx.exception), "AUTH_SERVICE_UNAVAILABLE")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_session_without_user(self, request):
        request.return_value = response(201, {"$id": "sess1"})
        with self.assertRaises(AuthServiceError) as ctx:
            self.auth.sign_in("ada@example.com", "pw")
        self.assertEqual(str(ctx.exception), "INVALID_APPWRITE_SESSION")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_sign_out(self, request):
        request.return_value = response(204)
        self.auth.sign_out("s3cr3t")
        self.assertEqual(request.call_args.kwargs["headers"]["X-Appwrite-Session"], "s3cr3t")

        request.reset_mock()
        self.auth.sign_out("")
        request.assert_not_called()

    @patch("studenttracker.services.auth_service.requests.request")
    def test_current_user_from_session(self, request):
        request.return_value = response(200, {"$id": "u1", "email": "ada@example.com"})

        self.assertEqual(self.auth.current_user_id(session_secret="s3cr3t"), "u1")

        method, url = request.call_args.args
        self.assertEqual((method, url), ("GET", "https://cloud.appwrite.io/v1/account"))
        headers = request.call_args.kwargs["headers"]
        self.assertEqual(headers["X-Appwrite-Session"], "s3cr3t")
        self.assertNotIn("X-Appwrite-JWT", headers)

    @patch("studenttracker.services.auth_service.requests.request")
    def test_current_user_from_jwt(self, request):
        request.return_value = response(200, {"$id": "u1"})
        self.assertEqual(self.auth.current_user_id(jwt="token"), "u1")
        self.assertEqual(request.call_args.kwargs["headers"]["X-Appwrite-JWT"], "token")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_current_user_rejected(self, request):
        request.return_value = response(401, {"message": "User (role: guests) missing scope (account)"})
        with self.assertRaises(AuthServiceError):
            self.auth.current_user_id(session_secret="expired")

    @patch("studenttracker.services.auth_service.requests.request")
    def test_current_user_needs_credentials(self, request):
        with self.assertRaises(AuthServiceError) as ctx:
            self.auth.current_user_id()
        self.assertEqual(str(ctx.exception), "MISSING_CREDENTIALS")
        request.assert_not_called()

    def test_missing_config(self):
        with self.assertRaises(AuthServiceError):
            AppwriteAuthService("", "project")


if __name__ == "__main__":
    unittest.main()
