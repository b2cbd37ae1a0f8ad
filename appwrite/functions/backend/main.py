import json
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import parse_qs

from studenttracker.config.logger import get_logger
from studenttracker.config.settings import settings
from studenttracker.core.countdown import countdowns_for
from studenttracker.core.formatting import parse_number
from studenttracker.core.grades import DEFAULT_WEIGHTS, TermScoreInput, ValidationError, validate_term
from studenttracker.services.appwrite_service import ROLE_ADMIN, ROLE_STUDENT, AppwriteService, AppwriteServiceError
from studenttracker.services.auth_service import AppwriteAuthService, AuthServiceError


logger = get_logger("function")

LOCAL_REGEX = r"^https?:\/\/(localhost|127\.0\.0\.1)(:\d+)?$"


class HttpError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def _headers(req: Any) -> Dict[str, str]:
    raw_headers = getattr(req, "headers", {}) or {}
    return {str(key).lower(): str(value) for key, value in raw_headers.items()}


def _normalize_path(req: Any) -> str:
    path = str(getattr(req, "path", "") or "/")
    if not path.startswith("/"):
        path = f"/{path}"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def _cors_headers(req: Any) -> Dict[str, str]:
    origin = _headers(req).get("origin", "")
    if not origin:
        return {}

    if origin in settings.cors_allowed_origins:
        allowed_origin = origin
    else:
        regex = settings.cors_allow_origin_regex or LOCAL_REGEX
        allowed_origin = origin if re.match(regex, origin) else ""

    if not allowed_origin:
        return {}

    return {
        "access-control-allow-origin": allowed_origin,
        "access-control-allow-credentials": "true",
        "access-control-allow-methods": "GET,POST,DELETE,OPTIONS",
        "access-control-allow-headers": "Content-Type,Authorization,x-user-id,x-appwrite-session,x-appwrite-user-jwt",
        "vary": "Origin",
    }


def _json_response(context: Any, payload: Any, status_code: int = 200, req: Any = None):
    headers = _cors_headers(req) if req is not None else {}
    return context.res.json(payload, status_code, headers)


def _empty_response(context: Any, status_code: int = 204, req: Any = None):
    headers = _cors_headers(req) if req is not None else {}
    return context.res.empty(status_code, headers)


def _parse_body(req: Any) -> Dict[str, Any]:
    def _from_candidate(candidate: Any) -> Optional[Dict[str, Any]]:
        if candidate is None:
            return None

        if isinstance(candidate, (bytes, bytearray)):
            candidate = candidate.decode("utf-8", errors="ignore")

        if isinstance(candidate, str):
            text = candidate.strip()
            if not text:
                return None
            try:
                candidate = json.loads(text)
            except json.JSONDecodeError:
                parsed_qs = parse_qs(text, keep_blank_values=True)
                if parsed_qs:
                    return {k: (v[-1] if v else "") for k, v in parsed_qs.items()}
                return None

        if isinstance(candidate, dict):
            return candidate

        return None

    for attr in ("bodyJson", "body", "bodyText", "bodyRaw"):
        parsed = _from_candidate(getattr(req, attr, None))
        if parsed is not None:
            return parsed

    return {}


def _require_user_id(req: Any) -> str:
    headers = _headers(req)
    session_secret = headers.get("x-appwrite-session", "").strip()
    jwt = headers.get("x-appwrite-user-jwt", "").strip()
    if not session_secret and not jwt:
        raise HttpError(401, "Missing session credentials")

    try:
        uid = AppwriteAuthService.from_settings().current_user_id(session_secret=session_secret, jwt=jwt)
    except AuthServiceError as exc:
        raise HttpError(401, str(exc)) from exc

    claimed = headers.get("x-user-id", "").strip()
    if claimed and claimed != uid:
        logger.warning("x-user-id %s does not match session user %s", claimed, uid)
        raise HttpError(401, "x-user-id does not match session")
    return uid


def _require_admin(store: AppwriteService, uid: str) -> None:
    if not store.has_role(uid, ROLE_ADMIN):
        raise HttpError(403, "You don't have admin permissions")


def _parse_datetime(value: Any, field_name: str) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise HttpError(400, f"{field_name} must be an ISO-8601 datetime string")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise HttpError(400, f"Invalid datetime for {field_name}") from exc


def _credentials(req: Any) -> Dict[str, str]:
    payload = _parse_body(req)
    email = str(payload.get("email", "")).strip()
    password = str(payload.get("password", ""))
    if not email or not password:
        raise HttpError(400, "email and password are required")
    extra = {k: "" if v is None else str(v) for k, v in payload.items() if k not in ("email", "password")}
    return {"email": email, "password": password, **extra}


def _session(result: Any, role: str) -> Dict[str, Any]:
    return {
        "uid": result.uid,
        "email": result.email,
        "id_token": result.id_token,
        "refresh_token": result.refresh_token,
        "role": role,
    }


def _auth_register(req: Any) -> Dict[str, Any]:
    payload = _credentials(req)
    first_name = payload.get("first_name", "").strip()
    last_name = payload.get("last_name", "").strip()
    if not first_name or not last_name:
        raise HttpError(400, "first_name and last_name are required")

    try:
        auth = AppwriteAuthService.from_settings()
        store = AppwriteService.from_settings()
        result = auth.sign_up(payload["email"], payload["password"], f"{first_name} {last_name}")
        student = store.create_student_profile(
            result.uid,
            first_name=first_name,
            last_name=last_name,
            email=payload["email"],
            course=payload.get("course", ""),
            year_level=payload.get("year_level", ""),
        )
        store.ensure_role(result.uid, ROLE_STUDENT)
        return {**_session(result, ROLE_STUDENT), "student": student}
    except AuthServiceError as exc:
        raise HttpError(400, str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HttpError(500, str(exc)) from exc


def _auth_login(req: Any) -> Dict[str, Any]:
    payload = _credentials(req)
    try:
        auth = AppwriteAuthService.from_settings()
        store = AppwriteService.from_settings()
        result = auth.sign_in(payload["email"], payload["password"])
        student = store.get_student_profile(result.uid)
    except AuthServiceError as exc:
        raise HttpError(401, str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HttpError(500, str(exc)) from exc

    if not student:
        raise HttpError(404, "No student profile found")
    return {**_session(result, ROLE_STUDENT), "student": student}


def _auth_admin_login(req: Any) -> Dict[str, Any]:
    payload = _credentials(req)
    try:
        auth = AppwriteAuthService.from_settings()
        store = AppwriteService.from_settings()
        result = auth.sign_in(payload["email"], payload["password"])
        is_admin = store.has_role(result.uid, ROLE_ADMIN)
        if not is_admin:
            auth.sign_out(result.id_token)
    except AuthServiceError as exc:
        raise HttpError(401, str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HttpError(500, str(exc)) from exc

    if not is_admin:
        raise HttpError(403, "You don't have admin permissions")
    return _session(result, ROLE_ADMIN)


def _get_profile(req: Any) -> Dict[str, Any]:
    uid = _require_user_id(req)
    store = AppwriteService.from_settings()
    try:
        student = store.get_student_profile(uid)
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc
    if not student:
        raise HttpError(404, "No student profile found")
    return {"uid": uid, "student": student}


def _list_subjects(req: Any) -> Any:
    uid = _require_user_id(req)
    store = AppwriteService.from_settings()
    try:
        return store.list_subjects(uid)
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc


def _create_subject(req: Any) -> Dict[str, Any]:
    uid = _require_user_id(req)
    payload = _parse_body(req)

    store = AppwriteService.from_settings()
    try:
        return store.create_subject(
            uid,
            name=str(payload.get("name", "")),
            description=str(payload.get("description", "")),
        )
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc


def _save_term(req: Any, subject_id: str, term: str) -> Dict[str, Any]:
    uid = _require_user_id(req)
    payload = _parse_body(req)

    defaults = {
        "test_score": 0,
        "assignment_score": 0,
        "exam_score": 0,
        "test_weight": DEFAULT_WEIGHTS[0],
        "assignment_weight": DEFAULT_WEIGHTS[1],
        "exam_weight": DEFAULT_WEIGHTS[2],
    }
    values: Dict[str, float] = {}
    for key, default in defaults.items():
        try:
            values[key] = parse_number(payload.get(key, default), key)
        except ValueError as exc:
            raise HttpError(400, str(exc)) from exc

    store = AppwriteService.from_settings()
    try:
        percentage = store.save_term_percentage(uid, subject_id, term, TermScoreInput(**values))
        return {"subject_id": subject_id, "term": validate_term(term), "percentage": percentage}
    except ValidationError as exc:
        raise HttpError(400, str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc


def _list_reminders(req: Any) -> Any:
    uid = _require_user_id(req)
    store = AppwriteService.from_settings()
    try:
        reminders = store.list_reminders(uid)
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc

    now = datetime.now(timezone.utc)
    return [
        {**reminder, "countdown": countdown.as_dict() if countdown else None}
        for reminder, countdown in countdowns_for(reminders, now)
    ]


def _create_reminder(req: Any) -> Dict[str, Any]:
    uid = _require_user_id(req)
    payload = _parse_body(req)

    subject_id = str(payload.get("subject_id", "")).strip()
    title = str(payload.get("title", "")).strip()
    if not subject_id or not title:
        raise HttpError(400, "subject_id and title are required")
    due_date = _parse_datetime(payload.get("due_date"), "due_date")

    store = AppwriteService.from_settings()
    try:
        return store.create_reminder(
            uid,
            subject_id=subject_id,
            reminder_type=str(payload.get("type", "assignment")),
            title=title,
            due_date=due_date,
            description=str(payload.get("description", "")),
        )
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc


def _admin_call(req: Any, action):
    uid = _require_user_id(req)
    store = AppwriteService.from_settings()
    try:
        _require_admin(store, uid)
        return action(store)
    except AppwriteServiceError as exc:
        raise HttpError(400, str(exc)) from exc


def _admin_delete_student(store: AppwriteService, student_id: str) -> Dict[str, str]:
    store.delete_student(student_id)
    return {"status": "deleted"}


def _route(context: Any, req: Any):
    method = str(getattr(req, "method", "GET") or "GET").upper()
    path = _normalize_path(req)

    if method == "OPTIONS":
        return _empty_response(context, 204, req=req)

    if method == "GET" and path == "/health":
        return _json_response(context, {"status": "ok"}, req=req)

    if method == "POST" and path == "/auth/register":
        return _json_response(context, _auth_register(req), req=req)

    if method == "POST" and path == "/auth/login":
        return _json_response(context, _auth_login(req), req=req)

    if method == "POST" and path == "/auth/admin/login":
        return _json_response(context, _auth_admin_login(req), req=req)

    if method == "GET" and path == "/profile":
        return _json_response(context, _get_profile(req), req=req)

    if method == "GET" and path == "/subjects":
        return _json_response(context, _list_subjects(req), req=req)

    if method == "POST" and path == "/subjects":
        return _json_response(context, _create_subject(req), req=req)

    term_match = re.fullmatch(r"/subjects/([^/]+)/terms/([^/]+)", path)
    if method == "POST" and term_match:
        return _json_response(context, _save_term(req, term_match.group(1), term_match.group(2)), req=req)

    if method == "GET" and path == "/reminders":
        return _json_response(context, _list_reminders(req), req=req)

    if method == "POST" and path == "/reminders":
        return _json_response(context, _create_reminder(req), req=req)

    if method == "GET" and path == "/admin/students":
        return _json_response(context, _admin_call(req, lambda store: store.list_students()), req=req)

    student_match = re.fullmatch(r"/admin/students/([^/]+)", path)
    if method == "DELETE" and student_match:
        student_id = student_match.group(1)
        return _json_response(
            context,
            _admin_call(req, lambda store: _admin_delete_student(store, student_id)),
            req=req,
        )

    if method == "GET" and path == "/admin/subjects":
        return _json_response(context, _admin_call(req, lambda store: store.list_all_subjects()), req=req)

    if method == "GET" and path == "/admin/reminders":
        return _json_response(context, _admin_call(req, lambda store: store.list_all_reminders()), req=req)

    raise HttpError(404, "Not found")


def main(context: Any):
    req = context.req

    try:
        return _route(context, req)
    except HttpError as exc:
        return _json_response(context, {"detail": exc.detail}, status_code=exc.status_code, req=req)
    except Exception as exc:
        logger.exception("Unhandled exception in backend function")
        if os.getenv("APPWRITE_FUNCTION_DEBUG", "false").lower() == "true":
            context.error(str(exc))
            return _json_response(context, {"detail": str(exc)}, status_code=500, req=req)

        context.error("Unhandled exception in backend function")
        return _json_response(context, {"detail": "INTERNAL_SERVER_ERROR"}, status_code=500, req=req)
