from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from studenttracker.config.logger import get_logger
from studenttracker.config.settings import settings
from studenttracker.core.countdown import countdowns_for
from studenttracker.core.grades import DEFAULT_WEIGHTS, TermScoreInput, ValidationError, validate_term
from studenttracker.services.appwrite_service import ROLE_ADMIN, ROLE_STUDENT, AppwriteService, AppwriteServiceError
from studenttracker.services.auth_service import AppwriteAuthService, AuthResult, AuthServiceError


logger = get_logger("api")

app = FastAPI(title="Student Tracker API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_origin_regex=settings.cors_allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AuthPayload(BaseModel):
    email: str
    password: str


class RegisterPayload(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str
    course: str = ""
    year_level: str = ""


class SubjectPayload(BaseModel):
    name: str
    description: str = ""


class TermScorePayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    test_score: float = 0
    assignment_score: float = 0
    exam_score: float = 0
    test_weight: float = DEFAULT_WEIGHTS[0]
    assignment_weight: float = DEFAULT_WEIGHTS[1]
    exam_weight: float = DEFAULT_WEIGHTS[2]


class ReminderPayload(BaseModel):
    subject_id: str
    type: Literal["assignment", "submission", "exam"] = "assignment"
    title: str
    due_date: datetime
    description: str = ""


def current_uid(
    x_user_id: Optional[str] = Header(default=None),
    x_appwrite_session: Optional[str] = Header(default=None),
    x_appwrite_user_jwt: Optional[str] = Header(default=None),
) -> str:
    """
    The caller is whoever owns the session secret (the `id_token` from login)
    or the Appwrite JWT. `x-user-id` is optional and must match that account.
    """
    if not x_appwrite_session and not x_appwrite_user_jwt:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing session credentials")
    try:
        uid = AppwriteAuthService.from_settings().current_user_id(
            session_secret=x_appwrite_session,
            jwt=x_appwrite_user_jwt,
        )
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if x_user_id and x_user_id != uid:
        logger.warning("x-user-id %s does not match session user %s", x_user_id, uid)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="x-user-id does not match session")
    return uid


def _require_admin(store: AppwriteService, uid: str) -> None:
    if not store.has_role(uid, ROLE_ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't have admin permissions")


def _session(result: AuthResult, role: str) -> Dict:
    return {
        "uid": result.uid,
        "email": result.email,
        "id_token": result.id_token,
        "refresh_token": result.refresh_token,
        "role": role,
    }


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/auth/register")
def register(payload: RegisterPayload) -> Dict:
    try:
        auth = AppwriteAuthService.from_settings()
        store = AppwriteService.from_settings()
        result = auth.sign_up(payload.email, payload.password, f"{payload.first_name} {payload.last_name}")
        student = store.create_student_profile(
            result.uid,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            course=payload.course,
            year_level=payload.year_level,
        )
        store.ensure_role(result.uid, ROLE_STUDENT)
        return {**_session(result, ROLE_STUDENT), "student": student}
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@app.post("/auth/login")
def login(payload: AuthPayload) -> Dict:
    try:
        auth = AppwriteAuthService.from_settings()
        store = AppwriteService.from_settings()
        result = auth.sign_in(payload.email, payload.password)
        student = store.get_student_profile(result.uid)
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No student profile found")
    return {**_session(result, ROLE_STUDENT), "student": student}


@app.post("/auth/admin/login")
def admin_login(payload: AuthPayload) -> Dict:
    try:
        auth = AppwriteAuthService.from_settings()
        store = AppwriteService.from_settings()
        result = auth.sign_in(payload.email, payload.password)
        is_admin = store.has_role(result.uid, ROLE_ADMIN)
        if not is_admin:
            auth.sign_out(result.id_token)
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    if not is_admin:
        logger.warning("Admin login denied for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't have admin permissions")
    return _session(result, ROLE_ADMIN)


@app.get("/profile")
def get_profile(uid: str = Depends(current_uid)) -> Dict:
    store = AppwriteService.from_settings()
    try:
        student = store.get_student_profile(uid)
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No student profile found")
    return {"uid": uid, "student": student}


@app.get("/subjects")
def list_subjects(uid: str = Depends(current_uid)) -> List[Dict]:
    store = AppwriteService.from_settings()
    try:
        return store.list_subjects(uid)
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.post("/subjects")
def create_subject(payload: SubjectPayload, uid: str = Depends(current_uid)) -> Dict:
    store = AppwriteService.from_settings()
    try:
        return store.create_subject(uid, **payload.model_dump())
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.post("/subjects/{subject_id}/terms/{term}")
def save_term(
    subject_id: str,
    term: str,
    payload: TermScorePayload,
    uid: str = Depends(current_uid),
) -> Dict:
    store = AppwriteService.from_settings()
    try:
        percentage = store.save_term_percentage(uid, subject_id, term, TermScoreInput(**payload.model_dump()))
        return {"subject_id": subject_id, "term": validate_term(term), "percentage": percentage}
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.get("/reminders")
def list_reminders(uid: str = Depends(current_uid)) -> List[Dict]:
    store = AppwriteService.from_settings()
    try:
        reminders = store.list_reminders(uid)
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    now = datetime.now(timezone.utc)
    return [
        {**reminder, "countdown": countdown.as_dict() if countdown else None}
        for reminder, countdown in countdowns_for(reminders, now)
    ]


@app.post("/reminders")
def create_reminder(payload: ReminderPayload, uid: str = Depends(current_uid)) -> Dict:
    store = AppwriteService.from_settings()
    try:
        return store.create_reminder(
            uid,
            subject_id=payload.subject_id,
            reminder_type=payload.type,
            title=payload.title,
            due_date=payload.due_date,
            description=payload.description,
        )
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.get("/admin/students")
def admin_list_students(uid: str = Depends(current_uid)) -> List[Dict]:
    store = AppwriteService.from_settings()
    try:
        _require_admin(store, uid)
        return store.list_students()
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.delete("/admin/students/{student_id}")
def admin_delete_student(student_id: str, uid: str = Depends(current_uid)) -> Dict[str, str]:
    store = AppwriteService.from_settings()
    try:
        _require_admin(store, uid)
        store.delete_student(student_id)
        return {"status": "deleted"}
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.get("/admin/subjects")
def admin_list_subjects(uid: str = Depends(current_uid)) -> List[Dict]:
    store = AppwriteService.from_settings()
    try:
        _require_admin(store, uid)
        return store.list_all_subjects()
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.get("/admin/reminders")
def admin_list_reminders(uid: str = Depends(current_uid)) -> List[Dict]:
    store = AppwriteService.from_settings()
    try:
        _require_admin(store, uid)
        return store.list_all_reminders()
    except AppwriteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
