from datetime import datetime, timezone
import time
from typing import Dict, List, Optional

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.databases import Databases

from studenttracker.config.logger import get_logger
from studenttracker.config.settings import settings
from studenttracker.core.countdown import sort_reminders
from studenttracker.core.grades import TERM_SLOTS, TermScoreInput, ValidationError, validate_term


logger = get_logger("appwrite")

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

REMINDER_TYPES = ("assignment", "submission", "exam")

UNKNOWN_SUBJECT = "Unknown Subject"

# Appwrite returns 25 documents per page unless a limit is given.
LIST_LIMIT = 500


class AppwriteServiceError(Exception):
    pass


class AppwriteService:
    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str,
        database_id: str,
        students_collection_id: str,
        user_roles_collection_id: str,
        subjects_collection_id: str,
        reminders_collection_id: str,
        max_subjects: int = 10,
    ) -> None:
        if not endpoint:
            raise AppwriteServiceError("Missing APPWRITE_ENDPOINT in environment")
        if not project_id:
            raise AppwriteServiceError("Missing APPWRITE_PROJECT_ID in environment")
        if not api_key:
            raise AppwriteServiceError("Missing APPWRITE_API_KEY in environment")
        if not database_id:
            raise AppwriteServiceError("Missing APPWRITE_DATABASE_ID in environment")

        self.database_id = database_id
        self.students_collection_id = students_collection_id
        self.user_roles_collection_id = user_roles_collection_id
        self.subjects_collection_id = subjects_collection_id
        self.reminders_collection_id = reminders_collection_id
        self.max_subjects = max_subjects

        client = Client()
        client.set_endpoint(endpoint.rstrip("/"))
        client.set_project(project_id)
        client.set_key(api_key)

        self.db = Databases(client)

    @classmethod
    def from_settings(cls) -> "AppwriteService":
        return cls(
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
            api_key=settings.appwrite_api_key,
            database_id=settings.appwrite_database_id,
            students_collection_id=settings.appwrite_students_collection_id,
            user_roles_collection_id=settings.appwrite_user_roles_collection_id,
            subjects_collection_id=settings.appwrite_subjects_collection_id,
            reminders_collection_id=settings.appwrite_reminders_collection_id,
            max_subjects=settings.max_subjects,
        )

    @staticmethod
    def _to_iso(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()

    @staticmethod
    def _with_id(doc: Dict) -> Dict:
        row = dict(doc)
        row["id"] = row["$id"]
        return row

    def _list_documents(self, collection_id: str, queries: List[str]) -> List[Dict]:
        try:
            result = self.db.list_documents(self.database_id, collection_id, queries=queries)
            return list(result.get("documents", []))
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _create_document(self, collection_id: str, data: Dict, document_id: Optional[str] = None) -> Dict:
        try:
            return self.db.create_document(
                self.database_id,
                collection_id,
                document_id or ID.unique(),
                data,
            )
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _update_document(self, collection_id: str, document_id: str, data: Dict) -> Dict:
        try:
            return self.db.update_document(self.database_id, collection_id, document_id, data)
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _delete_document(self, collection_id: str, document_id: str) -> None:
        try:
            self.db.delete_document(self.database_id, collection_id, document_id)
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _find_first(self, collection_id: str, queries: List[str]) -> Optional[Dict]:
        docs = self._list_documents(collection_id, [*queries, Query.limit(1)])
        if not docs:
            return None
        return docs[0]

    # Roles and profiles

    def ensure_role(self, uid: str, role: str = ROLE_STUDENT) -> None:
        if self.has_role(uid, role):
            return
        self._create_document(self.user_roles_collection_id, {"user_id": uid, "role": role})

    def has_role(self, uid: str, role: str) -> bool:
        found = self._find_first(
            self.user_roles_collection_id,
            [
                Query.equal("user_id", [uid]),
                Query.equal("role", [role]),
            ],
        )
        return found is not None

    def create_student_profile(
        self,
        uid: str,
        *,
        first_name: str,
        last_name: str,
        email: str,
        course: str = "",
        year_level: str = "",
    ) -> Dict:
        existing = self.get_student_profile(uid)
        if existing:
            return existing

        doc = self._create_document(
            self.students_collection_id,
            {
                "user_id": uid,
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "student_id": f"STU{int(time.time() * 1000)}",
                "course": course,
                "year_level": year_level,
                "created_at": self._to_iso(datetime.now(timezone.utc)),
            },
        )
        logger.info("Created student profile %s for user %s", doc.get("student_id"), uid)
        return self._with_id(doc)

    def get_student_profile(self, uid: str) -> Dict:
        doc = self._find_first(self.students_collection_id, [Query.equal("user_id", [uid])])
        if not doc:
            return {}
        return self._with_id(doc)

    # Subjects

    def list_subjects(self, uid: str) -> List[Dict]:
        docs = self._list_documents(
            self.subjects_collection_id,
            [
                Query.equal("user_id", [uid]),
                Query.order_asc("created_at"),
                Query.limit(LIST_LIMIT),
            ],
        )
        return [self._with_id(doc) for doc in docs]

    def get_subject(self, uid: str, subject_id: str) -> Dict:
        subject = self._find_first(
            self.subjects_collection_id,
            [
                Query.equal("$id", [subject_id]),
                Query.equal("user_id", [uid]),
            ],
        )
        if not subject:
            return {}
        return self._with_id(subject)

    def create_subject(self, uid: str, *, name: str, description: str = "") -> Dict:
        if not name or not name.strip():
            raise AppwriteServiceError("Subject name required.")

        if len(self.list_subjects(uid)) >= self.max_subjects:
            raise AppwriteServiceError(f"You can only add up to {self.max_subjects} subjects.")

        data = {
            "user_id": uid,
            "name": name.strip(),
            "description": (description or "").strip(),
            "created_at": self._to_iso(datetime.now(timezone.utc)),
        }
        for slot in TERM_SLOTS:
            data[slot] = 0.0

        doc = self._create_document(self.subjects_collection_id, data)
        logger.info("Subject %s added for user %s", doc["$id"], uid)
        return self._with_id(doc)

    def save_term_percentage(self, uid: str, subject_id: str, term: str, inputs: TermScoreInput) -> float:
        try:
            slot = validate_term(term)
        except ValueError as exc:
            raise AppwriteServiceError(str(exc)) from exc

        subject = self.get_subject(uid, subject_id)
        if not subject:
            raise AppwriteServiceError("Subject not found.")

        try:
            percentage = inputs.percentage()
        except ValidationError:
            logger.warning(
                "Rejected %s calculation for subject %s: weights total %s",
                slot,
                subject_id,
                inputs.total_weight,
            )
            raise

        self._update_document(self.subjects_collection_id, subject_id, {slot: percentage})
        logger.info("Stored %s=%.2f for subject %s", slot, percentage, subject_id)
        return percentage

    # Reminders

    def list_reminders(self, uid: str) -> List[Dict]:
        docs = self._list_documents(
            self.reminders_collection_id,
            [
                Query.equal("user_id", [uid]),
                Query.order_asc("created_at"),
                Query.limit(LIST_LIMIT),
            ],
        )
        return sort_reminders([self._with_id(doc) for doc in docs])

    def create_reminder(
        self,
        uid: str,
        *,
        subject_id: str,
        reminder_type: str,
        title: str,
        due_date: Optional[datetime],
        description: str = "",
    ) -> Dict:
        if not subject_id or not title or not title.strip() or due_date is None:
            raise AppwriteServiceError("Please fill in all required fields.")
        if reminder_type not in REMINDER_TYPES:
            raise AppwriteServiceError(f"Unsupported reminder type: {reminder_type}")

        subject = self.get_subject(uid, subject_id)
        doc = self._create_document(
            self.reminders_collection_id,
            {
                "user_id": uid,
                "subject_id": subject_id,
                "subject_name": subject.get("name") or UNKNOWN_SUBJECT,
                "type": reminder_type,
                "title": title.strip(),
                "due_date": self._to_iso(due_date),
                "description": (description or "").strip(),
                "created_at": self._to_iso(datetime.now(timezone.utc)),
            },
        )
        logger.info("Reminder %s added for user %s", doc["$id"], uid)
        return self._with_id(doc)

    # Admin

    def list_students(self) -> List[Dict]:
        docs = self._list_documents(
            self.students_collection_id,
            [
                Query.order_desc("created_at"),
                Query.limit(LIST_LIMIT),
            ],
        )
        return [self._with_id(doc) for doc in docs]

    def _student_names(self) -> Dict[str, str]:
        names: Dict[str, str] = {}
        for student in self.list_students():
            full_name = f"{student.get('first_name', '')} {student.get('last_name', '')}".strip()
            names[str(student.get("user_id"))] = full_name or student.get("email", "")
        return names

    def list_all_subjects(self) -> List[Dict]:
        names = self._student_names()
        docs = self._list_documents(
            self.subjects_collection_id,
            [
                Query.order_desc("created_at"),
                Query.limit(LIST_LIMIT),
            ],
        )
        results: List[Dict] = []
        for doc in docs:
            row = self._with_id(doc)
            row["student_name"] = names.get(str(row.get("user_id")), "-")
            results.append(row)
        return results

    def list_all_reminders(self) -> List[Dict]:
        names = self._student_names()
        docs = self._list_documents(
            self.reminders_collection_id,
            [
                Query.order_asc("due_date"),
                Query.limit(LIST_LIMIT),
            ],
        )
        results: List[Dict] = []
        for doc in docs:
            row = self._with_id(doc)
            row["student_name"] = names.get(str(row.get("user_id")), "-")
            results.append(row)
        return sort_reminders(results)

    def delete_student(self, student_doc_id: str) -> None:
        student = self._find_first(self.students_collection_id, [Query.equal("$id", [student_doc_id])])
        if not student:
            raise AppwriteServiceError("Student not found.")

        uid = str(student.get("user_id") or "")
        if uid:
            for collection_id in (
                self.subjects_collection_id,
                self.reminders_collection_id,
                self.user_roles_collection_id,
            ):
                for doc in self._list_documents(
                    collection_id,
                    [
                        Query.equal("user_id", [uid]),
                        Query.limit(LIST_LIMIT),
                    ],
                ):
                    self._delete_document(collection_id, doc["$id"])

        self._delete_document(self.students_collection_id, student_doc_id)
        logger.info("Deleted student %s (user %s)", student_doc_id, uid or "-")
