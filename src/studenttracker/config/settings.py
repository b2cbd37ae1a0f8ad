from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    appwrite_endpoint: str = os.getenv("APPWRITE_ENDPOINT", "")
    appwrite_project_id: str = os.getenv("APPWRITE_PROJECT_ID", "")
    appwrite_api_key: str = os.getenv("APPWRITE_API_KEY") or os.getenv("APPWRITE_FUNCTION_API_KEY", "")
    appwrite_database_id: str = os.getenv("APPWRITE_DATABASE_ID", "")

    appwrite_students_collection_id: str = os.getenv("APPWRITE_STUDENTS_COLLECTION_ID", "students")
    appwrite_user_roles_collection_id: str = os.getenv("APPWRITE_USER_ROLES_COLLECTION_ID", "user_roles")
    appwrite_subjects_collection_id: str = os.getenv("APPWRITE_SUBJECTS_COLLECTION_ID", "subjects")
    appwrite_reminders_collection_id: str = os.getenv("APPWRITE_REMINDERS_COLLECTION_ID", "reminders")

    max_subjects: int = int(os.getenv("MAX_SUBJECTS", "10"))
    countdown_tick_seconds: float = float(os.getenv("COUNTDOWN_TICK_SECONDS", "1"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )
    cors_allow_origin_regex: str = os.getenv(
        "CORS_ALLOW_ORIGIN_REGEX",
        r"^https?:\/\/(localhost|127\.0\.0\.1)(:\d+)?$",
    )


settings = Settings()
