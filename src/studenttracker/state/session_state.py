from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class SessionState:
    uid: Optional[str] = None
    email: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    role: Optional[str] = None
    student: Dict = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.uid and self.id_token)

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == "admin"

    @property
    def display_name(self) -> str:
        full_name = f"{self.student.get('first_name', '')} {self.student.get('last_name', '')}".strip()
        return full_name or self.email or ""

    def clear(self) -> None:
        self.uid = None
        self.email = None
        self.id_token = None
        self.refresh_token = None
        self.role = None
        self.student = {}
