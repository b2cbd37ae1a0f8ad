from dataclasses import dataclass, field
from typing import Dict, List, Optional

from studenttracker.core.countdown import sort_reminders
from studenttracker.state.session_state import SessionState


@dataclass
class AppState:
    """
    Per-session cache of the signed-in student's records.
    Only the UI thread that owns the session writes to it.
    """

    session: SessionState = field(default_factory=SessionState)
    subjects: List[Dict] = field(default_factory=list)
    reminders: List[Dict] = field(default_factory=list)

    def set_subjects(self, subjects: List[Dict]) -> None:
        self.subjects = list(subjects)

    def set_reminders(self, reminders: List[Dict]) -> None:
        self.reminders = sort_reminders(reminders)

    def find_subject(self, subject_id: str) -> Optional[Dict]:
        for subject in self.subjects:
            if subject.get("id") == subject_id:
                return subject
        return None

    def update_term(self, subject_id: str, term: str, percentage: float) -> None:
        subject = self.find_subject(subject_id)
        if subject is not None:
            subject[term] = percentage

    def reset(self) -> None:
        self.session.clear()
        self.subjects = []
        self.reminders = []


app_state = AppState()
