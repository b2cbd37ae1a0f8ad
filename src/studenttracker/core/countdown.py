from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


DAY = timedelta(days=1)
HOUR = timedelta(hours=1)
MINUTE = timedelta(minutes=1)


@dataclass(frozen=True)
class CountdownState:
    days: int
    hours: int
    minutes: int
    overdue: bool

    def as_dict(self) -> Dict:
        return asdict(self)


OVERDUE = CountdownState(days=0, hours=0, minutes=0, overdue=True)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_due(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return _as_utc(value)
    if not value:
        return None
    try:
        return _as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def compute_countdown(due: datetime, now: datetime) -> CountdownState:
    due_utc = _as_utc(due)
    now_utc = _as_utc(now)

    if due_utc < now_utc:
        # Time past due is not reported.
        return OVERDUE

    days, remainder = divmod(due_utc - now_utc, DAY)
    hours, remainder = divmod(remainder, HOUR)
    minutes = remainder // MINUTE
    return CountdownState(days=days, hours=hours, minutes=minutes, overdue=False)


def _due_key(reminder: Mapping) -> datetime:
    due = parse_due(reminder.get("due_date"))
    if due is None:
        return datetime.max.replace(tzinfo=timezone.utc)
    return due


def sort_reminders(reminders: Iterable[Mapping]) -> List[Mapping]:
    # sorted() is stable, ties keep insertion order
    return sorted(reminders, key=_due_key)


def countdowns_for(reminders: Iterable[Mapping], now: datetime) -> List[Tuple[Mapping, Optional[CountdownState]]]:
    results: List[Tuple[Mapping, Optional[CountdownState]]] = []
    for reminder in sort_reminders(reminders):
        due = parse_due(reminder.get("due_date"))
        results.append((reminder, compute_countdown(due, now) if due else None))
    return results
