from datetime import datetime
import math
from typing import Any, Optional

from studenttracker.core.countdown import CountdownState


DATE_TIME_FMT = "%Y-%m-%d %H:%M"


def parse_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value or "").strip()
        if not text:
            raise ValueError(f"{field_name} must be a number")
        try:
            number = float(text)
        except ValueError as exc:
            raise ValueError(f"{field_name} must be a number") from exc

    # float() accepts "nan" and "inf", which cannot be stored or serialized.
    if not math.isfinite(number):
        raise ValueError(f"{field_name} must be a number")
    return number


def format_percentage(value: Optional[float], places: int = 1) -> str:
    if value is None:
        value = 0.0
    return f"{float(value):.{places}f}%"


def format_countdown(state: Optional[CountdownState]) -> str:
    if state is None:
        return "-"
    if state.overdue:
        return "Overdue"
    return f"{state.days}d {state.hours}h {state.minutes}m"


def parse_due_date(text: str) -> datetime:
    """
    Accepts ISO-8601 ("2026-02-15T23:59", "...Z", "...+02:00") or
    "YYYY-MM-DD HH:MM". Values without an offset are read as local time.
    """
    value = (text or "").strip()
    if not value:
        raise ValueError("Due date is required")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = datetime.strptime(value, DATE_TIME_FMT)
        except ValueError as exc:
            raise ValueError("Invalid date format. Use YYYY-MM-DD HH:MM.") from exc

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed
