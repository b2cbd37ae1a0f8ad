from datetime import datetime, timezone
from typing import Callable, Dict
import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.config.settings import settings
from studenttracker.core.countdown import compute_countdown, countdowns_for, parse_due
from studenttracker.core.formatting import DATE_TIME_FMT, format_countdown, parse_due_date
from studenttracker.services.appwrite_service import REMINDER_TYPES, AppwriteService, AppwriteServiceError
from studenttracker.state.app_state import AppState
from studenttracker.ui.ticker import CountdownTicker


logger = get_logger("ui.reminders")

TYPE_ICONS = {
    "assignment": ft.Icons.MENU_BOOK,
    "submission": ft.Icons.CALENDAR_MONTH,
    "exam": ft.Icons.ERROR_OUTLINE,
}


def _countdown_style(text: ft.Text, state) -> None:
    text.value = format_countdown(state)
    text.color = ft.Colors.RED_400 if state is not None and state.overdue else ft.Colors.BLUE_400


def build_reminders_view(
    page: ft.Page,
    app_state: AppState,
    on_back: Callable[[], None],
    register_ticker: Callable[[CountdownTicker], None],
) -> ft.View:
    store = AppwriteService.from_settings()

    subject = ft.Dropdown(width=320, label="Subject")
    reminder_type = ft.Dropdown(
        width=220,
        label="Type",
        value=REMINDER_TYPES[0],
        options=[ft.dropdown.Option(value, value.capitalize()) for value in REMINDER_TYPES],
    )
    title = ft.TextField(label="Title", hint_text="e.g., Math Assignment 1", width=350)
    due_date = ft.TextField(label="Due (YYYY-MM-DD HH:MM)", width=260)
    description = ft.TextField(label="Description (Optional)", width=500, multiline=True, min_lines=2, max_lines=4)
    status = ft.Text(color=ft.Colors.RED_400)
    heading = ft.Text(size=20, weight=ft.FontWeight.BOLD)
    reminder_list = ft.Column(spacing=8)

    countdown_texts: Dict[str, ft.Text] = {}

    def set_status(message: str, is_error: bool = True) -> None:
        status.value = message
        status.color = ft.Colors.RED_400 if is_error else ft.Colors.GREEN_400

    def refresh_subject_options() -> None:
        subject.options = [ft.dropdown.Option(s["id"], s.get("name", s["id"])) for s in app_state.subjects]
        if subject.value and app_state.find_subject(subject.value) is None:
            subject.value = None

    def load() -> None:
        uid = app_state.session.uid
        if not uid:
            set_status("No active session.")
            return
        try:
            app_state.set_subjects(store.list_subjects(uid))
            app_state.set_reminders(store.list_reminders(uid))
        except AppwriteServiceError as exc:
            set_status(f"Failed to load reminders: {exc}")

    def render_reminders() -> None:
        reminder_list.controls.clear()
        countdown_texts.clear()
        heading.value = f"All Reminders ({len(app_state.reminders)})"

        if not app_state.reminders:
            reminder_list.controls.append(ft.Text('No reminders set. Click "Add Reminder" to get started!'))
            page.update()
            return

        now = datetime.now(timezone.utc)
        for reminder, countdown in countdowns_for(app_state.reminders, now):
            due = parse_due(reminder.get("due_date"))
            due_text = due.astimezone().strftime(DATE_TIME_FMT) if due else "-"

            countdown_text = ft.Text(size=18, weight=ft.FontWeight.BOLD)
            _countdown_style(countdown_text, countdown)
            countdown_texts[reminder["id"]] = countdown_text

            details = [
                ft.Text(reminder.get("title", "Untitled Reminder"), weight=ft.FontWeight.BOLD),
                ft.Text(f"{reminder.get('subject_name', '-')} • {reminder.get('type', '-')}"),
                ft.Text(f"Due: {due_text}"),
            ]
            if reminder.get("description"):
                details.append(ft.Text(reminder["description"]))

            reminder_list.controls.append(
                ft.Card(
                    content=ft.Container(
                        padding=12,
                        content=ft.Row(
                            alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                            controls=[
                                ft.Row(
                                    controls=[
                                        ft.Icon(TYPE_ICONS.get(reminder.get("type"), ft.Icons.ALARM)),
                                        ft.Column(controls=details),
                                    ]
                                ),
                                countdown_text,
                            ],
                        ),
                    )
                )
            )

        page.update()

    def on_tick() -> None:
        now = datetime.now(timezone.utc)
        for reminder in app_state.reminders:
            text = countdown_texts.get(reminder.get("id"))
            due = parse_due(reminder.get("due_date"))
            if text is None or due is None:
                continue
            _countdown_style(text, compute_countdown(due, now))
        page.update()

    def on_add(_):
        uid = app_state.session.uid
        if not uid:
            set_status("No active session.")
            page.update()
            return

        if not subject.value or not title.value or not due_date.value:
            set_status("Please fill in all required fields.")
            page.update()
            return

        try:
            parsed_due = parse_due_date(due_date.value)
            store.create_reminder(
                uid,
                subject_id=subject.value,
                reminder_type=reminder_type.value or REMINDER_TYPES[0],
                title=title.value,
                due_date=parsed_due,
                description=description.value or "",
            )
        except ValueError as exc:
            set_status(str(exc))
            page.update()
            return
        except AppwriteServiceError as exc:
            set_status(f"Failed to add reminder: {exc}")
            page.update()
            return

        set_status(f"{title.value.strip()} has been added to your reminders.", is_error=False)
        title.value = ""
        due_date.value = ""
        description.value = ""
        subject.value = None
        reminder_type.value = REMINDER_TYPES[0]
        load()
        render_reminders()

    load()
    refresh_subject_options()
    render_reminders()

    ticker = CountdownTicker(on_tick, interval=settings.countdown_tick_seconds)
    register_ticker(ticker)
    page.run_task(ticker.run)

    return ft.View(
        route="/reminders",
        controls=[
            ft.AppBar(title=ft.Text("Student Tracker - Reminders")),
            ft.Container(
                padding=20,
                content=ft.Column(
                    scroll=ft.ScrollMode.AUTO,
                    controls=[
                        ft.Row(controls=[ft.Button("Back to Dashboard", on_click=lambda _: on_back())]),
                        ft.Text("Add Reminder", size=22, weight=ft.FontWeight.BOLD),
                        subject,
                        ft.Row(controls=[reminder_type, due_date]),
                        title,
                        description,
                        ft.Button("Add Reminder", on_click=on_add),
                        status,
                        ft.Divider(),
                        heading,
                        reminder_list,
                    ],
                ),
            ),
        ],
    )
