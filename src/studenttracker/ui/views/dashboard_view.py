from datetime import datetime, timezone
from typing import Callable
import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.config.settings import settings
from studenttracker.core.countdown import countdowns_for
from studenttracker.core.formatting import format_countdown
from studenttracker.services.appwrite_service import AppwriteService, AppwriteServiceError
from studenttracker.state.app_state import AppState


logger = get_logger("ui.dashboard")

UPCOMING_LIMIT = 3


def build_dashboard_view(
    page: ft.Page,
    app_state: AppState,
    on_manage_subjects: Callable[[], None],
    on_manage_reminders: Callable[[], None],
    on_logout: Callable[[], None],
) -> ft.View:
    uid = app_state.session.uid
    student = app_state.session.student
    status = ft.Text(color=ft.Colors.RED_400)

    try:
        store = AppwriteService.from_settings()
        if uid:
            app_state.set_subjects(store.list_subjects(uid))
            app_state.set_reminders(store.list_reminders(uid))
    except AppwriteServiceError as exc:
        logger.warning("Dashboard refresh failed, showing cached data: %s", exc)
        status.value = f"Could not refresh data: {exc}"

    now = datetime.now(timezone.utc)
    upcoming = [
        (reminder, countdown)
        for reminder, countdown in countdowns_for(app_state.reminders, now)
        if countdown is not None and not countdown.overdue
    ][:UPCOMING_LIMIT]

    reminder_controls = []
    for reminder, countdown in upcoming:
        reminder_controls.append(
            ft.Card(
                content=ft.Container(
                    padding=10,
                    content=ft.Column(
                        controls=[
                            ft.Text(reminder.get("title", "Untitled Reminder"), weight=ft.FontWeight.BOLD),
                            ft.Text(f"{reminder.get('subject_name', '-')} • {reminder.get('type', '-')}"),
                            ft.Text(f"{format_countdown(countdown)} remaining"),
                        ]
                    ),
                )
            )
        )
    if not reminder_controls:
        reminder_controls.append(ft.Text("No upcoming deadlines."))

    return ft.View(
        route="/dashboard",
        controls=[
            ft.AppBar(title=ft.Text("Student Tracker - Dashboard")),
            ft.Container(
                padding=20,
                content=ft.Column(
                    scroll=ft.ScrollMode.AUTO,
                    controls=[
                        ft.Text(f"Welcome, {app_state.session.display_name}", size=26, weight=ft.FontWeight.BOLD),
                        ft.Text(f"Student ID: {student.get('student_id', '-')}"),
                        ft.Text(f"Course: {student.get('course') or '-'}, Year: {student.get('year_level') or '-'}"),
                        ft.Text(f"Email: {student.get('email') or app_state.session.email or '-'}"),
                        status,
                        ft.Row(
                            wrap=True,
                            controls=[
                                ft.Button("Subjects & Grades", on_click=lambda _: on_manage_subjects()),
                                ft.Button("Reminders", on_click=lambda _: on_manage_reminders()),
                                ft.OutlinedButton("Refresh", on_click=lambda _: page.go("/dashboard")),
                                ft.TextButton("Logout", on_click=lambda _: on_logout()),
                            ],
                        ),
                        ft.Divider(),
                        ft.Text(
                            f"Subjects: {len(app_state.subjects)}/{settings.max_subjects}",
                            size=20,
                            weight=ft.FontWeight.BOLD,
                        ),
                        ft.Text(f"Reminders: {len(app_state.reminders)}", size=20, weight=ft.FontWeight.BOLD),
                        ft.Divider(),
                        ft.Text("Next deadlines", size=20, weight=ft.FontWeight.BOLD),
                        *reminder_controls,
                    ],
                ),
            ),
        ],
    )
