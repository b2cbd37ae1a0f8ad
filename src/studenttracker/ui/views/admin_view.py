from typing import Callable, Dict, List
import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.core.countdown import parse_due
from studenttracker.core.formatting import DATE_TIME_FMT, format_percentage
from studenttracker.core.grades import TERM_SLOTS, is_passing, term_average
from studenttracker.services.appwrite_service import AppwriteService, AppwriteServiceError
from studenttracker.state.app_state import AppState


logger = get_logger("ui.admin")


def _table(headers: List[str], rows: List[List[ft.Control]]) -> ft.DataTable:
    return ft.DataTable(
        columns=[ft.DataColumn(ft.Text(header)) for header in headers],
        rows=[ft.DataRow(cells=[ft.DataCell(cell) for cell in row]) for row in rows],
    )


def build_admin_view(page: ft.Page, app_state: AppState, on_logout: Callable[[], None]) -> ft.View:
    store = AppwriteService.from_settings()

    status = ft.Text(color=ft.Colors.RED_400)
    counts = ft.Text(size=18, weight=ft.FontWeight.BOLD)
    students_holder = ft.Column()
    subjects_holder = ft.Column()
    reminders_holder = ft.Column()

    def set_status(message: str, is_error: bool = True) -> None:
        status.value = message
        status.color = ft.Colors.RED_400 if is_error else ft.Colors.GREEN_400

    def make_delete_handler(student_doc_id: str):
        def handler(_):
            try:
                store.delete_student(student_doc_id)
                set_status("Student deleted successfully", is_error=False)
            except AppwriteServiceError as exc:
                set_status(f"Failed to delete student: {exc}")
            refresh()

        return handler

    def render_students(students: List[Dict]) -> None:
        rows = [
            [
                ft.Text(student.get("student_id", "-")),
                ft.Text(f"{student.get('first_name', '')} {student.get('last_name', '')}".strip() or "-"),
                ft.Text(student.get("email", "-")),
                ft.Text(student.get("course") or "-"),
                ft.Text(student.get("year_level") or "-"),
                ft.TextButton("Delete", on_click=make_delete_handler(student["id"])),
            ]
            for student in students
        ]
        students_holder.controls = [
            _table(["Student ID", "Name", "Email", "Course", "Year", ""], rows) if rows else ft.Text("No students yet.")
        ]

    def render_subjects(subjects: List[Dict]) -> None:
        rows = []
        for subject in subjects:
            average = term_average(subject)
            rows.append(
                [
                    ft.Text(subject.get("name", "-")),
                    ft.Text(subject.get("student_name", "-")),
                    *[ft.Text(format_percentage(subject.get(slot))) for slot in TERM_SLOTS],
                    ft.Text(
                        format_percentage(average),
                        weight=ft.FontWeight.BOLD,
                        color=ft.Colors.GREEN_400 if is_passing(average) else ft.Colors.RED_400,
                    ),
                ]
            )
        subjects_holder.controls = [
            _table(["Subject", "Student", "Term 1", "Term 2", "Term 3", "Term 4", "Average"], rows)
            if rows
            else ft.Text("No subjects yet.")
        ]

    def render_reminders(reminders: List[Dict]) -> None:
        rows = []
        for reminder in reminders:
            due = parse_due(reminder.get("due_date"))
            rows.append(
                [
                    ft.Text(reminder.get("title", "-")),
                    ft.Text(reminder.get("type", "-")),
                    ft.Text(reminder.get("student_name", "-")),
                    ft.Text(due.astimezone().strftime(DATE_TIME_FMT) if due else "-"),
                ]
            )
        reminders_holder.controls = [
            _table(["Title", "Type", "Student", "Due"], rows) if rows else ft.Text("No reminders yet.")
        ]

    def refresh() -> None:
        try:
            students = store.list_students()
            subjects = store.list_all_subjects()
            reminders = store.list_all_reminders()
        except AppwriteServiceError as exc:
            logger.error("Admin data load failed: %s", exc)
            set_status(f"Failed to fetch data: {exc}")
            page.update()
            return

        counts.value = f"Students: {len(students)}   Subjects: {len(subjects)}   Reminders: {len(reminders)}"
        render_students(students)
        render_subjects(subjects)
        render_reminders(reminders)
        page.update()

    refresh()

    return ft.View(
        route="/admin",
        controls=[
            ft.AppBar(title=ft.Text("Student Tracker - Admin")),
            ft.Container(
                padding=20,
                content=ft.Column(
                    scroll=ft.ScrollMode.AUTO,
                    controls=[
                        ft.Row(
                            controls=[
                                ft.OutlinedButton("Refresh", on_click=lambda _: refresh()),
                                ft.TextButton("Logout", on_click=lambda _: on_logout()),
                            ]
                        ),
                        ft.Text("Admin Dashboard", size=26, weight=ft.FontWeight.BOLD),
                        counts,
                        status,
                        ft.Divider(),
                        ft.Text("Students", size=20, weight=ft.FontWeight.BOLD),
                        ft.Row(scroll=ft.ScrollMode.AUTO, controls=[students_holder]),
                        ft.Divider(),
                        ft.Text("Subjects", size=20, weight=ft.FontWeight.BOLD),
                        ft.Row(scroll=ft.ScrollMode.AUTO, controls=[subjects_holder]),
                        ft.Divider(),
                        ft.Text("Reminders", size=20, weight=ft.FontWeight.BOLD),
                        ft.Row(scroll=ft.ScrollMode.AUTO, controls=[reminders_holder]),
                    ],
                ),
            ),
        ],
    )
