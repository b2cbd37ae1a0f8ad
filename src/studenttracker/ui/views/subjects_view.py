from typing import Callable, Dict, Optional
import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.config.settings import settings
from studenttracker.core.formatting import format_percentage, parse_number
from studenttracker.core.grades import DEFAULT_WEIGHTS, TERM_SLOTS, TermScoreInput, ValidationError
from studenttracker.services.appwrite_service import AppwriteService, AppwriteServiceError
from studenttracker.state.app_state import AppState


logger = get_logger("ui.subjects")


def _number_field(label: str, value: float) -> ft.TextField:
    return ft.TextField(label=label, width=170, value=f"{value:g}", keyboard_type=ft.KeyboardType.NUMBER)


def build_subjects_view(page: ft.Page, app_state: AppState, on_back: Callable[[], None]) -> ft.View:
    store = AppwriteService.from_settings()

    name = ft.TextField(label="Subject Name", hint_text="e.g., Mathematics", width=320)
    description = ft.TextField(label="Description", width=500, multiline=True, min_lines=2, max_lines=4)
    add_button = ft.Button("Add Subject")
    status = ft.Text(color=ft.Colors.RED_400)
    heading = ft.Text(size=20, weight=ft.FontWeight.BOLD)
    table_holder = ft.Column(spacing=8)

    selected: Dict[str, Optional[str]] = {"subject_id": None}
    calc_title = ft.Text(size=18, weight=ft.FontWeight.BOLD)
    term = ft.Dropdown(
        width=170,
        label="Term",
        value=TERM_SLOTS[0],
        options=[ft.dropdown.Option(slot, f"Term {index + 1}") for index, slot in enumerate(TERM_SLOTS)],
    )
    test_score = _number_field("Test Score (%)", 0)
    test_weight = _number_field("Test Weight (%)", DEFAULT_WEIGHTS[0])
    assignment_score = _number_field("Assignment Score (%)", 0)
    assignment_weight = _number_field("Assignment Weight (%)", DEFAULT_WEIGHTS[1])
    exam_score = _number_field("Exam Score (%)", 0)
    exam_weight = _number_field("Exam Weight (%)", DEFAULT_WEIGHTS[2])
    total_weight_text = ft.Text()
    calculator = ft.Container(visible=False, padding=12)

    def set_status(message: str, is_error: bool = True) -> None:
        status.value = message
        status.color = ft.Colors.RED_400 if is_error else ft.Colors.GREEN_400

    def refresh_total_weight(_=None) -> None:
        try:
            total = sum(parse_number(field.value, field.label) for field in (test_weight, assignment_weight, exam_weight))
        except ValueError:
            total_weight_text.value = "Total Weight: -"
            total_weight_text.color = ft.Colors.RED_400
        else:
            hint = "" if total == 100 else " (Must equal 100%)"
            total_weight_text.value = f"Total Weight: {total:g}%{hint}"
            total_weight_text.color = ft.Colors.RED_400 if hint else None
        page.update()

    for weight_field in (test_weight, assignment_weight, exam_weight):
        weight_field.on_change = refresh_total_weight

    def open_calculator(subject_id: str, slot: str) -> None:
        subject = app_state.find_subject(subject_id)
        if subject is None:
            return
        selected["subject_id"] = subject_id
        term.value = slot
        calc_title.value = f"Calculate Term - {subject.get('name', '')}"
        for field in (test_score, assignment_score, exam_score):
            field.value = "0"
        test_weight.value = f"{DEFAULT_WEIGHTS[0]:g}"
        assignment_weight.value = f"{DEFAULT_WEIGHTS[1]:g}"
        exam_weight.value = f"{DEFAULT_WEIGHTS[2]:g}"
        calculator.visible = True
        refresh_total_weight()

    def close_calculator(_=None) -> None:
        selected["subject_id"] = None
        calculator.visible = False
        page.update()

    def render_subjects() -> None:
        table_holder.controls.clear()
        subjects = app_state.subjects
        heading.value = f"My Subjects ({len(subjects)}/{settings.max_subjects})"
        add_button.disabled = len(subjects) >= settings.max_subjects

        if not subjects:
            table_holder.controls.append(ft.Text('No subjects added yet. Click "Add Subject" to get started!'))
            page.update()
            return

        def make_term_handler(subject_id: str, slot: str):
            def handler(_):
                open_calculator(subject_id, slot)

            return handler

        rows = []
        for subject in subjects:
            cells = [
                ft.DataCell(ft.Text(subject["id"], size=12)),
                ft.DataCell(
                    ft.TextButton(subject.get("name", "Unnamed Subject"), on_click=make_term_handler(subject["id"], TERM_SLOTS[0]))
                ),
                ft.DataCell(ft.Text(subject.get("description") or "-")),
            ]
            for slot in TERM_SLOTS:
                cells.append(
                    ft.DataCell(
                        ft.TextButton(
                            format_percentage(subject.get(slot)),
                            on_click=make_term_handler(subject["id"], slot),
                        )
                    )
                )
            rows.append(ft.DataRow(cells=cells))

        table_holder.controls.append(
            ft.DataTable(
                columns=[
                    ft.DataColumn(ft.Text("Subject ID")),
                    ft.DataColumn(ft.Text("Subject Name")),
                    ft.DataColumn(ft.Text("Description")),
                    *[ft.DataColumn(ft.Text(f"Term {index + 1} %")) for index in range(len(TERM_SLOTS))],
                ],
                rows=rows,
            )
        )
        page.update()

    def load_subjects() -> None:
        uid = app_state.session.uid
        if not uid:
            set_status("No active session.")
            return
        try:
            app_state.set_subjects(store.list_subjects(uid))
        except AppwriteServiceError as exc:
            set_status(f"Failed to load subjects: {exc}")

    def on_add(_):
        uid = app_state.session.uid
        if not uid:
            set_status("No active session.")
            page.update()
            return

        try:
            store.create_subject(uid, name=name.value or "", description=description.value or "")
        except AppwriteServiceError as exc:
            set_status(str(exc))
            page.update()
            return

        set_status(f"{name.value.strip()} has been added to your subjects.", is_error=False)
        name.value = ""
        description.value = ""
        load_subjects()
        render_subjects()

    def on_calculate(_):
        uid = app_state.session.uid
        subject_id = selected["subject_id"]
        if not uid or not subject_id:
            set_status("Select a subject first.")
            page.update()
            return

        try:
            inputs = TermScoreInput(
                test_score=parse_number(test_score.value, "Test score"),
                assignment_score=parse_number(assignment_score.value, "Assignment score"),
                exam_score=parse_number(exam_score.value, "Exam score"),
                test_weight=parse_number(test_weight.value, "Test weight"),
                assignment_weight=parse_number(assignment_weight.value, "Assignment weight"),
                exam_weight=parse_number(exam_weight.value, "Exam weight"),
            )
            slot = term.value or TERM_SLOTS[0]
            percentage = store.save_term_percentage(uid, subject_id, slot, inputs)
        except ValidationError:
            set_status("Invalid weights: weights must add up to 100%.")
            page.update()
            return
        except ValueError as exc:
            set_status(str(exc))
            page.update()
            return
        except AppwriteServiceError as exc:
            set_status(f"Failed to save term percentage: {exc}")
            page.update()
            return

        app_state.update_term(subject_id, slot, percentage)
        set_status(f"{slot.upper()} percentage: {format_percentage(percentage, places=2)}", is_error=False)
        calculator.visible = False
        selected["subject_id"] = None
        render_subjects()

    add_button.on_click = on_add

    calculator.content = ft.Card(
        content=ft.Container(
            padding=12,
            content=ft.Column(
                controls=[
                    calc_title,
                    term,
                    ft.Row(controls=[test_score, test_weight]),
                    ft.Row(controls=[assignment_score, assignment_weight]),
                    ft.Row(controls=[exam_score, exam_weight]),
                    total_weight_text,
                    ft.Row(
                        controls=[
                            ft.Button("Calculate Percentage", on_click=on_calculate),
                            ft.OutlinedButton("Cancel", on_click=close_calculator),
                        ]
                    ),
                ]
            ),
        )
    )

    load_subjects()
    render_subjects()

    return ft.View(
        route="/subjects",
        controls=[
            ft.AppBar(title=ft.Text("Student Tracker - Subjects")),
            ft.Container(
                padding=20,
                content=ft.Column(
                    scroll=ft.ScrollMode.AUTO,
                    controls=[
                        ft.Row(controls=[ft.Button("Back to Dashboard", on_click=lambda _: on_back())]),
                        ft.Text("Add Subject", size=22, weight=ft.FontWeight.BOLD),
                        name,
                        description,
                        add_button,
                        status,
                        ft.Divider(),
                        heading,
                        ft.Row(scroll=ft.ScrollMode.AUTO, controls=[table_holder]),
                        calculator,
                    ],
                ),
            ),
        ],
    )
