from typing import Callable
import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.services.appwrite_service import ROLE_STUDENT, AppwriteService, AppwriteServiceError
from studenttracker.services.auth_service import AppwriteAuthService, AuthServiceError
from studenttracker.state.app_state import AppState


logger = get_logger("ui.register")

MIN_PASSWORD_LENGTH = 6


def build_register_view(
    page: ft.Page,
    app_state: AppState,
    on_registered: Callable[[], None],
    on_back: Callable[[], None],
) -> ft.View:
    first_name = ft.TextField(label="Name", width=350)
    last_name = ft.TextField(label="Surname", width=350)
    email = ft.TextField(label="Email", width=350)
    password = ft.TextField(label="Password", password=True, can_reveal_password=True, width=350)
    course = ft.TextField(label="Course", width=350)
    year_level = ft.Dropdown(
        width=350,
        label="Year Level",
        value="1st Year",
        options=[ft.dropdown.Option(f"{label} Year") for label in ("1st", "2nd", "3rd", "4th")],
    )
    status_text = ft.Text(color=ft.Colors.RED_400)

    def set_status(message: str, is_error: bool = True) -> None:
        status_text.value = message
        status_text.color = ft.Colors.RED_400 if is_error else ft.Colors.GREEN_400
        page.update()

    def on_sign_up(_):
        if not first_name.value or not last_name.value or not email.value or not password.value:
            set_status("Name, surname, email and password are required.")
            return
        if len(password.value) < MIN_PASSWORD_LENGTH:
            set_status(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
            return

        try:
            auth = AppwriteAuthService.from_settings()
            store = AppwriteService.from_settings()
            result = auth.sign_up(
                email.value.strip(),
                password.value,
                f"{first_name.value.strip()} {last_name.value.strip()}",
            )
            student = store.create_student_profile(
                result.uid,
                first_name=first_name.value.strip(),
                last_name=last_name.value.strip(),
                email=email.value.strip(),
                course=(course.value or "").strip(),
                year_level=year_level.value or "",
            )
            store.ensure_role(result.uid, ROLE_STUDENT)
        except AuthServiceError as exc:
            set_status(f"Registration failed: {exc}")
            return
        except AppwriteServiceError as exc:
            set_status(f"Failed to create student profile: {exc}")
            return

        app_state.reset()
        app_state.session.uid = result.uid
        app_state.session.email = result.email
        app_state.session.id_token = result.id_token
        app_state.session.refresh_token = result.refresh_token
        app_state.session.role = ROLE_STUDENT
        app_state.session.student = student
        logger.info("Registered student %s", student.get("student_id"))
        on_registered()

    return ft.View(
        route="/register",
        controls=[
            ft.AppBar(title=ft.Text("Student Tracker - Register")),
            ft.Container(
                padding=20,
                content=ft.Column(
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                    scroll=ft.ScrollMode.AUTO,
                    controls=[
                        ft.Text("Create your student account", size=26, weight=ft.FontWeight.BOLD),
                        first_name,
                        last_name,
                        email,
                        password,
                        course,
                        year_level,
                        ft.Row(
                            alignment=ft.MainAxisAlignment.CENTER,
                            controls=[
                                ft.Button("Register", on_click=on_sign_up),
                                ft.OutlinedButton("Back to Login", on_click=lambda _: on_back()),
                            ],
                        ),
                        status_text,
                    ],
                ),
            ),
        ],
    )
