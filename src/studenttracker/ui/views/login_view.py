from typing import Callable
import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.services.appwrite_service import ROLE_ADMIN, ROLE_STUDENT, AppwriteService, AppwriteServiceError
from studenttracker.services.auth_service import AppwriteAuthService, AuthResult, AuthServiceError
from studenttracker.state.app_state import AppState


logger = get_logger("ui.login")


def build_login_view(
    page: ft.Page,
    app_state: AppState,
    on_student_login: Callable[[], None],
    on_admin_login: Callable[[], None],
    on_register: Callable[[], None],
) -> ft.View:
    email = ft.TextField(label="Email", width=350)
    password = ft.TextField(label="Password", password=True, can_reveal_password=True, width=350)
    status_text = ft.Text(color=ft.Colors.RED_400)

    def set_status(message: str, is_error: bool = True) -> None:
        status_text.value = message
        status_text.color = ft.Colors.RED_400 if is_error else ft.Colors.GREEN_400
        page.update()

    def store_session(auth_result: AuthResult, role: str) -> None:
        app_state.reset()
        app_state.session.uid = auth_result.uid
        app_state.session.email = auth_result.email
        app_state.session.id_token = auth_result.id_token
        app_state.session.refresh_token = auth_result.refresh_token
        app_state.session.role = role

    def credentials_ok() -> bool:
        if not email.value or not password.value:
            set_status("Email and password are required.")
            return False
        return True

    def on_student_sign_in(_):
        if not credentials_ok():
            return

        try:
            auth = AppwriteAuthService.from_settings()
            store = AppwriteService.from_settings()
            result = auth.sign_in(email.value.strip(), password.value)
            student = store.get_student_profile(result.uid)
        except AuthServiceError as exc:
            set_status(f"Student login failed: {exc}")
            return
        except AppwriteServiceError as exc:
            set_status(f"Error retrieving student profile: {exc}")
            return

        if not student:
            set_status("No student profile found. Please contact support or try signing up again.")
            return

        store_session(result, ROLE_STUDENT)
        app_state.session.student = student
        logger.info("Student %s signed in", result.uid)
        on_student_login()

    def on_admin_sign_in(_):
        if not credentials_ok():
            return

        try:
            auth = AppwriteAuthService.from_settings()
            store = AppwriteService.from_settings()
            result = auth.sign_in(email.value.strip(), password.value)
            if not store.has_role(result.uid, ROLE_ADMIN):
                auth.sign_out(result.id_token)
                set_status("Access denied: you don't have admin permissions.")
                return
        except AuthServiceError as exc:
            set_status(f"Admin login failed: {exc}")
            return
        except AppwriteServiceError as exc:
            set_status(f"Error checking admin permissions: {exc}")
            return

        store_session(result, ROLE_ADMIN)
        logger.info("Admin %s signed in", result.uid)
        on_admin_login()

    return ft.View(
        route="/login",
        controls=[
            ft.AppBar(title=ft.Text("Student Tracker - Login")),
            ft.Container(
                padding=20,
                content=ft.Column(
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                    controls=[
                        ft.Text("Welcome to Student Tracker", size=30, weight=ft.FontWeight.BOLD),
                        ft.Text("Sign in as a student or an administrator."),
                        email,
                        password,
                        ft.Row(
                            alignment=ft.MainAxisAlignment.CENTER,
                            controls=[
                                ft.Button("Student Sign In", on_click=on_student_sign_in),
                                ft.OutlinedButton("Admin Sign In", on_click=on_admin_sign_in),
                            ],
                        ),
                        ft.TextButton("New student? Register", on_click=lambda _: on_register()),
                        status_text,
                    ],
                ),
            ),
        ],
    )
