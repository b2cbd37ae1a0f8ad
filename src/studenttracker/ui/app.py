from typing import Optional

import flet as ft

from studenttracker.config.logger import get_logger
from studenttracker.services.auth_service import AppwriteAuthService, AuthServiceError
from studenttracker.state.app_state import AppState, app_state
from studenttracker.ui.ticker import CountdownTicker
from studenttracker.ui.views.admin_view import build_admin_view
from studenttracker.ui.views.dashboard_view import build_dashboard_view
from studenttracker.ui.views.login_view import build_login_view
from studenttracker.ui.views.register_view import build_register_view
from studenttracker.ui.views.reminders_view import build_reminders_view
from studenttracker.ui.views.subjects_view import build_subjects_view


logger = get_logger("ui")

PUBLIC_ROUTES = ("/login", "/register")
STUDENT_ROUTES = ("/dashboard", "/subjects", "/reminders")


class StudentTrackerApp:
    def __init__(self, page: ft.Page, state: AppState = app_state) -> None:
        self.page = page
        self.state = state
        self.ticker: Optional[CountdownTicker] = None

        self.page.title = "Student Tracker"
        self.page.on_route_change = self.route_change
        self.page.on_view_pop = self.view_pop

    def run(self) -> None:
        self.page.go("/login")

    def register_ticker(self, ticker: CountdownTicker) -> None:
        self.stop_ticker()
        self.ticker = ticker

    def stop_ticker(self) -> None:
        if self.ticker is not None:
            self.ticker.stop()
            self.ticker = None

    def resolve_route(self, route: str) -> str:
        session = self.state.session
        if route in PUBLIC_ROUTES:
            return route
        if not session.is_authenticated:
            return "/login"
        if route == "/admin":
            return route if session.is_admin else "/dashboard"
        if route in STUDENT_ROUTES:
            return "/admin" if session.is_admin else route
        return "/admin" if session.is_admin else "/dashboard"

    def build_view(self, route: str) -> ft.View:
        go = self.page.go
        if route == "/register":
            return build_register_view(self.page, self.state, lambda: go("/dashboard"), lambda: go("/login"))
        if route == "/dashboard":
            return build_dashboard_view(
                self.page,
                self.state,
                on_manage_subjects=lambda: go("/subjects"),
                on_manage_reminders=lambda: go("/reminders"),
                on_logout=self.logout,
            )
        if route == "/subjects":
            return build_subjects_view(self.page, self.state, lambda: go("/dashboard"))
        if route == "/reminders":
            return build_reminders_view(self.page, self.state, lambda: go("/dashboard"), self.register_ticker)
        if route == "/admin":
            return build_admin_view(self.page, self.state, self.logout)
        return build_login_view(
            self.page,
            self.state,
            on_student_login=lambda: go("/dashboard"),
            on_admin_login=lambda: go("/admin"),
            on_register=lambda: go("/register"),
        )

    def route_change(self, _=None) -> None:
        requested = self.page.route
        route = self.resolve_route(requested)
        if route != requested:
            self.page.go(route)
            return

        # Leaving the reminders view ends its countdown loop.
        self.stop_ticker()
        self.page.views.clear()
        try:
            self.page.views.append(self.build_view(route))
        except Exception as exc:
            logger.exception("Could not open %s", route)
            self.page.views.append(
                ft.View(
                    route=route,
                    controls=[
                        ft.AppBar(title=ft.Text("Student Tracker")),
                        ft.Text(f"Could not open this page: {exc}", color=ft.Colors.RED_400),
                        ft.Button("Back to Login", on_click=lambda _: self.logout()),
                    ],
                )
            )
        self.page.update()

    def view_pop(self, _=None) -> None:
        self.page.go("/admin" if self.state.session.is_admin else "/dashboard")

    def logout(self) -> None:
        self.stop_ticker()
        token = self.state.session.id_token
        if token:
            try:
                AppwriteAuthService.from_settings().sign_out(token)
            except AuthServiceError as exc:
                logger.warning("Sign out failed: %s", exc)
        self.state.reset()
        self.page.go("/login")


def main(page: ft.Page) -> None:
    StudentTrackerApp(page).run()
