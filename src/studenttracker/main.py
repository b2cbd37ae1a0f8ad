import os

import flet as ft

from studenttracker.ui.app import main


def run() -> None:
    web_mode = os.getenv("STUDENT_TRACKER_WEB", "0") == "1"
    ft.app(
        target=main,
        view=ft.AppView.WEB_BROWSER if web_mode else ft.AppView.FLET_APP,
        port=int(os.getenv("PORT", "8550")),
    )


if __name__ == "__main__":
    run()
