import flet as ft
import logging
import sys
from pathlib import Path

from config_manager import ConfigManager
from main_controller import MainController
from main_view import MainView
from utils.logger_manager import LoggerManager

# --- パス設定 ---
def get_base_dir() -> Path:
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).resolve().parent

BASE_DIR = get_base_dir()
SOUND_DIR = BASE_DIR / "sound"
LOG_DIR = BASE_DIR / "log"
CONFIG_FILE_PATH = BASE_DIR / "config.ini"


def main(page: ft.Page):
    page.title = "Tuner"
    page.window.width = 450
    page.window.height = 620
    page.window.resizable = False
    page.padding = 20
    page.theme_mode = ft.ThemeMode.DARK

    try:
        controller = MainController(page, SOUND_DIR, ConfigManager(CONFIG_FILE_PATH))
    except Exception as e:
        logging.error(f"初期化エラー: {e}")
        page.add(ft.Text(f"起動エラー: {e}", color=ft.Colors.RED_400))
        return

    view = MainView(controller)
    page.add(view.build())
    controller.set_view(view)
    page.update()

    def on_window_event(e):
        if e.data == "close":
            logging.info("終了処理...")
            controller.cleanup()
            page.window.destroy()

    page.window.prevent_close = True
    page.window.on_event = on_window_event


def run():
    LoggerManager.setup_logging(LOG_DIR)
    ft.app(target=main)


if __name__ == "__main__":
    run()
