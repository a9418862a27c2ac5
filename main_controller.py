# v6.0
import logging
import threading
import flet as ft
from pathlib import Path
from typing import List, Optional, Tuple

from config_manager import ConfigManager
from pitchengine.frame_source import MicrophoneFrameSource
from pitchengine.tuning_session import SessionState, TuningReading, TuningSession
from soundhandler import SoundHandler

# (ラベル, 音名) 6弦 -> 1弦
STANDARD_STRINGS: List[Tuple[str, str]] = [
    ("6th", "E2"), ("5th", "A2"), ("4th", "D3"),
    ("3rd", "G3"), ("2nd", "B3"), ("1st", "E4"),
]


class MainController:
    """
    アプリのロジック、イベント処理、状態管理を担当するクラス。
    v6.0: ピッチ検出を TuningSession に委譲。UI はセッションの公開値を描画するだけ。
          画面更新は解析スレッドから来るため、数フレームに1回だけ page.update() する。
    """
    UPDATE_EVERY = 3

    def __init__(self, page: ft.Page, sound_dir: Path, config_manager: Optional[ConfigManager] = None):
        self.page = page
        self.sound_dir = sound_dir
        self.is_closing = False
        self.strings = STANDARD_STRINGS

        self.config_manager = config_manager or ConfigManager()
        settings = self.config_manager.get_all_settings_dict()

        self.session = TuningSession(settings, listener=self._update_ui_callback)
        self.frame_source = MicrophoneFrameSource(self.session, settings)
        self.sound_handler = SoundHandler(
            sound_dir=self.sound_dir,
            loop_interval=self.config_manager.get_loop_interval(),
            reference_pitch=self.config_manager.get_reference_pitch(),
        )

        self.view: Optional["MainView"] = None
        self.active_string: Optional[int] = None
        self._callback_count = 0
        self._ui_lock = threading.Lock()

    def set_view(self, view: "MainView"):
        self.view = view
        self.view.show_idle()

    # --- Meter Mode ---

    def on_mic_click(self, e):
        self.view.show_starting()
        self.page.update()

        if self.frame_source.start():
            self.view.show_active()
        else:
            self.view.show_idle()
            self.page.open(ft.SnackBar(ft.Text("マイクを開始できませんでした")))
        self.page.update()

    def on_stop_mic_click(self, e):
        self.frame_source.stop()
        self.view.show_idle()
        self.page.update()

    def _update_ui_callback(self, reading: Optional[TuningReading]):
        if self.is_closing or not self.view:
            return
        if self.session.state is not SessionState.ACTIVE:
            return

        with self._ui_lock:
            self._callback_count += 1
            self.view.show_reading(reading)
            if self._callback_count % self.UPDATE_EVERY == 0:
                try:
                    self.page.update()
                except Exception as e:
                    logging.debug(f"page.update skipped: {e}")

    # --- Ear Mode ---

    def on_string_click(self, e):
        index = e.control.data
        if self.active_string == index:
            self._stop_tone()
        else:
            _, note = self.strings[index]
            if self.sound_handler.play_note(note):
                self.active_string = index
            else:
                self.active_string = None
        self.view.show_active_string(self.active_string)
        self.page.update()

    def on_stop_tone_click(self, e):
        self._stop_tone()
        self.view.show_active_string(None)
        self.page.update()

    def _stop_tone(self):
        self.sound_handler.stop_sound()
        self.active_string = None

    def on_tab_change(self, e):
        # タブを切り替えたら再生もマイクも止める
        self._stop_tone()
        self.view.show_active_string(None)
        if self.session.state is not SessionState.IDLE:
            self.frame_source.stop()
            self.view.show_idle()
        self.page.update()

    def cleanup(self):
        self.is_closing = True
        self.frame_source.stop()
        self.sound_handler.quit()
