# v6.0
import flet as ft
from typing import TYPE_CHECKING, List, Optional

from pitchengine.note_mapper import TuningStatus
from pitchengine.tuning_session import TuningReading

if TYPE_CHECKING:
    from main_controller import MainController

STATUS_COLORS = {
    TuningStatus.IN_TUNE: ft.Colors.GREEN_400,
    TuningStatus.CLOSE: ft.Colors.YELLOW_600,
    TuningStatus.OFF: ft.Colors.RED_400,
}
IDLE_NEEDLE_COLOR = ft.Colors.GREY_700


class MainView:
    """
    メイン画面のレイアウトとUIコンポーネントの定義を行うクラス。
    v6.0: イヤーモード / メーターモードのタブ構成に変更。
          メーターは 0-110 ユニット、目盛り(-50〜+50 cent)を 10-100 ユニットに配置。
    """
    def __init__(self, controller: "MainController"):
        self.c = controller

        # メーターの設計定数
        # 物理幅 385px / 110ユニット = 1ユニット当たり 3.5px
        self.unit_to_px = 3.5
        self.total_units = 110
        self.meter_width_px = self.total_units * self.unit_to_px

        # --- Meter Mode ---
        self.meter_needle = ft.Container(
            width=4, height=35, bgcolor=IDLE_NEEDLE_COLOR, border_radius=2,
            left=self.needle_left(0.0), bottom=0,
            animate_position=ft.Animation(200, ft.AnimationCurve.EASE_OUT_CUBIC)
        )
        self.note_text = ft.Text(
            value="---", size=48, weight=ft.FontWeight.BOLD,
            color=ft.Colors.WHITE, text_align=ft.TextAlign.CENTER
        )
        self.detail_text = ft.Text("Listening...", size=13, color=ft.Colors.GREY_600, font_family="monospace")
        self.in_tune_text = ft.Text("", size=13, weight=ft.FontWeight.W_600, color=ft.Colors.GREEN_400)

        self.mic_button = ft.ElevatedButton(
            text="Enable Microphone", icon=ft.Icons.MIC,
            on_click=self.c.on_mic_click, width=260, height=48,
            style=ft.ButtonStyle(shape=ft.RoundedRectangleBorder(radius=10),
                                 bgcolor=ft.Colors.GREEN_700, color=ft.Colors.WHITE)
        )
        self.stop_mic_button = ft.ElevatedButton(
            text="Stop Microphone", icon=ft.Icons.MIC_OFF,
            on_click=self.c.on_stop_mic_click, width=260, height=48,
            style=ft.ButtonStyle(shape=ft.RoundedRectangleBorder(radius=10),
                                 bgcolor=ft.Colors.RED_700, color=ft.Colors.WHITE)
        )
        self.starting_text = ft.Text("Starting microphone...", size=13, color=ft.Colors.AMBER_400)

        self.idle_panel = ft.Column(
            [ft.Icon(ft.Icons.MIC, size=40, color=ft.Colors.GREY_500),
             ft.Text("Enable the microphone to detect your guitar's pitch.", size=13, color=ft.Colors.GREY_400),
             self.mic_button],
            horizontal_alignment=ft.CrossAxisAlignment.CENTER, visible=True
        )
        self.starting_panel = ft.Column([self.starting_text], horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                                        visible=False)
        self.active_panel = ft.Column(
            [self._build_meter(),
             ft.Container(self.note_text, height=80, alignment=ft.alignment.center),
             self.detail_text, self.in_tune_text, self.stop_mic_button],
            horizontal_alignment=ft.CrossAxisAlignment.CENTER, visible=False
        )

        # --- Ear Mode ---
        self.string_buttons: List[ft.ElevatedButton] = []
        for index, (label, note) in enumerate(self.c.strings):
            self.string_buttons.append(ft.ElevatedButton(
                content=ft.Row([ft.Text(f"{label} String", size=12, opacity=0.7),
                                ft.Text(note, size=20, weight=ft.FontWeight.BOLD)],
                               alignment=ft.MainAxisAlignment.SPACE_BETWEEN),
                data=index, on_click=self.c.on_string_click, width=320, height=52,
                style=ft.ButtonStyle(shape=ft.RoundedRectangleBorder(radius=10))
            ))
        self.stop_tone_button = ft.ElevatedButton(
            text="Stop", on_click=self.c.on_stop_tone_click, width=320, height=46, disabled=True,
            style=ft.ButtonStyle(shape=ft.RoundedRectangleBorder(radius=10),
                                 bgcolor=ft.Colors.RED_700, color=ft.Colors.WHITE)
        )

    def needle_left(self, cents: float) -> float:
        clamped = max(min(cents, 50.0), -50.0)
        target_unit = 10 + ((clamped + 50) * 0.9)
        return (target_unit * self.unit_to_px) - 2

    def _build_meter(self) -> ft.Container:
        ticks = []
        for i in range(-50, 51, 10):
            pixel_pos = (10 + ((i + 50) * 0.9)) * self.unit_to_px
            is_main = (i % 50 == 0)
            ticks.append(
                ft.Container(
                    width=2 if is_main else 1, height=12 if is_main else 6,
                    bgcolor=ft.Colors.GREEN_400 if i == 0 else ft.Colors.GREY_700,
                    left=pixel_pos - (1 if is_main else 0.5), top=5
                )
            )
            if is_main:
                ticks.append(
                    ft.Text(f"{i:+d}" if i else "0", size=9, color=ft.Colors.GREY_600,
                            left=pixel_pos - 15, top=18, width=30, text_align=ft.TextAlign.CENTER)
                )

        # OK ゾーン (±5 cent)
        ok_zone = ft.Container(
            width=9 * self.unit_to_px, height=30,
            bgcolor=ft.Colors.with_opacity(0.15, ft.Colors.GREEN_400),
            left=(55 - 4.5) * self.unit_to_px, bottom=0, border_radius=2
        )

        return ft.Container(
            content=ft.Stack([
                ft.Container(width=self.meter_width_px, height=50, bgcolor=ft.Colors.BLACK, border_radius=5),
                ok_zone,
                *ticks,
                self.meter_needle
            ], width=self.meter_width_px, height=50),
            width=self.meter_width_px, height=60,
            border=ft.border.all(1, ft.Colors.GREY_800), border_radius=5
        )

    def build(self) -> ft.Control:
        meter_tab = ft.Container(
            content=ft.Column([self.idle_panel, self.starting_panel, self.active_panel],
                              horizontal_alignment=ft.CrossAxisAlignment.CENTER),
            padding=20, height=360, alignment=ft.alignment.center
        )
        ear_tab = ft.Container(
            content=ft.Column(
                [ft.Text("Tap a string to hear its pitch on repeat.", size=12, color=ft.Colors.GREY_500),
                 *self.string_buttons, self.stop_tone_button],
                horizontal_alignment=ft.CrossAxisAlignment.CENTER, spacing=10
            ),
            padding=20
        )
        return ft.Tabs(
            selected_index=0, animation_duration=200, expand=True,
            on_change=self.c.on_tab_change,
            tabs=[ft.Tab(text="Ear Mode", content=ear_tab),
                  ft.Tab(text="Meter Mode", content=meter_tab)]
        )

    # --- State rendering ---

    def show_idle(self):
        self.idle_panel.visible = True
        self.starting_panel.visible = False
        self.active_panel.visible = False
        self.show_reading(None)

    def show_starting(self):
        self.idle_panel.visible = False
        self.starting_panel.visible = True
        self.active_panel.visible = False

    def show_active(self):
        self.idle_panel.visible = False
        self.starting_panel.visible = False
        self.active_panel.visible = True

    def show_reading(self, reading: Optional[TuningReading]):
        if reading is None:
            self.note_text.value = "---"
            self.note_text.color = ft.Colors.WHITE
            self.detail_text.value = "Listening..."
            self.detail_text.color = ft.Colors.GREY_600
            self.in_tune_text.value = ""
            self.meter_needle.left = self.needle_left(0.0)
            self.meter_needle.bgcolor = IDLE_NEEDLE_COLOR
            return

        color = STATUS_COLORS[reading.status]
        in_tune = reading.status is TuningStatus.IN_TUNE

        self.note_text.value = reading.note.name
        self.note_text.color = ft.Colors.GREEN_400 if in_tune else ft.Colors.WHITE
        self.detail_text.value = f"{reading.frequency_hz:7.1f} Hz  {reading.cents:+3d} ct"
        self.detail_text.color = color
        self.in_tune_text.value = "In Tune!" if in_tune else ""
        self.meter_needle.left = self.needle_left(reading.smoothed_cents)
        self.meter_needle.bgcolor = color

    def show_active_string(self, active_index: Optional[int]):
        for button in self.string_buttons:
            is_active = button.data == active_index
            button.style.bgcolor = ft.Colors.AMBER_500 if is_active else None
            button.style.color = ft.Colors.GREY_900 if is_active else None
        self.stop_tone_button.disabled = active_index is None
