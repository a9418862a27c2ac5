# v1.3 (Thread-Safe Stop)
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pitchengine.deviation_stabilizer import DeviationStabilizer
from pitchengine.note_mapper import NoteReading, TuningStatus, frequency_to_note, round_half_up, tuning_status
from pitchengine.yin_estimator import Samples, YinEstimator

DEFAULT_SETTINGS: Dict[str, Any] = {
    "sample_rate": 44100,
    "frame_size": 4096,
    "chunk": 1024,
    "min_freq": 60.0,
    "max_freq": 1500.0,
    "yin_threshold": 0.15,
    "noise_floor": 0.01,
    "smoothing": 8,
    "reference_pitch": 440.0,
}


class SessionState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"


@dataclass(frozen=True)
class TuningReading:
    """UI に公開する1サイクル分の結果。cents は平滑化後の値。"""
    note: NoteReading
    smoothed_cents: float
    frequency_hz: float

    @property
    def pitch_class(self) -> str:
        return self.note.pitch_class

    @property
    def octave(self) -> int:
        return self.note.octave

    @property
    def cents(self) -> int:
        return round_half_up(self.smoothed_cents)

    @property
    def status(self) -> TuningStatus:
        return tuning_status(self.cents)


class TuningSession:
    """
    チューニングセッションの状態機械 (IDLE -> STARTING -> ACTIVE -> IDLE)。

    v1.3: stop() と on_frame() を同じロックで直列化。
          stop() が返った後にフレームが処理されることはない。
    v1.2: 無音フレームで平滑化履歴をリセットし、前の音の表示を残さない。

    フレームの供給タイミングは呼び出し側 (FrameSource) が決める。
    このクラス自身はスリープもブロッキング I/O も行わない。
    """
    def __init__(self,
                 config: Optional[Dict[str, Any]] = None,
                 listener: Optional[Callable[[Optional[TuningReading]], None]] = None):
        self.settings = dict(DEFAULT_SETTINGS)
        if config:
            self.settings.update(config)

        self.listener = listener
        self.smoothing = int(self.settings["smoothing"])
        self.reference_pitch = float(self.settings["reference_pitch"])

        self._state = SessionState.IDLE
        self._sample_rate: Optional[float] = None
        self._estimator: Optional[YinEstimator] = None
        self._stabilizer: Optional[DeviationStabilizer] = None
        self._reading: Optional[TuningReading] = None

        # listener から stop() が呼ばれても詰まらないよう RLock
        self._lock = threading.RLock()

        # 不正な設定はここで ValueError にする
        if self.smoothing < 1:
            raise ValueError(f"smoothing must be at least 1: {self.smoothing}")
        self._build_estimator(float(self.settings["sample_rate"]))

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def sample_rate(self) -> Optional[float]:
        return self._sample_rate

    def current_reading(self) -> Optional[TuningReading]:
        return self._reading

    # --- Lifecycle ---

    def start(self) -> bool:
        with self._lock:
            if self._state is not SessionState.IDLE:
                logging.warning(f"TuningSession.start() ignored in state {self._state.name}")
                return False
            self._stabilizer = DeviationStabilizer(self.smoothing)
            self._reading = None
            self._state = SessionState.STARTING
            logging.info("Tuning session starting.")
            return True

    def acquisition_ready(self, sample_rate: Optional[float] = None) -> bool:
        with self._lock:
            if self._state is not SessionState.STARTING:
                logging.warning(f"acquisition_ready() ignored in state {self._state.name}")
                return False
            rate = float(sample_rate or self.settings["sample_rate"])
            self._build_estimator(rate)
            self._state = SessionState.ACTIVE
            logging.info(f"Tuning session active ({rate:.0f} Hz).")
            return True

    def acquisition_failed(self, reason: Any = None):
        with self._lock:
            if self._state is not SessionState.STARTING:
                return
            logging.error(f"Audio acquisition failed: {reason}")
            self._clear()

    def stop(self):
        with self._lock:
            was = self._state
            self._clear()
            if was is not SessionState.IDLE:
                logging.info("Tuning session stopped.")
            self._notify()

    # --- Per-frame cycle ---

    def on_frame(self, samples: Samples, sample_rate: Optional[float] = None) -> Optional[TuningReading]:
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return None

            if sample_rate is not None and sample_rate != self._sample_rate:
                self._build_estimator(float(sample_rate))

            freq = self._estimator.process(samples)

            if freq is None:
                self._stabilizer.reset()
                self._reading = None
            else:
                note = frequency_to_note(freq, self.reference_pitch)
                smoothed = self._stabilizer.push(note.cents)
                self._reading = TuningReading(note=note, smoothed_cents=smoothed, frequency_hz=freq)

            self._notify()
            return self._reading

    # --- Internal ---

    def _build_estimator(self, sample_rate: float):
        self._sample_rate = sample_rate
        self._estimator = YinEstimator(
            sample_rate=sample_rate,
            min_freq=float(self.settings["min_freq"]),
            max_freq=float(self.settings["max_freq"]),
            threshold=float(self.settings["yin_threshold"]),
            noise_floor=float(self.settings["noise_floor"]),
        )

    def _clear(self):
        if self._stabilizer is not None:
            self._stabilizer.reset()
        self._stabilizer = None
        self._reading = None
        self._state = SessionState.IDLE

    def _notify(self):
        if self.listener:
            self.listener(self._reading)
