# v2.0
import configparser
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pitchengine.tuning_session import DEFAULT_SETTINGS


class ConfigManager:
    """
    config.ini の読み込みを管理するクラス。
    v2.0: チューナーエンジン用の設定項目に刷新。設定の書き戻しは行わない（読み取り専用）。

    ファイルやキーが無い場合は DEFAULT_SETTINGS の値を使う。
    """
    SEC_TUNER = "TUNER"
    SEC_EAR = "EAR_MODE"

    DEFAULT_LOOP_INTERVAL = 2.5

    def __init__(self, config_path: Union[str, Path] = "config.ini"):
        self.config_path = Path(config_path)
        self.config = configparser.ConfigParser()
        self._load_config()

    def _load_config(self):
        if not self.config_path.exists():
            logging.info(f"Config file not found, using defaults: {self.config_path}")
            return
        try:
            self.config.read(self.config_path, encoding="utf-8")
        except configparser.Error as e:
            logging.error(f"Config read error: {e}")

    def _get_float(self, key: str, section: Optional[str] = None, fallback: Optional[float] = None) -> float:
        section = section or self.SEC_TUNER
        default = DEFAULT_SETTINGS[key] if fallback is None else fallback
        try:
            return self.config.getfloat(section, key, fallback=float(default))
        except ValueError as e:
            logging.warning(f"Invalid value for [{section}] {key}: {e}")
            return float(default)

    def _get_int(self, key: str) -> int:
        try:
            return self.config.getint(self.SEC_TUNER, key, fallback=int(DEFAULT_SETTINGS[key]))
        except ValueError as e:
            logging.warning(f"Invalid value for [{self.SEC_TUNER}] {key}: {e}")
            return int(DEFAULT_SETTINGS[key])

    # --- Audio ---
    def get_sample_rate(self) -> int:
        return self._get_int("sample_rate")

    def get_frame_size(self) -> int:
        return self._get_int("frame_size")

    def get_chunk(self) -> int:
        return self._get_int("chunk")

    # --- Detection ---
    def get_min_freq(self) -> float:
        return self._get_float("min_freq")

    def get_max_freq(self) -> float:
        return self._get_float("max_freq")

    def get_yin_threshold(self) -> float:
        return self._get_float("yin_threshold")

    def get_noise_floor(self) -> float:
        return self._get_float("noise_floor")

    def get_smoothing(self) -> int:
        return self._get_int("smoothing")

    def get_reference_pitch(self) -> float:
        return self._get_float("reference_pitch")

    # --- Ear Mode ---
    def get_loop_interval(self) -> float:
        return self._get_float("loop_interval", section=self.SEC_EAR, fallback=self.DEFAULT_LOOP_INTERVAL)

    def get_all_settings_dict(self) -> Dict[str, Any]:
        """TuningSession / MicrophoneFrameSource へ渡すための全設定辞書を作成"""
        return {
            "sample_rate": self.get_sample_rate(),
            "frame_size": self.get_frame_size(),
            "chunk": self.get_chunk(),
            "min_freq": self.get_min_freq(),
            "max_freq": self.get_max_freq(),
            "yin_threshold": self.get_yin_threshold(),
            "noise_floor": self.get_noise_floor(),
            "smoothing": self.get_smoothing(),
            "reference_pitch": self.get_reference_pitch(),
        }
