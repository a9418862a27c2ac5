#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
お手本音（イヤーモード）の再生（Pygame.mixer）を管理するモジュール。

sound/ フォルダに "<音名>.wav"（例: E2.wav）があればそれを使い、
無ければ撥弦音を合成して一定間隔でループ再生します。
"""

import pygame.mixer
import pygame.sndarray
import logging
import numpy as np
from pathlib import Path
from typing import Optional

from pitchengine.note_mapper import note_frequency, parse_note_name, REFERENCE_PITCH


def synthesize_tone(frequency: float,
                    sample_rate: int,
                    loop_interval: float = 2.5,
                    ring_time: float = 1.8) -> np.ndarray:
    """
    減衰する倍音列で撥弦音を作り、loop_interval 秒になるまで無音で埋めた int16 配列を返す。
    ループ再生するとちょうど loop_interval 秒ごとに鳴る。
    """
    total = int(sample_rate * loop_interval)
    ring = min(total, int(sample_rate * ring_time))
    t = np.arange(ring, dtype=np.float64) / sample_rate

    wave = np.zeros(ring, dtype=np.float64)
    for harmonic, gain in ((1, 1.0), (2, 0.5), (3, 0.25), (4, 0.12)):
        wave += gain * np.sin(2 * np.pi * frequency * harmonic * t) * np.exp(-t * 2.5 * harmonic)

    # アタックのクリックノイズ防止
    attack = min(ring, int(sample_rate * 0.005))
    if attack > 0:
        wave[:attack] *= np.linspace(0.0, 1.0, attack)

    peak = np.max(np.abs(wave))
    if peak > 0:
        wave = wave / peak * 0.6

    out = np.zeros(total, dtype=np.int16)
    out[:ring] = (wave * 32767).astype(np.int16)
    return out


class SoundHandler:
    """
    お手本音の再生に関連するロジックを管理するクラス。

    Attributes:
        current_sound (Optional[pygame.mixer.Sound]): 現在ロードされているサウンド。
        current_note (Optional[str]): 再生中の音名 (例: "E2")。
        is_playing (bool): 現在サウンドが再生中かどうか。
    """

    def __init__(self, sound_dir: Optional[Path] = None, loop_interval: float = 2.5,
                 reference_pitch: float = REFERENCE_PITCH):
        """
        Raises:
            pygame.error: ミキサーの初期化に失敗した場合。
        """
        self.sound_dir = sound_dir
        self.loop_interval = loop_interval
        self.reference_pitch = reference_pitch

        logging.info("Pygame mixerを初期化しています...")
        try:
            pygame.mixer.init(frequency=44100, size=-16, channels=1)
            self.current_sound: Optional[pygame.mixer.Sound] = None
            self.current_note: Optional[str] = None
            self.is_playing: bool = False
            logging.info("Mixerの初期化が完了しました。")
        except pygame.error as e:
            logging.error(f"Mixerの初期化に失敗しました: {e}")
            raise

    def _load_sound(self, note_name: str) -> pygame.mixer.Sound:
        if self.sound_dir is not None:
            wav_path = self.sound_dir / f"{note_name}.wav"
            if wav_path.exists():
                return pygame.mixer.Sound(str(wav_path))

        pitch_class, octave = parse_note_name(note_name)
        freq = note_frequency(pitch_class, octave, self.reference_pitch)
        rate, _, channels = pygame.mixer.get_init()
        samples = synthesize_tone(freq, rate, self.loop_interval)
        if channels > 1:
            samples = np.ascontiguousarray(np.repeat(samples[:, None], channels, axis=1))
        return pygame.sndarray.make_sound(samples)

    def play_note(self, note_name: str) -> bool:
        """
        指定された音名のお手本音をループ再生します。
        再生中に呼び出された場合、現在の再生を停止してから新しい音を再生します。

        Returns:
            bool: 再生に成功した場合はTrue、失敗した場合はFalse。
        """
        try:
            logging.info(f"{note_name} のお手本音を再生します")
            pygame.mixer.stop()

            self.current_sound = self._load_sound(note_name)
            self.current_sound.play(loops=-1)

            self.current_note = note_name
            self.is_playing = True
            return True

        except (pygame.error, ValueError) as e:
            logging.error(f"サウンド再生エラー ({note_name}): {e}")
            self.current_note = None
            self.is_playing = False
            return False

    def stop_sound(self):
        """
        現在再生中のサウンドをすべて停止します。
        """
        logging.info("サウンド再生を停止します。")
        pygame.mixer.stop()
        self.current_note = None
        self.is_playing = False

    def quit(self):
        """
        Pygame.mixerのリソースを解放します。
        """
        logging.debug("Pygame mixerのリソースを解放しています...")
        if pygame.mixer.get_init():
            pygame.mixer.quit()
