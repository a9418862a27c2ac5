# v1.2
import logging
import numpy as np
from typing import Optional, Sequence, Union

Samples = Union[np.ndarray, Sequence[float]]

DEFAULT_MIN_FREQ = 60.0
DEFAULT_MAX_FREQ = 1500.0
DEFAULT_THRESHOLD = 0.15
DEFAULT_NOISE_FLOOR = 0.01


class FrameSizeError(ValueError):
    """フレーム長が検出下限周波数に対して不足している（呼び出し側の前提条件違反）。"""


class YinEstimator:
    """
    YIN（累積平均正規化差分関数）による基本周波数推定。

    v1.2: 差分関数を FFT 相関 + 二乗累積和のベクトル演算で計算。
    v1.1: 無音ゲート (RMS) と検出帯域外の棄却を追加。

    - 入力はモノラル float のフレーム（偶数長）。最大ラグはフレーム長の半分。
    - 検出できない場合は例外ではなく None を返す。
    """

    def __init__(self,
                 sample_rate: float,
                 min_freq: float = DEFAULT_MIN_FREQ,
                 max_freq: float = DEFAULT_MAX_FREQ,
                 threshold: float = DEFAULT_THRESHOLD,
                 noise_floor: float = DEFAULT_NOISE_FLOOR):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive: {sample_rate}")
        if not 0 < min_freq < max_freq:
            raise ValueError(f"invalid detection band: {min_freq}-{max_freq} Hz")
        if not 0 < threshold < 1:
            raise ValueError(f"threshold must be in (0, 1): {threshold}")
        if noise_floor < 0:
            raise ValueError(f"noise_floor must not be negative: {noise_floor}")

        self.sample_rate = float(sample_rate)
        self.min_freq = float(min_freq)
        self.max_freq = float(max_freq)
        self.threshold = float(threshold)
        self.noise_floor = float(noise_floor)

    def min_frame_size(self) -> int:
        """min_freq を検出できる最小の（偶数）フレーム長。"""
        max_lag = int(self.sample_rate / self.min_freq) + 1
        return 2 * max_lag

    def check_frame(self, signal: np.ndarray):
        n = len(signal)
        if n % 2 != 0:
            raise FrameSizeError(f"frame length must be even, got {n}")
        if n // 2 <= self.sample_rate / self.min_freq:
            raise FrameSizeError(
                f"frame of {n} samples cannot resolve {self.min_freq} Hz at "
                f"{self.sample_rate} Hz (need at least {self.min_frame_size()})"
            )

    def process(self, samples: Samples) -> Optional[float]:
        """
        1フレームから基本周波数 (Hz) を推定して返す。
        無音・非周期・帯域外のいずれかの場合は None。
        """
        signal = np.asarray(samples, dtype=np.float64)
        self.check_frame(signal)

        # --- Step 1: Silence Gate ---
        rms = np.sqrt(np.mean(signal ** 2))
        if rms < self.noise_floor:
            return None

        # --- Step 2 & 3: Difference Function -> CMNDF ---
        cmndf = self.cmndf(signal)

        # --- Step 4: Absolute Threshold ---
        tau = self._find_period(cmndf)
        if tau is None:
            logging.debug(f"YIN: no lag below threshold {self.threshold:.2f}")
            return None

        # --- Step 5: Parabolic Interpolation ---
        period = self._refine(cmndf, tau)

        freq = self.sample_rate / period
        if freq < self.min_freq or freq > self.max_freq:
            logging.debug(f"YIN: {freq:.1f} Hz outside {self.min_freq}-{self.max_freq} Hz")
            return None
        return freq

    def cmndf(self, signal: np.ndarray) -> np.ndarray:
        """累積平均正規化差分関数 d'(tau), tau = 0 .. N/2-1 を返す。"""
        half = len(signal) // 2
        diff = self._difference(signal, half)

        cmndf = np.ones(half, dtype=np.float64)
        running_sum = np.cumsum(diff[1:])
        taus = np.arange(1, half, dtype=np.float64)
        with np.errstate(divide='ignore', invalid='ignore'):
            normalized = diff[1:] * taus / running_sum
        cmndf[1:] = np.where(running_sum > 0, normalized, 1.0)
        return cmndf

    def _difference(self, signal: np.ndarray, half: int) -> np.ndarray:
        # d(tau) = sum(x[j]^2) + sum(x[j+tau]^2) - 2 * sum(x[j] * x[j+tau])
        x = signal[:half]
        energy = np.sum(x ** 2)

        # sum(x[j+tau]^2): 二乗の累積和から移動和を取り出す
        cum_sq = np.concatenate(([0.0], np.cumsum(signal ** 2)))
        taus = np.arange(half)
        shifted_energy = cum_sq[taus + half] - cum_sq[taus]

        # sum(x[j] * x[j+tau]): 反転した x との畳み込み (FFT)
        n_fft = 1
        while n_fft < len(signal) + half:
            n_fft *= 2
        spectrum = np.fft.rfft(x[::-1], n=n_fft) * np.fft.rfft(signal, n=n_fft)
        correlation = np.fft.irfft(spectrum, n=n_fft)[half - 1:half - 1 + half]

        diff = energy + shifted_energy - 2.0 * correlation

        # FFT の丸め誤差レベルの値は 0 とみなす（負値もここで消える）
        tolerance = 1e-10 * (energy + shifted_energy)
        return np.where(diff > tolerance, diff, 0.0)

    def _find_period(self, cmndf: np.ndarray) -> Optional[int]:
        half = len(cmndf)
        candidates = np.nonzero(cmndf[2:] < self.threshold)[0]
        if len(candidates) == 0:
            return None

        tau = int(candidates[0]) + 2
        # 直後により深い谷があればそちらを採用
        while tau + 1 < half and cmndf[tau + 1] < cmndf[tau]:
            tau += 1
        return tau

    @staticmethod
    def _refine(cmndf: np.ndarray, tau: int) -> float:
        period = float(tau)
        if 0 < tau < len(cmndf) - 1:
            y1, y2, y3 = cmndf[tau - 1], cmndf[tau], cmndf[tau + 1]
            denom = y1 - (2 * y2) + y3
            if abs(denom) > 1e-12:
                period += 0.5 * (y1 - y3) / denom
        return period


def estimate_frequency(samples: Samples,
                       sample_rate: float,
                       min_freq: float = DEFAULT_MIN_FREQ,
                       max_freq: float = DEFAULT_MAX_FREQ,
                       threshold: float = DEFAULT_THRESHOLD,
                       noise_floor: float = DEFAULT_NOISE_FLOOR) -> Optional[float]:
    """ステートレス版。フレームごとに YinEstimator を作って推定する。"""
    estimator = YinEstimator(sample_rate, min_freq=min_freq, max_freq=max_freq,
                             threshold=threshold, noise_floor=noise_floor)
    return estimator.process(samples)
