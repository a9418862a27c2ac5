# v1.0
import numpy as np
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class AudioFrame:
    """固定長のモノラル float サンプル列と、そのサンプリングレート。"""
    samples: np.ndarray
    sample_rate: float

    def __len__(self):
        return len(self.samples)


def int16_to_float(raw_bytes: bytes) -> np.ndarray:
    """paInt16 のバッファを [-1.0, 1.0) の float32 に変換する。"""
    raw_ints = np.frombuffer(raw_bytes, dtype=np.int16)
    return raw_ints.astype(np.float32) / 32768.0


def split_frames(signal: np.ndarray,
                 sample_rate: float,
                 frame_size: int,
                 hop_size: Optional[int] = None) -> Iterator[AudioFrame]:
    """
    メモリ上の信号を frame_size ごとのフレームに切り出す。
    hop_size を省略した場合は重なりなし。末尾の端数は捨てる。
    """
    hop = hop_size or frame_size
    if frame_size <= 0 or hop <= 0:
        raise ValueError("frame_size and hop_size must be positive")

    data = np.asarray(signal, dtype=np.float32)
    for start in range(0, len(data) - frame_size + 1, hop):
        chunk = data[start:start + frame_size].copy()
        chunk.setflags(write=False)
        yield AudioFrame(samples=chunk, sample_rate=sample_rate)
