# v1.0
from collections import deque
from typing import List

DEFAULT_CAPACITY = 8


class DeviationStabilizer:
    """
    セント値の移動平均フィルタ。
    直近 capacity 個だけを保持し、溢れた分は古い順に捨てる。
    音が途切れたら reset() して、前の音の履歴を次の音に持ち込まない。
    """
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        capacity = int(capacity)
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1: {capacity}")
        self.capacity = capacity
        self.cents_history = deque(maxlen=capacity)

    def push(self, cents: float) -> float:
        self.cents_history.append(float(cents))
        return sum(self.cents_history) / len(self.cents_history)

    def reset(self):
        self.cents_history.clear()

    @property
    def values(self) -> List[float]:
        return list(self.cents_history)

    def __len__(self):
        return len(self.cents_history)
