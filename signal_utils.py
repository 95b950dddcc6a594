"""
lightorgan - Signal utilities
Rounding and the small history buffers shared by the organ and VU meter.
"""

import math
from collections import deque
from typing import Deque, List

import numpy as np


def round_half_up(x: float) -> int:
    """Round to the nearest integer, halves away from -inf (1.5 -> 2, 2.5 -> 3)."""
    return int(math.floor(x + 0.5))


def normalize_byte_spectrum(spectrum) -> np.ndarray:
    """Byte spectrum (0..255) to floats in 0..1."""
    return np.asarray(spectrum, dtype=float) / 255.0


class RecentBuffer:
    """
    Fixed-capacity history of vectors, most recent first.

    Index 0 is always the newest entry; once full, adding drops the oldest.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"Buffer size must be >= 1, got {size}")
        self._items: Deque[np.ndarray] = deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._items.maxlen

    def __len__(self) -> int:
        return len(self._items)

    def add(self, value) -> np.ndarray:
        v = np.array(value, dtype=float)
        self._items.appendleft(v)
        return v

    def get_all(self) -> List[np.ndarray]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def set_size(self, size: int) -> None:
        """Change capacity, keeping the newest entries."""
        if size < 1:
            raise ValueError(f"Buffer size must be >= 1, got {size}")
        self._items = deque(list(self._items)[:size], maxlen=size)


class EnergyWindow:
    """
    Circular window of recent scalar energies with weighted averaging.

    When the window is not yet full (first use, or after growing) the next
    sample is replicated into the empty slots so the average starts from a
    settled value instead of ramping up from zero.
    """

    WEIGHTINGS = ("geometric", "linear")

    def __init__(self, capacity: int = 1):
        if capacity < 1:
            raise ValueError(f"Window capacity must be >= 1, got {capacity}")
        self._samples: Deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    def __len__(self) -> int:
        return len(self._samples)

    def resize(self, capacity: int) -> None:
        """Change capacity, preserving the newest samples."""
        if capacity < 1:
            raise ValueError(f"Window capacity must be >= 1, got {capacity}")
        if capacity != self.capacity:
            self._samples = deque(self._samples, maxlen=capacity)

    def clear(self) -> None:
        self._samples.clear()

    def add(self, value: float) -> None:
        value = float(value)
        while len(self._samples) < self.capacity - 1:
            self._samples.append(value)
        self._samples.append(value)

    def newest_first(self) -> np.ndarray:
        return np.array(self._samples, dtype=float)[::-1]

    def average(self, weighting: str = "geometric", scale: float = 1.0) -> float:
        """Weighted mean, newest sample weighted highest.

        geometric: weight scale ** age
        linear:    weight (n - age)
        """
        if not self._samples:
            return 0.0
        values = self.newest_first()
        ages = np.arange(len(values), dtype=float)
        if weighting == "linear":
            weights = len(values) - ages
        elif weighting == "geometric":
            weights = np.power(scale, ages)
        else:
            raise ValueError(f"Unknown weighting {weighting!r}")
        total = float(np.sum(weights))
        if total <= 0.0:
            return float(values[0])
        return float(np.dot(weights, values) / total)
