"""
lightorgan - Adaptive auto-ranging
Tracks a decaying min/max per channel and normalizes each frame into 0..1.
"""

import time
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from config import DecayMode
from errors import IllegalStateError, SizeMismatchError
from signal_utils import round_half_up


def now_ms() -> float:
    """Wall clock in milliseconds, the timestamp unit of every tracker."""
    return time.time() * 1000.0


@dataclass
class RangeTrackerSettings:
    """Scalar parameters of a range tracker; changes apply on the next frame"""
    decay_r: float = 995.0            # Max/min decay per update (x 1000)
    sustain_t: float = 3000.0         # Time an extremum holds before decay (ms)
    decay_mode: DecayMode = DecayMode.SUSTAIN
    spill_r: float = 0.0              # Spill window relative to channel count
    spill_low_f: float = 0.0          # Spill weight at the window edge
    scale_min: bool = False           # Scale minimums to 0


class RangeTracker:
    """
    Per-channel adaptive range normalizer.

    Each channel keeps a running max and min. Between observations the max
    decays toward 0 and the min toward 1 by decay_r / 1000 per update, either
    on every update (CONTINUOUS) or only once the extremum is older than
    sustain_t (SUSTAIN). New values outside the range reset the extremum and
    its age.

    With spill enabled a channel's range is widened by its neighbours within
    round(spill_r * size) channels, each neighbour attenuated linearly from
    full weight to spill_low_f at the window edge.
    """

    def __init__(self, size: Optional[int] = None, settings: Optional[RangeTrackerSettings] = None):
        if size is not None and size < 1:
            raise ValueError(f"Channel count must be >= 1, got {size}")
        self.size = size
        self.settings = settings if settings is not None else RangeTrackerSettings()
        self._maxes: Optional[np.ndarray] = None
        self._mins: Optional[np.ndarray] = None
        self._max_last_set: Optional[np.ndarray] = None
        self._min_last_set: Optional[np.ndarray] = None

    def clear(self) -> None:
        """Forget the tracked range; the next frame seeds it again."""
        self._maxes = None
        self._mins = None
        self._max_last_set = None
        self._min_last_set = None

    def set_size(self, size: int) -> None:
        if size < 1:
            raise ValueError(f"Channel count must be >= 1, got {size}")
        self.clear()
        self.size = size

    def reconfigure(self, settings: RangeTrackerSettings) -> None:
        self.settings = replace(settings)

    @property
    def is_seeded(self) -> bool:
        return self._maxes is not None

    @property
    def maxes(self) -> Optional[np.ndarray]:
        return None if self._maxes is None else self._maxes.copy()

    @property
    def mins(self) -> Optional[np.ndarray]:
        return None if self._mins is None else self._mins.copy()

    def spill_width(self) -> int:
        if self.size is None:
            return 0
        return max(0, round_half_up(self.settings.spill_r * self.size))

    def scale(self, values, now: Optional[float] = None) -> np.ndarray:
        """Update the tracked range with one frame and return it normalized."""
        if self.size is None:
            raise IllegalStateError("Range tracker used before its channel count was set")
        v = np.asarray(values, dtype=float).reshape(-1)
        if len(v) != self.size:
            raise SizeMismatchError("input", len(v), self.size)

        t = now_ms() if now is None else float(now)
        s = self.settings
        decay = s.decay_r / 1000.0

        if self._maxes is None:
            self._maxes = v.copy()
            self._mins = v.copy()
            self._max_last_set = np.full(self.size, t)
            self._min_last_set = np.full(self.size, t)
        elif s.decay_mode == DecayMode.CONTINUOUS:
            self._maxes *= decay
            self._mins = 1.0 - (1.0 - self._mins) * decay
        else:
            # Wait sustain_t before relaxing an extremum
            relax_max = t - self._max_last_set >= s.sustain_t
            relax_min = t - self._min_last_set >= s.sustain_t
            self._maxes[relax_max] *= decay
            self._mins[relax_min] = 1.0 - (1.0 - self._mins[relax_min]) * decay

        above = v > self._maxes
        self._maxes[above] = v[above]
        self._max_last_set[above] = t
        below = v < self._mins
        self._mins[below] = v[below]
        self._min_last_set[below] = t

        low, high = self._spilled_range()
        return self._normalize(v, low, high)

    def _spilled_range(self):
        low = self._mins.copy()
        high = self._maxes.copy()
        cs = self.spill_width()
        if cs == 0:
            return low, high

        low_f = self.settings.spill_low_f
        for j in range(1, cs + 1):
            f = 1.0 - (1.0 - low_f) * j / cs
            spilled_min = 1.0 - f * (1.0 - self._mins)
            spilled_max = f * self._maxes
            # neighbour above
            low[:-j] = np.minimum(low[:-j], spilled_min[j:])
            high[:-j] = np.maximum(high[:-j], spilled_max[j:])
            # neighbour below
            low[j:] = np.minimum(low[j:], spilled_min[:-j])
            high[j:] = np.maximum(high[j:], spilled_max[:-j])
        return low, high

    def _normalize(self, v: np.ndarray, low: np.ndarray, high: np.ndarray) -> np.ndarray:
        if self.settings.scale_min:
            span = high - low
            ok = span > 0
            return np.where(ok, (v - low) / np.where(ok, span, 1.0), 0.0)
        ok = high > 0
        return np.where(ok, v / np.where(ok, high, 1.0), 0.0)
