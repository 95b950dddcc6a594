"""
lightorgan - Temporal persistence
Multiplies recent band-energy frames together so sustained energy survives
into deeper stages while transients fade out of them.
"""

from typing import Callable, List, Optional

import numpy as np

from config import DecayMode
from errors import SizeMismatchError
from logging_utils import log_event
from range_tracker import RangeTracker, RangeTrackerSettings
from signal_utils import RecentBuffer


def default_stage_settings(stage: int) -> RangeTrackerSettings:
    return RangeTrackerSettings(
        decay_r=960.0,
        sustain_t=20.0,
        decay_mode=DecayMode.SUSTAIN,
        spill_r=0.3,
        spill_low_f=0.0,
        scale_min=False,
    )


class TemporalPersistence:
    """
    Stage k of a frame is the elementwise product of the k + 1 most recent
    band-energy vectors; each stage is normalized by its own RangeTracker.
    Rows are only returned once the history holds stage_count frames.
    """

    def __init__(
        self,
        stage_count: int,
        channel_count: int,
        settings_factory: Optional[Callable[[int], RangeTrackerSettings]] = None,
    ):
        self._settings_factory = settings_factory or default_stage_settings
        self.stage_count = 0
        self.channel_count = 0
        self._buffer: Optional[RecentBuffer] = None
        self._trackers: List[RangeTracker] = []
        self.reset(stage_count, channel_count)

    def reset(self, stage_count: Optional[int] = None, channel_count: Optional[int] = None) -> None:
        """Clear the history and recreate the per-stage trackers."""
        if stage_count is not None:
            if stage_count < 1:
                raise ValueError(f"Stage count must be >= 1, got {stage_count}")
            self.stage_count = stage_count
        if channel_count is not None:
            if channel_count < 1:
                raise ValueError(f"Channel count must be >= 1, got {channel_count}")
            self.channel_count = channel_count

        self._buffer = RecentBuffer(self.stage_count)
        self._trackers = [
            RangeTracker(self.channel_count, self._settings_factory(stage))
            for stage in range(self.stage_count)
        ]
        log_event("DEBUG", "Persistence", "Reset", stages=self.stage_count, channels=self.channel_count)

    def set_settings_factory(self, settings_factory: Callable[[int], RangeTrackerSettings]) -> None:
        """Apply new tracker parameters to every stage without clearing range state."""
        self._settings_factory = settings_factory
        for stage, tracker in enumerate(self._trackers):
            tracker.reconfigure(settings_factory(stage))

    def tracker(self, stage: int) -> RangeTracker:
        return self._trackers[stage]

    @property
    def depth(self) -> int:
        return len(self._buffer)

    @property
    def warmed_up(self) -> bool:
        return self.depth == self.stage_count

    def stage_products(self) -> List[np.ndarray]:
        """Raw cumulative products for every buffered depth, newest stage first."""
        products = []
        acc = None
        for frame in self._buffer.get_all():
            acc = frame.copy() if acc is None else acc * frame
            products.append(acc)
        return products

    def push(self, band_energies, now: Optional[float] = None) -> Optional[List[np.ndarray]]:
        """Add one frame; returns the normalized stage rows once warmed up."""
        e = np.asarray(band_energies, dtype=float).reshape(-1)
        if len(e) != self.channel_count:
            raise SizeMismatchError("band energy", len(e), self.channel_count)

        self._buffer.add(e)
        rows = [
            self._trackers[stage].scale(product, now)
            for stage, product in enumerate(self.stage_products())
        ]
        if len(rows) != self.stage_count:
            return None
        return rows
