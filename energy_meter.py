"""
lightorgan - Energy meter (VU)
Reduces the whole spectrum to one energy value per frame, smooths it over a
short window, auto-ranges it and spreads the result over a strip of lights.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional

import numpy as np

from band_allocator import BandEnergyReducer
from config import DecayMode, VuMeterConfig
from logging_utils import log_event
from range_tracker import RangeTracker, RangeTrackerSettings, now_ms
from signal_utils import EnergyWindow


def fill_lights(count: int, level: float, br_range: float = 0.0) -> List[float]:
    """
    Fill count lights sequentially with level * count units of light.

    Full lights get 1.0, the last lit one carries the fractional remainder.
    With br_range > 0 every lit light is additionally dimmed by
    (br_range * level + 1 - br_range); br_range 1 makes brightness follow
    the level fully, 0 keeps lit lights at full brightness.
    """
    brightness = br_range * level + 1.0 - br_range
    pp = count * level
    lights = []
    for _ in range(count):
        v = min(1.0, max(0.0, pp))
        pp -= v
        lights.append(v * brightness)
    return lights


@dataclass
class MeterReading:
    """One VU frame"""
    level: float                      # Normalized (averaged) energy, 0..1
    instant_level: float              # Normalized instantaneous energy, 0..1
    avg_energy: float                 # Raw averaged energy
    instant_energy: float             # Raw instantaneous energy
    aux_max: float                    # Tracked max of the averaged energy
    aux_min: float                    # Tracked min of the averaged energy
    lights: List[float] = field(default_factory=list)


class EnergyMeter:
    def __init__(self, light_count: int = 32, settings: Optional[VuMeterConfig] = None):
        if light_count < 1:
            raise ValueError(f"Light count must be >= 1, got {light_count}")
        self.settings = replace(settings) if settings is not None else VuMeterConfig()
        self.light_count = light_count
        self._reducer = BandEnergyReducer(self.settings.bin_exponent)
        self._window = EnergyWindow(self.settings.avg_window)
        self._avg_tracker = RangeTracker(1, self._tracker_settings())
        self._inst_tracker = RangeTracker(1, self._tracker_settings())

    def _tracker_settings(self) -> RangeTrackerSettings:
        s = self.settings
        return RangeTrackerSettings(
            decay_r=s.decay_r,
            sustain_t=s.sustain_t,
            decay_mode=DecayMode.SUSTAIN,
            spill_r=0.0,
            scale_min=s.scale_min,
        )

    def reset(self) -> None:
        self._window.clear()
        self._avg_tracker.clear()
        self._inst_tracker.clear()

    def set_light_count(self, light_count: int) -> None:
        if light_count < 1:
            raise ValueError(f"Light count must be >= 1, got {light_count}")
        if light_count != self.light_count:
            self.light_count = light_count
            self._avg_tracker.clear()
            self._inst_tracker.clear()
            log_event("DEBUG", "VuMeter", "Light count changed", lights=light_count)

    def reconfigure(self, settings: VuMeterConfig) -> None:
        """Apply scalar settings immediately; the window keeps its newest samples."""
        if settings.avg_weighting not in EnergyWindow.WEIGHTINGS:
            raise ValueError(f"Unknown averaging weighting {settings.avg_weighting!r}")
        reducer = BandEnergyReducer(settings.bin_exponent)
        self._window.resize(settings.avg_window)
        self.settings = replace(settings)
        self._reducer = reducer
        self._avg_tracker.reconfigure(self._tracker_settings())
        self._inst_tracker.reconfigure(self._tracker_settings())
        self.set_light_count(settings.size)

    @property
    def window(self) -> EnergyWindow:
        return self._window

    def process(self, spectrum, now: Optional[float] = None) -> MeterReading:
        t = now_ms() if now is None else now
        s = self.settings

        instant_energy = self._reducer.total(spectrum)
        self._window.add(instant_energy)
        if s.use_average:
            avg_energy = self._window.average(s.avg_weighting, s.avg_scale / 1000.0)
        else:
            avg_energy = instant_energy

        level = float(self._avg_tracker.scale(np.array([avg_energy]), t)[0])
        instant_level = float(self._inst_tracker.scale(np.array([instant_energy]), t)[0])

        return MeterReading(
            level=level,
            instant_level=instant_level,
            avg_energy=avg_energy,
            instant_energy=instant_energy,
            aux_max=float(self._avg_tracker.maxes[0]),
            aux_min=float(self._avg_tracker.mins[0]),
            lights=fill_lights(self.light_count, level, s.br_range),
        )
