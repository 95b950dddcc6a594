"""
lightorgan - Effects
Spectrum clients that turn frames into light levels:

  LightOrgan    - one light per frequency band
  LightOrgan2d  - frequency bands x temporal persistence stages
  VuMeter       - whole-spectrum energy on a strip of lights

Every effect takes change_sampling_parameters() before its first frame,
then push_frame() / push_byte_frame() once per frame. Results go out to
registered listeners, called in registration order.
"""

from dataclasses import replace
from typing import Callable, List, Optional

import numpy as np

from band_allocator import BandEnergyReducer, BandLayout, allocate
from config import Organ2dConfig, OrganConfig, VuMeterConfig, DecayMode
from energy_meter import EnergyMeter, MeterReading
from errors import IllegalStateError, SizeMismatchError
from logging_utils import log_event
from range_tracker import RangeTracker, RangeTrackerSettings
from signal_utils import normalize_byte_spectrum
from temporal_persistence import TemporalPersistence


LayoutListener = Callable[[List[int]], None]
LevelsListener = Callable[[np.ndarray], None]
StageListener = Callable[[int, np.ndarray], None]
MeterListener = Callable[[float, float, float], None]


class SpectrumEffect:
    """Sampling parameter bookkeeping shared by all effects."""

    tag = "Effect"

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self.bin_count: Optional[int] = None
        self.sample_rate: Optional[float] = None

    @property
    def label(self) -> str:
        return f"{self.tag}:{self.name}" if self.name else self.tag

    def change_sampling_parameters(self, bin_count: int, sample_rate: float) -> None:
        if bin_count < 1:
            raise ValueError(f"Bin count must be >= 1, got {bin_count}")
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        self.bin_count = int(bin_count)
        self.sample_rate = float(sample_rate)
        log_event("DEBUG", self.label, "Sampling parameters changed", bins=bin_count, sample_rate=sample_rate)
        self._sampling_changed()

    def _sampling_changed(self) -> None:
        raise NotImplementedError

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None):
        raise NotImplementedError

    def push_byte_frame(self, spectrum, timestamp_ms: Optional[float] = None):
        """Byte (0..255) spectrum variant of push_frame."""
        return self.push_frame(normalize_byte_spectrum(spectrum), timestamp_ms)

    @staticmethod
    def _notify(listeners, *args) -> None:
        for fn in listeners:
            fn(*args)


class _BandedEffect(SpectrumEffect):
    """Effect whose output channels are bands of a BandLayout."""

    def __init__(self, name: Optional[str] = None):
        super().__init__(name)
        self.layout: Optional[BandLayout] = None
        self._layout_listeners: List[LayoutListener] = []

    def add_layout_listener(self, fn: LayoutListener) -> None:
        """Register for band sizes; called at once if a layout already exists."""
        self._layout_listeners.append(fn)
        if self.layout is not None:
            fn(list(self.layout.sizes))

    def _band_params(self):
        raise NotImplementedError

    def _reset_state(self) -> None:
        raise NotImplementedError

    def _sampling_changed(self) -> None:
        self._update_grouping()

    def _update_grouping(self) -> None:
        if not self.sample_rate:
            raise IllegalStateError("Sample rate not defined")
        if not self.bin_count:
            raise IllegalStateError("FFT bin count not defined")

        max_freq, channels, span = self._band_params()
        self.layout = allocate(self.sample_rate, self.bin_count, max_freq, channels, span)
        log_event("INFO", self.label, "Band layout", channels=channels,
                  bins=self.layout.covered_bins, sizes=list(self.layout.sizes))
        self._notify(self._layout_listeners, list(self.layout.sizes))
        self._reset_state()

    def _require_layout(self) -> BandLayout:
        if self.layout is None:
            raise IllegalStateError("Frame pushed before sampling parameters were set")
        return self.layout


class LightOrgan(_BandedEffect):
    """One light per band, each auto-ranged against its own history."""

    tag = "LightOrgan"

    def __init__(self, config: Optional[OrganConfig] = None, name: Optional[str] = None):
        super().__init__(name)
        self.config = replace(config) if config is not None else OrganConfig()
        self._reducer = BandEnergyReducer(self.config.bin_exponent)
        self._tracker = RangeTracker(self.config.channels, self._tracker_settings())
        self._level_listeners: List[LevelsListener] = []
        self.last_levels: Optional[np.ndarray] = None

    def _tracker_settings(self) -> RangeTrackerSettings:
        c = self.config
        return RangeTrackerSettings(
            decay_r=c.decay_r,
            sustain_t=c.sustain_t,
            decay_mode=c.decay_mode,
            spill_r=c.spill_r,
            spill_low_f=c.spill_low_f,
            scale_min=c.scale_min,
        )

    def _band_params(self):
        return self.config.max_freq, self.config.channels, self.config.span

    def _reset_state(self) -> None:
        self._tracker.set_size(self.config.channels)
        self.last_levels = None

    @property
    def tracker(self) -> RangeTracker:
        return self._tracker

    def add_levels_listener(self, fn: LevelsListener) -> None:
        self._level_listeners.append(fn)

    def reconfigure(self, config: OrganConfig) -> None:
        """Scalar settings apply at once; band changes re-allocate and reset."""
        old = self.config
        reducer = BandEnergyReducer(config.bin_exponent)
        self.config = replace(config)
        self._reducer = reducer
        self._tracker.reconfigure(self._tracker_settings())

        structural = (
            (old.channels, old.max_freq, old.span) != (config.channels, config.max_freq, config.span)
        )
        if structural and self.sample_rate:
            self._update_grouping()
        elif structural or old.bin_exponent != config.bin_exponent:
            self._reset_state()

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None) -> np.ndarray:
        layout = self._require_layout()
        energies = self._reducer.reduce(layout, spectrum)
        levels = self._tracker.scale(energies, timestamp_ms)
        self.last_levels = levels
        self._notify(self._level_listeners, levels)
        return levels


class LightOrgan2d(_BandedEffect):
    """Bands x stages grid; deeper stages show energy sustained over more frames."""

    tag = "LightOrgan2d"

    def __init__(self, config: Optional[Organ2dConfig] = None, name: Optional[str] = None):
        super().__init__(name)
        self.config = replace(config) if config is not None else Organ2dConfig()
        self._reducer = BandEnergyReducer(self.config.bin_exponent)
        self._persistence = TemporalPersistence(self.config.stages, self.config.channels, self._stage_settings)
        self._stage_listeners: List[StageListener] = []
        self.last_rows: Optional[List[np.ndarray]] = None

    def _stage_settings(self, stage: int) -> RangeTrackerSettings:
        c = self.config
        return RangeTrackerSettings(
            decay_r=c.stage_decay_r,
            sustain_t=c.stage_sustain_t,
            decay_mode=DecayMode.SUSTAIN,
            spill_r=c.stage_spill_r,
            spill_low_f=c.stage_spill_low_f,
            scale_min=c.stage_scale_min,
        )

    def _band_params(self):
        return self.config.max_freq, self.config.channels, self.config.span

    def _reset_state(self) -> None:
        self._persistence.reset(self.config.stages, self.config.channels)
        self.last_rows = None

    @property
    def persistence(self) -> TemporalPersistence:
        return self._persistence

    def add_stage_listener(self, fn: StageListener) -> None:
        self._stage_listeners.append(fn)

    def reconfigure(self, config: Organ2dConfig) -> None:
        old = self.config
        reducer = BandEnergyReducer(config.bin_exponent)
        self.config = replace(config)
        self._reducer = reducer
        self._persistence.set_settings_factory(self._stage_settings)

        structural = (
            (old.channels, old.stages, old.max_freq, old.span)
            != (config.channels, config.stages, config.max_freq, config.span)
        )
        if structural and self.sample_rate:
            self._update_grouping()
        elif structural or old.bin_exponent != config.bin_exponent:
            self._reset_state()

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None) -> Optional[List[np.ndarray]]:
        layout = self._require_layout()
        energies = self._reducer.reduce(layout, spectrum)
        rows = self._persistence.push(energies, timestamp_ms)
        if rows is None:
            return None
        self.last_rows = rows
        for stage, row in enumerate(rows):
            self._notify(self._stage_listeners, stage, row)
        return rows


class VuMeter(SpectrumEffect):
    """Whole-spectrum energy meter on config.size lights."""

    tag = "VuMeter"

    def __init__(self, config: Optional[VuMeterConfig] = None, name: Optional[str] = None):
        super().__init__(name)
        self.config = replace(config) if config is not None else VuMeterConfig()
        self.meter = EnergyMeter(self.config.size, self.config)
        self._meter_listeners: List[MeterListener] = []
        self._light_listeners: List[Callable[[List[float]], None]] = []
        self.last_reading: Optional[MeterReading] = None

    def _sampling_changed(self) -> None:
        self.meter.reset()
        self.last_reading = None

    def add_meter_listener(self, fn: MeterListener) -> None:
        """fn(level, aux_max, aux_min) once per frame."""
        self._meter_listeners.append(fn)

    def add_lights_listener(self, fn: Callable[[List[float]], None]) -> None:
        self._light_listeners.append(fn)

    def reconfigure(self, config: VuMeterConfig) -> None:
        self.meter.reconfigure(config)
        self.config = replace(config)

    def push_frame(self, spectrum, timestamp_ms: Optional[float] = None) -> MeterReading:
        if self.bin_count is None:
            raise IllegalStateError("Frame pushed before sampling parameters were set")
        if len(spectrum) != self.bin_count:
            raise SizeMismatchError("spectrum", len(spectrum), self.bin_count)

        reading = self.meter.process(spectrum, timestamp_ms)
        self.last_reading = reading
        self._notify(self._meter_listeners, reading.level, reading.aux_max, reading.aux_min)
        self._notify(self._light_listeners, reading.lights)
        return reading
