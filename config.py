# lightorgan Configuration
# All default values and constants

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Literal, Optional
from enum import IntEnum

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1

class DecayMode(IntEnum):
    """How a range tracker relaxes its extrema between observations"""
    CONTINUOUS = 1     # Decay on every frame
    SUSTAIN = 2        # Hold each extremum for sustain_t ms, then decay

@dataclass
class AudioConfig:
    """Audio capture and analyser settings"""
    sample_rate: int = 44100
    fft_size: int = 4096              # Analyser FFT size; bin count is fft_size / 2
    channels: int = 2                 # Captured channels, mixed down to mono
    device_index: Optional[int] = None  # None means use system default
    min_decibels: float = -100.0      # Byte 0 of the analyser scale
    max_decibels: float = -30.0       # Byte 255 of the analyser scale

@dataclass
class OrganConfig:
    """1-D light organ: one light per frequency band"""
    channels: int = 32
    max_freq: float = 2500.0          # Highest frequency covered by the bands (Hz)
    span: float = 2.0                 # Width ratio of last/first band
    bin_exponent: int = 2             # 1 = linear, 2 = power weighting
    scale_min: bool = False           # Scale minimums to 0
    decay_r: float = 997.0            # Max/min decay per update (x 1000)
    decay_mode: DecayMode = DecayMode.CONTINUOUS
    sustain_t: float = 0.0            # Hold time before decay (ms), SUSTAIN mode only
    spill_r: float = 0.05             # Neighbour spill window relative to channel count
    spill_low_f: float = 1.0          # Spill weight at the window edge

@dataclass
class Organ2dConfig:
    """2-D light organ: bands x multiplicative persistence stages"""
    channels: int = 32
    stages: int = 6
    max_freq: float = 2500.0
    span: float = 2.0
    bin_exponent: int = 1
    # Per-stage range tracker defaults
    stage_scale_min: bool = False
    stage_decay_r: float = 960.0
    stage_sustain_t: float = 20.0
    stage_spill_r: float = 0.3
    stage_spill_low_f: float = 0.0

@dataclass
class VuMeterConfig:
    """VU meter: whole-spectrum energy on a strip of lights"""
    size: int = 32                    # Number of lights
    avg_window: int = 1               # Averaging window (frames)
    avg_scale: float = 995.0          # Geometric weight ratio per frame of age (x 1000)
    avg_weighting: Literal["geometric", "linear"] = "geometric"
    use_average: bool = True          # False = drive lights from instantaneous energy
    br_range: float = 1.0             # Brightness range blend (1 = full dynamic range)
    scale_min: bool = True
    decay_r: float = 997.0
    sustain_t: float = 3000.0
    bin_exponent: int = 2

@dataclass
class TransformConfig:
    """Per-bin multiplicative spectrum persistence"""
    enabled: bool = False             # Feed the organs from the transformed spectrum
    buffer_size: int = 5

@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    audio: AudioConfig = field(default_factory=AudioConfig)
    organ: OrganConfig = field(default_factory=OrganConfig)
    organ2d: Organ2dConfig = field(default_factory=Organ2dConfig)
    vu: VuMeterConfig = field(default_factory=VuMeterConfig)
    transform: TransformConfig = field(default_factory=TransformConfig)

    # Global
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)
    report_every_s: float = 0.5       # Level log cadence of the runner (seconds)


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; IntEnum fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current):
            if isinstance(value, dict):
                apply_dict_to_dataclass(current, value)
            continue

        if isinstance(current, IntEnum):
            try:
                setattr(target, key, current.__class__(value))
                continue
            except (ValueError, TypeError):
                log_event("WARNING", "Config", f"Could not convert {key} to {current.__class__.__name__}, keeping default")
                continue

        setattr(target, key, value)


# Ranges of the tunable parameters, keyed "<section>.<field>"
PARAM_RANGE_LIMITS = {
    'organ.channels': (1, 256),
    'organ.max_freq': (100.0, 20000.0),
    'organ.span': (1.0, 1000.0),
    'organ.bin_exponent': (1, 2),
    'organ.decay_r': (900.0, 1000.0),
    'organ.spill_r': (0.0, 1.0),
    'organ.spill_low_f': (0.0, 1.0),
    'organ2d.channels': (1, 256),
    'organ2d.stages': (1, 16),
    'organ2d.max_freq': (100.0, 20000.0),
    'organ2d.span': (1.0, 1000.0),
    'organ2d.bin_exponent': (1, 2),
    'organ2d.stage_decay_r': (900.0, 1000.0),
    'organ2d.stage_spill_r': (0.0, 1.0),
    'organ2d.stage_spill_low_f': (0.0, 1.0),
    'vu.size': (1, 256),
    'vu.avg_window': (1, 50),
    'vu.avg_scale': (1.0, 1000.0),
    'vu.br_range': (0.0, 1.0),
    'vu.bin_exponent': (1, 2),
    'transform.buffer_size': (1, 50),
}


def _restore_none_fields(target, defaults) -> None:
    for f in fields(target):
        value = getattr(target, f.name)
        default = getattr(defaults, f.name)
        if is_dataclass(value):
            _restore_none_fields(value, default)
        elif value is None and default is not None:
            setattr(target, f.name, default)


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Restores defaults for null fields, clamps tunables and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (ValueError, TypeError):
        version = 0

    if version < 1:
        # Pre-versioned files stored the organ spill as a percentage
        if isinstance(config.organ.spill_r, (int, float)) and config.organ.spill_r > 1.0:
            config.organ.spill_r = config.organ.spill_r / 100.0

    _restore_none_fields(config, Config())

    for key, (low, high) in PARAM_RANGE_LIMITS.items():
        section_name, name = key.split('.')
        section = getattr(config, section_name)
        current = getattr(section, name)
        try:
            value = type(low)(current)
        except (ValueError, TypeError):
            value = getattr(getattr(DEFAULT_CONFIG, section_name), name)
        setattr(section, name, max(low, min(high, value)))

    if config.vu.avg_weighting not in ("geometric", "linear"):
        config.vu.avg_weighting = "geometric"

    config.version = CURRENT_CONFIG_VERSION


# Default config instance
DEFAULT_CONFIG = Config()
