#!/usr/bin/env python3
"""
lightorgan - Audio reactive light levels

Captures audio, runs the light organ, 2-D organ and VU meter on every
spectrum frame and logs their levels periodically.
"""

import argparse
import cProfile
import sys
import time
from pathlib import Path

from config import Config
from config_persistence import load_config, save_config
from light_organ import LightOrgan, LightOrgan2d, VuMeter
from logging_utils import log_event, set_log_level
from spectrum_capture import SpectrumCapture, list_devices
from spectrum_hub import SpectrumHub
from spectrum_transform import SpectrumTransform

_SHADES = " .:-=+*#%@"


def level_bar(levels) -> str:
    """One character per level, darkest for 0 and densest for 1."""
    top = len(_SHADES) - 1
    return "".join(_SHADES[max(0, min(top, int(round(v * top))))] for v in levels)


class LevelReporter:
    """Collects the latest effect outputs and logs them at a fixed cadence."""

    def __init__(self, every_s: float):
        self.every_s = float(every_s)
        self._last_log = 0.0
        self.organ = None
        self.stages = {}
        self.meter = (0.0, 0.0, 0.0)

    def on_layout(self, sizes) -> None:
        log_event("INFO", "Layout", "Bin allocation", bands=len(sizes), sizes=sizes)

    def on_organ(self, levels) -> None:
        self.organ = levels

    def on_stage(self, stage, levels) -> None:
        self.stages[stage] = levels

    def on_meter(self, level, aux_max, aux_min) -> None:
        self.meter = (level, aux_max, aux_min)
        now = time.monotonic()
        if now - self._last_log >= self.every_s:
            self._last_log = now
            self.report()

    def report(self) -> None:
        level, aux_max, aux_min = self.meter
        log_event("INFO", "VU", level_bar([level] * 20), level=f"{level:.3f}",
                  max=f"{aux_max:.4f}", min=f"{aux_min:.4f}")
        if self.organ is not None:
            log_event("INFO", "Organ", level_bar(self.organ))
        for stage in sorted(self.stages):
            log_event("DEBUG", "Organ2d", level_bar(self.stages[stage]), stage=stage)


def build_pipeline(config: Config, reporter: LevelReporter) -> SpectrumHub:
    """Wire the effects into a hub in a fixed registration order."""
    hub = SpectrumHub()

    source = None
    if config.transform.enabled:
        source = SpectrumTransform(config.transform.buffer_size)
        hub.add_client(source)

    organ = LightOrgan(config.organ)
    organ.add_layout_listener(reporter.on_layout)
    organ.add_levels_listener(reporter.on_organ)
    hub.add_client(organ, source)

    organ2d = LightOrgan2d(config.organ2d)
    organ2d.add_stage_listener(reporter.on_stage)
    hub.add_client(organ2d, source)

    vu = VuMeter(config.vu)
    vu.add_meter_listener(reporter.on_meter)
    hub.add_client(vu)
    return hub


def run_app(config: Config, duration: float | None) -> int:
    reporter = LevelReporter(config.report_every_s)
    hub = build_pipeline(config, reporter)
    capture = SpectrumCapture(hub, config.audio)

    try:
        capture.start()
    except Exception as e:
        log_event("ERROR", "Startup", "Could not start audio capture", error=e)
        capture.stop()
        return 1

    started = time.monotonic()
    try:
        while duration is None or time.monotonic() - started < duration:
            time.sleep(0.1)
    except KeyboardInterrupt:
        pass
    finally:
        capture.stop()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the lightorgan spectrum pipeline")
    parser.add_argument("--config", type=Path, default=None, help="Config JSON (default: ~/.lightorgan/config.json)")
    parser.add_argument("--save-config", action="store_true", help="Write the effective config back and exit")
    parser.add_argument("--list-devices", action="store_true", help="List audio input devices and exit")
    parser.add_argument("--device", type=int, default=None, help="Input device index")
    parser.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    parser.add_argument("--duration", type=float, default=None, help="Stop after N seconds")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    args = parser.parse_args()

    config = load_config(args.config)
    set_log_level(args.log_level or config.log_level)
    if args.device is not None:
        config.audio.device_index = args.device

    if args.list_devices:
        for d in list_devices():
            log_event("INFO", "Devices", d['name'], index=d['index'], inputs=d['inputs'], sample_rate=d['sample_rate'])
        sys.exit(0)

    if args.save_config:
        sys.exit(0 if save_config(config, args.config) else 1)

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_app(config, args.duration)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_app(config, args.duration)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
